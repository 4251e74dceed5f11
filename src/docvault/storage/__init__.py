"""
Document store access.

The backup engine reaches MongoDB only through the ordered CollectionRegistry,
whose descriptors pair a collection key with a generic find-all/create accessor.

Usage:
    from docvault.storage import build_registry, connect

    async with connect(settings) as database:
        registry = build_registry(database, settings)
"""

from docvault.storage.accessor import (
    CollectionAccessor,
    DocumentValidationError,
    MongoCollectionAccessor,
    connect,
)
from docvault.storage.registry import (
    CollectionDescriptor,
    CollectionRegistry,
    build_registry,
    placeholder_credential_hook,
)

__all__ = [
    "CollectionAccessor",
    "MongoCollectionAccessor",
    "DocumentValidationError",
    "connect",
    "CollectionDescriptor",
    "CollectionRegistry",
    "build_registry",
    "placeholder_credential_hook",
]
