"""
Ordered registry of the collections taking part in backup and restore.

The list order is the only dependency contract: collections other records
point at (roles, users) are listed before the collections that reference
them, so an import creates them first. Nothing checks that the order is
right; a wrong order only leaves dangling string references behind.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Iterator
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from docvault.config.settings import collection_key_error
from docvault.storage.accessor import CollectionAccessor, MongoCollectionAccessor

if TYPE_CHECKING:
    from motor.motor_asyncio import AsyncIOMotorDatabase

    from docvault.config.settings import Settings

ImportHook = Callable[[dict[str, Any]], dict[str, Any]]


@dataclass(frozen=True)
class CollectionDescriptor:
    """
    One registry entry.

    Attributes:
        key: Stable lowercase name, used as the snapshot key and sheet name.
        accessor: Handle used to read and create documents.
        exclude_fields: Fields left out of exports (projected away at query time).
        import_hook: Adjusts each record copy just before it is created.
    """

    key: str
    accessor: CollectionAccessor
    exclude_fields: tuple[str, ...] = ()
    import_hook: ImportHook | None = None


class CollectionRegistry:
    """Immutable, ordered set of collection descriptors."""

    def __init__(self, descriptors: Iterable[CollectionDescriptor]) -> None:
        items = tuple(descriptors)
        seen: set[str] = set()
        for descriptor in items:
            key = descriptor.key
            problem = collection_key_error(key)
            if problem:
                raise ValueError(f"Invalid collection key: {key!r} ({problem})")
            if key in seen:
                raise ValueError(f"Duplicate collection key: {key}")
            seen.add(key)
        self._descriptors = items

    def __iter__(self) -> Iterator[CollectionDescriptor]:
        return iter(self._descriptors)

    def __len__(self) -> int:
        return len(self._descriptors)

    def __contains__(self, key: object) -> bool:
        return any(d.key == key for d in self._descriptors)

    def keys(self) -> list[str]:
        return [d.key for d in self._descriptors]

    def get(self, key: str) -> CollectionDescriptor | None:
        for descriptor in self._descriptors:
            if descriptor.key == key:
                return descriptor
        return None


def placeholder_credential_hook(field_name: str, placeholder: str) -> ImportHook:
    """
    Build the import hook for the identity collection.

    Exports never carry the credential hash, so restored users get a fixed
    placeholder that satisfies the required field and must be reset.
    """

    def hook(record: dict[str, Any]) -> dict[str, Any]:
        if not record.get(field_name):
            record[field_name] = placeholder
        return record

    return hook


def build_registry(database: AsyncIOMotorDatabase, settings: Settings) -> CollectionRegistry:
    """Create the registry for the configured collections of a MongoDB database."""
    backup = settings.backup
    descriptors = []
    for collection in settings.collections:
        accessor = MongoCollectionAccessor(
            database[collection.key],
            required_fields=collection.required_fields,
        )
        if collection.key == backup.identity_collection:
            descriptors.append(
                CollectionDescriptor(
                    key=collection.key,
                    accessor=accessor,
                    exclude_fields=(backup.credential_field,),
                    import_hook=placeholder_credential_hook(
                        backup.credential_field, backup.placeholder_credential
                    ),
                )
            )
        else:
            descriptors.append(CollectionDescriptor(key=collection.key, accessor=accessor))
    return CollectionRegistry(descriptors)
