"""
Generic collection access for backup and restore.

The engine never touches collection-specific schemas. It only needs two
operations from the store: read every document of a collection, and create a
new document. CollectionAccessor describes that contract; the MongoDB
implementation wraps a Motor collection.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator, Sequence
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING, Any, Protocol

from motor.motor_asyncio import AsyncIOMotorClient

if TYPE_CHECKING:
    from motor.motor_asyncio import AsyncIOMotorCollection, AsyncIOMotorDatabase

    from docvault.config.settings import Settings

logger = logging.getLogger(__name__)


class DocumentValidationError(ValueError):
    """A document failed the collection's required-field check before insert."""

    pass


class CollectionAccessor(Protocol):
    """Find-all/create handle over a single collection."""

    async def find_all(self, exclude_fields: Sequence[str] = ()) -> list[dict[str, Any]]:
        """Return every document, leaving out the given fields."""
        ...

    async def create(self, document: dict[str, Any]) -> Any:
        """Insert a new document and return the identity the store assigned."""
        ...


class MongoCollectionAccessor:
    """
    CollectionAccessor backed by a Motor (async MongoDB) collection.

    MongoDB has no schema of its own, so required fields configured for the
    collection are checked here before the insert. Driver errors such as
    DuplicateKeyError propagate unchanged.
    """

    def __init__(
        self,
        collection: AsyncIOMotorCollection,
        required_fields: Sequence[str] = (),
    ) -> None:
        self.collection = collection
        self.required_fields = tuple(required_fields)

    @property
    def name(self) -> str:
        return self.collection.name

    async def find_all(self, exclude_fields: Sequence[str] = ()) -> list[dict[str, Any]]:
        projection = {name: 0 for name in exclude_fields} or None
        cursor = self.collection.find({}, projection)
        return await cursor.to_list(length=None)

    async def create(self, document: dict[str, Any]) -> Any:
        missing = [
            name for name in self.required_fields if document.get(name) in (None, "")
        ]
        if missing:
            raise DocumentValidationError(
                f"{self.name} validation failed: missing required field(s): "
                f"{', '.join(missing)}"
            )
        result = await self.collection.insert_one(document)
        return result.inserted_id


@asynccontextmanager
async def connect(settings: Settings) -> AsyncIterator[AsyncIOMotorDatabase]:
    """
    Open a MongoDB connection for the duration of a backup operation.

    Yields the configured database and closes the client on exit.
    """
    client = AsyncIOMotorClient(
        settings.mongodb.url,
        serverSelectionTimeoutMS=settings.mongodb.server_selection_timeout_ms,
        tz_aware=True,
    )
    logger.debug(f"Connected to MongoDB database {settings.mongodb.database!r}")
    try:
        yield client[settings.mongodb.database]
    finally:
        client.close()
