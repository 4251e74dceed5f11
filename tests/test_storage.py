"""
Tests for the storage layer.

Tests cover:
- CollectionRegistry ordering and key validation
- The placeholder credential import hook
- build_registry from settings
- MongoCollectionAccessor against a mocked Motor collection
"""

from __future__ import annotations

import unittest
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch

from bson import ObjectId

from docvault.config.settings import CollectionConfig, Settings
from docvault.storage import (
    CollectionDescriptor,
    CollectionRegistry,
    DocumentValidationError,
    MongoCollectionAccessor,
    build_registry,
    connect,
    placeholder_credential_hook,
)


class TestCollectionRegistry(unittest.TestCase):
    """Tests for CollectionRegistry."""

    def _descriptor(self, key: str) -> CollectionDescriptor:
        return CollectionDescriptor(key=key, accessor=MagicMock())

    def test_preserves_order(self) -> None:
        """Test registry keeps descriptor order."""
        registry = CollectionRegistry(
            [self._descriptor(k) for k in ("roles", "users", "blogs")]
        )

        self.assertEqual(registry.keys(), ["roles", "users", "blogs"])
        self.assertEqual([d.key for d in registry], ["roles", "users", "blogs"])
        self.assertEqual(len(registry), 3)

    def test_lookup(self) -> None:
        """Test key lookup."""
        registry = CollectionRegistry([self._descriptor("roles")])

        self.assertIn("roles", registry)
        self.assertNotIn("users", registry)
        self.assertEqual(registry.get("roles").key, "roles")
        self.assertIsNone(registry.get("users"))

    def test_duplicate_keys_rejected(self) -> None:
        """Test duplicate keys are rejected."""
        with self.assertRaises(ValueError):
            CollectionRegistry([self._descriptor("roles"), self._descriptor("roles")])

    def test_invalid_keys_rejected(self) -> None:
        """Test invalid keys are rejected."""
        for key in (
            "",
            "Users",
            "help requests",
            "valentinecontestentriesarchive2024",
            "a:b",
            "drafts/2024",
        ):
            with self.subTest(key=key):
                with self.assertRaises(ValueError):
                    CollectionRegistry([self._descriptor(key)])

    def test_key_error_names_the_rule(self) -> None:
        """Test the error names the broken rule."""
        with self.assertRaises(ValueError) as cm:
            CollectionRegistry([self._descriptor("valentinecontestentriesarchive2024")])
        self.assertIn("31 characters", str(cm.exception))

        with self.assertRaises(ValueError) as cm:
            CollectionRegistry([self._descriptor("a:b")])
        self.assertIn("\\/*?:[]", str(cm.exception))

    def test_longest_key_accepted(self) -> None:
        """Test a 31 character key is accepted."""
        key = "a" * 31
        registry = CollectionRegistry([self._descriptor(key)])
        self.assertEqual(registry.keys(), [key])

    def test_descriptor_is_immutable(self) -> None:
        """Test descriptors are immutable."""
        descriptor = self._descriptor("roles")
        with self.assertRaises(AttributeError):
            descriptor.key = "users"


class TestPlaceholderCredentialHook(unittest.TestCase):
    """Tests for placeholder_credential_hook."""

    def setUp(self) -> None:
        """Set up test fixtures."""
        self.hook = placeholder_credential_hook("password", "ImportedBackup1!")

    def test_missing_credential_is_filled(self) -> None:
        """Test a missing credential is filled."""
        self.assertEqual(self.hook({"name": "Ada"})["password"], "ImportedBackup1!")

    def test_empty_credential_is_filled(self) -> None:
        """Test an empty credential is filled."""
        for value in (None, ""):
            record = self.hook({"name": "Ada", "password": value})
            self.assertEqual(record["password"], "ImportedBackup1!")

    def test_existing_credential_is_kept(self) -> None:
        """Test an existing credential is kept."""
        record = self.hook({"name": "Ada", "password": "$2a$10$hash"})
        self.assertEqual(record["password"], "$2a$10$hash")


class TestBuildRegistry(unittest.TestCase):
    """Tests for build_registry."""

    def setUp(self) -> None:
        """Set up test fixtures."""
        self.database = MagicMock()
        self.database.__getitem__.side_effect = lambda name: SimpleNamespace(name=name)

    def test_follows_configured_order(self) -> None:
        """Test the registry follows the configured order."""
        settings = Settings()
        settings.collections = [
            CollectionConfig(key="roles"),
            CollectionConfig(key="users", required_fields=["name", "password"]),
            CollectionConfig(key="blogs"),
        ]

        registry = build_registry(self.database, settings)

        self.assertEqual(registry.keys(), ["roles", "users", "blogs"])
        users = registry.get("users")
        self.assertEqual(users.accessor.name, "users")
        self.assertEqual(users.accessor.required_fields, ("name", "password"))

    def test_identity_collection_hooks(self) -> None:
        """Test the identity collection gets its hooks."""
        registry = build_registry(self.database, Settings())

        users = registry.get("users")
        self.assertEqual(users.exclude_fields, ("password",))
        self.assertEqual(users.import_hook({})["password"], "ImportedBackup1!")

        roles = registry.get("roles")
        self.assertEqual(roles.exclude_fields, ())
        self.assertIsNone(roles.import_hook)

    def test_custom_identity_collection(self) -> None:
        """Test a custom identity collection."""
        settings = Settings()
        settings.collections = [CollectionConfig(key="accounts")]
        settings.backup.identity_collection = "accounts"
        settings.backup.credential_field = "secret"
        settings.backup.placeholder_credential = "Reset-Me-1"

        registry = build_registry(self.database, settings)

        accounts = registry.get("accounts")
        self.assertEqual(accounts.exclude_fields, ("secret",))
        self.assertEqual(accounts.import_hook({})["secret"], "Reset-Me-1")


class TestMongoCollectionAccessor(unittest.IsolatedAsyncioTestCase):
    """Tests for MongoCollectionAccessor."""

    def setUp(self) -> None:
        """Set up test fixtures."""
        self.collection = MagicMock()
        self.collection.name = "users"
        self.cursor = MagicMock()
        self.cursor.to_list = AsyncMock(return_value=[{"name": "Ada"}])
        self.collection.find.return_value = self.cursor

    async def test_find_all_without_exclusions(self) -> None:
        """Test find_all without exclusions."""
        accessor = MongoCollectionAccessor(self.collection)

        documents = await accessor.find_all()

        self.assertEqual(documents, [{"name": "Ada"}])
        self.collection.find.assert_called_once_with({}, None)
        self.cursor.to_list.assert_awaited_once_with(length=None)

    async def test_find_all_projects_excluded_fields(self) -> None:
        """Test excluded fields become a projection."""
        accessor = MongoCollectionAccessor(self.collection)

        await accessor.find_all(("password",))

        self.collection.find.assert_called_once_with({}, {"password": 0})

    async def test_create_returns_new_identity(self) -> None:
        """Test create returns the new identity."""
        new_id = ObjectId()
        self.collection.insert_one = AsyncMock(return_value=SimpleNamespace(inserted_id=new_id))
        accessor = MongoCollectionAccessor(self.collection)

        result = await accessor.create({"name": "Ada"})

        self.assertEqual(result, new_id)
        self.collection.insert_one.assert_awaited_once_with({"name": "Ada"})

    async def test_create_checks_required_fields(self) -> None:
        """Test create checks required fields."""
        self.collection.insert_one = AsyncMock()
        accessor = MongoCollectionAccessor(self.collection, required_fields=["name", "password"])

        with self.assertRaises(DocumentValidationError) as cm:
            await accessor.create({"name": "", "email": "ada@example.com"})

        self.assertIn("name, password", str(cm.exception))
        self.collection.insert_one.assert_not_awaited()

    async def test_create_propagates_driver_errors(self) -> None:
        """Test driver errors propagate from create."""
        self.collection.insert_one = AsyncMock(side_effect=RuntimeError("E11000 duplicate key"))
        accessor = MongoCollectionAccessor(self.collection)

        with self.assertRaises(RuntimeError):
            await accessor.create({"name": "Ada"})


class TestConnect(unittest.IsolatedAsyncioTestCase):
    """Tests for connect()."""

    async def test_yields_configured_database_and_closes(self) -> None:
        """Test connect yields the configured database and closes the client."""
        settings = Settings()
        settings.mongodb.url = "mongodb://db.example:27017"
        settings.mongodb.database = "portal"
        client = MagicMock()

        with patch("docvault.storage.accessor.AsyncIOMotorClient", return_value=client) as factory:
            async with connect(settings) as database:
                self.assertIs(database, client.__getitem__.return_value)

        factory.assert_called_once_with(
            "mongodb://db.example:27017",
            serverSelectionTimeoutMS=5000,
            tz_aware=True,
        )
        client.__getitem__.assert_called_once_with("portal")
        client.close.assert_called_once()


if __name__ == "__main__":
    unittest.main()
