"""Tests for snapshot export."""

from __future__ import annotations

import unittest
from datetime import UTC, datetime

from bson import ObjectId
from fakes import MemoryCollection, make_registry

from docvault.backup import ReadFailureError, export_snapshot


class TestExportSnapshot(unittest.IsolatedAsyncioTestCase):
    """Tests for export_snapshot()."""

    def setUp(self) -> None:
        """Set up test fixtures."""
        self.role_id = ObjectId()
        self.roles = MemoryCollection([{"_id": self.role_id, "name": "admin"}])
        self.users = MemoryCollection(
            [
                {
                    "_id": ObjectId(),
                    "name": "Ada",
                    "password": "$2a$10$secret",
                    "roleRef": self.role_id,
                    "createdAt": datetime(2024, 1, 15, 10, 30, tzinfo=UTC),
                },
                {"_id": ObjectId(), "name": "Grace", "password": "$2a$10$other"},
            ]
        )
        self.blogs = MemoryCollection([])
        self.registry = make_registry(roles=self.roles, users=self.users, blogs=self.blogs)

    async def test_one_key_per_collection_in_order(self) -> None:
        """Test one snapshot key per collection, in registry order."""
        snapshot = await export_snapshot(self.registry)

        self.assertEqual(list(snapshot), ["roles", "users", "blogs"])
        self.assertEqual(len(snapshot["roles"]), 1)
        self.assertEqual(len(snapshot["users"]), 2)
        self.assertEqual(snapshot["blogs"], [])

    async def test_records_are_normalized(self) -> None:
        """Test records are normalized."""
        snapshot = await export_snapshot(self.registry)

        ada = snapshot["users"][0]
        self.assertEqual(ada["roleRef"], str(self.role_id))
        self.assertEqual(ada["createdAt"], "2024-01-15T10:30:00.000Z")
        self.assertIsInstance(ada["_id"], str)
        self.assertEqual(snapshot["roles"][0]["_id"], str(self.role_id))

    async def test_credential_hash_is_redacted(self) -> None:
        """Test the credential field is never exported."""
        snapshot = await export_snapshot(self.registry)

        for user in snapshot["users"]:
            self.assertNotIn("password", user)
            self.assertIn("name", user)
        self.assertEqual(self.users.find_calls, [("password",)])
        self.assertEqual(self.roles.find_calls, [()])

    async def test_read_failure_aborts_export(self) -> None:
        """Test a read failure aborts the whole export."""
        failing = MemoryCollection(read_error=ConnectionError("connection reset"))
        after = MemoryCollection([{"name": "x"}])
        registry = make_registry(roles=self.roles, blogs=failing, portfolios=after)

        with self.assertRaises(ReadFailureError) as cm:
            await export_snapshot(registry)

        self.assertEqual(cm.exception.key, "blogs")
        self.assertIn("connection reset", str(cm.exception))
        self.assertIsInstance(cm.exception.__cause__, ConnectionError)
        # Collections after the failing one are never read
        self.assertEqual(after.find_calls, [])

    async def test_store_is_not_modified(self) -> None:
        """Test export does not write to the store."""
        await export_snapshot(self.registry)

        self.assertEqual(self.users.created, [])
        self.assertIn("password", self.users.documents[0])


if __name__ == "__main__":
    unittest.main()
