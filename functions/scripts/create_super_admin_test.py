import unittest
from datetime import datetime

from backend.store import InMemoryStore
from create_super_admin import SUPER_ADMIN_PERMISSIONS, create_super_admin
from shared.firebase_constants import (
    ADMIN_AUDIT_LOGS_COLLECTION,
    ADMINS_COLLECTION,
    USERS_COLLECTION,
)


class CreateSuperAdminTests(unittest.TestCase):
    def setUp(self):
        self.store = InMemoryStore()
        create_super_admin(
            self.store, "admin-1", "ops@example.com", "Ops Admin", "+15550100"
        )

    def test_admin_record(self):
        record = self.store.get(ADMINS_COLLECTION, "admin-1")
        self.assertEqual(record["email"], "ops@example.com")
        self.assertTrue(record["isSuperAdmin"])
        self.assertTrue(record["isActive"])
        self.assertEqual(record["permissions"], SUPER_ADMIN_PERMISSIONS)
        self.assertEqual(record["createdBy"], "system")
        self.assertIsInstance(record["createdAt"], datetime)

    def test_user_profile_has_admin_role(self):
        profile = self.store.get(USERS_COLLECTION, "admin-1")
        self.assertEqual(profile["role"], "admin")
        self.assertEqual(profile["deviceTokens"], [])
        self.assertEqual(profile["phone"], "+15550100")

    def test_audit_log_entry(self):
        logs = self.store.query(ADMIN_AUDIT_LOGS_COLLECTION, [])
        self.assertEqual(len(logs), 1)
        _, entry = logs[0]
        self.assertEqual(entry["actorUid"], "system")
        self.assertEqual(entry["action"], "create_super_admin")
        self.assertEqual(entry["detail"]["targetUid"], "admin-1")
        self.assertIsInstance(entry["timestamp"], datetime)


if __name__ == "__main__":
    unittest.main()
