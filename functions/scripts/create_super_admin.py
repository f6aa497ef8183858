"""
Bootstrap a super admin: the admins record, an admin user profile and an
audit log entry.
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

import firebase_admin
from firebase_admin import credentials, firestore
from google.cloud.firestore_v1 import SERVER_TIMESTAMP

from backend.store import DocumentStore, FirestoreStore
from shared.firebase_constants import (
    ADMIN_AUDIT_LOGS_COLLECTION,
    ADMINS_COLLECTION,
    USERS_COLLECTION,
)
from shared.types import Role

logger = logging.getLogger(__name__)

SUPER_ADMIN_PERMISSIONS = [
    "manage_admins",
    "manage_users",
    "manage_providers",
    "manage_reviews",
    "manage_announcements",
    "view_analytics",
    "manage_settings",
]


def create_super_admin(
    store: DocumentStore, uid: str, email: str, name: str, phone: str | None = None
) -> None:
    store.set(
        ADMINS_COLLECTION,
        uid,
        {
            "uid": uid,
            "email": email,
            "name": name,
            "isSuperAdmin": True,
            "isActive": True,
            "permissions": list(SUPER_ADMIN_PERMISSIONS),
            "createdBy": "system",
            "createdAt": SERVER_TIMESTAMP,
        },
    )
    store.set(
        USERS_COLLECTION,
        uid,
        {
            "uid": uid,
            "name": name,
            "email": email,
            "phone": phone,
            "role": str(Role.ADMIN),
            "deviceTokens": [],
            "createdAt": SERVER_TIMESTAMP,
        },
    )
    store.add(
        ADMIN_AUDIT_LOGS_COLLECTION,
        {
            "actorUid": "system",
            "action": "create_super_admin",
            "detail": {"targetUid": uid, "targetEmail": email, "isSuperAdmin": True},
            "timestamp": SERVER_TIMESTAMP,
        },
    )


def main() -> int:
    parser = argparse.ArgumentParser(description="Create a marketplace super admin")
    parser.add_argument("--uid", required=True, help="Firebase Auth UID of the admin")
    parser.add_argument("--email", required=True)
    parser.add_argument("--name", required=True)
    parser.add_argument("--phone", default=None)
    parser.add_argument(
        "--service-account",
        default=None,
        help="Path to a service account key JSON; defaults to application credentials",
    )
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(message)s")

    uid = args.uid.strip()
    email = args.email.strip()
    name = args.name.strip()
    if not uid or not email or not name:
        parser.error("uid, email and name must not be blank")

    if args.service_account:
        firebase_admin.initialize_app(credentials.Certificate(args.service_account))
    else:
        firebase_admin.initialize_app()

    store = FirestoreStore(firestore.client())
    create_super_admin(store, uid, email, name, args.phone)
    logger.info("Created super admin %s (%s)", name, email)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
