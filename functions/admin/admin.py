# Copyright 2025 Google LLC
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
# ==============================================================================
"""Admin-only operations: provider verification and announcements."""

from firebase_functions import https_fn, logger
from google.cloud.firestore_v1 import SERVER_TIMESTAMP

from backend.messaging import Messenger
from backend.store import DocumentStore
from bookings.bookings import load_provider
from notifications import dispatch
from shared.api import AdminApproveProviderRequest, SendAnnouncementRequest
from shared.constants import (
    MAX_ANNOUNCEMENT_MESSAGE_LENGTH,
    MAX_ANNOUNCEMENT_TITLE_LENGTH,
)
from shared.firebase_constants import (
    ADMIN_AUDIT_LOGS_COLLECTION,
    ANNOUNCEMENTS_COLLECTION,
    PROVIDERS_COLLECTION,
    USERS_COLLECTION,
)
from shared.types import (
    AdminAuditLogEntry,
    Announcement,
    AnnouncementPriority,
    PushPriority,
    Role,
    VerificationStatus,
)


def require_admin(store: DocumentStore, uid: str) -> None:
    """Raises PERMISSION_DENIED unless the caller's profile has the admin role."""
    profile = store.get(USERS_COLLECTION, uid)
    if not profile or profile.get("role") != Role.ADMIN:
        raise https_fn.HttpsError(
            https_fn.FunctionsErrorCode.PERMISSION_DENIED, "Admin access required"
        )


def _verification_message(approve: bool, notes: str | None) -> tuple[str, str]:
    if approve:
        return (
            "Account Approved!",
            "Congratulations! Your provider account has been approved and is now active.",
        )
    if notes:
        detail = f"Reason: {notes}"
    else:
        detail = "Please review and resubmit your documents."
    return (
        "Verification Update",
        f"Your provider verification was not approved. {detail}",
    )


def approve_provider(
    store: DocumentStore,
    messenger: Messenger,
    uid: str,
    request: AdminApproveProviderRequest,
) -> None:
    """
    Approves or rejects a provider's verification.

    The provider update and its audit log entry commit together; the
    provider's owner is notified afterwards.
    """
    require_admin(store, uid)
    if not request.provider_id:
        raise https_fn.HttpsError(
            https_fn.FunctionsErrorCode.INVALID_ARGUMENT, "providerId is required."
        )
    notes = (request.notes or "").strip() or None

    def _approve_provider_transaction(transaction):
        provider_doc = transaction.get(PROVIDERS_COLLECTION, request.provider_id)
        if provider_doc is None:
            raise https_fn.HttpsError(
                https_fn.FunctionsErrorCode.NOT_FOUND, "Provider not found"
            )

        update = {
            "verified": request.approve,
            "verificationStatus": str(
                VerificationStatus.APPROVED
                if request.approve
                else VerificationStatus.REJECTED
            ),
            "verifiedAt": SERVER_TIMESTAMP,
            "verifiedBy": uid,
        }
        if notes:
            update["adminNotes"] = notes
        transaction.update(PROVIDERS_COLLECTION, request.provider_id, update)

        entry = AdminAuditLogEntry(
            actor_uid=uid,
            action="approve_provider" if request.approve else "reject_provider",
            detail={"providerId": request.provider_id, "notes": notes},
        )
        log_data = entry.as_dict()
        log_data["timestamp"] = SERVER_TIMESTAMP
        transaction.create(ADMIN_AUDIT_LOGS_COLLECTION, log_data)
        return load_provider(provider_doc)

    provider = store.run_transaction(_approve_provider_transaction)

    title, body = _verification_message(request.approve, notes)
    dispatch.notify_user(
        store,
        messenger,
        provider.owner_uid or request.provider_id,
        title,
        body,
        {
            "type": "provider_approved" if request.approve else "provider_rejected",
            "providerId": request.provider_id,
            "notes": notes or "",
        },
        PushPriority.HIGH if request.approve else PushPriority.NORMAL,
    )


def send_announcement(
    store: DocumentStore,
    messenger: Messenger,
    uid: str,
    request: SendAnnouncementRequest,
) -> dispatch.PushResult:
    """Stores an announcement and pushes it to every device of its audience."""
    require_admin(store, uid)
    title = (request.title or "").strip()
    message = (request.message or "").strip()
    if not title or not message:
        raise https_fn.HttpsError(
            https_fn.FunctionsErrorCode.INVALID_ARGUMENT,
            "title and message are required.",
        )
    if (
        len(title) > MAX_ANNOUNCEMENT_TITLE_LENGTH
        or len(message) > MAX_ANNOUNCEMENT_MESSAGE_LENGTH
    ):
        raise https_fn.HttpsError(
            https_fn.FunctionsErrorCode.INVALID_ARGUMENT,
            "Announcement exceeds max length.",
        )

    announcement = Announcement(
        title=title,
        message=message,
        audience=request.audience,
        created_by=uid,
        announcement_type=request.announcement_type,
        priority=request.priority,
    )
    announcement_data = announcement.as_dict()
    announcement_data["createdAt"] = SERVER_TIMESTAMP
    announcement_id = store.add(ANNOUNCEMENTS_COLLECTION, announcement_data)
    logger.info(f"Stored announcement {announcement_id} for {request.audience}")

    return dispatch.notify_audience(
        store,
        messenger,
        request.audience,
        title,
        message,
        {
            "type": "announcement",
            "announcementId": announcement_id,
            "audience": str(request.audience),
            "announcementType": request.announcement_type,
            "priority": str(request.priority),
        },
        PushPriority.HIGH
        if request.priority == AnnouncementPriority.URGENT
        else PushPriority.NORMAL,
    )
