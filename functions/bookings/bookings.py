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
"""Booking creation and the booking status state machine."""

from datetime import datetime, timezone

from dacite import Config, from_dict
from firebase_functions import https_fn
from google.cloud.firestore_v1 import SERVER_TIMESTAMP

from backend.messaging import Messenger
from backend.store import DocumentStore
from notifications import dispatch
from shared.api import (
    CreateBookingRequest,
    CreateBookingResult,
    UpdateBookingStatusRequest,
    UpdateBookingStatusResult,
)
from shared.firebase_constants import BOOKINGS_COLLECTION, PROVIDERS_COLLECTION
from shared.json_utils import convert_keys
from shared.types import (
    OPEN_BOOKING_STATUSES,
    Booking,
    BookingAction,
    BookingStatus,
    Provider,
    PushPriority,
)

DOC_CONFIG = Config(check_types=False, cast=[BookingStatus])

# action -> (statuses the action may be applied to, resulting status)
TRANSITIONS = {
    BookingAction.ACCEPT: ({BookingStatus.REQUESTED}, BookingStatus.ACCEPTED),
    BookingAction.REJECT: ({BookingStatus.REQUESTED}, BookingStatus.REJECTED),
    BookingAction.COMPLETE: ({BookingStatus.ACCEPTED}, BookingStatus.COMPLETED),
    BookingAction.CANCEL: (
        {BookingStatus.REQUESTED, BookingStatus.ACCEPTED},
        BookingStatus.CANCELLED,
    ),
}

# action -> (title, body, notification type, priority)
STATUS_NOTIFICATIONS = {
    BookingAction.ACCEPT: (
        "Booking Accepted",
        "Your booking has been accepted!",
        "booking_accepted",
        PushPriority.HIGH,
    ),
    BookingAction.REJECT: (
        "Booking Declined",
        "Your booking has been rejected",
        "booking_rejected",
        PushPriority.NORMAL,
    ),
    BookingAction.COMPLETE: (
        "Service Completed",
        "Your service has been completed!",
        "booking_completed",
        PushPriority.NORMAL,
    ),
    BookingAction.CANCEL: (
        "Booking Cancelled",
        "Your booking has been cancelled",
        "booking_cancelled",
        PushPriority.NORMAL,
    ),
}


def load_provider(data: dict) -> Provider:
    return from_dict(
        data_class=Provider,
        data=convert_keys(data, "camel_to_snake"),
        config=DOC_CONFIG,
    )


def load_booking(data: dict) -> Booking:
    return from_dict(
        data_class=Booking,
        data=convert_keys(data, "camel_to_snake"),
        config=DOC_CONFIG,
    )


def parse_scheduled_at(value: str) -> datetime:
    """Parses an ISO-8601 timestamp; naive values are taken as UTC."""
    try:
        scheduled_at = datetime.fromisoformat(value)
    except (TypeError, ValueError):
        raise https_fn.HttpsError(
            https_fn.FunctionsErrorCode.INVALID_ARGUMENT,
            "scheduledAt must be an ISO-8601 timestamp.",
        )
    if scheduled_at.tzinfo is None:
        scheduled_at = scheduled_at.replace(tzinfo=timezone.utc)
    return scheduled_at.astimezone(timezone.utc)


def create_booking(
    store: DocumentStore,
    messenger: Messenger,
    uid: str,
    request: CreateBookingRequest,
) -> CreateBookingResult:
    """
    Books a provider's service for the caller at the requested time.

    The provider checks, the slot conflict check and the insert run in one
    transaction, which is the only guard against double-booking a slot.

    Raises:
        https_fn.HttpsError: NOT_FOUND for an unknown provider or service,
            FAILED_PRECONDITION for an inactive or unverified provider,
            ALREADY_EXISTS when the slot is held by an open booking.
    """
    if not request.provider_id or not request.service_id:
        raise https_fn.HttpsError(
            https_fn.FunctionsErrorCode.INVALID_ARGUMENT,
            "providerId and serviceId are required.",
        )
    scheduled_at = parse_scheduled_at(request.scheduled_at)

    def _create_booking_transaction(transaction):
        provider_doc = transaction.get(PROVIDERS_COLLECTION, request.provider_id)
        if provider_doc is None:
            raise https_fn.HttpsError(
                https_fn.FunctionsErrorCode.NOT_FOUND, "Provider not found"
            )
        provider = load_provider(provider_doc)
        if not provider.is_bookable():
            raise https_fn.HttpsError(
                https_fn.FunctionsErrorCode.FAILED_PRECONDITION,
                "Provider is not available",
            )
        if not provider.offers_service(request.service_id):
            raise https_fn.HttpsError(
                https_fn.FunctionsErrorCode.NOT_FOUND, "Service not found"
            )

        conflicts = transaction.query(
            BOOKINGS_COLLECTION,
            [
                ("providerId", "==", request.provider_id),
                ("scheduledAt", "==", scheduled_at),
                ("status", "in", [str(s) for s in OPEN_BOOKING_STATUSES]),
            ],
        )
        if conflicts:
            raise https_fn.HttpsError(
                https_fn.FunctionsErrorCode.ALREADY_EXISTS,
                "Time slot is already booked",
            )

        booking = Booking(
            customer_id=uid,
            provider_id=request.provider_id,
            provider_owner_uid=provider.owner_uid,
            service_id=request.service_id,
            scheduled_at=scheduled_at,
            address=request.address,
            status=BookingStatus.REQUESTED,
        )
        booking_data = booking.as_dict()
        booking_data["requestedAt"] = SERVER_TIMESTAMP
        booking_data["createdAt"] = SERVER_TIMESTAMP
        return transaction.create(BOOKINGS_COLLECTION, booking_data), booking

    booking_id, booking = store.run_transaction(_create_booking_transaction)

    dispatch.notify_user(
        store,
        messenger,
        booking.provider_owner_uid or booking.provider_id,
        "New Booking Request",
        "You have a new booking request",
        {"type": "booking_request", "bookingId": booking_id, "customerId": uid},
        PushPriority.HIGH,
    )
    return CreateBookingResult(booking_id=booking_id, status=BookingStatus.REQUESTED)


def _check_relationship(booking: Booking, uid: str, action: BookingAction) -> None:
    is_provider = uid in booking.provider_uids()
    is_customer = uid == booking.customer_id

    if action in (BookingAction.ACCEPT, BookingAction.REJECT) and not is_provider:
        message = f"Only provider can {action} bookings"
    elif action == BookingAction.COMPLETE and not (is_provider or is_customer):
        message = "Only provider or customer can complete bookings"
    elif action == BookingAction.CANCEL and not is_customer:
        message = "Only customer can cancel bookings"
    else:
        return
    raise https_fn.HttpsError(https_fn.FunctionsErrorCode.PERMISSION_DENIED, message)


def _counterparty(booking: Booking, uid: str) -> str:
    if uid == booking.customer_id:
        return booking.provider_owner_uid or booking.provider_id
    return booking.customer_id


def update_booking_status(
    store: DocumentStore,
    messenger: Messenger,
    uid: str,
    request: UpdateBookingStatusRequest,
) -> UpdateBookingStatusResult:
    """
    Applies an accept/reject/complete/cancel action to a booking.

    Only the provider may accept or reject, either party may complete, and
    only the customer may cancel. Illegal transitions fail with
    FAILED_PRECONDITION and leave the booking untouched. The counterparty is
    notified after the status change commits.
    """
    if not request.booking_id:
        raise https_fn.HttpsError(
            https_fn.FunctionsErrorCode.INVALID_ARGUMENT, "bookingId is required."
        )
    action = request.action
    allowed_from, new_status = TRANSITIONS[action]

    def _update_status_transaction(transaction):
        booking_doc = transaction.get(BOOKINGS_COLLECTION, request.booking_id)
        if booking_doc is None:
            raise https_fn.HttpsError(
                https_fn.FunctionsErrorCode.NOT_FOUND, "Booking not found"
            )
        booking = load_booking(booking_doc)
        _check_relationship(booking, uid, action)

        if booking.status not in allowed_from:
            raise https_fn.HttpsError(
                https_fn.FunctionsErrorCode.FAILED_PRECONDITION,
                f"Booking cannot be {new_status} from status {booking.status}",
            )

        transaction.update(
            BOOKINGS_COLLECTION,
            request.booking_id,
            {"status": str(new_status), "updatedAt": SERVER_TIMESTAMP},
        )
        return booking

    booking = store.run_transaction(_update_status_transaction)

    title, body, notification_type, priority = STATUS_NOTIFICATIONS[action]
    dispatch.notify_user(
        store,
        messenger,
        _counterparty(booking, uid),
        title,
        body,
        {
            "type": notification_type,
            "bookingId": request.booking_id,
            "providerId": booking.provider_id,
            "customerId": booking.customer_id,
        },
        priority,
    )
    return UpdateBookingStatusResult(success=True, status=new_status)
