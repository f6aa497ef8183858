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

from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any, List, Optional


class BookingStatus(StrEnum):
    REQUESTED = "requested"
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


# Statuses that hold a provider's time slot.
OPEN_BOOKING_STATUSES = [BookingStatus.REQUESTED, BookingStatus.ACCEPTED]


class BookingAction(StrEnum):
    ACCEPT = "accept"
    REJECT = "reject"
    COMPLETE = "complete"
    CANCEL = "cancel"


class Role(StrEnum):
    CUSTOMER = "customer"
    PROVIDER = "provider"
    ADMIN = "admin"


class Audience(StrEnum):
    ALL = "all"
    CUSTOMERS = "customers"
    PROVIDERS = "providers"
    ADMINS = "admins"


class VerificationStatus(StrEnum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class PushPriority(StrEnum):
    NORMAL = "normal"
    HIGH = "high"


class AnnouncementPriority(StrEnum):
    NORMAL = "normal"
    URGENT = "urgent"


PROVIDER_ACTIVE_STATUS = "active"


@dataclass
class Provider:
    """A service-offering entity, as stored in the `providers` collection."""

    owner_uid: Optional[str] = None
    name: Optional[str] = None
    description: Optional[str] = None
    status: Optional[str] = None
    verified: bool = False
    verification_status: Optional[str] = None
    category_id: Optional[str] = None
    lat: Optional[float] = None
    lng: Optional[float] = None
    services: List[dict] = field(default_factory=list)
    rating_avg: float = 0.0
    rating_count: int = 0
    # Sum of all folded ratings. Missing on documents written before it was
    # tracked, in which case it is derived from rating_avg * rating_count.
    rating_total: Optional[float] = None

    def is_bookable(self) -> bool:
        return self.status == PROVIDER_ACTIVE_STATUS and bool(self.verified)

    def offers_service(self, service_id: str) -> bool:
        return any(
            service.get("service_id") == service_id for service in self.services or []
        )


@dataclass
class Booking:
    """A scheduled service engagement, as stored in `bookings`."""

    customer_id: str
    provider_id: str
    service_id: str
    scheduled_at: Any
    status: BookingStatus
    address: Any = None
    provider_owner_uid: Optional[str] = None

    def provider_uids(self) -> set:
        return {uid for uid in (self.provider_id, self.provider_owner_uid) if uid}

    def as_dict(self) -> dict:
        return {
            "customerId": self.customer_id,
            "providerId": self.provider_id,
            "providerOwnerUid": self.provider_owner_uid,
            "serviceId": self.service_id,
            "address": self.address,
            "scheduledAt": self.scheduled_at,
            "status": str(self.status),
        }


@dataclass
class Review:
    """A customer's rating of a completed booking, as stored in `reviews`."""

    booking_id: str
    customer_id: str
    provider_id: str
    rating: int
    comment: str = ""
    flagged: bool = False
    flag_reason: Optional[str] = None
    review_id: Optional[str] = None

    def as_dict(self) -> dict:
        return {
            "reviewId": self.review_id,
            "bookingId": self.booking_id,
            "customerId": self.customer_id,
            "providerId": self.provider_id,
            "rating": self.rating,
            "comment": self.comment,
            "flagged": self.flagged,
            "flagReason": self.flag_reason,
        }


@dataclass
class Announcement:
    title: str
    message: str
    audience: Audience
    created_by: str
    announcement_type: str = "info"
    priority: AnnouncementPriority = AnnouncementPriority.NORMAL

    def as_dict(self) -> dict:
        return {
            "title": self.title,
            "message": self.message,
            "audience": str(self.audience),
            "announcementType": self.announcement_type,
            "priority": str(self.priority),
            "createdBy": self.created_by,
        }


@dataclass
class AdminAuditLogEntry:
    actor_uid: str
    action: str
    detail: dict = field(default_factory=dict)

    def as_dict(self) -> dict:
        return {
            "actorUid": self.actor_uid,
            "action": self.action,
            "detail": dict(self.detail),
        }
