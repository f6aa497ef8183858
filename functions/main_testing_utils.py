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
"""Fixtures shared by the function tests."""

from datetime import datetime, timezone

from backend.store import InMemoryStore
from shared.firebase_constants import (
    BOOKINGS_COLLECTION,
    PROVIDERS_COLLECTION,
    REVIEWS_COLLECTION,
    USERS_COLLECTION,
)

CUSTOMER_UID = "customer-1"
OTHER_CUSTOMER_UID = "customer-2"
PROVIDER_UID = "provider-owner-1"
PROVIDER_ID = "provider-1"
ADMIN_UID = "admin-1"
SERVICE_ID = "svc-cleaning"
SCHEDULED_AT = "2026-11-02T09:00:00+00:00"


def create_mock_provider(**overrides) -> dict:
    provider = {
        "ownerUid": PROVIDER_UID,
        "name": "Sparkle Home Cleaning",
        "description": "Deep cleaning for flats and houses",
        "status": "active",
        "verified": True,
        "verificationStatus": "approved",
        "categoryId": "cleaning",
        "lat": 0.0,
        "lng": 0.0,
        "services": [
            {"serviceId": SERVICE_ID, "name": "Deep clean", "price": 80},
            {"serviceId": "svc-windows", "name": "Window washing", "price": 40},
        ],
        "ratingAvg": 0.0,
        "ratingCount": 0,
    }
    provider.update(overrides)
    return provider


def create_mock_booking(status: str = "requested", **overrides) -> dict:
    booking = {
        "customerId": CUSTOMER_UID,
        "providerId": PROVIDER_ID,
        "providerOwnerUid": PROVIDER_UID,
        "serviceId": SERVICE_ID,
        "address": {"line1": "1 Main St", "city": "Springfield"},
        "scheduledAt": datetime(2026, 11, 2, 9, 0, tzinfo=timezone.utc),
        "status": status,
    }
    booking.update(overrides)
    return booking


def create_mock_review(rating: int = 4, **overrides) -> dict:
    review = {
        "bookingId": "booking-1",
        "customerId": CUSTOMER_UID,
        "providerId": PROVIDER_ID,
        "rating": rating,
        "comment": "Great job",
        "flagged": False,
        "flagReason": None,
    }
    review.update(overrides)
    return review


def create_mock_store() -> InMemoryStore:
    """An in-memory store with a customer, a provider owner and an admin."""
    store = InMemoryStore()
    store.set(
        USERS_COLLECTION,
        CUSTOMER_UID,
        {"role": "customer", "deviceTokens": ["customer-token"]},
    )
    store.set(
        USERS_COLLECTION,
        OTHER_CUSTOMER_UID,
        {"role": "customer", "deviceTokens": ["other-customer-token"]},
    )
    store.set(
        USERS_COLLECTION,
        PROVIDER_UID,
        {"role": "provider", "deviceTokens": ["provider-token"]},
    )
    store.set(
        USERS_COLLECTION, ADMIN_UID, {"role": "admin", "deviceTokens": ["admin-token"]}
    )
    store.set(PROVIDERS_COLLECTION, PROVIDER_ID, create_mock_provider())
    return store


def add_booking(store: InMemoryStore, booking_id: str = "booking-1", **kwargs) -> str:
    store.set(BOOKINGS_COLLECTION, booking_id, create_mock_booking(**kwargs))
    return booking_id


def add_review(store: InMemoryStore, review_id: str = "review-1", **kwargs) -> str:
    store.set(REVIEWS_COLLECTION, review_id, create_mock_review(**kwargs))
    return review_id
