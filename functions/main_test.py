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
# Standard library imports
import os
import unittest
from unittest.mock import patch

# Third-party library imports
from functions_framework import create_app
from google.cloud.firestore_v1 import DocumentReference, GeoPoint

# Local application imports
import main_testing_utils
from backend.messaging import InMemoryMessenger
from shared.firebase_constants import (
    ANNOUNCEMENTS_COLLECTION,
    BOOKINGS_COLLECTION,
    PROVIDERS_COLLECTION,
    REVIEWS_COLLECTION,
)

MAIN_SOURCE = os.path.join(os.path.dirname(os.path.abspath(__file__)), "main.py")


def _client(target: str):
    return create_app(target, MAIN_SOURCE).test_client()


class MainTestCase(unittest.TestCase):
    """Runs each function against an in-memory store and messenger."""

    @patch("firebase_admin.initialize_app")
    def setUp(self, initialize_app_mock):
        self.store = main_testing_utils.create_mock_store()
        self.messenger = InMemoryMessenger()

    def _patch_backends(self, uid):
        # create_app re-executes main.py, so patch after the client exists.
        patches = [
            patch("main.get_store", return_value=self.store),
            patch("main.get_messenger", return_value=self.messenger),
        ]
        if uid is not None:
            patches.append(patch("main._auth_uid", return_value=uid))
        for p in patches:
            p.start()
            self.addCleanup(p.stop)

    def call(self, target: str, payload: dict, uid=main_testing_utils.CUSTOMER_UID):
        with patch("firebase_admin.initialize_app"):
            client = _client(target)
        self._patch_backends(uid)
        return client.post("/", json={"data": payload})


class TestMainCreateBooking(MainTestCase):

    def test_create_booking(self):
        response = self.call(
            "create_booking",
            {
                "providerId": main_testing_utils.PROVIDER_ID,
                "serviceId": main_testing_utils.SERVICE_ID,
                "scheduledAt": main_testing_utils.SCHEDULED_AT,
                "address": {"line1": "1 Main St", "postalCode": "12345"},
            },
        )

        self.assertEqual(
            response.status_code,
            200,
            f"Function failed with status {response.status_code}: {response.data.decode()}",
        )
        result = response.get_json()["result"]
        self.assertEqual(result["status"], "requested")
        booking = self.store.get(BOOKINGS_COLLECTION, result["bookingId"])
        self.assertEqual(booking["customerId"], main_testing_utils.CUSTOMER_UID)
        self.assertEqual(
            booking["address"], {"line1": "1 Main St", "postalCode": "12345"}
        )
        self.assertEqual(self.messenger.sent[0].tokens, ["provider-token"])

    def test_create_booking_unauthenticated(self):
        response = self.call(
            "create_booking",
            {
                "providerId": main_testing_utils.PROVIDER_ID,
                "serviceId": main_testing_utils.SERVICE_ID,
                "scheduledAt": main_testing_utils.SCHEDULED_AT,
            },
            uid=None,
        )

        self.assertEqual(response.status_code, 401)
        self.assertEqual(response.get_json()["error"]["status"], "UNAUTHENTICATED")
        self.assertEqual(self.store.query(BOOKINGS_COLLECTION, []), [])

    def test_create_booking_missing_fields(self):
        response = self.call(
            "create_booking", {"providerId": main_testing_utils.PROVIDER_ID}
        )

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.get_json()["error"]["status"], "INVALID_ARGUMENT")

    def test_create_booking_conflict(self):
        main_testing_utils.add_booking(self.store)

        response = self.call(
            "create_booking",
            {
                "providerId": main_testing_utils.PROVIDER_ID,
                "serviceId": main_testing_utils.SERVICE_ID,
                "scheduledAt": main_testing_utils.SCHEDULED_AT,
            },
            uid=main_testing_utils.OTHER_CUSTOMER_UID,
        )

        self.assertEqual(response.status_code, 409)
        self.assertEqual(response.get_json()["error"]["status"], "ALREADY_EXISTS")

    def test_create_booking_internal_error(self):
        with patch("firebase_admin.initialize_app"):
            client = _client("create_booking")
        self._patch_backends(main_testing_utils.CUSTOMER_UID)
        with patch(
            "bookings.bookings.create_booking", side_effect=RuntimeError("boom")
        ):
            response = client.post(
                "/",
                json={
                    "data": {
                        "providerId": main_testing_utils.PROVIDER_ID,
                        "serviceId": main_testing_utils.SERVICE_ID,
                        "scheduledAt": main_testing_utils.SCHEDULED_AT,
                    }
                },
            )

        self.assertEqual(response.status_code, 500)
        error = response.get_json()["error"]
        self.assertEqual(error["status"], "INTERNAL")
        self.assertEqual(error["message"], "Failed to create booking")


class TestMainUpdateBookingStatus(MainTestCase):

    def test_accept(self):
        main_testing_utils.add_booking(self.store)

        response = self.call(
            "update_booking_status",
            {"bookingId": "booking-1", "action": "accept"},
            uid=main_testing_utils.PROVIDER_UID,
        )

        self.assertEqual(response.status_code, 200)
        self.assertEqual(
            response.get_json()["result"], {"success": True, "status": "accepted"}
        )

    def test_unknown_action(self):
        main_testing_utils.add_booking(self.store)

        response = self.call(
            "update_booking_status",
            {"bookingId": "booking-1", "action": "archive"},
            uid=main_testing_utils.PROVIDER_UID,
        )

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.get_json()["error"]["status"], "INVALID_ARGUMENT")
        self.assertEqual(
            self.store.get(BOOKINGS_COLLECTION, "booking-1")["status"], "requested"
        )

    def test_cancel_completed_booking(self):
        main_testing_utils.add_booking(self.store, status="completed")

        response = self.call(
            "update_booking_status", {"bookingId": "booking-1", "action": "cancel"}
        )

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.get_json()["error"]["status"], "FAILED_PRECONDITION")

    def test_customer_cannot_accept(self):
        main_testing_utils.add_booking(self.store)

        response = self.call(
            "update_booking_status", {"bookingId": "booking-1", "action": "accept"}
        )

        self.assertEqual(response.status_code, 403)
        self.assertEqual(response.get_json()["error"]["status"], "PERMISSION_DENIED")


class TestMainReviews(MainTestCase):

    def test_post_review(self):
        main_testing_utils.add_booking(self.store, status="completed")

        response = self.call(
            "post_review", {"bookingId": "booking-1", "rating": 5, "comment": "Great"}
        )

        self.assertEqual(response.status_code, 200)
        result = response.get_json()["result"]
        self.assertTrue(result["success"])
        review = self.store.get(REVIEWS_COLLECTION, result["reviewId"])
        self.assertEqual(review["rating"], 5)
        provider = self.store.get(PROVIDERS_COLLECTION, main_testing_utils.PROVIDER_ID)
        self.assertEqual(provider["ratingAvg"], 5.0)
        self.assertEqual(provider["ratingCount"], 1)

    def test_post_review_invalid_rating(self):
        main_testing_utils.add_booking(self.store, status="completed")

        response = self.call("post_review", {"bookingId": "booking-1", "rating": 6})

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.get_json()["error"]["status"], "INVALID_ARGUMENT")

    def test_flag_review(self):
        main_testing_utils.add_review(self.store)

        response = self.call(
            "flag_review",
            {"reviewId": "review-1", "reason": "Spam"},
            uid=main_testing_utils.OTHER_CUSTOMER_UID,
        )

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.get_json()["result"], {"success": True})
        review = self.store.get(REVIEWS_COLLECTION, "review-1")
        self.assertTrue(review["flagged"])
        self.assertEqual(review["flagReason"], "Spam")
        self.assertEqual(review["flaggedBy"], main_testing_utils.OTHER_CUSTOMER_UID)

    def test_flag_missing_review(self):
        response = self.call("flag_review", {"reviewId": "missing", "reason": "Spam"})

        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.get_json()["error"]["status"], "NOT_FOUND")


class TestMainAdmin(MainTestCase):

    def test_approve_provider(self):
        self.store.set(
            PROVIDERS_COLLECTION,
            main_testing_utils.PROVIDER_ID,
            main_testing_utils.create_mock_provider(
                verified=False, verificationStatus="pending"
            ),
        )

        response = self.call(
            "admin_approve_provider",
            {"providerId": main_testing_utils.PROVIDER_ID, "approve": True},
            uid=main_testing_utils.ADMIN_UID,
        )

        self.assertEqual(response.status_code, 200)
        provider = self.store.get(PROVIDERS_COLLECTION, main_testing_utils.PROVIDER_ID)
        self.assertTrue(provider["verified"])
        self.assertEqual(provider["verificationStatus"], "approved")

    def test_non_admin_cannot_approve(self):
        response = self.call(
            "admin_approve_provider",
            {"providerId": main_testing_utils.PROVIDER_ID, "approve": True},
        )

        self.assertEqual(response.status_code, 403)
        self.assertEqual(response.get_json()["error"]["status"], "PERMISSION_DENIED")

    def test_send_announcement(self):
        response = self.call(
            "send_announcement",
            {"title": "Maintenance", "message": "Down at 2am", "audience": "customers"},
            uid=main_testing_utils.ADMIN_UID,
        )

        self.assertEqual(response.status_code, 200)
        self.assertEqual(len(self.store.query(ANNOUNCEMENTS_COLLECTION, [])), 1)
        self.assertEqual(
            sorted(self.messenger.sent[0].tokens),
            ["customer-token", "other-customer-token"],
        )

    def test_send_announcement_unknown_audience(self):
        response = self.call(
            "send_announcement",
            {"title": "Maintenance", "message": "Down at 2am", "audience": "everyone"},
            uid=main_testing_utils.ADMIN_UID,
        )

        self.assertEqual(response.status_code, 400)
        self.assertEqual(self.store.query(ANNOUNCEMENTS_COLLECTION, []), [])


class TestMainFetchProvidersNearby(unittest.TestCase):

    @patch("firebase_admin.initialize_app")
    def setUp(self, initialize_app_mock):
        self.client = _client("fetch_providers_nearby")
        self.store = main_testing_utils.create_mock_store()
        self.store.set(
            PROVIDERS_COLLECTION,
            main_testing_utils.PROVIDER_ID,
            main_testing_utils.create_mock_provider(lat=0.05, lng=0.0),
        )
        self.store.set(
            PROVIDERS_COLLECTION,
            "provider-far",
            main_testing_utils.create_mock_provider(lat=0.2, lng=0.0),
        )
        store_patch = patch("main.get_store", return_value=self.store)
        store_patch.start()
        self.addCleanup(store_patch.stop)

    def test_returns_providers_within_radius(self):
        response = self.client.post("/", json={"lat": 0, "lng": 0, "radiusKm": 10})

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.headers["Access-Control-Allow-Origin"], "*")
        providers = response.get_json()["providers"]
        self.assertEqual([p["id"] for p in providers], [main_testing_utils.PROVIDER_ID])
        self.assertAlmostEqual(providers[0]["distance"], 5.56, places=2)

    def test_default_radius(self):
        response = self.client.post("/", json={"lat": 0.0, "lng": 0.0})

        self.assertEqual(response.status_code, 200)
        self.assertEqual(len(response.get_json()["providers"]), 1)

    def test_missing_coordinates(self):
        response = self.client.post("/", json={"lat": 0.0})

        self.assertEqual(response.status_code, 400)
        self.assertEqual(
            response.get_json(), {"error": "Latitude and longitude are required"}
        )

    def test_invalid_radius(self):
        response = self.client.post("/", json={"lat": 0, "lng": 0, "radiusKm": -1})

        self.assertEqual(response.status_code, 400)
        self.assertIn("error", response.get_json())

    def test_non_numeric_latitude(self):
        response = self.client.post("/", json={"lat": "north", "lng": 0})

        self.assertEqual(response.status_code, 400)

    def test_options_preflight(self):
        response = self.client.options("/")

        self.assertEqual(response.status_code, 204)
        self.assertEqual(response.headers["Access-Control-Allow-Origin"], "*")

    def test_store_failure(self):
        with patch.object(self.store, "query", side_effect=RuntimeError("offline")):
            response = self.client.post("/", json={"lat": 0, "lng": 0})

        self.assertEqual(response.status_code, 500)
        self.assertEqual(response.get_json(), {"error": "Failed to fetch providers"})

    def test_firestore_values_are_serialized(self):
        self.store.update(
            PROVIDERS_COLLECTION,
            main_testing_utils.PROVIDER_ID,
            {
                "location": GeoPoint(0.05, 0.0),
                "owner": DocumentReference("users", main_testing_utils.PROVIDER_UID),
            },
        )

        response = self.client.post("/", json={"lat": 0, "lng": 0})

        self.assertEqual(response.status_code, 200)
        provider = response.get_json()["providers"][0]
        self.assertEqual(provider["location"], {"lat": 0.05, "lng": 0.0})
        self.assertEqual(provider["owner"], f"users/{main_testing_utils.PROVIDER_UID}")

    def test_unserializable_provider_returns_json_error(self):
        self.store.update(
            PROVIDERS_COLLECTION, main_testing_utils.PROVIDER_ID, {"extra": object()}
        )

        response = self.client.post("/", json={"lat": 0, "lng": 0})

        self.assertEqual(response.status_code, 500)
        self.assertEqual(response.headers["Access-Control-Allow-Origin"], "*")
        self.assertEqual(response.get_json(), {"error": "Failed to fetch providers"})


if __name__ == "__main__":
    unittest.main()
