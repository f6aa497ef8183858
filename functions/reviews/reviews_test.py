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

import unittest
from datetime import datetime

from firebase_functions import https_fn

import main_testing_utils as fixtures
from reviews import reviews
from shared.api import FlagReviewRequest, PostReviewRequest
from shared.firebase_constants import PROVIDERS_COLLECTION, REVIEWS_COLLECTION

ErrorCode = https_fn.FunctionsErrorCode


class PostReviewTest(unittest.TestCase):

    def setUp(self):
        self.store = fixtures.create_mock_store()
        fixtures.add_booking(self.store, status="completed")

    def _provider(self):
        return self.store.get(PROVIDERS_COLLECTION, fixtures.PROVIDER_ID)

    def _post(self, uid=fixtures.CUSTOMER_UID, **kwargs):
        values = {"booking_id": "booking-1", "rating": 4, "comment": "Good"}
        values.update(kwargs)
        return reviews.post_review(self.store, uid, PostReviewRequest(**values))

    def test_post_review(self):
        result = self._post(rating=4, comment="  Very tidy  ")

        self.assertTrue(result.success)
        review = self.store.get(REVIEWS_COLLECTION, result.review_id)
        self.assertEqual(review["reviewId"], result.review_id)
        self.assertEqual(review["bookingId"], "booking-1")
        self.assertEqual(review["customerId"], fixtures.CUSTOMER_UID)
        self.assertEqual(review["providerId"], fixtures.PROVIDER_ID)
        self.assertEqual(review["comment"], "Very tidy")
        self.assertFalse(review["flagged"])
        self.assertIsInstance(review["createdAt"], datetime)
        provider = self._provider()
        self.assertEqual(provider["ratingAvg"], 4.0)
        self.assertEqual(provider["ratingCount"], 1)
        self.assertEqual(provider["ratingTotal"], 4)

    def test_rating_folds_into_existing_average(self):
        self.store.update(
            PROVIDERS_COLLECTION,
            fixtures.PROVIDER_ID,
            {"ratingAvg": 4.0, "ratingCount": 2},
        )

        self._post(rating=5)

        provider = self._provider()
        self.assertEqual(provider["ratingAvg"], 4.33)
        self.assertEqual(provider["ratingCount"], 3)

    def test_second_review_rejected(self):
        self._post(rating=4)

        with self.assertRaises(https_fn.HttpsError) as ctx:
            self._post(rating=2)

        self.assertEqual(ctx.exception.code, ErrorCode.ALREADY_EXISTS)
        self.assertEqual(len(self.store.query(REVIEWS_COLLECTION, [])), 1)
        self.assertEqual(self._provider()["ratingCount"], 1)

    def test_update_review(self):
        first = self._post(rating=2)

        result = self._post(rating=5, comment="Changed my mind", is_update=True,
                            review_id=first.review_id)

        self.assertEqual(result.review_id, first.review_id)
        review = self.store.get(REVIEWS_COLLECTION, first.review_id)
        self.assertEqual(review["rating"], 5)
        self.assertEqual(review["comment"], "Changed my mind")
        self.assertIn("updatedAt", review)
        provider = self._provider()
        self.assertEqual(provider["ratingAvg"], 5.0)
        self.assertEqual(provider["ratingCount"], 1)

    def test_update_without_review_id_uses_existing_review(self):
        first = self._post(rating=3)

        result = self._post(rating=4, is_update=True)

        self.assertEqual(result.review_id, first.review_id)
        self.assertEqual(self._provider()["ratingAvg"], 4.0)

    def test_update_missing_review(self):
        with self.assertRaises(https_fn.HttpsError) as ctx:
            self._post(is_update=True, review_id="missing")

        self.assertEqual(ctx.exception.code, ErrorCode.NOT_FOUND)

    def test_update_someone_elses_review(self):
        fixtures.add_review(self.store, customerId=fixtures.OTHER_CUSTOMER_UID)

        with self.assertRaises(https_fn.HttpsError) as ctx:
            self._post(is_update=True, review_id="review-1")

        self.assertEqual(ctx.exception.code, ErrorCode.PERMISSION_DENIED)

    def test_update_review_without_stored_rating(self):
        self.store.update(
            PROVIDERS_COLLECTION,
            fixtures.PROVIDER_ID,
            {"ratingAvg": 4.0, "ratingCount": 1, "ratingTotal": 4},
        )
        fixtures.add_review(self.store)
        self.store.collections[REVIEWS_COLLECTION]["review-1"].pop("rating")

        with self.assertRaises(https_fn.HttpsError) as ctx:
            self._post(rating=5, is_update=True, review_id="review-1")

        self.assertEqual(ctx.exception.code, ErrorCode.FAILED_PRECONDITION)
        provider = self._provider()
        self.assertEqual(provider["ratingCount"], 1)
        self.assertEqual(provider["ratingAvg"], 4.0)
        self.assertNotIn("rating", self.store.get(REVIEWS_COLLECTION, "review-1"))

    def test_review_requires_completed_booking(self):
        fixtures.add_booking(self.store, booking_id="booking-2", status="accepted")

        with self.assertRaises(https_fn.HttpsError) as ctx:
            self._post(booking_id="booking-2")

        self.assertEqual(ctx.exception.code, ErrorCode.FAILED_PRECONDITION)
        self.assertEqual(self._provider()["ratingCount"], 0)

    def test_only_customer_can_review(self):
        with self.assertRaises(https_fn.HttpsError) as ctx:
            self._post(uid=fixtures.OTHER_CUSTOMER_UID)

        self.assertEqual(ctx.exception.code, ErrorCode.PERMISSION_DENIED)

    def test_booking_not_found(self):
        with self.assertRaises(https_fn.HttpsError) as ctx:
            self._post(booking_id="missing")

        self.assertEqual(ctx.exception.code, ErrorCode.NOT_FOUND)

    def test_invalid_ratings(self):
        for rating in (0, 6, True, 4.5, None):
            with self.subTest(rating=rating):
                with self.assertRaises(https_fn.HttpsError) as ctx:
                    self._post(rating=rating)
                self.assertEqual(ctx.exception.code, ErrorCode.INVALID_ARGUMENT)
        self.assertEqual(self.store.query(REVIEWS_COLLECTION, []), [])

    def test_comment_too_long(self):
        with self.assertRaises(https_fn.HttpsError) as ctx:
            self._post(comment="x" * 2001)

        self.assertEqual(ctx.exception.code, ErrorCode.INVALID_ARGUMENT)


class FlagReviewTest(unittest.TestCase):

    def setUp(self):
        self.store = fixtures.create_mock_store()
        fixtures.add_review(self.store)

    def test_flag_review(self):
        reviews.flag_review(
            self.store,
            fixtures.PROVIDER_UID,
            FlagReviewRequest(review_id="review-1", reason=" Offensive language "),
        )

        review = self.store.get(REVIEWS_COLLECTION, "review-1")
        self.assertTrue(review["flagged"])
        self.assertEqual(review["flagReason"], "Offensive language")
        self.assertEqual(review["flaggedBy"], fixtures.PROVIDER_UID)
        self.assertIsInstance(review["flaggedAt"], datetime)
        self.assertEqual(review["rating"], 4)

    def test_blank_reason(self):
        with self.assertRaises(https_fn.HttpsError) as ctx:
            reviews.flag_review(
                self.store,
                fixtures.PROVIDER_UID,
                FlagReviewRequest(review_id="review-1", reason="   "),
            )

        self.assertEqual(ctx.exception.code, ErrorCode.INVALID_ARGUMENT)
        self.assertFalse(self.store.get(REVIEWS_COLLECTION, "review-1")["flagged"])

    def test_missing_review(self):
        with self.assertRaises(https_fn.HttpsError) as ctx:
            reviews.flag_review(
                self.store,
                fixtures.PROVIDER_UID,
                FlagReviewRequest(review_id="missing", reason="Spam"),
            )

        self.assertEqual(ctx.exception.code, ErrorCode.NOT_FOUND)
        self.assertIsNone(self.store.get(REVIEWS_COLLECTION, "missing"))


if __name__ == "__main__":
    unittest.main()
