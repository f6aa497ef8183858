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
"""Posting, updating and flagging reviews of completed bookings."""

from firebase_functions import https_fn
from google.api_core import exceptions
from google.cloud.firestore_v1 import SERVER_TIMESTAMP

from backend.store import DocumentStore
from bookings.bookings import load_booking, load_provider
from reviews import rating as rating_utils
from shared.api import FlagReviewRequest, PostReviewRequest, PostReviewResult
from shared.constants import (
    MAX_COMMENT_LENGTH,
    MAX_FLAG_REASON_LENGTH,
    MAX_RATING,
    MIN_RATING,
)
from shared.firebase_constants import (
    BOOKINGS_COLLECTION,
    PROVIDERS_COLLECTION,
    REVIEWS_COLLECTION,
)
from shared.types import BookingStatus, Review


def _validate_review_request(request: PostReviewRequest) -> str:
    """Checks the rating and returns the trimmed comment."""
    rating = request.rating
    if (
        not request.booking_id
        or isinstance(rating, bool)
        or not isinstance(rating, int)
        or not MIN_RATING <= rating <= MAX_RATING
    ):
        raise https_fn.HttpsError(
            https_fn.FunctionsErrorCode.INVALID_ARGUMENT, "Invalid review data"
        )
    comment = (request.comment or "").strip()
    if len(comment) > MAX_COMMENT_LENGTH:
        raise https_fn.HttpsError(
            https_fn.FunctionsErrorCode.INVALID_ARGUMENT,
            "Comment exceeds max length.",
        )
    return comment


def post_review(
    store: DocumentStore, uid: str, request: PostReviewRequest
) -> PostReviewResult:
    """
    Creates the caller's review of a completed booking, or updates it in place.

    The booking checks, the duplicate/ownership checks, the review write and
    the provider rating recompute all run in one transaction, so concurrent
    reviews of the same provider cannot lose updates.

    Args:
        store: The document store.
        uid: The authenticated caller, who must be the booking's customer.
        request: The review payload. When `is_update` is set, `review_id`
            names the review to change; without it the caller's existing
            review for the booking is used.

    Returns:
        The id of the created or updated review.
    """
    comment = _validate_review_request(request)

    def _post_review_transaction(transaction):
        booking_doc = transaction.get(BOOKINGS_COLLECTION, request.booking_id)
        if booking_doc is None:
            raise https_fn.HttpsError(
                https_fn.FunctionsErrorCode.NOT_FOUND, "Booking not found"
            )
        booking = load_booking(booking_doc)
        if booking.customer_id != uid:
            raise https_fn.HttpsError(
                https_fn.FunctionsErrorCode.PERMISSION_DENIED,
                "Not authorized to review this booking",
            )
        if booking.status != BookingStatus.COMPLETED:
            raise https_fn.HttpsError(
                https_fn.FunctionsErrorCode.FAILED_PRECONDITION,
                "Can only review completed bookings",
            )

        existing = transaction.query(
            REVIEWS_COLLECTION,
            [("bookingId", "==", request.booking_id), ("customerId", "==", uid)],
        )

        review_id = None
        old_rating = None
        if not request.is_update:
            if existing:
                raise https_fn.HttpsError(
                    https_fn.FunctionsErrorCode.ALREADY_EXISTS,
                    "Review already exists for this booking",
                )
        else:
            if request.review_id:
                review_id = request.review_id
                review_doc = transaction.get(REVIEWS_COLLECTION, review_id)
            elif existing:
                review_id, review_doc = existing[0]
            else:
                review_doc = None
            if review_doc is None:
                raise https_fn.HttpsError(
                    https_fn.FunctionsErrorCode.NOT_FOUND, "Review not found"
                )
            if review_doc.get("customerId") != uid:
                raise https_fn.HttpsError(
                    https_fn.FunctionsErrorCode.PERMISSION_DENIED,
                    "Not authorized to update this review",
                )
            if review_doc.get("bookingId") != request.booking_id:
                raise https_fn.HttpsError(
                    https_fn.FunctionsErrorCode.INVALID_ARGUMENT,
                    "Review does not belong to this booking",
                )
            old_rating = review_doc.get("rating")
            if isinstance(old_rating, bool) or not isinstance(old_rating, int):
                raise https_fn.HttpsError(
                    https_fn.FunctionsErrorCode.FAILED_PRECONDITION,
                    "Existing review has no valid rating",
                )

        # Firestore transactions require every read before the first write.
        provider_doc = transaction.get(PROVIDERS_COLLECTION, booking.provider_id)
        if provider_doc is None:
            raise https_fn.HttpsError(
                https_fn.FunctionsErrorCode.NOT_FOUND, "Provider not found"
            )
        provider = load_provider(provider_doc)
        aggregate = rating_utils.recompute_rating(
            avg=provider.rating_avg,
            count=provider.rating_count,
            new_rating=request.rating,
            old_rating=old_rating,
            total=provider.rating_total,
        )

        if review_id:
            transaction.update(
                REVIEWS_COLLECTION,
                review_id,
                {
                    "rating": request.rating,
                    "comment": comment,
                    "updatedAt": SERVER_TIMESTAMP,
                },
            )
        else:
            review = Review(
                booking_id=request.booking_id,
                customer_id=uid,
                provider_id=booking.provider_id,
                rating=request.rating,
                comment=comment,
            )
            review_data = review.as_dict()
            review_data["createdAt"] = SERVER_TIMESTAMP
            review_id = transaction.create(
                REVIEWS_COLLECTION, review_data, id_field="reviewId"
            )

        transaction.update(
            PROVIDERS_COLLECTION, booking.provider_id, aggregate.as_provider_update()
        )
        return review_id

    review_id = store.run_transaction(_post_review_transaction)
    return PostReviewResult(review_id=review_id, success=True)


def flag_review(store: DocumentStore, uid: str, request: FlagReviewRequest) -> None:
    """
    Flags a review for moderation with a reason.

    Any authenticated user may flag any review; the flagger is recorded.

    Raises:
        https_fn.HttpsError: INVALID_ARGUMENT without a review id or reason,
            NOT_FOUND when the review does not exist.
    """
    reason = (request.reason or "").strip()
    if not request.review_id or not reason:
        raise https_fn.HttpsError(
            https_fn.FunctionsErrorCode.INVALID_ARGUMENT,
            "Review ID and reason are required",
        )
    if len(reason) > MAX_FLAG_REASON_LENGTH:
        raise https_fn.HttpsError(
            https_fn.FunctionsErrorCode.INVALID_ARGUMENT,
            "Flag reason exceeds max length.",
        )

    try:
        store.update(
            REVIEWS_COLLECTION,
            request.review_id,
            {
                "flagged": True,
                "flagReason": reason,
                "flaggedBy": uid,
                "flaggedAt": SERVER_TIMESTAMP,
            },
        )
    except exceptions.NotFound:
        raise https_fn.HttpsError(
            https_fn.FunctionsErrorCode.NOT_FOUND, "Review not found"
        )
