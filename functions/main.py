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

# Cloud functions for the marketplace backend - bookings, reviews, provider
# search and admin operations.
#
# This file containing Python cloud functions must be named main.py.
# See https://cloud.google.com/run/docs/write-functions#python for more info.

# Standard library imports
import json
from dataclasses import asdict
from typing import Type, TypeVar

# Third-party library imports
from dacite import Config, DaciteError, from_dict
from firebase_admin import initialize_app
from firebase_functions import https_fn, logger, options

# Local application imports
from admin import admin
from backend.config import get_settings
from backend.dependencies import get_messenger, get_store
from bookings import bookings
from providers import search
from reviews import reviews
from shared.api import (
    NEARBY_REQUEST_CONFIG,
    REQUEST_CONFIG,
    AdminApproveProviderRequest,
    CreateBookingRequest,
    FlagReviewRequest,
    NearbyProvidersRequest,
    PostReviewRequest,
    SendAnnouncementRequest,
    SuccessResult,
    UpdateBookingStatusRequest,
)
from shared.json_utils import convert_keys

T = TypeVar("T")

initialize_app()


def _auth_uid(req: https_fn.CallableRequest) -> str:
    """Returns the caller's uid or raises UNAUTHENTICATED."""
    if req.auth is None or not req.auth.uid:
        raise https_fn.HttpsError(
            https_fn.FunctionsErrorCode.UNAUTHENTICATED,
            "User must be authenticated",
        )
    return req.auth.uid


def _parse_request(data_class: Type[T], data, config: Config = REQUEST_CONFIG) -> T:
    """Loads a camelCase payload into a request dataclass or raises INVALID_ARGUMENT."""
    if not isinstance(data, dict):
        raise https_fn.HttpsError(
            https_fn.FunctionsErrorCode.INVALID_ARGUMENT,
            "Request data must be an object.",
        )
    try:
        return from_dict(
            data_class=data_class,
            data=convert_keys(data, "camel_to_snake"),
            config=config,
        )
    except (DaciteError, ValueError, TypeError) as e:
        raise https_fn.HttpsError(
            https_fn.FunctionsErrorCode.INVALID_ARGUMENT, f"Invalid request: {e}"
        )


def _to_response(result) -> dict:
    return convert_keys(asdict(result), "snake_to_camel")


def _internal_error(message: str, e: Exception) -> https_fn.HttpsError:
    logger.error(f"{message}: {e}")
    return https_fn.HttpsError(https_fn.FunctionsErrorCode.INTERNAL, message)


@https_fn.on_call(memory=options.MemoryOption.MB_256)
def create_booking(req: https_fn.CallableRequest) -> dict:
    """
    Books a provider's service for the authenticated customer.

    Args:
        req (https_fn.CallableRequest): The request, containing providerId,
            serviceId, scheduledAt (ISO-8601) and address.

    Returns:
        A dictionary representation of the CreateBookingResult object.
    """
    uid = _auth_uid(req)
    request = _parse_request(CreateBookingRequest, req.data)
    # The address is stored as sent, without key conversion.
    request.address = req.data.get("address")
    try:
        result = bookings.create_booking(get_store(), get_messenger(), uid, request)
    except https_fn.HttpsError:
        raise
    except Exception as e:
        raise _internal_error("Failed to create booking", e)
    return _to_response(result)


@https_fn.on_call(memory=options.MemoryOption.MB_256)
def update_booking_status(req: https_fn.CallableRequest) -> dict:
    """
    Accepts, rejects, completes or cancels a booking.

    Args:
        req (https_fn.CallableRequest): The request, containing bookingId and
            action.

    Returns:
        A dictionary representation of the UpdateBookingStatusResult object.
    """
    uid = _auth_uid(req)
    request = _parse_request(UpdateBookingStatusRequest, req.data)
    try:
        result = bookings.update_booking_status(
            get_store(), get_messenger(), uid, request
        )
    except https_fn.HttpsError:
        raise
    except Exception as e:
        raise _internal_error("Failed to update booking status", e)
    return _to_response(result)


@https_fn.on_call(memory=options.MemoryOption.MB_256)
def post_review(req: https_fn.CallableRequest) -> dict:
    """
    Posts a review of a completed booking, or updates the caller's review.

    Args:
        req (https_fn.CallableRequest): The request, containing bookingId,
            rating, comment and optionally isUpdate and reviewId.

    Returns:
        A dictionary representation of the PostReviewResult object.
    """
    uid = _auth_uid(req)
    request = _parse_request(PostReviewRequest, req.data)
    try:
        result = reviews.post_review(get_store(), uid, request)
    except https_fn.HttpsError:
        raise
    except Exception as e:
        raise _internal_error("Failed to post review", e)
    return _to_response(result)


@https_fn.on_call(memory=options.MemoryOption.MB_256)
def flag_review(req: https_fn.CallableRequest) -> dict:
    uid = _auth_uid(req)
    request = _parse_request(FlagReviewRequest, req.data)
    try:
        reviews.flag_review(get_store(), uid, request)
    except https_fn.HttpsError:
        raise
    except Exception as e:
        raise _internal_error("Failed to flag review", e)
    return _to_response(SuccessResult())


def _response(payload: str, status: int) -> https_fn.Response:
    settings = get_settings()
    return https_fn.Response(
        payload,
        status=status,
        mimetype="application/json",
        headers=_cors_headers(settings.cors_allow_origin),
    )


def _json_response(body: dict, status: int) -> https_fn.Response:
    return _response(json.dumps(body), status)


def _cors_headers(origin: str) -> dict:
    return {
        "Access-Control-Allow-Origin": origin,
        "Access-Control-Allow-Methods": "GET, POST",
        "Access-Control-Allow-Headers": "Content-Type",
    }


@https_fn.on_request(memory=options.MemoryOption.MB_256)
def fetch_providers_nearby(req: https_fn.Request) -> https_fn.Response:
    """
    Returns active, verified providers near a point, closest first.

    The JSON body holds lat, lng, and optionally radiusKm (default 10),
    categoryId and keywords. Responds with {"providers": [...]} or
    {"error": ...}.
    """
    if req.method == "OPTIONS":
        return https_fn.Response(
            "", status=204, headers=_cors_headers(get_settings().cors_allow_origin)
        )

    body = req.get_json(silent=True)
    if not isinstance(body, dict) or body.get("lat") is None or body.get("lng") is None:
        return _json_response({"error": "Latitude and longitude are required"}, 400)
    try:
        request = from_dict(
            data_class=NearbyProvidersRequest,
            data=convert_keys(body, "camel_to_snake"),
            config=NEARBY_REQUEST_CONFIG,
        )
        search.validate_request(request)
    except (DaciteError, ValueError, TypeError) as e:
        return _json_response({"error": f"Invalid request: {e}"}, 400)

    try:
        providers = search.find_nearby_providers(get_store(), request)
        payload = json.dumps({"providers": providers})
    except Exception as e:
        logger.error(f"Failed to fetch providers: {e}")
        return _json_response({"error": "Failed to fetch providers"}, 500)
    return _response(payload, 200)


@https_fn.on_call(memory=options.MemoryOption.MB_256)
def admin_approve_provider(req: https_fn.CallableRequest) -> dict:
    """
    Approves or rejects a provider's verification (admin only).

    Args:
        req (https_fn.CallableRequest): The request, containing providerId,
            approve and optional notes.

    Returns:
        A dictionary representation of the SuccessResult object.
    """
    uid = _auth_uid(req)
    request = _parse_request(AdminApproveProviderRequest, req.data)
    try:
        admin.approve_provider(get_store(), get_messenger(), uid, request)
    except https_fn.HttpsError:
        raise
    except Exception as e:
        raise _internal_error("Failed to update provider status", e)
    return _to_response(SuccessResult())


@https_fn.on_call(memory=options.MemoryOption.MB_512)
def send_announcement(req: https_fn.CallableRequest) -> dict:
    """
    Stores an announcement and pushes it to its audience (admin only).

    Args:
        req (https_fn.CallableRequest): The request, containing title, message,
            audience (all, customers, providers or admins) and optionally
            priority (normal or urgent) and announcementType.

    Returns:
        A dictionary representation of the SuccessResult object.
    """
    uid = _auth_uid(req)
    request = _parse_request(SendAnnouncementRequest, req.data)
    try:
        push_result = admin.send_announcement(get_store(), get_messenger(), uid, request)
    except https_fn.HttpsError:
        raise
    except Exception as e:
        raise _internal_error("Failed to send announcement", e)
    if push_result.error:
        logger.warn(f"Announcement stored but push failed: {push_result.error}")
    return _to_response(SuccessResult())
