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

import math
from dataclasses import dataclass
from typing import Any, Optional

from dacite import Config

from shared.constants import DEFAULT_SEARCH_RADIUS_KM
from shared.types import (
    AnnouncementPriority,
    Audience,
    BookingAction,
    BookingStatus,
)


def _coerce_number(value: Any) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError(f"Expected a number, got {value!r}")
    if not math.isfinite(value):
        raise ValueError(f"Expected a finite number, got {value!r}")
    return float(value)


# Client payloads are camelCase JSON; they are converted to snake_case and
# loaded into these dataclasses with dacite before any business logic runs.
REQUEST_CONFIG = Config(cast=[BookingAction, Audience, AnnouncementPriority])
NEARBY_REQUEST_CONFIG = Config(type_hooks={float: _coerce_number})


@dataclass
class CreateBookingRequest:
    """Request object for booking a provider's service at a given time."""

    provider_id: str
    service_id: str
    scheduled_at: str
    address: Any = None


@dataclass
class CreateBookingResult:
    booking_id: str
    status: BookingStatus


@dataclass
class UpdateBookingStatusRequest:
    booking_id: str
    action: BookingAction


@dataclass
class UpdateBookingStatusResult:
    success: bool
    status: BookingStatus


@dataclass
class PostReviewRequest:
    """Request object for posting a new review or updating an existing one."""

    booking_id: str
    rating: int
    comment: Optional[str] = ""
    is_update: bool = False
    review_id: Optional[str] = None


@dataclass
class PostReviewResult:
    review_id: str
    success: bool = True


@dataclass
class FlagReviewRequest:
    review_id: str
    reason: str


@dataclass
class NearbyProvidersRequest:
    """Body of a provider proximity search."""

    lat: float
    lng: float
    radius_km: float = DEFAULT_SEARCH_RADIUS_KM
    category_id: Optional[str] = None
    keywords: Optional[str] = None


@dataclass
class AdminApproveProviderRequest:
    provider_id: str
    approve: bool
    notes: Optional[str] = None


@dataclass
class SendAnnouncementRequest:
    title: str
    message: str
    audience: Audience = Audience.ALL
    priority: AnnouncementPriority = AnnouncementPriority.NORMAL
    announcement_type: str = "info"


@dataclass
class SuccessResult:
    success: bool = True
