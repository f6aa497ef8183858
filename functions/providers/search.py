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
"""Proximity search over active, verified providers."""

from typing import List, Optional

from backend.store import DocumentStore, Filter
from providers import geo
from shared.api import NearbyProvidersRequest
from shared.constants import MAX_NEARBY_RESULTS
from shared.firebase_constants import PROVIDERS_COLLECTION
from shared.json_utils import to_jsonable
from shared.types import PROVIDER_ACTIVE_STATUS


def validate_request(request: NearbyProvidersRequest) -> None:
    """Raises ValueError for coordinates or radius outside their valid range."""
    if not -90 <= request.lat <= 90:
        raise ValueError("Latitude must be between -90 and 90")
    if not -180 <= request.lng <= 180:
        raise ValueError("Longitude must be between -180 and 180")
    if request.radius_km <= 0:
        raise ValueError("radiusKm must be greater than 0")


def _matches_keywords(provider: dict, keywords: Optional[str]) -> bool:
    terms = (keywords or "").lower().split()
    if not terms:
        return True
    parts = [provider.get("name"), provider.get("description")]
    for service in provider.get("services") or []:
        if isinstance(service, dict):
            parts.append(service.get("name"))
    haystack = " ".join(p for p in parts if isinstance(p, str)).lower()
    return all(term in haystack for term in terms)


def find_nearby_providers(
    store: DocumentStore, request: NearbyProvidersRequest
) -> List[dict]:
    """
    Returns up to MAX_NEARBY_RESULTS providers within `radius_km` of the query point.

    The store query selects active, verified providers inside a bounding box;
    each candidate is then checked with the haversine distance. Results are
    sorted by distance, then by rating average (highest first), and each is
    annotated with its `distance` in km.
    """
    box = geo.bounding_box(request.lat, request.lng, request.radius_km)
    filters: List[Filter] = [
        ("status", "==", PROVIDER_ACTIVE_STATUS),
        ("verified", "==", True),
        ("lat", ">=", box.min_lat),
        ("lat", "<=", box.max_lat),
    ]
    if not box.crosses_antimeridian:
        filters.append(("lng", ">=", box.min_lng))
        filters.append(("lng", "<=", box.max_lng))
    if request.category_id:
        filters.append(("categoryId", "==", request.category_id))

    providers = []
    for provider_id, data in store.query(PROVIDERS_COLLECTION, filters):
        distance = geo.haversine_km(request.lat, request.lng, data["lat"], data["lng"])
        if distance > request.radius_km:
            continue
        if not _matches_keywords(data, request.keywords):
            continue
        providers.append({"id": provider_id, **to_jsonable(data), "distance": distance})

    providers.sort(key=lambda p: (p["distance"], -(p.get("ratingAvg") or 0)))
    return providers[:MAX_NEARBY_RESULTS]
