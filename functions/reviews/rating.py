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
"""Running provider rating aggregate."""

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional


@dataclass
class RatingAggregate:
    avg: float
    count: int
    total: float

    def as_provider_update(self) -> dict:
        return {
            "ratingAvg": self.avg,
            "ratingCount": self.count,
            "ratingTotal": self.total,
        }


def round_rating(value: float) -> float:
    """Rounds to 2 decimals, halves away from zero (4.125 -> 4.13)."""
    return float(Decimal(str(value)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))


def recompute_rating(
    avg: float,
    count: int,
    new_rating: int,
    old_rating: Optional[int] = None,
    total: Optional[float] = None,
) -> RatingAggregate:
    """
    Folds a new or changed rating into a provider's running average.

    Args:
        avg: Current rating average (possibly rounded).
        count: Number of ratings folded into `avg`.
        new_rating: The rating being posted.
        old_rating: The previous rating when an existing review is updated.
        total: Exact sum of folded ratings, when the provider tracks it.

    Returns:
        The new aggregate; `avg` is rounded to two decimals.
    """
    avg = avg or 0
    count = count or 0
    if total is None:
        total = avg * count

    if old_rating is None:
        total = total + new_rating
        count = count + 1
    elif count > 0:
        total = total - old_rating + new_rating
    else:
        # Updating with nothing folded yet: restart from the new rating.
        total = new_rating
        count = 1

    return RatingAggregate(avg=round_rating(total / count), count=count, total=total)
