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
"""Best-effort push notifications and device token hygiene.

Nothing in this module raises: delivery and cleanup errors are logged and
reported on the returned PushResult, so a failed push never fails the booking,
review or admin operation that triggered it.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Iterable, List, Optional

from firebase_functions import logger

from backend.config import get_settings
from backend.messaging import Messenger, PushMessage
from backend.store import DocumentStore, Filter
from shared.firebase_constants import USERS_COLLECTION
from shared.types import Audience, PushPriority, Role

DEVICE_TOKENS_FIELD = "deviceTokens"

AUDIENCE_ROLES = {
    Audience.CUSTOMERS: Role.CUSTOMER,
    Audience.PROVIDERS: Role.PROVIDER,
    Audience.ADMINS: Role.ADMIN,
}


@dataclass
class PushResult:
    sent: int = 0
    failed: int = 0
    removed_tokens: List[str] = field(default_factory=list)
    error: Optional[str] = None


def valid_tokens(tokens: Iterable[Any]) -> List[str]:
    """Drops null, non-string and blank tokens and de-duplicates in order."""
    seen = set()
    result = []
    for token in tokens or []:
        if not isinstance(token, str) or not token.strip() or token in seen:
            continue
        seen.add(token)
        result.append(token)
    return result


def send_push(
    store: DocumentStore,
    messenger: Messenger,
    tokens: Iterable[Any],
    title: str,
    body: str,
    data: Optional[dict] = None,
    priority: PushPriority = PushPriority.NORMAL,
) -> PushResult:
    """
    Sends a push to the given device tokens and prunes the ones that failed.

    Tokens are sent in multicast batches no larger than the gateway accepts.
    Every token the gateway reports as failed is removed from all user
    profiles that list it.
    """
    result = PushResult()
    tokens = valid_tokens(tokens)
    if not tokens:
        logger.info("No valid tokens for push notification")
        return result

    payload = {k: "" if v is None else str(v) for k, v in (data or {}).items()}
    payload["timestamp"] = datetime.now(timezone.utc).isoformat()

    batch_size = get_settings().max_multicast_tokens
    failed_tokens = []
    try:
        for start in range(0, len(tokens), batch_size):
            batch = PushMessage(
                tokens=tokens[start : start + batch_size],
                title=title,
                body=body,
                data=payload,
                priority=priority,
            )
            response = messenger.send_multicast(batch)
            result.sent += response.success_count
            result.failed += response.failure_count
            for token, error in response.failures.items():
                logger.warn(f"Push delivery failed for token {token}: {error}")
                failed_tokens.append(token)
    except Exception as e:
        logger.error(f"Failed to send push notification: {e}")
        result.error = str(e)

    if failed_tokens:
        result.removed_tokens = remove_invalid_tokens(store, failed_tokens)
    return result


def remove_invalid_tokens(store: DocumentStore, tokens: List[str]) -> List[str]:
    """Removes tokens from every user profile. Returns the tokens removed."""
    try:
        updated = store.remove_array_values(USERS_COLLECTION, DEVICE_TOKENS_FIELD, tokens)
        logger.info(f"Removed {len(tokens)} invalid tokens from {updated} profiles")
        return list(tokens)
    except Exception as e:
        logger.error(f"Error removing invalid tokens: {e}")
        return []


def notify_user(
    store: DocumentStore,
    messenger: Messenger,
    uid: Optional[str],
    title: str,
    body: str,
    data: Optional[dict] = None,
    priority: PushPriority = PushPriority.NORMAL,
) -> PushResult:
    """Sends a push to every device registered on a user's profile."""
    if not uid:
        return PushResult()
    try:
        profile = store.get(USERS_COLLECTION, uid)
    except Exception as e:
        logger.error(f"Failed to load profile {uid} for notification: {e}")
        return PushResult(error=str(e))
    if not profile:
        logger.info(f"No profile {uid} to notify")
        return PushResult()
    return send_push(
        store,
        messenger,
        profile.get(DEVICE_TOKENS_FIELD) or [],
        title,
        body,
        data,
        priority,
    )


def notify_audience(
    store: DocumentStore,
    messenger: Messenger,
    audience: Audience,
    title: str,
    body: str,
    data: Optional[dict] = None,
    priority: PushPriority = PushPriority.NORMAL,
) -> PushResult:
    """Sends a single fan-out push to all devices of an audience segment."""
    filters: List[Filter] = []
    role = AUDIENCE_ROLES.get(audience)
    if role:
        filters.append(("role", "==", str(role)))

    try:
        profiles = store.query(USERS_COLLECTION, filters)
    except Exception as e:
        logger.error(f"Failed to resolve audience {audience}: {e}")
        return PushResult(error=str(e))

    tokens = []
    for _, profile in profiles:
        tokens.extend(profile.get(DEVICE_TOKENS_FIELD) or [])
    return send_push(store, messenger, tokens, title, body, data, priority)
