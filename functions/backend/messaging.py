"""
Push messaging gateway abstraction for Firebase Cloud Messaging and in-memory testing.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Protocol

from firebase_admin import messaging

from shared.constants import FCM_CLICK_ACTION
from shared.types import PushPriority

logger = logging.getLogger(__name__)


@dataclass
class PushMessage:
    tokens: List[str]
    title: str
    body: str
    data: Dict[str, str] = field(default_factory=dict)
    priority: PushPriority = PushPriority.NORMAL


@dataclass
class MulticastResult:
    success_count: int
    # Failed token -> error reported by the gateway.
    failures: Dict[str, str] = field(default_factory=dict)

    @property
    def failure_count(self) -> int:
        return len(self.failures)


class Messenger(Protocol):
    """Sends one multicast push request and reports per-token failures."""

    def send_multicast(self, message: PushMessage) -> MulticastResult:
        ...


class FcmMessenger:
    """Messenger backed by firebase_admin.messaging."""

    def __init__(self, android_channel_id: str):
        self.android_channel_id = android_channel_id

    def build_message(self, message: PushMessage) -> messaging.MulticastMessage:
        high = message.priority == PushPriority.HIGH
        return messaging.MulticastMessage(
            tokens=message.tokens,
            notification=messaging.Notification(
                title=message.title, body=message.body
            ),
            data=message.data,
            android=messaging.AndroidConfig(
                priority="high" if high else "normal",
                notification=messaging.AndroidNotification(
                    channel_id=self.android_channel_id,
                    priority="high" if high else "default",
                    sound="default",
                    click_action=FCM_CLICK_ACTION,
                ),
            ),
            apns=messaging.APNSConfig(
                payload=messaging.APNSPayload(
                    aps=messaging.Aps(
                        alert=messaging.ApsAlert(
                            title=message.title, body=message.body
                        ),
                        badge=1,
                        sound="default",
                    )
                )
            ),
        )

    def send_multicast(self, message: PushMessage) -> MulticastResult:
        batch = messaging.send_each_for_multicast(self.build_message(message))
        failures = {}
        for token, response in zip(message.tokens, batch.responses):
            if not response.success:
                failures[token] = str(response.exception)
        logger.info(
            f"FCM multicast sent: {batch.success_count} successful, "
            f"{batch.failure_count} failed"
        )
        return MulticastResult(success_count=batch.success_count, failures=failures)


class InMemoryMessenger:
    """Test double that records messages and fails configured tokens."""

    def __init__(self, failing_tokens=None, error: Exception | None = None):
        self.failing_tokens = set(failing_tokens or [])
        self.error = error
        self.sent: List[PushMessage] = []

    def send_multicast(self, message: PushMessage) -> MulticastResult:
        if self.error:
            raise self.error
        self.sent.append(message)
        failures = {
            token: "Requested entity was not found."
            for token in message.tokens
            if token in self.failing_tokens
        }
        return MulticastResult(
            success_count=len(message.tokens) - len(failures), failures=failures
        )
