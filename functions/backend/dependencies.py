"""
Dependency wiring for the marketplace functions.
"""

from __future__ import annotations

from firebase_admin import firestore

from backend.config import get_settings
from backend.messaging import FcmMessenger, InMemoryMessenger, Messenger
from backend.store import DocumentStore, FirestoreStore, InMemoryStore

_store: DocumentStore | None = None
_messenger: Messenger | None = None


def get_store() -> DocumentStore:
    """
    Return a singleton document store shared by all invocations of an instance.
    """
    global _store
    if _store:
        return _store

    settings = get_settings()
    if settings.use_in_memory_backends:
        _store = InMemoryStore()
    else:
        _store = FirestoreStore(firestore.client())
    return _store


def get_messenger() -> Messenger:
    global _messenger
    if _messenger:
        return _messenger

    settings = get_settings()
    if settings.use_in_memory_backends:
        _messenger = InMemoryMessenger()
    else:
        _messenger = FcmMessenger(android_channel_id=settings.android_channel_id)
    return _messenger


def reset() -> None:
    """Drop the cached clients so the next call re-reads the settings."""
    global _store, _messenger
    _store = None
    _messenger = None
