"""
Document store abstraction for Cloud Firestore and an in-memory test implementation.

Business operations only see `DocumentStore` and `Transaction`, so they can run
against Firestore in production and against `InMemoryStore` in tests and local
development.
"""

from __future__ import annotations

import copy
import logging
import threading
import uuid
from collections import defaultdict
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Optional, Protocol, Sequence, TypeVar

from firebase_admin import firestore
from google.api_core import exceptions
from google.cloud.firestore_v1 import SERVER_TIMESTAMP, ArrayRemove
from google.cloud.firestore_v1.base_query import FieldFilter

logger = logging.getLogger(__name__)

T = TypeVar("T")

# (field path, operator, value), using Firestore operator names.
Filter = tuple[str, str, Any]

# Firestore allows at most 500 writes in a single batch.
MAX_BATCH_WRITES = 500


class Transaction(Protocol):
    """Reads and buffered writes that commit atomically.

    All reads must happen before the first write, as in Firestore.
    """

    def get(self, collection: str, doc_id: str) -> Optional[dict]:
        ...

    def query(
        self, collection: str, filters: Sequence[Filter]
    ) -> list[tuple[str, dict]]:
        ...

    def create(
        self, collection: str, data: dict, id_field: Optional[str] = None
    ) -> str:
        """Creates a document with a generated id, optionally copied into `id_field`."""
        ...

    def update(self, collection: str, doc_id: str, data: dict) -> None:
        ...


class DocumentStore(Protocol):
    """Interface for document database access."""

    def run_transaction(self, fn: Callable[[Transaction], T]) -> T:
        ...

    def get(self, collection: str, doc_id: str) -> Optional[dict]:
        ...

    def query(
        self, collection: str, filters: Sequence[Filter]
    ) -> list[tuple[str, dict]]:
        ...

    def add(self, collection: str, data: dict) -> str:
        ...

    def set(self, collection: str, doc_id: str, data: dict) -> None:
        ...

    def update(self, collection: str, doc_id: str, data: dict) -> None:
        """Updates an existing document; raises `exceptions.NotFound` otherwise."""
        ...

    def remove_array_values(
        self, collection: str, field: str, values: Sequence[Any]
    ) -> int:
        """Removes `values` from `field` on every document containing them.

        Uses batched writes without transaction semantics and returns the
        number of document updates written.
        """
        ...


class FirestoreTransaction:
    def __init__(self, db, transaction):
        self._db = db
        self._transaction = transaction

    def get(self, collection: str, doc_id: str) -> Optional[dict]:
        snapshot = (
            self._db.collection(collection)
            .document(doc_id)
            .get(transaction=self._transaction)
        )
        return snapshot.to_dict() if snapshot.exists else None

    def query(
        self, collection: str, filters: Sequence[Filter]
    ) -> list[tuple[str, dict]]:
        query = _build_query(self._db, collection, filters)
        return [
            (snapshot.id, snapshot.to_dict())
            for snapshot in query.get(transaction=self._transaction)
        ]

    def create(
        self, collection: str, data: dict, id_field: Optional[str] = None
    ) -> str:
        doc_ref = self._db.collection(collection).document()
        if id_field:
            data = {**data, id_field: doc_ref.id}
        self._transaction.set(doc_ref, data)
        return doc_ref.id

    def update(self, collection: str, doc_id: str, data: dict) -> None:
        doc_ref = self._db.collection(collection).document(doc_id)
        self._transaction.update(doc_ref, data)


class FirestoreStore:
    """DocumentStore backed by a Firestore client."""

    def __init__(self, db):
        self._db = db

    def run_transaction(self, fn: Callable[[Transaction], T]) -> T:
        @firestore.transactional
        def _run_in_transaction(transaction):
            return fn(FirestoreTransaction(self._db, transaction))

        return _run_in_transaction(self._db.transaction())

    def get(self, collection: str, doc_id: str) -> Optional[dict]:
        snapshot = self._db.collection(collection).document(doc_id).get()
        return snapshot.to_dict() if snapshot.exists else None

    def query(
        self, collection: str, filters: Sequence[Filter]
    ) -> list[tuple[str, dict]]:
        query = _build_query(self._db, collection, filters)
        return [(snapshot.id, snapshot.to_dict()) for snapshot in query.stream()]

    def add(self, collection: str, data: dict) -> str:
        _, doc_ref = self._db.collection(collection).add(data)
        return doc_ref.id

    def set(self, collection: str, doc_id: str, data: dict) -> None:
        self._db.collection(collection).document(doc_id).set(data)

    def update(self, collection: str, doc_id: str, data: dict) -> None:
        self._db.collection(collection).document(doc_id).update(data)

    def remove_array_values(
        self, collection: str, field: str, values: Sequence[Any]
    ) -> int:
        batch = self._db.batch()
        pending = 0
        written = 0
        for value in values:
            query = self._db.collection(collection).where(
                filter=FieldFilter(field, "array_contains", value)
            )
            for snapshot in query.stream():
                batch.update(snapshot.reference, {field: ArrayRemove([value])})
                pending += 1
                if pending == MAX_BATCH_WRITES:
                    batch.commit()
                    written += pending
                    batch = self._db.batch()
                    pending = 0
        if pending:
            batch.commit()
            written += pending
        return written


def _build_query(db, collection: str, filters: Sequence[Filter]):
    query = db.collection(collection)
    for field, op, value in filters:
        query = query.where(filter=FieldFilter(field, op, value))
    return query


def _resolve_sentinels(value: Any, now: datetime) -> Any:
    """Copies a document value, replacing SERVER_TIMESTAMP with `now`."""
    if value is SERVER_TIMESTAMP:
        return now
    if isinstance(value, dict):
        return {k: _resolve_sentinels(v, now) for k, v in value.items()}
    if isinstance(value, list):
        return [_resolve_sentinels(v, now) for v in value]
    return value


def _copy_document(doc: dict) -> dict:
    return copy.deepcopy(doc)


def _matches(doc: dict, filters: Sequence[Filter]) -> bool:
    for field, op, expected in filters:
        if field not in doc:
            return False
        actual = doc[field]
        try:
            if op == "==":
                ok = actual == expected
            elif op == "in":
                ok = actual in expected
            elif op == "array_contains":
                ok = isinstance(actual, list) and expected in actual
            elif op == "<":
                ok = actual < expected
            elif op == "<=":
                ok = actual <= expected
            elif op == ">":
                ok = actual > expected
            elif op == ">=":
                ok = actual >= expected
            else:
                raise ValueError(f"Unsupported query operator: {op}")
        except TypeError:
            # Firestore only compares values of the same type.
            ok = False
        if not ok:
            return False
    return True


class InMemoryTransaction:
    def __init__(self, store: "InMemoryStore"):
        self._store = store
        self._writes: list[tuple[str, str, str, dict]] = []

    def get(self, collection: str, doc_id: str) -> Optional[dict]:
        return self._store.get(collection, doc_id)

    def query(
        self, collection: str, filters: Sequence[Filter]
    ) -> list[tuple[str, dict]]:
        return self._store.query(collection, filters)

    def create(
        self, collection: str, data: dict, id_field: Optional[str] = None
    ) -> str:
        doc_id = uuid.uuid4().hex
        if id_field:
            data = {**data, id_field: doc_id}
        self._writes.append(("set", collection, doc_id, data))
        return doc_id

    def update(self, collection: str, doc_id: str, data: dict) -> None:
        created = any(
            op == "set" and c == collection and i == doc_id
            for op, c, i, _ in self._writes
        )
        if not created and doc_id not in self._store.collections[collection]:
            raise exceptions.NotFound(f"No document to update: {collection}/{doc_id}")
        self._writes.append(("update", collection, doc_id, data))

    def commit(self) -> None:
        for op, collection, doc_id, data in self._writes:
            if op == "set":
                self._store.set(collection, doc_id, data)
            else:
                self._store.update(collection, doc_id, data)


class InMemoryStore:
    """Simple in-memory document store for development and tests.

    Transactions hold a store-wide lock for their whole duration, so concurrent
    transactions are serialized, and their writes are applied only if the
    transaction function returns without raising.
    """

    def __init__(self):
        self.collections: Dict[str, Dict[str, dict]] = defaultdict(dict)
        self._lock = threading.RLock()

    def reset(self) -> None:
        """Clear all stored data (useful in tests)."""
        with self._lock:
            self.collections.clear()

    def run_transaction(self, fn: Callable[[Transaction], T]) -> T:
        with self._lock:
            transaction = InMemoryTransaction(self)
            result = fn(transaction)
            transaction.commit()
            return result

    def get(self, collection: str, doc_id: str) -> Optional[dict]:
        with self._lock:
            doc = self.collections[collection].get(doc_id)
            return _copy_document(doc) if doc is not None else None

    def query(
        self, collection: str, filters: Sequence[Filter]
    ) -> list[tuple[str, dict]]:
        with self._lock:
            return [
                (doc_id, _copy_document(doc))
                for doc_id, doc in self.collections[collection].items()
                if _matches(doc, filters)
            ]

    def add(self, collection: str, data: dict) -> str:
        doc_id = uuid.uuid4().hex
        self.set(collection, doc_id, data)
        return doc_id

    def set(self, collection: str, doc_id: str, data: dict) -> None:
        now = datetime.now(timezone.utc)
        with self._lock:
            self.collections[collection][doc_id] = _resolve_sentinels(data, now)

    def update(self, collection: str, doc_id: str, data: dict) -> None:
        now = datetime.now(timezone.utc)
        with self._lock:
            doc = self.collections[collection].get(doc_id)
            if doc is None:
                raise exceptions.NotFound(
                    f"No document to update: {collection}/{doc_id}"
                )
            doc.update(_resolve_sentinels(data, now))

    def remove_array_values(
        self, collection: str, field: str, values: Sequence[Any]
    ) -> int:
        written = 0
        with self._lock:
            for value in values:
                for doc in self.collections[collection].values():
                    current = doc.get(field)
                    if isinstance(current, list) and value in current:
                        doc[field] = [v for v in current if v != value]
                        written += 1
        logger.debug(f"Removed {len(values)} values from {collection}.{field}")
        return written
