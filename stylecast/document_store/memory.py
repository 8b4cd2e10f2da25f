"""In-memory document store with push subscriptions, intended for development and tests."""

import copy
import itertools
import threading
from typing import Any, Dict, List, Optional, Tuple

from stylecast.document_store.base import (
    Document,
    DocumentStore,
    ErrorCallback,
    SnapshotCallback,
    sort_documents,
)

from utils.logging_utils import get_tagged_logger

logger = get_tagged_logger(__name__, tag="document_store/in_memory_document_store")


class _Listener:
    """One subscriber; drops snapshots older than the last one it delivered.

    The lock is re-entrant so a callback may write to the store it listens on.
    """

    def __init__(self, on_snapshot: SnapshotCallback, order_by: str, descending: bool) -> None:
        self.on_snapshot = on_snapshot
        self.order_by = order_by
        self.descending = descending
        self.active = True
        self._last_version = -1
        self._lock = threading.RLock()

    def deliver(self, version: int, docs: List[Document]) -> None:
        with self._lock:
            if not self.active or version <= self._last_version:
                return
            self._last_version = version
            self.on_snapshot(sort_documents(docs, self.order_by, self.descending))


class InMemorySubscription:
    """Unsubscribe handle returned by InMemoryDocumentStore.subscribe."""

    def __init__(self, store: "InMemoryDocumentStore", user_id: str, listener_id: int) -> None:
        self._store = store
        self._user_id = user_id
        self._listener_id = listener_id

    def unsubscribe(self) -> None:
        self._store._remove_listener(self._user_id, self._listener_id)


class InMemoryDocumentStore(DocumentStore):
    """Thread-safe in-memory per-user collections (dev/test).

    Snapshots are built under the store lock and delivered after it is
    released, so listeners may call back into the store.
    """

    def __init__(self) -> None:
        logger.debug("Initializing InMemoryDocumentStore")
        self._collections: Dict[str, Dict[str, Dict[str, Any]]] = {}
        self._versions: Dict[str, int] = {}
        self._listeners: Dict[str, Dict[int, _Listener]] = {}
        self._ids = itertools.count(1)
        self._lock = threading.Lock()

    def _snapshot_locked(self, user_id: str) -> Tuple[int, List[Document]]:
        """Copy the user's documents and bump their version; caller holds the lock."""
        version = self._versions.get(user_id, 0) + 1
        self._versions[user_id] = version
        docs = [
            Document(id=doc_id, data=copy.deepcopy(data))
            for doc_id, data in self._collections.get(user_id, {}).items()
        ]
        return version, docs

    def _notify(self, user_id: str) -> None:
        with self._lock:
            listeners = list(self._listeners.get(user_id, {}).values())
            if not listeners:
                return
            version, docs = self._snapshot_locked(user_id)
        for listener in listeners:
            listener.deliver(version, docs)

    def _remove_listener(self, user_id: str, listener_id: int) -> None:
        with self._lock:
            listener = self._listeners.get(user_id, {}).pop(listener_id, None)
            if listener is not None:
                listener.active = False
                logger.debug("Removed liked-items listener", extra={"user_id": user_id})

    def set_document(self, user_id: str, doc_id: str, fields: Dict[str, Any]) -> None:
        """Create or overwrite a document and push a snapshot."""
        with self._lock:
            self._collections.setdefault(user_id, {})[doc_id] = copy.deepcopy(dict(fields))
        self._notify(user_id)

    def delete_document(self, user_id: str, doc_id: str) -> None:
        """Remove a document if it exists; absent ids are a no-op without a push."""
        with self._lock:
            removed = self._collections.get(user_id, {}).pop(doc_id, None)
        if removed is not None:
            self._notify(user_id)

    def get_document(self, user_id: str, doc_id: str) -> Optional[Dict[str, Any]]:
        """Return a copy of a document's fields, or None."""
        with self._lock:
            data = self._collections.get(user_id, {}).get(doc_id)
            return copy.deepcopy(data) if data is not None else None

    def list_documents(self, user_id: str, *, order_by: str, descending: bool = True) -> List[Document]:
        """Return the user's documents ordered by `order_by`."""
        with self._lock:
            docs = [
                Document(id=doc_id, data=copy.deepcopy(data))
                for doc_id, data in self._collections.get(user_id, {}).items()
            ]
        return sort_documents(docs, order_by, descending)

    def subscribe(
        self,
        user_id: str,
        on_snapshot: SnapshotCallback,
        on_error: ErrorCallback,
        *,
        order_by: str,
        descending: bool = True,
    ) -> InMemorySubscription:
        """Register a listener and deliver the current snapshot immediately."""
        listener = _Listener(on_snapshot, order_by, descending)
        with self._lock:
            listener_id = next(self._ids)
            self._listeners.setdefault(user_id, {})[listener_id] = listener
            version, docs = self._snapshot_locked(user_id)
        logger.debug("Added liked-items listener", extra={"user_id": user_id})
        listener.deliver(version, docs)
        return InMemorySubscription(self, user_id, listener_id)

    def clear(self) -> None:
        """Drop all documents and listeners."""
        with self._lock:
            for listeners in self._listeners.values():
                for listener in listeners.values():
                    listener.active = False
            self._collections.clear()
            self._versions.clear()
            self._listeners.clear()
