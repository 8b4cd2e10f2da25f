"""Redis-backed document store with pub/sub change notifications.

Layout per user collection:

- `{prefix}users:{user_id}:{collection}:{doc_id}`: JSON document body
- `{prefix}users:{user_id}:{collection}`: set of document ids
- `{prefix}users:{user_id}:{collection}:changes`: pub/sub channel, one message per write

Subscribers reload the full snapshot on every change message, so a missed
or coalesced message never leaves a listener with a partial view.
"""

import json
from typing import Any, Dict, List, Optional

import redis

from stylecast.document_store.base import (
    Document,
    DocumentStore,
    DocumentStoreError,
    ErrorCallback,
    SnapshotCallback,
    sort_documents,
)
from utils.logging_utils import get_tagged_logger

logger = get_tagged_logger(__name__, tag="document_store/redis_document_store")


def _decode(value) -> str:
    """Return `value` as text whether the client decodes responses or not."""
    if isinstance(value, bytes):
        return value.decode("utf-8")
    return str(value)


class RedisSubscription:
    """Unsubscribe handle wrapping redis-py's pub/sub worker thread."""

    def __init__(self, pubsub, thread) -> None:
        self._pubsub = pubsub
        self._thread = thread
        self._stopped = False

    def unsubscribe(self) -> None:
        """Stop the worker; it closes its pub/sub connection on exit."""
        if self._stopped:
            return
        self._stopped = True
        self._thread.stop()


class RedisDocumentStore(DocumentStore):
    """Per-user document collections stored as JSON strings in Redis."""

    def __init__(
        self,
        client,
        *,
        prefix: str = "stylecast:",
        collection: str = "liked_items",
        poll_interval_seconds: float = 0.1,
    ) -> None:
        """Initialize with a Redis client, key prefix and collection name."""
        logger.debug("Initializing RedisDocumentStore")
        self.client = client
        self.prefix = prefix
        self.collection = collection
        self.poll_interval_seconds = poll_interval_seconds

    def _index_key(self, user_id: str) -> str:
        """Return the key of the set holding a user's document ids."""
        return f"{self.prefix}users:{user_id}:{self.collection}"

    def _doc_key(self, user_id: str, doc_id: str) -> str:
        """Return the key of a single document body."""
        return f"{self._index_key(user_id)}:{doc_id}"

    def _channel(self, user_id: str) -> str:
        """Return the pub/sub channel announcing changes to a user's collection."""
        return f"{self._index_key(user_id)}:changes"

    def _load(self, raw) -> Optional[Dict[str, Any]]:
        """Deserialize a stored body; corrupt bodies read as absent."""
        if not raw:
            return None
        try:
            data = json.loads(_decode(raw))
        except ValueError as exc:
            logger.error("Failed to deserialize document: %s", exc)
            return None
        return data if isinstance(data, dict) else None

    def set_document(self, user_id: str, doc_id: str, fields: Dict[str, Any]) -> None:
        """Write a document, index it and announce the change."""
        try:
            payload = json.dumps(fields)
        except (TypeError, ValueError) as exc:
            raise DocumentStoreError(f"Document '{doc_id}' is not JSON serializable: {exc}") from exc
        try:
            # Body and index commit together (MULTI/EXEC); announce only after commit.
            pipe = self.client.pipeline(transaction=True)
            pipe.set(self._doc_key(user_id, doc_id), payload)
            pipe.sadd(self._index_key(user_id), doc_id)
            pipe.execute()
            self.client.publish(self._channel(user_id), doc_id)
        except redis.RedisError as exc:
            logger.error("Failed to write document to Redis: %s", exc)
            raise DocumentStoreError(str(exc)) from exc

    def delete_document(self, user_id: str, doc_id: str) -> None:
        """Delete a document; absent ids are a no-op without a change message."""
        try:
            pipe = self.client.pipeline(transaction=True)
            pipe.delete(self._doc_key(user_id, doc_id))
            pipe.srem(self._index_key(user_id), doc_id)
            removed, _unindexed = pipe.execute()
            if removed:
                self.client.publish(self._channel(user_id), doc_id)
        except redis.RedisError as exc:
            logger.error("Failed to delete document from Redis: %s", exc)
            raise DocumentStoreError(str(exc)) from exc

    def get_document(self, user_id: str, doc_id: str) -> Optional[Dict[str, Any]]:
        """Fetch a document body, or None if missing/corrupt."""
        try:
            raw = self.client.get(self._doc_key(user_id, doc_id))
        except redis.RedisError as exc:
            logger.error("Failed to read document from Redis: %s", exc)
            raise DocumentStoreError(str(exc)) from exc
        return self._load(raw)

    def list_documents(self, user_id: str, *, order_by: str, descending: bool = True) -> List[Document]:
        """Load every indexed document for a user, ordered by `order_by`."""
        try:
            doc_ids = sorted(_decode(v) for v in self.client.smembers(self._index_key(user_id)))
            raws = [self.client.get(self._doc_key(user_id, doc_id)) for doc_id in doc_ids]
        except redis.RedisError as exc:
            logger.error("Failed to list documents from Redis: %s", exc)
            raise DocumentStoreError(str(exc)) from exc
        docs = []
        for doc_id, raw in zip(doc_ids, raws):
            data = self._load(raw)
            if data is not None:
                docs.append(Document(id=doc_id, data=data))
        return sort_documents(docs, order_by, descending)

    def subscribe(
        self,
        user_id: str,
        on_snapshot: SnapshotCallback,
        on_error: ErrorCallback,
        *,
        order_by: str,
        descending: bool = True,
    ) -> RedisSubscription:
        """Listen on the user's change channel and push a fresh snapshot per message."""

        def _push(_message=None) -> None:
            on_snapshot(self.list_documents(user_id, order_by=order_by, descending=descending))

        def _on_message(message) -> None:
            try:
                _push(message)
            except DocumentStoreError as exc:
                on_error(exc)

        def _on_worker_error(exc, pubsub, thread) -> None:
            logger.error("Liked-items subscription failed: %s", exc)
            thread.stop()
            on_error(DocumentStoreError(str(exc)))

        try:
            pubsub = self.client.pubsub(ignore_subscribe_messages=True)
            pubsub.subscribe(**{self._channel(user_id): _on_message})
        except redis.RedisError as exc:
            logger.error("Failed to subscribe to Redis channel: %s", exc)
            raise DocumentStoreError(str(exc)) from exc

        # Subscribe before the first read so no change slips between them.
        try:
            _push()
        except DocumentStoreError:
            pubsub.close()
            raise
        thread = pubsub.run_in_thread(
            sleep_time=self.poll_interval_seconds,
            daemon=True,
            exception_handler=_on_worker_error,
        )
        logger.debug("Subscribed to liked items", extra={"user_id": user_id})
        return RedisSubscription(pubsub, thread)

    def clear(self) -> None:
        """Best-effort removal of every key under the configured prefix."""
        try:
            for key in self.client.scan_iter(f"{self.prefix}*"):
                self.client.delete(key)
        except redis.RedisError as exc:
            logger.error("Failed to clear documents from Redis: %s", exc)
            raise DocumentStoreError(str(exc)) from exc
