"""Live mirror of a user's liked items, kept in step with a remote document store.

The remote store is the source of truth. `like`/`unlike` only write to it;
the local list changes when the store pushes the next full snapshot. One
LikedItemsSync owns at most one live subscription at a time.
"""

from __future__ import annotations

import asyncio
import threading
from enum import Enum
from functools import partial
from typing import Callable, Dict, Iterable, List

from stylecast.document_store import Document, DocumentStore, DocumentStoreError, Subscription
from stylecast.domain import LikedItem, StyleItem
from stylecast.identity import IdentityProvider
from stylecast.results import Err, Ok, Result

LIKED_AT_FIELD = "liked_at"


class SyncError(Exception):
    """Base class for failures reported by LikedItemsSync."""


class NotAuthenticated(SyncError):
    """No user id was passed and the identity provider has none."""


class RemoteUnavailable(SyncError):
    """The document store failed (transport, permission, backend error)."""


class DocumentAbsent(SyncError):
    """A point lookup found no document for the requested id."""


class SyncState(str, Enum):
    """Lifecycle of the liked-items subscription."""
    IDLE = "idle"
    SUBSCRIBED = "subscribed"
    ERROR = "error"


class LikedItemsSync:
    """Keeps a user's liked items mirrored from the store and writes likes back."""

    def __init__(
        self,
        store: DocumentStore,
        identity: IdentityProvider | None = None,
        *,
        on_snapshot: Callable[[List[LikedItem]], None] | None = None,
        on_error: Callable[[SyncError], None] | None = None,
    ) -> None:
        self._store = store
        self._identity = identity
        self._on_snapshot = on_snapshot
        self._on_error = on_error
        self._lock = threading.RLock()
        self._generation = 0
        self._subscription: Subscription | None = None
        self._items: List[LikedItem] = []
        self._state = SyncState.IDLE
        self._error: SyncError | None = None
        self._user_id: str | None = None

    @property
    def items(self) -> List[LikedItem]:
        """Most recently pushed liked items, newest first."""
        with self._lock:
            return list(self._items)

    @property
    def state(self) -> SyncState:
        with self._lock:
            return self._state

    @property
    def error(self) -> SyncError | None:
        """Terminal subscription error, if the last subscription failed."""
        with self._lock:
            return self._error

    @property
    def user_id(self) -> str | None:
        with self._lock:
            return self._user_id

    def contains(self, item_id: str) -> bool:
        """Membership in the last pushed snapshot."""
        with self._lock:
            return any(item.id == item_id for item in self._items)

    def _resolve_user(self, user_id: str | None) -> str | None:
        if user_id:
            return user_id
        return self._identity.current_user_id() if self._identity else None

    # Subscription lifecycle

    def start(self, user_id: str | None = None) -> Result[None]:
        """Subscribe to the user's liked items, replacing any live subscription."""
        uid = self._resolve_user(user_id)
        with self._lock:
            self._teardown_locked()
            self._items = []
            self._user_id = uid
            if uid is None:
                self._state = SyncState.ERROR
                self._error = NotAuthenticated("No signed-in user")
                return Err(self._error)
            self._state = SyncState.SUBSCRIBED
            self._error = None
            generation = self._generation

        # The store may deliver the first snapshot on this thread before
        # subscribe returns; it is applied through the generation check.
        try:
            subscription = self._store.subscribe(
                uid,
                partial(self._apply_snapshot, generation),
                partial(self._fail, generation),
                order_by=LIKED_AT_FIELD,
                descending=True,
            )
        except DocumentStoreError as exc:
            with self._lock:
                if generation == self._generation:
                    self._generation += 1
                    self._state = SyncState.ERROR
                    self._error = RemoteUnavailable(str(exc))
                return Err(RemoteUnavailable(str(exc)))

        with self._lock:
            if generation != self._generation:
                # stop() or a newer start() won the race, or the store already failed.
                subscription.unsubscribe()
                if self._state is SyncState.ERROR and self._error is not None:
                    return Err(self._error)
                return Ok(None)
            self._subscription = subscription
        return Ok(None)

    def stop(self) -> None:
        """Release the subscription; no snapshot reaches listeners after this returns."""
        with self._lock:
            self._teardown_locked()
            if self._state is SyncState.SUBSCRIBED:
                self._state = SyncState.IDLE

    def _teardown_locked(self) -> None:
        self._generation += 1
        subscription, self._subscription = self._subscription, None
        if subscription is not None:
            subscription.unsubscribe()

    def _apply_snapshot(self, generation: int, documents: Iterable[Document]) -> None:
        items = [
            item
            for item in (LikedItem.from_document(doc.id, doc.data) for doc in documents)
            if item is not None
        ]
        with self._lock:
            if generation != self._generation:
                return
            self._items = items
            if self._on_snapshot is not None:
                self._on_snapshot(list(items))

    def _fail(self, generation: int, exc: Exception) -> None:
        with self._lock:
            if generation != self._generation:
                return
            self._teardown_locked()
            self._state = SyncState.ERROR
            self._error = RemoteUnavailable(str(exc))
            if self._on_error is not None:
                self._on_error(self._error)

    # One-shot operations

    async def _call(self, fn, *args) -> Result:
        try:
            return Ok(await asyncio.to_thread(fn, *args))
        except DocumentStoreError as exc:
            return Err(RemoteUnavailable(str(exc)))

    async def like(self, item: StyleItem, *, user_id: str | None = None) -> Result[LikedItem]:
        """Write the liked document for `item`; liking twice overwrites the same document."""
        uid = self._resolve_user(user_id)
        if uid is None:
            return Err(NotAuthenticated("No signed-in user"))
        liked = LikedItem.from_style_item(item)
        result = await self._call(self._store.set_document, uid, liked.id, liked.to_document())
        return Ok(liked) if result.ok else result

    async def unlike(self, item_id: str, *, user_id: str | None = None) -> Result[None]:
        """Delete the liked document; deleting an absent id succeeds."""
        uid = self._resolve_user(user_id)
        if uid is None:
            return Err(NotAuthenticated("No signed-in user"))
        result = await self._call(self._store.delete_document, uid, item_id)
        return Ok(None) if result.ok else result

    async def is_liked(self, item_id: str, *, user_id: str | None = None) -> Result[bool]:
        """Point-in-time existence check, independent of the subscription."""
        uid = self._resolve_user(user_id)
        if uid is None:
            return Err(NotAuthenticated("No signed-in user"))
        result = await self._call(self._store.get_document, uid, item_id)
        return Ok(result.value is not None) if result.ok else result

    async def get_liked_item(self, item_id: str, *, user_id: str | None = None) -> Result[LikedItem]:
        """Fetch one liked item, distinguishing "not liked" from a store failure."""
        uid = self._resolve_user(user_id)
        if uid is None:
            return Err(NotAuthenticated("No signed-in user"))
        result = await self._call(self._store.get_document, uid, item_id)
        if not result.ok:
            return result
        item = LikedItem.from_document(item_id, result.value)
        if item is None:
            return Err(DocumentAbsent(f"No liked item '{item_id}'"))
        return Ok(item)

    async def toggle(self, item: StyleItem, *, user_id: str | None = None) -> Result[bool]:
        """Like or unlike `item` based on the remote state; returns the new liked state."""
        current = await self.is_liked(item.id, user_id=user_id)
        if not current.ok:
            return current
        if current.value:
            result = await self.unlike(item.id, user_id=user_id)
            return Ok(False) if result.ok else result
        result = await self.like(item, user_id=user_id)
        return Ok(True) if result.ok else result

    async def check_liked(
        self, item_ids: Iterable[str], *, user_id: str | None = None
    ) -> Dict[str, Result[bool]]:
        """Check several items concurrently, e.g. before the first snapshot arrives."""
        ids = list(dict.fromkeys(item_ids))
        results = await asyncio.gather(*(self.is_liked(item_id, user_id=user_id) for item_id in ids))
        return dict(zip(ids, results))


def fetch_liked_items(store: DocumentStore, user_id: str) -> List[LikedItem]:
    """Point-in-time list of a user's liked items, newest first."""
    docs = store.list_documents(user_id, order_by=LIKED_AT_FIELD, descending=True)
    return [item for item in (LikedItem.from_document(d.id, d.data) for d in docs) if item is not None]
