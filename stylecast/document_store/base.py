"""Shared protocol and types for per-user document store backends."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Protocol, Sequence


class DocumentStoreError(RuntimeError):
    """Transport or permission failure reported by a store backend."""


@dataclass(frozen=True)
class Document:
    """One stored document: its key within the user's collection plus its fields."""
    id: str
    data: Dict[str, Any] = field(default_factory=dict)


SnapshotCallback = Callable[[List[Document]], None]
ErrorCallback = Callable[[Exception], None]


class Subscription(Protocol):
    """Handle for a live snapshot subscription."""

    def unsubscribe(self) -> None:
        """Stop deliveries; safe to call more than once."""


class DocumentStore(Protocol):
    """Protocol for per-user document collections with push subscriptions."""

    def set_document(self, user_id: str, doc_id: str, fields: Dict[str, Any]) -> None:
        """Create or overwrite a document."""

    def delete_document(self, user_id: str, doc_id: str) -> None:
        """Delete a document without raising if it is absent."""

    def get_document(self, user_id: str, doc_id: str) -> Optional[Dict[str, Any]]:
        """Return a document's fields, or None if it does not exist."""

    def list_documents(self, user_id: str, *, order_by: str, descending: bool = True) -> List[Document]:
        """Return the user's documents ordered by a field."""

    def subscribe(
        self,
        user_id: str,
        on_snapshot: SnapshotCallback,
        on_error: ErrorCallback,
        *,
        order_by: str,
        descending: bool = True,
    ) -> Subscription:
        """Deliver the current ordered snapshot now and again after every change."""


def sort_documents(docs: Sequence[Document], order_by: str, descending: bool) -> List[Document]:
    """Order documents by a field; documents missing the field sort last."""
    present = [d for d in docs if d.data.get(order_by) is not None]
    missing = [d for d in docs if d.data.get(order_by) is None]
    present.sort(key=lambda d: (d.data[order_by], d.id), reverse=descending)
    return present + missing
