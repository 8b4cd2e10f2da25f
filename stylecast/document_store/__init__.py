"""Document storage backends for per-user collections."""

from .base import Document, DocumentStore, DocumentStoreError, Subscription
from .memory import InMemoryDocumentStore
from .redis import RedisDocumentStore

__all__ = [
    "Document",
    "DocumentStore",
    "DocumentStoreError",
    "Subscription",
    "InMemoryDocumentStore",
    "RedisDocumentStore",
]
