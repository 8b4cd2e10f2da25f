"""Store manager facade: picks the liked-items document backend from configuration."""
import redis

from stylecast.config import settings
from stylecast.document_store import DocumentStore, InMemoryDocumentStore, RedisDocumentStore
from utils.logging_utils import get_tagged_logger, mask_url

logger = get_tagged_logger(__name__, tag="store_manager")


def _init_store() -> DocumentStore:
    """Initialize the backing document store based on configuration."""
    redis_url = settings.store_redis_url
    logger.debug(f"Initializing document store: redis_url='{mask_url(redis_url) if redis_url else 'None'}'")
    if redis_url:
        try:
            client = redis.Redis.from_url(redis_url)
            client.ping()
            logger.info("Using RedisDocumentStore", extra={"redis_url": mask_url(redis_url)})
            return RedisDocumentStore(
                client,
                prefix=settings.store_prefix,
                poll_interval_seconds=settings.store_poll_interval_seconds,
            )
        except redis.RedisError as exc:
            logger.warning("Falling back to InMemoryDocumentStore (Redis unavailable)", extra={"error": str(exc)})
    return InMemoryDocumentStore()


_store: DocumentStore = _init_store()


def get_store() -> DocumentStore:
    """Return the process-wide document store."""
    return _store


def use_in_memory_store_for_tests() -> InMemoryDocumentStore:
    """Override store for tests to ensure isolation and determinism."""
    global _store
    _store = InMemoryDocumentStore()
    return _store
