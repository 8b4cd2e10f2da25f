import unittest

from stylecast.document_store import DocumentStoreError, InMemoryDocumentStore
from stylecast.domain import StyleItem
from stylecast.identity import StaticIdentityProvider
from stylecast.liked_items import (
    DocumentAbsent,
    LikedItemsSync,
    NotAuthenticated,
    RemoteUnavailable,
    SyncState,
)


def _item(name="Wool Cardigan"):
    return StyleItem(name=name, image_reference=f"{name.lower()}_img", price="49,000")


class FailingStore(InMemoryDocumentStore):
    """In-memory store whose one-shot calls fail and whose subscriptions can be broken."""

    def __init__(self):
        super().__init__()
        self.fail_calls = False
        self.error_callbacks = []

    def get_document(self, user_id, doc_id):
        if self.fail_calls:
            raise DocumentStoreError("permission denied")
        return super().get_document(user_id, doc_id)

    def set_document(self, user_id, doc_id, fields):
        if self.fail_calls:
            raise DocumentStoreError("permission denied")
        return super().set_document(user_id, doc_id, fields)

    def subscribe(self, user_id, on_snapshot, on_error, *, order_by, descending=True):
        self.error_callbacks.append(on_error)
        return super().subscribe(user_id, on_snapshot, on_error, order_by=order_by, descending=descending)


class TestLikedItemsSync(unittest.IsolatedAsyncioTestCase):
    def setUp(self):
        self.store = InMemoryDocumentStore()
        self.snapshots = []
        self.errors = []
        self.sync = LikedItemsSync(
            self.store,
            StaticIdentityProvider("u1"),
            on_snapshot=self.snapshots.append,
            on_error=self.errors.append,
        )

    def tearDown(self):
        self.sync.stop()

    async def test_like_pushes_snapshot_and_is_liked_agrees(self):
        self.assertTrue(self.sync.start().ok)
        self.assertEqual(self.sync.state, SyncState.SUBSCRIBED)
        self.assertEqual(self.snapshots, [[]])

        result = await self.sync.like(_item())
        self.assertTrue(result.ok)
        self.assertEqual(result.value.id, "Wool Cardigan")
        self.assertEqual([i.id for i in self.sync.items], ["Wool Cardigan"])
        self.assertTrue(self.sync.contains("Wool Cardigan"))

        liked = await self.sync.is_liked("Wool Cardigan")
        self.assertTrue(liked.ok)
        self.assertTrue(liked.value)

    async def test_like_twice_keeps_one_document(self):
        self.sync.start()
        await self.sync.like(_item())
        await self.sync.like(_item())
        self.assertEqual(len(self.sync.items), 1)

    async def test_items_ordered_newest_first(self):
        self.sync.start()
        await self.sync.like(_item("First"))
        await self.sync.like(_item("Second"))
        self.assertEqual([i.id for i in self.sync.items], ["Second", "First"])

    async def test_unlike_absent_item_succeeds_without_push(self):
        self.sync.start()
        result = await self.sync.unlike("never-liked")
        self.assertTrue(result.ok)
        self.assertEqual(len(self.snapshots), 1)

    async def test_unlike_removes_item(self):
        self.sync.start()
        await self.sync.like(_item())
        await self.sync.unlike("Wool Cardigan")
        self.assertEqual(self.sync.items, [])
        self.assertFalse((await self.sync.is_liked("Wool Cardigan")).value)

    async def test_restart_replaces_subscription(self):
        self.sync.start("u1")
        await self.sync.like(_item(), user_id="u1")
        self.sync.start("u2")
        self.assertEqual(self.sync.user_id, "u2")
        self.assertEqual(self.sync.items, [])

        # Writes to the old user no longer reach the mirror.
        await self.sync.like(_item("Other"), user_id="u1")
        self.assertEqual(self.sync.items, [])
        self.assertEqual(self.snapshots[-1], [])

    async def test_stop_is_idempotent_and_silences_pushes(self):
        self.sync.start()
        self.sync.stop()
        self.sync.stop()
        self.assertEqual(self.sync.state, SyncState.IDLE)
        await self.sync.like(_item())
        self.assertEqual(self.snapshots, [[]])

    async def test_not_authenticated(self):
        sync = LikedItemsSync(self.store, StaticIdentityProvider(None))
        started = sync.start()
        self.assertFalse(started.ok)
        self.assertIsInstance(started.error, NotAuthenticated)
        self.assertEqual(sync.state, SyncState.ERROR)
        result = await sync.like(_item())
        self.assertIsInstance(result.error, NotAuthenticated)

    async def test_get_liked_item(self):
        await self.sync.like(_item())
        found = await self.sync.get_liked_item("Wool Cardigan")
        self.assertEqual(found.value.image_reference, "wool cardigan_img")

        missing = await self.sync.get_liked_item("nope")
        self.assertFalse(missing.ok)
        self.assertIsInstance(missing.error, DocumentAbsent)

    async def test_toggle(self):
        first = await self.sync.toggle(_item())
        self.assertTrue(first.value)
        second = await self.sync.toggle(_item())
        self.assertFalse(second.value)
        self.assertIsNone(self.store.get_document("u1", "Wool Cardigan"))

    async def test_check_liked(self):
        await self.sync.like(_item("A"))
        results = await self.sync.check_liked(["A", "B", "A"])
        self.assertEqual(list(results), ["A", "B"])
        self.assertTrue(results["A"].value)
        self.assertFalse(results["B"].value)

    async def test_one_shot_failures_are_remote_unavailable(self):
        store = FailingStore()
        store.fail_calls = True
        sync = LikedItemsSync(store, StaticIdentityProvider("u1"))
        for result in (await sync.like(_item()), await sync.is_liked("x"), await sync.get_liked_item("x")):
            self.assertFalse(result.ok)
            self.assertIsInstance(result.error, RemoteUnavailable)

    async def test_subscription_failure_moves_to_error(self):
        store = FailingStore()
        sync = LikedItemsSync(store, StaticIdentityProvider("u1"),
                              on_snapshot=self.snapshots.append, on_error=self.errors.append)
        sync.start()
        store.error_callbacks[-1](DocumentStoreError("listener revoked"))

        self.assertEqual(sync.state, SyncState.ERROR)
        self.assertIsInstance(sync.error, RemoteUnavailable)
        self.assertEqual(len(self.errors), 1)

        # The failed subscription is released and stale error callbacks are ignored.
        store.set_document("u1", "late", {"liked_at": "2024-01-01"})
        store.error_callbacks[-1](DocumentStoreError("again"))
        self.assertEqual(len(self.errors), 1)
        self.assertEqual(self.snapshots, [[]])

        # Starting again recovers.
        self.assertTrue(sync.start().ok)
        self.assertEqual(sync.state, SyncState.SUBSCRIBED)
        sync.stop()

    def test_skips_malformed_documents(self):
        self.store.set_document("u1", "broken", {"name": "only a name"})
        self.sync.start()
        self.assertEqual(self.sync.items, [])


if __name__ == "__main__":
    unittest.main()
