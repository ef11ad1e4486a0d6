import unittest
from unittest.mock import patch

from paperframe.carousel import CAROUSEL_KEY, PhotoRecord, dump_carousel
from paperframe.errors import StorageError
from paperframe.metadata import InMemoryMetadataStore
from paperframe.queue import InMemoryOrphanQueue
from paperframe.reconcile import main, reconcile_orphans
from paperframe.storage import InMemoryObjectStore


class ReconcileTests(unittest.TestCase):
    def setUp(self):
        self.metadata = InMemoryMetadataStore()
        self.objects = InMemoryObjectStore()
        self.queue = InMemoryOrphanQueue()
        self.metadata.put(
            CAROUSEL_KEY, dump_carousel([PhotoRecord(id=0, title="kept", filename="kept.jpg")])
        )
        self.objects.put_bytes("kept.jpg", b"k")
        self.objects.put_bytes("orphan.jpg", b"o")

    def test_deletes_only_unreferenced_objects(self):
        self.queue.enqueue("orphan.jpg")
        self.queue.enqueue("kept.jpg")
        deleted = reconcile_orphans(self.metadata, self.objects, self.queue)
        self.assertEqual(deleted, 1)
        self.assertEqual(set(self.objects.stored_objects), {"kept.jpg"})
        self.assertEqual(self.queue.items, [])

    def test_failed_delete_is_requeued(self):
        self.queue.enqueue("orphan.jpg")
        with patch.object(self.objects, "delete", side_effect=StorageError("object delete", "orphan.jpg")):
            deleted = reconcile_orphans(self.metadata, self.objects, self.queue)
        self.assertEqual(deleted, 0)
        self.assertEqual(self.queue.items, ["orphan.jpg"])

    def test_limit(self):
        self.objects.put_bytes("other.jpg", b"x")
        self.queue.enqueue("orphan.jpg")
        self.queue.enqueue("other.jpg")
        self.assertEqual(reconcile_orphans(self.metadata, self.objects, self.queue, limit=1), 1)
        self.assertEqual(self.queue.items, ["other.jpg"])

    def test_queue_failure_propagates(self):
        with patch.object(
            self.queue, "dequeue", side_effect=StorageError("orphan dequeue", "paperframe:orphans")
        ):
            with self.assertRaises(StorageError):
                reconcile_orphans(self.metadata, self.objects, self.queue)
        self.assertEqual(set(self.objects.stored_objects), {"kept.jpg", "orphan.jpg"})

    def run_main(self):
        with patch("paperframe.reconcile.get_metadata_store", return_value=self.metadata), patch(
            "paperframe.reconcile.get_object_store", return_value=self.objects
        ), patch("paperframe.reconcile.get_orphan_queue", return_value=self.queue), patch(
            "sys.argv", ["paperframe-reconcile"]
        ):
            return main()

    def test_main_succeeds(self):
        self.queue.enqueue("orphan.jpg")
        self.assertEqual(self.run_main(), 0)
        self.assertEqual(set(self.objects.stored_objects), {"kept.jpg"})

    def test_main_exits_non_zero_on_queue_failure(self):
        with patch.object(
            self.queue, "dequeue", side_effect=StorageError("orphan dequeue", "paperframe:orphans")
        ):
            with self.assertLogs("paperframe.reconcile", level="ERROR"):
                self.assertEqual(self.run_main(), 1)


if __name__ == "__main__":
    unittest.main()
