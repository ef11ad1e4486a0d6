import unittest
from unittest.mock import patch

from redis import exceptions as redis_exceptions

from paperframe.errors import StorageError
from paperframe.metadata import InMemoryMetadataStore, RedisMetadataStore, SqlMetadataStore
from paperframe.queue import RedisOrphanQueue


class CompareAndSwapContract:
    """Shared behaviour for every metadata store; mixed into concrete TestCases."""

    def make_store(self):
        raise NotImplementedError

    def setUp(self):
        self.store = self.make_store()

    def test_missing_key(self):
        self.assertIsNone(self.store.get("carousel"))

    def test_create_requires_absence(self):
        self.assertTrue(self.store.commit({"carousel": "[]"}, {"carousel": None}))
        self.assertEqual(self.store.get("carousel").value, "[]")
        self.assertFalse(self.store.commit({"carousel": "[1]"}, {"carousel": None}))
        self.assertEqual(self.store.get("carousel").value, "[]")

    def test_stale_version_is_rejected(self):
        self.store.commit({"current": "0"}, {"current": None})
        first = self.store.get("current")
        self.assertTrue(self.store.commit({"current": "1"}, {"current": first.version}))
        self.assertFalse(self.store.commit({"current": "2"}, {"current": first.version}))
        self.assertEqual(self.store.get("current").value, "1")

    def test_multi_key_commit_is_all_or_nothing(self):
        self.store.commit({"carousel": "[]", "autoinc": "0"}, {"carousel": None, "autoinc": None})
        carousel = self.store.get("carousel")
        autoinc = self.store.get("autoinc")
        self.store.commit({"autoinc": "1"}, {"autoinc": autoinc.version})

        ok = self.store.commit(
            {"carousel": "[1]", "autoinc": "1"},
            {"carousel": carousel.version, "autoinc": autoinc.version},
        )
        self.assertFalse(ok)
        self.assertEqual(self.store.get("carousel").value, "[]")

    def test_expected_only_key_guards_commit(self):
        self.store.commit({"carousel": "[]", "current": "0"}, {"carousel": None, "current": None})
        carousel = self.store.get("carousel")
        current = self.store.get("current")
        self.store.commit({"carousel": "[1]"}, {"carousel": carousel.version})

        ok = self.store.commit(
            {"current": "1"},
            {"current": current.version, "carousel": carousel.version},
        )
        self.assertFalse(ok)
        self.assertEqual(self.store.get("current").value, "0")


class InMemoryMetadataStoreTests(CompareAndSwapContract, unittest.TestCase):
    def make_store(self):
        return InMemoryMetadataStore()


class SqlMetadataStoreTests(CompareAndSwapContract, unittest.TestCase):
    """
    Uses SQLite via SQLAlchemy URL for fast/local testing of the SQL store logic.
    """

    def make_store(self):
        return SqlMetadataStore("sqlite+pysqlite:///:memory:")

    def test_requires_url(self):
        with self.assertRaises(ValueError):
            SqlMetadataStore("")


class RedisErrorWrappingTests(unittest.TestCase):
    def test_get_failure_becomes_storage_error(self):
        store = RedisMetadataStore("redis://localhost:6379/0")
        with patch.object(store.client, "get", side_effect=redis_exceptions.ConnectionError("down")):
            with self.assertRaises(StorageError) as ctx:
                store.get("carousel")
        self.assertEqual(ctx.exception.key, "carousel")

    def test_enqueue_failure_becomes_storage_error(self):
        queue = RedisOrphanQueue("redis://localhost:6379/0")
        with patch.object(queue.client, "rpush", side_effect=redis_exceptions.TimeoutError("slow")):
            with self.assertRaises(StorageError):
                queue.enqueue("1.jpg")

    def test_dequeue_failure_becomes_storage_error(self):
        queue = RedisOrphanQueue("redis://localhost:6379/0", queue_key="frames:orphans")
        for error in (
            redis_exceptions.ConnectionError("down"),
            redis_exceptions.TimeoutError("slow"),
            redis_exceptions.ResponseError("WRONGTYPE"),
        ):
            with self.subTest(error=type(error).__name__):
                with patch.object(queue.client, "lpop", side_effect=error):
                    with self.assertRaises(StorageError) as ctx:
                        queue.dequeue()
                self.assertEqual(ctx.exception.key, "frames:orphans")

    def test_dequeue_decodes_and_reports_empty(self):
        queue = RedisOrphanQueue("redis://localhost:6379/0")
        with patch.object(queue.client, "lpop", side_effect=[b"1.jpg", None]):
            self.assertEqual(queue.dequeue(), "1.jpg")
            self.assertIsNone(queue.dequeue())


if __name__ == "__main__":
    unittest.main()
