import unittest
from unittest.mock import MagicMock

from pymongo import DESCENDING
from pymongo.errors import ServerSelectionTimeoutError

from hitcounter.config import DatabaseConfig
from hitcounter.server.database import EventStore, StoreUnavailable


def fake_client():
    client = MagicMock()
    db = MagicMock()
    db.name = "hitcounter"
    collection = MagicMock()
    db.__getitem__.return_value = collection
    client.get_default_database.return_value = db
    return client, db, collection


class TestEventStore(unittest.TestCase):
    def setUp(self):
        self.cfg = DatabaseConfig(uri="mongodb://db:27017/hitcounter", collection="logs", timeout_ms=1000)

    def test_connect_pings_and_selects_collection(self):
        client, db, collection = fake_client()
        factory = MagicMock(return_value=client)
        store = EventStore(self.cfg, client_factory=factory)
        store.connect()

        factory.assert_called_once_with("mongodb://db:27017/hitcounter", serverSelectionTimeoutMS=1000)
        client.admin.command.assert_called_once_with("ping")
        client.get_default_database.assert_called_once_with(default="hitcounter")
        db.__getitem__.assert_called_once_with("logs")
        collection.create_index.assert_called_once()

    def test_unreachable_server_fails_fast(self):
        client, _, _ = fake_client()
        client.admin.command.side_effect = ServerSelectionTimeoutError("no servers")
        store = EventStore(self.cfg, client_factory=MagicMock(return_value=client))
        with self.assertRaises(StoreUnavailable):
            store.connect()
        with self.assertRaises(StoreUnavailable):
            store.insert_event({"project": "p"})

    def test_insert_does_not_mutate_caller_doc(self):
        client, _, collection = fake_client()

        def insert_one(d):
            d["_id"] = "abc"

        collection.insert_one.side_effect = insert_one
        doc = {"project": "p", "timestamp": "2025-01-01T00:00:00.000Z"}
        with EventStore(self.cfg, client_factory=MagicMock(return_value=client)) as store:
            store.insert_event(doc)
        self.assertNotIn("_id", doc)
        collection.insert_one.assert_called_once()

    def test_events_since_sorted_desc(self):
        client, _, collection = fake_client()
        cursor = MagicMock()
        cursor.sort.return_value = iter([{"project": "b"}, {"project": "a"}])
        collection.find.return_value = cursor
        with EventStore(self.cfg, client_factory=MagicMock(return_value=client)) as store:
            out = store.events_since("2025-01-01T00:00:00.000Z")
        collection.find.assert_called_once_with({"timestamp": {"$gte": "2025-01-01T00:00:00.000Z"}})
        cursor.sort.assert_called_once_with("timestamp", DESCENDING)
        self.assertEqual([d["project"] for d in out], ["b", "a"])

    def test_exit_closes_client(self):
        client, _, _ = fake_client()
        with EventStore(self.cfg, client_factory=MagicMock(return_value=client)):
            pass
        client.close.assert_called_once()


if __name__ == "__main__":
    unittest.main()
