from __future__ import annotations

import logging
from typing import Any, Callable, Dict, List, Mapping, Optional

from pymongo import ASCENDING, DESCENDING, MongoClient
from pymongo.collection import Collection
from pymongo.errors import PyMongoError

from ..config import DatabaseConfig


logger = logging.getLogger("hitcounter.database")


class StoreUnavailable(RuntimeError):
    pass


class EventStore:
    """
    Append-only event collection.

    Owns one MongoClient (internally pooled and thread-safe). Use it as a
    context manager so the client is acquired at startup and released on
    shutdown:

        with EventStore(cfg.database) as store:
            app = create_app(cfg, store)
    """

    def __init__(self, cfg: DatabaseConfig, *, client_factory: Callable[..., Any] = MongoClient):
        self.cfg = cfg
        self._client_factory = client_factory
        self._client: Optional[Any] = None
        self._collection: Optional[Collection] = None

    def connect(self) -> None:
        try:
            client = self._client_factory(self.cfg.uri, serverSelectionTimeoutMS=self.cfg.timeout_ms)
            # MongoClient connects lazily; ping so an unreachable server fails here.
            client.admin.command("ping")
        except PyMongoError as e:
            raise StoreUnavailable(f"cannot reach MongoDB: {e}") from e

        db = client.get_default_database(default=self.cfg.name)
        self._client = client
        self._collection = db[self.cfg.collection]
        try:
            self._collection.create_index([("timestamp", ASCENDING)])
        except PyMongoError:
            logger.warning("could not ensure timestamp index on %s", self.cfg.collection, exc_info=True)
        logger.info("connected to %s.%s", db.name, self.cfg.collection)

    def close(self) -> None:
        if self._client is not None:
            self._client.close()
            logger.info("MongoDB connection closed")
        self._client = None
        self._collection = None

    def __enter__(self) -> "EventStore":
        self.connect()
        return self

    def __exit__(self, *exc: Any) -> None:
        self.close()

    @property
    def collection(self) -> Collection:
        if self._collection is None:
            raise StoreUnavailable("store is not connected")
        return self._collection

    def insert_event(self, doc: Mapping[str, Any]) -> None:
        # insert_one adds _id to the dict it is given; keep the caller's copy clean.
        self.collection.insert_one(dict(doc))

    def events_since(self, since_iso: str) -> List[Dict[str, Any]]:
        cursor = self.collection.find({"timestamp": {"$gte": since_iso}}).sort("timestamp", DESCENDING)
        return list(cursor)
