"""
Key-value record backends for the chart and horoscope stores.

  MemoryBackend — process-local dict (tests, dev, Redis/Mongo disabled)
  MongoBackend  — Motor collection, one document per key (upsert)
  RedisBackend  — JSON strings with optional TTL

Documents are JSON-safe dicts (pydantic `model_dump(mode="json")`).
Driver errors are raised as StoreUnavailable: a record that cannot be
persisted must not be reported as cached.
"""
import json
import logging
import time
from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional, Tuple

import redis
from pymongo.errors import PyMongoError

from natalcore.errors import StoreUnavailable

logger = logging.getLogger(__name__)


class RecordBackend(ABC):
    name = "abstract"

    @abstractmethod
    async def get(self, key: str) -> Optional[Dict[str, Any]]:
        ...

    @abstractmethod
    async def put(self, key: str, doc: Dict[str, Any], ttl_seconds: Optional[int] = None) -> None:
        ...

    @abstractmethod
    async def delete(self, key: str) -> None:
        ...


# ─────────────────────────────────────────────
# In-memory
# ─────────────────────────────────────────────

class MemoryBackend(RecordBackend):
    name = "memory"

    def __init__(self):
        self._data: Dict[str, Tuple[str, Optional[float]]] = {}

    async def get(self, key: str) -> Optional[Dict[str, Any]]:
        entry = self._data.get(key)
        if entry is None:
            return None
        raw, expires_at = entry
        if expires_at is not None and time.time() >= expires_at:
            self._data.pop(key, None)
            return None
        return json.loads(raw)

    async def put(self, key: str, doc: Dict[str, Any], ttl_seconds: Optional[int] = None) -> None:
        # Stored as JSON so callers never share mutable state with the store
        expires_at = time.time() + ttl_seconds if ttl_seconds else None
        self._data[key] = (json.dumps(doc, default=str), expires_at)

    async def delete(self, key: str) -> None:
        self._data.pop(key, None)

    def __len__(self) -> int:
        return len(self._data)


# ─────────────────────────────────────────────
# MongoDB (Motor)
# ─────────────────────────────────────────────

class MongoBackend(RecordBackend):
    """
    One document per key: {_key, expires_at?, ...doc}.
    `expires_at` is served by a TTL index (see ensure_indexes).
    """
    name = "mongodb"

    def __init__(self, collection):
        self.collection = collection

    async def ensure_indexes(self) -> None:
        try:
            await self.collection.create_index("_key", unique=True)
            await self.collection.create_index("expires_at", expireAfterSeconds=0)
        except PyMongoError as e:
            raise StoreUnavailable(f"MongoDB index setup failed: {e}") from e

    async def get(self, key: str) -> Optional[Dict[str, Any]]:
        try:
            doc = await self.collection.find_one({"_key": key}, {"_id": 0})
        except PyMongoError as e:
            logger.error(f"MongoDB read failed for {key}: {e}")
            raise StoreUnavailable(f"MongoDB read failed for {key}: {e}") from e
        if not doc:
            return None
        expires_at = doc.pop("expires_at", None)
        if expires_at is not None:
            if expires_at.tzinfo is None:
                expires_at = expires_at.replace(tzinfo=timezone.utc)
            if expires_at <= datetime.now(timezone.utc):
                return None
        doc.pop("_key", None)
        return doc

    async def put(self, key: str, doc: Dict[str, Any], ttl_seconds: Optional[int] = None) -> None:
        record = dict(doc)
        record["_key"] = key
        if ttl_seconds:
            record["expires_at"] = datetime.now(timezone.utc) + timedelta(seconds=ttl_seconds)
        try:
            await self.collection.replace_one({"_key": key}, record, upsert=True)
        except PyMongoError as e:
            logger.error(f"MongoDB write failed for {key}: {e}")
            raise StoreUnavailable(f"MongoDB write failed for {key}: {e}") from e

    async def delete(self, key: str) -> None:
        try:
            await self.collection.delete_one({"_key": key})
        except PyMongoError as e:
            raise StoreUnavailable(f"MongoDB delete failed for {key}: {e}") from e


# ─────────────────────────────────────────────
# Redis
# ─────────────────────────────────────────────

class RedisBackend(RecordBackend):
    name = "redis"

    def __init__(self, client: redis.Redis, prefix: str = ""):
        self.client = client
        self.prefix = prefix

    def _key(self, key: str) -> str:
        return f"{self.prefix}{key}"

    async def get(self, key: str) -> Optional[Dict[str, Any]]:
        try:
            cached = self.client.get(self._key(key))
        except redis.RedisError as e:
            logger.error(f"Redis read failed for {key}: {e}")
            raise StoreUnavailable(f"Redis read failed for {key}: {e}") from e
        if cached is None:
            return None
        try:
            return json.loads(cached)
        except ValueError:
            logger.warning(f"Corrupted Redis entry for {key}; treating as missing")
            return None

    async def put(self, key: str, doc: Dict[str, Any], ttl_seconds: Optional[int] = None) -> None:
        payload = json.dumps(doc, default=str)
        try:
            if ttl_seconds:
                self.client.setex(self._key(key), ttl_seconds, payload)
            else:
                self.client.set(self._key(key), payload)
        except redis.RedisError as e:
            logger.error(f"Redis write failed for {key}: {e}")
            raise StoreUnavailable(f"Redis write failed for {key}: {e}") from e

    async def delete(self, key: str) -> None:
        try:
            self.client.delete(self._key(key))
        except redis.RedisError as e:
            raise StoreUnavailable(f"Redis delete failed for {key}: {e}") from e
