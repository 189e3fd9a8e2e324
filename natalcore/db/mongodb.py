"""
MongoDB client — Motor async driver.

MONGODB_ENABLED=False → never connected; stores run on the memory backend.
MONGODB_ENABLED=True  → natal charts persisted to the `natal_charts` collection.
"""
import logging
from typing import Optional

from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase
from pymongo.errors import PyMongoError

logger = logging.getLogger(__name__)

CHARTS_COLLECTION = "natal_charts"

_client: Optional[AsyncIOMotorClient] = None
_db: Optional[AsyncIOMotorDatabase] = None


async def connect_to_mongo(uri: str, db_name: str) -> Optional[AsyncIOMotorDatabase]:
    global _client, _db
    try:
        _client = AsyncIOMotorClient(uri, serverSelectionTimeoutMS=5000)
        _db = _client[db_name]
        await _client.admin.command("ping")
        logger.info(f"MongoDB connected: {db_name}")
    except PyMongoError as e:
        logger.error(f"MongoDB connection failed: {e}")
        if _client is not None:
            _client.close()
        _client = None
        _db = None
    return _db


async def disconnect_from_mongo() -> None:
    global _client, _db
    if _client:
        _client.close()
        logger.info("MongoDB disconnected")
    _client = None
    _db = None
