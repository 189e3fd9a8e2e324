"""
Horoscope store — latest valid result per (user, category).

Backend key: horoscope:{user_id}:{category}. The remaining validity is used as
the backend TTL, and expired records are ignored on read even if the backend
has not evicted them yet.
"""
import logging
import math
from datetime import datetime
from typing import Optional

from pydantic import ValidationError

from natalcore.db.backends import RecordBackend
from natalcore.models.horoscope import HoroscopeCategory, HoroscopeResult
from natalcore.services.locks import KeyedLocks

logger = logging.getLogger(__name__)


def horoscope_key(user_id: str, category: HoroscopeCategory) -> str:
    return f"horoscope:{user_id}:{HoroscopeCategory(category).value}"


class HoroscopeStore:

    def __init__(self, backend: RecordBackend):
        self.backend = backend
        self.locks = KeyedLocks()

    async def get_valid(
        self, user_id: str, category: HoroscopeCategory, now: datetime,
    ) -> Optional[HoroscopeResult]:
        key = horoscope_key(user_id, category)
        doc = await self.backend.get(key)
        if doc is None:
            return None
        try:
            result = HoroscopeResult.model_validate(doc)
        except ValidationError as e:
            logger.warning(f"Stored horoscope {key} is unreadable: {e}")
            return None
        if not result.is_valid_at(now):
            logger.debug(f"Horoscope {key} expired at {result.valid_until.isoformat()}")
            return None
        return result

    async def save(self, result: HoroscopeResult, now: datetime) -> None:
        ttl = max(1, math.ceil((result.valid_until - now).total_seconds()))
        await self.backend.put(
            horoscope_key(result.user_id, result.category),
            result.model_dump(mode="json"),
            ttl_seconds=ttl,
        )
