"""
Natal chart & horoscope engine — wiring and lifecycle.

Architecture:
  - Charts: computed once per user (pyswisseph locally, or the remote astronomy
    service), stored in MongoDB when enabled, otherwise in memory
  - Fallback: deterministic seeded chart whenever the ephemeris is unavailable
  - Horoscopes: static templates, stored per (user, category) in Redis when
    enabled, otherwise in memory, until their validity window ends
"""
import logging
from typing import Optional

from config import Settings, get_settings
from natalcore.db import mongodb
from natalcore.db.backends import MemoryBackend, MongoBackend, RecordBackend, RedisBackend
from natalcore.db.redis_client import close_redis, get_redis
from natalcore.models.chart import BirthQuery, Chart
from natalcore.models.horoscope import HoroscopeCategory, HoroscopeResult, StyleContext, ValidityPolicy
from natalcore.services.ephemeris import (
    EphemerisEngine,
    RemoteEphemerisEngine,
    ResilientEphemeris,
    SwissEphemerisEngine,
)
from natalcore.services.horoscope_service import HoroscopeComposer
from natalcore.services.horoscope_store import HoroscopeStore
from natalcore.services.natal_service import ChartStore

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"


def configure_logging(level: Optional[str] = None) -> None:
    logging.basicConfig(
        level=(level or get_settings().LOG_LEVEL).upper(),
        format=LOG_FORMAT,
    )


def make_ephemeris_engine(settings: Settings) -> EphemerisEngine:
    backend = settings.EPHEMERIS_BACKEND.lower()
    if backend == "remote":
        return RemoteEphemerisEngine()
    if backend != "swisseph":
        logger.warning(f"Unknown EPHEMERIS_BACKEND '{settings.EPHEMERIS_BACKEND}', using swisseph")
    return SwissEphemerisEngine(ephe_path=settings.SWISSEPH_PATH)


def validity_policy(settings: Settings) -> ValidityPolicy:
    return ValidityPolicy(
        daily_days=settings.DAILY_VALIDITY_DAYS,
        default_days=settings.DEFAULT_VALIDITY_DAYS,
        extended_days=settings.EXTENDED_VALIDITY_DAYS,
        extended_tier=settings.EXTENDED_VALIDITY_TIER,
    )


class AstroEngine:
    """ChartStore + HoroscopeComposer behind one facade."""

    def __init__(
        self,
        charts: ChartStore,
        composer: HoroscopeComposer,
        settings: Optional[Settings] = None,
    ):
        self.charts = charts
        self.composer = composer
        self.settings = settings or get_settings()

    def default_style(self, tier: int = 0, display_name: str = "", locale: str = "en") -> StyleContext:
        return StyleContext(
            locale=locale,
            display_name=display_name,
            tier=tier,
            validity=validity_policy(self.settings),
        )

    async def chart_for(self, user_id: str, dob: str, tob: Optional[str], pob: str) -> Chart:
        """Raises InvalidBirthData before any computation when dob/tob are unparseable."""
        query = BirthQuery.parse(dob, tob, pob)
        return await self.charts.get_or_compute(user_id, query)

    async def horoscope_for(
        self,
        user_id: str,
        dob: str,
        tob: Optional[str],
        pob: str,
        category: HoroscopeCategory,
        style: Optional[StyleContext] = None,
    ) -> HoroscopeResult:
        chart = await self.chart_for(user_id, dob, tob, pob)
        return await self.composer.compose(user_id, chart, category, style or self.default_style())

    async def close(self) -> None:
        if self.settings.MONGODB_ENABLED:
            await mongodb.disconnect_from_mongo()
        if self.settings.REDIS_ENABLED:
            close_redis()
        logger.info("Engine shut down cleanly.")


async def _chart_backend(settings: Settings) -> RecordBackend:
    if settings.MONGODB_ENABLED:
        db = await mongodb.connect_to_mongo(settings.MONGODB_URI, settings.MONGODB_DB_NAME)
        if db is not None:
            backend = MongoBackend(db[mongodb.CHARTS_COLLECTION])
            await backend.ensure_indexes()
            return backend
        logger.warning("MongoDB unreachable — charts will use in-memory store")
    else:
        logger.info("MongoDB: DISABLED (set MONGODB_ENABLED=True to enable)")
    return MemoryBackend()


def _horoscope_backend(settings: Settings) -> RecordBackend:
    if settings.REDIS_ENABLED:
        r = get_redis(settings.REDIS_URL)
        if r is not None:
            return RedisBackend(r)
    else:
        logger.info("Redis: DISABLED (set REDIS_ENABLED=True to enable)")
    return MemoryBackend()


async def build_engine(settings: Optional[Settings] = None) -> AstroEngine:
    settings = settings or get_settings()

    engine = make_ephemeris_engine(settings)
    ephemeris = ResilientEphemeris(
        engine,
        timeout=settings.EPHEMERIS_TIMEOUT_SECONDS,
        max_retries=settings.EPHEMERIS_MAX_RETRIES,
    )
    charts = ChartStore(
        backend=await _chart_backend(settings),
        ephemeris=ephemeris,
        house_system=settings.HOUSE_SYSTEM,
    )
    composer = HoroscopeComposer(HoroscopeStore(_horoscope_backend(settings)))

    logger.info(
        f"Engine ready: ephemeris={engine.name}, charts={charts.backend.name}, "
        f"horoscopes={composer.store.backend.name}"
    )
    return AstroEngine(charts, composer, settings)
