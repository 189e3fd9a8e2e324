"""
Natal chart service (ChartStore).

Responsibilities:
- Return the stored chart when the birth details are unchanged (no geo, no ephemeris)
- Otherwise resolve place → Julian Day → ephemeris → assembled chart
- Substitute the deterministic fallback chart when the ephemeris is unavailable
- Serialise computation per user; different users never wait on each other
- Replace the stored chart wholesale; a cancelled computation stores nothing
"""
import logging
from datetime import datetime, timezone
from typing import Callable, Optional

from pydantic import ValidationError

from natalcore.db.backends import RecordBackend
from natalcore.errors import EphemerisUnavailable
from natalcore.models.chart import Body, BirthQuery, Chart, ChartRecord
from natalcore.services.chart_assembler import assemble
from natalcore.services.ephemeris import ResilientEphemeris
from natalcore.services.fallback_service import synthesize
from natalcore.services.geo_service import resolve_place
from natalcore.services.locks import KeyedLocks
from natalcore.services.time_service import to_julian_day

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def chart_key(user_id: str) -> str:
    return f"chart:{user_id}"


def _log_chart_summary(user_id: str, chart: Chart) -> None:
    sun = chart.planet(Body.SUN)
    moon = chart.planet(Body.MOON)
    ascendant = chart.ascendant.sign.value if chart.ascendant else "n/a (no birth time)"
    logger.info(
        f"Chart for {user_id}: JD={chart.julian_day:.6f}, "
        f"Sun={sun.sign.value} {sun.degree_in_sign:.2f}°, "
        f"Moon={moon.sign.value} {moon.degree_in_sign:.2f}°, "
        f"ASC={ascendant}, aspects={len(chart.aspects)}, degraded={chart.degraded}"
    )


class ChartStore:

    def __init__(
        self,
        backend: RecordBackend,
        ephemeris: ResilientEphemeris,
        house_system: str = "P",
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.backend = backend
        self.ephemeris = ephemeris
        self.house_system = house_system
        self.clock = clock
        self._locks = KeyedLocks()

    async def _load(self, user_id: str) -> Optional[ChartRecord]:
        doc = await self.backend.get(chart_key(user_id))
        if doc is None:
            return None
        try:
            return ChartRecord.model_validate(doc)
        except ValidationError as e:
            logger.warning(f"Stored chart for {user_id} is unreadable, recomputing: {e}")
            return None

    async def get(self, user_id: str) -> Optional[Chart]:
        """Stored chart for a user, without computing anything."""
        record = await self._load(user_id)
        return record.chart if record else None

    async def invalidate(self, user_id: str) -> None:
        async with self._locks.hold(user_id):
            await self.backend.delete(chart_key(user_id))

    async def compute_chart(self, query: BirthQuery) -> Chart:
        """
        Full computation, no caching.

        GeoResolver and the ephemeris never make this fail: unknown places use
        the default location and an unavailable ephemeris yields a degraded chart.
        """
        coords = resolve_place(query.place)
        julian_day = to_julian_day(query.date, query.time, coords.longitude)
        computed_at = self.clock()

        try:
            bodies = await self.ephemeris.compute_bodies(julian_day)
            houses = None
            if query.has_time:
                houses = await self.ephemeris.compute_houses(
                    julian_day, coords.latitude, coords.longitude, self.house_system,
                )
        except EphemerisUnavailable as e:
            logger.warning(f"Ephemeris unavailable ({e}); using fallback chart")
            return synthesize(query, coordinates=coords, computed_at=computed_at)

        return assemble(
            bodies=bodies,
            houses=houses,
            julian_day=julian_day,
            coordinates=coords,
            has_birth_time=query.has_time,
            computed_at=computed_at,
        )

    async def get_or_compute(self, user_id: str, query: BirthQuery) -> Chart:
        """
        Return the cached chart if the birth details match; otherwise compute and cache it.
        Raises StoreUnavailable when the chart cannot be read or persisted.
        """
        async with self._locks.hold(user_id):
            record = await self._load(user_id)
            if record and record.fingerprint == query.fingerprint:
                logger.debug(f"Chart cache HIT for {user_id}")
                return record.chart

            if record:
                logger.info(f"Birth details changed for {user_id}; recomputing chart")
            else:
                logger.info(f"Computing natal chart for user_id={user_id}, pob={query.place!r}")

            chart = await self.compute_chart(query)
            new_record = ChartRecord(user_id=user_id, fingerprint=query.fingerprint, chart=chart)
            await self.backend.put(chart_key(user_id), new_record.model_dump(mode="json"))
            _log_chart_summary(user_id, chart)
            return chart
