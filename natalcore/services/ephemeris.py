"""
Ephemeris engines — body longitudes, house cusps, ascendant and midheaven.

EphemerisEngine is the capability; the pipeline does not care which
implementation backs it as long as longitudes are in [0, 360) and speeds
are signed (negative → retrograde).

  SwissEphemerisEngine  — local pyswisseph (tropical, zero network cost)
  RemoteEphemerisEngine — remote astronomy service over HTTP
  ResilientEphemeris    — async wrapper: timeout per call, at most one retry

Every failure surfaces as EphemerisUnavailable; partial data is never returned.
"""
import asyncio
import logging
import math
from abc import ABC, abstractmethod
from typing import Callable, Dict, List, Optional

import swisseph as swe

from natalcore.errors import EphemerisUnavailable
from natalcore.models.chart import BODIES_ORDER, Body, BodyReading, HouseReading
from natalcore.services.astro_api import AstroApiClient
from natalcore.services.chart_assembler import normalise_longitude

logger = logging.getLogger(__name__)

_SWE_BODIES: Dict[Body, int] = {
    Body.SUN:     swe.SUN,
    Body.MOON:    swe.MOON,
    Body.MERCURY: swe.MERCURY,
    Body.VENUS:   swe.VENUS,
    Body.MARS:    swe.MARS,
    Body.JUPITER: swe.JUPITER,
    Body.SATURN:  swe.SATURN,
    Body.URANUS:  swe.URANUS,
    Body.NEPTUNE: swe.NEPTUNE,
    Body.PLUTO:   swe.PLUTO,
}

HOUSE_SYSTEMS = {
    "P": "Placidus",
    "K": "Koch",
    "O": "Porphyrius",
    "R": "Regiomontanus",
    "C": "Campanus",
    "E": "Equal",
    "W": "Whole Sign",
    "B": "Alcabitus",
}


def check_longitude(value, what: str) -> float:
    """Coerce to float and require a finite longitude in [0, 360)."""
    try:
        value = float(value)
    except (TypeError, ValueError, OverflowError):
        raise EphemerisUnavailable(f"{what}: non-numeric longitude {value!r}")
    if not math.isfinite(value) or not 0.0 <= value < 360.0:
        raise EphemerisUnavailable(f"{what}: longitude out of range ({value})")
    return value


def check_speed(value, what: str) -> float:
    try:
        value = float(value)
    except (TypeError, ValueError, OverflowError):
        raise EphemerisUnavailable(f"{what}: non-numeric speed {value!r}")
    if not math.isfinite(value):
        raise EphemerisUnavailable(f"{what}: speed is not finite")
    return value


class EphemerisEngine(ABC):
    name = "abstract"

    @abstractmethod
    def compute_bodies(self, julian_day: float) -> List[BodyReading]:
        """Ten readings in BODIES_ORDER."""

    @abstractmethod
    def compute_houses(self, julian_day: float, lat: float, lon: float,
                       house_system: str = "P") -> HouseReading:
        """Twelve cusps plus ascendant and midheaven."""


# ─────────────────────────────────────────────
# Local Swiss Ephemeris
# ─────────────────────────────────────────────

class SwissEphemerisEngine(EphemerisEngine):
    name = "swisseph"

    def __init__(self, ephe_path: str = ""):
        # Without data files pyswisseph falls back to the built-in Moshier ephemeris
        if ephe_path:
            swe.set_ephe_path(ephe_path)

    def _compute_body(self, julian_day: float, body: Body) -> BodyReading:
        try:
            result = swe.calc_ut(julian_day, _SWE_BODIES[body], swe.FLG_SWIEPH | swe.FLG_SPEED)
        except swe.Error as e:
            raise EphemerisUnavailable(f"swisseph failed for {body.value}: {e}") from e
        longitude = normalise_longitude(result[0][0])   # degrees 0–360
        long_speed = result[0][3]             # °/day; < 0 → retrograde
        return BodyReading(
            body=body,
            longitude=check_longitude(longitude, body.value),
            speed=check_speed(long_speed, body.value),
        )

    def compute_bodies(self, julian_day: float) -> List[BodyReading]:
        return [self._compute_body(julian_day, body) for body in BODIES_ORDER]

    def compute_houses(self, julian_day: float, lat: float, lon: float,
                       house_system: str = "P") -> HouseReading:
        if house_system not in HOUSE_SYSTEMS:
            raise EphemerisUnavailable(f"Unsupported house system: {house_system}")
        try:
            cusps, ascmc = swe.houses(julian_day, lat, lon, house_system.encode("ascii"))
        except swe.Error as e:
            # Placidus/Koch are undefined near the poles
            raise EphemerisUnavailable(f"swisseph houses failed ({house_system}): {e}") from e
        cusps = list(cusps)[-12:]
        if len(cusps) != 12:
            raise EphemerisUnavailable(f"Expected 12 cusps, got {len(cusps)}")
        return HouseReading(
            cusps=[check_longitude(c, f"house {i + 1}") for i, c in enumerate(cusps)],
            ascendant=check_longitude(ascmc[0], "ascendant"),
            midheaven=check_longitude(ascmc[1], "midheaven"),
            house_system=house_system,
        )


# ─────────────────────────────────────────────
# Remote astronomy service
# ─────────────────────────────────────────────

class RemoteEphemerisEngine(EphemerisEngine):
    name = "remote"

    def __init__(self, client: Optional[AstroApiClient] = None):
        self.client = client or AstroApiClient()

    def compute_bodies(self, julian_day: float) -> List[BodyReading]:
        data = self.client.fetch_planets(julian_day)
        planets_raw = data.get("planets")
        if isinstance(planets_raw, dict):
            planets_raw = list(planets_raw.values())
        if not isinstance(planets_raw, list):
            raise EphemerisUnavailable("planets response missing 'planets' list")

        by_body: Dict[Body, BodyReading] = {}
        for p in planets_raw:
            if not isinstance(p, dict):
                continue
            name = str(p.get("name", p.get("full_name", ""))).strip().title()
            try:
                body = Body(name)
            except ValueError:
                # Extra points (nodes, Chiron, ...) are not part of the chart
                logger.debug(f"Ignoring unknown body '{name}' from remote ephemeris")
                continue
            if "longitude" not in p or "speed" not in p:
                raise EphemerisUnavailable(f"{name}: missing longitude/speed")
            by_body[body] = BodyReading(
                body=body,
                longitude=check_longitude(p["longitude"], name),
                speed=check_speed(p["speed"], name),
            )

        missing = [b.value for b in BODIES_ORDER if b not in by_body]
        if missing:
            raise EphemerisUnavailable(f"planets response missing bodies: {missing}")
        return [by_body[b] for b in BODIES_ORDER]

    def compute_houses(self, julian_day: float, lat: float, lon: float,
                       house_system: str = "P") -> HouseReading:
        data = self.client.fetch_houses(julian_day, lat, lon, house_system)
        cusps = data.get("houses", data.get("cusps"))
        if not isinstance(cusps, list) or len(cusps) != 12:
            raise EphemerisUnavailable("houses response must carry 12 cusps")
        if "ascendant" not in data or "midheaven" not in data:
            raise EphemerisUnavailable("houses response missing ascendant/midheaven")
        return HouseReading(
            cusps=[check_longitude(c, f"house {i + 1}") for i, c in enumerate(cusps)],
            ascendant=check_longitude(data["ascendant"], "ascendant"),
            midheaven=check_longitude(data["midheaven"], "midheaven"),
            house_system=house_system,
        )


# ─────────────────────────────────────────────
# Timeout + single retry
# ─────────────────────────────────────────────

class ResilientEphemeris:
    """
    Async face of an EphemerisEngine used by the chart store.

    Each call runs in a worker thread bounded by `timeout`. A timeout or any
    engine error is retried once at most and then raised as
    EphemerisUnavailable; cancellation is never swallowed.
    """

    def __init__(self, engine: EphemerisEngine, timeout: float = 10.0, max_retries: int = 1):
        self.engine = engine
        self.timeout = timeout
        self.max_retries = max(0, min(max_retries, 1))

    async def _call(self, label: str, fn: Callable, *args):
        attempts = 1 + self.max_retries
        last_error: Optional[EphemerisUnavailable] = None
        for attempt in range(1, attempts + 1):
            try:
                return await asyncio.wait_for(asyncio.to_thread(fn, *args), timeout=self.timeout)
            except asyncio.TimeoutError:
                last_error = EphemerisUnavailable(
                    f"{self.engine.name} {label} timed out after {self.timeout}s"
                )
            except EphemerisUnavailable as e:
                last_error = e
            except Exception as e:
                # A misbehaving backend still ends in the fallback chart
                last_error = EphemerisUnavailable(
                    f"{self.engine.name} {label} failed unexpectedly: {type(e).__name__}: {e}"
                )
            logger.warning(f"Ephemeris {label} attempt {attempt}/{attempts} failed: {last_error}")
        raise last_error

    async def compute_bodies(self, julian_day: float) -> List[BodyReading]:
        return await self._call("bodies", self.engine.compute_bodies, julian_day)

    async def compute_houses(self, julian_day: float, lat: float, lon: float,
                             house_system: str = "P") -> HouseReading:
        return await self._call("houses", self.engine.compute_houses, julian_day, lat, lon, house_system)
