"""
Deterministic fallback chart.

Used only when the ephemeris is unavailable. Positions are not
astronomically meaningful, but the same birth details always give the same
chart, and the result passes through the normal assembler so every chart
invariant still holds. Charts built here carry degraded=True.

The Sun keeps its calendar sun sign; everything else is drawn from a
seeded generator. Seed: sum of the Unicode code points of date.isoformat(), "HH:MM" (empty
when the time is unknown) and the raw place string.
"""
import logging
import random
from datetime import datetime, timezone
from typing import List, Optional

from natalcore.models.chart import (
    BODIES_ORDER,
    Body,
    BirthQuery,
    BodyReading,
    Chart,
    GeoCoordinates,
    HouseReading,
    SIGNS_ORDER,
    Sign,
)
from natalcore.services.chart_assembler import assemble, normalise_longitude, sun_sign_for_date
from natalcore.services.geo_service import resolve_place
from natalcore.services.time_service import to_julian_day

logger = logging.getLogger(__name__)

# Luminaries never station retrograde
_NEVER_RETROGRADE = {Body.SUN, Body.MOON}
RETROGRADE_CHANCE = 0.2


def birth_seed(query: BirthQuery) -> int:
    text = f"{query.date.isoformat()}{query.time_label}{query.place}"
    return sum(ord(ch) for ch in text)


def _synth_bodies(rng: random.Random, sun_sign: Sign) -> List[BodyReading]:
    readings = []
    for body in BODIES_ORDER:
        sign_idx = rng.randrange(12)
        if body == Body.SUN:
            # The calendar date already fixes the Sun's sign
            sign_idx = SIGNS_ORDER.index(sun_sign)
        degree = rng.uniform(0.0, 29.99)
        retrograde = body not in _NEVER_RETROGRADE and rng.random() < RETROGRADE_CHANCE
        readings.append(BodyReading(
            body=body,
            longitude=normalise_longitude(sign_idx * 30.0 + degree),
            speed=-1.0 if retrograde else 1.0,
        ))
    return readings


def _synth_houses(rng: random.Random) -> HouseReading:
    """Equal houses from a seeded ascendant; MC sits 270° along from the ASC."""
    ascendant = normalise_longitude(rng.randrange(12) * 30.0 + rng.uniform(0.0, 29.99))
    cusps = [normalise_longitude(ascendant + 30.0 * i) for i in range(12)]
    return HouseReading(
        cusps=cusps,
        ascendant=ascendant,
        midheaven=normalise_longitude(ascendant + 270.0),
        house_system="E",
    )


def synthesize(
    query: BirthQuery,
    coordinates: Optional[GeoCoordinates] = None,
    computed_at: Optional[datetime] = None,
) -> Chart:
    coordinates = coordinates or resolve_place(query.place)
    seed = birth_seed(query)
    rng = random.Random(seed)

    bodies = _synth_bodies(rng, sun_sign_for_date(query.date))
    # Angles are drawn last from the same stream
    houses = _synth_houses(rng) if query.has_time else None

    chart = assemble(
        bodies=bodies,
        houses=houses,
        julian_day=to_julian_day(query.date, query.time, coordinates.longitude),
        coordinates=coordinates,
        has_birth_time=query.has_time,
        computed_at=computed_at or datetime.now(timezone.utc),
        degraded=True,
    )
    logger.warning(
        f"Synthesized fallback chart (seed={seed}) for {query.date.isoformat()} "
        f"{query.time_label or 'time unknown'} @ '{query.place}'"
    )
    return chart
