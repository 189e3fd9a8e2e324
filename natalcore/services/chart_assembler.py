"""
Chart assembly: raw longitudes → signs, degrees, retrograde flags, houses,
angles and aspects.

Pure functions only — no I/O, no clock, no randomness. The caller supplies
`computed_at`, so identical inputs always give an identical Chart.
"""
from datetime import date, datetime
from itertools import combinations
from typing import Dict, List, Optional, Tuple

from natalcore.models.chart import (
    SIGNS_ORDER,
    Aspect,
    AspectType,
    BodyReading,
    Chart,
    GeoCoordinates,
    HouseCusp,
    HouseReading,
    PlanetPosition,
    Sign,
    SignPosition,
)

# Priority order matters: the first aspect whose orb fits is recorded.
# (type, exact angle, allowed orb in degrees)
ASPECT_DEFINITIONS: List[Tuple[AspectType, float, float]] = [
    (AspectType.CONJUNCTION, 0.0, 8.0),
    (AspectType.SEXTILE, 60.0, 6.0),
    (AspectType.SQUARE, 90.0, 7.0),
    (AspectType.TRINE, 120.0, 8.0),
    (AspectType.OPPOSITION, 180.0, 8.0),
]

ASPECT_ORBS: Dict[AspectType, float] = {t: orb for t, _, orb in ASPECT_DEFINITIONS}


# ─────────────────────────────────────────────
# Longitude helpers
# ─────────────────────────────────────────────

def normalise_longitude(longitude: float) -> float:
    lon = longitude % 360.0
    # -1e-15 % 360 == 360.0 in floating point
    return 0.0 if lon >= 360.0 else lon


def sign_of(longitude: float) -> Sign:
    return SIGNS_ORDER[int(normalise_longitude(longitude) // 30) % 12]


def degree_in_sign(longitude: float) -> float:
    deg = normalise_longitude(longitude) % 30.0
    return 0.0 if deg >= 30.0 else deg


def sign_position(longitude: float) -> SignPosition:
    lon = normalise_longitude(longitude)
    return SignPosition(sign=sign_of(lon), degree_in_sign=degree_in_sign(lon), longitude=lon)


def separation(lon_a: float, lon_b: float) -> float:
    """Shortest arc between two longitudes, in [0, 180]."""
    diff = abs(normalise_longitude(lon_a) - normalise_longitude(lon_b)) % 360.0
    if diff > 180.0:
        diff = 360.0 - diff
    return diff


# ─────────────────────────────────────────────
# Chart parts
# ─────────────────────────────────────────────

def build_planets(bodies: List[BodyReading]) -> List[PlanetPosition]:
    planets = []
    for reading in bodies:
        lon = normalise_longitude(reading.longitude)
        planets.append(PlanetPosition(
            body=reading.body,
            sign=sign_of(lon),
            degree_in_sign=degree_in_sign(lon),
            longitude=lon,
            retrograde=reading.speed < 0,
        ))
    return planets


def build_houses(houses: HouseReading) -> List[HouseCusp]:
    return [
        HouseCusp(house_number=i + 1, sign=sign_of(cusp), degree=degree_in_sign(cusp))
        for i, cusp in enumerate(houses.cusps)
    ]


def match_aspect(sep: float) -> Optional[Tuple[AspectType, float]]:
    """First aspect (in priority order) whose orb covers `sep`; None if none does."""
    for aspect_type, angle, orb in ASPECT_DEFINITIONS:
        offset = abs(sep - angle)
        if offset <= orb:
            return aspect_type, offset
    return None


def compute_aspects(planets: List[PlanetPosition]) -> List[Aspect]:
    """One entry at most per unordered pair of bodies."""
    aspects = []
    for a, b in combinations(planets, 2):
        match = match_aspect(separation(a.longitude, b.longitude))
        if match is None:
            continue
        aspect_type, offset = match
        aspects.append(Aspect(
            body_a=a.body,
            body_b=b.body,
            type=aspect_type,
            orb=round(offset, 2),
        ))
    return aspects


# ─────────────────────────────────────────────
# Public API
# ─────────────────────────────────────────────

def assemble(
    bodies: List[BodyReading],
    houses: Optional[HouseReading],
    julian_day: float,
    coordinates: GeoCoordinates,
    has_birth_time: bool,
    computed_at: datetime,
    degraded: bool = False,
) -> Chart:
    """
    Build a Chart from raw ephemeris output.

    House cusps, ascendant and midheaven are only filled in when the birth
    time is known; otherwise they stay None even if `houses` was supplied.
    """
    planets = build_planets(bodies)

    house_cusps = ascendant = midheaven = None
    if has_birth_time and houses is not None:
        house_cusps = build_houses(houses)
        ascendant = sign_position(houses.ascendant)
        midheaven = sign_position(houses.midheaven)

    return Chart(
        julian_day=julian_day,
        coordinates=coordinates,
        planets=planets,
        houses=house_cusps,
        ascendant=ascendant,
        midheaven=midheaven,
        aspects=compute_aspects(planets),
        has_birth_time=has_birth_time,
        degraded=degraded,
        computed_at=computed_at,
    )


# Tropical sun-sign boundaries by calendar date: (month, first day, sign)
_SUN_SIGN_STARTS: List[Tuple[int, int, Sign]] = [
    (1, 20, Sign.AQUARIUS), (2, 19, Sign.PISCES), (3, 21, Sign.ARIES),
    (4, 20, Sign.TAURUS), (5, 21, Sign.GEMINI), (6, 21, Sign.CANCER),
    (7, 23, Sign.LEO), (8, 23, Sign.VIRGO), (9, 23, Sign.LIBRA),
    (10, 23, Sign.SCORPIO), (11, 22, Sign.SAGITTARIUS), (12, 22, Sign.CAPRICORN),
]


def sun_sign_for_date(birth_date: date) -> Sign:
    """Popular sun sign from the calendar date alone (no ephemeris needed)."""
    sign = Sign.CAPRICORN
    for month, day, start_sign in _SUN_SIGN_STARTS:
        if (birth_date.month, birth_date.day) >= (month, day):
            sign = start_sign
    return sign
