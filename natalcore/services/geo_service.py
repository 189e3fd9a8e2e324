"""
Geo service: resolve a birthplace string to latitude/longitude.

Uses a small built-in table of known cities; the first entry whose name
occurs inside the place string wins. Anything else resolves to the default
location (Cairo) so the pipeline can always produce a chart.

Precision note: table entries are city centroids. Houses and angles
computed from them can be off by about one degree of cusp longitude for
every 4 minutes of true-longitude error; body longitudes are unaffected
beyond the timezone approximation.
"""
import logging
from typing import List, Tuple

from cachetools import LRUCache

from natalcore.errors import GeoUnresolved
from natalcore.models.chart import GeoCoordinates

logger = logging.getLogger(__name__)

# (match name, label, latitude, longitude); order is the match priority
KNOWN_PLACES: List[Tuple[str, str, float, float]] = [
    ("القاهرة", "Cairo", 30.0444, 31.2357),
    ("بيروت", "Beirut", 33.8886, 35.4955),
    ("دبي", "Dubai", 25.2048, 55.2708),
    ("الرياض", "Riyadh", 24.7136, 46.6753),
    # "عمان" alone is Amman; the Sultanate (سلطنة عمان) must match first
    ("مسقط", "Muscat", 23.5880, 58.3829),
    ("سلطنة عمان", "Muscat", 23.5880, 58.3829),
    ("عمان", "Amman", 31.9454, 35.9284),
    ("بغداد", "Baghdad", 33.3152, 44.3661),
    ("دمشق", "Damascus", 33.5138, 36.2765),
    ("الجزائر", "Algiers", 36.7372, 3.0864),
    ("طرابلس", "Tripoli", 32.8872, 13.1913),
    ("الخرطوم", "Khartoum", 15.5007, 32.5599),
    ("cairo", "Cairo", 30.0444, 31.2357),
    ("beirut", "Beirut", 33.8886, 35.4955),
    ("dubai", "Dubai", 25.2048, 55.2708),
    ("riyadh", "Riyadh", 24.7136, 46.6753),
    ("muscat", "Muscat", 23.5880, 58.3829),
    ("amman", "Amman", 31.9454, 35.9284),
    ("baghdad", "Baghdad", 33.3152, 44.3661),
    ("damascus", "Damascus", 33.5138, 36.2765),
    ("algiers", "Algiers", 36.7372, 3.0864),
    ("tripoli", "Tripoli", 32.8872, 13.1913),
    ("khartoum", "Khartoum", 15.5007, 32.5599),
]

DEFAULT_LOCATION = GeoCoordinates(
    latitude=30.0444, longitude=31.2357, label="Cairo (default)", resolved=False,
)

# Simple in-process cache to avoid repeated scans for the same place
_geo_cache: LRUCache = LRUCache(maxsize=1024)


def _lookup(place: str) -> GeoCoordinates:
    """Substring match against KNOWN_PLACES; raises GeoUnresolved on no match."""
    needle = place.strip().casefold()
    if not needle:
        raise GeoUnresolved("Empty place of birth")
    for name, label, lat, lon in KNOWN_PLACES:
        if name.casefold() in needle:
            return GeoCoordinates(latitude=lat, longitude=lon, label=label, resolved=True)
    raise GeoUnresolved(f"No known location matches '{place}'")


def resolve_place(place: str) -> GeoCoordinates:
    """
    Convert a place name to coordinates. Never fails.

    Returns DEFAULT_LOCATION (resolved=False) when nothing matches.
    """
    place = place or ""
    key = place.strip().casefold()
    if key in _geo_cache:
        return _geo_cache[key]

    try:
        geo = _lookup(place)
        logger.info(f"Resolved '{place}' → lat={geo.latitude}, lon={geo.longitude} ({geo.label})")
    except GeoUnresolved as e:
        logger.warning(f"{e}; using default location {DEFAULT_LOCATION.label}")
        geo = DEFAULT_LOCATION

    _geo_cache[key] = geo
    return geo


def clear_geo_cache() -> None:
    _geo_cache.clear()
