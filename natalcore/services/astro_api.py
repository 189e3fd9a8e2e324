"""
Remote astronomy service client.
Only sync methods used here; the async pipeline runs them in worker threads.

Endpoints (JSON over HTTP POST):
  /planets  {julianDay}                             → {planets: [{name, longitude, speed}, ...]}
  /houses   {julianDay, lat, lon, houseSystem}      → {houses: [12 floats], ascendant, midheaven}

Either shape may be wrapped in {"response": {...}}.
"""
import logging
import threading
from typing import Dict

import requests
from cachetools import TTLCache

from config import get_settings
from natalcore.errors import EphemerisUnavailable

logger = logging.getLogger(__name__)


class AstroApiClient:
    """Astronomy service client (sync only)"""

    def __init__(self, base_url: str = None, api_key: str = None, timeout: float = None,
                 cache_ttl: int = None, session: requests.Session = None):
        settings = get_settings()
        self.base_url = (base_url or settings.EPHEMERIS_API_URL).rstrip("/")
        self.api_key = api_key if api_key is not None else settings.EPHEMERIS_API_KEY
        self.timeout = timeout or settings.EPHEMERIS_TIMEOUT_SECONDS
        self.session = session or requests.Session()
        # Identical payloads (same JD / coordinates) are served from memory
        self._cache: TTLCache = TTLCache(maxsize=1000, ttl=cache_ttl or settings.EPHEMERIS_CACHE_TTL)
        # Shared by every worker thread the async pipeline starts
        self._cache_lock = threading.Lock()

    def _headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json", "Accept": "application/json"}
        if self.api_key:
            headers["X-Api-Key"] = self.api_key
        return headers

    def _fetch(self, endpoint: str, payload: Dict) -> Dict:
        cache_key = f"{endpoint}:{sorted(payload.items())}"
        with self._cache_lock:
            cached = self._cache.get(cache_key)
        if cached is not None:
            return cached

        url = f"{self.base_url}/{endpoint}"
        try:
            response = self.session.post(url, json=payload, headers=self._headers(), timeout=self.timeout)
            response.raise_for_status()
            data = response.json()
        except requests.RequestException as e:
            raise EphemerisUnavailable(f"{endpoint} request failed: {e}") from e
        except ValueError as e:
            raise EphemerisUnavailable(f"{endpoint} returned invalid JSON: {e}") from e

        if not isinstance(data, dict):
            raise EphemerisUnavailable(f"{endpoint} returned {type(data).__name__}, expected object")
        data = data.get("response", data)
        if not isinstance(data, dict):
            raise EphemerisUnavailable(f"{endpoint} response payload is not an object")

        with self._cache_lock:
            self._cache[cache_key] = data
        return data

    def fetch_planets(self, julian_day: float) -> Dict:
        """Fetch body longitudes and speeds for a Julian Day."""
        return self._fetch("planets", {"julianDay": julian_day})

    def fetch_houses(self, julian_day: float, lat: float, lon: float, house_system: str = "P") -> Dict:
        """Fetch house cusps, ascendant and midheaven."""
        return self._fetch(
            "houses",
            {"julianDay": julian_day, "lat": lat, "lon": lon, "houseSystem": house_system},
        )
