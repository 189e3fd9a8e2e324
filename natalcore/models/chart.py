"""
Pydantic models for natal (birth chart) data.
"""
import datetime as dt
from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator


class Body(str, Enum):
    SUN = "Sun"
    MOON = "Moon"
    MERCURY = "Mercury"
    VENUS = "Venus"
    MARS = "Mars"
    JUPITER = "Jupiter"
    SATURN = "Saturn"
    URANUS = "Uranus"
    NEPTUNE = "Neptune"
    PLUTO = "Pluto"


class Sign(str, Enum):
    ARIES = "Aries"
    TAURUS = "Taurus"
    GEMINI = "Gemini"
    CANCER = "Cancer"
    LEO = "Leo"
    VIRGO = "Virgo"
    LIBRA = "Libra"
    SCORPIO = "Scorpio"
    SAGITTARIUS = "Sagittarius"
    CAPRICORN = "Capricorn"
    AQUARIUS = "Aquarius"
    PISCES = "Pisces"


class AspectType(str, Enum):
    CONJUNCTION = "conjunction"
    SEXTILE = "sextile"
    SQUARE = "square"
    TRINE = "trine"
    OPPOSITION = "opposition"


# Stable chart order, every Chart.planets list follows it
BODIES_ORDER: List[Body] = list(Body)
SIGNS_ORDER: List[Sign] = list(Sign)


class BirthQuery(BaseModel):
    """
    Immutable birth details as supplied by the caller.

    `time=None` means the birth time is unknown, not midnight.
    """
    model_config = ConfigDict(frozen=True)

    date: dt.date
    time: Optional[dt.time] = None
    place: str = ""

    @property
    def has_time(self) -> bool:
        return self.time is not None

    @property
    def time_label(self) -> str:
        """Birth time as "HH:MM", or "" when unknown."""
        return self.time.strftime("%H:%M") if self.time is not None else ""

    @property
    def fingerprint(self) -> str:
        """Identity of the birth data that produced a chart."""
        return f"{self.date.isoformat()}|{self.time_label}|{self.place.strip().lower()}"

    @classmethod
    def parse(cls, dob: str, tob: Optional[str], pob: str) -> "BirthQuery":
        """Build a query from raw form strings (raises InvalidBirthData)."""
        from natalcore.services.time_service import parse_birth_date, parse_birth_time
        return cls(date=parse_birth_date(dob), time=parse_birth_time(tob), place=pob or "")


class GeoCoordinates(BaseModel):
    model_config = ConfigDict(frozen=True)

    latitude: float
    longitude: float
    label: str = ""
    resolved: bool = True   # False → default location was substituted


class SignPosition(BaseModel):
    """A single zodiac point (ascendant, midheaven)."""
    model_config = ConfigDict(frozen=True)

    sign: Sign
    degree_in_sign: float = Field(ge=0.0, lt=30.0)
    longitude: float = Field(ge=0.0, lt=360.0)


class PlanetPosition(BaseModel):
    model_config = ConfigDict(frozen=True)

    body: Body
    sign: Sign
    degree_in_sign: float = Field(ge=0.0, lt=30.0)
    longitude: float = Field(ge=0.0, lt=360.0)
    retrograde: bool = False


class HouseCusp(BaseModel):
    model_config = ConfigDict(frozen=True)

    house_number: int = Field(ge=1, le=12)
    sign: Sign
    degree: float = Field(ge=0.0, lt=30.0)


class Aspect(BaseModel):
    model_config = ConfigDict(frozen=True)

    body_a: Body
    body_b: Body
    type: AspectType
    orb: float = Field(ge=0.0)


class Chart(BaseModel):
    """
    Computed natal chart.
    One per user; replaced wholesale whenever the birth details change.
    """
    model_config = ConfigDict(frozen=True)

    julian_day: float
    coordinates: GeoCoordinates

    planets: List[PlanetPosition]

    # Angular data, only present when the birth time is known
    houses: Optional[List[HouseCusp]] = None
    ascendant: Optional[SignPosition] = None
    midheaven: Optional[SignPosition] = None

    aspects: List[Aspect] = Field(default_factory=list)

    has_birth_time: bool
    degraded: bool = False     # True → synthesized by the fallback, not computed
    computed_at: datetime

    @model_validator(mode="after")
    def _check_invariants(self) -> "Chart":
        if [p.body for p in self.planets] != BODIES_ORDER:
            raise ValueError("planets must list all ten bodies in chart order")
        if not self.has_birth_time:
            if self.houses is not None or self.ascendant is not None or self.midheaven is not None:
                raise ValueError("houses/ascendant/midheaven require a known birth time")
        elif self.houses is not None and [h.house_number for h in self.houses] != list(range(1, 13)):
            raise ValueError("houses must be numbered 1..12 in order")
        return self

    def planet(self, body: Body) -> PlanetPosition:
        return self.planets[BODIES_ORDER.index(body)]


# ── Raw ephemeris output ─────────────────────────────────────────────

class BodyReading(BaseModel):
    """Raw ecliptic longitude (0–360) and signed daily speed for one body."""
    body: Body
    longitude: float
    speed: float


class HouseReading(BaseModel):
    cusps: List[float]          # 12 cusp longitudes, house 1 first
    ascendant: float
    midheaven: float
    house_system: str = "P"


class ChartRecord(BaseModel):
    """Stored form of a chart: the chart plus the birth data that produced it."""
    user_id: str
    fingerprint: str
    chart: Chart
