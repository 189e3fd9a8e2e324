import threading
from datetime import datetime, timezone
from typing import List

import pytest

from natalcore.db.backends import MemoryBackend
from natalcore.errors import EphemerisUnavailable
from natalcore.models.chart import BODIES_ORDER, BodyReading, GeoCoordinates, HouseReading
from natalcore.services.chart_assembler import assemble
from natalcore.services.ephemeris import EphemerisEngine, ResilientEphemeris
from natalcore.services.geo_service import clear_geo_cache

FIXED_NOW = datetime(2024, 3, 1, 8, 0, tzinfo=timezone.utc)

CAIRO = GeoCoordinates(latitude=30.0444, longitude=31.2357, label="Cairo")

# Sun 0° Libra, Moon 5° Libra (conjunction), Mars retrograde, the rest spread out
SAMPLE_LONGITUDES = [180.0, 185.0, 200.0, 150.0, 95.0, 60.0, 300.0, 20.0, 350.0, 250.0]
SAMPLE_SPEEDS = [0.98, 13.1, 1.2, 1.1, -0.3, 0.1, 0.05, -0.02, 0.01, 0.02]


def sample_bodies() -> List[BodyReading]:
    return [
        BodyReading(body=b, longitude=lon, speed=speed)
        for b, lon, speed in zip(BODIES_ORDER, SAMPLE_LONGITUDES, SAMPLE_SPEEDS)
    ]


def sample_houses() -> HouseReading:
    asc = 100.0
    return HouseReading(
        cusps=[(asc + 30.0 * i) % 360.0 for i in range(12)],
        ascendant=asc,
        midheaven=10.0,
    )


class FakeEphemerisEngine(EphemerisEngine):
    """Returns the sample readings; counts calls; can be told to fail."""
    name = "fake"

    def __init__(self, fail_times: int = 0, fail_forever: bool = False, block: threading.Event = None):
        self.fail_times = fail_times
        self.fail_forever = fail_forever
        self.block = block
        self.body_calls = 0
        self.house_calls = 0

    def _maybe_fail(self, calls: int):
        if self.block is not None:
            self.block.wait(5)
        if self.fail_forever or calls <= self.fail_times:
            raise EphemerisUnavailable("fake outage")

    def compute_bodies(self, julian_day: float) -> List[BodyReading]:
        self.body_calls += 1
        self._maybe_fail(self.body_calls)
        return sample_bodies()

    def compute_houses(self, julian_day, lat, lon, house_system="P") -> HouseReading:
        self.house_calls += 1
        self._maybe_fail(self.house_calls)
        return sample_houses()


@pytest.fixture(autouse=True)
def _fresh_geo_cache():
    clear_geo_cache()
    yield
    clear_geo_cache()


@pytest.fixture
def fixed_clock():
    return lambda: FIXED_NOW


@pytest.fixture
def fake_engine():
    return FakeEphemerisEngine()


@pytest.fixture
def ephemeris(fake_engine):
    return ResilientEphemeris(fake_engine, timeout=2.0, max_retries=1)


@pytest.fixture
def memory_backend():
    return MemoryBackend()


@pytest.fixture
def sample_chart():
    return assemble(
        bodies=sample_bodies(),
        houses=sample_houses(),
        julian_day=2448889.795178,
        coordinates=CAIRO,
        has_birth_time=True,
        computed_at=FIXED_NOW,
    )


@pytest.fixture
def sample_chart_no_time():
    return assemble(
        bodies=sample_bodies(),
        houses=None,
        julian_day=2448889.9,
        coordinates=CAIRO,
        has_birth_time=False,
        computed_at=FIXED_NOW,
    )
