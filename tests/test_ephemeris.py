import asyncio
import threading
from datetime import date, time
from unittest.mock import MagicMock, Mock

import pytest
import requests

from conftest import FakeEphemerisEngine
from natalcore.errors import EphemerisUnavailable
from natalcore.models.chart import BODIES_ORDER, Body, Sign
from natalcore.services.astro_api import AstroApiClient
from natalcore.services.chart_assembler import sign_of
from natalcore.services.ephemeris import (
    RemoteEphemerisEngine,
    ResilientEphemeris,
    SwissEphemerisEngine,
)
from natalcore.services.time_service import to_julian_day


def _planets_payload(**overrides):
    planets = [
        {"name": b.value.lower(), "longitude": 10.0 * i + 1.5, "speed": 1.0}
        for i, b in enumerate(BODIES_ORDER)
    ]
    planets.append({"name": "True Node", "longitude": 5.0, "speed": -0.05})
    for p in planets:
        p.update(overrides.get(p["name"], {}))
    return {"planets": planets}


def _houses_payload():
    return {"houses": [float(30 * i) for i in range(12)], "ascendant": 0.0, "midheaven": 270.0}


class TestRemoteEngine:

    @pytest.fixture
    def client(self):
        return Mock(spec=AstroApiClient)

    def test_parses_bodies_in_chart_order(self, client):
        client.fetch_planets.return_value = _planets_payload(mars={"speed": -0.4})
        readings = RemoteEphemerisEngine(client).compute_bodies(2451545.0)
        assert [r.body for r in readings] == BODIES_ORDER
        assert readings[4].body == Body.MARS
        assert readings[4].speed == -0.4
        client.fetch_planets.assert_called_once_with(2451545.0)

    def test_missing_body_is_unavailable(self, client):
        payload = _planets_payload()
        payload["planets"] = [p for p in payload["planets"] if p["name"] != "pluto"]
        client.fetch_planets.return_value = payload
        with pytest.raises(EphemerisUnavailable, match="Pluto"):
            RemoteEphemerisEngine(client).compute_bodies(2451545.0)

    @pytest.mark.parametrize("bad", [
        {"longitude": 400.0},
        {"longitude": "north"},
        {"speed": None},
        {"longitude": 10 ** 400},
        {"speed": -10 ** 400},
    ])
    def test_malformed_body_is_unavailable(self, client, bad):
        client.fetch_planets.return_value = _planets_payload(venus=bad)
        with pytest.raises(EphemerisUnavailable):
            RemoteEphemerisEngine(client).compute_bodies(2451545.0)

    def test_houses(self, client):
        client.fetch_houses.return_value = _houses_payload()
        reading = RemoteEphemerisEngine(client).compute_houses(2451545.0, 30.0, 31.0, "P")
        assert len(reading.cusps) == 12
        assert reading.midheaven == 270.0
        client.fetch_houses.assert_called_once_with(2451545.0, 30.0, 31.0, "P")

    def test_short_cusp_list_is_unavailable(self, client):
        payload = _houses_payload()
        payload["houses"] = payload["houses"][:11]
        client.fetch_houses.return_value = payload
        with pytest.raises(EphemerisUnavailable):
            RemoteEphemerisEngine(client).compute_houses(2451545.0, 30.0, 31.0)


class TestAstroApiClient:

    def _client(self, session):
        return AstroApiClient(base_url="http://astro.test/", api_key="k", timeout=1.0,
                              cache_ttl=60, session=session)

    def test_unwraps_response_and_memoises(self):
        session = MagicMock()
        session.post.return_value.json.return_value = {"response": {"planets": []}}
        client = self._client(session)

        assert client.fetch_planets(2451545.0) == {"planets": []}
        assert client.fetch_planets(2451545.0) == {"planets": []}
        session.post.assert_called_once()
        args, kwargs = session.post.call_args
        assert args[0] == "http://astro.test/planets"
        assert kwargs["headers"]["X-Api-Key"] == "k"

    def test_http_error_is_unavailable(self):
        session = MagicMock()
        session.post.side_effect = requests.ConnectionError("refused")
        with pytest.raises(EphemerisUnavailable):
            self._client(session).fetch_houses(2451545.0, 1.0, 2.0)

    def test_invalid_json_is_unavailable(self):
        session = MagicMock()
        session.post.return_value.json.side_effect = ValueError("no json")
        with pytest.raises(EphemerisUnavailable):
            self._client(session).fetch_planets(2451545.0)

    def test_cache_is_safe_across_threads(self):
        session = MagicMock()
        session.post.return_value.json.return_value = {"planets": []}
        client = AstroApiClient(base_url="http://astro.test/", timeout=1.0, cache_ttl=0.001, session=session)
        errors = []

        def hammer(offset):
            try:
                for i in range(200):
                    assert client.fetch_planets(2451545.0 + (i + offset) % 16) == {"planets": []}
            except Exception as e:
                errors.append(e)

        threads = [threading.Thread(target=hammer, args=(n,)) for n in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        assert errors == []


class TestResilientEphemeris:

    @pytest.mark.asyncio
    async def test_single_retry_recovers(self):
        engine = FakeEphemerisEngine(fail_times=1)
        readings = await ResilientEphemeris(engine, timeout=2.0, max_retries=1).compute_bodies(2451545.0)
        assert len(readings) == 10
        assert engine.body_calls == 2

    @pytest.mark.asyncio
    async def test_gives_up_after_one_retry(self):
        engine = FakeEphemerisEngine(fail_forever=True)
        with pytest.raises(EphemerisUnavailable):
            await ResilientEphemeris(engine, timeout=2.0, max_retries=1).compute_bodies(2451545.0)
        assert engine.body_calls == 2

    @pytest.mark.asyncio
    async def test_retries_are_capped_at_one(self):
        engine = FakeEphemerisEngine(fail_forever=True)
        with pytest.raises(EphemerisUnavailable):
            await ResilientEphemeris(engine, timeout=2.0, max_retries=5).compute_houses(2451545.0, 0.0, 0.0)
        assert engine.house_calls == 2

    @pytest.mark.asyncio
    async def test_unexpected_engine_error_becomes_unavailable(self, caplog):
        engine = FakeEphemerisEngine()
        engine.compute_bodies = Mock(side_effect=KeyError("sun"))
        with caplog.at_level("WARNING", logger="natalcore.services.ephemeris"):
            with pytest.raises(EphemerisUnavailable, match="KeyError"):
                await ResilientEphemeris(engine, timeout=2.0, max_retries=1).compute_bodies(2451545.0)
        assert engine.compute_bodies.call_count == 2
        assert "attempt 2/2 failed" in caplog.text

    @pytest.mark.asyncio
    async def test_timeout_becomes_unavailable(self):
        gate = threading.Event()
        engine = FakeEphemerisEngine(block=gate)
        try:
            with pytest.raises(EphemerisUnavailable, match="timed out"):
                await ResilientEphemeris(engine, timeout=0.05, max_retries=0).compute_bodies(2451545.0)
        finally:
            gate.set()

    @pytest.mark.asyncio
    async def test_cancellation_propagates(self):
        gate = threading.Event()
        engine = FakeEphemerisEngine(block=gate)
        task = asyncio.create_task(ResilientEphemeris(engine, timeout=5.0).compute_bodies(2451545.0))
        await asyncio.sleep(0.05)
        task.cancel()
        try:
            with pytest.raises(asyncio.CancelledError):
                await task
        finally:
            gate.set()
        assert engine.body_calls == 1


class TestSwissEphemeris:

    def test_sun_sign_for_known_birth(self):
        jd = to_julian_day(date(1992, 9, 24), time(9, 10), 31.2357)
        readings = SwissEphemerisEngine().compute_bodies(jd)
        sun = readings[0]
        assert sun.body == Body.SUN
        # Equinox was Sept 22, so the Sun sits in early Libra
        assert sign_of(sun.longitude) == Sign.LIBRA
        assert 180.0 < sun.longitude < 183.0
        assert sun.speed > 0

    def test_reproducible(self):
        engine = SwissEphemerisEngine()
        assert engine.compute_bodies(2451545.0) == engine.compute_bodies(2451545.0)

    def test_houses(self):
        reading = SwissEphemerisEngine().compute_houses(2451545.0, 30.0444, 31.2357, "P")
        assert len(reading.cusps) == 12
        assert reading.cusps[0] == pytest.approx(reading.ascendant)
        assert all(0.0 <= c < 360.0 for c in reading.cusps)

    def test_unknown_house_system(self):
        with pytest.raises(EphemerisUnavailable):
            SwissEphemerisEngine().compute_houses(2451545.0, 0.0, 0.0, "Z")
