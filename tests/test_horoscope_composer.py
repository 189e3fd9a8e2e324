import asyncio
from datetime import timedelta

import pytest

from conftest import FIXED_NOW
from natalcore.db.backends import MemoryBackend
from natalcore.models.chart import Body
from natalcore.models.horoscope import HoroscopeCategory, HoroscopeResult, StyleContext, ValidityPolicy
from natalcore.services.horoscope_service import (
    HoroscopeComposer,
    lucky_body,
    lucky_color,
    lucky_number,
    render_horoscope,
)
from natalcore.services.horoscope_store import HoroscopeStore, horoscope_key
from templates import horoscope_templates as tpl


class Clock:
    def __init__(self, now):
        self.now = now

    def __call__(self):
        return self.now


@pytest.fixture
def clock():
    return Clock(FIXED_NOW)


@pytest.fixture
def backend():
    return MemoryBackend()


@pytest.fixture
def composer(backend, clock):
    return HoroscopeComposer(HoroscopeStore(backend), clock=clock)


class TestCompose:

    @pytest.mark.asyncio
    async def test_same_result_within_window(self, composer, clock, sample_chart):
        first = await composer.compose("u1", sample_chart, HoroscopeCategory.LOVE)
        clock.now = FIXED_NOW + timedelta(days=6, hours=23)
        second = await composer.compose("u1", sample_chart, HoroscopeCategory.LOVE)
        assert first == second
        assert second.valid_until == FIXED_NOW + timedelta(days=7)

    @pytest.mark.asyncio
    async def test_new_result_after_expiry(self, composer, clock, sample_chart):
        first = await composer.compose("u1", sample_chart, HoroscopeCategory.DAILY)
        clock.now = FIXED_NOW + timedelta(days=1)
        second = await composer.compose("u1", sample_chart, HoroscopeCategory.DAILY)
        assert second.valid_from == clock.now
        assert second.valid_until == clock.now + timedelta(days=1)
        assert second.valid_from >= first.valid_until

    @pytest.mark.asyncio
    async def test_categories_are_stored_separately(self, composer, backend, sample_chart):
        for category in HoroscopeCategory:
            await composer.compose("u1", sample_chart, category)
        assert len(backend) == 4
        assert await backend.get(horoscope_key("u1", HoroscopeCategory.HEALTH)) is not None

    @pytest.mark.asyncio
    async def test_top_tier_gets_two_year_window(self, composer, sample_chart):
        result = await composer.compose("u1", sample_chart, HoroscopeCategory.CAREER, StyleContext(tier=3))
        assert result.valid_until - result.valid_from == timedelta(days=730)

    @pytest.mark.asyncio
    async def test_daily_window_ignores_tier(self, composer, sample_chart):
        result = await composer.compose("u1", sample_chart, HoroscopeCategory.DAILY, StyleContext(tier=3))
        assert result.valid_until - result.valid_from == timedelta(days=1)

    @pytest.mark.asyncio
    async def test_caller_policy_is_used(self, composer, sample_chart):
        style = StyleContext(validity=ValidityPolicy(default_days=3))
        result = await composer.compose("u1", sample_chart, "health", style)
        assert result.category == HoroscopeCategory.HEALTH
        assert result.valid_until - result.valid_from == timedelta(days=3)

    @pytest.mark.asyncio
    async def test_concurrent_calls_store_one_result(self, composer, sample_chart):
        results = await asyncio.gather(
            *[composer.compose("u1", sample_chart, HoroscopeCategory.LOVE) for _ in range(5)]
        )
        assert all(r == results[0] for r in results)
        assert len(composer.store.locks) == 0

    @pytest.mark.asyncio
    async def test_stored_result_is_reloaded(self, backend, clock, sample_chart):
        first = await HoroscopeComposer(HoroscopeStore(backend), clock=clock).compose(
            "u1", sample_chart, HoroscopeCategory.LOVE,
        )
        # A fresh composer over the same backend sees the stored record
        again = await HoroscopeComposer(HoroscopeStore(backend), clock=clock).compose(
            "u1", sample_chart, HoroscopeCategory.LOVE,
        )
        assert again == first


class TestRender:

    def test_deterministic(self, sample_chart):
        a = render_horoscope("u1", sample_chart, HoroscopeCategory.CAREER, StyleContext(), FIXED_NOW)
        b = render_horoscope("u1", sample_chart, HoroscopeCategory.CAREER, StyleContext(), FIXED_NOW)
        assert a == b

    def test_daily_mentions_ascendant_only_with_time(self, sample_chart, sample_chart_no_time):
        with_time = render_horoscope("u1", sample_chart, HoroscopeCategory.DAILY, StyleContext(), FIXED_NOW)
        no_time = render_horoscope("u1", sample_chart_no_time, HoroscopeCategory.DAILY, StyleContext(), FIXED_NOW)
        assert "Cancer" in with_time.content
        assert tpl.DAILY_NO_TIME.strip() in no_time.content

    def test_degraded_chart_is_flagged(self, sample_chart):
        degraded = sample_chart.model_copy(update={"degraded": True})
        result = render_horoscope("u1", degraded, HoroscopeCategory.LOVE, StyleContext(), FIXED_NOW)
        assert result.degraded_chart
        assert result.content.endswith(tpl.DEGRADED_NOTE)

    def test_display_name_in_title(self, sample_chart):
        result = render_horoscope(
            "u1", sample_chart, HoroscopeCategory.LOVE, StyleContext(display_name="Mona"), FIXED_NOW,
        )
        assert "Mona" in result.title

    def test_unknown_locale_renders_english(self, sample_chart):
        en = render_horoscope("u1", sample_chart, HoroscopeCategory.HEALTH, StyleContext(), FIXED_NOW)
        ar = render_horoscope("u1", sample_chart, HoroscopeCategory.HEALTH, StyleContext(locale="ar"), FIXED_NOW)
        assert en.content == ar.content

    def test_result_round_trips_through_json(self, sample_chart):
        result = render_horoscope("u1", sample_chart, HoroscopeCategory.LOVE, StyleContext(), FIXED_NOW)
        assert HoroscopeResult.model_validate(result.model_dump(mode="json")) == result


class TestLucky:

    def test_lucky_number_from_chart(self, sample_chart):
        # Sun 0.0° Libra, Moon 5.0° Libra
        assert lucky_number(sample_chart, HoroscopeCategory.DAILY) == 6
        assert lucky_number(sample_chart, HoroscopeCategory.LOVE) == 13
        for category in HoroscopeCategory:
            assert 1 <= lucky_number(sample_chart, category) <= 40

    def test_lucky_body_from_julian_day(self, sample_chart):
        # floor(2448889.795178) % 5 == 4
        assert lucky_body(sample_chart, HoroscopeCategory.DAILY) == Body.MOON
        assert lucky_body(sample_chart, HoroscopeCategory.LOVE) == Body.JUPITER

    def test_lucky_color_from_sun_sign(self, sample_chart):
        assert lucky_color(sample_chart) == "pink"

    def test_same_chart_same_lucky_attributes(self, sample_chart):
        a = render_horoscope("u1", sample_chart, HoroscopeCategory.DAILY, StyleContext(), FIXED_NOW)
        b = render_horoscope("u2", sample_chart, HoroscopeCategory.DAILY, StyleContext(),
                             FIXED_NOW + timedelta(days=30))
        assert (a.lucky_number, a.lucky_body, a.lucky_color) == (b.lucky_number, b.lucky_body, b.lucky_color)
