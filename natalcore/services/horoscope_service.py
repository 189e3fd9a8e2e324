"""
Horoscope composer.

Ties together:
  - Natal chart (from the chart store)
  - Horoscope store (cache-first within the validity window)
  - Template renderer (chart facts → text)

Lucky attributes come from chart data only, never from an unseeded RNG:

  lucky_number = floor((Sun degree + Moon degree + 7 * category_index) mod 40) + 1
  lucky_body   = LUCKY_BODIES[(floor(julian_day) + category_index) mod 5]
  lucky_color  = SIGN_COLOURS[Sun sign]

category_index is the position in (daily, love, career, health).
"""
import logging
import math
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional, Tuple

from natalcore.models.chart import Body, Chart
from natalcore.models.horoscope import (
    CATEGORY_ORDER,
    HoroscopeCategory,
    HoroscopeResult,
    StyleContext,
)
from natalcore.services.horoscope_store import HoroscopeStore, horoscope_key
from templates import horoscope_templates as tpl

logger = logging.getLogger(__name__)

# Bodies read for each category (ascendant is added for daily when known)
CATEGORY_BODIES: Dict[HoroscopeCategory, Tuple[Body, ...]] = {
    HoroscopeCategory.DAILY: (Body.SUN, Body.MOON),
    HoroscopeCategory.LOVE: (Body.VENUS, Body.MARS, Body.MOON),
    HoroscopeCategory.CAREER: (Body.MARS, Body.JUPITER, Body.SATURN),
    HoroscopeCategory.HEALTH: (Body.MERCURY, Body.MOON),
}


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ─────────────────────────────────────────────
# Lucky attributes
# ─────────────────────────────────────────────

def lucky_number(chart: Chart, category: HoroscopeCategory) -> int:
    sun = chart.planet(Body.SUN).degree_in_sign
    moon = chart.planet(Body.MOON).degree_in_sign
    idx = CATEGORY_ORDER.index(category)
    return int(math.floor((sun + moon + 7 * idx) % 40)) + 1


def lucky_body(chart: Chart, category: HoroscopeCategory) -> Body:
    idx = CATEGORY_ORDER.index(category)
    return tpl.LUCKY_BODIES[(int(math.floor(chart.julian_day)) + idx) % len(tpl.LUCKY_BODIES)]


def lucky_color(chart: Chart) -> str:
    return tpl.SIGN_COLOURS[chart.planet(Body.SUN).sign]


# ─────────────────────────────────────────────
# Content
# ─────────────────────────────────────────────

def _facts(chart: Chart, bodies: Tuple[Body, ...]) -> Dict[str, str]:
    facts: Dict[str, str] = {}
    for body in bodies:
        p = chart.planet(body)
        key = p.body.value.lower()
        facts[f"{key}_sign"] = p.sign.value
        facts[f"{key}_trait"] = tpl.trait(p.sign)
    return facts


def _daily(chart: Chart, facts: Dict[str, str]) -> str:
    text = tpl.DAILY_TEMPLATE.format(**facts)
    if chart.has_birth_time and chart.ascendant is not None:
        text += tpl.DAILY_ASCENDANT.format(
            ascendant=chart.ascendant.sign.value,
            ascendant_trait=tpl.trait(chart.ascendant.sign),
        )
    else:
        text += tpl.DAILY_NO_TIME
    return text


def _love(chart: Chart, facts: Dict[str, str]) -> str:
    venus = chart.planet(Body.VENUS)
    return tpl.LOVE_TEMPLATE[tpl.motion(venus.retrograde)].format(**facts) + tpl.LOVE_MOON.format(**facts)


def _career(chart: Chart, facts: Dict[str, str]) -> str:
    mars = chart.planet(Body.MARS)
    saturn = chart.planet(Body.SATURN)
    return (
        tpl.CAREER_TEMPLATE[tpl.motion(mars.retrograde)].format(**facts)
        + tpl.CAREER_JUPITER.format(**facts)
        + tpl.CAREER_SATURN[tpl.motion(saturn.retrograde)].format(**facts)
    )


def _health(chart: Chart, facts: Dict[str, str]) -> str:
    mercury = chart.planet(Body.MERCURY)
    return tpl.HEALTH_TEMPLATE[tpl.motion(mercury.retrograde)].format(**facts) + tpl.HEALTH_MOON.format(**facts)


_RENDERERS = {
    HoroscopeCategory.DAILY: _daily,
    HoroscopeCategory.LOVE: _love,
    HoroscopeCategory.CAREER: _career,
    HoroscopeCategory.HEALTH: _health,
}


def render_horoscope(
    user_id: str,
    chart: Chart,
    category: HoroscopeCategory,
    style: StyleContext,
    now: datetime,
) -> HoroscopeResult:
    """Build a fresh result (pure: same inputs → same result)."""
    category = HoroscopeCategory(category)
    if style.locale != "en":
        logger.debug(f"Locale '{style.locale}' has no phrase table; rendering English")

    content = _RENDERERS[category](chart, _facts(chart, CATEGORY_BODIES[category]))
    if chart.degraded:
        content += tpl.DEGRADED_NOTE

    return HoroscopeResult(
        user_id=user_id,
        category=category,
        title=tpl.get_title(category, chart.planet(Body.SUN).sign, style.display_name),
        content=content,
        lucky_number=lucky_number(chart, category),
        lucky_body=lucky_body(chart, category),
        lucky_color=lucky_color(chart),
        valid_from=now,
        valid_until=now + style.validity.window(category, style.tier),
        degraded_chart=chart.degraded,
    )


# ─────────────────────────────────────────────
# Chart description
# ─────────────────────────────────────────────

TIGHT_ORB = 2.0
MAX_NOTABLE_ASPECTS = 5


def element_counts(chart: Chart) -> Dict[str, int]:
    counts = {element: 0 for element in tpl.ELEMENTS}
    for p in chart.planets:
        counts[tpl.SIGN_ELEMENTS[p.sign]] += 1
    return counts


def dominant_element(chart: Chart) -> Optional[str]:
    """
    The element holding at least half of the bodies and strictly more than
    any other; None for a balanced chart.
    """
    counts = element_counts(chart)
    ranked = sorted(counts.items(), key=lambda kv: kv[1], reverse=True)
    (top, top_count), (_, runner_up) = ranked[0], ranked[1]
    if top_count * 2 >= len(chart.planets) and top_count > runner_up:
        return top
    return None


def notable_patterns(chart: Chart) -> List[str]:
    """Stelliums (3+ bodies in one sign) and the tightest aspects."""
    lines = []
    by_sign: Dict[str, int] = {}
    for p in chart.planets:
        by_sign[p.sign.value] = by_sign.get(p.sign.value, 0) + 1
    for sign, count in by_sign.items():
        if count >= 3:
            lines.append(tpl.STELLIUM_LINE.format(sign=sign, count=count))

    tight = sorted((a for a in chart.aspects if a.orb <= TIGHT_ORB), key=lambda a: a.orb)
    for a in tight[:MAX_NOTABLE_ASPECTS]:
        lines.append(tpl.ASPECT_LINE.format(
            body_a=a.body_a.value, aspect=a.type.value, body_b=a.body_b.value, orb=a.orb,
        ))
    return lines or [tpl.NO_PATTERNS_LINE]


def describe_chart(chart: Chart) -> str:
    """
    Plain-text birth chart overview.

    Sun, Moon and ascendant first, then one line per body with retrograde
    markers, house meanings and the midheaven (birth time known only),
    element balance and notable patterns.
    """
    sun = chart.planet(Body.SUN)
    moon = chart.planet(Body.MOON)
    lines = [
        "Your natal chart",
        "",
        f"Sun in {sun.sign.value}: your core self is {tpl.trait(sun.sign)}.",
        f"Moon in {moon.sign.value}: emotionally you are {tpl.trait(moon.sign)}.",
    ]
    if chart.has_birth_time and chart.ascendant is not None:
        lines.append(
            f"Ascendant in {chart.ascendant.sign.value}: you come across as {tpl.trait(chart.ascendant.sign)}."
        )
        if chart.midheaven is not None:
            mc = chart.midheaven.sign
            lines.append(f"Midheaven in {mc.value}: {tpl.MIDHEAVEN_MEANINGS[mc]}.")
    else:
        lines.append("Birth time unknown: the ascendant, midheaven and houses cannot be calculated.")
    lines.append("")
    for p in chart.planets:
        marker = " (R)" if p.retrograde else ""
        lines.append(f"• {p.body.value} in {p.sign.value} at {p.degree_in_sign:.1f}°{marker}")
    if chart.has_birth_time and chart.houses:
        lines.append("")
        for h in chart.houses:
            lines.append(
                f"House {h.house_number}: {h.sign.value} {h.degree:.1f}°, "
                f"{tpl.HOUSE_MEANINGS[h.house_number - 1]}"
            )

    counts = element_counts(chart)
    element = dominant_element(chart)
    summary = ", ".join(f"{name} {counts[name]}" for name in tpl.ELEMENTS)
    lines.append("")
    lines.append(
        f"Element balance: {f'strongly {element}' if element else 'even'} ({summary}), "
        f"showing {tpl.ELEMENT_DESCRIPTIONS[element or '']}."
    )

    lines.append("")
    lines.append("Notable patterns")
    lines.extend(f"• {line}" for line in notable_patterns(chart))
    if chart.degraded:
        lines.append("")
        lines.append(tpl.DEGRADED_NOTE.strip())
    return "\n".join(lines)


class HoroscopeComposer:

    def __init__(self, store: HoroscopeStore, clock: Callable[[], datetime] = _utcnow):
        self.store = store
        self.clock = clock

    async def compose(
        self,
        user_id: str,
        chart: Chart,
        category: HoroscopeCategory,
        style: Optional[StyleContext] = None,
        now: Optional[datetime] = None,
    ) -> HoroscopeResult:
        """
        Return the stored horoscope while it is valid; otherwise render, store
        and return a new one.
        """
        category = HoroscopeCategory(category)
        style = style or StyleContext()
        now = now or self.clock()
        key = horoscope_key(user_id, category)

        async with self.store.locks.hold(key):
            cached = await self.store.get_valid(user_id, category, now)
            if cached is not None:
                logger.debug(f"Horoscope cache HIT for {key}")
                return cached

            logger.info(f"Composing {category.value} horoscope for user={user_id}")
            result = render_horoscope(user_id, chart, category, style, now)
            await self.store.save(result, now)
            return result
