"""
Static text templates for horoscope rendering.
Chart facts (sign, retrograde state) are slotted into pre-written sentences.

Only English ships here; other locales fall back to it.
"""
from typing import Dict, List

from natalcore.models.chart import Body, Sign
from natalcore.models.horoscope import HoroscopeCategory


# ─────────────────────────────────────────────
# Titles
# ─────────────────────────────────────────────

TITLES: Dict[HoroscopeCategory, str] = {
    HoroscopeCategory.DAILY: "Today's Horoscope",
    HoroscopeCategory.LOVE: "Love & Relationships",
    HoroscopeCategory.CAREER: "Work & Career",
    HoroscopeCategory.HEALTH: "Health & Wellbeing",
}

SIGN_GLYPHS: Dict[Sign, str] = {
    Sign.ARIES: "♈", Sign.TAURUS: "♉", Sign.GEMINI: "♊", Sign.CANCER: "♋",
    Sign.LEO: "♌", Sign.VIRGO: "♍", Sign.LIBRA: "♎", Sign.SCORPIO: "♏",
    Sign.SAGITTARIUS: "♐", Sign.CAPRICORN: "♑", Sign.AQUARIUS: "♒", Sign.PISCES: "♓",
}


# ─────────────────────────────────────────────
# Lucky attributes
# ─────────────────────────────────────────────

# Index = (floor(julian_day) + category index) % 5
LUCKY_BODIES: List[Body] = [Body.JUPITER, Body.VENUS, Body.SUN, Body.MERCURY, Body.MOON]

# Sun sign → lucky colour
SIGN_COLOURS: Dict[Sign, str] = {
    Sign.ARIES: "red",
    Sign.TAURUS: "green",
    Sign.GEMINI: "yellow",
    Sign.CANCER: "silver",
    Sign.LEO: "gold",
    Sign.VIRGO: "light blue",
    Sign.LIBRA: "pink",
    Sign.SCORPIO: "dark red",
    Sign.SAGITTARIUS: "purple",
    Sign.CAPRICORN: "brown",
    Sign.AQUARIUS: "blue",
    Sign.PISCES: "sea blue",
}


# ─────────────────────────────────────────────
# Sign flavour
# ─────────────────────────────────────────────

SIGN_TRAITS: Dict[Sign, str] = {
    Sign.ARIES: "bold and quick to act",
    Sign.TAURUS: "steady and grounded",
    Sign.GEMINI: "curious and talkative",
    Sign.CANCER: "protective and sensitive",
    Sign.LEO: "warm and expressive",
    Sign.VIRGO: "practical and attentive to detail",
    Sign.LIBRA: "diplomatic and eager for harmony",
    Sign.SCORPIO: "intuitive and intense",
    Sign.SAGITTARIUS: "optimistic and restless",
    Sign.CAPRICORN: "disciplined and ambitious",
    Sign.AQUARIUS: "independent and inventive",
    Sign.PISCES: "imaginative and compassionate",
}


# ─────────────────────────────────────────────
# Category templates
# ─────────────────────────────────────────────

DAILY_TEMPLATE = (
    "The Moon in {moon_sign} colours your mood today and leaves you {moon_trait}. "
    "Your Sun in {sun_sign} lends confidence to everything you start, so lean on being {sun_trait}."
)
DAILY_ASCENDANT = " With {ascendant} rising, others will first notice you as {ascendant_trait}."
DAILY_NO_TIME = " Without a birth time your rising sign stays open, so this reading leans on the Sun and Moon."

LOVE_TEMPLATE = {
    "direct": (
        "Venus in {venus_sign} keeps your affections {venus_trait}, a good moment to reach out to someone you care about. "
        "Mars in {mars_sign} adds a {mars_trait} spark to attraction."
    ),
    "retrograde": (
        "Venus is retrograde in {venus_sign}: old feelings and past relationships ask to be reviewed before new promises are made. "
        "Mars in {mars_sign} keeps desire {mars_trait}, so move gently."
    ),
}
LOVE_MOON = " The Moon in {moon_sign} makes emotional honesty the key to closeness."

CAREER_TEMPLATE = {
    "direct": (
        "Mars in {mars_sign} gives your work a strong push; this is a time to take initiative and be {mars_trait}. "
    ),
    "retrograde": (
        "Mars is retrograde in {mars_sign}: reassess your professional direction before pushing ahead. "
    ),
}
CAREER_JUPITER = "Jupiter in {jupiter_sign} widens opportunities for people who are {jupiter_trait}. "
CAREER_SATURN = {
    "direct": "Saturn in {saturn_sign} rewards patient, structured effort.",
    "retrograde": "Saturn is retrograde in {saturn_sign}; unfinished responsibilities return for completion.",
}

HEALTH_TEMPLATE = {
    "direct": (
        "Mercury in {mercury_sign} keeps your mind clear and {mercury_trait}; use that focus to plan restful routines. "
    ),
    "retrograde": (
        "Mercury is retrograde in {mercury_sign}, so scattered thoughts may tire you; slow down and double-check plans. "
    ),
}
HEALTH_MOON = "With the Moon in {moon_sign}, pay attention to sleep and emotional balance."

DEGRADED_NOTE = (
    " (Exact planetary data was unavailable, so this reading is based on an approximate chart.)"
)


def get_title(category: HoroscopeCategory, sun_sign: Sign, display_name: str = "") -> str:
    """Title with the sun-sign glyph, personalised when a name is known."""
    title = f"{SIGN_GLYPHS.get(sun_sign, '✨')} {TITLES[category]}"
    if display_name:
        title = f"{title} for {display_name}"
    return title


def trait(sign: Sign) -> str:
    return SIGN_TRAITS.get(sign, "balanced")


def motion(retrograde: bool) -> str:
    return "retrograde" if retrograde else "direct"


# ─────────────────────────────────────────────
# Chart description
# ─────────────────────────────────────────────

SIGN_ELEMENTS: Dict[Sign, str] = {
    Sign.ARIES: "fire", Sign.LEO: "fire", Sign.SAGITTARIUS: "fire",
    Sign.TAURUS: "earth", Sign.VIRGO: "earth", Sign.CAPRICORN: "earth",
    Sign.GEMINI: "air", Sign.LIBRA: "air", Sign.AQUARIUS: "air",
    Sign.CANCER: "water", Sign.SCORPIO: "water", Sign.PISCES: "water",
}

ELEMENTS: List[str] = ["fire", "earth", "air", "water"]

ELEMENT_DESCRIPTIONS: Dict[str, str] = {
    "fire": "an enthusiastic, energetic nature that likes to take the initiative",
    "earth": "a practical, steady nature focused on tangible results",
    "air": "an intellectual, sociable nature drawn to ideas and conversation",
    "water": "an emotional, intuitive nature that reads feelings deeply",
    "": "a balanced personality that adapts to very different situations",
}

MIDHEAVEN_MEANINGS: Dict[Sign, str] = {
    Sign.ARIES: "you look for work that lets you lead and open new ground",
    Sign.TAURUS: "you value steady professional growth and lasting material security",
    Sign.GEMINI: "careers built on communication and variety suit you, such as teaching or media",
    Sign.CANCER: "caring and supportive roles draw out your talents",
    Sign.LEO: "you shine in visible roles that reward leadership and creativity",
    Sign.VIRGO: "you excel where precision, analysis and service matter",
    Sign.LIBRA: "work connected with justice, beauty or diplomacy fits you",
    Sign.SCORPIO: "research, investigation and transformation are your professional strengths",
    Sign.SAGITTARIUS: "higher learning, travel and ideas widen your career",
    Sign.CAPRICORN: "you aim for authority and work patiently towards long-term goals",
    Sign.AQUARIUS: "innovative and humanitarian fields attract you",
    Sign.PISCES: "art, healing and service let your imagination work for you",
}

HOUSE_MEANINGS: List[str] = [
    "self-image and how you present yourself",
    "resources, values and financial security",
    "communication, learning and siblings",
    "home, family and emotional roots",
    "creativity, romance, children and pleasure",
    "health, daily work and service",
    "close partnerships and marriage",
    "transformation, shared resources and intimacy",
    "travel, philosophy and higher education",
    "career, status and authority",
    "friendships, groups and future goals",
    "the inner world, spirituality and retreat",
]

STELLIUM_LINE = "Stellium in {sign}: {count} bodies concentrate its qualities in your personality."
ASPECT_LINE = "{body_a} {aspect} {body_b} (orb {orb:.2f}°)"
NO_PATTERNS_LINE = "No tight aspects or stelliums: your chart is evenly spread and adaptable."
