"""
Time conversion: civil birth date/time → Julian Day.

The timezone is approximated from longitude (15° = 1 hour) rather than a
timezone database, so charts are reproducible from (date, time, coordinates)
alone.
"""
import logging
import re
from datetime import date, datetime, time
from typing import Optional

import swisseph as swe

from natalcore.errors import InvalidBirthData

logger = logging.getLogger(__name__)

# Placeholder hour for body longitudes when the birth time is unknown.
# Never used for houses/angles; the chart carries has_birth_time=False instead.
NOON_SENTINEL = 12.0

DATE_FORMATS = ["%Y-%m-%d", "%d/%m/%Y", "%d-%m-%Y", "%d %b %Y"]


def parse_birth_date(dob: str) -> date:
    """Parse "YYYY-MM-DD", "DD/MM/YYYY", "DD-MM-YYYY" or "DD Mon YYYY"."""
    if not dob or not str(dob).strip():
        raise InvalidBirthData("Birth date is required")
    dob = str(dob).strip()
    iso_match = re.match(r"^(\d{4})-(\d{2})-(\d{2})(?:T\d{2}:\d{2}(?::\d{2}(?:\.\d+)?)?(?:Z|[+-]\d{2}:?\d{2})?)?$", dob)
    if iso_match:
        dob = "-".join(iso_match.groups())
    for fmt in DATE_FORMATS:
        try:
            return datetime.strptime(dob, fmt).date()
        except ValueError:
            pass
    raise InvalidBirthData(f"Cannot parse dob: {dob}")


def parse_birth_time(tob: Optional[str]) -> Optional[time]:
    """
    Parse a birth time to minute precision.

    Accepts "HH:MM", "HH:MM:SS" and 12h forms such as "9:10 AM".
    An empty/missing value means "unknown" and returns None.
    """
    if tob is None or not str(tob).strip():
        return None
    tob = str(tob).strip()
    match_12h = re.match(r"^(\d{1,2}):(\d{2})(?::(\d{2}))?\s*(AM|PM)$", tob, re.IGNORECASE)
    if match_12h:
        h, m, s, meridiem = match_12h.groups()
        h = int(h)
        if h < 1 or h > 12:
            raise InvalidBirthData(f"Cannot parse tob: {tob}")
        if meridiem.upper() == "PM" and h != 12:
            h += 12
        elif meridiem.upper() == "AM" and h == 12:
            h = 0
        return _make_time(h, int(m), tob, int(s or 0))
    match_24h = re.match(r"^(\d{1,2}):(\d{2})(?::(\d{2}))?$", tob)
    if match_24h:
        h, m, s = match_24h.groups()
        return _make_time(int(h), int(m), tob, int(s or 0))
    raise InvalidBirthData(f"Cannot parse tob: {tob}")


def _make_time(hour: int, minute: int, raw: str, second: int = 0) -> time:
    """Validate the full clock reading, keep minute precision."""
    try:
        time(hour, minute, second)
        return time(hour, minute)
    except ValueError:
        raise InvalidBirthData(f"Cannot parse tob: {raw}")


def decimal_hour(birth_time: Optional[time]) -> float:
    if birth_time is None:
        return NOON_SENTINEL
    return birth_time.hour + birth_time.minute / 60.0 + birth_time.second / 3600.0


def to_julian_day(birth_date: date, birth_time: Optional[time], longitude: float) -> float:
    """
    Julian Day (UT) for a civil birth moment.

    Local time is shifted by the longitude-based offset (longitude / 15 hours).
    A missing time uses NOON_SENTINEL.
    """
    jd_local = swe.julday(
        birth_date.year, birth_date.month, birth_date.day,
        decimal_hour(birth_time), swe.GREG_CAL,
    )
    offset_hours = longitude / 15.0
    jd = jd_local - offset_hours / 24.0
    logger.debug(
        f"JD for {birth_date.isoformat()} {birth_time or 'unknown'} "
        f"(lon={longitude}, offset={offset_hours:+.3f}h) = {jd:.6f}"
    )
    return jd
