"""FunnelSync - Lenient Date Parsing for CRM timestamps.

CRM exports are inconsistent about timestamp format. ``parse_created_at``
tries a fixed ordered list of layouts and returns ``None`` when none match;
callers decide how to degrade.
"""

import re
from datetime import date, datetime, timezone
from typing import Optional

DATE_FORMAT = "%Y-%m-%d"

# Tried in order. Naive results are interpreted as UTC.
CREATED_AT_FORMATS = (
    "%Y-%m-%dT%H:%M:%SZ",
    "%Y-%m-%d %H:%M:%S",
    "%Y-%m-%d",
    "%Y-%m-%dT%H:%M:%S%z",  # RFC3339, Z or +hh:mm offset
    "%Y-%m-%dT%H:%M:%S.%f%z",  # RFC3339 with fractional seconds
    "%Y-%m-%d %H:%M:%S %z",
    "%Y-%m-%d %H:%M:%S %Z",
    "%Y-%m-%d %H:%M:%S.%f",
)

# %f takes at most microseconds; longer fractions (.NET ticks, nanoseconds) are cut
_LONG_FRACTION = re.compile(r"(\.\d{6})\d+")

# "2024-01-01 10:00:00 CET": zone abbreviations strptime does not know
_NAMED_ZONE = re.compile(r"^(\d{4}-\d{2}-\d{2} \d{2}:\d{2}:\d{2}) ([A-Za-z]{3,5})$")


def parse_created_at(value: str) -> Optional[datetime]:
    """Parse a CRM timestamp, or return None if no known layout matches."""
    normalized = _LONG_FRACTION.sub(r"\1", value.strip().replace("/", "-"))
    if not normalized:
        return None

    for fmt in CREATED_AT_FORMATS:
        try:
            parsed = datetime.strptime(normalized, fmt)
        except ValueError:
            continue
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=timezone.utc)
        return parsed

    # Unknown abbreviations carry no offset information; keep wall time as UTC.
    match = _NAMED_ZONE.match(normalized)
    if match:
        parsed = datetime.strptime(match.group(1), "%Y-%m-%d %H:%M:%S")
        return parsed.replace(tzinfo=timezone.utc)

    return None


def parse_day(value: str) -> Optional[date]:
    """Parse a ``YYYY-MM-DD`` calendar day, or None if it is not one."""
    try:
        return datetime.strptime(value, DATE_FORMAT).date()
    except (TypeError, ValueError):
        return None


def format_day(value: date | datetime) -> str:
    """Format a date or datetime (in its own offset) as ``YYYY-MM-DD``."""
    return value.strftime(DATE_FORMAT)
