"""
Machine-format due dates.

Tasks keep their due date as epoch seconds (0 means no due date) and are
stored as ISO-8601 UTC strings. Dates coming from the chat model are already
machine formatted and go through parse_machine_date only.
"""
import calendar
from datetime import datetime, timezone
from typing import Optional

from date_parser import Clock, parse_natural_date

ISO_FORMAT = "%Y-%m-%dT%H:%M:%SZ"

# Date-only formats resolve to midnight UTC
DATE_FORMATS = ["%Y-%m-%d", "%m/%d/%Y", "%d/%m/%Y", "%b %d, %Y", "%d %b %Y"]


def time_to_iso8601(timestamp: int) -> str:
    """Format epoch seconds as YYYY-MM-DDTHH:MM:SSZ."""
    return datetime.fromtimestamp(timestamp, tz=timezone.utc).strftime(ISO_FORMAT)


def iso8601_to_time(value: Optional[str]) -> int:
    """Parse YYYY-MM-DDTHH:MM:SSZ into epoch seconds. 0 if empty or malformed."""
    if not value:
        return 0
    try:
        parsed = datetime.strptime(value, ISO_FORMAT)
    except ValueError:
        return 0
    return calendar.timegm(parsed.timetuple())


def parse_machine_date(value: Optional[str]) -> int:
    """Parse an ISO-8601 timestamp or one of DATE_FORMATS. 0 if none match."""
    if not value:
        return 0
    value = value.strip()
    timestamp = iso8601_to_time(value)
    if timestamp:
        return timestamp
    for fmt in DATE_FORMATS:
        try:
            parsed = datetime.strptime(value, fmt)
        except ValueError:
            continue
        return calendar.timegm(parsed.timetuple())
    return 0


def parse_due(value: Optional[str], clock: Optional[Clock] = None) -> int:
    """
    Parse a due date typed by the user.
    Machine formats are tried first so "01/15/2025" is not read as a time
    of day; anything else goes through the natural-language parser.
    Returns epoch seconds, or 0 for "no due date".
    """
    timestamp = parse_machine_date(value)
    if timestamp:
        return timestamp
    outcome = parse_natural_date(value, clock=clock)
    if outcome:
        return outcome.timestamp
    return 0
