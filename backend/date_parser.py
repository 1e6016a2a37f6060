"""
Natural-language due dates.

Turns free text such as "tomorrow 2pm", "next monday", "in 3 days", "may 20"
or "2:30pm" into a local datetime, and renders a datetime back into a short
relative label ("Today at 2:30 PM", "Oct 05 at 9:00 AM"). Label hours have no
leading zero; day numbers do.

Recognizers are tried in a fixed order: relative date, absolute date, time of
day. A recognizer that matches its keyword and then finds the rest of the
input invalid ends the whole parse; the later recognizers are not tried.
"""
import logging
import string
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, Optional, Union

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]

WEEKDAYS = ["sunday", "monday", "tuesday", "wednesday", "thursday", "friday", "saturday"]
MONTHS = [
    "january", "february", "march", "april", "may", "june",
    "july", "august", "september", "october", "november", "december",
]

# Time of day used when the input names a date but no time
DEFAULT_HOUR = 9
DEFAULT_MINUTE = 0

_ASCII_LOWER = str.maketrans(string.ascii_uppercase, string.ascii_lowercase)

# Relative units after "in <N>", first match wins
_UNITS = [
    ("day", "days"), ("d", "days"),
    ("hour", "hours"), ("h", "hours"),
    ("minute", "minutes"), ("min", "minutes"), ("m", "minutes"),
]


def system_clock() -> datetime:
    """Current local wall-clock time."""
    return datetime.now()


class _Rejected(ValueError):
    """A recognizer matched its keyword but the input that follows is invalid."""


@dataclass(frozen=True)
class Success:
    instant: datetime

    @property
    def timestamp(self) -> int:
        """Seconds since the epoch."""
        return int(self.instant.timestamp())

    def __bool__(self) -> bool:
        return True


@dataclass(frozen=True)
class Failure:
    def __bool__(self) -> bool:
        return False


FAILURE = Failure()

ParseOutcome = Union[Success, Failure]


class Cursor:
    """Read position into the text being parsed."""

    def __init__(self, text: str, pos: int = 0):
        self.text = text
        self.pos = pos

    def peek(self) -> str:
        return self.text[self.pos] if self.pos < len(self.text) else ""

    def advance(self, count: int) -> None:
        self.pos = min(self.pos + count, len(self.text))

    def skip_whitespace(self) -> None:
        while self.peek() and self.peek() in string.whitespace:
            self.pos += 1

    def skip_letters(self) -> None:
        while self.peek() and self.peek() in string.ascii_letters:
            self.pos += 1

    def skip_to_digit(self) -> None:
        while self.peek() and self.peek() not in string.digits:
            self.pos += 1

    def starts_with(self, literal: str) -> bool:
        """Case-insensitive ASCII prefix test. Does not move the cursor."""
        chunk = self.text[self.pos:self.pos + len(literal)]
        return chunk.translate(_ASCII_LOWER) == literal.translate(_ASCII_LOWER)

    def read_int(self) -> Optional[int]:
        """Consume a run of decimal digits. None if there are none."""
        start = self.pos
        while self.peek() and self.peek() in string.digits:
            self.pos += 1
        if self.pos == start:
            return None
        return int(self.text[start:self.pos])


def _match_name(cursor: Cursor, names: list[str]) -> Optional[int]:
    for index, name in enumerate(names):
        if cursor.starts_with(name[:3]):
            return index
    return None


def match_weekday(cursor: Cursor) -> Optional[int]:
    """Index of the weekday named at the cursor (Sunday=0), by 3-letter prefix."""
    return _match_name(cursor, WEEKDAYS)


def match_month(cursor: Cursor) -> Optional[int]:
    """Index of the month named at the cursor (January=0), by 3-letter prefix."""
    return _match_name(cursor, MONTHS)


@dataclass
class Accumulator:
    """Date/time fields being filled in by the recognizers.

    Fields may run past their calendar range while parsing (day 35, hour 26);
    to_datetime() carries the overflow into the larger fields.
    """
    year: int
    month: int
    day: int
    hour: int
    minute: int
    second: int

    @classmethod
    def from_datetime(cls, moment: datetime) -> "Accumulator":
        return cls(moment.year, moment.month, moment.day,
                   moment.hour, moment.minute, moment.second)

    def set_time(self, hour: int, minute: int) -> None:
        self.hour = hour
        self.minute = minute
        self.second = 0

    def to_datetime(self) -> datetime:
        years, month_index = divmod(self.month - 1, 12)
        first_of_month = datetime(self.year + years, month_index + 1, 1)
        return first_of_month + timedelta(
            days=self.day - 1,
            hours=self.hour,
            minutes=self.minute,
            seconds=self.second,
        )


@dataclass
class Offset:
    """Result of the relative recognizer.

    days is added to now's date. hours and minutes replace the clock time
    outright: "in 2 hours" means 02:00, not two hours from now.
    """
    days: int = 0
    hours: int = 0
    minutes: int = 0


def _weekday_of(moment: datetime) -> int:
    """Weekday with Sunday=0, matching WEEKDAYS."""
    return (moment.weekday() + 1) % 7


def _days_until(weekday: int, now: datetime) -> int:
    """Days to the next occurrence of weekday, 1-7. Never today."""
    days = (weekday - _weekday_of(now) + 7) % 7
    return days or 7


def _recognize_time(cursor: Cursor) -> Optional[tuple[int, int]]:
    """Parse H[:MM][am|pm] into (hour, minute).

    Returns None when there is no leading number. A bare hour below 12
    without am/pm is taken as PM ("2:30" is 14:30).
    """
    cursor.skip_whitespace()
    hours = cursor.read_int()
    if hours is None:
        return None

    minutes = 0
    if cursor.peek() == ":":
        cursor.advance(1)
        minutes = cursor.read_int()
        if minutes is None:
            raise _Rejected("expected minutes after ':'")

    cursor.skip_whitespace()
    marker = cursor.peek().translate(_ASCII_LOWER)
    if marker in ("a", "p"):
        cursor.advance(1)
        if cursor.starts_with("m"):
            cursor.advance(1)
        is_pm = marker == "p"
        if hours == 12:
            hours = 12 if is_pm else 0
        elif is_pm and hours < 12:
            hours += 12
    elif hours < 12:
        hours += 12

    if not 0 <= hours <= 23:
        raise _Rejected(f"hour out of range: {hours}")
    if not 0 <= minutes <= 59:
        raise _Rejected(f"minute out of range: {minutes}")
    return hours, minutes


def _is_bare_number(cursor: Cursor) -> bool:
    """True for a number that cannot be an hour and has no ':' or am/pm,
    such as the year in "may 20 2027". Does not move the cursor."""
    ahead = Cursor(cursor.text, cursor.pos)
    value = ahead.read_int()
    if ahead.peek() == ":":
        return False
    ahead.skip_whitespace()
    return value > 23 and ahead.peek().translate(_ASCII_LOWER) not in ("a", "p")


def _trailing_time(cursor: Cursor) -> tuple[int, int]:
    """Time of day written after a date ("at 2pm", "14:30"), else 09:00.

    Other trailing text, a year included, is ignored.
    """
    cursor.skip_whitespace()
    if cursor.starts_with("at "):
        cursor.advance(3)
        cursor.skip_whitespace()
    if cursor.peek() and cursor.peek() in string.digits and not _is_bare_number(cursor):
        return _recognize_time(cursor)
    return DEFAULT_HOUR, DEFAULT_MINUTE


def _recognize_relative(cursor: Cursor, now: datetime) -> Optional[Offset]:
    """tomorrow | in <N> <unit> | next <weekday>"""
    cursor.skip_whitespace()

    if cursor.starts_with("tomorrow"):
        cursor.advance(len("tomorrow"))
        hour, minute = _trailing_time(cursor)
        return Offset(days=1, hours=hour, minutes=minute)

    if cursor.starts_with("in "):
        cursor.advance(3)
        cursor.skip_whitespace()
        amount = cursor.read_int()
        if amount is None:
            raise _Rejected("expected a number after 'in'")
        cursor.skip_whitespace()
        for keyword, unit in _UNITS:
            if cursor.starts_with(keyword):
                if unit == "days":
                    return Offset(days=amount, hours=DEFAULT_HOUR, minutes=DEFAULT_MINUTE)
                return Offset(**{unit: amount})
        raise _Rejected(f"unknown unit in {cursor.text!r}")

    if cursor.starts_with("next "):
        cursor.advance(5)
        cursor.skip_whitespace()
        weekday = match_weekday(cursor)
        if weekday is None:
            raise _Rejected("expected a weekday after 'next'")
        cursor.skip_letters()
        hour, minute = _trailing_time(cursor)
        return Offset(days=_days_until(weekday, now), hours=hour, minutes=minute)

    return None


def _recognize_absolute(cursor: Cursor, now: datetime, acc: Accumulator) -> bool:
    """<month> <day> | <weekday>. Writes the resolved date into acc."""
    cursor.skip_whitespace()

    month = match_month(cursor)
    if month is not None:
        cursor.skip_to_digit()
        day = cursor.read_int()
        if day is None or not 1 <= day <= 31:
            raise _Rejected(f"no valid day after month in {cursor.text!r}")
        acc.month = month + 1
        acc.day = day
        acc.set_time(DEFAULT_HOUR, DEFAULT_MINUTE)
        if acc.to_datetime() < now:
            acc.year += 1
        # ordinal suffix: "20th"
        cursor.skip_letters()
        acc.set_time(*_trailing_time(cursor))
        return True

    weekday = match_weekday(cursor)
    if weekday is not None:
        cursor.skip_letters()
        acc.day += _days_until(weekday, now)
        acc.set_time(*_trailing_time(cursor))
        return True

    return False


def _capture_now(clock: Optional[Clock]) -> datetime:
    return (clock or system_clock)().replace(microsecond=0)


def parse_natural_date(text: Optional[str], clock: Optional[Clock] = None) -> ParseOutcome:
    """Parse a free-text due date.

    Examples (say now is Wed 2026-10-14 15:20):
        "tomorrow"       -> 2026-10-15 09:00
        "tomorrow 2pm"   -> 2026-10-15 14:00
        "in 3 days"      -> 2026-10-17 09:00
        "in 2 hours"     -> 2026-10-14 02:00 (hour set, not added)
        "next monday"    -> 2026-10-19 09:00
        "may 20"         -> 2027-05-20 09:00
        "2:30pm"         -> 2026-10-14 14:30 (not moved forward)

    Returns Success(instant) or FAILURE; never raises for bad input.
    """
    if not text:
        return FAILURE

    now = _capture_now(clock)
    acc = Accumulator.from_datetime(now)

    try:
        offset = _recognize_relative(Cursor(text), now)
        if offset is not None:
            acc.day += offset.days
            acc.set_time(offset.hours, offset.minutes)
            return Success(acc.to_datetime())

        if _recognize_absolute(Cursor(text), now, acc):
            return Success(acc.to_datetime())

        time_of_day = _recognize_time(Cursor(text))
        if time_of_day is not None:
            acc.set_time(*time_of_day)
            return Success(acc.to_datetime())
    except _Rejected as e:
        logger.debug("Rejected date %r: %s", text, e)
        return FAILURE

    logger.debug("Unrecognized date %r", text)
    return FAILURE


def parse_time_today(text: Optional[str], clock: Optional[Clock] = None) -> ParseOutcome:
    """Parse a time of day onto today's date.

    A time that has already passed today is moved to the same time tomorrow.
    """
    if not text:
        return FAILURE

    now = _capture_now(clock)
    try:
        time_of_day = _recognize_time(Cursor(text))
    except _Rejected as e:
        logger.debug("Rejected time %r: %s", text, e)
        return FAILURE
    if time_of_day is None:
        logger.debug("Unrecognized time %r", text)
        return FAILURE

    acc = Accumulator.from_datetime(now)
    acc.set_time(*time_of_day)
    result = acc.to_datetime()
    if result < now:
        result += timedelta(days=1)
    return Success(result)


def _clock_label(moment: datetime) -> str:
    hour = moment.hour % 12 or 12
    meridiem = "PM" if moment.hour >= 12 else "AM"
    return f"{hour}:{moment.minute:02d} {meridiem}"


def format_natural_date(
    instant: Union[datetime, int, float],
    clock: Optional[Clock] = None,
) -> str:
    """Render a due date relative to now: "Today at 2:30 PM", "Tomorrow at
    9:00 AM", "Friday at 5:00 PM", or "May 20 at 9:00 AM".

    The output is for display only and does not parse back to the same instant.
    """
    if not isinstance(instant, datetime):
        instant = datetime.fromtimestamp(instant)
    now = _capture_now(clock)

    # Wraps at 365: wrong across a year boundary and in leap years.
    days_diff = (instant.timetuple().tm_yday - now.timetuple().tm_yday + 365) % 365

    at = _clock_label(instant)
    if days_diff == 0:
        return f"Today at {at}"
    if days_diff == 1:
        return f"Tomorrow at {at}"
    if days_diff < 7:
        return f"{WEEKDAYS[_weekday_of(instant)].capitalize()} at {at}"
    month = MONTHS[instant.month - 1][:3].capitalize()
    return f"{month} {instant.day:02d} at {at}"
