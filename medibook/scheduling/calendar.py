"""Date/time parsing and slot arithmetic shared by the engine components."""

from datetime import date, datetime, time, timedelta
from typing import Iterator

from medibook.scheduling.errors import InvalidInputError


def parse_date(value: date | str, field: str = "date") -> date:
    """Coerce *value* into a calendar date or raise InvalidInputError."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        try:
            return date.fromisoformat(value.strip())
        except ValueError:
            pass
    raise InvalidInputError(f"Invalid {field}: {value!r} (expected YYYY-MM-DD)")


def parse_time(value: time | str, field: str = "time") -> time:
    """Coerce *value* into a wall-clock time or raise InvalidInputError."""
    parsed = None
    if isinstance(value, time):
        parsed = value
    elif isinstance(value, str):
        try:
            parsed = time.fromisoformat(value.strip())
        except ValueError:
            pass
    if parsed is None or parsed.tzinfo is not None:
        raise InvalidInputError(f"Invalid {field}: {value!r} (expected HH:MM)")
    return parsed


def weekday_index(day: date) -> int:
    """Return 0 for Sunday through 6 for Saturday."""
    return day.isoweekday() % 7


def overlaps(start_a: time, end_a: time, start_b: time, end_b: time) -> bool:
    """Half-open interval overlap: [a) and [b) share at least one instant."""
    return start_a < end_b and start_b < end_a


def ranges_overlap(
    from_a: date, to_a: date | None, from_b: date, to_b: date | None
) -> bool:
    """Inclusive date-range overlap where ``None`` means open-ended."""
    a_before_b_ends = to_b is None or from_a <= to_b
    b_before_a_ends = to_a is None or from_b <= to_a
    return a_before_b_ends and b_before_a_ends


def iter_slot_bounds(start: time, end: time, minutes: int) -> Iterator[tuple[time, time]]:
    """Yield ``(slot_start, slot_end)`` pairs that fit entirely inside [start, end).

    A trailing remainder shorter than *minutes* is dropped.
    """
    if minutes <= 0:
        raise InvalidInputError(f"Slot duration must be positive, got {minutes}")
    anchor = date.min
    current = datetime.combine(anchor, start)
    stop = datetime.combine(anchor, end)
    delta = timedelta(minutes=minutes)

    while current + delta <= stop:
        yield current.time(), (current + delta).time()
        current += delta
