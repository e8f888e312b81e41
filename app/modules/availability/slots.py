"""Slot arithmetic for doctor schedules.

Everything here is pure: no I/O and no clock reads. Times of day travel as
``HH:MM`` strings in the facility's local wall clock.
"""
from datetime import date, datetime, time, tzinfo
from typing import Iterable, Protocol

WEEKDAY_LABELS = ("Sat", "Sun", "Mon", "Tue", "Wed", "Thu", "Fri")


class WeeklyWindow(Protocol):
    start_time: time
    end_time: time
    slot_duration_minutes: int


def to_schedule_weekday(day: date) -> int:
    """Map a calendar date to the schedule index where Saturday is 0 and Friday is 6."""
    sunday_based = (day.weekday() + 1) % 7
    return (sunday_based + 1) % 7


def parse_hhmm(value: str | time) -> int:
    """Minutes past midnight for ``HH:MM`` (``HH:MM:SS`` and ``time`` accepted)."""
    if isinstance(value, time):
        return value.hour * 60 + value.minute
    parts = value.strip().split(":")
    if len(parts) not in (2, 3):
        raise ValueError(f"invalid time of day: {value!r}")
    hours, minutes = int(parts[0]), int(parts[1])
    if not (0 <= hours <= 23 and 0 <= minutes <= 59):
        raise ValueError(f"invalid time of day: {value!r}")
    return hours * 60 + minutes


def format_hhmm(minutes: int) -> str:
    return f"{minutes // 60:02d}:{minutes % 60:02d}"


def normalize_hhmm(value: str | time) -> str:
    return format_hhmm(parse_hhmm(value))


def local_hhmm(ts: datetime, tz: tzinfo) -> str:
    """Wall-clock ``HH:MM`` of ``ts`` in ``tz``; naive timestamps are taken as already local."""
    if ts.tzinfo is not None:
        ts = ts.astimezone(tz)
    return f"{ts.hour:02d}:{ts.minute:02d}"


def calculate_free_slots(
    start_time: str | time,
    end_time: str | time,
    slot_duration_minutes: int,
    occupied: Iterable[str] = (),
) -> list[str]:
    """Free slot starts inside ``[start_time, end_time)``.

    Slots are laid on a grid anchored at ``start_time`` and stepping by
    ``slot_duration_minutes``; a slot is emitted only if it ends no later than
    ``end_time``. A slot is removed when its start exactly equals an entry of
    ``occupied``; bookings on a different grid are not checked for overlap.
    """
    if slot_duration_minutes <= 0:
        raise ValueError("slot_duration_minutes must be positive")
    start = parse_hhmm(start_time)
    end = parse_hhmm(end_time)
    if start >= end:
        raise ValueError("start_time must be before end_time")

    taken = {normalize_hhmm(t) for t in occupied}
    slots: list[str] = []
    current = start
    while current + slot_duration_minutes <= end:
        label = format_hhmm(current)
        if label not in taken:
            slots.append(label)
        current += slot_duration_minutes
    return slots


def free_slots_for_window(window: WeeklyWindow | None, occupied: Iterable[str] = ()) -> list[str]:
    if window is None:
        return []
    return calculate_free_slots(window.start_time, window.end_time, window.slot_duration_minutes, occupied)
