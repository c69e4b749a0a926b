"""
Slot calendar: turns a worker's weekly timetable into bookable slots.

Everything here is pure. Callers load the timetable, non-availability and
existing bookings from storage and pass them in; the same inputs always give
the same ordered list of slot start times.
"""

import logging
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Any, Iterable, Mapping, NamedTuple, Optional

from workjunction.errors import ValidationError
from workjunction.lifecycle.state_machine import is_slot_holding
from workjunction.utils import minutes_to_time, normalize_time, time_to_minutes

logger = logging.getLogger(__name__)

WEEKDAYS: list[str] = [
    "Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday",
]


def weekday_name(day: date) -> str:
    return WEEKDAYS[day.weekday()]


def _canonical_weekday(name: str) -> str:
    canonical = name.strip().capitalize()
    if canonical not in WEEKDAYS:
        raise ValidationError(f"Unknown weekday {name!r}. Valid: {WEEKDAYS}")
    return canonical


@dataclass(frozen=True)
class TimeRange:
    """An open window within one day, ``start`` inclusive, ``end`` exclusive."""

    start: str
    end: str

    @classmethod
    def parse(cls, start: str, end: str) -> "TimeRange":
        try:
            start_norm = normalize_time(start)
            end_norm = "24:00" if end.strip() == "24:00" else normalize_time(end)
        except ValueError as e:
            raise ValidationError(str(e)) from None
        if time_to_minutes(start_norm) >= time_to_minutes(end_norm):
            raise ValidationError(f"Time range start {start_norm} must be before end {end_norm}")
        return cls(start_norm, end_norm)

    @property
    def start_minutes(self) -> int:
        return time_to_minutes(self.start)

    @property
    def end_minutes(self) -> int:
        return time_to_minutes(self.end)

    def overlaps(self, other: "TimeRange") -> bool:
        return self.start_minutes < other.end_minutes and other.start_minutes < self.end_minutes

    def to_dict(self) -> dict[str, str]:
        return {"start": self.start, "end": self.end}


@dataclass(frozen=True)
class Timetable:
    """Recurring weekly availability: weekday name -> sorted, non-overlapping ranges."""

    days: Mapping[str, tuple[TimeRange, ...]] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, raw: Optional[Mapping[str, Iterable[Any]]]) -> "Timetable":
        """
        Build a normalised timetable from ``{"Monday": [{"start": .., "end": ..}], ...}``.

        Ranges may also be given as ``[start, end]`` pairs. Blank ranges
        (both ends empty) are skipped, matching how stored timetables pad
        unused days.

        Raises:
            ValidationError: On unknown weekdays, malformed times or overlaps.
        """
        days: dict[str, tuple[TimeRange, ...]] = {}
        for name, ranges in (raw or {}).items():
            day = _canonical_weekday(name)
            parsed: list[TimeRange] = []
            for item in ranges or []:
                if isinstance(item, Mapping):
                    start, end = item.get("start") or "", item.get("end") or ""
                else:
                    start, end = item
                if not start and not end:
                    continue
                parsed.append(TimeRange.parse(start, end))
            parsed.sort(key=lambda r: r.start_minutes)
            for prev, cur in zip(parsed, parsed[1:]):
                if prev.overlaps(cur):
                    raise ValidationError(
                        f"{day}: range {cur.start}-{cur.end} overlaps {prev.start}-{prev.end}"
                    )
            if day in days:
                raise ValidationError(f"{day} listed more than once")
            days[day] = tuple(parsed)
        return cls(days)

    def ranges_for(self, day: date) -> tuple[TimeRange, ...]:
        return tuple(self.days.get(weekday_name(day), ()))

    def to_dict(self) -> dict[str, list[dict[str, str]]]:
        return {day: [r.to_dict() for r in self.days.get(day, ())] for day in WEEKDAYS}


@dataclass(frozen=True)
class NonAvailability:
    """A date-level exception such as leave; both ends inclusive."""

    start_date: date
    end_date: date
    reason: str = ""
    id: Optional[int] = None

    def covers(self, day: date) -> bool:
        return self.start_date <= day <= self.end_date

    def overlaps(self, other: "NonAvailability") -> bool:
        return self.start_date <= other.end_date and other.start_date <= self.end_date


class BookedSlot(NamedTuple):
    """Minimal view of an existing booking used for slot reconciliation."""

    booking_date: date
    booking_time: str
    status: str


class DaySlots(NamedTuple):
    date: date
    day_name: str
    slots: list[str]


def offered_slots(
    timetable: Timetable,
    non_availability: Iterable[NonAvailability],
    day: date,
    slot_minutes: int,
) -> list[str]:
    """Slots the timetable offers on ``day``, before existing bookings are considered."""
    if slot_minutes <= 0:
        raise ValidationError(f"slot_minutes must be positive, got {slot_minutes}")
    if any(entry.covers(day) for entry in non_availability):
        return []

    starts: set[int] = set()
    for time_range in timetable.ranges_for(day):
        t = time_range.start_minutes
        while t + slot_minutes <= time_range.end_minutes:
            starts.add(t)
            t += slot_minutes
    return [minutes_to_time(t) for t in sorted(starts)]


def booked_times(existing_bookings: Iterable[Any], day: date) -> set[str]:
    """Start times on ``day`` held by bookings that are not cancelled or declined."""
    taken: set[str] = set()
    for booking in existing_bookings:
        if booking.booking_date != day or not is_slot_holding(booking.status):
            continue
        try:
            taken.add(normalize_time(booking.booking_time))
        except ValueError:
            logger.warning("Ignoring booking with malformed time %r", booking.booking_time)
    return taken


def free_slots(
    timetable: Timetable,
    non_availability: Iterable[NonAvailability],
    existing_bookings: Iterable[Any],
    day: date,
    slot_minutes: int,
) -> list[str]:
    """
    Compute the free slot start times for one worker on one date.

    Returns an ascending list of ``HH:MM`` strings. A weekday without
    ranges, or a date covered by non-availability, yields an empty list.
    Rejecting past dates is the caller's job.
    """
    taken = booked_times(existing_bookings, day)
    return [
        slot for slot in offered_slots(timetable, non_availability, day, slot_minutes)
        if slot not in taken
    ]


def weekly_slots(
    timetable: Timetable,
    non_availability: Iterable[NonAvailability],
    existing_bookings: Iterable[Any],
    start_date: date,
    slot_minutes: int,
    days: int = 7,
) -> list[DaySlots]:
    """Free slots for ``days`` consecutive dates starting at ``start_date``."""
    non_availability = list(non_availability)
    existing_bookings = list(existing_bookings)
    result = []
    for offset in range(days):
        day = start_date + timedelta(days=offset)
        result.append(DaySlots(
            date=day,
            day_name=weekday_name(day),
            slots=free_slots(timetable, non_availability, existing_bookings, day, slot_minutes),
        ))
    return result
