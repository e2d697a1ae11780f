"""
Availability queries for the OT resource pool.

Answers "which staff and equipment are free for this window?". The answer is
advisory: it is read outside any lock, so the scheduling engine re-checks
every resource inside its transaction before committing.

A resource is busy when it has an assignment in a ``Scheduled`` operation on
the same date whose window overlaps the requested one (see ``overlap_q``).
Equipment must additionally report status ``Available``.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, time

from django.db.models import QuerySet
from django.utils import timezone
from django.utils.dateparse import parse_date, parse_datetime, parse_time

from theatre_backend.scheduling.exceptions import InvalidInput
from theatre_backend.scheduling.models import (
    Equipment,
    Operation,
    OTRoom,
    ResourceAssignment,
    Staff,
)
from theatre_backend.scheduling.overlap import overlap_q, window_end


@dataclass(frozen=True)
class TimeSlot:
    """A requested window ``[start, end)`` on ``date``."""
    date: date
    start: datetime
    duration_minutes: int

    @property
    def end(self) -> datetime:
        return window_end(self.start, self.duration_minutes)

    def to_dict(self) -> dict:
        return {
            'date': self.date.isoformat(),
            'start_time': timezone.localtime(self.start).isoformat(),
            'end_time': timezone.localtime(self.end).isoformat(),
            'duration_minutes': self.duration_minutes,
        }


@dataclass
class AvailableResources:
    staff: list[Staff]
    equipment: list[Equipment]


# ---------------------------------------------------------------------------
# Input parsing
# ---------------------------------------------------------------------------

def parse_scheduled_date(value, field: str = 'scheduled_date') -> date:
    if value in (None, ''):
        raise InvalidInput(f'{field} is required.', field=field)
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        parsed = parse_date(str(value).strip())
    except ValueError:
        parsed = None
    if parsed is None:
        raise InvalidInput(f'{field} must be a valid date (YYYY-MM-DD).', field=field)
    return parsed


def _wall_clock_time(value) -> time | None:
    """Time-of-day part of ``value`` in the local timezone."""
    if isinstance(value, datetime):
        parsed_dt = value
    elif isinstance(value, time):
        return value.replace(tzinfo=None)
    else:
        raw = str(value).strip()
        try:
            parsed_dt = parse_datetime(raw)
        except ValueError:
            return None
        if parsed_dt is None:
            try:
                parsed_time = parse_time(raw)
            except ValueError:
                return None
            return parsed_time.replace(tzinfo=None) if parsed_time else None

    if timezone.is_aware(parsed_dt):
        parsed_dt = timezone.localtime(parsed_dt)
    return parsed_dt.time()


def parse_scheduled_start(scheduled_date: date, value, field: str = 'scheduled_start') -> datetime:
    """Combine ``scheduled_date`` with the wall-clock time of ``value``.

    Accepts ISO datetimes (``2025-03-01T09:00:00``, ``2025-03-01 09:00:00``)
    and bare times (``09:00``). The result is aware, in the current timezone.
    """
    if value in (None, ''):
        raise InvalidInput(f'{field} is required.', field=field)
    wall_clock = _wall_clock_time(value)
    if wall_clock is None:
        raise InvalidInput(f'{field} must be a valid date/time.', field=field)
    combined = datetime.combine(scheduled_date, wall_clock)
    return timezone.make_aware(combined, timezone.get_current_timezone())


def parse_duration(value, field: str = 'duration_minutes') -> int:
    if value in (None, ''):
        raise InvalidInput(f'{field} is required.', field=field)
    if isinstance(value, bool):
        raise InvalidInput(f'{field} must be a positive integer.', field=field)
    if isinstance(value, int):
        duration = value
    elif isinstance(value, str) and value.strip().isdigit():
        duration = int(value.strip())
    else:
        raise InvalidInput(f'{field} must be a positive integer.', field=field)
    if duration <= 0:
        raise InvalidInput(f'{field} must be a positive integer.', field=field)
    return duration


def parse_time_slot(scheduled_date, scheduled_start, duration_minutes) -> TimeSlot:
    day = parse_scheduled_date(scheduled_date)
    start = parse_scheduled_start(day, scheduled_start)
    duration = parse_duration(duration_minutes)
    return TimeSlot(date=day, start=start, duration_minutes=duration)


# ---------------------------------------------------------------------------
# Busy queries
# ---------------------------------------------------------------------------

def _overlapping_assignments(slot: TimeSlot) -> QuerySet:
    return ResourceAssignment.objects.filter(
        overlap_q(slot.start, slot.end, prefix='operation__'),
        operation__status=Operation.STATUS_SCHEDULED,
    )


def busy_staff_ids(slot: TimeSlot) -> set[int]:
    return set(
        _overlapping_assignments(slot)
        .filter(staff__isnull=False)
        .values_list('staff_id', flat=True)
    )


def busy_equipment_ids(slot: TimeSlot) -> set[int]:
    return set(
        _overlapping_assignments(slot)
        .filter(equipment__isnull=False)
        .values_list('equipment_id', flat=True)
    )


def is_staff_busy(staff_id: int, slot: TimeSlot) -> bool:
    return _overlapping_assignments(slot).filter(staff_id=staff_id).exists()


def is_equipment_busy(equipment_id: int, slot: TimeSlot) -> bool:
    return _overlapping_assignments(slot).filter(equipment_id=equipment_id).exists()


def find_room_conflict(room: OTRoom | int, slot: TimeSlot) -> Operation | None:
    """First Scheduled operation occupying ``room`` during ``slot``, if any."""
    room_id = getattr(room, 'id', room)
    return (
        Operation.objects.filter(
            overlap_q(slot.start, slot.end),
            room_id=room_id,
            status=Operation.STATUS_SCHEDULED,
        )
        .order_by('scheduled_start', 'id')
        .first()
    )


# ---------------------------------------------------------------------------
# Pool queries
# ---------------------------------------------------------------------------

def available_staff(slot: TimeSlot) -> list[Staff]:
    return list(
        Staff.objects.select_related('user')
        .filter(user__is_active=True)
        .exclude(id__in=busy_staff_ids(slot))
        .order_by('user__username', 'id')
    )


def available_equipment(slot: TimeSlot) -> list[Equipment]:
    return list(
        Equipment.objects.filter(status=Equipment.STATUS_AVAILABLE)
        .exclude(id__in=busy_equipment_ids(slot))
        .order_by('name', 'id')
    )


def available_resources(slot: TimeSlot) -> AvailableResources:
    return AvailableResources(
        staff=available_staff(slot),
        equipment=available_equipment(slot),
    )
