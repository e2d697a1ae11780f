"""
Scheduling engine for OT operations.

``schedule_operation`` is the single entry point for creating an operation.
Views delegate to it and translate its exceptions into responses.

Flow:
1. Validate the raw request into a ``ScheduleRequest`` (``InvalidInput``).
2. Room must exist and be active (``RoomNotFound``).
3. Advisory room-conflict check (``RoomConflict``).
4. One atomic transaction: lock room, staff and equipment rows, re-check the
   room, insert the operation, run the ``ResourceMatcher``, insert one
   notification per assigned staff member.
5. After commit, publish real-time events (best effort).

Locks are always taken in the order room -> staff -> equipment, each sorted
by id, so two scheduling transactions cannot deadlock on each other. While a
row is locked, a competing transaction blocks and re-reads committed state
once it proceeds; the loser sees a room conflict or "No longer available".
On SQLite the whole transaction is serialised by ``BEGIN IMMEDIATE``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any

from django.db import transaction
from django.utils import timezone

from theatre_backend.notifications.models import Notification
from theatre_backend.realtime.bus import EventBus, build_event_bus
from theatre_backend.realtime.dispatcher import NotificationDispatcher
from theatre_backend.scheduling.exceptions import (
    InvalidInput,
    RoomConflict,
    RoomNotFound,
    SchedulingError,
    SchedulingFailed,
)
from theatre_backend.scheduling.models import Equipment, Operation, OTRoom, Staff
from theatre_backend.scheduling.serializers import operation_payload
from theatre_backend.scheduling.services.availability import (
    TimeSlot,
    find_room_conflict,
    parse_duration,
    parse_scheduled_date,
    parse_scheduled_start,
)
from theatre_backend.scheduling.services.matcher import AssignmentPlan, ResourceMatcher

logger = logging.getLogger(__name__)

REQUIRED_FIELDS = ('operation_name', 'scheduled_date', 'scheduled_start', 'duration_minutes', 'room_id')


# ---------------------------------------------------------------------------
# Request / Result types
# ---------------------------------------------------------------------------

def _id_list(value, field: str) -> tuple[int, ...]:
    if value is None:
        return ()
    if not isinstance(value, (list, tuple)):
        raise InvalidInput(f'{field} must be a list of integers.', field=field)
    ids = []
    for item in value:
        if isinstance(item, bool) or not isinstance(item, int):
            raise InvalidInput(f'{field} must be a list of integers.', field=field)
        ids.append(item)
    return tuple(ids)


def _room_id(value) -> int:
    if isinstance(value, bool):
        raise InvalidInput('room_id must be an integer.', field='room_id')
    try:
        return int(value)
    except (TypeError, ValueError):
        raise InvalidInput('room_id must be an integer.', field='room_id')


@dataclass(frozen=True)
class ScheduleRequest:
    operation_name: str
    description: str
    scheduled_date: date
    scheduled_start: datetime
    duration_minutes: int
    room_id: int
    staff_ids: tuple[int, ...] = ()
    equipment_ids: tuple[int, ...] = ()

    @property
    def slot(self) -> TimeSlot:
        return TimeSlot(
            date=self.scheduled_date,
            start=self.scheduled_start,
            duration_minutes=self.duration_minutes,
        )

    @classmethod
    def from_data(cls, data: dict[str, Any]) -> 'ScheduleRequest':
        for name in REQUIRED_FIELDS:
            value = data.get(name)
            if value is None or (isinstance(value, str) and not value.strip()):
                raise InvalidInput(f'{name} is required.', field=name)

        scheduled_date = parse_scheduled_date(data['scheduled_date'])
        return cls(
            operation_name=str(data['operation_name']).strip(),
            description=data.get('description') or '',
            scheduled_date=scheduled_date,
            scheduled_start=parse_scheduled_start(scheduled_date, data['scheduled_start']),
            duration_minutes=parse_duration(data['duration_minutes']),
            room_id=_room_id(data['room_id']),
            staff_ids=_id_list(data.get('staff_ids'), 'staff_ids'),
            equipment_ids=_id_list(data.get('equipment_ids'), 'equipment_ids'),
        )


@dataclass
class ScheduleResult:
    operation: Operation
    plan: AssignmentPlan


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _conflict_error(operation: Operation) -> RoomConflict:
    return RoomConflict(operation_id=operation.id, operation_name=operation.operation_name)


def _lock_resources(request: ScheduleRequest) -> OTRoom:
    room = (
        OTRoom.objects.select_for_update()
        .filter(id=request.room_id, is_active=True)
        .first()
    )
    if room is None:
        raise RoomNotFound(request.room_id)
    if request.staff_ids:
        list(Staff.objects.select_for_update().filter(id__in=set(request.staff_ids)).order_by('id'))
    if request.equipment_ids:
        list(Equipment.objects.select_for_update().filter(id__in=set(request.equipment_ids)).order_by('id'))
    return room


def assignment_message(operation: Operation) -> str:
    return f'Assigned to: {operation.operation_name} on {operation.scheduled_date.isoformat()}'


def _commit(request: ScheduleRequest, requester) -> tuple[Operation, AssignmentPlan]:
    room = _lock_resources(request)

    conflict = find_room_conflict(room, request.slot)
    if conflict is not None:
        raise _conflict_error(conflict)

    operation = Operation.objects.create(
        operation_name=request.operation_name,
        description=request.description,
        room=room,
        scheduler=requester,
        scheduled_date=request.scheduled_date,
        scheduled_start=request.scheduled_start,
        duration_minutes=request.duration_minutes,
        status=Operation.STATUS_SCHEDULED,
    )

    matcher = ResourceMatcher(operation=operation, assigned_by=requester)
    plan = matcher.match(request.staff_ids, request.equipment_ids)

    message = assignment_message(operation)
    Notification.objects.bulk_create([
        Notification(staff_id=staff_id, operation=operation, notification_text=message)
        for staff_id in plan.staff_assigned
    ])
    return operation, plan


def publish_scheduled(dispatcher: NotificationDispatcher, operation: Operation, plan: AssignmentPlan) -> None:
    payload = operation_payload(operation)
    dispatcher.notify_operation_update('scheduled', payload)
    if plan.staff_assigned:
        dispatcher.notify_staff_assignment(plan.staff_assigned, payload)
    for equipment_id in plan.equipment_assigned:
        dispatcher.notify_equipment_update(equipment_id, Equipment.STATUS_IN_USE)


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def schedule_operation(*, data: dict[str, Any], requester, event_bus: EventBus | None = None) -> ScheduleResult:
    """
    Validate, commit and announce a new operation.

    Args:
        data: Raw request fields (operation_name, description, scheduled_date,
            scheduled_start, duration_minutes, room_id, staff_ids, equipment_ids)
        requester: The user scheduling the operation
        event_bus: Bus for real-time events; built from settings when omitted

    Returns:
        ScheduleResult with the re-read operation and the assignment plan.
        Resources that could not be granted are listed in the plan.

    Raises:
        InvalidInput: Missing or malformed fields, or a start in the past
        RoomNotFound: Room does not exist or is inactive
        RoomConflict: Room is booked for an overlapping Scheduled operation
        SchedulingFailed: The transaction failed; nothing was persisted
    """
    request = ScheduleRequest.from_data(data)

    # Wall-clock comparison at request time, not the transaction's clock.
    if request.scheduled_start < timezone.now():
        raise InvalidInput('Cannot schedule operations in the past.', field='scheduled_start')

    room = OTRoom.objects.filter(id=request.room_id, is_active=True).first()
    if room is None:
        raise RoomNotFound(request.room_id)

    conflict = find_room_conflict(room, request.slot)
    if conflict is not None:
        logger.warning('Room %s conflicts with operation %s', room.id, conflict.id)
        raise _conflict_error(conflict)

    try:
        with transaction.atomic():
            operation, plan = _commit(request, requester)
    except SchedulingError as exc:
        logger.warning('Scheduling of %r rejected under lock: %s', request.operation_name, exc)
        raise
    except Exception as exc:
        logger.exception('Scheduling transaction failed for %r', request.operation_name)
        raise SchedulingFailed() from exc

    logger.info(
        'Operation %s scheduled in room %s (%d staff, %d equipment granted)',
        operation.id,
        room.id,
        len(plan.staff_assigned),
        len(plan.equipment_assigned),
    )

    # Already committed; announcement failures are only logged.
    try:
        operation = Operation.objects.select_related('room', 'scheduler').get(id=operation.id)
        dispatcher = NotificationDispatcher(event_bus if event_bus is not None else build_event_bus())
        publish_scheduled(dispatcher, operation, plan)
    except Exception:
        logger.exception('Operation %s committed but could not be announced', operation.id)
    return ScheduleResult(operation=operation, plan=plan)
