"""
Releasing equipment when an operation leaves the ``Scheduled`` state.

Equipment ``status`` is a cache of "committed to a current or upcoming
operation". Scheduling sets it to ``In Use``; this module sets it back to
``Available`` when an operation is cancelled or completed, unless another
``Scheduled`` operation that has not yet ended still holds the device.
Devices in ``Maintenance`` are never touched.
"""

from __future__ import annotations

import logging
from datetime import datetime

from django.db import transaction
from django.utils import timezone

from theatre_backend.realtime.bus import EventBus, build_event_bus
from theatre_backend.realtime.dispatcher import NotificationDispatcher
from theatre_backend.scheduling.exceptions import InvalidInput
from theatre_backend.scheduling.models import Equipment, Operation, ResourceAssignment
from theatre_backend.scheduling.serializers import operation_payload

logger = logging.getLogger(__name__)

RELEASE_ACTIONS = {
    Operation.STATUS_CANCELLED: 'cancelled',
    Operation.STATUS_COMPLETED: 'completed',
}


def _release_equipment(operation: Operation, now: datetime) -> list[int]:
    equipment_ids = set(
        operation.assignments.filter(equipment__isnull=False).values_list('equipment_id', flat=True)
    )
    if not equipment_ids:
        return []

    locked = list(
        Equipment.objects.select_for_update()
        .filter(id__in=equipment_ids)
        .order_by('id')
    )
    still_held = set(
        ResourceAssignment.objects.filter(
            equipment_id__in=equipment_ids,
            operation__status=Operation.STATUS_SCHEDULED,
            operation__scheduled_end__gt=now,
        )
        .exclude(operation_id=operation.id)
        .values_list('equipment_id', flat=True)
    )
    released = [
        equipment.id
        for equipment in locked
        if equipment.id not in still_held and equipment.status == Equipment.STATUS_IN_USE
    ]
    if released:
        Equipment.objects.filter(id__in=released).update(
            status=Equipment.STATUS_AVAILABLE,
            updated_at=timezone.now(),
        )
    return released


def release_operation(
    *,
    operation: Operation,
    status: str,
    actor=None,
    event_bus: EventBus | None = None,
    now: datetime | None = None,
) -> tuple[Operation, list[int]]:
    """
    Move a Scheduled operation to ``Cancelled`` or ``Completed`` and free its
    equipment.

    Returns:
        The updated operation and the ids of equipment set back to Available.

    Raises:
        InvalidInput: Target status is not a release status, or the operation
            is no longer Scheduled
    """
    if status not in RELEASE_ACTIONS:
        raise InvalidInput('status must be Cancelled or Completed.', field='status')
    now = now or timezone.now()

    with transaction.atomic():
        locked = Operation.objects.select_for_update().get(id=operation.id)
        if locked.status != Operation.STATUS_SCHEDULED:
            raise InvalidInput(
                f'Only Scheduled operations can be {RELEASE_ACTIONS[status]}; this one is {locked.status}.',
                field='status',
            )
        locked.status = status
        locked.save(update_fields=['status', 'updated_at'])
        released = _release_equipment(locked, now)

    logger.info(
        'Operation %s %s by %s; released equipment %s',
        locked.id,
        RELEASE_ACTIONS[status],
        getattr(actor, 'username', 'system'),
        released,
    )

    locked = Operation.objects.select_related('room', 'scheduler').get(id=locked.id)
    dispatcher = NotificationDispatcher(event_bus if event_bus is not None else build_event_bus())
    dispatcher.notify_operation_update(RELEASE_ACTIONS[status], operation_payload(locked))
    for equipment_id in released:
        dispatcher.notify_equipment_update(equipment_id, Equipment.STATUS_AVAILABLE)
    return locked, released


def release_elapsed_operations(*, now: datetime | None = None, event_bus: EventBus | None = None) -> list[int]:
    """Complete every Scheduled operation whose window has ended. Returns their ids."""
    now = now or timezone.now()
    event_bus = event_bus if event_bus is not None else build_event_bus()

    completed = []
    elapsed = Operation.objects.filter(
        status=Operation.STATUS_SCHEDULED,
        scheduled_end__lte=now,
    ).order_by('scheduled_end', 'id')
    for operation in elapsed:
        try:
            release_operation(
                operation=operation,
                status=Operation.STATUS_COMPLETED,
                event_bus=event_bus,
                now=now,
            )
        except InvalidInput as exc:
            # Cancelled or completed concurrently.
            logger.info('Skipping operation %s: %s', operation.id, exc)
            continue
        completed.append(operation.id)
    return completed
