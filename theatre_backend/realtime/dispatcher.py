"""Publishes scheduling state changes to the event bus.

All methods are best effort: the state change they describe has already been
committed, so a failing bus is logged and otherwise ignored.
"""

from __future__ import annotations

import logging
from typing import Any, Iterable

from django.utils import timezone

from .bus import EventBus

logger = logging.getLogger(__name__)

OPERATION_TOPIC = 'operation-updated'
EQUIPMENT_TOPIC = 'equipment-updated'
ROOM_TOPIC = 'room-updated'


def staff_topic(staff_id) -> str:
    return f'staff-{staff_id}-assignments'


class NotificationDispatcher:
    def __init__(self, event_bus: EventBus):
        self.event_bus = event_bus

    def _publish(self, topic: str, payload: dict[str, Any]) -> bool:
        try:
            self.event_bus.publish(topic, payload)
        except Exception:
            logger.exception('Event publication failed (topic=%s)', topic)
            return False
        logger.debug('Event published (topic=%s)', topic)
        return True

    def _timestamp(self) -> str:
        return timezone.now().isoformat()

    def notify_operation_update(self, action: str, operation: dict[str, Any]) -> bool:
        return self._publish(OPERATION_TOPIC, {
            'action': action,
            'operation': operation,
            'timestamp': self._timestamp(),
        })

    def notify_staff_assignment(self, staff_ids: Iterable[int], operation: dict[str, Any]) -> None:
        """One event per staff member, each on that member's own topic."""
        name = operation.get('operation_name', '')
        for staff_id in staff_ids:
            self._publish(staff_topic(staff_id), {
                'type': 'new_assignment',
                'operation': operation,
                'message': f'You have been assigned to: {name}',
                'timestamp': self._timestamp(),
            })

    def notify_equipment_update(self, equipment_id: int, status: str) -> bool:
        return self._publish(EQUIPMENT_TOPIC, {
            'equipment_id': equipment_id,
            'status': status,
            'timestamp': self._timestamp(),
        })

    def notify_room_update(self, action: str, room: dict[str, Any]) -> bool:
        return self._publish(ROOM_TOPIC, {
            'action': action,
            'room': room,
            'timestamp': self._timestamp(),
        })
