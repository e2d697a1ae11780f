"""
Greedy staff -> equipment matching.

Runs inside the scheduling transaction, after the engine has locked the
requested staff and equipment rows. The order of both request lists is
observable: earlier staff members get the first free device, and every
re-check sees the rows inserted by earlier iterations of the same request.

Algorithm:
1. For each staff id in request order: skip with a failure if unknown or
   busy; otherwise pair it with the first requested device that is not yet
   claimed and is free, and insert one assignment row.
2. Every requested device left unclaimed is re-checked and, if free,
   assigned to the operation without a staff owner (shared equipment).

A resource that cannot be granted is recorded in the plan; it never aborts
the operation.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Iterable

from django.utils import timezone

from theatre_backend.scheduling.models import (
    Equipment,
    Operation,
    ResourceAssignment,
    Staff,
)
from theatre_backend.scheduling.services.availability import (
    TimeSlot,
    is_equipment_busy,
    is_staff_busy,
)

logger = logging.getLogger(__name__)

REASON_UNAVAILABLE = 'No longer available'
REASON_NOT_FOUND = 'Not found'


@dataclass
class AssignmentPlan:
    """Granted and refused resource requests for one operation."""
    staff_assigned: list[int] = field(default_factory=list)
    equipment_assigned: list[int] = field(default_factory=list)
    staff_failed: list[dict[str, Any]] = field(default_factory=list)
    equipment_failed: list[dict[str, Any]] = field(default_factory=list)

    @property
    def has_failures(self) -> bool:
        return bool(self.staff_failed or self.equipment_failed)

    def to_dict(self) -> dict[str, Any]:
        return {
            'staff_assigned': list(self.staff_assigned),
            'equipment_assigned': list(self.equipment_assigned),
            'staff_failed': [dict(f) for f in self.staff_failed],
            'equipment_failed': [dict(f) for f in self.equipment_failed],
        }


class ResourceMatcher:
    def __init__(self, *, operation: Operation, assigned_by=None):
        self.operation = operation
        self.assigned_by = assigned_by
        self.slot = TimeSlot(
            date=operation.scheduled_date,
            start=operation.scheduled_start,
            duration_minutes=operation.duration_minutes,
        )

    def match(self, staff_ids: Iterable[int], equipment_ids: Iterable[int]) -> AssignmentPlan:
        staff_ids = list(staff_ids)
        equipment_ids = list(equipment_ids)

        known_staff = set(Staff.objects.filter(id__in=staff_ids).values_list('id', flat=True))
        known_equipment = set(Equipment.objects.filter(id__in=equipment_ids).values_list('id', flat=True))

        plan = AssignmentPlan()
        claimed: set[int] = set()

        for staff_id in staff_ids:
            if staff_id not in known_staff:
                plan.staff_failed.append({'staff_id': staff_id, 'reason': REASON_NOT_FOUND})
                continue
            if is_staff_busy(staff_id, self.slot):
                plan.staff_failed.append({'staff_id': staff_id, 'reason': REASON_UNAVAILABLE})
                continue

            equipment_id = self._claim_equipment(equipment_ids, known_equipment, claimed)
            self._assign(staff_id=staff_id, equipment_id=equipment_id)
            plan.staff_assigned.append(staff_id)
            if equipment_id is not None:
                plan.equipment_assigned.append(equipment_id)

        for equipment_id in equipment_ids:
            if equipment_id in claimed:
                continue
            if equipment_id not in known_equipment:
                plan.equipment_failed.append({'equipment_id': equipment_id, 'reason': REASON_NOT_FOUND})
            elif is_equipment_busy(equipment_id, self.slot):
                plan.equipment_failed.append({'equipment_id': equipment_id, 'reason': REASON_UNAVAILABLE})
            else:
                self._assign(staff_id=None, equipment_id=equipment_id)
                plan.equipment_assigned.append(equipment_id)

        if plan.has_failures:
            logger.warning(
                'Operation %s: %d staff and %d equipment request(s) not granted',
                self.operation.id,
                len(plan.staff_failed),
                len(plan.equipment_failed),
            )
        return plan

    def _claim_equipment(self, equipment_ids, known_equipment, claimed) -> int | None:
        for equipment_id in equipment_ids:
            if equipment_id in claimed or equipment_id not in known_equipment:
                continue
            if not is_equipment_busy(equipment_id, self.slot):
                claimed.add(equipment_id)
                return equipment_id
        return None

    def _assign(self, *, staff_id: int | None, equipment_id: int | None) -> ResourceAssignment:
        assignment = ResourceAssignment.objects.create(
            operation=self.operation,
            staff_id=staff_id,
            equipment_id=equipment_id,
            assigned_by=self.assigned_by,
            assigned_at=timezone.now(),
            notified=False,
        )
        if equipment_id is not None:
            Equipment.objects.filter(id=equipment_id).update(
                status=Equipment.STATUS_IN_USE,
                updated_at=timezone.now(),
            )
        return assignment
