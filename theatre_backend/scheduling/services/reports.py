"""Read-side views of the schedule: a staff member's day and weekly workload."""

from __future__ import annotations

from datetime import date, datetime, timedelta

from django.db.models import Count, Q, Sum
from django.utils import timezone

from theatre_backend.scheduling.models import Operation, ResourceAssignment, Staff
from theatre_backend.scheduling.serializers import (
    EquipmentSerializer,
    OperationSerializer,
    StaffSerializer,
)

PHASE_UPCOMING = 'Upcoming'
PHASE_IN_PROGRESS = 'In Progress'
PHASE_COMPLETED = 'Completed'


def operation_phase(operation: Operation, now: datetime) -> str:
    if now < operation.scheduled_start:
        return PHASE_UPCOMING
    if now <= operation.scheduled_end:
        return PHASE_IN_PROGRESS
    return PHASE_COMPLETED


def week_bounds(day: date) -> tuple[date, date]:
    """Sunday..Saturday week containing ``day``."""
    # date.weekday(): Monday=0 ... Sunday=6
    start = day - timedelta(days=(day.weekday() + 1) % 7)
    return start, start + timedelta(days=6)


def staff_daily_schedule(staff: Staff, day: date, now: datetime | None = None) -> dict:
    now = now or timezone.now()
    operations = list(
        Operation.objects.select_related('room', 'scheduler')
        .filter(assignments__staff=staff, scheduled_date=day)
        .distinct()
        .order_by('scheduled_start', 'id')
    )
    operation_ids = [op.id for op in operations]
    assignments = (
        ResourceAssignment.objects.select_related('staff__user', 'equipment')
        .filter(operation_id__in=operation_ids)
        .order_by('id')
    )

    equipment_by_op: dict[int, dict] = {op_id: {} for op_id in operation_ids}
    team_by_op: dict[int, dict] = {op_id: {} for op_id in operation_ids}
    for assignment in assignments:
        if assignment.equipment_id is not None:
            equipment_by_op[assignment.operation_id][assignment.equipment_id] = assignment.equipment
        if assignment.staff_id is not None and assignment.staff_id != staff.id:
            team_by_op[assignment.operation_id][assignment.staff_id] = assignment.staff

    entries = []
    for op in operations:
        phase = operation_phase(op, now)
        equipment = EquipmentSerializer(list(equipment_by_op[op.id].values()), many=True).data
        team = StaffSerializer(list(team_by_op[op.id].values()), many=True).data
        entry = OperationSerializer(op).data
        entry.update({
            'operation_status': phase,
            'minutes_until_start': (
                int((op.scheduled_start - now).total_seconds() // 60) if phase == PHASE_UPCOMING else None
            ),
            'equipment': equipment,
            'team_members': team,
            'equipment_count': len(equipment),
            'team_count': len(team) + 1,
        })
        entries.append(entry)

    total_minutes = sum(op.duration_minutes for op in operations)
    status_breakdown: dict[str, int] = {}
    for entry in entries:
        status_breakdown[entry['operation_status']] = status_breakdown.get(entry['operation_status'], 0) + 1

    rooms = []
    for op in operations:
        if op.room.name not in rooms:
            rooms.append(op.room.name)

    return {
        'date': day.isoformat(),
        'staff_id': staff.id,
        'assignments': entries,
        'assignment_count': len(entries),
        'summary': {
            'total_operations': len(entries),
            'total_duration_minutes': total_minutes,
            'total_duration_hours': round(total_minutes / 60, 2),
            'rooms': rooms,
            'equipment_count': sum(entry['equipment_count'] for entry in entries),
            'team_members_count': sum(entry['team_count'] for entry in entries),
            'status_breakdown': status_breakdown,
        },
    }


def weekly_assignment_counts(day: date) -> dict:
    week_start, week_end = week_bounds(day)
    in_week = Q(
        assignments__operation__status=Operation.STATUS_SCHEDULED,
        assignments__operation__scheduled_date__range=(week_start, week_end),
    )
    staff_rows = (
        Staff.objects.select_related('user')
        .annotate(
            operation_count=Count('assignments__operation', filter=in_week, distinct=True),
            total_minutes=Sum('assignments__operation__duration_minutes', filter=in_week),
        )
        .order_by('-operation_count', 'user__username', 'id')
    )

    counts = []
    for staff in staff_rows:
        row = StaffSerializer(staff).data
        row.update({
            'operation_count': staff.operation_count,
            'total_minutes': staff.total_minutes or 0,
        })
        counts.append(row)

    week_operation_count = Operation.objects.filter(
        status=Operation.STATUS_SCHEDULED,
        scheduled_date__range=(week_start, week_end),
    ).count()

    total_operations = sum(row['operation_count'] for row in counts)
    total_minutes = sum(row['total_minutes'] for row in counts)
    average = round(total_operations / len(counts), 2) if counts else 0

    return {
        'week_start': week_start.isoformat(),
        'week_end': week_end.isoformat(),
        'week_operation_count': week_operation_count,
        'assignment_counts': counts,
        'summary': {
            'total_staff': len(counts),
            'total_operations': total_operations,
            'total_minutes': total_minutes,
            'total_hours': round(total_minutes / 60, 2),
            'avg_operations_per_staff': average,
            'workload_distribution': {
                'over_assigned': sum(1 for row in counts if row['operation_count'] > average),
                'under_assigned': sum(1 for row in counts if row['operation_count'] < average),
                'balanced': sum(1 for row in counts if row['operation_count'] == average),
            },
        },
    }
