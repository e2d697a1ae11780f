"""Views for OT scheduling.

Business rules live in ``scheduling.services``; views validate request
shapes, call the services, and translate ``SchedulingError`` subclasses into
responses.
"""

from django.db.models import Count, ProtectedError, Q
from django.shortcuts import get_object_or_404
from django.utils import timezone
from rest_framework import generics, status
from rest_framework.response import Response
from rest_framework.views import APIView

from theatre_backend.core.permissions import PLANNING_ROLES
from theatre_backend.core.utils import log_action
from theatre_backend.realtime.bus import build_event_bus
from theatre_backend.realtime.dispatcher import NotificationDispatcher

from .exceptions import InvalidInput, SchedulingError, SchedulingFailed
from .models import Operation, OTRoom, Staff
from .permissions import (
	AvailableResourcesPermission,
	DailySchedulePermission,
	OperationPermission,
	OTRoomPermission,
	WeeklyAssignmentsPermission,
)
from .serializers import (
	EquipmentSerializer,
	OperationCreateSerializer,
	OperationSerializer,
	OTRoomSerializer,
	StaffSerializer,
	operation_payload,
)
from .services.availability import available_resources, parse_scheduled_date, parse_time_slot
from .services.release import release_operation
from .services.reports import staff_daily_schedule, weekly_assignment_counts
from .services.scheduling import schedule_operation


def error_response(exc: SchedulingError) -> Response:
	code = status.HTTP_500_INTERNAL_SERVER_ERROR if isinstance(exc, SchedulingFailed) else status.HTTP_400_BAD_REQUEST
	return Response(exc.to_dict(), status=code)


class EventBusMixin:
	"""Builds the configured event bus for a request."""

	def get_event_bus(self):
		return build_event_bus()


# ---------------------------------------------------------------------------
# Operations
# ---------------------------------------------------------------------------

class OperationListCreateView(EventBusMixin, generics.ListCreateAPIView):
	"""GET: all operations with staff/equipment counts. POST: schedule a new operation."""
	permission_classes = [OperationPermission]
	serializer_class = OperationSerializer

	def get_queryset(self):
		return (
			Operation.objects.select_related('room', 'scheduler')
			.annotate(
				staff_count=Count('assignments', filter=Q(assignments__staff__isnull=False), distinct=True),
				equipment_count=Count('assignments', filter=Q(assignments__equipment__isnull=False), distinct=True),
			)
			.order_by('-scheduled_date', '-scheduled_start', '-id')
		)

	def list(self, request, *args, **kwargs):
		log_action(request.user, 'operation_list')
		return super().list(request, *args, **kwargs)

	def create(self, request, *args, **kwargs):
		write_serializer = OperationCreateSerializer(data=request.data)
		write_serializer.is_valid(raise_exception=True)

		try:
			result = schedule_operation(
				data=dict(write_serializer.validated_data),
				requester=request.user,
				event_bus=self.get_event_bus(),
			)
		except SchedulingError as e:
			return error_response(e)

		log_action(
			request.user,
			'operation_schedule',
			result.operation.id,
			meta={'assignments': result.plan.to_dict()},
		)
		return Response(
			{
				'operation': operation_payload(result.operation),
				'assignments': result.plan.to_dict(),
			},
			status=status.HTTP_201_CREATED,
		)


class AvailableResourcesView(APIView):
	"""GET /api/operations/available-resources/?scheduled_date=&scheduled_start=&duration_minutes="""
	permission_classes = [AvailableResourcesPermission]

	def get(self, request, *args, **kwargs):
		params = request.query_params
		try:
			slot = parse_time_slot(
				params.get('scheduled_date'),
				params.get('scheduled_start'),
				params.get('duration_minutes'),
			)
		except InvalidInput as e:
			return error_response(e)

		resources = available_resources(slot)
		log_action(request.user, 'available_resources_view', meta={'date': slot.date.isoformat()})
		return Response({
			'available_staff': StaffSerializer(resources.staff, many=True).data,
			'available_equipment': EquipmentSerializer(resources.equipment, many=True).data,
			'staff_count': len(resources.staff),
			'equipment_count': len(resources.equipment),
			'time_slot': slot.to_dict(),
		})


class OperationReleaseView(EventBusMixin, APIView):
	"""POST: move a Scheduled operation to ``target_status`` and free its equipment."""
	permission_classes = [OperationPermission]
	target_status = None
	audit_action = None

	def post(self, request, pk, *args, **kwargs):
		operation = get_object_or_404(Operation, pk=pk)
		try:
			operation, released = release_operation(
				operation=operation,
				status=self.target_status,
				actor=request.user,
				event_bus=self.get_event_bus(),
			)
		except SchedulingError as e:
			return error_response(e)

		log_action(request.user, self.audit_action, operation.id, meta={'released_equipment': released})
		return Response({
			'operation': operation_payload(operation),
			'released_equipment': released,
		})


class OperationCancelView(OperationReleaseView):
	target_status = Operation.STATUS_CANCELLED
	audit_action = 'operation_cancel'


class OperationCompleteView(OperationReleaseView):
	target_status = Operation.STATUS_COMPLETED
	audit_action = 'operation_complete'


class StaffDailyScheduleView(APIView):
	"""GET /api/operations/staff/daily-schedule/?date=&staff_id=

	Staff users always get their own plan; admin/scheduler may pass staff_id.
	"""
	permission_classes = [DailySchedulePermission]

	def _resolve_staff(self, request):
		staff_id = request.query_params.get('staff_id')
		if staff_id and request.user.role_name in PLANNING_ROLES:
			try:
				return Staff.objects.select_related('user').filter(id=int(staff_id)).first()
			except (TypeError, ValueError):
				raise InvalidInput('staff_id must be an integer.', field='staff_id')
		return Staff.objects.select_related('user').filter(user=request.user).first()

	def get(self, request, *args, **kwargs):
		try:
			raw_date = request.query_params.get('date')
			day = parse_scheduled_date(raw_date, field='date') if raw_date else timezone.localdate()
			staff = self._resolve_staff(request)
		except InvalidInput as e:
			return error_response(e)

		if staff is None:
			return Response({'detail': 'No staff profile found.'}, status=status.HTTP_404_NOT_FOUND)

		data = staff_daily_schedule(staff, day)
		count = data['assignment_count']
		data['message'] = (
			f'Found {count} operation(s) for {day.isoformat()}' if count
			else f'No operations scheduled for {day.isoformat()}'
		)
		log_action(request.user, 'daily_schedule_view', staff.id, meta={'date': day.isoformat()})
		return Response(data)


class WeeklyAssignmentsView(APIView):
	"""GET /api/operations/weekly-assignments/?week_start= (Sunday-based week)"""
	permission_classes = [WeeklyAssignmentsPermission]

	def get(self, request, *args, **kwargs):
		raw_date = request.query_params.get('week_start')
		try:
			day = parse_scheduled_date(raw_date, field='week_start') if raw_date else timezone.localdate()
		except InvalidInput as e:
			return error_response(e)

		data = weekly_assignment_counts(day)
		log_action(request.user, 'weekly_assignments_view', meta={'week_start': data['week_start']})
		return Response(data)


# ---------------------------------------------------------------------------
# OT rooms
# ---------------------------------------------------------------------------

class OTRoomListCreateView(EventBusMixin, generics.ListCreateAPIView):
	permission_classes = [OTRoomPermission]
	serializer_class = OTRoomSerializer
	queryset = OTRoom.objects.all().order_by('-is_active', 'name', 'id')

	def perform_create(self, serializer):
		room = serializer.save()
		log_action(self.request.user, 'room_create', room.id)
		NotificationDispatcher(self.get_event_bus()).notify_room_update('added', OTRoomSerializer(room).data)


class ActiveOTRoomListView(generics.ListAPIView):
	permission_classes = [OTRoomPermission]
	serializer_class = OTRoomSerializer
	queryset = OTRoom.objects.filter(is_active=True).order_by('name', 'id')


class OTRoomDetailView(EventBusMixin, generics.RetrieveUpdateDestroyAPIView):
	permission_classes = [OTRoomPermission]
	serializer_class = OTRoomSerializer
	queryset = OTRoom.objects.all()

	def perform_update(self, serializer):
		room = serializer.save()
		log_action(self.request.user, 'room_update', room.id)
		NotificationDispatcher(self.get_event_bus()).notify_room_update('updated', OTRoomSerializer(room).data)

	def destroy(self, request, *args, **kwargs):
		room = self.get_object()
		future = Operation.objects.filter(
			room=room,
			status=Operation.STATUS_SCHEDULED,
			scheduled_date__gte=timezone.localdate(),
		)
		if future.exists():
			return Response(
				{'detail': 'Cannot delete room with scheduled future operations.'},
				status=status.HTTP_400_BAD_REQUEST,
			)

		payload = OTRoomSerializer(room).data
		room_id = room.id
		try:
			room.delete()
		except ProtectedError:
			return Response(
				{'detail': 'Room has operation history; deactivate it instead.'},
				status=status.HTTP_400_BAD_REQUEST,
			)

		log_action(request.user, 'room_delete', room_id)
		NotificationDispatcher(self.get_event_bus()).notify_room_update('deleted', payload)
		return Response(status=status.HTTP_204_NO_CONTENT)


class OTRoomToggleView(EventBusMixin, APIView):
	"""POST/PUT /api/ot-rooms/<id>/toggle/ flips ``is_active``."""
	permission_classes = [OTRoomPermission]

	def post(self, request, pk, *args, **kwargs):
		room = get_object_or_404(OTRoom, pk=pk)
		room.is_active = not room.is_active
		room.save(update_fields=['is_active', 'updated_at'])

		data = OTRoomSerializer(room).data
		log_action(request.user, 'room_toggle', room.id, meta={'is_active': room.is_active})
		NotificationDispatcher(self.get_event_bus()).notify_room_update('updated', data)
		return Response(data)

	put = post
