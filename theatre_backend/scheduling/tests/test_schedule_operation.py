from __future__ import annotations

from datetime import timedelta
from unittest.mock import patch

from django.test import TestCase

from theatre_backend.core.models import AuditLog
from theatre_backend.notifications.models import Notification
from theatre_backend.realtime.bus import InMemoryEventBus
from theatre_backend.scheduling.exceptions import (
	InvalidInput,
	RoomConflict,
	RoomNotFound,
	SchedulingFailed,
)
from theatre_backend.scheduling.models import Equipment, Operation, ResourceAssignment
from theatre_backend.scheduling.services.scheduling import schedule_operation
from theatre_backend.scheduling.tests.factories import (
	at,
	client_for,
	future_day,
	make_equipment,
	make_operation,
	make_room,
	make_staff,
	make_user,
)
from theatre_backend.scheduling.views import OperationListCreateView


class BrokenBus:
	def publish(self, topic, payload):
		raise ConnectionError("bus down")


class ScheduleOperationEndToEndTest(TestCase):
	"""POST /api/operations/ - Raum R1, Personal S1, Gerät E1."""

	url = "/api/operations/"

	def setUp(self):
		self.day = future_day()
		self.scheduler = make_user("scheduler_e2e", "scheduler")
		self.r1 = make_room("R1")
		self.s1 = make_staff("s1_e2e", first_name="Sam", last_name="One")
		self.e1 = make_equipment("E1")
		self.bus = InMemoryEventBus()
		self.client = client_for(self.scheduler)

	def _payload(self, start: str, **overrides):
		payload = {
			"operation_name": "Appendectomy",
			"description": "Laparoscopic",
			"scheduled_date": self.day.isoformat(),
			"scheduled_start": start,
			"duration_minutes": 60,
			"room_id": self.r1.id,
			"staff_ids": [self.s1.id],
			"equipment_ids": [self.e1.id],
		}
		payload.update(overrides)
		return payload

	def _post(self, payload):
		with patch.object(OperationListCreateView, "get_event_bus", return_value=self.bus):
			return self.client.post(self.url, payload, format="json")

	def test_schedule_then_room_conflict(self):
		before_audit = AuditLog.objects.count()
		resp = self._post(self._payload(f"{self.day.isoformat()}T09:00:00"))
		self.assertEqual(resp.status_code, 201, resp.data)

		assignments = resp.data["assignments"]
		self.assertEqual(assignments["staff_assigned"], [self.s1.id])
		self.assertEqual(assignments["equipment_assigned"], [self.e1.id])
		self.assertEqual(assignments["staff_failed"], [])
		self.assertEqual(assignments["equipment_failed"], [])

		operation = resp.data["operation"]
		self.assertEqual(operation["room_name"], "R1")
		self.assertEqual(operation["scheduler_name"], "scheduler_e2e")
		self.assertEqual(operation["status"], Operation.STATUS_SCHEDULED)
		self.assertEqual(operation["staff_count"], 1)
		self.assertEqual(operation["equipment_count"], 1)

		notifications = Notification.objects.filter(staff=self.s1)
		self.assertEqual(notifications.count(), 1)
		self.assertEqual(
			notifications.get().notification_text,
			f"Assigned to: Appendectomy on {self.day.isoformat()}",
		)

		self.e1.refresh_from_db()
		self.assertEqual(self.e1.status, Equipment.STATUS_IN_USE)

		row = ResourceAssignment.objects.get(operation_id=operation["id"])
		self.assertEqual((row.staff_id, row.equipment_id), (self.s1.id, self.e1.id))
		self.assertEqual(row.assigned_by_id, self.scheduler.id)
		self.assertFalse(row.notified)

		self.assertEqual(
			self.bus.topics(),
			["operation-updated", f"staff-{self.s1.id}-assignments", "equipment-updated"],
		)
		_, staff_event = self.bus.events[1]
		self.assertEqual(staff_event["type"], "new_assignment")
		self.assertEqual(staff_event["message"], "You have been assigned to: Appendectomy")
		self.assertEqual(self.bus.events[2][1]["status"], Equipment.STATUS_IN_USE)

		self.assertEqual(AuditLog.objects.count(), before_audit + 1)
		self.assertEqual(AuditLog.objects.order_by("-id").first().action, "operation_schedule")

		resp = self._post(self._payload("09:30", operation_name="Second", staff_ids=[], equipment_ids=[]))
		self.assertEqual(resp.status_code, 400)
		self.assertEqual(resp.data["conflicting_operation"]["operation_name"], "Appendectomy")
		self.assertEqual(resp.data["conflicting_operation"]["id"], operation["id"])
		self.assertEqual(Operation.objects.count(), 1)

	def test_back_to_back_in_same_room_is_allowed(self):
		self.assertEqual(self._post(self._payload("09:00")).status_code, 201)
		resp = self._post(self._payload("10:00", operation_name="Follow-up", staff_ids=[], equipment_ids=[]))
		self.assertEqual(resp.status_code, 201, resp.data)

	def test_invalid_input_is_400_with_field(self):
		cases = [
			({"room_id": None}, "room_id"),
			({"operation_name": ""}, "operation_name"),
			({"duration_minutes": 0}, "duration_minutes"),
			({"scheduled_date": "2030-02-31"}, "scheduled_date"),
			({"scheduled_date": future_day(-3).isoformat()}, "scheduled_start"),
		]
		for overrides, field in cases:
			with self.subTest(field=field):
				resp = self._post(self._payload("09:00", **overrides))
				self.assertEqual(resp.status_code, 400)
				self.assertEqual(resp.data["field"], field)
		self.assertEqual(Operation.objects.count(), 0)

	def test_malformed_id_lists_rejected_by_serializer(self):
		resp = self._post(self._payload("09:00", staff_ids=["abc"]))
		self.assertEqual(resp.status_code, 400)
		self.assertIn("staff_ids", resp.data)

	def test_unknown_or_inactive_room(self):
		resp = self._post(self._payload("09:00", room_id=999999))
		self.assertEqual(resp.status_code, 400)
		self.assertEqual(resp.data["room_id"], 999999)

		inactive = make_room("Closed", is_active=False)
		resp = self._post(self._payload("09:00", room_id=inactive.id))
		self.assertEqual(resp.status_code, 400)
		self.assertEqual(Operation.objects.count(), 0)

	def test_publication_failure_does_not_fail_request(self):
		self.bus = BrokenBus()
		with self.assertLogs("theatre_backend.realtime.dispatcher", level="ERROR"):
			resp = self._post(self._payload("09:00"))
		self.assertEqual(resp.status_code, 201)
		self.assertEqual(Operation.objects.count(), 1)

	def test_transaction_failure_is_500_and_rolls_back(self):
		with patch(
			"theatre_backend.scheduling.services.scheduling.ResourceMatcher.match",
			side_effect=RuntimeError("boom"),
		):
			with self.assertLogs("theatre_backend.scheduling.services.scheduling", level="ERROR"):
				resp = self._post(self._payload("09:00"))
		self.assertEqual(resp.status_code, 500)
		self.assertEqual(Operation.objects.count(), 0)
		self.assertEqual(ResourceAssignment.objects.count(), 0)
		self.assertEqual(Notification.objects.count(), 0)
		self.e1.refresh_from_db()
		self.assertEqual(self.e1.status, Equipment.STATUS_AVAILABLE)

	def test_list_includes_counts(self):
		self._post(self._payload("09:00"))
		resp = self.client.get(self.url)
		self.assertEqual(resp.status_code, 200)
		self.assertEqual(len(resp.data), 1)
		self.assertEqual(resp.data[0]["staff_count"], 1)
		self.assertEqual(resp.data[0]["equipment_count"], 1)


class ScheduleOperationServiceTest(TestCase):
	"""Direct calls to schedule_operation()."""

	def setUp(self):
		self.day = future_day()
		self.scheduler = make_user("scheduler_svc", "scheduler")
		self.room = make_room("R1")
		self.other_room = make_room("R2")
		self.s1 = make_staff("s1_svc")
		self.s2 = make_staff("s2_svc")
		self.s3 = make_staff("s3_svc")
		self.e1 = make_equipment("E1")
		self.e2 = make_equipment("E2")
		self.bus = InMemoryEventBus()

	def _schedule(self, start_hour=9, start_minute=0, **overrides):
		data = {
			"operation_name": "Hip replacement",
			"scheduled_date": self.day.isoformat(),
			"scheduled_start": f"{start_hour:02d}:{start_minute:02d}",
			"duration_minutes": 90,
			"room_id": self.room.id,
			"staff_ids": [],
			"equipment_ids": [],
		}
		data.update(overrides)
		return schedule_operation(data=data, requester=self.scheduler, event_bus=self.bus)

	def test_partial_failure_when_staff_is_busy(self):
		make_operation(
			room=self.other_room,
			scheduler=self.scheduler,
			start=at(self.day, 8, 30),
			duration=60,
			staff=[self.s2],
		)
		result = self._schedule(staff_ids=[self.s1.id, self.s2.id])

		self.assertEqual(result.plan.staff_assigned, [self.s1.id])
		self.assertEqual(result.plan.staff_failed, [{"staff_id": self.s2.id, "reason": "No longer available"}])
		self.assertEqual(result.operation.status, Operation.STATUS_SCHEDULED)
		self.assertEqual(Notification.objects.filter(operation=result.operation).count(), 1)

	def test_operation_created_even_when_every_resource_fails(self):
		make_operation(
			room=self.other_room,
			scheduler=self.scheduler,
			start=at(self.day, 9),
			staff=[self.s1],
			equipment=[self.e1],
		)
		result = self._schedule(staff_ids=[self.s1.id], equipment_ids=[self.e1.id])
		self.assertEqual(result.plan.staff_assigned, [])
		self.assertEqual(result.plan.equipment_assigned, [])
		self.assertEqual(len(result.plan.staff_failed), 1)
		self.assertEqual(result.plan.equipment_failed, [{"equipment_id": self.e1.id, "reason": "No longer available"}])
		self.assertTrue(Operation.objects.filter(id=result.operation.id).exists())
		self.assertFalse(result.operation.assignments.exists())

	def test_room_conflict_names_operation(self):
		existing = make_operation(room=self.room, scheduler=self.scheduler, start=at(self.day, 10), name="Knee")
		with self.assertRaises(RoomConflict) as ctx:
			self._schedule()
		self.assertEqual(ctx.exception.operation_id, existing.id)
		self.assertIn("Knee", str(ctx.exception))

	def test_cancelled_operation_does_not_block_room(self):
		make_operation(
			room=self.room,
			scheduler=self.scheduler,
			start=at(self.day, 9),
			status=Operation.STATUS_CANCELLED,
		)
		result = self._schedule()
		self.assertEqual(result.operation.room_id, self.room.id)

	def test_operation_running_past_midnight_blocks_next_day(self):
		night = make_operation(
			room=self.room,
			scheduler=self.scheduler,
			start=at(self.day, 23),
			duration=180,
			name="Night op",
			staff=[self.s1],
		)
		next_day = (self.day + timedelta(days=1)).isoformat()

		with self.assertRaises(RoomConflict) as ctx:
			self._schedule(start_hour=0, start_minute=30, scheduled_date=next_day)
		self.assertEqual(ctx.exception.operation_id, night.id)

		result = self._schedule(
			start_hour=0,
			start_minute=30,
			scheduled_date=next_day,
			room_id=self.other_room.id,
			staff_ids=[self.s1.id],
		)
		self.assertEqual(result.plan.staff_failed, [{"staff_id": self.s1.id, "reason": "No longer available"}])
		self.assertEqual(Operation.objects.filter(room=self.room).count(), 1)

	def test_missing_field_and_room_errors(self):
		with self.assertRaises(InvalidInput) as ctx:
			self._schedule(operation_name=None)
		self.assertEqual(ctx.exception.field, "operation_name")

		with self.assertRaises(InvalidInput) as ctx:
			self._schedule(staff_ids="1,2")
		self.assertEqual(ctx.exception.field, "staff_ids")

		with self.assertRaises(RoomNotFound):
			self._schedule(room_id=424242)

	def test_unexpected_failure_raises_scheduling_failed(self):
		with patch(
			"theatre_backend.scheduling.services.scheduling.Notification.objects.bulk_create",
			side_effect=RuntimeError("disk full"),
		):
			with self.assertLogs("theatre_backend.scheduling.services.scheduling", level="ERROR"):
				with self.assertRaises(SchedulingFailed):
					self._schedule(staff_ids=[self.s1.id], equipment_ids=[self.e1.id])
		self.assertEqual(Operation.objects.count(), 0)
		self.e1.refresh_from_db()
		self.assertEqual(self.e1.status, Equipment.STATUS_AVAILABLE)

	def test_announcement_failure_after_commit_still_returns_result(self):
		with patch(
			"theatre_backend.scheduling.services.scheduling.operation_payload",
			side_effect=RuntimeError("serializer broke"),
		):
			with self.assertLogs("theatre_backend.scheduling.services.scheduling", level="ERROR"):
				result = self._schedule(staff_ids=[self.s1.id], equipment_ids=[self.e1.id])

		self.assertEqual(result.plan.staff_assigned, [self.s1.id])
		self.assertTrue(Operation.objects.filter(id=result.operation.id).exists())
		self.assertEqual(self.bus.events, [])

	def test_core_invariant_holds_after_many_requests(self):
		requests = [
			(8, 0, self.room, [self.s1.id, self.s2.id], [self.e1.id]),
			(8, 30, self.other_room, [self.s1.id, self.s3.id], [self.e1.id, self.e2.id]),
			(9, 30, self.room, [self.s2.id, self.s3.id], [self.e2.id, self.e1.id]),
			(10, 0, self.other_room, [self.s3.id, self.s1.id], [self.e2.id]),
		]
		for hour, minute, room, staff_ids, equipment_ids in requests:
			self._schedule(
				start_hour=hour,
				start_minute=minute,
				room_id=room.id,
				staff_ids=staff_ids,
				equipment_ids=equipment_ids,
			)

		rows = list(ResourceAssignment.objects.select_related("operation"))
		for i, a in enumerate(rows):
			for b in rows[i + 1:]:
				if a.operation_id == b.operation_id:
					continue
				same_staff = a.staff_id is not None and a.staff_id == b.staff_id
				same_device = a.equipment_id is not None and a.equipment_id == b.equipment_id
				if same_staff or same_device:
					self.assertFalse(
						a.operation.scheduled_start < b.operation.scheduled_end
						and b.operation.scheduled_start < a.operation.scheduled_end,
						(a.id, b.id),
					)
