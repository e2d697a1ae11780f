from __future__ import annotations

from datetime import timedelta
from unittest.mock import patch

from django.test import TestCase
from django.utils import timezone

from theatre_backend.realtime.bus import InMemoryEventBus
from theatre_backend.scheduling.exceptions import InvalidInput
from theatre_backend.scheduling.models import Equipment, Operation
from theatre_backend.scheduling.services.release import release_elapsed_operations, release_operation
from theatre_backend.scheduling.services.scheduling import schedule_operation
from theatre_backend.scheduling.tasks import release_elapsed_operations as release_task
from theatre_backend.scheduling.tests.factories import (
	client_for,
	future_day,
	make_equipment,
	make_operation,
	make_room,
	make_staff,
	make_user,
)
from theatre_backend.scheduling.views import OperationReleaseView


class ReleaseOperationTest(TestCase):
	def setUp(self):
		self.day = future_day()
		self.scheduler = make_user("scheduler_release", "scheduler")
		self.room = make_room("R1")
		self.other_room = make_room("R2")
		self.s1 = make_staff("s1_release")
		self.e1 = make_equipment("E1")
		self.e2 = make_equipment("E2")
		self.bus = InMemoryEventBus()

	def _schedule(self, room, start, equipment_ids):
		return schedule_operation(
			data={
				"operation_name": f"Op {start}",
				"scheduled_date": self.day.isoformat(),
				"scheduled_start": start,
				"duration_minutes": 60,
				"room_id": room.id,
				"staff_ids": [self.s1.id],
				"equipment_ids": equipment_ids,
			},
			requester=self.scheduler,
			event_bus=self.bus,
		).operation

	def test_cancel_returns_equipment_to_pool(self):
		operation = self._schedule(self.room, "09:00", [self.e1.id, self.e2.id])
		self.bus.events.clear()

		updated, released = release_operation(
			operation=operation,
			status=Operation.STATUS_CANCELLED,
			actor=self.scheduler,
			event_bus=self.bus,
		)

		self.assertEqual(updated.status, Operation.STATUS_CANCELLED)
		self.assertEqual(released, [self.e1.id, self.e2.id])
		self.assertEqual(
			set(Equipment.objects.values_list("status", flat=True)),
			{Equipment.STATUS_AVAILABLE},
		)
		self.assertEqual(self.bus.topics(), ["operation-updated", "equipment-updated", "equipment-updated"])
		self.assertEqual(self.bus.events[0][1]["action"], "cancelled")

	def test_device_held_by_later_operation_stays_in_use(self):
		first = self._schedule(self.room, "09:00", [self.e1.id])
		self._schedule(self.other_room, "11:00", [self.e1.id])

		_, released = release_operation(operation=first, status=Operation.STATUS_COMPLETED, event_bus=self.bus)

		self.assertEqual(released, [])
		self.e1.refresh_from_db()
		self.assertEqual(self.e1.status, Equipment.STATUS_IN_USE)

	def test_only_scheduled_operations_transition(self):
		operation = self._schedule(self.room, "09:00", [])
		release_operation(operation=operation, status=Operation.STATUS_CANCELLED, event_bus=self.bus)

		with self.assertRaises(InvalidInput):
			release_operation(operation=operation, status=Operation.STATUS_COMPLETED, event_bus=self.bus)
		with self.assertRaises(InvalidInput):
			release_operation(operation=operation, status=Operation.STATUS_SCHEDULED, event_bus=self.bus)

	def test_maintenance_device_is_not_flipped(self):
		operation = self._schedule(self.room, "09:00", [self.e1.id])
		Equipment.objects.filter(id=self.e1.id).update(status=Equipment.STATUS_MAINTENANCE)

		_, released = release_operation(operation=operation, status=Operation.STATUS_CANCELLED, event_bus=self.bus)

		self.assertEqual(released, [])
		self.e1.refresh_from_db()
		self.assertEqual(self.e1.status, Equipment.STATUS_MAINTENANCE)


class ReleaseElapsedOperationsTest(TestCase):
	def setUp(self):
		self.scheduler = make_user("scheduler_elapsed", "scheduler")
		self.room = make_room("R1")
		self.e1 = make_equipment("E1", status=Equipment.STATUS_IN_USE)
		self.e2 = make_equipment("E2", status=Equipment.STATUS_IN_USE)
		now = timezone.now()
		self.elapsed = make_operation(
			room=self.room,
			scheduler=self.scheduler,
			start=now - timedelta(hours=3),
			duration=60,
			equipment=[self.e1],
		)
		self.running = make_operation(
			room=self.room,
			scheduler=self.scheduler,
			start=now - timedelta(minutes=30),
			duration=120,
			equipment=[self.e2],
		)

	def test_completes_only_elapsed_operations(self):
		completed = release_elapsed_operations(event_bus=InMemoryEventBus())

		self.assertEqual(completed, [self.elapsed.id])
		self.elapsed.refresh_from_db()
		self.running.refresh_from_db()
		self.assertEqual(self.elapsed.status, Operation.STATUS_COMPLETED)
		self.assertEqual(self.running.status, Operation.STATUS_SCHEDULED)
		self.e1.refresh_from_db()
		self.e2.refresh_from_db()
		self.assertEqual(self.e1.status, Equipment.STATUS_AVAILABLE)
		self.assertEqual(self.e2.status, Equipment.STATUS_IN_USE)

	def test_explicit_now(self):
		later = timezone.now() + timedelta(hours=3)
		completed = release_elapsed_operations(now=later, event_bus=InMemoryEventBus())
		self.assertEqual(completed, [self.elapsed.id, self.running.id])

	def test_celery_task_runs_release(self):
		bus = InMemoryEventBus()
		with patch("theatre_backend.scheduling.services.release.build_event_bus", return_value=bus):
			result = release_task.apply().get()
		self.assertEqual(result, [self.elapsed.id])
		self.assertIn("equipment-updated", bus.topics())


class ReleaseAPITest(TestCase):
	def setUp(self):
		self.day = future_day()
		self.scheduler = make_user("scheduler_release_api", "scheduler")
		self.room = make_room("R1")
		self.s1 = make_staff("s1_release_api")
		self.e1 = make_equipment("E1", status=Equipment.STATUS_IN_USE)
		self.operation = make_operation(
			room=self.room,
			scheduler=self.scheduler,
			start=timezone.now() + timedelta(days=2),
			equipment=[self.e1],
		)
		self.bus = InMemoryEventBus()

	def _post(self, user, action, pk=None):
		with patch.object(OperationReleaseView, "get_event_bus", return_value=self.bus):
			return client_for(user).post(f"/api/operations/{pk or self.operation.id}/{action}/")

	def test_cancel_endpoint(self):
		resp = self._post(self.scheduler, "cancel")
		self.assertEqual(resp.status_code, 200)
		self.assertEqual(resp.data["operation"]["status"], Operation.STATUS_CANCELLED)
		self.assertEqual(resp.data["released_equipment"], [self.e1.id])

		resp = self._post(self.scheduler, "complete")
		self.assertEqual(resp.status_code, 400)
		self.assertEqual(resp.data["field"], "status")

	def test_complete_endpoint_and_rbac(self):
		self.assertEqual(self._post(self.s1.user, "complete").status_code, 403)
		self.assertEqual(self._post(self.scheduler, "complete", pk=999999).status_code, 404)

		resp = self._post(self.scheduler, "complete")
		self.assertEqual(resp.status_code, 200)
		self.assertEqual(resp.data["operation"]["status"], Operation.STATUS_COMPLETED)
		self.assertEqual(self.bus.events[0][1]["action"], "completed")
