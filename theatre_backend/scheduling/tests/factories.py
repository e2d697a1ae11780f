"""Small builders shared by the scheduling, notifications and realtime tests."""

from __future__ import annotations

from datetime import date, datetime, time, timedelta

from django.utils import timezone

from rest_framework.test import APIClient

from theatre_backend.core.models import Role, User
from theatre_backend.scheduling.models import Equipment, Operation, OTRoom, ResourceAssignment, Staff

ROLE_LABELS = {
	"admin": "Administrator",
	"scheduler": "OP-Planung",
	"staff": "OP-Personal",
}


def future_day(days: int = 7) -> date:
	return timezone.localdate() + timedelta(days=days)


def at(day: date, hour: int, minute: int = 0) -> datetime:
	return timezone.make_aware(datetime.combine(day, time(hour, minute)), timezone.get_current_timezone())


def make_role(name: str) -> Role:
	role, _ = Role.objects.get_or_create(name=name, defaults={"label": ROLE_LABELS.get(name, name)})
	return role


def make_user(username: str, role: str, **extra) -> User:
	return User.objects.db_manager("default").create_user(
		username=username,
		email=f"{username}@example.com",
		password="DummyPass123!",
		role=make_role(role),
		**extra,
	)


def make_staff(username: str, specialization: str = "Surgery", **extra) -> Staff:
	return Staff.objects.create(user=make_user(username, "staff", **extra), specialization=specialization)


def make_room(name: str = "R1", is_active: bool = True) -> OTRoom:
	return OTRoom.objects.create(name=name, is_active=is_active)


def make_equipment(name: str, status: str = Equipment.STATUS_AVAILABLE) -> Equipment:
	return Equipment.objects.create(name=name, status=status)


def make_operation(
	*,
	room: OTRoom,
	scheduler: User,
	start: datetime,
	duration: int = 60,
	name: str = "Existing operation",
	status: str = Operation.STATUS_SCHEDULED,
	staff=(),
	equipment=(),
) -> Operation:
	"""Insert an operation plus assignments directly, bypassing the engine."""
	op = Operation.objects.create(
		operation_name=name,
		room=room,
		scheduler=scheduler,
		scheduled_date=timezone.localtime(start).date(),
		scheduled_start=start,
		duration_minutes=duration,
		status=status,
	)
	for member in staff:
		ResourceAssignment.objects.create(operation=op, staff=member, assigned_by=scheduler)
	for device in equipment:
		ResourceAssignment.objects.create(operation=op, equipment=device, assigned_by=scheduler)
	return op


def client_for(user: User) -> APIClient:
	client = APIClient()
	client.defaults["HTTP_HOST"] = "localhost"
	client.force_authenticate(user=user)
	return client
