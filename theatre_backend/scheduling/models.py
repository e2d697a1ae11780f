"""Domain models for operating-theatre scheduling.

Resource pool:

- ``OTRoom``: an operating theatre; exactly one per operation.
- ``Staff``: clinical staff member linked to a user account.
- ``Equipment``: a device that can be committed to one operation at a time.

Scheduling records:

- ``Operation``: a procedure occupying a room for ``[scheduled_start, scheduled_end)``.
- ``ResourceAssignment``: one staff member and/or one equipment unit committed
	to an operation.

Conflict invariant: a room, staff member or equipment unit is never committed
to two ``Scheduled`` operations on the same date whose windows overlap.
"""

from django.conf import settings
from django.db import models
from django.db.models import Q
from django.utils import timezone

from .overlap import window_end


class OTRoom(models.Model):
	"""An operating theatre. Inactive rooms cannot receive new operations."""
	name = models.CharField(max_length=100, unique=True)
	is_active = models.BooleanField(default=True)
	created_at = models.DateTimeField(auto_now_add=True)
	updated_at = models.DateTimeField(auto_now=True)

	class Meta:
		ordering = ["-is_active", "name", "id"]
		verbose_name = "OT room"

	def __str__(self) -> str:
		return self.name


class Staff(models.Model):
	"""Staff pool member. Availability is derived from assignments, never stored."""
	user = models.OneToOneField(
		settings.AUTH_USER_MODEL,
		on_delete=models.CASCADE,
		related_name="staff_profile",
	)
	specialization = models.CharField(max_length=100, blank=True, default="")

	class Meta:
		ordering = ["user__username", "id"]
		verbose_name_plural = "staff"

	def __str__(self) -> str:
		return self.display_name

	@property
	def display_name(self) -> str:
		return self.user.get_full_name() or self.user.username


class Equipment(models.Model):
	"""A device in the equipment pool.

	``status`` is a cache of "committed to a current or upcoming operation":
	the scheduling engine sets ``In Use`` when it assigns the device, the
	release step sets it back to ``Available``.
	"""
	STATUS_AVAILABLE = "Available"
	STATUS_IN_USE = "In Use"
	STATUS_MAINTENANCE = "Maintenance"

	STATUS_CHOICES = (
		(STATUS_AVAILABLE, STATUS_AVAILABLE),
		(STATUS_IN_USE, STATUS_IN_USE),
		(STATUS_MAINTENANCE, STATUS_MAINTENANCE),
	)

	name = models.CharField(max_length=255)
	status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=STATUS_AVAILABLE)
	created_at = models.DateTimeField(auto_now_add=True)
	updated_at = models.DateTimeField(auto_now=True)

	class Meta:
		ordering = ["name", "id"]
		verbose_name_plural = "equipment"

	def __str__(self) -> str:
		return f"{self.name} ({self.status})"


class Operation(models.Model):
	"""A scheduled procedure.

	``scheduled_end`` is denormalised from ``scheduled_start`` and
	``duration_minutes`` on every save so overlap checks can run in SQL.
	"""
	STATUS_SCHEDULED = "Scheduled"
	STATUS_COMPLETED = "Completed"
	STATUS_CANCELLED = "Cancelled"

	STATUS_CHOICES = (
		(STATUS_SCHEDULED, STATUS_SCHEDULED),
		(STATUS_COMPLETED, STATUS_COMPLETED),
		(STATUS_CANCELLED, STATUS_CANCELLED),
	)

	operation_name = models.CharField(max_length=255)
	description = models.TextField(blank=True, default="")
	room = models.ForeignKey(
		OTRoom,
		on_delete=models.PROTECT,
		related_name="operations",
	)
	scheduler = models.ForeignKey(
		settings.AUTH_USER_MODEL,
		on_delete=models.PROTECT,
		related_name="scheduled_operations",
	)
	scheduled_date = models.DateField(db_index=True)
	scheduled_start = models.DateTimeField()
	duration_minutes = models.PositiveIntegerField()
	scheduled_end = models.DateTimeField(editable=False)
	status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=STATUS_SCHEDULED, db_index=True)
	created_at = models.DateTimeField(auto_now_add=True)
	updated_at = models.DateTimeField(auto_now=True)

	class Meta:
		ordering = ["-scheduled_date", "-scheduled_start", "-id"]
		indexes = [
			models.Index(fields=["room", "scheduled_date", "status"], name="sched_op_room_date_idx"),
		]

	def __str__(self) -> str:
		return f"Operation #{self.id} {self.operation_name}"

	def save(self, *args, **kwargs):
		self.scheduled_end = window_end(self.scheduled_start, self.duration_minutes)
		super().save(*args, **kwargs)


class ResourceAssignment(models.Model):
	"""Commits a staff member, an equipment unit, or both to an operation.

	Rows without staff represent shared equipment.
	"""
	operation = models.ForeignKey(
		Operation,
		on_delete=models.CASCADE,
		related_name="assignments",
	)
	staff = models.ForeignKey(
		Staff,
		null=True,
		blank=True,
		on_delete=models.PROTECT,
		related_name="assignments",
	)
	equipment = models.ForeignKey(
		Equipment,
		null=True,
		blank=True,
		on_delete=models.PROTECT,
		related_name="assignments",
	)
	assigned_by = models.ForeignKey(
		settings.AUTH_USER_MODEL,
		null=True,
		blank=True,
		on_delete=models.SET_NULL,
		related_name="+",
	)
	assigned_at = models.DateTimeField(default=timezone.now)
	notified = models.BooleanField(default=False)

	class Meta:
		ordering = ["id"]
		constraints = [
			models.CheckConstraint(
				condition=Q(staff__isnull=False) | Q(equipment__isnull=False),
				name="assignment_has_resource",
			),
			models.UniqueConstraint(
				fields=["operation", "staff"],
				condition=Q(staff__isnull=False),
				name="unique_staff_per_operation",
			),
			models.UniqueConstraint(
				fields=["operation", "equipment"],
				condition=Q(equipment__isnull=False),
				name="unique_equipment_per_operation",
			),
		]

	def __str__(self) -> str:
		return f"Assignment op={self.operation_id} staff={self.staff_id} equipment={self.equipment_id}"
