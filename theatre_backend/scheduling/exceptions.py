"""
Scheduling-specific exceptions.

These exceptions are raised by the scheduling services and are translated
to DRF responses in the views. Partial resource failures are NOT exceptions;
they are reported inside the assignment plan.
"""

from __future__ import annotations

from typing import Any


class SchedulingError(Exception):
    """Base exception for all scheduling-related errors."""
    pass


class InvalidInput(SchedulingError):
    """
    Raised when request data is missing or malformed (bad date, non-positive
    duration, start in the past, ...).
    """
    def __init__(self, message: str, field: str | None = None):
        self.field = field
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        result = {'detail': str(self)}
        if self.field:
            result['field'] = self.field
        return result


class RoomNotFound(SchedulingError):
    """Raised when the requested room does not exist or is inactive."""
    def __init__(self, room_id, message: str = "OT room not found or inactive"):
        self.room_id = room_id
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        return {
            'detail': str(self),
            'room_id': self.room_id,
        }


class RoomConflict(SchedulingError):
    """
    Raised when a Scheduled operation already occupies the room for an
    overlapping window.

    Attributes:
        operation_id: ID of the conflicting operation
        operation_name: Name of the conflicting operation
    """
    def __init__(self, *, operation_id: int, operation_name: str):
        self.operation_id = operation_id
        self.operation_name = operation_name
        super().__init__(f"Room is already booked for operation: {operation_name}")

    def to_dict(self) -> dict[str, Any]:
        return {
            'detail': str(self),
            'conflicting_operation': {
                'id': self.operation_id,
                'operation_name': self.operation_name,
            },
        }


class SchedulingFailed(SchedulingError):
    """Raised when the transactional core fails unexpectedly; nothing was persisted."""
    def __init__(self, message: str = "Failed to schedule operation"):
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        return {'detail': str(self)}
