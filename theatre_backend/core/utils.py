import logging

from django.db import DatabaseError

from .models import AuditLog

logger = logging.getLogger(__name__)


def log_action(user, action: str, object_id: int | None = None, meta: dict | None = None) -> AuditLog | None:
    """Append ``action`` to the audit trail.

    The acting user's role is copied onto the row so the trail stays readable
    after role changes. A failed write is logged and returns ``None``; it
    never fails the scheduling request that triggered it.
    """
    actor = user if getattr(user, 'is_authenticated', False) else None
    try:
        return AuditLog.objects.create(
            user=actor,
            role_name=(actor.role_name if actor else None) or '',
            action=action,
            object_id=object_id,
            meta=meta,
        )
    except DatabaseError:
        logger.exception('Audit entry %s (object %s) could not be written', action, object_id)
        return None
