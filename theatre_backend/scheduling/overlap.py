"""Half-open interval overlap for operation windows.

Every availability and conflict check compares windows ``[start, end)``.
Two windows overlap iff ``a_start < b_end and b_start < a_end``; windows that
only touch at a boundary do not overlap.
"""

from __future__ import annotations

from datetime import datetime, timedelta

from django.db.models import Q


def overlaps(a_start: datetime, a_end: datetime, b_start: datetime, b_end: datetime) -> bool:
    return a_start < b_end and b_start < a_end


def window_end(start: datetime, duration_minutes: int) -> datetime:
    return start + timedelta(minutes=int(duration_minutes))


def overlap_q(start: datetime, end: datetime, prefix: str = '') -> Q:
    """``overlaps`` expressed against Operation's stored window.

    ``prefix`` is the lookup path to the operation, e.g. ``'operation__'`` when
    filtering ResourceAssignment rows.
    """
    return Q(**{
        f'{prefix}scheduled_start__lt': end,
        f'{prefix}scheduled_end__gt': start,
    })
