"""Lifecycle clock: the status a show or class should be in right now.

Pure functions, no I/O. Both entity kinds go through ``derive_status``:

- a show's window is [start_date, end_date] and it auto-completes once the
  window has passed;
- a class's window is its single class_date, gated by start_time (minute
  granularity), and it never auto-completes: a class may still be scored
  after its nominal date, so completion is an operator action.

``cancelled`` is terminal and no transition leads back to ``upcoming``.
"""
from __future__ import annotations

from datetime import date, datetime, time
from typing import Iterable, Optional
from zoneinfo import ZoneInfo

from .errors import ValidationError
from .models import CompetitionClass, Show
from .types import EntityStatus

# Statuses an operator may set by hand; everything else is derived.
MANUAL_SHOW_STATUSES = frozenset({EntityStatus.CANCELLED})
MANUAL_CLASS_STATUSES = frozenset(
    {EntityStatus.ONGOING, EntityStatus.COMPLETED, EntityStatus.CANCELLED}
)


def local_now(now: datetime | None = None, timezone: str = "UTC") -> datetime:
    """Normalize ``now`` to the show timezone (naive values are taken as local)."""
    tz = ZoneInfo(timezone)
    if now is None:
        return datetime.now(tz)
    if now.tzinfo is None:
        return now.replace(tzinfo=tz)
    return now.astimezone(tz)


def _minutes(value: time) -> int:
    return value.hour * 60 + value.minute


def derive_status(
    current: EntityStatus,
    *,
    today: date,
    window_start: Optional[date],
    window_end: Optional[date],
    auto_complete: bool,
    gate: Optional[time] = None,
    now_time: Optional[time] = None,
) -> EntityStatus:
    if current == EntityStatus.CANCELLED:
        return current
    if window_start is None or window_end is None:
        return current

    if window_start <= today <= window_end and current == EntityStatus.UPCOMING:
        if gate is None:
            return EntityStatus.ONGOING
        if now_time is not None and _minutes(now_time) >= _minutes(gate):
            return EntityStatus.ONGOING
        return current

    if auto_complete and today > window_end and current != EntityStatus.COMPLETED:
        return EntityStatus.COMPLETED

    return current


def derive_show_status(show: Show, now: datetime, timezone: str = "UTC") -> EntityStatus:
    today = local_now(now, timezone).date()
    return derive_status(
        show.status,
        today=today,
        window_start=show.start_date,
        window_end=show.end_date,
        auto_complete=True,
    )


def derive_class_status(
    cls: CompetitionClass, now: datetime, timezone: str = "UTC"
) -> EntityStatus:
    # Without both a date and a start time there is nothing to compare.
    if cls.class_date is None or cls.start_time is None:
        return cls.status
    moment = local_now(now, timezone)
    return derive_status(
        cls.status,
        today=moment.date(),
        window_start=cls.class_date,
        window_end=cls.class_date,
        auto_complete=False,
        gate=cls.start_time,
        now_time=moment.time(),
    )


def check_manual_transition(
    current: EntityStatus,
    target: EntityStatus,
    allowed: Iterable[EntityStatus],
    *,
    entity: str,
) -> None:
    """Validate an operator status edit.

    Raises:
        ValidationError: when the target is derived-only, the entity is
            cancelled, or the edit would move it back to upcoming.
    """
    if target == current:
        return
    if current == EntityStatus.CANCELLED:
        raise ValidationError(f"{entity} is cancelled; status can no longer change")
    if target == EntityStatus.UPCOMING:
        raise ValidationError(f"{entity} cannot move from {current.value} back to upcoming")
    if target not in set(allowed):
        raise ValidationError(
            f"{entity} status {target.value} is derived automatically and cannot be set by hand"
        )
