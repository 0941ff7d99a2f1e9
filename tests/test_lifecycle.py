from __future__ import annotations

from datetime import date, datetime, time, timezone

import pytest

from showjump_core import (
    CompetitionClass,
    EntityStatus,
    Show,
    ValidationError,
    derive_class_status,
    derive_show_status,
)
from showjump_core.lifecycle import (
    MANUAL_CLASS_STATUSES,
    MANUAL_SHOW_STATUSES,
    check_manual_transition,
    local_now,
)

NOW = datetime(2025, 3, 14, 10, 30, tzinfo=timezone.utc)


def _show(status="upcoming", start="2025-03-13", end="2025-03-16"):
    return Show(id="s1", name="Spring Tour", start_date=start, end_date=end, status=status)


def _class(status="upcoming", class_date="2025-03-14", start_time="10:30"):
    return CompetitionClass(
        id="c1", class_rule="one_round_against_clock", class_date=class_date,
        start_time=start_time, status=status,
    )


def test_show_in_window_becomes_ongoing_and_is_idempotent():
    show = _show()
    assert derive_show_status(show, NOW) == EntityStatus.ONGOING
    again = show.model_copy(update={"status": EntityStatus.ONGOING})
    assert derive_show_status(again, NOW) == EntityStatus.ONGOING


def test_show_on_first_and_last_day_is_ongoing():
    assert derive_show_status(_show(start="2025-03-14", end="2025-03-14"), NOW) == EntityStatus.ONGOING


def test_show_before_window_stays_upcoming():
    assert derive_show_status(_show(start="2025-03-20", end="2025-03-22"), NOW) == EntityStatus.UPCOMING


def test_show_after_window_completes():
    assert derive_show_status(_show(start="2025-03-01", end="2025-03-02"), NOW) == EntityStatus.COMPLETED
    assert derive_show_status(
        _show(status="ongoing", start="2025-03-01", end="2025-03-02"), NOW
    ) == EntityStatus.COMPLETED


def test_cancelled_show_is_never_touched():
    assert derive_show_status(_show(status="cancelled"), NOW) == EntityStatus.CANCELLED
    assert derive_show_status(
        _show(status="cancelled", start="2025-03-01", end="2025-03-02"), NOW
    ) == EntityStatus.CANCELLED


def test_class_starts_at_start_time_minute_granularity():
    assert derive_class_status(_class(start_time="10:30"), NOW) == EntityStatus.ONGOING
    assert derive_class_status(_class(start_time="10:30:59"), NOW) == EntityStatus.ONGOING
    assert derive_class_status(_class(start_time="10:31"), NOW) == EntityStatus.UPCOMING


def test_class_on_other_day_stays_upcoming_and_past_classes_are_not_completed():
    assert derive_class_status(_class(class_date="2025-03-15"), NOW) == EntityStatus.UPCOMING
    assert derive_class_status(_class(class_date="2025-03-10"), NOW) == EntityStatus.UPCOMING
    assert derive_class_status(_class(status="ongoing", class_date="2025-03-10"), NOW) == EntityStatus.ONGOING


def test_class_without_schedule_is_unchanged():
    assert derive_class_status(_class(start_time=None), NOW) == EntityStatus.UPCOMING
    assert derive_class_status(_class(class_date=None), NOW) == EntityStatus.UPCOMING


def test_cancelled_class_is_never_touched():
    assert derive_class_status(_class(status="cancelled"), NOW) == EntityStatus.CANCELLED


def test_naive_now_is_read_in_show_timezone():
    # 10:30 in Dubai is 06:30 UTC.
    naive = datetime(2025, 3, 14, 10, 30)
    assert derive_class_status(_class(), naive, "Asia/Dubai") == EntityStatus.ONGOING
    assert local_now(naive, "Asia/Dubai").utcoffset().total_seconds() == 4 * 3600
    # 06:30 UTC viewed in UTC is before the start time.
    early = datetime(2025, 3, 14, 6, 30, tzinfo=timezone.utc)
    assert derive_class_status(_class(), early, "UTC") == EntityStatus.UPCOMING
    assert derive_class_status(_class(start_time="10:00"), early, "Asia/Dubai") == EntityStatus.ONGOING


def test_manual_transitions():
    check_manual_transition(EntityStatus.UPCOMING, EntityStatus.CANCELLED, MANUAL_SHOW_STATUSES, entity="show")
    check_manual_transition(EntityStatus.ONGOING, EntityStatus.COMPLETED, MANUAL_CLASS_STATUSES, entity="class")
    check_manual_transition(EntityStatus.CANCELLED, EntityStatus.CANCELLED, MANUAL_SHOW_STATUSES, entity="show")
    with pytest.raises(ValidationError):
        check_manual_transition(EntityStatus.UPCOMING, EntityStatus.ONGOING, MANUAL_SHOW_STATUSES, entity="show")
    with pytest.raises(ValidationError):
        check_manual_transition(EntityStatus.ONGOING, EntityStatus.UPCOMING, MANUAL_CLASS_STATUSES, entity="class")
    with pytest.raises(ValidationError):
        check_manual_transition(EntityStatus.CANCELLED, EntityStatus.ONGOING, MANUAL_CLASS_STATUSES, entity="class")


def test_show_dates_accept_timestamps():
    show = Show(id="s", start_date="2025-03-13T00:00:00+00:00", end_date=date(2025, 3, 16))
    assert show.start_date == date(2025, 3, 13)
    assert _class(start_time="09:05").start_time == time(9, 5)
