from __future__ import annotations

from datetime import datetime, timezone

from showjump_core import EntityStatus, StoreFailure, reconcile_classes, reconcile_shows, reconcile_statuses
from showjump_core.store import MemoryStore

NOW = datetime(2025, 3, 14, 12, 0, tzinfo=timezone.utc)


class _FlakyStore(MemoryStore):
    """Memory store whose updates fail for selected ids."""

    def __init__(self, failing_ids):
        super().__init__()
        self.failing_ids = set(failing_ids)

    def update(self, table, row_id, fields):
        if row_id in self.failing_ids:
            raise StoreFailure(f"connection reset while updating {row_id}")
        return super().update(table, row_id, fields)


def _seed(store):
    store.upsert("shows", {"id": "past", "name": "Winter", "start_date": "2025-02-01", "end_date": "2025-02-03", "status": "ongoing"})
    store.upsert("shows", {"id": "now", "name": "Spring", "start_date": "2025-03-13", "end_date": "2025-03-16", "status": "upcoming"})
    store.upsert("shows", {"id": "later", "name": "Summer", "start_date": "2025-06-01", "end_date": "2025-06-05", "status": "upcoming"})
    store.upsert("shows", {"id": "off", "name": "Cancelled", "start_date": "2025-03-13", "end_date": "2025-03-16", "status": "cancelled"})
    store.upsert("classes", {"id": "c-started", "show_id": "now", "class_rule": "one_round_against_clock", "class_date": "2025-03-14", "start_time": "09:00", "status": "upcoming"})
    store.upsert("classes", {"id": "c-later", "show_id": "now", "class_rule": "one_round_against_clock", "class_date": "2025-03-14", "start_time": "15:00", "status": "upcoming"})
    store.upsert("classes", {"id": "c-past", "show_id": "now", "class_rule": "one_round_against_clock", "class_date": "2025-03-13", "start_time": "09:00", "status": "ongoing"})
    store.upsert("classes", {"id": "c-off", "show_id": "now", "class_rule": "one_round_against_clock", "class_date": "2025-03-14", "start_time": "09:00", "status": "cancelled"})


def test_reconcile_shows_applies_lifecycle():
    store = MemoryStore()
    _seed(store)
    report = reconcile_shows(store, NOW)
    assert {(c.id, c.new_status) for c in report.changes} == {
        ("past", EntityStatus.COMPLETED),
        ("now", EntityStatus.ONGOING),
    }
    assert report.total == 3
    assert report.updated == 2
    assert store.get("shows", "off")["status"] == "cancelled"


def test_reconcile_classes_never_completes_past_classes():
    store = MemoryStore()
    _seed(store)
    report = reconcile_classes(store, NOW)
    assert [c.id for c in report.changes] == ["c-started"]
    assert store.get("classes", "c-past")["status"] == "ongoing"
    assert store.get("classes", "c-off")["status"] == "cancelled"


def test_second_run_has_nothing_to_do():
    store = MemoryStore()
    _seed(store)
    first = reconcile_statuses(store, NOW)
    second = reconcile_statuses(store, NOW)
    assert first.updated == 3
    assert second.updated == 0
    assert second.as_dict()["updates"] == []


def test_store_failure_on_one_entity_does_not_stop_the_run():
    store = _FlakyStore({"past"})
    _seed(store)
    report = reconcile_statuses(store, NOW)
    assert report.failed == 1
    assert {c.id for c in report.changes} == {"now", "c-started"}
    assert store.get("shows", "past")["status"] == "ongoing"
    assert {"id": "now", "newStatus": "ongoing"} in report.as_dict()["updates"]


class _VanishingStore(MemoryStore):
    """Memory store where selected rows are deleted just before their update lands."""

    def __init__(self, vanishing_ids):
        super().__init__()
        self.vanishing_ids = set(vanishing_ids)

    def update(self, table, row_id, fields):
        if row_id in self.vanishing_ids:
            self.delete(table, row_id)
        return super().update(table, row_id, fields)


def test_malformed_row_is_counted_and_skipped():
    store = MemoryStore()
    _seed(store)
    store.upsert("classes", {"id": "c-bad", "show_id": "now", "class_rule": "one_round_against_clock", "class_date": "2025-03-14", "start_time": "9am", "status": "upcoming"})
    report = reconcile_classes(store, NOW)
    assert report.failed == 1
    assert [c.id for c in report.changes] == ["c-started"]
    assert store.get("classes", "c-started")["status"] == "ongoing"
    assert store.get("classes", "c-bad")["status"] == "upcoming"


def test_row_deleted_mid_run_does_not_stop_the_run():
    store = _VanishingStore({"past"})
    _seed(store)
    report = reconcile_shows(store, NOW)
    assert report.failed == 1
    assert [c.id for c in report.changes] == ["now"]
    assert store.get("shows", "past") is None
    assert store.get("shows", "now")["status"] == "ongoing"
