"""Status reconciler: apply the lifecycle clock to every live show and class.

Run on demand (cron endpoint or admin trigger). Each entity is a separate
read-modify-write. A malformed row, a row deleted mid-pass or a store failure
on one entity is logged and counted, and the pass moves on. Only changed entities are written, so an immediate
second run reports no changes.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Optional

from pydantic import ValidationError as PydanticValidationError

from .errors import NotFound, StoreFailure
from .lifecycle import derive_class_status, derive_show_status, local_now
from .models import CompetitionClass, Show
from .store.base import StoreInterface
from .types import CLASSES, SHOWS, EntityStatus

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StatusChange:
    id: str
    new_status: EntityStatus

    def as_dict(self) -> dict[str, str]:
        return {"id": self.id, "newStatus": self.new_status.value}


@dataclass(frozen=True)
class ReconcileReport:
    changes: tuple[StatusChange, ...] = ()
    total: int = 0
    failed: int = 0

    @property
    def updated(self) -> int:
        return len(self.changes)

    def merge(self, other: "ReconcileReport") -> "ReconcileReport":
        return ReconcileReport(
            changes=self.changes + other.changes,
            total=self.total + other.total,
            failed=self.failed + other.failed,
        )

    def as_dict(self) -> dict[str, Any]:
        return {
            "updated": self.updated,
            "total": self.total,
            "failed": self.failed,
            "updates": [change.as_dict() for change in self.changes],
        }


def _reconcile(
    store: StoreInterface,
    table: str,
    parse: Callable[[dict], Any],
    derive: Callable[[Any], EntityStatus],
) -> ReconcileReport:
    rows = store.select(table, exclude={"status": EntityStatus.CANCELLED.value})
    changes: list[StatusChange] = []
    failed = 0
    for row in rows:
        try:
            entity = parse(row)
            new_status = derive(entity)
            if new_status == entity.status:
                continue
            store.update(table, entity.id, {"status": new_status.value})
        except PydanticValidationError as e:
            failed += 1
            logger.error(f"Skipping malformed {table} row {row.get('id')}: {e.error_count()} invalid field(s)")
            continue
        except (StoreFailure, NotFound) as e:
            failed += 1
            logger.error(f"Error updating {table} {row.get('id')} to {new_status.value}: {e.message}")
            continue
        logger.info(f"{table} {entity.id}: {entity.status.value} -> {new_status.value}")
        changes.append(StatusChange(id=entity.id, new_status=new_status))
    return ReconcileReport(changes=tuple(changes), total=len(rows), failed=failed)


def reconcile_shows(
    store: StoreInterface, now: Optional[datetime] = None, timezone: str = "UTC"
) -> ReconcileReport:
    moment = local_now(now, timezone)
    return _reconcile(
        store,
        SHOWS,
        Show.model_validate,
        lambda show: derive_show_status(show, moment, timezone),
    )


def reconcile_classes(
    store: StoreInterface, now: Optional[datetime] = None, timezone: str = "UTC"
) -> ReconcileReport:
    moment = local_now(now, timezone)
    return _reconcile(
        store,
        CLASSES,
        CompetitionClass.model_validate,
        lambda cls: derive_class_status(cls, moment, timezone),
    )


def reconcile_statuses(
    store: StoreInterface, now: Optional[datetime] = None, timezone: str = "UTC"
) -> ReconcileReport:
    """Reconcile shows, then classes, against one shared ``now``."""
    moment = local_now(now, timezone)
    report = reconcile_shows(store, moment, timezone).merge(
        reconcile_classes(store, moment, timezone)
    )
    logger.info(
        f"Status reconcile: {report.updated} updated of {report.total}"
        f"{f', {report.failed} failed' if report.failed else ''}"
    )
    return report
