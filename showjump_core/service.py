"""Service boundary: the operations the HTTP layer calls.

Every public function takes the store handle explicitly and returns a
``ServiceOutcome``; core failures never escape as exceptions. A
``ShowjumpError`` becomes its ``ErrorDetail`` (400/404/500), anything else is
logged with its traceback and reported as ``internal`` / 500.

Score submission is the one multi-step flow: validate, score under the
class rule, upsert on (startlist_id, round_number, is_jumpoff), then re-rank
the whole {class, round, jump-off} scope and persist ranks and jump-off
qualification. Correcting a two-phase phase 1 re-scores the entry's phase 2.
"""
from __future__ import annotations

import functools
import logging
from dataclasses import asdict, dataclass
from datetime import datetime
from typing import Any, Callable, Optional, Protocol, TypeVar

from pydantic import BaseModel

from .config import Settings, load_settings
from .errors import ErrorDetail, NotFound, ShowjumpError, StoreFailure, ValidationError
from .lifecycle import (
    MANUAL_CLASS_STATUSES,
    MANUAL_SHOW_STATUSES,
    check_manual_transition,
    derive_class_status,
    local_now,
)
from .models import CompetitionClass, Score, Show, StartlistEntry
from .ranking import (
    RankingResult,
    build_scope_entries,
    classify_two_phase,
    rank_scope,
    team_standings,
)
from .reconciler import reconcile_statuses
from .rules import Timing, get_rule
from .scoring import score_submission
from .store.base import Row, StoreInterface
from .types import CLASSES, SCORES, SHOWS, STARTLIST, EntityStatus, ScoreStatus
from .validation import (
    ClassInput,
    ClassUpdate,
    InputSanitizer,
    ScoreSubmission,
    ShowInput,
    ShowUpdate,
    StartlistEntryInput,
)

logger = logging.getLogger(__name__)

RecordT = TypeVar("RecordT", bound=BaseModel)

INTERNAL_ERROR = ErrorDetail(kind="internal", message="Internal server error", status_code=500)


@dataclass(frozen=True)
class ServiceOutcome:
    """Result handed to the HTTP layer."""

    data: Any = None
    error: ErrorDetail | None = None
    status_code: int = 200

    @property
    def ok(self) -> bool:
        return self.error is None


class RiderDirectory(Protocol):
    """Rider registry used to fill in a missing country code."""

    def country_for(self, fei_id: str) -> Optional[str]:
        ...


def _service(success_status: int = 200) -> Callable[[Callable[..., Any]], Callable[..., ServiceOutcome]]:
    def decorator(fn: Callable[..., Any]) -> Callable[..., ServiceOutcome]:
        @functools.wraps(fn)
        def wrapper(*args: Any, **kwargs: Any) -> ServiceOutcome:
            try:
                data = fn(*args, **kwargs)
            except ShowjumpError as e:
                if e.status_code >= 500:
                    logger.error(f"{fn.__name__} failed: {e.message}")
                else:
                    logger.info(f"{fn.__name__} rejected: {e.message}")
                return ServiceOutcome(error=e.to_detail(), status_code=e.status_code)
            except Exception:
                logger.exception(f"Unexpected error in {fn.__name__}")
                return ServiceOutcome(error=INTERNAL_ERROR, status_code=INTERNAL_ERROR.status_code)
            if isinstance(data, ServiceOutcome):
                return data
            return ServiceOutcome(data=data, status_code=success_status)

        return wrapper

    return decorator


def _load(store: StoreInterface, table: str, row_id: str, model: type[RecordT]) -> RecordT:
    if not row_id:
        raise ValidationError(f"{table} id is required")
    row = store.get(table, row_id)
    if row is None:
        raise NotFound(table, row_id)
    return model.model_validate(row)


def _status(value: str) -> EntityStatus:
    try:
        return EntityStatus(value)
    except ValueError:
        raise ValidationError(
            f"Invalid status. Must be one of: {', '.join(s.value for s in EntityStatus)}"
        ) from None


def _changes(model: type[BaseModel], payload: Any) -> dict[str, Any]:
    """Validated partial update: only the fields present in ``payload``."""
    return InputSanitizer.validate(model, payload).model_dump(mode="json", exclude_unset=True)


# ==================== SHOWS ====================


@_service(201)
def create_show(store: StoreInterface, payload: dict[str, Any]) -> Row:
    show = InputSanitizer.validate(ShowInput, payload)
    row = store.upsert(SHOWS, show.model_dump(mode="json"))
    logger.info(f"Created show {row['id']} ({show.name})")
    return row


@_service()
def update_show(store: StoreInterface, show_id: str, payload: dict[str, Any]) -> Row:
    current = _load(store, SHOWS, show_id, Show)
    changes = _changes(ShowUpdate, payload)
    if "status" in changes:
        check_manual_transition(
            current.status,
            EntityStatus(changes["status"]),
            MANUAL_SHOW_STATUSES,
            entity=f"show {show_id}",
        )
    merged = InputSanitizer.validate(Show, {**current.to_row(), **changes})
    if merged.start_date and merged.end_date and merged.end_date < merged.start_date:
        raise ValidationError("end_date must not be before start_date")
    return store.update(SHOWS, show_id, changes)


@_service()
def delete_show(store: StoreInterface, show_id: str) -> dict[str, Any]:
    _load(store, SHOWS, show_id, Show)
    classes = store.select(CLASSES, {"show_id": show_id})
    if classes:
        raise ValidationError(
            f"show {show_id} still has {len(classes)} class(es); delete them first"
        )
    store.delete(SHOWS, show_id)
    logger.info(f"Deleted show {show_id}")
    return {"deleted": show_id}


@_service()
def get_show(store: StoreInterface, show_id: str) -> Row:
    return _load(store, SHOWS, show_id, Show).to_row()


@_service()
def list_shows(store: StoreInterface, status: Optional[str] = None) -> list[Row]:
    filters = {"status": _status(status).value} if status else None
    return store.select(SHOWS, filters, order_by="start_date")


# ==================== CLASSES ====================


@_service(201)
def create_class(store: StoreInterface, payload: dict[str, Any]) -> Row:
    data = InputSanitizer.validate(ClassInput, payload)
    _load(store, SHOWS, data.show_id, Show)
    row = store.upsert(CLASSES, data.model_dump(mode="json"))
    logger.info(f"Created class {row['id']} ({data.class_rule.value}) in show {data.show_id}")
    return row


@_service()
def update_class(store: StoreInterface, class_id: str, payload: dict[str, Any]) -> Row:
    current = _load(store, CLASSES, class_id, CompetitionClass)
    changes = _changes(ClassUpdate, payload)
    if "status" in changes:
        check_manual_transition(
            current.status,
            EntityStatus(changes["status"]),
            MANUAL_CLASS_STATUSES,
            entity=f"class {class_id}",
        )
    InputSanitizer.validate(CompetitionClass, {**current.to_row(), **changes})
    return store.update(CLASSES, class_id, changes)


@_service()
def delete_class(store: StoreInterface, class_id: str) -> dict[str, Any]:
    _load(store, CLASSES, class_id, CompetitionClass)
    entries = store.select(STARTLIST, {"class_id": class_id})
    if entries:
        raise ValidationError(
            f"class {class_id} still has {len(entries)} startlist entr{'y' if len(entries) == 1 else 'ies'}"
        )
    store.delete(CLASSES, class_id)
    logger.info(f"Deleted class {class_id}")
    return {"deleted": class_id}


@_service()
def get_class(store: StoreInterface, class_id: str) -> Row:
    return _load(store, CLASSES, class_id, CompetitionClass).to_row()


@_service()
def list_classes(
    store: StoreInterface,
    show_id: Optional[str] = None,
    status: Optional[str] = None,
    class_rule: Optional[str] = None,
    now: Optional[datetime] = None,
    settings: Optional[Settings] = None,
) -> list[Row]:
    """
    Classes ordered by class_date, with their status brought up to date.

    Listing doubles as a lightweight status refresh: a class whose start time
    has passed is moved to ongoing and the change is persisted. A class whose
    write fails is logged and listed with its stored status.
    """
    settings = settings or load_settings()
    filters: dict[str, Any] = {}
    if show_id:
        filters["show_id"] = show_id
    if status:
        filters["status"] = _status(status).value
    if class_rule:
        filters["class_rule"] = get_rule(class_rule).value
    rows = store.select(CLASSES, filters or None, order_by="class_date")

    moment = local_now(now, settings.show_timezone)
    for row in rows:
        cls = CompetitionClass.model_validate(row)
        new_status = derive_class_status(cls, moment, settings.show_timezone)
        if new_status == cls.status:
            continue
        try:
            store.update(CLASSES, cls.id, {"status": new_status.value})
        except (StoreFailure, NotFound) as e:
            logger.error(f"Status refresh of class {cls.id} skipped: {e.message}")
            continue
        row["status"] = new_status.value
    return rows


# ==================== STARTLIST ====================


def _lookup_country(directory: Optional[RiderDirectory], fei_id: Optional[str]) -> Optional[str]:
    if directory is None or not fei_id:
        return None
    try:
        country = directory.country_for(fei_id)
    except Exception as e:
        logger.info(f"Could not find rider with FEI ID {fei_id}: {e}")
        return None
    return country.strip().upper() if country else None


@_service(201)
def add_startlist_entries(
    store: StoreInterface,
    payload: dict[str, Any] | list[dict[str, Any]],
    directory: Optional[RiderDirectory] = None,
) -> Row | list[Row]:
    """
    Add one entry (object payload) or several (list payload).

    Every entry is validated before anything is written. start_order must be
    unique within a class, across the batch and the existing startlist.
    """
    bulk = isinstance(payload, list)
    entries = [InputSanitizer.validate(StartlistEntryInput, item) for item in (payload if bulk else [payload])]
    if not entries:
        raise ValidationError("at least one startlist entry is required")

    taken: dict[str, set[int]] = {}
    for entry in entries:
        if entry.class_id not in taken:
            _load(store, CLASSES, entry.class_id, CompetitionClass)
            taken[entry.class_id] = {
                row.get("start_order") for row in store.select(STARTLIST, {"class_id": entry.class_id})
            }
        if entry.start_order in taken[entry.class_id]:
            raise ValidationError(
                f"start_order {entry.start_order} is already used in class {entry.class_id}"
            )
        taken[entry.class_id].add(entry.start_order)

    stored: list[Row] = []
    for entry in entries:
        row = entry.model_dump(mode="json")
        if not row.get("country_code"):
            row["country_code"] = _lookup_country(directory, entry.fei_id)
        stored.append(store.upsert(STARTLIST, row))
    logger.info(f"Added {len(stored)} startlist entr{'y' if len(stored) == 1 else 'ies'}")
    return stored if bulk else stored[0]


@_service()
def list_startlist(
    store: StoreInterface, class_id: Optional[str] = None, rider_id: Optional[str] = None
) -> list[Row]:
    filters: dict[str, Any] = {}
    if class_id:
        filters["class_id"] = class_id
    if rider_id:
        filters["rider_id"] = rider_id
    return store.select(STARTLIST, filters or None, order_by="start_order")


@_service()
def delete_startlist_entry(store: StoreInterface, entry_id: str) -> dict[str, Any]:
    _load(store, STARTLIST, entry_id, StartlistEntry)
    if store.select(SCORES, {"startlist_id": entry_id}):
        raise ValidationError(f"startlist entry {entry_id} already has scores")
    store.delete(STARTLIST, entry_id)
    return {"deleted": entry_id}


# ==================== SCORES ====================


def _class_scores(store: StoreInterface, class_id: str) -> list[Score]:
    return [Score.model_validate(row) for row in store.select(SCORES, {"class_id": class_id})]


def _class_startlist(store: StoreInterface, class_id: str) -> list[StartlistEntry]:
    return [StartlistEntry.model_validate(row) for row in store.select(STARTLIST, {"class_id": class_id})]


def _rerank(
    store: StoreInterface, cls: CompetitionClass, round_number: int, is_jumpoff: bool
) -> RankingResult:
    """Recompute and persist rank/qualification for one scope."""
    rule = get_rule(cls.class_rule)
    scores = _class_scores(store, cls.id)
    startlist = _class_startlist(store, cls.id)
    entries = build_scope_entries(
        rule, scores, startlist, round_number=round_number, is_jumpoff=is_jumpoff
    )
    result = rank_scope(rule, entries, is_jumpoff=is_jumpoff, optimum_time=cls.optimum_time)

    placed = {row.score_id: row for row in result.rows}
    for score in scores:
        if score.round_number != round_number or score.is_jumpoff != is_jumpoff:
            continue
        row = placed.get(score.id)
        rank = row.rank if row else None
        qualified = row.qualified_for_jumpoff if row else False
        if score.rank != rank or score.qualified_for_jumpoff != qualified:
            store.update(SCORES, score.id, {"rank": rank, "qualified_for_jumpoff": qualified})

    logger.debug(
        f"Re-ranked class {cls.id} round {round_number}{' jump-off' if is_jumpoff else ''}: "
        f"{len(result.rows)} placed, {len(result.qualified_ids)} qualified"
    )

    # Later main rounds carry these faults forward.
    if rule.cumulative and not is_jumpoff and round_number < rule.rounds:
        _rerank(store, cls, round_number + 1, False)
    return result


@_service()
def submit_score(
    store: StoreInterface,
    payload: dict[str, Any],
    settings: Optional[Settings] = None,
) -> ServiceOutcome:
    """
    Score one startlist entry for one round (or jump-off).

    Re-submitting the same (startlist_id, round_number, is_jumpoff) updates
    the existing score. Returns 201 for a new score, 200 for an update.
    """
    settings = settings or load_settings()
    submission = InputSanitizer.validate(ScoreSubmission, payload)
    cls = _load(store, CLASSES, submission.class_id, CompetitionClass)
    entry = _load(store, STARTLIST, submission.startlist_id, StartlistEntry)
    if entry.class_id != cls.id:
        raise ValidationError(
            f"startlist entry {entry.id} belongs to class {entry.class_id}, not {cls.id}"
        )

    previous: Optional[Score] = None
    if not submission.is_jumpoff and submission.round_number > 1:
        rows = store.select(
            SCORES, {"startlist_id": entry.id, "round_number": 1, "is_jumpoff": False}
        )
        previous = Score.model_validate(rows[0]) if rows else None

    result = score_submission(submission, cls, previous)

    existing = store.select(
        SCORES,
        {
            "startlist_id": entry.id,
            "round_number": submission.round_number,
            "is_jumpoff": submission.is_jumpoff,
        },
    )
    was_completed = bool(existing) and existing[0].get("status") == ScoreStatus.COMPLETED.value
    row: dict[str, Any] = dict(existing[0]) if existing else {"rank": None, "qualified_for_jumpoff": False}
    row.update(result.as_fields())
    row.update(
        startlist_id=entry.id,
        class_id=cls.id,
        notes=submission.notes,
        scored_by=submission.scored_by,
    )
    if not result.is_completed:
        row.update(rank=None, qualified_for_jumpoff=False)
    stored = store.upsert(SCORES, row)
    logger.info(
        f"Score {stored['id']} for entry {entry.id} round {submission.round_number}"
        f"{' (jump-off)' if submission.is_jumpoff else ''}: {result.status.value}"
    )

    phase_two_changed = False
    if (
        get_rule(cls.class_rule).timing == Timing.TWO_PHASE
        and submission.round_number == 1
        and not submission.is_jumpoff
        and existing
    ):
        phase_two_changed = _rescore_phase_two(store, cls, entry.id, Score.model_validate(stored))

    if settings.auto_rank and (result.is_completed or was_completed):
        _rerank(store, cls, submission.round_number, submission.is_jumpoff)
    if settings.auto_rank and phase_two_changed:
        _rerank(store, cls, 2, False)
    if settings.auto_rank:
        stored = store.get(SCORES, stored["id"]) or stored
    return ServiceOutcome(data=stored, status_code=200 if existing else 201)


def _rescore_phase_two(
    store: StoreInterface, cls: CompetitionClass, entry_id: str, phase_one: Score
) -> bool:
    """
    Re-score a completed phase-2 row after its phase 1 was corrected.

    Phase-2 time faults are charged against the combined time of both phases,
    so they move with phase 1. An entry that no longer reaches phase 2 has its
    phase-2 score set back to pending. Returns True when the row changed.
    """
    rows = store.select(SCORES, {"startlist_id": entry_id, "round_number": 2, "is_jumpoff": False})
    if not rows or rows[0].get("status") != ScoreStatus.COMPLETED.value:
        return False
    row = dict(rows[0])
    resubmission = ScoreSubmission.model_validate({**row, "submitted_at": row.get("scored_at")})
    try:
        result = score_submission(resubmission, cls, phase_one)
    except ValidationError as e:
        logger.warning(f"Phase-2 score {row['id']} set to pending: {e.message}")
        row.update(status=ScoreStatus.PENDING.value, rank=None, qualified_for_jumpoff=False)
    else:
        fields = result.as_fields()
        if all(row.get(key) == value for key, value in fields.items()):
            return False
        row.update(fields)
    store.upsert(SCORES, row)
    logger.info(f"Phase-2 score {row['id']} for entry {entry_id} re-scored after phase-1 correction")
    return True


@_service()
def list_scores(
    store: StoreInterface,
    class_id: Optional[str] = None,
    startlist_id: Optional[str] = None,
    round_number: Optional[int] = None,
    is_jumpoff: Optional[bool] = None,
) -> list[Row]:
    filters: dict[str, Any] = {}
    if class_id:
        filters["class_id"] = class_id
    if startlist_id:
        filters["startlist_id"] = startlist_id
    if round_number is not None:
        filters["round_number"] = int(round_number)
    if is_jumpoff is not None:
        filters["is_jumpoff"] = bool(is_jumpoff)
    return store.select(SCORES, filters or None, order_by="rank")


@_service()
def rerank_scope(
    store: StoreInterface, class_id: str, round_number: int = 1, is_jumpoff: bool = False
) -> dict[str, Any]:
    cls = _load(store, CLASSES, class_id, CompetitionClass)
    get_rule(cls.class_rule).check_round(round_number, is_jumpoff)
    result = _rerank(store, cls, round_number, is_jumpoff)
    return {
        "rows": [asdict(row) for row in result.rows],
        "qualified_ids": list(result.qualified_ids),
    }


def _result_row(row: Any, by_id: dict[str, StartlistEntry]) -> dict[str, Any]:
    data = asdict(row)
    entry = by_id.get(row.entry_id)
    if entry is not None:
        data.update(
            rider_name=entry.rider_name,
            horse_name=entry.horse_name,
            team_name=entry.team_name,
            country_code=entry.country_code,
            start_order=entry.start_order,
        )
    return data


@_service()
def get_results(
    store: StoreInterface, class_id: str, settings: Optional[Settings] = None
) -> dict[str, Any]:
    """
    Full results of a class: every scored scope in running order, the combined
    two-phase classification and team standings where the rule has them.
    """
    settings = settings or load_settings()
    cls = _load(store, CLASSES, class_id, CompetitionClass)
    rule = get_rule(cls.class_rule)
    scores = _class_scores(store, cls.id)
    startlist = _class_startlist(store, cls.id)
    by_id = {entry.id: entry for entry in startlist}

    scopes = sorted({(s.is_jumpoff, s.round_number) for s in scores if s.is_completed})
    rounds = []
    for is_jumpoff, round_number in scopes:
        entries = build_scope_entries(
            rule, scores, startlist, round_number=round_number, is_jumpoff=is_jumpoff
        )
        result = rank_scope(rule, entries, is_jumpoff=is_jumpoff, optimum_time=cls.optimum_time)
        rounds.append(
            {
                "round_number": round_number,
                "is_jumpoff": is_jumpoff,
                "rows": [_result_row(row, by_id) for row in result.rows],
                "qualified_ids": list(result.qualified_ids),
            }
        )

    overall = []
    if rule.timing == Timing.TWO_PHASE:
        overall = [_result_row(row, by_id) for row in classify_two_phase(rule, scores, startlist)]

    teams = [
        asdict(standing)
        for standing in team_standings(
            rule, scores, startlist, counting_scores=settings.team_counting_scores
        )
    ]
    return {
        "class": cls.to_row(),
        "class_rule": rule.value,
        "label": rule.label,
        "rounds": rounds,
        "overall": overall,
        "teams": teams,
    }


# ==================== STATUS ====================


@_service()
def update_statuses(
    store: StoreInterface, now: Optional[datetime] = None, settings: Optional[Settings] = None
) -> dict[str, Any]:
    """What the cron / manual trigger endpoint calls."""
    settings = settings or load_settings()
    report = reconcile_statuses(store, now, settings.show_timezone)
    return {"success": True, **report.as_dict()}
