"""Scoring engine: raw judge inputs -> faults, points and completion status.

One scorer per timing family implements the common ``RuleScorer`` capability;
``score_submission`` looks the class rule up in the catalog and dispatches on
its timing. Scorers are pure: persistence and re-ranking happen in the
service layer.
"""
from __future__ import annotations

import logging
from dataclasses import asdict, dataclass, replace
from datetime import datetime, timezone
from typing import Any, Optional, Protocol

from .errors import ValidationError
from .models import CompetitionClass, Score
from .rules import RuleSpec, Timing, get_rule
from .types import ScoreStatus
from .validation import ScoreSubmission

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ScoreResult:
    round_number: int
    is_jumpoff: bool
    time_taken: Optional[float]
    jumping_faults: float
    time_faults: float
    total_faults: float
    points: float
    final_time: Optional[float]
    status: ScoreStatus
    scored_at: Optional[datetime] = None

    @property
    def is_completed(self) -> bool:
        return self.status == ScoreStatus.COMPLETED

    def as_fields(self) -> dict[str, Any]:
        """Store-ready field mapping (JSON-compatible values)."""
        fields = asdict(self)
        fields["status"] = self.status.value
        fields["scored_at"] = self.scored_at.isoformat() if self.scored_at else None
        return fields


class RuleScorer(Protocol):
    def score(
        self,
        submission: ScoreSubmission,
        cls: CompetitionClass,
        rule: RuleSpec,
        previous: Optional[Score],
    ) -> ScoreResult:
        ...


def _result(
    submission: ScoreSubmission,
    *,
    time_faults: float,
    points: float = 0.0,
    final_time: Optional[float],
    complete: bool,
) -> ScoreResult:
    jumping = float(submission.jumping_faults or 0)
    return ScoreResult(
        round_number=submission.round_number,
        is_jumpoff=submission.is_jumpoff,
        time_taken=submission.time_taken,
        jumping_faults=jumping,
        time_faults=float(time_faults),
        total_faults=jumping + float(time_faults),
        points=float(points),
        final_time=final_time,
        status=ScoreStatus.COMPLETED if complete else ScoreStatus.PENDING,
    )


class AgainstClockScorer:
    """Faults plus one time fault per commenced second over the time allowed."""

    def score(self, submission, cls, rule, previous):
        allowed = rule.time_allowed_for(cls, submission.round_number, submission.is_jumpoff)
        taken = submission.time_taken
        time_faults = 0.0
        if taken is not None and allowed is not None:
            time_faults = rule.time_faults(taken - allowed)

        if rule.points_based:
            # Accumulator: obstacle points are authoritative, time faults come off them.
            raw = submission.points
            points = max(0.0, min(raw or 0.0, float(cls.max_points)) - time_faults)
            complete = taken is not None and raw is not None
            return _result(
                submission,
                time_faults=time_faults,
                points=points,
                final_time=taken,
                complete=complete,
            )

        complete = taken is not None and submission.jumping_faults is not None
        return _result(submission, time_faults=time_faults, final_time=taken, complete=complete)


class NotAgainstClockScorer:
    """Only jumping faults count; the time is kept for information."""

    def score(self, submission, cls, rule, previous):
        return _result(
            submission,
            time_faults=0.0,
            final_time=submission.time_taken,
            complete=submission.jumping_faults is not None,
        )


class OptimumTimeScorer:
    """Time faults for every commenced second away from the optimum, either side."""

    def score(self, submission, cls, rule, previous):
        taken = submission.time_taken
        time_faults = 0.0
        if taken is not None:
            time_faults = rule.time_faults(abs(taken - cls.optimum_time))
        complete = taken is not None and submission.jumping_faults is not None
        return _result(submission, time_faults=time_faults, final_time=taken, complete=complete)


class TwoPhaseScorer:
    """
    Phase 1 (round 1) is scored against time_allowed. Phase 2 (round 2) is
    only open to entries within the rule's phase-1 fault ceiling; its time
    faults come from the cumulative time of both phases against the combined
    allowance, less what phase 1 already charged.
    """

    def score(self, submission, cls, rule, previous):
        taken = submission.time_taken
        complete = taken is not None and submission.jumping_faults is not None

        if submission.round_number == 1:
            time_faults = 0.0
            if taken is not None:
                time_faults = rule.time_faults(taken - cls.time_allowed)
            return _result(submission, time_faults=time_faults, final_time=taken, complete=complete)

        if previous is None or not previous.is_completed:
            raise ValidationError("phase 1 must be completed before phase 2 can be scored")
        if not rule.continues_to_phase_two(previous.jumping_faults):
            raise ValidationError(
                f"entry {submission.startlist_id} did not qualify for phase 2 "
                f"({previous.jumping_faults:g} faults in phase 1)"
            )

        time_faults = 0.0
        if taken is not None:
            combined_allowed = cls.time_allowed + cls.time_allowed_round2
            combined_taken = (previous.time_taken or 0.0) + taken
            time_faults = max(
                0.0, rule.time_faults(combined_taken - combined_allowed) - previous.time_faults
            )
        return _result(submission, time_faults=time_faults, final_time=taken, complete=complete)


SCORERS: dict[Timing, RuleScorer] = {
    Timing.AGAINST_CLOCK: AgainstClockScorer(),
    Timing.NOT_AGAINST_CLOCK: NotAgainstClockScorer(),
    Timing.OPTIMUM: OptimumTimeScorer(),
    Timing.TWO_PHASE: TwoPhaseScorer(),
}

_unscored = [timing.value for timing in Timing if timing not in SCORERS]
if _unscored:
    raise RuntimeError(f"timing families without a scorer: {_unscored}")


def score_submission(
    submission: ScoreSubmission,
    cls: CompetitionClass,
    previous: Optional[Score] = None,
) -> ScoreResult:
    """
    Compute faults/points for one submission under the class's rule.

    Args:
      submission: validated judge input.
      cls: the owning class (rule and time parameters).
      previous: the entry's phase-1 score, required for two-phase round 2.

    Raises:
      ValidationError: class mismatch, unknown rule, or a round the rule never runs.
      InvalidRuleParameters: the class lacks a parameter the formula needs.
    """
    if submission.class_id != cls.id:
        raise ValidationError(
            f"score class_id {submission.class_id} does not match class {cls.id}"
        )
    rule = get_rule(cls.class_rule)
    rule.check_round(submission.round_number, submission.is_jumpoff)
    rule.require_parameters(cls)

    result = SCORERS[rule.timing].score(submission, cls, rule, previous)
    if result.is_completed:
        scored_at = submission.submitted_at or datetime.now(timezone.utc)
        result = replace(result, scored_at=scored_at)
    logger.debug(
        f"Scored {submission.startlist_id} round {submission.round_number}"
        f"{' (jump-off)' if submission.is_jumpoff else ''} under {rule.value}: "
        f"{result.total_faults:g} faults, {result.points:g} points, {result.status.value}"
    )
    return result
