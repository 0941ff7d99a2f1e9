"""Class rule catalog (single source of truth for rule-specific behaviour).

Every supported jumping-competition rule is a member of the closed
``ClassRule`` enum and has exactly one frozen ``RuleSpec`` in ``CATALOG``.
The scoring engine dispatches on ``RuleSpec.timing`` and the ranking
resolver reads direction, time deciders and qualification flags from the
spec; neither inspects rule names directly.

Time penalty unit follows FEI Table A: one fault per commenced second over
the time allowed.
"""
from __future__ import annotations

import math
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Optional

from .errors import InvalidRuleParameters, ValidationError

if TYPE_CHECKING:
    from .models import CompetitionClass


class ClassRule(str, Enum):
    ONE_ROUND_AGAINST_CLOCK = "one_round_against_clock"
    ONE_ROUND_NOT_AGAINST_CLOCK = "one_round_not_against_clock"
    OPTIMUM_TIME = "optimum_time"
    SPECIAL_TWO_PHASES = "special_two_phases"
    TWO_PHASES = "two_phases"
    ONE_ROUND_WITH_JUMPOFF = "one_round_with_jumpoff"
    TWO_ROUNDS_WITH_TIEBREAKER = "two_rounds_with_tiebreaker"
    TWO_ROUNDS_TEAM_WITH_TIEBREAKER = "two_rounds_team_with_tiebreaker"
    ACCUMULATOR = "accumulator"
    SPEED_AND_HANDINESS = "speed_and_handiness"
    SIX_BARS = "six_bars"


class Timing(str, Enum):
    """How time turns into penalties for a rule family."""

    AGAINST_CLOCK = "against_clock"
    NOT_AGAINST_CLOCK = "not_against_clock"
    OPTIMUM = "optimum"
    TWO_PHASE = "two_phase"


@dataclass(frozen=True)
class RuleSpec:
    rule: ClassRule
    label: str
    rounds: int
    timing: Timing
    # "2 if tie": leaders after the main round(s) go to a jump-off.
    jumpoff: bool = False
    max_jumpoffs: int = 1
    points_based: bool = False
    team: bool = False
    # Whether final_time separates equal faults in the main round(s).
    time_decides: bool = True
    jumpoff_time_decides: bool = True
    # Later rounds rank on faults carried over from earlier rounds.
    cumulative: bool = False
    # Two-phase only: phase-1 jumping faults above this stop the entry
    # before phase 2. None means every entry rides both phases.
    phase_fault_ceiling: Optional[float] = None
    required_fields: tuple[str, ...] = ()
    time_fault_unit: float = 1.0
    time_fault_interval: float = 1.0

    @property
    def value(self) -> str:
        return self.rule.value

    @property
    def second_stage(self) -> bool:
        """A jump-off or a second phase can follow the first round."""
        return self.jumpoff or self.timing == Timing.TWO_PHASE

    @property
    def higher_is_better(self) -> bool:
        return self.points_based

    def missing_parameters(self, cls: "CompetitionClass") -> tuple[str, ...]:
        return tuple(name for name in self.required_fields if getattr(cls, name, None) is None)

    def require_parameters(self, cls: "CompetitionClass") -> None:
        missing = self.missing_parameters(cls)
        if missing:
            raise InvalidRuleParameters(self.value, missing)

    def check_round(self, round_number: int, is_jumpoff: bool) -> None:
        """Reject rounds the rule never runs."""
        if round_number < 1:
            raise ValidationError("round_number must be >= 1")
        if is_jumpoff:
            if not self.jumpoff:
                raise ValidationError(f"class rule {self.value} has no jump-off")
            if round_number > self.max_jumpoffs:
                raise ValidationError(
                    f"class rule {self.value} allows at most {self.max_jumpoffs} jump-off(s)"
                )
            return
        if round_number > self.rounds:
            raise ValidationError(
                f"class rule {self.value} has {self.rounds} round(s), got round {round_number}"
            )

    def time_allowed_for(
        self, cls: "CompetitionClass", round_number: int, is_jumpoff: bool
    ) -> Optional[float]:
        if is_jumpoff or round_number >= 2:
            return cls.time_allowed_round2 or cls.time_allowed
        return cls.time_allowed

    def time_decides_in(self, is_jumpoff: bool) -> bool:
        return self.jumpoff_time_decides if is_jumpoff else self.time_decides

    def time_faults(self, excess_seconds: float) -> float:
        """Faults for ``excess_seconds`` over the allowance (commenced intervals)."""
        if excess_seconds <= 0:
            return 0.0
        # Round first so 63.2 - 60 = 3.2000000000000028 stays 4 intervals.
        intervals = math.ceil(round(excess_seconds / self.time_fault_interval, 6))
        return float(intervals) * self.time_fault_unit

    def continues_to_phase_two(self, phase_one_jumping_faults: float) -> bool:
        if self.timing != Timing.TWO_PHASE:
            return False
        if self.phase_fault_ceiling is None:
            return True
        return phase_one_jumping_faults <= self.phase_fault_ceiling


_CLOCK = ("time_allowed",)
_PHASES = ("time_allowed", "time_allowed_round2")
_OPTIMUM = ("optimum_time",)

CATALOG: dict[ClassRule, RuleSpec] = {
    ClassRule.ONE_ROUND_AGAINST_CLOCK: RuleSpec(
        rule=ClassRule.ONE_ROUND_AGAINST_CLOCK,
        label="One round against the clock",
        rounds=1,
        timing=Timing.AGAINST_CLOCK,
        required_fields=_CLOCK,
    ),
    ClassRule.ONE_ROUND_NOT_AGAINST_CLOCK: RuleSpec(
        rule=ClassRule.ONE_ROUND_NOT_AGAINST_CLOCK,
        label="One round not against the clock",
        rounds=1,
        timing=Timing.NOT_AGAINST_CLOCK,
        time_decides=False,
    ),
    ClassRule.OPTIMUM_TIME: RuleSpec(
        rule=ClassRule.OPTIMUM_TIME,
        label="Optimum time",
        rounds=1,
        timing=Timing.OPTIMUM,
        required_fields=_OPTIMUM,
    ),
    ClassRule.SPECIAL_TWO_PHASES: RuleSpec(
        rule=ClassRule.SPECIAL_TWO_PHASES,
        label="Special two phases",
        rounds=2,
        timing=Timing.TWO_PHASE,
        phase_fault_ceiling=None,
        cumulative=True,
        required_fields=_PHASES,
    ),
    ClassRule.TWO_PHASES: RuleSpec(
        rule=ClassRule.TWO_PHASES,
        label="Two phases",
        rounds=2,
        timing=Timing.TWO_PHASE,
        phase_fault_ceiling=0,
        required_fields=_PHASES,
    ),
    ClassRule.ONE_ROUND_WITH_JUMPOFF: RuleSpec(
        rule=ClassRule.ONE_ROUND_WITH_JUMPOFF,
        label="One round with jump-off",
        rounds=1,
        timing=Timing.AGAINST_CLOCK,
        jumpoff=True,
        time_decides=False,
        required_fields=_CLOCK,
    ),
    ClassRule.TWO_ROUNDS_WITH_TIEBREAKER: RuleSpec(
        rule=ClassRule.TWO_ROUNDS_WITH_TIEBREAKER,
        label="Two rounds with tie-breaker",
        rounds=2,
        timing=Timing.AGAINST_CLOCK,
        jumpoff=True,
        time_decides=False,
        cumulative=True,
        required_fields=_CLOCK,
    ),
    ClassRule.TWO_ROUNDS_TEAM_WITH_TIEBREAKER: RuleSpec(
        rule=ClassRule.TWO_ROUNDS_TEAM_WITH_TIEBREAKER,
        label="Two rounds team competition with tie-breaker",
        rounds=2,
        timing=Timing.AGAINST_CLOCK,
        jumpoff=True,
        team=True,
        time_decides=False,
        cumulative=True,
        required_fields=_CLOCK,
    ),
    ClassRule.ACCUMULATOR: RuleSpec(
        rule=ClassRule.ACCUMULATOR,
        label="Accumulator",
        rounds=1,
        timing=Timing.AGAINST_CLOCK,
        points_based=True,
        required_fields=("time_allowed", "max_points"),
    ),
    ClassRule.SPEED_AND_HANDINESS: RuleSpec(
        rule=ClassRule.SPEED_AND_HANDINESS,
        label="Speed and handiness",
        rounds=1,
        timing=Timing.OPTIMUM,
        required_fields=_OPTIMUM,
    ),
    ClassRule.SIX_BARS: RuleSpec(
        rule=ClassRule.SIX_BARS,
        label="Six bars",
        rounds=1,
        timing=Timing.AGAINST_CLOCK,
        jumpoff=True,
        # FEI: up to four successive jump-offs; equal results share placings.
        max_jumpoffs=4,
        time_decides=False,
        jumpoff_time_decides=False,
        required_fields=_CLOCK,
    ),
}

_uncatalogued = [rule.value for rule in ClassRule if rule not in CATALOG]
if _uncatalogued:
    raise RuntimeError(f"class rules without a catalog entry: {_uncatalogued}")

VALID_CLASS_RULES: tuple[str, ...] = tuple(rule.value for rule in ClassRule)


def get_rule(value: ClassRule | str | None) -> RuleSpec:
    """Look up the catalog entry for ``value``.

    Raises:
        ValidationError: for a missing or unrecognized rule identifier.
    """
    if isinstance(value, ClassRule):
        return CATALOG[value]
    if not value:
        raise ValidationError("class_rule is required")
    try:
        return CATALOG[ClassRule(str(value).strip())]
    except ValueError:
        raise ValidationError(
            f"Invalid class_rule. Must be one of: {', '.join(VALID_CLASS_RULES)}"
        ) from None
