"""Ranking engine for one {class, round, jump-off} scope.

Single source of truth for placings across API/results/scoreboard:
- Comparator: fewer faults (or more points for points-based rules) first;
  then final time where the rule lets time decide (deviation from the
  optimum for optimum-time rules); start order only orders tied entries.
- Equal comparator keys share a rank (standard competition ranking 1,2,2,4).
- Hors concours (handicap) entries are ranked in a block below every regular
  entry and never qualify for a jump-off.
- Regular entries sharing rank 1 in a main round of a jump-off rule qualify
  for the jump-off.
"""
from __future__ import annotations

import logging
import math
from collections import defaultdict
from dataclasses import dataclass
from typing import Callable, Iterable, Sequence

from .models import Score, StartlistEntry
from .rules import RuleSpec, Timing

logger = logging.getLogger(__name__)

SortKey = tuple[float, ...]


@dataclass(frozen=True)
class RankingEntry:
    entry_id: str
    start_order: int
    total_faults: float
    points: float = 0.0
    final_time: float | None = None
    is_handicap: bool = False
    team_name: str | None = None
    score_id: str | None = None
    round_number: int = 1


@dataclass(frozen=True)
class RankingRow:
    entry_id: str
    score_id: str | None
    rank: int
    total_faults: float
    points: float
    final_time: float | None
    is_handicap: bool
    qualified_for_jumpoff: bool
    tied: bool
    round_number: int = 1


@dataclass(frozen=True)
class RankingResult:
    rows: tuple[RankingRow, ...]
    qualified_ids: tuple[str, ...]

    def rank_of(self, entry_id: str) -> int | None:
        for row in self.rows:
            if row.entry_id == entry_id:
                return row.rank
        return None


@dataclass(frozen=True)
class TeamStanding:
    team_name: str
    rank: int
    total_faults: float
    total_time: float
    counted_ids: tuple[str, ...]
    member_ids: tuple[str, ...]
    complete: bool


def _time_or_inf(value: float | None) -> float:
    if value is None or not math.isfinite(float(value)):
        return math.inf
    return float(value)


def performance_key(
    rule: RuleSpec,
    entry: RankingEntry,
    *,
    is_jumpoff: bool = False,
    optimum_time: float | None = None,
) -> SortKey:
    """Comparator key for ``entry`` under ``rule``; lower sorts first."""
    primary = -float(entry.points) if rule.higher_is_better else float(entry.total_faults)
    if not rule.time_decides_in(is_jumpoff):
        return (primary,)
    time_value = _time_or_inf(entry.final_time)
    if rule.timing == Timing.OPTIMUM and not is_jumpoff and optimum_time is not None:
        # Closest to the optimum wins; faster breaks an equal deviation.
        return (primary, abs(time_value - optimum_time), time_value)
    return (primary, time_value)


def _assign_ranks(
    entries: Sequence[RankingEntry],
    key: Callable[[RankingEntry], SortKey],
    offset: int,
) -> list[tuple[RankingEntry, int, bool]]:
    ordered = sorted(entries, key=lambda e: (key(e), e.start_order, e.entry_id))
    ranked: list[tuple[RankingEntry, int, bool]] = []
    i = 0
    while i < len(ordered):
        current_key = key(ordered[i])
        j = i + 1
        while j < len(ordered) and key(ordered[j]) == current_key:
            j += 1
        group = ordered[i:j]
        rank = offset + i + 1
        for item in group:
            ranked.append((item, rank, len(group) > 1))
        i = j
    return ranked


def _rank_blocks(
    blocks: Iterable[Sequence[RankingEntry]],
    key: Callable[[RankingEntry], SortKey],
) -> list[tuple[RankingEntry, int, bool]]:
    """Rank consecutive blocks; each block starts after the previous one ends."""
    ranked: list[tuple[RankingEntry, int, bool]] = []
    offset = 0
    for block in blocks:
        ranked.extend(_assign_ranks(block, key, offset))
        offset += len(block)
    return ranked


def rank_scope(
    rule: RuleSpec,
    entries: Sequence[RankingEntry],
    *,
    is_jumpoff: bool = False,
    optimum_time: float | None = None,
) -> RankingResult:
    """
    Rank every entry of one scope.

    Args:
      rule: catalog entry of the class rule (direction, time deciders).
      entries: one RankingEntry per startlist entry with a completed score.
      is_jumpoff: whether the scope is a jump-off.
      optimum_time: class optimum, for optimum-time rules.
    """

    def key(entry: RankingEntry) -> SortKey:
        return performance_key(rule, entry, is_jumpoff=is_jumpoff, optimum_time=optimum_time)

    regular = [e for e in entries if not e.is_handicap]
    handicap = [e for e in entries if e.is_handicap]
    ranked = _rank_blocks([regular, handicap], key)

    qualified: set[str] = set()
    if rule.jumpoff and not is_jumpoff:
        leaders = [e for e, rank, _ in ranked if rank == 1 and not e.is_handicap]
        if len(leaders) >= 2:
            qualified = {e.entry_id for e in leaders}

    rows = tuple(
        RankingRow(
            entry_id=e.entry_id,
            score_id=e.score_id,
            rank=rank,
            total_faults=e.total_faults,
            points=e.points,
            final_time=e.final_time,
            is_handicap=e.is_handicap,
            qualified_for_jumpoff=e.entry_id in qualified,
            tied=tied,
            round_number=e.round_number,
        )
        for e, rank, tied in ranked
    )
    return RankingResult(rows=rows, qualified_ids=tuple(sorted(qualified)))


def _index_startlist(startlist: Iterable[StartlistEntry]) -> dict[str, StartlistEntry]:
    return {entry.id: entry for entry in startlist}


def _to_entry(score: Score, start: StartlistEntry, *, carried_faults: float = 0.0) -> RankingEntry:
    return RankingEntry(
        entry_id=start.id,
        start_order=start.start_order,
        total_faults=float(score.total_faults) + carried_faults,
        points=float(score.points),
        final_time=score.final_time if score.final_time is not None else score.time_taken,
        is_handicap=start.is_handicap,
        team_name=start.team_name,
        score_id=score.id,
        round_number=score.round_number,
    )


def build_scope_entries(
    rule: RuleSpec,
    scores: Iterable[Score],
    startlist: Iterable[StartlistEntry],
    *,
    round_number: int,
    is_jumpoff: bool = False,
) -> list[RankingEntry]:
    """
    Collect the ranking entries of one scope from a class's scores.

    Only completed scores are ranked. For cumulative rules a main round
    carries the entry's completed faults from the earlier main rounds.
    """
    by_id = _index_startlist(startlist)
    all_scores = list(scores)
    carried: dict[str, float] = defaultdict(float)
    if rule.cumulative and not is_jumpoff and round_number > 1:
        for s in all_scores:
            if s.is_completed and not s.is_jumpoff and s.round_number < round_number:
                carried[s.startlist_id] += float(s.total_faults)

    entries: list[RankingEntry] = []
    for s in all_scores:
        if s.round_number != round_number or s.is_jumpoff != is_jumpoff or not s.is_completed:
            continue
        start = by_id.get(s.startlist_id)
        if start is None:
            logger.warning(f"Score {s.id} references unknown startlist entry {s.startlist_id}")
            continue
        entries.append(_to_entry(s, start, carried_faults=carried.get(s.startlist_id, 0.0)))
    return entries


def classify_two_phase(
    rule: RuleSpec,
    scores: Iterable[Score],
    startlist: Iterable[StartlistEntry],
) -> tuple[RankingRow, ...]:
    """
    Overall result of a two-phase class.

    Entries that completed phase 2 are placed first (ranked as the phase-2
    scope), entries that stopped after phase 1 below them by phase-1 faults.
    Handicap entries follow the same two blocks underneath.
    """
    all_scores = list(scores)
    start_list = list(startlist)
    phase_two = build_scope_entries(rule, all_scores, start_list, round_number=2)
    finished = {e.entry_id for e in phase_two}
    phase_one_only = [
        e
        for e in build_scope_entries(rule, all_scores, start_list, round_number=1)
        if e.entry_id not in finished
    ]

    def key(entry: RankingEntry) -> SortKey:
        if entry.round_number == 2:
            return (0.0,) + performance_key(rule, entry)
        return (1.0, float(entry.total_faults))

    blocks = [
        [e for e in phase_two if not e.is_handicap],
        [e for e in phase_one_only if not e.is_handicap],
        [e for e in phase_two if e.is_handicap],
        [e for e in phase_one_only if e.is_handicap],
    ]
    ranked = _rank_blocks(blocks, key)
    return tuple(
        RankingRow(
            entry_id=e.entry_id,
            score_id=e.score_id,
            rank=rank,
            total_faults=e.total_faults,
            points=e.points,
            final_time=e.final_time,
            is_handicap=e.is_handicap,
            qualified_for_jumpoff=False,
            tied=tied,
            round_number=e.round_number,
        )
        for e, rank, tied in ranked
    )


def team_standings(
    rule: RuleSpec,
    scores: Iterable[Score],
    startlist: Iterable[StartlistEntry],
    *,
    counting_scores: int = 3,
) -> tuple[TeamStanding, ...]:
    """
    Aggregate individual main-round results per team_name.

    Each member's faults and times are summed over their completed main
    rounds; the best ``counting_scores`` members count for the team. Teams
    with fewer counted members rank after complete teams.
    """
    if not rule.team:
        return ()
    by_id = _index_startlist(startlist)
    member_faults: dict[str, float] = defaultdict(float)
    member_time: dict[str, float] = defaultdict(float)
    for s in scores:
        if not s.is_completed or s.is_jumpoff:
            continue
        start = by_id.get(s.startlist_id)
        if start is None or start.is_handicap or not start.team_name:
            continue
        member_faults[start.id] += float(s.total_faults)
        member_time[start.id] += _time_or_inf(s.final_time if s.final_time is not None else s.time_taken)

    teams: dict[str, list[str]] = defaultdict(list)
    for start in by_id.values():
        if start.team_name and not start.is_handicap:
            teams[start.team_name].append(start.id)

    counting_scores = max(1, int(counting_scores))
    aggregates: list[tuple[str, tuple[str, ...], tuple[str, ...], float, float, bool]] = []
    for name, members in teams.items():
        scored = [m for m in members if m in member_faults]
        scored.sort(key=lambda m: (member_faults[m], member_time[m], by_id[m].start_order))
        counted = tuple(scored[:counting_scores])
        aggregates.append(
            (
                name,
                counted,
                tuple(sorted(members, key=lambda m: by_id[m].start_order)),
                sum(member_faults[m] for m in counted),
                sum(member_time[m] for m in counted),
                len(counted) >= counting_scores,
            )
        )

    def team_key(agg: tuple) -> SortKey:
        _, _, _, faults, total_time, complete = agg
        return (0.0 if complete else 1.0, faults, total_time)

    aggregates.sort(key=lambda agg: (team_key(agg), agg[0]))
    standings: list[TeamStanding] = []
    for idx, agg in enumerate(aggregates):
        if idx > 0 and team_key(agg) == team_key(aggregates[idx - 1]):
            rank = standings[-1].rank
        else:
            rank = idx + 1
        name, counted, members, faults, total_time, complete = agg
        standings.append(
            TeamStanding(
                team_name=name,
                rank=rank,
                total_faults=faults,
                total_time=total_time,
                counted_ids=counted,
                member_ids=members,
                complete=complete,
            )
        )
    return tuple(standings)
