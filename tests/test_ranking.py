from __future__ import annotations

from showjump_core import (
    RankingEntry,
    Score,
    StartlistEntry,
    build_scope_entries,
    classify_two_phase,
    get_rule,
    rank_scope,
    team_standings,
)


def _entry(entry_id, order, faults, time=None, points=0.0, hc=False, team=None):
    return RankingEntry(
        entry_id=entry_id,
        start_order=order,
        total_faults=faults,
        points=points,
        final_time=time,
        is_handicap=hc,
        team_name=team,
        score_id=f"s-{entry_id}",
    )


def _ranks(result):
    return {row.entry_id: row.rank for row in result.rows}


def test_fewer_faults_then_faster_time():
    rule = get_rule("one_round_against_clock")
    out = rank_scope(
        rule,
        [
            _entry("A", 1, 4, 58.0),
            _entry("B", 2, 0, 61.0),
            _entry("C", 3, 0, 59.5),
        ],
    )
    assert [row.entry_id for row in out.rows] == ["C", "B", "A"]
    assert [row.rank for row in out.rows] == [1, 2, 3]
    assert out.qualified_ids == ()


def test_identical_results_share_rank_competition_style():
    rule = get_rule("one_round_against_clock")
    out = rank_scope(
        rule,
        [
            _entry("A", 3, 0, 60.0),
            _entry("B", 1, 0, 60.0),
            _entry("C", 2, 0, 60.0),
            _entry("D", 4, 4, 55.0),
        ],
    )
    assert _ranks(out) == {"A": 1, "B": 1, "C": 1, "D": 4}
    # Start order only orders the tied rows.
    assert [row.entry_id for row in out.rows] == ["B", "C", "A", "D"]
    assert all(row.tied for row in out.rows[:3])
    assert out.rows[3].tied is False


def test_two_tied_of_three():
    rule = get_rule("one_round_against_clock")
    out = rank_scope(rule, [_entry("A", 1, 0, 60.0), _entry("B", 2, 0, 60.0), _entry("C", 3, 4, 50.0)])
    assert [row.rank for row in out.rows] == [1, 1, 3]


def test_points_based_ranking_is_reversed():
    entries = [_entry("A", 1, 0, 60.0, points=40), _entry("B", 2, 0, 60.0, points=55)]
    by_points = rank_scope(get_rule("accumulator"), entries)
    by_faults = rank_scope(get_rule("one_round_against_clock"), [
        _entry("A", 1, 40, 60.0),
        _entry("B", 2, 55, 60.0),
    ])
    assert [row.entry_id for row in by_points.rows] == ["B", "A"]
    assert [row.entry_id for row in by_faults.rows] == ["A", "B"]


def test_not_against_clock_ties_ignore_time():
    out = rank_scope(
        get_rule("one_round_not_against_clock"),
        [_entry("A", 1, 0, 80.0), _entry("B", 2, 0, 60.0), _entry("C", 3, 4, 50.0)],
    )
    assert _ranks(out) == {"A": 1, "B": 1, "C": 3}


def test_optimum_time_ranks_by_deviation():
    out = rank_scope(
        get_rule("optimum_time"),
        [_entry("A", 1, 0, 72.0), _entry("B", 2, 0, 69.0), _entry("C", 3, 0, 71.0)],
        optimum_time=70.0,
    )
    # B and C are one second away; the faster one goes first.
    assert [row.entry_id for row in out.rows] == ["B", "C", "A"]
    assert [row.rank for row in out.rows] == [1, 2, 3]


def test_jumpoff_qualification_for_clear_leaders():
    rule = get_rule("two_rounds_with_tiebreaker")
    out = rank_scope(rule, [_entry("A", 1, 0, 70.0), _entry("B", 2, 0, 66.0), _entry("C", 3, 4, 60.0)])
    qualified = {row.entry_id: row.qualified_for_jumpoff for row in out.rows}
    assert qualified == {"A": True, "B": True, "C": False}
    assert out.qualified_ids == ("A", "B")
    assert _ranks(out) == {"A": 1, "B": 1, "C": 3}


def test_single_leader_needs_no_jumpoff():
    rule = get_rule("one_round_with_jumpoff")
    out = rank_scope(rule, [_entry("A", 1, 0, 70.0), _entry("B", 2, 4, 66.0)])
    assert out.qualified_ids == ()
    assert not any(row.qualified_for_jumpoff for row in out.rows)


def test_jumpoff_round_is_decided_by_time():
    rule = get_rule("one_round_with_jumpoff")
    out = rank_scope(rule, [_entry("A", 1, 0, 40.0), _entry("B", 2, 0, 38.0)], is_jumpoff=True)
    assert [row.entry_id for row in out.rows] == ["B", "A"]
    assert out.qualified_ids == ()


def test_six_bars_jumpoff_ties_share_placing():
    rule = get_rule("six_bars")
    out = rank_scope(rule, [_entry("A", 1, 0, 40.0), _entry("B", 2, 0, 38.0)], is_jumpoff=True)
    assert _ranks(out) == {"A": 1, "B": 1}


def test_handicap_entries_rank_below_regular_and_never_qualify():
    rule = get_rule("one_round_with_jumpoff")
    out = rank_scope(
        rule,
        [
            _entry("H", 1, 0, 50.0, hc=True),
            _entry("A", 2, 0, 61.0),
            _entry("B", 3, 0, 62.0),
            _entry("C", 4, 8, 70.0),
        ],
    )
    assert [row.entry_id for row in out.rows] == ["A", "B", "C", "H"]
    assert _ranks(out)["H"] == 4
    assert out.qualified_ids == ("A", "B")
    assert out.rank_of("H") == 4
    assert out.rank_of("missing") is None


def _start(entry_id, order, team=None, hc=False):
    return StartlistEntry(
        id=entry_id, class_id="c1", rider_name=f"Rider {entry_id}", horse_name=f"Horse {entry_id}",
        start_order=order, team_name=team, is_handicap=hc,
    )


def _score(entry_id, round_number, faults, time, *, jumpoff=False, status="completed"):
    return Score(
        id=f"{entry_id}-{round_number}{'j' if jumpoff else ''}",
        startlist_id=entry_id,
        class_id="c1",
        round_number=round_number,
        is_jumpoff=jumpoff,
        jumping_faults=faults,
        total_faults=faults,
        time_taken=time,
        final_time=time,
        status=status,
    )


def test_cumulative_rounds_carry_faults():
    rule = get_rule("two_rounds_with_tiebreaker")
    startlist = [_start("A", 1), _start("B", 2)]
    scores = [
        _score("A", 1, 4, 70.0),
        _score("B", 1, 0, 71.0),
        _score("A", 2, 0, 60.0),
        _score("B", 2, 0, 61.0),
        _score("B", 1, 0, 50.0, jumpoff=True),
    ]
    entries = build_scope_entries(rule, scores, startlist, round_number=2)
    faults = {e.entry_id: e.total_faults for e in entries}
    assert faults == {"A": 4, "B": 0}
    out = rank_scope(rule, entries)
    assert _ranks(out) == {"B": 1, "A": 2}


def test_pending_scores_are_not_ranked():
    rule = get_rule("one_round_against_clock")
    scores = [_score("A", 1, 0, 60.0), _score("B", 1, 0, 59.0, status="pending")]
    entries = build_scope_entries(rule, scores, [_start("A", 1), _start("B", 2)], round_number=1)
    assert [e.entry_id for e in entries] == ["A"]


def test_two_phases_classification():
    rule = get_rule("two_phases")
    startlist = [_start("A", 1), _start("B", 2), _start("C", 3), _start("H", 4, hc=True)]
    scores = [
        _score("A", 1, 0, 60.0),
        _score("B", 1, 0, 61.0),
        _score("C", 1, 4, 58.0),
        _score("H", 1, 0, 59.0),
        _score("A", 2, 4, 35.0),
        _score("B", 2, 0, 38.0),
        _score("H", 2, 0, 30.0),
    ]
    rows = classify_two_phase(rule, scores, startlist)
    assert [(row.entry_id, row.rank) for row in rows] == [("B", 1), ("A", 2), ("C", 3), ("H", 4)]
    assert rows[2].round_number == 1


def test_special_two_phases_ranks_phase_two_on_total_faults():
    rule = get_rule("special_two_phases")
    startlist = [_start("A", 1), _start("B", 2)]
    scores = [
        _score("A", 1, 8, 60.0),
        _score("B", 1, 0, 61.0),
        _score("A", 2, 0, 30.0),
        _score("B", 2, 4, 38.0),
    ]
    rows = classify_two_phase(rule, scores, startlist)
    assert [(row.entry_id, row.total_faults) for row in rows] == [("B", 4), ("A", 8)]


def test_team_standings_best_three_count():
    rule = get_rule("two_rounds_team_with_tiebreaker")
    startlist = [
        _start("A1", 1, "Alpha"), _start("A2", 2, "Alpha"), _start("A3", 3, "Alpha"), _start("A4", 4, "Alpha"),
        _start("B1", 5, "Bravo"), _start("B2", 6, "Bravo"), _start("B3", 7, "Bravo"),
        _start("C1", 8, "Charlie"), _start("C2", 9, "Charlie"),
    ]
    scores = [
        _score("A1", 1, 0, 70.0), _score("A2", 1, 4, 71.0), _score("A3", 1, 0, 72.0), _score("A4", 1, 12, 69.0),
        _score("B1", 1, 0, 70.0), _score("B2", 1, 0, 71.0), _score("B3", 1, 8, 72.0),
        _score("C1", 1, 0, 60.0), _score("C2", 1, 0, 60.0),
    ]
    standings = team_standings(rule, scores, startlist)
    assert [(t.team_name, t.rank, t.total_faults) for t in standings] == [
        ("Alpha", 1, 4.0),
        ("Bravo", 2, 8.0),
        ("Charlie", 3, 0.0),
    ]
    assert standings[0].counted_ids == ("A1", "A3", "A2")
    assert standings[2].complete is False


def test_team_standings_only_for_team_rule():
    rule = get_rule("two_rounds_with_tiebreaker")
    assert team_standings(rule, [_score("A", 1, 0, 60.0)], [_start("A", 1, "Alpha")]) == ()
