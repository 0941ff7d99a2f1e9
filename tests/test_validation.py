from __future__ import annotations

from datetime import date, time

import pytest

from showjump_core import (
    ClassInput,
    ClassRule,
    InputSanitizer,
    ScoreSubmission,
    ShowInput,
    StartlistEntryInput,
    ValidationError,
)


def test_show_input_rejects_reversed_window():
    with pytest.raises(ValidationError) as exc:
        InputSanitizer.validate(ShowInput, {"name": "Spring", "start_date": "2025-03-16", "end_date": "2025-03-13"})
    assert "end_date" in exc.value.message
    show = InputSanitizer.validate(ShowInput, {"name": " Spring ", "start_date": "2025-03-13", "end_date": "2025-03-16"})
    assert show.name == "Spring"
    assert show.end_date == date(2025, 3, 16)


def test_class_input_validates_rule():
    with pytest.raises(ValidationError) as exc:
        InputSanitizer.validate(ClassInput, {"show_id": "s1", "class_name": "1.40m", "class_rule": "puissance"})
    assert "Invalid class_rule. Must be one of:" in exc.value.message
    with pytest.raises(ValidationError):
        InputSanitizer.validate(ClassInput, {"show_id": "s1", "class_name": "1.40m"})


def test_class_input_defaults():
    cls = InputSanitizer.validate(
        ClassInput,
        {"show_id": "s1", "class_name": "1.40m", "class_rule": "two_phases", "currency": "eur", "start_time": "14:15"},
    )
    assert cls.class_rule is ClassRule.TWO_PHASES
    assert cls.number_of_rounds == 2
    assert cls.currency == "EUR"
    assert cls.max_points == 65
    assert cls.start_time == time(14, 15)
    assert InputSanitizer.validate(
        ClassInput, {"show_id": "s1", "class_name": "1.20m", "class_rule": "accumulator"}
    ).currency == "AED"


def test_class_input_rejects_non_positive_times():
    with pytest.raises(ValidationError) as exc:
        InputSanitizer.validate(
            ClassInput,
            {"show_id": "s1", "class_name": "1.40m", "class_rule": "one_round_against_clock", "time_allowed": 0},
        )
    assert exc.value.message.startswith("time_allowed:")


def test_startlist_entry_requires_core_fields():
    with pytest.raises(ValidationError) as exc:
        InputSanitizer.validate(StartlistEntryInput, {"class_id": "c1", "rider_name": "Ana"})
    assert "horse_name" in exc.value.message
    assert "start_order" in exc.value.message


def test_startlist_entry_sanitizes_names_and_country():
    entry = InputSanitizer.validate(
        StartlistEntryInput,
        {
            "class_id": "c1",
            "rider_name": "  Zoë\x00 O'Neill ",
            "horse_name": "<Quidam's> Boy",
            "start_order": 3,
            "country_code": "irl",
            "team_name": "  ",
        },
    )
    assert entry.rider_name == "Zoë O'Neill"
    assert entry.horse_name == "Quidam's Boy"
    assert entry.country_code == "IRL"
    assert entry.team_name is None
    with pytest.raises(ValidationError):
        InputSanitizer.validate(
            StartlistEntryInput,
            {"class_id": "c1", "rider_name": "Ana", "horse_name": "Bo", "start_order": 1, "country_code": "I1"},
        )


def test_score_submission_blank_inputs_are_missing():
    sub = InputSanitizer.validate(
        ScoreSubmission, {"startlist_id": "e1", "class_id": "c1", "time_taken": "", "jumping_faults": "4"}
    )
    assert sub.time_taken is None
    assert sub.jumping_faults == 4
    assert sub.round_number == 1
    assert sub.is_jumpoff is False


def test_score_submission_requires_ids():
    with pytest.raises(ValidationError) as exc:
        InputSanitizer.validate(ScoreSubmission, {"class_id": "c1"})
    assert "startlist_id" in exc.value.message


def test_payload_must_be_an_object():
    with pytest.raises(ValidationError):
        InputSanitizer.validate(ScoreSubmission, ["e1", "c1"])


def test_sanitize_string_truncates():
    assert InputSanitizer.sanitize_string("x" * 300) == "x" * 255
    assert InputSanitizer.sanitize_string(42) == "42"
