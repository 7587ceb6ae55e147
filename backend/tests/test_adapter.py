"""Tests for boundary decoding of progress documents."""
import json
from datetime import date, datetime, timezone

import pytest

from trainlog.models.progress import ExerciseSession, ExerciseSet
from trainlog.services.analytics.adapter import (
    coerce_session,
    coerce_set,
    decode_field,
    normalize_program,
    normalize_progress_record,
    parse_date,
    to_calendar_day,
)


class TestDecodeField:
    def test_structured_passthrough(self):
        value = {"a": 1}
        assert decode_field(value, {}) is value

    def test_text_is_decoded(self):
        assert decode_field('[1, 2]', []) == [1, 2]

    def test_bytes_are_decoded(self):
        assert decode_field(b'{"a": 1}', {}) == {"a": 1}

    def test_invalid_text_falls_back(self):
        assert decode_field("{not json", {"default": True}) == {"default": True}

    def test_unexpected_type_falls_back(self):
        assert decode_field('"a string"', [], expected=(list,)) == []
        assert decode_field(42, {}) == {}

    def test_missing_and_blank(self):
        assert decode_field(None, []) == []
        assert decode_field("   ", []) == []


class TestDates:
    def test_plain_date_string(self):
        assert to_calendar_day("2024-01-08") == date(2024, 1, 8)

    def test_date_and_datetime_objects(self):
        assert to_calendar_day(date(2024, 1, 8)) == date(2024, 1, 8)
        assert to_calendar_day(datetime(2024, 1, 8, 23, 59)) == date(2024, 1, 8)

    def test_utc_suffix_is_converted_to_local(self):
        expected = datetime(2024, 1, 8, 12, 0, tzinfo=timezone.utc).astimezone().date()
        assert to_calendar_day("2024-01-08T12:00:00.000Z") == expected

    def test_epoch_milliseconds(self):
        ms = 1704715200000
        assert to_calendar_day(ms) == datetime.fromtimestamp(ms / 1000).date()

    @pytest.mark.parametrize("value", ["tomorrow", "", True, None, float("nan"), [2024]])
    def test_invalid(self, value):
        assert parse_date(value) is None
        with pytest.raises((ValueError, TypeError)):
            to_calendar_day(value)


class TestCoercion:
    def test_set_from_mapping(self):
        assert coerce_set({"weightKg": "82.5", "reps": 5, "isCompleted": True}) == ExerciseSet(82.5, 5, True)

    def test_set_completion_must_be_true(self):
        assert coerce_set({"weightKg": 80, "reps": 5, "isCompleted": "yes"}).is_completed is False

    @pytest.mark.parametrize(
        "raw",
        [
            {"reps": 5, "isCompleted": True},
            {"weightKg": "heavy", "reps": 5},
            {"weightKg": 80, "reps": None},
            {"weightKg": True, "reps": 5},
            "80x5",
        ],
    )
    def test_malformed_sets(self, raw):
        assert coerce_set(raw) is None

    def test_session_drops_malformed_sets(self):
        session = coerce_session(
            {"date": "2024-01-08", "sets": [{"weightKg": 80, "reps": 5, "isCompleted": True}, "junk"]}
        )
        assert session == ExerciseSession(date(2024, 1, 8), (ExerciseSet(80, 5, True),))

    def test_session_requires_date_and_sets(self):
        assert coerce_session({"date": "2024-01-08"}) is None
        assert coerce_session({"sets": []}) is None


class TestDocuments:
    def test_progress_record_with_encoded_fields(self):
        raw = {
            "userId": "u1",
            "exerciseLogs": json.dumps(
                {"bench": [{"date": "2024-01-08", "sets": [{"weightKg": 80, "reps": 5, "isCompleted": True}]}]}
            ),
            "completedWorkouts": json.dumps([{"date": "2024-01-08", "workoutName": "Push"}, "legacy-id"]),
            "trainingDays": '["monday", "thursday"]',
        }
        record = normalize_progress_record(raw)

        assert record.user_id == "u1"
        assert record.exercise_log["bench"][0].sets == (ExerciseSet(80, 5, True),)
        assert record.completed_workouts == [{"date": "2024-01-08", "workoutName": "Push"}]
        assert record.training_schedule == ["monday", "thursday"]

    def test_progress_record_from_text_document(self):
        record = normalize_progress_record('{"trainingSchedule": ["friday"]}', user_id="u2")

        assert record.user_id == "u2"
        assert record.training_schedule == ["friday"]
        assert record.exercise_log == {}

    def test_missing_or_broken_progress_is_empty(self):
        assert normalize_progress_record(None, user_id="u3").completed_workouts == []
        assert normalize_progress_record("{oops", user_id="u3").exercise_log == {}

    def test_legacy_program_split(self):
        assert normalize_program({"generatedSplit": '{"days": 4}'}) == {"days": 4}

    def test_program_with_broken_split(self):
        assert normalize_program({"generatedSplit": "{oops"}) == {}

    def test_plain_program(self):
        assert normalize_program('{"days": 3}') == {"days": 3}
