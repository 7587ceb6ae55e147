"""
Progress Document Adapter - Normalize raw documents from the persistence layer.

Fields may arrive already structured or as encoded text (a JSON string
stored in a text column). Everything is decoded here, once, so analytics
only ever sees typed models:
- decode_field: text-or-structured decoding with a safe default
- Calendar day parsing for dates, ISO datetimes and epoch milliseconds
- Set/session/log coercion that drops malformed items instead of failing
"""
import json
import math
from datetime import date, datetime
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

from trainlog.core.logging import get_logger
from trainlog.models.progress import (
    ExerciseSession,
    ExerciseSet,
    ProgressRecord,
)

logger = get_logger(__name__)


# ========================================
# Field decoding
# ========================================

def decode_field(
    value: Any,
    default: Any,
    expected: Tuple[type, ...] = (dict, list),
    field_name: str = "field",
) -> Any:
    """
    Decode a boundary field that may be structured data or encoded text.

    Args:
        value: Raw field value
        default: Returned when the value is missing or cannot be decoded
        expected: Acceptable decoded types
        field_name: Name used in log output

    Returns:
        Decoded value, or ``default`` on any decode failure
    """
    if value is None:
        return default

    if isinstance(value, (bytes, bytearray)):
        try:
            value = value.decode("utf-8")
        except UnicodeDecodeError:
            logger.warning("Undecodable bytes field, using default", field=field_name)
            return default

    if isinstance(value, str):
        if not value.strip():
            return default
        try:
            value = json.loads(value)
        except (json.JSONDecodeError, ValueError) as e:
            logger.warning("Failed to decode text field, using default", field=field_name, error=str(e))
            return default

    if isinstance(value, expected):
        return value

    logger.warning(
        "Unexpected field type, using default",
        field=field_name,
        type=type(value).__name__,
    )
    return default


def _first_present(raw: Mapping[str, Any], names: Iterable[str]) -> Any:
    for name in names:
        if name in raw and raw[name] is not None:
            return raw[name]
    return None


# ========================================
# Dates
# ========================================

def to_calendar_day(value: Any) -> date:
    """
    Convert a date-ish value to a local calendar day.

    Accepts ``date``/``datetime`` objects, ``YYYY-MM-DD`` strings, ISO
    datetimes (``Z`` suffix allowed) and epoch milliseconds. Timezone-aware
    datetimes are converted to local time before the time of day is dropped.

    Raises:
        ValueError: If the value cannot be interpreted as a date
    """
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone()
        return value.date()

    if isinstance(value, date):
        return value

    if isinstance(value, bool):
        raise ValueError(f"Not a date: {value!r}")

    if isinstance(value, (int, float)):
        if not math.isfinite(value):
            raise ValueError(f"Not a date: {value!r}")
        return datetime.fromtimestamp(value / 1000).date()

    if isinstance(value, str):
        text = value.strip()
        if len(text) == 10:
            return date.fromisoformat(text)
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        return to_calendar_day(datetime.fromisoformat(text))

    raise ValueError(f"Not a date: {value!r}")


def parse_date(value: Any) -> Optional[date]:
    """Lenient variant of ``to_calendar_day``; returns None on failure."""
    try:
        return to_calendar_day(value)
    except (ValueError, TypeError, OverflowError, OSError):
        return None


# ========================================
# Sets and sessions
# ========================================

def _number(value: Any) -> Optional[float]:
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, str):
        try:
            value = float(value)
        except ValueError:
            return None
    if not isinstance(value, (int, float)) or not math.isfinite(value):
        return None
    return float(value)


def coerce_set(raw: Any) -> Optional[ExerciseSet]:
    """
    Build an ExerciseSet from a model or a raw mapping.

    Returns None when the set is malformed.
    """
    if isinstance(raw, ExerciseSet):
        return raw
    if not isinstance(raw, Mapping):
        return None

    weight = _number(_first_present(raw, ("weightKg", "weight_kg", "weight")))
    reps = _number(raw.get("reps"))
    if weight is None or reps is None:
        return None

    completed = _first_present(raw, ("isCompleted", "is_completed", "completed"))
    return ExerciseSet(
        weight_kg=weight,
        reps=int(reps),
        is_completed=completed is True,
    )


def coerce_sets(raw_sets: Any) -> Tuple[ExerciseSet, ...]:
    """Coerce a sequence of raw sets, dropping malformed entries."""
    if not isinstance(raw_sets, (list, tuple)):
        return ()

    sets = []
    dropped = 0
    for raw in raw_sets:
        exercise_set = coerce_set(raw)
        if exercise_set is None:
            dropped += 1
            continue
        sets.append(exercise_set)

    if dropped:
        logger.warning("Dropped malformed sets", count=dropped)

    return tuple(sets)


def coerce_session(raw: Any) -> Optional[ExerciseSession]:
    """
    Build an ExerciseSession from a model or a raw mapping.

    Returns None when the session has no usable date or no set list.
    """
    if isinstance(raw, ExerciseSession):
        return raw
    if not isinstance(raw, Mapping):
        return None

    session_date = parse_date(raw.get("date"))
    if session_date is None or not isinstance(raw.get("sets"), (list, tuple)):
        return None

    return ExerciseSession(date=session_date, sets=coerce_sets(raw["sets"]))


def normalize_exercise_log(raw: Any) -> Dict[str, List[ExerciseSession]]:
    """
    Normalize an exercise log to ``{exercise_id: [ExerciseSession, ...]}``.

    Exercises whose session list is unusable are skipped; malformed
    sessions are dropped. Storage order is preserved.
    """
    decoded = decode_field(raw, {}, expected=(dict,), field_name="exerciseLogs")

    log: Dict[str, List[ExerciseSession]] = {}
    for exercise_id, raw_sessions in decoded.items():
        if not isinstance(raw_sessions, (list, tuple)):
            logger.warning("Skipping exercise with malformed history", exercise_id=str(exercise_id))
            continue

        sessions = []
        for raw_session in raw_sessions:
            session = coerce_session(raw_session)
            if session is None:
                logger.warning("Dropped malformed session", exercise_id=str(exercise_id))
                continue
            sessions.append(session)

        log[str(exercise_id)] = sessions

    return log


# ========================================
# Documents
# ========================================

def normalize_completed_workouts(raw: Any) -> List[Dict[str, Any]]:
    """Decode the completed-workout list; non-mapping entries are dropped."""
    decoded = decode_field(raw, [], expected=(list,), field_name="completedWorkouts")
    return [dict(entry) for entry in decoded if isinstance(entry, Mapping)]


def normalize_schedule(raw: Any) -> List[str]:
    """Decode a training schedule to a list of weekday names."""
    decoded = decode_field(
        raw, [], expected=(list, tuple, set, frozenset), field_name="trainingSchedule"
    )
    return [day for day in decoded if isinstance(day, str)]


def normalize_progress_record(raw: Any, user_id: Optional[str] = None) -> ProgressRecord:
    """
    Normalize a raw progress document.

    Args:
        raw: Document from the repository (mapping, encoded text or None)
        user_id: Owner, used when the document does not carry one

    Returns:
        ProgressRecord; an empty one if the document is missing or undecodable
    """
    document = decode_field(raw, {}, expected=(dict,), field_name="progress")

    return ProgressRecord(
        user_id=document.get("userId", user_id),
        exercise_log=normalize_exercise_log(
            _first_present(document, ("exerciseLogs", "exercise_logs"))
        ),
        completed_workouts=normalize_completed_workouts(
            _first_present(document, ("completedWorkouts", "completed_workouts"))
        ),
        training_schedule=normalize_schedule(
            _first_present(document, ("trainingSchedule", "trainingDays", "training_schedule"))
        ),
    )


def normalize_program(raw: Any) -> Dict[str, Any]:
    """
    Normalize a generated-program document.

    Legacy documents wrap the program in an encoded ``generatedSplit`` field.
    """
    document = decode_field(raw, {}, expected=(dict,), field_name="program")

    if "generatedSplit" in document:
        return decode_field(
            document["generatedSplit"], {}, expected=(dict,), field_name="generatedSplit"
        )

    return document
