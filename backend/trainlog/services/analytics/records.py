"""
Exercise Record Analyzer - Personal records and trends from an exercise log.

Strength metrics tracked per exercise:
- Heaviest single set (weight)
- Most reps in a single set
- Session volume (sum of weight × reps)
- Estimated one-rep max (Epley)

Records are recomputed from the full, date-sorted history on every call.
Only completed sets with positive weight and reps count.
"""
from datetime import date
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple, Union

from trainlog.core.config import settings
from trainlog.core.logging import get_logger
from trainlog.models.progress import (
    ExercisePRSet,
    ExerciseSession,
    ExerciseSet,
    PersonalRecord,
    RecordType,
    TrendDirection,
    TrendMetric,
)
from trainlog.services.analytics.adapter import (
    coerce_session,
    coerce_sets,
    decode_field,
)

logger = get_logger(__name__)


# ========================================
# Set-level helpers
# ========================================

def calculate_1rm(weight: float, reps: int) -> float:
    """
    Estimate one-rep max with the Epley formula.

    1RM = weight * (1 + reps / 30), and exactly ``weight`` for a single rep.
    """
    if reps == 1:
        return weight
    return weight * (1 + reps / 30)


def calculate_volume(sets: Sequence[ExerciseSet]) -> float:
    """Sum of weight × reps over qualifying sets."""
    return sum(s.weight_kg * s.reps for s in sets if s.qualifies())


def best_set(sets: Sequence[ExerciseSet]) -> Optional[ExerciseSet]:
    """Heaviest qualifying set, ties broken by more reps."""
    completed = [s for s in sets if s.qualifies()]
    if not completed:
        return None

    best = completed[0]
    for current in completed[1:]:
        if current.weight_kg > best.weight_kg:
            best = current
        elif current.weight_kg == best.weight_kg and current.reps > best.reps:
            best = current
    return best


def format_record(record: PersonalRecord) -> str:
    """Short display string for a record."""
    if record.type == RecordType.WEIGHT:
        return f"{record.value:g}kg"
    if record.type == RecordType.REPS:
        return f"{int(record.value)} reps"
    if record.type == RecordType.VOLUME:
        return f"{record.value:.1f}kg"
    return f"{record.value:.1f}kg (est)"


def _session_candidates(
    completed: Sequence[ExerciseSet],
) -> Dict[RecordType, Tuple[float, Tuple[ExerciseSet, ...]]]:
    """
    Session-level value of every record type, with the contributing sets.

    ``completed`` must be non-empty and contain qualifying sets only.
    """
    heaviest = max(completed, key=lambda s: s.weight_kg)
    most_reps = max(completed, key=lambda s: s.reps)
    strongest = max(completed, key=lambda s: calculate_1rm(s.weight_kg, s.reps))

    return {
        RecordType.WEIGHT: (heaviest.weight_kg, (heaviest,)),
        RecordType.REPS: (float(most_reps.reps), (most_reps,)),
        RecordType.VOLUME: (calculate_volume(completed), tuple(completed)),
        RecordType.ONE_REP_MAX: (
            calculate_1rm(strongest.weight_kg, strongest.reps),
            (strongest,),
        ),
    }


def _advance(
    current: Optional[PersonalRecord],
    record_type: RecordType,
    value: float,
    sets: Tuple[ExerciseSet, ...],
    achieved_date: date,
) -> Optional[PersonalRecord]:
    """Return a new record if ``value`` beats ``current``, else None."""
    if current is not None and not value > current.value:
        return None

    return PersonalRecord(
        type=record_type,
        value=value,
        achieved_date=achieved_date,
        previous_value=current.value if current is not None else None,
        contributing_sets=sets,
    )


_TREND_RECORD_TYPE = {
    TrendMetric.WEIGHT: RecordType.WEIGHT,
    TrendMetric.VOLUME: RecordType.VOLUME,
    TrendMetric.ONE_REP_MAX: RecordType.ONE_REP_MAX,
}


class ExerciseRecordAnalyzer:
    """
    Pure personal-record computation over an exercise log.

    No method raises: malformed sessions and sets are excluded, and a
    failure while analyzing one exercise only drops that exercise.

    Usage:
        analyzer = ExerciseRecordAnalyzer()
        records = analyzer.analyze_all(progress.exercise_log)
        direction = analyzer.trend("bench-press", progress.exercise_log, TrendMetric.WEIGHT)
    """

    def __init__(
        self,
        trend_window: Optional[int] = None,
        trend_threshold: Optional[float] = None,
    ):
        self.trend_window = trend_window if trend_window is not None else settings.TREND_WINDOW
        self.trend_threshold = (
            trend_threshold if trend_threshold is not None else settings.TREND_THRESHOLD
        )

    # ========================================
    # Full history
    # ========================================

    def analyze_all(self, log: Any) -> Dict[str, ExercisePRSet]:
        """
        Compute the record set of every exercise in the log.

        Args:
            log: ``{exercise_id: sessions}``; sessions may be models or raw
                mappings, and the whole log may be encoded text

        Returns:
            ``{exercise_id: ExercisePRSet}``
        """
        results: Dict[str, ExercisePRSet] = {}

        for exercise_id, raw_sessions in self._entries(log):
            try:
                results[exercise_id] = self._analyze_exercise(raw_sessions)
            except Exception as e:
                logger.warning(
                    "Exercise analysis failed, skipping exercise",
                    exercise_id=exercise_id,
                    error=str(e),
                )

        logger.debug("Analyzed exercise records", exercises=len(results))
        return results

    def _analyze_exercise(self, raw_sessions: Any) -> ExercisePRSet:
        running: Dict[RecordType, Optional[PersonalRecord]] = {t: None for t in RecordType}
        last_session: Optional[ExerciseSession] = None

        for session in self._sorted_sessions(raw_sessions):
            completed = session.completed_sets()
            if not completed:
                continue

            last_session = session

            for record_type, (value, sets) in _session_candidates(completed).items():
                advanced = _advance(running[record_type], record_type, value, sets, session.date)
                if advanced is not None:
                    running[record_type] = advanced

        return ExercisePRSet(
            max_weight=running[RecordType.WEIGHT],
            max_reps=running[RecordType.REPS],
            max_volume=running[RecordType.VOLUME],
            estimated_1rm=running[RecordType.ONE_REP_MAX],
            last_session=last_session,
        )

    # ========================================
    # Trend
    # ========================================

    def trend(
        self,
        exercise_id: str,
        log: Any,
        metric: Union[TrendMetric, str] = TrendMetric.WEIGHT,
    ) -> TrendDirection:
        """
        Direction of the latest qualifying session against the one before.

        Uses the last ``trend_window`` sessions that have a completed set;
        changes within ±``trend_threshold`` are reported as stable.
        """
        try:
            metric = TrendMetric(metric)
            raw_sessions = dict(self._entries(log)).get(exercise_id)
            qualifying = [
                s for s in self._sorted_sessions(raw_sessions) if s.completed_sets()
            ][-self.trend_window:]

            if len(qualifying) < 2:
                return TrendDirection.STABLE

            record_type = _TREND_RECORD_TYPE[metric]
            previous, latest = (
                _session_candidates(s.completed_sets())[record_type][0]
                for s in qualifying[-2:]
            )
        except Exception as e:
            logger.warning("Trend calculation failed", exercise_id=exercise_id, error=str(e))
            return TrendDirection.STABLE

        if latest > previous * (1 + self.trend_threshold):
            return TrendDirection.UP
        if latest < previous * (1 - self.trend_threshold):
            return TrendDirection.DOWN
        return TrendDirection.STABLE

    # ========================================
    # Incremental detection
    # ========================================

    def detect_new_records(
        self,
        exercise_id: str,
        new_session_sets: Any,
        prior: Union[ExercisePRSet, Mapping[str, ExercisePRSet], None],
        achieved_date: Optional[date] = None,
    ) -> List[PersonalRecord]:
        """
        Records set by a single just-finished session.

        Compares the session against already known records instead of
        replaying the whole log.

        Args:
            exercise_id: Exercise the sets belong to
            new_session_sets: Sets of the finished session (models or raw)
            prior: The exercise's ExercisePRSet, or the full analyze_all output
            achieved_date: Date stamped on new records (defaults to today)

        Returns:
            New records in RecordType order; empty if nothing was beaten
        """
        if isinstance(prior, ExercisePRSet):
            known = prior
        elif isinstance(prior, Mapping):
            known = prior.get(exercise_id)
        else:
            known = None

        completed = [s for s in coerce_sets(new_session_sets) if s.qualifies()]
        if not completed:
            return []

        achieved_date = achieved_date or date.today()
        new_records: List[PersonalRecord] = []

        for record_type, (value, sets) in _session_candidates(completed).items():
            current = known.get(record_type) if known is not None else None
            advanced = _advance(current, record_type, value, sets, achieved_date)
            if advanced is not None:
                new_records.append(advanced)

        if new_records:
            logger.info(
                "New personal records",
                exercise_id=exercise_id,
                types=[r.type.value for r in new_records],
            )

        return new_records

    # ========================================
    # Helpers
    # ========================================

    def _entries(self, log: Any) -> List[Tuple[str, Any]]:
        if not isinstance(log, Mapping):
            log = decode_field(log, {}, expected=(dict,), field_name="exerciseLogs")
        return [(str(exercise_id), sessions) for exercise_id, sessions in log.items()]

    def _sorted_sessions(self, raw_sessions: Any) -> List[ExerciseSession]:
        if not isinstance(raw_sessions, (list, tuple)):
            return []

        sessions = []
        for raw in raw_sessions:
            session = coerce_session(raw)
            if session is None:
                logger.warning("Excluded malformed session")
                continue
            sessions.append(session)

        return sorted(sessions, key=lambda s: s.date)


def new_records_between(
    before: Mapping[str, ExercisePRSet],
    after: Mapping[str, ExercisePRSet],
    exercise_id: str,
) -> List[PersonalRecord]:
    """Records of ``exercise_id`` in ``after`` that changed since ``before``."""
    after_set = after.get(exercise_id)
    if after_set is None:
        return []

    before_set = before.get(exercise_id)
    changed = []
    for record_type in RecordType:
        current = after_set.get(record_type)
        if current is None:
            continue
        previous = before_set.get(record_type) if before_set is not None else None
        if previous is None or current.value != previous.value:
            changed.append(current)
    return changed


def suggest_next_targets(
    exercise_id: str,
    pr_sets: Mapping[str, ExercisePRSet],
) -> List[str]:
    """
    Targets for beating the last session of an exercise.

    Suggests +2.5kg on the best set (rounded to 0.5kg), one more rep while
    below 12, and the last session's volume to beat.
    """
    exercise_prs = pr_sets.get(exercise_id)
    if exercise_prs is None or exercise_prs.last_session is None:
        return ["First time doing this exercise - establish your baseline"]

    last_sets = exercise_prs.last_session.completed_sets()
    top = best_set(last_sets)
    if top is None:
        return ["Beat your previous attempt - focus on completing all sets"]

    suggested_weight = round((top.weight_kg + 2.5) * 2) / 2
    current_weight = round(top.weight_kg * 2) / 2
    suggestions = [f"Try {suggested_weight:g}kg (was {current_weight:g}kg)"]

    if top.reps < 12:
        suggestions.append(f"Try {top.reps + 1} reps (was {top.reps})")

    suggestions.append(f"Beat {round(calculate_volume(last_sets))}kg total volume")
    return suggestions
