"""
Progress Service - Cached progress documents and their derived statistics.

Orchestrates:
- Cache-first loading of the program and progress documents
- Normalization of raw documents (once per fetch)
- Personal records, trends, streak and completion stats on demand
- Recording a finished workout and flagging the records it set
"""
from datetime import date
from typing import Any, Dict, List, Mapping, Optional, Sequence, Union

from trainlog.core.logging import get_logger
from trainlog.models.progress import (
    CompletedWorkout,
    CompletionStats,
    ExercisePRSet,
    FetchResult,
    FetchStatus,
    PersonalRecord,
    ProgressRecord,
    TrendDirection,
    TrendMetric,
)
from trainlog.services.analytics.adapter import (
    coerce_sets,
    normalize_program,
    normalize_progress_record,
)
from trainlog.services.analytics.records import (
    ExerciseRecordAnalyzer,
    suggest_next_targets,
)
from trainlog.services.analytics.streak import StreakCalculator, completion_stats
from trainlog.services.cache.coordinator import (
    ProgressCacheCoordinator,
    get_cache_coordinator,
)
from trainlog.services.progress.repository import ProgressRepository

logger = get_logger(__name__)


class ProgressUnavailableError(Exception):
    """Raised when a document could not be fetched and nothing is cached."""

    def __init__(self, key: str, cause: Optional[BaseException] = None):
        super().__init__(f"Document unavailable: {key}")
        self.key = key
        self.cause = cause


class ProgressService:
    """
    Per-user progress facade over a repository.

    Usage:
        service = ProgressService(repository)
        await service.load(user_id)
        records = await service.personal_records(user_id)
        streak = await service.streak(user_id)
    """

    def __init__(
        self,
        repository: ProgressRepository,
        cache: Optional[ProgressCacheCoordinator] = None,
        analyzer: Optional[ExerciseRecordAnalyzer] = None,
        streak_calculator: Optional[StreakCalculator] = None,
    ):
        self.repository = repository
        self.cache = cache or get_cache_coordinator()
        self.analyzer = analyzer or ExerciseRecordAnalyzer()
        self.streak_calculator = streak_calculator or StreakCalculator()

    # ========================================
    # Keys and fetchers
    # ========================================

    @staticmethod
    def program_key(user_id: str) -> str:
        return f"program:{user_id}"

    @staticmethod
    def progress_key(user_id: str) -> str:
        return f"progress:{user_id}"

    def _progress_fetcher(self, user_id: str):
        async def fetch() -> ProgressRecord:
            raw = await self.repository.get_progress(user_id)
            return normalize_progress_record(raw, user_id=user_id)
        return fetch

    def _program_fetcher(self, user_id: str):
        async def fetch() -> Dict[str, Any]:
            raw = await self.repository.get_program(user_id)
            return normalize_program(raw)
        return fetch

    # ========================================
    # Loading
    # ========================================

    async def load(self, user_id: str, force: bool = False) -> Dict[str, FetchResult]:
        """
        Refresh both documents independently and wait for both.

        Returns:
            ``{"program": FetchResult, "progress": FetchResult}``
        """
        results = await self.cache.refresh_all(
            {
                self.program_key(user_id): self._program_fetcher(user_id),
                self.progress_key(user_id): self._progress_fetcher(user_id),
            },
            force=force,
        )
        return {
            "program": results[self.program_key(user_id)],
            "progress": results[self.progress_key(user_id)],
        }

    async def on_focus(self, user_id: str) -> FetchResult:
        """Revalidate the progress document when a consumer regains focus."""
        return await self.cache.on_focus(
            self.progress_key(user_id), self._progress_fetcher(user_id)
        )

    async def get_progress(self, user_id: str) -> ProgressRecord:
        """
        Progress record, served from cache when possible.

        A failed revalidation falls back to the last known record.

        Raises:
            ProgressUnavailableError: If the fetch failed and nothing is cached
        """
        return await self._cached(self.progress_key(user_id), self._progress_fetcher(user_id))

    async def get_program(self, user_id: str) -> Dict[str, Any]:
        """Generated program, served from cache when possible."""
        return await self._cached(self.program_key(user_id), self._program_fetcher(user_id))

    async def _cached(self, key: str, fetcher) -> Any:
        result = await self.cache.ensure_fresh(key, fetcher)

        value = self.cache.read(key)
        if value is None and result.status is FetchStatus.SKIPPED_IN_FLIGHT:
            # Cold key fetched by another caller: its outcome is ours
            settled = await self.cache.wait_settled(key)
            if settled is not None:
                result = settled
            value = self.cache.read(key)

        if value is None:
            raise ProgressUnavailableError(key, result.error)
        return value

    async def _current_progress(self, user_id: str) -> ProgressRecord:
        """Progress record that reflects every mutation made so far."""
        key = self.progress_key(user_id)
        # A fetch in flight across an invalidation may return pre-mutation data
        while self.cache.is_invalidated(key) and self.cache.is_in_flight(key):
            await self.cache.wait_settled(key)
        return await self.get_progress(user_id)

    # ========================================
    # Derived statistics
    # ========================================

    async def personal_records(self, user_id: str) -> Dict[str, ExercisePRSet]:
        progress = await self.get_progress(user_id)
        return self.analyzer.analyze_all(progress.exercise_log)

    async def trend(
        self,
        user_id: str,
        exercise_id: str,
        metric: Union[TrendMetric, str] = TrendMetric.WEIGHT,
    ) -> TrendDirection:
        progress = await self.get_progress(user_id)
        return self.analyzer.trend(exercise_id, progress.exercise_log, metric)

    async def streak(self, user_id: str, today: Optional[date] = None) -> int:
        progress = await self.get_progress(user_id)
        return self.streak_calculator.streak(
            progress.completed_workouts, progress.training_schedule, today=today
        )

    async def completion_stats(
        self,
        user_id: str,
        today: Optional[date] = None,
    ) -> CompletionStats:
        progress = await self.get_progress(user_id)
        return completion_stats(progress.completed_workouts, today=today)

    async def suggestions(self, user_id: str, exercise_id: str) -> List[str]:
        return suggest_next_targets(exercise_id, await self.personal_records(user_id))

    # ========================================
    # Mutations
    # ========================================

    async def complete_workout(
        self,
        user_id: str,
        workout_name: str,
        exercise_sets: Mapping[str, Sequence[Any]],
        stats: Optional[Dict[str, Any]] = None,
        workout_date: Optional[date] = None,
    ) -> Dict[str, List[PersonalRecord]]:
        """
        Record a finished workout and report the personal records it set.

        Records are detected against the cached history before the
        workout is appended. The progress document is then invalidated and
        revalidated. A fetch already in flight may predate the append; its
        value is stored stale, so the next read still refetches.

        Args:
            user_id: Owner
            workout_name: Name of the finished workout
            exercise_sets: Sets performed, per exercise id
            stats: Extra stats stored on the completed-workout entry
            workout_date: Day of the workout (defaults to today)

        Returns:
            ``{exercise_id: [PersonalRecord, ...]}`` for exercises with new records
        """
        workout_date = workout_date or date.today()
        progress = await self._current_progress(user_id)
        prior = self.analyzer.analyze_all(progress.exercise_log)

        new_records: Dict[str, List[PersonalRecord]] = {}
        sessions: Dict[str, Dict[str, Any]] = {}
        for exercise_id, raw_sets in exercise_sets.items():
            sets = coerce_sets(list(raw_sets))
            sessions[exercise_id] = {
                "date": workout_date.isoformat(),
                "sets": [s.to_dict() for s in sets],
            }
            detected = self.analyzer.detect_new_records(exercise_id, sets, prior, workout_date)
            if detected:
                new_records[exercise_id] = detected

        workout = CompletedWorkout(
            date=workout_date,
            workout_name=workout_name,
            stats=dict(stats or {}),
        )
        await self.repository.append_completed_workout(user_id, workout.to_dict(), sessions)

        logger.info(
            "Workout completed",
            user_id=user_id,
            exercises=len(sessions),
            record_exercises=len(new_records),
        )

        key = self.progress_key(user_id)
        self.cache.invalidate(key)
        await self.cache.ensure_fresh(key, self._progress_fetcher(user_id))

        return new_records
