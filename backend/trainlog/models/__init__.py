from trainlog.models.progress import (
    CacheEntry,
    CacheState,
    CompletedWorkout,
    CompletionStats,
    ExerciseLog,
    ExercisePRSet,
    ExerciseSession,
    ExerciseSet,
    FetchResult,
    FetchStatus,
    PersonalRecord,
    ProgressRecord,
    RecordType,
    TrendDirection,
    TrendMetric,
)

__all__ = [
    "CacheEntry",
    "CacheState",
    "CompletedWorkout",
    "CompletionStats",
    "ExerciseLog",
    "ExercisePRSet",
    "ExerciseSession",
    "ExerciseSet",
    "FetchResult",
    "FetchStatus",
    "PersonalRecord",
    "ProgressRecord",
    "RecordType",
    "TrendDirection",
    "TrendMetric",
]
