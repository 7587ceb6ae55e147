"""
Progress domain models.

Plain, immutable data handed between the analyzers, the document cache
and API consumers. Nothing here is persisted by this package.
"""
from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Tuple


class RecordType(str, Enum):
    """Metrics tracked as personal records."""
    WEIGHT = "weight"
    REPS = "reps"
    VOLUME = "volume"
    ONE_REP_MAX = "1rm"


class TrendMetric(str, Enum):
    """Metrics supported by trend detection."""
    WEIGHT = "weight"
    VOLUME = "volume"
    ONE_REP_MAX = "1rm"


class TrendDirection(str, Enum):
    UP = "up"
    DOWN = "down"
    STABLE = "stable"


@dataclass(frozen=True)
class ExerciseSet:
    """Single logged set."""
    weight_kg: float
    reps: int
    is_completed: bool

    def qualifies(self) -> bool:
        """Only completed sets with load and reps count towards records."""
        return self.is_completed and self.weight_kg > 0 and self.reps > 0

    def to_dict(self) -> dict:
        return {
            "weightKg": self.weight_kg,
            "reps": self.reps,
            "isCompleted": self.is_completed,
        }


@dataclass(frozen=True)
class ExerciseSession:
    """All sets of one exercise performed on one day."""
    date: date
    sets: Tuple[ExerciseSet, ...] = ()

    def completed_sets(self) -> List[ExerciseSet]:
        return [s for s in self.sets if s.qualifies()]

    def to_dict(self) -> dict:
        return {
            "date": self.date.isoformat(),
            "sets": [s.to_dict() for s in self.sets],
        }


# exercise id -> sessions, in storage order
ExerciseLog = Mapping[str, List[ExerciseSession]]


@dataclass(frozen=True)
class PersonalRecord:
    """Best-ever value of one metric, with the sets that produced it."""
    type: RecordType
    value: float
    achieved_date: date
    previous_value: Optional[float] = None
    contributing_sets: Tuple[ExerciseSet, ...] = ()

    def to_dict(self) -> dict:
        """Convert to dictionary for API response."""
        return {
            "type": self.type.value,
            "value": self.value,
            "achievedDate": self.achieved_date.isoformat(),
            "previousValue": self.previous_value,
            "sets": [s.to_dict() for s in self.contributing_sets],
        }


@dataclass(frozen=True)
class ExercisePRSet:
    """Current records for a single exercise."""
    max_weight: Optional[PersonalRecord] = None
    max_reps: Optional[PersonalRecord] = None
    max_volume: Optional[PersonalRecord] = None
    estimated_1rm: Optional[PersonalRecord] = None
    last_session: Optional[ExerciseSession] = None

    def get(self, record_type: RecordType) -> Optional[PersonalRecord]:
        return {
            RecordType.WEIGHT: self.max_weight,
            RecordType.REPS: self.max_reps,
            RecordType.VOLUME: self.max_volume,
            RecordType.ONE_REP_MAX: self.estimated_1rm,
        }[record_type]

    def records(self) -> List[PersonalRecord]:
        """Records that exist, in RecordType order."""
        return [r for r in (self.get(t) for t in RecordType) if r is not None]

    def to_dict(self) -> dict:
        """Convert to dictionary for API response."""
        return {
            "maxWeight": self.max_weight.to_dict() if self.max_weight else None,
            "maxReps": self.max_reps.to_dict() if self.max_reps else None,
            "maxVolume": self.max_volume.to_dict() if self.max_volume else None,
            "estimated1RM": self.estimated_1rm.to_dict() if self.estimated_1rm else None,
            "lastSession": self.last_session.to_dict() if self.last_session else None,
        }


@dataclass(frozen=True)
class CompletedWorkout:
    """A finished workout as appended to the progress record."""
    date: date
    workout_name: str
    stats: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            **self.stats,
            "date": self.date.isoformat(),
            "workoutName": self.workout_name,
        }


@dataclass(frozen=True)
class ProgressRecord:
    """Normalized per-user progress document."""
    user_id: Optional[str] = None
    exercise_log: Dict[str, List[ExerciseSession]] = field(default_factory=dict)
    completed_workouts: List[Dict[str, Any]] = field(default_factory=list)
    training_schedule: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class CompletionStats:
    total_completed: int = 0
    this_month_count: int = 0
    weekly_average: float = 0.0

    def to_dict(self) -> dict:
        return {
            "totalCompleted": self.total_completed,
            "thisMonthCount": self.this_month_count,
            "weeklyAverage": self.weekly_average,
        }


# ========================================
# Cache types
# ========================================

class CacheState(str, Enum):
    """Lifecycle of one cached document."""
    EMPTY = "empty"
    LOADING = "loading"
    FRESH = "fresh"
    STALE = "stale"
    REVALIDATING = "revalidating"


class FetchStatus(str, Enum):
    UPDATED = "updated"
    SKIPPED_FRESH = "skipped_fresh"
    SKIPPED_IN_FLIGHT = "skipped_in_flight"
    FAILED = "failed"


@dataclass
class CacheEntry:
    """
    Cached document.

    ``value`` is None only until the first successful fetch; going stale
    never clears it.
    """
    ttl_seconds: float
    value: Any = None
    last_updated_at: Optional[float] = None
    invalidated: bool = False
    # Bumped by every invalidation
    generation: int = 0

    def has_value(self) -> bool:
        return self.last_updated_at is not None

    def is_fresh(self, now: float) -> bool:
        if self.last_updated_at is None or self.invalidated:
            return False
        return now - self.last_updated_at < self.ttl_seconds


@dataclass(frozen=True)
class FetchResult:
    """Outcome of a cache fetch attempt. Failures are returned, not raised."""
    key: str
    status: FetchStatus
    value: Any = None
    error: Optional[BaseException] = None

    @property
    def ok(self) -> bool:
        return self.status != FetchStatus.FAILED
