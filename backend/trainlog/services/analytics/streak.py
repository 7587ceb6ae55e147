"""
Streak Calculator - Adherence streak over a weekly training schedule.

Walks backwards day by day from the anchor day:
- Rest days (not in the schedule) neither break nor extend the streak
- A scheduled day with a workout extends it
- The first scheduled day without a workout ends it
"""
from datetime import date, timedelta
from typing import Any, Dict, Iterable, List, Optional, Set

from trainlog.core.config import settings
from trainlog.core.logging import get_logger
from trainlog.models.progress import CompletedWorkout, CompletionStats
from trainlog.services.analytics.adapter import (
    decode_field,
    normalize_schedule,
    parse_date,
    to_calendar_day,
)

logger = get_logger(__name__)

# Python weekday numbering, Monday = 0
WEEKDAY_INDEX = {
    "monday": 0,
    "tuesday": 1,
    "wednesday": 2,
    "thursday": 3,
    "friday": 4,
    "saturday": 5,
    "sunday": 6,
}


def _valid_entries(completed_workouts: Any) -> List[Dict[str, Any]]:
    """Entries carrying both a date and a workout name."""
    decoded = decode_field(completed_workouts, [], expected=(list, tuple), field_name="completedWorkouts")
    entries = [w.to_dict() if isinstance(w, CompletedWorkout) else w for w in decoded]
    return [
        w for w in entries
        if isinstance(w, dict) and w.get("date") and w.get("workoutName")
    ]


def scheduled_weekdays(training_schedule: Iterable[str]) -> Set[int]:
    """Weekday indices of the schedule; unknown names are dropped."""
    indices = set()
    for day in training_schedule:
        index = WEEKDAY_INDEX.get(day.strip().lower())
        if index is not None:
            indices.add(index)
    return indices


class StreakCalculator:
    """
    Computes the current adherence streak.

    The streak is a display statistic: any failure yields 0 instead of
    an exception.
    """

    def __init__(self, lookback_days: Optional[int] = None):
        self.lookback_days = (
            lookback_days if lookback_days is not None else settings.STREAK_LOOKBACK_DAYS
        )

    def streak(
        self,
        completed_workouts: Any,
        training_schedule: Any,
        today: Optional[date] = None,
    ) -> int:
        """
        Count consecutive scheduled days with a workout.

        Args:
            completed_workouts: Completed-workout entries (``date`` and
                ``workoutName`` required; may be encoded text)
            training_schedule: Weekday names (may be encoded text)
            today: Reference day, defaults to the local date

        Returns:
            Non-negative streak length
        """
        schedule = normalize_schedule(training_schedule)
        if not schedule:
            return 0

        try:
            workout_days = {
                to_calendar_day(w["date"]) for w in _valid_entries(completed_workouts)
            }

            weekdays = scheduled_weekdays(schedule)
            if not weekdays:
                logger.debug("No recognized weekdays in schedule", schedule=schedule)
                return 0

            today = to_calendar_day(today) if today is not None else date.today()
            # A workout logged "ahead" of the local clock still anchors the walk
            current = max([today, *workout_days])

            streak = 0
            for _ in range(self.lookback_days):
                if current.weekday() in weekdays:
                    if current not in workout_days:
                        break
                    streak += 1
                current -= timedelta(days=1)

            return streak
        except Exception as e:
            logger.error("Error calculating workout streak", error=str(e))
            return 0


def completion_stats(
    completed_workouts: Any,
    today: Optional[date] = None,
) -> CompletionStats:
    """
    Summary counts over completed workouts.

    ``this_month_count`` and ``weekly_average`` count distinct workout
    days; the weekly average covers the last 28 days. Entries with an
    unreadable date are skipped.
    """
    today = to_calendar_day(today) if today is not None else date.today()
    entries = _valid_entries(completed_workouts)

    days = {d for d in (parse_date(w["date"]) for w in entries) if d is not None}

    this_month = sum(1 for d in days if d.year == today.year and d.month == today.month)
    four_weeks_ago = today - timedelta(days=28)
    recent = sum(1 for d in days if d >= four_weeks_ago)

    return CompletionStats(
        total_completed=len(entries),
        this_month_count=this_month,
        weekly_average=round(recent / 4, 1),
    )
