"""
Progress API endpoints.
"""
from datetime import date
from typing import Any, Optional

from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import BaseModel, Field

from trainlog.core.logging import get_logger
from trainlog.models.progress import TrendMetric
from trainlog.services.analytics.records import format_record
from trainlog.services.progress import ProgressService, ProgressUnavailableError

logger = get_logger(__name__)
router = APIRouter()


# ========================================
# Request/Response Schemas
# ========================================

class CompleteWorkoutRequest(BaseModel):
    """Request to record a finished workout."""
    workoutName: str = Field(..., min_length=1, description="Name of the finished workout")
    exercises: dict[str, list[dict[str, Any]]] = Field(
        default_factory=dict, description="Sets performed, per exercise id"
    )
    stats: dict[str, Any] = Field(default_factory=dict, description="Extra workout stats")
    workoutDate: Optional[date] = Field(None, description="Workout day, defaults to today")


class TrendResponse(BaseModel):
    exerciseId: str
    metric: TrendMetric
    trend: str


class StreakResponse(BaseModel):
    streak: int


class StatsResponse(BaseModel):
    streak: int
    totalCompleted: int
    thisMonthCount: int
    weeklyAverage: float


class RefreshResponse(BaseModel):
    """Outcome per document of a refresh."""
    program: str
    progress: str
    errors: dict[str, str] = Field(default_factory=dict)


# ========================================
# Dependencies
# ========================================

def get_progress_service(request: Request) -> ProgressService:
    """Progress service configured on the application."""
    service = getattr(request.app.state, "progress_service", None)
    if service is None:
        raise HTTPException(status_code=503, detail="Progress repository not configured")
    return service


def _unavailable(e: ProgressUnavailableError) -> HTTPException:
    logger.warning("Progress document unavailable", key=e.key, error=str(e.cause))
    return HTTPException(status_code=503, detail="Progress data temporarily unavailable")


# ========================================
# API Endpoints
# ========================================

@router.get("/{user_id}/records")
async def get_records(
    user_id: str,
    service: ProgressService = Depends(get_progress_service),
):
    """
    Get personal records for every exercise.
    """
    try:
        records = await service.personal_records(user_id)
    except ProgressUnavailableError as e:
        raise _unavailable(e)

    return {
        exercise_id: {
            **pr_set.to_dict(),
            "display": {r.type.value: format_record(r) for r in pr_set.records()},
        }
        for exercise_id, pr_set in records.items()
    }


@router.get("/{user_id}/records/{exercise_id}/trend", response_model=TrendResponse)
async def get_trend(
    user_id: str,
    exercise_id: str,
    metric: TrendMetric = TrendMetric.WEIGHT,
    service: ProgressService = Depends(get_progress_service),
):
    """
    Get the recent trend of one exercise metric.
    """
    try:
        direction = await service.trend(user_id, exercise_id, metric)
    except ProgressUnavailableError as e:
        raise _unavailable(e)

    return TrendResponse(exerciseId=exercise_id, metric=metric, trend=direction.value)


@router.get("/{user_id}/records/{exercise_id}/suggestions")
async def get_suggestions(
    user_id: str,
    exercise_id: str,
    service: ProgressService = Depends(get_progress_service),
):
    """
    Get targets for beating the last session of an exercise.
    """
    try:
        suggestions = await service.suggestions(user_id, exercise_id)
    except ProgressUnavailableError as e:
        raise _unavailable(e)

    return {"exerciseId": exercise_id, "suggestions": suggestions}


@router.get("/{user_id}/streak", response_model=StreakResponse)
async def get_streak(
    user_id: str,
    service: ProgressService = Depends(get_progress_service),
):
    """
    Get the current adherence streak.
    """
    try:
        streak = await service.streak(user_id)
    except ProgressUnavailableError as e:
        raise _unavailable(e)

    return StreakResponse(streak=streak)


@router.get("/{user_id}/stats", response_model=StatsResponse)
async def get_stats(
    user_id: str,
    service: ProgressService = Depends(get_progress_service),
):
    """
    Get streak and completion statistics.
    """
    try:
        streak = await service.streak(user_id)
        stats = await service.completion_stats(user_id)
    except ProgressUnavailableError as e:
        raise _unavailable(e)

    return StatsResponse(streak=streak, **stats.to_dict())


@router.post("/{user_id}/workouts")
async def complete_workout(
    user_id: str,
    request: CompleteWorkoutRequest,
    service: ProgressService = Depends(get_progress_service),
):
    """
    Record a finished workout and return the personal records it set.
    """
    logger.info("Completing workout", user_id=user_id, exercises=len(request.exercises))

    try:
        new_records = await service.complete_workout(
            user_id,
            request.workoutName,
            request.exercises,
            stats=request.stats,
            workout_date=request.workoutDate,
        )
    except ProgressUnavailableError as e:
        raise _unavailable(e)

    return {
        "newRecords": {
            exercise_id: [r.to_dict() for r in records]
            for exercise_id, records in new_records.items()
        }
    }


@router.post("/{user_id}/refresh", response_model=RefreshResponse)
async def refresh(
    user_id: str,
    force: bool = False,
    service: ProgressService = Depends(get_progress_service),
):
    """
    Refresh the program and progress documents, waiting for both.
    """
    results = await service.load(user_id, force=force)

    return RefreshResponse(
        program=results["program"].status.value,
        progress=results["progress"].status.value,
        errors={
            name: str(result.error)
            for name, result in results.items()
            if result.error is not None
        },
    )
