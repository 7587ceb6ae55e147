"""
Shared fixtures: an in-memory repository and a controllable clock.
"""
import asyncio
import json
from typing import Any, Dict, List, Optional

import pytest

from trainlog.services.cache import ProgressCacheCoordinator
from trainlog.services.progress import ProgressRepository


class FakeClock:
    """Monotonic clock advanced by hand."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class InMemoryRepository(ProgressRepository):
    """
    Repository keeping documents the way a text column would: encoded JSON.
    """

    def __init__(self):
        self.progress: Dict[str, str] = {}
        self.programs: Dict[str, Any] = {}
        self.progress_calls = 0
        self.program_calls = 0
        self.fail_progress: Optional[Exception] = None
        # When set, progress reads block until the event is set
        self.progress_gate: Optional[asyncio.Event] = None

    def set_progress(self, user_id: str, document: Dict[str, Any]) -> None:
        self.progress[user_id] = json.dumps(document)

    async def get_progress(self, user_id: str) -> Optional[Any]:
        self.progress_calls += 1
        document = self.progress.get(user_id)
        if self.progress_gate is not None:
            await self.progress_gate.wait()
        if self.fail_progress is not None:
            raise self.fail_progress
        return document

    async def get_program(self, user_id: str) -> Optional[Any]:
        self.program_calls += 1
        return self.programs.get(user_id)

    async def append_completed_workout(
        self,
        user_id: str,
        workout: Dict[str, Any],
        exercise_sessions: Dict[str, Dict[str, Any]],
    ) -> None:
        document = json.loads(self.progress.get(user_id, "{}"))
        document.setdefault("completedWorkouts", []).append(workout)
        logs = document.setdefault("exerciseLogs", {})
        for exercise_id, session in exercise_sessions.items():
            logs.setdefault(exercise_id, []).append(session)
        self.progress[user_id] = json.dumps(document)


def raw_set(weight: float, reps: int, completed: bool = True) -> Dict[str, Any]:
    return {"weightKg": weight, "reps": reps, "isCompleted": completed}


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def cache(clock: FakeClock) -> ProgressCacheCoordinator:
    return ProgressCacheCoordinator(
        ttl_policy={"program": 60.0, "progress": 60.0},
        quick_reentry_window_seconds=3.0,
        deferred_revalidate_delay_seconds=0.3,
        clock=clock,
    )


@pytest.fixture
def repository() -> InMemoryRepository:
    return InMemoryRepository()


@pytest.fixture
def bench_history() -> List[Dict[str, Any]]:
    """Raw bench press sessions, deliberately out of date order."""
    return [
        {"date": "2024-01-08", "sets": [raw_set(100, 5), raw_set(100, 3), raw_set(50, 10, False)]},
        {"date": "2024-01-01", "sets": [raw_set(90, 5), raw_set(90, 5)]},
    ]
