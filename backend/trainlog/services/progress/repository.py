"""
Progress Repository - Contract of the persistence collaborator.

Storage is owned by the embedding application. Documents may be returned
as mappings or as encoded text; normalization happens in the analytics
adapter, not here.
"""
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional


class ProgressRepository(ABC):
    """Abstract interface for per-user progress storage."""
    
    @abstractmethod
    async def get_progress(self, user_id: str) -> Optional[Any]:
        """
        Get the user's progress record.
        
        The record embeds the exercise log (``exerciseLogs``), the
        completed-workout list (``completedWorkouts``) and the training
        schedule (``trainingSchedule``).
        
        Returns:
            Raw document or None if the user has none yet
        """
        pass
    
    @abstractmethod
    async def get_program(self, user_id: str) -> Optional[Any]:
        """Get the user's generated-program document."""
        pass
    
    @abstractmethod
    async def append_completed_workout(
        self,
        user_id: str,
        workout: Dict[str, Any],
        exercise_sessions: Dict[str, Dict[str, Any]],
    ) -> None:
        """
        Append a finished workout.
        
        Args:
            user_id: Owner of the progress record
            workout: Completed-workout entry (``date``, ``workoutName``, stats)
            exercise_sessions: Session per exercise id to append to the log
        """
        pass
