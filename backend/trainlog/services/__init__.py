"""
Services module - Progress analytics and document caching.

Modules:
- analytics: Personal records, trends and adherence streaks
- cache: Single-flight in-memory document cache
- progress: Repository contract and the service tying both together
"""
from trainlog.services.analytics import ExerciseRecordAnalyzer, StreakCalculator
from trainlog.services.cache import ProgressCacheCoordinator, get_cache_coordinator
from trainlog.services.progress import ProgressRepository, ProgressService

__all__ = [
    "ExerciseRecordAnalyzer",
    "StreakCalculator",
    "ProgressCacheCoordinator",
    "get_cache_coordinator",
    "ProgressRepository",
    "ProgressService",
]
