"""
Progress module - Per-user progress documents behind the cache.

This module provides:
- The repository contract implemented by the host application
- ProgressService combining the cache with the analyzers
"""
from trainlog.services.progress.repository import ProgressRepository
from trainlog.services.progress.service import ProgressService, ProgressUnavailableError

__all__ = [
    "ProgressRepository",
    "ProgressService",
    "ProgressUnavailableError",
]
