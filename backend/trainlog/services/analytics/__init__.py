"""
Analytics module - Derived progress statistics.

This module provides:
- Document adapters for decoding raw progress documents
- Personal-record and trend analysis
- Adherence streak and completion statistics
"""
from trainlog.services.analytics.adapter import (
    decode_field,
    normalize_exercise_log,
    normalize_program,
    normalize_progress_record,
    parse_date,
    to_calendar_day,
)
from trainlog.services.analytics.records import (
    ExerciseRecordAnalyzer,
    best_set,
    calculate_1rm,
    calculate_volume,
    format_record,
    new_records_between,
    suggest_next_targets,
)
from trainlog.services.analytics.streak import StreakCalculator, completion_stats

__all__ = [
    # Adapters
    "decode_field",
    "normalize_exercise_log",
    "normalize_program",
    "normalize_progress_record",
    "parse_date",
    "to_calendar_day",
    # Records
    "ExerciseRecordAnalyzer",
    "best_set",
    "calculate_1rm",
    "calculate_volume",
    "format_record",
    "new_records_between",
    "suggest_next_targets",
    # Streak
    "StreakCalculator",
    "completion_stats",
]
