"""
Structured logging configuration.
Designed for easy debugging without exposing user documents.
"""
import logging
import sys
import time
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Generator, Optional

import structlog
from structlog.types import Processor

from trainlog.core.config import settings


def setup_logging() -> None:
    """Configure structured logging for the application."""
    
    # Common processors
    shared_processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]
    
    if settings.LOG_FORMAT == "json":
        # JSON format for production
        renderer = structlog.processors.JSONRenderer()
    else:
        # Console format for development
        renderer = structlog.dev.ConsoleRenderer(colors=True)
    
    structlog.configure(
        processors=shared_processors + [
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )
    
    # Configure root logger
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processor=renderer,
            foreign_pre_chain=shared_processors,
        )
    )
    
    root_logger = logging.getLogger()
    root_logger.addHandler(handler)
    root_logger.setLevel(getattr(logging, settings.LOG_LEVEL.upper()))
    
    # Reduce noise from third-party libraries
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Get a structured logger instance."""
    return structlog.get_logger(name)


# ========================================
# Operation tracking
# ========================================

@dataclass
class OperationLog:
    """Timing and outcome of a single tracked operation."""
    operation: str
    key: str
    start_time: float = 0.0
    end_time: float = 0.0
    duration_ms: float = 0.0
    success: bool = True
    error_type: Optional[str] = None
    error_message: Optional[str] = None


class OperationTracker:
    """Tracker for a single operation (e.g. one document fetch)."""
    
    def __init__(self, logger: structlog.stdlib.BoundLogger, operation: str, key: str):
        self.logger = logger
        self.log = OperationLog(operation=operation, key=key)
    
    def start(self) -> None:
        """Mark the start of the operation."""
        self.log.start_time = time.time()
        self.logger.debug(
            "Operation started",
            operation=self.log.operation,
            key=self.log.key,
        )
    
    def set_error(self, error_type: str, error_message: str) -> None:
        """Set error information."""
        self.log.success = False
        self.log.error_type = error_type
        self.log.error_message = error_message
    
    def finish(self) -> None:
        """Mark the end of the operation and log summary."""
        self.log.end_time = time.time()
        self.log.duration_ms = (self.log.end_time - self.log.start_time) * 1000
        
        if self.log.success:
            self.logger.info(
                "Operation completed",
                operation=self.log.operation,
                key=self.log.key,
                duration_ms=round(self.log.duration_ms, 2),
            )
        else:
            self.logger.warning(
                "Operation failed",
                operation=self.log.operation,
                key=self.log.key,
                duration_ms=round(self.log.duration_ms, 2),
                error_type=self.log.error_type,
                error_message=self.log.error_message,
            )


@contextmanager
def track_operation(
    logger: structlog.stdlib.BoundLogger,
    operation: str,
    key: str,
) -> Generator[OperationTracker, None, None]:
    """
    Context manager for timing an operation.
    
    Usage:
        with track_operation(logger, "fetch", "progress:u1") as op:
            value = await fetcher()
    
    Exceptions, cancellation included, are recorded on the tracker and re-raised.
    """
    tracker = OperationTracker(logger, operation, key)
    tracker.start()
    try:
        yield tracker
    except BaseException as e:
        tracker.set_error(type(e).__name__, str(e))
        raise
    finally:
        tracker.finish()
