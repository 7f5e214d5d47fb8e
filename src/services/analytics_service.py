"""
Query analytics.

Logging is best-effort: a failing or slow analytics write must never change
or delay the answer returned to the user.
"""

from __future__ import annotations

from concurrent.futures import Executor
from typing import Optional, Protocol

from models.match import MatchResult
from utils.logging_config import get_logger

logger = get_logger(__name__)


class QueryLogger(Protocol):
    def log(self, message: str, result: MatchResult, user_id: str, response_time_ms: int = 0) -> None:
        ...


class AnalyticsService:
    """Wraps a QueryLogger; swallows and records its failures."""

    def __init__(self, query_logger: Optional[QueryLogger] = None, executor: Optional[Executor] = None):
        self.query_logger = query_logger
        self.executor = executor

    def record(self, message: str, result: MatchResult, user_id: str, response_time_ms: int = 0) -> None:
        if self.query_logger is None:
            return
        if self.executor is not None:
            try:
                self.executor.submit(self._write, message, result, user_id, response_time_ms)
            except RuntimeError as exc:
                logger.warning("Analytics dispatch failed", extra={"error": str(exc)})
            return
        self._write(message, result, user_id, response_time_ms)

    def _write(self, message: str, result: MatchResult, user_id: str, response_time_ms: int) -> None:
        try:
            self.query_logger.log(message, result, user_id, response_time_ms=response_time_ms)
        except Exception as exc:
            logger.warning(
                "Query analytics write failed",
                extra={"error": str(exc), "match_type": result.match_type.value},
            )
