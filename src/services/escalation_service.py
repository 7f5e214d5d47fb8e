"""
Escalation controller: exact -> lexical -> semantic.

Cheaper, more precise stages run first. The first stage that finds a match
ends the query; later stages never run. A failing stage is recorded as an
error and the next stage is tried.

Stages run on the calling thread. Strategies check the per-stage deadline armed
on the QueryContext, and store clients carry their own socket and statement
timeouts. A result that arrives after the budget is spent counts as an error.
"""

from __future__ import annotations

import time
from typing import List, Optional, Sequence

from models.match import EscalationOutcome, MatchResult, MatchType, Stage, StageTrace
from services.match_strategies import MatchStrategy
from services.query_context import QueryContext
from utils.logging_config import get_logger

logger = get_logger(__name__)


class EscalationController:
    """Run strategies in order, short-circuiting on the first found result."""

    def __init__(self, strategies: Sequence[MatchStrategy], stage_timeout_seconds: float = 0):
        self.strategies: List[MatchStrategy] = list(strategies)
        self.stage_timeout_seconds = stage_timeout_seconds

    def run(self, query: str, context: QueryContext) -> EscalationOutcome:
        traces: List[StageTrace] = []
        best: Optional[MatchResult] = None
        best_stage: Optional[Stage] = None

        for strategy in self.strategies:
            if strategy.stage is Stage.SEMANTIC and context.embedder is None:
                continue

            start = time.perf_counter()
            result = self._run_stage(strategy, query, context)
            latency_ms = int((time.perf_counter() - start) * 1000)

            traces.append(
                StageTrace(
                    stage=strategy.stage,
                    match_type=result.match_type,
                    similarity=result.similarity,
                    confidence=result.confidence,
                    latency_ms=latency_ms,
                )
            )
            logger.info(
                "Match stage finished",
                extra={
                    "stage": strategy.stage.value,
                    "found": result.found,
                    "match_type": result.match_type.value,
                    "similarity": round(result.similarity, 3),
                    "confidence": round(result.confidence, 3),
                    "duration_ms": latency_ms,
                    "correlation_id": context.correlation_id,
                },
            )

            if result.found:
                return EscalationOutcome(result=result, stages=traces, best_stage=strategy.stage)
            if result.outranks(best):
                best, best_stage = result, strategy.stage

        terminal = MatchResult.not_found(
            MatchType.NONE,
            similarity=best.similarity if best else 0.0,
            confidence=best.confidence if best else 0.0,
        )
        return EscalationOutcome(result=terminal, stages=traces, best_stage=best_stage)

    def _run_stage(
        self, strategy: MatchStrategy, query: str, context: QueryContext
    ) -> MatchResult:
        context.arm_deadline(self.stage_timeout_seconds)
        try:
            result = strategy.match(query, context)
            if context.expired:
                logger.warning(
                    "Match stage timed out",
                    extra={
                        "stage": strategy.stage.value,
                        "timeout_seconds": self.stage_timeout_seconds,
                        "correlation_id": context.correlation_id,
                    },
                )
                return MatchResult.error()
            return result
        except Exception:
            logger.exception(
                "Match stage failed",
                extra={"stage": strategy.stage.value, "correlation_id": context.correlation_id},
            )
            return MatchResult.error()
        finally:
            context.clear_deadline()
