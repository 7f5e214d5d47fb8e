"""Match results and escalation traces."""

from __future__ import annotations

from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field


class MatchType(str, Enum):
    """How a result was (or was not) produced."""

    EXACT = "exact"
    SIMILARITY = "similarity"
    SEMANTIC = "semantic"
    NONE = "none"
    ERROR = "error"
    INSUFFICIENT = "insufficient"
    INSUFFICIENT_SEMANTIC = "insufficient_semantic"


class Stage(str, Enum):
    """Escalation stages in the order they run."""

    EXACT = "exact"
    LEXICAL = "lexical"
    SEMANTIC = "semantic"


class MatchResult(BaseModel):
    """Outcome of one strategy, or of the whole escalation."""

    found: bool = False
    answer: str = ""
    category: str = "no_match"
    matched_question: Optional[str] = None
    record_id: Optional[str] = None
    similarity: float = Field(default=0.0, ge=0, le=1)
    confidence: float = Field(default=0.0, ge=0, le=1)
    match_type: MatchType = MatchType.NONE

    @classmethod
    def not_found(
        cls,
        match_type: MatchType = MatchType.NONE,
        similarity: float = 0.0,
        confidence: float = 0.0,
    ) -> "MatchResult":
        return cls(
            found=False,
            similarity=similarity,
            confidence=confidence,
            match_type=match_type,
        )

    @classmethod
    def error(cls) -> "MatchResult":
        return cls(found=False, category="error", match_type=MatchType.ERROR)

    def outranks(self, other: Optional["MatchResult"]) -> bool:
        """Strictly better score than ``other``; ties keep the earlier result."""
        if other is None:
            return True
        return (self.similarity, self.confidence) > (other.similarity, other.confidence)


class StageTrace(BaseModel):
    """Per-stage timing and score, kept for logs and diagnostics."""

    stage: Stage
    match_type: MatchType
    similarity: float
    confidence: float
    latency_ms: int


class EscalationOutcome(BaseModel):
    """Final result plus what each attempted stage produced."""

    result: MatchResult
    stages: List[StageTrace] = Field(default_factory=list)
    best_stage: Optional[Stage] = None
