"""
Exact and lexical match strategies.

Both scan candidates in store order and alias order, so when a knowledge
base holds duplicate questions the first one stored wins.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Iterable, Optional

from models.knowledge import KnowledgeRecord
from models.match import MatchResult, MatchType, Stage
from services.query_context import QueryContext
from utils.error_handling import AppError
from utils.logging_config import get_logger
from utils.scoring import confidence_level, jaccard_tokens
from utils.settings import DEFAULT_LEXICAL_THRESHOLD, MIN_TOKEN_LENGTH
from utils.text import normalize_text, tokenize

logger = get_logger(__name__)


def find_exact(query: str, candidates: Iterable[KnowledgeRecord]) -> MatchResult:
    """First alias whose normalized form equals the normalized query."""
    normalized_query = normalize_text(query)
    if not normalized_query:
        return MatchResult.not_found()

    for record in candidates:
        if not record.is_answerable:
            continue
        for alias in record.aliases():
            if normalize_text(alias) == normalized_query:
                return MatchResult(
                    found=True,
                    answer=record.answer,
                    category=record.category,
                    matched_question=alias,
                    record_id=record.record_id,
                    similarity=1.0,
                    confidence=1.0,
                    match_type=MatchType.EXACT,
                )
    return MatchResult.not_found()


def find_similarity(
    query: str,
    candidates: Iterable[KnowledgeRecord],
    threshold: float = DEFAULT_LEXICAL_THRESHOLD,
    min_token_length: int = MIN_TOKEN_LENGTH,
) -> MatchResult:
    """
    Best Jaccard match over every alias, accepted when its confidence band
    reaches ``threshold``.

    Below the threshold the result is not found but still carries the best
    similarity and confidence seen, for diagnostics and escalation.
    """
    query_tokens = set(tokenize(query, min_length=min_token_length))
    if not query_tokens:
        return MatchResult.not_found(MatchType.INSUFFICIENT)

    best: Optional[KnowledgeRecord] = None
    best_alias: Optional[str] = None
    best_similarity = 0.0

    for record in candidates:
        if not record.is_answerable:
            continue
        for alias in record.aliases():
            alias_tokens = set(tokenize(alias, min_length=min_token_length))
            similarity = jaccard_tokens(query_tokens, alias_tokens)
            if similarity > best_similarity:
                best, best_alias, best_similarity = record, alias, similarity

    confidence = confidence_level(best_similarity)
    if best is None or confidence < threshold:
        return MatchResult.not_found(
            MatchType.INSUFFICIENT, similarity=best_similarity, confidence=confidence
        )

    return MatchResult(
        found=True,
        answer=best.answer,
        category=best.category,
        matched_question=best_alias,
        record_id=best.record_id,
        similarity=best_similarity,
        confidence=confidence,
        match_type=MatchType.SIMILARITY,
    )


class MatchStrategy(ABC):
    """One escalation stage."""

    stage: Stage

    def match(self, query: str, context: QueryContext) -> MatchResult:
        """Run the stage; data-layer failures degrade to an error result."""
        try:
            return self._match(query, context)
        except AppError as exc:
            logger.warning(
                "Match stage degraded",
                extra={
                    "stage": self.stage.value,
                    "error": str(exc),
                    "correlation_id": context.correlation_id,
                },
            )
            return MatchResult.error()

    @abstractmethod
    def _match(self, query: str, context: QueryContext) -> MatchResult:
        ...


class ExactMatchStrategy(MatchStrategy):
    stage = Stage.EXACT

    def __init__(self, max_candidates: int = 1000):
        self.max_candidates = max_candidates

    def _match(self, query: str, context: QueryContext) -> MatchResult:
        candidates = context.all_candidates(self.max_candidates)
        context.check_deadline()
        return find_exact(query, candidates)


class SimilarityMatchStrategy(MatchStrategy):
    """Jaccard scan, optionally restricted to records sharing a query token."""

    stage = Stage.LEXICAL

    def __init__(
        self,
        threshold: float = DEFAULT_LEXICAL_THRESHOLD,
        max_candidates: int = 1000,
        keyword_prefilter: bool = False,
        min_token_length: int = MIN_TOKEN_LENGTH,
    ):
        self.threshold = threshold
        self.max_candidates = max_candidates
        self.keyword_prefilter = keyword_prefilter
        self.min_token_length = min_token_length

    def _match(self, query: str, context: QueryContext) -> MatchResult:
        tokens = tokenize(query, min_length=self.min_token_length)
        if not tokens:
            return MatchResult.not_found(MatchType.INSUFFICIENT)

        if self.keyword_prefilter:
            candidates = context.source.fetch_by_keywords(tokens, self.max_candidates)
        else:
            candidates = context.all_candidates(self.max_candidates)
        context.check_deadline()
        return find_similarity(
            query, candidates, self.threshold, min_token_length=self.min_token_length
        )
