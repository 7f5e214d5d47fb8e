"""
Semantic (embedding) match strategy.

Small knowledge bases are compared exhaustively. Larger ones can enable
staged narrowing: keyword pre-filter, then category filter, then a paged
full scan. A stage is only accepted when it clears the semantic threshold;
otherwise the best result across all stages is returned.
"""

from __future__ import annotations

import time
from typing import Callable, Dict, Iterable, List, Optional, Tuple

from models.knowledge import KnowledgeRecord
from models.match import MatchResult, MatchType, Stage
from services.match_strategies import MatchStrategy
from services.query_context import QueryContext
from utils.error_handling import EmbeddingError
from utils.logging_config import get_logger
from utils.scoring import confidence_level, cosine_similarity
from utils.settings import DEFAULT_SEMANTIC_THRESHOLD, MIN_TOKEN_LENGTH
from utils.text import normalize_text, tokenize

logger = get_logger(__name__)

# Normalized phrase -> category. Phrases are matched against the normalized
# query, so they are written without diacritics.
CATEGORY_KEYWORDS: Dict[str, Tuple[str, ...]] = {
    "tuition": ("hoc phi", "le phi", "chi phi", "thanh toan", "tuition", "fee", "payment"),
    "admissions": ("tuyen sinh", "dang ky", "ho so", "nhap hoc", "admission", "enroll"),
    "schedule": ("lich hoc", "thoi khoa bieu", "khai giang", "schedule", "timetable"),
    "courses": ("khoa hoc", "chuong trinh", "mon hoc", "course", "curriculum"),
    "certificates": ("chung chi", "bang cap", "tot nghiep", "certificate", "diploma"),
    "contact": ("lien he", "dia chi", "so dien thoai", "hotline", "contact", "address"),
}


def detect_category(
    query: str, table: Optional[Dict[str, Tuple[str, ...]]] = None
) -> Optional[str]:
    """First category whose phrase appears as whole words in the normalized query."""
    padded = f" {normalize_text(query)} "
    for category, phrases in (table or CATEGORY_KEYWORDS).items():
        for phrase in phrases:
            if f" {phrase} " in padded:
                return category
    return None


def _best_cosine(
    query_vector: List[float], candidates: Iterable[KnowledgeRecord]
) -> Tuple[Optional[KnowledgeRecord], float]:
    best: Optional[KnowledgeRecord] = None
    best_score = 0.0
    for record in candidates:
        if not record.embedding or not record.is_answerable:
            continue
        score = max(0.0, cosine_similarity(query_vector, record.embedding))
        if score > best_score:
            best, best_score = record, score
    return best, best_score


def _semantic_result(
    best: Optional[KnowledgeRecord], similarity: float, threshold: float
) -> MatchResult:
    confidence = confidence_level(similarity)
    if best is None or similarity < threshold:
        return MatchResult.not_found(
            MatchType.INSUFFICIENT_SEMANTIC, similarity=similarity, confidence=confidence
        )
    return MatchResult(
        found=True,
        answer=best.answer,
        category=best.category,
        matched_question=next(best.aliases(), None),
        record_id=best.record_id,
        similarity=similarity,
        confidence=confidence,
        match_type=MatchType.SEMANTIC,
    )


def find_semantic(
    query_vector: List[float],
    candidates: Iterable[KnowledgeRecord],
    threshold: float = DEFAULT_SEMANTIC_THRESHOLD,
) -> MatchResult:
    """Best cosine match among records carrying an embedding."""
    best, score = _best_cosine(query_vector, candidates)
    return _semantic_result(best, score, threshold)


class SemanticMatchStrategy(MatchStrategy):
    """Embedding comparison with optional staged narrowing."""

    stage = Stage.SEMANTIC

    def __init__(
        self,
        threshold: float = DEFAULT_SEMANTIC_THRESHOLD,
        max_candidates: int = 1000,
        staged: bool = False,
        page_size: int = 100,
        early_exit_similarity: float = 0.95,
        page_delay_seconds: float = 0.05,
        max_scan_seconds: float = 20.0,
        min_token_length: int = MIN_TOKEN_LENGTH,
        category_keywords: Optional[Dict[str, Tuple[str, ...]]] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.threshold = threshold
        self.max_candidates = max_candidates
        self.staged = staged
        self.page_size = page_size
        self.early_exit_similarity = early_exit_similarity
        self.page_delay_seconds = page_delay_seconds
        self.max_scan_seconds = max_scan_seconds
        self.min_token_length = min_token_length
        self.category_keywords = category_keywords or CATEGORY_KEYWORDS
        self._sleep = sleep

    def _match(self, query: str, context: QueryContext) -> MatchResult:
        if context.embedder is None:
            return MatchResult.not_found(MatchType.INSUFFICIENT_SEMANTIC)

        normalized = normalize_text(query)
        if not normalized:
            return MatchResult.not_found(MatchType.INSUFFICIENT_SEMANTIC)

        try:
            query_vector = context.embedder.embed(normalized)
        except EmbeddingError as exc:
            logger.warning(
                "Embedding unavailable; semantic stage skipped",
                extra={"error": str(exc), "correlation_id": context.correlation_id},
            )
            return MatchResult.error()

        context.check_deadline()
        if not self.staged:
            return find_semantic(
                query_vector, context.all_candidates(self.max_candidates), self.threshold
            )
        return self._staged_match(query, query_vector, context)

    def _staged_match(
        self, query: str, query_vector: List[float], context: QueryContext
    ) -> MatchResult:
        best: Optional[MatchResult] = None

        tokens = tokenize(query, min_length=self.min_token_length)
        if tokens:
            result = find_semantic(
                query_vector,
                context.source.fetch_by_keywords(tokens, self.max_candidates),
                self.threshold,
            )
            if result.found:
                logger.info("Semantic match via keyword filter")
                return result
            best = result

        context.check_deadline()
        category = detect_category(query, self.category_keywords)
        if category:
            result = find_semantic(
                query_vector,
                context.source.fetch_by_category(category, self.max_candidates),
                self.threshold,
            )
            if result.found:
                logger.info("Semantic match via category filter", extra={"category": category})
                return result
            if result.outranks(best):
                best = result

        context.check_deadline()
        result = self._paged_scan(query_vector, context)
        if result.found or result.outranks(best):
            return result
        return best

    def _paged_scan(self, query_vector: List[float], context: QueryContext) -> MatchResult:
        """Running best across pages with early exit and a time bound."""
        deadline = time.monotonic() + self.max_scan_seconds
        best_record: Optional[KnowledgeRecord] = None
        best_score = 0.0
        pages = 0

        for page in context.source.iter_pages(self.page_size):
            pages += 1
            context.check_deadline()
            record, score = _best_cosine(query_vector, page)
            if score > best_score:
                best_record, best_score = record, score
            if best_score >= self.early_exit_similarity:
                break
            if time.monotonic() >= deadline:
                logger.warning("Semantic full scan hit time bound", extra={"pages": pages})
                break
            if self.page_delay_seconds > 0:
                self._sleep(self.page_delay_seconds)

        logger.info(
            "Semantic full scan complete",
            extra={"pages": pages, "best_similarity": round(best_score, 3)},
        )
        return _semantic_result(best_record, best_score, self.threshold)
