"""
Chatbot service: validates a query, runs the escalation pipeline and
shapes the response.

Storage clients are never held in module globals by this service. Each
request opens a ``QueryContext`` through ``open_context`` and releases it
when the pipeline finishes.
"""

from __future__ import annotations

import time
import uuid
from concurrent.futures import ThreadPoolExecutor
from contextlib import contextmanager
from typing import Callable, ContextManager, Iterator, Optional

import boto3
from botocore.config import Config

from models.match import MatchResult
from models.query import ChatQuery
from models.response import ChatResponse
from repositories.candidate_source import CandidateSource, InMemoryCandidateSource
from repositories.dynamodb_repo import DynamoDbCandidateSource, DynamoDbQueryLogger
from repositories.postgres_repo import PostgresCandidateSource, build_engine
from services.analytics_service import AnalyticsService
from services.embedding_service import BedrockEmbeddingService, EmbeddingProvider
from services.escalation_service import EscalationController
from services.match_strategies import ExactMatchStrategy, SimilarityMatchStrategy
from services.query_context import QueryContext
from services.semantic_service import SemanticMatchStrategy
from utils.cache_service import LRUCache
from utils.error_handling import ValidationError
from utils.logging_config import get_logger
from utils.settings import MatchSettings
from utils.validators import validate_message

logger = get_logger(__name__)

SourceFactory = Callable[[], ContextManager[CandidateSource]]

MESSAGES = {
    "vi": {
        "invalid": "Dữ liệu đầu vào không hợp lệ",
        "empty": "Vui lòng nhập câu hỏi của bạn",
        "no_match": "Xin lỗi, tôi không thể tìm thấy câu trả lời phù hợp cho câu hỏi của bạn.",
        "error": "Đã xảy ra lỗi khi xử lý yêu cầu của bạn.",
    },
    "en": {
        "invalid": "Invalid input",
        "empty": "Please enter your question",
        "no_match": "Sorry, I could not find a suitable answer for your question.",
        "error": "An error occurred while processing your request.",
    },
}


def _text(lang: str, key: str) -> str:
    return MESSAGES.get(lang, MESSAGES["vi"])[key]


def aws_client_config(settings: MatchSettings) -> Config:
    """Socket timeouts for AWS calls made inside a match stage."""
    read_timeout = settings.stage_timeout_seconds if settings.stage_timeout_seconds > 0 else 60
    return Config(
        connect_timeout=2,
        read_timeout=read_timeout,
        retries={"max_attempts": 2, "mode": "standard"},
    )


def build_pipeline(settings: MatchSettings) -> EscalationController:
    """Strategies in escalation order, configured from settings."""
    return EscalationController(
        [
            ExactMatchStrategy(max_candidates=settings.max_candidates),
            SimilarityMatchStrategy(
                threshold=settings.lexical_threshold,
                max_candidates=settings.max_candidates,
                keyword_prefilter=settings.keyword_prefilter,
                min_token_length=settings.min_token_length,
            ),
            SemanticMatchStrategy(
                threshold=settings.semantic_threshold,
                max_candidates=settings.max_candidates,
                staged=settings.semantic_staged,
                page_size=settings.page_size,
                early_exit_similarity=settings.early_exit_similarity,
                page_delay_seconds=settings.page_delay_seconds,
                max_scan_seconds=settings.max_scan_seconds,
                min_token_length=settings.min_token_length,
            ),
        ],
        stage_timeout_seconds=settings.stage_timeout_seconds,
    )


def static_source(source: CandidateSource) -> SourceFactory:
    """Factory for sources that need no per-request acquisition."""

    @contextmanager
    def _open() -> Iterator[CandidateSource]:
        yield source

    return _open


def build_source_factory(settings: MatchSettings) -> SourceFactory:
    """Pick the candidate backend named in settings."""
    backend = settings.candidate_backend
    if backend == "postgres":
        engine = build_engine(
            settings.database_url,
            settings.db_secret_arn,
            statement_timeout_ms=int(settings.stage_timeout_seconds * 1000),
        )
        if engine is None:
            raise RuntimeError("Postgres backend selected but no database configured")

        @contextmanager
        def _open_postgres() -> Iterator[CandidateSource]:
            with engine.connect() as conn:
                source = PostgresCandidateSource(conn)
                try:
                    yield source
                finally:
                    source.close()

        return _open_postgres

    if backend == "dynamodb":
        table = boto3.resource(
            "dynamodb", region_name=settings.region, config=aws_client_config(settings)
        ).Table(settings.knowledge_table)
        return static_source(DynamoDbCandidateSource(table))

    if settings.knowledge_file:
        return static_source(InMemoryCandidateSource.from_json_file(settings.knowledge_file))
    logger.warning("No knowledge file configured; answering from an empty knowledge base")
    return static_source(InMemoryCandidateSource([]))


class ChatbotService:
    """Answer one question per call."""

    def __init__(
        self,
        source_factory: SourceFactory,
        embedder: Optional[EmbeddingProvider] = None,
        analytics: Optional[AnalyticsService] = None,
        settings: Optional[MatchSettings] = None,
        pipeline: Optional[EscalationController] = None,
    ):
        self.settings = settings or MatchSettings()
        self.source_factory = source_factory
        self.embedder = embedder
        self.analytics = analytics or AnalyticsService()
        self.pipeline = pipeline or build_pipeline(self.settings)

    @classmethod
    def from_settings(cls, settings: MatchSettings) -> "ChatbotService":
        embedder = None
        if settings.embeddings_enabled:
            embedder = BedrockEmbeddingService(
                model_id=settings.embedding_model_id,
                region=settings.region,
                cache=LRUCache(settings.cache_max_size, settings.cache_ttl_seconds),
                config=aws_client_config(settings),
            )

        query_logger = None
        if settings.analytics_table:
            query_logger = DynamoDbQueryLogger(
                boto3.resource(
                    "dynamodb", region_name=settings.region, config=aws_client_config(settings)
                ).Table(settings.analytics_table),
                ttl_days=settings.analytics_ttl_days,
            )
        executor = ThreadPoolExecutor(max_workers=2) if settings.analytics_async else None

        return cls(
            source_factory=build_source_factory(settings),
            embedder=embedder,
            analytics=AnalyticsService(query_logger, executor=executor),
            settings=settings,
        )

    @contextmanager
    def open_context(self, correlation_id: str) -> Iterator[QueryContext]:
        with self.source_factory() as source:
            yield QueryContext(
                source=source, embedder=self.embedder, correlation_id=correlation_id
            )

    def handle_request(
        self, query: ChatQuery, correlation_id: Optional[str] = None
    ) -> ChatResponse:
        """Validate, match, log and respond. Never raises."""
        correlation_id = correlation_id or str(uuid.uuid4())
        lang = query.lang
        start = time.perf_counter()

        try:
            validate_message(
                query.message, query.user_id, max_length=self.settings.max_message_length
            )
        except ValidationError as exc:
            return self.invalid_input(lang, str(exc), correlation_id)

        message = query.message.strip()
        if not message:
            return ChatResponse(
                success=False,
                error="Empty message",
                response=_text(lang, "empty"),
                category="error",
                correlation_id=correlation_id,
            )

        try:
            with self.open_context(correlation_id) as context:
                outcome = self.pipeline.run(message, context)
        except Exception as exc:
            logger.exception("Chatbot request failed", extra={"correlation_id": correlation_id})
            return ChatResponse(
                success=False,
                error=str(exc) if self.settings.is_dev else None,
                response=_text(lang, "error"),
                category="error",
                correlation_id=correlation_id,
            )

        result = outcome.result
        duration_ms = int((time.perf_counter() - start) * 1000)
        logger.info(
            "Chatbot request answered",
            extra={
                "correlation_id": correlation_id,
                "found": result.found,
                "match_type": result.match_type.value,
                "best_stage": outcome.best_stage.value if outcome.best_stage else None,
                "stages": [trace.stage.value for trace in outcome.stages],
                "duration_ms": duration_ms,
            },
        )

        if result.found:
            self.analytics.record(message, result, query.user_id, response_time_ms=duration_ms)
            return self._answer(result, correlation_id)

        return ChatResponse(
            success=False,
            response=_text(lang, "no_match"),
            confidence=result.confidence,
            similarity=result.similarity,
            category="no_match",
            match_type=result.match_type.value,
            message="No sufficient match found",
            correlation_id=correlation_id,
        )

    @staticmethod
    def invalid_input(lang: str, detail: str, correlation_id: str) -> ChatResponse:
        """Localized rejection for payloads that never reach the pipeline."""
        return ChatResponse(
            success=False,
            error=detail,
            response=_text(lang, "invalid"),
            category="error",
            correlation_id=correlation_id,
        )

    @staticmethod
    def _answer(result: MatchResult, correlation_id: str) -> ChatResponse:
        return ChatResponse(
            success=True,
            response=result.answer,
            confidence=result.confidence,
            similarity=result.similarity,
            category=result.category,
            matched_question=result.matched_question,
            match_type=result.match_type.value,
            correlation_id=correlation_id,
        )
