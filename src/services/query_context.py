"""Per-request resources handed to every match strategy."""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from models.knowledge import KnowledgeRecord
from repositories.candidate_source import DEFAULT_LIMIT, CandidateSource
from services.embedding_service import EmbeddingProvider
from utils.error_handling import StageTimeoutError


@dataclass
class QueryContext:
    """
    Scoped view of the data layer for one query.

    The full candidate list is fetched at most once per limit and shared by
    the exact and lexical stages. Stages run one at a time on the calling
    thread; the escalation controller arms a per-stage ``deadline`` that
    strategies check between retrieval and scoring steps.
    """

    source: CandidateSource
    embedder: Optional[EmbeddingProvider] = None
    correlation_id: str = ""
    deadline: Optional[float] = None
    _all: Dict[int, List[KnowledgeRecord]] = field(default_factory=dict, repr=False)

    def all_candidates(self, limit: int = DEFAULT_LIMIT) -> List[KnowledgeRecord]:
        if limit not in self._all:
            self._all[limit] = self.source.fetch_all(limit)
        return self._all[limit]

    def arm_deadline(self, timeout_seconds: float) -> None:
        """Start a stage budget; zero or negative disables it."""
        self.deadline = time.monotonic() + timeout_seconds if timeout_seconds > 0 else None

    def clear_deadline(self) -> None:
        self.deadline = None

    @property
    def expired(self) -> bool:
        return self.deadline is not None and time.monotonic() >= self.deadline

    def check_deadline(self) -> None:
        """Raise StageTimeoutError once the armed stage budget is spent."""
        if self.expired:
            raise StageTimeoutError()
