"""
Candidate retrieval interface shared by every storage backend.

Strategies only ever see ``KnowledgeRecord`` objects; each backend turns
its native rows/items into records at this boundary.
"""

from __future__ import annotations

import json
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict, Iterable, Iterator, List, Mapping, Optional

from pydantic import ValidationError as PydanticValidationError

from models.knowledge import KBStats, KnowledgeRecord
from utils.logging_config import get_logger
from utils.text import normalize_text

logger = get_logger(__name__)

DEFAULT_LIMIT = 1000

_FIELD_ALIASES = {
    "record_id": ("record_id", "id", "doc_id", "docId"),
    "questions": ("questions", "question"),
    "normalized_questions": ("normalized_questions", "normalizedQuestions"),
    "keywords": ("keywords", "tokens"),
}


def record_from_mapping(data: Mapping[str, Any]) -> Optional[KnowledgeRecord]:
    """
    Build a record from a loosely shaped row; None if it cannot be used.

    Malformed rows are skipped with a warning rather than failing the scan.
    """
    payload: Dict[str, Any] = dict(data)
    for target, candidates in _FIELD_ALIASES.items():
        for key in candidates:
            if key in data and data[key] is not None:
                payload[target] = data[key]
                break
    try:
        return KnowledgeRecord.model_validate(payload)
    except PydanticValidationError as exc:
        logger.warning(
            "Skipping malformed knowledge record",
            extra={"record_id": str(payload.get("record_id")), "error": str(exc)},
        )
        return None


def records_from_rows(rows: Iterable[Mapping[str, Any]]) -> List[KnowledgeRecord]:
    records = (record_from_mapping(row) for row in rows)
    return [record for record in records if record is not None]


class CandidateSource(ABC):
    """Read-only access to knowledge records."""

    backend = "abstract"

    @abstractmethod
    def fetch_all(self, limit: int = DEFAULT_LIMIT) -> List[KnowledgeRecord]:
        """Up to ``limit`` records in stable store order."""

    @abstractmethod
    def fetch_by_keywords(
        self, tokens: Iterable[str], limit: int = DEFAULT_LIMIT
    ) -> List[KnowledgeRecord]:
        """Records whose keyword set intersects ``tokens``."""

    @abstractmethod
    def fetch_by_category(
        self, category: str, limit: int = DEFAULT_LIMIT
    ) -> List[KnowledgeRecord]:
        """Records in ``category``."""

    @abstractmethod
    def iter_pages(self, page_size: int = 100) -> Iterator[List[KnowledgeRecord]]:
        """Walk the whole store in bounded pages."""

    def stats(self) -> KBStats:
        """Record counts; backends with a cheaper count query override this."""
        total = 0
        embedded = 0
        for page in self.iter_pages():
            total += len(page)
            embedded += sum(1 for record in page if record.embedding)
        return KBStats(
            total_records=total, records_with_embeddings=embedded, backend=self.backend
        )

    def close(self) -> None:
        """Release anything held for the current request."""


class InMemoryCandidateSource(CandidateSource):
    """Records held in process; used for local runs, small knowledge bases and tests."""

    backend = "memory"

    def __init__(self, records: Iterable[KnowledgeRecord]):
        self._records: List[KnowledgeRecord] = list(records)

    @classmethod
    def from_rows(cls, rows: Iterable[Mapping[str, Any]]) -> "InMemoryCandidateSource":
        return cls(records_from_rows(rows))

    @classmethod
    def from_json_file(cls, path: str) -> "InMemoryCandidateSource":
        """Load a JSON array of records (or ``{"records": [...]}``)."""
        raw = json.loads(Path(path).read_text(encoding="utf-8"))
        rows = raw.get("records", []) if isinstance(raw, dict) else raw
        source = cls.from_rows(rows)
        logger.info(
            "Knowledge file loaded",
            extra={"path": path, "records": len(source)},
        )
        return source

    def fetch_all(self, limit: int = DEFAULT_LIMIT) -> List[KnowledgeRecord]:
        return self._records[:limit]

    def fetch_by_keywords(
        self, tokens: Iterable[str], limit: int = DEFAULT_LIMIT
    ) -> List[KnowledgeRecord]:
        wanted = {normalize_text(token) for token in tokens if token}
        if not wanted:
            return []
        matches = [record for record in self._records if record.keyword_set() & wanted]
        return matches[:limit]

    def fetch_by_category(
        self, category: str, limit: int = DEFAULT_LIMIT
    ) -> List[KnowledgeRecord]:
        matches = [record for record in self._records if record.category == category]
        return matches[:limit]

    def iter_pages(self, page_size: int = 100) -> Iterator[List[KnowledgeRecord]]:
        for start in range(0, len(self._records), max(1, page_size)):
            yield self._records[start:start + page_size]

    def __len__(self) -> int:
        return len(self._records)
