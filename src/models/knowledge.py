"""Knowledge base models."""

from __future__ import annotations

import json
from typing import Any, Iterator, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from utils.text import normalize_text, split_aliases


class KnowledgeRecord(BaseModel):
    """
    One question/answer entry as seen by the matching pipeline.

    Stored records come in several shapes (a list of questions, a single
    comma-joined string, pgvector text for embeddings). The validators below
    fold them into one canonical form so strategies never see the raw shape.
    """

    model_config = ConfigDict(frozen=True)

    record_id: str
    questions: List[str] = Field(default_factory=list)
    answer: str = ""
    category: str = "general"
    normalized_questions: List[str] = Field(default_factory=list)
    keywords: List[str] = Field(default_factory=list)
    embedding: Optional[List[float]] = None

    @field_validator("record_id", mode="before")
    @classmethod
    def coerce_id(cls, value: Any) -> str:
        if value is None or str(value).strip() == "":
            raise ValueError("record_id is required")
        return str(value)

    @field_validator("questions", "normalized_questions", "keywords", mode="before")
    @classmethod
    def coerce_string_list(cls, value: Any) -> List[str]:
        """Accept None, a single string, or any iterable of strings."""
        if value is None:
            return []
        if isinstance(value, str):
            return [value] if value.strip() else []
        return [str(item) for item in value if item is not None and str(item).strip()]

    @field_validator("category", mode="before")
    @classmethod
    def default_category(cls, value: Any) -> str:
        return str(value) if value else "general"

    @field_validator("answer", mode="before")
    @classmethod
    def coerce_answer(cls, value: Any) -> str:
        return "" if value is None else str(value)

    @field_validator("embedding", mode="before")
    @classmethod
    def coerce_embedding(cls, value: Any) -> Optional[List[float]]:
        """pgvector returns '[0.1,0.2,...]' text unless a type adapter is registered."""
        if value is None or value == "":
            return None
        if isinstance(value, str):
            value = json.loads(value)
        vector = [float(item) for item in value]
        return vector or None

    @property
    def is_answerable(self) -> bool:
        return bool(self.questions) and bool(self.answer)

    def aliases(self) -> Iterator[str]:
        """Every comparison target, in question order then alias order."""
        for question in self.questions:
            yield from split_aliases(question)

    def keyword_set(self) -> set:
        """Stored keywords, or tokens derived from the questions when none were stored."""
        if self.keywords:
            return {normalize_text(keyword) for keyword in self.keywords}
        tokens = set()
        for alias in self.aliases():
            tokens.update(normalize_text(alias).split())
        return tokens


class KBStats(BaseModel):
    """Counts reported by the knowledge base check."""

    total_records: int
    records_with_embeddings: int
    backend: str
