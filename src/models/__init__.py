"""Pydantic models for knowledge records, match results and API payloads."""

from models.knowledge import KBStats, KnowledgeRecord  # noqa: F401
from models.match import EscalationOutcome, MatchResult, MatchType, Stage, StageTrace  # noqa: F401
from models.query import ChatQuery  # noqa: F401
from models.response import ChatResponse  # noqa: F401
