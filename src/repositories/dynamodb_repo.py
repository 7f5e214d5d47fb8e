"""DynamoDB repositories: knowledge records and query analytics."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from decimal import Decimal
from functools import reduce
from typing import Any, Dict, Iterable, Iterator, List, Optional

from boto3.dynamodb.conditions import Attr
from botocore.exceptions import BotoCoreError, ClientError

from models.knowledge import KnowledgeRecord
from models.match import MatchResult
from repositories.candidate_source import DEFAULT_LIMIT, CandidateSource, records_from_rows
from utils.error_handling import RetrievalError
from utils.text import normalize_text


def _from_dynamo(value: Any) -> Any:
    """Numbers come back as Decimal; embeddings need plain floats."""
    if isinstance(value, Decimal):
        return float(value)
    if isinstance(value, list):
        return [_from_dynamo(item) for item in value]
    if isinstance(value, set):
        return sorted(_from_dynamo(item) for item in value)
    if isinstance(value, dict):
        return {key: _from_dynamo(item) for key, item in value.items()}
    return value


def _to_dynamo(value: Any) -> Any:
    if isinstance(value, float):
        return Decimal(str(value))
    return value


class DynamoDbCandidateSource(CandidateSource):
    """Scan-based access to a knowledge table keyed by ``record_id``."""

    backend = "dynamodb"

    def __init__(self, table: Any):
        self.table = table

    def _scan(
        self,
        limit: int,
        filter_expression: Any = None,
        start_key: Optional[Dict[str, Any]] = None,
    ) -> tuple:
        """One scan call; returns (records, LastEvaluatedKey)."""
        kwargs: Dict[str, Any] = {"Limit": limit}
        if filter_expression is not None:
            kwargs["FilterExpression"] = filter_expression
        if start_key:
            kwargs["ExclusiveStartKey"] = start_key
        try:
            resp = self.table.scan(**kwargs)
        except (BotoCoreError, ClientError) as exc:
            raise RetrievalError(f"DynamoDB scan failed: {exc}") from exc
        items = [_from_dynamo(item) for item in resp.get("Items", [])]
        return records_from_rows(items), resp.get("LastEvaluatedKey")

    def _collect(self, limit: int, filter_expression: Any = None) -> List[KnowledgeRecord]:
        """Follow scan cursors until ``limit`` matching records are gathered."""
        records: List[KnowledgeRecord] = []
        start_key = None
        while len(records) < limit:
            page, start_key = self._scan(limit - len(records), filter_expression, start_key)
            records.extend(page)
            if not start_key:
                break
        return records[:limit]

    def fetch_all(self, limit: int = DEFAULT_LIMIT) -> List[KnowledgeRecord]:
        return self._collect(limit)

    def fetch_by_keywords(
        self, tokens: Iterable[str], limit: int = DEFAULT_LIMIT
    ) -> List[KnowledgeRecord]:
        wanted = sorted({normalize_text(token) for token in tokens if token})
        if not wanted:
            return []
        condition = reduce(
            lambda acc, cond: acc | cond,
            (Attr("keywords").contains(token) for token in wanted),
        )
        return self._collect(limit, condition)

    def fetch_by_category(
        self, category: str, limit: int = DEFAULT_LIMIT
    ) -> List[KnowledgeRecord]:
        return self._collect(limit, Attr("category").eq(category))

    def iter_pages(self, page_size: int = 100) -> Iterator[List[KnowledgeRecord]]:
        start_key = None
        while True:
            page, start_key = self._scan(page_size, start_key=start_key)
            if page:
                yield page
            if not start_key:
                return


class DynamoDbQueryLogger:
    """Writes one analytics item per answered query; items expire after ``ttl_days``."""

    def __init__(self, table: Any, ttl_days: int = 90):
        self.table = table
        self.ttl_days = ttl_days

    def log(self, message: str, result: MatchResult, user_id: str, response_time_ms: int = 0) -> None:
        now = datetime.now(timezone.utc)
        item = {
            "user_id": user_id or "anonymous",
            "timestamp": now.isoformat(),
            "user_message": message,
            "bot_answer": result.answer,
            "confidence": _to_dynamo(result.confidence),
            "similarity": _to_dynamo(result.similarity),
            "category": result.category,
            "match_type": result.match_type.value,
            "record_id": result.record_id,
            "response_time_ms": response_time_ms,
            "user_rating": None,
        }
        if self.ttl_days > 0:
            item["ttl"] = int((now + timedelta(days=self.ttl_days)).timestamp())
        self.table.put_item(Item=item)
