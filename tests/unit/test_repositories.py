"""
Candidate sources and the DynamoDB analytics writer, with fake clients.

Run with: pytest tests/unit/test_repositories.py -v
"""

import json
import time
from decimal import Decimal
from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest
from botocore.exceptions import ClientError
from sqlalchemy.exc import OperationalError

from models.match import MatchResult, MatchType
from repositories.candidate_source import InMemoryCandidateSource, record_from_mapping
from repositories.dynamodb_repo import DynamoDbCandidateSource, DynamoDbQueryLogger
from repositories.postgres_repo import PostgresCandidateSource
from utils.error_handling import RetrievalError


class TestRecordFromMapping:
    def test_comma_joined_string_becomes_list(self):
        record = record_from_mapping(
            {"id": 7, "question": "xin chào, chào bạn", "answer": "Hello!"}
        )
        assert record.record_id == "7"
        assert record.questions == ["xin chào, chào bạn"]
        assert list(record.aliases()) == ["xin chào", "chào bạn"]
        assert record.category == "general"

    def test_pgvector_text_embedding(self):
        record = record_from_mapping(
            {"id": 1, "questions": ["q"], "answer": "a", "embedding": "[0.5, 0.25]"}
        )
        assert record.embedding == [0.5, 0.25]

    def test_missing_id_is_skipped(self):
        assert record_from_mapping({"questions": ["q"], "answer": "a"}) is None


class TestInMemorySource:
    def test_from_json_file(self, tmp_path):
        path = tmp_path / "kb.json"
        path.write_text(
            json.dumps(
                {
                    "records": [
                        {"id": "1", "questions": ["học phí"], "answer": "2tr", "category": "tuition"},
                        {"id": "2", "questions": "giờ mở cửa", "answer": "8h"},
                        {"questions": ["orphan"]},
                    ]
                }
            ),
            encoding="utf-8",
        )

        source = InMemoryCandidateSource.from_json_file(str(path))

        assert len(source) == 2
        assert [r.record_id for r in source.fetch_by_category("tuition")] == ["1"]
        assert [r.record_id for r in source.fetch_by_keywords(["Học"])] == ["1"]
        assert source.stats().total_records == 2

    def test_pages_are_bounded(self):
        source = InMemoryCandidateSource.from_rows(
            {"id": str(i), "questions": ["q"], "answer": "a"} for i in range(5)
        )
        assert [len(page) for page in source.iter_pages(2)] == [2, 2, 1]


def _row(**values):
    return SimpleNamespace(_mapping=values)


class TestPostgresSource:
    def test_fetch_all_maps_rows(self):
        conn = MagicMock()
        conn.execute.return_value = [
            _row(id=1, questions=["q1"], answer="a1", category=None, keywords=None, embedding="[1,0]"),
        ]

        records = PostgresCandidateSource(conn).fetch_all(limit=10)

        assert records[0].record_id == "1"
        assert records[0].category == "general"
        assert records[0].embedding == [1.0, 0.0]
        assert conn.execute.call_args[0][1] == {"limit": 10}

    def test_keyset_pagination(self):
        conn = MagicMock()
        conn.execute.side_effect = [
            [_row(id=1, questions=["a"], answer="x"), _row(id=2, questions=["b"], answer="y")],
            [_row(id=3, questions=["c"], answer="z")],
        ]

        pages = list(PostgresCandidateSource(conn).iter_pages(page_size=2))

        assert [len(page) for page in pages] == [2, 1]
        assert conn.execute.call_args_list[1][0][1] == {"cursor": 2, "limit": 2}

    def test_keyword_query_passes_normalized_tokens(self):
        conn = MagicMock()
        conn.execute.return_value = []

        PostgresCandidateSource(conn).fetch_by_keywords(["Học", "PHÍ"])

        assert conn.execute.call_args[0][1]["tokens"] == ["hoc", "phi"]

    def test_database_errors_become_retrieval_errors(self):
        conn = MagicMock()
        conn.execute.side_effect = OperationalError("SELECT", {}, Exception("down"))

        with pytest.raises(RetrievalError):
            PostgresCandidateSource(conn).fetch_all()


class FakeTable:
    def __init__(self, pages=None, error=None):
        self.pages = list(pages or [])
        self.error = error
        self.scans = []
        self.items = []

    def scan(self, **kwargs):
        self.scans.append(kwargs)
        if self.error:
            raise self.error
        return self.pages.pop(0)

    def put_item(self, Item):
        self.items.append(Item)


class TestDynamoDbSource:
    def test_follows_cursors_and_converts_decimals(self):
        table = FakeTable(
            pages=[
                {
                    "Items": [
                        {"record_id": "1", "questions": ["q"], "answer": "a",
                         "embedding": [Decimal("0.5"), Decimal("0.5")]},
                    ],
                    "LastEvaluatedKey": {"record_id": "1"},
                },
                {"Items": [{"record_id": "2", "questions": ["q2"], "answer": "b"}]},
            ]
        )

        records = DynamoDbCandidateSource(table).fetch_all(limit=10)

        assert [r.record_id for r in records] == ["1", "2"]
        assert records[0].embedding == [0.5, 0.5]
        assert table.scans[1]["ExclusiveStartKey"] == {"record_id": "1"}

    def test_category_filter_is_sent(self):
        table = FakeTable(pages=[{"Items": []}])
        DynamoDbCandidateSource(table).fetch_by_category("tuition")
        assert "FilterExpression" in table.scans[0]

    def test_client_errors_become_retrieval_errors(self):
        error = ClientError({"Error": {"Code": "ResourceNotFoundException"}}, "Scan")
        with pytest.raises(RetrievalError):
            DynamoDbCandidateSource(FakeTable(error=error)).fetch_all()


def test_query_logger_writes_decimal_scores():
    table = FakeTable()
    result = MatchResult(
        found=True,
        answer="Hello!",
        category="greeting",
        record_id="1",
        similarity=0.82,
        confidence=0.85,
        match_type=MatchType.SEMANTIC,
    )

    DynamoDbQueryLogger(table).log("xin chao", result, "u-1", response_time_ms=12)

    item = table.items[0]
    assert item["user_id"] == "u-1"
    assert item["match_type"] == "semantic"
    assert item["confidence"] == Decimal("0.85")
    assert item["similarity"] == Decimal("0.82")
    assert item["record_id"] == "1"
    assert item["ttl"] > int(time.time()) + 89 * 86400
