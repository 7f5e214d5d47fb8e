"""
Semantic strategy: cosine scan, provider failures and staged narrowing.

Run with: pytest tests/unit/test_semantic_service.py -v
"""

import math

import pytest

from conftest import CountingSource, FakeEmbedder, make_record
from models.match import MatchType
from services.query_context import QueryContext
from services.semantic_service import SemanticMatchStrategy, detect_category, find_semantic


def unit(cosine):
    """2-d unit vector whose cosine with [1, 0] is ``cosine``."""
    return [cosine, math.sqrt(1 - cosine ** 2)]


class TestFindSemantic:
    def test_accepts_above_threshold(self):
        candidates = [
            make_record("low", ["a question"], embedding=unit(0.5)),
            make_record("high", ["another question"], answer="Yes", embedding=unit(0.82)),
        ]
        result = find_semantic([1.0, 0.0], candidates, threshold=0.80)

        assert result.found is True
        assert result.match_type == MatchType.SEMANTIC
        assert result.record_id == "high"
        assert result.similarity == pytest.approx(0.82)
        assert result.confidence == 0.85
        assert result.matched_question == "another question"

    def test_below_threshold_reports_best(self):
        candidates = [make_record("1", ["q"], embedding=unit(0.78))]
        result = find_semantic([1.0, 0.0], candidates, threshold=0.80)

        assert result.found is False
        assert result.match_type == MatchType.INSUFFICIENT_SEMANTIC
        assert result.similarity == pytest.approx(0.78)
        assert result.confidence == 0.75

    def test_ignores_records_without_embedding_and_zero_vectors(self):
        candidates = [
            make_record("none", ["q"]),
            make_record("zero", ["q"], embedding=[0.0, 0.0]),
        ]
        result = find_semantic([1.0, 0.0], candidates)
        assert result.found is False
        assert result.similarity == 0.0

    def test_negative_cosine_clamped(self):
        candidates = [make_record("opposite", ["q"], embedding=[-1.0, 0.0])]
        assert find_semantic([1.0, 0.0], candidates).similarity == 0.0


class TestSemanticStrategy:
    def test_embeds_normalized_query(self):
        embedder = FakeEmbedder()
        source = CountingSource([make_record("1", ["q"], embedding=unit(0.9))])
        SemanticMatchStrategy().match("  Học PHÍ?  ", QueryContext(source=source, embedder=embedder))
        assert embedder.calls == ["hoc phi"]

    def test_provider_failure_degrades_to_error(self):
        source = CountingSource([make_record("1", ["q"], embedding=unit(0.9))])
        context = QueryContext(source=source, embedder=FakeEmbedder(fail=True))

        result = SemanticMatchStrategy().match("hello there", context)

        assert result.found is False
        assert result.match_type == MatchType.ERROR
        assert source.fetch_calls == []

    def test_without_embedder_is_not_found(self):
        result = SemanticMatchStrategy().match("hello", QueryContext(source=CountingSource([])))
        assert result.found is False


class TestStagedNarrowing:
    def _strategy(self, sleeps=None, **kwargs):
        recorded = sleeps if sleeps is not None else []
        params = {"staged": True, "page_size": 2, "page_delay_seconds": 0.05}
        params.update(kwargs)
        return SemanticMatchStrategy(sleep=recorded.append, **params)

    def test_keyword_stage_short_circuits(self):
        source = CountingSource(
            [make_record("1", ["tuition fees"], keywords=["tuition"], embedding=unit(0.9))]
        )
        context = QueryContext(source=source, embedder=FakeEmbedder())

        result = self._strategy().match("tuition please", context)

        assert result.found is True
        assert source.fetch_calls == [("keywords", ("tuition", "please"))]
        assert source.pages_yielded == 0

    def test_category_stage_used_when_keywords_miss(self):
        source = CountingSource(
            [make_record("fee", ["x"], category="tuition", keywords=["zzz"], embedding=unit(0.85))]
        )
        context = QueryContext(source=source, embedder=FakeEmbedder())

        result = self._strategy().match("Học phí bao nhiêu?", context)

        assert result.found is True
        assert result.record_id == "fee"
        assert ("category", "tuition") in source.fetch_calls
        assert source.pages_yielded == 0

    def test_paged_scan_exits_early(self):
        records = [
            make_record(str(i), ["x"], keywords=["zzz"], embedding=unit(score))
            for i, score in enumerate([0.1, 0.2, 0.99, 0.3, 0.4, 0.5])
        ]
        source = CountingSource(records)
        sleeps = []
        context = QueryContext(source=source, embedder=FakeEmbedder())

        result = self._strategy(sleeps).match("xyz abc", context)

        assert result.found is True
        assert result.record_id == "2"
        assert source.pages_yielded == 2
        assert sleeps == [0.05]

    def test_all_stages_fail_returns_best_seen(self):
        records = [
            make_record("kw", ["x"], keywords=["alpha"], embedding=unit(0.6)),
            make_record("other", ["x"], keywords=["zzz"], embedding=unit(0.3)),
        ]
        source = CountingSource(records)
        context = QueryContext(source=source, embedder=FakeEmbedder())

        result = self._strategy().match("alpha beta", context)

        assert result.found is False
        assert result.match_type == MatchType.INSUFFICIENT_SEMANTIC
        assert result.similarity == pytest.approx(0.6)


@pytest.mark.parametrize(
    "query,expected",
    [
        ("Học phí bao nhiêu?", "tuition"),
        ("Làm sao để đăng ký?", "admissions"),
        ("lịch học tuần này", "schedule"),
        ("what is the address", "contact"),
        ("xin chào", None),
    ],
)
def test_detect_category(query, expected):
    assert detect_category(query) == expected
