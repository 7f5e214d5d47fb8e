"""
Exact and lexical match strategies.

Run with: pytest tests/unit/test_match_strategies.py -v
"""

import pytest

from conftest import CountingSource, make_record
from models.match import MatchType
from repositories.candidate_source import InMemoryCandidateSource
from services.match_strategies import (
    ExactMatchStrategy,
    SimilarityMatchStrategy,
    find_exact,
    find_similarity,
)
from services.query_context import QueryContext
from utils.error_handling import RetrievalError


@pytest.fixture
def records():
    return [
        make_record("1", ["xin chào, chào bạn"], answer="Hello!", category="greeting"),
        make_record("2", ["what is my name"], answer="You are a guest."),
        make_record("3", ["học phí bao nhiêu", "chi phí khóa học"], answer="2.000.000đ", category="tuition"),
    ]


class TestFindExact:
    def test_matches_alias_ignoring_case_and_accents(self, records):
        result = find_exact("Xin Chào", records)

        assert result.found is True
        assert result.match_type == MatchType.EXACT
        assert result.answer == "Hello!"
        assert result.similarity == 1.0
        assert result.confidence == 1.0
        assert result.matched_question == "xin chào"
        assert result.record_id == "1"

    def test_second_alias_and_second_question(self, records):
        assert find_exact("chao ban", records).record_id == "1"
        assert find_exact("Chi phí khóa học?", records).record_id == "3"

    def test_first_stored_duplicate_wins(self):
        duplicates = [
            make_record("a", ["giờ mở cửa"], answer="8h"),
            make_record("b", ["Giờ mở cửa"], answer="9h"),
        ]
        result = find_exact("gio mo cua", duplicates)
        assert result.record_id == "a"
        assert result.answer == "8h"

    def test_skips_records_without_answer(self):
        candidates = [
            make_record("empty", ["xin chao"], answer=""),
            make_record("ok", ["xin chao"], answer="Hi"),
        ]
        assert find_exact("xin chao", candidates).record_id == "ok"

    def test_no_match(self, records):
        result = find_exact("something else entirely", records)
        assert result.found is False
        assert result.match_type == MatchType.NONE

    def test_strategy_degrades_retrieval_errors(self):
        class BrokenSource(InMemoryCandidateSource):
            def fetch_all(self, limit=1000):
                raise RetrievalError("store unreachable")

        result = ExactMatchStrategy().match("xin chao", QueryContext(source=BrokenSource([])))

        assert result.found is False
        assert result.match_type == MatchType.ERROR
        assert result.category == "error"


class TestFindSimilarity:
    def test_jaccard_below_band_is_insufficient(self, records):
        # 3 shared tokens of 5 -> 0.6, passes through the confidence mapper unchanged
        result = find_similarity("what is your name", records)

        assert result.found is False
        assert result.match_type == MatchType.INSUFFICIENT
        assert result.similarity == pytest.approx(0.6)
        assert result.confidence == pytest.approx(0.6)

    def test_accepts_when_band_reaches_threshold(self):
        candidates = [make_record("1", ["how do i reset my account password"], answer="Use the link")]
        # 6 shared of 7 distinct -> 0.857 -> band 0.85
        result = find_similarity("how do i reset my account password now", candidates)

        assert result.found is True
        assert result.match_type == MatchType.SIMILARITY
        assert result.similarity == pytest.approx(6 / 7)
        assert result.confidence == 0.85
        assert result.answer == "Use the link"

    def test_threshold_is_configurable(self):
        candidates = [make_record("1", ["how do i reset my account password"])]
        query = "how do i reset my account password now"
        assert find_similarity(query, candidates, threshold=0.9).found is False

    def test_ties_keep_first_seen(self):
        candidates = [
            make_record("first", ["open hours today"], answer="A"),
            make_record("second", ["open hours today"], answer="B"),
        ]
        result = find_similarity("open hours today please", candidates)
        assert result.record_id == "first"

    @pytest.mark.parametrize("query", ["", "a", "?? !!", "x y z"])
    def test_no_usable_tokens(self, records, query):
        result = find_similarity(query, records)
        assert result.found is False
        assert result.similarity == 0.0

    def test_prefilter_gives_same_best_match_as_full_scan(self, records):
        source = InMemoryCandidateSource(records)
        query = "học phí là bao nhiêu vậy"
        full = SimilarityMatchStrategy(keyword_prefilter=False).match(
            query, QueryContext(source=source)
        )
        filtered = SimilarityMatchStrategy(keyword_prefilter=True).match(
            query, QueryContext(source=source)
        )
        assert filtered.record_id == full.record_id
        assert filtered.similarity == full.similarity

    def test_strategy_skips_retrieval_for_empty_tokens(self, records):
        source = CountingSource(records)
        SimilarityMatchStrategy().match("a", QueryContext(source=source))
        assert source.fetch_calls == []

    def test_exact_and_lexical_share_one_fetch(self, records):
        source = CountingSource(records)
        context = QueryContext(source=source)
        ExactMatchStrategy().match("nothing here", context)
        SimilarityMatchStrategy().match("nothing here", context)
        assert source.fetch_calls == [("all", 1000)]
