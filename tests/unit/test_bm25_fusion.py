"""Unit tests for weighted rank fusion"""

import pytest

from ragbot.bm25.fusion import (
    FUSION_LIST_SIZE,
    LEXICAL_WEIGHT,
    VECTOR_WEIGHT,
    hybrid_fusion,
    normalized_rank_score,
    weighted_rank_fusion,
)
from ragbot.models import ScoredChunk

pytestmark = pytest.mark.unit


@pytest.fixture
def ranking(make_chunk):
    """Build a best-first ranking from chunk ids (scores are irrelevant to fusion)"""
    def _ranking(*ids, score=10.0):
        return [ScoredChunk(chunk=make_chunk(chunk_id), score=score - i) for i, chunk_id in enumerate(ids)]
    return _ranking


class TestNormalizedRankScore:

    def test_top5_scores(self):
        assert [normalized_rank_score(i, 5) for i in range(5)] == pytest.approx([1.0, 0.8, 0.6, 0.4, 0.2])

    def test_single_item_list(self):
        assert normalized_rank_score(0, 1) == 1.0


class TestHybridFusion:
    """Test 0.6 lexical / 0.4 vector fusion of top-5 lists"""

    def test_default_weights(self):
        assert LEXICAL_WEIGHT == 0.6
        assert VECTOR_WEIGHT == 0.4
        assert FUSION_LIST_SIZE == 5

    def test_overlapping_lists(self, ranking):
        """Chunks in both lists accumulate both weighted rank scores"""
        lexical = ranking("a", "b", "c", "d", "e")
        vector = ranking("c", "a", "f", "g", "h")

        fused = hybrid_fusion(lexical, vector)
        scores = {r.chunk_id: r.score for r in fused}

        assert len(fused) == 5
        assert [r.chunk_id for r in fused[:3]] == ["a", "c", "b"]
        assert scores["a"] == pytest.approx(0.6 * 1.0 + 0.4 * 0.8)
        assert scores["c"] == pytest.approx(0.6 * 0.6 + 0.4 * 1.0)
        assert scores["b"] == pytest.approx(0.6 * 0.8)
        # d (lexical rank 3) and f (vector rank 2) tie at 0.24; their order is unspecified
        assert {r.chunk_id for r in fused[3:]} == {"d", "f"}
        assert scores["d"] == pytest.approx(0.24)
        assert scores["f"] == pytest.approx(0.24)

    def test_deduplicated_by_chunk_id(self, ranking):
        fused = hybrid_fusion(ranking("a", "b"), ranking("b", "a"))
        assert sorted(r.chunk_id for r in fused) == ["a", "b"]

    def test_chunk_in_both_lists_beats_same_position_in_one(self, ranking):
        fused = hybrid_fusion(ranking("x", "y"), ranking("x", "z"))
        assert fused[0].chunk_id == "x"
        assert fused[0].score == pytest.approx(1.0)

    def test_only_top5_of_each_list_used(self, ranking):
        lexical = ranking("a", "b", "c", "d", "e", "late")
        fused = hybrid_fusion(lexical, [])
        assert "late" not in {r.chunk_id for r in fused}

    def test_raw_scores_ignored(self, ranking):
        """Only positions matter, not score magnitudes"""
        small = hybrid_fusion(ranking("a", "b", score=0.5), ranking("b", "a", score=0.9))
        large = hybrid_fusion(ranking("a", "b", score=900.0), ranking("b", "a", score=0.9))
        assert [(r.chunk_id, r.score) for r in small] == [(r.chunk_id, r.score) for r in large]

    def test_empty_vector_ranking(self, ranking):
        fused = hybrid_fusion(ranking("a", "b", "c"), [])
        assert [r.chunk_id for r in fused] == ["a", "b", "c"]
        assert [r.score for r in fused] == pytest.approx([0.6, 0.4, 0.2])

    def test_short_list_normalized_by_its_own_length(self, ranking):
        fused = hybrid_fusion([], ranking("a", "b"))
        assert [r.score for r in fused] == pytest.approx([0.4, 0.2])


class TestWeightedRankFusion:

    def test_custom_sizes(self, ranking):
        fused = weighted_rank_fusion([(ranking("a", "b", "c"), 1.0)], list_size=2, top_k=1)
        assert [r.chunk_id for r in fused] == ["a"]
        assert fused[0].score == pytest.approx(1.0)

    def test_keeps_chunk_objects(self, ranking):
        lexical = ranking("a")
        fused = weighted_rank_fusion([(lexical, 1.0)])
        assert fused[0].chunk is lexical[0].chunk
