"""
Tests for score normalization and snippet extraction.

Tests:
- Min-max bounds and flat batches
- Lexical/vector apportionment sums to the normalized score
- Snippet centering, clamping and fallback
"""

import pytest

from conftest import make_hits
from hybrid_retrieval.models import RawHit, RetrievalConfig
from hybrid_retrieval.retrieval.scoring import (
    extract_snippet,
    min_max_normalize,
    normalize_scores,
)


@pytest.fixture
def config():
    return RetrievalConfig(
        lexical_weight=0.5,
        vector_weight=0.5,
        diversity_lambda=0.7,
        max_snippet_length=200,
    )


class TestMinMaxNormalize:
    """Test suite for min_max_normalize."""

    def test_empty(self):
        assert min_max_normalize([]) == []

    def test_bounds_on_non_flat_batch(self):
        normalized = min_max_normalize([3.2, 7.5, -1.0, 4.4])
        assert max(normalized) == 1.0
        assert min(normalized) == 0.0
        assert all(0.0 <= s <= 1.0 for s in normalized)

    def test_flat_batch_is_all_ones(self):
        """Identical raw scores carry no signal; all are maximally relevant."""
        assert min_max_normalize([0.42, 0.42, 0.42]) == [1.0, 1.0, 1.0]

    def test_single_score_is_one(self):
        assert min_max_normalize([12.0]) == [1.0]

    def test_preserves_input_order(self):
        assert min_max_normalize([1.0, 3.0, 2.0]) == [0.0, 1.0, 0.5]


class TestNormalizeScores:
    """Test suite for normalize_scores."""

    def test_scores_scaled_between_batch_min_and_max(self, ml_candidates, config):
        results = normalize_scores(ml_candidates.hits, "machine learning", config)

        assert [r.document.id for r in results] == ["doc1", "doc2", "doc3"]
        assert results[0].score == pytest.approx(1.0)
        assert results[1].score == pytest.approx((0.87 - 0.82) / (0.95 - 0.82))
        assert results[2].score == pytest.approx(0.0)

    def test_equal_weights_split_score_in_half(self, ml_candidates, config):
        for r in normalize_scores(ml_candidates.hits, "machine learning", config):
            assert r.lexical_score == pytest.approx(r.score * 0.5)
            assert r.vector_score == pytest.approx(r.score * 0.5)

    def test_components_sum_to_score(self, ml_candidates):
        config = RetrievalConfig(
            lexical_weight=0.25, vector_weight=0.75, diversity_lambda=0.7, max_snippet_length=200
        )
        for r in normalize_scores(ml_candidates.hits, "learning", config):
            assert r.lexical_score + r.vector_score == pytest.approx(r.score)
            assert r.vector_score == pytest.approx(3 * r.lexical_score)

    def test_flat_batch_scores(self, config):
        hits = make_hits([{"id": f"d{i}", "score": 2.5, "text": "same"} for i in range(4)])
        results = normalize_scores(hits.hits, "same", config)
        assert all(r.score == 1.0 for r in results)

    def test_empty_batch(self, config):
        assert normalize_scores([], "anything", config) == []

    def test_document_fields_mapped_from_source(self, config):
        hits = make_hits(
            [
                {
                    "id": "d1",
                    "score": 1.0,
                    "topic": "Optimization",
                    "section": "SGD",
                    "text": "Stochastic gradient descent.",
                    "metadata": {"lang": "en"},
                }
            ]
        )
        doc = normalize_scores(hits.hits, "gradient", config)[0].document

        assert doc.id == "d1"
        assert doc.topic == "Optimization"
        assert doc.section == "SGD"
        assert doc.text == "Stochastic gradient descent."
        assert doc.metadata == {"lang": "en"}

    def test_missing_source_id_falls_back_to_hit_id(self, config):
        hit = RawHit(id="es-17", score=1.0, source={"text": "no id in source"})
        doc = normalize_scores([hit], "id", config)[0].document
        assert doc.id == "es-17"

    def test_snippet_uses_configured_length(self):
        config = RetrievalConfig(
            lexical_weight=0.5, vector_weight=0.5, diversity_lambda=0.7, max_snippet_length=20
        )
        hits = make_hits([{"id": "d1", "score": 1.0, "text": "x" * 100}])
        assert len(normalize_scores(hits.hits, "y", config)[0].snippet) == 20


class TestExtractSnippet:
    """Test suite for extract_snippet."""

    def test_short_text_returned_unchanged(self):
        text = "Short passage about attention."
        assert extract_snippet(text, "attention", 200) == text

    def test_text_of_exact_length_unchanged(self):
        text = "a" * 50
        assert extract_snippet(text, "b", 50) == text

    def test_no_match_falls_back_to_prefix(self):
        text = "abcdefghij" * 10
        assert extract_snippet(text, "zebra", 15) == text[:15]

    def test_window_centered_on_match(self):
        text = "." * 100 + "TARGET" + "." * 100
        snippet = extract_snippet(text, "target", 20)

        assert len(snippet) == 20
        assert "TARGET" in snippet
        # Match occupies the middle of the window
        start = snippet.index("TARGET")
        assert abs(start - (20 - len("TARGET") - start)) <= 1

    def test_case_insensitive_match(self):
        text = "x" * 300 + "Transformer" + "y" * 300
        assert "Transformer" in extract_snippet(text, "TRANSFORMER", 50)

    def test_window_clamped_at_start(self):
        text = "needle" + "." * 200
        snippet = extract_snippet(text, "needle", 40)
        assert snippet == text[:40]

    def test_window_clamped_at_end(self):
        text = "." * 200 + "needle"
        snippet = extract_snippet(text, "needle", 40)
        assert snippet == text[-40:]

    def test_earliest_token_wins(self):
        text = "." * 100 + "beta" + "." * 100 + "alpha" + "." * 100
        snippet = extract_snippet(text, "alpha beta", 30)
        assert "beta" in snippet
        assert "alpha" not in snippet

    @pytest.mark.parametrize("max_len", [1, 7, 30, 199])
    def test_length_bound(self, max_len):
        text = "The quick brown fox jumps over the lazy dog. " * 10
        assert len(extract_snippet(text, "lazy fox", max_len)) <= max_len

    def test_deterministic(self):
        text = "gradient " * 100
        assert extract_snippet(text, "gradient", 40) == extract_snippet(text, "gradient", 40)

    def test_blank_query_falls_back_to_prefix(self):
        text = "0123456789" * 5
        assert extract_snippet(text, "   ", 10) == "0123456789"
