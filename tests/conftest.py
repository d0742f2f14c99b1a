"""Pytest fixtures and test utilities for the hybrid retrieval test suite."""

from typing import Any, Dict, List, Optional
from unittest.mock import AsyncMock

import pytest

from hybrid_retrieval.models import RawHit, RawSearchResult
from hybrid_retrieval.retrieval import HybridRetriever


QUERY_VECTOR = [0.1, 0.2, 0.3, 0.4]


# ============================================================================
# DATA FACTORIES
# ============================================================================


def make_source(
    doc_id: str,
    topic: str = "",
    section: str = "",
    text: str = "",
    metadata: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    """Build a search-index source snapshot."""
    source = {"id": doc_id, "topic": topic, "section": section, "text": text}
    if metadata is not None:
        source["metadata"] = metadata
    return source


def make_hits(rows: List[Dict[str, Any]]) -> RawSearchResult:
    """
    Build a RawSearchResult from hit rows.

    Each row is a dict with 'id' and 'score' plus any source fields.
    """
    hits = []
    for row in rows:
        fields = dict(row)
        doc_id = fields.pop("id")
        score = fields.pop("score")
        hits.append(RawHit(id=doc_id, score=score, source=make_source(doc_id, **fields)))
    return RawSearchResult(hits=hits, total=len(hits))


# ============================================================================
# PROVIDER FIXTURES
# ============================================================================


@pytest.fixture
def embedder():
    """
    Mock embedding provider.

    Returns:
        AsyncMock whose embed() returns one fixed vector per text
    """
    mock = AsyncMock()
    mock.embed.side_effect = lambda texts: [list(QUERY_VECTOR) for _ in texts]
    return mock


@pytest.fixture
def index():
    """
    Mock search index provider.

    Returns:
        AsyncMock whose hybrid_search() returns an empty result by default
    """
    mock = AsyncMock()
    mock.hybrid_search.return_value = RawSearchResult(hits=[], total=0)
    return mock


@pytest.fixture
def retriever(embedder, index):
    """HybridRetriever wired to the mock providers with default tuning."""
    return HybridRetriever(embedder=embedder, index=index)


@pytest.fixture
def ml_candidates():
    """Three Machine Learning / Deep Learning candidates with distinct scores."""
    return make_hits(
        [
            {
                "id": "doc1",
                "score": 0.95,
                "topic": "Machine Learning",
                "section": "Introduction",
                "text": "Machine learning is a subset of artificial intelligence.",
            },
            {
                "id": "doc2",
                "score": 0.87,
                "topic": "Deep Learning",
                "section": "Neural Networks",
                "text": "Deep learning uses neural networks with multiple layers.",
            },
            {
                "id": "doc3",
                "score": 0.82,
                "topic": "Machine Learning",
                "section": "Algorithms",
                "text": "Common algorithms include decision trees and support vector machines.",
            },
        ]
    )


@pytest.fixture
def redundant_candidates():
    """Three near-identical Machine Learning candidates and one Deep Learning outlier."""
    ml_text = "neural networks learn patterns from data"
    return make_hits(
        [
            {"id": "ml1", "score": 0.95, "topic": "Machine Learning", "section": "Introduction", "text": ml_text},
            {"id": "ml2", "score": 0.90, "topic": "Machine Learning", "section": "Introduction", "text": ml_text},
            {"id": "ml3", "score": 0.85, "topic": "Machine Learning", "section": "Introduction", "text": ml_text},
            {
                "id": "dl1",
                "score": 0.80,
                "topic": "Deep Learning",
                "section": "Architectures",
                "text": "convolutional layers extract spatial features",
            },
        ]
    )
