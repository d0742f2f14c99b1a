"""
Hybrid passage retrieval.

Fuses lexical and dense-vector search, then re-ranks the fused
candidates by Maximal Marginal Relevance for topical diversity.

Architecture:
- retrieval/: HybridRetriever facade, score normalization, snippets, MMR
- embedding/: Gemini and Vertex AI embedding providers
- storage/: Qdrant search index provider with in-memory BM25
"""

__version__ = "0.1.0"

from .errors import (
    EmbeddingError,
    RetrievalError,
    RetrievalValidationError,
    SearchError,
)
from .models import Document, RawHit, RawSearchResult, RetrievalConfig, ScoredResult
from .providers import EmbeddingProvider, SearchIndexProvider
from .retrieval import HybridRetriever

__all__ = [
    "Document",
    "EmbeddingError",
    "EmbeddingProvider",
    "HybridRetriever",
    "RawHit",
    "RawSearchResult",
    "RetrievalConfig",
    "RetrievalError",
    "RetrievalValidationError",
    "ScoredResult",
    "SearchError",
    "SearchIndexProvider",
    "__version__",
]
