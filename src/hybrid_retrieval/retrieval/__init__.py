"""
Hybrid retrieval: fused lexical + vector search with MMR diversification.

Components:
- HybridRetriever: Facade that embeds, over-fetches, normalizes and diversifies
- normalize_scores / extract_snippet: Batch score scaling and query-aware snippets
- apply_mmr / jaccard_similarity: Diversity-aware re-ranking

Architecture:
1. Embed query
2. Fetch max(2k, 20) candidates from the search index
3. Min-max normalize fused scores, apportion by weights, extract snippets
4. Select k by Maximal Marginal Relevance
"""

from .mmr import apply_mmr, diversity_key, jaccard_similarity
from .retriever import (
    DEFAULT_DIVERSITY_LAMBDA,
    DEFAULT_LEXICAL_WEIGHT,
    DEFAULT_MAX_SNIPPET_LENGTH,
    DEFAULT_MIN_CANDIDATE_POOL,
    DEFAULT_OVERFETCH_FACTOR,
    DEFAULT_VECTOR_WEIGHT,
    HybridRetriever,
)
from .scoring import extract_snippet, min_max_normalize, normalize_scores

__all__ = [
    "DEFAULT_DIVERSITY_LAMBDA",
    "DEFAULT_LEXICAL_WEIGHT",
    "DEFAULT_MAX_SNIPPET_LENGTH",
    "DEFAULT_MIN_CANDIDATE_POOL",
    "DEFAULT_OVERFETCH_FACTOR",
    "DEFAULT_VECTOR_WEIGHT",
    "HybridRetriever",
    "apply_mmr",
    "diversity_key",
    "extract_snippet",
    "jaccard_similarity",
    "min_max_normalize",
    "normalize_scores",
]
