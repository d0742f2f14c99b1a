"""
Hybrid lexical + vector retriever with MMR diversification.

Main entry point for passage retrieval.
"""

import asyncio
import time
from dataclasses import replace
from threading import Lock
from typing import Dict, List, Optional

from loguru import logger

from ..config import Config
from ..errors import EmbeddingError, RetrievalValidationError, SearchError
from ..models import RetrievalConfig, ScoredResult
from ..providers import EmbeddingProvider, SearchIndexProvider
from .mmr import apply_mmr
from .scoring import normalize_scores


# -----------------------------------------------------------------------------
# Defaults
# -----------------------------------------------------------------------------

DEFAULT_LEXICAL_WEIGHT = 0.5
DEFAULT_VECTOR_WEIGHT = 0.5
DEFAULT_DIVERSITY_LAMBDA = 0.7
DEFAULT_MAX_SNIPPET_LENGTH = 200

# Candidate pool = max(OVERFETCH_FACTOR * k, MIN_CANDIDATE_POOL)
DEFAULT_OVERFETCH_FACTOR = 2
DEFAULT_MIN_CANDIDATE_POOL = 20

# Searches slower than this are logged as warnings
LATENCY_TARGET_MS = 500.0


def _validated_weights(lexical: float, vector: float) -> tuple[float, float]:
    """Re-normalize a weight pair to sum to 1, preserving the ratio."""
    if lexical < 0 or vector < 0:
        raise RetrievalValidationError(
            f"weights must be >= 0, got lexical={lexical} vector={vector}"
        )
    total = lexical + vector
    if total <= 0:
        raise RetrievalValidationError("lexical and vector weights cannot both be zero")
    return lexical / total, vector / total


def _validated_lambda(value: float) -> float:
    if not (0.0 <= value <= 1.0):
        raise RetrievalValidationError(f"diversity lambda must be in [0, 1], got {value}")
    return value


def _validated_snippet_length(n: int) -> int:
    if n <= 0:
        raise RetrievalValidationError(f"max snippet length must be > 0, got {n}")
    return n


class HybridRetriever:
    """
    Turns a query into a ranked, diversified list of passages.

    Architecture:
    1. Embed the query
    2. Over-fetch a candidate pool from the search index (fused lexical + vector)
    3. Normalize scores and extract query-aware snippets
    4. Select the final k by Maximal Marginal Relevance

    Each call is independent: nothing is cached between queries. The
    tunable config is swapped atomically under a lock and every search
    works from the snapshot it took at the start, so one instance can be
    shared by concurrent callers.

    Example:
        retriever = HybridRetriever(embedder=embedder, index=qdrant_index)
        retriever.set_weights(0.3, 0.7)
        results = await retriever.hybrid_search("lessons", "how do transformers work?", k=5)
    """

    def __init__(
        self,
        embedder: EmbeddingProvider,
        index: SearchIndexProvider,
        lexical_weight: float = DEFAULT_LEXICAL_WEIGHT,
        vector_weight: float = DEFAULT_VECTOR_WEIGHT,
        diversity_lambda: float = DEFAULT_DIVERSITY_LAMBDA,
        max_snippet_length: int = DEFAULT_MAX_SNIPPET_LENGTH,
        overfetch_factor: int = DEFAULT_OVERFETCH_FACTOR,
        min_candidate_pool: int = DEFAULT_MIN_CANDIDATE_POOL,
        default_timeout: Optional[float] = None,
    ):
        """
        Initialize the retriever.

        Args:
            embedder: Provider that embeds the query text
            index: Provider that runs the fused lexical + vector query
            lexical_weight: Share of the score apportioned to lexical matching
            vector_weight: Share of the score apportioned to vector similarity
            diversity_lambda: MMR trade-off (1 = relevance only, 0 = novelty only)
            max_snippet_length: Maximum characters per snippet
            overfetch_factor: Candidate pool multiplier over k
            min_candidate_pool: Lower bound on the candidate pool size
            default_timeout: Deadline in seconds used when a search passes no timeout

        Raises:
            RetrievalValidationError: If any tuning value is out of range
        """
        if overfetch_factor <= 0 or min_candidate_pool <= 0:
            raise RetrievalValidationError(
                "overfetch_factor and min_candidate_pool must be > 0, "
                f"got {overfetch_factor} and {min_candidate_pool}"
            )

        self.embedder = embedder
        self.index = index
        self.overfetch_factor = overfetch_factor
        self.min_candidate_pool = min_candidate_pool
        self.default_timeout = default_timeout or None

        lexical, vector = _validated_weights(lexical_weight, vector_weight)
        self._config = RetrievalConfig(
            lexical_weight=lexical,
            vector_weight=vector,
            diversity_lambda=_validated_lambda(diversity_lambda),
            max_snippet_length=_validated_snippet_length(max_snippet_length),
        )
        self._lock = Lock()

        # Metrics
        self._search_count = 0
        self._error_count = 0
        self._total_latency_ms = 0.0

        logger.info(
            f"HybridRetriever initialized: lexical_weight={lexical:.3f}, "
            f"vector_weight={vector:.3f}, lambda={diversity_lambda}, "
            f"overfetch={overfetch_factor}x/min {min_candidate_pool}"
        )

    @classmethod
    def from_config(
        cls, embedder: EmbeddingProvider, index: SearchIndexProvider
    ) -> "HybridRetriever":
        """Build a retriever tuned from the environment-backed Config."""
        return cls(
            embedder=embedder,
            index=index,
            lexical_weight=Config.LEXICAL_WEIGHT,
            vector_weight=Config.VECTOR_WEIGHT,
            diversity_lambda=Config.DIVERSITY_LAMBDA,
            max_snippet_length=Config.MAX_SNIPPET_LENGTH,
            overfetch_factor=Config.OVERFETCH_FACTOR,
            min_candidate_pool=Config.MIN_CANDIDATE_POOL,
            default_timeout=Config.SEARCH_TIMEOUT or None,
        )

    # -------------------------------------------------------------------------
    # Configuration
    # -------------------------------------------------------------------------

    def get_config(self) -> RetrievalConfig:
        """Return the current configuration snapshot."""
        with self._lock:
            return self._config

    def set_weights(self, lexical: float, vector: float) -> None:
        """
        Set the lexical/vector apportionment weights.

        Values are re-normalized to sum to exactly 1, keeping their ratio.

        Raises:
            RetrievalValidationError: If either weight is negative or both are zero
        """
        lexical, vector = _validated_weights(lexical, vector)
        with self._lock:
            self._config = replace(self._config, lexical_weight=lexical, vector_weight=vector)
        logger.debug(f"Weights updated: lexical={lexical:.3f}, vector={vector:.3f}")

    def set_diversity_lambda(self, value: float) -> None:
        """
        Set the MMR lambda.

        Raises:
            RetrievalValidationError: If value is outside [0, 1]; the previous value is kept
        """
        value = _validated_lambda(value)
        with self._lock:
            self._config = replace(self._config, diversity_lambda=value)
        logger.debug(f"Diversity lambda updated: {value}")

    def set_max_snippet_length(self, n: int) -> None:
        """
        Set the maximum snippet length.

        Raises:
            RetrievalValidationError: If n is not positive
        """
        n = _validated_snippet_length(n)
        with self._lock:
            self._config = replace(self._config, max_snippet_length=n)
        logger.debug(f"Max snippet length updated: {n}")

    def candidate_pool_size(self, k: int) -> int:
        """Number of candidates to request from the index for a final k."""
        return max(self.overfetch_factor * k, self.min_candidate_pool)

    # -------------------------------------------------------------------------
    # Search
    # -------------------------------------------------------------------------

    async def hybrid_search(
        self,
        index: str,
        query: str,
        k: int,
        timeout: Optional[float] = None,
    ) -> List[ScoredResult]:
        """
        Retrieve the top k diversified passages for a query.

        Args:
            index: Name of the index to search
            query: Natural-language query (must not be blank)
            k: Number of results wanted (must be > 0)
            timeout: Deadline in seconds for the whole call; falls back to
                default_timeout when None

        Returns:
            Up to k ScoredResult objects in MMR selection order

        Raises:
            RetrievalValidationError: Blank query or k <= 0 (no network calls made)
            EmbeddingError: The embedding provider failed
            SearchError: The search index failed
            asyncio.TimeoutError: The timeout expired
            asyncio.CancelledError: The calling task was cancelled
        """
        if not query or not query.strip():
            raise RetrievalValidationError("query must not be empty")
        if k <= 0:
            raise RetrievalValidationError(f"k must be > 0, got {k}")

        query = query.strip()
        config = self.get_config()
        if timeout is None:
            timeout = self.default_timeout

        if timeout is None:
            return await self._search(index, query, k, config)

        try:
            return await asyncio.wait_for(
                self._search(index, query, k, config), timeout=timeout
            )
        except asyncio.TimeoutError:
            with self._lock:
                self._error_count += 1
            logger.error(f"Hybrid search timed out after {timeout}s: index={index}")
            raise

    async def _search(
        self,
        index: str,
        query: str,
        k: int,
        config: RetrievalConfig,
    ) -> List[ScoredResult]:
        start_time = time.perf_counter()
        pool_size = self.candidate_pool_size(k)

        logger.info(f"Starting hybrid search: index={index}, query='{query[:50]}', k={k}")

        try:
            # Step 1: Embed the query
            query_vector = await self._embed_query(query)

            # Step 2: Fetch an over-sized candidate pool
            raw = await self._fetch_candidates(index, query, query_vector, pool_size)
        except (EmbeddingError, SearchError):
            with self._lock:
                self._error_count += 1
            raise

        # Step 3: Normalize and snippet, keeping relevance order
        candidates = normalize_scores(raw.hits, query, config)
        candidates.sort(key=lambda c: c.score, reverse=True)

        # Step 4: Diversify
        results = apply_mmr(candidates, k, config.diversity_lambda)

        latency_ms = (time.perf_counter() - start_time) * 1000
        with self._lock:
            self._search_count += 1
            self._total_latency_ms += latency_ms

        logger.info(
            f"Hybrid search completed: index={index}, candidates={len(candidates)}, "
            f"results={len(results)}, latency={latency_ms:.1f}ms"
        )
        if latency_ms > LATENCY_TARGET_MS:
            logger.warning(
                f"Search latency {latency_ms:.1f}ms exceeds {LATENCY_TARGET_MS:.0f}ms target"
            )

        return results

    async def _embed_query(self, query: str) -> List[float]:
        logger.debug(f"Embedding query: '{query[:50]}'")
        try:
            vectors = await self.embedder.embed([query])
        except Exception as e:
            logger.error(f"Stage embed failed: {e}")
            raise EmbeddingError(f"failed to embed query: {e}") from e

        if not vectors or not vectors[0]:
            logger.error("Stage embed failed: no embeddings returned")
            raise EmbeddingError("failed to embed query: no embeddings returned")

        return list(vectors[0])

    async def _fetch_candidates(self, index, query, query_vector, pool_size):
        logger.debug(f"Fetching {pool_size} candidates from index {index}")
        try:
            raw = await self.index.hybrid_search(index, query, query_vector, pool_size)
        except Exception as e:
            logger.error(f"Stage search failed: index={index}, error={e}")
            raise SearchError(f"failed to execute search: {e}") from e

        logger.debug(f"Index returned {len(raw.hits)} hits (total={raw.total})")
        return raw

    # -------------------------------------------------------------------------
    # Metrics
    # -------------------------------------------------------------------------

    def get_metrics(self) -> Dict:
        """
        Get retrieval metrics.

        Failed searches (embedding, index or deadline failures) count in
        error_count; cancelled searches are not counted.

        Returns:
            Dict with search statistics and the current config
        """
        with self._lock:
            search_count = self._search_count
            total_latency_ms = self._total_latency_ms
            error_count = self._error_count
            config = self._config

        avg_latency = total_latency_ms / search_count if search_count > 0 else 0

        return {
            "search_count": search_count,
            "error_count": error_count,
            "total_latency_ms": total_latency_ms,
            "avg_latency_ms": avg_latency,
            "overfetch_factor": self.overfetch_factor,
            "min_candidate_pool": self.min_candidate_pool,
            "default_timeout": self.default_timeout,
            **config.to_dict(),
        }
