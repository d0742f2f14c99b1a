# storage/qdrant_index.py
"""
Qdrant-backed search index provider with fused lexical + vector scoring.
"""

import asyncio
from typing import Any, Optional

from loguru import logger
from qdrant_client import AsyncQdrantClient

from ..config import Config
from ..models import RawHit, RawSearchResult
from .bm25 import BM25Index

# Field boosts for the lexical leg, applied by repeating the field text
LEXICAL_FIELD_REPEATS = {"text": 2, "topic": 2, "section": 1}

SCROLL_PAGE_SIZE = 256
DEFAULT_SEARCH_SIZE = 10


def _lexical_text(payload: dict[str, Any]) -> str:
    parts = []
    for name, repeats in LEXICAL_FIELD_REPEATS.items():
        value = payload.get(name)
        if isinstance(value, str) and value:
            parts.extend([value] * repeats)
    return " ".join(parts)


def _normalize(scores: dict[str, float]) -> dict[str, float]:
    """Min-max scale one leg to [0, 1]; a flat leg maps to 0.5."""
    if not scores:
        return {}
    high = max(scores.values())
    low = min(scores.values())
    spread = high - low
    if spread > 0:
        return {k: (v - low) / spread for k, v in scores.items()}
    return {k: 0.5 for k in scores}


class QdrantHybridIndex:
    """
    Hybrid search over a Qdrant collection.

    The index name passed to ``hybrid_search`` is the collection name.

    Architecture:
    1. Vector leg: Qdrant nearest-neighbour query with the query vector
    2. Lexical leg: in-memory BM25 over payload text (lazily built per collection)
    3. Fusion: each leg min-max normalized, then weighted sum

    Example:
        index = QdrantHybridIndex(url="http://localhost:6333")
        result = await index.hybrid_search("lessons", "backprop", vector, size=20)
    """

    def __init__(
        self,
        url: str = "http://localhost:6333",
        api_key: Optional[str] = None,
        timeout: int = 30,
        lexical_weight: float = 0.3,
        vector_weight: float = 0.7,
        client: Optional[AsyncQdrantClient] = None,
    ):
        if lexical_weight < 0 or vector_weight < 0 or lexical_weight + vector_weight == 0:
            raise ValueError(
                f"Invalid fusion weights: lexical={lexical_weight}, vector={vector_weight}"
            )

        if client is not None:
            self.client = client
        elif api_key:
            self.client = AsyncQdrantClient(url=url, api_key=api_key, timeout=timeout)
        else:
            self.client = AsyncQdrantClient(url=url, timeout=timeout)

        total = lexical_weight + vector_weight
        self.lexical_weight = lexical_weight / total
        self.vector_weight = vector_weight / total

        # Per-collection lexical state
        self._bm25: dict[str, BM25Index] = {}
        self._payloads: dict[str, dict[str, dict]] = {}
        self._build_locks: dict[str, asyncio.Lock] = {}

    @classmethod
    def from_config(cls) -> "QdrantHybridIndex":
        """Build an index provider from the environment-backed Config."""
        return cls(
            url=Config.QDRANT_URL,
            api_key=Config.QDRANT_API_KEY or None,
            timeout=Config.QDRANT_TIMEOUT,
            lexical_weight=Config.INDEX_LEXICAL_WEIGHT,
            vector_weight=Config.INDEX_VECTOR_WEIGHT,
        )

    async def hybrid_search(
        self,
        index: str,
        query_text: str,
        query_vector: list[float],
        size: int,
    ) -> RawSearchResult:
        """
        Run the fused lexical + vector query.

        Args:
            index: Collection name
            query_text: Query for the lexical leg
            query_vector: Query embedding for the vector leg
            size: Maximum number of hits to return (<= 0 means 10)

        Returns:
            RawSearchResult with hits sorted by fused score descending
        """
        if size <= 0:
            size = DEFAULT_SEARCH_SIZE

        # Each leg fetches extra so the fusion has overlap to work with
        leg_size = size * 2

        semantic = await self._search_vectors(index, query_vector, leg_size)
        lexical = await self._search_lexical(index, query_text, leg_size)

        fused = self._fuse(index, semantic, lexical)
        fused.sort(key=lambda hit: hit.score, reverse=True)

        logger.debug(
            f"Qdrant hybrid search: collection={index}, vector_hits={len(semantic)}, "
            f"lexical_hits={len(lexical)}, fused={len(fused)}"
        )

        return RawSearchResult(hits=fused[:size], total=len(fused))

    async def _search_vectors(
        self, index: str, query_vector: list[float], limit: int
    ) -> dict[str, tuple[float, dict]]:
        response = await self.client.query_points(
            collection_name=index,
            query=query_vector,
            limit=limit,
            with_payload=True,
        )
        return {
            str(point.id): (point.score, point.payload or {})
            for point in response.points
        }

    async def _search_lexical(self, index: str, query_text: str, limit: int) -> dict[str, float]:
        bm25 = await self._get_bm25(index)
        return dict(bm25.search(query_text, top_k=limit))

    async def _get_bm25(self, index: str) -> BM25Index:
        """Return the BM25 index for a collection, building it on first use."""
        bm25 = self._bm25.get(index)
        if bm25 is not None:
            return bm25

        lock = self._build_locks.setdefault(index, asyncio.Lock())
        async with lock:
            # Another task may have finished the build while we waited
            bm25 = self._bm25.get(index)
            if bm25 is not None:
                return bm25

            payloads = await self._scroll_payloads(index)
            bm25 = BM25Index()
            bm25.build_index(
                [{"id": doc_id, "text": _lexical_text(p)} for doc_id, p in payloads.items()]
            )
            self._payloads[index] = payloads
            self._bm25[index] = bm25
            return bm25

    async def _scroll_payloads(self, index: str) -> dict[str, dict]:
        logger.info(f"Building BM25 index for collection: {index}")

        payloads: dict[str, dict] = {}
        offset = None
        while True:
            records, offset = await self.client.scroll(
                collection_name=index,
                limit=SCROLL_PAGE_SIZE,
                offset=offset,
                with_payload=True,
                with_vectors=False,
            )
            for record in records:
                payloads[str(record.id)] = record.payload or {}
            if offset is None:
                break

        if not payloads:
            logger.warning(f"No points found in collection {index}")
        return payloads

    def _fuse(
        self,
        index: str,
        semantic: dict[str, tuple[float, dict]],
        lexical: dict[str, float],
    ) -> list[RawHit]:
        semantic_norm = _normalize({k: score for k, (score, _) in semantic.items()})
        lexical_norm = _normalize(lexical)
        corpus = self._payloads.get(index, {})

        # Vector rank order, then lexical-only hits in BM25 rank order
        doc_ids = list(semantic) + [d for d in lexical if d not in semantic]

        hits = []
        for doc_id in doc_ids:
            if doc_id in semantic:
                payload = semantic[doc_id][1]
            else:
                payload = corpus.get(doc_id, {})

            score = (
                self.vector_weight * semantic_norm.get(doc_id, 0.0)
                + self.lexical_weight * lexical_norm.get(doc_id, 0.0)
            )
            hits.append(RawHit(id=doc_id, score=score, source=dict(payload)))

        return hits

    def invalidate_lexical_index(self, index: Optional[str] = None) -> None:
        """Drop cached BM25 state so it is rebuilt on the next search."""
        if index is None:
            self._bm25.clear()
            self._payloads.clear()
            self._build_locks.clear()
        else:
            self._bm25.pop(index, None)
            self._payloads.pop(index, None)
            self._build_locks.pop(index, None)
        logger.info(f"BM25 cache invalidated: {index or 'all collections'}")

    def get_lexical_stats(self) -> dict[str, dict]:
        """BM25 statistics per collection with a built lexical index."""
        return {name: bm25.get_index_stats() for name, bm25 in self._bm25.items()}

    async def health_check(self, index: str) -> tuple[bool, str]:
        """Check if the collection is reachable and green."""
        try:
            info = await self.client.get_collection(index)
        except Exception as e:
            return False, f"Connection error: {e}"

        status = getattr(info.status, "value", str(info.status))
        if status == "green":
            return True, f"Healthy: {info.points_count} points"
        return False, f"Status: {status}"

    async def close(self) -> None:
        await self.client.close()
