"""Search index providers - Qdrant vectors fused with in-memory BM25."""

from .bm25 import BM25Index, tokenize
from .qdrant_index import QdrantHybridIndex

__all__ = [
    "BM25Index",
    "QdrantHybridIndex",
    "tokenize",
]
