# storage/bm25.py
"""
BM25 lexical scoring for the lexical leg of the Qdrant hybrid index.

Qdrant only scores vectors, so term matching is done in memory over the
payload texts scrolled out of the collection.
"""

import math
import re
from collections import Counter
from dataclasses import dataclass, field

from loguru import logger

_TOKEN_RE = re.compile(r"[a-z0-9_]+")


def tokenize(text: str) -> list[str]:
    """
    Tokenize text for BM25 indexing.

    Lowercases, splits on non-alphanumeric characters and drops
    single-character tokens other than "a" and "i".
    """
    if not text:
        return []
    tokens = _TOKEN_RE.findall(text.lower())
    return [t for t in tokens if len(t) > 1 or t in {"a", "i"}]


@dataclass
class BM25Index:
    """
    In-memory Okapi BM25 index keyed by document id.

    BM25 Parameters:
    - k1: Term frequency saturation (default 1.5)
    - b: Document length normalization (default 0.75)

    Example:
        index = BM25Index()
        index.build_index([
            {"id": "d1", "text": "gradient descent optimizes the loss"},
            {"id": "d2", "text": "attention layers in transformers"},
        ])
        index.search("gradient descent", top_k=10)
        # [("d1", 1.32)]
    """

    k1: float = 1.5
    b: float = 0.75

    _term_freqs: dict[str, Counter] = field(default_factory=dict)  # doc_id -> term counts
    _doc_lengths: dict[str, int] = field(default_factory=dict)
    _doc_freqs: dict[str, int] = field(default_factory=dict)  # term -> docs containing it
    _idf: dict[str, float] = field(default_factory=dict)
    _avg_doc_length: float = 0.0
    _is_built: bool = False

    def build_index(self, docs: list[dict]) -> None:
        """
        Build the index from scratch.

        Args:
            docs: List of dicts with 'id' and 'text' keys; entries without an id are skipped
        """
        self.clear()

        total_length = 0
        for doc in docs:
            doc_id = doc.get("id")
            if not doc_id:
                logger.warning("Skipping BM25 document without id")
                continue

            tokens = tokenize(doc.get("text", ""))
            self._term_freqs[doc_id] = Counter(tokens)
            self._doc_lengths[doc_id] = len(tokens)
            total_length += len(tokens)

            for term in set(tokens):
                self._doc_freqs[term] = self._doc_freqs.get(term, 0) + 1

        total_docs = len(self._term_freqs)
        if total_docs:
            self._avg_doc_length = total_length / total_docs

        # Smoothed IDF keeps every score non-negative
        for term, df in self._doc_freqs.items():
            self._idf[term] = math.log((total_docs - df + 0.5) / (df + 0.5) + 1)

        self._is_built = True
        logger.info(
            f"BM25 index built: {total_docs} documents, "
            f"{len(self._doc_freqs)} unique terms, "
            f"avg length {self._avg_doc_length:.1f}"
        )

    def search(self, query: str, top_k: int = 30) -> list[tuple[str, float]]:
        """
        Score every document against the query.

        Returns:
            (doc_id, score) pairs with score > 0, sorted by score descending
        """
        if not self._is_built:
            logger.warning("BM25 index not built, returning empty results")
            return []

        query_tokens = tokenize(query)
        if not query_tokens:
            return []

        scores = {}
        for doc_id, term_freqs in self._term_freqs.items():
            score = self._score_document(query_tokens, term_freqs, self._doc_lengths[doc_id])
            if score > 0:
                scores[doc_id] = score

        ranked = sorted(scores.items(), key=lambda x: x[1], reverse=True)
        return ranked[:top_k]

    def _score_document(self, query_tokens: list[str], term_freqs: Counter, doc_length: int) -> float:
        # score(D, Q) = sum(IDF(q) * tf * (k1 + 1) / (tf + k1 * (1 - b + b * |D| / avgdl)))
        if doc_length == 0:
            return 0.0

        score = 0.0
        for term in query_tokens:
            tf = term_freqs.get(term, 0)
            if tf == 0:
                continue
            idf = self._idf.get(term, 0.0)
            denominator = tf + self.k1 * (1 - self.b + self.b * doc_length / self._avg_doc_length)
            score += idf * tf * (self.k1 + 1) / denominator

        return score

    @property
    def is_built(self) -> bool:
        return self._is_built

    def get_index_stats(self) -> dict:
        """Get statistics about the current index."""
        return {
            "total_documents": len(self._term_freqs),
            "unique_terms": len(self._doc_freqs),
            "avg_doc_length": self._avg_doc_length,
            "is_built": self._is_built,
            "k1": self.k1,
            "b": self.b,
        }

    def clear(self) -> None:
        """Clear the entire index."""
        self._term_freqs.clear()
        self._doc_lengths.clear()
        self._doc_freqs.clear()
        self._idf.clear()
        self._avg_doc_length = 0.0
        self._is_built = False
