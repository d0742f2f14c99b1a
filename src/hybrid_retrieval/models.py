"""
Data types shared by the retriever, the rerankers and the providers.

Field names on the wire (``RawHit.source``) are a contract with the
search index: ``id``, ``topic``, ``section``, ``text``, ``embedding``,
``metadata``, ``created_at``, ``updated_at``.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List


def _str_field(source: Dict[str, Any], key: str) -> str:
    value = source.get(key)
    return value if isinstance(value, str) else ""


@dataclass
class Document:
    """A unit of indexed content."""

    id: str
    topic: str = ""
    section: str = ""
    text: str = ""
    embedding: List[float] = field(default_factory=list)
    metadata: Dict[str, str] = field(default_factory=dict)
    created_at: str = ""
    updated_at: str = ""

    @classmethod
    def from_source(cls, source: Dict[str, Any]) -> "Document":
        """
        Build a Document from a search-index source snapshot.

        Missing or wrongly typed fields map to their zero value; metadata
        keeps only string keys with string values.

        Args:
            source: Key-value snapshot returned with a hit

        Returns:
            New Document instance
        """
        source = source or {}

        embedding = source.get("embedding")
        if isinstance(embedding, (list, tuple)):
            vector = [float(x) for x in embedding if isinstance(x, (int, float))]
        else:
            vector = []

        raw_metadata = source.get("metadata")
        if isinstance(raw_metadata, dict):
            metadata = {
                k: v for k, v in raw_metadata.items()
                if isinstance(k, str) and isinstance(v, str)
            }
        else:
            metadata = {}

        return cls(
            id=_str_field(source, "id"),
            topic=_str_field(source, "topic"),
            section=_str_field(source, "section"),
            text=_str_field(source, "text"),
            embedding=vector,
            metadata=metadata,
            created_at=_str_field(source, "created_at"),
            updated_at=_str_field(source, "updated_at"),
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization (embedding omitted)."""
        return {
            "id": self.id,
            "topic": self.topic,
            "section": self.section,
            "text": self.text,
            "metadata": dict(self.metadata),
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }


@dataclass
class RawHit:
    """One scored hit from the search index. Score scale is engine-defined."""

    id: str
    score: float
    source: Dict[str, Any] = field(default_factory=dict)


@dataclass
class RawSearchResult:
    """Hits returned by the search index, pre-sorted by fused score."""

    hits: List[RawHit] = field(default_factory=list)
    total: int = 0


@dataclass(frozen=True)
class ScoredResult:
    """
    A retrieved passage with normalized scores and a query-aware snippet.

    ``score`` is normalized to [0, 1] within the candidate batch.
    ``lexical_score`` and ``vector_score`` are an apportionment of that
    single fused score by the configured weights, NOT two independently
    measured scores. They always sum to ``score``.
    """

    document: Document
    score: float
    lexical_score: float
    vector_score: float
    snippet: str

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "doc": self.document.to_dict(),
            "score": self.score,
            "lexical_score": self.lexical_score,
            "vector_score": self.vector_score,
            "snippet": self.snippet,
        }


@dataclass(frozen=True)
class RetrievalConfig:
    """
    Tunable retrieval parameters.

    Instances are immutable snapshots; the retriever swaps in a new one
    on every setter call so a search in flight never sees a torn update.
    """

    lexical_weight: float
    vector_weight: float
    diversity_lambda: float
    max_snippet_length: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "lexical_weight": self.lexical_weight,
            "vector_weight": self.vector_weight,
            "diversity_lambda": self.diversity_lambda,
            "max_snippet_length": self.max_snippet_length,
        }
