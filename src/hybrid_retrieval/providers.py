"""Capability interfaces the retriever depends on."""

from typing import List, Protocol

from .models import RawSearchResult


class EmbeddingProvider(Protocol):
    """Converts text into fixed-dimension dense vectors."""

    async def embed(self, texts: List[str]) -> List[List[float]]:
        """Return one vector per input text, in the same order."""


class SearchIndexProvider(Protocol):
    """Executes one fused lexical + vector query against an index."""

    async def hybrid_search(
        self,
        index: str,
        query_text: str,
        query_vector: List[float],
        size: int,
    ) -> RawSearchResult:
        """Return up to ``size`` hits sorted descending by fused score."""
