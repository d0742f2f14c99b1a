"""
Score normalization and query-aware snippet extraction.

Raw hits arrive with one engine-defined fused score each. They are
min-max scaled to [0, 1] within the batch, and the scaled score is then
apportioned between a lexical and a vector component by the configured
weights. The apportionment is for observability only: the engine never
reports the two legs separately.
"""

from typing import List, Sequence

from ..models import Document, RawHit, RetrievalConfig, ScoredResult


def min_max_normalize(scores: Sequence[float]) -> List[float]:
    """
    Scale scores to [0, 1] by the batch min and max.

    A flat batch (max == min) carries no ranking signal; every entry is
    treated as maximally relevant and gets 1.0.

    Args:
        scores: Raw scores

    Returns:
        Normalized scores in input order
    """
    if not scores:
        return []

    low = min(scores)
    high = max(scores)
    spread = high - low

    if spread <= 0:
        return [1.0 for _ in scores]

    return [(s - low) / spread for s in scores]


def _first_match(text_lower: str, query: str) -> tuple[int, int]:
    """Return (position, length) of the earliest query token in text, or (-1, 0)."""
    best_pos = -1
    best_len = 0
    for token in query.lower().split():
        pos = text_lower.find(token)
        if pos == -1:
            continue
        if best_pos == -1 or pos < best_pos:
            best_pos = pos
            best_len = len(token)
    return best_pos, best_len


def extract_snippet(text: str, query: str, max_len: int) -> str:
    """
    Extract a window of ``max_len`` characters centered on the query.

    The window is centered on the earliest case-insensitive occurrence of
    any whitespace-separated query token and shifted to stay inside the
    text. Without a match the first ``max_len`` characters are returned.

    Args:
        text: Document text
        query: Query text
        max_len: Maximum snippet length (positive)

    Returns:
        Snippet, never longer than ``max_len`` when ``text`` is
    """
    if len(text) <= max_len:
        return text

    pos, length = _first_match(text.lower(), query)
    if pos == -1:
        return text[:max_len]

    center = pos + length // 2
    start = center - max_len // 2
    start = max(0, min(start, len(text) - max_len))

    return text[start:start + max_len]


def normalize_scores(
    hits: Sequence[RawHit],
    query: str,
    config: RetrievalConfig,
) -> List[ScoredResult]:
    """
    Turn raw hits into scored results with snippets.

    Order is preserved, so results stay in the index's relevance order.

    Args:
        hits: Raw hits, sorted by fused score descending
        query: Query text used for snippeting
        config: Weights and snippet length to apply

    Returns:
        One ScoredResult per hit
    """
    normalized = min_max_normalize([hit.score for hit in hits])

    results = []
    for hit, score in zip(hits, normalized):
        document = Document.from_source(hit.source)
        if not document.id:
            document.id = hit.id

        results.append(
            ScoredResult(
                document=document,
                score=score,
                lexical_score=score * config.lexical_weight,
                vector_score=score * config.vector_weight,
                snippet=extract_snippet(document.text, query, config.max_snippet_length),
            )
        )

    return results
