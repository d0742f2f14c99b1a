"""
Maximal Marginal Relevance (MMR) diversification.

Greedy selection trading relevance against redundancy:

    mmr(c) = lambda * relevance(c) - (1 - lambda) * max_sim(c, selected)

Similarity is Jaccard overlap of lowercase whitespace tokens drawn from
a document's topic, section and text. This is a lexical proxy for
"aboutness": two paraphrases with little word overlap count as diverse.
"""

from typing import List, Sequence

from ..models import Document, ScoredResult


def _token_set(text: str) -> set[str]:
    return set(text.lower().split())


def _set_jaccard(set_a: set[str], set_b: set[str]) -> float:
    union = len(set_a | set_b)
    if union == 0:
        return 0.0
    return len(set_a & set_b) / union


def jaccard_similarity(a: str, b: str) -> float:
    """
    Jaccard similarity of the lowercase token sets of two strings.

    Returns 0.0 when both strings have no tokens.
    """
    return _set_jaccard(_token_set(a), _token_set(b))


def diversity_key(document: Document) -> str:
    """Text compared between candidates when measuring redundancy."""
    return f"{document.topic} {document.section} {document.text}"


def apply_mmr(
    candidates: Sequence[ScoredResult],
    k: int,
    diversity_lambda: float,
) -> List[ScoredResult]:
    """
    Select up to ``k`` candidates by Maximal Marginal Relevance.

    The most relevant candidate is always picked first. Each later pick
    maximizes the MMR score; ties go to the earlier (more relevant)
    candidate. When the pool is no larger than ``k`` there is nothing to
    trade off and the pool is returned in relevance order.

    Args:
        candidates: Results sorted by normalized score descending
        k: Number of results to select
        diversity_lambda: 1.0 = pure relevance, 0.0 = pure novelty

    Returns:
        Selected results in selection order
    """
    if not candidates or k <= 0:
        return []

    if len(candidates) <= k:
        return list(candidates)

    # Token sets are computed once per candidate, not once per comparison
    keys = [_token_set(diversity_key(c.document)) for c in candidates]

    remaining = list(range(len(candidates)))
    first = max(remaining, key=lambda i: (candidates[i].score, -i))
    selected = [first]
    remaining.remove(first)

    # Running max similarity of each remaining candidate to the selected set
    max_sim = {i: _set_jaccard(keys[i], keys[first]) for i in remaining}

    while len(selected) < k and remaining:
        best_idx = remaining[0]
        best_score = float("-inf")

        for i in remaining:
            mmr_score = (
                diversity_lambda * candidates[i].score
                - (1 - diversity_lambda) * max_sim[i]
            )
            if mmr_score > best_score:
                best_score = mmr_score
                best_idx = i

        selected.append(best_idx)
        remaining.remove(best_idx)
        del max_sim[best_idx]

        for i in remaining:
            sim = _set_jaccard(keys[i], keys[best_idx])
            if sim > max_sim[i]:
                max_sim[i] = sim

    return [candidates[i] for i in selected]
