"""
Ranking metrics for shift evaluation.

Measures how well a (shifted) query ranks its known-relevant document:
- Cosine ranking of a document set
- Reciprocal rank (reported as map@1)
- NDCG@K with binary relevance
"""

import math
from typing import List, Mapping, Optional, Sequence, Tuple

import numpy as np

from shared.vector_ops import cosine_similarity


def rank_documents(
    query_vector: np.ndarray, doc_vectors: Mapping[str, np.ndarray]
) -> List[Tuple[str, float]]:
    """
    Rank documents by descending cosine similarity.

    Equal scores keep the mapping's insertion order.

    Returns:
        [(doc_id, score), ...] best first
    """
    scored = [
        (doc_id, cosine_similarity(query_vector, vec))
        for doc_id, vec in doc_vectors.items()
    ]
    scored.sort(key=lambda item: -item[1])
    return scored


def relevant_rank(ranked_ids: Sequence[str], relevant_id: Optional[str]) -> int:
    """1-based rank of relevant_id, or 0 when absent or unknown."""
    if not relevant_id:
        return 0
    for i, doc_id in enumerate(ranked_ids):
        if doc_id == relevant_id:
            return i + 1
    return 0


def reciprocal_rank_at(rank: int) -> float:
    return 1.0 / rank if rank > 0 else 0.0


def ndcg_at_rank(rank: int, k: int = 3) -> float:
    """
    NDCG@k for a single relevant document at the given rank.

    IDCG is 1 because the ideal position is rank 1.
    """
    if rank <= 0 or rank > k:
        return 0.0
    return 1.0 / math.log2(rank + 1)


def mean_reciprocal_rank(retrieved_ids: List[str], relevant_ids: List[str]) -> float:
    """Reciprocal rank of the first id in retrieved_ids that is relevant."""
    relevant = set(relevant_ids)
    first = next((i + 1 for i, doc_id in enumerate(retrieved_ids) if doc_id in relevant), 0)
    return reciprocal_rank_at(first)


def ndcg_at_k(
    retrieved_ids: List[str], relevant_ids: List[str], k: Optional[int] = None
) -> float:
    """
    Binary-relevance NDCG over a ranked id list, with several relevant ids.

    Args:
        retrieved_ids: Ranked ids, best first
        relevant_ids: Ids counted as relevant
        k: Cutoff (whole list when None)

    Returns:
        NDCG in [0, 1]; 0 when nothing is relevant
    """
    cutoff = k or len(retrieved_ids)
    relevant = set(relevant_ids)
    dcg = sum(
        ndcg_at_rank(i + 1, cutoff)
        for i, doc_id in enumerate(retrieved_ids[:cutoff])
        if doc_id in relevant
    )
    ideal = sum(ndcg_at_rank(r, cutoff) for r in range(1, min(len(relevant), cutoff) + 1))
    return dcg / ideal if ideal > 0 else 0.0
