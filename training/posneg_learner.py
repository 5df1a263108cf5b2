"""
Positive/negative delta-vector learner.

Learns one global additive delta that moves queries toward their
known-relevant documents:

1. For each usable query, direction = relevant_doc - query. With hard
   negatives enabled (hard_neg_top_k > 0) and the relevant document not
   ranked first, the mean direction toward the top-K documents ranked above
   it is subtracted, weighted by hard_neg_weight.
2. Directions are averaged (or summed) into one delta.
3. The delta is rescaled to max_l2_norm when it exceeds it.

A delta that is near zero although individual directions are not is flagged
as a suspected cancel-out.
"""

import logging
from dataclasses import dataclass
from typing import Dict, Mapping, Optional, Sequence

import numpy as np

from embeddings.embedder import EmbeddingProvider
from monitoring.ranking_metrics import rank_documents
from shared.cancellation import CancellationToken, check_cancelled
from shared.config import TrainingConfig
from shared.schemas import TrainingQuery
from shared.vector_ops import DimensionMismatchError

logger = logging.getLogger(__name__)

ZERO_DIRECTION_NORM_SQ = 1e-18
SUSPECT_AGGREGATE_NORM = 1e-3
SUSPECT_MIN_DIRECTION_NORM = 1e-2


class NoUsableTrainingDataError(ValueError):
    """No labeled query resolves to a document in the corpus."""


@dataclass(frozen=True)
class PosNegLearningStats:
    cases: int
    unique_pairs: int
    avg_direction_norm: float
    min_direction_norm: float
    max_direction_norm: float
    zero_directions: int
    norm_clip_applied: bool
    pre_clip_delta_norm: float
    post_clip_delta_norm: float
    cancel_out_suspected: bool
    hard_negative_cases: int = 0

    def as_dict(self) -> Dict[str, float]:
        return {
            "cases": float(self.cases),
            "unique_pairs": float(self.unique_pairs),
            "avg_direction_norm": self.avg_direction_norm,
            "min_direction_norm": self.min_direction_norm,
            "max_direction_norm": self.max_direction_norm,
            "zero_directions": float(self.zero_directions),
            "norm_clip_applied": float(self.norm_clip_applied),
            "pre_clip_delta_norm": self.pre_clip_delta_norm,
            "post_clip_delta_norm": self.post_clip_delta_norm,
            "cancel_out_suspected": float(self.cancel_out_suspected),
            "hard_negative_cases": float(self.hard_negative_cases),
        }


@dataclass(frozen=True)
class PosNegLearningResult:
    delta_vector: np.ndarray
    stats: PosNegLearningStats


def _validate_doc_embeddings(doc_embeddings: Mapping[str, np.ndarray]) -> int:
    if not doc_embeddings:
        raise ValueError("doc_embeddings must not be empty")
    dim = None
    for doc_id, emb in doc_embeddings.items():
        if emb is None:
            raise ValueError(f"doc_embeddings contains no vector for {doc_id!r}")
        if dim is None:
            dim = len(emb)
        elif len(emb) != dim:
            raise DimensionMismatchError(dim, len(emb), f"document {doc_id!r}")
    if not dim:
        raise ValueError("Embedding dimension must be > 0")
    return dim


def learn_delta_vector(
    queries: Sequence[TrainingQuery],
    doc_embeddings: Mapping[str, np.ndarray],
    options: Optional[TrainingConfig] = None,
    provider: Optional[EmbeddingProvider] = None,
    query_embeddings: Optional[Mapping[str, np.ndarray]] = None,
    cancellation: Optional[CancellationToken] = None,
) -> PosNegLearningResult:
    """
    Learn a delta vector from labeled queries.

    Args:
        queries: Labeled queries; those whose relevant document is missing
            from doc_embeddings are skipped
        doc_embeddings: {doc_id: embedding}, all of one dimension
        options: Clipping, aggregation and hard-negative settings
        provider: Embeds query text when query_embeddings lacks a query
        query_embeddings: Precomputed {query_id: embedding}
        cancellation: Checked once per query

    Returns:
        PosNegLearningResult with the (possibly clipped) delta and stats

    Raises:
        NoUsableTrainingDataError: If no query is usable
    """
    options = options or TrainingConfig()
    dim = _validate_doc_embeddings(doc_embeddings)
    if provider is None and query_embeddings is None:
        raise ValueError("Either provider or query_embeddings is required")

    docs = {doc_id: np.asarray(v, dtype=np.float64) for doc_id, v in doc_embeddings.items()}
    total = np.zeros(dim, dtype=np.float64)

    cases = 0
    hard_cases = 0
    zero_dirs = 0
    pairs = set()
    # Per-case diagnostics surface at INFO when debug is set
    log_case = logger.info if options.debug else logger.debug
    dir_norms = []

    for query in queries:
        check_cancelled(cancellation)

        pos = docs.get(query.relevant_doc_id) if query.relevant_doc_id else None
        if pos is None:
            logger.debug(
                f"Skipping query {query.query_id}: relevant doc "
                f"{query.relevant_doc_id!r} not in corpus"
            )
            continue

        q_vec = None
        if query_embeddings is not None:
            q_vec = query_embeddings.get(query.query_id)
        if q_vec is None:
            if provider is None:
                logger.debug(f"Skipping query {query.query_id}: no embedding")
                continue
            q_vec = provider.embed(query.text)
        q = np.asarray(q_vec, dtype=np.float64)
        if q.shape[0] != dim:
            raise DimensionMismatchError(dim, q.shape[0], f"query {query.query_id!r}")

        direction = pos - q
        negatives = []
        if options.hard_neg_top_k > 0:
            ranked_ids = [doc_id for doc_id, _ in rank_documents(q, docs)]
            pos_index = ranked_ids.index(query.relevant_doc_id)
            negatives = ranked_ids[:pos_index][: options.hard_neg_top_k]
            if negatives:
                neg_dir = np.mean([docs[n] - q for n in negatives], axis=0)
                direction = direction - options.hard_neg_weight * neg_dir
                hard_cases += 1

        norm_sq = float(np.dot(direction, direction))
        if norm_sq <= ZERO_DIRECTION_NORM_SQ:
            zero_dirs += 1
        norm = float(np.sqrt(max(0.0, norm_sq)))

        total += direction
        dir_norms.append(norm)
        pairs.add((query.query_id, query.relevant_doc_id))
        cases += 1

        log_case(
            f"[PosNeg] case {cases}: q={query.query_id}, pos={query.relevant_doc_id}, "
            f"negs={negatives}, |dir|={norm:.6f}"
        )

    if cases == 0:
        raise NoUsableTrainingDataError(
            f"None of {len(queries)} queries has its relevant document in the "
            f"corpus of {len(docs)} documents"
        )

    delta = total / cases if options.aggregation == "mean" else total
    pre_clip = float(np.linalg.norm(delta))

    clip_applied = False
    if (
        not options.disable_norm_clip
        and options.max_l2_norm > 0
        and pre_clip > options.max_l2_norm
    ):
        delta = delta * (options.max_l2_norm / pre_clip)
        clip_applied = True
    post_clip = float(np.linalg.norm(delta))

    avg_norm = float(np.mean(dir_norms))
    suspected = avg_norm > SUSPECT_MIN_DIRECTION_NORM and pre_clip <= SUSPECT_AGGREGATE_NORM
    if suspected:
        logger.warning(
            f"Cancel-out suspected: avg |dir|={avg_norm:.6f} but |delta|={pre_clip:.6f}"
        )

    stats = PosNegLearningStats(
        cases=cases,
        unique_pairs=len(pairs),
        avg_direction_norm=avg_norm,
        min_direction_norm=float(min(dir_norms)),
        max_direction_norm=float(max(dir_norms)),
        zero_directions=zero_dirs,
        norm_clip_applied=clip_applied,
        pre_clip_delta_norm=pre_clip,
        post_clip_delta_norm=post_clip,
        cancel_out_suspected=suspected,
        hard_negative_cases=hard_cases,
    )
    logger.info(
        f"Learned delta from {cases} cases: |delta|={post_clip:.4f}"
        + (f" (clipped from {pre_clip:.4f})" if clip_applied else "")
    )
    return PosNegLearningResult(delta.astype(np.float32), stats)
