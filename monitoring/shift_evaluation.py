"""
Baseline vs. shift ranking evaluation.

Runs the same labeled query set twice, once through the identity shift and
once through the shift under test, and reports absolute metrics plus deltas
under the keys in metric_keys.

Queries whose relevant document is unknown, absent from the corpus, or whose
vector is missing contribute 0 to every metric but stay in the denominator.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, List, Mapping, Optional, Sequence, Union

import numpy as np

from embeddings.embedder import EmbeddingProvider
from shared.cancellation import CancellationToken, check_cancelled
from shared.schemas import TrainingQuery
from shifts.base import EmbeddingShift
from shifts.identity import NoShift
from shifts.pipeline import EmbeddingShiftPipeline

from . import metric_keys as keys
from .ranking_metrics import ndcg_at_rank, rank_documents, reciprocal_rank_at, relevant_rank

logger = logging.getLogger(__name__)

ShiftLike = Union[EmbeddingShift, EmbeddingShiftPipeline]


@dataclass
class PerQueryEval:
    """Ranking outcome for one query."""

    query_id: str
    relevant_doc_id: Optional[str]
    rank: int
    ap1: float
    ndcg3: float
    top_doc_id: Optional[str]
    top_score: float
    best_cosine: float


@dataclass
class RankingRunSummary:
    """Summary of one evaluation run."""

    run_id: str
    shift_name: str
    timestamp: str
    total_queries: int
    map_at_1: float
    ndcg_at_3: float
    mean_best_cosine: float
    per_query: List[PerQueryEval] = field(default_factory=list)

    @property
    def metrics(self) -> Dict[str, float]:
        return {
            keys.MAP_AT_1: self.map_at_1,
            keys.NDCG_AT_3: self.ndcg_at_3,
            keys.COSINE: self.mean_best_cosine,
        }


@dataclass
class ShiftComparison:
    """Baseline and variant runs with their metric deltas."""

    baseline: RankingRunSummary
    variant: RankingRunSummary
    metrics: Dict[str, float]

    @property
    def improved(self) -> bool:
        return self.metrics[keys.MAP_AT_1_DELTA] > 0


class RankingEvaluator:
    """
    Ranks a fixed document set for each query and aggregates metrics.

    Usage:
        evaluator = RankingEvaluator(doc_vectors)
        summary = evaluator.evaluate(queries, query_vectors, shift=learned)
        comparison = evaluator.compare(queries, query_vectors, learned)
    """

    def __init__(self, doc_vectors: Mapping[str, np.ndarray], k: int = 3):
        self.doc_vectors = dict(doc_vectors)
        self.k = k

    def evaluate_query(
        self,
        query: TrainingQuery,
        query_vector: Optional[np.ndarray],
        shift: Optional[ShiftLike] = None,
    ) -> PerQueryEval:
        if query_vector is None or not self.doc_vectors:
            return PerQueryEval(
                query.query_id, query.relevant_doc_id, 0, 0.0, 0.0, None, 0.0, 0.0
            )

        if shift is None:
            shift = NoShift()
        shifted = shift.apply(query_vector)
        ranked = rank_documents(shifted, self.doc_vectors)
        ranked_ids = [doc_id for doc_id, _ in ranked]

        rank = 0
        if query.relevant_doc_id in self.doc_vectors:
            rank = relevant_rank(ranked_ids, query.relevant_doc_id)

        top_id, top_score = ranked[0]
        return PerQueryEval(
            query_id=query.query_id,
            relevant_doc_id=query.relevant_doc_id,
            rank=rank,
            ap1=reciprocal_rank_at(rank),
            ndcg3=ndcg_at_rank(rank, self.k),
            top_doc_id=top_id,
            top_score=top_score,
            best_cosine=max(score for _, score in ranked),
        )

    def evaluate(
        self,
        queries: Sequence[TrainingQuery],
        query_vectors: Mapping[str, np.ndarray],
        shift: Optional[ShiftLike] = None,
        run_id: Optional[str] = None,
        cancellation: Optional[CancellationToken] = None,
    ) -> RankingRunSummary:
        """
        Evaluate every query through one shift.

        Args:
            queries: Labeled queries
            query_vectors: {query_id: embedding}
            shift: Shift or pipeline under test (identity when None)
            run_id: Identifier for this run
            cancellation: Checked once per query; no partial summary is returned

        Returns:
            RankingRunSummary with mean metrics over all queries
        """
        if shift is None:
            shift = NoShift()
        run_id = run_id or datetime.now(timezone.utc).strftime("%Y%m%d_%H%M%S_%f")
        results = []
        for query in queries:
            check_cancelled(cancellation)
            results.append(
                self.evaluate_query(query, query_vectors.get(query.query_id), shift)
            )

        def mean(values: List[float]) -> float:
            return float(np.mean(values)) if values else 0.0

        summary = RankingRunSummary(
            run_id=run_id,
            shift_name=shift.name,
            timestamp=datetime.now(timezone.utc).isoformat(),
            total_queries=len(results),
            map_at_1=mean([r.ap1 for r in results]),
            ndcg_at_3=mean([r.ndcg3 for r in results]),
            mean_best_cosine=mean([r.best_cosine for r in results]),
            per_query=results,
        )
        logger.info(
            f"Run {run_id} ({summary.shift_name}): map@1={summary.map_at_1:.3f}, "
            f"ndcg@3={summary.ndcg_at_3:.3f}, cosine={summary.mean_best_cosine:.4f}"
        )
        return summary

    def compare(
        self,
        queries: Sequence[TrainingQuery],
        query_vectors: Mapping[str, np.ndarray],
        shift: ShiftLike,
        baseline: Optional[ShiftLike] = None,
        cancellation: Optional[CancellationToken] = None,
    ) -> ShiftComparison:
        """Run baseline and variant and report deltas (variant - baseline)."""
        base = self.evaluate(
            queries,
            query_vectors,
            NoShift() if baseline is None else baseline,
            "baseline",
            cancellation,
        )
        variant = self.evaluate(queries, query_vectors, shift, "variant", cancellation)
        return ShiftComparison(base, variant, build_comparison_metrics(base, variant))


def build_comparison_metrics(
    baseline: RankingRunSummary, variant: RankingRunSummary
) -> Dict[str, float]:
    metrics: Dict[str, float] = {}
    for metric in (keys.MAP_AT_1, keys.NDCG_AT_3, keys.COSINE):
        b = baseline.metrics[metric]
        v = variant.metrics[metric]
        metrics[keys.baseline_key(metric)] = b
        metrics[keys.variant_key(metric)] = v
        metrics[keys.delta_key(metric)] = v - b
    # Plain keys carry the variant run
    metrics[keys.MAP_AT_1] = variant.map_at_1
    metrics[keys.NDCG_AT_3] = variant.ndcg_at_3
    return metrics


def run_baseline_vs_shift(
    provider: EmbeddingProvider,
    documents: Mapping[str, str],
    queries: Sequence[TrainingQuery],
    shift: ShiftLike,
    cancellation: Optional[CancellationToken] = None,
) -> ShiftComparison:
    """
    Embed a labeled corpus and compare the identity shift with `shift`.

    Args:
        provider: Embedding provider for documents and queries
        documents: {doc_id: text}
        queries: Labeled queries
        shift: Shift or pipeline under test
        cancellation: Checked once per embedded text and per evaluated query
    """
    doc_vectors = provider.embed_documents(documents, cancellation)
    query_vectors = provider.embed_documents(
        {q.query_id: q.text for q in queries}, cancellation
    )
    evaluator = RankingEvaluator(doc_vectors)
    comparison = evaluator.compare(queries, query_vectors, shift, cancellation=cancellation)
    logger.info(
        f"Comparison {shift.name}: "
        f"map@1 delta={comparison.metrics[keys.MAP_AT_1_DELTA]:+.4f}, "
        f"ndcg@3 delta={comparison.metrics[keys.NDCG_AT_3_DELTA]:+.4f}, "
        f"cosine delta={comparison.metrics[keys.COSINE_DELTA]:+.4f}"
    )
    return comparison
