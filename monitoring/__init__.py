"""
Monitoring and evaluation module.
What you cannot measure you cannot improve.

This module provides:
- Ranking metrics (cosine ranking, map@1, ndcg@3)
- Baseline vs. shift comparison with stable metric keys
- An acceptance gate that blocks ranking or geometry regressions
- Per-candidate evaluators used by adaptive selection

Usage:
    from monitoring import RankingEvaluator, EvalAcceptanceGate

    comparison = RankingEvaluator(doc_vectors).compare(queries, query_vectors, shift)
    gate = EvalAcceptanceGate.create_from_profile("rank+cosine")
    result = gate.evaluate(comparison.metrics)
"""

from . import metric_keys
from .acceptance_gate import EvalAcceptanceGate, GateCheck, GateResult, normalize_profile
from .gate_manifest import MANIFEST_FILE_NAME, try_write_gate_manifest
from .ranking_metrics import (
    mean_reciprocal_rank,
    ndcg_at_k,
    ndcg_at_rank,
    rank_documents,
    reciprocal_rank_at,
    relevant_rank,
)
from .shift_evaluation import (
    PerQueryEval,
    RankingEvaluator,
    RankingRunSummary,
    ShiftComparison,
    build_comparison_metrics,
    run_baseline_vs_shift,
)
from .shift_evaluators import (
    CosineSimilarityEvaluator,
    EvaluationResult,
    MarginEvaluator,
    MrrEvaluator,
    NdcgEvaluator,
    ShiftEvaluator,
    default_evaluators,
)

__all__ = [
    "metric_keys",
    "EvalAcceptanceGate",
    "GateCheck",
    "GateResult",
    "normalize_profile",
    "MANIFEST_FILE_NAME",
    "try_write_gate_manifest",
    "rank_documents",
    "relevant_rank",
    "reciprocal_rank_at",
    "ndcg_at_rank",
    "mean_reciprocal_rank",
    "ndcg_at_k",
    "PerQueryEval",
    "RankingEvaluator",
    "RankingRunSummary",
    "ShiftComparison",
    "build_comparison_metrics",
    "run_baseline_vs_shift",
    "ShiftEvaluator",
    "EvaluationResult",
    "CosineSimilarityEvaluator",
    "MarginEvaluator",
    "MrrEvaluator",
    "NdcgEvaluator",
    "default_evaluators",
]
