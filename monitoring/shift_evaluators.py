"""
Per-candidate scoring used by adaptive shift selection.

Each evaluator scores one shift for one query against a reference set.
Higher is better for every evaluator.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import List, Optional, Sequence

import numpy as np

from shared.vector_ops import cosine_similarity
from shifts.base import EmbeddingShift

from .ranking_metrics import mean_reciprocal_rank, ndcg_at_k


@dataclass(frozen=True)
class EvaluationResult:
    shift_name: str
    score: float
    notes: str = ""


class ShiftEvaluator(ABC):
    """Base class: shifts the query once, then scores against references."""

    @property
    def name(self) -> str:
        return type(self).__name__

    def evaluate(
        self, shift: EmbeddingShift, query: np.ndarray, references: Sequence[np.ndarray]
    ) -> EvaluationResult:
        if len(references) == 0:
            return EvaluationResult(shift.name, 0.0, "no references")
        shifted = shift.apply(query)
        sims = [cosine_similarity(shifted, ref) for ref in references]
        return self.score(shift.name, sims)

    @abstractmethod
    def score(self, shift_name: str, sims: List[float]) -> EvaluationResult:
        """Score from the cosine similarities of the shifted query."""


class CosineSimilarityEvaluator(ShiftEvaluator):
    """Mean cosine similarity to the references."""

    def score(self, shift_name: str, sims: List[float]) -> EvaluationResult:
        mean = float(np.mean(sims))
        return EvaluationResult(shift_name, mean, f"mean={mean:.4f}; max={max(sims):.4f}")


class MarginEvaluator(ShiftEvaluator):
    """Top-1 minus top-2 similarity (top-1 alone for a single reference)."""

    def score(self, shift_name: str, sims: List[float]) -> EvaluationResult:
        ordered = sorted(sims, reverse=True)
        margin = ordered[0] - ordered[1] if len(ordered) > 1 else ordered[0]
        return EvaluationResult(shift_name, margin, f"margin={margin:.4f}")


def _ranked_indices(sims: List[float]) -> List[str]:
    order = sorted(range(len(sims)), key=lambda i: -sims[i])
    return [str(i) for i in order]


class MrrEvaluator(ShiftEvaluator):
    """Reciprocal rank of the reference at relevant_index."""

    def __init__(self, relevant_index: int = 0):
        self.relevant_index = relevant_index

    def score(self, shift_name: str, sims: List[float]) -> EvaluationResult:
        rr = mean_reciprocal_rank(_ranked_indices(sims), [str(self.relevant_index)])
        return EvaluationResult(shift_name, rr, f"mrr={rr:.4f}")


class NdcgEvaluator(ShiftEvaluator):
    """NDCG@k with the given reference indices as relevant."""

    def __init__(self, relevant_indices: Optional[Sequence[int]] = None, k: int = 3):
        self.relevant_indices = list(relevant_indices or [0])
        self.k = k

    def score(self, shift_name: str, sims: List[float]) -> EvaluationResult:
        value = ndcg_at_k(
            _ranked_indices(sims), [str(i) for i in self.relevant_indices], self.k
        )
        return EvaluationResult(shift_name, value, f"ndcg@{self.k}={value:.4f}")


def default_evaluators() -> List[ShiftEvaluator]:
    return [CosineSimilarityEvaluator()]
