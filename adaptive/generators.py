"""
Candidate shift generators for adaptive selection.

Generators receive (query, answer) vector pairs and yield candidate shifts.
Order matters: the selector breaks score ties in favour of the earlier
candidate.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Callable, Iterator, List, Optional, Sequence

import numpy as np

from shared.schemas import ShiftTrainingResult
from shared.vector_ops import DIM, fit_to_dimension, is_all_zero
from shifts.additive import AdditiveShift
from shifts.base import EmbeddingShift, ShiftKind
from shifts.identity import NoShift
from shifts.multiplicative import MultiplicativeShift, clamp_and_guard
from training.repository import ShiftTrainingResultRepository

logger = logging.getLogger(__name__)

_MAGNITUDE_EPS = 1e-6


@dataclass(frozen=True)
class QueryAnswerPair:
    query: np.ndarray
    answer: np.ndarray


class ShiftGenerator(ABC):
    @abstractmethod
    def generate(self, pairs: Sequence[QueryAnswerPair]) -> Iterator[EmbeddingShift]:
        """Yield candidate shifts."""


class TrainingBackedShiftGenerator(ShiftGenerator):
    """
    Turns the persisted training result for a workflow into a candidate.

    Always yields the fallback (identity by default) first. A learned
    AdditiveShift follows only when a result exists, its delta vector is
    non-empty and not all zeros, and it is not cancelled (unless
    include_cancelled is set).

    Usage:
        generator = TrainingBackedShiftGenerator(repo, "mini-insurance-posneg")
        candidates = list(generator.generate(pairs))
    """

    def __init__(
        self,
        repository: ShiftTrainingResultRepository,
        workflow_name: str,
        fallback: Optional[EmbeddingShift] = None,
        use_best: bool = False,
        include_cancelled: bool = False,
        dimension: Optional[int] = None,
    ):
        if not workflow_name:
            raise ValueError("workflow_name must not be empty")
        self.repository = repository
        self.workflow_name = workflow_name
        self.fallback = fallback or NoShift()
        self.use_best = use_best
        self.include_cancelled = include_cancelled
        self.dimension = dimension

    def load_result(self) -> Optional[ShiftTrainingResult]:
        if self.use_best:
            return self.repository.load_best(self.workflow_name, self.include_cancelled)
        return self.repository.load_latest(self.workflow_name)

    def _usable(self, result: Optional[ShiftTrainingResult]) -> bool:
        if result is None:
            logger.debug(f"No training result for {self.workflow_name}")
            return False
        if result.is_cancelled and not self.include_cancelled:
            logger.info(
                f"Ignoring cancelled training result for {self.workflow_name}: "
                f"{result.cancel_reason}"
            )
            return False
        if is_all_zero(result.delta_vector):
            logger.debug(f"Training result for {self.workflow_name} has no delta")
            return False
        return True

    def generate(self, pairs: Sequence[QueryAnswerPair]) -> Iterator[EmbeddingShift]:
        yield self.fallback

        result = self.load_result()
        if not self._usable(result):
            return

        dimension = self.dimension
        if dimension is None:
            dimension = len(pairs[0].query) if pairs else DIM
        if len(result.delta_vector) != dimension:
            logger.warning(
                f"Delta for {self.workflow_name} has {len(result.delta_vector)} dims, "
                f"fitting to {dimension}"
            )
        yield AdditiveShift(
            fit_to_dimension(result.delta_vector, dimension),
            name=f"learned:{self.workflow_name}",
        )


class DeltaShiftGenerator(ShiftGenerator):
    """Mean of (answer - query) over all pairs."""

    def generate(self, pairs: Sequence[QueryAnswerPair]) -> Iterator[EmbeddingShift]:
        if not pairs:
            return
        diffs = [
            np.asarray(p.answer, dtype=np.float64) - np.asarray(p.query, dtype=np.float64)
            for p in pairs
        ]
        yield AdditiveShift(
            np.mean(diffs, axis=0), name="delta:mean", kind=ShiftKind.HEURISTIC
        )


class MultiplicativeShiftGenerator(ShiftGenerator):
    """
    Per-dimension geometric mean of |answer| / |query|, clamped to [0.25, 4].

    Yields the raw estimate, then tempered blends toward identity.
    """

    def __init__(self, blend_weights: Sequence[float] = (0.5, 0.25)):
        self.blend_weights = tuple(blend_weights)

    def generate(self, pairs: Sequence[QueryAnswerPair]) -> Iterator[EmbeddingShift]:
        if not pairs:
            return
        log_ratios = [
            np.log(np.abs(np.asarray(p.answer, dtype=np.float64)) + _MAGNITUDE_EPS)
            - np.log(np.abs(np.asarray(p.query, dtype=np.float64)) + _MAGNITUDE_EPS)
            for p in pairs
        ]
        factors = clamp_and_guard(np.exp(np.mean(log_ratios, axis=0)))

        yield MultiplicativeShift(factors, name="multiplicative:gm")
        for weight in self.blend_weights:
            yield MultiplicativeShift(
                factors, name=f"multiplicative:gm@{weight:.2f}", weight=weight
            )


class CompositeShiftGenerator(ShiftGenerator):
    """
    Chains generators with optional filtering, de-duplication and a limit.

    Usage:
        generator = (
            CompositeShiftGenerator.builder()
            .add(TrainingBackedShiftGenerator(repo, "insurance"))
            .add(DeltaShiftGenerator())
            .with_filter(lambda s: s.kind != ShiftKind.HEURISTIC)
            .distinct()
            .limit(4)
            .build()
        )
    """

    def __init__(
        self,
        generators: Sequence[ShiftGenerator],
        filters: Sequence[Callable[[EmbeddingShift], bool]] = (),
        distinct: bool = False,
        limit: Optional[int] = None,
    ):
        self.generators = list(generators)
        self.filters = list(filters)
        self.distinct_names = distinct
        self.max_candidates = limit

    @classmethod
    def builder(cls) -> "CompositeShiftGeneratorBuilder":
        return CompositeShiftGeneratorBuilder()

    def generate(self, pairs: Sequence[QueryAnswerPair]) -> Iterator[EmbeddingShift]:
        seen = set()
        emitted = 0
        for generator in self.generators:
            for shift in generator.generate(pairs):
                if self.max_candidates is not None and emitted >= self.max_candidates:
                    return
                if not all(f(shift) for f in self.filters):
                    continue
                if self.distinct_names:
                    if shift.name in seen:
                        continue
                    seen.add(shift.name)
                emitted += 1
                yield shift


class CompositeShiftGeneratorBuilder:
    def __init__(self):
        self._generators: List[ShiftGenerator] = []
        self._filters: List[Callable[[EmbeddingShift], bool]] = []
        self._distinct = False
        self._limit: Optional[int] = None

    def add(self, generator: ShiftGenerator) -> "CompositeShiftGeneratorBuilder":
        self._generators.append(generator)
        return self

    def with_filter(
        self, predicate: Callable[[EmbeddingShift], bool]
    ) -> "CompositeShiftGeneratorBuilder":
        self._filters.append(predicate)
        return self

    def distinct(self) -> "CompositeShiftGeneratorBuilder":
        self._distinct = True
        return self

    def limit(self, max_candidates: int) -> "CompositeShiftGeneratorBuilder":
        if max_candidates < 0:
            raise ValueError(f"limit must be >= 0, got {max_candidates}")
        self._limit = max_candidates
        return self

    def build(self) -> CompositeShiftGenerator:
        if not self._generators:
            raise ValueError("CompositeShiftGenerator needs at least one generator")
        return CompositeShiftGenerator(
            self._generators, self._filters, self._distinct, self._limit
        )
