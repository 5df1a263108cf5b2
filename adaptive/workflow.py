"""
Adaptive workflow: pick the best shift for one query at query time.
"""

import logging
from typing import Optional, Sequence

import numpy as np

from monitoring.shift_evaluators import ShiftEvaluator
from shared.cancellation import CancellationToken
from shared.config import AdaptiveConfig
from shared.schemas import ShiftMethod
from shifts.base import EmbeddingShift
from shifts.identity import NoShift
from training.repository import ShiftTrainingResultRepository

from .generators import QueryAnswerPair, ShiftGenerator, TrainingBackedShiftGenerator
from .selection import ShiftEvaluationService

logger = logging.getLogger(__name__)


class AdaptiveWorkflow:
    """
    Usage:
        workflow = AdaptiveWorkflow.from_repository(repo, AdaptiveConfig())
        shift = workflow.run(query_vec, reference_vecs)
        shifted = shift.apply(query_vec)

    With ShiftMethod.NO_SHIFT_INGEST_BASED, candidate generation is skipped
    and the identity shift is always returned (A/B baseline).
    """

    def __init__(
        self,
        generator: ShiftGenerator,
        evaluators: Optional[Sequence[ShiftEvaluator]] = None,
        method: ShiftMethod = ShiftMethod.SHIFTED,
    ):
        self.generator = generator
        self.service = ShiftEvaluationService(generator, evaluators)
        self.method = method

    @classmethod
    def from_repository(
        cls,
        repository: ShiftTrainingResultRepository,
        config: Optional[AdaptiveConfig] = None,
        evaluators: Optional[Sequence[ShiftEvaluator]] = None,
    ) -> "AdaptiveWorkflow":
        config = config or AdaptiveConfig()
        generator = TrainingBackedShiftGenerator(
            repository,
            config.workflow_name,
            use_best=config.use_best,
            include_cancelled=config.include_cancelled,
        )
        return cls(generator, evaluators, config.method)

    def run(
        self,
        query: np.ndarray,
        references: Sequence[np.ndarray],
        cancellation: Optional[CancellationToken] = None,
    ) -> EmbeddingShift:
        """
        Select the best-scoring candidate for query against references.

        Returns:
            The selected shift (identity when nothing scores higher)
        """
        if self.method == ShiftMethod.NO_SHIFT_INGEST_BASED:
            return NoShift()

        pairs = [QueryAnswerPair(query, ref) for ref in references]
        report = self.service.evaluate(pairs, cancellation)
        best = report.best()
        if best is None:
            logger.info("No candidate selected, using identity shift")
            return NoShift()
        return best

    def run_and_apply(
        self,
        query: np.ndarray,
        references: Sequence[np.ndarray],
        cancellation: Optional[CancellationToken] = None,
    ) -> np.ndarray:
        """Select a shift and return the shifted copy of query."""
        return self.run(query, references, cancellation).apply(query)
