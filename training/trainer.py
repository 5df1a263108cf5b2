"""
PosNeg trainer: learns a delta shift and records it as a ShiftTrainingResult.

Flow:
1. Embed the corpus and queries (cancellable per text)
2. Learn the delta vector
3. Apply the cancel-out gate
4. Optionally measure map@1 improvement of First and First+Delta over baseline
5. Save through the injected repository

Either every step completes or nothing is saved.
"""

import logging
from datetime import datetime, timezone
from typing import Mapping, Optional, Sequence

import numpy as np

from embeddings.embedder import EmbeddingProvider
from monitoring import metric_keys as keys
from monitoring.shift_evaluation import RankingEvaluator
from shared.cancellation import CancellationToken
from shared.config import TrainingConfig
from shared.schemas import ShiftTrainingResult, TrainingQuery
from shifts.additive import AdditiveShift
from shifts.base import EmbeddingShift
from shifts.pipeline import EmbeddingShiftPipeline

from .cancel_out import evaluate_cancel_out
from .dataset import LabeledDataset
from .posneg_learner import PosNegLearningResult, learn_delta_vector
from .repository import ShiftTrainingResultRepository

logger = logging.getLogger(__name__)


class PosNegTrainer:
    """
    Usage:
        trainer = PosNegTrainer(provider, repository, TrainingConfig())
        result = trainer.train(documents, queries, workflow_name="mini-insurance-posneg")

        # with a First-stage prior whose contribution is measured separately
        trainer = PosNegTrainer(provider, repository, first_shift=keyword_prior)
    """

    def __init__(
        self,
        provider: EmbeddingProvider,
        repository: Optional[ShiftTrainingResultRepository] = None,
        config: Optional[TrainingConfig] = None,
        first_shift: Optional[EmbeddingShift] = None,
    ):
        self.provider = provider
        self.repository = repository
        self.config = config or TrainingConfig()
        self.first_shift = first_shift

    def train(
        self,
        documents: Mapping[str, str],
        queries: Sequence[TrainingQuery],
        workflow_name: str,
        scope_id: str = "default",
        base_directory: str = "",
        cancellation: Optional[CancellationToken] = None,
    ) -> ShiftTrainingResult:
        """
        Train on a labeled corpus.

        Args:
            documents: {doc_id: text}
            queries: Labeled queries
            workflow_name: Key under which the result is stored
            scope_id: Secondary key (dataset, tenant, ...)
            base_directory: Recorded on the result for traceability
            cancellation: Checked once per embedded text and per query

        Returns:
            The saved ShiftTrainingResult

        Raises:
            NoUsableTrainingDataError: If no query resolves to a document
            OperationCancelledError: If cancelled; nothing is saved
        """
        if not workflow_name:
            raise ValueError("workflow_name must not be empty")
        if not documents:
            raise ValueError("documents must not be empty")

        logger.info(
            f"Training {workflow_name} ({self.config.mode.value}): "
            f"{len(documents)} documents, {len(queries)} queries"
        )
        doc_vectors = self.provider.embed_documents(documents, cancellation)
        query_vectors = self.provider.embed_documents(
            {q.query_id: q.text for q in queries}, cancellation
        )

        learned = learn_delta_vector(
            queries,
            doc_vectors,
            options=self.config,
            query_embeddings=query_vectors,
            cancellation=cancellation,
        )
        gate = evaluate_cancel_out(learned.delta_vector, self.config.cancel_out_epsilon)
        if gate.is_cancelled:
            logger.warning(f"Training result for {workflow_name} cancelled: {gate.reason}")

        improvement_first = 0.0
        improvement_first_plus_delta = 0.0
        comparison_runs = []
        if self.config.evaluate_improvement and not gate.is_cancelled:
            improvement_first, improvement_first_plus_delta, comparison_runs = (
                self._measure_improvement(
                    doc_vectors, query_vectors, queries, learned, workflow_name, cancellation
                )
            )

        result = ShiftTrainingResult(
            workflow_name=workflow_name,
            created_utc=datetime.now(timezone.utc),
            base_directory=base_directory,
            comparison_runs=comparison_runs,
            improvement_first=improvement_first,
            improvement_first_plus_delta=improvement_first_plus_delta,
            delta_improvement=improvement_first_plus_delta - improvement_first,
            delta_vector=tuple(float(x) for x in learned.delta_vector),
            training_mode=self.config.mode.value,
            cancel_out_epsilon=self.config.cancel_out_epsilon,
            is_cancelled=gate.is_cancelled,
            cancel_reason=gate.reason,
            delta_norm=gate.delta_norm,
            scope_id=scope_id,
            stats=learned.stats.as_dict(),
        )

        if self.repository is not None:
            self.repository.save(result)
        return result

    def train_dataset(
        self,
        dataset: LabeledDataset,
        workflow_name: str,
        base_directory: str = "",
        cancellation: Optional[CancellationToken] = None,
    ) -> ShiftTrainingResult:
        return self.train(
            dataset.documents,
            dataset.queries,
            workflow_name,
            scope_id=dataset.name,
            base_directory=base_directory,
            cancellation=cancellation,
        )

    def _measure_improvement(
        self,
        doc_vectors: Mapping[str, np.ndarray],
        query_vectors: Mapping[str, np.ndarray],
        queries: Sequence[TrainingQuery],
        learned: PosNegLearningResult,
        workflow_name: str,
        cancellation: Optional[CancellationToken],
    ):
        evaluator = RankingEvaluator(doc_vectors)
        delta_shift = AdditiveShift(learned.delta_vector, name=f"learned:{workflow_name}")
        first = [self.first_shift] if self.first_shift is not None else []

        first_only = evaluator.compare(
            queries, query_vectors, EmbeddingShiftPipeline(first), cancellation=cancellation
        )
        first_plus_delta = evaluator.compare(
            queries,
            query_vectors,
            EmbeddingShiftPipeline(first + [delta_shift]),
            cancellation=cancellation,
        )
        improvement_first = first_only.metrics[keys.MAP_AT_1_DELTA]
        improvement_both = first_plus_delta.metrics[keys.MAP_AT_1_DELTA]
        logger.info(
            f"Improvement over baseline map@1: First={improvement_first:+.3f}, "
            f"First+Delta={improvement_both:+.3f}"
        )
        runs = [first_only.variant.shift_name, first_plus_delta.variant.shift_name]
        return improvement_first, improvement_both, runs
