"""
Adaptive Shift Selection Module.

At query time, candidate shifts are generated (identity fallback first,
then the learned delta from the latest or best training result) and scored
against a reference set. The highest score wins; ties keep the earlier
candidate.

Usage:
    from adaptive import AdaptiveWorkflow

    workflow = AdaptiveWorkflow.from_repository(repo)
    shift = workflow.run(query_vec, reference_vecs)
"""

from shared.schemas import ShiftMethod

from .generators import (
    CompositeShiftGenerator,
    CompositeShiftGeneratorBuilder,
    DeltaShiftGenerator,
    MultiplicativeShiftGenerator,
    QueryAnswerPair,
    ShiftGenerator,
    TrainingBackedShiftGenerator,
)
from .selection import EvaluationReport, EvaluatorOutcome, ShiftEvaluationService
from .workflow import AdaptiveWorkflow

__all__ = [
    "ShiftMethod",
    "QueryAnswerPair",
    "ShiftGenerator",
    "TrainingBackedShiftGenerator",
    "DeltaShiftGenerator",
    "MultiplicativeShiftGenerator",
    "CompositeShiftGenerator",
    "CompositeShiftGeneratorBuilder",
    "ShiftEvaluationService",
    "EvaluationReport",
    "EvaluatorOutcome",
    "AdaptiveWorkflow",
]
