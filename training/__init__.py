"""
Shift Training Module.

This module handles:
- Loading labeled datasets (documents + queries with one relevant doc each)
- Learning a global delta vector from positive (and hard negative) pairs
- Detecting degenerate, cancelled-out deltas
- Persisting results so the adaptive layer can pick them up

Usage:
    from training import PosNegTrainer, FileSystemShiftTrainingResultRepository

    repo = FileSystemShiftTrainingResultRepository("results/insurance")
    trainer = PosNegTrainer(provider, repo)
    result = trainer.train_dataset(load_dataset("data/insurance"), "mini-insurance-posneg")
"""

from shared.schemas import ShiftTrainingResult, TrainingMode

from .cancel_out import CancelOutResult, evaluate_cancel_out
from .dataset import LabeledDataset, load_dataset, load_documents, load_queries
from .posneg_learner import (
    NoUsableTrainingDataError,
    PosNegLearningResult,
    PosNegLearningStats,
    learn_delta_vector,
)
from .repository import (
    FileSystemShiftTrainingResultRepository,
    InMemoryShiftTrainingResultRepository,
    ShiftTrainingResultRepository,
    build_markdown,
    pick_best,
    selection_score,
)
from .trainer import PosNegTrainer

__all__ = [
    "ShiftTrainingResult",
    "TrainingMode",
    "CancelOutResult",
    "evaluate_cancel_out",
    "LabeledDataset",
    "load_dataset",
    "load_documents",
    "load_queries",
    "NoUsableTrainingDataError",
    "PosNegLearningResult",
    "PosNegLearningStats",
    "learn_delta_vector",
    "ShiftTrainingResultRepository",
    "FileSystemShiftTrainingResultRepository",
    "InMemoryShiftTrainingResultRepository",
    "build_markdown",
    "pick_best",
    "selection_score",
    "PosNegTrainer",
]
