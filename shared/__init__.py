"""
Shared building blocks for the embedding shift engine.

This module provides:
- Vector helpers (cosine similarity, norms, explicit fit-to-dimension)
- Cooperative cancellation for batch loops
- Pydantic schemas for persisted training results and gate manifests
- Configuration dataclasses and environment-backed settings

Usage:
    from shared import cosine_similarity, CancellationToken

    score = cosine_similarity(query_vec, doc_vec)
"""

from .cancellation import CancellationToken, OperationCancelledError, check_cancelled
from .config import (
    AdaptiveConfig,
    EmbeddingConfig,
    GateConfig,
    Settings,
    TrainingConfig,
    get_settings,
)
from .schemas import (
    GateManifest,
    ShiftMethod,
    ShiftTrainingResult,
    TrainingMode,
    TrainingQuery,
)
from .vector_ops import (
    DIM,
    DimensionMismatchError,
    as_vector,
    check_dimension,
    cosine_similarity,
    fit_to_dimension,
    is_all_zero,
    l2_norm,
)

__all__ = [
    "DIM",
    "DimensionMismatchError",
    "as_vector",
    "check_dimension",
    "cosine_similarity",
    "fit_to_dimension",
    "is_all_zero",
    "l2_norm",
    "CancellationToken",
    "OperationCancelledError",
    "check_cancelled",
    "ShiftTrainingResult",
    "TrainingQuery",
    "TrainingMode",
    "ShiftMethod",
    "GateManifest",
    "Settings",
    "EmbeddingConfig",
    "TrainingConfig",
    "GateConfig",
    "AdaptiveConfig",
    "get_settings",
]
