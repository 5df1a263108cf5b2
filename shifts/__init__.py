"""
Embedding Shifts Module.

Shifts are transforms applied to query embeddings before similarity ranking.

This module provides:
- The shift contract (name, stage, weight, in-place apply)
- Identity, additive, multiplicative, staged, noise and keyword-boost shifts
- A pipeline that applies shifts in (stage, name) order

Usage:
    from shifts import EmbeddingShiftPipeline, FirstShift, DeltaShift

    pipeline = EmbeddingShiftPipeline([
        DeltaShift("learned", delta_vec),
        FirstShift("prior", prior_vec),
    ])
    shifted = pipeline.apply(query_vec)
"""

from .additive import AdditiveShift
from .base import EmbeddingShift, ShiftKind, ShiftStage
from .identity import NoShift
from .keyword_boost import (
    INSURANCE_DELTA_BOOSTS,
    INSURANCE_FIRST_BOOSTS,
    INSURANCE_KEYWORDS,
    KeywordBoostShift,
    keyword_vector,
)
from .multiplicative import MultiplicativeShift, clamp_and_guard
from .noise import RandomNoiseShift
from .pipeline import EmbeddingShiftPipeline
from .staged import DeltaShift, FirstShift, WeightedStageShift

__all__ = [
    "EmbeddingShift",
    "ShiftStage",
    "ShiftKind",
    "NoShift",
    "AdditiveShift",
    "MultiplicativeShift",
    "clamp_and_guard",
    "WeightedStageShift",
    "FirstShift",
    "DeltaShift",
    "RandomNoiseShift",
    "KeywordBoostShift",
    "keyword_vector",
    "INSURANCE_KEYWORDS",
    "INSURANCE_FIRST_BOOSTS",
    "INSURANCE_DELTA_BOOSTS",
    "EmbeddingShiftPipeline",
]
