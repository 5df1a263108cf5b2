"""
Keyword boost over the insurance keyword-count layout.

The first dimensions of a keyword-count embedding hold term counts in a fixed
order. This shift adds per-keyword boosts to those dimensions and is an
additive shift underneath.
"""

from typing import Dict, Sequence

import numpy as np

from shared.vector_ops import DIM

from .additive import AdditiveShift
from .base import ShiftKind, ShiftStage

INSURANCE_KEYWORDS = ("fire", "water", "damage", "theft", "claims", "flood", "storm")


def keyword_index(keyword: str, layout: Sequence[str] = INSURANCE_KEYWORDS) -> int:
    try:
        return list(layout).index(keyword.lower())
    except ValueError:
        raise ValueError(
            f"Unknown keyword {keyword!r}; expected one of {', '.join(layout)}"
        ) from None


def keyword_vector(
    boosts: Dict[str, float],
    dimension: int = DIM,
    layout: Sequence[str] = INSURANCE_KEYWORDS,
) -> np.ndarray:
    if dimension < len(layout):
        raise ValueError(
            f"Dimension {dimension} too small for a {len(layout)}-keyword layout"
        )
    vec = np.zeros(dimension, dtype=np.float32)
    for keyword, boost in boosts.items():
        vec[keyword_index(keyword, layout)] += boost
    return vec


class KeywordBoostShift(AdditiveShift):
    """
    Usage:
        shift = KeywordBoostShift({"damage": 0.5, "claims": 0.3})
    """

    def __init__(
        self,
        boosts: Dict[str, float],
        dimension: int = DIM,
        layout: Sequence[str] = INSURANCE_KEYWORDS,
        name: str = "KeywordBoost",
        weight: float = 1.0,
    ):
        super().__init__(
            keyword_vector(boosts, dimension, layout),
            name=name,
            weight=weight,
            stage=ShiftStage.FIRST,
            kind=ShiftKind.HEURISTIC,
        )
        self.boosts = dict(boosts)


# Domain priors used by the mini insurance workflow
INSURANCE_FIRST_BOOSTS = {
    "damage": 0.5,
    "theft": 0.3,
    "claims": 0.3,
    "flood": 0.3,
    "storm": 0.3,
}
INSURANCE_DELTA_BOOSTS = {"flood": 0.5, "storm": 0.5}
