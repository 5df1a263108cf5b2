"""
Stage-tagged weighted additive shifts.

FirstShift models a coarse global prior, DeltaShift a finer learned
correction. Both compute out = in + weight * vector; only the stage differs.
"""

import sys
from typing import Optional

import numpy as np

from shared.vector_ops import as_vector, check_dimension

from .base import EmbeddingShift, ShiftKind, ShiftStage

_WEIGHT_EPS = sys.float_info.epsilon


class WeightedStageShift(EmbeddingShift):
    kind = ShiftKind.HEURISTIC

    def __init__(self, name: str, vector, weight: float = 1.0):
        super().__init__(name, weight)
        self._vector = as_vector(vector)

    @property
    def vector(self) -> np.ndarray:
        return self._vector.copy()

    def apply_in_place(self, vector: np.ndarray) -> None:
        check_dimension(vector, self._vector.shape[0], f"{self.name} shift vector")
        if abs(self._weight) < _WEIGHT_EPS:
            return
        vector += np.float32(self._weight) * self._vector


class FirstShift(WeightedStageShift):
    stage = ShiftStage.FIRST


class DeltaShift(WeightedStageShift):
    stage = ShiftStage.DELTA
    kind = ShiftKind.LEARNED

    def __init__(
        self, name: str, vector, weight: float = 1.0, source: Optional[str] = None
    ):
        super().__init__(name, vector, weight)
        self.source = source
