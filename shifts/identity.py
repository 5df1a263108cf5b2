"""Identity shift, used as the always-included fallback candidate."""

import numpy as np

from .base import EmbeddingShift, ShiftKind, ShiftStage


class NoShift(EmbeddingShift):
    """
    Leaves vectors unchanged.

    `apply` always returns a new array, so callers may mutate the result
    without touching their input.
    """

    stage = ShiftStage.FIRST
    kind = ShiftKind.NO_SHIFT

    def __init__(self, name: str = "NoShift"):
        super().__init__(name, weight=1.0)

    def apply_in_place(self, vector: np.ndarray) -> None:
        return None

    def apply(self, vector) -> np.ndarray:
        return np.array(vector, dtype=np.float32, copy=True)
