"""Additive bias shift: out = in + weight * bias."""

from typing import Optional

import numpy as np

from shared.vector_ops import as_vector, check_dimension

from .base import EmbeddingShift, ShiftKind, ShiftStage


class AdditiveShift(EmbeddingShift):
    """
    Adds a fixed bias vector.

    Usage:
        shift = AdditiveShift(learned_delta, name="learned:insurance")
        shifted = shift.apply(query_vec)
    """

    stage = ShiftStage.DELTA
    kind = ShiftKind.LEARNED

    def __init__(
        self,
        bias,
        name: str = "AdditiveShift",
        weight: float = 1.0,
        stage: Optional[ShiftStage] = None,
        kind: Optional[ShiftKind] = None,
    ):
        super().__init__(name, weight)
        self._bias = as_vector(bias)
        if stage is not None:
            self.stage = stage
        if kind is not None:
            self.kind = kind

    @property
    def bias(self) -> np.ndarray:
        return self._bias.copy()

    @property
    def dimension(self) -> int:
        return self._bias.shape[0]

    def apply_in_place(self, vector: np.ndarray) -> None:
        check_dimension(vector, self._bias.shape[0], "additive bias")
        if self._weight == 1.0:
            vector += self._bias
        else:
            vector += np.float32(self._weight) * self._bias
