"""
Per-dimension multiplicative shift.

Raw mode multiplies by the factors as given. Clamp-and-guard mode first
replaces near-zero or non-finite factors with 1.0, then clamps the rest to
[min_factor, max_factor], so a shift can never collapse a dimension to zero.
"""

import logging

import numpy as np

from shared.vector_ops import as_vector, check_dimension

from .base import EmbeddingShift, ShiftKind, ShiftStage

logger = logging.getLogger(__name__)

MIN_FACTOR = 0.25
MAX_FACTOR = 4.0
GUARD_THRESHOLD = 1e-6


def clamp_and_guard(
    factors: np.ndarray,
    min_factor: float = MIN_FACTOR,
    max_factor: float = MAX_FACTOR,
    guard_threshold: float = GUARD_THRESHOLD,
) -> np.ndarray:
    """
    Sanitize factors.

    Example:
        [100, 0.01, 0] -> [4.0, 0.25, 1.0]
    """
    out = np.asarray(factors, dtype=np.float64).copy()
    guarded = ~np.isfinite(out) | (np.abs(out) < guard_threshold)
    out[guarded] = 1.0
    out = np.clip(out, min_factor, max_factor)
    return out.astype(np.float32)


class MultiplicativeShift(EmbeddingShift):
    """
    Scales each dimension by a factor.

    Weight blends the factors toward identity: f_eff = 1 + weight * (f - 1).

    Usage:
        shift = MultiplicativeShift([2.0, 0.5, 1.0], clamp=True)
        shift = MultiplicativeShift.uniform(0.0, dimension=1536)  # collapse
    """

    stage = ShiftStage.FIRST
    kind = ShiftKind.HEURISTIC

    def __init__(
        self,
        factors,
        name: str = "MultiplicativeShift",
        weight: float = 1.0,
        clamp: bool = False,
        min_factor: float = MIN_FACTOR,
        max_factor: float = MAX_FACTOR,
        guard_threshold: float = GUARD_THRESHOLD,
    ):
        super().__init__(name, weight)
        raw = as_vector(factors)
        if self._weight != 1.0:
            raw = (1.0 + self._weight * (raw.astype(np.float64) - 1.0)).astype(np.float32)

        # Bounds apply to the blended factors
        self.clamp = clamp
        if clamp:
            self._factors = clamp_and_guard(raw, min_factor, max_factor, guard_threshold)
            changed = int(np.count_nonzero(self._factors != raw))
            if changed:
                logger.debug(f"{name}: clamp/guard adjusted {changed} factors")
        else:
            self._factors = raw

    @classmethod
    def uniform(
        cls, factor: float, dimension: int, **kwargs
    ) -> "MultiplicativeShift":
        return cls(np.full(dimension, factor, dtype=np.float32), **kwargs)

    @property
    def factors(self) -> np.ndarray:
        return self._factors.copy()

    def apply_in_place(self, vector: np.ndarray) -> None:
        check_dimension(vector, self._factors.shape[0], "multiplicative factors")
        vector *= self._factors
