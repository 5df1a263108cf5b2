"""
Ordered composition of shifts.

The application order is computed once at construction: ascending stage,
then ascending name by code point. It is never re-sorted per call.
"""

import logging
from typing import Iterable, Optional, Sequence, Tuple

import numpy as np

from shared.cancellation import CancellationToken, check_cancelled
from shared.vector_ops import as_vector

from .base import EmbeddingShift, ShiftKind

logger = logging.getLogger(__name__)


class EmbeddingShiftPipeline:
    """
    Applies shifts to a vector in canonical order.

    Usage:
        pipeline = EmbeddingShiftPipeline([delta_shift, first_shift])
        pipeline.apply_in_place(query_vec)  # first_shift runs first
    """

    def __init__(self, shifts: Optional[Iterable[EmbeddingShift]] = None):
        self._shifts: Tuple[EmbeddingShift, ...] = tuple(
            sorted(shifts or (), key=lambda s: (int(s.stage), s.name))
        )

    @property
    def shifts(self) -> Tuple[EmbeddingShift, ...]:
        return self._shifts

    def __len__(self) -> int:
        return len(self._shifts)

    def __iter__(self):
        return iter(self._shifts)

    @property
    def name(self) -> str:
        if not self._shifts:
            return "NoShift"
        return "+".join(s.name for s in self._shifts)

    @property
    def kind(self) -> ShiftKind:
        if not self._shifts:
            return ShiftKind.NO_SHIFT
        if len(self._shifts) == 1:
            return self._shifts[0].kind
        return ShiftKind.COMPOSITE

    def apply_in_place(self, vector: np.ndarray) -> None:
        for shift in self._shifts:
            shift.apply_in_place(vector)

    def apply(self, vector) -> np.ndarray:
        out = as_vector(vector)
        self.apply_in_place(out)
        return out

    def apply_batch(
        self,
        vectors: Sequence[np.ndarray],
        cancellation: Optional[CancellationToken] = None,
    ) -> list:
        """Pure batch apply; returns new arrays."""
        results = []
        for vector in vectors:
            check_cancelled(cancellation)
            results.append(self.apply(vector))
        return results

    def __repr__(self) -> str:
        order = ", ".join(f"{s.stage.name}:{s.name}" for s in self._shifts)
        return f"EmbeddingShiftPipeline([{order}])"
