"""
Shift contract shared by every embedding transform.

A shift mutates a query embedding in place before similarity ranking.
Pipelines order shifts by (stage, name), so both must be stable.
"""

from abc import ABC, abstractmethod
from enum import Enum, IntEnum

import numpy as np

from shared.vector_ops import as_vector


class ShiftStage(IntEnum):
    """Pipeline ordering tag. FIRST runs before DELTA."""

    FIRST = 0
    DELTA = 1


class ShiftKind(str, Enum):
    NO_SHIFT = "no_shift"
    HEURISTIC = "heuristic"
    LEARNED = "learned"
    COMPOSITE = "composite"


class EmbeddingShift(ABC):
    """
    Base class for all shifts.

    Subclasses implement `apply_in_place`; `apply` is the pure variant that
    leaves the caller's vector untouched.
    """

    stage: ShiftStage = ShiftStage.FIRST
    kind: ShiftKind = ShiftKind.HEURISTIC

    def __init__(self, name: str, weight: float = 1.0):
        self._name = name
        self._weight = float(weight)

    @property
    def name(self) -> str:
        return self._name

    @property
    def weight(self) -> float:
        return self._weight

    @abstractmethod
    def apply_in_place(self, vector: np.ndarray) -> None:
        """Mutate vector in place. Dimension never changes."""

    def apply(self, vector) -> np.ndarray:
        """Return a shifted copy of vector."""
        out = as_vector(vector)
        self.apply_in_place(out)
        return out

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(name={self.name!r}, "
            f"stage={self.stage.name}, weight={self.weight})"
        )
