"""Seeded uniform noise, used to simulate embedding-provider jitter."""

from typing import Optional

import numpy as np

from .base import EmbeddingShift, ShiftKind, ShiftStage


class RandomNoiseShift(EmbeddingShift):
    """
    Adds uniform noise in [-amplitude, amplitude].

    Each instance owns its generator. Two instances with the same seed and
    amplitude produce identical output sequences. Do not share one instance
    across concurrently evaluated candidates.
    """

    stage = ShiftStage.DELTA
    kind = ShiftKind.HEURISTIC

    def __init__(
        self,
        amplitude: float,
        seed: Optional[int] = None,
        name: str = "RandomNoise",
    ):
        if amplitude < 0:
            raise ValueError(f"Noise amplitude must be >= 0, got {amplitude}")
        super().__init__(name, weight=1.0)
        self.amplitude = float(amplitude)
        self.seed = seed
        self._rng = np.random.default_rng(seed)

    def apply_in_place(self, vector: np.ndarray) -> None:
        if self.amplitude == 0.0:
            return
        noise = self._rng.uniform(-1.0, 1.0, size=vector.shape[0])
        vector += (self.amplitude * noise).astype(np.float32)
