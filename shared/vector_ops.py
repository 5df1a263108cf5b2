"""
Vector helpers shared by shifts, evaluation and training.

All embeddings are float32 numpy arrays of a fixed dimension. Comparisons
between vectors of different lengths are a hard error; the only place a
vector is resized is fit_to_dimension, which callers must invoke explicitly.
"""

from typing import Iterable, Sequence, Union

import numpy as np

# Dimension of the reference corpus (matches text-embedding-3-small)
DIM = 1536

VectorLike = Union[np.ndarray, Sequence[float]]


class DimensionMismatchError(ValueError):
    """Raised when two vectors that must agree in length do not."""

    def __init__(self, expected: int, actual: int, what: str = "vector"):
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"Dimension mismatch for {what}: expected {expected}, got {actual}"
        )


def as_vector(values: VectorLike) -> np.ndarray:
    """Return a fresh 1-D float32 copy of values."""
    arr = np.array(values, dtype=np.float32)
    if arr.ndim != 1:
        raise ValueError(f"Expected a 1-D vector, got shape {arr.shape}")
    return arr


def check_dimension(vector: np.ndarray, expected: int, what: str = "vector") -> None:
    if vector.shape[0] != expected:
        raise DimensionMismatchError(expected, vector.shape[0], what)


def l2_norm(vector: VectorLike) -> float:
    """L2 norm computed in double precision."""
    return float(np.linalg.norm(np.asarray(vector, dtype=np.float64)))


def cosine_similarity(a: VectorLike, b: VectorLike) -> float:
    """
    Cosine similarity between two vectors.

    Returns 0.0 when either vector has zero norm instead of dividing by zero.

    Raises:
        DimensionMismatchError: If the vectors differ in length
    """
    a64 = np.asarray(a, dtype=np.float64)
    b64 = np.asarray(b, dtype=np.float64)
    if a64.shape != b64.shape:
        raise DimensionMismatchError(a64.shape[0], b64.shape[0], "cosine operand")

    norm_a = np.linalg.norm(a64)
    norm_b = np.linalg.norm(b64)
    if norm_a == 0.0 or norm_b == 0.0:
        return 0.0
    return float(np.dot(a64, b64) / (norm_a * norm_b))


def fit_to_dimension(values: VectorLike, dimension: int) -> np.ndarray:
    """
    Truncate or zero-pad values to exactly `dimension` entries.

    This is the one intentional resize in the codebase, used when a persisted
    delta vector was learned under a different embedding dimension.
    """
    src = np.asarray(values, dtype=np.float32).ravel()
    out = np.zeros(dimension, dtype=np.float32)
    n = min(dimension, src.shape[0])
    out[:n] = src[:n]
    return out


def is_all_zero(values: Iterable[float]) -> bool:
    arr = np.asarray(tuple(values), dtype=np.float64)
    return arr.size == 0 or not np.any(arr)
