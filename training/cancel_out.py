"""
Cancel-out gate.

A learned delta whose L2 norm is at or below epsilon is degenerate: the
per-query corrections cancelled each other. Such results are persisted but
marked cancelled, and consumers ignore them unless they opt in.
"""

from dataclasses import dataclass
from typing import Optional

from shared.vector_ops import VectorLike, l2_norm


@dataclass(frozen=True)
class CancelOutResult:
    is_cancelled: bool
    delta_norm: float
    epsilon: float
    reason: Optional[str] = None


def evaluate_cancel_out(delta: VectorLike, epsilon: float) -> CancelOutResult:
    if epsilon < 0:
        raise ValueError(f"epsilon must be >= 0, got {epsilon}")
    norm = l2_norm(delta)
    if norm <= epsilon:
        return CancelOutResult(
            True, norm, epsilon, f"Delta norm {norm:.6f} below epsilon {epsilon:.6f}"
        )
    return CancelOutResult(False, norm, epsilon)
