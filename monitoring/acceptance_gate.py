"""
Acceptance gate for shift evaluations.

A gate checks that selected delta metrics (variant - baseline) do not
regress by more than epsilon. Profiles:

- "rank" (default): map@1 and ndcg@3 deltas
- "rank+cosine" (aliases "rankcosine", "rank-cosine"): additionally the
  mean best-match cosine delta, which catches geometry-collapsing shifts
  whose rankings happen to tie on tiny datasets
"""

import logging
from dataclasses import dataclass
from typing import Mapping, Optional, Tuple

from . import metric_keys as keys

logger = logging.getLogger(__name__)

RANK_PLUS_COSINE_ALIASES = ("rank+cosine", "rankcosine", "rank-cosine")


@dataclass(frozen=True)
class GateCheck:
    metric_key_delta: str
    display_name: str


@dataclass(frozen=True)
class GateResult:
    passed: bool
    epsilon: float
    notes: Tuple[str, ...]


RANK_CHECKS = (
    GateCheck(keys.NDCG_AT_3_DELTA, "NDCG@3 (delta)"),
    GateCheck(keys.MAP_AT_1_DELTA, "MAP@1 (delta)"),
)
COSINE_CHECK = GateCheck(keys.COSINE_DELTA, "Cosine (delta)")


def normalize_profile(profile: Optional[str]) -> str:
    """Canonical profile name; anything unrecognized is "rank"."""
    p = (profile or "rank").strip().lower()
    return "rank+cosine" if p in RANK_PLUS_COSINE_ALIASES else "rank"


def _fmt(value: float) -> str:
    return f"{value:.6g}"


class EvalAcceptanceGate:
    """
    Usage:
        gate = EvalAcceptanceGate.create_from_profile("rank+cosine", epsilon=1e-6)
        result = gate.evaluate(comparison.metrics)
        if not result.passed:
            sys.exit(2)
    """

    def __init__(self, checks: Tuple[GateCheck, ...], epsilon: float = 1e-6, profile: str = "rank"):
        self.checks = tuple(checks)
        self.epsilon = epsilon
        self.profile = profile

    @classmethod
    def create_from_profile(
        cls, profile: Optional[str] = None, epsilon: float = 1e-6
    ) -> "EvalAcceptanceGate":
        name = normalize_profile(profile)
        if name == "rank+cosine":
            return cls.create_rank_plus_cosine(epsilon)
        return cls.create_rank_only(epsilon)

    @classmethod
    def create_rank_only(cls, epsilon: float = 1e-6) -> "EvalAcceptanceGate":
        return cls(RANK_CHECKS, epsilon, "rank")

    @classmethod
    def create_rank_plus_cosine(cls, epsilon: float = 1e-6) -> "EvalAcceptanceGate":
        return cls(RANK_CHECKS + (COSINE_CHECK,), epsilon, "rank+cosine")

    def evaluate(self, metrics: Optional[Mapping[str, float]]) -> GateResult:
        if metrics is None:
            return GateResult(False, self.epsilon, ("MISSING: metrics dictionary is None",))

        notes = []
        passed = True
        for check in self.checks:
            if check.metric_key_delta not in metrics:
                passed = False
                notes.append(f"MISSING: {check.metric_key_delta}")
                continue

            delta = float(metrics[check.metric_key_delta])
            if delta < -self.epsilon:
                passed = False
                notes.append(
                    f"FAIL: {check.metric_key_delta}={_fmt(delta)} (< -{_fmt(self.epsilon)})"
                )
            else:
                notes.append(f"OK:   {check.metric_key_delta}={_fmt(delta)}")

        result = GateResult(passed, self.epsilon, tuple(notes))
        if passed:
            logger.info(f"Acceptance gate ({self.profile}) passed")
        else:
            logger.warning(
                f"Acceptance gate ({self.profile}) failed: "
                + "; ".join(n for n in notes if not n.startswith("OK"))
            )
        return result
