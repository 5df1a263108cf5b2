"""
Configuration for the embedding shift engine.

Core classes take these dataclasses by parameter. Environment variables are
read only by `Settings` (via `get_settings()`), which the command-line entry
point constructs once and threads into the core.
"""

import os
from dataclasses import dataclass, field
from functools import lru_cache
from typing import Optional

from .schemas import ShiftMethod, TrainingMode


def _env_flag(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


def _env_optional_int(name: str) -> Optional[int]:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return None
    return int(raw)


@dataclass
class EmbeddingConfig:
    """Embedding provider configuration."""
    provider: str = "sim"  # sim | semantic-hash | keyword
    dimension: int = 1536
    sim_mode: str = "deterministic"  # deterministic | noisy
    noise_amplitude: float = 0.05
    noise_seed: Optional[int] = None
    cache_enabled: bool = False


@dataclass
class TrainingConfig:
    """PosNeg delta training configuration."""
    max_l2_norm: float = 1.5
    disable_norm_clip: bool = False
    aggregation: str = "mean"  # mean | sum
    hard_neg_top_k: int = 0
    hard_neg_weight: float = 1.0
    cancel_out_epsilon: float = 1e-3
    mode: TrainingMode = TrainingMode.MICRO
    evaluate_improvement: bool = True
    debug: bool = False


@dataclass
class GateConfig:
    """Acceptance gate configuration."""
    profile: str = "rank"
    epsilon: float = 1e-6


@dataclass
class AdaptiveConfig:
    """Adaptive shift selection configuration."""
    workflow_name: str = "mini-insurance-posneg"
    method: ShiftMethod = ShiftMethod.SHIFTED
    use_best: bool = False
    include_cancelled: bool = False


@dataclass
class Settings:
    """Process-level settings loaded from environment."""

    RESULTS_ROOT: str = field(
        default_factory=lambda: os.getenv("SHIFT_RESULTS_ROOT", "results")
    )
    LOG_LEVEL: str = field(default_factory=lambda: os.getenv("LOG_LEVEL", "INFO"))

    embedding: EmbeddingConfig = field(
        default_factory=lambda: EmbeddingConfig(
            provider=os.getenv("EMBEDDING_PROVIDER", "sim"),
            sim_mode=os.getenv("EMBEDDING_SIM_MODE", "deterministic"),
            noise_amplitude=float(os.getenv("EMBEDDING_SIM_NOISE_AMPLITUDE", "0.05")),
            noise_seed=_env_optional_int("EMBEDDING_SIM_NOISE_SEED"),
            cache_enabled=_env_flag("EMBEDDING_CACHE"),
        )
    )
    training: TrainingConfig = field(default_factory=TrainingConfig)
    gate: GateConfig = field(default_factory=GateConfig)
    adaptive: AdaptiveConfig = field(default_factory=AdaptiveConfig)


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
