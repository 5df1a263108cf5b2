"""
Machine-readable record of a gate decision (acceptance_gate.json).

Writing is best-effort: a failure is logged and reported, never raised.
"""

import logging
from pathlib import Path
from typing import Mapping, Optional, Union

from shared.schemas import GateManifest

from .acceptance_gate import GateResult, normalize_profile

logger = logging.getLogger(__name__)

MANIFEST_FILE_NAME = "acceptance_gate.json"


def try_write_gate_manifest(
    results_dir: Union[str, Path, None],
    dataset: str,
    profile: Optional[str],
    gate_result: GateResult,
    metrics: Optional[Mapping[str, float]] = None,
) -> bool:
    """
    Write acceptance_gate.json into results_dir.

    Returns:
        True when the file was written
    """
    if not results_dir:
        return False

    manifest = GateManifest(
        dataset=dataset,
        profile=normalize_profile(profile),
        passed=gate_result.passed,
        epsilon=gate_result.epsilon,
        notes=list(gate_result.notes),
        metrics=dict(metrics or {}),
    )
    path = Path(results_dir) / MANIFEST_FILE_NAME
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(manifest.model_dump_json(indent=2), encoding="utf-8")
    except OSError as e:
        logger.warning(f"Could not write gate manifest {path}: {e}")
        return False

    logger.info(f"Gate manifest written: {path}")
    return True
