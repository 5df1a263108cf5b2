"""
Persistence for shift training results.

File-system layout:
    root/
      {workflow}-training_{yyyyMMdd_HHmmss_fff}/
        shift-training-result.json
        shift-training-result.md

Directory names sort lexically in creation order, so "latest" is resolved by
a reverse name scan. There is no locking: concurrent writers resolve by
last-write-wins.
"""

import logging
import math
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterator, List, Optional, Union

import numpy as np
from pydantic import ValidationError

from shared.schemas import ShiftTrainingResult

logger = logging.getLogger(__name__)

RESULT_FILE_NAME = "shift-training-result.json"
SUMMARY_FILE_NAME = "shift-training-result.md"
LEGACY_RESULT_FILE_NAME = "result.json"

_SCORE_TOLERANCE = 1e-12


def selection_score(result: ShiftTrainingResult) -> float:
    """First+Delta improvement, falling back to First improvement when ~0."""
    score = result.improvement_first_plus_delta
    if abs(score) < _SCORE_TOLERANCE:
        score = result.improvement_first
    return score


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def pick_best(
    results: List[ShiftTrainingResult], include_cancelled: bool = False
) -> Optional[ShiftTrainingResult]:
    """Highest selection score; ties go to the newest result."""
    best = None
    best_score = -math.inf
    for result in results:
        if result.is_cancelled and not include_cancelled:
            continue
        score = selection_score(result)
        if (
            best is None
            or score > best_score + _SCORE_TOLERANCE
            or (
                abs(score - best_score) < _SCORE_TOLERANCE
                and _as_utc(result.created_utc) > _as_utc(best.created_utc)
            )
        ):
            best = result
            best_score = score
    return best


class ShiftTrainingResultRepository(ABC):
    """Save / load-latest / load-best contract for training results."""

    @abstractmethod
    def save(self, result: ShiftTrainingResult) -> None:
        """Persist a result."""

    @abstractmethod
    def load_latest(self, workflow_name: str) -> Optional[ShiftTrainingResult]:
        """Most recent result for the workflow, or None."""

    @abstractmethod
    def load_best(
        self, workflow_name: str, include_cancelled: bool = False
    ) -> Optional[ShiftTrainingResult]:
        """Best-scoring result for the workflow, or None."""


class InMemoryShiftTrainingResultRepository(ShiftTrainingResultRepository):
    """
    List-backed store for tests and single-process runs.

    Usage:
        repo = InMemoryShiftTrainingResultRepository()
        repo.save(result)
        latest = repo.load_latest("mini-insurance-posneg")
    """

    def __init__(self):
        self._results: List[ShiftTrainingResult] = []

    def save(self, result: ShiftTrainingResult) -> None:
        if not result.workflow_name:
            raise ValueError("workflow_name must be set on the training result")
        self._results.append(result)

    def _for(self, workflow_name: str) -> List[ShiftTrainingResult]:
        return [r for r in self._results if r.workflow_name == workflow_name]

    def load_latest(self, workflow_name: str) -> Optional[ShiftTrainingResult]:
        results = self._for(workflow_name)
        if not results:
            return None
        return max(results, key=lambda r: _as_utc(r.created_utc))

    def load_best(
        self, workflow_name: str, include_cancelled: bool = False
    ) -> Optional[ShiftTrainingResult]:
        return pick_best(self._for(workflow_name), include_cancelled)

    def __len__(self) -> int:
        return len(self._results)


class FileSystemShiftTrainingResultRepository(ShiftTrainingResultRepository):
    """
    One directory per result under a root directory.

    Malformed or unreadable result files are skipped with a warning; write
    errors propagate.

    Usage:
        repo = FileSystemShiftTrainingResultRepository("results/insurance")
        repo.save(result)
        best = repo.load_best("mini-insurance-posneg")
    """

    def __init__(self, root_directory: Union[str, Path]):
        if not str(root_directory).strip():
            raise ValueError("Root directory must not be empty")
        self.root = Path(root_directory)
        self.root.mkdir(parents=True, exist_ok=True)

    @staticmethod
    def directory_name(result: ShiftTrainingResult) -> str:
        stamp = _as_utc(result.created_utc).strftime("%Y%m%d_%H%M%S_%f")[:-3]
        return f"{result.workflow_name}-training_{stamp}"

    def save(self, result: ShiftTrainingResult) -> Path:
        if not result.workflow_name:
            raise ValueError("workflow_name must be set on the training result")

        target = self.root / self.directory_name(result)
        target.mkdir(parents=True, exist_ok=True)
        (target / RESULT_FILE_NAME).write_text(result.to_json(), encoding="utf-8")
        (target / SUMMARY_FILE_NAME).write_text(build_markdown(result), encoding="utf-8")
        logger.info(f"Saved training result for {result.workflow_name}: {target}")
        return target

    def _candidate_dirs(self, workflow_name: str) -> List[Path]:
        if not workflow_name:
            raise ValueError("Workflow name must not be empty")
        if not self.root.is_dir():
            return []
        return sorted(
            (p for p in self.root.glob(f"{workflow_name}-training_*") if p.is_dir()),
            key=lambda p: p.name,
            reverse=True,
        )

    @staticmethod
    def _result_path(directory: Path) -> Optional[Path]:
        for name in (RESULT_FILE_NAME, LEGACY_RESULT_FILE_NAME):
            path = directory / name
            if path.is_file():
                return path
        return None

    def _read(self, directory: Path) -> Optional[ShiftTrainingResult]:
        path = self._result_path(directory)
        if path is None:
            return None
        try:
            return ShiftTrainingResult.from_json(path.read_text(encoding="utf-8"))
        except (OSError, ValueError, ValidationError) as e:
            logger.warning(f"Skipping malformed training result {path}: {e}")
            return None

    def _iter_results(self, workflow_name: str) -> Iterator[ShiftTrainingResult]:
        for directory in self._candidate_dirs(workflow_name):
            result = self._read(directory)
            if result is not None:
                yield result

    def load_latest(self, workflow_name: str) -> Optional[ShiftTrainingResult]:
        return next(self._iter_results(workflow_name), None)

    def load_best(
        self, workflow_name: str, include_cancelled: bool = False
    ) -> Optional[ShiftTrainingResult]:
        return pick_best(list(self._iter_results(workflow_name)), include_cancelled)


def _signed(value: float) -> str:
    return f"{value:+.3f}" if value != 0 else "0.000"


def build_markdown(result: ShiftTrainingResult, top_n: int = 8) -> str:
    """Human-readable summary with the largest delta dimensions."""
    eps_text = f"{result.cancel_out_epsilon:.6E}" if result.cancel_out_epsilon > 0 else "-"
    norm_text = f"{result.delta_norm:.6E}" if result.delta_norm > 0 else "-"
    lines = [
        f"# Shift Training Result: {result.workflow_name}",
        "",
        "| Field | Value |",
        "|-------|-------|",
        f"| Created (UTC) | `{result.created_utc.isoformat()}` |",
        f"| Scope | `{result.scope_id}` |",
        f"| Base directory | `{result.base_directory}` |",
        f"| Comparison runs | `{', '.join(result.comparison_runs)}` |",
        f"| Training mode | `{result.training_mode or '-'}` |",
        f"| Cancel-out epsilon | `{eps_text}` |",
        f"| Cancelled | `{result.is_cancelled}` |",
    ]
    if result.is_cancelled and result.cancel_reason:
        reason = result.cancel_reason.replace("|", "\\|").replace("\n", " ")
        lines.append(f"| Cancel reason | `{reason}` |")
    lines += [
        f"| Delta L2 norm | `{norm_text}` |",
        f"| Improvement First | `{_signed(result.improvement_first)}` |",
        f"| Improvement First+Delta | `{_signed(result.improvement_first_plus_delta)}` |",
        f"| Delta improvement vs First | `{_signed(result.delta_improvement)}` |",
        "",
    ]

    vector = result.delta_array
    if vector.size == 0:
        lines.append("Delta vector: *(empty)*")
        return "\n".join(lines) + "\n"

    lines += [
        "## Top delta dimensions (by |value|)",
        "",
        "| Index | Value |",
        "|-------|-------|",
    ]
    order = np.argsort(-np.abs(vector), kind="stable")[:top_n]
    for idx in order:
        if vector[idx] == 0:
            break
        lines.append(f"| {int(idx)} | {_signed(float(vector[idx]))} |")
    return "\n".join(lines) + "\n"
