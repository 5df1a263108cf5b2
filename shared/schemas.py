"""
Pydantic schemas for persisted and exchanged records.

Field names are snake_case in Python and PascalCase on disk so that result
files written by earlier tooling load without conversion.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Dict, List, Optional, Tuple

import numpy as np
from pydantic import AliasChoices, BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_pascal


class TrainingMode(str, Enum):
    MICRO = "Micro"
    PRODUCTION = "Production"


class TrainingQuery(BaseModel):
    """One labeled query with the id of its single relevant document."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    query_id: str = Field(
        ..., validation_alias=AliasChoices("query_id", "id", "Id", "ID")
    )
    text: str = Field(..., validation_alias=AliasChoices("text", "Text"))
    relevant_doc_id: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices(
            "relevant_doc_id", "relevantDocId", "RelevantDocId", "relevantDocumentId"
        ),
    )


class ShiftTrainingResult(BaseModel):
    """
    Outcome of one training invocation.

    Immutable once created. A result with `is_cancelled=True` carries a
    degenerate delta vector and is ignored by consumers unless they opt in.
    """

    model_config = ConfigDict(
        frozen=True,
        alias_generator=to_pascal,
        populate_by_name=True,
    )

    workflow_name: str
    created_utc: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    base_directory: str = ""
    comparison_runs: List[str] = Field(default_factory=list)

    improvement_first: float = 0.0
    improvement_first_plus_delta: float = 0.0
    delta_improvement: float = 0.0

    delta_vector: Tuple[float, ...] = ()
    training_mode: str = TrainingMode.MICRO.value

    cancel_out_epsilon: float = 0.0
    is_cancelled: bool = False
    cancel_reason: Optional[str] = None
    delta_norm: float = 0.0

    scope_id: str = "default"

    # Learner diagnostics (not part of the ranking contract)
    stats: Dict[str, float] = Field(default_factory=dict)

    @property
    def delta_array(self) -> np.ndarray:
        return np.asarray(self.delta_vector, dtype=np.float32)

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True, indent=2)

    @classmethod
    def from_json(cls, payload: str) -> "ShiftTrainingResult":
        return cls.model_validate_json(payload)


class GateManifest(BaseModel):
    """Summary written next to evaluation output as acceptance_gate.json."""

    dataset: str
    profile: str
    passed: bool
    epsilon: float
    notes: List[str] = Field(default_factory=list)
    metrics: Dict[str, float] = Field(default_factory=dict)
    created_utc: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class ShiftMethod(str, Enum):
    """How the adaptive workflow chooses the query shift."""

    NO_SHIFT_INGEST_BASED = "baseline"
    SHIFTED = "shifted"
