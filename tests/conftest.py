"""Shared test fixtures."""

from datetime import datetime, timedelta, timezone

import numpy as np
import pytest

from embeddings.simulation import KeywordCountEmbeddingProvider
from shared.schemas import ShiftTrainingResult, TrainingQuery
from training.repository import InMemoryShiftTrainingResultRepository

SMALL_DIM = 8


@pytest.fixture
def keyword_provider():
    return KeywordCountEmbeddingProvider(dimension=SMALL_DIM)


@pytest.fixture
def insurance_documents():
    return {
        "doc-fire": "Fire damage from a kitchen fire is reimbursed.",
        "doc-flood": "Flood water in the basement after heavy rain.",
        "doc-theft": "Theft of a bicycle; theft is reported with police claims.",
    }


@pytest.fixture
def insurance_queries():
    return [
        TrainingQuery(query_id="q1", text="fire in the kitchen", relevant_doc_id="doc-fire"),
        TrainingQuery(query_id="q2", text="water from the flood", relevant_doc_id="doc-flood"),
        TrainingQuery(query_id="q3", text="theft at home", relevant_doc_id="doc-theft"),
    ]


@pytest.fixture
def memory_repo():
    return InMemoryShiftTrainingResultRepository()


@pytest.fixture
def make_result():
    base = datetime(2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc)

    def _make(
        workflow_name="wf",
        delta=(1.0, 0.0, 0.0),
        minutes=0,
        improvement=0.0,
        improvement_first=0.0,
        cancelled=False,
    ):
        return ShiftTrainingResult(
            workflow_name=workflow_name,
            created_utc=base + timedelta(minutes=minutes),
            delta_vector=tuple(delta),
            improvement_first=improvement_first,
            improvement_first_plus_delta=improvement,
            is_cancelled=cancelled,
            cancel_reason="Delta norm 0.000000 below epsilon 0.001000" if cancelled else None,
            delta_norm=float(np.linalg.norm(delta)),
        )

    return _make


def unit(index, dim=SMALL_DIM, value=1.0):
    vec = np.zeros(dim, dtype=np.float32)
    vec[index] = value
    return vec
