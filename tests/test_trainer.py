import json

import pytest

from shared.cancellation import CancellationToken, OperationCancelledError
from shared.config import TrainingConfig
from shared.schemas import TrainingMode, TrainingQuery
from shifts import KeywordBoostShift
from training.dataset import load_dataset, load_queries
from training.posneg_learner import NoUsableTrainingDataError
from training.repository import FileSystemShiftTrainingResultRepository
from training.trainer import PosNegTrainer


def test_training_saves_learned_delta(
    keyword_provider, memory_repo, insurance_documents, insurance_queries
):
    trainer = PosNegTrainer(keyword_provider, memory_repo)

    result = trainer.train(insurance_documents, insurance_queries, "insurance")

    assert memory_repo.load_latest("insurance") == result
    assert len(result.delta_vector) == keyword_provider.dimension
    assert not result.is_cancelled
    assert result.delta_norm == pytest.approx(2 / 3, abs=1e-5)
    assert result.stats["cases"] == 3
    assert result.stats["zero_directions"] == 1
    assert result.training_mode == TrainingMode.MICRO.value
    assert result.scope_id == "default"


def test_degenerate_delta_is_saved_as_cancelled(keyword_provider, memory_repo):
    trainer = PosNegTrainer(keyword_provider, memory_repo)
    queries = [TrainingQuery(query_id="q1", text="flood", relevant_doc_id="d")]

    result = trainer.train({"d": "flood"}, queries, "insurance")

    assert result.is_cancelled
    assert result.cancel_reason.startswith("Delta norm 0.000000 below epsilon")
    assert result.improvement_first_plus_delta == 0.0
    assert memory_repo.load_latest("insurance").is_cancelled


def test_no_usable_queries_saves_nothing(keyword_provider, memory_repo, insurance_documents):
    trainer = PosNegTrainer(keyword_provider, memory_repo)
    queries = [TrainingQuery(query_id="q1", text="fire", relevant_doc_id="unknown")]

    with pytest.raises(NoUsableTrainingDataError):
        trainer.train(insurance_documents, queries, "insurance")

    assert len(memory_repo) == 0


def test_cancelled_training_saves_nothing(
    keyword_provider, memory_repo, insurance_documents, insurance_queries
):
    token = CancellationToken()
    token.cancel()

    with pytest.raises(OperationCancelledError):
        PosNegTrainer(keyword_provider, memory_repo).train(
            insurance_documents, insurance_queries, "insurance", cancellation=token
        )

    assert len(memory_repo) == 0


def test_improvements_are_recorded_with_first_prior(
    keyword_provider, memory_repo, insurance_documents, insurance_queries
):
    prior = KeywordBoostShift({"flood": 1.0}, dimension=keyword_provider.dimension)
    trainer = PosNegTrainer(
        keyword_provider, memory_repo, TrainingConfig(mode=TrainingMode.PRODUCTION), prior
    )

    result = trainer.train(insurance_documents, insurance_queries, "insurance")

    assert result.delta_improvement == pytest.approx(
        result.improvement_first_plus_delta - result.improvement_first
    )
    assert len(result.comparison_runs) == 2
    assert result.training_mode == "Production"


def test_train_dataset_from_directory(tmp_path, keyword_provider):
    root = tmp_path / "insurance"
    (root / "policies").mkdir(parents=True)
    (root / "queries").mkdir()
    (root / "policies" / "flood.txt").write_text("Flood and storm damage.")
    (root / "policies" / "fire.txt").write_text("Fire damage.")
    (root / "queries" / "queries.json").write_text(json.dumps([
        {"Id": "q1", "Text": "storm", "RelevantDocId": "flood"},
        {"id": "q2", "text": "fire", "relevantDocId": "fire"},
    ]))
    repo = FileSystemShiftTrainingResultRepository(tmp_path / "results")

    dataset = load_dataset(root)
    result = PosNegTrainer(keyword_provider, repo).train_dataset(dataset, "insurance")

    assert sorted(dataset.documents) == ["fire", "flood"]
    assert [qq.relevant_doc_id for qq in dataset.queries] == ["flood", "fire"]
    assert result.scope_id == "insurance"
    assert repo.load_latest("insurance").delta_vector == result.delta_vector


def test_missing_dataset_directory_raises(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_dataset(tmp_path / "nope")


def test_query_entries_must_be_objects(tmp_path):
    path = tmp_path / "queries.json"
    path.write_text(json.dumps([{"id": "q1", "text": "fire"}, ["q2", "flood"]]))

    with pytest.raises(ValueError, match="query entry 1 must be a JSON object"):
        load_queries(path)
