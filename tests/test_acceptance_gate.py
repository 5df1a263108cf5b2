import json

import pytest

from monitoring import metric_keys as keys
from monitoring.acceptance_gate import EvalAcceptanceGate, normalize_profile
from monitoring.gate_manifest import MANIFEST_FILE_NAME, try_write_gate_manifest


def ranking_metrics(map_base, map_variant, ndcg_delta=0.0, cosine_delta=0.0):
    return {
        keys.MAP_AT_1_BASELINE: map_base,
        keys.MAP_AT_1_VARIANT: map_variant,
        keys.MAP_AT_1_DELTA: map_variant - map_base,
        keys.NDCG_AT_3_DELTA: ndcg_delta,
        keys.COSINE_DELTA: cosine_delta,
    }


def test_rank_profile_passes_on_improvement():
    result = EvalAcceptanceGate.create_from_profile("rank").evaluate(ranking_metrics(0.9, 1.0))

    assert result.passed
    assert result.epsilon == 1e-6
    assert all(note.startswith("OK") for note in result.notes)


def test_rank_profile_fails_on_regression():
    result = EvalAcceptanceGate.create_from_profile("rank").evaluate(ranking_metrics(1.0, 0.9))

    assert not result.passed
    assert any(note.startswith(f"FAIL: {keys.MAP_AT_1_DELTA}=") for note in result.notes)


def test_cosine_collapse_passes_rank_but_fails_rank_plus_cosine():
    metrics = ranking_metrics(1.0, 1.0, cosine_delta=-0.4)

    assert EvalAcceptanceGate.create_from_profile("rank").evaluate(metrics).passed
    strict = EvalAcceptanceGate.create_from_profile("rank+cosine").evaluate(metrics)
    assert not strict.passed
    assert any(note.startswith(f"FAIL: {keys.COSINE_DELTA}") for note in strict.notes)


@pytest.mark.parametrize("alias", ["rank+cosine", "RankCosine", " rank-cosine "])
def test_rank_plus_cosine_aliases(alias):
    assert normalize_profile(alias) == "rank+cosine"
    assert len(EvalAcceptanceGate.create_from_profile(alias).checks) == 3


@pytest.mark.parametrize("profile", [None, "", "rank", "something-else"])
def test_other_profiles_fall_back_to_rank(profile):
    assert EvalAcceptanceGate.create_from_profile(profile).profile == "rank"


def test_delta_equal_to_minus_epsilon_passes():
    gate = EvalAcceptanceGate.create_from_profile("rank", epsilon=0.01)
    metrics = {keys.MAP_AT_1_DELTA: -0.01, keys.NDCG_AT_3_DELTA: 0.0}

    assert gate.evaluate(metrics).passed


def test_missing_metric_fails():
    gate = EvalAcceptanceGate.create_from_profile("rank+cosine")
    metrics = {keys.MAP_AT_1_DELTA: 0.0, keys.NDCG_AT_3_DELTA: 0.0}

    result = gate.evaluate(metrics)

    assert not result.passed
    assert f"MISSING: {keys.COSINE_DELTA}" in result.notes


def test_none_metrics_fail():
    result = EvalAcceptanceGate.create_from_profile("rank").evaluate(None)

    assert not result.passed
    assert result.notes[0].startswith("MISSING")


def test_manifest_is_written(tmp_path):
    gate = EvalAcceptanceGate.create_from_profile("rank-cosine")
    metrics = ranking_metrics(0.5, 0.75)
    result = gate.evaluate(metrics)

    assert try_write_gate_manifest(tmp_path / "eval", "insurance", "rank-cosine", result, metrics)

    payload = json.loads((tmp_path / "eval" / MANIFEST_FILE_NAME).read_text())
    assert payload["profile"] == "rank+cosine"
    assert payload["passed"] is True
    assert payload["metrics"][keys.MAP_AT_1_DELTA] == 0.25


def test_manifest_write_failure_is_reported_not_raised(tmp_path):
    blocker = tmp_path / "blocker"
    blocker.write_text("not a directory")
    result = EvalAcceptanceGate.create_from_profile("rank").evaluate(ranking_metrics(1, 1))

    assert try_write_gate_manifest(blocker / "eval", "ds", "rank", result) is False
    assert try_write_gate_manifest(None, "ds", "rank", result) is False
