import logging

import numpy as np
import pytest

from shared.cancellation import CancellationToken, OperationCancelledError
from shared.config import TrainingConfig
from shared.schemas import TrainingQuery
from shared.vector_ops import DimensionMismatchError
from training.posneg_learner import NoUsableTrainingDataError, learn_delta_vector


def q(query_id, relevant):
    return TrainingQuery(query_id=query_id, text=query_id, relevant_doc_id=relevant)


def vecs(**kwargs):
    return {k: np.array(v, dtype=np.float32) for k, v in kwargs.items()}


def test_direction_is_relevant_minus_query_averaged():
    docs = vecs(a=[1.0, 0.0], b=[0.0, 1.0])
    queries = [q("q1", "a"), q("q2", "b")]
    query_vecs = vecs(q1=[0.5, 0.5], q2=[0.0, 0.0])

    result = learn_delta_vector(queries, docs, query_embeddings=query_vecs)

    np.testing.assert_allclose(result.delta_vector, [0.25, 0.25], atol=1e-6)
    stats = result.stats
    assert stats.cases == 2
    assert stats.unique_pairs == 2
    assert stats.min_direction_norm == pytest.approx(np.sqrt(0.5))
    assert stats.max_direction_norm == pytest.approx(1.0)
    assert not stats.norm_clip_applied
    assert not stats.cancel_out_suspected


def test_sum_aggregation():
    docs = vecs(a=[1.0, 0.0], b=[0.0, 1.0])
    options = TrainingConfig(aggregation="sum")

    result = learn_delta_vector(
        [q("q1", "a"), q("q2", "b")],
        docs,
        options=options,
        query_embeddings=vecs(q1=[0.5, 0.5], q2=[0.0, 0.0]),
    )

    np.testing.assert_allclose(result.delta_vector, [0.5, 0.5], atol=1e-6)


def test_norm_is_clipped_to_max():
    result = learn_delta_vector(
        [q("q1", "a")], vecs(a=[3.0, 0.0]), query_embeddings=vecs(q1=[0.0, 0.0])
    )

    np.testing.assert_allclose(result.delta_vector, [1.5, 0.0], atol=1e-6)
    assert result.stats.norm_clip_applied
    assert result.stats.pre_clip_delta_norm == pytest.approx(3.0)
    assert result.stats.post_clip_delta_norm == pytest.approx(1.5)


def test_clip_can_be_disabled():
    result = learn_delta_vector(
        [q("q1", "a")],
        vecs(a=[3.0, 0.0]),
        options=TrainingConfig(disable_norm_clip=True),
        query_embeddings=vecs(q1=[0.0, 0.0]),
    )

    np.testing.assert_allclose(result.delta_vector, [3.0, 0.0], atol=1e-6)
    assert not result.stats.norm_clip_applied


def test_opposing_directions_are_flagged_as_cancel_out():
    docs = vecs(a=[1.0, 0.0], b=[-1.0, 0.0])
    result = learn_delta_vector(
        [q("q1", "a"), q("q2", "b")],
        docs,
        query_embeddings=vecs(q1=[0.0, 0.0], q2=[0.0, 0.0]),
    )

    assert result.stats.cancel_out_suspected
    assert result.stats.pre_clip_delta_norm == pytest.approx(0.0)
    assert result.stats.zero_directions == 0


def test_zero_directions_are_counted():
    result = learn_delta_vector(
        [q("q1", "a")], vecs(a=[1.0, 2.0]), query_embeddings=vecs(q1=[1.0, 2.0])
    )

    assert result.stats.zero_directions == 1
    assert not result.stats.cancel_out_suspected


def test_hard_negative_direction_equals_pos_minus_neg():
    docs = vecs(pos=[1.0, 0.0], neg=[0.0, 1.0])
    options = TrainingConfig(hard_neg_top_k=1)

    result = learn_delta_vector(
        [q("q1", "pos")], docs, options=options, query_embeddings=vecs(q1=[0.1, 1.0])
    )

    np.testing.assert_allclose(result.delta_vector, [1.0, -1.0], atol=1e-6)
    assert result.stats.hard_negative_cases == 1


def test_hard_negatives_unused_when_relevant_ranks_first():
    docs = vecs(pos=[1.0, 0.0], neg=[0.0, 1.0])
    options = TrainingConfig(hard_neg_top_k=2)

    result = learn_delta_vector(
        [q("q1", "pos")], docs, options=options, query_embeddings=vecs(q1=[0.9, 0.1])
    )

    np.testing.assert_allclose(result.delta_vector, [0.1, -0.1], atol=1e-6)
    assert result.stats.hard_negative_cases == 0


def test_queries_with_missing_documents_are_skipped():
    result = learn_delta_vector(
        [q("q1", "a"), q("q2", "missing"), q("q3", None)],
        vecs(a=[1.0, 0.0]),
        query_embeddings=vecs(q1=[0.0, 0.0], q2=[5.0, 5.0], q3=[5.0, 5.0]),
    )

    assert result.stats.cases == 1
    np.testing.assert_allclose(result.delta_vector, [1.0, 0.0], atol=1e-6)


def test_no_usable_queries_fail_fast():
    with pytest.raises(NoUsableTrainingDataError):
        learn_delta_vector(
            [q("q1", "missing")], vecs(a=[1.0, 0.0]), query_embeddings=vecs(q1=[0.0, 0.0])
        )


def test_empty_corpus_is_rejected():
    with pytest.raises(ValueError):
        learn_delta_vector([q("q1", "a")], {}, query_embeddings=vecs(q1=[0.0]))


def test_inconsistent_document_dimensions_are_rejected():
    with pytest.raises(DimensionMismatchError):
        learn_delta_vector(
            [q("q1", "a")],
            vecs(a=[1.0, 0.0], b=[1.0, 0.0, 0.0]),
            query_embeddings=vecs(q1=[0.0, 0.0]),
        )


def test_queries_are_embedded_with_provider(keyword_provider):
    docs = {"d": keyword_provider.embed("flood flood")}
    queries = [TrainingQuery(query_id="q1", text="flood", relevant_doc_id="d")]

    result = learn_delta_vector(queries, docs, provider=keyword_provider)

    assert result.delta_vector[5] == pytest.approx(1.0)


def test_learning_honours_cancellation():
    token = CancellationToken()
    token.cancel()

    with pytest.raises(OperationCancelledError):
        learn_delta_vector(
            [q("q1", "a")],
            vecs(a=[1.0, 0.0]),
            query_embeddings=vecs(q1=[0.0, 0.0]),
            cancellation=token,
        )


def test_debug_option_logs_each_case(caplog):
    with caplog.at_level(logging.INFO, logger="training.posneg_learner"):
        learn_delta_vector(
            [q("q1", "a")],
            vecs(a=[1.0, 0.0]),
            options=TrainingConfig(debug=True),
            query_embeddings=vecs(q1=[0.0, 0.0]),
        )

    assert any("[PosNeg] case 1: q=q1, pos=a" in r.getMessage() for r in caplog.records)
