import numpy as np
import pytest

from shared.vector_ops import DimensionMismatchError
from shifts import (
    AdditiveShift,
    DeltaShift,
    FirstShift,
    KeywordBoostShift,
    MultiplicativeShift,
    NoShift,
    RandomNoiseShift,
    ShiftStage,
    clamp_and_guard,
)


def test_weighted_stage_shift_adds_weighted_vector():
    shift = FirstShift("prior", [10, 20, 30], weight=1.0)
    vec = np.array([1, 2, 3], dtype=np.float32)

    shift.apply_in_place(vec)

    assert vec.tolist() == [11.0, 22.0, 33.0]


def test_delta_shift_is_delta_stage_with_source():
    shift = DeltaShift("learned", [1, 1], weight=0.5, source="posneg")

    assert shift.stage == ShiftStage.DELTA
    assert shift.source == "posneg"
    assert shift.apply([0, 0]).tolist() == [0.5, 0.5]


def test_zero_weight_is_noop():
    vec = np.array([1.5, -2.0], dtype=np.float32)
    FirstShift("prior", [100, 100], weight=0.0).apply_in_place(vec)

    assert vec.tolist() == [1.5, -2.0]


def test_weighted_stage_rejects_length_mismatch():
    with pytest.raises(DimensionMismatchError):
        FirstShift("prior", [1, 2, 3]).apply([1, 2])


def test_no_shift_returns_independent_copy():
    vec = np.array([1.0, 2.0, 3.0], dtype=np.float32)

    out = NoShift().apply(vec)
    vec[0] = 99.0

    assert out is not vec
    assert not np.shares_memory(out, vec)
    assert out.tolist() == [1.0, 2.0, 3.0]


def test_additive_shift():
    out = AdditiveShift([0.5, -0.5]).apply([1.0, 1.0])

    assert out.tolist() == [1.5, 0.5]


def test_multiplicative_clamp_and_guard():
    shift = MultiplicativeShift([100.0, 0.01, 0.0], clamp=True)

    out = shift.apply([1.0, 1.0, 1.0])

    assert out.tolist() == pytest.approx([4.0, 0.25, 1.0])


def test_multiplicative_guard_keeps_outputs_finite_for_tiny_factors():
    shift = MultiplicativeShift([1e-12, -1e-12, float("nan")], clamp=True)

    out = shift.apply([2.0, 3.0, 4.0])

    assert np.all(np.isfinite(out))
    assert out.tolist() == [2.0, 3.0, 4.0]


def test_identity_factors_are_idempotent():
    vec = np.array([0.1, -7.25, 3.3333], dtype=np.float32)
    shift = MultiplicativeShift(np.ones(3))
    once = shift.apply(vec)
    twice = shift.apply(once)

    assert once.tobytes() == vec.tobytes()
    assert twice.tobytes() == vec.tobytes()


def test_raw_multiplicative_zero_collapses_vector():
    out = MultiplicativeShift.uniform(0.0, 4).apply([1, 2, 3, 4])

    assert not np.any(out)


def test_multiplicative_weight_blends_toward_identity():
    shift = MultiplicativeShift([3.0], weight=0.5)

    assert shift.factors.tolist() == [2.0]


def test_clamped_weighted_factors_stay_in_bounds():
    shift = MultiplicativeShift([100.0, 0.25], clamp=True, weight=2.0)

    assert shift.factors.tolist() == pytest.approx([4.0, 0.25])


def test_clamped_blend_to_zero_is_guarded():
    out = MultiplicativeShift([0.25], clamp=True, weight=4 / 3).apply([5.0])

    assert out.tolist() == pytest.approx([5.0])


def test_clamp_and_guard_function():
    assert clamp_and_guard([10.0, 0.1, 0.0, 2.0]).tolist() == pytest.approx(
        [4.0, 0.25, 1.0, 2.0]
    )


def test_random_noise_zero_amplitude_is_noop():
    vec = np.array([0.3, -0.2, 0.9], dtype=np.float32)

    out = RandomNoiseShift(0.0, seed=1).apply(vec)

    assert out.tobytes() == vec.tobytes()


def test_random_noise_same_seed_reproduces_sequence():
    a = RandomNoiseShift(0.1, seed=42)
    b = RandomNoiseShift(0.1, seed=42)
    base = np.zeros(16, dtype=np.float32)

    for _ in range(3):
        np.testing.assert_allclose(a.apply(base), b.apply(base), atol=1e-5)


def test_random_noise_stays_within_amplitude():
    out = RandomNoiseShift(0.05, seed=7).apply(np.zeros(1000))

    assert np.max(np.abs(out)) <= 0.05 + 1e-7
    assert np.any(out)


def test_random_noise_rejects_negative_amplitude():
    with pytest.raises(ValueError):
        RandomNoiseShift(-0.1)


def test_keyword_boost_targets_named_dimensions():
    shift = KeywordBoostShift({"damage": 0.5, "flood": 0.3}, dimension=8)

    out = shift.apply(np.zeros(8))

    assert out[2] == pytest.approx(0.5)
    assert out[5] == pytest.approx(0.3)
    assert np.count_nonzero(out) == 2
    assert isinstance(shift, AdditiveShift)
    assert shift.stage == ShiftStage.FIRST


def test_keyword_boost_rejects_unknown_keyword():
    with pytest.raises(ValueError, match="Unknown keyword"):
        KeywordBoostShift({"earthquake": 1.0}, dimension=8)
