import random

import pytest

from velofuse import ConfigurationError, InvalidSampleError, ScalarKalmanFilter, kalman_gain


def test_predict_then_update_scenario():
    kf = ScalarKalmanFilter(dt=1.0, R=1.0, Q=0.0)
    assert kf.get_state() == (0.0, 1.0, 0.0)

    kf.predict(1.0)
    assert kf.velocity == pytest.approx(1.0)
    assert kf.p == pytest.approx(1.0)

    kf.update(2.0)
    v, p, k = kf.get_state()
    assert k == pytest.approx(0.5)
    assert v == pytest.approx(1.5)
    assert p == pytest.approx(0.5)


def test_defaults():
    kf = ScalarKalmanFilter()
    assert (kf.dt, kf.r, kf.q) == (0.016, 1.0, 0.1)
    assert (kf.velocity, kf.p) == (0.0, 1.0)


def test_drift_without_correction():
    kf = ScalarKalmanFilter(dt=0.02, R=1.0, Q=0.1)
    a = 2.5
    last_p = kf.p
    for n in range(1, 201):
        kf.predict(a)
        assert kf.p > last_p
        assert kf.p == pytest.approx(1.0 + 0.1 * n)
        last_p = kf.p
    assert kf.velocity == pytest.approx(a * 0.02 * 200)


@pytest.mark.parametrize("p", [0.0, 1e-9, 0.3, 1.0, 50.0, 1e9])
@pytest.mark.parametrize("r", [0.0, 1e-9, 0.5, 1.0, 1e6])
def test_gain_bounds(p, r):
    k = kalman_gain(p, r)
    assert 0.0 <= k <= 1.0


def test_gain_zero_when_fully_certain():
    assert kalman_gain(0.0, 0.0) == 0.0


def test_variance_non_negative_and_non_increasing_on_update():
    rng = random.Random(11)
    kf = ScalarKalmanFilter(dt=0.01, R=0.4, Q=0.05)
    for _ in range(1000):
        if rng.random() < 0.7:
            kf.predict(rng.uniform(-5, 5))
        else:
            before = kf.p
            kf.update(rng.uniform(0, 30))
            assert 0.0 <= kf.p <= before


def test_zero_measurement_noise_snaps_to_observation():
    kf = ScalarKalmanFilter(dt=1.0, R=0.0, Q=0.0)
    kf.update(4.0)
    assert kf.velocity == 4.0
    assert kf.p == 0.0
    # P and R both zero now: gain 0, estimate kept
    kf.update(10.0)
    assert kf.velocity == 4.0
    assert kf.p == 0.0


def test_converges_to_true_velocity():
    v_true = 3.0
    kf = ScalarKalmanFilter(dt=0.016, R=1.0, Q=0.1)
    errors = []
    for i in range(2000):
        kf.predict(0.0)
        if i % 10 == 0:
            kf.update(v_true)
            errors.append(abs(kf.velocity - v_true))
    assert errors[-1] < 1e-6
    # once updates dominate the error only shrinks
    assert all(b <= a for a, b in zip(errors, errors[1:]))


def test_noisy_references_are_smoothed():
    rng = random.Random(5)
    v_true = 2.0
    kf = ScalarKalmanFilter(dt=0.02, R=1.0, Q=0.001)
    for _ in range(500):
        kf.predict(0.0)
        kf.update(v_true + rng.gauss(0, 1.0))
    assert kf.velocity == pytest.approx(v_true, abs=0.5)


@pytest.mark.parametrize("kwargs", [
    {"dt": 0.0},
    {"dt": -0.1},
    {"dt": float("inf")},
    {"R": -1.0},
    {"Q": -0.1},
    {"R": float("nan")},
    {"initial_variance": -1.0},
    {"initial_velocity": float("nan")},
])
def test_invalid_configuration_fails_fast(kwargs):
    with pytest.raises(ConfigurationError):
        ScalarKalmanFilter(**kwargs)


def test_configuration_error_is_value_error():
    with pytest.raises(ValueError):
        ScalarKalmanFilter(dt=0)


def test_non_finite_inputs_rejected_without_state_change():
    kf = ScalarKalmanFilter(dt=1.0, R=1.0, Q=0.5)
    kf.predict(1.0)
    state = kf.get_state()
    with pytest.raises(InvalidSampleError):
        kf.predict(float("nan"))
    with pytest.raises(InvalidSampleError):
        kf.update(float("inf"))
    assert kf.get_state() == state


def test_reset():
    kf = ScalarKalmanFilter(dt=1.0, initial_velocity=1.0, initial_variance=2.0)
    kf.predict(3.0)
    kf.update(0.0)
    kf.reset()
    assert kf.get_state() == (1.0, 2.0, 0.0)
    kf.reset(value=5.0, error=0.25)
    assert (kf.velocity, kf.p) == (5.0, 0.25)
