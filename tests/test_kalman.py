"""Tests for the diagonal Kalman filter and the id-keyed filter registry."""
import math
import threading
from datetime import timedelta

import numpy as np
import pytest

from sattrack.estimation.kalman import DiagonalKalmanFilter, FilterRegistry
from sattrack.physics.state import OrbitState

from conftest import NOW, leo_state


def _offset(state, dpos, dvel, dt=0.0):
    return OrbitState(
        state.position + np.asarray(dpos, dtype=float),
        state.velocity + np.asarray(dvel, dtype=float),
        state.timestamp + timedelta(seconds=dt),
    )


class TestCovariance:

    def test_initial_diagonal(self):
        cov = DiagonalKalmanFilter.initialize_covariance()
        assert np.array_equal(np.diag(cov), [1e6, 1e6, 1e6, 1e3, 1e3, 1e3])
        assert np.count_nonzero(cov - np.diag(np.diag(cov))) == 0

    def test_initial_uncertainty(self):
        kf = DiagonalKalmanFilter(leo_state(NOW))
        assert kf.uncertainty() == pytest.approx(math.sqrt(3e6))


class TestPredict:

    def test_adopts_propagated_state(self):
        kf = DiagonalKalmanFilter(leo_state(NOW))
        prop = _offset(leo_state(NOW), [100.0, -50.0, 7.0], [1.0, 2.0, 3.0], dt=60)
        kf.predict(60.0, prop)
        st = kf.state
        assert np.array_equal(st.position, prop.position)
        assert np.array_equal(st.velocity, prop.velocity)

    def test_inflates_every_diagonal(self):
        kf = DiagonalKalmanFilter(leo_state(NOW), process_noise=1e-6)
        kf.predict(100.0, leo_state(NOW))
        assert np.allclose(kf.state.variances, [1e6 + 1e-4] * 3 + [1e3 + 1e-4] * 3, rtol=0, atol=1e-12)

    def test_negative_dt_never_negative_variance(self):
        kf = DiagonalKalmanFilter(leo_state(NOW), process_noise=1.0)
        kf.predict(-1.0e7, leo_state(NOW))
        assert np.all(kf.state.variances >= 0.0)

    def test_off_diagonals_untouched(self):
        kf = DiagonalKalmanFilter(leo_state(NOW))
        kf.predict(3600.0, leo_state(NOW))
        cov = kf.state.covariance
        assert np.count_nonzero(cov - np.diag(np.diag(cov))) == 0


class TestUpdate:

    def test_per_axis_gain(self):
        s = leo_state(NOW)
        kf = DiagonalKalmanFilter(s)
        meas = _offset(s, [1000.0, 0.0, 0.0], [0.0, 10.0, 0.0], dt=30)
        out = kf.update(meas, 1000.0)

        g_pos = 1e6 / (1e6 + 1000.0)
        g_vel = 1e3 / (1e3 + 1000.0)
        assert out.position[0] == pytest.approx(s.position[0] + g_pos * 1000.0)
        assert out.velocity[1] == pytest.approx(s.velocity[1] + g_vel * 10.0)
        assert out.timestamp == meas.timestamp

        var = kf.state.variances
        assert var[0] == pytest.approx(1e6 * (1 - g_pos))
        assert var[3] == pytest.approx(1e3 * (1 - g_vel))

    def test_zero_innovation_keeps_estimate(self):
        s = leo_state(NOW)
        kf = DiagonalKalmanFilter(s)
        out = kf.update(s, 1000.0)
        assert np.array_equal(out.position, s.position)
        assert np.array_equal(out.velocity, s.velocity)

    def test_covariance_contracts(self):
        s = leo_state(NOW)
        kf = DiagonalKalmanFilter(s)
        meas = _offset(s, [500.0, 500.0, 500.0], [1.0, 1.0, 1.0])
        prev = kf.state.variances
        for _ in range(25):
            kf.update(meas, 1000.0)
            cur = kf.state.variances
            assert np.all(cur <= prev)
            assert np.all(cur >= 0.0)
            prev = cur

    def test_uncertainty_shrinks(self):
        s = leo_state(NOW)
        kf = DiagonalKalmanFilter(s)
        before = kf.uncertainty()
        kf.update(s, 1000.0)
        assert kf.uncertainty() < before

    def test_zero_variance_and_zero_noise(self):
        s = leo_state(NOW)
        kf = DiagonalKalmanFilter(s, process_noise=1.0)
        kf.predict(-1.0e9, s)  # drives all variances to 0
        out = kf.update(_offset(s, [1.0, 1.0, 1.0], [0, 0, 0]), 0.0)
        assert np.all(np.isfinite(out.position))
        assert np.array_equal(out.position, s.position)

    def test_default_uncertainty_is_measurement_noise(self):
        s = leo_state(NOW)
        meas = _offset(s, [100.0, 0.0, 0.0], [0.0, 0.0, 0.0])
        a = DiagonalKalmanFilter(s, measurement_noise=250.0)
        b = DiagonalKalmanFilter(s, measurement_noise=250.0)
        assert np.array_equal(a.update(meas).position, b.update(meas, 250.0).position)
        assert np.array_equal(a.state.variances, b.state.variances)

    def test_negative_uncertainty_rejected(self):
        kf = DiagonalKalmanFilter(leo_state(NOW))
        with pytest.raises(ValueError):
            kf.update(leo_state(NOW), -1.0)

    def test_state_is_a_copy(self):
        kf = DiagonalKalmanFilter(leo_state(NOW))
        snapshot = kf.state
        snapshot.covariance[0, 0] = -1.0
        snapshot.position[0] = 0.0
        assert kf.state.covariance[0, 0] == 1e6
        assert kf.state.position[0] != 0.0


class TestFilterRegistry:

    def test_one_filter_per_id(self):
        reg = FilterRegistry()
        a, created_a = reg.get_or_create("25544", leo_state(NOW))
        b, created_b = reg.get_or_create("25544", leo_state(NOW, altitude=800_000.0))
        assert created_a and not created_b
        assert a is b
        assert len(reg) == 1
        assert "25544" in reg

    def test_filters_do_not_share_state(self):
        reg = FilterRegistry()
        a, _ = reg.get_or_create("A", leo_state(NOW))
        b, _ = reg.get_or_create("B", leo_state(NOW))
        a.update(_offset(leo_state(NOW), [10.0, 0, 0], [0, 0, 0]), 1000.0)
        assert b.state.variances[0] == 1e6
        assert b.state.position[0] != a.state.position[0]

    def test_lock_per_id(self):
        reg = FilterRegistry()
        assert reg.lock_for("A") is reg.lock_for("A")
        assert reg.lock_for("A") is not reg.lock_for("B")
        assert isinstance(reg.lock_for("A"), type(threading.Lock()))

    def test_drop(self):
        reg = FilterRegistry()
        reg.get_or_create("A", leo_state(NOW))
        assert reg.drop("A")
        assert not reg.drop("A")
        assert reg.get("A") is None
        assert list(reg.ids()) == []

    def test_drop_keeps_lock_identity(self):
        reg = FilterRegistry()
        reg.get_or_create("A", leo_state(NOW))
        lock = reg.lock_for("A")
        reg.drop("A")
        assert reg.lock_for("A") is lock

    def test_drop_waits_for_lock_holder(self):
        reg = FilterRegistry()
        reg.get_or_create("A", leo_state(NOW))
        lock = reg.lock_for("A")
        lock.acquire()
        try:
            t = threading.Thread(target=reg.drop, args=("A",))
            t.start()
            t.join(timeout=0.2)
            assert t.is_alive()
            assert "A" in reg
        finally:
            lock.release()
        t.join(timeout=5)
        assert not t.is_alive()
        assert "A" not in reg

    def test_concurrent_creation_yields_single_filter(self):
        reg = FilterRegistry()
        got = []

        def worker():
            kf, _ = reg.get_or_create("X", leo_state(NOW))
            got.append(kf)

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        assert len(reg) == 1
        assert all(kf is got[0] for kf in got)
