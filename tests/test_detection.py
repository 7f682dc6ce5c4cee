"""Tests for the scalar event detector and the energy tracker."""

import math

import numpy as np
import pytest

from reactive_engine.core.easing import clip, ease_in_out
from reactive_engine.core.errors import InvalidConfiguration
from reactive_engine.detection.event_detector import ScalarEventDetector
from reactive_engine.detection.scalar_tracker import EnergyTracker


class TestScalarEventDetector:

    @pytest.mark.parametrize("kwargs", [
        {"alpha": 0.0},
        {"alpha": 1.0},
        {"window_ms": 0.0},
        {"threshold_delta": -0.1},
        {"refractory_ms": -1.0},
        {"refractory_ms": math.inf},
    ])
    def test_rejects_bad_parameters(self, kwargs):
        with pytest.raises(InvalidConfiguration):
            ScalarEventDetector(**kwargs)

    def test_first_loud_sample_fires(self):
        detector = ScalarEventDetector()
        assert detector.step(0.5, now_ms=0.0)
        assert detector.fired
        assert detector.event_count == 1

    def test_quiet_signal_never_fires(self):
        detector = ScalarEventDetector(threshold_delta=0.1)
        fired = [detector.step(0.05, now_ms=i * 16.0) for i in range(200)]
        assert not any(fired)

    def test_pulse_lasts_exactly_one_tick(self):
        detector = ScalarEventDetector(refractory_ms=500.0)
        assert detector.step(1.0, now_ms=0.0)
        assert not detector.step(1.0, now_ms=16.0)
        assert not detector.fired

    def test_refractory_period_between_events(self):
        detector = ScalarEventDetector(alpha=0.65, window_ms=150.0, threshold_delta=0.1, refractory_ms=500.0)
        event_times = []
        for i in range(190):
            now_ms = i * 16.0
            sample = 1.0 if i % 10 == 0 else 0.0
            if detector.step(sample, now_ms=now_ms):
                event_times.append(now_ms)

        assert len(event_times) >= 2
        gaps = np.diff(event_times)
        assert np.all(gaps >= 500.0)

    @pytest.mark.parametrize("seed", [0, 1, 2, 3])
    def test_refractory_period_with_irregular_ticks(self, seed):
        rng = np.random.default_rng(seed)
        detector = ScalarEventDetector(refractory_ms=500.0)
        now_ms = 0.0
        event_times = []

        for _ in range(2000):
            now_ms += rng.uniform(1.0, 40.0)
            sample = rng.uniform(0.0, 1.0) if rng.random() < 0.9 else rng.uniform(1.0, 5.0)
            if detector.step(sample, now_ms=now_ms):
                event_times.append(now_ms)

        assert len(event_times) >= 10
        assert np.all(np.diff(event_times) >= 500.0)

    def test_smoothing_is_frame_rate_independent(self):
        fast = ScalarEventDetector(threshold_delta=10.0)
        slow = ScalarEventDetector(threshold_delta=10.0)
        fast.step(0.0, now_ms=0.0)
        slow.step(0.0, now_ms=0.0)

        for i in range(1, 31):
            fast.step(1.0, now_ms=i * 10.0)
        for i in range(1, 11):
            slow.step(1.0, now_ms=i * 30.0)

        expected = 1.0 - 0.65 ** (300.0 / 150.0)
        assert fast.average == pytest.approx(expected, abs=1e-9)
        assert slow.average == pytest.approx(expected, abs=1e-9)

    def test_non_finite_sample_treated_as_zero(self):
        detector = ScalarEventDetector()
        assert not detector.step(math.nan, now_ms=0.0)
        assert detector.average == 0.0
        assert not detector.step(math.inf, now_ms=16.0)
        assert detector.average == 0.0
        assert detector.step(0.5, now_ms=32.0)

    def test_time_since_last_event(self):
        detector = ScalarEventDetector()
        assert detector.time_since_last_event_ms == math.inf

        detector.step(1.0, now_ms=1000.0)
        assert detector.time_since_last_event_ms == 0.0

        detector.step(0.0, now_ms=1100.0)
        assert detector.time_since_last_event_ms == pytest.approx(100.0)

    def test_time_never_runs_backwards(self):
        detector = ScalarEventDetector(refractory_ms=500.0)
        assert detector.step(1.0, now_ms=1000.0)
        assert not detector.step(5.0, now_ms=100.0)
        assert detector.time_since_last_event_ms == 0.0

    def test_uses_clock_when_no_time_given(self, fake_clock):
        detector = ScalarEventDetector(refractory_ms=500.0, clock=fake_clock)
        fake_clock.now = 10.0
        assert detector.step(1.0)
        fake_clock.now = 10.2
        assert not detector.step(5.0)
        fake_clock.now = 10.6
        assert detector.step(5.0)
        assert detector.event_count == 2

    def test_transition_progress(self):
        detector = ScalarEventDetector(refractory_ms=500.0)
        assert detector.transition_progress() == 1.0

        detector.step(1.0, now_ms=0.0)
        assert detector.transition_progress() == 0.0

        detector.step(0.0, now_ms=125.0)
        assert detector.transition_progress() == pytest.approx(0.5)

        detector.step(0.0, now_ms=400.0)
        assert detector.transition_progress() == 1.0

    def test_reset(self):
        detector = ScalarEventDetector()
        detector.step(1.0, now_ms=0.0)
        detector.reset()

        assert detector.average == 0.0
        assert detector.time_since_last_event_ms == math.inf
        assert detector.step(1.0, now_ms=10.0)


class TestEnergyTracker:

    def test_mean_absolute_value_of_band(self):
        tracker = EnergyTracker(low_fraction=0.0, high_fraction=0.5, max_amplitude=2.0)
        samples = np.array([1.0, -1.0, 2.0, 2.0], dtype=np.float32)

        assert tracker.update(samples) == pytest.approx(0.5)
        assert tracker.get() == pytest.approx(0.5)

    def test_band_has_at_least_one_sample(self):
        tracker = EnergyTracker(low_fraction=0.0, high_fraction=0.01)
        assert tracker.update(np.array([0.8, 0.0, 0.0, 0.0], dtype=np.float32)) == pytest.approx(0.8)

    def test_empty_buffer(self):
        assert EnergyTracker().update(np.zeros(0, dtype=np.float32)) == 0.0

    def test_rejects_bad_band(self):
        with pytest.raises(InvalidConfiguration):
            EnergyTracker(low_fraction=0.5, high_fraction=0.5)
        with pytest.raises(InvalidConfiguration):
            EnergyTracker(max_amplitude=0.0)


class TestEasing:

    def test_clip(self):
        assert clip(-1.0) == 0.0
        assert clip(2.0) == 1.0
        assert clip(math.nan) == 0.0
        assert clip(5.0, 0.0, 10.0) == 5.0

    def test_ease_in_out_endpoints_and_midpoint(self):
        assert ease_in_out(0.0) == 0.0
        assert ease_in_out(1.0) == 1.0
        assert ease_in_out(0.5) == pytest.approx(0.5)
        assert ease_in_out(0.25) < 0.25
