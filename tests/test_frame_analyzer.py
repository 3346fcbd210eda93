from __future__ import annotations

import sys
from pathlib import Path

import numpy as np
import pytest

sys.path.insert(0, str(Path(__file__).resolve().parents[1] / "src"))

from voice_pitch import frame_analyzer
from voice_pitch.detection_config import DetectionConfig, SensitivityProfile
from voice_pitch.frame_analyzer import (
    center_clip,
    estimate,
    estimate_pitch,
    estimate_with_fallback,
    find_peaks,
    normalized_autocorrelation,
    parabolic_offset,
    period_range,
    select_peak,
)
from voice_pitch.listener_config import ListenerConfig

SR = 48000
N = 2048


def _sine(freq: float, rms: float = 0.3, sr: int = SR, n: int = N) -> np.ndarray:
    t = np.arange(n) / sr
    return (rms * np.sqrt(2.0) * np.sin(2 * np.pi * freq * t)).astype(np.float32)


def _harmonics(f0: float, amplitudes, sr: int = SR, n: int = N) -> np.ndarray:
    t = np.arange(n) / sr
    y = sum(a * np.sin(2 * np.pi * f0 * k * t) for k, a in enumerate(amplitudes, 1))
    return (0.3 * y / np.max(np.abs(y))).astype(np.float32)


@pytest.mark.parametrize("sensitivity", ["standard", "heightened"])
@pytest.mark.parametrize("bounds", [(85.0, 400.0), (105.0, 800.0), (50.0, 1000.0)])
def test_silence_is_absent(sensitivity, bounds):
    buffer = np.zeros(N, dtype=np.float32)
    assert estimate_pitch(buffer, SR, *bounds, sensitivity) is None


@pytest.mark.parametrize(
    "freq, sr",
    [(100.0, 48000), (140.0, 48000), (220.0, 48000), (330.0, 48000), (220.0, 44100)],
)
def test_pure_sine_within_one_percent(freq, sr):
    result = estimate_pitch(_sine(freq, sr=sr), sr, 85.0, 400.0)
    assert result is not None
    assert result == pytest.approx(freq, rel=0.01)


def test_voice_scenario_140_hz():
    result = estimate_pitch(_sine(140.0, rms=0.3), 48000, 85.0, 400.0)
    assert result is not None
    assert abs(result - 140.0) <= 2.0


def test_longer_lag_peak_does_not_cause_octave_error():
    f0 = 200.0
    t = np.arange(N) / SR
    # a weak sub-octave makes twice the period correlate slightly better
    y = np.sin(2 * np.pi * f0 * t) + 0.1 * np.sin(2 * np.pi * (f0 / 2) * t)
    buffer = (0.3 * y / np.max(np.abs(y))).astype(np.float32)
    period = int(SR / f0)

    level = float(np.sqrt(np.mean(buffer.astype(np.float64) ** 2)))
    clipped = center_clip(buffer.astype(np.float64), level * 0.5)
    start, stop = period_range(SR, 85.0, 400.0, buffer.size)
    curve = normalized_autocorrelation(clipped, start, stop)
    peaks = find_peaks(curve)
    values = {int(p) + start: float(curve[p]) for p in peaks}
    short = max(values[p] for p in values if abs(p - period) <= 1)
    long = max(values[p] for p in values if abs(p - 2 * period) <= 1)
    assert long > short >= 0.85 * long
    assert abs(int(peaks[np.argmax(curve[peaks])]) + start - 2 * period) <= 1

    result = estimate_pitch(buffer, SR, 85.0, 400.0)
    assert result == pytest.approx(f0, rel=0.01)


@pytest.mark.parametrize(
    "freq, low, high",
    [(400.0, 85.0, 400.0), (105.0, 105.0, 400.0)],
)
def test_period_at_range_edge_is_found(freq, low, high):
    result = estimate_pitch(_sine(freq), SR, low, high)
    assert result == pytest.approx(freq, rel=0.01)


def test_default_candidates_find_top_of_narrow_range():
    candidates = ListenerConfig().detection_candidates()
    result = estimate_with_fallback(_sine(399.0), candidates)
    assert result == pytest.approx(399.0, rel=0.01)


def test_estimate_is_deterministic():
    buffer = _harmonics(170.0, [1.0, 0.5, 0.25])
    first = estimate_pitch(buffer, SR, 85.0, 400.0)
    second = estimate_pitch(buffer, SR, 85.0, 400.0)
    assert first is not None
    assert first == second


def test_buffer_is_not_modified():
    buffer = _sine(180.0)
    original = buffer.copy()
    estimate_pitch(buffer, SR, 85.0, 400.0)
    np.testing.assert_array_equal(buffer, original)


def test_white_noise_is_rejected():
    rng = np.random.default_rng(seed=7)
    buffer = rng.normal(scale=0.1, size=N).astype(np.float32)
    assert estimate_pitch(buffer, SR, 85.0, 400.0) is None


def test_quiet_voice_needs_heightened_profile():
    buffer = _sine(150.0, rms=0.006)
    assert estimate_pitch(buffer, SR, 85.0, 400.0, "standard") is None
    result = estimate_pitch(buffer, SR, 85.0, 400.0, "heightened")
    assert result == pytest.approx(150.0, rel=0.01)


def test_explicit_profile_is_accepted():
    profile = SensitivityProfile(
        rms_threshold=0.5, clip_percent=0.5, correlation_threshold=0.7
    )
    assert estimate_pitch(_sine(150.0, rms=0.3), SR, 85.0, 400.0, profile) is None


def test_buffer_of_twice_max_period():
    sr = 8000
    max_period = int(np.ceil(sr / 100.0))
    buffer = _sine(200.0, sr=sr, n=2 * max_period)
    result = estimate_pitch(buffer, sr, 100.0, 400.0)
    assert result == pytest.approx(200.0, rel=0.02)


def test_max_frequency_above_sample_rate_does_not_crash():
    sr = 8000
    start, _ = period_range(sr, 100.0, 9000.0, 1024)
    assert start == 1
    result = estimate_pitch(_sine(200.0, sr=sr, n=1024), sr, 100.0, 9000.0)
    assert result is None or 100.0 <= result <= 9000.0


def test_buffer_too_short_for_range_is_absent():
    assert estimate_pitch(_sine(200.0, n=64), SR, 85.0, 400.0) is None


@pytest.mark.parametrize(
    "buffer, sr, low, high, kwargs",
    [
        (np.zeros(0), SR, 85.0, 400.0, {}),
        (np.zeros((2, 1024)), SR, 85.0, 400.0, {}),
        (np.ones(N), 0, 85.0, 400.0, {}),
        (np.ones(N), float("nan"), 85.0, 400.0, {}),
        (np.ones(N), SR, 400.0, 400.0, {}),
        (np.ones(N), SR, 400.0, 85.0, {}),
        (np.ones(N), SR, -1.0, 400.0, {}),
        (np.ones(N), SR, 85.0, 400.0, {"sensitivity": "loud"}),
        (np.ones(N), SR, 85.0, 400.0, {"peak_acceptance": 0.0}),
        (np.ones(N), SR, 85.0, 400.0, {"peak_acceptance": 1.5}),
    ],
)
def test_contract_violations_raise(buffer, sr, low, high, kwargs):
    with pytest.raises(ValueError):
        estimate_pitch(buffer, sr, low, high, **kwargs)


def test_estimate_uses_detection_config():
    config = DetectionConfig(sample_rate=SR, min_frequency=85.0, max_frequency=400.0)
    buffer = _sine(240.0)
    assert estimate(buffer, config) == estimate_pitch(buffer, SR, 85.0, 400.0)


def test_fallback_reaches_second_candidate():
    buffer = _sine(150.0)
    narrow = DetectionConfig(sample_rate=SR, min_frequency=460.0, max_frequency=880.0)
    wide = DetectionConfig(sample_rate=SR, min_frequency=105.0, max_frequency=800.0)

    assert estimate(buffer, narrow) is None
    result = estimate_with_fallback(buffer, [narrow, wide])
    assert result == pytest.approx(150.0, rel=0.01)


def test_fallback_prefers_first_candidate(monkeypatch):
    calls = []

    def fake_estimate(buffer, config):
        calls.append(config.max_frequency)
        return 123.0

    monkeypatch.setattr(frame_analyzer, "estimate", fake_estimate)
    candidates = [
        DetectionConfig(sample_rate=SR, min_frequency=105.0, max_frequency=400.0),
        DetectionConfig(sample_rate=SR, min_frequency=105.0, max_frequency=800.0),
    ]
    assert estimate_with_fallback(np.ones(N), candidates) == 123.0
    assert calls == [400.0]


def test_fallback_requires_candidates():
    with pytest.raises(ValueError):
        estimate_with_fallback(np.ones(N), [])


def test_center_clip_zeroes_small_samples():
    samples = np.array([0.05, -0.2, 0.1, 0.3, -0.1])
    clipped = center_clip(samples, 0.1)
    np.testing.assert_array_equal(clipped, [0.0, -0.2, 0.0, 0.3, 0.0])


def test_period_range_bounds():
    assert period_range(48000, 85.0, 400.0, 2048) == (120, 565)
    assert period_range(48000, 50.0, 400.0, 2048) == (120, 960)
    assert period_range(48000, 20.0, 400.0, 2048) == (120, 1024)
    assert period_range(48000, 20.0, 400.0, 2047) == (120, 1024)


def test_normalized_autocorrelation_of_periodic_signal():
    period = 20
    samples = np.tile(np.hanning(period), 10)
    curve = normalized_autocorrelation(samples, 1, 60)
    assert curve.shape == (59,)
    assert curve[period - 1] == pytest.approx(1.0, abs=1e-6)
    assert np.all(np.abs(curve) <= 1.0 + 1e-9)


def test_normalized_autocorrelation_of_silence_is_finite():
    curve = normalized_autocorrelation(np.zeros(256), 10, 100)
    assert np.all(np.isfinite(curve))
    assert np.all(curve == 0.0)


def test_find_peaks_is_strict():
    assert list(find_peaks(np.array([0.0, 1.0, 0.0, 0.5, 0.2]))) == [1, 3]
    assert list(find_peaks(np.array([0.0, 1.0, 1.0, 0.0]))) == []
    assert list(find_peaks(np.array([1.0, 0.5]))) == []


def test_select_peak_prefers_shortest_lag_within_band():
    curve = np.array([0.0, 0.2, 0.9, 0.1, 0.0, 0.3, 1.0, 0.2])
    peaks = find_peaks(curve)
    assert select_peak(curve, peaks) == 2
    assert select_peak(curve, peaks, peak_acceptance=0.95) == 6


def test_select_peak_skips_weak_early_peak():
    curve = np.array([0.0, 0.8, 0.1, 0.0, 1.0, 0.2])
    assert select_peak(curve, find_peaks(curve)) == 4


def test_parabolic_offset():
    assert parabolic_offset(0.5, 1.0, 0.5) == 0.0
    assert parabolic_offset(0.2, 0.2, 0.2) == 0.0
    assert parabolic_offset(0.5, 1.0, 0.8) > 0.0
    assert parabolic_offset(0.8, 1.0, 0.5) < 0.0
    # vertex of y = -(x - 0.25)^2 sampled at -1, 0, 1
    assert parabolic_offset(-1.5625, -0.0625, -0.5625) == pytest.approx(0.25)


def test_select_peak_with_only_negative_peaks():
    curve = np.array([-1.0, -0.5, -1.0, -0.2, -1.0])
    peaks = find_peaks(curve)
    assert list(peaks) == [1, 3]
    assert select_peak(curve, peaks) == 3
