"""Single-frame fundamental frequency estimation for voice-range input.

The analyzer is a pure function of one sample buffer.  A frame is first gated
on loudness, center-clipped to suppress low-level noise, and then scored with a
normalized autocorrelation over the lag window implied by the frequency
bounds.  Among the local maxima of that curve, the shortest lag whose value is
close to the best peak is taken as the period, which avoids reporting a
sub-octave when a multiple of the true period correlates slightly better.
The integer lag is finally refined with a parabolic fit.

Every rejection returns ``None``.  Only malformed arguments raise.
"""

from __future__ import annotations

import logging
import math
from typing import Optional, Sequence, Tuple

import numpy as np

from .detection_config import (
    DEFAULT_PEAK_ACCEPTANCE,
    DetectionConfig,
    Sensitivity,
    get_profile,
    validate_bounds,
    validate_peak_acceptance,
)
from .utils import EPS, rms

logger = logging.getLogger(__name__)


def center_clip(samples: np.ndarray, threshold: float) -> np.ndarray:
    """Return a copy of ``samples`` with every ``|x| <= threshold`` set to zero."""

    return np.where(np.abs(samples) > threshold, samples, 0.0)


def period_range(
    sample_rate: float, min_frequency: float, max_frequency: float, length: int
) -> Tuple[int, int]:
    """Half-open ``[start, stop)`` range of lags worth examining.

    ``stop`` is additionally capped so that every lag is shorter than half the
    frame.  The range is empty (``start >= stop``) when the frame is too short
    for the requested bounds.
    """

    min_period = max(int(math.floor(sample_rate / max_frequency)), 1)
    max_period = int(math.ceil(sample_rate / min_frequency))
    # lag < length / 2
    stop = min(max_period, (length + 1) // 2)
    return min_period, stop


def normalized_autocorrelation(
    samples: np.ndarray, start: int, stop: int
) -> np.ndarray:
    """Normalized autocorrelation for lags ``start`` .. ``stop - 1``.

    Element ``k`` of the result corresponds to lag ``start + k``.  Each value is
    the overlap correlation divided by the geometric mean of the energies of
    the two overlapping segments, so it lies roughly in [-1, 1] and is not
    biased towards short lags.
    """

    n = samples.size
    if stop <= start or start < 1 or stop > n:
        return np.zeros(0, dtype=np.float64)

    x = np.asarray(samples, dtype=np.float64)
    squares = np.concatenate(([0.0], np.cumsum(x * x)))
    total = squares[-1]

    curve = np.empty(stop - start, dtype=np.float64)
    for k, lag in enumerate(range(start, stop)):
        overlap = n - lag
        corr = float(np.dot(x[:overlap], x[lag:]))
        energy1 = squares[overlap]
        energy2 = total - squares[lag]
        curve[k] = corr / math.sqrt(max(energy1 * energy2, 0.0) + EPS)
    return curve


def find_peaks(curve: np.ndarray) -> np.ndarray:
    """Indices of strict local maxima (greater than both neighbours)."""

    if curve.size < 3:
        return np.zeros(0, dtype=np.intp)
    middle = curve[1:-1]
    mask = (middle > curve[:-2]) & (middle > curve[2:])
    return np.flatnonzero(mask) + 1


def select_peak(
    curve: np.ndarray,
    peaks: np.ndarray,
    peak_acceptance: float = DEFAULT_PEAK_ACCEPTANCE,
) -> Optional[int]:
    """Pick the shortest-lag peak within ``peak_acceptance`` of the best peak.

    ``peaks`` must be in ascending order, as returned by :func:`find_peaks`.
    """

    if peaks.size == 0:
        return None
    values = curve[peaks]
    best = float(np.max(values))
    # a negative best peak would put the band above itself
    band = peak_acceptance * best if best > 0.0 else best
    for index, value in zip(peaks, values):
        if value >= band:
            return int(index)
    return None  # pragma: no cover - the best peak always meets the band


def parabolic_offset(y0: float, y1: float, y2: float) -> float:
    """Sub-sample offset of the vertex of the parabola through three points.

    Returns ``0.0`` when the three points are (numerically) collinear.
    """

    denominator = 2.0 * (y0 - 2.0 * y1 + y2)
    if abs(denominator) < EPS:
        return 0.0
    return (y0 - y2) / denominator


def _as_frame(buffer) -> np.ndarray:
    samples = np.asarray(buffer, dtype=np.float64)
    if samples.ndim != 1:
        raise ValueError(
            f"Sample buffer must be one-dimensional, got shape {samples.shape}."
        )
    if samples.size == 0:
        raise ValueError("Sample buffer must not be empty.")
    return samples


def estimate_pitch(
    buffer,
    sample_rate: float,
    min_frequency: float,
    max_frequency: float,
    sensitivity: Sensitivity = "standard",
    *,
    peak_acceptance: float = DEFAULT_PEAK_ACCEPTANCE,
) -> Optional[float]:
    """Estimate the fundamental frequency of ``buffer`` in Hertz.

    Parameters
    ----------
    buffer:
        One-dimensional mono samples, nominally in [-1, 1].  Not modified.
    sample_rate:
        Sampling rate of ``buffer`` in Hertz.
    min_frequency, max_frequency:
        Search bounds in Hertz.  The result, when present, lies within these
        bounds up to the parabolic refinement margin.
    sensitivity:
        Profile name (``"standard"`` or ``"heightened"``) or an explicit
        :class:`~voice_pitch.detection_config.SensitivityProfile`.
    peak_acceptance:
        Fraction of the best correlation peak that an earlier (higher
        frequency) peak must reach to be preferred.

    Returns
    -------
    Optional[float]
        The estimated frequency, or ``None`` when the frame is silent or not
        periodic enough.
    """

    samples = _as_frame(buffer)
    validate_bounds(sample_rate, min_frequency, max_frequency)
    validate_peak_acceptance(peak_acceptance)
    profile = get_profile(sensitivity)

    level = rms(samples)
    if level < profile.rms_threshold:
        logger.debug("Rejected frame: rms %.5f below %.5f", level, profile.rms_threshold)
        return None

    clipped = center_clip(samples, level * profile.clip_percent)

    start, stop = period_range(sample_rate, min_frequency, max_frequency, samples.size)
    # One extra lag on each side lets the range ends qualify as peaks.
    lo = max(start - 1, 1)
    hi = min(stop + 1, (samples.size + 1) // 2)
    curve = normalized_autocorrelation(clipped, lo, hi)
    peaks = find_peaks(curve)
    peaks = peaks[(peaks + lo >= start) & (peaks + lo < stop)]
    if peaks.size == 0:
        logger.debug("Rejected frame: no correlation peaks in lags [%d, %d)", start, stop)
        return None

    index = select_peak(curve, peaks, peak_acceptance)
    if index is None:  # pragma: no cover - guarded by find_peaks
        return None

    strength = float(curve[index])
    if strength < profile.correlation_threshold:
        logger.debug(
            "Rejected frame: correlation %.3f below %.3f",
            strength,
            profile.correlation_threshold,
        )
        return None

    lag = float(lo + index)
    if start < lo + index < stop - 1:
        lag += parabolic_offset(curve[index - 1], curve[index], curve[index + 1])

    if lag <= 0.0:  # pragma: no cover - offset is bounded by +/-0.5 at a peak
        return None
    return float(sample_rate / lag)


def estimate(buffer, config: DetectionConfig) -> Optional[float]:
    """:func:`estimate_pitch` driven by a :class:`DetectionConfig`."""

    return estimate_pitch(
        buffer,
        config.sample_rate,
        config.min_frequency,
        config.max_frequency,
        config.sensitivity,
        peak_acceptance=config.peak_acceptance,
    )


def estimate_with_fallback(
    buffer, candidates: Sequence[DetectionConfig]
) -> Optional[float]:
    """Try each candidate configuration in order and return the first estimate.

    A narrow frequency range listed first keeps the common case robust against
    harmonics, while a wider range afterwards still catches higher voices.
    """

    if not candidates:
        raise ValueError("At least one detection candidate is required.")
    samples = _as_frame(buffer)
    for config in candidates:
        frequency = estimate(samples, config)
        if frequency is not None:
            return frequency
    return None


__all__ = [
    "center_clip",
    "estimate",
    "estimate_pitch",
    "estimate_with_fallback",
    "find_peaks",
    "normalized_autocorrelation",
    "parabolic_offset",
    "period_range",
    "select_peak",
]
