"""Sensitivity profiles and per-call detection parameters."""

from __future__ import annotations

import dataclasses
import math
from typing import Any, Dict, Mapping, Union

DEFAULT_PEAK_ACCEPTANCE = 0.85


@dataclasses.dataclass(frozen=True)
class SensitivityProfile:
    """Thresholds that decide how eagerly a frame is treated as voiced.

    ``rms_threshold`` gates silence, ``clip_percent`` is the fraction of the
    frame RMS below which samples are zeroed before correlation, and
    ``correlation_threshold`` is the minimum normalized autocorrelation of the
    selected peak.
    """

    rms_threshold: float
    clip_percent: float
    correlation_threshold: float

    def __post_init__(self) -> None:
        if not self.rms_threshold >= 0.0:
            raise ValueError("rms_threshold must be non-negative.")
        if not 0.0 <= self.clip_percent < 1.0:
            raise ValueError("clip_percent must lie in [0, 1).")
        if not -1.0 <= self.correlation_threshold <= 1.0:
            raise ValueError("correlation_threshold must lie in [-1, 1].")


# Heightened is meant for inputs with small gain (phones, headset mics).
PROFILES: Dict[str, SensitivityProfile] = {
    "standard": SensitivityProfile(
        rms_threshold=0.01, clip_percent=0.5, correlation_threshold=0.7
    ),
    "heightened": SensitivityProfile(
        rms_threshold=0.004, clip_percent=0.3, correlation_threshold=0.6
    ),
}

Sensitivity = Union[str, SensitivityProfile]


def get_profile(sensitivity: Sensitivity) -> SensitivityProfile:
    """Resolve a profile name (or pass through an explicit profile)."""

    if isinstance(sensitivity, SensitivityProfile):
        return sensitivity
    try:
        return PROFILES[str(sensitivity).lower()]
    except KeyError:
        known = ", ".join(sorted(PROFILES))
        raise ValueError(
            f"Unknown sensitivity profile '{sensitivity}'. Available: {known}."
        ) from None


def validate_bounds(
    sample_rate: float, min_frequency: float, max_frequency: float
) -> None:
    """Raise ``ValueError`` for sample rates or frequency bounds no caller should pass."""

    if not math.isfinite(sample_rate) or sample_rate <= 0:
        raise ValueError("sample_rate must be positive and finite.")
    if not math.isfinite(min_frequency) or min_frequency <= 0:
        raise ValueError("min_frequency must be positive and finite.")
    if not math.isfinite(max_frequency) or max_frequency <= 0:
        raise ValueError("max_frequency must be positive and finite.")
    if min_frequency >= max_frequency:
        raise ValueError(
            f"min_frequency ({min_frequency}) must be below max_frequency ({max_frequency})."
        )


def validate_peak_acceptance(peak_acceptance: float) -> None:
    if not 0.0 < peak_acceptance <= 1.0:
        raise ValueError("peak_acceptance must lie in (0, 1].")


@dataclasses.dataclass(frozen=True)
class DetectionConfig:
    """Immutable parameters for a single call to the frame analyzer."""

    sample_rate: float
    min_frequency: float
    max_frequency: float
    sensitivity: Sensitivity = "standard"
    peak_acceptance: float = DEFAULT_PEAK_ACCEPTANCE

    def __post_init__(self) -> None:
        validate_bounds(self.sample_rate, self.min_frequency, self.max_frequency)
        validate_peak_acceptance(self.peak_acceptance)
        get_profile(self.sensitivity)

    @property
    def profile(self) -> SensitivityProfile:
        return get_profile(self.sensitivity)

    @staticmethod
    def from_dict(raw: Mapping[str, Any]) -> "DetectionConfig":
        known = {f.name for f in dataclasses.fields(DetectionConfig)}
        filtered = {k: v for k, v in raw.items() if k in known}
        sensitivity = filtered.get("sensitivity")
        if isinstance(sensitivity, Mapping):
            filtered["sensitivity"] = SensitivityProfile(**sensitivity)
        return DetectionConfig(**filtered)


__all__ = [
    "DEFAULT_PEAK_ACCEPTANCE",
    "DetectionConfig",
    "PROFILES",
    "Sensitivity",
    "SensitivityProfile",
    "get_profile",
    "validate_bounds",
    "validate_peak_acceptance",
]
