"""Synthetic voiced signals for the demo source and for tests.

A voiced frame is modelled as a short harmonic series: a fundamental plus a
few partials at integer multiples, each with its own amplitude.  The helpers
here build such signals either at a fixed pitch (:func:`generate_voiced_waveform`)
or from an arbitrary running phase (:func:`harmonic_series`), so that a gliding
pitch can be synthesised without discontinuities.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Sequence

import numpy as np
from scipy.io import wavfile


@dataclass(slots=True)
class VoiceParameters:
    """Parameters used to synthesise a single voiced waveform."""

    sample_rate: int
    duration: float
    base_frequency: float
    partial_amplitudes: Sequence[float] = (1.0,)
    target_rms: float | None = None
    noise_level: float = 0.0
    random_phase: bool = False
    seed: int | None = None


def harmonic_series(
    phase: np.ndarray,
    partial_amplitudes: Sequence[float],
    phase_offsets: Sequence[float] | None = None,
) -> np.ndarray:
    """Sum ``a_k * sin(k * phase + offset_k)`` over the given partials."""

    phase = np.asarray(phase, dtype=np.float64)
    out = np.zeros_like(phase)
    for k, amplitude in enumerate(partial_amplitudes, start=1):
        if amplitude == 0.0:
            continue
        offset = 0.0 if phase_offsets is None else float(phase_offsets[k - 1])
        out += amplitude * np.sin(k * phase + offset)
    return out


def generate_voiced_waveform(params: VoiceParameters) -> np.ndarray:
    """Generate a ``float32`` harmonic waveform according to ``params``.

    When ``target_rms`` is set, the deterministic part is scaled to that RMS
    before noise is added.
    """

    if params.sample_rate <= 0:
        raise ValueError("sample_rate must be positive.")
    if params.duration < 0:
        raise ValueError("duration must not be negative.")
    if not params.partial_amplitudes:
        raise ValueError("At least one partial amplitude is required.")

    rng = np.random.default_rng(params.seed)
    sample_count = int(round(params.sample_rate * params.duration))
    t = np.arange(sample_count, dtype=np.float64) / params.sample_rate
    phase = 2 * np.pi * params.base_frequency * t

    offsets = None
    if params.random_phase:
        offsets = rng.uniform(0.0, 2 * np.pi, size=len(params.partial_amplitudes))
    audio = harmonic_series(phase, params.partial_amplitudes, offsets)

    if params.target_rms is not None and audio.size:
        current = float(np.sqrt(np.mean(audio**2)))
        if current > 1.0e-12:
            audio *= params.target_rms / current

    if params.noise_level > 0.0:
        audio = audio + rng.normal(0.0, params.noise_level, size=audio.shape)

    return audio.astype(np.float32)


def write_wav(path: Path, audio: np.ndarray, sample_rate: int) -> None:
    """Write ``audio`` as a 32-bit float WAV file."""

    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    wavfile.write(path, int(sample_rate), np.asarray(audio, dtype=np.float32))


__all__ = [
    "VoiceParameters",
    "generate_voiced_waveform",
    "harmonic_series",
    "write_wav",
]
