"""Numeric helpers shared by the pitch analyzer and the capture loop."""

from __future__ import annotations

import numpy as np

EPS = 1e-10


def rms(x: np.ndarray) -> float:
    """Root-mean-square amplitude of ``x`` (``0.0`` for an empty array)."""
    if x.size == 0:
        return 0.0
    return float(np.sqrt(np.mean(np.square(x, dtype=np.float64))))


def dbfs(x: float) -> float:
    """Convert a linear amplitude into dBFS."""
    return float(20.0 * np.log10(max(x, EPS)))


__all__ = ["EPS", "rms", "dbfs"]
