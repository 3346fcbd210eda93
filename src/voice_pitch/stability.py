"""Debounce raw per-frame estimates before they reach the display."""

from __future__ import annotations

import logging
from collections import deque
from typing import Optional

logger = logging.getLogger(__name__)

DEFAULT_LOOKBACK = 2.0
DEFAULT_MIN_DETECTIONS = 2


class StabilityFilter:
    """Release an estimate only after enough recent frames detected a pitch.

    The filter remembers the timestamps of frames that produced an estimate.
    Those older than ``lookback`` seconds are forgotten on every update. A
    present estimate is passed through unchanged once at least
    ``min_detections`` timestamps remain, otherwise ``None`` is returned.
    Absent frames never release anything.

    One instance belongs to one listening session; call :meth:`reset` when the
    session stops.
    """

    def __init__(
        self,
        lookback: float = DEFAULT_LOOKBACK,
        min_detections: int = DEFAULT_MIN_DETECTIONS,
    ) -> None:
        if not lookback > 0.0:
            raise ValueError("lookback must be a positive number of seconds.")
        if int(min_detections) < 1:
            raise ValueError("min_detections must be at least 1.")
        self.lookback = float(lookback)
        self.min_detections = int(min_detections)
        self._history: deque[float] = deque()
        self._last_time: Optional[float] = None

    @property
    def detection_count(self) -> int:
        return len(self._history)

    def update(self, estimate: Optional[float], now: float) -> Optional[float]:
        if self._last_time is not None and now < self._last_time:
            raise ValueError(
                f"Timestamps must be monotonic: {now} is earlier than {self._last_time}."
            )
        self._last_time = now

        cutoff = now - self.lookback
        while self._history and self._history[0] <= cutoff:
            self._history.popleft()

        if estimate is None:
            return None

        self._history.append(now)
        if len(self._history) >= self.min_detections:
            return estimate
        return None

    def reset(self) -> None:
        if self._history:
            logger.debug("Clearing %d stale detections", len(self._history))
        self._history.clear()
        self._last_time = None


__all__ = ["DEFAULT_LOOKBACK", "DEFAULT_MIN_DETECTIONS", "StabilityFilter"]
