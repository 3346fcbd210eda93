"""Capture loop tying an audio source to the analyzer and the debounce."""

from __future__ import annotations

import dataclasses
import logging
import threading
import time
from typing import Callable, List, Optional, Tuple

import numpy as np

from .audio import AudioSource
from .frame_analyzer import estimate_with_fallback
from .listener_config import ListenerConfig
from .stability import StabilityFilter
from .utils import dbfs, rms

logger = logging.getLogger(__name__)

EstimateCallback = Callable[[Optional[float]], None]


class PitchListener:
    """Keep a rolling analysis window and publish a debounced pitch per tick.

    Blocks from ``source`` are appended to a window of ``buffer_size`` samples.
    Every ``1 / refresh_rate`` seconds the window is analysed with the
    configured candidate ranges, passed through a :class:`StabilityFilter`, and
    the result is stored in :attr:`frequency` and handed to ``on_estimate``.
    """

    def __init__(
        self,
        config: ListenerConfig,
        source: AudioSource,
        *,
        on_estimate: Optional[EstimateCallback] = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.config = config
        self.source = source
        self.on_estimate = on_estimate
        self.candidates = config.detection_candidates()
        self.stability = StabilityFilter(config.lookback, config.min_detections)
        self.frequency: Optional[float] = None
        self.raw_frequency: Optional[float] = None
        self._buffer = np.zeros(int(config.buffer_size), dtype=np.float32)
        self._clock = clock
        self._sleep = sleep
        self._stop_event = threading.Event()
        self._running = False

    @property
    def buffer(self) -> np.ndarray:
        return self._buffer

    def feed(self, chunk: np.ndarray) -> None:
        """Append ``chunk`` to the rolling window, discarding the oldest samples."""

        chunk = np.asarray(chunk, dtype=np.float32).reshape(-1)
        n = self._buffer.size
        if chunk.size >= n:
            self._buffer[:] = chunk[-n:]
        elif chunk.size:
            self._buffer[:-chunk.size] = self._buffer[chunk.size:]
            self._buffer[-chunk.size:] = chunk

    def tick(self, now: Optional[float] = None) -> Optional[float]:
        """Analyse the current window and return the released frequency."""

        if now is None:
            now = self._clock()
        self.raw_frequency = estimate_with_fallback(self._buffer, self.candidates)
        self.frequency = self.stability.update(self.raw_frequency, now)
        if logger.isEnabledFor(logging.DEBUG):
            logger.debug(
                "tick %.3f level %.1f dBFS raw %s released %s",
                now,
                dbfs(rms(self._buffer)),
                self.raw_frequency,
                self.frequency,
            )
        if self.on_estimate is not None:
            self.on_estimate(self.frequency)
        return self.frequency

    def run(self, duration: Optional[float] = None) -> None:
        """Listen until :meth:`stop` is called or ``duration`` seconds elapse."""

        interval = self.config.tick_interval
        samples_per_tick = max(1, int(round(self.config.sample_rate * interval)))

        self._stop_event.clear()
        self._running = True
        self.source.start()
        logger.info(
            "Listening at %d Hz, %d-sample window, %.0f ticks/s",
            self.config.sample_rate,
            self.config.buffer_size,
            self.config.refresh_rate,
        )

        start = self._clock()
        next_tick = start
        try:
            while not self._stop_event.is_set():
                if duration is not None and self._clock() - start >= duration:
                    break

                received = 0
                while received < samples_per_tick and not self._stop_event.is_set():
                    chunk = self.source.read()
                    if chunk.size == 0:
                        break
                    self.feed(chunk)
                    received += chunk.size
                if self._stop_event.is_set():
                    break

                self.tick()

                next_tick += interval
                delay = next_tick - self._clock()
                if delay > 0:
                    self._sleep(delay)
                else:
                    next_tick = self._clock()
        finally:
            self._running = False
            self.source.stop()
            self._end_session()

    def stop(self) -> None:
        """Stop listening and forget the detection history."""

        self._stop_event.set()
        if self._running:
            # unblocks a pending read; the loop resets the session on exit
            self.source.stop()
        else:
            self._end_session()

    def _end_session(self) -> None:
        self.stability.reset()
        self.frequency = None
        self.raw_frequency = None
        self._buffer.fill(0.0)
        logger.info("Listening stopped")


def track_pitch(
    audio: np.ndarray,
    config: ListenerConfig,
    *,
    sample_rate: Optional[int] = None,
    hop: Optional[int] = None,
) -> List[Tuple[float, Optional[float]]]:
    """Run the live pipeline over a recording.

    The recording is cut into ``buffer_size`` frames every ``hop`` samples
    (one refresh interval by default). Frame ``k`` is stamped
    ``k * hop / sample_rate`` seconds. Returns ``(time, frequency)`` pairs
    where ``frequency`` is the debounced estimate.
    """

    if sample_rate is not None and int(sample_rate) != int(config.sample_rate):
        config = dataclasses.replace(config, sample_rate=int(sample_rate))
    sr = int(config.sample_rate)
    if hop is None:
        hop = max(1, int(round(sr * config.tick_interval)))
    if int(hop) <= 0:
        raise ValueError("hop must be positive.")
    hop = int(hop)

    samples = np.asarray(audio, dtype=np.float32).reshape(-1)
    n = int(config.buffer_size)
    candidates = config.detection_candidates()
    stability = StabilityFilter(config.lookback, config.min_detections)

    track: List[Tuple[float, Optional[float]]] = []
    for index, offset in enumerate(range(0, samples.size - n + 1, hop)):
        now = index * hop / sr
        raw = estimate_with_fallback(samples[offset : offset + n], candidates)
        track.append((now, stability.update(raw, now)))

    if not track:
        logger.warning(
            "Recording has %d samples, fewer than one %d-sample frame",
            samples.size,
            n,
        )
    return track


__all__ = ["EstimateCallback", "PitchListener", "track_pitch"]
