"""Audio sources feeding the pitch listener."""
from __future__ import annotations

import logging
import queue
import threading
from pathlib import Path
from typing import Optional

import numpy as np
from scipy.io import wavfile

from .waveforms import harmonic_series

try:  # Optional dependency
    import sounddevice as sd
except Exception:  # pragma: no cover - optional dependency may be absent in CI
    sd = None  # type: ignore[assignment]

try:  # Optional dependency - richer file format support
    import soundfile as sf  # type: ignore
except Exception:  # pragma: no cover - soundfile is optional
    sf = None  # type: ignore

logger = logging.getLogger(__name__)


class AudioSource:
    """Abstract audio stream interface."""

    samplerate: int

    def start(self) -> None:  # pragma: no cover - interface method
        raise NotImplementedError

    def read(self) -> np.ndarray:  # pragma: no cover - interface method
        raise NotImplementedError

    def stop(self) -> None:  # pragma: no cover - interface method
        raise NotImplementedError


class MicSource(AudioSource):
    """Audio source backed by a system microphone."""

    def __init__(self, samplerate: int, hop: int, device: Optional[str] = None) -> None:
        if sd is None:
            raise RuntimeError("sounddevice is not available. Install it or use --demo.")

        self.samplerate = samplerate
        self.hop = hop
        self.device = device
        self.q: "queue.Queue[np.ndarray]" = queue.Queue(maxsize=64)
        self.stream = None
        self._stopped = threading.Event()

    def _callback(self, indata, frames, time_info, status):  # pragma: no cover - sounddevice callback
        if status:
            logger.debug("Input stream status: %s", status)
        if indata.ndim == 2 and indata.shape[1] > 1:
            mono = indata.mean(axis=1).copy()
        else:
            mono = indata[:, 0].copy() if indata.ndim == 2 else indata.copy()
        try:
            self.q.put_nowait(mono)
        except queue.Full:
            logger.debug("Dropping %d samples, reader is behind", mono.size)

    def start(self) -> None:
        if sd is None:  # pragma: no cover - defensive
            raise RuntimeError("sounddevice is not available.")
        self._stopped.clear()
        self.stream = sd.InputStream(
            channels=1,
            samplerate=self.samplerate,
            blocksize=self.hop,
            device=self.device,
            callback=self._callback,
            dtype="float32",
        )
        self.stream.start()

    def read(self) -> np.ndarray:
        while not self._stopped.is_set():
            try:
                return self.q.get(timeout=0.1)
            except queue.Empty:
                continue
        return np.array([], dtype=np.float32)

    def stop(self) -> None:
        self._stopped.set()
        if self.stream is not None:
            try:  # pragma: no cover - depends on audio backend
                self.stream.stop()
                self.stream.close()
            except Exception:
                logger.warning("Failed to close the input stream cleanly", exc_info=True)
            self.stream = None


class DemoSource(AudioSource):
    """Synthetic voice used when no microphone is available.

    The pitch glides between ``low`` and ``high`` Hz.  Every ``cycle`` seconds
    the last ``gap`` seconds are silent so that the debounce can be observed.
    """

    partials = (1.0, 0.6, 0.35, 0.2)

    def __init__(
        self,
        samplerate: int,
        hop: int,
        *,
        low: float = 110.0,
        high: float = 220.0,
        glide_period: float = 4.0,
        cycle: float = 2.0,
        gap: float = 0.5,
        amplitude: float = 0.25,
        noise: float = 0.005,
        seed: int | None = None,
    ) -> None:
        self.samplerate = samplerate
        self.hop = hop
        self.low = low
        self.high = high
        self.glide_period = glide_period
        self.cycle = cycle
        self.gap = gap
        self.amplitude = amplitude
        self.noise = noise
        self.t = 0
        self._phase = 0.0
        self._rng = np.random.default_rng(seed)

    def start(self) -> None:
        pass

    def read(self) -> np.ndarray:
        n = self.hop
        sr = self.samplerate
        t = (self.t + np.arange(n)) / sr
        centre = 0.5 * (self.low + self.high)
        depth = 0.5 * (self.high - self.low)
        freq = centre + depth * np.sin(2 * np.pi * t / self.glide_period)

        phase = self._phase + np.cumsum(2 * np.pi * freq / sr)
        self._phase = float(phase[-1] % (2 * np.pi))

        y = self.amplitude * harmonic_series(phase, self.partials)
        voiced = np.mod(t, self.cycle) < (self.cycle - self.gap)
        y = np.where(voiced, y, 0.0)
        y = y + self.noise * self._rng.standard_normal(n)
        self.t += n
        return y.astype(np.float32)

    def stop(self) -> None:
        pass


def load_audio(path: Path) -> tuple[np.ndarray, int]:
    """Load an audio file as mono ``float32`` samples and its sample rate."""

    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(path)

    if sf is not None:
        audio, sr = sf.read(path, dtype="float32")
        if audio.ndim > 1:
            audio = audio.mean(axis=1)
    else:
        sr, audio = wavfile.read(path)
        if audio.dtype == np.uint8:
            # 8-bit PCM is offset binary centred on 128
            audio = (audio.astype(np.float32) - 128.0) / 128.0
        elif np.issubdtype(audio.dtype, np.integer):
            audio = audio.astype(np.float32) / np.iinfo(audio.dtype).max
        if audio.ndim > 1:
            audio = audio.mean(axis=1)
    return np.asarray(audio, dtype=np.float32), int(sr)


__all__ = ["AudioSource", "MicSource", "DemoSource", "load_audio", "sd"]
