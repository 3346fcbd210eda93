"""Configuration for live and offline listening sessions."""

from __future__ import annotations

import dataclasses
import json
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from .detection_config import DEFAULT_PEAK_ACCEPTANCE, DetectionConfig, get_profile
from .stability import DEFAULT_LOOKBACK, DEFAULT_MIN_DETECTIONS

DEFAULT_CONFIG_NAME = "voice_pitch_config.json"


def _default_ranges() -> List[Tuple[float, float]]:
    return [(105.0, 400.0), (105.0, 800.0)]


@dataclasses.dataclass
class ListenerConfig:
    """Settings for one listening session, loadable from JSON."""

    sample_rate: int = 48000
    buffer_size: int = 2048
    block_size: int = 512
    refresh_rate: float = 60.0
    sensitivity: str = "standard"
    frequency_ranges: List[Tuple[float, float]] = dataclasses.field(
        default_factory=_default_ranges
    )
    peak_acceptance: float = DEFAULT_PEAK_ACCEPTANCE
    lookback: float = DEFAULT_LOOKBACK
    min_detections: int = DEFAULT_MIN_DETECTIONS
    device: Optional[str] = None

    def __post_init__(self) -> None:
        if int(self.sample_rate) <= 0:
            raise ValueError("sample_rate must be positive.")
        if int(self.buffer_size) < 3:
            raise ValueError("buffer_size must hold at least three samples.")
        if int(self.block_size) <= 0:
            raise ValueError("block_size must be positive.")
        if not float(self.refresh_rate) > 0.0:
            raise ValueError("refresh_rate must be positive.")
        if not self.frequency_ranges:
            raise ValueError("frequency_ranges must list at least one range.")
        get_profile(self.sensitivity)
        self.frequency_ranges = [
            (float(low), float(high)) for low, high in self.frequency_ranges
        ]
        self.detection_candidates()

    @property
    def tick_interval(self) -> float:
        return 1.0 / float(self.refresh_rate)

    def detection_candidates(self) -> List[DetectionConfig]:
        """Build the ordered list of analyzer configurations to try per frame."""

        return [
            DetectionConfig(
                sample_rate=self.sample_rate,
                min_frequency=low,
                max_frequency=high,
                sensitivity=self.sensitivity,
                peak_acceptance=self.peak_acceptance,
            )
            for low, high in self.frequency_ranges
        ]

    def to_dict(self) -> Dict[str, Any]:
        data = dataclasses.asdict(self)
        data["frequency_ranges"] = [list(r) for r in self.frequency_ranges]
        return data

    @staticmethod
    def from_dict(raw: Dict[str, Any]) -> "ListenerConfig":
        normalized = dict(raw)

        aliases = {
            "fft_size": "buffer_size",
        }
        for legacy_key, new_key in aliases.items():
            if legacy_key in normalized and new_key not in normalized:
                normalized[new_key] = normalized.pop(legacy_key)

        if "sensitivity" not in normalized and "is_mobile" in normalized:
            mobile = bool(normalized.pop("is_mobile"))
            normalized["sensitivity"] = "heightened" if mobile else "standard"

        ranges = normalized.get("frequency_ranges")
        if ranges is not None:
            try:
                normalized["frequency_ranges"] = [
                    (float(low), float(high)) for low, high in ranges
                ]
            except (TypeError, ValueError) as exc:
                raise ValueError(
                    "frequency_ranges must be a list of [min, max] pairs."
                ) from exc

        known = {f.name for f in dataclasses.fields(ListenerConfig)}
        filtered = {k: v for k, v in normalized.items() if k in known}
        return ListenerConfig(**filtered)


def default_config_path() -> Path:
    return Path(__file__).with_name(DEFAULT_CONFIG_NAME)


def load_config(path: Optional[Path] = None) -> ListenerConfig:
    """Load a :class:`ListenerConfig` from ``path`` (or the packaged defaults)."""

    config_path = Path(path) if path is not None else default_config_path()
    with config_path.open("r", encoding="utf-8") as handle:
        data = json.load(handle)
    return ListenerConfig.from_dict(data)


__all__ = ["ListenerConfig", "default_config_path", "load_config"]
