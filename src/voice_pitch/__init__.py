"""Voice-range pitch estimation with a debounced real-time listener."""

from __future__ import annotations

from importlib import import_module
from typing import TYPE_CHECKING, Any

__all__ = [
    "AudioSource",
    "DemoSource",
    "MicSource",
    "DetectionConfig",
    "SensitivityProfile",
    "PROFILES",
    "get_profile",
    "estimate",
    "estimate_pitch",
    "estimate_with_fallback",
    "StabilityFilter",
    "ListenerConfig",
    "load_config",
    "PitchListener",
    "track_pitch",
    "main",
]

_EXPORT_MAP = {
    "AudioSource": ("voice_pitch.audio", "AudioSource"),
    "DemoSource": ("voice_pitch.audio", "DemoSource"),
    "MicSource": ("voice_pitch.audio", "MicSource"),
    "DetectionConfig": ("voice_pitch.detection_config", "DetectionConfig"),
    "SensitivityProfile": ("voice_pitch.detection_config", "SensitivityProfile"),
    "PROFILES": ("voice_pitch.detection_config", "PROFILES"),
    "get_profile": ("voice_pitch.detection_config", "get_profile"),
    "estimate": ("voice_pitch.frame_analyzer", "estimate"),
    "estimate_pitch": ("voice_pitch.frame_analyzer", "estimate_pitch"),
    "estimate_with_fallback": (
        "voice_pitch.frame_analyzer",
        "estimate_with_fallback",
    ),
    "StabilityFilter": ("voice_pitch.stability", "StabilityFilter"),
    "ListenerConfig": ("voice_pitch.listener_config", "ListenerConfig"),
    "load_config": ("voice_pitch.listener_config", "load_config"),
    "PitchListener": ("voice_pitch.listener", "PitchListener"),
    "track_pitch": ("voice_pitch.listener", "track_pitch"),
    "main": ("voice_pitch.cli", "main"),
}


if TYPE_CHECKING:  # pragma: no cover - only for type checkers
    from voice_pitch.audio import AudioSource, DemoSource, MicSource
    from voice_pitch.cli import main
    from voice_pitch.detection_config import (
        PROFILES,
        DetectionConfig,
        SensitivityProfile,
        get_profile,
    )
    from voice_pitch.frame_analyzer import (
        estimate,
        estimate_pitch,
        estimate_with_fallback,
    )
    from voice_pitch.listener import PitchListener, track_pitch
    from voice_pitch.listener_config import ListenerConfig, load_config
    from voice_pitch.stability import StabilityFilter


def __getattr__(name: str) -> Any:
    """Lazily import submodules on demand so the analyzer loads without audio I/O."""

    if name in _EXPORT_MAP:
        module_name, attribute = _EXPORT_MAP[name]
        module = import_module(module_name)
        value = getattr(module, attribute)
        globals()[name] = value
        return value
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")


def __dir__() -> list[str]:
    return sorted(set(__all__))
