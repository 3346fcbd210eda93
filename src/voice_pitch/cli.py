"""Command-line entrypoints for live and offline voice pitch detection."""

from __future__ import annotations

import argparse
import dataclasses
import logging
import sys
from pathlib import Path
from typing import Optional

from .audio import AudioSource, DemoSource, MicSource, load_audio, sd
from .detection_config import PROFILES
from .listener import PitchListener, track_pitch
from .listener_config import ListenerConfig, load_config

logger = logging.getLogger(__name__)

NO_PITCH = "   --   "


def format_frequency(frequency: Optional[float]) -> str:
    if frequency is None:
        return NO_PITCH
    return f"{frequency:7.1f} Hz"


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument(
        "--config",
        type=Path,
        default=None,
        help="JSON configuration file (default: packaged voice_pitch_config.json)",
    )
    common.add_argument(
        "--sensitivity",
        choices=sorted(PROFILES),
        default=None,
        help="Sensitivity profile; 'heightened' suits low-gain microphones",
    )
    common.add_argument(
        "--log-level",
        default="WARNING",
        help="Python logging level (default: WARNING)",
    )

    parser = argparse.ArgumentParser(
        prog="voice-pitch",
        description="Estimate the fundamental frequency of a voice in real time.",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    listen = sub.add_parser(
        "listen", parents=[common], help="Listen to an input device"
    )
    listen.add_argument("--device", type=str, default=None)
    listen.add_argument("--demo", action="store_true", help="Use a synthetic voice")
    listen.add_argument(
        "--duration",
        type=float,
        default=None,
        help="Stop after this many seconds (default: run until interrupted)",
    )

    analyze = sub.add_parser(
        "analyze", parents=[common], help="Print the pitch track of a WAV file"
    )
    analyze.add_argument("path", type=Path)
    analyze.add_argument(
        "--hop",
        type=int,
        default=None,
        help="Samples between frames (default: one refresh interval)",
    )
    return parser.parse_args(argv)


def build_config(args: argparse.Namespace) -> ListenerConfig:
    config = load_config(args.config)
    overrides = {}
    if args.sensitivity is not None:
        overrides["sensitivity"] = args.sensitivity
    if getattr(args, "device", None) is not None:
        overrides["device"] = args.device
    if overrides:
        config = dataclasses.replace(config, **overrides)
    return config


def create_source(args: argparse.Namespace, config: ListenerConfig) -> AudioSource:
    if args.demo or sd is None:
        if not args.demo:
            logger.warning("sounddevice is not installed; using the demo source.")
        return DemoSource(config.sample_rate, config.block_size)
    try:
        return MicSource(config.sample_rate, config.block_size, device=config.device)
    except Exception as exc:  # pragma: no cover - interactive fallback
        logger.warning("Could not initialize microphone input: %s", exc)
        logger.warning("Falling back to demo mode. Use --device to select input.")
        return DemoSource(config.sample_rate, config.block_size)


def _listen(args: argparse.Namespace, config: ListenerConfig) -> int:
    source = create_source(args, config)

    def show(frequency: Optional[float]) -> None:
        sys.stdout.write("\r" + format_frequency(frequency))
        sys.stdout.flush()

    listener = PitchListener(config, source, on_estimate=show)
    try:
        listener.run(duration=args.duration)
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
    finally:
        sys.stdout.write("\n")
    return 0


def _analyze(args: argparse.Namespace, config: ListenerConfig) -> int:
    audio, sample_rate = load_audio(args.path)
    track = track_pitch(audio, config, sample_rate=sample_rate, hop=args.hop)
    print("time,frequency")
    for t, frequency in track:
        value = "" if frequency is None else f"{frequency:.2f}"
        print(f"{t:.4f},{value}")
    voiced = sum(1 for _, f in track if f is not None)
    logger.info("%d of %d frames voiced in %s", voiced, len(track), args.path)
    return 0


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, args.log_level.upper(), logging.WARNING),
        format="%(asctime)s %(levelname)s %(message)s",
    )
    config = build_config(args)
    if args.command == "listen":
        return _listen(args, config)
    return _analyze(args, config)


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())


__all__ = ["build_config", "create_source", "format_frequency", "main", "parse_args"]
