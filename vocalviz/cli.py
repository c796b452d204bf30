"""Command-line options and output path selection."""

from __future__ import annotations

import argparse
from collections.abc import Sequence
from pathlib import Path

_VERSION = "0.1.0"
_DESCRIPTION = (
    "Transform any audio into karaoke videos with automatic word-level highlighting."
)


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser for the command."""
    parser = argparse.ArgumentParser(prog="vocalviz", description=_DESCRIPTION)
    parser.add_argument(
        "--version", action="version", version=f"%(prog)s {_VERSION}"
    )
    parser.add_argument(
        "--config", type=Path, metavar="CONFIG FILE", help="Sets a custom config file"
    )
    parser.add_argument(
        "-i",
        "--input",
        type=Path,
        required=True,
        metavar="AUDIO FILE",
        help="Input audio file (MP3, WAV, etc.)",
    )
    parser.add_argument(
        "-o", "--output", type=Path, metavar="OUTPUT PATH", help="Output video file"
    )
    parser.add_argument(
        "-f",
        "--font",
        type=Path,
        metavar="FONT FILE",
        help="Custom font file to use for text rendering",
    )
    return parser


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    """Parse command-line arguments; exits on invalid input."""
    return build_parser().parse_args(argv)


def generate_output_path(audio_path: str | Path) -> Path:
    """Default output: the audio file's name with a "_karaoke.mp4" suffix, beside it."""
    path = Path(audio_path)
    stem = path.stem
    if not stem:
        raise ValueError("Invalid audio file path")
    return path.parent / f"{stem}_karaoke.mp4"