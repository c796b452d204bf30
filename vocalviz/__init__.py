"""Karaoke video rendering with word-level highlighting, streamed to ffmpeg."""

__version__ = "0.1.0"