"""Karaoke video generation: renders frames and streams them to an encoder."""

from __future__ import annotations

import contextlib
import math
import subprocess
import tempfile
from collections.abc import Sequence
from pathlib import Path

import numpy as np

from .config import KaraokeConfig
from .renderer import TextRenderer, Transcript

_PREFERRED_ENCODERS = ("libx264", "mpeg4", "mpeg2video")
_BAR_WIDTH = 40
_FFMPEG_MISSING = (
    "FFmpeg not found! Please install FFmpeg:\n"
    "Fedora: sudo dnf install ffmpeg\n"
    "Ubuntu: sudo apt install ffmpeg\n"
    "macOS: brew install ffmpeg"
)


def _frame_duration(fps: float) -> float:
    return float(np.float32(1.0) / np.float32(fps))


def frame_count(duration: float, fps: float) -> int:
    """Number of frames needed to cover the duration at the given frame rate."""
    if fps <= 0:
        raise ValueError(f"fps must be positive, got {fps}")
    return math.ceil(duration / _frame_duration(fps))


def choose_encoder(encoders_output: str) -> str:
    """Pick the most preferred video encoder listed in the encoder list."""
    for encoder in _PREFERRED_ENCODERS:
        if encoder in encoders_output:
            return encoder
    raise RuntimeError("No suitable video encoder found")


def progress_bar(frame_num: int, total_frames: int) -> str:
    """Progress line for the given zero-based frame number."""
    progress = frame_num / total_frames * 100.0
    filled = min(max(int(progress / 100.0 * _BAR_WIDTH), 0), _BAR_WIDTH)
    empty = _BAR_WIDTH - filled
    return (
        f"🎬 Progress: |{'█' * filled}{'░' * empty}| {progress:.1f}% "
        f"({frame_num + 1}/{total_frames} frames)"
    )


class VideoGenerator:
    """Turns an audio file and its word-timed transcript into a karaoke video."""

    def __init__(self, config: KaraokeConfig, font_path: str | Path | None = None) -> None:
        self.config = config
        self.renderer = TextRenderer(config.video, config.text, font_path)

    def generate(
        self, audio_path: str | Path, transcript: Transcript, output_path: str | Path
    ) -> None:
        """Render the video for the transcript and encode it with the audio."""
        print("🎬 Starting karaoke video generation...")
        output = str(output_path)
        if not output.endswith(".mp4"):
            raise ValueError(f"Output file must have .mp4 extension, got: {output}")

        self._check_ffmpeg_available()

        segments: Sequence = transcript.segments
        total_duration = segments[-1].end if segments else 0.0
        fps = self.config.video.fps
        total_frames = frame_count(total_duration, fps)
        print(f"Duration: {total_duration:.2f}s, FPS: {fps}, Total frames: {total_frames}")

        self._stream(str(audio_path), transcript, output, fps, total_frames)

        print("✅ Video generation complete!")
        print(f"📁 Output: {output}")

    @staticmethod
    def _check_ffmpeg_available() -> None:
        try:
            subprocess.run(["ffmpeg", "-version"], capture_output=True)
        except OSError:
            raise RuntimeError(_FFMPEG_MISSING) from None

    @staticmethod
    def _best_available_encoder() -> str:
        result = subprocess.run(["ffmpeg", "-encoders"], capture_output=True)
        encoders = result.stdout.decode("utf-8", errors="replace")
        encoder = choose_encoder(encoders)
        print(f"✅ Using video encoder: {encoder}")
        return encoder

    def _command(self, audio_path: str, output_path: str, fps: int, encoder: str) -> list[str]:
        video = self.config.video
        return [
            "ffmpeg",
            "-y",
            "-f", "rawvideo",
            "-pix_fmt", "rgb24",
            "-s", f"{video.width}x{video.height}",
            "-r", str(fps),
            "-i", "pipe:0",
            "-i", audio_path,
            "-c:v", encoder,
            "-c:a", "aac",
            "-pix_fmt", "yuv420p",
            "-shortest",
            output_path,
        ]

    def _stream(
        self,
        audio_path: str,
        transcript: Transcript,
        output_path: str,
        fps: int,
        total_frames: int,
    ) -> None:
        print("🎬 Streaming frames directly to FFmpeg...")
        encoder = self._best_available_encoder()
        command = self._command(audio_path, output_path, fps, encoder)
        frame_duration = np.float32(_frame_duration(fps))
        report_every = max(int(fps) // 3, 1)

        with tempfile.TemporaryFile() as stderr:
            process = subprocess.Popen(command, stdin=subprocess.PIPE, stderr=stderr)

            def error_output() -> str:
                stderr.seek(0)
                return stderr.read().decode("utf-8", errors="replace")

            print("🖼️  Generating and streaming frames...")
            for frame_num in range(total_frames):
                timestamp = float(np.float32(frame_num) * frame_duration)
                frame = self.renderer.render_frame(timestamp, transcript.segments)
                try:
                    process.stdin.write(np.ascontiguousarray(frame, dtype=np.uint8).tobytes())
                except BrokenPipeError:
                    print("\n📺 FFmpeg finished processing (this is normal)")
                    break
                except OSError as exc:
                    process.kill()
                    process.wait()
                    raise RuntimeError(
                        f"FFmpeg write failed: {exc}\nFFmpeg error: {error_output()}"
                    ) from exc

                if frame_num % report_every == 0 or frame_num == total_frames - 1:
                    print("\r" + progress_bar(frame_num, total_frames), end="", flush=True)

            with contextlib.suppress(BrokenPipeError):
                process.stdin.close()

            print("\n🔄 Finalizing video...")
            if process.wait() != 0:
                raise RuntimeError(f"FFmpeg failed: {error_output()}")