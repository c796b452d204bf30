"""Frame rendering: backgrounds plus karaoke word groups with highlighting."""

from __future__ import annotations

import re
import subprocess
import tempfile
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from pathlib import Path

import numpy as np
from PIL import Image, ImageDraw, ImageFont

from .config import (
    Background,
    GradientBackground,
    ImageBackground,
    Scaling,
    SolidBackground,
    TextConfig,
    VideoBackground,
    VideoConfig,
)

Color = tuple[int, int, int]
Font = ImageFont.FreeTypeFont | ImageFont.ImageFont

_LOOK_AHEAD = 8.0
_LINGER = 2.0
_WORDS_PER_GROUP = 4
_MAX_GROUPS = 3
_FADE_DURATION = 0.5
_WORD_SPACING = 20.0
_SHADOW_OFFSET = 2.0
_SHADOW_COLOR: Color = (0, 0, 0)
_VIDEO_FALLBACK: Color = (32, 32, 32)
_VIDEO_FRAME_RATE = 30.0
_MAX_VIDEO_FRAMES = 3600
_HEX_COLOR = re.compile(r"[0-9a-fA-F]{6}")


@dataclass(frozen=True)
class Word:
    """A transcribed word with its start and end time in seconds."""

    text: str
    start: float
    end: float


@dataclass(frozen=True)
class WordSegment:
    """A span of speech and the words in it."""

    start: float
    end: float
    words: tuple[Word, ...] = ()
    text: str = ""


@dataclass(frozen=True)
class Transcript:
    """A whole transcription as a sequence of segments."""

    segments: tuple[WordSegment, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class WordGroup:
    """Up to four consecutive words, each paired with whether it is highlighted."""

    words: tuple[tuple[Word, bool], ...]
    start_time: float
    end_time: float


def parse_hex_color(hex_color: str) -> Color:
    """Parse a colour such as "#FFD700" into an RGB tuple."""
    digits = hex_color.lstrip("#")
    if not _HEX_COLOR.fullmatch(digits):
        raise ValueError(f"Invalid hex color: {digits}")
    return (int(digits[0:2], 16), int(digits[2:4], 16), int(digits[4:6], 16))


def _chunks(words: Sequence[Word], size: int) -> Iterable[Sequence[Word]]:
    for begin in range(0, len(words), size):
        yield words[begin : begin + size]


def create_word_groups(timestamp: float, segments: Iterable[WordSegment]) -> list[WordGroup]:
    """Return the (at most three) word groups visible at the given time, earliest first."""
    groups = []
    for segment in segments:
        if not segment.start - _LOOK_AHEAD <= timestamp <= segment.end + _LINGER:
            continue
        for chunk in _chunks(tuple(segment.words), _WORDS_PER_GROUP):
            group_start = chunk[0].start
            group_end = chunk[-1].end
            if group_end < timestamp - 1.0:
                continue
            groups.append(
                WordGroup(
                    words=tuple((word, word.start <= timestamp <= word.end) for word in chunk),
                    start_time=group_start,
                    end_time=group_end,
                )
            )
    groups.sort(key=lambda group: group.start_time)
    return groups[:_MAX_GROUPS]


def calculate_group_opacity(group: WordGroup, timestamp: float) -> float:
    """Opacity of a group: dim preview before, full while current, fading after."""
    if timestamp < group.start_time - _FADE_DURATION:
        progress = (timestamp - (group.start_time - _FADE_DURATION * 2.0)) / _FADE_DURATION
        return min(max(progress, 0.0), 1.0) * 0.3
    if timestamp <= group.end_time + _FADE_DURATION:
        return 1.0
    progress = (group.end_time + _FADE_DURATION * 2.0 - timestamp) / _FADE_DURATION
    return min(max(progress, 0.0), 1.0) * 0.5


def apply_opacity(color: Sequence[int], opacity: float) -> Color:
    """Scale each channel by the opacity, truncating to 0..255."""
    r, g, b = (min(max(int(channel * opacity), 0), 255) for channel in color)
    return (r, g, b)


def estimate_word_width(word: str, font_size: float) -> float:
    """Rough width of a word, from its byte length and the font size."""
    return len(word.encode("utf-8")) * (font_size * 0.6)


def group_width(words: Sequence[tuple[Word, bool]], font_size: float) -> float:
    """Estimated width of a line of words including the spacing between them."""
    if not words:
        return 0.0
    total = sum(estimate_word_width(word.text, font_size) for word, _ in words)
    return total + _WORD_SPACING * (len(words) - 1)


def blend_images(background: np.ndarray, foreground: np.ndarray, opacity: float) -> np.ndarray:
    """Blend an RGB foreground onto the background where the two overlap."""
    opacity = min(max(float(opacity), 0.0), 1.0)
    result = np.array(background, dtype=np.uint8, copy=True)
    fg = np.asarray(foreground, dtype=np.uint8)
    rows = min(result.shape[0], fg.shape[0])
    cols = min(result.shape[1], fg.shape[1])
    if rows == 0 or cols == 0:
        return result
    bg_part = result[:rows, :cols].astype(np.float32)
    fg_part = fg[:rows, :cols].astype(np.float32)
    mixed = np.float32(1.0 - opacity) * bg_part + np.float32(opacity) * fg_part
    result[:rows, :cols] = mixed.astype(np.uint8)
    return result


def _fit_dimensions(width: int, height: int, target_width: int, target_height: int) -> tuple[int, int]:
    ratio = min(target_width / width, target_height / height)
    return max(round(width * ratio), 1), max(round(height * ratio), 1)


def scale_image(image: Image.Image, scaling: Scaling, width: int, height: int) -> Image.Image:
    """Scale an image to the target size according to the scaling mode."""
    img_width, img_height = image.size
    if scaling is Scaling.STRETCH:
        return image.resize((width, height), Image.Resampling.LANCZOS)
    if scaling is Scaling.FIT:
        size = _fit_dimensions(img_width, img_height, width, height)
        return image.resize(size, Image.Resampling.LANCZOS)
    if scaling is Scaling.FILL:
        scale = max(width / img_width, height / img_height)
        new_width = max(int(img_width * scale), 1)
        new_height = max(int(img_height * scale), 1)
        resized = image.resize((new_width, new_height), Image.Resampling.LANCZOS)
        crop_x = max(new_width - width, 0) // 2
        crop_y = max(new_height - height, 0) // 2
        return resized.crop(
            (crop_x, crop_y, min(crop_x + width, new_width), min(crop_y + height, new_height))
        )
    if scaling is Scaling.CENTER:
        return image
    if scaling is Scaling.LOOP:
        tile = image.convert("RGBA")
        tiled = Image.new("RGB", (width, height))
        for y in range(0, height, img_height):
            for x in range(0, width, img_width):
                tiled.paste(tile, (x, y), tile)
        return tiled
    raise ValueError(f"unknown scaling mode: {scaling!r}")


def render_gradient(width: int, height: int, start_color: str, end_color: str) -> np.ndarray:
    """A top-to-bottom linear gradient as an (height, width, 3) array."""
    start = np.array(parse_hex_color(start_color), dtype=np.float32)
    end = np.array(parse_hex_color(end_color), dtype=np.float32)
    ratio = (np.arange(height, dtype=np.float32) / np.float32(height))[:, None]
    rows = (start * (np.float32(1.0) - ratio) + end * ratio).astype(np.uint8)
    return np.broadcast_to(rows[:, None, :], (height, width, 3)).copy()


def load_font(font_path: str | Path | None, size: int) -> Font:
    """Load a TrueType/OpenType font, or the built-in default when no path is given."""
    if font_path is None:
        print("📝 Using default embedded font")
        return ImageFont.load_default(size=size)
    path = Path(font_path)
    print(f"📝 Loading custom font: {path}")
    if not path.exists():
        raise FileNotFoundError(f"Font file not found: {path}")
    try:
        return ImageFont.truetype(str(path), size)
    except OSError as exc:
        raise ValueError(f"Failed to load font '{path}': {exc}") from exc


def _blend_glyph(img: np.ndarray, glyph: np.ndarray, x: int, y: int, color: Color) -> None:
    height, width = img.shape[:2]
    glyph_height, glyph_width = glyph.shape
    x0, y0 = max(x, 0), max(y, 0)
    x1, y1 = min(x + glyph_width, width), min(y + glyph_height, height)
    if x0 >= x1 or y0 >= y1:
        return
    alpha = glyph[y0 - y : y1 - y, x0 - x : x1 - x].astype(np.float32)[..., None] / np.float32(255)
    region = img[y0:y1, x0:x1].astype(np.float32)
    paint = np.array(color, dtype=np.float32)
    img[y0:y1, x0:x1] = ((np.float32(1.0) - alpha) * region + alpha * paint).astype(np.uint8)


def _draw_text(img: np.ndarray, font: Font, text: str, x: float, y: float, color: Color) -> float:
    current_x = x
    for ch in text:
        left, top, right, bottom = font.getbbox(ch)
        glyph_width, glyph_height = right - left, bottom - top
        if glyph_width > 0 and glyph_height > 0:
            glyph = Image.new("L", (glyph_width, glyph_height), 0)
            ImageDraw.Draw(glyph).text((-left, -top), ch, fill=255, font=font)
            _blend_glyph(img, np.asarray(glyph), int(current_x), int(y), color)
        current_x += font.getlength(ch)
    return current_x - x


class TextRenderer:
    """Renders complete video frames for a given moment of the transcript."""

    def __init__(
        self,
        video_config: VideoConfig,
        text_config: TextConfig,
        font_override: str | Path | None = None,
    ) -> None:
        self.video_config = video_config
        self.text_config = text_config
        self.width = video_config.width
        self.height = video_config.height
        font_path = font_override if font_override is not None else text_config.font_path
        self.font = load_font(font_path, text_config.size)
        self._image_cache: dict[str, Image.Image] = {}
        self._video_frames: dict[str, list[np.ndarray]] = {}

    def render_frame(self, timestamp: float, segments: Iterable[WordSegment]) -> np.ndarray:
        """Render the frame at the given time as an (height, width, 3) uint8 array."""
        img = self._background(timestamp)
        self._render_word_groups(img, create_word_groups(timestamp, segments), timestamp)
        return img

    def _solid(self, color: Color) -> np.ndarray:
        img = np.empty((self.height, self.width, 3), dtype=np.uint8)
        img[...] = color
        return img

    def _background(self, timestamp: float) -> np.ndarray:
        background: Background = self.video_config.background
        if isinstance(background, SolidBackground):
            return self._solid(parse_hex_color(background.color))
        if isinstance(background, GradientBackground):
            return render_gradient(
                self.width, self.height, background.start_color, background.end_color
            )
        if isinstance(background, ImageBackground):
            img = self._solid((0, 0, 0))
            source = self._load_image(background.path)
            scaled = scale_image(source, background.scaling, self.width, self.height)
            return blend_images(img, np.asarray(scaled.convert("RGB")), background.opacity)
        if isinstance(background, VideoBackground):
            return self._video_background(background, timestamp)
        raise TypeError(f"unsupported background: {background!r}")

    def _load_image(self, path: str) -> Image.Image:
        cached = self._image_cache.get(path)
        if cached is not None:
            return cached
        try:
            with Image.open(path) as opened:
                opened.load()
                image = opened.copy()
        except OSError as exc:
            raise ValueError(f"Failed to load background image '{path}': {exc}") from exc
        self._image_cache[path] = image
        return image

    def _video_background(self, background: VideoBackground, timestamp: float) -> np.ndarray:
        img = self._solid((0, 0, 0))
        frames = self._video_frames.get(background.path)
        if frames is None:
            frames = self._extract_video_frames(background.path)
            self._video_frames[background.path] = frames
        if not frames:
            return self._solid(_VIDEO_FALLBACK)
        video_time = background.start_time + timestamp
        frame = frames[int(video_time * _VIDEO_FRAME_RATE) % len(frames)]
        scaled = scale_image(Image.fromarray(frame), background.scaling, self.width, self.height)
        return blend_images(img, np.asarray(scaled.convert("RGB")), background.opacity)

    @staticmethod
    def _extract_video_frames(video_path: str) -> list[np.ndarray]:
        with tempfile.TemporaryDirectory(prefix="karaoke_frames") as temp_dir:
            pattern = str(Path(temp_dir) / "frame_%03d.png")
            result = subprocess.run(
                ["ffmpeg", "-i", video_path, "-vf", "fps=1", "-y", pattern],
                capture_output=True,
            )
            if result.returncode != 0:
                stderr = result.stderr.decode("utf-8", errors="replace")
                raise RuntimeError(f"Failed to extract video frames: {stderr}")
            frames = []
            for index in range(1, _MAX_VIDEO_FRAMES + 1):
                frame_path = Path(temp_dir) / f"frame_{index:03d}.png"
                if not frame_path.exists():
                    break
                try:
                    with Image.open(frame_path) as frame:
                        frames.append(np.asarray(frame.convert("RGB")).copy())
                except OSError:
                    break
            return frames

    def _render_word_groups(
        self, img: np.ndarray, groups: Sequence[WordGroup], timestamp: float
    ) -> None:
        if not groups:
            return
        font_size = float(self.text_config.size)
        line_height = font_size * 2.0
        start_y = self.height - len(groups) * line_height - 100.0
        highlight = parse_hex_color(self.text_config.highlight_color)
        normal = parse_hex_color(self.text_config.color)

        for index, group in enumerate(groups):
            y = start_y + index * line_height
            opacity = calculate_group_opacity(group, timestamp)
            x = (self.width - group_width(group.words, font_size)) / 2.0
            for word, highlighted in group.words:
                color = (
                    apply_opacity(highlight, opacity)
                    if highlighted
                    else apply_opacity(normal, opacity * 0.7)
                )
                _draw_text(
                    img, self.font, word.text, x + _SHADOW_OFFSET, y + _SHADOW_OFFSET, _SHADOW_COLOR
                )
                x += _draw_text(img, self.font, word.text, x, y, color) + _WORD_SPACING