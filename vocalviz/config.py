"""Configuration of the video, text styling and transcription model."""

from __future__ import annotations

import tomllib
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, TypeVar, Union

from .whisper.timestamps import AlignmentHeads


class ConfigError(ValueError):
    """Raised when a configuration file is missing or malformed."""


class Scaling(Enum):
    STRETCH = "Stretch"
    FIT = "Fit"
    FILL = "Fill"
    LOOP = "Loop"
    CENTER = "Center"


class GradientDirection(Enum):
    HORIZONTAL = "Horizontal"
    VERTICAL = "Vertical"
    DIAGONAL = "Diagonal"


@dataclass(frozen=True)
class SolidBackground:
    color: str = "#000000"


@dataclass(frozen=True)
class ImageBackground:
    path: str
    scaling: Scaling
    opacity: float


@dataclass(frozen=True)
class VideoBackground:
    path: str
    start_time: float
    scaling: Scaling
    opacity: float


@dataclass(frozen=True)
class GradientBackground:
    start_color: str
    end_color: str
    direction: GradientDirection


Background = Union[SolidBackground, ImageBackground, VideoBackground, GradientBackground]


@dataclass(frozen=True)
class VideoConfig:
    background: Background = field(default_factory=SolidBackground)
    height: int = 1080
    width: int = 1920
    fps: int = 30
    codec: str = "libx264"
    bitrate: str = "2M"
    quality: str = "medium"


@dataclass(frozen=True)
class TextConfig:
    size: int = 32
    color: str = "#FFFFFF"
    highlight_color: str = "#FFD700"
    background_color: str | None = None
    font_path: str | None = None


class WhisperLanguage(Enum):
    AUTO = "auto"
    ENGLISH = "english"

    @classmethod
    def parse(cls, value: str) -> "WhisperLanguage":
        """Parse a language name; only "auto" and "english" are known."""
        try:
            return cls(value)
        except ValueError:
            raise ValueError(f"unsupported language '{value}' (use 'auto' or 'english')") from None


_MODEL_REPOS = {
    WhisperLanguage.AUTO: {
        "tiny": ("openai/whisper-tiny", "main"),
        "base": ("openai/whisper-base", "refs/pr/22"),
        "small": ("openai/whisper-small", "main"),
        "medium": ("openai/whisper-medium", "main"),
    },
    WhisperLanguage.ENGLISH: {
        "tiny": ("openai/whisper-tiny.en", "refs/pr/15"),
        "base": ("openai/whisper-base.en", "refs/pr/13"),
        "small": ("openai/whisper-small.en", "refs/pr/10"),
        "medium": ("openai/whisper-medium.en", "main"),
    },
}

_ALIGNMENT_HEADS: dict[WhisperLanguage, dict[str, Callable[[], AlignmentHeads]]] = {
    WhisperLanguage.AUTO: {
        "tiny": AlignmentHeads.tiny,
        "base": AlignmentHeads.base,
        "small": AlignmentHeads.small,
        "medium": AlignmentHeads.medium,
    },
    WhisperLanguage.ENGLISH: {
        "tiny": AlignmentHeads.tiny_en,
        "base": AlignmentHeads.base_en,
        "small": AlignmentHeads.small_en,
        "medium": AlignmentHeads.medium_en,
    },
}


class WhisperModel(Enum):
    TINY = "tiny"
    BASE = "base"
    SMALL = "small"
    MEDIUM = "medium"

    def model_and_revision(self, lang: WhisperLanguage) -> tuple[str, str]:
        """Return the model repository and revision for the language."""
        return _MODEL_REPOS[WhisperLanguage(lang)][self.value]

    def alignment_heads(self, lang: WhisperLanguage) -> AlignmentHeads:
        """Return the cross-attention heads used for word timing."""
        return _ALIGNMENT_HEADS[WhisperLanguage(lang)][self.value]()


@dataclass(frozen=True)
class WhisperSettings:
    model: WhisperModel = WhisperModel.BASE
    language: str = "auto"
    timestamps: bool = True


def _field(data: Mapping[str, Any], key: str, section: str) -> Any:
    try:
        return data[key]
    except KeyError:
        raise ConfigError(f"missing field `{key}` in {section}") from None


def _table(data: Mapping[str, Any], key: str, section: str) -> Mapping[str, Any]:
    value = _field(data, key, section)
    if not isinstance(value, Mapping):
        raise ConfigError(f"`{section}.{key}` must be a table")
    return value


def _string(data: Mapping[str, Any], key: str, section: str) -> str:
    value = _field(data, key, section)
    if not isinstance(value, str):
        raise ConfigError(f"`{section}.{key}` must be a string")
    return value


def _optional_string(data: Mapping[str, Any], key: str, section: str) -> str | None:
    value = data.get(key)
    if value is not None and not isinstance(value, str):
        raise ConfigError(f"`{section}.{key}` must be a string")
    return value


def _u16(data: Mapping[str, Any], key: str, section: str) -> int:
    value = _field(data, key, section)
    if isinstance(value, bool) or not isinstance(value, int):
        raise ConfigError(f"`{section}.{key}` must be an integer")
    if not 0 <= value <= 0xFFFF:
        raise ConfigError(f"`{section}.{key}` must be between 0 and 65535, got {value}")
    return value


def _float(data: Mapping[str, Any], key: str, section: str) -> float:
    value = _field(data, key, section)
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ConfigError(f"`{section}.{key}` must be a number")
    return float(value)


def _bool(data: Mapping[str, Any], key: str, section: str) -> bool:
    value = _field(data, key, section)
    if not isinstance(value, bool):
        raise ConfigError(f"`{section}.{key}` must be a boolean")
    return value


_E = TypeVar("_E", bound=Enum)


def _variant(enum_cls: type[_E], data: Mapping[str, Any], key: str, section: str) -> _E:
    value = _string(data, key, section)
    try:
        return enum_cls(value)
    except ValueError:
        expected = ", ".join(member.value for member in enum_cls)
        raise ConfigError(
            f"unknown variant `{value}` for `{section}.{key}`, expected one of {expected}"
        ) from None


def _solid(body: Mapping[str, Any], section: str) -> SolidBackground:
    return SolidBackground(color=_string(body, "color", section))


def _image(body: Mapping[str, Any], section: str) -> ImageBackground:
    return ImageBackground(
        path=_string(body, "path", section),
        scaling=_variant(Scaling, body, "scaling", section),
        opacity=_float(body, "opacity", section),
    )


def _video(body: Mapping[str, Any], section: str) -> VideoBackground:
    return VideoBackground(
        path=_string(body, "path", section),
        start_time=_float(body, "start_time", section),
        scaling=_variant(Scaling, body, "scaling", section),
        opacity=_float(body, "opacity", section),
    )


def _gradient(body: Mapping[str, Any], section: str) -> GradientBackground:
    return GradientBackground(
        start_color=_string(body, "start_color", section),
        end_color=_string(body, "end_color", section),
        direction=_variant(GradientDirection, body, "direction", section),
    )


_BACKGROUND_PARSERS: dict[str, Callable[[Mapping[str, Any], str], Background]] = {
    "Solid": _solid,
    "Image": _image,
    "Video": _video,
    "Gradient": _gradient,
}


def parse_background(data: Mapping[str, Any]) -> Background:
    """Parse a background table holding exactly one of Solid, Image, Video, Gradient."""
    if not isinstance(data, Mapping) or len(data) != 1:
        raise ConfigError(
            "background must be a table with exactly one of: "
            + ", ".join(_BACKGROUND_PARSERS)
        )
    ((kind, body),) = data.items()
    parser = _BACKGROUND_PARSERS.get(kind)
    if parser is None:
        raise ConfigError(
            f"unknown background variant `{kind}`, expected one of "
            + ", ".join(_BACKGROUND_PARSERS)
        )
    section = f"video.background.{kind}"
    if not isinstance(body, Mapping):
        raise ConfigError(f"`{section}` must be a table")
    return parser(body, section)


def _video_config(data: Mapping[str, Any]) -> VideoConfig:
    section = "video"
    return VideoConfig(
        background=parse_background(_table(data, "background", section)),
        height=_u16(data, "height", section),
        width=_u16(data, "width", section),
        fps=_u16(data, "fps", section),
        codec=_string(data, "codec", section),
        bitrate=_string(data, "bitrate", section),
        quality=_string(data, "quality", section),
    )


def _text_config(data: Mapping[str, Any]) -> TextConfig:
    section = "text"
    return TextConfig(
        size=_u16(data, "size", section),
        color=_string(data, "color", section),
        highlight_color=_string(data, "highlight_color", section),
        background_color=_optional_string(data, "background_color", section),
        font_path=_optional_string(data, "font_path", section),
    )


def _whisper_settings(data: Mapping[str, Any]) -> WhisperSettings:
    section = "whisper"
    return WhisperSettings(
        model=_variant(WhisperModel, data, "model", section),
        language=_string(data, "language", section),
        timestamps=_bool(data, "timestamps", section),
    )


@dataclass(frozen=True)
class KaraokeConfig:
    """Full program configuration."""

    video: VideoConfig = field(default_factory=VideoConfig)
    text: TextConfig = field(default_factory=TextConfig)
    whisper: WhisperSettings = field(default_factory=WhisperSettings)

    @classmethod
    def load_or_default(cls, config_path: str | Path | None = None) -> "KaraokeConfig":
        """Load the given file, or return the defaults when no path is given."""
        if config_path is None:
            return cls()
        path = Path(config_path)
        if not path.exists():
            raise ConfigError(f"Config file '{path}' does not exist")
        return cls.from_file(path)

    @classmethod
    def from_file(cls, path: str | Path) -> "KaraokeConfig":
        """Read and parse a TOML configuration file."""
        path = Path(path)
        try:
            content = path.read_text(encoding="utf-8")
        except OSError as exc:
            raise ConfigError(f"Failed to read config file '{path}': {exc}") from exc
        try:
            return cls.from_dict(tomllib.loads(content))
        except (tomllib.TOMLDecodeError, ConfigError) as exc:
            raise ConfigError(
                f"Failed to parse config file '{path}' - check TOML syntax: {exc}"
            ) from exc

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "KaraokeConfig":
        """Build a config from parsed TOML; every section and field is required."""
        section = "config"
        return cls(
            video=_video_config(_table(data, "video", section)),
            text=_text_config(_table(data, "text", section)),
            whisper=_whisper_settings(_table(data, "whisper", section)),
        )