import pytest

from vocalviz.config import (
    ConfigError,
    GradientBackground,
    GradientDirection,
    ImageBackground,
    KaraokeConfig,
    Scaling,
    SolidBackground,
    VideoBackground,
    WhisperLanguage,
    WhisperModel,
    parse_background,
)
from vocalviz.whisper.timestamps import AlignmentHeads

FULL_CONFIG = """
[video]
height = 720
width = 1280
fps = 24
codec = "mpeg4"
bitrate = "4M"
quality = "high"

[video.background.Gradient]
start_color = "#112233"
end_color = "#445566"
direction = "Vertical"

[text]
size = 48
color = "#EEEEEE"
highlight_color = "#FF0000"
font_path = "fonts/custom.ttf"

[whisper]
model = "small"
language = "english"
timestamps = false
"""


def _full_dict():
    return {
        "video": {
            "background": {"Solid": {"color": "#202020"}},
            "height": 720,
            "width": 1280,
            "fps": 24,
            "codec": "mpeg4",
            "bitrate": "4M",
            "quality": "high",
        },
        "text": {"size": 40, "color": "#EEEEEE", "highlight_color": "#FF0000"},
        "whisper": {"model": "tiny", "language": "auto", "timestamps": True},
    }


def test_defaults_match_source():
    config = KaraokeConfig.load_or_default(None)
    assert config == KaraokeConfig()
    assert config.video.width == 1920
    assert config.video.height == 1080
    assert config.video.codec == "libx264"
    assert config.video.background == SolidBackground("#000000")
    assert config.text.highlight_color == "#FFD700"
    assert config.whisper.model is WhisperModel.BASE
    assert config.whisper.language == "auto"


def test_from_file_reads_all_sections(tmp_path):
    path = tmp_path / "karaoke.toml"
    path.write_text(FULL_CONFIG, encoding="utf-8")
    config = KaraokeConfig.load_or_default(path)
    assert config.video.width == 1280
    assert config.video.height == 720
    assert config.video.fps == 24
    assert config.video.codec == "mpeg4"
    assert config.video.background == GradientBackground(
        "#112233", "#445566", GradientDirection.VERTICAL
    )
    assert config.text.size == 48
    assert config.text.font_path == "fonts/custom.ttf"
    assert config.text.background_color is None
    assert config.whisper.model is WhisperModel.SMALL
    assert config.whisper.language == "english"
    assert config.whisper.timestamps is False


def test_missing_file_is_reported(tmp_path):
    with pytest.raises(ConfigError, match="does not exist"):
        KaraokeConfig.load_or_default(tmp_path / "absent.toml")


def test_invalid_toml_is_reported(tmp_path):
    path = tmp_path / "broken.toml"
    path.write_text("[video\nwidth = ", encoding="utf-8")
    with pytest.raises(ConfigError, match="check TOML syntax"):
        KaraokeConfig.from_file(path)


def test_from_dict_round_trip():
    config = KaraokeConfig.from_dict(_full_dict())
    assert config.video.background == SolidBackground("#202020")
    assert config.text.size == 40
    assert config.whisper.model is WhisperModel.TINY


def test_missing_field_is_an_error():
    data = _full_dict()
    del data["video"]["fps"]
    with pytest.raises(ConfigError, match="fps"):
        KaraokeConfig.from_dict(data)


def test_missing_section_is_an_error():
    data = _full_dict()
    del data["whisper"]
    with pytest.raises(ConfigError, match="whisper"):
        KaraokeConfig.from_dict(data)


def test_out_of_range_dimension_is_an_error():
    data = _full_dict()
    data["video"]["width"] = 70000
    with pytest.raises(ConfigError):
        KaraokeConfig.from_dict(data)


def test_unknown_model_is_an_error():
    data = _full_dict()
    data["whisper"]["model"] = "huge"
    with pytest.raises(ConfigError, match="huge"):
        KaraokeConfig.from_dict(data)


def test_parse_image_and_video_backgrounds():
    image = parse_background({"Image": {"path": "bg.png", "scaling": "Fill", "opacity": 0.5}})
    assert image == ImageBackground("bg.png", Scaling.FILL, 0.5)
    video = parse_background(
        {"Video": {"path": "bg.mp4", "start_time": 2, "scaling": "Loop", "opacity": 1.0}}
    )
    assert video == VideoBackground("bg.mp4", 2.0, Scaling.LOOP, 1.0)


def test_parse_background_rejects_bad_tables():
    with pytest.raises(ConfigError):
        parse_background({"Plasma": {"color": "#000000"}})
    with pytest.raises(ConfigError):
        parse_background({"Solid": {"color": "#000000"}, "Image": {}})
    with pytest.raises(ConfigError, match="scaling"):
        parse_background({"Image": {"path": "bg.png", "scaling": "Zoom", "opacity": 1.0}})


def test_whisper_language_parse():
    assert WhisperLanguage.parse("auto") is WhisperLanguage.AUTO
    assert WhisperLanguage.parse("english") is WhisperLanguage.ENGLISH
    with pytest.raises(ValueError):
        WhisperLanguage.parse("klingon")


def test_model_and_revision():
    assert WhisperModel.BASE.model_and_revision(WhisperLanguage.AUTO) == (
        "openai/whisper-base",
        "refs/pr/22",
    )
    assert WhisperModel.TINY.model_and_revision(WhisperLanguage.ENGLISH) == (
        "openai/whisper-tiny.en",
        "refs/pr/15",
    )


def test_alignment_heads_follow_model_and_language():
    assert WhisperModel.TINY.alignment_heads(WhisperLanguage.AUTO) == AlignmentHeads.tiny()
    assert WhisperModel.MEDIUM.alignment_heads(WhisperLanguage.ENGLISH) == AlignmentHeads.medium_en()