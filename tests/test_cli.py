from pathlib import Path

import pytest

from vocalviz.cli import build_parser, generate_output_path, parse_args


def test_input_is_required():
    with pytest.raises(SystemExit):
        parse_args([])


def test_short_options():
    args = parse_args(["-i", "song.mp3", "-o", "video.mp4", "-f", "font.ttf"])
    assert args.input == Path("song.mp3")
    assert args.output == Path("video.mp4")
    assert args.font == Path("font.ttf")
    assert args.config is None


def test_long_options():
    args = parse_args(
        ["--input", "a.wav", "--output", "b.mp4", "--font", "c.otf", "--config", "d.toml"]
    )
    assert (args.input, args.output, args.font, args.config) == (
        Path("a.wav"),
        Path("b.mp4"),
        Path("c.otf"),
        Path("d.toml"),
    )


def test_optional_arguments_default_to_none():
    args = build_parser().parse_args(["-i", "x.mp3"])
    assert args.output is None
    assert args.font is None


def test_version(capsys):
    with pytest.raises(SystemExit) as excinfo:
        parse_args(["--version"])
    assert excinfo.value.code == 0
    assert "0.1.0" in capsys.readouterr().out


def test_output_path_beside_input():
    assert generate_output_path(Path("music/song.mp3")) == Path("music/song_karaoke.mp4")


def test_output_path_without_directory():
    assert generate_output_path("song.mp3") == Path("song_karaoke.mp4")


def test_output_path_keeps_inner_dots():
    result = generate_output_path("live.set.flac")
    assert result.name == "live.set_karaoke.mp4"
    assert result.suffix == ".mp4"


def test_output_path_rejects_empty():
    with pytest.raises(ValueError, match="Invalid audio file path"):
        generate_output_path("")