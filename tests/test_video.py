import io
import subprocess
from unittest import mock

import pytest

from vocalviz.config import KaraokeConfig, VideoConfig
from vocalviz.renderer import Transcript, Word, WordSegment
from vocalviz.video import VideoGenerator, choose_encoder, frame_count, progress_bar


class _Recorder(io.BytesIO):
    def __init__(self, fail_with=None):
        super().__init__()
        self.data = b""
        self.writes = 0
        self.fail_with = fail_with

    def write(self, b):
        if self.fail_with is not None:
            raise self.fail_with
        self.writes += 1
        return super().write(b)

    def close(self):
        self.data = self.getvalue()
        super().close()


class _FakeProcess:
    instances = []

    def __init__(self, args, returncode=0, fail_with=None, **kwargs):
        self.args = args
        self.stdin = _Recorder(fail_with)
        self.returncode = returncode
        self.killed = False
        _FakeProcess.instances.append(self)

    def wait(self):
        return self.returncode

    def kill(self):
        self.killed = True


def _run(args, **kwargs):
    return subprocess.CompletedProcess(args, 0, stdout=b" V..... libx264  H.264\n", stderr=b"")


def _small_config():
    return KaraokeConfig(video=VideoConfig(width=8, height=6, fps=3))


def _transcript():
    word = Word("hi", 0.0, 0.5)
    return Transcript(segments=(WordSegment(start=0.0, end=1.0, words=(word,), text="hi"),))


def test_frame_count_zero_duration():
    assert frame_count(0.0, 30) == 0


def test_frame_count_whole_second():
    assert frame_count(1.0, 30) == 30


def test_frame_count_rejects_zero_fps():
    with pytest.raises(ValueError):
        frame_count(1.0, 0)


def test_choose_encoder_prefers_libx264():
    assert choose_encoder("mpeg4 ... libx264 ... mpeg2video") == "libx264"


def test_choose_encoder_falls_back():
    assert choose_encoder("V..... mpeg2video  MPEG-2") == "mpeg2video"
    assert choose_encoder("V..... mpeg4  MPEG-4") == "mpeg4"


def test_choose_encoder_none_available():
    with pytest.raises(RuntimeError, match="No suitable video encoder"):
        choose_encoder("V..... rawvideo")


@pytest.mark.parametrize("frame_num", [0, 3, 7, 9])
def test_progress_bar_width_is_constant(frame_num):
    bar = progress_bar(frame_num, 10)
    assert bar.count("█") + bar.count("░") == 40
    assert f"({frame_num + 1}/10 frames)" in bar


def test_progress_bar_starts_empty():
    bar = progress_bar(0, 10)
    assert "█" not in bar
    assert "0.0%" in bar


def test_generate_requires_mp4():
    generator = VideoGenerator(_small_config(), None)
    with pytest.raises(ValueError, match=".mp4"):
        generator.generate("song.mp3", _transcript(), "out.avi")


@mock.patch("vocalviz.video.subprocess.run", side_effect=FileNotFoundError)
def test_generate_reports_missing_ffmpeg(_run_mock):
    generator = VideoGenerator(_small_config(), None)
    with pytest.raises(RuntimeError, match="FFmpeg not found"):
        generator.generate("song.mp3", _transcript(), "out.mp4")


@mock.patch("vocalviz.video.subprocess.Popen", side_effect=_FakeProcess)
@mock.patch("vocalviz.video.subprocess.run", side_effect=_run)
def test_generate_streams_every_frame(_run_mock, _popen_mock):
    _FakeProcess.instances.clear()
    generator = VideoGenerator(_small_config(), None)
    generator.generate("song.mp3", _transcript(), "out.mp4")
    process = _FakeProcess.instances[-1]
    assert len(process.stdin.data) == frame_count(1.0, 3) * 8 * 6 * 3
    assert "8x6" in process.args
    assert process.args[process.args.index("-c:v") + 1] == "libx264"
    assert process.args[-1] == "out.mp4"


@mock.patch(
    "vocalviz.video.subprocess.Popen",
    side_effect=lambda args, **kw: _FakeProcess(args, returncode=1),
)
@mock.patch("vocalviz.video.subprocess.run", side_effect=_run)
def test_generate_reports_encoder_failure(_run_mock, _popen_mock):
    generator = VideoGenerator(_small_config(), None)
    with pytest.raises(RuntimeError, match="FFmpeg failed"):
        generator.generate("song.mp3", _transcript(), "out.mp4")


@mock.patch(
    "vocalviz.video.subprocess.Popen",
    side_effect=lambda args, **kw: _FakeProcess(args, fail_with=BrokenPipeError()),
)
@mock.patch("vocalviz.video.subprocess.run", side_effect=_run)
def test_broken_pipe_ends_stream_quietly(_run_mock, _popen_mock):
    _FakeProcess.instances.clear()
    generator = VideoGenerator(_small_config(), None)
    result = generator.generate("song.mp3", _transcript(), "out.mp4")
    assert result is None
    assert len(_FakeProcess.instances) == 1
    process = _FakeProcess.instances[-1]
    assert process.args[-1] == "out.mp4"
    assert process.args[process.args.index("-c:v") + 1] == "libx264"
    assert process.stdin.writes == 0
    assert process.killed is False


@mock.patch(
    "vocalviz.video.subprocess.Popen",
    side_effect=lambda args, **kw: _FakeProcess(args, fail_with=OSError("disk full")),
)
@mock.patch("vocalviz.video.subprocess.run", side_effect=_run)
def test_other_write_error_kills_encoder(_run_mock, _popen_mock):
    _FakeProcess.instances.clear()
    generator = VideoGenerator(_small_config(), None)
    with pytest.raises(RuntimeError, match="FFmpeg write failed"):
        generator.generate("song.mp3", _transcript(), "out.mp4")
    assert _FakeProcess.instances[-1].killed is True