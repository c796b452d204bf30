# vocalviz

vocalviz turns an audio track and its word-level timings into a karaoke
video. Words are shown in groups of four near the bottom of the frame, at
most three groups at a time. The word being sung is highlighted, and
upcoming groups fade in while finished ones fade out.

Frames are drawn with Pillow and NumPy and streamed straight into `ffmpeg`.
`ffmpeg` then muxes them with the original audio into an `.mp4` file.
`ffmpeg` must be installed and on your `PATH`. The first encoder it lists
among `libx264`, `mpeg4` and `mpeg2video` is used.

The package also holds signal-processing and alignment helpers for word
timing:

- `vocalviz.whisper.audio` computes the FFT, the DFT and a log-mel
  spectrogram (`log_mel_spectrogram`, `pcm_to_mel`).
- `vocalviz.whisper.params` holds the audio constants and `ModelConfig`.
- `vocalviz.whisper.timestamps` provides dynamic time warping, a median
  filter, `AlignmentHeads.extract_timestamps`, `unicode_segments` and the
  known alignment heads of each model size.

## What it does not do

vocalviz does not run a speech-recognition model. It does not transcribe or
detect the language of audio by itself. You supply the words and their start
and end times as a `Transcript`.

There is no installed command that runs the whole pipeline. `vocalviz.cli`
provides the argument parser (`build_parser`, `parse_args`) and
`generate_output_path`. To render a video, use the Python API below.

## Configuration

`KaraokeConfig.load_or_default(None)` returns the built-in defaults. When you
give it a path, the file must exist, and it must be a TOML file that sets
every section and every field. Optional fields are the exception: `text.font_path`
and `text.background_color` may be left out. Missing fields, values of the
wrong type and unknown variants raise `vocalviz.config.ConfigError`.

```toml
[video]
width = 1920
height = 1080
fps = 30
codec = "libx264"
bitrate = "2M"
quality = "medium"
background = { Solid = { color = "#000000" } }

[text]
size = 32
color = "#FFFFFF"
highlight_color = "#FFD700"

[whisper]
model = "base"
language = "auto"
timestamps = true
```

The background may also be a gradient, an image or a video:

```toml
background = { Gradient = { start_color = "#1E1E3F", end_color = "#000000", direction = "Vertical" } }
background = { Image = { path = "cover.jpg", scaling = "Fill", opacity = 0.6 } }
background = { Video = { path = "loop.mp4", start_time = 0.0, scaling = "Fit", opacity = 0.5 } }
```

- `scaling` is one of `Stretch`, `Fit`, `Fill`, `Loop` or `Center`.
- Gradients are always drawn top to bottom, whatever `direction` is set.
- Video backgrounds are sampled at one frame per second with `ffmpeg`.
- `model` is one of `tiny`, `base`, `small` or `medium`.

`WhisperModel.model_and_revision` and `WhisperModel.alignment_heads` map a
model and a `WhisperLanguage` (`auto` or `english`) to a repository name with
its revision, and to its alignment heads.

## Rendering a video

```python
from pathlib import Path

from vocalviz.config import KaraokeConfig
from vocalviz.renderer import Transcript, Word, WordSegment
from vocalviz.video import VideoGenerator

config = KaraokeConfig.load_or_default(None)

transcript = Transcript(
    segments=(
        WordSegment(
            start=0.5,
            end=2.4,
            words=(
                Word(text="Hello", start=0.5, end=1.0),
                Word(text="there", start=1.1, end=1.6),
                Word(text="world", start=1.8, end=2.4),
            ),
        ),
    )
)

generator = VideoGenerator(config, font_path=None)
generator.generate(Path("song.mp3"), transcript, Path("song_karaoke.mp4"))
```

`font_path` takes a TTF or OTF file, which overrides the font named in the
configuration. Without a font, Pillow's built-in default font is used.

The output path must end in `.mp4`. The video lasts until the end of the
last segment.

`vocalviz.cli.generate_output_path("song.mp3")` gives the default output
name: `song_karaoke.mp4` in the same directory as the input.

## Single frames

`TextRenderer(video_config, text_config, font_override).render_frame(timestamp, segments)`
returns one frame as a `(height, width, 3)` `uint8` NumPy array. This is handy
for previewing a style. For example, `PIL.Image.fromarray(frame).save("preview.png")`
saves the frame as a picture.

## Running the tests

Install the `test` extra and run `pytest` from the project directory.