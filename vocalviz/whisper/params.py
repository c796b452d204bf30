"""Model hyper-parameters and fixed audio/tokenizer constants."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

# Audio parameters.
SAMPLE_RATE = 16000
N_FFT = 400
HOP_LENGTH = 160
CHUNK_LENGTH = 30
N_SAMPLES = CHUNK_LENGTH * SAMPLE_RATE  # samples in a 30-second chunk
N_FRAMES = N_SAMPLES // HOP_LENGTH  # frames in a mel spectrogram input

NO_SPEECH_THRESHOLD = 0.6
LOGPROB_THRESHOLD = -1.0
TEMPERATURES = (0.0, 0.2, 0.4, 0.6, 0.8, 1.0)
COMPRESSION_RATIO_THRESHOLD = 2.4

# Tokenizer dependent bits.
SOT_TOKEN = "<|startoftranscript|>"
TRANSCRIBE_TOKEN = "<|transcribe|>"
TRANSLATE_TOKEN = "<|translate|>"
NO_TIMESTAMPS_TOKEN = "<|notimestamps|>"
EOT_TOKEN = "<|endoftext|>"
NO_SPEECH_TOKENS = ("<|nocaptions|>", "<|nospeech|>")

_REQUIRED_FIELDS = (
    "num_mel_bins",
    "max_source_positions",
    "d_model",
    "encoder_attention_heads",
    "encoder_layers",
    "vocab_size",
    "max_target_positions",
    "decoder_attention_heads",
    "decoder_layers",
)


@dataclass(frozen=True)
class ModelConfig:
    """Shape of a speech-recognition model, as found in its config file."""

    num_mel_bins: int
    max_source_positions: int
    d_model: int
    encoder_attention_heads: int
    encoder_layers: int
    vocab_size: int
    max_target_positions: int
    decoder_attention_heads: int
    decoder_layers: int
    suppress_tokens: tuple[int, ...] = field(default_factory=tuple)
    use_self_attention_kv_cache: bool = False
    dtw_timestamps: bool = False

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ModelConfig":
        """Build a config from a parsed config mapping; unknown keys are ignored."""
        missing = [name for name in _REQUIRED_FIELDS if name not in data]
        if missing:
            raise ValueError(f"missing field(s) in model config: {', '.join(missing)}")
        values = {name: int(data[name]) for name in _REQUIRED_FIELDS}
        return cls(
            **values,
            suppress_tokens=tuple(int(t) for t in data.get("suppress_tokens") or ()),
            use_self_attention_kv_cache=bool(data.get("use_self_attention_kv_cache", False)),
            dtw_timestamps=bool(data.get("dtw_timestamps", False)),
        )