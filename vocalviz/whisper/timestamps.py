"""Word-level timestamps from cross-attention via dynamic time warping."""

from __future__ import annotations

import itertools
from abc import ABC, abstractmethod
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, replace

import numpy as np
from numpy.lib.stride_tricks import sliding_window_view

from .params import HOP_LENGTH, N_FRAMES, SAMPLE_RATE

_PUNCTUATION = "\"'“¿([{-\"'.。,，!！?？:：”)]}、"
_REPLACEMENT = "\ufffd"
_SPECIAL_TOKEN_START = 50_000


@dataclass(frozen=True)
class Word:
    """A word with its start and end time in seconds."""

    text: str
    start: float
    end: float
    tokens: tuple[int, ...] = ()

    def offset_start(self, seconds: float) -> "Word":
        """Return the word shifted later by the given number of seconds."""
        return replace(self, start=self.start + seconds, end=self.end + seconds)


@dataclass(frozen=True)
class Segment:
    """Decoded text and the indices of the tokens it came from."""

    text: str
    token_indices: tuple[int, ...] = ()


class PostProcessor(ABC):
    """Turns raw token timestamps into labelled words."""

    @abstractmethod
    def decode(self, tokens: Sequence[int]) -> list[Segment]:
        """Split tokens into decoded text segments."""

    def label(self, timestamps: Sequence[float], tokens: Sequence[int]) -> list[Word]:
        """Attach timestamps to the decoded words, dropping punctuation."""
        segments = self.decode(tokens)
        non_special = [t for t in tokens if t < _SPECIAL_TOKEN_START]
        last = timestamps[-1]
        starts = itertools.chain(timestamps, itertools.repeat(last))
        ends = itertools.chain(timestamps[1:], itertools.repeat(last))
        stamped = list(zip(starts, ends, non_special))

        words = []
        start = end = 0.0
        for segment in segments:
            if segment.text in _PUNCTUATION:
                continue
            indices = segment.token_indices
            start = stamped[indices[0]][0] if indices else end
            end = stamped[indices[-1]][1] if indices else start + 0.2
            words.append(
                Word(
                    text=segment.text.strip(),
                    start=start,
                    end=end,
                    tokens=tuple(stamped[i][2] for i in indices),
                )
            )
        return words


def unicode_segments(full_decode: str, decoded_tokens: Iterable[str]) -> list[Segment]:
    """Group per-token decodings so that split multi-byte characters stay together."""
    rc = _REPLACEMENT.encode("utf-8")
    full = full_decode.encode("utf-8")
    segments = []
    current: list[int] = []
    offset = 0
    for index, decoded in enumerate(decoded_tokens):
        current.append(index)
        raw = decoded.encode("utf-8")
        found = raw.find(rc)
        rc_idx = offset + max(found, 0)
        if found < 0 or full[rc_idx : rc_idx + len(rc)] == rc:
            offset += len(raw)
            segments.append(Segment(decoded, tuple(current)))
            current = []
    return segments


@dataclass(frozen=True)
class AlignmentHead:
    """A cross-attention head used for timestamp determination."""

    layer: int
    head: int


_TINY = ((2, 2), (3, 0), (3, 2), (3, 3), (3, 4), (3, 5))
_TINY_EN = ((1, 0), (2, 0), (2, 5), (3, 0), (3, 1), (3, 2), (3, 3), (3, 4))
_BASE = ((3, 1), (4, 2), (4, 3), (4, 7), (5, 1), (5, 2), (5, 4), (5, 6))
_BASE_EN = ((3, 3), (4, 7), (5, 1), (5, 5), (5, 7))
_SMALL = ((5, 3), (5, 9), (8, 0), (8, 4), (8, 7), (8, 8), (9, 0), (9, 7), (9, 9), (10, 5))
_SMALL_EN = (
    (6, 6), (7, 0), (7, 3), (7, 8), (8, 2), (8, 5), (8, 7), (9, 0), (9, 4), (9, 8),
    (9, 10), (10, 0), (10, 1), (10, 2), (10, 3), (10, 6), (10, 11), (11, 2), (11, 4),
)
_MEDIUM = ((13, 15), (15, 4), (15, 15), (16, 1), (20, 0), (23, 4))
_MEDIUM_EN = (
    (11, 4), (14, 1), (14, 12), (14, 14), (15, 4), (16, 0), (16, 4), (16, 9), (17, 12),
    (17, 14), (18, 7), (18, 10), (18, 15), (20, 0), (20, 3), (20, 9), (20, 14), (21, 12),
)
_LARGE_V1 = ((9, 19), (11, 2), (11, 4), (11, 17), (22, 7), (22, 11), (22, 17), (23, 2), (23, 15))
_LARGE_V2_V3 = (
    (10, 12), (13, 17), (16, 11), (16, 12), (16, 13), (17, 15), (17, 16), (18, 4), (18, 11),
    (18, 19), (19, 11), (21, 2), (21, 3), (22, 3), (22, 9), (22, 12), (23, 5), (23, 7),
    (23, 13), (25, 5), (26, 1), (26, 12), (27, 15),
)
_TURBO = ((2, 4), (2, 11), (3, 3), (3, 6), (3, 11), (3, 14))
_DISTIL_SMALL_EN = _SMALL_EN
_DISTIL_LARGE_V3 = tuple((1, h) for h in range(20))


@dataclass(frozen=True)
class AlignmentHeads:
    """Which cross-attention heads to use: fixed heads, or all heads of the top layers."""

    heads: tuple[AlignmentHead, ...] | None = None
    max_layers: int = 3

    @classmethod
    def top_layer_heads(cls, max_layers: int) -> "AlignmentHeads":
        return cls(heads=None, max_layers=max_layers)

    @classmethod
    def from_pairs(cls, pairs: Iterable[tuple[int, int]]) -> "AlignmentHeads":
        return cls(heads=tuple(AlignmentHead(layer, head) for layer, head in pairs))

    @classmethod
    def tiny(cls) -> "AlignmentHeads":
        return cls.from_pairs(_TINY)

    @classmethod
    def tiny_en(cls) -> "AlignmentHeads":
        return cls.from_pairs(_TINY_EN)

    @classmethod
    def base(cls) -> "AlignmentHeads":
        return cls.from_pairs(_BASE)

    @classmethod
    def base_en(cls) -> "AlignmentHeads":
        return cls.from_pairs(_BASE_EN)

    @classmethod
    def small(cls) -> "AlignmentHeads":
        return cls.from_pairs(_SMALL)

    @classmethod
    def small_en(cls) -> "AlignmentHeads":
        return cls.from_pairs(_SMALL_EN)

    @classmethod
    def medium(cls) -> "AlignmentHeads":
        return cls.from_pairs(_MEDIUM)

    @classmethod
    def medium_en(cls) -> "AlignmentHeads":
        return cls.from_pairs(_MEDIUM_EN)

    @classmethod
    def large_v1(cls) -> "AlignmentHeads":
        return cls.from_pairs(_LARGE_V1)

    @classmethod
    def large_v2(cls) -> "AlignmentHeads":
        return cls.from_pairs(_LARGE_V2_V3)

    @classmethod
    def large_v3(cls) -> "AlignmentHeads":
        return cls.from_pairs(_LARGE_V2_V3)

    @classmethod
    def large_v3_turbo(cls) -> "AlignmentHeads":
        return cls.from_pairs(_TURBO)

    @classmethod
    def distil_small_en(cls) -> "AlignmentHeads":
        return cls.from_pairs(_DISTIL_SMALL_EN)

    @classmethod
    def distil_large_v3(cls) -> "AlignmentHeads":
        return cls.from_pairs(_DISTIL_LARGE_V3)

    def _select(self, cross_attentions: Sequence[np.ndarray]) -> np.ndarray:
        layers = [np.asarray(a, dtype=np.float32) for a in cross_attentions]
        if self.heads is None:
            count = min(len(layers) // 2, self.max_layers)
            chosen = layers[len(layers) - count :] if count else []
            if not chosen:
                raise ValueError("no cross-attention layers to select from")
            return np.concatenate(chosen, axis=1)
        picked = [
            layers[h.layer][:, h.head]
            for h in self.heads
            if h.layer < len(layers) and h.head < layers[h.layer].shape[1]
        ]
        if not picked:
            raise ValueError("none of the alignment heads are present")
        return np.stack(picked, axis=0).transpose(1, 0, 2, 3)

    def extract_timestamps(
        self,
        cross_attentions: Sequence[np.ndarray],
        filter_width: int,
        n_frames: int,
        n_start_tokens: int,
    ) -> list[list[float]]:
        """Return per-batch token timestamps in seconds.

        Each cross-attention array has shape (batch, heads, tokens, frames).
        """
        weights = self._select(cross_attentions)
        frames = min(n_frames, N_FRAMES) // 2
        if frames > weights.shape[3]:
            raise ValueError(
                f"requested {frames} frames but attention covers {weights.shape[3]}"
            )
        weights = weights[..., :frames]

        # Normalize
        shifted = weights - weights.max(axis=-1, keepdims=True)
        exp = np.exp(shifted)
        weights = exp / exp.sum(axis=-1, keepdims=True)

        # Smooth
        mean = weights.mean(axis=-2, keepdims=True)
        std = np.sqrt(weights.var(axis=-2, ddof=1, keepdims=True))
        weights = median_filter(filter_width, (weights - mean) / std)

        # Exclude start tokens
        n_tokens = weights.shape[-2] - n_start_tokens - 1
        if n_tokens < 0:
            raise ValueError("not enough tokens for the given number of start tokens")
        cost = weights.mean(axis=1)[:, n_start_tokens : n_start_tokens + n_tokens, :]
        if n_tokens == 0:
            return []

        frames_per_second = np.float32(SAMPLE_RATE // (HOP_LENGTH * 2))
        rows = []
        for batch in cost:
            text_indices, time_indices = dynamic_time_warp((-batch).astype(np.float32))
            jumps = [1] + [int(a - b) for a, b in zip(text_indices[1:], text_indices)]
            rows.append(
                np.array(
                    [
                        np.float32(time_indices[i]) / frames_per_second
                        for i, jump in enumerate(jumps)
                        if jump == 1
                    ],
                    dtype=np.float32,
                )
            )
        return [row.tolist() for row in np.stack(rows, axis=0)]


def dynamic_time_warp(matrix) -> tuple[list[float], list[float]]:
    """Return the (text, time) indices of the lowest-cost warping path."""
    matrix = np.asarray(matrix, dtype=np.float32)
    if matrix.ndim != 2 or matrix.shape[0] == 0:
        raise ValueError("cost matrix must be a non-empty 2-D array")
    n, m = matrix.shape
    cost = np.ones((n + 1, m + 1), dtype=np.float32)
    trace = np.ones((n + 1, m + 1), dtype=np.float32)
    cost[0, 0] = 0.0

    for j in range(1, m + 1):
        for i in range(1, n + 1):
            c0, c1, c2 = cost[i - 1, j - 1], cost[i - 1, j], cost[i, j - 1]
            if c0 < c1 and c0 < c2:
                c, t = c0, 0.0  # match
            elif not c0 < c1 and c1 < c2:
                c, t = c1, 1.0  # insertion
            else:
                c, t = c2, 2.0  # deletion
            cost[i, j] = matrix[i - 1, j - 1] + c
            trace[i, j] = t

    trace[0, :] = 2.0
    trace[:, 0] = 1.0

    i, j = n, m
    xs: list[float] = []
    ys: list[float] = []
    while i > 0 or j > 0:
        xs.append(float(max(i - 1, 0)))
        ys.append(float(max(j - 1, 0)))
        step = int(trace[i, j])
        if step == 0:
            i, j = max(i - 1, 0), max(j - 1, 0)
        elif step == 1:
            i = max(i - 1, 0)
        else:
            j = max(j - 1, 0)
    xs.reverse()
    ys.reverse()
    return xs, ys


def median_filter(filter_width: int, weights) -> np.ndarray:
    """Median-filter a 4-D array along its last axis, padding with edge values."""
    if filter_width < 1:
        raise ValueError("filter width must be at least 1")
    weights = np.asarray(weights)
    if weights.ndim != 4:
        raise ValueError("weights must be a 4-D array")
    pad = filter_width // 2
    width = weights.shape[3]
    if width <= pad:
        return weights
    padded = np.pad(weights, [(0, 0), (0, 0), (0, 0), (pad, pad)], mode="edge")
    windows = sliding_window_view(padded, filter_width, axis=3)[:, :, :, :width, :]
    return np.sort(windows, axis=-1)[..., pad]