"""Log-mel spectrogram computation for speech-recognition input."""

from __future__ import annotations

import math
from collections.abc import Sequence

import numpy as np
from numpy.lib.stride_tricks import sliding_window_view

from .params import CHUNK_LENGTH, HOP_LENGTH, N_FFT, ModelConfig

_FRAMES_PER_BLOCK = 2048
_MIN_ENERGY = 1e-10


def fft(inp: Sequence[float]) -> list[float]:
    """Radix-2 FFT; returns interleaved real and imaginary parts.

    Odd lengths fall back to the direct transform.
    """
    values = [float(x) for x in inp]
    n = len(values)
    if n == 0:
        raise ValueError("cannot transform an empty sequence")
    if n == 1:
        return [values[0], 0.0]
    if n % 2 == 1:
        return dft(values)

    even_fft = fft(values[0::2])
    odd_fft = fft(values[1::2])

    two_pi = math.pi + math.pi
    first: list[float] = []
    second: list[float] = []
    pairs = zip(even_fft[0::2], even_fft[1::2], odd_fft[0::2], odd_fft[1::2])
    for k, (re_even, im_even, re_odd, im_odd) in enumerate(pairs):
        theta = two_pi * k / n
        re = math.cos(theta)
        im = -math.sin(theta)
        first += (
            re_even + re * re_odd - im * im_odd,
            im_even + re * im_odd + im * re_odd,
        )
        second += (
            re_even - re * re_odd + im * im_odd,
            im_even - re * im_odd - im * re_odd,
        )
    return first + second


def dft(inp: Sequence[float]) -> list[float]:
    """Direct discrete Fourier transform; returns interleaved real and imaginary parts."""
    values = [float(x) for x in inp]
    n = len(values)
    if n == 0:
        raise ValueError("cannot transform an empty sequence")
    two_pi = math.pi + math.pi
    out: list[float] = []
    for k in range(n):
        re = 0.0
        im = 0.0
        for j, x in enumerate(values):
            angle = two_pi * k * j / n
            re += x * math.cos(angle)
            im -= x * math.sin(angle)
        out += (re, im)
    return out


def _power_spectrum(block: np.ndarray, fft_size: int, n_fft: int, speed_up: bool) -> np.ndarray:
    spectrum = np.fft.fft(block, axis=1)
    power = spectrum.real**2 + spectrum.imag**2
    half = fft_size // 2
    # Fold the mirrored upper half onto the lower half.
    power[:, 1:half] += power[:, fft_size - 1 : fft_size - half : -1]
    if speed_up:
        # Scaling down in frequency speeds up in time.
        power[:, :n_fft] = 0.5 * (power[:, 0 : 2 * n_fft : 2] + power[:, 1 : 2 * n_fft : 2])
    return power[:, :n_fft]


def log_mel_spectrogram(
    samples,
    filters,
    fft_size: int,
    fft_step: int,
    n_mel: int,
    speed_up: bool = False,
) -> np.ndarray:
    """Return the normalised log-mel spectrogram, flattened as n_mel rows of frames.

    The audio is padded with at least one extra chunk of silence.
    """
    if fft_size < 1 or fft_step < 1 or n_mel < 1:
        raise ValueError("fft_size, fft_step and n_mel must all be positive")
    if speed_up and fft_size < 2:
        raise ValueError("speed-up needs an fft_size of at least 2")

    samples = np.asarray(samples)
    dtype = np.float32 if samples.dtype == np.float32 else np.float64
    samples = samples.astype(dtype, copy=False).ravel()
    filters = np.asarray(filters, dtype=dtype).ravel()

    n_fft = 1 + fft_size // 4 if speed_up else 1 + fft_size // 2
    if filters.size < n_mel * n_fft:
        raise ValueError(
            f"filter bank has {filters.size} values, need at least {n_mel * n_fft}"
        )
    bank = filters[: n_mel * n_fft].reshape(n_mel, n_fft)

    positions = np.arange(fft_size, dtype=np.float64)
    hann = (0.5 * (1.0 - np.cos(2.0 * math.pi * positions / fft_size))).astype(dtype)

    pad = 100 * CHUNK_LENGTH // 2
    n_len = samples.size // fft_step
    if n_len % pad != 0:
        n_len = (n_len // pad + 1) * pad
    n_len += pad

    padded = np.zeros(n_len * fft_step + fft_size, dtype=dtype)
    padded[: samples.size] = samples
    windows = sliding_window_view(padded, fft_size)[::fft_step][:n_len]

    mel = np.empty((n_mel, n_len), dtype=dtype)
    for begin in range(0, n_len, _FRAMES_PER_BLOCK):
        end = min(begin + _FRAMES_PER_BLOCK, n_len)
        block = windows[begin:end] * hann
        power = _power_spectrum(block, fft_size, n_fft, speed_up).astype(dtype)
        energies = power @ bank.T
        mel[:, begin:end] = np.log10(np.maximum(energies, _MIN_ENERGY)).T

    floor = mel.max() - 8
    mel = np.maximum(mel, floor) / 4 + 1
    return mel.ravel().astype(dtype, copy=False)


def pcm_to_mel(cfg: ModelConfig, samples, filters) -> np.ndarray:
    """Log-mel spectrogram of 16 kHz PCM samples for the given model."""
    return log_mel_spectrogram(samples, filters, N_FFT, HOP_LENGTH, cfg.num_mel_bins, False)