"""
core/spectrogram/fft.py — Windowing and radix-2 FFT magnitude kernel.

Pure functions only: (signal) → new array. Inputs are never mutated.

The transform is an iterative radix-2 decimation-in-time Cooley-Tukey FFT:
a bit-reversal permutation followed by log2(N) butterfly passes. Each pass
is vectorised with numpy across all butterflies of the same stage, which
keeps the algorithm explicit while avoiding a per-sample Python loop.
"""

from __future__ import annotations

from functools import lru_cache

import numpy as np

from core.spectrogram.errors import InvalidInputSize


def is_power_of_two(n: int) -> bool:
    """True for 1, 2, 4, 8, ..."""
    return n > 0 and (n & (n - 1)) == 0


# ---------------------------------------------------------------------------
# Memoised tables (read-only)
# ---------------------------------------------------------------------------


@lru_cache(maxsize=16)
def _bit_reversal_permutation(n: int) -> np.ndarray:
    """Index permutation that puts a length-n sequence in bit-reversed order."""
    bits = n.bit_length() - 1
    indices = np.arange(n, dtype=np.intp)
    reversed_indices = np.zeros(n, dtype=np.intp)
    for b in range(bits):
        reversed_indices |= ((indices >> b) & 1) << (bits - 1 - b)
    reversed_indices.flags.writeable = False
    return reversed_indices


@lru_cache(maxsize=64)
def _twiddles(m: int) -> np.ndarray:
    """Twiddle factors exp(-2πi·j/m) for j in [0, m/2)."""
    j = np.arange(m // 2)
    factors = np.exp(-2j * np.pi * j / m)
    factors.flags.writeable = False
    return factors


@lru_cache(maxsize=16)
def _hann_weights(n: int) -> np.ndarray:
    if n == 1:
        weights = np.ones(1)
    else:
        i = np.arange(n)
        weights = 0.5 * (1.0 - np.cos(2.0 * np.pi * i / (n - 1)))
    weights.flags.writeable = False
    return weights


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def apply_hann_window(signal: np.ndarray) -> np.ndarray:
    """Return a Hann-windowed copy of ``signal``.

    weight(i) = 0.5 · (1 − cos(2π·i / (N − 1))), so the first and last
    samples are scaled to ~0. Must be applied before the transform.

    Args:
        signal: 1-D real signal of any length.

    Returns:
        New float64 array of the same length.
    """
    x = np.asarray(signal, dtype=np.float64)
    if x.size == 0:
        return x.copy()
    return x * _hann_weights(x.size)


def fft(signal: np.ndarray) -> np.ndarray:
    """Complex radix-2 DIT FFT of a real or complex power-of-two signal.

    Raises:
        InvalidInputSize: len(signal) is not a power of two.
    """
    n = len(signal)
    if not is_power_of_two(n):
        raise InvalidInputSize(n)

    # Working buffer in bit-reversed order; the caller's array is untouched.
    x = np.asarray(signal, dtype=np.complex128)[_bit_reversal_permutation(n)]

    m = 2
    while m <= n:
        half = m // 2
        blocks = x.reshape(-1, m)
        even = blocks[:, :half].copy()
        odd = blocks[:, half:] * _twiddles(m)
        blocks[:, :half] = even + odd
        blocks[:, half:] = even - odd
        m *= 2

    return x


def compute_magnitude_spectrum(signal: np.ndarray) -> np.ndarray:
    """Magnitude spectrum of a power-of-two signal.

    Args:
        signal: N real samples, N a power of two (already windowed).

    Returns:
        N/2 non-negative floats: |X(i)| / N for i in [0, N/2).
        Index 0 is DC; index i is i · sample_rate / N Hz.

    Raises:
        InvalidInputSize: N is not a power of two.
    """
    spectrum = fft(signal)
    n = len(spectrum)
    return np.abs(spectrum[: n // 2]) / n
