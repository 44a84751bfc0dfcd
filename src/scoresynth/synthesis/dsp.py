"""Oscillators, noise, biquad filters and dynamics processing."""

from __future__ import annotations

import math
from enum import Enum

import numpy as np
from scipy.signal import lfilter

A4_HZ = 440.0
A4_MIDI = 69


class Waveform(Enum):
    """Oscillator shapes."""

    SINE = "sine"
    SQUARE = "square"
    SAWTOOTH = "sawtooth"
    TRIANGLE = "triangle"


def midi_to_hz(pitch: float) -> float:
    """Equal-temperament frequency of a MIDI pitch (A4 = 440 Hz)."""
    return A4_HZ * (2.0 ** ((pitch - A4_MIDI) / 12.0))


# ---------------------------------------------------------------------------
# Sources
# ---------------------------------------------------------------------------

def oscillator(
    waveform: Waveform,
    freq_hz: float | np.ndarray,
    n: int,
    sr: int,
) -> np.ndarray:
    """Generate ``n`` samples of a waveform starting at phase 0.

    ``freq_hz`` may be a per-sample array for swept oscillators.
    """
    if n <= 0:
        return np.zeros(0, dtype=np.float64)
    if np.ndim(freq_hz) == 0:
        phase = float(freq_hz) * np.arange(n, dtype=np.float64) / sr
    else:
        freq = np.asarray(freq_hz, dtype=np.float64)[:n]
        phase = np.concatenate(([0.0], np.cumsum(freq[:-1]))) / sr
    frac = phase % 1.0

    if waveform == Waveform.SINE:
        return np.sin(2 * np.pi * frac)
    if waveform == Waveform.SQUARE:
        return np.where(frac < 0.5, 1.0, -1.0)
    if waveform == Waveform.SAWTOOTH:
        return 2.0 * ((frac + 0.5) % 1.0) - 1.0
    # Triangle: 0 -> +1 -> -1 -> 0 over one period
    return 1.0 - 4.0 * np.abs(((frac + 0.25) % 1.0) - 0.5)


def white_noise(n: int, rng: np.random.Generator) -> np.ndarray:
    """Uniform white noise in [-1, 1)."""
    return rng.uniform(-1.0, 1.0, n)


# ---------------------------------------------------------------------------
# Filters
# ---------------------------------------------------------------------------

def _biquad_coefficients(
    kind: str, freq_hz: float, q: float, sr: int,
) -> tuple[np.ndarray, np.ndarray]:
    """RBJ cookbook coefficients for a lowpass or constant-gain bandpass."""
    freq_hz = min(max(freq_hz, 1.0), 0.49 * sr)
    w0 = 2 * np.pi * freq_hz / sr
    cos_w0 = math.cos(w0)
    alpha = math.sin(w0) / (2 * max(q, 1e-4))

    if kind == "lowpass":
        b = np.array([(1 - cos_w0) / 2, 1 - cos_w0, (1 - cos_w0) / 2])
    elif kind == "bandpass":
        b = np.array([alpha, 0.0, -alpha])
    else:
        raise ValueError(f"Unsupported filter type: {kind}")
    a = np.array([1 + alpha, -2 * cos_w0, 1 - alpha])
    return b / a[0], a / a[0]


def lowpass(signal: np.ndarray, cutoff_hz: float, q: float, sr: int) -> np.ndarray:
    b, a = _biquad_coefficients("lowpass", cutoff_hz, q, sr)
    return lfilter(b, a, signal)


def bandpass(signal: np.ndarray, center_hz: float, q: float, sr: int) -> np.ndarray:
    b, a = _biquad_coefficients("bandpass", center_hz, q, sr)
    return lfilter(b, a, signal)


# ---------------------------------------------------------------------------
# Dynamics and shaping
# ---------------------------------------------------------------------------

def _compressor_curve_db(
    level_db: np.ndarray, threshold_db: float, knee_db: float, ratio: float,
) -> np.ndarray:
    """Static soft-knee curve: output level (dB) for an input level (dB)."""
    over = level_db - threshold_db
    half_knee = knee_db / 2
    in_knee = (over > -half_knee) & (over < half_knee)
    knee_out = level_db + (1 / ratio - 1) * (over + half_knee) ** 2 / (2 * max(knee_db, 1e-9))
    above_out = threshold_db + over / ratio
    return np.where(over <= -half_knee, level_db, np.where(in_knee, knee_out, above_out))


def compress(
    signal: np.ndarray,
    sr: int,
    threshold_db: float = -24.0,
    knee_db: float = 30.0,
    ratio: float = 12.0,
    attack_s: float = 0.003,
    release_s: float = 0.25,
) -> np.ndarray:
    """Feed-forward soft-knee compressor with automatic makeup gain.

    The attack time smooths the level detector; the release time smooths
    gain recovery, while gain reduction itself is applied immediately.
    """
    if len(signal) == 0:
        return signal

    a_att = math.exp(-1.0 / (attack_s * sr))
    a_rel = math.exp(-1.0 / (release_s * sr))

    detector = lfilter([1 - a_att], [1, -a_att], np.abs(signal))
    level_db = 20 * np.log10(np.maximum(detector, 1e-9))
    gain_db = _compressor_curve_db(level_db, threshold_db, knee_db, ratio) - level_db

    recovered = lfilter([1 - a_rel], [1, -a_rel], gain_db)
    gain_db = np.minimum(gain_db, recovered)

    full_scale_gain_db = float(
        _compressor_curve_db(np.array([0.0]), threshold_db, knee_db, ratio)[0]
    )
    makeup_db = -0.6 * full_scale_gain_db

    return signal * 10 ** ((gain_db + makeup_db) / 20)


def tanh_shaper(signal: np.ndarray, drive: float = 2.0, gain: float = 0.8) -> np.ndarray:
    """Soft saturation ``gain * tanh(drive * x)`` over input clipped to [-1, 1]."""
    return gain * np.tanh(drive * np.clip(signal, -1.0, 1.0))
