"""Turn one note into an audio signal.

Voice kinds:
  - sine / square / sawtooth / triangle: single oscillator, 10ms attack
  - piano: six halving harmonics through a compressor
  - violin: three bowed harmonics through a lowpass
  - acoustic-guitar: saw + detuned triangle with a pluck noise burst
  - bass-guitar: detuned saw/square + sub sine, lowpass, tanh saturation
  - drums: noise bursts (snare, hihat, cymbals) or pitch-swept sines (kick, toms)

Every voice is a pure function of its parameters and the sample rate, so the
same code serves live playback and offline rendering. Final amplitude is
scaled by ``velocity * master_volume``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum

import numpy as np

from scoresynth.errors import SynthesisError
from scoresynth.score.models import (
    DrumVoiceDescriptor,
    Excitation,
    Note,
    get_drum,
    load_instrument_db,
)
from scoresynth.synthesis.dsp import (
    Waveform,
    bandpass,
    compress,
    lowpass,
    midi_to_hz,
    oscillator,
    tanh_shaper,
    white_noise,
)
from scoresynth.synthesis.envelope import FLOOR, Envelope

logger = logging.getLogger(__name__)


class VoiceKind(Enum):
    """Synthesis algorithm tags; values match ``instruments.json``."""

    SINE = "sine"
    SQUARE = "square"
    SAWTOOTH = "sawtooth"
    TRIANGLE = "triangle"
    PIANO = "piano"
    VIOLIN = "violin"
    ACOUSTIC_GUITAR = "acoustic-guitar"
    BASS_GUITAR = "bass-guitar"
    DRUMS = "drums"


@dataclass(frozen=True)
class VoiceParams:
    """Everything a voice renderer needs, snapshotted at construction.

    Attributes:
        frequency: Fundamental in Hz.
        duration: Note length in seconds (drums use their decay instead).
        peak: ``velocity * master_volume``.
        sample_rate: Output sample rate.
        seed: Seed for any noise source.
        drum: Drum voice, for ``VoiceKind.DRUMS`` only.
    """

    frequency: float
    duration: float
    peak: float
    sample_rate: int
    seed: int = 0
    drum: DrumVoiceDescriptor | None = None

    @property
    def n_samples(self) -> int:
        return int(round(self.duration * self.sample_rate))


def _note_seed(pitch: int, duration: float, velocity: float) -> int:
    return (pitch * 131 + int(duration * 1000) * 31 + int(velocity * 127) * 1000003) & 0x7FFFFFFF


# ---------------------------------------------------------------------------
# Voice renderers
# ---------------------------------------------------------------------------

def _basic_voice(waveform: Waveform):
    def render(p: VoiceParams) -> np.ndarray:
        n = p.n_samples
        env = (
            Envelope(0.0)
            .linear_to(p.peak, 0.01)
            .exponential_to(FLOOR, p.duration)
        )
        return env.apply(oscillator(waveform, p.frequency, n, p.sample_rate), p.sample_rate)

    return render


def _violin(p: VoiceParams) -> np.ndarray:
    n, sr, f = p.n_samples, p.sample_rate, p.frequency
    tone = (
        0.7 * oscillator(Waveform.SAWTOOTH, f, n, sr)
        + 0.2 * oscillator(Waveform.SINE, f * 2, n, sr)
        + 0.1 * oscillator(Waveform.SINE, f * 3, n, sr)
    )
    env = (
        Envelope(0.0)
        .linear_to(p.peak * 0.8, 0.1)
        .exponential_to(p.peak * 0.6, 0.3)
        .set(p.peak * 0.4, 0.3)
        .set(p.peak * 0.4, p.duration - 0.2)
        .exponential_to(FLOOR, p.duration)
    )
    return lowpass(env.apply(tone, sr), f * 4, 1.0, sr)


_PIANO_AMPLITUDES = [1.0, 0.5, 0.25, 0.125, 0.0625, 0.03125]


def _piano(p: VoiceParams) -> np.ndarray:
    n, sr, f = p.n_samples, p.sample_rate, p.frequency
    tone = np.zeros(n, dtype=np.float64)
    for i, amp in enumerate(_PIANO_AMPLITUDES):
        wave = Waveform.TRIANGLE if i == 0 else Waveform.SINE
        tone += amp * oscillator(wave, f * (i + 1), n, sr)
    env = (
        Envelope(0.0)
        .linear_to(p.peak, 0.01)
        .exponential_to(p.peak * 0.3, 0.1)
        .exponential_to(p.peak * 0.1, p.duration * 0.5)
        .exponential_to(FLOOR, p.duration)
    )
    return compress(env.apply(tone, sr), sr)


_PLUCK_BURST_S = 0.1


def _acoustic_guitar(p: VoiceParams) -> np.ndarray:
    n, sr, f = p.n_samples, p.sample_rate, p.frequency
    tone = oscillator(Waveform.SAWTOOTH, f, n, sr) + oscillator(Waveform.TRIANGLE, f * 2.1, n, sr)
    tone_env = (
        Envelope(0.0)
        .linear_to(p.peak * 0.8, 0.02)
        .exponential_to(p.peak * 0.4, 0.1)
        .exponential_to(p.peak * 0.2, p.duration * 0.7)
        .exponential_to(FLOOR, p.duration)
    )

    burst_len = min(n, int(round(_PLUCK_BURST_S * sr)))
    burst = np.zeros(n, dtype=np.float64)
    burst[:burst_len] = white_noise(burst_len, np.random.default_rng(p.seed))
    burst_env = Envelope(p.peak * 0.05).exponential_to(FLOOR, _PLUCK_BURST_S)

    mixed = tone_env.apply(tone, sr) + burst_env.apply(burst, sr)
    return 0.8 * bandpass(mixed, f * 2, 2.0, sr)


def _bass_guitar(p: VoiceParams) -> np.ndarray:
    n, sr, f = p.n_samples, p.sample_rate, p.frequency
    body = oscillator(Waveform.SAWTOOTH, f, n, sr) + oscillator(Waveform.SQUARE, f * 1.01, n, sr)
    body_env = (
        Envelope(0.0)
        .linear_to(p.peak * 0.9, 0.01)
        .exponential_to(p.peak * 0.7, 0.05)
        .exponential_to(p.peak * 0.3, p.duration * 0.8)
        .exponential_to(FLOOR, p.duration)
    )
    sub = oscillator(Waveform.SINE, f * 0.5, n, sr)
    sub_env = Envelope(p.peak * 0.4).exponential_to(FLOOR, p.duration)

    mixed = body_env.apply(body, sr) + sub_env.apply(sub, sr)
    return tanh_shaper(lowpass(mixed, f * 3, 1.5, sr))


_SWEEP_S = 0.1


def _drum(p: VoiceParams) -> np.ndarray:
    drum = p.drum
    if drum is None:
        raise SynthesisError("Drum voice requested without a drum descriptor.")
    sr = p.sample_rate
    n = int(drum.decay * sr)
    gain = Envelope(p.peak).exponential_to(FLOOR, drum.decay)

    if drum.excitation == Excitation.NOISE:
        i = np.arange(n, dtype=np.float64)
        noise = white_noise(n, np.random.default_rng(p.seed))
        noise *= np.exp(-i / (n * 0.1))
        q = 0.5 if "hihat" in drum.id else 2.0
        return gain.apply(bandpass(noise, drum.frequency, q, sr), sr)

    sweep = (
        Envelope(drum.frequency)
        .exponential_to(drum.frequency * 0.1, _SWEEP_S)
        .render(n, sr)
    )
    tone = oscillator(Waveform.SINE, sweep, n, sr)
    return gain.apply(lowpass(tone, drum.frequency * 4, 1.0, sr), sr)


_VOICE_RENDERERS = {
    VoiceKind.SINE: _basic_voice(Waveform.SINE),
    VoiceKind.SQUARE: _basic_voice(Waveform.SQUARE),
    VoiceKind.SAWTOOTH: _basic_voice(Waveform.SAWTOOTH),
    VoiceKind.TRIANGLE: _basic_voice(Waveform.TRIANGLE),
    VoiceKind.PIANO: _piano,
    VoiceKind.VIOLIN: _violin,
    VoiceKind.ACOUSTIC_GUITAR: _acoustic_guitar,
    VoiceKind.BASS_GUITAR: _bass_guitar,
    VoiceKind.DRUMS: _drum,
}


# ---------------------------------------------------------------------------
# Dispatch
# ---------------------------------------------------------------------------

def resolve_voice(
    instrument_id: str, drum_id: str | None = None,
) -> tuple[VoiceKind, DrumVoiceDescriptor | None]:
    """Map an instrument (and drum) id to a voice kind.

    Unknown ids fall back to the sine voice with a warning.
    """
    instrument = load_instrument_db().get(instrument_id)
    if instrument is None:
        logger.warning("Unknown instrument %r, falling back to sine", instrument_id)
        return VoiceKind.SINE, None

    try:
        kind = VoiceKind(instrument.algorithm)
    except ValueError:
        logger.warning(
            "Instrument %r has unknown algorithm %r, falling back to sine",
            instrument_id, instrument.algorithm,
        )
        return VoiceKind.SINE, None

    if kind != VoiceKind.DRUMS:
        return kind, None

    try:
        return kind, get_drum(drum_id or "")
    except KeyError:
        logger.warning("Unknown drum voice %r, falling back to sine", drum_id)
        return VoiceKind.SINE, None


def render_voice(
    pitch: int,
    duration: float,
    velocity: float,
    kind: VoiceKind,
    master_volume: float,
    sample_rate: int,
    drum: DrumVoiceDescriptor | None = None,
) -> np.ndarray:
    """Render one voice as a mono float32 signal starting at t=0.

    Raises:
        SynthesisError: If the voice cannot be built.
    """
    params = VoiceParams(
        frequency=midi_to_hz(pitch),
        duration=duration,
        peak=velocity * master_volume,
        sample_rate=sample_rate,
        seed=_note_seed(pitch, duration, velocity),
        drum=drum,
    )
    if params.peak <= 0:
        n = int(drum.decay * sample_rate) if drum is not None else params.n_samples
        return np.zeros(n, dtype=np.float32)

    try:
        signal = _VOICE_RENDERERS[kind](params)
    except SynthesisError:
        raise
    except Exception as exc:
        raise SynthesisError(f"{kind.value} voice failed for pitch {pitch}: {exc}") from exc

    return np.asarray(signal, dtype=np.float32)


def render_note(note: Note, master_volume: float, sample_rate: int) -> np.ndarray:
    """Render a Note with its own instrument and drum assignment."""
    kind, drum = resolve_voice(note.instrument, note.drum)
    return render_voice(
        note.pitch, note.duration, note.velocity, kind, master_volume, sample_rate, drum,
    )


def synthesize(
    note: Note,
    destination: np.ndarray,
    start_offset: float,
    master_volume: float,
    sample_rate: int,
) -> int:
    """Add a note's voice into ``destination`` at ``start_offset`` seconds.

    ``destination`` is a (frames,) or (frames, channels) float buffer; a mono
    voice is written into every channel. The voice is truncated at the end of
    the buffer.

    Returns:
        Number of frames written.

    Raises:
        SynthesisError: If the voice cannot be built.
    """
    voice = render_note(note, master_volume, sample_rate)
    start = int(round(start_offset * sample_rate))
    if start >= destination.shape[0] or len(voice) == 0:
        return 0

    end = min(destination.shape[0], start + len(voice))
    frames = end - start
    if destination.ndim == 1:
        destination[start:end] += voice[:frames]
    else:
        destination[start:end] += voice[:frames, np.newaxis]
    return frames
