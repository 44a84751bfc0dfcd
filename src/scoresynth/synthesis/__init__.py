"""Voice synthesis — oscillators, envelopes, filters and per-instrument voices."""

from scoresynth.synthesis.dsp import Waveform, midi_to_hz
from scoresynth.synthesis.envelope import FLOOR, Envelope
from scoresynth.synthesis.voices import (
    VoiceKind,
    render_note,
    render_voice,
    resolve_voice,
    synthesize,
)

__all__ = [
    "FLOOR",
    "Envelope",
    "VoiceKind",
    "Waveform",
    "midi_to_hz",
    "render_note",
    "render_voice",
    "resolve_voice",
    "synthesize",
]
