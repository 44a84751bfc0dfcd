"""Score model — notes, layers, catalogues, serialization and harmony generation.

Provides data structures for a two-layer composition with:
- Immutable Note events (pitch, timing, velocity, voice assignment)
- Melody and generated-harmony layers
- Instrument and drum-voice catalogues loaded from JSON
- Composition serialization (save/load as JSON)
- Genre-driven chord progression harmony
"""

from scoresynth.score.harmony import (
    HarmonyGenerator,
    HarmonyResult,
    build_harmony,
    load_harmony_tables,
    resolve_numeral,
)
from scoresynth.score.models import (
    Category,
    Composition,
    DrumVoiceDescriptor,
    Excitation,
    InstrumentDescriptor,
    Layer,
    Note,
    drum_note,
    get_drum,
    get_instrument,
    load_drum_db,
    load_instrument_db,
    pitch_name,
)
from scoresynth.score.serializer import (
    load_composition,
    save_composition,
)

__all__ = [
    "Category",
    "Composition",
    "DrumVoiceDescriptor",
    "Excitation",
    "HarmonyGenerator",
    "HarmonyResult",
    "InstrumentDescriptor",
    "Layer",
    "Note",
    "build_harmony",
    "drum_note",
    "get_drum",
    "get_instrument",
    "load_composition",
    "load_drum_db",
    "load_harmony_tables",
    "load_instrument_db",
    "pitch_name",
    "resolve_numeral",
    "save_composition",
]
