"""Composition data model — notes, layers, and the instrument/drum catalogues.

Provides dataclasses for a two-layer score:
- Note events with pitch, timing, velocity and voice assignment
- Melody (user-authored) and harmony (generated) layers
- Instrument and drum-voice descriptors loaded from JSON configs
"""

from __future__ import annotations

import json
import uuid
from dataclasses import dataclass, field, replace
from enum import Enum
from pathlib import Path

_CONFIGS_DIR = Path(__file__).resolve().parents[1] / "configs"

NOTE_NAMES = ["C", "C#", "D", "D#", "E", "F", "F#", "G", "G#", "A", "A#", "B"]


class Category(Enum):
    """Instrument family, used to group instruments for display."""

    SYNTH = "synth"
    ACOUSTIC = "acoustic"
    PERCUSSION = "percussion"


class Excitation(Enum):
    """How a drum voice is excited."""

    NOISE = "noise"    # filtered noise burst (snare, hihat, cymbals)
    TONE = "tone"      # pitched sine sweep
    MIXED = "mixed"    # kicks and toms; rendered as a tone sweep


class Layer(Enum):
    """Which note layers a playback pass schedules."""

    MELODY = "melody"
    ALL = "all"


def _new_id() -> str:
    return uuid.uuid4().hex[:9]


@dataclass(frozen=True)
class Note:
    """A single timed note event.

    Attributes:
        pitch: MIDI note number (0-127).
        start: Onset in seconds from the start of the score.
        duration: Length in seconds (> 0).
        velocity: Loudness (0-1).
        instrument: Instrument id (see ``instruments.json``).
        drum: Drum voice id, only meaningful for the ``drums`` instrument.
        chord: Chord label, harmony layer only.
        function: Harmonic function tag ("T", "S" or "D"), harmony layer only.
        id: Unique identifier, generated when omitted.
    """

    pitch: int
    start: float
    duration: float
    velocity: float = 0.7
    instrument: str = "sine"
    drum: str | None = None
    chord: str | None = None
    function: str | None = None
    id: str = field(default_factory=_new_id)

    def __post_init__(self) -> None:
        if not 0 <= self.pitch <= 127:
            raise ValueError(f"Pitch {self.pitch} outside MIDI range 0-127.")
        if self.start < 0:
            raise ValueError(f"Start time must be >= 0, got {self.start}.")
        if self.duration <= 0:
            raise ValueError(f"Duration must be > 0, got {self.duration}.")
        if not 0.0 <= self.velocity <= 1.0:
            raise ValueError(f"Velocity must be within [0, 1], got {self.velocity}.")

    @property
    def end(self) -> float:
        """Time at which the note stops sounding."""
        return self.start + self.duration


@dataclass
class Composition:
    """A two-layer score.

    Layer order is display order only; playback and rendering sort by time.

    Attributes:
        melody: User-authored notes.
        harmony: Notes produced by harmony generation.
    """

    melody: list[Note] = field(default_factory=list)
    harmony: list[Note] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.melody and not self.harmony

    def all_notes(self) -> list[Note]:
        """Melody and harmony merged into one list."""
        return [*self.melody, *self.harmony]

    def notes_for(self, layer: Layer) -> list[Note]:
        if layer == Layer.ALL:
            return self.all_notes()
        return list(self.melody)

    def end_time(self, layer: Layer = Layer.ALL) -> float:
        """Latest note end across the requested layers, 0.0 when empty."""
        return max((n.end for n in self.notes_for(layer)), default=0.0)

    def add(self, note: Note) -> Note:
        self.melody.append(note)
        return note

    def remove(self, note_id: str) -> bool:
        """Delete a melody note by id. Returns False if no note matched."""
        before = len(self.melody)
        self.melody = [n for n in self.melody if n.id != note_id]
        return len(self.melody) != before

    def update(self, note_id: str, **changes) -> Note:
        """Replace a melody note with an edited copy.

        Raises:
            KeyError: If no melody note has this id.
        """
        for i, n in enumerate(self.melody):
            if n.id == note_id:
                edited = replace(n, **changes)
                self.melody[i] = edited
                return edited
        raise KeyError(f"Note not found: {note_id}")

    def duplicate(self, note_ids: list[str], offset: float) -> list[Note]:
        """Copy the given melody notes ``offset`` seconds later, with fresh ids."""
        wanted = set(note_ids)
        copies = [
            replace(n, start=max(0.0, n.start + offset), id=_new_id())
            for n in self.melody
            if n.id in wanted
        ]
        self.melody.extend(copies)
        return copies

    def set_harmony(self, notes: list[Note]) -> None:
        self.harmony = list(notes)

    def clear(self) -> None:
        self.melody = []
        self.harmony = []

    def snapshot(self) -> Composition:
        """Independent copy taken at the start of a render or playback pass."""
        return Composition(melody=list(self.melody), harmony=list(self.harmony))


@dataclass(frozen=True)
class InstrumentDescriptor:
    """An entry of the instrument catalogue.

    Attributes:
        id: Unique identifier (e.g. "piano").
        name: Display name.
        algorithm: Synthesis algorithm tag the engine dispatches on.
        category: Instrument family.
    """

    id: str
    name: str
    algorithm: str
    category: Category


@dataclass(frozen=True)
class DrumVoiceDescriptor:
    """An entry of the drum-voice catalogue.

    Attributes:
        id: Unique identifier (e.g. "snare").
        name: Display name.
        pitch: GM percussion pitch code stored on the note.
        frequency: Center (noise) or base (tone) frequency in Hz.
        decay: Decay time in seconds; also the length of the voice.
        excitation: Noise, tone or mixed.
        key: Keyboard shortcut used by the editor, if any.
    """

    id: str
    name: str
    pitch: int
    frequency: float
    decay: float
    excitation: Excitation
    key: str | None = None


# ---------------------------------------------------------------------------
# Catalogue loading
# ---------------------------------------------------------------------------

_INSTRUMENT_DB_CACHE: dict[str, InstrumentDescriptor] | None = None
_DRUM_DB_CACHE: dict[str, DrumVoiceDescriptor] | None = None


def load_instrument_db(
    path: Path | None = None,
) -> dict[str, InstrumentDescriptor]:
    """Load the instrument catalogue, keyed by id. Cached after first load."""
    global _INSTRUMENT_DB_CACHE  # noqa: PLW0603
    if _INSTRUMENT_DB_CACHE is not None and path is None:
        return _INSTRUMENT_DB_CACHE

    with open(path or _CONFIGS_DIR / "instruments.json") as f:
        data = json.load(f)

    db = {
        entry["id"]: InstrumentDescriptor(
            id=entry["id"],
            name=entry["name"],
            algorithm=entry["algorithm"],
            category=Category(entry["category"]),
        )
        for entry in data["instruments"]
    }

    if path is None:
        _INSTRUMENT_DB_CACHE = db
    return db


def load_drum_db(
    path: Path | None = None,
) -> dict[str, DrumVoiceDescriptor]:
    """Load the drum-voice catalogue, keyed by id. Cached after first load."""
    global _DRUM_DB_CACHE  # noqa: PLW0603
    if _DRUM_DB_CACHE is not None and path is None:
        return _DRUM_DB_CACHE

    with open(path or _CONFIGS_DIR / "drums.json") as f:
        data = json.load(f)

    db = {
        entry["id"]: DrumVoiceDescriptor(
            id=entry["id"],
            name=entry["name"],
            pitch=entry["pitch"],
            frequency=float(entry["frequency"]),
            decay=float(entry["decay"]),
            excitation=Excitation(entry["excitation"]),
            key=entry.get("key"),
        )
        for entry in data["drums"]
    }

    if path is None:
        _DRUM_DB_CACHE = db
    return db


def get_instrument(instrument_id: str) -> InstrumentDescriptor:
    """Look up an instrument by id.

    Raises:
        KeyError: If no matching instrument is found.
    """
    db = load_instrument_db()
    if instrument_id in db:
        return db[instrument_id]
    raise KeyError(f"Instrument not found: {instrument_id}")


def get_drum(drum_id: str) -> DrumVoiceDescriptor:
    """Look up a drum voice by id or keyboard shortcut.

    Raises:
        KeyError: If no matching drum voice is found.
    """
    db = load_drum_db()
    if drum_id in db:
        return db[drum_id]
    for drum in db.values():
        if drum.key is not None and drum.key == drum_id.lower():
            return drum
    raise KeyError(f"Drum voice not found: {drum_id}")


def instruments_by_category(category: Category) -> list[InstrumentDescriptor]:
    return [i for i in load_instrument_db().values() if i.category == category]


def pitch_name(pitch: int) -> str:
    """Scientific pitch name, e.g. 60 -> "C4"."""
    return f"{NOTE_NAMES[pitch % 12]}{pitch // 12 - 1}"


def drum_note(drum_id: str, start: float, velocity: float = 0.7) -> Note:
    """Build a drum hit for the given voice, carrying its GM pitch code."""
    drum = get_drum(drum_id)
    return Note(
        pitch=drum.pitch,
        start=start,
        duration=0.2,
        velocity=velocity,
        instrument="drums",
        drum=drum.id,
    )
