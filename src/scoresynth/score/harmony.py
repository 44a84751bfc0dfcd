"""Fixed chord-progression accompaniment for a melody.

The generator is a placeholder for a real harmonic analyzer: it does not look
at the melody beyond checking that one exists. It voices the first chord
progression listed for the chosen genre, in the chosen key, as four
arpeggiated piano chords. Scale, chord-function and progression tables live in
``configs/harmony.json`` so a real analyzer can reuse them.
"""

from __future__ import annotations

import asyncio
import json
import logging
import re
from dataclasses import dataclass, field
from pathlib import Path

from scoresynth.errors import ValidationError
from scoresynth.score.models import NOTE_NAMES, Note

logger = logging.getLogger(__name__)

_CONFIGS_DIR = Path(__file__).resolve().parents[1] / "configs"

CHORD_COUNT = 4
CHORD_SPACING_S = 2.0
ARPEGGIO_STEP_S = 0.1
CHORD_DURATION_S = 1.8
CHORD_VELOCITY = 0.4
CHORD_INSTRUMENT = "piano"
BASE_PITCH = 60  # C4

# Function by scale degree when a numeral is missing from the scale's table
_DEGREE_FUNCTION = ["T", "S", "T", "S", "D", "T", "D"]

_ROMAN_DEGREES = {"I": 0, "II": 1, "III": 2, "IV": 3, "V": 4, "VI": 5, "VII": 6}

_NUMERAL_RE = re.compile(r"^(?P<acc>[b#]?)(?P<num>[IViv]+)(?P<dim>°?)(?P<seventh>7?)$")


@dataclass(frozen=True)
class ChordDefinition:
    """A diatonic chord of a scale: roman numeral, pitch classes, function."""

    name: str
    notes: list[int]
    function: str


@dataclass(frozen=True)
class ScaleDefinition:
    id: str
    name: str
    intervals: list[int]
    chords: list[ChordDefinition]

    def chord(self, numeral: str) -> ChordDefinition | None:
        for c in self.chords:
            if c.name == numeral:
                return c
        return None


@dataclass(frozen=True)
class GenreDefinition:
    id: str
    name: str
    description: str
    scale: str


@dataclass
class HarmonyTables:
    """Everything loaded from harmony.json."""

    scales: dict[str, ScaleDefinition]
    progressions: dict[str, list[list[str]]]
    genres: dict[str, GenreDefinition]


@dataclass
class VoicedChord:
    """A resolved chord ready to be turned into notes."""

    numeral: str
    label: str
    function: str
    pitches: list[int]


@dataclass
class HarmonyResult:
    """Output of one harmony generation pass.

    Attributes:
        notes: Harmony-layer notes, each tagged with chord label and function.
        progression: Chord labels in playing order (e.g. ["Am", "F", "C", "G"]).
        key: Key label, e.g. "C_major"; used as the detected key.
        genre: Genre id the progression was taken from.
    """

    notes: list[Note]
    progression: list[str]
    key: str
    genre: str
    numerals: list[str] = field(default_factory=list)


_TABLES_CACHE: HarmonyTables | None = None


def load_harmony_tables(path: Path | None = None) -> HarmonyTables:
    """Load scale, progression and genre tables. Cached after first load."""
    global _TABLES_CACHE  # noqa: PLW0603
    if _TABLES_CACHE is not None and path is None:
        return _TABLES_CACHE

    with open(path or _CONFIGS_DIR / "harmony.json") as f:
        data = json.load(f)

    scales = {
        sid: ScaleDefinition(
            id=sid,
            name=entry["name"],
            intervals=entry["intervals"],
            chords=[
                ChordDefinition(name=c["name"], notes=c["notes"], function=c["function"])
                for c in entry["chords"]
            ],
        )
        for sid, entry in data["scales"].items()
    }
    genres = {
        g["id"]: GenreDefinition(
            id=g["id"], name=g["name"], description=g["description"], scale=g["scale"],
        )
        for g in data["genres"]
    }
    tables = HarmonyTables(scales=scales, progressions=data["progressions"], genres=genres)

    if path is None:
        _TABLES_CACHE = tables
    return tables


def _quality_suffix(intervals: list[int]) -> str:
    triad = sorted(intervals[:3])
    if triad == [0, 3, 6]:
        suffix = "dim"
    elif triad == [0, 3, 7]:
        suffix = "m"
    else:
        suffix = ""
    if 10 in intervals:
        suffix += "7"
    return suffix


def resolve_numeral(numeral: str, scale: ScaleDefinition, key: int = 0) -> VoicedChord:
    """Turn a roman numeral into a voiced chord in ``key`` (0 = C).

    Upper case is major, lower case minor, "°" diminished, a trailing "7"
    adds a minor seventh, and a leading "b"/"#" shifts the root a semitone.

    Raises:
        ValueError: If the numeral cannot be parsed.
    """
    m = _NUMERAL_RE.match(numeral)
    if m is None or m.group("num").upper() not in _ROMAN_DEGREES:
        raise ValueError(f"Unrecognised chord numeral: {numeral}")

    num = m.group("num")
    degree = _ROMAN_DEGREES[num.upper()]
    root = scale.intervals[degree]
    if m.group("acc") == "b":
        root -= 1
    elif m.group("acc") == "#":
        root += 1

    if m.group("dim"):
        intervals = [0, 3, 6]
    elif num.isupper():
        intervals = [0, 4, 7]
    else:
        intervals = [0, 3, 7]
    if m.group("seventh"):
        intervals.append(10)

    base_numeral = numeral[:-1] if m.group("seventh") else numeral
    known = scale.chord(base_numeral)
    function = known.function if known else _DEGREE_FUNCTION[degree]

    root_pc = (key + root) % 12
    return VoicedChord(
        numeral=numeral,
        label=NOTE_NAMES[root_pc] + _quality_suffix(intervals),
        function=function,
        pitches=[BASE_PITCH + root_pc + i for i in intervals],
    )


def build_harmony(genre: str = "pop", key: int = 0, tables: HarmonyTables | None = None) -> HarmonyResult:
    """Voice the genre's first progression as harmony-layer notes."""
    tables = tables or load_harmony_tables()

    if genre not in tables.genres:
        logger.warning("Unknown genre %r, using pop", genre)
        genre = "pop"
    genre_def = tables.genres[genre]
    scale = tables.scales[genre_def.scale]
    progression = tables.progressions.get(genre) or tables.progressions["pop"]
    numerals = progression[0][:CHORD_COUNT]

    notes: list[Note] = []
    labels: list[str] = []
    for i, numeral in enumerate(numerals):
        chord = resolve_numeral(numeral, scale, key)
        labels.append(chord.label)
        for j, pitch in enumerate(chord.pitches):
            notes.append(Note(
                pitch=pitch,
                start=i * CHORD_SPACING_S + j * ARPEGGIO_STEP_S,
                duration=CHORD_DURATION_S,
                velocity=CHORD_VELOCITY,
                instrument=CHORD_INSTRUMENT,
                chord=chord.label,
                function=chord.function,
            ))

    return HarmonyResult(
        notes=notes,
        progression=labels,
        key=f"{NOTE_NAMES[key % 12]}_{scale.id}",
        genre=genre,
        numerals=list(numerals),
    )


class HarmonyGenerator:
    """Asynchronous, non-reentrant harmony generation.

    A call made while another is in flight is ignored and returns None.
    """

    def __init__(self, delay_s: float = 2.0, tables: HarmonyTables | None = None):
        self.delay_s = delay_s
        self._tables = tables
        self._generating = False

    @property
    def is_generating(self) -> bool:
        return self._generating

    async def generate(
        self, melody: list[Note], *, genre: str = "pop", key: int = 0,
    ) -> HarmonyResult | None:
        """Produce a harmony layer for ``melody`` after the simulated delay.

        Raises:
            ValidationError: If the melody is empty.
        """
        if self._generating:
            logger.info("Harmony generation already running; request ignored")
            return None
        if not melody:
            raise ValidationError("Enter a melody before generating harmony.")

        self._generating = True
        try:
            await asyncio.sleep(self.delay_s)
            result = build_harmony(genre, key, self._tables)
        finally:
            self._generating = False

        logger.info(
            "Generated %d harmony notes (%s, %s)",
            len(result.notes), result.genre, " ".join(result.progression),
        )
        return result
