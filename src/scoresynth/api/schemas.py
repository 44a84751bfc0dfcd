"""Pydantic models for API request/response schemas."""

from __future__ import annotations

from enum import StrEnum

from pydantic import BaseModel, Field

from scoresynth.score.models import Composition, Note


class ExportFormatChoice(StrEnum):
    wav = "wav"
    mp3 = "mp3"


# ---------------------------------------------------------------------------
# Notes and compositions
# ---------------------------------------------------------------------------


class NoteIn(BaseModel):
    pitch: int = Field(ge=0, le=127)
    start: float = Field(ge=0)
    duration: float = Field(gt=0)
    velocity: float = Field(0.7, ge=0, le=1)
    instrument: str = "sine"
    drum: str | None = None
    id: str | None = None

    def to_note(self) -> Note:
        extra = {"id": self.id} if self.id else {}
        return Note(
            pitch=self.pitch,
            start=self.start,
            duration=self.duration,
            velocity=self.velocity,
            instrument=self.instrument,
            drum=self.drum,
            **extra,
        )


class NoteOut(BaseModel):
    id: str
    pitch: int
    start: float
    duration: float
    velocity: float
    instrument: str
    drum: str | None = None
    chord: str | None = None
    function: str | None = None

    @classmethod
    def from_note(cls, note: Note) -> NoteOut:
        return cls(
            id=note.id,
            pitch=note.pitch,
            start=note.start,
            duration=note.duration,
            velocity=note.velocity,
            instrument=note.instrument,
            drum=note.drum,
            chord=note.chord,
            function=note.function,
        )


class HarmonyNoteIn(NoteIn):
    chord: str | None = None
    function: str | None = None

    def to_note(self) -> Note:
        extra = {"id": self.id} if self.id else {}
        return Note(
            pitch=self.pitch,
            start=self.start,
            duration=self.duration,
            velocity=self.velocity,
            instrument=self.instrument,
            drum=self.drum,
            chord=self.chord,
            function=self.function,
            **extra,
        )


# ---------------------------------------------------------------------------
# Requests
# ---------------------------------------------------------------------------


class HarmonyRequest(BaseModel):
    melody: list[NoteIn]
    genre: str = "pop"
    key: int = Field(0, ge=0, le=11, description="Pitch class of the key, 0 = C")


class RenderRequest(BaseModel):
    melody: list[NoteIn] = []
    harmony: list[HarmonyNoteIn] = []
    format: ExportFormatChoice = ExportFormatChoice.wav
    genre: str = "pop"
    key: str | None = Field(
        None, pattern=r"^[A-Za-z#_]*$", description="Detected key label, e.g. C_major",
    )
    master_volume: float = Field(0.7, ge=0, le=1)

    def to_composition(self) -> Composition:
        return Composition(
            melody=[n.to_note() for n in self.melody],
            harmony=[n.to_note() for n in self.harmony],
        )


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------


class HarmonyResponse(BaseModel):
    """Generated harmony layer with its chord labels."""

    status: str = "success"
    genre: str
    key: str
    progression: list[str]
    numerals: list[str]
    notes: list[NoteOut]


class HealthResponse(BaseModel):
    status: str = "ok"
    version: str
    formats: list[str]


class InstrumentOut(BaseModel):
    id: str
    name: str
    algorithm: str
    category: str


class DrumOut(BaseModel):
    id: str
    name: str
    pitch: int
    frequency: float
    decay: float
    excitation: str
    key: str | None = None


class GenreOut(BaseModel):
    id: str
    name: str
    description: str
    scale: str
    progressions: list[list[str]]
