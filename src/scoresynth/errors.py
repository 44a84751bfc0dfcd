"""Exception hierarchy shared by the engine, scheduler, renderer and session."""

from __future__ import annotations


class ScoreSynthError(Exception):
    """Base class for all scoresynth errors."""


class InitializationError(ScoreSynthError):
    """The audio backend could not be opened.

    Fatal to playback until the user retries.
    """


class SynthesisError(ScoreSynthError):
    """A single voice could not be built. The note is skipped."""


class ExportError(ScoreSynthError):
    """Rendering or encoding failed. The composition is left untouched."""


class ValidationError(ScoreSynthError):
    """An operation was attempted on an empty composition or melody."""
