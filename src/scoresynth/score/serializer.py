"""Save and load compositions as JSON."""

from __future__ import annotations

import json
from pathlib import Path

from scoresynth.score.models import Composition, Note


def note_to_dict(note: Note) -> dict:
    d = {
        "id": note.id,
        "pitch": note.pitch,
        "start": note.start,
        "duration": note.duration,
        "velocity": note.velocity,
        "instrument": note.instrument,
    }
    if note.drum is not None:
        d["drum"] = note.drum
    if note.chord is not None:
        d["chord"] = note.chord
    if note.function is not None:
        d["function"] = note.function
    return d


def note_from_dict(d: dict) -> Note:
    extra = {"id": d["id"]} if "id" in d else {}
    return Note(
        pitch=int(d["pitch"]),
        start=float(d["start"]),
        duration=float(d["duration"]),
        velocity=float(d.get("velocity", 0.7)),
        instrument=d.get("instrument", "sine"),
        drum=d.get("drum"),
        chord=d.get("chord"),
        function=d.get("function"),
        **extra,
    )


def composition_to_dict(comp: Composition) -> dict:
    """Convert a Composition to a JSON-serializable dict."""
    return {
        "melody": [note_to_dict(n) for n in comp.melody],
        "harmony": [note_to_dict(n) for n in comp.harmony],
    }


def composition_from_dict(d: dict) -> Composition:
    """Reconstruct a Composition from a dict (parsed JSON)."""
    return Composition(
        melody=[note_from_dict(n) for n in d.get("melody", [])],
        harmony=[note_from_dict(n) for n in d.get("harmony", [])],
    )


def save_composition(comp: Composition, path: str | Path) -> None:
    """Save a composition to a JSON file.

    Args:
        comp: The Composition to save.
        path: Output file path.
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    data = composition_to_dict(comp)
    with open(path, "w") as f:
        json.dump(data, f, indent=2, ensure_ascii=False)


def load_composition(path: str | Path) -> Composition:
    """Load a composition from a JSON file.

    Raises:
        FileNotFoundError: If the file does not exist.
        ValueError: If a stored note violates the note invariants.
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Composition file not found: {path}")
    with open(path) as f:
        data = json.load(f)
    return composition_from_dict(data)
