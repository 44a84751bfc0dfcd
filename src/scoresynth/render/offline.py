"""Offline renderer — apply every note of a composition into one buffer.

Rendering drains the same Timeline the live scheduler paces, but instantly:
each VOICE event is synthesized into a float buffer at its exact start offset.
Superposition is additive, so the result does not depend on note order.
"""

from __future__ import annotations

import logging
import math
from pathlib import Path

import numpy as np

from scoresynth.errors import SynthesisError
from scoresynth.playback.timeline import EventKind, Timeline
from scoresynth.score.models import Composition, Layer
from scoresynth.synthesis.voices import synthesize

logger = logging.getLogger(__name__)

MIN_RENDER_LENGTH_S = 4.0


def render_length(
    comp: Composition,
    min_length: float = MIN_RENDER_LENGTH_S,
    layer: Layer = Layer.ALL,
) -> float:
    """Seconds covered by a render: the latest note end, floored at ``min_length``."""
    return max(comp.end_time(layer), min_length)


def render_offline(
    comp: Composition,
    master_volume: float,
    sample_rate: int = 44100,
    channels: int = 2,
    min_length: float = MIN_RENDER_LENGTH_S,
    layer: Layer = Layer.ALL,
) -> np.ndarray:
    """Render a composition to a (frames, channels) float32 buffer.

    The composition is snapshotted first; notes whose voice cannot be built
    are logged and skipped.

    Args:
        comp: Composition to render.
        master_volume: Master gain applied to every voice.
        sample_rate: Output sample rate.
        channels: Output channel count; every voice is written to all channels.
        min_length: Shortest render in seconds.
        layer: Which layers to render.

    Returns:
        Rendered samples, ``ceil(length * sample_rate)`` frames long.
    """
    snapshot = comp.snapshot()
    length = render_length(snapshot, min_length, layer)
    frames = math.ceil(length * sample_rate)
    buffer = np.zeros((frames, channels), dtype=np.float32)

    timeline = Timeline(snapshot.notes_for(layer))
    rendered = skipped = 0
    for event in timeline.drain():
        if event.kind != EventKind.VOICE or event.note is None:
            continue
        try:
            synthesize(event.note, buffer, event.time, master_volume, sample_rate)
        except SynthesisError:
            skipped += 1
            logger.exception("Skipping note %s in offline render", event.note.id)
            continue
        rendered += 1

    logger.info(
        "Rendered %d notes (%d skipped) into %.2fs at %d Hz",
        rendered, skipped, length, sample_rate,
    )
    return buffer


def save_wav(
    audio: np.ndarray,
    path: str | Path,
    sr: int = 44100,
) -> None:
    """Save a rendered buffer to a 16-bit WAV file with soundfile.

    Args:
        audio: Samples, (frames,) or (frames, channels).
        path: Output file path.
        sr: Sample rate.
    """
    import soundfile as sf

    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    sf.write(str(path), np.clip(audio, -1.0, 1.0), sr, subtype="PCM_16")
