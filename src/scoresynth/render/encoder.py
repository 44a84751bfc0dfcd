"""Audio encoders — WAV byte streams and the stub "mp3" format.

WAV output is canonical 16-bit PCM with a 44-byte RIFF header. The stub
format is NOT a real MPEG stream: an 8-byte pseudo frame header followed by
raw interleaved 16-bit samples. It exists so the export surface has a second
format; players will not decode it.
"""

from __future__ import annotations

import logging
import re
import struct
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum

import numpy as np

from scoresynth.errors import ExportError, ValidationError
from scoresynth.render.offline import MIN_RENDER_LENGTH_S, render_offline
from scoresynth.score.models import Composition

logger = logging.getLogger(__name__)

WAV_HEADER_SIZE = 44
BITS_PER_SAMPLE = 16
STUB_MP3_HEADER = bytes([0xFF, 0xFB, 0x90, 0x00, 0x00, 0x00, 0x00, 0x00])

_UNSAFE_FILENAME_CHARS = re.compile(r"[^A-Za-z0-9#_-]+")


class ExportFormat(Enum):
    WAV = "wav"
    STUB_MP3 = "mp3"

    @property
    def media_type(self) -> str:
        if self == ExportFormat.WAV:
            return "audio/wav"
        return "application/octet-stream"


@dataclass(frozen=True)
class AudioBlob:
    """An encoded export, ready to be saved or sent.

    Attributes:
        data: Encoded bytes.
        filename: Suggested download filename.
        media_type: MIME type of ``data``.
    """

    data: bytes
    filename: str
    media_type: str


def _as_frames(buffer: np.ndarray) -> np.ndarray:
    """View a (frames,) or (frames, channels) buffer as 2-D float64."""
    samples = np.asarray(buffer, dtype=np.float64)
    if samples.ndim == 1:
        samples = samples[:, np.newaxis]
    if samples.ndim != 2:
        raise ValueError(f"Expected a 1-D or 2-D buffer, got shape {samples.shape}.")
    return samples


def to_pcm16(buffer: np.ndarray) -> np.ndarray:
    """Clamp to [-1, 1] and scale asymmetrically to int16, truncating toward zero."""
    s = np.clip(_as_frames(buffer), -1.0, 1.0)
    scaled = np.where(s < 0, s * 32768.0, s * 32767.0)
    return np.trunc(scaled).astype("<i2")


def encode_wav(buffer: np.ndarray, sample_rate: int) -> bytes:
    """Encode a buffer as a 16-bit PCM WAV byte stream.

    Channels are interleaved frame by frame. The file is exactly
    ``44 + channels * frames * 2`` bytes.
    """
    pcm = to_pcm16(buffer)
    frames, channels = pcm.shape
    block_align = channels * BITS_PER_SAMPLE // 8
    data_size = frames * block_align

    header = b"".join([
        b"RIFF",
        struct.pack("<I", WAV_HEADER_SIZE + data_size - 8),
        b"WAVE",
        b"fmt ",
        struct.pack(
            "<IHHIIHH",
            16,                          # fmt chunk size
            1,                           # PCM
            channels,
            sample_rate,
            sample_rate * block_align,   # byte rate
            block_align,
            BITS_PER_SAMPLE,
        ),
        b"data",
        struct.pack("<I", data_size),
    ])
    return header + pcm.tobytes()


def encode_stub_mp3(buffer: np.ndarray) -> bytes:
    """Encode a buffer in the stub format: pseudo header + interleaved int16."""
    s = _as_frames(buffer) * 32767.0
    pcm = np.trunc(np.clip(s, -32768.0, 32767.0)).astype("<i2")
    return STUB_MP3_HEADER + pcm.tobytes()


def export_filename(
    genre: str,
    key: str | None,
    fmt: ExportFormat,
    now: datetime | None = None,
) -> str:
    """``composition_{genre}_{key}_{YYYY-MM-DDTHH-MM-SS}.{ext}`` in UTC.

    Characters outside ``[A-Za-z0-9#_-]`` are dropped from the genre and key,
    so the name is always safe in a ``Content-Disposition`` header. A segment
    left empty, such as the key before any has been detected, is omitted.
    """
    now = now or datetime.now(timezone.utc)
    stamp = now.strftime("%Y-%m-%dT%H-%M-%S")
    parts = ["composition"]
    for segment in (genre, key):
        segment = _UNSAFE_FILENAME_CHARS.sub("", segment or "")
        if segment:
            parts.append(segment)
    parts.append(stamp)
    return f"{'_'.join(parts)}.{fmt.value}"


def encode(buffer: np.ndarray, sample_rate: int, fmt: ExportFormat) -> bytes:
    """Encode a buffer in the requested export format."""
    if fmt == ExportFormat.WAV:
        return encode_wav(buffer, sample_rate)
    return encode_stub_mp3(buffer)


def export_audio(
    comp: Composition,
    fmt: ExportFormat = ExportFormat.WAV,
    *,
    genre: str = "pop",
    key: str | None = None,
    master_volume: float = 0.7,
    sample_rate: int = 44100,
    channels: int = 2,
    min_length: float = MIN_RENDER_LENGTH_S,
    now: datetime | None = None,
) -> AudioBlob:
    """Render both layers of ``comp`` offline and encode the result.

    Raises:
        ValidationError: If the composition has no notes.
        ExportError: If rendering or encoding fails.
    """
    if comp.is_empty:
        raise ValidationError("There are no notes to export.")

    try:
        buffer = render_offline(
            comp, master_volume, sample_rate, channels, min_length=min_length,
        )
        data = encode(buffer, sample_rate, fmt)
    except Exception as exc:
        logger.exception("Export to %s failed", fmt.value)
        raise ExportError(f"Export failed: {exc}") from exc

    filename = export_filename(genre, key, fmt, now)
    logger.info("Exported %s (%d bytes)", filename, len(data))
    return AudioBlob(data=data, filename=filename, media_type=fmt.media_type)
