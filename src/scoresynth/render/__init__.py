"""Offline rendering and audio file encoding."""

from scoresynth.render.encoder import (
    AudioBlob,
    ExportFormat,
    encode_stub_mp3,
    encode_wav,
    export_audio,
)
from scoresynth.render.offline import render_length, render_offline, save_wav

__all__ = [
    "AudioBlob",
    "ExportFormat",
    "encode_stub_mp3",
    "encode_wav",
    "export_audio",
    "render_length",
    "render_offline",
    "save_wav",
]
