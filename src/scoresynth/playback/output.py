"""Live audio output — mixes fire-and-forget voices into a device stream."""

from __future__ import annotations

import logging
import threading
from typing import Any, Protocol

import numpy as np

from scoresynth.errors import InitializationError

logger = logging.getLogger(__name__)


class AudioOutput(Protocol):
    """Anything that can sound a rendered voice right now."""

    def open(self) -> None:
        ...

    def play(self, voice: np.ndarray) -> None:
        ...

    def close(self) -> None:
        ...


class SoundDeviceOutput:
    """Mixing output stream on the default sounddevice device.

    Each voice handed to ``play`` is mixed from its first sample until it is
    exhausted; voices never cut each other off, and nothing stops a voice
    once it has started.
    """

    def __init__(self, sample_rate: int = 44100, channels: int = 2):
        self.sample_rate = sample_rate
        self.channels = channels
        self._voices: list[list[Any]] = []  # [samples, read position]
        self._lock = threading.Lock()
        self._stream: Any = None

    @property
    def is_open(self) -> bool:
        return self._stream is not None

    @property
    def active_voices(self) -> int:
        with self._lock:
            return len(self._voices)

    def open(self) -> None:
        """Start the device stream.

        Raises:
            InitializationError: If sounddevice or the audio device is unavailable.
        """
        if self._stream is not None:
            return
        try:
            import sounddevice as sd
        except (ImportError, OSError) as exc:
            raise InitializationError(
                "Live playback requires the 'sounddevice' package and PortAudio."
            ) from exc

        try:
            stream = sd.OutputStream(
                samplerate=self.sample_rate,
                channels=self.channels,
                dtype="float32",
                callback=self._callback,
            )
            stream.start()
        except (sd.PortAudioError, OSError) as exc:
            raise InitializationError(f"Could not open audio output: {exc}") from exc

        self._stream = stream
        logger.info("Opened audio output at %d Hz, %d channels", self.sample_rate, self.channels)

    def close(self) -> None:
        """Stop the device stream and drop every voice still sounding."""
        if self._stream is None:
            return
        self._stream.stop()
        self._stream.close()
        self._stream = None
        with self._lock:
            self._voices.clear()

    def play(self, voice: np.ndarray) -> None:
        if self._stream is None:
            self.open()
        with self._lock:
            self._voices.append([np.asarray(voice, dtype=np.float32), 0])

    def _callback(self, outdata: np.ndarray, frames: int, time_info: Any, status: Any) -> None:
        if status:
            logger.debug("Output stream status: %s", status)
        mix = self.mix(frames)
        outdata[:] = np.clip(mix, -1.0, 1.0)[:, np.newaxis]

    def mix(self, frames: int) -> np.ndarray:
        """Sum the next ``frames`` samples of every active voice (mono)."""
        out = np.zeros(frames, dtype=np.float32)
        with self._lock:
            still_active = []
            for entry in self._voices:
                samples, pos = entry
                chunk = samples[pos:pos + frames]
                out[:len(chunk)] += chunk
                entry[1] = pos + len(chunk)
                if entry[1] < len(samples):
                    still_active.append(entry)
            self._voices = still_active
        return out
