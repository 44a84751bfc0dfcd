"""Editor session — composition, selections and transport commands in one place.

A Session is the explicit context every command runs against: the score being
edited, the selected instrument and drum voice, master volume, genre and key,
the last harmony result and the user-visible error message. Commands that can
fail on user input (play, harmony, export) never raise; they record the
message in ``error`` and leave the composition unchanged.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field

from scoresynth.config import EngineConfig, get_engine_config
from scoresynth.errors import ExportError, InitializationError, ValidationError
from scoresynth.playback.output import AudioOutput, SoundDeviceOutput
from scoresynth.playback.scheduler import PlaybackScheduler
from scoresynth.render.encoder import AudioBlob, ExportFormat, export_audio
from scoresynth.score.harmony import HarmonyGenerator, HarmonyResult
from scoresynth.score.models import Composition, Layer, Note, drum_note

logger = logging.getLogger(__name__)

DEFAULT_NOTE_DURATION_S = 0.5


@dataclass
class Session:
    """Mutable state of one editing session.

    Attributes:
        composition: The score being edited.
        config: Engine defaults the session was created with.
        instrument: Instrument id used for new notes; None takes the config default.
        drum: Drum voice id used for new notes on the ``drums`` instrument.
        master_volume: Master gain (0-1), read when each voice is triggered.
            None takes the config default.
        tempo: Tempo in BPM; informational only.
        genre: Genre id for harmony generation and export filenames; None takes
            the config default.
        key: Pitch class (0 = C) harmony is generated in.
        detected_key: Key label reported by harmony generation, e.g. "C_major".
        progression: Chord labels of the current harmony layer.
        export_format: Format used by ``export`` when none is given.
        error: Last recoverable error message, None when clear.
    """

    composition: Composition = field(default_factory=Composition)
    config: EngineConfig = field(default_factory=get_engine_config)
    instrument: str | None = None
    drum: str = "kick"
    master_volume: float | None = None
    tempo: int = 120
    genre: str | None = None
    key: int = 0
    detected_key: str = ""
    progression: list[str] = field(default_factory=list)
    export_format: ExportFormat = ExportFormat.WAV
    error: str | None = None
    output: AudioOutput | None = None
    scheduler: PlaybackScheduler | None = None
    harmony: HarmonyGenerator | None = None

    def __post_init__(self) -> None:
        cfg = self.config
        if self.instrument is None:
            self.instrument = cfg.default_instrument
        if self.genre is None:
            self.genre = cfg.default_genre
        if self.master_volume is None:
            self.master_volume = cfg.master_volume
        if self.output is None:
            self.output = SoundDeviceOutput(cfg.sample_rate, cfg.channels)
        if self.scheduler is None:
            self.scheduler = PlaybackScheduler(
                self.output,
                tick_interval_s=cfg.tick_interval_s,
                min_end_time_s=cfg.min_render_length_s,
            )
        if self.harmony is None:
            self.harmony = HarmonyGenerator(delay_s=cfg.harmony_delay_s)

    @property
    def sample_rate(self) -> int:
        return self.config.sample_rate

    @property
    def progress(self) -> float:
        return self.scheduler.progress

    @property
    def is_playing(self) -> bool:
        return self.scheduler.is_playing

    def set_master_volume(self, volume: float) -> None:
        self.master_volume = min(max(volume, 0.0), 1.0)

    # -- Editing -------------------------------------------------------------

    def add_note(
        self,
        pitch: int,
        start: float,
        duration: float = DEFAULT_NOTE_DURATION_S,
        velocity: float = 0.7,
    ) -> Note:
        """Add a melody note with the selected instrument.

        On the drums instrument the note takes the selected drum voice and
        its pitch code; ``pitch`` is ignored.
        """
        if self.instrument == "drums":
            note = drum_note(self.drum, start, velocity)
        else:
            note = Note(
                pitch=pitch, start=start, duration=duration,
                velocity=velocity, instrument=self.instrument,
            )
        return self.composition.add(note)

    def reset(self) -> None:
        """Stop playback and clear both layers and the harmony labels."""
        self.stop()
        self.composition.clear()
        self.progression = []
        self.detected_key = ""
        self.error = None

    # -- Transport -----------------------------------------------------------

    def play(self, layer: Layer = Layer.MELODY) -> asyncio.Task | None:
        """Start playback of the melody (or every layer). Needs a running loop."""
        if self.scheduler.is_playing:
            return None
        notes = self.composition.snapshot().notes_for(layer)
        if not notes:
            self.error = "There are no notes to play."
            return None
        try:
            self.output.open()
        except InitializationError as exc:
            self.error = str(exc)
            logger.error("Playback unavailable: %s", exc)
            return None
        self.error = None
        return self.scheduler.start(notes, self)

    def play_all(self) -> asyncio.Task | None:
        return self.play(Layer.ALL)

    def stop(self) -> None:
        self.scheduler.stop()

    def close(self) -> None:
        """Stop playback and release the audio output."""
        self.stop()
        self.output.close()

    def __enter__(self) -> Session:
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    # -- Harmony and export --------------------------------------------------

    async def generate_harmony(self) -> HarmonyResult | None:
        """Replace the harmony layer with a freshly generated one."""
        try:
            result = await self.harmony.generate(
                list(self.composition.melody), genre=self.genre, key=self.key,
            )
        except ValidationError as exc:
            self.error = str(exc)
            return None
        if result is None:
            return None

        self.composition.set_harmony(result.notes)
        self.progression = result.progression
        self.detected_key = result.key
        self.error = None
        return result

    def export(self, fmt: ExportFormat | None = None) -> AudioBlob | None:
        """Render every layer offline and encode it. Returns None on failure."""
        try:
            blob = export_audio(
                self.composition,
                fmt or self.export_format,
                genre=self.genre,
                key=self.detected_key,
                master_volume=self.master_volume,
                sample_rate=self.config.sample_rate,
                channels=self.config.channels,
                min_length=self.config.min_render_length_s,
            )
        except (ValidationError, ExportError) as exc:
            self.error = str(exc)
            return None
        self.error = None
        return blob
