"""Tests for engine configuration and the editing session."""

import asyncio

import numpy as np
import pytest

from scoresynth.config import EngineConfig, get_engine_config, load_config
from scoresynth.errors import InitializationError
from scoresynth.playback.scheduler import PlaybackScheduler
from scoresynth.render.encoder import STUB_MP3_HEADER, ExportFormat
from scoresynth.score.harmony import HarmonyGenerator
from scoresynth.score.models import Note
from scoresynth.session import Session


class FakeClock:
    def __init__(self):
        self.now = 0.0

    def __call__(self) -> float:
        return self.now

    async def sleep(self, delay: float) -> None:
        self.now += delay
        await asyncio.sleep(0)


class RecordingOutput:
    def __init__(self, fail: bool = False):
        self.voices: list[np.ndarray] = []
        self.fail = fail
        self.closed = 0

    def open(self) -> None:
        if self.fail:
            raise InitializationError("Audio device unavailable.")

    def play(self, voice: np.ndarray) -> None:
        self.voices.append(voice)

    def close(self) -> None:
        self.closed += 1


def _session(fail_output: bool = False, **kwargs) -> Session:
    clock = FakeClock()
    output = RecordingOutput(fail=fail_output)
    return Session(
        output=output,
        scheduler=PlaybackScheduler(output, clock=clock, sleep=clock.sleep),
        harmony=HarmonyGenerator(delay_s=0.0),
        **kwargs,
    )


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------

class TestEngineConfig:
    def test_load_config(self):
        data = load_config("engine.json")
        assert data["sample_rate"] == 44100
        assert data["min_render_length_s"] == 4.0

    def test_defaults(self):
        cfg = get_engine_config()
        assert cfg == EngineConfig()

    def test_env_override(self, monkeypatch):
        monkeypatch.setenv("SCORESYNTH_SAMPLE_RATE", "22050")
        monkeypatch.setenv("SCORESYNTH_MASTER_VOLUME", "0.5")
        monkeypatch.setenv("SCORESYNTH_DEFAULT_GENRE", "jazz")
        cfg = get_engine_config()
        assert cfg.sample_rate == 22050
        assert cfg.master_volume == 0.5
        assert cfg.default_genre == "jazz"

    def test_bad_env_value(self, monkeypatch):
        monkeypatch.setenv("SCORESYNTH_CHANNELS", "stereo")
        with pytest.raises(ValueError):
            get_engine_config()


# ---------------------------------------------------------------------------
# Session
# ---------------------------------------------------------------------------

class TestSessionEditing:
    def test_defaults_from_config(self):
        s = _session()
        assert s.instrument == "sine"
        assert s.genre == "pop"
        assert s.master_volume == 0.7
        assert s.sample_rate == 44100
        assert s.progress == 0.0
        assert s.error is None

    def test_explicit_values_override_config(self):
        s = _session(instrument="piano", genre="jazz", master_volume=0.0)
        assert s.instrument == "piano"
        assert s.genre == "jazz"
        assert s.master_volume == 0.0

    def test_add_note_uses_selected_instrument(self):
        s = _session()
        s.instrument = "violin"
        note = s.add_note(64, 1.0)
        assert note.instrument == "violin"
        assert note.duration == 0.5
        assert s.composition.melody == [note]

    def test_add_drum_note(self):
        s = _session()
        s.instrument = "drums"
        s.drum = "snare"
        note = s.add_note(60, 0.5)
        assert note.pitch == 38
        assert note.drum == "snare"

    def test_set_master_volume_clamps(self):
        s = _session()
        s.set_master_volume(1.7)
        assert s.master_volume == 1.0
        s.set_master_volume(-0.2)
        assert s.master_volume == 0.0

    def test_reset(self):
        s = _session()
        s.add_note(60, 0.0)
        s.progression = ["C"]
        s.detected_key = "C_major"
        s.error = "old"
        s.reset()
        assert s.composition.is_empty
        assert s.progression == []
        assert s.detected_key == ""
        assert s.error is None


class TestSessionTransport:
    @pytest.mark.asyncio
    async def test_play_melody_only(self):
        s = _session()
        s.add_note(60, 0.0)
        s.composition.set_harmony([Note(pitch=48, start=0.5, duration=1.0)])
        assert s.play() is not None
        await s.scheduler.wait()
        assert len(s.output.voices) == 1

    @pytest.mark.asyncio
    async def test_play_all(self):
        s = _session()
        s.add_note(60, 0.0)
        s.composition.set_harmony([Note(pitch=48, start=0.5, duration=1.0)])
        s.play_all()
        await s.scheduler.wait()
        assert len(s.output.voices) == 2
        assert s.progress == 0.0

    @pytest.mark.asyncio
    async def test_play_empty_sets_error(self):
        s = _session()
        assert s.play() is None
        assert s.error
        assert not s.is_playing

    @pytest.mark.asyncio
    async def test_play_while_playing_is_noop(self):
        s = _session()
        s.add_note(60, 0.0)
        assert s.play() is not None
        assert s.play_all() is None
        s.stop()
        assert not s.is_playing

    @pytest.mark.asyncio
    async def test_output_failure_sets_error(self):
        s = _session(fail_output=True)
        s.add_note(60, 0.0)
        assert s.play() is None
        assert s.error == "Audio device unavailable."
        assert len(s.composition.melody) == 1

    def test_stop_when_idle(self):
        s = _session()
        s.stop()
        s.stop()
        assert s.progress == 0.0
        assert s.error is None

    @pytest.mark.asyncio
    async def test_close_stops_and_releases_output(self):
        s = _session()
        s.add_note(60, 0.0)
        s.add_note(62, 3.0)
        s.play()
        s.close()
        assert not s.is_playing
        assert s.scheduler.pending == 0
        assert s.output.closed == 1

    def test_context_manager_closes(self):
        with _session() as s:
            s.add_note(60, 0.0)
        assert s.output.closed == 1


class TestSessionHarmony:
    @pytest.mark.asyncio
    async def test_generates_harmony_layer(self):
        s = _session()
        s.add_note(60, 0.0)
        result = await s.generate_harmony()
        assert result is not None
        assert s.composition.harmony == result.notes
        assert s.progression == ["Am", "F", "C", "G"]
        assert s.detected_key == "C_major"
        assert s.error is None

    @pytest.mark.asyncio
    async def test_empty_melody_rejected(self):
        s = _session()
        assert await s.generate_harmony() is None
        assert s.error
        assert s.composition.harmony == []
        assert s.progression == []

    @pytest.mark.asyncio
    async def test_uses_session_genre_and_key(self):
        s = _session()
        s.genre = "electronic"
        s.key = 9
        s.add_note(69, 0.0)
        await s.generate_harmony()
        assert s.detected_key == "A_minor"
        assert s.progression[0] == "Am"


class TestSessionExport:
    def test_export_wav(self):
        s = _session()
        s.add_note(60, 0.0, 1.0)
        s.detected_key = "C_major"
        blob = s.export()
        assert blob is not None
        assert blob.data[:4] == b"RIFF"
        assert blob.filename.startswith("composition_pop_C_major_")
        assert blob.filename.endswith(".wav")

    def test_export_stub(self):
        s = _session()
        s.add_note(60, 0.0, 1.0)
        blob = s.export(ExportFormat.STUB_MP3)
        assert blob.data[:8] == STUB_MP3_HEADER
        assert blob.filename.startswith("composition_pop_2")

    def test_export_empty_sets_error(self):
        s = _session()
        assert s.export() is None
        assert s.error
        assert s.composition.is_empty
