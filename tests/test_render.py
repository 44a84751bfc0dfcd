"""Tests for offline rendering and audio encoding."""

import io
import math
import struct
from datetime import datetime, timezone

import numpy as np
import pytest
import soundfile as sf

from scoresynth.errors import ExportError, SynthesisError, ValidationError
from scoresynth.render import encoder as encoder_module
from scoresynth.render import offline as offline_module
from scoresynth.render.encoder import (
    STUB_MP3_HEADER,
    AudioBlob,
    ExportFormat,
    encode_stub_mp3,
    encode_wav,
    export_audio,
    export_filename,
    to_pcm16,
)
from scoresynth.render.offline import render_length, render_offline, save_wav
from scoresynth.score.models import Composition, Layer, Note, drum_note

SR = 44100


def _single_note_comp():
    comp = Composition()
    comp.add(Note(pitch=60, start=0.0, duration=1.0, velocity=0.7))
    return comp


# ---------------------------------------------------------------------------
# Render length
# ---------------------------------------------------------------------------

class TestRenderLength:
    def test_floor_for_short_score(self):
        assert render_length(_single_note_comp()) == 4.0

    def test_empty_score(self):
        assert render_length(Composition()) == 4.0

    def test_longest_note_wins(self):
        comp = _single_note_comp()
        comp.set_harmony([Note(pitch=48, start=6.0, duration=1.8)])
        assert render_length(comp) == pytest.approx(7.8)
        assert render_length(comp, layer=Layer.MELODY) == 4.0

    @pytest.mark.parametrize("start,duration", [(0.0, 0.5), (3.9, 0.2), (10.0, 2.5)])
    def test_covers_every_note(self, start, duration):
        comp = Composition()
        comp.add(Note(pitch=60, start=start, duration=duration))
        length = render_length(comp)
        assert length >= 4.0
        assert length >= start + duration


# ---------------------------------------------------------------------------
# Offline renderer
# ---------------------------------------------------------------------------

class TestRenderOffline:
    def test_single_sine_note(self):
        buf = render_offline(_single_note_comp(), 0.7, SR)
        assert buf.shape == (math.ceil(4.0 * SR), 2)
        assert buf.dtype == np.float32
        assert np.any(buf[:SR])
        assert not np.any(buf[SR:])

    def test_simultaneous_notes_superpose(self):
        one = Composition()
        one.add(Note(pitch=60, start=0.5, duration=1.0))
        two = Composition()
        two.add(Note(pitch=60, start=0.5, duration=1.0))
        two.add(Note(pitch=67, start=0.5, duration=1.0))

        single = render_offline(one, 0.7, SR)
        both = render_offline(two, 0.7, SR)
        other = both - single

        assert np.sum(other.astype(np.float64) ** 2) > 0
        assert np.sum(both.astype(np.float64) ** 2) > np.sum(single.astype(np.float64) ** 2)

    def test_order_independent(self):
        a = Note(pitch=60, start=0.0, duration=1.0, id="a")
        b = Note(pitch=64, start=0.25, duration=1.0, instrument="piano", id="b")
        forward = render_offline(Composition(melody=[a, b]), 0.7, SR)
        backward = render_offline(Composition(melody=[b, a]), 0.7, SR)
        np.testing.assert_allclose(forward, backward, atol=1e-6)

    def test_deterministic(self):
        comp = Composition(melody=[drum_note("snare", 0.0), Note(pitch=50, start=0.0, duration=1.0,
                                                                 instrument="acoustic-guitar")])
        np.testing.assert_array_equal(render_offline(comp, 0.7, SR), render_offline(comp, 0.7, SR))

    def test_note_starts_at_offset(self):
        comp = Composition(melody=[Note(pitch=69, start=2.0, duration=0.5)])
        buf = render_offline(comp, 0.7, SR)
        assert not np.any(buf[:2 * SR])
        assert np.any(buf[2 * SR:2 * SR + SR // 2])

    def test_includes_harmony_layer(self):
        comp = Composition()
        comp.set_harmony([Note(pitch=57, start=1.0, duration=1.0, instrument="piano")])
        buf = render_offline(comp, 0.7, SR)
        assert np.any(buf[SR:2 * SR])

    def test_zero_master_volume_is_silent(self):
        buf = render_offline(_single_note_comp(), 0.0, SR)
        assert not np.any(buf)

    def test_mono(self):
        buf = render_offline(_single_note_comp(), 0.7, SR, channels=1)
        assert buf.shape == (4 * SR, 1)

    def test_failed_note_is_skipped(self, monkeypatch):
        real = offline_module.synthesize

        def flaky(note, *args):
            if note.pitch == 61:
                raise SynthesisError("boom")
            return real(note, *args)

        monkeypatch.setattr(offline_module, "synthesize", flaky)
        comp = Composition(melody=[
            Note(pitch=61, start=0.0, duration=1.0),
            Note(pitch=60, start=2.0, duration=1.0),
        ])
        buf = render_offline(comp, 0.7, SR)
        assert not np.any(buf[:2 * SR])
        assert np.any(buf[2 * SR:3 * SR])

    def test_snapshot_isolates_edits(self):
        comp = _single_note_comp()
        buf = render_offline(comp, 0.7, SR)
        comp.add(Note(pitch=72, start=2.0, duration=1.0))
        assert not np.any(buf[SR:])

    def test_save_wav(self, tmp_path):
        buf = render_offline(_single_note_comp(), 0.7, SR)
        path = tmp_path / "out" / "render.wav"
        save_wav(buf, path, SR)
        data, sr = sf.read(str(path))
        assert sr == SR
        assert data.shape == buf.shape


# ---------------------------------------------------------------------------
# WAV encoding
# ---------------------------------------------------------------------------

class TestEncodeWav:
    def test_length_and_magic(self):
        buf = np.zeros((1000, 2), dtype=np.float32)
        data = encode_wav(buf, SR)
        assert len(data) == 44 + 2 * 1000 * 2
        assert data[0:4] == b"RIFF"
        assert data[8:12] == b"WAVE"
        assert data[12:16] == b"fmt "
        assert data[36:40] == b"data"

    def test_header_fields(self):
        data = encode_wav(np.zeros((10, 2)), SR)
        riff_size, = struct.unpack("<I", data[4:8])
        fmt_size, audio_fmt, channels, rate, byte_rate, align, bits = struct.unpack(
            "<IHHIIHH", data[16:36],
        )
        data_size, = struct.unpack("<I", data[40:44])
        assert riff_size == len(data) - 8
        assert (fmt_size, audio_fmt, channels, rate) == (16, 1, 2, SR)
        assert byte_rate == SR * 4
        assert align == 4
        assert bits == 16
        assert data_size == 10 * 2 * 2

    def test_mono_header(self):
        data = encode_wav(np.zeros(10), 22050)
        _, _, channels, rate, byte_rate, align, _ = struct.unpack("<IHHIIHH", data[16:36])
        assert (channels, rate, byte_rate, align) == (1, 22050, 44100, 2)
        assert len(data) == 44 + 10 * 2

    def test_silence(self):
        data = encode_wav(np.zeros((100, 2)), SR)
        assert data[44:] == bytes(400)

    def test_full_scale(self):
        data = encode_wav(np.ones((5, 2)), SR)
        samples = np.frombuffer(data[44:], dtype="<i2")
        assert np.all(samples == 32767)

    def test_negative_full_scale(self):
        samples = np.frombuffer(encode_wav(-np.ones((3, 2)), SR)[44:], dtype="<i2")
        assert np.all(samples == -32768)

    def test_clamps_and_truncates(self):
        pcm = to_pcm16(np.array([2.0, -2.0, 0.5, -0.5, 1e-6]))
        assert pcm[:, 0].tolist() == [32767, -32768, 16383, -16384, 0]

    def test_interleaves_channels(self):
        buf = np.array([[0.5, -0.5], [0.25, -0.25]])
        samples = np.frombuffer(encode_wav(buf, SR)[44:], dtype="<i2")
        assert samples.tolist() == [16383, -16384, 8191, -8192]

    def test_readable_by_soundfile(self):
        buf = render_offline(_single_note_comp(), 0.7, SR)
        data, sr = sf.read(io.BytesIO(encode_wav(buf, SR)), dtype="float32")
        assert sr == SR
        assert data.shape == buf.shape
        np.testing.assert_allclose(data, buf, atol=2 / 32768)


# ---------------------------------------------------------------------------
# Stub mp3 encoding
# ---------------------------------------------------------------------------

class TestEncodeStubMp3:
    def test_header(self):
        data = encode_stub_mp3(np.zeros((4, 2)))
        assert data[:8] == bytes([0xFF, 0xFB, 0x90, 0, 0, 0, 0, 0])
        assert data[:8] == STUB_MP3_HEADER
        assert len(data) == 8 + 4 * 2 * 2

    def test_symmetric_scaling(self):
        data = encode_stub_mp3(np.array([[1.0, -1.0], [0.5, -0.5]]))
        samples = np.frombuffer(data[8:], dtype="<i2")
        assert samples.tolist() == [32767, -32767, 16383, -16383]

    def test_clipped(self):
        samples = np.frombuffer(encode_stub_mp3(np.array([3.0, -3.0]))[8:], dtype="<i2")
        assert samples.tolist() == [32767, -32768]


# ---------------------------------------------------------------------------
# Export
# ---------------------------------------------------------------------------

class TestExportFilename:
    _NOW = datetime(2024, 5, 17, 9, 3, 7, tzinfo=timezone.utc)

    def test_wav(self):
        name = export_filename("pop", "C_major", ExportFormat.WAV, self._NOW)
        assert name == "composition_pop_C_major_2024-05-17T09-03-07.wav"

    def test_mp3(self):
        name = export_filename("jazz", "C_major", ExportFormat.STUB_MP3, self._NOW)
        assert name.endswith(".mp3")

    def test_without_key(self):
        name = export_filename("rock", "", ExportFormat.WAV, self._NOW)
        assert name == "composition_rock_2024-05-17T09-03-07.wav"

    def test_unsafe_characters_dropped(self):
        name = export_filename('a"; x=y', "C#_major", ExportFormat.WAV, self._NOW)
        assert name == "composition_axy_C#_major_2024-05-17T09-03-07.wav"

    def test_segment_without_safe_characters_omitted(self):
        name = export_filename("ポップ", None, ExportFormat.WAV, self._NOW)
        assert name == "composition_2024-05-17T09-03-07.wav"


class TestExportAudio:
    def test_wav_blob(self):
        blob = export_audio(_single_note_comp(), ExportFormat.WAV, genre="pop", key="C_major")
        assert isinstance(blob, AudioBlob)
        assert blob.media_type == "audio/wav"
        assert blob.filename.startswith("composition_pop_C_major_")
        assert len(blob.data) == 44 + 2 * math.ceil(4.0 * SR) * 2

    def test_stub_blob(self):
        blob = export_audio(_single_note_comp(), ExportFormat.STUB_MP3)
        assert blob.media_type == "application/octet-stream"
        assert blob.data[:8] == STUB_MP3_HEADER
        assert blob.filename.endswith(".mp3")

    def test_empty_composition_rejected(self):
        with pytest.raises(ValidationError):
            export_audio(Composition())

    def test_encoder_failure_wrapped(self, monkeypatch):
        def broken(*args):
            raise RuntimeError("disk full")

        monkeypatch.setattr(encoder_module, "encode", broken)
        with pytest.raises(ExportError, match="disk full"):
            export_audio(_single_note_comp())
