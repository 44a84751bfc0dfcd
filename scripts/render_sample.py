#!/usr/bin/env python3
"""Render a short pop sketch with generated harmony to WAV and stub files.

Builds a melody over a drum groove, generates the pop harmony layer, and
exports every instrument once so the voices can be compared by ear.
Output: data/samples/*.wav, data/samples/*.mp3
"""

import asyncio
import logging
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parents[1] / "src"))

from scoresynth.render.encoder import ExportFormat, export_audio
from scoresynth.render.offline import render_offline, save_wav
from scoresynth.score.harmony import HarmonyGenerator
from scoresynth.score.models import Composition, Note, drum_note, load_instrument_db, pitch_name
from scoresynth.score.serializer import save_composition

OUTPUT_DIR = Path(__file__).resolve().parents[1] / "data" / "samples"
MASTER_VOLUME = 0.7

# (pitch, start, duration)
MELODY = [
    (64, 0.0, 0.5), (67, 0.5, 0.5), (69, 1.0, 1.0),
    (67, 2.0, 0.5), (64, 2.5, 0.5), (62, 3.0, 1.0),
    (60, 4.0, 0.5), (62, 4.5, 0.5), (64, 5.0, 1.0),
    (67, 6.0, 0.5), (64, 6.5, 0.5), (60, 7.0, 1.0),
]


def build_melody(instrument: str = "piano") -> Composition:
    comp = Composition()
    for pitch, start, duration in MELODY:
        comp.add(Note(pitch=pitch, start=start, duration=duration, instrument=instrument))
    return comp


def add_groove(comp: Composition, bars: int = 4) -> None:
    """Kick on 1 and 3, snare on 2 and 4, closed hihat on eighths (120 BPM)."""
    for bar in range(bars):
        t0 = bar * 2.0
        for beat in range(4):
            t = t0 + beat * 0.5
            comp.add(drum_note("kick" if beat % 2 == 0 else "snare", t, 0.8))
            comp.add(drum_note("hihat-closed", t, 0.4))
            comp.add(drum_note("hihat-closed", t + 0.25, 0.3))


def main():
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")
    OUTPUT_DIR.mkdir(parents=True, exist_ok=True)

    comp = build_melody()
    add_groove(comp)
    result = asyncio.run(HarmonyGenerator(delay_s=0.0).generate(comp.melody, genre="pop"))
    comp.set_harmony(result.notes)

    print(f"Melody: {' '.join(pitch_name(p) for p, _, _ in MELODY)}")
    print(f"Harmony: {' - '.join(result.progression)} ({result.key})")
    print(f"Notes: {len(comp.melody)} melody, {len(comp.harmony)} harmony\n")

    save_composition(comp, OUTPUT_DIR / "sketch.json")

    for fmt in ExportFormat:
        blob = export_audio(comp, fmt, genre="pop", key=result.key, master_volume=MASTER_VOLUME)
        path = OUTPUT_DIR / blob.filename
        path.write_bytes(blob.data)
        print(f"  Saved: {path} ({len(blob.data)} bytes)")

    # One take per melodic instrument, no drums or harmony
    print("\nRendering instrument takes...")
    for instrument in load_instrument_db().values():
        if instrument.id == "drums":
            continue
        audio = render_offline(build_melody(instrument.id), MASTER_VOLUME)
        path = OUTPUT_DIR / f"melody_{instrument.id}.wav"
        save_wav(audio, path)
        print(f"  Saved: {path} ({len(audio) / 44100:.1f}s)")

    print("\nDone! Open the WAV files in any audio player to listen.")


if __name__ == "__main__":
    main()
