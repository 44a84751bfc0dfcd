"""Playback scheduler — real-time transport over a snapshot of notes.

On start the notes are queued on a Timeline together with a self-rearming
progress tick and an end-of-transport marker; one asyncio task drains the
queue against a clock. Each note fires a fire-and-forget voice on the audio
output. Voices are rendered in the default executor, so a long render never
delays later events. Stopping drops every event still queued, so pending
notes never fire, while voices already triggered play to their natural end.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Iterable
from typing import Any, Protocol

import numpy as np

from scoresynth.errors import InitializationError, SynthesisError
from scoresynth.playback.output import AudioOutput
from scoresynth.playback.timeline import EventKind, Timeline, TimelineEvent, run_paced
from scoresynth.score.models import Note
from scoresynth.synthesis.voices import render_note

logger = logging.getLogger(__name__)

TICK_INTERVAL_S = 0.1
MIN_END_TIME_S = 4.0


class PlaybackContext(Protocol):
    """Values read fresh each time a voice is built."""

    master_volume: float
    sample_rate: int


def playback_end_time(notes: Iterable[Note], floor: float = MIN_END_TIME_S) -> float:
    """Latest note end, never less than ``floor``."""
    return max(max((n.end for n in notes), default=0.0), floor)


class PlaybackScheduler:
    """Single-session real-time transport.

    With ``offload_render`` off, voices are built inline on the loop. Virtual
    clocks use this so each voice sounds at the clock time it was triggered.

    Attributes:
        current_time: Seconds advanced by the progress tick since start.
        end_time: Transport length of the current session.
        progress: ``current_time / end_time`` as a percentage (0-100).
        fired: Voices triggered in the current session.
        skipped: Notes whose voice failed to build in the current session.
        error: Message of the last failure that stopped playback, if any.
    """

    def __init__(
        self,
        output: AudioOutput,
        *,
        tick_interval_s: float = TICK_INTERVAL_S,
        min_end_time_s: float = MIN_END_TIME_S,
        clock: Callable[[], float] | None = None,
        sleep: Callable[[float], Awaitable[Any]] | None = None,
        offload_render: bool = True,
    ):
        self.output = output
        self.tick_interval_s = tick_interval_s
        self.min_end_time_s = min_end_time_s
        self._clock = clock
        self._sleep = sleep or asyncio.sleep
        self.offload_render = offload_render

        self._timeline = Timeline()
        self._task: asyncio.Task | None = None
        self._context: PlaybackContext | None = None
        self._voice_tasks: set[asyncio.Task] = set()

        self.current_time = 0.0
        self.end_time = 0.0
        self.progress = 0.0
        self.fired = 0
        self.skipped = 0
        self.error: str | None = None

    @property
    def is_playing(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def pending(self) -> int:
        """Notes queued but not yet fired."""
        return self._timeline.pending_voices()

    def start(self, notes: Iterable[Note], context: PlaybackContext) -> asyncio.Task | None:
        """Begin playback of ``notes``. Must be called from a running event loop.

        Returns the transport task, or None when a session is already active.
        """
        if self.is_playing:
            logger.debug("Playback already active; start ignored")
            return None

        notes = list(notes)
        self._context = context
        self.end_time = playback_end_time(notes, self.min_end_time_s)
        self.current_time = 0.0
        self.progress = 0.0
        self.fired = 0
        self.skipped = 0
        self.error = None

        self._timeline = Timeline(notes)
        self._timeline.push(self.tick_interval_s, EventKind.TICK)
        self._timeline.push(self.end_time, EventKind.END)

        logger.info("Playback started: %d notes over %.2fs", len(notes), self.end_time)
        self._task = asyncio.get_running_loop().create_task(self._run())
        return self._task

    def stop(self) -> None:
        """Cancel the tick and every pending trigger. Safe to call repeatedly."""
        task, self._task = self._task, None
        dropped = self._timeline.clear()
        self.progress = 0.0

        if task is None or task.done():
            return
        try:
            current = asyncio.current_task()
        except RuntimeError:
            current = None
        if task is not current:
            task.cancel()
        logger.info("Playback stopped (%d pending events dropped)", dropped)

    async def wait(self) -> None:
        """Wait for the current session to end, by stop or by reaching the end.

        Voices still rendering when the session ends are waited for as well.
        """
        task = self._task
        if task is not None:
            try:
                await task
            except asyncio.CancelledError:
                if not task.cancelled():
                    raise
        if self._voice_tasks:
            await asyncio.gather(*self._voice_tasks, return_exceptions=True)

    async def _run(self) -> None:
        clock = self._clock or asyncio.get_running_loop().time
        await run_paced(self._timeline, self._handle, clock=clock, sleep=self._sleep)

    def _handle(self, event: TimelineEvent) -> None:
        if event.kind == EventKind.VOICE and event.note is not None:
            self._trigger(event.note)
        elif event.kind == EventKind.TICK:
            self._tick(event.time)
        elif event.kind == EventKind.END:
            logger.info("Playback reached end (%.2fs)", self.end_time)
            self.stop()

    def _trigger(self, note: Note) -> None:
        context = self._context
        master_volume, sample_rate = context.master_volume, context.sample_rate
        if not self.offload_render:
            self._build_and_play(note, master_volume, sample_rate)
            return
        task = asyncio.get_running_loop().create_task(
            self._render_in_executor(note, master_volume, sample_rate)
        )
        self._voice_tasks.add(task)
        task.add_done_callback(self._voice_done)

    async def _render_in_executor(
        self, note: Note, master_volume: float, sample_rate: int,
    ) -> None:
        loop = asyncio.get_running_loop()
        try:
            voice = await loop.run_in_executor(
                None, render_note, note, master_volume, sample_rate,
            )
        except SynthesisError:
            self._skip(note)
            return
        self._play(voice)

    def _build_and_play(self, note: Note, master_volume: float, sample_rate: int) -> None:
        try:
            voice = render_note(note, master_volume, sample_rate)
        except SynthesisError:
            self._skip(note)
            return
        self._play(voice)

    def _skip(self, note: Note) -> None:
        self.skipped += 1
        logger.exception("Skipping note %s at %.3fs", note.id, note.start)

    def _play(self, voice: np.ndarray) -> None:
        try:
            self.output.play(voice)
        except InitializationError as exc:
            self.error = str(exc)
            logger.error("Audio output failed during playback: %s", exc)
            self.stop()
            return
        self.fired += 1

    def _voice_done(self, task: asyncio.Task) -> None:
        self._voice_tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("Voice task failed", exc_info=exc)

    def _tick(self, at: float) -> None:
        self.current_time += self.tick_interval_s
        self.progress = min(100.0, self.current_time / self.end_time * 100.0)
        next_at = at + self.tick_interval_s
        if next_at < self.end_time:
            self._timeline.push(next_at, EventKind.TICK)
