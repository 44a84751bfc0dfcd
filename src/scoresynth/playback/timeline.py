"""A priority queue of timed events drained by one loop.

Both playback and offline rendering are expressed as draining a Timeline:

  - ``drain()`` pops every event in time order immediately (offline render).
  - ``run_paced()`` waits on a clock until each event is due (live playback).

Events with equal fire times come out in insertion order.
"""

from __future__ import annotations

import heapq
import itertools
from collections.abc import Awaitable, Callable, Iterable, Iterator
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from scoresynth.score.models import Note

# Events this close to their fire time are treated as due
_DUE_TOLERANCE_S = 1e-6


class EventKind(Enum):
    VOICE = "voice"   # trigger a note
    TICK = "tick"     # advance the progress cursor
    END = "end"       # end of the transport


@dataclass(order=True, frozen=True)
class TimelineEvent:
    """One queued event.

    Attributes:
        time: Fire time in seconds from the start of the pass.
        seq: Insertion counter; breaks ties between equal times.
        kind: What to do when the event fires.
        note: The note to voice, for VOICE events.
    """

    time: float
    seq: int
    kind: EventKind = field(compare=False)
    note: Note | None = field(default=None, compare=False)


class Timeline:
    """Priority queue of (fire time, event) pairs."""

    def __init__(self, notes: Iterable[Note] = ()):
        self._heap: list[TimelineEvent] = []
        self._counter = itertools.count()
        for note in notes:
            self.push_note(note)

    def __len__(self) -> int:
        return len(self._heap)

    def push(self, time: float, kind: EventKind, note: Note | None = None) -> TimelineEvent:
        event = TimelineEvent(time=time, seq=next(self._counter), kind=kind, note=note)
        heapq.heappush(self._heap, event)
        return event

    def push_note(self, note: Note) -> TimelineEvent:
        return self.push(note.start, EventKind.VOICE, note)

    def peek(self) -> TimelineEvent | None:
        return self._heap[0] if self._heap else None

    def pop(self) -> TimelineEvent:
        return heapq.heappop(self._heap)

    def pending_voices(self) -> int:
        return sum(1 for e in self._heap if e.kind == EventKind.VOICE)

    def clear(self) -> int:
        """Drop every pending event. Returns how many were dropped."""
        dropped = len(self._heap)
        self._heap.clear()
        return dropped

    def drain(self) -> Iterator[TimelineEvent]:
        """Pop all events in time order without waiting."""
        while self._heap:
            yield heapq.heappop(self._heap)


async def run_paced(
    timeline: Timeline,
    handle: Callable[[TimelineEvent], Any],
    *,
    clock: Callable[[], float],
    sleep: Callable[[float], Awaitable[Any]],
) -> None:
    """Drain ``timeline`` in real time.

    Waits until each event is due relative to the moment the call starts,
    then hands it to ``handle``. ``handle`` may push further events (the
    progress tick re-arms itself this way). Cancelling the awaiting task
    stops the drain; events not yet popped stay queued.
    """
    origin = clock()
    while True:
        event = timeline.peek()
        if event is None:
            return
        delay = origin + event.time - clock()
        if delay > _DUE_TOLERANCE_S:
            await sleep(delay)
            continue
        handle(timeline.pop())
