"""Piecewise set/linear/exponential parameter curves.

An Envelope is a list of timed events, evaluated sample by sample:

  - ``set(value, t)``: jump to ``value`` at ``t`` and hold.
  - ``linear_to(value, t)``: straight ramp from the previous event to ``value``
    reaching it at ``t``.
  - ``exponential_to(value, t)``: geometric ramp from the previous event to
    ``value`` reaching it at ``t``.

Exponential segments never start or end at zero: both ends are raised to
``FLOOR`` so the ramp stays well defined and decays without a click.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from enum import Enum

import numpy as np

FLOOR = 0.001


class RampKind(Enum):
    SET = "set"
    LINEAR = "linear"
    EXPONENTIAL = "exponential"


@dataclass(frozen=True)
class EnvelopeEvent:
    time: float
    value: float
    kind: RampKind


@dataclass
class Envelope:
    """Time-varying parameter curve.

    Attributes:
        initial: Value before the first event.
        events: Events in insertion order; evaluation sorts them by time
            (stable, so equal times keep insertion order).
    """

    initial: float = 0.0
    events: list[EnvelopeEvent] = field(default_factory=list)

    def set(self, value: float, t: float) -> Envelope:
        self.events.append(EnvelopeEvent(t, value, RampKind.SET))
        return self

    def linear_to(self, value: float, t: float) -> Envelope:
        self.events.append(EnvelopeEvent(t, value, RampKind.LINEAR))
        return self

    def exponential_to(self, value: float, t: float) -> Envelope:
        self.events.append(EnvelopeEvent(t, value, RampKind.EXPONENTIAL))
        return self

    def render(self, n: int, sr: int) -> np.ndarray:
        """Evaluate the curve at ``n`` samples starting from t=0."""
        out = np.full(n, self.initial, dtype=np.float64)
        if n == 0:
            return out

        times = np.arange(n, dtype=np.float64) / sr
        prev_t, prev_v = 0.0, self.initial

        for ev in sorted(self.events, key=lambda e: e.time):
            end_idx = _index_at(ev.time, sr, n)

            if ev.kind == RampKind.SET or ev.time <= prev_t:
                out[end_idx:] = ev.value
            else:
                start_idx = _index_at(prev_t, sr, n)
                seg = times[start_idx:end_idx]
                frac = (seg - prev_t) / (ev.time - prev_t)
                if ev.kind == RampKind.LINEAR:
                    out[start_idx:end_idx] = prev_v + (ev.value - prev_v) * frac
                    out[end_idx:] = ev.value
                else:
                    v0 = max(prev_v, FLOOR)
                    v1 = max(ev.value, FLOOR)
                    out[start_idx:end_idx] = v0 * (v1 / v0) ** frac
                    out[end_idx:] = v1

            prev_t = max(prev_t, ev.time)
            prev_v = max(ev.value, FLOOR) if ev.kind == RampKind.EXPONENTIAL else ev.value

        return out

    def apply(self, signal: np.ndarray, sr: int) -> np.ndarray:
        """Multiply a signal by this envelope."""
        return signal * self.render(len(signal), sr)


def _index_at(t: float, sr: int, n: int) -> int:
    """First sample index at or after time ``t``, clipped to [0, n]."""
    return min(max(math.ceil(t * sr - 1e-9), 0), n)
