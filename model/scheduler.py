"""Event-driven time stepping for a simulation run.

A handful of independently clocked event streams (forcing updates, state
writes, sample writes, spot refresh) each keep their own next-due time.
Every tick the clock jumps to the earliest due time, the model is advanced
by exactly that gap, and every stream due at the new time is serviced.
No event is ever stepped over.
"""

import logging
import math
from dataclasses import dataclass
from typing import Callable, List, Optional

import numpy as np

from model.errors import ConfigurationError, SimulationError

logger = logging.getLogger(__name__)


@dataclass
class Timer:
    """One event stream.

    ``action(t)`` performs the stream's work at time ``t``.  If it returns
    a number that becomes the next due time; otherwise the due time moves
    on by ``period``, or to infinity for a one-shot stream.
    """
    name: str
    due: float
    action: Optional[Callable[[float], Optional[float]]] = None
    period: Optional[float] = None

    def __post_init__(self):
        if self.period is not None and not self.period > 0:
            raise ConfigurationError(
                f"timer '{self.name}' period must be positive, got {self.period}")

    def fire(self, t):
        nxt = self.action(t) if self.action is not None else None
        if nxt is None:
            nxt = self.due + self.period if self.period is not None else math.inf
        self.due = nxt


class ForcingCursor:
    """Walks an ordered list of (time, kp) records, pushing each into the model.

    Records must already be in non-decreasing time order; the input layer
    rejects anything else.
    """

    def __init__(self, records, model, start):
        if len(records) == 0:
            raise ConfigurationError("no forcing records supplied")
        self.records = records
        self.model = model
        self._times = np.array([rec.time for rec in records], dtype=np.float64)
        self.index = max(int(np.searchsorted(self._times, start, side="right")) - 1, 0)

    @property
    def first_due(self):
        return float(self._times[self.index])

    def __call__(self, t):
        # Records sharing a timestamp collapse to the last one.
        last = int(np.searchsorted(self._times, t, side="right")) - 1
        self.index = max(self.index, last)
        rec = self.records[self.index]
        logger.info("Kp %.2f at t=%.0f", rec.kp, t)
        self.model.set_kp(rec.kp)
        self.index += 1
        if self.index >= len(self.records):
            return math.inf
        return float(self._times[self.index])


def forcing_timer(records, model, start):
    cursor = ForcingCursor(records, model, start)
    return Timer("forcing", cursor.first_due, cursor)


def periodic_timer(name, first, period, action=None):
    def _act(t):
        if action is not None:
            action(t)
    return Timer(name, first, _act, period)


def disabled_timer(name):
    return Timer(name, math.inf)


class EventScheduler:
    """Drive ``model`` from ``start`` to ``stop`` through ``timers``.

    Parameters
    ----------
    model : object with ``advance(dt)``
    start, stop : float
        Simulated run bounds (s).
    timers : list of Timer
    spot_stage : object with ``set_time(t)``, optional
        Receives the current time once per tick, before the advance.
    """

    def __init__(self, model, start, stop, timers: List[Timer], spot_stage=None):
        if stop < start:
            raise ConfigurationError(f"run stop {stop} is before start {start}")
        names = [t.name for t in timers]
        if len(set(names)) != len(names):
            raise ConfigurationError(f"duplicate timer names: {names}")
        self.model = model
        self.time = start
        self.stop = stop
        self.timers = timers
        self.spot_stage = spot_stage
        self.ticks = 0

    def timer(self, name) -> Timer:
        for t in self.timers:
            if t.name == name:
                return t
        raise KeyError(name)

    def next_time(self) -> float:
        return min(t.due for t in self.timers)

    def step(self) -> List[str]:
        """Run one tick and return the names of the streams serviced."""
        if self.spot_stage is not None:
            self.spot_stage.set_time(self.time)

        nxt = self.next_time()
        if nxt > self.time:
            logger.debug("advance %.1f s to t=%.0f", nxt - self.time, nxt)
            self.model.advance(nxt - self.time)
            self.time = nxt

        serviced = []
        for timer in self.timers:
            if timer.due <= self.time:
                timer.fire(self.time)
                if not timer.due > self.time:
                    raise SimulationError(
                        f"timer '{timer.name}' did not move past t={self.time} "
                        f"(next due {timer.due})")
                serviced.append(timer.name)
        self.ticks += 1
        return serviced

    def run(self) -> int:
        """Tick until the next event lies past ``stop``; return the tick count."""
        while self.next_time() <= self.stop:
            self.step()
        return self.ticks
