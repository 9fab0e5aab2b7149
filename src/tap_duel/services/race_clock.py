"""Countdown and elapsed-time display derived from a shared start time."""

import asyncio
import math
from collections.abc import AsyncIterator, Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime


def _utc_now() -> datetime:
    return datetime.now(tz=UTC)


@dataclass(frozen=True)
class ClockReading:
    """One display frame of the race clock."""

    countdown: int | None
    elapsed: float

    @property
    def is_counting_down(self) -> bool:
        return self.countdown is not None

    def display(self) -> str:
        if self.countdown is not None:
            return str(self.countdown)
        return f"{self.elapsed:.2f}"


def read_clock(start_time: datetime, now: datetime) -> ClockReading:
    """Derive the clock reading for a given instant."""
    elapsed = (now - start_time).total_seconds()
    if elapsed < 0:
        return ClockReading(countdown=math.ceil(-elapsed), elapsed=0.0)
    return ClockReading(countdown=None, elapsed=elapsed)


@dataclass
class RaceClock:
    """Ticks the countdown, then the elapsed race time until frozen.

    Clock skew between devices is not corrected.
    """

    start_time: datetime
    clock: Callable[[], datetime] = field(default=_utc_now)
    countdown_interval: float = 0.1
    frame_interval: float = 1 / 60
    finished_at: datetime | None = None

    def read(self) -> ClockReading:
        now = self.clock()
        if self.finished_at is not None:
            now = min(now, self.finished_at)
        return read_clock(self.start_time, now)

    def freeze(self, at: datetime) -> None:
        """Stop the elapsed time at the moment the race was seen finished."""
        if self.finished_at is None:
            self.finished_at = at

    async def ticks(self, stop: asyncio.Event) -> AsyncIterator[ClockReading]:
        """Yield readings until the clock is frozen or the stop event is set."""
        while not stop.is_set():
            reading = self.read()
            yield reading
            if self.finished_at is not None:
                return
            interval = (
                self.countdown_interval
                if reading.is_counting_down
                else self.frame_interval
            )
            try:
                await asyncio.wait_for(stop.wait(), timeout=interval)
            except TimeoutError:
                continue
