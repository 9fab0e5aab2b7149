"""Tests for the race clock."""

import asyncio
from datetime import UTC, datetime, timedelta

from tap_duel.services.race_clock import RaceClock, read_clock

START = datetime(2026, 1, 1, 12, 0, 3, tzinfo=UTC)


def test_countdown_rounds_remaining_seconds_up() -> None:
    assert read_clock(START, START - timedelta(seconds=3)).countdown == 3
    assert read_clock(START, START - timedelta(seconds=2.9)).countdown == 3
    assert read_clock(START, START - timedelta(seconds=0.05)).countdown == 1


def test_elapsed_display_has_two_decimals() -> None:
    reading = read_clock(START, START + timedelta(seconds=1.234))

    assert reading.is_counting_down is False
    assert reading.display() == "1.23"
    assert read_clock(START, START).display() == "0.00"


def test_countdown_display_is_integer() -> None:
    assert read_clock(START, START - timedelta(seconds=1.5)).display() == "2"


def test_ticks_stop_when_event_is_set() -> None:
    now = {"value": START - timedelta(seconds=0.2)}
    clock = RaceClock(
        START,
        clock=lambda: now["value"],
        countdown_interval=0,
        frame_interval=0,
    )

    async def collect():
        stop = asyncio.Event()
        readings = []
        async for reading in clock.ticks(stop):
            readings.append(reading)
            now["value"] += timedelta(seconds=0.1)
            if len(readings) == 4:
                stop.set()
        return readings

    readings = asyncio.run(collect())

    assert [r.countdown for r in readings[:2]] == [1, 1]
    assert readings[2].countdown is None
    assert len(readings) == 4


def test_frozen_clock_keeps_finish_time() -> None:
    now = {"value": START + timedelta(seconds=2)}
    clock = RaceClock(START, clock=lambda: now["value"])

    clock.freeze(now["value"])
    now["value"] += timedelta(seconds=60)
    clock.freeze(now["value"])

    assert clock.read().display() == "2.00"


def test_ticks_end_after_freeze() -> None:
    now = {"value": START + timedelta(seconds=1)}
    clock = RaceClock(START, clock=lambda: now["value"], frame_interval=0)

    async def collect():
        readings = []
        async for reading in clock.ticks(asyncio.Event()):
            readings.append(reading)
            if len(readings) == 2:
                clock.freeze(now["value"])
            now["value"] += timedelta(seconds=1)
        return readings

    readings = asyncio.run(collect())

    assert [r.display() for r in readings] == ["1.00", "2.00"]
