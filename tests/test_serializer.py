from __future__ import annotations

import asyncio
from collections.abc import Callable

import pytest

from dimctl.core.model import QueueItem
from dimctl.core.serializer import AsyncioScheduler, EventSerializer, SerializerState, drain_delay


class ManualScheduler:
    def __init__(self) -> None:
        self.scheduled: list[tuple[float, Callable[[], None]]] = []

    def schedule(self, delay_s: float, callback: Callable[[], None]) -> None:
        self.scheduled.append((delay_s, callback))

    def cancel_all(self) -> None:
        self.scheduled.clear()

    def run_next(self) -> float:
        delay, callback = self.scheduled.pop(0)
        callback()
        return delay


class FakeClock:
    def __init__(self) -> None:
        self.now = 100.0

    def __call__(self) -> float:
        return self.now


def test_drain_delay_is_a_fixed_floor() -> None:
    assert drain_delay(now=10.0, last_start=10.0, spacing_s=0.05) == pytest.approx(0.05)
    assert drain_delay(now=10.03, last_start=10.0, spacing_s=0.05) == pytest.approx(0.02)
    assert drain_delay(now=10.2, last_start=10.0, spacing_s=0.05) == 0.0


@pytest.mark.asyncio
async def test_enqueue_while_idle_drains_synchronously() -> None:
    handled: list[str] = []
    scheduler = ManualScheduler()
    serializer = EventSerializer(
        lambda item: handled.append(item.payload["id"]),
        scheduler=scheduler,
        clock=FakeClock(),
    )

    assert serializer.state is SerializerState.IDLE
    assert serializer.enqueue({"id": "a"})
    assert handled == ["a"]
    assert serializer.state is SerializerState.DRAINING


@pytest.mark.asyncio
async def test_drop_schedules_next_with_spacing_from_drain_start() -> None:
    clock = FakeClock()
    scheduler = ManualScheduler()

    def handler(item: QueueItem) -> None:
        clock.now += 0.01

    serializer = EventSerializer(handler, spacing_s=0.05, scheduler=scheduler, clock=clock)
    serializer.enqueue({"id": "a"})
    serializer.enqueue({"id": "b"})
    assert serializer.pending == 1

    assert scheduler.scheduled[0][0] == pytest.approx(0.04)
    scheduler.run_next()
    assert serializer.pending == 0
    assert serializer.state is SerializerState.DRAINING

    scheduler.run_next()
    assert serializer.state is SerializerState.IDLE
    assert scheduler.scheduled == []


@pytest.mark.asyncio
async def test_full_queue_drops_newest() -> None:
    scheduler = ManualScheduler()
    handled: list[int] = []
    serializer = EventSerializer(
        lambda item: handled.append(item.payload["n"]),
        capacity=3,
        scheduler=scheduler,
        clock=FakeClock(),
    )
    for n in range(5):
        serializer.enqueue({"n": n})

    # n=0 is drained at once, 1..3 fill the queue, 4 is dropped.
    assert serializer.pending == 3
    assert serializer.dropped == 1
    while scheduler.scheduled:
        scheduler.run_next()
    assert handled == [0, 1, 2, 3]


@pytest.mark.asyncio
async def test_handler_exception_does_not_stall_queue(caplog: pytest.LogCaptureFixture) -> None:
    scheduler = ManualScheduler()
    handled: list[str] = []

    def handler(item: QueueItem) -> None:
        if item.payload["id"] == "bad":
            raise RuntimeError("boom")
        handled.append(item.payload["id"])

    serializer = EventSerializer(handler, scheduler=scheduler, clock=FakeClock())
    serializer.enqueue({"id": "bad"})
    serializer.enqueue({"id": "good"})
    while scheduler.scheduled:
        scheduler.run_next()
    assert handled == ["good"]
    assert "Event handler failed" in caplog.text


@pytest.mark.asyncio
async def test_cycles_never_overlap_and_keep_arrival_order() -> None:
    latencies = {"A": 0.03, "B": 0.0, "C": 0.01}
    started: list[str] = []
    finished: list[str] = []
    active = 0
    max_active = 0

    async def cycle(name: str) -> None:
        nonlocal active, max_active
        active += 1
        max_active = max(max_active, active)
        started.append(name)
        await asyncio.sleep(latencies[name])
        finished.append(name)
        active -= 1

    serializer = EventSerializer(lambda item: cycle(item.payload["name"]), spacing_s=0.0)
    for name in ("A", "B", "C"):
        serializer.enqueue({"name": name})

    await asyncio.wait_for(serializer.wait_idle(), timeout=2)
    assert started == ["A", "B", "C"]
    assert finished == ["A", "B", "C"]
    assert max_active == 1
    assert serializer.state is SerializerState.IDLE


@pytest.mark.asyncio
async def test_hundred_and_first_pending_item_is_dropped() -> None:
    release = asyncio.Event()
    processed: list[int] = []

    async def cycle(n: int) -> None:
        if n == 0:
            await release.wait()
        processed.append(n)

    serializer = EventSerializer(lambda item: cycle(item.payload["n"]), spacing_s=0.0)
    assert serializer.enqueue({"n": 0})
    for n in range(1, 101):
        assert serializer.enqueue({"n": n})
    assert serializer.pending == 100
    assert serializer.in_flight

    assert not serializer.enqueue({"n": 101})
    assert serializer.pending == 100
    assert serializer.dropped == 1

    release.set()
    await asyncio.wait_for(serializer.wait_idle(), timeout=5)
    assert processed == list(range(101))


@pytest.mark.asyncio
async def test_failed_cycle_counts_as_completed() -> None:
    processed: list[str] = []

    async def cycle(name: str) -> None:
        if name == "bad":
            raise RuntimeError("device exploded")
        processed.append(name)

    serializer = EventSerializer(lambda item: cycle(item.payload["name"]), spacing_s=0.0)
    serializer.enqueue({"name": "bad"})
    serializer.enqueue({"name": "ok"})
    await asyncio.wait_for(serializer.wait_idle(), timeout=2)
    assert processed == ["ok"]


@pytest.mark.asyncio
async def test_spacing_delays_back_to_back_cycles() -> None:
    loop = asyncio.get_running_loop()
    starts: list[float] = []

    async def cycle() -> None:
        starts.append(loop.time())

    serializer = EventSerializer(lambda item: cycle(), spacing_s=0.05)
    serializer.enqueue({})
    serializer.enqueue({})
    await asyncio.wait_for(serializer.wait_idle(), timeout=2)
    assert len(starts) == 2
    assert starts[1] - starts[0] >= 0.04


@pytest.mark.asyncio
async def test_wait_idle_returns_immediately_when_idle() -> None:
    serializer = EventSerializer(lambda item: None, spacing_s=0.0)
    await asyncio.wait_for(serializer.wait_idle(), timeout=1)


def test_enqueue_outside_event_loop_leaves_state_untouched() -> None:
    handled: list[QueueItem] = []
    serializer = EventSerializer(handled.append, scheduler=ManualScheduler(), clock=FakeClock())

    with pytest.raises(RuntimeError):
        serializer.enqueue({"id": "a"})
    assert handled == []
    assert serializer.pending == 0
    assert serializer.state is SerializerState.IDLE


@pytest.mark.asyncio
async def test_asyncio_scheduler_tracks_and_cancels_timers() -> None:
    scheduler = AsyncioScheduler()
    fired: list[str] = []

    scheduler.schedule(60, lambda: fired.append("late"))
    scheduler.schedule(0, lambda: fired.append("now"))
    assert scheduler.pending == 2

    await asyncio.sleep(0.01)
    assert fired == ["now"]
    assert scheduler.pending == 1

    scheduler.cancel_all()
    assert scheduler.pending == 0
    await asyncio.sleep(0.01)
    assert fired == ["now"]
