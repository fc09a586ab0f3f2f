"""Tests for the event emitter."""
import asyncio

import pytest

from fileuploader.utils.events import EventEmitter, FileProgress


def test_duplicate_subscription_is_noop():
    emitter = EventEmitter()
    calls = []
    listener = calls.append

    emitter.on("tick", listener)
    emitter.on("tick", listener)
    emitter.emit("tick", 1)

    assert calls == [1]
    assert emitter.has_listener("tick", listener)


def test_off_unknown_listener_is_noop():
    emitter = EventEmitter()
    emitter.off("tick", print)
    emitter.on("tick", len)
    emitter.off("tick", print)
    assert emitter.has_listener("tick", len)
    assert not emitter.has_listener("tick", print)


def test_subscription_cancel():
    emitter = EventEmitter()
    calls = []
    subscription = emitter.on("tick", calls.append)

    assert emitter.has_listener("tick", calls.append)
    subscription.cancel()
    subscription.cancel()
    emitter.emit("tick", 1)

    assert calls == []
    assert not emitter.has_listener("tick", calls.append)


def test_listeners_called_in_subscription_order():
    emitter = EventEmitter()
    order = []
    emitter.on("tick", lambda: order.append("first"))
    emitter.on("tick", lambda: order.append("second"))

    emitter.emit("tick")

    assert order == ["first", "second"]


def test_failing_listener_does_not_stop_others():
    emitter = EventEmitter()
    calls = []

    def broken(_):
        raise ValueError("listener bug")

    emitter.on("tick", broken)
    emitter.on("tick", calls.append)
    emitter.emit("tick", 7)

    assert calls == [7]


def test_listener_may_unsubscribe_during_emit():
    emitter = EventEmitter()
    calls = []

    def once(value):
        calls.append(value)
        emitter.off("tick", once)

    emitter.on("tick", once)
    emitter.emit("tick", 1)
    emitter.emit("tick", 2)

    assert calls == [1]


@pytest.mark.asyncio
async def test_async_listener_is_scheduled():
    emitter = EventEmitter()
    received = asyncio.Event()

    async def listener(value):
        assert value == "payload"
        received.set()

    emitter.on("tick", listener)
    emitter.emit("tick", "payload")

    await asyncio.wait_for(received.wait(), timeout=1)


@pytest.mark.asyncio
async def test_async_listener_task_is_held_until_done():
    emitter = EventEmitter()
    release = asyncio.Event()
    finished = []

    async def listener():
        await release.wait()
        finished.append(True)

    emitter.on("tick", listener)
    emitter.emit("tick")

    assert len(emitter._tasks) == 1
    release.set()
    await asyncio.gather(*list(emitter._tasks))

    assert finished == [True]
    assert emitter._tasks == set()


def test_file_progress_percent():
    assert FileProgress(50, 200).percent == 25.0
    assert FileProgress(0, 0).percent == 0.0
