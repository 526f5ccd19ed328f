from __future__ import annotations

import pytest

from sandterm.exceptions import ChannelClosedError
from sandterm.models import EventType, SessionEvent
from sandterm.server.sse import QueueChannel
from tests.sandboxes.fake_sandbox import parse_frames


def test_session_event_sse_framing() -> None:
    event = SessionEvent(type=EventType.OUTPUT, data={"stdout": "ready\n", "exit_code": 0})

    frame = event.to_sse()

    assert frame.startswith("event: output\ndata: ")
    assert frame.endswith("\n\n")
    assert parse_frames([frame]) == [("output", {"stdout": "ready\n", "exit_code": 0})]


@pytest.mark.asyncio
async def test_frames_drain_until_close() -> None:
    channel = QueueChannel(maxsize=8)
    channel.send("event: heartbeat\ndata: {}\n\n")
    channel.send("event: session_destroyed\ndata: {}\n\n")
    channel.close()

    frames = [frame async for frame in channel.frames()]

    assert len(frames) == 2
    assert frames[1].startswith("event: session_destroyed")


@pytest.mark.asyncio
async def test_send_after_close_raises() -> None:
    channel = QueueChannel()
    channel.close()

    with pytest.raises(ChannelClosedError):
        channel.send("event: heartbeat\ndata: {}\n\n")


@pytest.mark.asyncio
async def test_overflow_closes_channel() -> None:
    channel = QueueChannel(maxsize=2)
    closed = []
    channel.add_close_callback(lambda: closed.append(True))

    channel.send("a")
    channel.send("b")
    with pytest.raises(ChannelClosedError):
        channel.send("c")

    assert channel.closed
    assert closed == [True]


@pytest.mark.asyncio
async def test_close_callbacks_run_once() -> None:
    channel = QueueChannel()
    calls = []
    channel.add_close_callback(lambda: calls.append("closed"))

    channel.close()
    channel.close()
    # Registered after close: runs immediately
    channel.add_close_callback(lambda: calls.append("late"))

    assert calls == ["closed", "late"]


@pytest.mark.asyncio
async def test_abandoned_stream_closes_channel() -> None:
    channel = QueueChannel()
    channel.send("event: heartbeat\ndata: {}\n\n")

    frames = channel.frames()
    await frames.__anext__()
    await frames.aclose()

    assert channel.closed


@pytest.mark.asyncio
async def test_disconnect_unregisters_subscriber(manager) -> None:
    session = await manager.create_session()
    channel = QueueChannel()
    manager.register_subscriber(session.session_id, channel)
    assert manager.hub.subscriber_count(session.session_id) == 1

    frames = channel.frames()
    first = await frames.__anext__()
    await frames.aclose()

    assert first.startswith("event: connected")
    assert manager.hub.subscriber_count(session.session_id) == 0
