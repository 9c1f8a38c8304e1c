import asyncio

import httpx
import pytest

from cue_countdown.errors import ChannelUnavailable
from cue_countdown.models.run import RunState
from cue_countdown.services.event_bridge import ExternalEventBridge
from cue_countdown.store.countdown import CountdownController

from helpers import ManualClock, RecorderSink


STREAM = (
    b"event: trap\n"
    b'data: {"message": "Door 3 opened"}\n'
    b"\n"
    b"event: ping\n"
    b"data: {}\n"
    b"\n"
    b'data: {"message": "default event type"}\n'
    b"\n"
    b"event: trap\n"
    b"data: not json\n"
    b"\n"
    b"event: trap\n"
    b'data: {"text": "no message key"}\n'
    b"\n"
    b"event: trap\n"
    b'data: {"message": "Laser grid tripped"}\n'
    b"\n"
)


async def wait_until(predicate, timeout: float = 2.0):
    deadline = asyncio.get_running_loop().time() + timeout
    while not predicate():
        if asyncio.get_running_loop().time() > deadline:
            raise AssertionError("condition not met in time")
        await asyncio.sleep(0.005)


@pytest.mark.asyncio
async def test_trap_events_are_forwarded_and_logged():
    calls = []

    def handler(request):
        calls.append(request)
        if len(calls) == 1:
            return httpx.Response(200, headers={"content-type": "text/event-stream"}, content=STREAM)
        return httpx.Response(503)

    sink = RecorderSink()
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    bridge = ExternalEventBridge(
        "http://events.test/stream", sink, reconnect_delay=0.01, max_reconnect_delay=0.02, client=client
    )

    async with bridge:
        await wait_until(lambda: len(bridge.messages) >= 2)
        await wait_until(lambda: len(calls) >= 3)

    assert bridge.received_messages() == ["Door 3 opened", "Laser grid tripped"]
    assert sink.events == [("trap", "Door 3 opened"), ("trap", "Laser grid tripped")]
    assert calls[0].headers["accept"] == "text/event-stream"
    assert not bridge.connected
    # Client passed in by the caller stays open.
    assert not client.is_closed
    await client.aclose()


@pytest.mark.asyncio
async def test_channel_failures_do_not_touch_countdown():
    attempts = []

    def handler(request):
        attempts.append(request)
        raise httpx.ConnectError("connection refused", request=request)

    clock = ManualClock()
    sink = RecorderSink()
    controller = CountdownController(clock, sink)
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    bridge = ExternalEventBridge(
        "http://events.test/stream", sink, reconnect_delay=0.005, max_reconnect_delay=0.01, client=client
    )

    async with bridge:
        await controller.start({"gameover"}, 10)
        await wait_until(lambda: len(attempts) >= 3)
        await clock.tick(10)

    assert controller.state == RunState.IDLE
    assert controller.fired_cues() == {"gameover"}
    assert bridge.messages == []
    await client.aclose()


@pytest.mark.asyncio
async def test_messages_delivered_while_idle_survive_runs():
    clock = ManualClock()
    sink = RecorderSink()
    controller = CountdownController(clock, sink)
    bridge = ExternalEventBridge(None, sink)

    async with bridge:
        bridge.deliver("Safe cracked")
        assert controller.state == RunState.IDLE
        assert sink.events == [("trap", "Safe cracked")]

        await controller.start({"gameover"}, 6)
        bridge.deliver("Key found")
        await clock.tick(6)
        await controller.start(total_seconds=6)

    assert bridge.received_messages() == ["Safe cracked", "Key found"]


@pytest.mark.asyncio
async def test_sink_failure_keeps_message_log():
    class FailingSink(RecorderSink):
        def announce(self, message):
            raise RuntimeError("no players")

    bridge = ExternalEventBridge(None, FailingSink())
    entry = bridge.deliver("Door 1 opened")
    assert entry.message == "Door 1 opened"
    assert bridge.received_messages() == ["Door 1 opened"]


@pytest.mark.asyncio
async def test_owned_client_is_closed():
    bridge = ExternalEventBridge("http://127.0.0.1:9/stream", RecorderSink(), reconnect_delay=0.01)
    await bridge.start()
    client = bridge._client
    assert client is not None
    await bridge.close()
    assert client.is_closed


@pytest.mark.asyncio
async def test_consume_without_open_channel_raises_channel_unavailable():
    bridge = ExternalEventBridge("http://events.test/stream", RecorderSink())
    with pytest.raises(ChannelUnavailable):
        await bridge._consume()
