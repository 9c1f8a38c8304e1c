import asyncio
import contextlib
import json
import logging
from typing import List, Optional

import httpx

from ..errors import ChannelUnavailable
from ..models.run import ExternalMessage
from .audio import NotificationSink

log = logging.getLogger(__name__)


class ExternalEventBridge:
    """
    One-way bridge from an external Server-Sent-Events channel to the sink.
    Keeps the stream open for the whole session and reconnects with backoff.
    Received messages are kept in order for the rest of the session.
    """

    def __init__(
        self,
        url: Optional[str],
        sink: NotificationSink,
        event_name: str = "trap",
        reconnect_delay: float = 1.0,
        max_reconnect_delay: float = 30.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.url = url
        self.sink = sink
        self.event_name = event_name
        self.reconnect_delay = reconnect_delay
        self.max_reconnect_delay = max_reconnect_delay
        self.messages: List[ExternalMessage] = []
        self.connected = False
        self._client = client
        self._owns_client = client is None
        self._reader_task: Optional[asyncio.Task] = None

    async def __aenter__(self) -> "ExternalEventBridge":
        await self.start()
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    async def start(self) -> None:
        if self._reader_task:
            return
        if not self.url:
            log.info("External events disabled (no channel URL configured)")
            return
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=None)
        self._reader_task = asyncio.create_task(self._reader_loop())

    async def close(self) -> None:
        task, self._reader_task = self._reader_task, None
        if task:
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None
        self.connected = False

    def deliver(self, message: str) -> ExternalMessage:
        entry = ExternalMessage(message=message)
        self.messages.append(entry)
        log.info("External %s message: %s", self.event_name, message)
        try:
            self.sink.announce(message)
        except Exception:
            log.exception("Failed to forward external message")
        return entry

    def received_messages(self) -> List[str]:
        return [entry.message for entry in self.messages]

    async def _reader_loop(self) -> None:
        delay = self.reconnect_delay
        while True:
            try:
                await self._consume()
                raise ChannelUnavailable("event stream closed", {"url": self.url})
            except asyncio.CancelledError:
                raise
            except (ChannelUnavailable, httpx.HTTPError) as exc:
                if self.connected:
                    delay = self.reconnect_delay
                log.warning("Event channel unavailable (%s); retrying in %.1fs", exc, delay)
            except Exception:
                log.exception("Unexpected event channel error; retrying in %.1fs", delay)
            self.connected = False
            await asyncio.sleep(delay)
            delay = min(delay * 2, self.max_reconnect_delay)

    async def _consume(self) -> None:
        if self._client is None:
            raise ChannelUnavailable("event channel not opened", {"url": self.url})
        async with self._client.stream("GET", self.url, headers={"Accept": "text/event-stream"}) as r:
            if r.status_code >= 400:
                raise ChannelUnavailable(f"HTTP {r.status_code}", {"url": self.url})
            self.connected = True
            log.info("Connected to event channel %s", self.url)
            event: Optional[str] = None
            data_lines: List[str] = []
            async for line in r.aiter_lines():
                if line.startswith("event:"):
                    event = line.split(":", 1)[1].strip()
                elif line.startswith("data:"):
                    data_lines.append(line.split(":", 1)[1].strip())
                elif not line.strip():
                    # Blank line terminates the frame.
                    if data_lines:
                        self._handle_frame(event or "message", "\n".join(data_lines))
                    event = None
                    data_lines = []
            if data_lines:
                self._handle_frame(event or "message", "\n".join(data_lines))

    def _handle_frame(self, event: str, data: str) -> None:
        if event != self.event_name:
            return
        try:
            payload = json.loads(data)
        except ValueError:
            log.debug("Ignoring non-JSON %s event: %r", event, data)
            return
        message = payload.get("message") if isinstance(payload, dict) else None
        if message is None:
            log.debug("Ignoring %s event without message: %r", event, payload)
            return
        self.deliver(str(message))
