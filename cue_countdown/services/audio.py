"""Notification sink that asks connected players to play cue sounds.

Decoding and playback happen on the player side; this module only resolves
sound URLs and pushes play requests. Requests are fire-and-forget: each one
runs as its own task and its outcome is logged.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Optional, Protocol, Set
from urllib.parse import quote

from ..errors import NotificationFailure

log = logging.getLogger(__name__)

Broadcast = Callable[[Dict[str, Any]], Awaitable[None]]


class NotificationSink(Protocol):
    def play_cue(self, cue_id: str) -> None: ...

    def play_main_track(self) -> None: ...

    def stop_main_track(self) -> None: ...

    def announce(self, message: str) -> None: ...


@dataclass(frozen=True)
class CueSound:
    cue_id: str
    url: str


class AudioRegistry:
    """Lazily resolved, cached playable handles keyed by cue id."""

    def __init__(self, base_url: str = "/sounds"):
        self.base_url = base_url.rstrip("/")
        self._sounds: Dict[str, CueSound] = {}

    def url_for(self, filename: str) -> str:
        return f"{self.base_url}/{quote(filename)}"

    def get_or_create(self, cue_id: str) -> CueSound:
        sound = self._sounds.get(cue_id)
        if sound is None:
            sound = CueSound(cue_id=cue_id, url=self.url_for(f"{cue_id}.mp3"))
            self._sounds[cue_id] = sound
        return sound

    def __contains__(self, cue_id: str) -> bool:
        return cue_id in self._sounds


class AudioNotifier:
    """Broadcasts play requests to every connected player client."""

    def __init__(self, broadcast: Broadcast, registry: Optional[AudioRegistry] = None, main_track: str = "main-track.mp3"):
        self.broadcast = broadcast
        self.registry = registry or AudioRegistry()
        self.main_track = main_track
        self._pending: Set[asyncio.Task] = set()

    def play_cue(self, cue_id: str) -> None:
        sound = self.registry.get_or_create(cue_id)
        self._dispatch({"type": "play_cue", "cueId": cue_id, "url": sound.url}, label=cue_id)

    def play_main_track(self) -> None:
        self._dispatch({"type": "play_main_track", "url": self.registry.url_for(self.main_track)}, label="main track")

    def stop_main_track(self) -> None:
        self._dispatch({"type": "stop_main_track"}, label="main track stop")

    def announce(self, message: str) -> None:
        self._dispatch({"type": "trap", "message": message}, label="trap message")

    def _dispatch(self, payload: Dict[str, Any], label: str) -> None:
        task = asyncio.create_task(self._send(payload, label))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _send(self, payload: Dict[str, Any], label: str) -> None:
        try:
            await self.broadcast(payload)
        except Exception as exc:
            failure = NotificationFailure(f"failed to play {label}", {"payload": payload, "error": str(exc)})
            log.error("Notification failed: %s", failure.to_dict())
            return
        log.info("Requested %s", label)

    async def drain(self) -> None:
        """Wait for every pending play request to settle."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)


class LoggingNotifier:
    """Console sink used by the headless ``run`` command."""

    def __init__(self, echo: Callable[[str], None] = print):
        self.echo = echo

    def play_cue(self, cue_id: str) -> None:
        self.echo(f"CUE {cue_id}")

    def play_main_track(self) -> None:
        self.echo("MAIN TRACK started")

    def stop_main_track(self) -> None:
        self.echo("MAIN TRACK stopped")

    def announce(self, message: str) -> None:
        self.echo(f"TRAP {message}")
