import functools
import logging
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Dict, FrozenSet, Iterable, List, Optional, Set

from ..errors import AlreadyRunning, InvalidConfig
from ..models.run import CountdownStatus, RunConfig, RunState, format_time
from ..services.audio import NotificationSink
from .clock import Clock, ClockHandle
from .matcher import match_cues
from .schedule import build_schedule, unreachable_cues

log = logging.getLogger(__name__)

StatusListener = Callable[[CountdownStatus], Awaitable[None]]


@dataclass
class RunContext:
    """Run-scoped state, allocated at start and replaced wholesale by the next run."""

    run_id: int
    config: RunConfig
    schedule: Dict[str, int]
    time_remaining: int
    fired: Set[str] = field(default_factory=set)
    handle: Optional[ClockHandle] = None


class CountdownController:
    def __init__(
        self,
        clock: Clock,
        sink: NotificationSink,
        duration_minutes: int = 60,
        selection: Optional[Iterable[str]] = None,
        trace_ticks: bool = False,
    ):
        if duration_minutes <= 0:
            raise InvalidConfig("duration must be > 0", {"minutes": duration_minutes})
        self.clock = clock
        self.sink = sink
        self.trace_ticks = trace_ticks
        self.selection: Set[str] = set(selection or ())
        self.duration_minutes: int = int(duration_minutes)
        self.state: RunState = RunState.IDLE
        self._run: Optional[RunContext] = None
        self._run_counter = 0
        self._listeners: List[StatusListener] = []

    # Setup (idle only) -------------------------------------------------

    def _require_idle(self) -> None:
        if self.state == RunState.RUNNING:
            raise AlreadyRunning()

    def set_selection(self, cue_ids: Iterable[str]) -> None:
        self._require_idle()
        self.selection = set(cue_ids)

    def toggle_cue(self, cue_id: str) -> bool:
        """Flip a cue in the selection. Returns whether it is now selected."""
        self._require_idle()
        if cue_id in self.selection:
            self.selection.discard(cue_id)
            return False
        self.selection.add(cue_id)
        return True

    def set_duration_minutes(self, minutes: int) -> None:
        self._require_idle()
        if int(minutes) <= 0:
            raise InvalidConfig("duration must be > 0", {"minutes": minutes})
        self.duration_minutes = int(minutes)

    def add_listener(self, listener: StatusListener) -> None:
        self._listeners.append(listener)

    # Lifecycle ---------------------------------------------------------

    async def start(self, selection: Optional[Iterable[str]] = None, total_seconds: Optional[int] = None) -> RunContext:
        if self.state == RunState.RUNNING:
            raise AlreadyRunning(details={"time_remaining": self.time_remaining()})

        total = self.duration_minutes * 60 if total_seconds is None else int(total_seconds)
        if total <= 0:
            raise InvalidConfig("total_seconds must be > 0", {"total_seconds": total_seconds})

        if selection is not None:
            self.selection = set(selection)
        schedule = build_schedule(frozenset(self.selection), total)
        unreachable = unreachable_cues(schedule, total)
        if unreachable:
            log.warning("Cues %s can never fire in a %ss countdown", ", ".join(unreachable), total)

        self._run_counter += 1
        run = RunContext(
            run_id=self._run_counter,
            config=RunConfig(total_seconds=total),
            schedule=schedule,
            time_remaining=total,
        )
        self._run = run
        self.state = RunState.RUNNING
        log.info("Countdown started: %ss, schedule %s", total, schedule)

        self._safe_notify(self.sink.play_main_track)
        # The starting value counts as observed, so a cue due at the full
        # duration fires immediately.
        self._fire(run, match_cues(run.time_remaining, run.schedule, run.fired))
        run.handle = self.clock.start(functools.partial(self._on_tick, run.run_id))
        await self._publish()
        return run

    async def abort(self) -> bool:
        run = self._run
        if self.state != RunState.RUNNING or run is None:
            return False
        self._stop_clock(run)
        self.state = RunState.IDLE
        self._safe_notify(self.sink.stop_main_track)
        log.info("Countdown aborted with %ss remaining", run.time_remaining)
        await self._publish()
        return True

    async def _on_tick(self, run_id: int) -> None:
        run = self._run
        if run is None or run.run_id != run_id or self.state != RunState.RUNNING:
            return

        run.time_remaining -= 1
        newly_fired = match_cues(run.time_remaining, run.schedule, run.fired)
        if self.trace_ticks:
            log.info("Tick: remaining=%s schedule=%s fired=%s", run.time_remaining, run.schedule, sorted(run.fired))
        self._fire(run, newly_fired)

        if run.time_remaining <= 0:
            self._stop_clock(run)
            self.state = RunState.FINISHED
            self._safe_notify(self.sink.stop_main_track)
            log.info("Countdown finished, fired %s", sorted(run.fired))
            await self._publish()
            # A listener may have started the next run while we were publishing.
            if self._run is run:
                self.state = RunState.IDLE
            return

        await self._publish()

    def _fire(self, run: RunContext, cue_ids: Set[str]) -> None:
        for cue_id in sorted(cue_ids):
            log.info("Cue %s fired at %ss remaining", cue_id, run.time_remaining)
            self._safe_notify(self.sink.play_cue, cue_id)

    def _stop_clock(self, run: RunContext) -> None:
        if run.handle is not None:
            self.clock.stop(run.handle)
            run.handle = None

    def _safe_notify(self, action: Callable[..., None], *args: str) -> None:
        try:
            action(*args)
        except Exception:
            log.exception("Notification %s%r failed", getattr(action, "__name__", action), args)

    async def _publish(self) -> None:
        if not self._listeners:
            return
        status = self.status()
        for listener in list(self._listeners):
            try:
                await listener(status)
            except Exception:
                log.exception("Status listener failed")

    # Queries -----------------------------------------------------------

    def current_state(self) -> RunState:
        return self.state

    def time_remaining(self) -> int:
        return self._run.time_remaining if self._run else 0

    def total_seconds(self) -> int:
        if self._run and self.state != RunState.IDLE:
            return self._run.config.total_seconds
        return self.duration_minutes * 60

    def progress(self) -> float:
        run = self._run
        if self.state != RunState.RUNNING or run is None:
            return 0.0
        return 1.0 - run.time_remaining / run.config.total_seconds

    def fired_cues(self) -> FrozenSet[str]:
        return frozenset(self._run.fired) if self._run else frozenset()

    def schedule(self) -> Dict[str, int]:
        return dict(self._run.schedule) if self._run else {}

    def status(self) -> CountdownStatus:
        remaining = self.time_remaining()
        return CountdownStatus(
            state=self.state,
            time_remaining=remaining,
            display=format_time(remaining),
            progress=self.progress(),
            total_seconds=self.total_seconds(),
            duration_minutes=self.duration_minutes,
            selection=sorted(self.selection),
            schedule=self.schedule(),
            fired=sorted(self.fired_cues()),
        )
