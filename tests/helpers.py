from cue_countdown.store.clock import ClockHandle


class ManualClock:
    """Clock stub whose ticks are driven by the test."""

    def __init__(self):
        self.generation = 0
        self.handle = None
        self.callback = None
        self.stopped = []

    @property
    def running(self):
        return self.handle is not None

    def start(self, on_tick):
        self.generation += 1
        self.handle = ClockHandle(self.generation)
        self.callback = on_tick
        return self.handle

    def stop(self, handle):
        self.stopped.append(handle)
        if self.handle == handle:
            self.handle = None

    async def tick(self, count: int = 1):
        for _ in range(count):
            if self.handle is None:
                return
            await self.callback()


class RecorderSink:
    def __init__(self):
        self.events = []

    def play_cue(self, cue_id):
        self.events.append(("cue", cue_id))

    def play_main_track(self):
        self.events.append(("main", "play"))

    def stop_main_track(self):
        self.events.append(("main", "stop"))

    def announce(self, message):
        self.events.append(("trap", message))

    @property
    def cues(self):
        return [value for kind, value in self.events if kind == "cue"]


class BrokenSink(RecorderSink):
    def play_cue(self, cue_id):
        super().play_cue(cue_id)
        raise RuntimeError("speaker unplugged")
