from contextlib import asynccontextmanager
from typing import Any, Dict, List, Optional

from fastapi import FastAPI, HTTPException, WebSocket
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles

from .api.websocket import WebSocketManager, websocket_endpoint
from .config import Settings
from .custom_logging import setup_logging
from .errors import AlreadyRunning, InvalidConfig
from .models.cue import CUE_OPTIONS, CueDefinition
from .models.run import CountdownStatus, ExternalMessage, StartRequest
from .services.audio import AudioNotifier, AudioRegistry
from .services.event_bridge import ExternalEventBridge
from .store.clock import Clock
from .store.countdown import CountdownController


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or Settings.from_env()
    setup_logging(settings.log_level, settings.log_file)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        async def broadcast(message: Dict[str, Any]) -> None:
            await app.state.ws_manager.broadcast(message)

        clock = Clock(period=settings.tick_seconds)
        notifier = AudioNotifier(broadcast, AudioRegistry(settings.sounds_url), main_track=settings.main_track)
        controller = CountdownController(
            clock,
            notifier,
            duration_minutes=settings.default_minutes,
            trace_ticks=settings.trace_ticks,
        )
        bridge = ExternalEventBridge(
            settings.events_url,
            notifier,
            event_name=settings.events_name,
            reconnect_delay=settings.reconnect_delay,
            max_reconnect_delay=settings.reconnect_max_delay,
        )
        ws_manager = WebSocketManager(controller, bridge)
        controller.add_listener(ws_manager.broadcast_status)

        # Make services available to routes
        app.state.settings = settings
        app.state.controller = controller
        app.state.notifier = notifier
        app.state.bridge = bridge
        app.state.ws_manager = ws_manager

        async with bridge:
            yield
            # Shutdown: stop the countdown before the channel goes away.
            await controller.abort()
            await clock.close()
            await notifier.drain()

    app = FastAPI(lifespan=lifespan, title="Cue Countdown")

    if settings.sounds_dir.exists():
        app.mount(settings.sounds_url, StaticFiles(directory=settings.sounds_dir), name="sounds")

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/")
    async def root():
        return {"message": "Cue Countdown"}

    @app.get("/cues", response_model=List[CueDefinition])
    async def list_cues():
        return CUE_OPTIONS

    @app.get("/status", response_model=CountdownStatus)
    async def status():
        return app.state.controller.status()

    @app.post("/start", response_model=CountdownStatus)
    async def start(request: StartRequest):
        controller: CountdownController = app.state.controller
        try:
            await controller.start(request.cues, request.resolved_total_seconds())
        except AlreadyRunning as e:
            raise HTTPException(status_code=409, detail=e.to_dict())
        except InvalidConfig as e:
            raise HTTPException(status_code=422, detail=e.to_dict())
        return controller.status()

    @app.post("/stop", response_model=CountdownStatus)
    async def stop():
        await app.state.controller.abort()
        return app.state.controller.status()

    @app.get("/fired")
    async def fired():
        return {"fired": sorted(app.state.controller.fired_cues())}

    @app.get("/messages", response_model=List[ExternalMessage])
    async def messages():
        return app.state.bridge.messages

    @app.websocket("/ws")
    async def websocket_route(websocket: WebSocket):
        await websocket_endpoint(websocket, app.state.ws_manager)

    return app


if __name__ == "__main__":
    import uvicorn

    settings = Settings.from_env()
    uvicorn.run(create_app(settings), host=settings.host, port=settings.port)
