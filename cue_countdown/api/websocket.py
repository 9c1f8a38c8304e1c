import json
import logging
from typing import Any, Dict, List, Optional

from fastapi import WebSocket, WebSocketDisconnect

from ..errors import CountdownError
from ..models.cue import CUE_OPTIONS
from ..models.run import CountdownStatus, StartRequest
from ..services.event_bridge import ExternalEventBridge
from ..store.countdown import CountdownController

log = logging.getLogger(__name__)


class WebSocketManager:
    def __init__(self, controller: CountdownController, bridge: Optional[ExternalEventBridge] = None):
        self.controller = controller
        self.bridge = bridge
        self.active_connections: List[WebSocket] = []

    async def connect(self, websocket: WebSocket):
        await websocket.accept()
        self.active_connections.append(websocket)
        await self.send_initial_state(websocket)

    def disconnect(self, websocket: WebSocket):
        if websocket in self.active_connections:
            self.active_connections.remove(websocket)

    async def send_initial_state(self, websocket: WebSocket):
        messages = self.bridge.received_messages() if self.bridge else []
        await websocket.send_json({
            "type": "initial",
            "cues": [cue.model_dump() for cue in CUE_OPTIONS],
            "status": self.controller.status().model_dump(mode="json"),
            "messages": messages,
        })

    async def broadcast_status(self, status: Optional[CountdownStatus] = None):
        status = status or self.controller.status()
        await self.broadcast({"type": "status", "status": status.model_dump(mode="json")})

    async def broadcast(self, message: Dict[str, Any]):
        stale: List[WebSocket] = []
        for connection in list(self.active_connections):
            try:
                await connection.send_json(message)
            except Exception as e:
                log.warning("Dropping websocket after send failure: %s", e)
                stale.append(connection)
        for connection in stale:
            self.disconnect(connection)

    async def handle_message(self, websocket: WebSocket, data: str):
        try:
            message = json.loads(data)
        except ValueError:
            await websocket.send_json({"type": "error", "code": "invalid_json", "message": "message is not JSON"})
            return
        if not isinstance(message, dict):
            await websocket.send_json({"type": "error", "code": "invalid_message", "message": "message must be a JSON object"})
            return

        msg_type = message.get("type")
        try:
            if msg_type == "start":
                request = StartRequest.model_validate(message)
                try:
                    await self.controller.start(request.cues, request.resolved_total_seconds())
                except CountdownError as e:
                    await websocket.send_json({"type": "start_rejected", "reason": e.code, "message": e.message})

            elif msg_type == "stop":
                await self.controller.abort()

            elif msg_type == "toggle_cue":
                self.controller.toggle_cue(str(message.get("cue_id") or ""))
                await self.broadcast_status()

            elif msg_type == "set_duration":
                self.controller.set_duration_minutes(int(message.get("minutes") or 0))
                await self.broadcast_status()

            elif msg_type == "status":
                await websocket.send_json({"type": "status", "status": self.controller.status().model_dump(mode="json")})

            else:
                await websocket.send_json({"type": "error", "code": "unknown_type", "message": f"unknown message type {msg_type!r}"})

        except CountdownError as e:
            await websocket.send_json({"type": "error", **e.to_dict()})
        except (TypeError, ValueError) as e:
            await websocket.send_json({"type": "error", "code": "invalid_message", "message": str(e)})


async def websocket_endpoint(websocket: WebSocket, manager: WebSocketManager):
    await manager.connect(websocket)
    try:
        while True:
            data = await websocket.receive_text()
            await manager.handle_message(websocket, data)
    except WebSocketDisconnect:
        manager.disconnect(websocket)
