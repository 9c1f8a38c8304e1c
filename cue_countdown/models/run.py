from datetime import datetime, timezone
from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class RunState(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    FINISHED = "finished"


class RunConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    total_seconds: int


class ExternalMessage(BaseModel):
    message: str
    received_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class CountdownStatus(BaseModel):
    """Snapshot of the controller pushed to clients and returned by /status."""

    state: RunState
    time_remaining: int
    display: str  # MM:SS
    progress: float
    total_seconds: int
    duration_minutes: int
    selection: List[str]
    schedule: Dict[str, int]
    fired: List[str]


def format_time(seconds: int) -> str:
    """Format seconds as MM:SS (minutes are not wrapped at 60)."""
    seconds = max(0, int(seconds))
    return f"{seconds // 60:02d}:{seconds % 60:02d}"


class StartRequest(BaseModel):
    """Start command body shared by the HTTP route and the websocket."""

    cues: Optional[List[str]] = None
    minutes: Optional[int] = None
    total_seconds: Optional[int] = None

    def resolved_total_seconds(self) -> Optional[int]:
        if self.total_seconds is None and self.minutes is not None:
            return self.minutes * 60
        return self.total_seconds
