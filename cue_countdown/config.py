"""Runtime configuration for the cue countdown service."""

import os
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, Field

ENV_PREFIX = "CUE_COUNTDOWN_"


def _env(name: str, default: str) -> str:
    return os.getenv(f"{ENV_PREFIX}{name}", default)


class Settings(BaseModel):
    """Service settings. Every field can be overridden from the environment."""

    # Server
    host: str = Field(default="0.0.0.0")
    port: int = Field(default=5001)

    # Sounds
    sounds_dir: Path = Field(default=Path("sounds"))
    sounds_url: str = Field(default="/sounds")
    main_track: str = Field(default="main-track.mp3")

    # Countdown
    tick_seconds: float = Field(default=1.0, gt=0)
    default_minutes: int = Field(default=60, gt=0)
    trace_ticks: bool = Field(default=False)

    # External push channel (Server-Sent Events). Disabled when unset.
    events_url: Optional[str] = Field(default=None)
    events_name: str = Field(default="trap")
    reconnect_delay: float = Field(default=1.0, gt=0)
    reconnect_max_delay: float = Field(default=30.0, gt=0)

    # Logging
    log_level: str = Field(default="INFO")
    log_file: Optional[Path] = Field(default=None)

    @classmethod
    def from_env(cls) -> "Settings":
        """Create settings from environment variables."""
        log_file = _env("LOG_FILE", "")
        return cls(
            host=_env("HOST", "0.0.0.0"),
            port=int(_env("PORT", "5001")),
            sounds_dir=Path(_env("SOUNDS_DIR", "sounds")),
            sounds_url=_env("SOUNDS_URL", "/sounds"),
            main_track=_env("MAIN_TRACK", "main-track.mp3"),
            tick_seconds=float(_env("TICK_SECONDS", "1.0")),
            default_minutes=int(_env("DEFAULT_MINUTES", "60")),
            trace_ticks=_env("TRACE_TICKS", "0").strip().lower() in {"1", "true", "yes", "on"},
            events_url=_env("EVENTS_URL", "") or None,
            events_name=_env("EVENTS_NAME", "trap"),
            reconnect_delay=float(_env("RECONNECT_DELAY", "1.0")),
            reconnect_max_delay=float(_env("RECONNECT_MAX_DELAY", "30.0")),
            log_level=_env("LOG_LEVEL", "INFO").upper(),
            log_file=Path(log_file) if log_file else None,
        )
