from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional


@dataclass(eq=False)
class CountdownError(Exception):
    code: str
    message: str
    details: Optional[Dict[str, Any]] = None

    def __str__(self) -> str:
        return self.message

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"code": self.code, "message": self.message}
        if self.details:
            payload["details"] = self.details
        return payload


class InvalidConfig(CountdownError):
    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__("invalid_config", message, details)


class AlreadyRunning(CountdownError):
    def __init__(self, message: str = "countdown already running", details: Optional[Dict[str, Any]] = None):
        super().__init__("already_running", message, details)


class NotificationFailure(CountdownError):
    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__("notification_failure", message, details)


class ChannelUnavailable(CountdownError):
    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__("channel_unavailable", message, details)
