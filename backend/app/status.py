from __future__ import annotations

from dataclasses import dataclass, field
from threading import Lock
from time import time
from typing import Any, Dict, Optional, List

# Newest entries first, capped so the status response stays small.
RECENT_LIMIT = 50


@dataclass
class MonitorStatus:
    state: str = "idle"
    step: str = "idle"
    detail: Optional[str] = None
    metrics: Dict[str, Any] = field(default_factory=dict)
    recent_actions: List[Dict[str, Any]] = field(default_factory=list)
    # Keep a small rolling window of recent errors for UI visibility.
    recent_errors: List[Dict[str, Any]] = field(default_factory=list)
    updated_at: float = field(default_factory=time)


class MonitorStatusStore:
    def __init__(self) -> None:
        self._lock = Lock()
        self._status = MonitorStatus()

    def update(self, **fields: Any) -> None:
        # Lock ensures polling clients see consistent snapshots across threads.
        with self._lock:
            for key, value in fields.items():
                if hasattr(self._status, key):
                    setattr(self._status, key, value)
            self._status.updated_at = time()

    def push(self, kind: str, entry: Dict[str, Any]) -> None:
        """Prepend to recent_actions or recent_errors."""
        with self._lock:
            current = getattr(self._status, kind)
            setattr(self._status, kind, ([entry] + current)[:RECENT_LIMIT])
            self._status.updated_at = time()

    def snapshot(self) -> Dict[str, Any]:
        # Return a copy to avoid mutation by callers.
        with self._lock:
            return {
                "state": self._status.state,
                "step": self._status.step,
                "detail": self._status.detail,
                "metrics": dict(self._status.metrics),
                "recent_actions": list(self._status.recent_actions),
                "recent_errors": list(self._status.recent_errors),
                "updated_at": self._status.updated_at,
            }

    def progress_cb(self, step: str, event: Dict[str, Any]) -> None:
        """Monitor progress callback: mirrors pass events into the status."""
        state = "done" if step == "done" else "error" if step == "error" else "running"
        status_update: Dict[str, Any] = {
            "state": state,
            "step": step,
            "detail": event.get("detail"),
        }
        if "metrics" in event:
            status_update["metrics"] = event.get("metrics") or {}
        self.update(**status_update)

        action = event.get("action")
        if action:
            self.push("recent_actions", action)
        error = event.get("error")
        if error:
            self.push("recent_errors", error)


monitor_status_store = MonitorStatusStore()
