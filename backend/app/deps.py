from __future__ import annotations

from threading import Lock
from typing import Optional

from backend.app.status import monitor_status_store
from inbox_triage.app.service import TriageService, build_service
from inbox_triage.config.settings import load_settings

_service: Optional[TriageService] = None
_service_lock = Lock()


def get_service() -> TriageService:
    """Build the process-wide service on first use and hand out the same one afterwards."""
    global _service
    with _service_lock:
        if _service is None:
            _service = build_service(load_settings(), progress_cb=monitor_status_store.progress_cb)
        return _service
