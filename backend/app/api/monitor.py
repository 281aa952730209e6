# backend/app/api/monitor.py
from dataclasses import asdict

from fastapi import APIRouter, Depends, HTTPException
from starlette.concurrency import run_in_threadpool

from backend.app.deps import get_service
from backend.app.status import monitor_status_store
from inbox_triage.app.service import TriageService

router = APIRouter()


@router.post("/monitor/run")
async def run_pass(service: TriageService = Depends(get_service)) -> dict:
    monitor_status_store.update(state="running", step="starting", detail="Starting pass", metrics={})

    # Run blocking Gmail processing in a worker thread so FastAPI stays responsive.
    try:
        summary = await run_in_threadpool(service.monitor.check_once, service.account)
    except Exception as exc:
        monitor_status_store.update(state="error", step="error", detail=str(exc))
        raise
    if summary is None:
        raise HTTPException(status_code=409, detail="A monitor pass is already running.")
    return {"ok": True, "summary": asdict(summary)}


@router.get("/monitor/status")
async def monitor_status() -> dict:
    return {"ok": True, "status": monitor_status_store.snapshot()}
