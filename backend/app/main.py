# backend/app/main.py
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from backend.app.api.automations import router as automations_router
from backend.app.api.labels import router as labels_router
from backend.app.api.messages import router as messages_router
from backend.app.api.monitor import router as monitor_router
from inbox_triage.errors import ConfigError, ProviderAuthError, ProviderError

app = FastAPI(title="inbox-triage API")
app.include_router(messages_router, prefix="/api")
app.include_router(labels_router, prefix="/api")
app.include_router(automations_router, prefix="/api")
app.include_router(monitor_router, prefix="/api")


@app.exception_handler(ProviderAuthError)
async def provider_auth_error(_request: Request, exc: ProviderAuthError) -> JSONResponse:
    # Distinct from other failures: the client has to prompt a reconnect.
    return JSONResponse(
        status_code=401,
        content={"ok": False, "detail": {"code": "reconnect_required", "message": str(exc)}},
    )


@app.exception_handler(ProviderError)
async def provider_error(_request: Request, exc: ProviderError) -> JSONResponse:
    return JSONResponse(
        status_code=502,
        content={"ok": False, "detail": {"code": "provider_error", "message": str(exc)}},
    )


@app.exception_handler(ConfigError)
async def config_error(_request: Request, exc: ConfigError) -> JSONResponse:
    return JSONResponse(
        status_code=500,
        content={"ok": False, "detail": {"code": "config_error", "message": str(exc)}},
    )
