from __future__ import annotations

from typing import Literal, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from backend.app.deps import get_service
from inbox_triage.actions.executor import ActionExecutor
from inbox_triage.actions.handlers import ActionContext
from inbox_triage.app.service import TriageService
from inbox_triage.models import EmailAction, to_dict

router = APIRouter()


class LabelChangeRequest(BaseModel):
    action: Literal["add", "remove"]
    # Provider label id, e.g. "Label_12".
    label_id: str


class ActionRequest(BaseModel):
    action: EmailAction
    reply_body: Optional[str] = None


@router.get("/messages")
def list_messages(max_results: int = 25, service: TriageService = Depends(get_service)) -> dict:
    if max_results < 1 or max_results > 500:
        raise HTTPException(status_code=400, detail="max_results must be between 1 and 500")
    emails = service.ingestion.fetch_messages(max_results=max_results)
    return {"ok": True, "messages": [to_dict(email) for email in emails]}


@router.post("/messages/{message_id}/labels")
def change_label(
    message_id: str,
    payload: LabelChangeRequest,
    service: TriageService = Depends(get_service),
) -> dict:
    if payload.action == "add":
        service.client.modify_labels(message_id, add=[payload.label_id])
    else:
        service.client.modify_labels(message_id, remove=[payload.label_id])
    return {"ok": True, "message_id": message_id, "action": payload.action, "label_id": payload.label_id}


@router.post("/messages/{message_id}/actions")
def execute_action(
    message_id: str,
    payload: ActionRequest,
    service: TriageService = Depends(get_service),
) -> dict:
    if payload.action not in service.executor.handlers:
        raise HTTPException(status_code=400, detail=f"Action {payload.action.value} is not supported")

    email = service.ingestion.fetch_full_message(message_id)
    # User-triggered actions surface their errors instead of only logging them.
    executor = ActionExecutor(handlers=service.executor.handlers, continue_on_error=False)
    context = ActionContext(account=service.account, reply_body=payload.reply_body, reason="user request")
    try:
        executor.run(service.client, email, payload.action, context)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return {"ok": True, "message_id": message_id, "action": payload.action.value}
