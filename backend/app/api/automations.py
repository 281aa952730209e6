from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from backend.app.deps import get_service
from inbox_triage.app.service import TriageService
from inbox_triage.gmail.label_colors import DEFAULT_COLOR_TAG
from inbox_triage.models import AutomationRule, EmailAction, rule_from_dict, to_dict

router = APIRouter()


class LabelPayload(BaseModel):
    id: str = ""
    name: str = ""
    color_tag: str = DEFAULT_COLOR_TAG
    provider_label_id: Optional[str] = None


class RulePayload(BaseModel):
    id: Optional[str] = None
    label: LabelPayload
    action: EmailAction
    enabled: bool = True
    template: Optional[str] = None


class RuleSetPayload(BaseModel):
    automations: List[RulePayload] = Field(default_factory=list)


def _to_rule(payload: RulePayload) -> AutomationRule:
    rule = rule_from_dict(payload.model_dump())
    if not rule.label.id and not rule.label.name:
        raise HTTPException(status_code=400, detail="Automation rules need a label id or name.")
    return rule


@router.get("/automations")
def get_automations(service: TriageService = Depends(get_service)) -> dict:
    return {"ok": True, "automations": [to_dict(r) for r in service.automation.get_rules()]}


@router.put("/automations")
def set_automations(payload: RuleSetPayload, service: TriageService = Depends(get_service)) -> dict:
    rules = service.set_rules([_to_rule(item) for item in payload.automations])
    return {"ok": True, "automations": [to_dict(r) for r in rules]}


@router.post("/automations")
def add_automation(payload: RulePayload, service: TriageService = Depends(get_service)) -> dict:
    # Creating a rule for an already-automated label replaces the old rule.
    rule = _to_rule(payload)
    service.add_rule(rule)
    return {"ok": True, "automation": to_dict(rule)}


@router.post("/automations/{rule_id}/toggle")
def toggle_automation(rule_id: str, service: TriageService = Depends(get_service)) -> dict:
    rule = service.automation.toggle_rule(rule_id)
    if rule is None:
        raise HTTPException(status_code=404, detail=f"Unknown automation: {rule_id}")
    service.persist_rules()
    return {"ok": True, "automation": to_dict(rule)}


@router.delete("/automations/{rule_id}")
def delete_automation(rule_id: str, service: TriageService = Depends(get_service)) -> dict:
    if not service.remove_rule(rule_id):
        raise HTTPException(status_code=404, detail=f"Unknown automation: {rule_id}")
    return {"ok": True}
