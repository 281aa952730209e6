from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from backend.app.deps import get_service
from inbox_triage.app.service import TriageService
from inbox_triage.gmail.label_colors import DEFAULT_COLOR_TAG, LABEL_COLORS
from inbox_triage.models import to_dict

router = APIRouter()


class CreateLabelRequest(BaseModel):
    name: str
    color_tag: str = DEFAULT_COLOR_TAG


@router.get("/labels")
def list_labels(service: TriageService = Depends(get_service)) -> dict:
    labels = service.registry.list_labels()
    return {"ok": True, "labels": [to_dict(label) for label in labels]}


@router.post("/labels")
def create_label(payload: CreateLabelRequest, service: TriageService = Depends(get_service)) -> dict:
    name = payload.name.strip()
    if not name:
        raise HTTPException(status_code=400, detail="Label name must not be empty.")
    if payload.color_tag not in LABEL_COLORS:
        raise HTTPException(status_code=400, detail=f"Unknown color tag: {payload.color_tag}")
    label = service.registry.create_label(name, color_tag=payload.color_tag)
    return {"ok": True, "label": to_dict(label)}
