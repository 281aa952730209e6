from __future__ import annotations

import uuid
from dataclasses import dataclass, field, fields, is_dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional


class EmailAction(str, Enum):
    REPLY = "REPLY"
    FORWARD = "FORWARD"
    ARCHIVE = "ARCHIVE"
    DELETE = "DELETE"
    FLAG = "FLAG"
    MARK_IMPORTANT = "MARK_IMPORTANT"
    NONE = "NONE"


class EmailCategory(str, Enum):
    URGENT = "URGENT"
    IMPORTANT = "IMPORTANT"
    FOLLOW_UP = "FOLLOW_UP"
    NEWSLETTER = "NEWSLETTER"
    PROMOTIONAL = "PROMOTIONAL"
    SPAM = "SPAM"
    OTHER = "OTHER"


class EmailImportance(str, Enum):
    HIGH = "HIGH"
    MEDIUM = "MEDIUM"
    LOW = "LOW"


# Fixed namespace so the same provider label always maps to the same local id.
_LABEL_NAMESPACE = uuid.UUID("5f1d7c1e-3b8a-4c1e-9a55-2f0c4e6d8b10")


def local_label_id(provider_label_id: str) -> str:
    return str(uuid.uuid5(_LABEL_NAMESPACE, provider_label_id))


@dataclass(frozen=True)
class Label:
    id: str
    name: str
    color_tag: str = "bg-gray-100"
    # Join key against provider data. None until the label exists remotely.
    provider_label_id: Optional[str] = None

    @classmethod
    def from_provider(cls, provider_label_id: str, name: str, color_tag: str = "bg-gray-100") -> "Label":
        return cls(
            id=local_label_id(provider_label_id),
            name=name,
            color_tag=color_tag,
            provider_label_id=provider_label_id,
        )


@dataclass(frozen=True)
class ClassificationResult:
    summary: str = ""
    suggested_action: EmailAction = EmailAction.NONE
    category: EmailCategory = EmailCategory.OTHER
    importance: EmailImportance = EmailImportance.LOW
    confidence: float = 0.0
    suggested_response: Optional[str] = None
    suggested_label: Optional[Label] = None


@dataclass
class Email:
    id: str
    thread_id: Optional[str]
    sender: str
    to: List[str]
    subject: str
    body: str
    timestamp: datetime
    read: bool = False
    labels: List[Label] = field(default_factory=list)
    category: Optional[EmailCategory] = None
    importance: EmailImportance = EmailImportance.MEDIUM
    ai_summary: Optional[str] = None
    suggested_action: Optional[EmailAction] = None
    suggested_response: Optional[str] = None
    handled: bool = False
    headers: Dict[str, str] = field(default_factory=dict)
    # Raw provider label ids, including system labels like INBOX.
    label_ids: List[str] = field(default_factory=list)

    def has_label(self, label: Label) -> bool:
        return any(
            existing.provider_label_id == label.provider_label_id
            for existing in self.labels
        )

    def add_label(self, label: Label) -> bool:
        """Attach a label locally. Returns False if it was already present."""
        if label.provider_label_id is None:
            raise ValueError(f"Label {label.name!r} has no provider id yet")
        if self.has_label(label):
            return False
        self.labels.append(label)
        if label.provider_label_id not in self.label_ids:
            self.label_ids.append(label.provider_label_id)
        return True

    def remove_label(self, provider_label_id: str) -> None:
        self.labels = [lbl for lbl in self.labels if lbl.provider_label_id != provider_label_id]
        if provider_label_id in self.label_ids:
            self.label_ids.remove(provider_label_id)

    def apply_classification(self, result: ClassificationResult) -> None:
        self.category = result.category
        self.importance = result.importance
        self.ai_summary = result.summary
        self.suggested_action = result.suggested_action
        self.suggested_response = result.suggested_response


@dataclass
class AutomationRule:
    id: str
    label: Label
    action: EmailAction
    enabled: bool = True
    template: Optional[str] = None


@dataclass(frozen=True)
class MailAccount:
    email: str
    display_name: str = ""
    user_id: str = "me"


def to_dict(obj: Any) -> Any:
    """Convert models into JSON-ready structures (enums by value, ISO datetimes)."""
    if isinstance(obj, Enum):
        return obj.value
    if isinstance(obj, datetime):
        return obj.isoformat()
    if is_dataclass(obj) and not isinstance(obj, type):
        return {f.name: to_dict(getattr(obj, f.name)) for f in fields(obj)}
    if isinstance(obj, dict):
        return {k: to_dict(v) for k, v in obj.items()}
    if isinstance(obj, (list, tuple, set)):
        return [to_dict(v) for v in obj]
    return obj


def label_from_dict(data: Dict[str, Any]) -> Label:
    # Tolerate both our own field names and the camelCase ones used by clients.
    provider_id = data.get("provider_label_id") or data.get("providerLabelId") or data.get("gmailLabelId")
    name = str(data.get("name") or data.get("displayName") or "").strip()
    color_tag = str(data.get("color_tag") or data.get("colorTag") or data.get("color") or "bg-gray-100")
    # Client-side ids are not ours, the provider id decides which label this is.
    label_id = local_label_id(str(provider_id)) if provider_id else data.get("id")
    return Label(
        id=str(label_id or ""),
        name=name,
        color_tag=color_tag,
        provider_label_id=str(provider_id) if provider_id else None,
    )


def parse_action(value: Any, default: EmailAction = EmailAction.NONE) -> EmailAction:
    if isinstance(value, EmailAction):
        return value
    try:
        return EmailAction(str(value or "").strip().upper())
    except ValueError:
        return default


def rule_from_dict(data: Dict[str, Any]) -> AutomationRule:
    template = data.get("template")
    return AutomationRule(
        id=str(data.get("id") or uuid.uuid4().hex),
        label=label_from_dict(data.get("label") or {}),
        action=parse_action(data.get("action")),
        enabled=bool(data.get("enabled", True)),
        template=str(template) if template is not None else None,
    )


def utc_from_millis(value: Any) -> datetime:
    try:
        millis = int(value or 0)
    except (TypeError, ValueError):
        millis = 0
    return datetime.fromtimestamp(millis / 1000, tz=timezone.utc)
