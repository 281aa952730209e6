from __future__ import annotations

import logging
import re
from typing import Dict, List, Optional, Protocol, Sequence, Type, TypeVar

from openai import OpenAI, OpenAIError

from inbox_triage.errors import ClassificationError
from inbox_triage.models import (
    ClassificationResult,
    Email,
    EmailAction,
    EmailCategory,
    EmailImportance,
    Label,
)

logger = logging.getLogger(__name__)

MAX_BODY_CHARS = 4000

SYSTEM_PROMPT = (
    "You triage incoming email for a busy professional. "
    "Answer ONLY with the requested lines, one field per line, in the given order."
)

PROMPT_TEMPLATE = """Analyze this email.

From: {sender}
Subject: {subject}
Body:
{body}

Available labels: {labels}

Respond with exactly these lines:
Summary: <one or two sentences>
Suggested action: <one of {actions}>
Category: <one of {categories}>
Importance: <one of {importances}>
Confidence: <number between 0 and 1>
Label: <exactly one of the available labels, or NONE>
Suggested response: <only if the action is REPLY, the reply text, otherwise NONE>
"""


class LanguageModel(Protocol):
    def generate(self, prompt: str) -> str: ...


class OpenAIModel:
    """LanguageModel backed by the OpenAI Responses API."""

    def __init__(
        self,
        api_key: str,
        model: str = "gpt-4.1-mini",
        timeout: float = 60.0,
        client: Optional[OpenAI] = None,
    ):
        # The timeout bounds every request so a hung call cannot stall a pass.
        self._client = client or OpenAI(api_key=api_key, timeout=timeout, max_retries=1)
        self._model = model

    def generate(self, prompt: str) -> str:
        try:
            resp = self._client.responses.create(
                model=self._model,
                input=[
                    {"role": "system", "content": SYSTEM_PROMPT},
                    {"role": "user", "content": prompt},
                ],
            )
        except OpenAIError as exc:
            raise ClassificationError(f"{type(exc).__name__}: {exc}") from exc
        return getattr(resp, "output_text", None) or ""


class EmailClassifier:
    def __init__(self, model: LanguageModel):
        self._model = model

    def build_prompt(self, email: Email, available_labels: Sequence[Label]) -> str:
        label_names = ", ".join(f'"{lbl.name}"' for lbl in available_labels) or "NONE"
        return PROMPT_TEMPLATE.format(
            sender=email.sender,
            subject=email.subject,
            body=(email.body or "")[:MAX_BODY_CHARS],
            labels=label_names,
            actions=", ".join(a.value for a in EmailAction),
            categories=", ".join(c.value for c in EmailCategory),
            importances=", ".join(i.value for i in EmailImportance),
        )

    def classify(self, email: Email, available_labels: Sequence[Label]) -> ClassificationResult:
        """One model call per invocation. Transport/model failures raise ClassificationError."""
        prompt = self.build_prompt(email, available_labels)
        try:
            text = self._model.generate(prompt)
        except ClassificationError:
            raise
        except Exception as exc:
            raise ClassificationError(f"{type(exc).__name__}: {exc}") from exc

        result = parse_classification(text, available_labels)
        logger.info(
            "[CLASSIFY] message_id=%s category=%s action=%s label=%s confidence=%.2f",
            email.id,
            result.category.value,
            result.suggested_action.value,
            result.suggested_label.name if result.suggested_label else None,
            result.confidence,
        )
        return result


# --- Parsing -----------------------------------------------------------------

# Checked in order: "Suggested response" must win over "action".
_FIELD_KEYWORDS = (
    ("response", "suggested_response"),
    ("action", "suggested_action"),
    ("summary", "summary"),
    ("category", "category"),
    ("importance", "importance"),
    ("confidence", "confidence"),
    ("label", "label"),
)

_LINE_PREFIX = re.compile(r"^\s*(?:#+\s*|\d+[.)]\s*|[-*•]\s*)*")
_EMPTY_VALUES = {"", "none", "null", "n/a", "na", "-", "no label", "no response"}
_MAX_KEY_LENGTH = 40
# Inside a multi-line response only these keys start a new field.
_EXACT_KEYS = {
    "summary",
    "action",
    "suggested action",
    "category",
    "importance",
    "confidence",
    "label",
    "suggested label",
    "response",
    "suggested response",
}

E = TypeVar("E", EmailAction, EmailCategory, EmailImportance)


def _split_field(line: str, exact: bool = False) -> Optional[tuple[str, str]]:
    cleaned = _LINE_PREFIX.sub("", line.replace("**", "").replace("__", ""))
    key, sep, value = cleaned.partition(":")
    if not sep or len(key) > _MAX_KEY_LENGTH:
        return None
    key = key.strip().lower()
    if exact and key not in _EXACT_KEYS:
        return None
    for keyword, field_name in _FIELD_KEYWORDS:
        if keyword in key:
            return field_name, value.strip()
    return None


def _match_enum(value: str, enum_cls: Type[E], default: E) -> E:
    # Exact-case tokens first so "NONE (no reply needed)" stays NONE.
    for flags in (0, re.IGNORECASE):
        for member in enum_cls:
            pattern = r"\b" + member.value.replace("_", r"[\s_-]*") + r"\b"
            if re.search(pattern, value or "", flags=flags):
                return member
    return default


def _parse_confidence(value: str) -> float:
    match = re.search(r"(\d+(?:\.\d+)?)\s*(%)?", value or "")
    if not match:
        return 0.0
    number = float(match.group(1))
    if match.group(2) or number > 1:
        number = number / 100
    return max(0.0, min(1.0, number))


def _resolve_label(value: str, available_labels: Sequence[Label]) -> Optional[Label]:
    name = (value or "").strip().strip("\"'`").strip().rstrip(".").strip()
    if not available_labels or name.lower() in _EMPTY_VALUES:
        return None
    wanted = name.lower()
    for label in available_labels:
        if label.name.strip().lower() == wanted:
            return label
    # "the Needs Action label" style answers: longest contained name wins.
    for label in sorted(available_labels, key=lambda lbl: len(lbl.name), reverse=True):
        if label.name.strip() and label.name.strip().lower() in wanted:
            return label
    return None


def parse_classification(text: str, available_labels: Sequence[Label]) -> ClassificationResult:
    """
    Recover a ClassificationResult from semi-structured model output.
    Never raises, missing or malformed fields fall back to defaults.
    """
    values: Dict[str, str] = {}
    response_lines: List[str] = []
    in_response = False

    for line in (text or "").splitlines():
        field = _split_field(line, exact=in_response)
        if field is None:
            if in_response:
                response_lines.append(line.rstrip())
            continue
        name, value = field
        in_response = name == "suggested_response"
        if in_response:
            response_lines = [value] if value else []
        elif name not in values:
            values[name] = value

    response = "\n".join(response_lines).strip()
    if response.lower() in _EMPTY_VALUES:
        response = ""

    return ClassificationResult(
        summary=values.get("summary", ""),
        suggested_action=_match_enum(values.get("suggested_action", ""), EmailAction, EmailAction.NONE),
        category=_match_enum(values.get("category", ""), EmailCategory, EmailCategory.OTHER),
        importance=_match_enum(values.get("importance", ""), EmailImportance, EmailImportance.LOW),
        confidence=_parse_confidence(values.get("confidence", "")),
        suggested_response=response or None,
        suggested_label=_resolve_label(values.get("label", ""), available_labels),
    )
