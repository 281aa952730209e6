from __future__ import annotations

import base64
import copy
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

import pytest

from inbox_triage.app.service import TriageService, build_service
from inbox_triage.config.settings import Settings
from inbox_triage.models import MailAccount

SYSTEM_LABELS = [
    "INBOX",
    "SENT",
    "IMPORTANT",
    "UNREAD",
    "DRAFT",
    "SPAM",
    "TRASH",
    "STARRED",
    "CATEGORY_PERSONAL",
    "CATEGORY_SOCIAL",
    "CATEGORY_PROMOTIONS",
    "CATEGORY_UPDATES",
]

CLASSIFIER_REPLY = """Summary: Customer asks for an invoice copy.
Suggested action: REPLY
Category: FOLLOW_UP
Importance: MEDIUM
Confidence: 0.8
Label: NONE
Suggested response: Sure, attached is the invoice."""


def encode(text: str) -> str:
    return base64.urlsafe_b64encode(text.encode("utf-8")).decode("ascii").rstrip("=")


class FakeGmailClient:
    """In-memory stand-in for GmailClient. Records every side effect."""

    def __init__(self) -> None:
        self.messages: Dict[str, Dict[str, Any]] = {}
        self.labels: List[Dict[str, Any]] = [{"id": lid, "name": lid, "type": "system"} for lid in SYSTEM_LABELS]
        self.list_queries: List[str] = []
        self.modify_calls: List[tuple] = []
        self.created_labels: List[str] = []
        self.drafts: List[tuple] = []
        self.trashed: List[str] = []
        # Every remote side effect, in call order.
        self.events: List[tuple] = []
        self.fail_get: Dict[str, Exception] = {}
        self.fail_modify: Dict[str, Exception] = {}
        self.fail_list: Optional[Exception] = None
        self._next_label = 1

    def add_user_label(self, name: str, color: Optional[str] = None) -> str:
        label_id = f"Label_{self._next_label}"
        self._next_label += 1
        raw: Dict[str, Any] = {"id": label_id, "name": name, "type": "user"}
        if color:
            raw["color"] = {"backgroundColor": color, "textColor": "#000000"}
        self.labels.append(raw)
        return label_id

    def list_messages(self, query: str = "", max_results: int = 50) -> List[str]:
        self.list_queries.append(query)
        if self.fail_list is not None:
            raise self.fail_list
        return list(self.messages)[:max_results]

    def get_message(self, message_id: str, fmt: str = "full") -> Dict[str, Any]:
        if message_id in self.fail_get:
            raise self.fail_get[message_id]
        return copy.deepcopy(self.messages[message_id])

    def modify_labels(self, message_id: str, add=(), remove=()) -> Dict[str, Any]:
        for label_id in list(add) + list(remove):
            if label_id in self.fail_modify:
                raise self.fail_modify[label_id]
        self.modify_calls.append((message_id, list(add), list(remove)))
        self.events.append(("modify", message_id, list(add), list(remove)))
        raw = self.messages.get(message_id)
        if raw is not None:
            ids = [lid for lid in raw.get("labelIds", []) if lid not in remove]
            ids += [lid for lid in add if lid not in ids]
            raw["labelIds"] = ids
        return {}

    def trash_message(self, message_id: str) -> Dict[str, Any]:
        self.trashed.append(message_id)
        return {}

    def list_labels(self) -> List[Dict[str, Any]]:
        return copy.deepcopy(self.labels)

    def create_label(self, name: str) -> str:
        self.created_labels.append(name)
        return self.add_user_label(name)

    def create_draft(self, thread_id, message) -> str:
        self.drafts.append((thread_id, message))
        self.events.append(("draft", thread_id))
        return f"draft-{len(self.drafts)}"

    def get_profile(self) -> Dict[str, Any]:
        return {"emailAddress": "me@example.com"}

    def labels_added_to(self, message_id: str) -> List[str]:
        return [lid for mid, add, _remove in self.modify_calls if mid == message_id for lid in add]


class ScriptedModel:
    """LanguageModel returning canned text, or raising the configured error."""

    def __init__(self, reply: str = CLASSIFIER_REPLY, error: Optional[Exception] = None) -> None:
        self.reply = reply
        self.error = error
        self.prompts: List[str] = []

    def generate(self, prompt: str) -> str:
        self.prompts.append(prompt)
        if self.error is not None:
            raise self.error
        return self.reply


@pytest.fixture
def fake_gmail() -> FakeGmailClient:
    return FakeGmailClient()


@pytest.fixture
def model() -> ScriptedModel:
    return ScriptedModel()


@pytest.fixture
def account() -> MailAccount:
    return MailAccount(email="me@example.com", display_name="Alex Morgan")


@pytest.fixture
def raw_message(fake_gmail: FakeGmailClient) -> Callable[..., Dict[str, Any]]:
    """Build a Gmail 'full' message resource and register it with the fake client."""

    def _make(
        message_id: str,
        *,
        sender: str = "Bob Stone <bob@acme.example>",
        subject: str = "Hello",
        body: str = "Just checking in.",
        to: str = "me@example.com",
        label_ids: Optional[List[str]] = None,
        thread_id: Optional[str] = None,
        internal_date_ms: int = 1_700_000_000_000,
        register: bool = True,
    ) -> Dict[str, Any]:
        raw = {
            "id": message_id,
            "threadId": thread_id or f"thread-{message_id}",
            "labelIds": list(label_ids if label_ids is not None else ["INBOX", "UNREAD", "CATEGORY_PERSONAL"]),
            "internalDate": str(internal_date_ms),
            "payload": {
                "mimeType": "multipart/alternative",
                "headers": [
                    {"name": "From", "value": sender},
                    {"name": "To", "value": to},
                    {"name": "Subject", "value": subject},
                    {"name": "Message-ID", "value": f"<{message_id}@mail.example>"},
                ],
                "body": {"size": 0},
                "parts": [
                    {"mimeType": "text/plain", "body": {"data": encode(body)}},
                    {"mimeType": "text/html", "body": {"data": encode(f"<p>{body}</p>")}},
                ],
            },
        }
        if register:
            fake_gmail.messages[message_id] = raw
        return raw

    return _make


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    return Settings(
        openai_api_key="test-key",
        credentials_path=tmp_path / "credentials.json",
        token_path=tmp_path / "gmail_token.json",
        rules_path=tmp_path / "automations.json",
        my_name="Alex",
    )


@pytest.fixture
def service(settings: Settings, fake_gmail: FakeGmailClient, model: ScriptedModel, account: MailAccount) -> TriageService:
    return build_service(settings, client=fake_gmail, model=model, account=account)
