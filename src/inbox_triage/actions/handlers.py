from __future__ import annotations

import logging
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from email.message import EmailMessage
from typing import Optional

from inbox_triage.gmail.client import GmailClient
from inbox_triage.models import Email, Label, MailAccount
from inbox_triage.parsing.parser import message_id_header

logger = logging.getLogger(__name__)

NO_SUBJECT = "(no subject)"


@dataclass(frozen=True)
class ActionContext:
    account: MailAccount
    # Body for REPLY drafts, falls back to the email's suggested response.
    reply_body: Optional[str] = None
    reason: str = ""


def as_reply_subject(subject: str) -> str:
    cleaned = (subject or "").strip()
    if not cleaned:
        return f"Re: {NO_SUBJECT}"
    # Collapse any chain of reply prefixes ("Re: AW: ...") into a single "Re:".
    tail = re.sub(r"^(?:(?:re|aw|sv)\s*:\s*)+", "", cleaned, flags=re.IGNORECASE).strip()
    return f"Re: {tail or NO_SUBJECT}"


def build_reply(email: Email, account: MailAccount, body: str) -> EmailMessage:
    msg = EmailMessage()
    msg["From"] = account.email
    msg["To"] = email.headers.get("Reply-To") or email.sender
    msg["Subject"] = as_reply_subject(email.subject)
    original_id = message_id_header(email.headers)
    if original_id:
        msg["In-Reply-To"] = original_id
        msg["References"] = original_id
    msg.set_content(body)
    return msg


class ActionHandler(ABC):
    @abstractmethod
    def handle(self, client: GmailClient, email: Email, context: ActionContext) -> None:
        """Execute one action."""
        ...


class DraftReplyHandler(ActionHandler):
    def handle(self, client: GmailClient, email: Email, context: ActionContext) -> None:
        body = context.reply_body if context.reply_body is not None else email.suggested_response
        if not body or not body.strip():
            raise ValueError("REPLY requires a reply body")

        msg = build_reply(email, context.account, body)
        draft_id = client.create_draft(email.thread_id, msg)
        logger.info(
            "[DRAFT] message_id=%s thread_id=%s draft_id=%s reason=%s",
            email.id,
            email.thread_id,
            draft_id,
            context.reason,
        )


class AddSystemLabelHandler(ActionHandler):
    def __init__(self, label_id: str, tag: str):
        self.label_id = label_id
        self.tag = tag

    def handle(self, client: GmailClient, email: Email, context: ActionContext) -> None:
        client.modify_labels(email.id, add=[self.label_id])
        # System labels are named after their id.
        email.add_label(Label.from_provider(self.label_id, name=self.label_id))
        logger.info("[%s] message_id=%s reason=%s", self.tag, email.id, context.reason)


class ArchiveHandler(ActionHandler):
    def handle(self, client: GmailClient, email: Email, context: ActionContext) -> None:
        client.modify_labels(email.id, remove=["INBOX"])
        email.remove_label("INBOX")
        logger.info("[ARCHIVE] message_id=%s reason=%s", email.id, context.reason)


class TrashHandler(ActionHandler):
    def handle(self, client: GmailClient, email: Email, context: ActionContext) -> None:
        client.trash_message(email.id)
        logger.info("[TRASH] message_id=%s reason=%s", email.id, context.reason)
