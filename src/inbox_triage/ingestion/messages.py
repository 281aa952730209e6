from __future__ import annotations

import logging
from datetime import datetime
from typing import List, Optional

from inbox_triage.errors import ProviderAuthError, ProviderError
from inbox_triage.gmail.client import GmailClient
from inbox_triage.labels.registry import LabelRegistry
from inbox_triage.models import Email, utc_from_millis
from inbox_triage.parsing.parser import (
    extract_body_from_payload,
    headers_from_payload,
    split_recipients,
)

logger = logging.getLogger(__name__)

PRIMARY_CATEGORY = "CATEGORY_PERSONAL"


def build_query(since: Optional[datetime] = None) -> str:
    # Coarse pre-filter only, is_candidate() makes the final call after fetching.
    query = "in:inbox category:primary -in:sent -in:drafts"
    if since is not None:
        # Gmail "after:" expects seconds since epoch.
        query += f" after:{max(0, int(since.timestamp()))}"
    return query


def is_candidate(email: Email) -> bool:
    """Primary inbox mail only. Sent mail and drafts are never candidates."""
    label_ids = {lbl.upper() for lbl in email.label_ids}
    if "SENT" in label_ids or "DRAFT" in label_ids:
        return False
    categories = {lbl for lbl in label_ids if lbl.startswith("CATEGORY_")}
    # Mailboxes with inbox tabs disabled carry no category at all.
    return not categories or PRIMARY_CATEGORY in categories


class MessageIngestion:
    def __init__(self, client: GmailClient, registry: LabelRegistry):
        self._client = client
        self._registry = registry

    def list_candidate_messages(self, since: Optional[datetime] = None, max_results: int = 50) -> List[str]:
        return self._client.list_messages(query=build_query(since), max_results=max_results)

    def fetch_full_message(self, message_id: str) -> Email:
        # Pull full payload once so we can extract headers + body consistently.
        msg = self._client.get_message(message_id, fmt="full")
        payload = msg.get("payload", {}) or {}
        headers = headers_from_payload(payload)
        label_ids = [str(x) for x in (msg.get("labelIds") or [])]

        return Email(
            id=str(msg.get("id") or message_id),
            thread_id=msg.get("threadId"),
            sender=headers.get("From", ""),
            to=split_recipients(headers.get("To", "")),
            subject=headers.get("Subject", ""),
            body=extract_body_from_payload(payload),
            timestamp=utc_from_millis(msg.get("internalDate")),
            read="UNREAD" not in label_ids,
            labels=self._registry.map_provider_ids_to_labels(label_ids),
            headers=headers,
            label_ids=label_ids,
        )

    def fetch_messages(self, since: Optional[datetime] = None, max_results: int = 50) -> List[Email]:
        """List, fetch and filter. Messages that fail to load are logged and left out."""
        emails: List[Email] = []
        for message_id in self.list_candidate_messages(since=since, max_results=max_results):
            try:
                email = self.fetch_full_message(message_id)
            except ProviderAuthError:
                raise
            except ProviderError as exc:
                logger.warning("[SKIP] message_id=%s fetch failed: %s", message_id, exc)
                continue
            if is_candidate(email):
                emails.append(email)
        return emails
