from __future__ import annotations

import base64
import logging
from dataclasses import dataclass
from email.message import EmailMessage
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

from google.auth.exceptions import RefreshError
from google.auth.transport.requests import Request
from google.oauth2.credentials import Credentials
from google_auth_oauthlib.flow import InstalledAppFlow
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError

from inbox_triage.errors import ProviderAuthError, ProviderError

logger = logging.getLogger(__name__)

# Labeling and drafting need modify + compose, nothing here ever sends mail.
SCOPES = [
    "https://www.googleapis.com/auth/gmail.modify",
    "https://www.googleapis.com/auth/gmail.compose",
]


@dataclass(frozen=True)
class GmailClientConfig:
    # Path to OAuth client credentials downloaded from Google Cloud Console.
    credentials_path: Path
    # Token cache, written by the authorize step.
    token_path: Path
    # Gmail userId, "me" refers to the authenticated user.
    user_id: str = "me"


def _execute(request: Any, what: str) -> Any:
    """Run a googleapiclient request and translate failures into our error kinds."""
    try:
        return request.execute()
    except RefreshError as exc:
        raise ProviderAuthError(f"{what}: Gmail authentication failed. Please reconnect your account.") from exc
    except HttpError as exc:
        status = getattr(exc.resp, "status", None)
        try:
            status = int(status) if status is not None else None
        except (TypeError, ValueError):
            status = None
        if status == 401:
            raise ProviderAuthError(
                f"{what}: Gmail authentication failed. Please reconnect your account.", status=status
            ) from exc
        raise ProviderError(f"{what}: Gmail error {status}: {exc}", status=status) from exc
    except OSError as exc:
        raise ProviderError(f"{what}: {type(exc).__name__}: {exc}") from exc


class GmailClient:
    def __init__(self, cfg: GmailClientConfig):
        self._cfg = cfg
        self._creds: Optional[Credentials] = None
        self._service = None

    def connect(self, *, interactive: bool = False) -> None:
        """
        Create an authenticated Gmail API service client.

        Only the stored token is used unless interactive=True, in which case the
        installed-app login flow runs when no usable token exists.
        """
        creds = None

        if self._cfg.token_path.exists():
            creds = Credentials.from_authorized_user_file(str(self._cfg.token_path), SCOPES)

        if not creds or not creds.valid:
            if creds and creds.expired and creds.refresh_token:
                try:
                    creds.refresh(Request())
                except RefreshError as exc:
                    raise ProviderAuthError(
                        "Gmail authentication failed. Please reconnect your account."
                    ) from exc
            elif interactive:
                flow = InstalledAppFlow.from_client_secrets_file(
                    str(self._cfg.credentials_path),
                    SCOPES,
                )
                creds = flow.run_local_server(port=0)
            else:
                raise ProviderAuthError(
                    f"No usable Gmail token at {self._cfg.token_path}. "
                    "Run the monitor with --authorize to connect your account."
                )

            # Save the credentials for the next run.
            self._cfg.token_path.parent.mkdir(parents=True, exist_ok=True)
            self._cfg.token_path.write_text(creds.to_json(), encoding="utf-8")

        self._creds = creds
        self._service = build("gmail", "v1", credentials=creds, cache_discovery=False)
        logger.debug("[GMAIL] connected user_id=%s", self._cfg.user_id)

    @property
    def service(self):
        if self._service is None:
            raise RuntimeError("GmailClient is not connected. Call connect() first.")
        return self._service

    def list_messages(self, query: str = "", max_results: int = 50) -> List[str]:
        """
        List message IDs matching a Gmail search query.
        Example query: 'in:inbox category:primary -in:sent after:1700000000'
        """
        resp = _execute(
            self.service.users()
            .messages()
            .list(userId=self._cfg.user_id, q=query, maxResults=max_results),
            "list_messages",
        )
        msgs = resp.get("messages", [])
        return [m["id"] for m in msgs]

    def get_message(self, message_id: str, fmt: str = "full") -> Dict[str, Any]:
        """
        Fetch a full message resource.
        fmt: 'full' | 'metadata' | 'minimal' | 'raw'
        """
        return _execute(
            self.service.users()
            .messages()
            .get(userId=self._cfg.user_id, id=message_id, format=fmt),
            f"get_message {message_id}",
        )

    def modify_labels(
        self,
        message_id: str,
        add: Sequence[str] = (),
        remove: Sequence[str] = (),
    ) -> Dict[str, Any]:
        body = {"addLabelIds": list(add), "removeLabelIds": list(remove)}
        return _execute(
            self.service.users()
            .messages()
            .modify(userId=self._cfg.user_id, id=message_id, body=body),
            f"modify_labels {message_id}",
        )

    def trash_message(self, message_id: str) -> Dict[str, Any]:
        return _execute(
            self.service.users().messages().trash(userId=self._cfg.user_id, id=message_id),
            f"trash_message {message_id}",
        )

    def list_labels(self) -> List[Dict[str, Any]]:
        resp = _execute(
            self.service.users().labels().list(userId=self._cfg.user_id),
            "list_labels",
        )
        return list(resp.get("labels", []))

    def create_label(self, name: str) -> str:
        """Create a user label and return the provider-assigned id."""
        body = {
            "name": name,
            "labelListVisibility": "labelShow",
            "messageListVisibility": "show",
        }
        resp = _execute(
            self.service.users().labels().create(userId=self._cfg.user_id, body=body),
            f"create_label {name!r}",
        )
        label_id = resp.get("id")
        if not label_id:
            raise ProviderError(f"Gmail did not return a label id for {name!r}")
        return str(label_id)

    def create_draft(self, thread_id: Optional[str], message: EmailMessage) -> str:
        """Store a draft (never sent). Returns the draft id."""
        raw = base64.urlsafe_b64encode(message.as_bytes()).decode("ascii")
        draft_message: Dict[str, Any] = {"raw": raw}
        if thread_id:
            draft_message["threadId"] = thread_id
        resp = _execute(
            self.service.users()
            .drafts()
            .create(userId=self._cfg.user_id, body={"message": draft_message}),
            "create_draft",
        )
        return str(resp.get("id") or "")

    def get_profile(self) -> Dict[str, Any]:
        """Get the Gmail profile of the authenticated user."""
        return _execute(
            self.service.users().getProfile(userId=self._cfg.user_id),
            "get_profile",
        )
