from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict

from inbox_triage.actions.handlers import (
    ActionContext,
    ActionHandler,
    AddSystemLabelHandler,
    ArchiveHandler,
    DraftReplyHandler,
    TrashHandler,
)
from inbox_triage.errors import ProviderAuthError
from inbox_triage.gmail.client import GmailClient
from inbox_triage.models import Email, EmailAction

logger = logging.getLogger(__name__)


@dataclass
class ActionExecutor:
    handlers: Dict[EmailAction, ActionHandler]
    dry_run: bool = False
    continue_on_error: bool = True

    def run(self, client: GmailClient, email: Email, action: EmailAction, context: ActionContext) -> bool:
        """Run one action. Returns True when a handler actually ran."""
        handler = self.handlers.get(action)
        if not handler:
            logger.warning("[WARN] No handler registered for action type: %s", action.value)
            return False

        if self.dry_run:
            logger.info(
                "[DRY-RUN] would run type=%s message_id=%s reason=%s",
                action.value,
                email.id,
                context.reason,
            )
            return False

        try:
            handler.handle(client, email, context)
        except ProviderAuthError:
            raise
        except Exception as e:
            logger.error(
                "[ERROR] Action failed type=%s message_id=%s reason=%s err=%s",
                action.value,
                email.id,
                context.reason,
                e,
            )
            if not self.continue_on_error:
                raise
            return False
        return True


def default_executor(*, dry_run: bool = False, continue_on_error: bool = True) -> ActionExecutor:
    return ActionExecutor(
        handlers={
            EmailAction.REPLY: DraftReplyHandler(),
            EmailAction.MARK_IMPORTANT: AddSystemLabelHandler("IMPORTANT", "IMPORTANT"),
            EmailAction.FLAG: AddSystemLabelHandler("STARRED", "FLAG"),
            EmailAction.ARCHIVE: ArchiveHandler(),
            EmailAction.DELETE: TrashHandler(),
        },
        dry_run=dry_run,
        continue_on_error=continue_on_error,
    )
