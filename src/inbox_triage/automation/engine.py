from __future__ import annotations

import logging
from threading import Lock
from typing import Iterable, List, Optional

from inbox_triage.actions.executor import ActionExecutor, default_executor
from inbox_triage.actions.handlers import ActionContext
from inbox_triage.automation.templates import (
    DEFAULT_REPLY_TEMPLATE,
    render_template,
    template_variables,
)
from inbox_triage.gmail.client import GmailClient
from inbox_triage.models import AutomationRule, Email, EmailAction, Label, MailAccount

logger = logging.getLogger(__name__)

# Automations may only draft replies or flag importance.
AUTOMATION_ACTIONS = frozenset({EmailAction.REPLY, EmailAction.MARK_IMPORTANT})


def _rule_key(label: Label) -> str:
    # Rules are keyed by label id. Legacy rules without an id fall back to the name.
    if label.id:
        return f"id:{label.id}"
    return f"name:{label.name.strip().lower()}"


class AutomationEngine:
    """In-memory working set of automation rules, plus their execution."""

    def __init__(
        self,
        client: GmailClient,
        executor: Optional[ActionExecutor] = None,
        my_name: str = "",
    ):
        self._client = client
        self._executor = executor or default_executor()
        self._my_name = my_name
        self._lock = Lock()
        self._rules: List[AutomationRule] = []

    # --- Rule store ---

    def set_rules(self, rules: Iterable[AutomationRule]) -> None:
        # One rule per label, the last one given wins.
        by_key = {}
        for rule in rules:
            by_key.pop(_rule_key(rule.label), None)
            by_key[_rule_key(rule.label)] = rule
        with self._lock:
            self._rules = list(by_key.values())
        logger.info("[AUTOMATION] rules loaded count=%d", len(by_key))

    def get_rules(self) -> List[AutomationRule]:
        with self._lock:
            return list(self._rules)

    def add_rule(self, rule: AutomationRule) -> None:
        """Add a rule, replacing any existing rule for the same label."""
        key = _rule_key(rule.label)
        with self._lock:
            self._rules = [r for r in self._rules if _rule_key(r.label) != key]
            self._rules.append(rule)

    def remove_rule(self, rule_id: str) -> bool:
        with self._lock:
            before = len(self._rules)
            self._rules = [r for r in self._rules if r.id != rule_id]
            return len(self._rules) != before

    def toggle_rule(self, rule_id: str) -> Optional[AutomationRule]:
        with self._lock:
            for rule in self._rules:
                if rule.id == rule_id:
                    rule.enabled = not rule.enabled
                    return rule
        return None

    # --- Matching / execution ---

    def match(self, label: Label) -> Optional[AutomationRule]:
        rules = [r for r in self.get_rules() if r.enabled]
        for rule in rules:
            if rule.label.id and rule.label.id == label.id:
                return rule
        # Legacy path: stored rules that only know the label's name.
        wanted = label.name.strip().lower()
        for rule in rules:
            if not rule.label.id and rule.label.name.strip().lower() == wanted:
                return rule
        return None

    def execute(self, rule: AutomationRule, email: Email, account: MailAccount) -> bool:
        if rule.action not in AUTOMATION_ACTIONS:
            logger.debug("[AUTOMATION] rule_id=%s action=%s is not automatable, skipped", rule.id, rule.action.value)
            return False

        reply_body = None
        if rule.action == EmailAction.REPLY:
            variables = template_variables(email, account, self._my_name)
            reply_body = render_template(rule.template or DEFAULT_REPLY_TEMPLATE, variables)

        context = ActionContext(
            account=account,
            reply_body=reply_body,
            reason=f"automation {rule.id} on label {rule.label.name!r}",
        )
        ran = self._executor.run(self._client, email, rule.action, context)
        if ran:
            email.handled = True
            logger.info(
                "[AUTOMATION] message_id=%s label=%s action=%s rule_id=%s",
                email.id,
                rule.label.name,
                rule.action.value,
                rule.id,
            )
        return ran
