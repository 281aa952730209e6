from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, List, Optional

from inbox_triage.actions.executor import ActionExecutor, default_executor
from inbox_triage.app.monitor import MailboxMonitor, ProgressCallback
from inbox_triage.automation.engine import AutomationEngine
from inbox_triage.classifier.analyzer import EmailClassifier, LanguageModel, OpenAIModel
from inbox_triage.config.settings import Settings
from inbox_triage.gmail.client import GmailClient, GmailClientConfig
from inbox_triage.ingestion.messages import MessageIngestion
from inbox_triage.labels.registry import LabelRegistry
from inbox_triage.models import AutomationRule, MailAccount
from inbox_triage.pipeline.processor import EmailProcessor
from inbox_triage.storage.rules import load_rules, save_rules

logger = logging.getLogger(__name__)


def load_gmail_config(settings: Settings) -> GmailClientConfig:
    return GmailClientConfig(
        credentials_path=settings.credentials_path,
        token_path=settings.token_path,
        user_id="me",
    )


def load_account(client: GmailClient, settings: Settings) -> MailAccount:
    email = str(client.get_profile().get("emailAddress", ""))
    return MailAccount(email=email, display_name=settings.my_name)


@dataclass
class TriageService:
    """Every long-lived store of one process, constructed once at startup."""

    client: GmailClient
    account: MailAccount
    registry: LabelRegistry
    ingestion: MessageIngestion
    executor: ActionExecutor
    automation: AutomationEngine
    processor: EmailProcessor
    monitor: MailboxMonitor
    rules_path: Optional[Path] = None

    def set_rules(self, rules: Iterable[AutomationRule]) -> List[AutomationRule]:
        self.automation.set_rules(rules)
        return self.persist_rules()

    def add_rule(self, rule: AutomationRule) -> List[AutomationRule]:
        self.automation.add_rule(rule)
        return self.persist_rules()

    def remove_rule(self, rule_id: str) -> bool:
        removed = self.automation.remove_rule(rule_id)
        if removed:
            self.persist_rules()
        return removed

    def persist_rules(self) -> List[AutomationRule]:
        rules = self.automation.get_rules()
        if self.rules_path is not None:
            save_rules(self.rules_path, rules)
        return rules


def build_service(
    settings: Settings,
    *,
    client: Optional[GmailClient] = None,
    model: Optional[LanguageModel] = None,
    account: Optional[MailAccount] = None,
    progress_cb: Optional[ProgressCallback] = None,
    dry_run: bool = False,
) -> TriageService:
    if client is None:
        client = GmailClient(load_gmail_config(settings))
        client.connect()
    if model is None:
        model = OpenAIModel(
            api_key=settings.openai_api_key,
            model=settings.openai_model,
            timeout=settings.classifier_timeout_s,
        )
    if account is None:
        account = load_account(client, settings)

    registry = LabelRegistry(client)
    ingestion = MessageIngestion(client, registry)
    executor = default_executor(dry_run=dry_run)
    automation = AutomationEngine(client, executor=executor, my_name=settings.my_name)
    automation.set_rules(load_rules(settings.rules_path))
    processor = EmailProcessor(client, registry, EmailClassifier(model), automation)
    monitor = MailboxMonitor(
        ingestion,
        processor,
        registry,
        poll_interval_s=settings.poll_interval_s,
        lookback_minutes=settings.lookback_minutes,
        max_results=settings.max_results,
        progress_cb=progress_cb,
    )
    logger.info("[SERVICE] ready account=%s rules=%d", account.email, len(automation.get_rules()))
    return TriageService(
        client=client,
        account=account,
        registry=registry,
        ingestion=ingestion,
        executor=executor,
        automation=automation,
        processor=processor,
        monitor=monitor,
        rules_path=settings.rules_path,
    )
