from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Sequence, Set

from inbox_triage.automation.engine import AutomationEngine
from inbox_triage.classifier.analyzer import EmailClassifier
from inbox_triage.errors import ClassificationError, ProviderAuthError, ProviderError
from inbox_triage.gmail.client import GmailClient
from inbox_triage.labels.registry import LabelRegistry
from inbox_triage.models import ClassificationResult, Email, MailAccount
from inbox_triage.pipeline.policy import LabelDecision, labels_to_apply, skip_analysis_reason
from inbox_triage.rules.base import BaseRule
from inbox_triage.rules.escalation import ESCALATION_RULES

logger = logging.getLogger(__name__)

ReportCallback = Callable[[Dict[str, Any]], None]


class ProcessingState(str, Enum):
    FETCHED = "FETCHED"
    SKIP_ANALYSIS = "SKIP_ANALYSIS"
    ANALYZE = "ANALYZE"
    LABELED = "LABELED"
    AUTOMATION_CHECKED = "AUTOMATION_CHECKED"
    DONE = "DONE"


@dataclass
class ProcessingReport:
    message_id: str
    states: List[ProcessingState] = field(default_factory=list)
    skip_reason: Optional[str] = None
    classified: bool = False
    labels_applied: List[str] = field(default_factory=list)
    automations_fired: List[str] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)

    @property
    def skipped(self) -> bool:
        return ProcessingState.SKIP_ANALYSIS in self.states


class EmailProcessor:
    """
    Runs one fetched message through gate, classification, labeling and
    automation checks. Strictly sequential: each remote side effect finishes
    before the next one starts.
    """

    def __init__(
        self,
        client: GmailClient,
        registry: LabelRegistry,
        classifier: EmailClassifier,
        automation: AutomationEngine,
        rules: Sequence[BaseRule] = ESCALATION_RULES,
    ):
        self._client = client
        self._registry = registry
        self._classifier = classifier
        self._automation = automation
        self._rules = rules

    def process(
        self,
        email: Email,
        account: MailAccount,
        report_cb: Optional[ReportCallback] = None,
    ) -> ProcessingReport:
        report = ProcessingReport(message_id=email.id, states=[ProcessingState.FETCHED])

        reason = skip_analysis_reason(email)
        if reason:
            report.skip_reason = reason
            report.states += [ProcessingState.SKIP_ANALYSIS, ProcessingState.DONE]
            logger.info("[SKIP] message_id=%s reason=%s", email.id, reason)
            return report

        report.states.append(ProcessingState.ANALYZE)
        classification = self._classify(email, report)

        fired: Set[str] = set()
        for decision in labels_to_apply(email, classification, self._rules):
            self._apply_decision(email, account, decision, report, fired, report_cb)

        if ProcessingState.AUTOMATION_CHECKED not in report.states:
            report.states.append(ProcessingState.AUTOMATION_CHECKED)
        report.states.append(ProcessingState.DONE)
        return report

    def _classify(self, email: Email, report: ProcessingReport) -> Optional[ClassificationResult]:
        try:
            available = self._registry.classification_labels()
            result = self._classifier.classify(email, available)
        except ProviderAuthError:
            raise
        except (ClassificationError, ProviderError) as exc:
            # Heuristic escalation still runs without AI fields.
            logger.warning("[CLASSIFY] message_id=%s failed: %s", email.id, exc)
            report.errors.append(f"classify: {exc}")
            return None

        email.apply_classification(result)
        report.classified = True
        return result

    def _apply_decision(
        self,
        email: Email,
        account: MailAccount,
        decision: LabelDecision,
        report: ProcessingReport,
        fired: Set[str],
        report_cb: Optional[ReportCallback],
    ) -> None:
        try:
            label = decision.label or self._registry.ensure_label(decision.name)
            self._client.modify_labels(email.id, add=[label.provider_label_id])
        except ProviderAuthError:
            raise
        except Exception as exc:
            logger.error("[ERROR] label failed message_id=%s label=%s err=%s", email.id, decision.name, exc)
            report.errors.append(f"label {decision.name}: {exc}")
            return

        if not email.add_label(label):
            return
        report.labels_applied.append(label.name)
        report.states.append(ProcessingState.LABELED)
        logger.info("[LABEL] message_id=%s label=%s reason=%s", email.id, label.name, decision.reason)
        if report_cb:
            report_cb(
                {
                    "message_id": email.id,
                    "from": email.sender,
                    "subject": email.subject,
                    "label": label.name,
                }
            )

        # One automation check per label application event, no chaining.
        if label.id in fired:
            return
        fired.add(label.id)
        try:
            rule = self._automation.match(label)
            if rule and self._automation.execute(rule, email, account):
                report.automations_fired.append(rule.id)
        except ProviderAuthError:
            raise
        except Exception as exc:
            logger.error("[ERROR] automation failed message_id=%s label=%s err=%s", email.id, label.name, exc)
            report.errors.append(f"automation {label.name}: {exc}")
        finally:
            report.states.append(ProcessingState.AUTOMATION_CHECKED)
