from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional, Sequence

from inbox_triage.models import ClassificationResult, Email, Label
from inbox_triage.rules.base import BaseRule
from inbox_triage.rules.escalation import ESCALATION_RULES, AutomatedSenderRule

# Provider-reserved labels that do not count as "already labeled by the user".
SYSTEM_LABEL_IDS = frozenset(
    {
        "INBOX",
        "SENT",
        "IMPORTANT",
        "UNREAD",
        "DRAFT",
        "SPAM",
        "TRASH",
        "CATEGORY_PERSONAL",
        "CATEGORY_SOCIAL",
        "CATEGORY_PROMOTIONS",
        "CATEGORY_UPDATES",
    }
)

_AUTOMATED_SENDER = AutomatedSenderRule()


@dataclass(frozen=True)
class LabelDecision:
    name: str
    reason: str
    # Set when the label is already resolved (classifier suggestion).
    label: Optional[Label] = None


def user_label_ids(email: Email) -> List[str]:
    return [lid for lid in email.label_ids if lid.upper() not in SYSTEM_LABEL_IDS]


def skip_analysis_reason(email: Email) -> Optional[str]:
    """Why the message must not be analyzed, or None when it should be."""
    existing = user_label_ids(email)
    if existing:
        return f"Already labeled ({', '.join(existing)})"
    matched, reason = _AUTOMATED_SENDER.match(email)
    if matched:
        return reason
    return None


def labels_to_apply(
    email: Email,
    classification: Optional[ClassificationResult],
    rules: Sequence[BaseRule] = ESCALATION_RULES,
) -> List[LabelDecision]:
    # Policy layer decides which labels to apply, in order: heuristics first,
    # then the classifier's suggestion.
    decisions: List[LabelDecision] = []
    taken = {lbl.name.strip().lower() for lbl in email.labels}

    for rule in rules:
        if not rule.label or rule.label.lower() in taken:
            continue
        matched, reason = rule.match(email)
        if matched:
            decisions.append(LabelDecision(name=rule.label, reason=reason))
            taken.add(rule.label.lower())

    suggested = classification.suggested_label if classification else None
    if suggested is not None and not email.has_label(suggested):
        if suggested.name.strip().lower() not in taken:
            decisions.append(
                LabelDecision(
                    name=suggested.name,
                    reason=f"Classifier suggestion ({classification.confidence:.2f})",
                    label=suggested,
                )
            )

    return decisions
