from __future__ import annotations

import re

from inbox_triage.models import Email
from inbox_triage.rules.base import BaseRule

INVESTOR_LABEL = "Investor Email"
NEEDS_ACTION_LABEL = "Needs Action"


class AutomatedSenderRule(BaseRule):
    """Mail from machines never gets AI analysis."""

    name = "automated_sender"

    PATTERN = re.compile(
        r"(?<![\w.+-])(no-?reply|do-?not-?reply|automated|notifications?|alerts?|system)@",
        flags=re.IGNORECASE,
    )

    def match(self, mail: Email) -> tuple[bool, str]:
        found = self.regex(mail.sender, self.PATTERN)
        if found:
            return True, f"Automated sender ({found})"
        return False, ""


class InvestorEmailRule(BaseRule):
    name = "investor_email"
    label = INVESTOR_LABEL

    PATTERN = re.compile(
        r"\b("
        r"investors?|investment|investing|funding|fundrais\w*|venture|"
        r"cap[\s-]?table|term[\s-]?sheet|series\s+[a-e]\b|seed\s+round|pre-?seed|"
        r"valuation|due\s+diligence|pitch\s+deck|safe\s+note|convertible\s+note|"
        r"limited\s+partners?|general\s+partner|"
        r"sequoia|andreessen|a16z|accel|kleiner\s+perkins|lightspeed|greylock|"
        r"index\s+ventures|founders\s+fund|y\s*combinator|tiger\s+global|insight\s+partners|"
        r"general\s+catalyst|bessemer|khosla|softbank"
        r")\b",
        flags=re.IGNORECASE,
    )

    def match(self, mail: Email) -> tuple[bool, str]:
        found = self.regex(self.haystack(mail), self.PATTERN)
        if found:
            return True, f"Investor vocabulary ({found})"
        return False, ""


class NeedsActionRule(BaseRule):
    name = "needs_action"
    label = NEEDS_ACTION_LABEL

    # Only the first lines of the body count for the question heuristic.
    QUESTION_BODY_LINES = 5

    PATTERN = re.compile(
        r"\b("
        r"urgent|urgently|asap|as\s+soon\s+as\s+possible|deadline|due\s+(?:date|by|on|today|tomorrow)|"
        r"action\s+(?:required|needed)|please\s+(?:respond|reply|confirm|review|advise|sign|approve|let\s+me\s+know)|"
        r"let\s+me\s+know|can\s+you|could\s+you|would\s+you|"
        r"by\s+(?:eod|end\s+of\s+(?:day|week)|tomorrow|monday|tuesday|wednesday|thursday|friday)|"
        r"awaiting\s+your|waiting\s+for\s+your|reminder|follow(?:ing)?\s+up"
        r")\b",
        flags=re.IGNORECASE,
    )

    def has_question(self, mail: Email) -> bool:
        if "?" in (mail.subject or ""):
            return True
        lines = [line for line in (mail.body or "").splitlines() if line.strip()]
        return any("?" in line for line in lines[: self.QUESTION_BODY_LINES])

    def match(self, mail: Email) -> tuple[bool, str]:
        found = self.regex(self.haystack(mail), self.PATTERN)
        if found:
            return True, f"Action vocabulary ({found})"
        if self.has_question(mail):
            return True, "Question in subject or opening lines"
        return False, ""


# Order matters: labels are applied (and automations checked) in this order.
ESCALATION_RULES = (InvestorEmailRule(), NeedsActionRule())
