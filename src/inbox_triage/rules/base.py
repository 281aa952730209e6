from __future__ import annotations

import re
from abc import ABC, abstractmethod
from typing import Optional

from inbox_triage.models import Email


class BaseRule(ABC):
    """
    Base class for heuristic rules over a fetched email.

    Rules only decide. Applying the label they name is the pipeline's job.
    """

    # Human-/debug-friendly unique name
    name: str = "base_rule"

    # Label the pipeline applies when the rule matches (None for gate-only rules).
    label: Optional[str] = None

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(name={self.name!r}, label={self.label!r})"

    # --- Helpers (None-safe, case-insensitive) ---

    def norm(self, s: str | None) -> str:
        """Normalize text for matching (None-safe, lowercased)."""
        return (s or "").lower()

    def subject(self, mail: Email) -> str:
        return self.norm(mail.subject)

    def sender(self, mail: Email) -> str:
        return self.norm(mail.sender)

    def body(self, mail: Email) -> str:
        return self.norm(mail.body)

    def haystack(self, mail: Email) -> str:
        return f"{self.subject(mail)}\n{self.body(mail)}\n{self.sender(mail)}"

    def regex(self, text: str | None, pattern: str | re.Pattern) -> Optional[str]:
        """Regex search on text (case-insensitive). Returns the matched text."""
        if isinstance(pattern, re.Pattern):
            found = pattern.search(text or "")
        else:
            found = re.search(pattern, text or "", flags=re.IGNORECASE)
        return found.group(0) if found else None

    # --- Rule API ---

    @abstractmethod
    def match(self, mail: Email) -> tuple[bool, str]:
        """Return (matched, reason)."""
        raise NotImplementedError
