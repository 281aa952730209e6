from __future__ import annotations

from typing import Optional


class InboxTriageError(Exception):
    """Base class for all errors raised by inbox_triage."""


class ConfigError(InboxTriageError):
    """Missing or invalid configuration. Fatal at startup."""


class ProviderError(InboxTriageError):
    """Transient mailbox provider failure (network, rate limit, 5xx)."""

    def __init__(self, message: str, status: Optional[int] = None):
        super().__init__(message)
        self.status = status


class ProviderAuthError(ProviderError):
    """The provider rejected our credentials. The user has to reconnect."""


class ClassificationError(InboxTriageError):
    """The language model call failed or timed out."""
