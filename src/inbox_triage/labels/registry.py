from __future__ import annotations

import logging
from threading import Lock
from typing import Dict, Iterable, List, Optional, Set

from inbox_triage.gmail.client import GmailClient
from inbox_triage.gmail.label_colors import DEFAULT_COLOR_TAG, color_tag_for
from inbox_triage.models import Label

logger = logging.getLogger(__name__)


class LabelRegistry:
    """
    Maps provider label ids to local Label records.

    The cache is keyed by provider id. Local ids are derived from the provider
    id, so a refresh never changes the id of a label we already handed out.
    """

    def __init__(self, client: GmailClient):
        self._client = client
        self._lock = Lock()
        self._by_provider_id: Dict[str, Label] = {}
        self._system_ids: Set[str] = set()
        self._loaded = False

    def list_labels(self) -> List[Label]:
        """Fetch labels from the provider and rebuild the cache."""
        raw_labels = self._client.list_labels()
        by_provider_id: Dict[str, Label] = {}
        system_ids: Set[str] = set()
        for raw in raw_labels:
            provider_id = raw.get("id")
            if not provider_id:
                continue
            color = raw.get("color") or {}
            by_provider_id[provider_id] = Label.from_provider(
                provider_id,
                name=str(raw.get("name") or provider_id),
                color_tag=color_tag_for(color.get("backgroundColor")),
            )
            if raw.get("type") == "system":
                system_ids.add(provider_id)

        with self._lock:
            self._by_provider_id = by_provider_id
            self._system_ids = system_ids
            self._loaded = True
        logger.debug("[LABELS] loaded count=%d", len(by_provider_id))
        return list(by_provider_id.values())

    def labels(self) -> List[Label]:
        if not self._loaded:
            return self.list_labels()
        with self._lock:
            return list(self._by_provider_id.values())

    def classification_labels(self) -> List[Label]:
        """User labels only. Provider system labels are never offered to the classifier."""
        labels = self.labels()
        with self._lock:
            return [lbl for lbl in labels if lbl.provider_label_id not in self._system_ids]

    def find_by_name(self, name: str) -> Optional[Label]:
        wanted = (name or "").strip().lower()
        if not wanted:
            return None
        for label in self.labels():
            if label.name.strip().lower() == wanted:
                return label
        return None

    def create_label(self, name: str, color_tag: str = DEFAULT_COLOR_TAG) -> Label:
        """
        Create the label on the provider side.
        Not idempotent: calling twice with the same name asks the provider twice.
        """
        provider_id = self._client.create_label(name)
        label = Label.from_provider(provider_id, name=name, color_tag=color_tag)
        with self._lock:
            self._by_provider_id[provider_id] = label
        logger.info("[LABELS] created name=%s provider_id=%s", name, provider_id)
        return label

    def ensure_label(self, name: str) -> Label:
        existing = self.find_by_name(name)
        if existing:
            return existing
        return self.create_label(name)

    def map_provider_ids_to_labels(self, ids: Iterable[str]) -> List[Label]:
        """Resolve provider ids to labels, dropping unknown ids and keeping first-match order."""
        self.labels()
        mapped: List[Label] = []
        seen: Set[str] = set()
        with self._lock:
            for provider_id in ids:
                label = self._by_provider_id.get(provider_id)
                if label is None or provider_id in seen:
                    continue
                seen.add(provider_id)
                mapped.append(label)
        return mapped
