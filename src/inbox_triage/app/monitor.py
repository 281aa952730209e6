from __future__ import annotations

import logging
from dataclasses import asdict, dataclass
from datetime import datetime, timedelta, timezone
from threading import Event, Lock
from typing import Any, Callable, Dict, Optional

from inbox_triage.errors import ProviderAuthError, ProviderError
from inbox_triage.ingestion.messages import MessageIngestion, is_candidate
from inbox_triage.labels.registry import LabelRegistry
from inbox_triage.models import MailAccount
from inbox_triage.pipeline.processor import EmailProcessor
from inbox_triage.storage.processed import ProcessedIds

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[str, Dict[str, Any]], None]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class PassSummary:
    listed: int = 0
    processed: int = 0
    skipped_seen: int = 0
    skipped_filtered: int = 0
    errors: int = 0


class MailboxMonitor:
    """
    Polls the inbox for recent mail and feeds every message id it has not
    seen yet into the processing pipeline.
    """

    def __init__(
        self,
        ingestion: MessageIngestion,
        processor: EmailProcessor,
        registry: LabelRegistry,
        *,
        poll_interval_s: float = 30.0,
        lookback_minutes: int = 60,
        max_results: int = 50,
        processed_ids: Optional[ProcessedIds] = None,
        progress_cb: Optional[ProgressCallback] = None,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self._ingestion = ingestion
        self._processor = processor
        self._registry = registry
        self._poll_interval_s = poll_interval_s
        self._lookback = timedelta(minutes=lookback_minutes)
        self._max_results = max_results
        # Ids are kept for one listing window plus one poll, after that they cannot be listed again.
        if processed_ids is None:
            processed_ids = ProcessedIds(retention_s=self._lookback.total_seconds() + poll_interval_s)
        self.processed_ids = processed_ids
        self._progress_cb = progress_cb
        self._clock = clock
        self._pass_lock = Lock()
        self._stop = Event()

    def _report(self, step: str, *, detail: str | None = None, **extra: Any) -> None:
        if not self._progress_cb:
            return
        payload: Dict[str, Any] = {"detail": detail}
        payload.update(extra)
        self._progress_cb(step, payload)

    def check_once(self, account: MailAccount) -> Optional[PassSummary]:
        """Run one pass. Returns None when another pass is still running."""
        if not self._pass_lock.acquire(blocking=False):
            logger.warning("[MONITOR] previous pass still running, skipping this tick")
            return None
        try:
            return self._run_pass(account)
        finally:
            self._pass_lock.release()

    def _run_pass(self, account: MailAccount) -> PassSummary:
        summary = PassSummary()
        pruned = self.processed_ids.prune()
        if pruned:
            logger.debug("[MONITOR] pruned %d processed ids", pruned)

        self._report("load_labels", detail="Refreshing labels")
        self._registry.list_labels()

        since = self._clock() - self._lookback
        self._report("fetch_messages", detail=f"Listing messages since {since.isoformat()}")
        message_ids = self._ingestion.list_candidate_messages(since=since, max_results=self._max_results)
        summary.listed = len(message_ids)

        for index, message_id in enumerate(message_ids, start=1):
            if message_id in self.processed_ids:
                summary.skipped_seen += 1
                continue

            try:
                email = self._ingestion.fetch_full_message(message_id)
            except ProviderAuthError:
                raise
            except ProviderError as exc:
                # Left unrecorded so the next pass retries it.
                summary.errors += 1
                logger.warning("[ERROR] fetch failed message_id=%s err=%s", message_id, exc)
                self._report("error", detail=str(exc), error={"message_id": message_id, "error": str(exc)})
                continue

            if not is_candidate(email):
                summary.skipped_filtered += 1
                self.processed_ids.add(message_id)
                continue

            try:
                self._processor.process(
                    email,
                    account,
                    report_cb=lambda action: self._report("action", detail="Label applied", action=action),
                )
                summary.processed += 1
            except ProviderAuthError:
                raise
            except Exception as exc:
                summary.errors += 1
                logger.exception("[ERROR] processing failed message_id=%s", message_id)
                self._report(
                    "error",
                    detail=f"{type(exc).__name__}: {exc}",
                    error={
                        "message_id": email.id,
                        "from": email.sender,
                        "subject": email.subject,
                        "error": f"{type(exc).__name__}: {exc}",
                    },
                )
            # Recorded even after a failure so side effects are never repeated.
            self.processed_ids.add(message_id)
            self._report("processing", detail=f"Processing {index}/{summary.listed}", metrics=asdict(summary))

        logger.info(
            "[MONITOR] pass done listed=%d processed=%d seen=%d filtered=%d errors=%d",
            summary.listed,
            summary.processed,
            summary.skipped_seen,
            summary.skipped_filtered,
            summary.errors,
        )
        self._report("done", detail="Pass completed", metrics=asdict(summary))
        return summary

    def start(self, account: MailAccount) -> None:
        """
        Poll until stop() is called or an authentication error occurs.
        The first pass runs immediately.
        """
        self._stop.clear()
        logger.info(
            "[MONITOR] started account=%s interval=%ss window=%s",
            account.email,
            self._poll_interval_s,
            self._lookback,
        )
        while True:
            try:
                self.check_once(account)
            except ProviderAuthError as exc:
                logger.error("[MONITOR] authentication failed, reconnect required: %s", exc)
                self._report("error", detail=str(exc), error={"error": str(exc), "code": "reconnect_required"})
                raise
            except Exception:
                # A failed pass never ends the loop, the next tick starts fresh.
                logger.exception("[MONITOR] pass failed")
            if self._stop.wait(self._poll_interval_s):
                break
        logger.info("[MONITOR] stopped")

    def stop(self) -> None:
        self._stop.set()
