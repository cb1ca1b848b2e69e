"""
Collaborator interfaces around the extraction pipeline.

The mailbox fetch and the persistence store (dedup, calendar sync,
notifications) live outside this package; these classes only fix the shape
of what flows in and out.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from subscout.subscriptions.types import Decision, EmailMessage, ExtractionResult


class MailboxSource:
    """Supplies raw messages for a bounded recent window."""

    def fetch_recent(self, since: datetime | None = None, limit: int = 50) -> list[EmailMessage]:
        raise NotImplementedError


class SubscriptionSink:
    """Receives accepted results; dedups and persists them in its own schema."""

    def save(self, result: ExtractionResult, decision: Decision) -> Any:
        raise NotImplementedError


class InMemorySink(SubscriptionSink):
    """Collects saved results in a list. Deduplicates by (service, source email)."""

    def __init__(self):
        self.records: list[dict[str, Any]] = []
        self._seen: set[tuple[str | None, str | None]] = set()

    def save(self, result: ExtractionResult, decision: Decision) -> dict[str, Any] | None:
        record = result.to_record()
        key = ((record["service_name"] or "").lower(), record["source_email_id"])
        if key in self._seen:
            return None
        self._seen.add(key)
        record["decision"] = decision.outcome.value
        self.records.append(record)
        return record
