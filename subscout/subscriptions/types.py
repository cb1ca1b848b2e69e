"""
Module: types
Purpose: Shared domain types for the subscription extraction pipeline.
Dependencies: pydantic (EmailMessage validation only)

Stable import boundary: these types are used across the gate, both
extractors, the decision policy and the orchestrator. Keeping them in a leaf
module prevents circular imports between those modules.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict

_ADDRESS_RE = re.compile(r"<([^<>@\s]+@[^<>\s]+)>")
_BARE_ADDRESS_RE = re.compile(r"[^<>@\s\"']+@[^<>\s\"']+")


# ---------------------------------------------------------------------------
# Input
# ---------------------------------------------------------------------------


class EmailMessage(BaseModel):
    """Immutable raw message as supplied by the mailbox source."""

    model_config = ConfigDict(frozen=True)

    id: str
    subject: str = ""
    sender: str = ""  # "Hulu <no-reply@hulu.com>" or a bare address
    body: str = ""
    received_at: datetime
    body_html: str | None = None

    @property
    def sender_address(self) -> str:
        """Lowercased email address part of the sender header."""
        match = _ADDRESS_RE.search(self.sender)
        if match:
            return match.group(1).lower()
        match = _BARE_ADDRESS_RE.search(self.sender)
        return match.group(0).lower() if match else ""

    @property
    def sender_domain(self) -> str:
        address = self.sender_address
        return address.rsplit("@", 1)[-1] if "@" in address else ""


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class DateRole(str, Enum):
    TRIAL_END = "trial_end"
    FIRST_CHARGE = "first_charge"
    RENEWAL = "renewal"
    UNASSIGNED = "unassigned"


class DateMethod(str, Enum):
    ABSOLUTE = "absolute"
    RELATIVE = "relative"


class BillingCycle(str, Enum):
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    YEARLY = "yearly"


class SubscriptionType(str, Enum):
    TRIAL = "trial"
    SUBSCRIPTION = "subscription"


class ExtractionMethod(str, Enum):
    """Which path produced an ExtractionResult."""

    RULES = "rules"
    MODEL = "model"
    PREFILTER = "prefilter"  # rejected before any extractor ran
    ERROR = "error"  # unexpected failure, converted to an empty result


class DecisionOutcome(str, Enum):
    ACCEPT = "accept"
    REJECT = "reject"
    NEEDS_REVIEW = "needs_review"


# ---------------------------------------------------------------------------
# Extraction building blocks
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ServiceNameGuess:
    """A merchant name candidate with its confidence and provenance."""

    value: str
    confidence: float
    from_registry: bool
    source: str = "unknown"  # "body" | "sender_domain" | "body_line" | "subject" | "model"


@dataclass(frozen=True)
class DateMatch:
    """A date literal found in normalized text, resolved to a calendar date."""

    iso_date: str
    method: DateMethod
    start: int
    end: int
    literal: str


@dataclass(frozen=True)
class ExtractedDate:
    """A resolved date tagged with the role a nearby phrase gave it."""

    iso_date: str
    role: DateRole
    matched_phrase: str | None
    method: DateMethod


@dataclass
class FilterResult:
    """Result of the prefilter / confirmation gate."""

    is_candidate: bool
    reason: str  # "confirmation" | "reject_keyword" | "no_confirmation_phrase"
    matched_term: str | None = None


# ---------------------------------------------------------------------------
# Output
# ---------------------------------------------------------------------------


@dataclass
class ExtractionResult:
    """One result per processed message. May be empty ("not a subscription")."""

    email_id: str | None = None
    service_name: ServiceNameGuess | None = None
    trial_end: str | None = None
    first_charge: str | None = None
    renewal: str | None = None
    amount: Decimal | None = None
    currency: str | None = None
    billing_cycle: BillingCycle | None = None
    confidence: float = 0.0
    needs_review: bool = True
    matched_phrases: list[str] = field(default_factory=list)
    language: str = "en"

    subscription_type: SubscriptionType | None = None
    cancel_url: str | None = None
    dates: list[ExtractedDate] = field(default_factory=list)
    method: ExtractionMethod = ExtractionMethod.RULES
    rejection_reason: str | None = None

    @classmethod
    def empty(
        cls,
        email_id: str | None,
        method: ExtractionMethod,
        reason: str,
    ) -> ExtractionResult:
        """A "not a subscription" result: all fields null, zero confidence."""
        return cls(
            email_id=email_id,
            confidence=0.0,
            needs_review=True,
            method=method,
            rejection_reason=reason,
        )

    @classmethod
    def non_english(cls, email_id: str | None, confidence: float) -> ExtractionResult:
        return cls(
            email_id=email_id,
            confidence=confidence,
            needs_review=True,
            language="non-en",
            method=ExtractionMethod.RULES,
            rejection_reason="non_english",
        )

    @property
    def has_date(self) -> bool:
        return any((self.trial_end, self.first_charge, self.renewal))

    @property
    def is_empty(self) -> bool:
        return self.service_name is None and not self.has_date and self.amount is None

    def to_record(self) -> dict[str, Any]:
        """Map to the tracker's subscription record shape (persistence collaborator)."""
        return {
            "source_email_id": self.email_id,
            "service_name": self.service_name.value if self.service_name else None,
            "subscription_type": (
                self.subscription_type.value if self.subscription_type else None
            ),
            "amount": str(self.amount) if self.amount is not None else None,
            "currency": self.currency,
            "billing_cycle": self.billing_cycle.value if self.billing_cycle else None,
            "trial_end_date": self.trial_end,
            "first_charge_date": self.first_charge,
            "renewal_date": self.renewal,
            "cancel_url": self.cancel_url,
            "confidence": round(self.confidence, 3),
            "needs_review": self.needs_review,
            "extraction_method": self.method.value,
        }


@dataclass(frozen=True)
class Decision:
    """Derived verdict for an ExtractionResult. Recomputed on demand, never stored."""

    outcome: DecisionOutcome
    reason: str

    @property
    def accepted(self) -> bool:
        return self.outcome is DecisionOutcome.ACCEPT

