"""
Rule-Based Extractor - deterministic subscription extraction.

Used standalone (SUBSCOUT_USE_LLM=false), as the fallback when the model
path fails, and as the oracle the model output is compared against in tests.

Pipeline per message:
1. Language gate (English function-word count)
2. Dates (absolute + relative) and phrase-context roles
3. Service name, amount/currency, billing cycle, type, cancel URL
4. Confidence blend + needs_review flag

Cost: $0 (no LLM calls)
"""

from __future__ import annotations

import re
from decimal import Decimal, InvalidOperation

from subscout.config import (
    ENGLISH_MIN_FUNCTION_WORDS,
    NON_ENGLISH_CONFIDENCE,
    REVIEW_CONFIDENCE_THRESHOLD,
)
from subscout.observability.logging import get_logger
from subscout.observability.telemetry import counter, log_event
from subscout.subscriptions.cancellation import CancellationDirectory, get_cancellation_directory
from subscout.subscriptions.dates import DateExtractor, normalize_text
from subscout.subscriptions.phrase_context import AssociationResult, PhraseContextAssociator
from subscout.subscriptions.service_name import ServiceNameResolver
from subscout.subscriptions.types import (
    BillingCycle,
    DateMatch,
    DateRole,
    EmailMessage,
    ExtractedDate,
    ExtractionMethod,
    ExtractionResult,
    ServiceNameGuess,
    SubscriptionType,
)
from subscout.utils.redaction import redact

logger = get_logger(__name__)

_AMOUNT = r"(\d{1,3}(?:,\d{3})+(?:\.\d{1,2})?|\d+(?:\.\d{1,2})?)"
_ISO_CODES = r"(usd|eur|gbp|cad|aud|jpy|inr|chf|sek|nzd)"


def compute_needs_review(
    confidence: float, service_name: ServiceNameGuess | None, has_date: bool
) -> bool:
    """Review flag shared by both extractors."""
    return confidence < REVIEW_CONFIDENCE_THRESHOLD or service_name is None or not has_date


class RuleBasedExtractor:
    """
    Compose date extraction, phrase association and service resolution into
    one deterministic pass producing an ExtractionResult.
    """

    ENGLISH_FUNCTION_WORDS = frozenset(
        {
            "the", "and", "to", "of", "a", "an", "in", "is", "are", "you", "your",
            "for", "that", "it", "on", "with", "this", "be", "will", "have", "has",
            "at", "by", "we", "our", "or", "from", "not", "if", "can",
        }
    )

    # Fixed vocabulary for the keyword-hit term of the confidence score
    KEYWORD_VOCABULARY: tuple[str, ...] = (
        "subscription",
        "trial",
        "billing",
        "payment",
        "renewal",
        "welcome",
        "confirm",
        "activate",
        "upgrade",
        "premium",
        "pro",
        "plan",
        "charge",
    )

    # Checked in order, first pattern with a parsable amount wins
    CURRENCY_PATTERNS: tuple[tuple[str | None, re.Pattern[str]], ...] = (
        ("USD", re.compile(rf"\$\s?{_AMOUNT}")),
        ("EUR", re.compile(rf"€\s?{_AMOUNT}")),
        ("GBP", re.compile(rf"£\s?{_AMOUNT}")),
        (None, re.compile(rf"{_AMOUNT}\s?{_ISO_CODES}\b")),
        (None, re.compile(rf"\b{_ISO_CODES}\s?{_AMOUNT}")),
    )

    BILLING_CYCLE_PATTERNS: dict[BillingCycle, re.Pattern[str]] = {
        BillingCycle.DAILY: re.compile(r"/\s?day\b|\bper day\b|\bdaily\b|\ba day\b"),
        BillingCycle.WEEKLY: re.compile(r"/\s?(?:wk|week)\b|\bper week\b|\bweekly\b|\ba week\b"),
        BillingCycle.MONTHLY: re.compile(
            r"/\s?mo(?:nth)?\b|\bper month\b|\bmonthly\b|\ba month\b|\bevery month\b"
        ),
        BillingCycle.YEARLY: re.compile(
            r"/\s?(?:yr|year)\b|\bper year\b|\byearly\b|\bannual(?:ly)?\b|\ba year\b|\bevery year\b"
        ),
    }

    TRIAL_KEYWORDS: tuple[str, ...] = (
        "trial",
        "free trial",
        "trial period",
        "trial ending",
        "trial expires",
        "trial subscription",
        "trial account",
    )
    SUBSCRIPTION_KEYWORDS: tuple[str, ...] = (
        "subscription",
        "billing",
        "payment",
        "renewal",
        "renew",
        "charge",
        "monthly",
        "yearly",
        "annual",
        "premium",
        "pro plan",
    )

    CANCEL_URL_PATTERN = re.compile(r"https?://[^\s<>()\"']*(?:cancel|manage)[^\s<>()\"']*", re.I)

    def __init__(
        self,
        resolver: ServiceNameResolver | None = None,
        date_extractor: DateExtractor | None = None,
        associator: PhraseContextAssociator | None = None,
        cancellation_directory: CancellationDirectory | None = None,
    ):
        self.resolver = resolver or ServiceNameResolver()
        self.date_extractor = date_extractor or DateExtractor()
        self.associator = associator or PhraseContextAssociator()
        self.cancellation_directory = cancellation_directory or get_cancellation_directory()
        self._keyword_patterns = [
            re.compile(rf"\b{kw}(?:s|d|ed|es|ing|ion|ation|ations|al)?\b")
            for kw in self.KEYWORD_VOCABULARY
        ]

    def extract(self, message: EmailMessage, body: str | None = None) -> ExtractionResult:
        """
        Extract subscription fields from one message.

        Args:
            message: The email
            body: Resolved plain-text body (HTML fallback applied by the caller);
                  defaults to message.body

        Returns:
            ExtractionResult (method="rules")
        """
        body = message.body if body is None else body
        text = normalize_text(f"{message.subject}\n{body}")

        if not self.is_english(text):
            counter("subscriptions.rules.non_english")
            return ExtractionResult.non_english(message.id, NON_ENGLISH_CONFIDENCE)

        date_matches = self.date_extractor.find(text, message.received_at)
        associations = self.associator.associate(text, date_matches)
        service_name = self.resolver.resolve(message.sender, message.subject, body)
        amount, currency = self.extract_amount(text)
        billing_cycle = self.extract_billing_cycle(text) if amount is not None else None

        result = ExtractionResult(
            email_id=message.id,
            service_name=service_name,
            trial_end=associations.iso_for(DateRole.TRIAL_END),
            first_charge=associations.iso_for(DateRole.FIRST_CHARGE),
            renewal=associations.iso_for(DateRole.RENEWAL),
            amount=amount,
            currency=currency,
            billing_cycle=billing_cycle,
            matched_phrases=[a.phrase for a in associations.associations],
            language="en",
            subscription_type=self.detect_subscription_type(text),
            cancel_url=self.extract_cancel_url(body, service_name),
            dates=self._tag_dates(date_matches, associations),
            method=ExtractionMethod.RULES,
        )
        result.confidence = self.score(
            result,
            keyword_hits=self.count_keyword_hits(text),
            phrase_matched=associations.phrase_matched,
            any_date_found=bool(date_matches),
        )
        result.needs_review = compute_needs_review(
            result.confidence, result.service_name, result.has_date
        )

        log_event(
            "subscriptions.rules.complete",
            email_id=message.id,
            sender=redact(message.sender_address),
            sender_domain=message.sender_domain,
            service=service_name.value if service_name else None,
            dates=len(date_matches),
            confidence=round(result.confidence, 3),
            needs_review=result.needs_review,
        )
        return result

    # ------------------------------------------------------------------
    # Signals
    # ------------------------------------------------------------------

    def is_english(self, text: str) -> bool:
        hits = 0
        for token in re.findall(r"[a-z']+", text):
            if token in self.ENGLISH_FUNCTION_WORDS:
                hits += 1
                if hits >= ENGLISH_MIN_FUNCTION_WORDS:
                    return True
        return False

    def extract_amount(self, text: str) -> tuple[Decimal | None, str | None]:
        for fixed_currency, pattern in self.CURRENCY_PATTERNS:
            match = pattern.search(text)
            if not match:
                continue
            if fixed_currency:
                raw, currency = match.group(1), fixed_currency
            elif match.group(1)[0].isdigit():
                raw, currency = match.group(1), match.group(2).upper()
            else:
                currency, raw = match.group(1).upper(), match.group(2)
            try:
                return Decimal(raw.replace(",", "")), currency
            except InvalidOperation:
                continue
        return None, None

    def extract_billing_cycle(self, text: str) -> BillingCycle | None:
        earliest: tuple[int, BillingCycle] | None = None
        for cycle, pattern in self.BILLING_CYCLE_PATTERNS.items():
            match = pattern.search(text)
            if match and (earliest is None or match.start() < earliest[0]):
                earliest = (match.start(), cycle)
        return earliest[1] if earliest else None

    def detect_subscription_type(self, text: str) -> SubscriptionType | None:
        trial_hits = sum(1 for kw in self.TRIAL_KEYWORDS if kw in text)
        subscription_hits = sum(1 for kw in self.SUBSCRIPTION_KEYWORDS if kw in text)
        if trial_hits > subscription_hits:
            return SubscriptionType.TRIAL
        if subscription_hits > 0:
            return SubscriptionType.SUBSCRIPTION
        return None

    def extract_cancel_url(self, body: str, service_name: ServiceNameGuess | None) -> str | None:
        match = self.CANCEL_URL_PATTERN.search(body or "")
        if match:
            return match.group(0).rstrip(".,;")
        if service_name:
            return self.cancellation_directory.cancel_url_for(service_name.value)
        return None

    def count_keyword_hits(self, text: str) -> int:
        """Number of vocabulary words present (inflections count, repeats do not)."""
        return sum(1 for pattern in self._keyword_patterns if pattern.search(text))

    # ------------------------------------------------------------------
    # Scoring
    # ------------------------------------------------------------------

    @staticmethod
    def score(
        result: ExtractionResult,
        keyword_hits: int,
        phrase_matched: bool,
        any_date_found: bool,
    ) -> float:
        confidence = 0.1
        if result.service_name:
            confidence += result.service_name.confidence * 0.3

        roles_set = sum(1 for d in (result.trial_end, result.first_charge, result.renewal) if d)
        if roles_set:
            confidence += 0.4
        if roles_set > 1:
            confidence += 0.1

        confidence += min(0.05 * keyword_hits, 0.2)
        if phrase_matched:
            confidence += 0.1

        if not any_date_found:
            confidence *= 0.5
        return max(0.0, min(1.0, confidence))

    @staticmethod
    def _tag_dates(
        matches: list[DateMatch], associations: AssociationResult
    ) -> list[ExtractedDate]:
        tagged: list[ExtractedDate] = []
        for match in matches:
            roles = [a for a in associations.associations if a.date == match]
            if not roles:
                tagged.append(ExtractedDate(match.iso_date, DateRole.UNASSIGNED, None, match.method))
                continue
            for a in roles:
                tagged.append(ExtractedDate(match.iso_date, a.role, a.phrase, match.method))
        return tagged
