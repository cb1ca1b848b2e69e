"""
Model-Based Extractor - structured subscription extraction with Gemini.

Sends one strict, conservative instruction per candidate email and maps the
validated JSON reply into an ExtractionResult. Any failure (transport error,
timeout, unparseable or schema-invalid reply) raises ModelExtractionError so
the orchestrator can fall back to the rule-based extractor.

Cost: ~$0.0001 per email (Gemini Flash, ~500 output tokens max)
"""

from __future__ import annotations

import json
import os
import re
from collections.abc import Callable
from datetime import datetime
from decimal import Decimal, InvalidOperation

from pydantic import BaseModel, ConfigDict, ValidationError
from pydantic import Field as PydanticField

from subscout.config import (
    PIPELINE_BODY_TRUNCATION,
    PIPELINE_SENDER_TRUNCATION,
    PIPELINE_SUBJECT_TRUNCATION,
)
from subscout.llm.retry import call_llm
from subscout.observability.logging import get_logger
from subscout.observability.telemetry import counter, log_event
from subscout.subscriptions.registry import LegitimacyRegistry, get_registry
from subscout.subscriptions.rule_extractor import compute_needs_review
from subscout.subscriptions.types import (
    BillingCycle,
    DateMethod,
    DateRole,
    EmailMessage,
    ExtractedDate,
    ExtractionMethod,
    ExtractionResult,
    ServiceNameGuess,
    SubscriptionType,
)
from subscout.utils.redaction import redact, redact_subject, sanitize_for_prompt

logger = get_logger(__name__)


def use_llm() -> bool:
    """Check SUBSCOUT_USE_LLM at call time (not import time) so tests can override."""
    return os.getenv("SUBSCOUT_USE_LLM", "false").lower() == "true"


class ModelExtractionError(Exception):
    """The model path could not produce a usable reply."""


class LLMSubscriptionSchema(BaseModel):
    """Schema for the model's JSON reply."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    is_subscription: bool = PydanticField(alias="isSubscription")
    service_name: str | None = PydanticField(default=None, alias="serviceName")
    type: str | None = PydanticField(default=None, description="trial | subscription")
    amount: float | None = None
    currency: str | None = None
    billing_cycle: str | None = PydanticField(default=None, alias="billingCycle")
    start_date: str | None = PydanticField(default=None, alias="startDate")
    end_date: str | None = PydanticField(default=None, alias="endDate")
    trial_end_date: str | None = PydanticField(default=None, alias="trialEndDate")
    renewal_date: str | None = PydanticField(default=None, alias="renewalDate")
    cancel_url: str | None = PydanticField(default=None, alias="cancelUrl")
    confidence: float = PydanticField(default=0.0, ge=0.0, le=1.0)


class ModelBasedExtractor:
    """
    Gemini-backed extractor.

    Args:
        llm_call: Callable taking a prompt and returning the reply text.
                  Defaults to subscout.llm.retry.call_llm (timeout + retry).
        registry: Legitimacy registry used to canonicalize the service name.
    """

    EXTRACTION_PROMPT = """You are a strict subscription detector. Analyze this email and decide \
whether it confirms that the recipient signed up for a PAID recurring service or a free trial \
that converts to a paid plan.

Be maximally conservative. Answer isSubscription=false for newsletters, marketing, promotions, \
receipts for one-off purchases, shipping updates, account notices, or anything that is not \
unambiguously a signup / trial / billing confirmation from a well-known company.

Subject: {subject}
From: {sender}
Received: {received}
Body:
{body}

Resolve relative dates ("in 3 days", "next Monday") against the received date.
Use YYYY-MM-DD for every date. Use null for anything not stated in the email.

Output JSON:
{{
  "isSubscription": true or false,
  "serviceName": "Hulu" or null,
  "type": "trial" or "subscription" or null,
  "amount": 7.99 or null,
  "currency": "USD" or null,
  "billingCycle": "daily" | "weekly" | "monthly" | "yearly" or null,
  "startDate": "2025-07-01" or null,
  "endDate": "2025-08-15" or null,
  "trialEndDate": "2025-08-15" or null,
  "renewalDate": "2025-09-15" or null,
  "cancelUrl": "https://..." or null,
  "confidence": 0.0 to 1.0
}}

Respond with ONLY the JSON."""

    def __init__(
        self,
        llm_call: Callable[[str], str] | None = None,
        registry: LegitimacyRegistry | None = None,
    ):
        self._llm_call = llm_call
        self.registry = registry or get_registry()

    def build_prompt(self, message: EmailMessage, body: str | None = None) -> str:
        body = message.body if body is None else body
        return self.EXTRACTION_PROMPT.format(
            subject=sanitize_for_prompt(message.subject, PIPELINE_SUBJECT_TRUNCATION),
            sender=sanitize_for_prompt(message.sender, PIPELINE_SENDER_TRUNCATION),
            received=message.received_at.date().isoformat(),
            body=sanitize_for_prompt(body, PIPELINE_BODY_TRUNCATION),
        )

    def extract(self, message: EmailMessage, body: str | None = None) -> ExtractionResult:
        """
        Extract subscription fields via the model.

        Returns:
            ExtractionResult (method="model"), empty when the model says
            it is not a subscription or names no service

        Raises:
            ModelExtractionError: On transport failure, timeout or malformed reply
        """
        prompt = self.build_prompt(message, body)
        logger.info(
            "LLM extraction input: subject=%s, prompt_length=%d",
            redact_subject(message.subject),
            len(prompt),
        )

        try:
            if self._llm_call is not None:
                response_text = self._llm_call(prompt)
            else:
                response_text = call_llm(prompt, counter_prefix="extractor")
        except Exception as e:
            counter("subscriptions.extractor.llm_error")
            raise ModelExtractionError(f"LLM call failed: {e}") from e

        reply = self._parse_llm_response(response_text)
        counter("subscriptions.extractor.llm_success")
        return self._to_result(message, reply)

    def _parse_llm_response(self, response_text: str | None) -> LLMSubscriptionSchema:
        """Parse and validate the JSON reply (markdown fences tolerated)."""
        if not response_text or not response_text.strip():
            counter("subscriptions.extractor.malformed")
            raise ModelExtractionError("Empty LLM reply")

        json_text = response_text.strip()
        if json_text.startswith("```"):
            json_text = re.sub(r"^```(?:json)?\n?", "", json_text)
            json_text = re.sub(r"\n?```$", "", json_text)

        try:
            data = json.loads(json_text)
            if not isinstance(data, dict):
                raise ValueError(f"expected a JSON object, got {type(data).__name__}")
            return LLMSubscriptionSchema.model_validate(data)
        except (json.JSONDecodeError, ValidationError, ValueError) as e:
            counter("subscriptions.extractor.malformed")
            logger.warning("Failed to parse LLM extraction response: %s", e)
            raise ModelExtractionError(f"Malformed LLM reply: {e}") from e

    def _to_result(self, message: EmailMessage, reply: LLMSubscriptionSchema) -> ExtractionResult:
        if not reply.is_subscription:
            counter("subscriptions.extractor.model_rejected")
            return ExtractionResult.empty(message.id, ExtractionMethod.MODEL, "model_not_subscription")

        name = (reply.service_name or "").strip()
        if not name:
            counter("subscriptions.extractor.model_no_service")
            return ExtractionResult.empty(message.id, ExtractionMethod.MODEL, "model_no_service_name")

        canonical = self.registry.canonical(name)
        service_name = ServiceNameGuess(
            value=canonical or name,
            confidence=reply.confidence,
            from_registry=canonical is not None,
            source="model",
        )

        trial_end = self._parse_date(reply.trial_end_date)
        renewal = self._parse_date(reply.renewal_date)
        end_date = self._parse_date(reply.end_date)
        # endDate is the first billing date unless it repeats the trial/renewal date
        first_charge = end_date if end_date not in (trial_end, renewal) else None

        dates = [
            ExtractedDate(iso_date, role, "model", DateMethod.ABSOLUTE)
            for role, iso_date in (
                (DateRole.TRIAL_END, trial_end),
                (DateRole.FIRST_CHARGE, first_charge),
                (DateRole.RENEWAL, renewal),
            )
            if iso_date
        ]

        result = ExtractionResult(
            email_id=message.id,
            service_name=service_name,
            trial_end=trial_end,
            first_charge=first_charge,
            renewal=renewal,
            amount=self._parse_amount(reply.amount),
            currency=reply.currency.upper() if reply.currency else None,
            billing_cycle=self._parse_enum(BillingCycle, reply.billing_cycle),
            confidence=reply.confidence,
            matched_phrases=[],
            language="en",
            subscription_type=self._parse_enum(SubscriptionType, reply.type),
            cancel_url=reply.cancel_url or None,
            dates=dates,
            method=ExtractionMethod.MODEL,
        )
        result.needs_review = compute_needs_review(
            result.confidence, result.service_name, result.has_date
        )

        log_event(
            "subscriptions.extractor.complete",
            email_id=message.id,
            sender=redact(message.sender_address),
            service=service_name.value,
            in_registry=service_name.from_registry,
            confidence=round(result.confidence, 3),
        )
        return result

    @staticmethod
    def _parse_date(value: str | None) -> str | None:
        """Normalize a model date to YYYY-MM-DD; anything else is dropped."""
        if not value:
            return None
        try:
            return datetime.strptime(value.strip()[:10], "%Y-%m-%d").date().isoformat()
        except ValueError:
            logger.debug("Dropped unparsable model date %r", value)
            return None

    @staticmethod
    def _parse_amount(value: float | None) -> Decimal | None:
        if value is None:
            return None
        try:
            return Decimal(str(value))
        except InvalidOperation:
            return None

    @staticmethod
    def _parse_enum(enum_cls, value: str | None):
        if not value:
            return None
        try:
            return enum_cls(value.strip().lower())
        except ValueError:
            return None
