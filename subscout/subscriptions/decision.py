"""
Confidence Gate & Decision Policy.

Acceptance requires all of:
- service name present
- service name in the Legitimacy Registry
- confidence >= ACCEPT_CONFIDENCE_THRESHOLD

Batch ingestion rejects everything else. Review mode (interactive reviewer)
re-surfaces borderline results for registry-known services as NEEDS_REVIEW
instead of discarding them.
"""

from __future__ import annotations

from subscout.config import ACCEPT_CONFIDENCE_THRESHOLD
from subscout.subscriptions.registry import LegitimacyRegistry, get_registry
from subscout.subscriptions.types import Decision, DecisionOutcome, ExtractionResult

REASON_ACCEPTED = "accepted"
REASON_NO_SERVICE_NAME = "no_service_name"
REASON_UNKNOWN_SERVICE = "unknown_service"
REASON_BELOW_THRESHOLD = "below_threshold"
REASON_FLAGGED_FOR_REVIEW = "flagged_for_review"


class DecisionPolicy:
    def __init__(
        self,
        registry: LegitimacyRegistry | None = None,
        accept_threshold: float = ACCEPT_CONFIDENCE_THRESHOLD,
    ):
        self.registry = registry or get_registry()
        self.accept_threshold = accept_threshold

    def decide(self, result: ExtractionResult, review_mode: bool = False) -> Decision:
        """
        Classify an extraction result. Pure function of the result and thresholds.

        Args:
            result: Output of either extractor
            review_mode: Surface borderline results as NEEDS_REVIEW

        Returns:
            Decision with a reason code
        """
        if result.service_name is None or not result.service_name.value:
            return Decision(DecisionOutcome.REJECT, REASON_NO_SERVICE_NAME)

        if not self.registry.is_known(result.service_name.value):
            return Decision(DecisionOutcome.REJECT, REASON_UNKNOWN_SERVICE)

        if result.confidence < self.accept_threshold:
            if review_mode:
                return Decision(DecisionOutcome.NEEDS_REVIEW, REASON_BELOW_THRESHOLD)
            return Decision(DecisionOutcome.REJECT, REASON_BELOW_THRESHOLD)

        if review_mode and result.needs_review:
            return Decision(DecisionOutcome.NEEDS_REVIEW, REASON_FLAGGED_FOR_REVIEW)

        return Decision(DecisionOutcome.ACCEPT, REASON_ACCEPTED)
