"""
Subscription Extractor - main orchestrator for the extraction pipeline.

Coordinates:
1. ConfirmationGate - keyword prefilter, no extraction on rejection
2. ModelBasedExtractor - Gemini structured extraction (SUBSCOUT_USE_LLM=true)
3. RuleBasedExtractor - deterministic extraction, and the single fallback
   when the model path fails
4. DecisionPolicy - accept / reject / needs_review

Entry points: SubscriptionExtractor.extract() for one message (never raises),
SubscriptionExtractor.process_batch() for a mailbox page.
"""

from __future__ import annotations

import concurrent.futures
import threading
from collections.abc import Iterable
from dataclasses import dataclass, field

from subscout.config import LLM_MAX_WORKERS, PIPELINE_MIN_BODY_CHARS, is_production
from subscout.observability.logging import get_logger
from subscout.observability.telemetry import counter, log_event, time_block
from subscout.subscriptions.decision import DecisionPolicy
from subscout.subscriptions.filters import ConfirmationGate
from subscout.subscriptions.llm_extractor import ModelBasedExtractor, ModelExtractionError, use_llm
from subscout.subscriptions.ports import SubscriptionSink
from subscout.subscriptions.registry import LegitimacyRegistry, get_registry
from subscout.subscriptions.rule_extractor import RuleBasedExtractor
from subscout.subscriptions.types import (
    Decision,
    EmailMessage,
    ExtractionMethod,
    ExtractionResult,
)
from subscout.utils.html import resolve_body
from subscout.utils.redaction import redact_subject

logger = get_logger(__name__)


@dataclass
class ProcessedEmail:
    """An extraction result with the decision derived from it."""

    email_id: str
    result: ExtractionResult
    decision: Decision


@dataclass
class BatchResult:
    """Outcome of process_batch. `processed` keeps input order."""

    processed: list[ProcessedEmail] = field(default_factory=list)
    skipped_ids: list[str] = field(default_factory=list)  # not started (batch cancelled)

    @property
    def results(self) -> list[ExtractionResult]:
        return [p.result for p in self.processed]

    @property
    def accepted(self) -> list[ProcessedEmail]:
        return [p for p in self.processed if p.decision.accepted]

    @property
    def cancelled(self) -> bool:
        return bool(self.skipped_ids)


class SubscriptionExtractor:
    """
    Main orchestrator for subscription extraction.

    Usage:
        extractor = SubscriptionExtractor()
        result = extractor.extract(message)
        decision = extractor.policy.decide(result)
    """

    def __init__(
        self,
        gate: ConfirmationGate | None = None,
        rule_extractor: RuleBasedExtractor | None = None,
        model_extractor: ModelBasedExtractor | None = None,
        policy: DecisionPolicy | None = None,
        registry: LegitimacyRegistry | None = None,
    ):
        self.registry = registry or get_registry()
        self.gate = gate or ConfirmationGate()
        self.rule_extractor = rule_extractor or RuleBasedExtractor()
        self.model_extractor = model_extractor or ModelBasedExtractor(registry=self.registry)
        self.policy = policy or DecisionPolicy(registry=self.registry)

    def extract(self, message: EmailMessage) -> ExtractionResult:
        """
        Run one message through gate and extractors.

        Always returns a well-formed ExtractionResult; unexpected failures are
        logged and converted into an empty result with method="error".
        """
        try:
            with time_block("subscriptions.extract"):
                return self._extract(message)
        except Exception as e:
            logger.error(
                "Failed to extract email %s: %s", message.id, e, exc_info=not is_production()
            )
            counter("subscriptions.extraction.error")
            return ExtractionResult.empty(
                message.id, ExtractionMethod.ERROR, f"error:{str(e)[:100]}"
            )

    def _extract(self, message: EmailMessage) -> ExtractionResult:
        body = resolve_body(message.body, message.body_html, PIPELINE_MIN_BODY_CHARS)

        gate_result = self.gate.check(message.subject, body)
        if not gate_result.is_candidate:
            counter("subscriptions.gate.rejected")
            logger.debug(
                "Gate rejected %s (%s: %s)",
                redact_subject(message.subject),
                gate_result.reason,
                gate_result.matched_term,
            )
            return ExtractionResult.empty(
                message.id, ExtractionMethod.PREFILTER, f"prefilter:{gate_result.reason}"
            )
        counter("subscriptions.gate.passed")

        if not use_llm():
            counter("subscriptions.extractor.llm_disabled")
            return self.rule_extractor.extract(message, body)

        try:
            return self.model_extractor.extract(message, body)
        except ModelExtractionError as e:
            logger.warning("Model extraction failed, falling back to rules: %s", e)
            counter("subscriptions.extractor.fallback")
            return self.rule_extractor.extract(message, body)

    def evaluate(self, message: EmailMessage, review_mode: bool = False) -> ProcessedEmail:
        """Extract and decide."""
        result = self.extract(message)
        decision = self.policy.decide(result, review_mode=review_mode)
        counter(f"subscriptions.decision.{decision.outcome.value}")
        return ProcessedEmail(email_id=message.id, result=result, decision=decision)

    def process_batch(
        self,
        messages: Iterable[EmailMessage],
        max_workers: int | None = None,
        stop_event: threading.Event | None = None,
        sink: SubscriptionSink | None = None,
        review_mode: bool = False,
    ) -> BatchResult:
        """
        Process a mailbox page.

        Args:
            messages: Messages to process (independent of each other)
            max_workers: Worker threads; 1 runs sequentially. Defaults to
                         SUBSCOUT_MAX_WORKERS.
            stop_event: Once set, messages not yet started are skipped.
                        In-flight extractions always finish.
            sink: Receives every accepted result, in input order
            review_mode: Passed to DecisionPolicy.decide

        Returns:
            BatchResult with processed messages in input order
        """
        messages_list = list(messages)
        workers = LLM_MAX_WORKERS if max_workers is None else max_workers

        def _run(idx: int, message: EmailMessage) -> tuple[int, ProcessedEmail | None]:
            if stop_event is not None and stop_event.is_set():
                return idx, None
            return idx, self.evaluate(message, review_mode=review_mode)

        outcomes: list[tuple[int, ProcessedEmail | None]] = []
        with time_block("subscriptions.batch"):
            if workers <= 1 or len(messages_list) <= 1:
                outcomes = [_run(idx, m) for idx, m in enumerate(messages_list)]
            else:
                with concurrent.futures.ThreadPoolExecutor(max_workers=workers) as executor:
                    future_to_idx = {
                        executor.submit(_run, idx, m): idx for idx, m in enumerate(messages_list)
                    }
                    for future in concurrent.futures.as_completed(future_to_idx):
                        idx = future_to_idx[future]
                        try:
                            outcomes.append(future.result())
                        except Exception as exc:
                            message = messages_list[idx]
                            logger.error("Failed to process email %s: %s", message.id, exc)
                            counter("subscriptions.extraction.error")
                            result = ExtractionResult.empty(
                                message.id, ExtractionMethod.ERROR, f"error:{str(exc)[:100]}"
                            )
                            outcomes.append(
                                (idx, ProcessedEmail(message.id, result, self.policy.decide(result)))
                            )

        # Restore original order (deterministic despite parallelism)
        outcomes.sort(key=lambda x: x[0])

        batch = BatchResult()
        for idx, processed in outcomes:
            if processed is None:
                batch.skipped_ids.append(messages_list[idx].id)
            else:
                batch.processed.append(processed)

        if sink is not None:
            for processed in batch.accepted:
                sink.save(processed.result, processed.decision)

        log_event(
            "subscriptions.batch_complete",
            total=len(messages_list),
            processed=len(batch.processed),
            accepted=len(batch.accepted),
            skipped=len(batch.skipped_ids),
        )
        return batch
