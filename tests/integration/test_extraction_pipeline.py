"""
Integration tests for the subscription extraction pipeline.

Tests the full flow:
1. ConfirmationGate - keyword prefilter
2. ModelBasedExtractor (SUBSCOUT_USE_LLM=true) with RuleBasedExtractor fallback
3. DecisionPolicy - accept / reject / needs_review
4. Batch processing, cancellation and the result sink

The model is always a fake callable; nothing here needs Vertex AI.

Run with: pytest tests/integration/test_extraction_pipeline.py -v
"""

import json
import threading
from unittest.mock import Mock

import pytest

from subscout.observability.telemetry import get_counter
from subscout.subscriptions.decision import REASON_BELOW_THRESHOLD, REASON_NO_SERVICE_NAME
from subscout.subscriptions.extractor import SubscriptionExtractor
from subscout.subscriptions.llm_extractor import ModelBasedExtractor
from subscout.subscriptions.ports import InMemorySink
from subscout.subscriptions.rule_extractor import RuleBasedExtractor
from subscout.subscriptions.types import DecisionOutcome, ExtractionMethod

HULU_REPLY = json.dumps(
    {
        "isSubscription": True,
        "serviceName": "Hulu",
        "type": "trial",
        "amount": 7.99,
        "currency": "USD",
        "billingCycle": "monthly",
        "startDate": "2025-07-01",
        "endDate": "2025-08-15",
        "trialEndDate": "2025-08-15",
        "renewalDate": None,
        "cancelUrl": None,
        "confidence": 0.95,
    }
)


@pytest.fixture
def pipeline():
    return SubscriptionExtractor()


def model_pipeline(llm_call, rule_extractor=None) -> SubscriptionExtractor:
    return SubscriptionExtractor(
        model_extractor=ModelBasedExtractor(llm_call=llm_call),
        rule_extractor=rule_extractor,
    )


# =============================================================================
# Rules-only path (SUBSCOUT_USE_LLM=false)
# =============================================================================


class TestRulesPipeline:
    def test_sample_outcomes(self, pipeline, sample_emails):
        outcomes = {p.email_id: p.decision for p in map(pipeline.evaluate, sample_emails)}

        assert outcomes["1"].outcome == DecisionOutcome.ACCEPT
        assert outcomes["2"].outcome == DecisionOutcome.ACCEPT
        assert outcomes["3"].outcome == DecisionOutcome.ACCEPT
        assert outcomes["4"].outcome == DecisionOutcome.REJECT
        assert outcomes["4"].reason == REASON_BELOW_THRESHOLD
        assert outcomes["5"].outcome == DecisionOutcome.REJECT
        assert outcomes["5"].reason == REASON_BELOW_THRESHOLD

    def test_marketing_email_never_reaches_an_extractor(self, marketing_email, monkeypatch):
        monkeypatch.setenv("SUBSCOUT_USE_LLM", "true")
        llm_call = Mock(return_value=HULU_REPLY)
        rules = Mock(wraps=RuleBasedExtractor())
        pipeline = model_pipeline(llm_call, rule_extractor=rules)

        processed = pipeline.evaluate(marketing_email)

        assert processed.result.method == ExtractionMethod.PREFILTER
        assert processed.result.rejection_reason == "prefilter:reject_keyword"
        assert processed.result.is_empty
        assert processed.decision.reason == REASON_NO_SERVICE_NAME
        assert llm_call.call_count == 0
        assert rules.extract.call_count == 0
        assert get_counter("subscriptions.gate.rejected") == 1

    def test_html_only_body(self, pipeline, email_factory):
        email = email_factory(
            subject="Your Hulu account",
            sender="Hulu <no-reply@hulu.com>",
            received_at="2025-07-01T12:00:00",
            body_html=(
                "<html><body><p>Thanks for signing up for Hulu. Your free trial ends on "
                "August 15, 2025.</p><p>After that, you'll be charged $7.99/month.</p>"
                "</body></html>"
            ),
        )
        result = pipeline.extract(email)

        assert result.service_name.value == "Hulu"
        assert result.trial_end == "2025-08-15"
        assert result.first_charge is None


# =============================================================================
# Model path and fallback (SUBSCOUT_USE_LLM=true)
# =============================================================================


class TestModelPipeline:
    @pytest.fixture(autouse=True)
    def _enable_llm(self, monkeypatch):
        monkeypatch.setenv("SUBSCOUT_USE_LLM", "true")

    def test_model_result_used(self, hulu_email):
        pipeline = model_pipeline(lambda prompt: HULU_REPLY)

        processed = pipeline.evaluate(hulu_email)

        assert processed.result.method == ExtractionMethod.MODEL
        assert processed.result.trial_end == "2025-08-15"
        assert processed.decision.accepted

    def test_model_not_subscription_is_final(self, hulu_email):
        pipeline = model_pipeline(lambda prompt: '{"isSubscription": false}')

        result = pipeline.extract(hulu_email)

        assert result.method == ExtractionMethod.MODEL
        assert result.is_empty
        assert get_counter("subscriptions.extractor.fallback") == 0

    def test_transport_failure_falls_back_to_rules(self, hulu_email):
        def failing_call(prompt):
            raise ConnectionError("LLM service unavailable")

        result = model_pipeline(failing_call).extract(hulu_email)

        assert result.method == ExtractionMethod.RULES
        assert result.service_name.value == "Hulu"
        assert result.trial_end == "2025-08-15"
        assert get_counter("subscriptions.extractor.fallback") == 1

    def test_malformed_reply_falls_back_to_rules(self, apple_tv_email):
        result = model_pipeline(lambda prompt: "Sure! Here is the JSON you asked for").extract(
            apple_tv_email
        )

        assert result.method == ExtractionMethod.RULES
        assert result.first_charge == "2025-07-22"


# =============================================================================
# Failure isolation
# =============================================================================


class ExplodingRules(RuleBasedExtractor):
    def extract(self, message, body=None):
        raise RuntimeError("unexpected parser failure")


class TestNeverRaises:
    def test_unexpected_error_becomes_empty_result(self, hulu_email):
        pipeline = SubscriptionExtractor(rule_extractor=ExplodingRules())

        processed = pipeline.evaluate(hulu_email)

        assert processed.result.method == ExtractionMethod.ERROR
        assert processed.result.rejection_reason.startswith("error:")
        assert processed.result.is_empty
        assert processed.decision.outcome == DecisionOutcome.REJECT
        assert get_counter("subscriptions.extraction.error") == 1

    def test_batch_survives_one_bad_message(self, sample_emails):
        class FailOnNotion(RuleBasedExtractor):
            def extract(self, message, body=None):
                if message.id == "4":
                    raise RuntimeError("boom")
                return super().extract(message, body)

        batch = SubscriptionExtractor(rule_extractor=FailOnNotion()).process_batch(
            sample_emails, max_workers=3
        )

        assert [p.email_id for p in batch.processed] == ["1", "2", "3", "4", "5"]
        assert batch.processed[3].result.method == ExtractionMethod.ERROR


# =============================================================================
# Batch processing
# =============================================================================


class TestProcessBatch:
    @pytest.mark.parametrize("workers", [1, 4])
    def test_order_and_acceptance(self, pipeline, sample_emails, workers):
        sink = InMemorySink()

        batch = pipeline.process_batch(sample_emails, max_workers=workers, sink=sink)

        assert [p.email_id for p in batch.processed] == ["1", "2", "3", "4", "5"]
        assert [p.email_id for p in batch.accepted] == ["1", "2", "3"]
        assert not batch.cancelled
        assert [r["source_email_id"] for r in sink.records] == ["1", "2", "3"]

    def test_sink_record_shape(self, pipeline, hulu_email):
        sink = InMemorySink()

        pipeline.process_batch([hulu_email], sink=sink)

        record = sink.records[0]
        assert record["service_name"] == "Hulu"
        assert record["trial_end_date"] == "2025-08-15"
        assert record["amount"] == "7.99"
        assert record["currency"] == "USD"
        assert record["billing_cycle"] == "monthly"
        assert record["cancel_url"] == "https://secure.hulu.com/account"
        assert record["extraction_method"] == "rules"
        assert record["decision"] == "accept"

    def test_sink_deduplicates(self, pipeline, hulu_email):
        sink = InMemorySink()

        pipeline.process_batch([hulu_email], sink=sink)
        pipeline.process_batch([hulu_email], sink=sink)

        assert len(sink.records) == 1

    def test_stop_before_start_skips_everything(self, pipeline, sample_emails):
        stop = threading.Event()
        stop.set()

        batch = pipeline.process_batch(sample_emails, max_workers=4, stop_event=stop)

        assert batch.processed == []
        assert batch.skipped_ids == ["1", "2", "3", "4", "5"]
        assert batch.cancelled

    def test_stop_mid_batch_finishes_in_flight_work(self, sample_emails):
        stop = threading.Event()

        class StopAfterFirst(RuleBasedExtractor):
            def extract(self, message, body=None):
                result = super().extract(message, body)
                stop.set()
                return result

        pipeline = SubscriptionExtractor(rule_extractor=StopAfterFirst())
        batch = pipeline.process_batch(sample_emails, max_workers=1, stop_event=stop)

        assert [p.email_id for p in batch.processed] == ["1"]
        assert batch.processed[0].result.trial_end == "2025-08-15"
        assert batch.skipped_ids == ["2", "3", "4", "5"]

    def test_review_mode(self, pipeline, sample_emails):
        batch = pipeline.process_batch(sample_emails, max_workers=1, review_mode=True)
        outcomes = {p.email_id: p.decision.outcome for p in batch.processed}

        assert outcomes["5"] == DecisionOutcome.NEEDS_REVIEW
        assert outcomes["4"] == DecisionOutcome.NEEDS_REVIEW
        assert outcomes["1"] == DecisionOutcome.ACCEPT
