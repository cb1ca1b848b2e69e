"""
Pytest configuration for subscout tests

Provides the sample confirmation emails and resets process-wide state
(telemetry counters, LLM flag) around every test.
"""

from __future__ import annotations

from datetime import datetime, timezone

import pytest

from subscout.observability.telemetry import reset_counters
from subscout.subscriptions.types import EmailMessage


def make_email(
    id: str = "msg-1",
    subject: str = "",
    sender: str = "",
    body: str = "",
    received_at: str = "2025-07-10T12:00:00",
    body_html: str | None = None,
) -> EmailMessage:
    return EmailMessage(
        id=id,
        subject=subject,
        sender=sender,
        body=body,
        received_at=datetime.fromisoformat(received_at).replace(tzinfo=timezone.utc),
        body_html=body_html,
    )


@pytest.fixture(autouse=True)
def _isolate_state(monkeypatch):
    monkeypatch.setenv("SUBSCOUT_USE_LLM", "false")
    reset_counters()
    yield
    reset_counters()


@pytest.fixture
def hulu_email() -> EmailMessage:
    return make_email(
        id="1",
        subject="Your Hulu Free Trial Has Begun",
        sender="Hulu <no-reply@hulu.com>",
        body=(
            "Hi Alex,\n\nThanks for signing up for Hulu. Your free trial starts today and "
            "ends on August 15, 2025. After that, you'll be charged $7.99/month unless you "
            "cancel.\n\nYou can manage your subscription anytime at hulu.com/account.\n\n"
            "Thanks,\nThe Hulu Team"
        ),
        received_at="2025-07-01T12:00:00",
    )


@pytest.fixture
def apple_tv_email() -> EmailMessage:
    return make_email(
        id="2",
        subject="Your Apple TV+ Trial is Active",
        sender="Apple <no-reply@apple.com>",
        body=(
            "Hi Jordan,\n\nYour 7-day free trial of Apple TV+ is now active. You'll be "
            "charged $9.99 on July 22, 2025, unless you cancel beforehand.\n\n"
            "Happy watching!\nApple Support"
        ),
        received_at="2025-07-15T12:00:00",
    )


@pytest.fixture
def headspace_email() -> EmailMessage:
    return make_email(
        id="3",
        subject="Your Trial Will Convert Soon",
        sender="Headspace <no-reply@headspace.com>",
        body=(
            "Welcome to Headspace!\n\nYour free trial is about to convert to a paid "
            "subscription. You'll be billed $12.00 in 3 days. No action is needed unless "
            "you want to cancel.\n\nStay mindful,\nThe Headspace Team"
        ),
        received_at="2025-07-10T12:00:00",
    )


@pytest.fixture
def notion_email() -> EmailMessage:
    return make_email(
        id="4",
        subject="Welcome to Notion",
        sender="Notion <no-reply@notion.so>",
        body=(
            "Hi Taylor,\n\nThanks for signing up for Notion! You now have access to "
            "unlimited pages and blocks.\n\nExplore templates and integrations to get the "
            "most out of your workspace.\n\nCheers,\nThe Notion Team"
        ),
        received_at="2025-07-05T12:00:00",
    )


@pytest.fixture
def duolingo_email() -> EmailMessage:
    return make_email(
        id="5",
        subject="Your First Charge Will Occur Soon",
        sender="Duolingo <no-reply@duolingo.com>",
        body=(
            "Hi Casey,\n\nThanks for starting your free trial with Duolingo Plus. If you do "
            "not cancel, your subscription will begin automatically and the first charge "
            "will occur on July 18.\n\nYour trial includes access to offline lessons and "
            "ad-free learning.\n\nDuolingo"
        ),
        received_at="2025-07-10T12:00:00",
    )


@pytest.fixture
def marketing_email() -> EmailMessage:
    return make_email(
        id="6",
        subject="Welcome to Spotify Premium - 3 months for $0",
        sender="Spotify <no-reply@spotify.com>",
        body=(
            "Welcome to Premium! Your subscription is confirmed and you'll be charged "
            "$10.99 on August 1, 2025.\n\nTo stop receiving these emails, unsubscribe here."
        ),
        received_at="2025-07-10T12:00:00",
    )


@pytest.fixture
def sample_emails(
    hulu_email, apple_tv_email, headspace_email, notion_email, duolingo_email
) -> list[EmailMessage]:
    return [hulu_email, apple_tv_email, headspace_email, notion_email, duolingo_email]


@pytest.fixture
def email_factory():
    """Build an EmailMessage from keyword overrides."""
    return make_email
