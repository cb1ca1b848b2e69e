"""
Module: filter_data
Purpose: Keyword constants for the prefilter / confirmation gate.
Dependencies: None (pure data, no imports)

Separates gate policy data from gate logic. Edit this file to add/remove
terms without touching the matching algorithm in filters.py.
"""

# ---------------------------------------------------------------------------
# Reject list: marketing / bulk-mail language
# Any hit rejects the message before extraction, no backend call.
# Matched as case-insensitive substrings: "unsubscribed", "offers" and
# ".../unsubscribeAll" all hit.
# ---------------------------------------------------------------------------

REJECT_KEYWORDS: tuple[str, ...] = (
    "unsubscribe",
    "newsletter",
    "marketing",
    "promotional",
    "sale",
    "discount",
    "offer",
    "deal",
    "free shipping",
    "coupon",
    "promo",
    "spam",
    "bulk",
    "mailing list",
    "opt-out",
    "opt out",
    "update your preferences",
    "email preferences",
    "notification settings",
    "privacy policy",
    "terms of service",
)

# ---------------------------------------------------------------------------
# Require list: confirmation-style phrasing
# At least one must be present (subject or body) for the message to proceed.
# ---------------------------------------------------------------------------

CONFIRMATION_PHRASES: tuple[str, ...] = (
    "welcome to",
    "subscription confirmed",
    "subscription is confirmed",
    "trial started",
    "trial has started",
    "trial has begun",
    "trial is active",
    "trial is now active",
    "signup confirmed",
    "sign-up confirmed",
    "registration complete",
    "account created",
    "billing confirmation",
    "payment confirmation",
    "subscription activated",
    "subscription is active",
    "trial activated",
    "thanks for signing up",
    "thank you for signing up",
    "thanks for subscribing",
    "thank you for subscribing",
    "thanks for starting your",
)
