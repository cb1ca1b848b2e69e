"""
Keeping mailbox content out of logs and model prompts.

Provides:
- redact(): Stable hash of a sensitive string (correlate without exposing)
- redact_subject(): Truncated subject plus a short hash, for log lines
- mask_addresses(): Replace email addresses with "j***@domain" in free text
- sanitize_for_prompt(): Truncate email text and neutralize injection phrases
"""

from __future__ import annotations

import re
from hashlib import sha256

# Phrases an email author could use to steer the extraction model
INJECTION_PATTERNS: tuple[str, ...] = (
    r"(?:ignore|disregard|forget)\s+(?:(?:all|any)\s+)?(?:(?:previous|above|prior|earlier)\s+)?instructions?",
    r"new\s+instructions?\s*:",
    r"\b(?:system|assistant)\s*:",
    r"\[/?INST\]",
    r"<\|im_(?:start|end)\|>",
)
INJECTION_REGEX = re.compile("|".join(INJECTION_PATTERNS), re.IGNORECASE)

# Building blocks of chat-template and role markup (<|im_start|>, </s>)
_PROMPT_UNSAFE_CHARS = re.compile(r"[<>|]")

_EMAIL_ADDRESS = re.compile(r"\b([A-Za-z0-9._%+-])[A-Za-z0-9._%+-]*@([A-Za-z0-9.-]+\.[A-Za-z]{2,})\b")


def redact(value: str | None) -> str:
    """Return a stable hash representation of a sensitive string."""
    if not value:
        return "hash:missing"
    return f"hash:{sha256(value.encode('utf-8')).hexdigest()[:12]}"


def redact_subject(subject: str | None, max_length: int = 30) -> str:
    """
    Shorten a subject for logging, keeping a hash suffix for correlation.

    Example:
        "Welcome to Hulu - your free trial has started" ->
        "Welcome to Hulu - your free tr... (h:1f2e3d)"
    """
    if not subject:
        return "(no subject)"

    visible = subject if len(subject) <= max_length else f"{subject[:max_length]}..."
    return f"{visible} (h:{sha256(subject.encode('utf-8')).hexdigest()[:6]})"


def mask_addresses(text: str) -> str:
    """Mask the local part of every email address ("alex@hulu.com" -> "a***@hulu.com")."""
    if not text:
        return text
    return _EMAIL_ADDRESS.sub(r"\1***@\2", text)


def sanitize_for_prompt(text: str, max_length: int) -> str:
    """
    Prepare email-provided text for the extraction prompt.

    Truncates to max_length first, then replaces injection phrases with
    [REDACTED] and drops characters that would break the template.
    """
    if not text:
        return ""

    cleaned = INJECTION_REGEX.sub("[REDACTED]", text[:max_length])
    return _PROMPT_UNSAFE_CHARS.sub("", cleaned).strip()
