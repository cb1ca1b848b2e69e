"""
Service Name Resolver - who is this subscription with?

Passes run in order and the first success wins:
1. Whole-body registry scan, longest names first        -> 0.80
2. Sender domain token (before the first dot)           -> 0.95 registry / 0.70 guess
3. Per-line body registry scan                          -> 0.80
4. Subject token scan (stop-words and short tokens out) -> 0.85 registry / 0.60 guess
"""

from __future__ import annotations

import re

from subscout.observability.logging import get_logger
from subscout.subscriptions.registry import LegitimacyRegistry, get_registry
from subscout.subscriptions.types import ServiceNameGuess

logger = get_logger(__name__)

_DOMAIN_RE = re.compile(r"@([a-z0-9.-]+)", re.IGNORECASE)
_TOKEN_STRIP = ".,:;!?\"'()[]{}<>"


class ServiceNameResolver:
    BODY_CONFIDENCE = 0.8
    SENDER_REGISTRY_CONFIDENCE = 0.95
    SENDER_GUESS_CONFIDENCE = 0.7
    SUBJECT_REGISTRY_CONFIDENCE = 0.85
    SUBJECT_GUESS_CONFIDENCE = 0.6

    SUBJECT_STOP_WORDS = frozenset({"your", "the", "trial", "subscription", "welcome", "thank"})
    MIN_SUBJECT_TOKEN_LEN = 4

    def __init__(self, registry: LegitimacyRegistry | None = None):
        self.registry = registry or get_registry()

    def resolve(self, sender: str, subject: str, body: str) -> ServiceNameGuess | None:
        """
        Determine the merchant behind a message.

        Args:
            sender: Raw sender header ("Hulu <no-reply@hulu.com>") or address
            subject: Subject line
            body: Plain-text body

        Returns:
            ServiceNameGuess, or None when every pass comes up empty
        """
        return (
            self._from_body(body)
            or self._from_sender_domain(sender)
            or self._from_body_lines(body)
            or self._from_subject(subject)
        )

    def _from_body(self, body: str) -> ServiceNameGuess | None:
        name = self.registry.find_in(body)
        if name:
            return ServiceNameGuess(name, self.BODY_CONFIDENCE, True, source="body")
        return None

    def _from_sender_domain(self, sender: str) -> ServiceNameGuess | None:
        match = _DOMAIN_RE.search(sender or "")
        if not match:
            return None
        token = match.group(1).split(".", 1)[0].strip("-")
        if not token:
            return None

        canonical = self.registry.canonical(token)
        if canonical:
            return ServiceNameGuess(
                canonical, self.SENDER_REGISTRY_CONFIDENCE, True, source="sender_domain"
            )
        return ServiceNameGuess(
            token.capitalize(), self.SENDER_GUESS_CONFIDENCE, False, source="sender_domain"
        )

    def _from_body_lines(self, body: str) -> ServiceNameGuess | None:
        for line in (body or "").splitlines():
            name = self.registry.find_in(line)
            if name:
                return ServiceNameGuess(name, self.BODY_CONFIDENCE, True, source="body_line")
        return None

    def _from_subject(self, subject: str) -> ServiceNameGuess | None:
        for raw in (subject or "").split():
            token = raw.strip(_TOKEN_STRIP)
            if len(token) < self.MIN_SUBJECT_TOKEN_LEN:
                continue
            if token.lower() in self.SUBJECT_STOP_WORDS:
                continue

            canonical = self.registry.canonical(token)
            if canonical:
                return ServiceNameGuess(
                    canonical, self.SUBJECT_REGISTRY_CONFIDENCE, True, source="subject"
                )
            return ServiceNameGuess(
                token[0].upper() + token[1:],
                self.SUBJECT_GUESS_CONFIDENCE,
                False,
                source="subject",
            )
        return None
