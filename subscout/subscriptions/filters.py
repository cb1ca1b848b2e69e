"""
Prefilter / Confirmation Gate.

Runs before any extraction, on subject + body. Two keyword screens:
1. Reject list: marketing / unsubscribe / promotional language -> reject
2. Require list: no confirmation-style phrase anywhere -> reject

Cost: $0 (no LLM calls). A rejection here guarantees no extractor runs.
"""

from __future__ import annotations

import re

from subscout.observability.logging import get_logger
from subscout.subscriptions.filter_data import CONFIRMATION_PHRASES, REJECT_KEYWORDS
from subscout.subscriptions.types import FilterResult

logger = get_logger(__name__)


def _term_pattern(term: str, whole_word: bool) -> re.Pattern[str]:
    body = r"\s+".join(re.escape(part) for part in term.split())
    if whole_word:
        body = rf"(?<!\w){body}(?!\w)"
    return re.compile(body, re.IGNORECASE)


class ConfirmationGate:
    """
    Keyword gate in front of the extractors.

    Keyword constants live in filter_data.py; instances copy them so a
    caller can extend one gate without affecting others.
    """

    def __init__(
        self,
        reject_keywords: tuple[str, ...] | list[str] = REJECT_KEYWORDS,
        confirmation_phrases: tuple[str, ...] | list[str] = CONFIRMATION_PHRASES,
    ):
        self.reject_keywords = tuple(reject_keywords)
        self.confirmation_phrases = tuple(confirmation_phrases)
        # reject terms fire anywhere, inside longer words and URLs too
        self._reject = [(k, _term_pattern(k, whole_word=False)) for k in self.reject_keywords]
        self._require = [(p, _term_pattern(p, whole_word=True)) for p in self.confirmation_phrases]

    def check(self, subject: str, body: str) -> FilterResult:
        """
        Decide whether a message is a subscription-confirmation candidate.

        Args:
            subject: Email subject line
            body: Plain-text body

        Returns:
            FilterResult with is_candidate=True only if no reject term is
            present and at least one confirmation phrase is.
        """
        # Normalize curly apostrophes so "you’ll" and "you'll" match alike
        text = f"{subject}\n{body}".replace("’", "'")

        for term, pattern in self._reject:
            if pattern.search(text):
                logger.debug("Gate rejected: reject keyword %r", term)
                return FilterResult(is_candidate=False, reason="reject_keyword", matched_term=term)

        for phrase, pattern in self._require:
            if pattern.search(text):
                return FilterResult(is_candidate=True, reason="confirmation", matched_term=phrase)

        logger.debug("Gate rejected: no confirmation phrase")
        return FilterResult(is_candidate=False, reason="no_confirmation_phrase")
