"""
Phrase-Context Associator - which date is the trial end, which the first charge?

A date gets a role when a role-defining phrase sits within a fixed character
window of it. Each date carries at most one role: once claimed, a date is
skipped by the roles that come after. When no phrase lands near any date, a
fixed default-assignment order tags the first date found.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field

from subscout.config import PHRASE_WINDOW_CHARS
from subscout.subscriptions.types import DateMatch, DateRole

TRIAL_END_PHRASES: tuple[str, ...] = (
    "trial ends",
    "trial will end",
    "trial ending",
    "trial expires",
    "trial will expire",
    "trial period ends",
    "ends on",
    "expires on",
    "free until",
)

FIRST_CHARGE_PHRASES: tuple[str, ...] = (
    "you'll be charged",
    "you will be charged",
    "will be charged",
    "you'll be billed",
    "you will be billed",
    "will be billed",
    "charged on",
    "billed on",
    "payment will be taken",
    "payment is due",
)

RENEWAL_PHRASES: tuple[str, ...] = (
    "renews on",
    "will renew",
    "will automatically renew",
    "auto-renews",
    "renewal date",
    "next billing date",
    "next payment date",
    "next renewal",
)

ROLE_PHRASES: dict[DateRole, tuple[str, ...]] = {
    DateRole.TRIAL_END: TRIAL_END_PHRASES,
    DateRole.FIRST_CHARGE: FIRST_CHARGE_PHRASES,
    DateRole.RENEWAL: RENEWAL_PHRASES,
}

# Fallback cues, checked in this order
_WILL_BE_CHARGED = re.compile(r"\bwill\s+be\s+(?:charged|billed)\b")
_FIRST_CHARGE = re.compile(r"\bfirst\s+(?:charge|payment|bill)\b")
_TRIAL_KEYWORD = re.compile(r"\btrial\b")
_BILLING_KEYWORD = re.compile(r"\b(?:bill(?:ed|ing)?|charge[ds]?|payment)\b")


@dataclass(frozen=True)
class Association:
    role: DateRole
    date: DateMatch
    phrase: str  # the phrase, or "default:<rule>" for fallback assignments
    by_default: bool = False


@dataclass
class AssociationResult:
    associations: list[Association] = field(default_factory=list)

    @property
    def by_role(self) -> dict[DateRole, Association]:
        return {a.role: a for a in self.associations}

    @property
    def phrase_matched(self) -> bool:
        """True when at least one phrase-to-date association succeeded."""
        return any(not a.by_default for a in self.associations)

    def iso_for(self, role: DateRole) -> str | None:
        association = self.by_role.get(role)
        return association.date.iso_date if association else None


def _phrase_pattern(phrase: str) -> re.Pattern[str]:
    body = r"\s+".join(re.escape(part) for part in phrase.split())
    return re.compile(rf"(?<!\w){body}(?!\w)")


class PhraseContextAssociator:
    def __init__(self, window: int = PHRASE_WINDOW_CHARS):
        self.window = window
        self._patterns = {
            role: [(p, _phrase_pattern(p)) for p in phrases]
            for role, phrases in ROLE_PHRASES.items()
        }

    def associate(self, text: str, dates: list[DateMatch]) -> AssociationResult:
        """
        Tag dates with roles.

        Args:
            text: Normalized text the date spans index into
            dates: Date matches from DateExtractor.find

        Returns:
            AssociationResult; at most one association per role and per date
        """
        result = AssociationResult()
        if not dates:
            return result

        in_text_order = sorted(dates, key=lambda d: d.start)
        claimed: set[int] = set()
        for role, patterns in self._patterns.items():
            association = self._first_for_role(text, role, patterns, in_text_order, claimed)
            if association:
                claimed.add(association.date.start)
                result.associations.append(association)

        if not result.associations:
            fallback = self._default_assignment(text, dates)
            if fallback:
                result.associations.append(fallback)
        return result

    def _first_for_role(
        self,
        text: str,
        role: DateRole,
        patterns: list[tuple[str, re.Pattern[str]]],
        dates: list[DateMatch],
        claimed: set[int],
    ) -> Association | None:
        occurrences = sorted(
            (m.start(), m.end(), phrase)
            for phrase, pattern in patterns
            for m in pattern.finditer(text)
        )
        for start, end, phrase in occurrences:
            lo, hi = start - self.window, end + self.window
            for date_match in dates:
                if date_match.start in claimed:
                    continue
                if lo <= date_match.start < hi:
                    return Association(role=role, date=date_match, phrase=phrase)
        return None

    def _default_assignment(self, text: str, dates: list[DateMatch]) -> Association | None:
        """Tag the first extracted date when no phrase landed near any date."""
        first = dates[0]
        if _WILL_BE_CHARGED.search(text):
            return Association(DateRole.FIRST_CHARGE, first, "default:will_be_charged", True)
        if _FIRST_CHARGE.search(text):
            return Association(DateRole.FIRST_CHARGE, first, "default:first_charge", True)
        if _TRIAL_KEYWORD.search(text):
            return Association(DateRole.TRIAL_END, first, "default:trial", True)
        if _BILLING_KEYWORD.search(text):
            return Association(DateRole.FIRST_CHARGE, first, "default:billing", True)
        return Association(DateRole.FIRST_CHARGE, first, "default:unconditional", True)
