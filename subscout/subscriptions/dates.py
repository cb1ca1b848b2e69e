"""
Date extraction for subscription emails.

Finds absolute date literals ("August 15, 2025", "7/18/25", "2025-07-18",
"15th Aug") and relative expressions ("in 3 days", "2 weeks from now",
"next Monday") and resolves them to calendar dates against a reference
timestamp, normally the email's received time.

Year-less literals take the reference year. Literals that do not parse to a
real date are dropped. Nothing here raises on bad input.
"""

from __future__ import annotations

import re
from datetime import date, datetime, timedelta

from dateutil import parser as date_parser
from dateutil.relativedelta import relativedelta

from subscout.observability.logging import get_logger
from subscout.subscriptions.types import DateMatch, DateMethod

logger = get_logger(__name__)

_MONTHS = (
    r"jan(?:uary)?|feb(?:ruary)?|mar(?:ch)?|apr(?:il)?|may|june?|july?|aug(?:ust)?"
    r"|sep(?:t(?:ember)?)?|oct(?:ober)?|nov(?:ember)?|dec(?:ember)?"
)
_ORDINAL = r"(?:st|nd|rd|th)?"

ABSOLUTE_PATTERNS: tuple[re.Pattern[str], ...] = (
    # 7/18/2025, 7/18/25 (month first)
    re.compile(r"(?<![\d/])\d{1,2}/\d{1,2}/(?:\d{4}|\d{2})(?![\d/])"),
    # on 7/18, by 12/01: no year, so only valid month/day after a date preposition
    # ("24/7 support" and "1/2 off" are not dates)
    re.compile(
        r"(?:(?<=\bon )|(?<=\bby )|(?<=\buntil )|(?<=\bbefore )|(?<=\bfrom ))"
        r"(?:0?[1-9]|1[0-2])/(?:0?[1-9]|[12]\d|3[01])(?![\d/])"
    ),
    # 2025-07-18
    re.compile(r"(?<!\d)\d{4}-\d{2}-\d{2}(?!\d)"),
    # August 15, 2025 / Aug. 15th / july 18
    re.compile(rf"\b(?:{_MONTHS})\.?\s+\d{{1,2}}{_ORDINAL}(?:,?\s+\d{{4}})?\b"),
    # 15 August 2025 / 15th of aug
    re.compile(rf"\b\d{{1,2}}{_ORDINAL}\s+(?:of\s+)?(?:{_MONTHS})\b\.?(?:,?\s+\d{{4}})?\b"),
)

NUMBER_WORDS: dict[str, int] = {
    "a": 1,
    "an": 1,
    "one": 1,
    "two": 2,
    "three": 3,
    "four": 4,
    "five": 5,
    "six": 6,
    "seven": 7,
    "eight": 8,
    "nine": 9,
    "ten": 10,
    "eleven": 11,
    "twelve": 12,
}
_NUMBER = rf"(\d{{1,3}}|{'|'.join(NUMBER_WORDS)})"
_UNIT = r"(day|week|month)s?"

WEEKDAYS: tuple[str, ...] = (
    "monday",
    "tuesday",
    "wednesday",
    "thursday",
    "friday",
    "saturday",
    "sunday",
)

_IN_N_UNITS = re.compile(rf"\bin\s+{_NUMBER}\s+{_UNIT}\b")
_N_UNITS_FROM_NOW = re.compile(rf"\b{_NUMBER}\s+{_UNIT}\s+from\s+(?:now|today)\b")
_NEXT_WEEKDAY = re.compile(rf"\b(?:next|this)\s+({'|'.join(WEEKDAYS)})\b")


def normalize_text(text: str) -> str:
    """Lowercase and straighten curly quotes (length-preserving for ASCII mail)."""
    return (text or "").lower().replace("’", "'").replace("‘", "'")


def _reference_date(reference: datetime | date) -> date:
    return reference.date() if isinstance(reference, datetime) else reference


def _add(reference: date, amount: int, unit: str) -> date:
    if unit == "day":
        return reference + timedelta(days=amount)
    if unit == "week":
        return reference + timedelta(weeks=amount)
    return reference + relativedelta(months=amount)


def _next_weekday(reference: date, weekday_name: str) -> date:
    """Next occurrence of the weekday; the same weekday means a full week out."""
    delta = (WEEKDAYS.index(weekday_name) - reference.weekday()) % 7
    return reference + timedelta(days=delta or 7)


def _drop_overlaps(matches: list[DateMatch]) -> list[DateMatch]:
    """Keep the earliest (then longest) match among overlapping spans."""
    kept: list[DateMatch] = []
    for match in sorted(matches, key=lambda m: (m.start, -(m.end - m.start))):
        if kept and match.start < kept[-1].end:
            continue
        kept.append(match)
    return kept


class DateExtractor:
    """Two-pass (absolute, then relative) date finder."""

    def find_absolute(self, text: str, reference: datetime | date) -> list[DateMatch]:
        ref = _reference_date(reference)
        default = datetime(ref.year, 1, 1)
        found: list[DateMatch] = []

        for pattern in ABSOLUTE_PATTERNS:
            for match in pattern.finditer(text):
                literal = match.group(0)
                cleaned = re.sub(r"(\d)(?:st|nd|rd|th)\b", r"\1", literal)
                cleaned = re.sub(r"\bof\b", " ", cleaned).replace(".", " ")
                try:
                    parsed = date_parser.parse(cleaned, default=default)
                except (ValueError, OverflowError) as e:
                    logger.debug("Dropped unparsable date literal %r: %s", literal, e)
                    continue
                found.append(
                    DateMatch(
                        iso_date=parsed.date().isoformat(),
                        method=DateMethod.ABSOLUTE,
                        start=match.start(),
                        end=match.end(),
                        literal=literal,
                    )
                )

        return _drop_overlaps(found)

    def find_relative(self, text: str, reference: datetime | date) -> list[DateMatch]:
        ref = _reference_date(reference)
        found: list[DateMatch] = []

        for pattern in (_IN_N_UNITS, _N_UNITS_FROM_NOW):
            for match in pattern.finditer(text):
                raw_number, unit = match.group(1), match.group(2)
                amount = int(raw_number) if raw_number.isdigit() else NUMBER_WORDS[raw_number]
                try:
                    resolved = _add(ref, amount, unit)
                except OverflowError:
                    continue
                found.append(
                    DateMatch(
                        iso_date=resolved.isoformat(),
                        method=DateMethod.RELATIVE,
                        start=match.start(),
                        end=match.end(),
                        literal=match.group(0),
                    )
                )

        for match in _NEXT_WEEKDAY.finditer(text):
            found.append(
                DateMatch(
                    iso_date=_next_weekday(ref, match.group(1)).isoformat(),
                    method=DateMethod.RELATIVE,
                    start=match.start(),
                    end=match.end(),
                    literal=match.group(0),
                )
            )

        return _drop_overlaps(found)

    def find(self, text: str, reference: datetime | date) -> list[DateMatch]:
        """
        All date matches: absolute ones in text order, then relative ones in text order.

        Args:
            text: Email text; normalized here (lowercase, straight quotes)
            reference: Timestamp that anchors year-less and relative expressions

        Returns:
            DateMatch list; spans index into the normalized text
        """
        normalized = normalize_text(text)
        absolute = self.find_absolute(normalized, reference)
        relative = [
            m
            for m in self.find_relative(normalized, reference)
            if not any(m.start < a.end and a.start < m.end for a in absolute)
        ]
        return absolute + relative

    def extract(self, text: str, reference: datetime | date) -> list[str]:
        """Ordered ISO date strings (duplicates kept)."""
        return [m.iso_date for m in self.find(text, reference)]
