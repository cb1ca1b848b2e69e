"""
Legitimacy Registry - fixed set of well-known subscription merchants.

Registry membership gates acceptance, so matching is exact (case-insensitive)
with no fuzzy or substring logic. The list ships as package data and is
loaded once per process into an immutable structure.
"""

from __future__ import annotations

import re
from functools import lru_cache
from pathlib import Path

import yaml

from subscout.infrastructure.settings import KNOWN_SERVICES_PATH
from subscout.observability.logging import get_logger

logger = get_logger(__name__)


class LegitimacyRegistry:
    """Immutable, case-insensitive lookup of known merchant names."""

    def __init__(self, names: list[str] | tuple[str, ...]):
        canonical: dict[str, str] = {}
        for name in names:
            cleaned = str(name).strip()
            if cleaned:
                canonical.setdefault(cleaned.lower(), cleaned)
        self._canonical = canonical
        self._keys: frozenset[str] = frozenset(canonical)
        # Longest first so "Apple TV+" wins over "Apple" in text scans
        self._longest_first: tuple[str, ...] = tuple(
            sorted(canonical.values(), key=lambda n: (-len(n), n.lower()))
        )
        self._patterns: dict[str, re.Pattern[str]] = {
            n: re.compile(rf"(?<!\w){re.escape(n)}(?!\w)", re.IGNORECASE)
            for n in self._longest_first
        }

    @classmethod
    def from_yaml(cls, path: Path) -> LegitimacyRegistry:
        with open(path) as f:
            data = yaml.safe_load(f) or {}
        names = data.get("services", [])
        logger.info("Loaded %d known services from %s", len(names), path.name)
        return cls(tuple(names))

    def __len__(self) -> int:
        return len(self._keys)

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and self.is_known(name)

    def is_known(self, name: str | None) -> bool:
        """Case-insensitive exact match against the registry."""
        if not name:
            return False
        return name.strip().lower() in self._keys

    def canonical(self, name: str) -> str | None:
        """The registry's own spelling of `name`, or None if unknown."""
        return self._canonical.get(name.strip().lower())

    def names_longest_first(self) -> tuple[str, ...]:
        return self._longest_first

    def find_in(self, text: str) -> str | None:
        """First registry name (longest first) occurring as a whole word in text."""
        if not text:
            return None
        for name in self._longest_first:
            if self._patterns[name].search(text):
                return name
        return None


@lru_cache(maxsize=1)
def get_registry() -> LegitimacyRegistry:
    """Process-wide registry instance, loaded on first use."""
    return LegitimacyRegistry.from_yaml(KNOWN_SERVICES_PATH)
