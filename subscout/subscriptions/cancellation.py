"""
Cancellation directory: where to cancel or manage well-known subscriptions.

Used by the rule-based extractor when a confirmation email has no cancel or
manage link of its own.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from functools import lru_cache
from pathlib import Path

import yaml

from subscout.observability.logging import get_logger

logger = get_logger(__name__)

DEFAULT_CANCELLATION_PATH = Path(__file__).parent / "data" / "cancellation_links.yaml"


@dataclass(frozen=True)
class CancellationInfo:
    name: str
    method: str  # "account" | "app" | "email" | "phone"
    cancel_url: str | None = None
    aliases: tuple[str, ...] = field(default_factory=tuple)


class CancellationDirectory:
    """Exact-name lookup (service name or alias, case-insensitive)."""

    def __init__(self, entries: list[CancellationInfo]):
        self._by_name: dict[str, CancellationInfo] = {}
        for entry in entries:
            for key in (entry.name, *entry.aliases):
                self._by_name.setdefault(key.strip().lower(), entry)

    @classmethod
    def from_yaml(cls, path: Path = DEFAULT_CANCELLATION_PATH) -> CancellationDirectory:
        with open(path) as f:
            data = yaml.safe_load(f) or {}
        entries = [
            CancellationInfo(
                name=item["name"],
                method=item.get("method", "account"),
                cancel_url=item.get("cancel_url"),
                aliases=tuple(item.get("aliases") or ()),
            )
            for item in data.get("services", [])
        ]
        logger.debug("Loaded %d cancellation entries", len(entries))
        return cls(entries)

    def lookup(self, service_name: str | None) -> CancellationInfo | None:
        if not service_name:
            return None
        return self._by_name.get(service_name.strip().lower())

    def cancel_url_for(self, service_name: str | None) -> str | None:
        info = self.lookup(service_name)
        return info.cancel_url if info else None


@lru_cache(maxsize=1)
def get_cancellation_directory() -> CancellationDirectory:
    return CancellationDirectory.from_yaml()
