"""subscout - detect subscription signups in transactional email"""

from __future__ import annotations

__version__ = "0.1.0"


# Lazy imports for the subscriptions pipeline
def __getattr__(name: str):
    """
    Lazy imports to avoid loading heavy dependencies when only importing lightweight modules.
    """
    if name in ("EmailMessage", "ExtractionResult", "Decision", "DecisionOutcome"):
        from subscout.subscriptions import types

        return getattr(types, name)

    if name == "SubscriptionExtractor":
        from subscout.subscriptions.extractor import SubscriptionExtractor

        return SubscriptionExtractor

    if name == "DecisionPolicy":
        from subscout.subscriptions.decision import DecisionPolicy

        return DecisionPolicy

    msg = f"module {__name__!r} has no attribute {name!r}"
    raise AttributeError(msg)


__all__ = [
    "Decision",
    "DecisionOutcome",
    "DecisionPolicy",
    "EmailMessage",
    "ExtractionResult",
    "SubscriptionExtractor",
]
