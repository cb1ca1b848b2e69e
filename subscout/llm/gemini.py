"""
Vertex AI Gemini client for the model-based extractor.

One GenerativeModel per process, created on first use. Connection settings
are resolved at that moment (after .env loading), so importing this module
never needs credentials.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache

from subscout.infrastructure.env import ensure_env_loaded
from subscout.infrastructure.settings import GEMINI_LOCATION, GEMINI_MODEL, GOOGLE_CLOUD_PROJECT
from subscout.observability.logging import get_logger

logger = get_logger(__name__)


class GeminiInitializationError(RuntimeError):
    """Raised when the Gemini model cannot be initialized."""


@dataclass(frozen=True)
class GeminiTarget:
    """Where model calls go."""

    project: str
    location: str
    model_name: str

    @classmethod
    def from_env(cls) -> GeminiTarget:
        # settings hold import-time values; the live environment wins
        return cls(
            project=os.getenv("GOOGLE_CLOUD_PROJECT") or GOOGLE_CLOUD_PROJECT,
            location=os.getenv("GEMINI_LOCATION") or GEMINI_LOCATION,
            model_name=os.getenv("GEMINI_MODEL") or GEMINI_MODEL,
        )


@lru_cache(maxsize=1)
def get_gemini_model():
    """
    Shared GenerativeModel for subscription extraction.

    Raises:
        GeminiInitializationError: No project configured, or Vertex AI
            rejected the configuration
    """
    ensure_env_loaded()
    target = GeminiTarget.from_env()
    if not target.project:
        raise GeminiInitializationError(
            "GOOGLE_CLOUD_PROJECT not set; the model-based extractor needs a Vertex AI project"
        )

    try:
        import vertexai
        from vertexai.generative_models import GenerativeModel

        vertexai.init(project=target.project, location=target.location)
        model = GenerativeModel(target.model_name)
    except Exception as e:
        logger.error("Gemini initialization failed for %s: %s", target.model_name, e)
        raise GeminiInitializationError(f"Failed to initialize Gemini: {e}") from e

    logger.info(
        "Gemini ready: project=%s location=%s model=%s",
        target.project,
        target.location,
        target.model_name,
    )
    return model


def clear_model_cache() -> None:
    """Drop the shared model so the next call re-reads configuration."""
    get_gemini_model.cache_clear()
