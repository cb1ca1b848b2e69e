"""
Application-wide settings and environment configuration

.env is loaded before anything below reads the environment, so values kept
there behave like exported variables.
"""

from __future__ import annotations

import os
from pathlib import Path

from subscout.infrastructure.env import ensure_env_loaded

ensure_env_loaded()

# Project paths
SUBSCOUT_ROOT = Path(__file__).parent.parent

# Environment
ENV = os.getenv("SUBSCOUT_ENV", "development")

# Google Cloud / Gemini
GOOGLE_CLOUD_PROJECT = os.getenv("GOOGLE_CLOUD_PROJECT", "")
GEMINI_MODEL = os.getenv("GEMINI_MODEL", "gemini-2.0-flash-001")  # Vertex AI model
GEMINI_LOCATION = os.getenv("GEMINI_LOCATION", "us-central1")
GEMINI_MAX_TOKENS = int(os.getenv("GEMINI_MAX_TOKENS", "500"))
GEMINI_TEMPERATURE = float(os.getenv("GEMINI_TEMPERATURE", "0.1"))

# Known-services registry shipped with the package
KNOWN_SERVICES_PATH = SUBSCOUT_ROOT / "subscriptions" / "data" / "known_services.yaml"


def is_production() -> bool:
    """Check if running in production"""
    return ENV == "production"
