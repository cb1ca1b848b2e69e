"""Centralized configuration for subscout.

Re-exports everything from subscout.infrastructure.settings, then adds typed
constants for the extraction pipeline, the LLM call and the decision policy.
Environment variable overrides use safe defaults so the pipeline runs without
extra env configuration.
"""

from __future__ import annotations

import os

from subscout.infrastructure.settings import *  # noqa: F401, F403

# --- Extraction Pipeline ---
PIPELINE_BODY_TRUNCATION: int = 1500
PIPELINE_SUBJECT_TRUNCATION: int = 200
PIPELINE_SENDER_TRUNCATION: int = 100
PIPELINE_MIN_BODY_CHARS: int = 40
PHRASE_WINDOW_CHARS: int = 50
ENGLISH_MIN_FUNCTION_WORDS: int = 3
NON_ENGLISH_CONFIDENCE: float = 0.1

# --- Decision Policy ---
ACCEPT_CONFIDENCE_THRESHOLD: float = float(os.getenv("SUBSCOUT_ACCEPT_THRESHOLD", "0.9"))
REVIEW_CONFIDENCE_THRESHOLD: float = 0.7

# --- LLM ---
LLM_TIMEOUT_SECONDS: int = int(os.getenv("SUBSCOUT_LLM_TIMEOUT", "30"))
LLM_MAX_ATTEMPTS: int = int(os.getenv("SUBSCOUT_LLM_MAX_ATTEMPTS", "1"))
LLM_MAX_WORKERS: int = int(os.getenv("SUBSCOUT_MAX_WORKERS", "4"))
