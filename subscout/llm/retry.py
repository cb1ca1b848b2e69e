"""Gemini call with a hard timeout, transport-error conversion and retry.

The model-based extractor is the only caller. It turns any final failure into
a fallback to the rule-based extractor, so a single attempt is the default
(SUBSCOUT_LLM_MAX_ATTEMPTS raises it).

Vertex AI transport errors become builtin exceptions so tenacity can retry
them without knowing about google.api_core:

    DeadlineExceeded     -> TimeoutError     (counter: timeout)
    ServiceUnavailable   -> ConnectionError  (counter: service_unavailable)
    InternalServerError  -> ConnectionError  (counter: internal_error)
    ResourceExhausted    -> OSError          (counter: rate_limited)
"""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError

from google.api_core import exceptions as api_exceptions
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from subscout.config import LLM_MAX_ATTEMPTS, LLM_TIMEOUT_SECONDS
from subscout.infrastructure.settings import GEMINI_MAX_TOKENS, GEMINI_TEMPERATURE
from subscout.llm.gemini import get_gemini_model
from subscout.observability.logging import get_logger
from subscout.observability.telemetry import counter

logger = get_logger(__name__)

RETRYABLE_ERRORS = (TimeoutError, ConnectionError, OSError)

# (vertex exception, builtin replacement, counter suffix)
_VERTEX_ERRORS: tuple[tuple[type[Exception], type[Exception], str], ...] = (
    (api_exceptions.DeadlineExceeded, TimeoutError, "timeout"),
    (api_exceptions.ServiceUnavailable, ConnectionError, "service_unavailable"),
    (api_exceptions.InternalServerError, ConnectionError, "internal_error"),
    (api_exceptions.ResourceExhausted, OSError, "rate_limited"),
)


def _generation_config(json_output: bool) -> dict:
    config = {"temperature": GEMINI_TEMPERATURE, "max_output_tokens": GEMINI_MAX_TOKENS}
    if json_output:
        config["response_mime_type"] = "application/json"
    return config


def _generate(prompt: str, generation_config: dict) -> str:
    """One generate_content call, abandoned after LLM_TIMEOUT_SECONDS."""
    model = get_gemini_model()
    executor = ThreadPoolExecutor(max_workers=1)
    future = executor.submit(model.generate_content, prompt, generation_config=generation_config)
    try:
        return future.result(timeout=LLM_TIMEOUT_SECONDS).text
    except FutureTimeoutError as e:
        future.cancel()
        raise TimeoutError(f"LLM call exceeded {LLM_TIMEOUT_SECONDS}s") from e
    finally:
        # a timed-out call keeps running in its thread; do not wait for it
        executor.shutdown(wait=False)


def _convert(error: Exception, counter_prefix: str) -> Exception | None:
    """Builtin replacement for a Vertex AI transport error, or None if not one."""
    for vertex_type, builtin_type, suffix in _VERTEX_ERRORS:
        if isinstance(error, vertex_type):
            counter(f"subscriptions.{counter_prefix}.{suffix}")
            logger.warning("LLM %s: %s", suffix.replace("_", " "), error)
            return builtin_type(f"LLM {suffix}: {error}")
    return None


@retry(
    stop=stop_after_attempt(max(1, LLM_MAX_ATTEMPTS)),
    wait=wait_exponential(multiplier=1, min=1, max=10),
    retry=retry_if_exception_type(RETRYABLE_ERRORS),
    reraise=True,
)
def call_llm(prompt: str, counter_prefix: str = "llm", json_output: bool = True) -> str:
    """Send one prompt to Gemini and return the reply text.

    Args:
        prompt: The full prompt.
        counter_prefix: Telemetry counter prefix (e.g., "extractor").
        json_output: Ask for an application/json response.

    Raises:
        TimeoutError, ConnectionError, OSError: Transport failures (retried).
        Exception: Anything else, unchanged and not retried.
    """
    try:
        return _generate(prompt, _generation_config(json_output))
    except TimeoutError:
        counter(f"subscriptions.{counter_prefix}.timeout")
        logger.warning("LLM call timed out after %ss", LLM_TIMEOUT_SECONDS)
        raise
    except api_exceptions.GoogleAPICallError as e:
        converted = _convert(e, counter_prefix)
        if converted is None:
            logger.error("LLM call failed: %s", e)
            raise
        raise converted from e
    except Exception as e:
        logger.error("LLM call failed: %s", e)
        raise
