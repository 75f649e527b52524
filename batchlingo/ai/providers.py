"""
Shared HTTP plumbing for provider adapters

This module contains what every httpx-backed adapter needs:
- timeout construction from config
- mapping of HTTP failures onto ProviderAuthError / ProviderTransientError
- a bounded retry loop with backoff for transient failures

For the adapters themselves, see ai/deepl.py and ai/llm.py
"""

import time
from typing import Any, Callable, Optional, Tuple

import httpx

from batchlingo.logger import get_logger
from batchlingo.ai.exceptions import ProviderAuthError, ProviderTransientError

logger = get_logger(__name__)

AUTH_STATUS_CODES = {401, 403}
# 456 is DeepL's "quota exceeded"
TRANSIENT_STATUS_CODES = {408, 429, 456, 500, 502, 503, 504, 529}

PLACEHOLDER_API_KEY = "YOUR_API_KEY_HERE"


def get_httpx_timeout(timeout_config: Any) -> httpx.Timeout:
    """
    Convert timeout configuration to httpx.Timeout object.

    Args:
        timeout_config: Either a number (total timeout) or a dict with
            connect, write, read, pool keys

    Returns:
        httpx.Timeout object
    """
    if isinstance(timeout_config, dict):
        return httpx.Timeout(
            connect=timeout_config.get('connect', 10.0),
            write=timeout_config.get('write', 60.0),
            read=timeout_config.get('read', 120.0),
            pool=timeout_config.get('pool', 10.0),
        )
    timeout_value = float(timeout_config) if timeout_config else 120.0
    return httpx.Timeout(connect=10.0, write=60.0, read=timeout_value, pool=10.0)


def ensure_api_key(api_key: Optional[str], provider: str) -> str:
    """Reject missing or placeholder keys before any request is made."""
    if not api_key or api_key == PLACEHOLDER_API_KEY:
        raise ProviderAuthError(
            f"{provider} API key not configured. Please set it in Settings.",
            details={"provider": provider, "missing_field": "api_key"},
        )
    return api_key


def _error_text(response: httpx.Response) -> str:
    try:
        error_json = response.json()
    except ValueError:
        return response.text[:500] or "No details"

    if isinstance(error_json, dict):
        error_detail = error_json.get("error", error_json.get("message"))
        if isinstance(error_detail, dict):
            return error_detail.get("message", str(error_detail))
        if error_detail:
            return str(error_detail)
    return str(error_json)[:500]


def _retry_after(response: httpx.Response) -> Optional[float]:
    value = response.headers.get("retry-after")
    if not value:
        return None
    try:
        return max(0.0, float(value))
    except ValueError:
        return None


def raise_for_provider_status(response: httpx.Response, provider: str) -> None:
    """
    Raise the matching provider error for a non-2xx response.

    Raises:
        ProviderAuthError: 401/403
        ProviderTransientError: anything else that is not a success
    """
    status_code = response.status_code
    if status_code < 400:
        return

    error_text = _error_text(response)
    details = {"provider": provider, "status_code": status_code}
    if status_code in AUTH_STATUS_CODES:
        raise ProviderAuthError(f"{provider} API error ({status_code}): {error_text}", details=details)
    raise ProviderTransientError(
        f"{provider} API error ({status_code}): {error_text}",
        status_code=status_code,
        retry_after=_retry_after(response),
        details=details,
    )


def categorize_error(error: ProviderTransientError, attempt: int) -> Tuple[bool, float]:
    """
    Categorize a transient error and determine retry strategy.

    Returns:
        Tuple of (should_retry, wait_time_seconds)
    """
    status_code = error.status_code

    # Rate limiting - honour Retry-After, otherwise exponential backoff
    if status_code == 429:
        if error.retry_after is not None:
            return True, min(error.retry_after, 60.0)
        return True, min(2.0 * (2 ** attempt), 60.0)

    # Quota exhausted - waiting will not refill it within this run
    if status_code == 456:
        return False, 0

    # Other 4xx are request problems, not worth repeating
    if status_code is not None and 400 <= status_code < 500 and status_code not in TRANSIENT_STATUS_CODES:
        return False, 0

    # Server errors, timeouts, transport failures
    return True, float(2 ** attempt)


def post_with_retries(
    client: httpx.Client,
    url: str,
    provider: str,
    max_retries: int = 3,
    sleep: Callable[[float], None] = time.sleep,
    **request_kwargs,
) -> httpx.Response:
    """
    POST with bounded retries for transient failures.

    Authentication failures are raised immediately. Transient failures are
    retried up to max_retries attempts, then the last one is raised.
    """
    attempts = max(1, int(max_retries))
    last_error: Optional[ProviderTransientError] = None

    for attempt in range(attempts):
        if attempt > 0:
            logger.info(f"  {provider} retry attempt {attempt + 1}/{attempts}")
        try:
            response = client.post(url, **request_kwargs)
            raise_for_provider_status(response, provider)
            return response
        except httpx.TimeoutException:
            last_error = ProviderTransientError(f"{provider} API request timeout")
        except httpx.TransportError as e:
            last_error = ProviderTransientError(f"{provider} API connection failed: {e}")
        except ProviderTransientError as e:
            last_error = e

        should_retry, wait_time = categorize_error(last_error, attempt)
        if not should_retry:
            logger.error(f"  Non-recoverable {provider} error: {last_error}")
            break
        if attempt < attempts - 1:
            logger.warning(f"  Attempt {attempt + 1} failed: {last_error}. Waiting {wait_time}s before retry...")
            sleep(wait_time)

    raise last_error
