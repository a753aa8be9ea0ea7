"""Shared HTTP plumbing for the GitHub endpoints.

Transport failures (connection resets, DNS errors, timeouts) are retried with
jittered exponential backoff. HTTP error statuses are returned to the caller
untouched: classifying them is the caller's job.
"""

import random
import threading
import time

import requests

from copilot_llm.core.errors import AuthCancelledError, ProtocolError
from copilot_llm.core.logging import get_logger

logger = get_logger(__name__)

DEFAULT_MAX_RETRIES = 3
DEFAULT_RETRY_DELAYS = [1.0, 2.0, 4.0]
DEFAULT_TIMEOUT_SECONDS = 30.0

_TRANSIENT_ERRORS = (requests.exceptions.ConnectionError, requests.exceptions.Timeout)


def send_with_retry(
    session: requests.Session,
    method: str,
    url: str,
    *,
    operation: str,
    max_retries: int = DEFAULT_MAX_RETRIES,
    retry_delays: list[float] | None = None,
    timeout: float = DEFAULT_TIMEOUT_SECONDS,
    cancel_event: threading.Event | None = None,
    **kwargs,
) -> requests.Response:
    """Send a request, retrying only on transient network errors.

    Args:
        session: requests session to send through
        method: HTTP method
        url: Absolute URL
        operation: Short name of the operation, used in logs and error messages
        max_retries: Total number of attempts
        retry_delays: Delay in seconds before each retry
        timeout: Per-request timeout in seconds
        cancel_event: If given, setting it aborts the wait between retries
        **kwargs: Passed through to ``session.request``

    Returns:
        The HTTP response, whatever its status code

    Raises:
        ProtocolError: If every attempt failed at the transport level
        AuthCancelledError: If cancel_event was set while waiting to retry
    """
    delays = DEFAULT_RETRY_DELAYS if retry_delays is None else retry_delays
    attempts = max(1, max_retries)
    last_error: Exception | None = None

    for attempt in range(attempts):
        try:
            return session.request(method, url, timeout=timeout, **kwargs)
        except _TRANSIENT_ERRORS as e:
            last_error = e
            if attempt < attempts - 1:
                delay = delays[min(attempt, len(delays) - 1)] if delays else 0.0
                # Add jitter (±20%)
                jitter = delay * 0.2 * (2 * random.random() - 1)
                actual_delay = max(0.0, delay + jitter)
                logger.warning(
                    "Request failed, retrying",
                    operation=operation,
                    attempt=attempt + 1,
                    max_retries=attempts,
                    delay=actual_delay,
                    error=str(e),
                )
                if cancel_event is None:
                    time.sleep(actual_delay)
                elif cancel_event.wait(actual_delay):
                    raise AuthCancelledError(f"{operation} cancelled while waiting to retry")

    logger.error(
        "Request failed after retries",
        operation=operation,
        max_retries=attempts,
        error=str(last_error),
    )
    raise ProtocolError(
        f"{operation} failed after {attempts} attempts: {last_error}. "
        "Check your network connection and try again."
    ) from last_error


def parse_json_object(response: requests.Response, operation: str) -> dict:
    """Decode a JSON object body, raising ProtocolError on anything else."""
    try:
        data = response.json()
    except ValueError as e:
        raise ProtocolError(
            f"{operation} returned a non-JSON body (HTTP {response.status_code})",
            status_code=response.status_code,
        ) from e
    if not isinstance(data, dict):
        raise ProtocolError(
            f"{operation} returned {type(data).__name__}, expected a JSON object",
            status_code=response.status_code,
        )
    return data


def describe_status(response: requests.Response) -> str:
    """Format a short 'HTTP 502 Bad Gateway: body...' description for errors."""
    text = (response.text or "").strip()
    summary = f"HTTP {response.status_code}"
    if response.reason:
        summary += f" {response.reason}"
    if text:
        summary += f": {text[:200]}"
    return summary
