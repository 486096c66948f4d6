"""
Custom exceptions for the DIS client.

Provides structured error handling for retry logic and observability.
"""

from __future__ import annotations

from typing import Optional


class DISClientError(Exception):
    """Base error for the DIS client (bad config, bad input, crypto failures)."""

    pass


class TransportFailure(DISClientError):
    """A whole request failed: network error or error status from the service."""

    def __init__(
        self,
        message: str,
        *,
        status_code: Optional[int] = None,
        error_code: Optional[str] = None,
    ):
        super().__init__(message)
        self.status_code = status_code
        self.error_code = error_code


class RetryableError(TransportFailure):
    """Temporary failures (throttling, 5xx, connection drops)."""

    pass


def _service_error(response) -> tuple[Optional[str], str]:
    try:
        body = response.json()
    except ValueError:
        return None, response.text
    if not isinstance(body, dict):
        return None, response.text
    code = body.get("error_code") or body.get("errorCode")
    msg = body.get("error_msg") or body.get("message") or response.text
    return code, msg


def map_http_error(e: Exception) -> DISClientError:
    import httpx

    if isinstance(e, DISClientError):
        return e
    if isinstance(e, httpx.HTTPStatusError):
        status = e.response.status_code
        code, msg = _service_error(e.response)
        text = f"HTTP {status}: {msg}"
        if status == 429 or status >= 500:
            return RetryableError(text, status_code=status, error_code=code)
        return TransportFailure(text, status_code=status, error_code=code)
    if isinstance(e, (httpx.TimeoutException, httpx.NetworkError)):
        return RetryableError(f"{type(e).__name__}: {e}")
    if isinstance(e, httpx.HTTPError):
        return TransportFailure(f"{type(e).__name__}: {e}")
    return DISClientError(str(e))
