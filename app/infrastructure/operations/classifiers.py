"""Error classifiers for HSM transport exceptions.

Converts `requests` exceptions and non-2xx HSM responses into standardized
OperationResult objects so the client has a single place where HTTP failures
are mapped onto statuses.

Usage:
    from infrastructure.operations.classifiers import classify_http_error

    try:
        response = session.get(url, timeout=timeout)
        response.raise_for_status()
    except requests.RequestException as exc:
        return classify_http_error(exc)
"""

from typing import Optional

import requests

from infrastructure.operations.result import OperationResult
from infrastructure.operations.status import OperationStatus


def _extract_payload(response: Optional[requests.Response]) -> str:
    """Return the response body as text.

    The HSM answers errors either as plain text or as an RFC 7807 JSON
    document, so the raw text is kept in both cases.
    """
    if response is None:
        return ""
    try:
        return response.text
    except (AttributeError, UnicodeDecodeError):
        return ""


def classify_http_error(exc: Exception) -> OperationResult:
    """Classify a `requests` exception into an OperationResult.

    Status Code Mapping:
    - 401/403: UNAUTHORIZED
    - 404: NOT_FOUND
    - 429: TRANSIENT_ERROR with retry_after
    - 5xx: TRANSIENT_ERROR
    - other 4xx: PERMANENT_ERROR
    - Timeout / ConnectionError: TRANSIENT_ERROR without status code
    - anything else: PERMANENT_ERROR

    Args:
        exc: Exception raised while talking to the HSM

    Returns:
        OperationResult whose `data` holds the error payload (when a response
        was received) and whose `status_code` holds the HTTP status.
    """
    if isinstance(exc, requests.Timeout):
        return OperationResult.transient_error(
            f"HSM request timed out: {exc}",
            error_code="TIMEOUT",
        )

    if isinstance(exc, requests.ConnectionError):
        return OperationResult.transient_error(
            f"HSM connection error: {exc}",
            error_code="CONNECTION_ERROR",
        )

    if not isinstance(exc, requests.HTTPError):
        return OperationResult.permanent_error(
            f"HSM request failed: {type(exc).__name__}: {exc}",
            error_code="REQUEST_ERROR",
        )

    response = exc.response
    status_code = response.status_code if response is not None else None
    payload = _extract_payload(response)

    if status_code in (401, 403):
        return OperationResult.error(
            OperationStatus.UNAUTHORIZED,
            "HSM rejected the credentials",
            error_code=f"HTTP_{status_code}",
            status_code=status_code,
            data=payload,
        )

    if status_code == 404:
        return OperationResult.error(
            OperationStatus.NOT_FOUND,
            "HSM resource not found",
            error_code="NOT_FOUND",
            status_code=status_code,
            data=payload,
        )

    if status_code == 429:
        retry_after = 60
        header_value = response.headers.get("Retry-After")
        if header_value:
            try:
                retry_after = int(header_value)
            except (ValueError, TypeError):
                pass
        return OperationResult.error(
            OperationStatus.TRANSIENT_ERROR,
            "HSM rate limited the request",
            error_code="RATE_LIMITED",
            status_code=status_code,
            retry_after=retry_after,
            data=payload,
        )

    if status_code and 500 <= status_code < 600:
        return OperationResult.error(
            OperationStatus.TRANSIENT_ERROR,
            f"HSM server error ({status_code})",
            error_code="SERVER_ERROR",
            status_code=status_code,
            data=payload,
        )

    return OperationResult.error(
        OperationStatus.PERMANENT_ERROR,
        f"HSM client error ({status_code})",
        error_code=f"HTTP_{status_code}",
        status_code=status_code,
        data=payload,
    )
