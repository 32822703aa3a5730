"""Errors for the groups module."""

from typing import Any, Iterable, Optional


class GroupsError(Exception):
    """Base class for every error raised by the groups module."""


class ValidationError(GroupsError):
    """Raised when node ids are malformed or not members of the declared parent.

    Always raised before any remote state is read for the operation or written.

    Attributes:
        node_ids: the node ids that failed validation
    """

    def __init__(self, message: str, node_ids: Optional[Iterable[str]] = None):
        super().__init__(message)
        self.node_ids = sorted(set(node_ids or []))


class UpstreamError(GroupsError):
    """Raised when the HSM rejected or failed a request.

    Attributes:
        status: HTTP status code, None for transport failures (timeouts,
            connection errors)
        payload: the error body returned by the HSM, if any
        retryable: True when the same request may succeed later (timeouts,
            connection errors, 5xx, rate limiting)
        retry_after: seconds the HSM asked to wait before retrying, if any
    """

    def __init__(
        self,
        message: str,
        status: Optional[int] = None,
        payload: Any = None,
        retryable: bool = False,
        retry_after: Optional[int] = None,
    ):
        super().__init__(message)
        self.status = status
        self.payload = payload
        self.retryable = retryable
        self.retry_after = retry_after


class NotFoundError(UpstreamError):
    """Raised when a group label does not exist in the HSM."""

    def __init__(self, label: str, payload: Any = None):
        super().__init__(f"Group '{label}' not found", status=404, payload=payload)
        self.label = label


class ConcurrencyError(GroupsError):
    """Raised when the task scheduling substrate itself fails.

    Distinct from remote failures, which are reported per label. Always
    fatal for the whole fetch.
    """
