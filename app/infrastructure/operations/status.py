"""Operation status enumeration.

Status codes used to classify the outcome of a request against the HSM so
callers can tell retryable failures from permanent ones.
"""

from enum import Enum


class OperationStatus(Enum):
    """Outcome of one HSM request.

    UNAUTHORIZED is kept apart from PERMANENT_ERROR: both are final for the
    request, but an expired or wrong bearer token is fixed by the caller
    obtaining a new token, not by changing the request.

    Attributes:
        SUCCESS: 2xx answer
        TRANSIENT_ERROR: timeout, connection failure, 5xx or 429
        PERMANENT_ERROR: any other rejection, or an undecodable body
        UNAUTHORIZED: 401 or 403
        NOT_FOUND: 404, unknown group or member
    """

    SUCCESS = "success"
    TRANSIENT_ERROR = "transient_error"
    PERMANENT_ERROR = "permanent_error"
    UNAUTHORIZED = "unauthorized"
    NOT_FOUND = "not_found"

    @property
    def is_retryable(self) -> bool:
        """True if repeating the same request may succeed."""
        return self is OperationStatus.TRANSIENT_ERROR
