"""Operation result types and status enums.

Standardized result types returned by the HSM transport layer, including the
status enum, the result dataclass and the classifier for `requests`
exceptions.
"""

from infrastructure.operations.classifiers import classify_http_error
from infrastructure.operations.result import OperationResult
from infrastructure.operations.status import OperationStatus

__all__ = [
    "OperationResult",
    "OperationStatus",
    "classify_http_error",
]
