"""Unit tests for error classifiers.

Tests cover:
- HTTP status classification of requests.HTTPError
- Transport failures (timeouts, connection errors)
- Retry-After header extraction
- Unknown request exceptions
"""

import pytest
import requests
from unittest.mock import Mock

from infrastructure.operations.classifiers import classify_http_error
from infrastructure.operations.status import OperationStatus


def _http_error(status_code, headers=None, text=""):
    response = Mock(spec=requests.Response)
    response.status_code = status_code
    response.headers = headers or {}
    response.text = text
    return requests.HTTPError(f"{status_code} error", response=response)


@pytest.mark.unit
class TestClassifyHttpError:
    """Tests for classify_http_error() function."""

    def test_classify_429_rate_limit_with_retry_after(self):
        result = classify_http_error(_http_error(429, {"Retry-After": "120"}))

        assert result.status == OperationStatus.TRANSIENT_ERROR
        assert result.error_code == "RATE_LIMITED"
        assert result.retry_after == 120
        assert "rate limited" in result.message.lower()

    def test_classify_429_rate_limit_without_retry_after(self):
        result = classify_http_error(_http_error(429))

        assert result.error_code == "RATE_LIMITED"
        assert result.retry_after == 60

    def test_classify_429_with_malformed_retry_after_header(self):
        result = classify_http_error(_http_error(429, {"Retry-After": "soon"}))
        assert result.retry_after == 60

    @pytest.mark.parametrize("status_code", [401, 403])
    def test_classify_unauthorized(self, status_code):
        result = classify_http_error(_http_error(status_code))

        assert result.status == OperationStatus.UNAUTHORIZED
        assert result.error_code == f"HTTP_{status_code}"
        assert result.status_code == status_code

    def test_classify_404_not_found(self):
        result = classify_http_error(_http_error(404, text="group not found"))

        assert result.status == OperationStatus.NOT_FOUND
        assert result.error_code == "NOT_FOUND"
        assert result.data == "group not found"
        assert result.is_not_found

    @pytest.mark.parametrize("status_code", [500, 502, 503, 504])
    def test_classify_5xx_server_error(self, status_code):
        result = classify_http_error(_http_error(status_code))

        assert result.status == OperationStatus.TRANSIENT_ERROR
        assert result.error_code == "SERVER_ERROR"
        assert result.status_code == status_code

    @pytest.mark.parametrize("status_code", [400, 409, 422])
    def test_classify_other_4xx_permanent(self, status_code):
        result = classify_http_error(_http_error(status_code, text='{"detail": "x"}'))

        assert result.status == OperationStatus.PERMANENT_ERROR
        assert result.error_code == f"HTTP_{status_code}"
        assert result.status_code == status_code
        assert result.data == '{"detail": "x"}'

    def test_classify_http_error_without_response(self):
        result = classify_http_error(requests.HTTPError("no response"))

        assert result.status == OperationStatus.PERMANENT_ERROR
        assert result.status_code is None
        assert result.data == ""


@pytest.mark.unit
class TestClassifyTransportErrors:
    def test_classify_timeout(self):
        result = classify_http_error(requests.Timeout("read timed out"))

        assert result.status == OperationStatus.TRANSIENT_ERROR
        assert result.error_code == "TIMEOUT"
        assert result.status_code is None

    def test_classify_connect_timeout_is_timeout(self):
        result = classify_http_error(requests.ConnectTimeout("connect timed out"))
        assert result.error_code == "TIMEOUT"

    def test_classify_connection_error(self):
        result = classify_http_error(requests.ConnectionError("refused"))

        assert result.status == OperationStatus.TRANSIENT_ERROR
        assert result.error_code == "CONNECTION_ERROR"

    def test_classify_other_request_exception(self):
        result = classify_http_error(requests.TooManyRedirects("loop"))

        assert result.status == OperationStatus.PERMANENT_ERROR
        assert result.error_code == "REQUEST_ERROR"
        assert "TooManyRedirects" in result.message
