"""HTTP client for the HSM groups API.

Implements the GroupStore contract of the groups module on top of a
`requests.Session`. Every request is first turned into an OperationResult;
the public methods then return decoded payloads or raise the matching
groups error (NotFoundError, UpstreamError).

Transport settings (base URL, CA bundle, bearer token, SOCKS5 proxy,
default timeout) are constructor arguments. build_group_client() reads them
from settings once, at startup.

Usage:
    from integrations.hsm.client import build_group_client

    client = build_group_client()
    members = client.get_members("compute")
"""

import json
from typing import Any, Dict, Iterable, List, Optional, Set
from urllib.parse import quote

import requests
import structlog

from core.config import HsmSettings, settings
from infrastructure.operations import OperationResult, classify_http_error
from modules.groups.domain.errors import NotFoundError, UpstreamError
from modules.groups.domain.models import (
    Group,
    NodeId,
    as_canonical_dict,
    group_from_dict,
)

logger = structlog.get_logger(__name__)

GROUPS_PATH = "hsm/v2/groups"


def _group_path(label: str, *parts: str) -> str:
    """Build a path under GROUPS_PATH with every segment URL-quoted."""
    segments = [label, *parts]
    return "/".join([GROUPS_PATH, *(quote(str(s), safe="") for s in segments)])


class HsmGroupClient:
    """Group store backed by the HSM REST API.

    Attributes:
        base_url: Base URL of the HSM API, without trailing slash
        timeout: Default per-request timeout in seconds
        session: Requests session carrying auth, TLS and proxy configuration
    """

    def __init__(
        self,
        base_url: str,
        token: str,
        root_cert: Optional[str] = None,
        socks5_proxy: Optional[str] = None,
        timeout: float = 30,
        session: Optional[requests.Session] = None,
    ) -> None:
        """Initialize the HSM client.

        Args:
            base_url: Base URL of the HSM API
            token: Bearer token sent with every request
            root_cert: Path to the CA bundle used to verify the endpoint.
                System CAs are used when omitted.
            socks5_proxy: Optional SOCKS5 proxy URL for all requests
            timeout: Default per-request timeout in seconds
            session: Preconfigured session, mostly for tests
        """
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._session = session or requests.Session()
        self._session.headers.update(
            {
                "Authorization": f"Bearer {token}",
                "Accept": "application/json",
            }
        )
        self._session.verify = root_cert or True
        if socks5_proxy:
            self._session.proxies.update({"http": socks5_proxy, "https": socks5_proxy})
        self._logger = logger.bind(component="hsm_group_client")
        if socks5_proxy:
            self._logger.debug("socks5_enabled")

    # GroupStore contract

    def get_all(self, timeout: Optional[float] = None) -> List[Group]:
        """Return every group known to the HSM."""
        result = self._request("GET", GROUPS_PATH, timeout=timeout)
        data = self._unwrap(result)
        if not isinstance(data, list):
            raise UpstreamError(
                "Unexpected HSM groups listing", status=result.status_code, payload=data
            )
        return [self._decode_group(d) for d in data]

    def get_one(self, label: str, timeout: Optional[float] = None) -> Group:
        """Return one group.

        Raises:
            NotFoundError: If the label is unknown
        """
        result = self._request("GET", _group_path(label), timeout=timeout)
        return self._decode_group(self._unwrap(result, label=label))

    def get_members(self, label: str, timeout: Optional[float] = None) -> Set[NodeId]:
        """Return the member ids of one group.

        Raises:
            NotFoundError: If the label is unknown
        """
        result = self._request(
            "GET", _group_path(label, "members"), timeout=timeout
        )
        data = self._unwrap(result, label=label)
        if not isinstance(data, dict):
            raise UpstreamError(
                f"Unexpected members document for group '{label}'",
                status=result.status_code,
                payload=data,
            )
        return set(data.get("ids") or [])

    def post(self, group: Group, timeout: Optional[float] = None) -> None:
        """Create a group."""
        result = self._request(
            "POST", GROUPS_PATH, json_data=as_canonical_dict(group), timeout=timeout
        )
        self._unwrap(result)
        self._logger.info("group_created", group_label=group.label)

    def post_members(
        self,
        label: str,
        node_ids: Iterable[NodeId],
        timeout: Optional[float] = None,
    ) -> None:
        """Add members to a group, one request per node.

        Adding a node that is already a member (HTTP 409) is not an error.

        Raises:
            UpstreamError: On the first node the HSM rejects
        """
        for node_id in node_ids:
            result = self._request(
                "POST",
                _group_path(label, "members"),
                json_data={"id": node_id},
                timeout=timeout,
                expected_statuses=(409,),
            )
            if result.status_code == 409:
                self._logger.debug(
                    "member_already_present", group_label=label, node_id=node_id
                )
                continue
            self._unwrap(result, label=label)

    def delete_member(
        self, label: str, node_id: NodeId, timeout: Optional[float] = None
    ) -> None:
        """Remove a member from a group. An absent member is not an error."""
        result = self._request(
            "DELETE",
            _group_path(label, "members", node_id),
            timeout=timeout,
            expected_statuses=(404,),
        )
        if result.is_not_found:
            self._logger.debug(
                "member_already_absent", group_label=label, node_id=node_id
            )
            return
        self._unwrap(result)

    def delete_group(self, label: str, timeout: Optional[float] = None) -> None:
        """Delete a group.

        Raises:
            NotFoundError: If the label is unknown
        """
        result = self._request("DELETE", _group_path(label), timeout=timeout)
        self._unwrap(result, label=label)
        self._logger.info("group_deleted", group_label=label)

    # Transport

    def _request(
        self,
        method: str,
        path: str,
        json_data: Optional[Dict[str, Any]] = None,
        timeout: Optional[float] = None,
        expected_statuses: Iterable[int] = (),
    ) -> OperationResult:
        """Send a request to the HSM and classify the outcome.

        Args:
            method: HTTP method (GET, POST, DELETE)
            path: API path relative to base_url
            json_data: JSON request body
            timeout: Request timeout (overrides default)
            expected_statuses: Error statuses the caller handles as an
                outcome; they are logged at debug level instead of warning

        Returns:
            OperationResult with the decoded JSON body as data, or the
            classified error
        """
        url = f"{self.base_url}/{path}"
        timeout = timeout or self.timeout

        log = self._logger.bind(method=method, url=url)
        log.debug("hsm_request")

        try:
            response = self._session.request(
                method=method,
                url=url,
                json=json_data,
                timeout=timeout,
            )
            response.raise_for_status()
        except requests.RequestException as exc:
            result = classify_http_error(exc)
            log_failure = (
                log.debug
                if result.status_code in expected_statuses
                else log.warning
            )
            log_failure(
                "hsm_request_failed",
                status_code=result.status_code,
                error_code=result.error_code,
                error=result.message,
            )
            return result

        data = None
        if response.content:
            try:
                data = response.json()
            except (json.JSONDecodeError, ValueError):
                log.warning("hsm_non_json_response", content=response.text[:200])
                return OperationResult.permanent_error(
                    f"{method} {path} returned a non JSON body",
                    error_code="DECODE_ERROR",
                    status_code=response.status_code,
                )

        log.debug("hsm_request_succeeded", status_code=response.status_code)
        result = OperationResult.success(
            data=data, message=f"{method} {path} succeeded"
        )
        result.status_code = response.status_code
        return result

    def _unwrap(self, result: OperationResult, label: Optional[str] = None) -> Any:
        """Return the payload of a successful result or raise its error."""
        if result.is_success:
            return result.data
        if result.is_not_found and label is not None:
            raise NotFoundError(label, payload=result.data)
        raise UpstreamError(
            result.message,
            status=result.status_code,
            payload=result.data,
            retryable=result.status.is_retryable,
            retry_after=result.retry_after,
        )

    @staticmethod
    def _decode_group(data: Any) -> Group:
        try:
            return group_from_dict(data)
        except ValueError as exc:
            raise UpstreamError(str(exc), payload=data) from exc


def build_group_client(hsm_settings: Optional[HsmSettings] = None) -> HsmGroupClient:
    """Create an HsmGroupClient from the HSM settings."""
    cfg = hsm_settings or settings.hsm
    return HsmGroupClient(
        base_url=cfg.HSM_BASE_URL,
        token=cfg.HSM_ACCESS_TOKEN,
        root_cert=cfg.HSM_ROOT_CERT or None,
        socks5_proxy=cfg.SOCKS5,
        timeout=cfg.HSM_REQUEST_TIMEOUT_SECONDS,
    )
