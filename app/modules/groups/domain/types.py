"""Collaborator protocols consumed by the groups module.

These Protocols describe the narrow synchronous contracts the reconciliation
engine needs from the outside world. They are type hints only; any object
with matching methods (the HSM HTTP client, a test fake) satisfies them.

Usage:
  - GroupStore is implemented by integrations.hsm.client.HsmGroupClient
  - NodeValidator is implemented by modules.groups.validation.StoreNodeValidator
"""

from typing import Iterable, List, Optional, Protocol, Set, runtime_checkable

from modules.groups.domain.models import Group, NodeId


@runtime_checkable
class GroupStore(Protocol):
    """Remote group store.

    Every method accepts an optional ``timeout`` in seconds bounding the
    underlying remote call. Failures are raised as UpstreamError (or
    NotFoundError for unknown labels).
    """

    def get_all(self, timeout: Optional[float] = None) -> List[Group]: ...

    def get_one(self, label: str, timeout: Optional[float] = None) -> Group: ...

    def get_members(
        self, label: str, timeout: Optional[float] = None
    ) -> Set[NodeId]: ...

    def post(self, group: Group, timeout: Optional[float] = None) -> None: ...

    def post_members(
        self,
        label: str,
        node_ids: Iterable[NodeId],
        timeout: Optional[float] = None,
    ) -> None: ...

    def delete_member(
        self, label: str, node_id: NodeId, timeout: Optional[float] = None
    ) -> None: ...

    def delete_group(self, label: str, timeout: Optional[float] = None) -> None: ...


@runtime_checkable
class NodeValidator(Protocol):
    """Checks node ids are well formed and, optionally, members of a group."""

    def validate_membership(
        self, node_ids: Iterable[NodeId], parent_label: Optional[str] = None
    ) -> bool: ...
