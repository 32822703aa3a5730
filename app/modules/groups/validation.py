"""Validation functions for group membership operations.

Provides validation for:
- Node id (xname) format
- Membership of node ids in a declared parent group

Format checks are pure. StoreNodeValidator adds the membership check by
reading the parent group from the group store.
"""

import re
from typing import Iterable, List, Optional

from core.logging import get_module_logger
from modules.groups.domain.errors import ValidationError
from modules.groups.domain.models import NodeId
from modules.groups.domain.types import GroupStore

logger = get_module_logger()

# Node xname: cabinet, chassis, slot, BMC, node
XNAME_REGEX = re.compile(r"^x\d{1,4}c[0-7]s([0-9]|[1-5][0-9]|6[0-4])b[0-1]n[0-7]$")


def is_valid_xname(node_id: str) -> bool:
    """Return True if node_id is a well-formed node xname."""
    return isinstance(node_id, str) and bool(XNAME_REGEX.match(node_id))


def validate_xname(node_id: str) -> bool:
    """Validate a single node xname.

    Returns:
        True if validation passes

    Raises:
        ValidationError: If the xname is malformed

    Examples:
        >>> validate_xname("x1000c0s0b0n0")
        True

        >>> validate_xname("nid000001")
        Traceback (most recent call last):
            ...
        ValidationError: Node id 'nid000001' is not a valid xname
    """
    if not is_valid_xname(node_id):
        raise ValidationError(f"Node id '{node_id}' is not a valid xname", [node_id])
    return True


def invalid_xnames(node_ids: Iterable[NodeId]) -> List[NodeId]:
    """Return the malformed ids among node_ids, sorted."""
    return sorted({n for n in node_ids if not is_valid_xname(n)}, key=str)


class StoreNodeValidator:
    """Node validator backed by the group store.

    Args:
        store: Group store used to read the parent group
        timeout: Per-request timeout in seconds for the parent read
    """

    def __init__(self, store: GroupStore, timeout: Optional[float] = None):
        self._store = store
        self.timeout = timeout

    def invalid_nodes(
        self, node_ids: Iterable[NodeId], parent_label: Optional[str] = None
    ) -> List[NodeId]:
        """Return the ids that are malformed or, if a parent is given, not in it.

        Raises:
            UpstreamError: If the parent group cannot be read
        """
        ids = list(node_ids)
        invalid = set(invalid_xnames(ids))
        if invalid:
            logger.warning(
                "validation_failed_xname_format",
                invalid_nodes=sorted(invalid, key=str),
            )

        if parent_label is not None:
            parent_members = self._store.get_members(parent_label, timeout=self.timeout)
            not_members = {n for n in ids if n not in parent_members} - invalid
            if not_members:
                logger.warning(
                    "validation_failed_not_in_parent",
                    parent_label=parent_label,
                    invalid_nodes=sorted(not_members),
                )
            invalid |= not_members

        return sorted(invalid, key=str)

    def validate_membership(
        self, node_ids: Iterable[NodeId], parent_label: Optional[str] = None
    ) -> bool:
        """Return True if every id is well formed and a member of parent_label."""
        return not self.invalid_nodes(node_ids, parent_label)
