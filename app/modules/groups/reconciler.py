"""Membership set arithmetic.

Pure functions over node id collections: merging, deduping, diffing and
projecting bulk group listings. No I/O and no logging; the same inputs always
give the same outputs, so everything here is tested in isolation.

Member lists returned by these helpers are sorted and free of duplicates.
Order carries no meaning for the HSM, it only keeps reports and payloads
deterministic.
"""

from typing import Dict, Iterable, List, Set, Tuple

from modules.groups.domain.models import Group, MembershipDelta, NodeId


def normalize(members: Iterable[NodeId]) -> List[NodeId]:
    """Return members sorted with duplicates removed."""
    return sorted(set(members))


def merge_and_normalize(
    existing: Iterable[NodeId], additions: Iterable[NodeId]
) -> List[NodeId]:
    """Fold additions into the existing membership.

    Args:
        existing: Current members of a group
        additions: Members to add, duplicates allowed

    Returns:
        Sorted union of both collections

    Example:
        >>> merge_and_normalize({"x2", "x1"}, ["x3", "x1"])
        ['x1', 'x2', 'x3']
    """
    return normalize([*existing, *additions])


def filter_groups_by_label(
    groups: Iterable[Group], wanted_labels: Iterable[str]
) -> Dict[str, Set[NodeId]]:
    """Project a group listing down to the requested labels.

    Labels with no matching group are simply absent from the result.
    """
    wanted = set(wanted_labels)
    group_map: Dict[str, Set[NodeId]] = {}
    for group in groups:
        if group.label in wanted:
            group_map.setdefault(group.label, set(group.members))
    return group_map


def filter_groups_by_member(
    groups: Iterable[Group], node_ids: Iterable[NodeId]
) -> Dict[str, Set[NodeId]]:
    """Map each group holding any of the given nodes to the nodes it holds.

    Groups that contain none of the nodes are left out.
    """
    wanted = set(node_ids)
    group_map: Dict[str, Set[NodeId]] = {}
    for group in groups:
        found = group.members & wanted
        if found:
            group_map[group.label] = found
    return group_map


def compute_migration_state(
    target_existing: Iterable[NodeId],
    parent_existing: Iterable[NodeId],
    moving: Iterable[NodeId],
) -> Tuple[List[NodeId], List[NodeId]]:
    """Compute the memberships of both groups after moving nodes.

    The parent is pruned against the merged target set rather than the raw
    moving set, so a node already present in both groups beforehand also
    leaves the parent.

    Args:
        target_existing: Current members of the target group
        parent_existing: Current members of the parent group
        moving: Nodes moving from parent to target

    Returns:
        (target_new, parent_new), both sorted

    Example:
        >>> compute_migration_state({"x1", "x2"}, {"x4", "x5", "x6"}, {"x5"})
        (['x1', 'x2', 'x5'], ['x4', 'x6'])
    """
    target_new = merge_and_normalize(target_existing, moving)
    target_set = set(target_new)
    parent_new = normalize(m for m in parent_existing if m not in target_set)
    return target_new, parent_new


def compute_delete_retained(
    current: Iterable[NodeId], to_delete: Iterable[NodeId]
) -> Set[NodeId]:
    """Return the members left after removing ``to_delete``."""
    return set(current) - set(to_delete)


def compute_delta(
    group_label: str, current: Iterable[NodeId], desired: Iterable[NodeId]
) -> MembershipDelta:
    """Diff the current membership of a group against the desired one."""
    current_set = set(current)
    desired_set = set(desired)
    return MembershipDelta(
        group_label=group_label,
        additions=desired_set - current_set,
        removals=current_set - desired_set,
    )
