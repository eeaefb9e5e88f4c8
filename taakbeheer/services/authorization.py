"""Coordinator resolution and permission evaluation over a task snapshot.

Everything in this module is a pure function of an explicitly passed snapshot
(a mapping of task id to `TaskNode`). Callers load the snapshot with
`snapshot_service` inside the transaction that will perform the write.
"""

from collections.abc import Iterable, Mapping
from enum import StrEnum

from taakbeheer.core.tree import iter_ancestors, unique_sorted_aliases
from taakbeheer.domain.task import CoordinationType, TaskNode


DEFAULT_COORDINATION_TYPE = CoordinationType.DELEGEREN


class PermissionLevel(StrEnum):
    """Capability an actor can hold on a task."""

    READ = "READ"
    OPEN = "OPEN"  # Register interest or propose
    MANAGE = "MANAGE"


def resolve_effective_coordinators(task_id: str, snapshot: Mapping[str, TaskNode]) -> frozenset[str]:
    """Return the nearest non-empty own coordinator set walking up from `task_id`.

    Returns the empty set when the chain ends without one, when a node is
    missing from the snapshot, or when a parent pointer loops.
    """
    for node in iter_ancestors(task_id, snapshot):
        if node.own_coordinator_aliases:
            return frozenset(node.own_coordinator_aliases)
    return frozenset()


def has_permission(
    actor_alias: str, task_id: str, level: PermissionLevel, snapshot: Mapping[str, TaskNode]
) -> bool:
    effective = resolve_effective_coordinators(task_id, snapshot)
    if not effective:
        return False
    if actor_alias in effective:
        return True
    return level in (PermissionLevel.READ, PermissionLevel.OPEN)


def primary_coordinator_alias(aliases: Iterable[str]) -> str | None:
    """Deterministic display alias: the lexicographically first one."""
    ordered = unique_sorted_aliases(aliases)
    return ordered[0] if ordered else None


def resolve_effective_coordination_type(task_id: str, snapshot: Mapping[str, TaskNode]) -> CoordinationType:
    """Return the first explicit coordination type up the chain, DELEGEREN by default."""
    for node in iter_ancestors(task_id, snapshot):
        if node.coordination_type is not None:
            return node.coordination_type
    return DEFAULT_COORDINATION_TYPE


def resolve_organizer_aliases(task_id: str, snapshot: Mapping[str, TaskNode]) -> frozenset[str]:
    """Effective coordinators of the nearest explicitly ORGANISEREN node.

    A nearer node that explicitly says DELEGEREN ends the search.
    """
    for node in iter_ancestors(task_id, snapshot):
        if node.coordination_type == CoordinationType.DELEGEREN:
            return frozenset()
        if node.coordination_type == CoordinationType.ORGANISEREN:
            return resolve_effective_coordinators(node.id, snapshot)
    return frozenset()


def is_organizer(actor_alias: str, task_id: str, snapshot: Mapping[str, TaskNode]) -> bool:
    return actor_alias in resolve_organizer_aliases(task_id, snapshot)


def can_create_subtask(actor_alias: str, parent_id: str, snapshot: Mapping[str, TaskNode]) -> bool:
    """Under ORGANISEREN only organizers add subtasks; otherwise MANAGE is required."""
    if resolve_effective_coordination_type(parent_id, snapshot) == CoordinationType.ORGANISEREN:
        return is_organizer(actor_alias, parent_id, snapshot)
    return has_permission(actor_alias, parent_id, PermissionLevel.MANAGE, snapshot)


def can_edit_task_coordinators(actor_alias: str, task_id: str, snapshot: Mapping[str, TaskNode]) -> bool:
    if resolve_effective_coordination_type(task_id, snapshot) != CoordinationType.ORGANISEREN:
        return False
    return is_organizer(actor_alias, task_id, snapshot)


def is_leaf(task_id: str, snapshot: Mapping[str, TaskNode]) -> bool:
    return not any(node.parent_id == task_id for node in snapshot.values())
