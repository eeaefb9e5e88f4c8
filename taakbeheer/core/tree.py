"""Pure traversal helpers over a task snapshot (id -> TaskNode mapping)."""

from collections.abc import Iterable, Iterator, Mapping

from taakbeheer.domain.task import TaskNode


def unique_sorted_aliases(aliases: Iterable[str | None]) -> list[str]:
    """Deduplicate aliases, drop blanks and sort them for stable storage."""
    return sorted({alias.strip() for alias in aliases if alias and alias.strip()})


def alias_sets_equal(left: Iterable[str], right: Iterable[str]) -> bool:
    return set(unique_sorted_aliases(left)) == set(unique_sorted_aliases(right))


def iter_ancestors(task_id: str | None, snapshot: Mapping[str, TaskNode]) -> Iterator[TaskNode]:
    """Yield the node for `task_id` and then each ancestor up to the root.

    Stops at a missing node or at the first revisited id, so corrupted parent
    pointers never loop.
    """
    visited: set[str] = set()
    current_id = task_id
    while current_id is not None and current_id not in visited:
        node = snapshot.get(current_id)
        if node is None:
            return
        visited.add(current_id)
        yield node
        current_id = node.parent_id


def would_create_cycle(*, task_id: str, target_parent_id: str, snapshot: Mapping[str, TaskNode]) -> bool:
    """Return True when `target_parent_id` is `task_id` or one of its descendants.

    Walks from the target parent upward until the root or the moved id.
    """
    return any(node.id == task_id for node in iter_ancestors(target_parent_id, snapshot))


def children_by_parent(snapshot: Mapping[str, TaskNode]) -> dict[str, list[TaskNode]]:
    children: dict[str, list[TaskNode]] = {}
    for node in snapshot.values():
        if node.parent_id is not None:
            children.setdefault(node.parent_id, []).append(node)
    return children


def collect_subtree_ids(task_id: str, snapshot: Mapping[str, TaskNode]) -> list[str]:
    """Return `task_id` and all descendant ids, parents before children."""
    children = children_by_parent(snapshot)
    ordered: list[str] = []
    seen: set[str] = set()
    stack = [task_id]
    while stack:
        current = stack.pop()
        if current in seen:
            continue
        seen.add(current)
        ordered.append(current)
        stack.extend(child.id for child in children.get(current, []))
    return ordered


def sum_child_points(task_id: str, snapshot: Mapping[str, TaskNode], *, exclude_id: str | None = None) -> int:
    """Sum the points of the direct children of `task_id`."""
    return sum(
        node.points for node in snapshot.values() if node.parent_id == task_id and node.id != exclude_id
    )
