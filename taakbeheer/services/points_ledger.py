"""Points conservation rules.

A task's points are a budget carved out of its parent's pool: a parent must
always hold at least the sum of its direct children's points. The functions
here only decide; callers commit the result with a conditional update.
"""

import math
from collections.abc import Mapping

from taakbeheer.core.errors import ConflictError, ErrorCode
from taakbeheer.core.tree import sum_child_points, would_create_cycle
from taakbeheer.domain.task import TaskNode
from taakbeheer.models.service_models import PointsAllocation, TransferPreview


def normalize_points(value: float | int | None) -> int:
    """Clamp negative, missing or non-finite values to 0."""
    if value is None or not math.isfinite(value) or value < 0:
        return 0
    return int(value)


def remaining_own_points(*, own_points: int, issued_to_direct_subtasks: int) -> int:
    """Points a task still holds after funding its direct subtasks."""
    return normalize_points(own_points) - normalize_points(issued_to_direct_subtasks)


def preview_transfer(
    source_parent_points: int, target_parent_points: int, moved_task_points: int
) -> TransferPreview:
    """Evaluate moving `moved_task_points` from the source parent to the target parent.

    The source must cover the moved amount; the target has no upper bound.
    A non-transferable preview reports the unchanged points.
    """
    if source_parent_points < moved_task_points:
        return TransferPreview(
            transferable=False,
            source_parent_points_after=source_parent_points,
            target_parent_points_after=target_parent_points,
        )
    return TransferPreview(
        transferable=True,
        source_parent_points_after=source_parent_points - moved_task_points,
        target_parent_points_after=target_parent_points + moved_task_points,
    )


def allocate_points_from_parent(*, available_points: int, requested_points: int) -> PointsAllocation:
    """Carve `requested_points` out of a parent's unallocated headroom.

    Raises:
        ConflictError: If the request exceeds the headroom
    """
    available = normalize_points(available_points)
    requested = normalize_points(requested_points)
    if requested > available:
        msg = f"Not enough points available in the parent task ({requested} requested, {available} available)"
        raise ConflictError(msg, code=ErrorCode.ERR_INSUFFICIENT_POINTS)
    return PointsAllocation(available_points_after=available - requested, assigned_points=requested)


def parent_headroom(parent_id: str, snapshot: Mapping[str, TaskNode], *, exclude_id: str | None = None) -> int:
    """Unallocated points of `parent_id`, optionally ignoring one child's share."""
    parent = snapshot[parent_id]
    return remaining_own_points(
        own_points=parent.points,
        issued_to_direct_subtasks=sum_child_points(parent_id, snapshot, exclude_id=exclude_id),
    )


def check_points_patch(*, task_id: str, new_points: int, snapshot: Mapping[str, TaskNode]) -> None:
    """Validate a direct points edit against the conservation invariant.

    The new value must still cover the task's own children and must fit the
    parent's headroom, counting the task's current share as available.

    Raises:
        ConflictError: If either bound is violated
    """
    issued = sum_child_points(task_id, snapshot)
    if new_points < issued:
        msg = f"Points cannot be lower than the {issued} points issued to subtasks"
        raise ConflictError(msg, code=ErrorCode.ERR_INSUFFICIENT_POINTS)

    parent_id = snapshot[task_id].parent_id
    if parent_id is None or parent_id not in snapshot:
        return
    headroom = parent_headroom(parent_id, snapshot, exclude_id=task_id)
    if new_points > headroom:
        msg = f"Not enough points available in the parent task ({new_points} requested, {headroom} available)"
        raise ConflictError(msg, code=ErrorCode.ERR_INSUFFICIENT_POINTS)


def validate_move(*, task_id: str, target_parent_id: str, snapshot: Mapping[str, TaskNode]) -> TransferPreview:
    """Run the move checks in order: root, cycle, team, then the transfer itself.

    Raises:
        ConflictError: If any check rejects the move
    """
    task = snapshot[task_id]
    if task.parent_id is None:
        msg = "The root task cannot be moved"
        raise ConflictError(msg, code=ErrorCode.ERR_INVALID_STATE_TRANSITION)

    if would_create_cycle(task_id=task_id, target_parent_id=target_parent_id, snapshot=snapshot):
        msg = "A task cannot be moved below itself or one of its subtasks"
        raise ConflictError(msg, code=ErrorCode.ERR_CYCLE_DETECTED)

    target = snapshot[target_parent_id]
    if target.team_name is not None and target.team_name != task.team_name:
        msg = f"Cannot move a task to team '{target.team_name}'"
        raise ConflictError(msg, code=ErrorCode.ERR_CROSS_TEAM_MOVE)

    source = snapshot[task.parent_id]
    preview = preview_transfer(source.points, target.points, task.points)
    if not preview.transferable:
        msg = f"Source parent holds {source.points} points, cannot release {task.points}"
        raise ConflictError(msg, code=ErrorCode.ERR_INSUFFICIENT_POINTS)
    return preview
