"""Task operations: create, edit, move, copy, delete, release, complete and list.

Every mutation loads its snapshot inside the transaction that writes, checks
authorization and the points ledger against that snapshot, and conditions its
writes on the values it read. Audit rows and notifications are emitted only
after the transaction has committed.
"""

import logging
from collections.abc import Mapping
from datetime import datetime
from typing import Any

from dateutil import parser as dateutil_parser

from taakbeheer.core import db_client
from taakbeheer.core.config import constants
from taakbeheer.core.errors import (
    ConflictError,
    ErrorCode,
    InputValidationError,
    NotFoundError,
    PermissionDeniedError,
    returns_result,
)
from taakbeheer.core.logging import log_with_actor_context, span
from taakbeheer.core.tree import alias_sets_equal, collect_subtree_ids, sum_child_points, unique_sorted_aliases
from taakbeheer.domain.create_models import TaskCopyOverrides, TaskCreate
from taakbeheer.domain.task import Task, TaskNode, TaskStatus
from taakbeheer.domain.update_models import TaskUpdate
from taakbeheer.domain.user import UserRole
from taakbeheer.models.service_models import CopyResult, DeleteResult, MoveResult, ReleaseResult, TaskView
from taakbeheer.services import (
    audit_service,
    notification_service,
    points_ledger,
    proposal_rules,
    snapshot_service,
    task_state_machine,
    user_service,
)
from taakbeheer.services.authorization import (
    PermissionLevel,
    can_create_subtask,
    can_edit_task_coordinators,
    has_permission,
    primary_coordinator_alias,
    resolve_effective_coordination_type,
    resolve_effective_coordinators,
)


logger = logging.getLogger(__name__)

ENTITY_TYPE = "Task"


def parse_time(value: str | datetime | None) -> datetime | None:
    """Parse a stored timestamp into a naive local datetime."""
    if value is None:
        return None
    parsed = value if isinstance(value, datetime) else dateutil_parser.isoparse(value)
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone().replace(tzinfo=None)
    return parsed


def _to_task(row: Mapping[str, Any], aliases: list[str]) -> Task:
    return Task(
        id=row["id"],
        title=row["title"],
        description=row.get("description") or "",
        team_name=row.get("team_name"),
        parent_id=row.get("parent_id"),
        coordination_type=row.get("coordination_type"),
        own_coordinator_aliases=aliases,
        points=row["points"],
        status=TaskStatus(row["status"]),
        date=row.get("date"),
        start_time=row.get("start_time"),
        end_time=row.get("end_time"),
        location=row.get("location"),
        created_at=row["created_at"],
    )


def _to_view(task: Task, snapshot: Mapping[str, TaskNode], actor_alias: str) -> TaskView:
    effective = sorted(resolve_effective_coordinators(task.id, snapshot))
    return TaskView(
        **task.model_dump(),
        effective_coordination_type=resolve_effective_coordination_type(task.id, snapshot),
        effective_coordinator_aliases=effective,
        primary_coordinator_alias=primary_coordinator_alias(effective),
        can_manage=actor_alias in effective,
    )


async def load_task(tx: db_client.Transaction, task_id: str) -> Task:
    """Fetch a task with its own coordinators inside `tx`, raising NotFoundError if absent."""
    row = await tx.find_first(collection="tasks", where={"id": task_id})
    if row is None:
        msg = f"Task {task_id} not found"
        raise NotFoundError(msg, code=ErrorCode.ERR_TASK_NOT_FOUND)
    aliases = await snapshot_service.load_coordinator_aliases(tx, [task_id])
    return _to_task(row, aliases.get(task_id, []))


async def replace_own_coordinators(tx: db_client.Transaction, task_id: str, aliases: list[str]) -> None:
    """Store `aliases` as the own coordinator set of a task; empty means inherit."""
    await tx.delete_where(collection="task_coordinators", where={"task_id": task_id})
    created_at = datetime.now().isoformat()
    for alias in unique_sorted_aliases(aliases):
        await tx.insert(
            collection="task_coordinators",
            data={"task_id": task_id, "user_alias": alias, "created_at": created_at},
            key="task_id",
        )


def require_permission(
    actor_alias: str, task_id: str, level: PermissionLevel, snapshot: Mapping[str, TaskNode]
) -> None:
    if not has_permission(actor_alias, task_id, level, snapshot):
        msg = f"{actor_alias} lacks {level} permission on task {task_id}"
        raise PermissionDeniedError(msg)


def _task_row(data: TaskCreate, *, team_name: str | None, points: int) -> dict[str, Any]:
    return {
        "id": db_client.new_id(),
        "title": data.title,
        "description": data.description,
        "team_name": team_name,
        "parent_id": data.parent_id,
        "coordination_type": data.coordination_type,
        "points": points,
        "status": TaskStatus.BESCHIKBAAR,
        "date": data.date,
        "start_time": data.start_time,
        "end_time": data.end_time,
        "location": data.location,
        "created_at": datetime.now().isoformat(),
    }


async def _create_root(tx: db_client.Transaction, actor_alias: str, data: TaskCreate) -> Task:
    if await tx.find_first(collection="tasks", where={"parent_id": None}) is not None:
        msg = "The task tree already has a root; create tasks under an existing parent"
        raise ConflictError(msg)

    actor = await user_service.require_user(tx, actor_alias)
    if not actor.is_active or actor.role != UserRole.BESTUUR:
        msg = "Only an active board member may create the root task"
        raise PermissionDeniedError(msg)

    row = await tx.insert(collection="tasks", data=_task_row(data, team_name=data.team_name, points=data.points))
    await replace_own_coordinators(tx, row["id"], [actor_alias])
    return _to_task(row, [actor_alias])


@returns_result
async def create_task(*, actor_alias: str, data: TaskCreate) -> Task:
    """Create a subtask, or the root when `data.parent_id` is None.

    A subtask inherits the parent's team unless one is given, and its points
    are carved out of the parent's unallocated headroom.

    Raises:
        NotFoundError: If the parent does not exist
        PermissionDeniedError: If the actor may not add subtasks to the parent
        ConflictError: If the parent lacks the requested points
    """
    with span("task_service.create_task"):
        async with db_client.transaction() as tx:
            if data.parent_id is None:
                task = await _create_root(tx, actor_alias, data)
            else:
                snapshot = await snapshot_service.load_family([data.parent_id], tx=tx)
                if data.parent_id not in snapshot:
                    msg = f"Parent task {data.parent_id} not found"
                    raise NotFoundError(msg)
                if not can_create_subtask(actor_alias, data.parent_id, snapshot):
                    msg = "Only the coordinators of the parent task may create subtasks"
                    raise PermissionDeniedError(msg)

                allocation = points_ledger.allocate_points_from_parent(
                    available_points=points_ledger.parent_headroom(data.parent_id, snapshot),
                    requested_points=data.points,
                )
                parent = snapshot[data.parent_id]
                team_name = data.team_name if data.team_name is not None else parent.team_name
                row = await tx.insert(
                    collection="tasks",
                    data=_task_row(data, team_name=team_name, points=allocation.assigned_points),
                )
                task = _to_task(row, [])

        log_with_actor_context(logger, "info", "Created task", actor_alias=actor_alias, task_id=task.id)
        await audit_service.write_audit_log(
            actor_alias=actor_alias,
            action_type=constants.AUDIT_TASK_CREATED,
            entity_type=ENTITY_TYPE,
            entity_id=task.id,
            payload={"parent_id": task.parent_id, "points": task.points},
        )
        return task


@returns_result
async def get_task(*, actor_alias: str, task_id: str) -> TaskView:
    """Fetch a task the actor may read."""
    with span("task_service.get_task"):
        async with db_client.transaction() as tx:
            task = await load_task(tx, task_id)
            snapshot = await snapshot_service.load_access_path(task_id, tx=tx)
        require_permission(actor_alias, task_id, PermissionLevel.READ, snapshot)
        return _to_view(task, snapshot, actor_alias)


async def _validate_coordinator_aliases(tx: db_client.Transaction, aliases: list[str]) -> list[str]:
    cleaned = unique_sorted_aliases(aliases)
    for alias in cleaned:
        user = await user_service.require_user(tx, alias)
        if not user.is_active:
            msg = f"User '{alias}' is not active"
            raise ConflictError(msg)
    return cleaned


@returns_result
async def update_task(*, actor_alias: str, task_id: str, patch: TaskUpdate) -> Task:
    """Apply a partial update.

    Plain fields require MANAGE. A points change is checked against the
    conservation invariant. Editing the own coordinator list is reserved for
    organizers of an ORGANISEREN branch.
    """
    with span("task_service.update_task"):
        changes = patch.changes()
        if not changes:
            msg = "Nothing to update"
            raise InputValidationError(msg)
        if "title" in changes and changes["title"] is None:
            msg = "title cannot be cleared"
            raise InputValidationError(msg)

        async with db_client.transaction() as tx:
            task = await load_task(tx, task_id)
            family_ids = [task_id] if task.parent_id is None else [task_id, task.parent_id]
            snapshot = await snapshot_service.load_family(family_ids, tx=tx)

            coordinator_aliases = changes.pop("own_coordinator_aliases", None)
            if coordinator_aliases is not None and not can_edit_task_coordinators(actor_alias, task_id, snapshot):
                msg = "Coordinators can only be edited by organizers of an ORGANISEREN task"
                raise PermissionDeniedError(msg)
            if changes:
                require_permission(actor_alias, task_id, PermissionLevel.MANAGE, snapshot)

            if changes.get("points") is not None:
                points_ledger.check_points_patch(task_id=task_id, new_points=changes["points"], snapshot=snapshot)
            elif "points" in changes:
                changes.pop("points")

            start = parse_time(changes.get("start_time", task.start_time))
            end = parse_time(changes.get("end_time", task.end_time))
            if start and end and start > end:
                msg = "start_time must not be after end_time"
                raise InputValidationError(msg)

            if changes:
                if "points" in changes:
                    changed = await tx.update_where(
                        collection="tasks",
                        where={"id": task_id, "points": snapshot[task_id].points},
                        data=changes,
                    )
                    if changed == 0:
                        msg = f"Task {task_id} changed concurrently"
                        raise ConflictError(msg, code=ErrorCode.ERR_CONCURRENT_MODIFICATION)
                else:
                    await tx.update(collection="tasks", record_id=task_id, data=changes)

            if coordinator_aliases is not None:
                cleaned = await _validate_coordinator_aliases(tx, coordinator_aliases)
                parent_effective = (
                    resolve_effective_coordinators(task.parent_id, snapshot) if task.parent_id else frozenset()
                )
                if parent_effective and alias_sets_equal(cleaned, parent_effective):
                    cleaned = []
                await replace_own_coordinators(tx, task_id, cleaned)

            updated = await load_task(tx, task_id)
            effective = resolve_effective_coordinators(task_id, snapshot)

        await audit_service.write_audit_log(
            actor_alias=actor_alias,
            action_type=constants.AUDIT_TASK_UPDATED,
            entity_type=ENTITY_TYPE,
            entity_id=task_id,
            payload={
                "fields": sorted(patch.model_fields_set),
                "own_coordinator_aliases": updated.own_coordinator_aliases,
            },
        )
        await notification_service.notify_task_changed(
            coordinator_aliases=effective,
            actor_alias=actor_alias,
            task_title=updated.title,
            change="task details were updated",
        )
        return updated


@returns_result
async def move_task(*, actor_alias: str, task_id: str, target_parent_id: str) -> MoveResult:
    """Move a subtask under another parent, transferring its points along.

    The actor needs MANAGE on both the current and the target parent. The
    source decrement and target increment are conditioned on the points read
    at the start of the transaction.

    Raises:
        NotFoundError: If the task or target does not exist
        PermissionDeniedError: If the actor cannot manage either parent
        ConflictError: Root move, cycle, cross-team move, insufficient source
            points or a concurrent modification
    """
    with span("task_service.move_task"):
        async with db_client.transaction() as tx:
            task = await load_task(tx, task_id)
            if task.parent_id is None:
                msg = "The root task cannot be moved"
                raise ConflictError(msg, code=ErrorCode.ERR_INVALID_STATE_TRANSITION)
            if task.parent_id == target_parent_id:
                msg = "Task is already under this parent"
                raise ConflictError(msg)

            snapshot = await snapshot_service.load_family([task_id, target_parent_id], tx=tx)
            if target_parent_id not in snapshot:
                msg = f"Target parent {target_parent_id} not found"
                raise NotFoundError(msg)

            require_permission(actor_alias, task.parent_id, PermissionLevel.MANAGE, snapshot)
            require_permission(actor_alias, target_parent_id, PermissionLevel.MANAGE, snapshot)

            preview = points_ledger.validate_move(task_id=task_id, target_parent_id=target_parent_id, snapshot=snapshot)

            source = snapshot[task.parent_id]
            target = snapshot[target_parent_id]
            for node, points_after in (
                (source, preview.source_parent_points_after),
                (target, preview.target_parent_points_after),
            ):
                changed = await tx.update_where(
                    collection="tasks", where={"id": node.id, "points": node.points}, data={"points": points_after}
                )
                if changed == 0:
                    msg = f"Points of task {node.id} changed concurrently"
                    raise ConflictError(msg, code=ErrorCode.ERR_CONCURRENT_MODIFICATION)

            await tx.update(collection="tasks", record_id=task_id, data={"parent_id": target_parent_id})

        result = MoveResult(
            task_id=task_id,
            source_parent_id=source.id,
            target_parent_id=target_parent_id,
            moved_points=task.points,
            source_parent_points_after=preview.source_parent_points_after,
            target_parent_points_after=preview.target_parent_points_after,
        )
        log_with_actor_context(
            logger, "info", "Moved task", actor_alias=actor_alias, task_id=task_id, target_parent_id=target_parent_id
        )
        await audit_service.write_audit_log(
            actor_alias=actor_alias,
            action_type=constants.AUDIT_TASK_MOVED,
            entity_type=ENTITY_TYPE,
            entity_id=task_id,
            payload=result.model_dump(),
        )
        return result


@returns_result
async def delete_task_subtree(*, actor_alias: str, task_id: str) -> DeleteResult:
    """Delete a non-root task with all descendants, coordinator links and proposals."""
    with span("task_service.delete_task_subtree"):
        async with db_client.transaction() as tx:
            task = await load_task(tx, task_id)
            if task.parent_id is None:
                msg = "The root task cannot be deleted"
                raise ConflictError(msg)

            parent_path = await snapshot_service.load_access_path(task.parent_id, tx=tx)
            require_permission(actor_alias, task.parent_id, PermissionLevel.MANAGE, parent_path)

            tree = await snapshot_service.load_task_projection(snapshot_service.ALL, tx=tx)
            subtree_ids = collect_subtree_ids(task_id, tree)

            deleted_open_tasks = await tx.delete_where(collection="open_tasks", where={"task_id": subtree_ids})
            # Children first; parent_id has no cascading delete.
            for subtree_id in reversed(subtree_ids):
                await tx.delete(collection="tasks", record_id=subtree_id)

        result = DeleteResult(
            task_id=task_id, deleted_task_ids=subtree_ids, deleted_open_task_count=deleted_open_tasks
        )
        log_with_actor_context(
            logger, "info", "Deleted task subtree", actor_alias=actor_alias, task_id=task_id, count=len(subtree_ids)
        )
        await audit_service.write_audit_log(
            actor_alias=actor_alias,
            action_type=constants.AUDIT_TASK_SUBTREE_DELETED,
            entity_type=ENTITY_TYPE,
            entity_id=task_id,
            payload={"title": task.title, "deleted_task_ids": subtree_ids},
        )
        return result


_COPIED_FIELDS = (
    "title",
    "description",
    "team_name",
    "coordination_type",
    "points",
    "date",
    "start_time",
    "end_time",
    "location",
)


@returns_result
async def copy_task_subtree(
    *, actor_alias: str, task_id: str, target_parent_id: str, overrides: TaskCopyOverrides | None = None
) -> CopyResult:
    """Copy a non-root task with all descendants under another parent.

    Every copy starts BESCHIKBAAR and keeps its own coordinators and points.
    The copied root's points are carved out of the target's headroom, so the
    source tree is left untouched. Fields set in `overrides` replace those of
    the copied root only.

    Raises:
        NotFoundError: If the task or target does not exist
        PermissionDeniedError: If the actor cannot manage the task, its parent or the target
        ConflictError: Root copy, or points that do not fit the target or the copied children
    """
    with span("task_service.copy_task_subtree"):
        async with db_client.transaction() as tx:
            task = await load_task(tx, task_id)
            if task.parent_id is None:
                msg = "The root task cannot be copied"
                raise ConflictError(msg)

            tree = await snapshot_service.load_task_projection(snapshot_service.ALL, tx=tx)
            if target_parent_id not in tree:
                msg = f"Target parent {target_parent_id} not found"
                raise NotFoundError(msg)
            for checked_id in (task_id, task.parent_id, target_parent_id):
                require_permission(actor_alias, checked_id, PermissionLevel.MANAGE, tree)

            root_changes = overrides.model_dump(exclude_none=True) if overrides else {}
            requested = root_changes.pop("points", task.points)
            issued = sum_child_points(task_id, tree)
            if requested < issued:
                msg = f"Points cannot be lower than the {issued} points issued to subtasks"
                raise ConflictError(msg, code=ErrorCode.ERR_INSUFFICIENT_POINTS)
            allocation = points_ledger.allocate_points_from_parent(
                available_points=points_ledger.parent_headroom(target_parent_id, tree),
                requested_points=requested,
            )

            subtree_ids = collect_subtree_ids(task_id, tree)
            rows = {row["id"]: row for row in await tx.find(collection="tasks", where={"id": subtree_ids})}
            new_ids: dict[str, str] = {}
            created_at = datetime.now().isoformat()
            for old_id in subtree_ids:
                new_ids[old_id] = db_client.new_id()
                data = {field: rows[old_id][field] for field in _COPIED_FIELDS}
                if old_id == task_id:
                    data.update(root_changes, points=allocation.assigned_points)
                    parent_id = target_parent_id
                else:
                    parent_id = new_ids[tree[old_id].parent_id]
                data.update(
                    id=new_ids[old_id], parent_id=parent_id, status=TaskStatus.BESCHIKBAAR, created_at=created_at
                )
                await tx.insert(collection="tasks", data=data)
                await replace_own_coordinators(tx, new_ids[old_id], list(tree[old_id].own_coordinator_aliases))

        created_ids = [new_ids[old_id] for old_id in subtree_ids]
        result = CopyResult(
            source_task_id=task_id,
            target_parent_id=target_parent_id,
            new_root_id=created_ids[0],
            created_task_ids=created_ids,
            allocated_points=allocation.assigned_points,
        )
        log_with_actor_context(
            logger, "info", "Copied task subtree", actor_alias=actor_alias, task_id=task_id, count=len(created_ids)
        )
        await audit_service.write_audit_log(
            actor_alias=actor_alias,
            action_type=constants.AUDIT_TASK_SUBTREE_COPIED,
            entity_type=ENTITY_TYPE,
            entity_id=task_id,
            payload={
                "target_parent_id": target_parent_id,
                "new_root_id": result.new_root_id,
                "created_count": len(created_ids),
            },
        )
        return result


@returns_result
async def release_task(*, actor_alias: str, task_id: str) -> ReleaseResult:
    """Remove the actor from a task's effective coordinators and make it available again.

    When the actor was the only effective coordinator, responsibility falls
    back to the parent's coordinators.
    """
    with span("task_service.release_task"):
        async with db_client.transaction() as tx:
            task = await load_task(tx, task_id)
            snapshot = await snapshot_service.load_access_path(task_id, tx=tx)
            require_permission(actor_alias, task_id, PermissionLevel.MANAGE, snapshot)
            if task.status == TaskStatus.GEREED:
                msg = "A completed task cannot be released"
                raise ConflictError(msg, code=ErrorCode.ERR_INVALID_STATE_TRANSITION)

            parent_effective = (
                resolve_effective_coordinators(task.parent_id, snapshot) if task.parent_id else frozenset()
            )
            next_own = proposal_rules.own_coordinator_aliases_after_release(
                actor_alias=actor_alias,
                current_effective_aliases=resolve_effective_coordinators(task_id, snapshot),
                parent_effective_aliases=parent_effective,
            )
            if task.parent_id is None and not next_own:
                msg = "The root task must keep at least one coordinator"
                raise ConflictError(msg)

            await replace_own_coordinators(tx, task_id, next_own)
            if task.status == TaskStatus.TOEGEWEZEN:
                await task_state_machine.transition_status(
                    tx, task_id=task_id, current=task.status, target=TaskStatus.BESCHIKBAAR
                )

        effective = next_own or sorted(parent_effective)
        await audit_service.write_audit_log(
            actor_alias=actor_alias,
            action_type=constants.AUDIT_TASK_RELEASED,
            entity_type=ENTITY_TYPE,
            entity_id=task_id,
            payload={"removed_coordinator_alias": actor_alias, "own_coordinator_aliases_after": next_own},
        )
        await notification_service.notify_task_changed(
            coordinator_aliases=effective,
            actor_alias=actor_alias,
            task_title=task.title,
            change=f"{actor_alias} released the task",
            became_available=True,
        )
        return ReleaseResult(
            task_id=task_id,
            own_coordinator_aliases=next_own,
            effective_coordinator_aliases=effective,
            status=TaskStatus.BESCHIKBAAR,
        )


@returns_result
async def complete_task(*, actor_alias: str, task_id: str) -> Task:
    """Mark an assigned task and its assigned descendants as done.

    All start times in the subtree must lie in the past; end times still in
    the future are moved to now.
    """
    with span("task_service.complete_task"):
        now = datetime.now()
        async with db_client.transaction() as tx:
            task = await load_task(tx, task_id)
            snapshot = await snapshot_service.load_access_path(task_id, tx=tx)
            require_permission(actor_alias, task_id, PermissionLevel.MANAGE, snapshot)
            task_state_machine.ensure_transition(task_id=task_id, current=task.status, target=TaskStatus.GEREED)

            end_time = parse_time(task.end_time)
            if end_time is not None and end_time <= now:
                msg = "Task has already ended; completing it is not needed"
                raise ConflictError(msg)

            tree = await snapshot_service.load_task_projection(snapshot_service.ALL, tx=tx)
            rows = await tx.find(collection="tasks", where={"id": collect_subtree_ids(task_id, tree)})
            for row in rows:
                start = parse_time(row["start_time"] or row["date"])
                if start is not None and start > now:
                    msg = f"All subtasks must have started before completion; not started yet: {row['title']}"
                    raise ConflictError(msg)

            await task_state_machine.transition_status(
                tx, task_id=task_id, current=task.status, target=TaskStatus.GEREED
            )
            affected = [task_id]
            for row in rows:
                data: dict[str, Any] = {}
                row_end = parse_time(row["end_time"])
                if row_end is not None and row_end > now:
                    data["end_time"] = now
                if row["id"] != task_id and row["status"] == TaskStatus.TOEGEWEZEN:
                    data["status"] = TaskStatus.GEREED
                if data:
                    await tx.update(collection="tasks", record_id=row["id"], data=data)
                    if row["id"] != task_id:
                        affected.append(row["id"])

            completed = await load_task(tx, task_id)

        await audit_service.write_audit_log(
            actor_alias=actor_alias,
            action_type=constants.AUDIT_TASK_COMPLETED,
            entity_type=ENTITY_TYPE,
            entity_id=task_id,
            payload={"affected_task_ids": affected, "completed_at": now.isoformat()},
        )
        await notification_service.notify_task_changed(
            coordinator_aliases=resolve_effective_coordinators(task_id, snapshot),
            actor_alias=actor_alias,
            task_title=task.title,
            change="task was completed",
        )
        return completed


@returns_result
async def uncomplete_task(*, actor_alias: str, task_id: str) -> Task:
    """Reopen a completed task; refused while its parent is still completed."""
    with span("task_service.uncomplete_task"):
        async with db_client.transaction() as tx:
            task = await load_task(tx, task_id)
            snapshot = await snapshot_service.load_access_path(task_id, tx=tx)
            require_permission(actor_alias, task_id, PermissionLevel.MANAGE, snapshot)
            if task.status != TaskStatus.GEREED:
                msg = "Only completed tasks can be reopened"
                raise ConflictError(msg, code=ErrorCode.ERR_INVALID_STATE_TRANSITION)

            if task.parent_id is not None:
                parent = await load_task(tx, task.parent_id)
                if parent.status == TaskStatus.GEREED:
                    msg = "Cannot reopen this task while its parent task is completed"
                    raise ConflictError(msg, code=ErrorCode.ERR_INVALID_STATE_TRANSITION)

            await task_state_machine.transition_status(
                tx, task_id=task_id, current=task.status, target=TaskStatus.TOEGEWEZEN
            )
            reopened = await load_task(tx, task_id)

        await audit_service.write_audit_log(
            actor_alias=actor_alias,
            action_type=constants.AUDIT_TASK_UNCOMPLETED,
            entity_type=ENTITY_TYPE,
            entity_id=task_id,
            payload={"previous_status": TaskStatus.GEREED.value, "next_status": reopened.status.value},
        )
        return reopened


@returns_result
async def list_visible_tasks(*, actor_alias: str) -> list[TaskView]:
    """Tasks that are available, or that lie in a branch the actor manages."""
    with span("task_service.list_visible_tasks"):
        async with db_client.transaction() as tx:
            rows = await tx.find(collection="tasks", order_by="created_at ASC")
            aliases = await snapshot_service.load_coordinator_aliases(tx, None)
            snapshot = await snapshot_service.load_task_projection(snapshot_service.ALL, tx=tx)

        views = []
        for row in rows:
            if not has_permission(actor_alias, row["id"], PermissionLevel.READ, snapshot):
                continue
            view = _to_view(_to_task(row, aliases.get(row["id"], [])), snapshot, actor_alias)
            if view.status == TaskStatus.BESCHIKBAAR or view.can_manage:
                views.append(view)

        logger.debug("Listed visible tasks", extra={"actor_alias": actor_alias, "count": len(views)})
        return views

