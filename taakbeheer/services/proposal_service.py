"""Task delegation proposals: register, propose, decide, acknowledge and list."""

import logging
from collections.abc import Iterable, Mapping
from datetime import datetime
from typing import Any

from taakbeheer.core import db_client
from taakbeheer.core.config import constants
from taakbeheer.core.errors import (
    ConflictError,
    ErrorCode,
    InputValidationError,
    PermissionDeniedError,
    returns_result,
)
from taakbeheer.core.logging import log_with_actor_context, span
from taakbeheer.domain.proposal import OpenTask, ProposalStatus
from taakbeheer.domain.task import CoordinationType, TaskNode, TaskStatus
from taakbeheer.models.service_models import AssignmentResult, ProposalView
from taakbeheer.services import (
    assignment_committer,
    audit_service,
    notification_service,
    proposal_rules,
    snapshot_service,
    task_service,
    user_service,
)
from taakbeheer.services.authorization import (
    PermissionLevel,
    is_leaf,
    resolve_effective_coordination_type,
    resolve_effective_coordinators,
)


logger = logging.getLogger(__name__)

ENTITY_TYPE = "OpenTask"


def _to_open_task(row: Mapping[str, Any]) -> OpenTask:
    return OpenTask(
        id=row["id"],
        task_id=row["task_id"],
        proposer_alias=row["proposer_alias"],
        proposed_alias=row["proposed_alias"],
        status=ProposalStatus(row["status"]),
        created_at=row["created_at"],
    )


async def find_listable_proposals(
    tx: db_client.Transaction, *, collection: str, owner_column: str, actor_alias: str
) -> list[dict[str, Any]]:
    """Newest OPEN proposals plus the actor's own rejected ones, capped at the list limit.

    Other people's rejected rows are excluded before the limit applies.
    """
    limit = constants.OPEN_TASKS_LIST_LIMIT
    open_rows = await tx.find(
        collection=collection,
        where={"status": ProposalStatus.OPEN.value},
        order_by="created_at DESC",
        limit=limit,
    )
    own_rejected = await tx.find(
        collection=collection,
        where={"status": ProposalStatus.AFGEWEZEN.value, owner_column: actor_alias},
        order_by="created_at DESC",
        limit=limit,
    )
    rows = sorted([*open_rows, *own_rejected], key=lambda row: row["created_at"], reverse=True)
    return rows[:limit]


def can_decide(row: Mapping[str, Any], actor_alias: str, effective: Iterable[str]) -> bool:
    """Eligibility for a stored proposal; one without a proposed alias is left to the coordinators."""
    if row["proposed_alias"] is None:
        return actor_alias in set(effective)
    return proposal_rules.can_actor_decide_proposal(
        proposer_alias=row["proposer_alias"],
        proposed_alias=row["proposed_alias"],
        actor_alias=actor_alias,
        effective_coordinator_aliases=effective,
    )


async def _insert_proposal(tx: db_client.Transaction, *, task_id: str, proposer: str, proposed: str) -> OpenTask:
    row = await tx.insert(
        collection="open_tasks",
        data={
            "id": db_client.new_id(),
            "task_id": task_id,
            "proposer_alias": proposer,
            "proposed_alias": proposed,
            "status": ProposalStatus.OPEN,
            "created_at": datetime.now().isoformat(),
        },
    )
    return _to_open_task(row)


def _ensure_registrable(task_id: str, snapshot: Mapping[str, TaskNode]) -> None:
    if resolve_effective_coordination_type(task_id, snapshot) == CoordinationType.ORGANISEREN and not is_leaf(
        task_id, snapshot
    ):
        msg = "Under ORGANISEREN only tasks without subtasks can be registered for"
        raise ConflictError(msg)


@returns_result
async def register_for_task(*, actor_alias: str, task_id: str) -> OpenTask:
    """Register the actor for an available task (self-registration).

    The effective coordinators of the task decide the resulting proposal.

    Raises:
        NotFoundError: If the task or actor does not exist
        PermissionDeniedError: If the actor lacks OPEN permission
        ConflictError: Wrong status, task already ended, non-leaf under
            ORGANISEREN, actor already coordinates it, or a duplicate proposal
    """
    with span("proposal_service.register_for_task"):
        try:
            async with db_client.transaction() as tx:
                task = await task_service.load_task(tx, task_id)
                snapshot = await snapshot_service.load_family([task_id], tx=tx)
                task_service.require_permission(actor_alias, task_id, PermissionLevel.OPEN, snapshot)
                if task.status != TaskStatus.BESCHIKBAAR:
                    msg = "Only available tasks can be registered for"
                    raise ConflictError(msg, code=ErrorCode.ERR_INVALID_STATE_TRANSITION)
                end_time = task_service.parse_time(task.end_time)
                if end_time is not None and end_time <= datetime.now():
                    msg = "This task has already ended"
                    raise ConflictError(msg)
                _ensure_registrable(task_id, snapshot)

                effective = resolve_effective_coordinators(task_id, snapshot)
                if actor_alias in effective:
                    msg = "You already coordinate this task"
                    raise ConflictError(msg)
                await user_service.require_user(tx, actor_alias)

                proposal = await _insert_proposal(tx, task_id=task_id, proposer=actor_alias, proposed=actor_alias)
        except db_client.UniqueConstraintError as e:
            msg = "You already have an open proposal for this task"
            raise ConflictError(msg, code=ErrorCode.ERR_DUPLICATE_PROPOSAL) from e

        log_with_actor_context(logger, "info", "Registered for task", actor_alias=actor_alias, task_id=task_id)
        await audit_service.write_audit_log(
            actor_alias=actor_alias,
            action_type=constants.AUDIT_TASK_REGISTERED,
            entity_type=ENTITY_TYPE,
            entity_id=proposal.id,
            payload={"task_id": task_id},
        )
        await notification_service.notify_decision_required(
            decider_aliases=effective, actor_alias=actor_alias, task_title=task.title
        )
        return proposal


@returns_result
async def propose_task_to(*, actor_alias: str, task_id: str, proposed_alias: str) -> OpenTask:
    """Nominate another user as coordinator of a task; the nominee decides.

    Raises:
        InputValidationError: If the actor nominates themself
        NotFoundError: If the task or nominee does not exist
        PermissionDeniedError: If the actor lacks MANAGE permission
        ConflictError: Wrong status, inactive nominee or a duplicate proposal
    """
    with span("proposal_service.propose_task_to"):
        proposed_alias = proposed_alias.strip()
        if proposed_alias == actor_alias:
            msg = "Use registration to propose yourself"
            raise InputValidationError(msg)

        try:
            async with db_client.transaction() as tx:
                task = await task_service.load_task(tx, task_id)
                snapshot = await snapshot_service.load_access_path(task_id, tx=tx)
                task_service.require_permission(actor_alias, task_id, PermissionLevel.MANAGE, snapshot)
                if task.status not in (TaskStatus.BESCHIKBAAR, TaskStatus.TOEGEWEZEN):
                    msg = "Completed tasks cannot be proposed"
                    raise ConflictError(msg, code=ErrorCode.ERR_INVALID_STATE_TRANSITION)

                nominee = await user_service.require_user(tx, proposed_alias)
                if not nominee.is_active:
                    msg = f"User '{proposed_alias}' is not active"
                    raise ConflictError(msg)

                proposal = await _insert_proposal(tx, task_id=task_id, proposer=actor_alias, proposed=proposed_alias)
        except db_client.UniqueConstraintError as e:
            msg = "You already have an open proposal for this task"
            raise ConflictError(msg, code=ErrorCode.ERR_DUPLICATE_PROPOSAL) from e

        log_with_actor_context(
            logger, "info", "Proposed task", actor_alias=actor_alias, task_id=task_id, proposed_alias=proposed_alias
        )
        await audit_service.write_audit_log(
            actor_alias=actor_alias,
            action_type=constants.AUDIT_TASK_PROPOSED,
            entity_type=ENTITY_TYPE,
            entity_id=proposal.id,
            payload={"task_id": task_id, "proposed_alias": proposed_alias},
        )
        await notification_service.notify_decision_required(
            decider_aliases=[proposed_alias], actor_alias=actor_alias, task_title=task.title
        )
        return proposal


@returns_result
async def accept_open_task(*, actor_alias: str, open_task_id: str) -> AssignmentResult:
    """Accept a proposal; see `assignment_committer.commit_acceptance`."""
    with span("proposal_service.accept_open_task"):
        result = await assignment_committer.commit_acceptance(actor_alias=actor_alias, open_task_id=open_task_id)

        await audit_service.write_audit_log(
            actor_alias=actor_alias,
            action_type=constants.AUDIT_OPEN_TASK_ACCEPTED,
            entity_type=ENTITY_TYPE,
            entity_id=open_task_id,
            payload=result.model_dump(),
        )
        await notification_service.notify_proposal_decided(
            accepted=True,
            proposer_alias=result.proposer_alias,
            proposed_alias=result.accepted_alias,
            actor_alias=actor_alias,
            task_title=result.task_title,
        )
        return result


@returns_result
async def reject_open_task(*, actor_alias: str, open_task_id: str) -> OpenTask:
    """Reject an open proposal; it stays visible to its proposer until acknowledged."""
    with span("proposal_service.reject_open_task"):
        async with db_client.transaction() as tx:
            row = await assignment_committer.load_open_task(tx, open_task_id)
            if row["status"] != ProposalStatus.OPEN:
                msg = "Only open proposals can be rejected"
                raise ConflictError(msg, code=ErrorCode.ERR_INVALID_STATE_TRANSITION)

            task = await task_service.load_task(tx, row["task_id"])
            snapshot = await snapshot_service.load_access_path(task.id, tx=tx)
            if not can_decide(row, actor_alias, resolve_effective_coordinators(task.id, snapshot)):
                msg = f"{actor_alias} may not decide proposal {open_task_id}"
                raise PermissionDeniedError(msg)

            changed = await tx.update_where(
                collection="open_tasks",
                where={"id": open_task_id, "status": ProposalStatus.OPEN.value},
                data={"status": ProposalStatus.AFGEWEZEN.value},
            )
            if changed == 0:
                msg = f"Proposal {open_task_id} changed concurrently"
                raise ConflictError(msg, code=ErrorCode.ERR_CONCURRENT_MODIFICATION)
            rejected = _to_open_task({**row, "status": ProposalStatus.AFGEWEZEN.value})

        await audit_service.write_audit_log(
            actor_alias=actor_alias,
            action_type=constants.AUDIT_OPEN_TASK_REJECTED,
            entity_type=ENTITY_TYPE,
            entity_id=open_task_id,
            payload={"task_id": rejected.task_id, "proposed_alias": rejected.proposed_alias},
        )
        await notification_service.notify_proposal_decided(
            accepted=False,
            proposer_alias=rejected.proposer_alias,
            proposed_alias=rejected.proposed_alias,
            actor_alias=actor_alias,
            task_title=task.title,
        )
        return rejected


@returns_result
async def acknowledge_open_task(*, actor_alias: str, open_task_id: str) -> OpenTask:
    """Read-and-delete a rejected proposal. Only its original proposer may do this."""
    with span("proposal_service.acknowledge_open_task"):
        async with db_client.transaction() as tx:
            row = await assignment_committer.load_open_task(tx, open_task_id)
            if row["status"] != ProposalStatus.AFGEWEZEN:
                msg = "Only rejected proposals can be acknowledged"
                raise ConflictError(msg, code=ErrorCode.ERR_INVALID_STATE_TRANSITION)
            if row["proposer_alias"] != actor_alias:
                msg = "Only the original proposer can acknowledge a rejection"
                raise PermissionDeniedError(msg)
            await tx.delete(collection="open_tasks", record_id=open_task_id)

        acknowledged = _to_open_task(row)
        await audit_service.write_audit_log(
            actor_alias=actor_alias,
            action_type=constants.AUDIT_OPEN_TASK_ACKNOWLEDGED,
            entity_type=ENTITY_TYPE,
            entity_id=open_task_id,
            payload={"task_id": acknowledged.task_id},
        )
        return acknowledged


@returns_result
async def list_relevant_proposals(*, actor_alias: str) -> list[ProposalView]:
    """Newest proposals the actor can decide, made, is named in, or coordinates."""
    with span("proposal_service.list_relevant_proposals"):
        async with db_client.transaction() as tx:
            rows = await find_listable_proposals(
                tx, collection="open_tasks", owner_column="proposer_alias", actor_alias=actor_alias
            )
            tasks = await tx.find(collection="tasks", where={"id": sorted({row["task_id"] for row in rows})})
            snapshot = await snapshot_service.load_task_projection(snapshot_service.ALL, tx=tx)

        titles = {task["id"]: task["title"] for task in tasks}
        views = []
        for row in rows:
            status = ProposalStatus(row["status"])
            effective = resolve_effective_coordinators(row["task_id"], snapshot)
            decidable = status == ProposalStatus.OPEN and can_decide(row, actor_alias, effective)
            if not proposal_rules.is_proposal_relevant(
                status=status,
                proposer_alias=row["proposer_alias"],
                proposed_alias=row["proposed_alias"],
                actor_alias=actor_alias,
                can_decide=decidable,
                effective_coordinator_aliases=effective,
            ):
                continue
            views.append(
                ProposalView(
                    **_to_open_task(row).model_dump(),
                    task_title=titles.get(row["task_id"], ""),
                    can_decide=decidable,
                    can_acknowledge=status == ProposalStatus.AFGEWEZEN and row["proposer_alias"] == actor_alias,
                )
            )
        return views
