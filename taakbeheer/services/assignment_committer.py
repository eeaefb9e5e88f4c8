"""Atomic acceptance of a task delegation proposal."""

import logging
from typing import Any

from taakbeheer.core import db_client
from taakbeheer.core.errors import ConflictError, ErrorCode, NotFoundError, PermissionDeniedError
from taakbeheer.core.logging import span
from taakbeheer.domain.proposal import ProposalStatus
from taakbeheer.domain.task import TaskStatus
from taakbeheer.models.service_models import AssignmentResult
from taakbeheer.services import proposal_rules, snapshot_service, task_service, task_state_machine, user_service
from taakbeheer.services.authorization import resolve_effective_coordinators


logger = logging.getLogger(__name__)


async def load_open_task(tx: db_client.Transaction, open_task_id: str) -> dict[str, Any]:
    """Fetch a proposal row inside `tx`, raising NotFoundError if absent."""
    row = await tx.find_first(collection="open_tasks", where={"id": open_task_id})
    if row is None:
        msg = f"Proposal {open_task_id} not found"
        raise NotFoundError(msg, code=ErrorCode.ERR_PROPOSAL_NOT_FOUND)
    return row


async def commit_acceptance(*, actor_alias: str, open_task_id: str) -> AssignmentResult:
    """Accept an open proposal in one transaction.

    Re-validates everything against state read inside the transaction:
    the proposal must still be OPEN and the actor must still be eligible to
    decide it. The proposed alias joins the task's own coordinators, the task
    becomes TOEGEWEZEN, a LID nominee is promoted to COORDINATOR and the
    proposal row is deleted. Any failed check rolls the whole unit back.

    Raises:
        NotFoundError: If the proposal, task or nominee does not exist
        PermissionDeniedError: If the actor may not decide the proposal
        ConflictError: If the proposal or task is no longer in an acceptable state
    """
    with span("assignment_committer.commit_acceptance"):
        async with db_client.transaction() as tx:
            row = await load_open_task(tx, open_task_id)
            if row["status"] != ProposalStatus.OPEN:
                msg = "Only open proposals can be accepted"
                raise ConflictError(msg, code=ErrorCode.ERR_INVALID_STATE_TRANSITION)
            proposed_alias = row["proposed_alias"]
            if proposed_alias is None:
                msg = "This proposal has no proposed coordinator yet"
                raise ConflictError(msg)

            task = await task_service.load_task(tx, row["task_id"])
            snapshot = await snapshot_service.load_access_path(task.id, tx=tx)
            effective = resolve_effective_coordinators(task.id, snapshot)
            if not proposal_rules.can_actor_decide_proposal(
                proposer_alias=row["proposer_alias"],
                proposed_alias=proposed_alias,
                actor_alias=actor_alias,
                effective_coordinator_aliases=effective,
            ):
                msg = f"{actor_alias} may not decide proposal {open_task_id}"
                raise PermissionDeniedError(msg)
            if task.status == TaskStatus.GEREED:
                msg = "A completed task cannot be assigned"
                raise ConflictError(msg, code=ErrorCode.ERR_INVALID_STATE_TRANSITION)

            nominee = await user_service.require_user(tx, proposed_alias)
            if not nominee.is_active:
                msg = f"User '{proposed_alias}' is not active"
                raise ConflictError(msg)

            own_after = proposal_rules.coordinator_aliases_after_accept(
                proposed_alias=proposed_alias, current_own_aliases=task.own_coordinator_aliases
            )
            await task_service.replace_own_coordinators(tx, task.id, own_after)
            if task.status == TaskStatus.BESCHIKBAAR:
                await task_state_machine.transition_status(
                    tx, task_id=task.id, current=task.status, target=TaskStatus.TOEGEWEZEN
                )
            promoted = await user_service.promote_to_coordinator(tx, proposed_alias)

            deleted = await tx.delete_where(
                collection="open_tasks", where={"id": open_task_id, "status": ProposalStatus.OPEN.value}
            )
            if deleted == 0:
                msg = f"Proposal {open_task_id} changed concurrently"
                raise ConflictError(msg, code=ErrorCode.ERR_CONCURRENT_MODIFICATION)

        logger.info(
            "Accepted proposal",
            extra={"open_task_id": open_task_id, "task_id": task.id, "accepted_alias": proposed_alias},
        )
        return AssignmentResult(
            open_task_id=open_task_id,
            task_id=task.id,
            task_title=task.title,
            proposer_alias=row["proposer_alias"],
            accepted_alias=proposed_alias,
            previous_own_coordinator_aliases=task.own_coordinator_aliases,
            own_coordinator_aliases=own_after,
            status=TaskStatus.TOEGEWEZEN,
            promoted_to_coordinator=promoted,
        )
