"""Alias change proposals: a user asks for a new alias, the board decides."""

import logging
from collections.abc import Mapping
from datetime import datetime
from typing import Any

from pydantic import ValidationError

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
from taakbeheer.domain.create_models import AliasChangeRequest
from taakbeheer.domain.proposal import AliasChangeProposal, ProposalStatus
from taakbeheer.models.service_models import AliasChangeResult
from taakbeheer.services import audit_service, notification_service, proposal_rules, proposal_service, user_service


logger = logging.getLogger(__name__)

ENTITY_TYPE = "AliasChangeProposal"


def _to_proposal(row: Mapping[str, Any]) -> AliasChangeProposal:
    return AliasChangeProposal(
        id=row["id"],
        requester_alias=row["requester_alias"],
        current_alias=row["current_alias"],
        requested_alias=row["requested_alias"],
        status=ProposalStatus(row["status"]),
        created_at=row["created_at"],
    )


async def _load_proposal(tx: db_client.Transaction, proposal_id: str) -> dict[str, Any]:
    row = await tx.find_first(collection="alias_change_proposals", where={"id": proposal_id})
    if row is None:
        msg = f"Alias change proposal {proposal_id} not found"
        raise NotFoundError(msg, code=ErrorCode.ERR_PROPOSAL_NOT_FOUND)
    return row


async def _require_decider(tx: db_client.Transaction, actor_alias: str, row: Mapping[str, Any]) -> None:
    actor = await user_service.require_user(tx, actor_alias)
    if not actor.is_active or not proposal_rules.can_decide_alias_change(
        actor_alias=actor_alias, actor_role=actor.role, requester_alias=row["requester_alias"]
    ):
        msg = "Only board members other than the requester can decide alias changes"
        raise PermissionDeniedError(msg)


@returns_result
async def request_alias_change(*, actor_alias: str, requested_alias: str) -> AliasChangeProposal:
    """Ask the board to rename the actor.

    Raises:
        InputValidationError: If the alias is malformed or equals the current one
        ConflictError: If the alias is taken, already requested, or the actor
            already has an open request
    """
    with span("alias_change_service.request_alias_change"):
        try:
            request = AliasChangeRequest(requested_alias=requested_alias)
        except ValidationError as e:
            msg = "Alias must be 3-32 characters and may only contain letters, digits, _ and -"
            raise InputValidationError(msg) from e
        if request.requested_alias == actor_alias:
            msg = "The new alias must differ from your current alias"
            raise InputValidationError(msg)

        try:
            async with db_client.transaction() as tx:
                await user_service.require_user(tx, actor_alias)
                if await user_service.find_user(tx, request.requested_alias) is not None:
                    msg = "This alias is already in use"
                    raise ConflictError(msg, code=ErrorCode.ERR_ALIAS_TAKEN)

                open_requests = await tx.find(
                    collection="alias_change_proposals", where={"status": ProposalStatus.OPEN.value}
                )
                if any(row["requester_alias"] == actor_alias for row in open_requests):
                    msg = "You already have an open alias change proposal"
                    raise ConflictError(msg, code=ErrorCode.ERR_DUPLICATE_PROPOSAL)
                if any(row["requested_alias"] == request.requested_alias for row in open_requests):
                    msg = "This alias has already been requested in an open proposal"
                    raise ConflictError(msg, code=ErrorCode.ERR_ALIAS_TAKEN)

                row = await tx.insert(
                    collection="alias_change_proposals",
                    data={
                        "id": db_client.new_id(),
                        "requester_alias": actor_alias,
                        "current_alias": actor_alias,
                        "requested_alias": request.requested_alias,
                        "status": ProposalStatus.OPEN,
                        "created_at": datetime.now().isoformat(),
                    },
                )
                bestuur_aliases = await user_service.list_bestuur_aliases(tx)
        except db_client.UniqueConstraintError as e:
            msg = "An open alias change proposal already exists for you or for this alias"
            raise ConflictError(msg, code=ErrorCode.ERR_DUPLICATE_PROPOSAL) from e

        proposal = _to_proposal(row)
        log_with_actor_context(
            logger, "info", "Requested alias change", actor_alias=actor_alias, requested_alias=proposal.requested_alias
        )
        await audit_service.write_audit_log(
            actor_alias=actor_alias,
            action_type=constants.AUDIT_ALIAS_CHANGE_PROPOSED,
            entity_type=ENTITY_TYPE,
            entity_id=proposal.id,
            payload={"current_alias": actor_alias, "requested_alias": proposal.requested_alias},
        )
        await notification_service.notify_alias_change_requested(
            bestuur_aliases=bestuur_aliases, requester_alias=actor_alias, requested_alias=proposal.requested_alias
        )
        return proposal


@returns_result
async def accept_alias_change(*, actor_alias: str, proposal_id: str) -> AliasChangeResult:
    """Rename the requester across the registry and consume the proposal.

    Coordinator links and proposals follow the rename through ON UPDATE CASCADE.

    Raises:
        PermissionDeniedError: If the actor is not a board member or is the requester
        ConflictError: If the proposal is not open or the alias was claimed meanwhile
    """
    with span("alias_change_service.accept_alias_change"):
        try:
            async with db_client.transaction() as tx:
                row = await _load_proposal(tx, proposal_id)
                if row["status"] != ProposalStatus.OPEN:
                    msg = "Only open proposals can be accepted"
                    raise ConflictError(msg, code=ErrorCode.ERR_INVALID_STATE_TRANSITION)
                await _require_decider(tx, actor_alias, row)

                old_alias = row["requester_alias"]
                new_alias = row["requested_alias"]
                if await user_service.find_user(tx, new_alias) is not None:
                    msg = "This alias was claimed in the meantime"
                    raise ConflictError(msg, code=ErrorCode.ERR_ALIAS_TAKEN)

                await tx.delete_where(
                    collection="alias_change_proposals",
                    where={"id": proposal_id, "status": ProposalStatus.OPEN.value},
                )
                await tx.update(collection="users", record_id=old_alias, data={"alias": new_alias}, key="alias")
        except db_client.UniqueConstraintError as e:
            msg = "This alias was claimed in the meantime"
            raise ConflictError(msg, code=ErrorCode.ERR_ALIAS_TAKEN) from e

        log_with_actor_context(
            logger, "info", "Accepted alias change", actor_alias=actor_alias, old_alias=old_alias, new_alias=new_alias
        )
        await audit_service.write_audit_log(
            actor_alias=actor_alias,
            action_type=constants.AUDIT_ALIAS_CHANGE_ACCEPTED,
            entity_type=ENTITY_TYPE,
            entity_id=proposal_id,
            payload={"old_alias": old_alias, "new_alias": new_alias},
        )
        return AliasChangeResult(proposal_id=proposal_id, old_alias=old_alias, new_alias=new_alias)


@returns_result
async def reject_alias_change(*, actor_alias: str, proposal_id: str) -> AliasChangeProposal:
    with span("alias_change_service.reject_alias_change"):
        async with db_client.transaction() as tx:
            row = await _load_proposal(tx, proposal_id)
            if row["status"] != ProposalStatus.OPEN:
                msg = "Only open proposals can be rejected"
                raise ConflictError(msg, code=ErrorCode.ERR_INVALID_STATE_TRANSITION)
            await _require_decider(tx, actor_alias, row)
            await tx.update(
                collection="alias_change_proposals",
                record_id=proposal_id,
                data={"status": ProposalStatus.AFGEWEZEN.value},
            )

        proposal = _to_proposal({**row, "status": ProposalStatus.AFGEWEZEN.value})
        await audit_service.write_audit_log(
            actor_alias=actor_alias,
            action_type=constants.AUDIT_ALIAS_CHANGE_REJECTED,
            entity_type=ENTITY_TYPE,
            entity_id=proposal_id,
            payload={"requested_alias": proposal.requested_alias},
        )
        return proposal


@returns_result
async def acknowledge_alias_change(*, actor_alias: str, proposal_id: str) -> AliasChangeProposal:
    """Delete a rejected proposal; only its requester may do this."""
    with span("alias_change_service.acknowledge_alias_change"):
        async with db_client.transaction() as tx:
            row = await _load_proposal(tx, proposal_id)
            if row["status"] != ProposalStatus.AFGEWEZEN:
                msg = "Only rejected proposals can be acknowledged"
                raise ConflictError(msg, code=ErrorCode.ERR_INVALID_STATE_TRANSITION)
            if row["requester_alias"] != actor_alias:
                msg = "Only the requester can acknowledge a rejection"
                raise PermissionDeniedError(msg)
            await tx.delete(collection="alias_change_proposals", record_id=proposal_id)

        await audit_service.write_audit_log(
            actor_alias=actor_alias,
            action_type=constants.AUDIT_ALIAS_CHANGE_ACKNOWLEDGED,
            entity_type=ENTITY_TYPE,
            entity_id=proposal_id,
        )
        return _to_proposal(row)


@returns_result
async def list_alias_change_proposals(*, actor_alias: str) -> list[AliasChangeProposal]:
    """Open proposals for board members; everyone also sees their own."""
    with span("alias_change_service.list_alias_change_proposals"):
        async with db_client.transaction() as tx:
            actor = await user_service.require_user(tx, actor_alias)
            rows = await proposal_service.find_listable_proposals(
                tx, collection="alias_change_proposals", owner_column="requester_alias", actor_alias=actor_alias
            )

        visible = []
        for row in rows:
            is_decider = row["status"] == ProposalStatus.OPEN and proposal_rules.can_decide_alias_change(
                actor_alias=actor_alias, actor_role=actor.role, requester_alias=row["requester_alias"]
            )
            if is_decider or row["requester_alias"] == actor_alias:
                visible.append(_to_proposal(row))
        return visible
