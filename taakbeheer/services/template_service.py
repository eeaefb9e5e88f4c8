"""Task templates: reusable task outlines that can be rolled out for a team.

Applying a template creates a coaching task for the team under a parent, with
one subtask per child template. The coaching task's points are carved out of
the parent's headroom; when they do not fit, or the child defaults exceed
them, the whole created subtree gets zero points instead.
"""

import logging
from datetime import datetime, timedelta
from typing import Any

from taakbeheer.core import db_client
from taakbeheer.core.config import constants
from taakbeheer.core.errors import ConflictError, ErrorCode, NotFoundError, PermissionDeniedError, returns_result
from taakbeheer.core.logging import log_with_actor_context, span
from taakbeheer.domain.create_models import TemplateApply, TemplateCreate
from taakbeheer.domain.task import TaskStatus
from taakbeheer.models.service_models import TaskTemplate, TemplateApplyResult
from taakbeheer.services import audit_service, points_ledger, snapshot_service
from taakbeheer.services.authorization import PermissionLevel, has_permission


logger = logging.getLogger(__name__)

ENTITY_TYPE = "TaskTemplate"


async def _require_template(tx: db_client.Transaction, template_id: str) -> dict[str, Any]:
    row = await tx.find_first(collection="task_templates", where={"id": template_id})
    if row is None:
        msg = f"Template {template_id} not found"
        raise NotFoundError(msg, code=ErrorCode.ERR_TEMPLATE_NOT_FOUND)
    return row


async def _find_root(tx: db_client.Transaction) -> dict[str, Any]:
    root = await tx.find_first(collection="tasks", where={"parent_id": None})
    if root is None:
        msg = "The task tree has no root yet"
        raise ConflictError(msg)
    return root


@returns_result
async def create_template(*, actor_alias: str, data: TemplateCreate) -> TaskTemplate:
    """Store a template; only an own coordinator of the root may manage templates.

    Raises:
        PermissionDeniedError: If the actor does not coordinate the root
        NotFoundError: If the parent template does not exist
        ConflictError: If there is no root task
    """
    with span("template_service.create_template"):
        async with db_client.transaction() as tx:
            root = await _find_root(tx)
            root_aliases = await snapshot_service.load_coordinator_aliases(tx, [root["id"]])
            if actor_alias not in root_aliases.get(root["id"], []):
                msg = "Only a coordinator of the root task may manage templates"
                raise PermissionDeniedError(msg)
            if data.parent_template_id is not None:
                await _require_template(tx, data.parent_template_id)

            row = await tx.insert(
                collection="task_templates",
                data={
                    "id": db_client.new_id(),
                    **data.model_dump(),
                    "created_at": datetime.now().isoformat(),
                },
            )

        template = TaskTemplate(**row)
        log_with_actor_context(logger, "info", "Created template", actor_alias=actor_alias, template_id=template.id)
        await audit_service.write_audit_log(
            actor_alias=actor_alias,
            action_type=constants.AUDIT_TEMPLATE_CREATED,
            entity_type=ENTITY_TYPE,
            entity_id=template.id,
        )
        return template


@returns_result
async def list_templates() -> list[TaskTemplate]:
    """All templates, top-level ones first, each group ordered by title."""
    with span("template_service.list_templates"):
        records = await db_client.list_records(collection="task_templates", order_by="title")
        templates = [TaskTemplate(**record) for record in records]
        return sorted(templates, key=lambda t: t.parent_template_id is not None)


@returns_result
async def apply_template(*, actor_alias: str, template_id: str, data: TemplateApply) -> TemplateApplyResult:
    """Create a coaching task for `data.team_name` with one subtask per child template.

    The coaching task is assigned to the actor. It and its subtasks start at
    `data.date` (now when omitted) and last a fixed number of hours.

    Raises:
        NotFoundError: If the template or parent task does not exist
        PermissionDeniedError: If the actor cannot manage the parent task
        ConflictError: If no parent is given and there is no root task
    """
    with span("template_service.apply_template"):
        async with db_client.transaction() as tx:
            template = await _require_template(tx, template_id)
            parent_id = data.parent_task_id or (await _find_root(tx))["id"]

            snapshot = await snapshot_service.load_family([parent_id], tx=tx)
            if parent_id not in snapshot:
                msg = f"Parent task {parent_id} not found"
                raise NotFoundError(msg)
            if not has_permission(actor_alias, parent_id, PermissionLevel.MANAGE, snapshot):
                msg = f"{actor_alias} may not apply templates under task {parent_id}"
                raise PermissionDeniedError(msg)

            children = await tx.find(
                collection="task_templates", where={"parent_template_id": template_id}, order_by="title"
            )
            child_points = [
                constants.TEMPLATE_DEFAULT_SUBTASK_POINTS if child["default_points"] is None else child["default_points"]
                for child in children
            ]
            requested = constants.TEMPLATE_COORDINATOR_POINTS
            headroom = points_ledger.parent_headroom(parent_id, snapshot)
            points_zeroed = requested > headroom or sum(child_points) > requested
            allocation = points_ledger.allocate_points_from_parent(
                available_points=headroom, requested_points=0 if points_zeroed else requested
            )

            start = data.date or datetime.now()
            end = start + timedelta(hours=constants.TEMPLATE_TASK_DURATION_HOURS)
            created_at = datetime.now().isoformat()
            common = {
                "team_name": data.team_name,
                "coordination_type": None,
                "date": start,
                "start_time": start,
                "end_time": end,
                "location": None,
                "created_at": created_at,
            }

            coordinator_task = await tx.insert(
                collection="tasks",
                data={
                    **common,
                    "id": db_client.new_id(),
                    "title": f"Coachen {data.team_name}",
                    "description": f"Coordinatietaak voor team {data.team_name}",
                    "parent_id": parent_id,
                    "points": allocation.assigned_points,
                    "status": TaskStatus.TOEGEWEZEN,
                },
            )
            await tx.insert(
                collection="task_coordinators",
                data={"task_id": coordinator_task["id"], "user_alias": actor_alias, "created_at": created_at},
                key="task_id",
            )

            subtask_ids = []
            for child, points in zip(children, child_points, strict=True):
                row = await tx.insert(
                    collection="tasks",
                    data={
                        **common,
                        "id": db_client.new_id(),
                        "title": child["title"],
                        "description": child["description"],
                        "parent_id": coordinator_task["id"],
                        "points": 0 if points_zeroed else points,
                        "status": TaskStatus.BESCHIKBAAR,
                    },
                )
                subtask_ids.append(row["id"])

        result = TemplateApplyResult(
            template_id=template["id"],
            coordinator_task_id=coordinator_task["id"],
            subtask_ids=subtask_ids,
            points_zeroed=points_zeroed,
        )
        log_with_actor_context(
            logger,
            "info",
            "Applied template",
            actor_alias=actor_alias,
            template_id=template_id,
            team_name=data.team_name,
            points_zeroed=points_zeroed,
        )
        await audit_service.write_audit_log(
            actor_alias=actor_alias,
            action_type=constants.AUDIT_TEMPLATE_APPLIED,
            entity_type=ENTITY_TYPE,
            entity_id=template_id,
            payload={
                "team_name": data.team_name,
                "parent_task_id": parent_id,
                **result.model_dump(exclude={"template_id"}),
            },
        )
        return result
