"""Pydantic models for service layer return types.

These models provide type safety at service boundaries, converting database
dictionaries into typed objects with validation.
"""

from pydantic import BaseModel

from taakbeheer.domain.proposal import ProposalStatus
from taakbeheer.domain.task import CoordinationType, TaskStatus


class TransferPreview(BaseModel):
    """Outcome of evaluating a points transfer between two parents."""

    transferable: bool
    source_parent_points_after: int
    target_parent_points_after: int


class PointsAllocation(BaseModel):
    """Outcome of carving a subtask budget out of a parent's headroom."""

    available_points_after: int
    assigned_points: int


class TaskView(BaseModel):
    """Task as returned to callers, annotated with derived coordinator facts."""

    id: str
    title: str
    description: str = ""
    team_name: str | None = None
    parent_id: str | None = None
    coordination_type: CoordinationType | None = None
    effective_coordination_type: CoordinationType
    own_coordinator_aliases: list[str]
    effective_coordinator_aliases: list[str]
    primary_coordinator_alias: str | None = None
    can_manage: bool = False
    points: int
    status: TaskStatus
    date: str | None = None
    start_time: str | None = None
    end_time: str | None = None
    location: str | None = None
    created_at: str


class AssignmentResult(BaseModel):
    """Post-state of an accepted task delegation proposal."""

    open_task_id: str
    task_id: str
    task_title: str
    proposer_alias: str
    accepted_alias: str
    previous_own_coordinator_aliases: list[str]
    own_coordinator_aliases: list[str]
    status: TaskStatus
    promoted_to_coordinator: bool = False


class MoveResult(BaseModel):
    """Post-state of a task move."""

    task_id: str
    source_parent_id: str
    target_parent_id: str
    moved_points: int
    source_parent_points_after: int
    target_parent_points_after: int


class ReleaseResult(BaseModel):
    """Post-state of releasing a task."""

    task_id: str
    own_coordinator_aliases: list[str]
    effective_coordinator_aliases: list[str]
    status: TaskStatus


class DeleteResult(BaseModel):
    """Summary of a deleted subtree."""

    task_id: str
    deleted_task_ids: list[str]
    deleted_open_task_count: int


class ProposalView(BaseModel):
    """Task delegation proposal annotated for the requesting actor."""

    id: str
    task_id: str
    task_title: str
    proposer_alias: str
    proposed_alias: str | None = None
    status: ProposalStatus
    created_at: str
    can_decide: bool = False
    can_acknowledge: bool = False


class AliasChangeResult(BaseModel):
    """Outcome of an accepted alias change."""

    proposal_id: str
    old_alias: str
    new_alias: str


class NotificationResult(BaseModel):
    """Result of writing a notification event to the outbox."""

    user_alias: str
    success: bool
    error: str | None = None


class CopyResult(BaseModel):
    """Summary of a copied subtree."""

    source_task_id: str
    target_parent_id: str
    new_root_id: str
    created_task_ids: list[str]
    allocated_points: int


class TaskTemplate(BaseModel):
    """Stored task template."""

    id: str
    title: str
    description: str
    parent_template_id: str | None = None
    default_points: int | None = None
    created_at: str


class TemplateApplyResult(BaseModel):
    """Tasks created by applying a template."""

    template_id: str
    coordinator_task_id: str
    subtask_ids: list[str]
    points_zeroed: bool
