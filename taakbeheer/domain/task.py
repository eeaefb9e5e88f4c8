"""Task domain models and enums."""

from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field


class TaskStatus(StrEnum):
    """Task lifecycle state."""

    BESCHIKBAAR = "BESCHIKBAAR"  # Unclaimed
    TOEGEWEZEN = "TOEGEWEZEN"  # Claimed or delegated
    GEREED = "GEREED"  # Completed


class CoordinationType(StrEnum):
    """How a sub-tree is coordinated."""

    DELEGEREN = "DELEGEREN"  # Delegate and subdivide
    ORGANISEREN = "ORGANISEREN"  # Leaf-only self-organised


class Task(BaseModel):
    """Task data transfer object."""

    id: str = Field(..., description="Unique task ID")
    title: str = Field(..., description="Task title")
    description: str = Field(default="", description="Detailed task description")
    team_name: str | None = Field(default=None, description="Team scope; None means team-agnostic")
    parent_id: str | None = Field(default=None, description="Parent task ID; None only for the root")
    coordination_type: CoordinationType | None = Field(
        default=None, description="Explicit coordination type; None inherits from the ancestors"
    )
    own_coordinator_aliases: list[str] = Field(
        default_factory=list, description="Coordinators explicitly assigned to this node"
    )
    points: int = Field(default=0, ge=0, description="Points budget carved out of the parent's pool")
    status: TaskStatus = Field(default=TaskStatus.BESCHIKBAAR, description="Current lifecycle state")
    date: str | None = Field(default=None, description="Day the task takes place (ISO format)")
    start_time: str | None = Field(default=None, description="Start time (ISO format)")
    end_time: str | None = Field(default=None, description="End time (ISO format)")
    location: str | None = Field(default=None, description="Where the task takes place")
    created_at: str = Field(..., description="Creation timestamp (ISO format)")


class TaskNode(BaseModel):
    """Minimal immutable projection of a task used for authorization and ledger decisions."""

    model_config = ConfigDict(frozen=True)

    id: str
    parent_id: str | None = None
    coordination_type: CoordinationType | None = None
    own_coordinator_aliases: frozenset[str] = frozenset()
    team_name: str | None = None
    points: int = 0
