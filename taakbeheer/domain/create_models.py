"""Pydantic models for creating records."""

import re
from datetime import datetime

from pydantic import BaseModel, Field, field_validator, model_validator

from taakbeheer.core.config import settings
from taakbeheer.domain.task import CoordinationType
from taakbeheer.domain.user import UserRole


MAX_TEAM_NAME_LENGTH = 100


class TaskCreate(BaseModel):
    """Payload for creating a task, either under a parent or as a new root."""

    title: str = Field(..., min_length=2, description="Task title")
    description: str = Field(default="", description="Detailed task description")
    team_name: str | None = Field(
        default=None, max_length=MAX_TEAM_NAME_LENGTH, description="Team scope; inherits the parent's when None"
    )
    parent_id: str | None = Field(default=None, description="Parent task ID")
    coordination_type: CoordinationType | None = Field(default=None, description="Explicit coordination type")
    points: int = Field(default=0, ge=0, description="Requested budget")
    date: datetime | None = Field(default=None, description="Day the task takes place")
    start_time: datetime | None = Field(default=None, description="Start time")
    end_time: datetime | None = Field(default=None, description="End time")
    location: str | None = Field(default=None, description="Where the task takes place")

    @field_validator("title", "description")
    @classmethod
    def strip_text(cls, v: str) -> str:
        return v.strip()

    @model_validator(mode="after")
    def validate_time_order(self) -> "TaskCreate":
        """Start must not lie after end when both are given."""
        if self.start_time and self.end_time and self.start_time > self.end_time:
            msg = "start_time must not be after end_time"
            raise ValueError(msg)
        return self


class UserCreate(BaseModel):
    """Payload for registering a user in the actor registry."""

    alias: str = Field(..., min_length=1, description="Unique actor identifier")
    email: str | None = Field(default=None, description="Email address")
    role: UserRole = Field(default=UserRole.LID, description="Role in the association")
    is_active: bool = Field(default=True, description="Whether the account is active")


class AliasChangeRequest(BaseModel):
    """Requested new alias."""

    requested_alias: str = Field(..., description="Alias the requester wants")

    @field_validator("requested_alias")
    @classmethod
    def validate_alias_pattern(cls, v: str) -> str:
        """Alias must be 3-32 letters, digits, underscores or hyphens."""
        v = v.strip()
        if not re.match(settings.alias_pattern, v):
            msg = "Alias must be 3-32 characters and may only contain letters, digits, _ and -"
            raise ValueError(msg)
        return v


class TaskCopyOverrides(BaseModel):
    """Fields replaced on the copied root; fields left as None keep the source's values."""

    title: str | None = Field(default=None, min_length=2)
    description: str | None = None
    team_name: str | None = Field(default=None, max_length=MAX_TEAM_NAME_LENGTH)
    points: int | None = Field(default=None, ge=0)
    date: datetime | None = None
    start_time: datetime | None = None
    end_time: datetime | None = None
    location: str | None = None

    @model_validator(mode="after")
    def validate_time_order(self) -> "TaskCopyOverrides":
        if self.start_time and self.end_time and self.start_time > self.end_time:
            msg = "start_time must not be after end_time"
            raise ValueError(msg)
        return self


class TemplateCreate(BaseModel):
    """Payload for a reusable task template; children point at their parent template."""

    title: str = Field(..., min_length=2, description="Template title")
    description: str = Field(..., min_length=2, description="Description copied onto created tasks")
    parent_template_id: str | None = Field(default=None, description="Parent template ID")
    default_points: int | None = Field(default=None, ge=0, description="Points for tasks created from this template")

    @field_validator("title", "description")
    @classmethod
    def strip_text(cls, v: str) -> str:
        return v.strip()


class TemplateApply(BaseModel):
    """Team and placement for applying a template."""

    team_name: str = Field(..., min_length=2, max_length=MAX_TEAM_NAME_LENGTH, description="Team the tasks are for")
    parent_task_id: str | None = Field(default=None, description="Parent task; the root when None")
    date: datetime | None = Field(default=None, description="Day and start of the created tasks; now when None")

    @field_validator("team_name")
    @classmethod
    def strip_team_name(cls, v: str) -> str:
        return v.strip()
