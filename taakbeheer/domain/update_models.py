"""Update models for task mutations."""

from datetime import datetime

from pydantic import BaseModel, Field, field_validator

from taakbeheer.domain.create_models import MAX_TEAM_NAME_LENGTH
from taakbeheer.domain.task import CoordinationType


class TaskUpdate(BaseModel):
    """Partial task update; only fields that were explicitly set are applied.

    Explicitly setting a nullable field to None clears it; a cleared
    description becomes the empty string.
    """

    title: str | None = Field(default=None, min_length=2)
    description: str | None = None
    team_name: str | None = Field(default=None, max_length=MAX_TEAM_NAME_LENGTH)
    coordination_type: CoordinationType | None = None
    own_coordinator_aliases: list[str] | None = None
    points: int | None = Field(default=None, ge=0)
    date: datetime | None = None
    start_time: datetime | None = None
    end_time: datetime | None = None
    location: str | None = None

    @field_validator("team_name", "location")
    @classmethod
    def blank_to_none(cls, v: str | None) -> str | None:
        if v is None:
            return None
        v = v.strip()
        return v or None

    @field_validator("description")
    @classmethod
    def none_to_empty(cls, v: str | None) -> str:
        return v if v is not None else ""

    def changes(self) -> dict[str, object]:
        """Return the explicitly provided fields as column -> value."""
        return {name: getattr(self, name) for name in self.model_fields_set}
