"""User domain models and enums."""

from enum import StrEnum

from pydantic import BaseModel, Field


class UserRole(StrEnum):
    """User role in the association."""

    LID = "LID"
    COORDINATOR = "COORDINATOR"
    BESTUUR = "BESTUUR"


class User(BaseModel):
    """User data transfer object."""

    alias: str = Field(..., description="Unique actor identifier")
    email: str | None = Field(default=None, description="Email address used for login")
    role: UserRole = Field(default=UserRole.LID, description="Role in the association")
    is_active: bool = Field(default=True, description="Whether the account may take part in governance")
    created_at: str = Field(..., description="Creation timestamp (ISO format)")
