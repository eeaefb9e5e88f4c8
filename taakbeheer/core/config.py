"""Configuration management for taakbeheer."""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="TAAKBEHEER_",
        case_sensitive=False,
        extra="ignore",
    )

    # Store Configuration
    sqlite_db_path: str = Field(default="data/taakbeheer.db", description="SQLite database file path")
    db_timeout_seconds: float = Field(
        default=5.0, description="Timeout applied to snapshot loads and transactional commits"
    )

    # Pydantic Logfire Configuration (optional)
    logfire_token: str | None = Field(default=None, description="Pydantic Logfire token for observability")
    environment: str = Field(default="production", description="Deployment environment reported to Logfire")

    # Governance Configuration
    bestuur_role_alias: str = Field(
        default="Bestuur", description="Placeholder alias that owns the root before board members sign in"
    )
    alias_pattern: str = Field(
        default=r"^[a-zA-Z0-9_-]{3,32}$", description="Pattern a requested alias must match"
    )

    # Notification Configuration
    enable_notifications: bool = Field(default=True, description="Enable/disable notification outbox writes")


# Application Constants
class Constants:
    """Application-wide constants."""

    # Listing
    OPEN_TASKS_LIST_LIMIT: int = 200  # Newest proposals returned by the listing read-model

    # Audit action types
    AUDIT_TASK_CREATED: str = "TASK_CREATED"
    AUDIT_TASK_UPDATED: str = "TASK_UPDATED"
    AUDIT_TASK_MOVED: str = "TASK_MOVED"
    AUDIT_TASK_SUBTREE_DELETED: str = "TASK_SUBTREE_DELETED"
    AUDIT_TASK_SUBTREE_COPIED: str = "TASK_SUBTREE_COPIED"
    AUDIT_TASK_RELEASED: str = "TASK_RELEASED"
    AUDIT_TASK_COMPLETED: str = "TASK_COMPLETED"
    AUDIT_TASK_UNCOMPLETED: str = "TASK_UNCOMPLETED"
    AUDIT_TASK_REGISTERED: str = "TASK_REGISTERED"
    AUDIT_TASK_PROPOSED: str = "TASK_PROPOSED"
    AUDIT_OPEN_TASK_ACCEPTED: str = "OPEN_TASK_ACCEPTED"
    AUDIT_OPEN_TASK_REJECTED: str = "OPEN_TASK_REJECTED"
    AUDIT_OPEN_TASK_ACKNOWLEDGED: str = "OPEN_TASK_REJECTION_ACKNOWLEDGED"
    AUDIT_ALIAS_CHANGE_PROPOSED: str = "ALIAS_CHANGE_PROPOSED"
    AUDIT_ALIAS_CHANGE_ACCEPTED: str = "ALIAS_CHANGE_ACCEPTED"
    AUDIT_ALIAS_CHANGE_REJECTED: str = "ALIAS_CHANGE_REJECTED"
    AUDIT_ALIAS_CHANGE_ACKNOWLEDGED: str = "ALIAS_CHANGE_REJECTION_ACKNOWLEDGED"
    AUDIT_TEMPLATE_CREATED: str = "TEMPLATE_CREATED"
    AUDIT_TEMPLATE_APPLIED: str = "TEMPLATE_APPLIED"

    # Templates
    TEMPLATE_COORDINATOR_POINTS: int = 100  # Requested for the coaching task a template creates
    TEMPLATE_DEFAULT_SUBTASK_POINTS: int = 10  # Used when a child template has no default
    TEMPLATE_TASK_DURATION_HOURS: int = 2



def get_settings() -> Settings:
    """Get application settings (singleton pattern)."""
    return Settings()


# Global settings instance
settings = get_settings()
constants = Constants()
