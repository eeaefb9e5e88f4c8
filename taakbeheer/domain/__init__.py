"""Domain models and DTOs."""

from taakbeheer.domain.create_models import AliasChangeRequest, TaskCreate, UserCreate
from taakbeheer.domain.proposal import AliasChangeProposal, OpenTask, ProposalStatus
from taakbeheer.domain.task import CoordinationType, Task, TaskNode, TaskStatus
from taakbeheer.domain.update_models import TaskUpdate
from taakbeheer.domain.user import User, UserRole


__all__ = [
    "AliasChangeProposal",
    "AliasChangeRequest",
    "CoordinationType",
    "OpenTask",
    "ProposalStatus",
    "Task",
    "TaskCreate",
    "TaskNode",
    "TaskStatus",
    "TaskUpdate",
    "User",
    "UserCreate",
    "UserRole",
]
