"""Task status transitions.

BESCHIKBAAR -> TOEGEWEZEN -> GEREED, with release (TOEGEWEZEN -> BESCHIKBAAR)
and uncomplete (GEREED -> TOEGEWEZEN) as the only ways back.
"""

import logging

from taakbeheer.core import db_client
from taakbeheer.core.errors import ConflictError, ErrorCode
from taakbeheer.domain.task import TaskStatus


logger = logging.getLogger(__name__)


TASK_TRANSITIONS: dict[TaskStatus, set[TaskStatus]] = {
    TaskStatus.BESCHIKBAAR: {TaskStatus.TOEGEWEZEN},
    TaskStatus.TOEGEWEZEN: {TaskStatus.GEREED, TaskStatus.BESCHIKBAAR},
    TaskStatus.GEREED: {TaskStatus.TOEGEWEZEN},
}


def can_transition(*, current: TaskStatus, target: TaskStatus) -> bool:
    return target in TASK_TRANSITIONS[current]


def ensure_transition(*, task_id: str, current: TaskStatus, target: TaskStatus) -> None:
    """Raise ConflictError unless `current -> target` is an allowed transition."""
    if not can_transition(current=current, target=target):
        msg = f"Cannot move task {task_id} from {current} to {target}"
        raise ConflictError(msg, code=ErrorCode.ERR_INVALID_STATE_TRANSITION)


async def transition_status(
    tx: db_client.Transaction, *, task_id: str, current: TaskStatus, target: TaskStatus
) -> None:
    """Apply a validated transition, conditioned on the status read earlier in `tx`."""
    ensure_transition(task_id=task_id, current=current, target=target)
    changed = await tx.update_where(
        collection="tasks", where={"id": task_id, "status": current.value}, data={"status": target.value}
    )
    if changed == 0:
        msg = f"Task {task_id} changed concurrently"
        raise ConflictError(msg, code=ErrorCode.ERR_CONCURRENT_MODIFICATION)
    logger.info("Transitioned task %s to %s", task_id, target)
