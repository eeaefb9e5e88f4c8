"""Notification sink: "decision required" and "state changed" events.

Events are written to the `notification_events` outbox after the underlying
transition has committed. Delivery (email digests) happens elsewhere.
"""

import logging
from collections.abc import Iterable
from datetime import datetime
from enum import StrEnum

from taakbeheer.core import db_client
from taakbeheer.core.config import settings
from taakbeheer.core.errors import returns_result
from taakbeheer.core.logging import span
from taakbeheer.models.service_models import NotificationResult


logger = logging.getLogger(__name__)


class NotificationCategory(StrEnum):
    """Kinds of events a user can be notified about."""

    NEW_PROPOSAL = "NEW_PROPOSAL"
    PROPOSAL_ACCEPTED = "PROPOSAL_ACCEPTED"
    PROPOSAL_REJECTED = "PROPOSAL_REJECTED"
    TASK_CHANGED_AS_COORDINATOR = "TASK_CHANGED_AS_COORDINATOR"
    TASK_BECAME_AVAILABLE_AS_COORDINATOR = "TASK_BECAME_AVAILABLE_AS_COORDINATOR"


async def _enqueue(
    *, recipients: Iterable[str], category: NotificationCategory, subject: str, body: str
) -> list[NotificationResult]:
    if not settings.enable_notifications:
        logger.debug("Notifications disabled, skipping", extra={"category": category.value})
        return []

    results = []
    for alias in sorted(set(recipients)):
        try:
            await db_client.create_record(
                collection="notification_events",
                data={
                    "id": db_client.new_id(),
                    "user_alias": alias,
                    "category": category.value,
                    "subject": subject,
                    "body": body,
                    "created_at": datetime.now().isoformat(),
                },
            )
            results.append(NotificationResult(user_alias=alias, success=True))
        except Exception as e:
            logger.exception("Failed to enqueue notification", extra={"user_alias": alias, "category": category})
            results.append(NotificationResult(user_alias=alias, success=False, error=str(e)))

    logger.info(
        "Enqueued %d notifications (%d failed)",
        len(results),
        sum(1 for r in results if not r.success),
        extra={"category": category.value},
    )
    return results


async def notify_decision_required(
    *, decider_aliases: Iterable[str], actor_alias: str, task_title: str
) -> list[NotificationResult]:
    """Tell the deciders of a new proposal that they have to act."""
    with span("notification_service.notify_decision_required"):
        recipients = [alias for alias in decider_aliases if alias != actor_alias]
        return await _enqueue(
            recipients=recipients,
            category=NotificationCategory.NEW_PROPOSAL,
            subject=f"Decision required: {task_title}",
            body=f"{actor_alias} submitted a proposal for '{task_title}'.",
        )


async def notify_proposal_decided(
    *, accepted: bool, proposer_alias: str, proposed_alias: str | None, actor_alias: str, task_title: str
) -> list[NotificationResult]:
    """Tell the proposer and proposed party how their proposal was decided."""
    with span("notification_service.notify_proposal_decided"):
        category = NotificationCategory.PROPOSAL_ACCEPTED if accepted else NotificationCategory.PROPOSAL_REJECTED
        verb = "accepted" if accepted else "rejected"
        recipients = [a for a in (proposer_alias, proposed_alias) if a and a != actor_alias]
        return await _enqueue(
            recipients=recipients,
            category=category,
            subject=f"Proposal {verb}: {task_title}",
            body=f"{actor_alias} {verb} the proposal for '{task_title}'.",
        )


async def notify_task_changed(
    *,
    coordinator_aliases: Iterable[str],
    actor_alias: str,
    task_title: str,
    change: str,
    became_available: bool = False,
) -> list[NotificationResult]:
    """Tell the coordinators of a task that its state changed."""
    with span("notification_service.notify_task_changed"):
        category = (
            NotificationCategory.TASK_BECAME_AVAILABLE_AS_COORDINATOR
            if became_available
            else NotificationCategory.TASK_CHANGED_AS_COORDINATOR
        )
        return await _enqueue(
            recipients=[alias for alias in coordinator_aliases if alias != actor_alias],
            category=category,
            subject=f"Task changed: {task_title}",
            body=f"{actor_alias}: {change}",
        )


async def notify_alias_change_requested(
    *, bestuur_aliases: Iterable[str], requester_alias: str, requested_alias: str
) -> list[NotificationResult]:
    with span("notification_service.notify_alias_change_requested"):
        return await _enqueue(
            recipients=[alias for alias in bestuur_aliases if alias != requester_alias],
            category=NotificationCategory.NEW_PROPOSAL,
            subject="Decision required: alias change",
            body=f"{requester_alias} requested to be renamed to {requested_alias}.",
        )


@returns_result
async def list_pending_notifications(*, user_alias: str) -> list[dict]:
    """Undelivered outbox rows for one user, oldest first."""
    with span("notification_service.list_pending_notifications"):
        return await db_client.list_records(
            collection="notification_events",
            where={"user_alias": user_alias, "delivered_at": None},
            order_by="created_at ASC",
        )
