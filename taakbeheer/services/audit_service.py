"""Audit sink: structured facts written after each committed transition."""

import logging
from datetime import datetime
from typing import Any

from taakbeheer.core import db_client
from taakbeheer.core.errors import returns_result
from taakbeheer.core.logging import span


logger = logging.getLogger(__name__)


async def write_audit_log(
    *,
    actor_alias: str,
    action_type: str,
    entity_type: str,
    entity_id: str,
    payload: dict[str, Any] | None = None,
) -> None:
    """Persist an audit row in its own transaction.

    Called after the audited transaction has committed; a failure here is
    logged and never propagated, so it cannot undo the transition.
    """
    with span("audit_service.write_audit_log"):
        try:
            await db_client.create_record(
                collection="audit_logs",
                data={
                    "id": db_client.new_id(),
                    "actor_alias": actor_alias,
                    "action_type": action_type,
                    "entity_type": entity_type,
                    "entity_id": entity_id,
                    "payload_json": payload,
                    "created_at": datetime.now().isoformat(),
                },
            )
        except Exception:
            logger.exception(
                "Failed to write audit log",
                extra={"action_type": action_type, "entity_type": entity_type, "entity_id": entity_id},
            )


@returns_result
async def list_audit_logs(*, entity_type: str, entity_id: str) -> list[dict[str, Any]]:
    """Audit rows for one entity, oldest first."""
    with span("audit_service.list_audit_logs"):
        return await db_client.list_records(
            collection="audit_logs",
            where={"entity_type": entity_type, "entity_id": entity_id},
            order_by="created_at ASC",
        )
