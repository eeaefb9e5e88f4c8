"""Governance bootstrap hygiene run at sign-in."""

import logging

from taakbeheer.core import db_client
from taakbeheer.core.config import settings
from taakbeheer.core.errors import returns_result
from taakbeheer.core.logging import span
from taakbeheer.core.tree import alias_sets_equal
from taakbeheer.services import snapshot_service
from taakbeheer.services.authorization import resolve_effective_coordinators


logger = logging.getLogger(__name__)


async def _clear_inherited_coordinator_sets() -> list[str]:
    async with db_client.transaction() as tx:
        snapshot = await snapshot_service.load_task_projection(snapshot_service.ALL, tx=tx)
        to_clear = []
        for node in snapshot.values():
            if node.parent_id is None or not node.own_coordinator_aliases:
                continue
            parent_effective = resolve_effective_coordinators(node.parent_id, snapshot)
            if parent_effective and alias_sets_equal(node.own_coordinator_aliases, parent_effective):
                to_clear.append(node.id)

        if to_clear:
            await tx.delete_where(collection="task_coordinators", where={"task_id": to_clear})

    if to_clear:
        logger.info("Cleared inherited coordinator sets", extra={"task_count": len(to_clear)})
    return sorted(to_clear)


@returns_result
async def normalize_inherited_coordinators() -> list[str]:
    """Clear own coordinator sets that merely repeat what the parent already provides.

    Returns:
        Ids of the tasks whose own set was cleared
    """
    with span("bootstrap_service.normalize_inherited_coordinators"):
        return await _clear_inherited_coordinator_sets()


@returns_result
async def ensure_governance_bootstrap(*, login_alias: str) -> list[str]:
    """Retire the placeholder board account once a real user signs in, then normalize.

    The placeholder is deactivated only while it has no email address, i.e.
    before a board member has claimed it.
    """
    with span("bootstrap_service.ensure_governance_bootstrap"):
        if login_alias != settings.bestuur_role_alias:
            async with db_client.transaction() as tx:
                deactivated = await tx.update_where(
                    collection="users",
                    where={"alias": settings.bestuur_role_alias, "email": None, "is_active": True},
                    data={"is_active": False},
                )
            if deactivated:
                logger.info("Deactivated placeholder board account", extra={"alias": settings.bestuur_role_alias})

        return await _clear_inherited_coordinator_sets()
