"""Actor registry: users, roles and the board lookup."""

import logging
from datetime import datetime
from typing import Any

from taakbeheer.core import db_client
from taakbeheer.core.errors import ConflictError, ErrorCode, NotFoundError, returns_result
from taakbeheer.core.logging import span
from taakbeheer.domain.create_models import UserCreate
from taakbeheer.domain.user import User, UserRole


logger = logging.getLogger(__name__)


def _to_user(record: dict[str, Any]) -> User:
    return User(
        alias=record["alias"],
        email=record.get("email"),
        role=UserRole(record["role"]),
        is_active=bool(record["is_active"]),
        created_at=record["created_at"],
    )


@returns_result
async def create_user(*, data: UserCreate) -> User:
    """Register a user in the actor registry.

    Raises:
        ConflictError: If the alias is already taken
    """
    with span("user_service.create_user"):
        try:
            async with db_client.transaction() as tx:
                record = await tx.insert(
                    collection="users",
                    data={**data.model_dump(), "created_at": datetime.now().isoformat()},
                    key="alias",
                )
        except db_client.UniqueConstraintError as e:
            msg = f"Alias '{data.alias}' is already taken"
            raise ConflictError(msg, code=ErrorCode.ERR_ALIAS_TAKEN) from e

        logger.info("Created user", extra={"alias": data.alias, "role": data.role.value})
        return _to_user(record)


async def find_user(tx: db_client.Transaction, alias: str) -> User | None:
    record = await tx.find_first(collection="users", where={"alias": alias})
    return _to_user(record) if record else None


async def require_user(tx: db_client.Transaction, alias: str) -> User:
    """Fetch a user inside `tx`, raising NotFoundError if absent."""
    user = await find_user(tx, alias)
    if user is None:
        msg = f"User '{alias}' not found"
        raise NotFoundError(msg, code=ErrorCode.ERR_USER_NOT_FOUND)
    return user


@returns_result
async def get_user(*, alias: str) -> User:
    with span("user_service.get_user"):
        async with db_client.transaction() as tx:
            return await require_user(tx, alias)


async def list_bestuur_aliases(tx: db_client.Transaction) -> list[str]:
    """Aliases of all active board members."""
    records = await tx.find(
        collection="users", where={"role": UserRole.BESTUUR.value, "is_active": True}, order_by="alias"
    )
    return [record["alias"] for record in records]


@returns_result
async def is_bestuur(*, alias: str) -> bool:
    with span("user_service.is_bestuur"):
        async with db_client.transaction() as tx:
            user = await find_user(tx, alias)
        return user is not None and user.is_active and user.role == UserRole.BESTUUR


async def promote_to_coordinator(tx: db_client.Transaction, alias: str) -> bool:
    """Promote a LID to COORDINATOR; returns True when the role changed."""
    changed = await tx.update_where(
        collection="users",
        where={"alias": alias, "role": UserRole.LID.value},
        data={"role": UserRole.COORDINATOR.value},
    )
    if changed:
        logger.info("Promoted user to coordinator", extra={"alias": alias})
    return changed > 0
