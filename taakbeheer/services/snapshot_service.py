"""Load immutable task snapshots from the store.

A snapshot is a plain `dict[str, TaskNode]`. Loaders accept an open
transaction so that authorization and ledger checks always run against a read
taken inside the transaction that performs the write.
"""

import contextlib
import logging
from collections.abc import AsyncIterator, Collection, Mapping
from typing import Any, Literal

from taakbeheer.core import db_client
from taakbeheer.core.logging import span
from taakbeheer.domain.task import CoordinationType, TaskNode


logger = logging.getLogger(__name__)


ALL: Literal["all"] = "all"


@contextlib.asynccontextmanager
async def _reader(tx: db_client.Transaction | None) -> AsyncIterator[db_client.Transaction]:
    if tx is not None:
        yield tx
        return
    async with db_client.transaction() as own_tx:
        yield own_tx


def _to_node(row: Mapping[str, Any], aliases: Collection[str]) -> TaskNode:
    coordination_type = row.get("coordination_type")
    return TaskNode(
        id=row["id"],
        parent_id=row.get("parent_id"),
        coordination_type=CoordinationType(coordination_type) if coordination_type else None,
        own_coordinator_aliases=frozenset(aliases),
        team_name=row.get("team_name"),
        points=int(row.get("points") or 0),
    )


async def load_coordinator_aliases(
    tx: db_client.Transaction, task_ids: Collection[str] | None
) -> dict[str, list[str]]:
    """Return own coordinator aliases per task id (sorted); None loads every link."""
    where = None if task_ids is None else {"task_id": list(task_ids)}
    links = await tx.find(collection="task_coordinators", where=where, order_by="user_alias")
    aliases: dict[str, list[str]] = {}
    for link in links:
        aliases.setdefault(link["task_id"], []).append(link["user_alias"])
    return aliases


async def _project(tx: db_client.Transaction, rows: list[dict[str, Any]]) -> dict[str, TaskNode]:
    if not rows:
        return {}
    aliases = await load_coordinator_aliases(tx, [row["id"] for row in rows])
    return {row["id"]: _to_node(row, aliases.get(row["id"], [])) for row in rows}


async def load_task_projection(
    ids: Collection[str] | Literal["all"], *, tx: db_client.Transaction | None = None
) -> dict[str, TaskNode]:
    """Load the minimal projection for the given task ids, or for the whole tree.

    Args:
        ids: Task ids to load, or "all"
        tx: Open transaction to read in; a short read transaction is used when omitted

    Returns:
        Mapping of task id to TaskNode
    """
    with span("snapshot_service.load_task_projection"):
        async with _reader(tx) as reader:
            where = None if ids == ALL else {"id": list(ids)}
            rows = await reader.find(collection="tasks", where=where)
            snapshot = await _project(reader, rows)

        logger.debug("Loaded task projection", extra={"task_count": len(snapshot)})
        return snapshot


async def load_access_path(task_id: str, *, tx: db_client.Transaction | None = None) -> dict[str, TaskNode]:
    """Load `task_id` and its ancestor chain up to the root.

    Enough to resolve effective coordinators and coordination types for the
    task. Stops at a missing parent or a revisited id.
    """
    with span("snapshot_service.load_access_path"):
        async with _reader(tx) as reader:
            rows: list[dict[str, Any]] = []
            visited: set[str] = set()
            current_id: str | None = task_id
            while current_id is not None and current_id not in visited:
                visited.add(current_id)
                row = await reader.find_first(collection="tasks", where={"id": current_id})
                if row is None:
                    break
                rows.append(row)
                current_id = row["parent_id"]
            return await _project(reader, rows)


async def load_family(task_ids: Collection[str], *, tx: db_client.Transaction) -> dict[str, TaskNode]:
    """Load the access paths of `task_ids` plus the direct children of each of them.

    Points checks need the children of the nodes involved; permission checks
    need their ancestors.
    """
    snapshot: dict[str, TaskNode] = {}
    for task_id in task_ids:
        snapshot.update(await load_access_path(task_id, tx=tx))
    children = await tx.find(collection="tasks", where={"parent_id": list(task_ids)})
    snapshot.update(await _project(tx, [row for row in children if row["id"] not in snapshot]))
    return snapshot
