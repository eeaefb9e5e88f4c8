"""Pytest configuration and shared fixtures."""

from collections.abc import Iterable
from datetime import datetime, timedelta
from typing import Any

import pytest
import pytest_asyncio

from taakbeheer.core import db_client
from taakbeheer.core.config import settings
from taakbeheer.domain.task import CoordinationType, TaskNode, TaskStatus
from taakbeheer.domain.user import UserRole


def node(
    task_id: str,
    parent_id: str | None = None,
    coordinators: Iterable[str] = (),
    *,
    coordination_type: CoordinationType | None = None,
    team_name: str | None = None,
    points: int = 0,
) -> TaskNode:
    """Build a TaskNode for pure-function tests."""
    return TaskNode(
        id=task_id,
        parent_id=parent_id,
        coordination_type=coordination_type,
        own_coordinator_aliases=frozenset(coordinators),
        team_name=team_name,
        points=points,
    )


def snapshot_of(*nodes: TaskNode) -> dict[str, TaskNode]:
    return {n.id: n for n in nodes}


@pytest.fixture
def make_node():
    return node


@pytest.fixture
def make_snapshot():
    return snapshot_of


@pytest_asyncio.fixture
async def db(tmp_path, monkeypatch):
    """Fresh SQLite store with the package schema, one per test."""
    monkeypatch.setattr(settings, "sqlite_db_path", str(tmp_path / "taakbeheer.db"))
    await db_client.init_db()
    yield
    await db_client.close_connection()


class Seeder:
    """Writes users and tasks straight into the store, bypassing the services."""

    async def user(
        self, alias: str, role: UserRole = UserRole.LID, *, email: str | None = None, is_active: bool = True
    ) -> str:
        await db_client.create_record(
            collection="users",
            data={
                "alias": alias,
                "email": email,
                "role": role,
                "is_active": is_active,
                "created_at": datetime.now().isoformat(),
            },
            key="alias",
        )
        return alias

    async def task(
        self,
        task_id: str,
        *,
        parent_id: str | None = None,
        coordinators: Iterable[str] = (),
        points: int = 0,
        status: TaskStatus = TaskStatus.BESCHIKBAAR,
        title: str | None = None,
        team_name: str | None = None,
        coordination_type: CoordinationType | None = None,
        start_time: datetime | None = None,
        end_time: datetime | None = None,
    ) -> str:
        now = datetime.now()
        data: dict[str, Any] = {
            "id": task_id,
            "title": title or task_id,
            "description": "",
            "team_name": team_name,
            "parent_id": parent_id,
            "coordination_type": coordination_type,
            "points": points,
            "status": status,
            "date": (start_time or now - timedelta(days=1)).isoformat(),
            "start_time": start_time or now - timedelta(hours=1),
            "end_time": end_time or now + timedelta(days=7),
            "location": None,
            "created_at": now.isoformat(),
        }
        async with db_client.transaction() as tx:
            await tx.insert(collection="tasks", data=data)
            for alias in coordinators:
                await tx.insert(
                    collection="task_coordinators",
                    data={"task_id": task_id, "user_alias": alias, "created_at": now.isoformat()},
                    key="task_id",
                )
        return task_id

    async def open_task(
        self, open_task_id: str, *, task_id: str, proposer: str, proposed: str | None, status: str = "OPEN"
    ) -> str:
        await db_client.create_record(
            collection="open_tasks",
            data={
                "id": open_task_id,
                "task_id": task_id,
                "proposer_alias": proposer,
                "proposed_alias": proposed,
                "status": status,
                "created_at": datetime.now().isoformat(),
            },
        )
        return open_task_id


@pytest_asyncio.fixture
async def seed(db):
    return Seeder()


@pytest_asyncio.fixture
async def governance_tree(seed):
    """Root (edgar) -> Evenementen (thomas) -> Zomerfeest (inherits); root -> Penningmeester (inherits).

    Returns the task ids by short name.
    """
    await seed.user("Bestuur", UserRole.BESTUUR)
    await seed.user("edgar", UserRole.BESTUUR, email="edgar@example.org")
    await seed.user("thomas", UserRole.COORDINATOR)
    await seed.user("vera")
    await seed.user("lotte")

    await seed.task("root", title="Besturen vereniging", coordinators=["edgar"], points=3000)
    await seed.task("events", parent_id="root", title="Evenementen", coordinators=["thomas"], points=1000)
    await seed.task("summer", parent_id="events", title="Zomerfeest", points=400)
    await seed.task("treasurer", parent_id="root", title="Penningmeester", points=600)
    return {"root": "root", "events": "events", "summer": "summer", "treasurer": "treasurer"}
