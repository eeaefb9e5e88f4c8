"""Tests for governance bootstrap hygiene."""

import pytest

from taakbeheer.core import db_client
from taakbeheer.domain.user import UserRole
from taakbeheer.services import bootstrap_service


class TestNormalizeInheritedCoordinators:
    """Test clearing redundant own coordinator sets."""

    @pytest.mark.asyncio
    async def test_clears_sets_equal_to_parent(self, seed, governance_tree):
        await seed.task("copy", parent_id="root", coordinators=["edgar"])
        await seed.task("own", parent_id="root", coordinators=["edgar", "vera"])

        cleared = (await bootstrap_service.normalize_inherited_coordinators()).data

        assert cleared == ["copy"]
        assert await db_client.list_records(collection="task_coordinators", where={"task_id": "copy"}) == []
        assert len(await db_client.list_records(collection="task_coordinators", where={"task_id": "own"})) == 2

    @pytest.mark.asyncio
    async def test_root_set_is_kept(self, governance_tree):
        assert (await bootstrap_service.normalize_inherited_coordinators()).data == []


class TestEnsureGovernanceBootstrap:
    """Test retiring the placeholder board account."""

    @pytest.mark.asyncio
    async def test_deactivates_unclaimed_placeholder(self, governance_tree):
        result = await bootstrap_service.ensure_governance_bootstrap(login_alias="edgar")

        assert result.ok
        placeholder = await db_client.get_record(collection="users", record_id="Bestuur", key="alias")
        assert placeholder["is_active"] == 0

    @pytest.mark.asyncio
    async def test_keeps_claimed_placeholder(self, seed):
        await seed.user("Bestuur", UserRole.BESTUUR, email="bestuur@example.org")

        result = await bootstrap_service.ensure_governance_bootstrap(login_alias="edgar")

        assert result.ok
        placeholder = await db_client.get_record(collection="users", record_id="Bestuur", key="alias")
        assert placeholder["is_active"] == 1
