"""Tests for the actor registry."""

import pytest

from taakbeheer.core import db_client
from taakbeheer.core.errors import ErrorCategory, ErrorCode
from taakbeheer.domain.create_models import UserCreate
from taakbeheer.domain.user import UserRole
from taakbeheer.services import user_service


class TestUserRegistry:
    """Test user creation and lookups."""

    @pytest.mark.asyncio
    async def test_create_and_get(self, db):
        created = await user_service.create_user(data=UserCreate(alias="jan", email="jan@example.org"))

        result = await user_service.get_user(alias="jan")

        assert created.ok
        assert result.data.role == UserRole.LID
        assert result.data.is_active is True

    @pytest.mark.asyncio
    async def test_duplicate_alias(self, db):
        await user_service.create_user(data=UserCreate(alias="jan"))

        result = await user_service.create_user(data=UserCreate(alias="jan"))

        assert result.ok is False
        assert result.error.code == ErrorCode.ERR_ALIAS_TAKEN

    @pytest.mark.asyncio
    async def test_unknown_user(self, db):
        result = await user_service.get_user(alias="nobody")

        assert result.ok is False
        assert result.error.category == ErrorCategory.NOT_FOUND
        assert result.error.code == ErrorCode.ERR_USER_NOT_FOUND

    @pytest.mark.asyncio
    async def test_board_lookup_skips_inactive_members(self, seed):
        await seed.user("edgar", UserRole.BESTUUR)
        await seed.user("oud", UserRole.BESTUUR, is_active=False)
        await seed.user("vera")

        async with db_client.transaction() as tx:
            aliases = await user_service.list_bestuur_aliases(tx)

        assert aliases == ["edgar"]
        assert (await user_service.is_bestuur(alias="edgar")).data is True
        assert (await user_service.is_bestuur(alias="oud")).data is False
        assert (await user_service.is_bestuur(alias="nobody")).data is False


class TestPromoteToCoordinator:
    """Test automatic promotion on first coordination."""

    @pytest.mark.asyncio
    async def test_promotes_member_once(self, seed):
        await seed.user("vera")

        async with db_client.transaction() as tx:
            first = await user_service.promote_to_coordinator(tx, "vera")
        async with db_client.transaction() as tx:
            second = await user_service.promote_to_coordinator(tx, "vera")

        assert (first, second) == (True, False)
        assert (await user_service.get_user(alias="vera")).data.role == UserRole.COORDINATOR

    @pytest.mark.asyncio
    async def test_never_demotes_board(self, seed):
        await seed.user("edgar", UserRole.BESTUUR)

        async with db_client.transaction() as tx:
            assert await user_service.promote_to_coordinator(tx, "edgar") is False
