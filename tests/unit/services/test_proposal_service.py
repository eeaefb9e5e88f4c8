"""Tests for task delegation proposals against a temporary SQLite store."""

from datetime import datetime, timedelta

import pytest

from taakbeheer.core import db_client
from taakbeheer.core.config import constants
from taakbeheer.core.errors import ErrorCategory, ErrorCode
from taakbeheer.domain.proposal import ProposalStatus
from taakbeheer.domain.task import CoordinationType, TaskStatus
from taakbeheer.domain.user import UserRole
from taakbeheer.services import audit_service, notification_service, proposal_service, task_service


class TestRegisterForTask:
    """Test self-registration."""

    @pytest.mark.asyncio
    async def test_creates_self_registration(self, governance_tree):
        result = await proposal_service.register_for_task(actor_alias="vera", task_id="summer")

        assert result.ok
        assert result.data.proposer_alias == "vera"
        assert result.data.proposed_alias == "vera"
        assert result.data.is_self_registration
        assert result.data.status == ProposalStatus.OPEN

    @pytest.mark.asyncio
    async def test_notifies_deciders(self, governance_tree):
        await proposal_service.register_for_task(actor_alias="vera", task_id="summer")

        pending = (await notification_service.list_pending_notifications(user_alias="thomas")).data

        assert [row["category"] for row in pending] == ["NEW_PROPOSAL"]

    @pytest.mark.asyncio
    async def test_duplicate_open_registration_conflicts(self, governance_tree):
        await proposal_service.register_for_task(actor_alias="vera", task_id="summer")

        result = await proposal_service.register_for_task(actor_alias="vera", task_id="summer")

        assert result.error.code == ErrorCode.ERR_DUPLICATE_PROPOSAL

    @pytest.mark.asyncio
    async def test_only_available_tasks(self, seed, governance_tree):
        await seed.task("busy", parent_id="events", status=TaskStatus.TOEGEWEZEN)

        result = await proposal_service.register_for_task(actor_alias="vera", task_id="busy")

        assert result.error.code == ErrorCode.ERR_INVALID_STATE_TRANSITION

    @pytest.mark.asyncio
    async def test_ended_task_conflicts(self, seed, governance_tree):
        past = datetime.now() - timedelta(days=2)
        await seed.task("over", parent_id="events", start_time=past, end_time=past + timedelta(hours=2))

        result = await proposal_service.register_for_task(actor_alias="vera", task_id="over")

        assert result.error.category == ErrorCategory.CONFLICT

    @pytest.mark.asyncio
    async def test_orphan_task_denied(self, seed):
        await seed.user("vera")
        await seed.task("orphan")

        result = await proposal_service.register_for_task(actor_alias="vera", task_id="orphan")

        assert result.error.category == ErrorCategory.PERMISSION_DENIED

    @pytest.mark.asyncio
    async def test_organiseren_only_on_leaf_tasks(self, seed, governance_tree):
        await seed.task(
            "market", parent_id="root", coordinators=["thomas"], coordination_type=CoordinationType.ORGANISEREN
        )
        await seed.task("stall", parent_id="market")

        non_leaf = await proposal_service.register_for_task(actor_alias="vera", task_id="market")
        leaf = await proposal_service.register_for_task(actor_alias="vera", task_id="stall")

        assert non_leaf.error.category == ErrorCategory.CONFLICT
        assert leaf.ok


class TestProposeTaskTo:
    """Test nominations by a coordinator."""

    @pytest.mark.asyncio
    async def test_coordinator_nominates(self, governance_tree):
        result = await proposal_service.propose_task_to(actor_alias="thomas", task_id="summer", proposed_alias="lotte")

        assert result.ok
        assert result.data.proposed_alias == "lotte"
        assert not result.data.is_self_registration

    @pytest.mark.asyncio
    async def test_requires_manage(self, governance_tree):
        result = await proposal_service.propose_task_to(actor_alias="vera", task_id="summer", proposed_alias="lotte")

        assert result.error.category == ErrorCategory.PERMISSION_DENIED

    @pytest.mark.asyncio
    async def test_self_nomination_is_invalid(self, governance_tree):
        result = await proposal_service.propose_task_to(actor_alias="thomas", task_id="summer", proposed_alias="thomas")

        assert result.error.category == ErrorCategory.VALIDATION

    @pytest.mark.asyncio
    async def test_unknown_nominee(self, governance_tree):
        result = await proposal_service.propose_task_to(actor_alias="thomas", task_id="summer", proposed_alias="ghost")

        assert result.error.code == ErrorCode.ERR_USER_NOT_FOUND

    @pytest.mark.asyncio
    async def test_inactive_nominee(self, seed, governance_tree):
        await seed.user("gone", is_active=False)

        result = await proposal_service.propose_task_to(actor_alias="thomas", task_id="summer", proposed_alias="gone")

        assert result.error.category == ErrorCategory.CONFLICT


class TestAcceptOpenTask:
    """Test accepting proposals."""

    @pytest.mark.asyncio
    async def test_coordinator_accepts_registration(self, governance_tree):
        proposal = (await proposal_service.register_for_task(actor_alias="vera", task_id="summer")).data

        result = await proposal_service.accept_open_task(actor_alias="thomas", open_task_id=proposal.id)

        assert result.ok
        assert result.data.own_coordinator_aliases == ["vera"]
        assert result.data.status == TaskStatus.TOEGEWEZEN
        assert result.data.promoted_to_coordinator is True
        assert result.data.task_title == "Zomerfeest"
        assert await db_client.list_records(collection="open_tasks") == []
        vera = await db_client.get_record(collection="users", record_id="vera", key="alias")
        assert vera["role"] == UserRole.COORDINATOR

    @pytest.mark.asyncio
    async def test_accept_narrows_management(self, governance_tree):
        proposal = (await proposal_service.register_for_task(actor_alias="vera", task_id="summer")).data
        await proposal_service.accept_open_task(actor_alias="thomas", open_task_id=proposal.id)

        as_vera = await task_service.get_task(actor_alias="vera", task_id="summer")
        as_thomas = await task_service.get_task(actor_alias="thomas", task_id="summer")

        assert as_vera.data.can_manage is True
        assert as_thomas.data.can_manage is False

    @pytest.mark.asyncio
    async def test_registrant_cannot_accept_own_registration(self, governance_tree):
        proposal = (await proposal_service.register_for_task(actor_alias="vera", task_id="summer")).data

        result = await proposal_service.accept_open_task(actor_alias="vera", open_task_id=proposal.id)

        assert result.error.category == ErrorCategory.PERMISSION_DENIED
        assert len(await db_client.list_records(collection="open_tasks")) == 1
        summer = await db_client.get_record(collection="tasks", record_id="summer")
        assert summer["status"] == TaskStatus.BESCHIKBAAR

    @pytest.mark.asyncio
    async def test_nominee_decides_nomination(self, governance_tree):
        proposal = (
            await proposal_service.propose_task_to(actor_alias="thomas", task_id="summer", proposed_alias="lotte")
        ).data

        by_nominator = await proposal_service.accept_open_task(actor_alias="thomas", open_task_id=proposal.id)
        by_nominee = await proposal_service.accept_open_task(actor_alias="lotte", open_task_id=proposal.id)

        assert by_nominator.error.category == ErrorCategory.PERMISSION_DENIED
        assert by_nominee.ok
        assert by_nominee.data.own_coordinator_aliases == ["lotte"]

    @pytest.mark.asyncio
    async def test_accept_adds_co_coordinator(self, seed, governance_tree):
        await seed.task("stand", parent_id="root", coordinators=["vera"], status=TaskStatus.TOEGEWEZEN)
        proposal = (
            await proposal_service.propose_task_to(actor_alias="vera", task_id="stand", proposed_alias="lotte")
        ).data

        result = await proposal_service.accept_open_task(actor_alias="lotte", open_task_id=proposal.id)

        assert result.data.previous_own_coordinator_aliases == ["vera"]
        assert result.data.own_coordinator_aliases == ["lotte", "vera"]

    @pytest.mark.asyncio
    async def test_accept_is_audited(self, governance_tree):
        proposal = (await proposal_service.register_for_task(actor_alias="vera", task_id="summer")).data

        await proposal_service.accept_open_task(actor_alias="thomas", open_task_id=proposal.id)

        logs = (await audit_service.list_audit_logs(entity_type="OpenTask", entity_id=proposal.id)).data
        assert [log["action_type"] for log in logs] == ["TASK_REGISTERED", "OPEN_TASK_ACCEPTED"]

    @pytest.mark.asyncio
    async def test_unknown_proposal(self, governance_tree):
        result = await proposal_service.accept_open_task(actor_alias="thomas", open_task_id="missing")

        assert result.error.code == ErrorCode.ERR_PROPOSAL_NOT_FOUND


class TestRejectAndAcknowledge:
    """Test the reject -> acknowledge round trip."""

    @pytest.mark.asyncio
    async def test_round_trip(self, governance_tree):
        proposal = (await proposal_service.register_for_task(actor_alias="vera", task_id="summer")).data

        rejected = await proposal_service.reject_open_task(actor_alias="thomas", open_task_id=proposal.id)
        accept_after_reject = await proposal_service.accept_open_task(actor_alias="thomas", open_task_id=proposal.id)
        by_other = await proposal_service.acknowledge_open_task(actor_alias="thomas", open_task_id=proposal.id)
        still_there = await db_client.list_records(collection="open_tasks")
        by_proposer = await proposal_service.acknowledge_open_task(actor_alias="vera", open_task_id=proposal.id)

        assert rejected.data.status == ProposalStatus.AFGEWEZEN
        assert accept_after_reject.error.category == ErrorCategory.CONFLICT
        assert by_other.error.category == ErrorCategory.PERMISSION_DENIED
        assert len(still_there) == 1
        assert by_proposer.ok
        assert await db_client.list_records(collection="open_tasks") == []

    @pytest.mark.asyncio
    async def test_new_registration_allowed_after_rejection(self, governance_tree):
        proposal = (await proposal_service.register_for_task(actor_alias="vera", task_id="summer")).data
        await proposal_service.reject_open_task(actor_alias="thomas", open_task_id=proposal.id)

        again = await proposal_service.register_for_task(actor_alias="vera", task_id="summer")

        assert again.ok

    @pytest.mark.asyncio
    async def test_acknowledge_requires_rejection(self, governance_tree):
        proposal = (await proposal_service.register_for_task(actor_alias="vera", task_id="summer")).data

        result = await proposal_service.acknowledge_open_task(actor_alias="vera", open_task_id=proposal.id)

        assert result.error.code == ErrorCode.ERR_INVALID_STATE_TRANSITION

    @pytest.mark.asyncio
    async def test_reject_requires_decider(self, governance_tree):
        proposal = (await proposal_service.register_for_task(actor_alias="vera", task_id="summer")).data

        result = await proposal_service.reject_open_task(actor_alias="edgar", open_task_id=proposal.id)

        assert result.error.category == ErrorCategory.PERMISSION_DENIED


class TestListRelevantProposals:
    """Test the proposal listing read-model."""

    @pytest.mark.asyncio
    async def test_visibility_by_role(self, governance_tree):
        proposal = (await proposal_service.register_for_task(actor_alias="vera", task_id="summer")).data

        as_vera = (await proposal_service.list_relevant_proposals(actor_alias="vera")).data
        as_thomas = (await proposal_service.list_relevant_proposals(actor_alias="thomas")).data
        as_lotte = (await proposal_service.list_relevant_proposals(actor_alias="lotte")).data

        assert [view.id for view in as_vera] == [proposal.id]
        assert as_vera[0].can_decide is False
        assert as_thomas[0].can_decide is True
        assert as_thomas[0].task_title == "Zomerfeest"
        assert as_lotte == []

    @pytest.mark.asyncio
    async def test_rejected_only_visible_to_proposer(self, governance_tree):
        proposal = (await proposal_service.register_for_task(actor_alias="vera", task_id="summer")).data
        await proposal_service.reject_open_task(actor_alias="thomas", open_task_id=proposal.id)

        as_vera = (await proposal_service.list_relevant_proposals(actor_alias="vera")).data
        as_thomas = (await proposal_service.list_relevant_proposals(actor_alias="thomas")).data

        assert as_vera[0].can_acknowledge is True
        assert as_thomas == []

    @pytest.mark.asyncio
    async def test_open_proposal_not_crowded_out_by_others_rejections(self, seed, governance_tree, monkeypatch):
        monkeypatch.setattr(constants, "OPEN_TASKS_LIST_LIMIT", 3)
        await seed.open_task("waiting", task_id="treasurer", proposer="vera", proposed="vera")
        for index in range(5):
            await seed.open_task(
                f"rejected-{index}", task_id="treasurer", proposer="lotte", proposed="lotte", status="AFGEWEZEN"
            )

        as_edgar = (await proposal_service.list_relevant_proposals(actor_alias="edgar")).data
        as_lotte = (await proposal_service.list_relevant_proposals(actor_alias="lotte")).data

        assert [view.id for view in as_edgar] == ["waiting"]
        assert as_edgar[0].can_decide is True
        assert len(as_lotte) == 3
        assert all(view.can_acknowledge for view in as_lotte)
