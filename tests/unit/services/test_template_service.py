"""Tests for task templates against a temporary SQLite store."""

from datetime import datetime

import pytest

from taakbeheer.core import db_client
from taakbeheer.core.errors import ErrorCategory, ErrorCode
from taakbeheer.domain.create_models import TemplateApply, TemplateCreate
from taakbeheer.domain.task import TaskStatus
from taakbeheer.services import template_service


async def youth_template(*child_points: int | None) -> str:
    """Store a 'Jeugdteam' template with children 'Taak 1', 'Taak 2', ... as edgar."""
    parent = await template_service.create_template(
        actor_alias="edgar", data=TemplateCreate(title="Jeugdteam", description="Begeleiding van een jeugdteam")
    )
    for index, points in enumerate(child_points, start=1):
        await template_service.create_template(
            actor_alias="edgar",
            data=TemplateCreate(
                title=f"Taak {index}",
                description="Onderdeel van de begeleiding",
                parent_template_id=parent.data.id,
                default_points=points,
            ),
        )
    return parent.data.id


class TestCreateTemplate:
    """Test storing templates."""

    @pytest.mark.asyncio
    async def test_root_coordinator_creates_template(self, governance_tree):
        result = await template_service.create_template(
            actor_alias="edgar", data=TemplateCreate(title="  Jeugdteam ", description="Begeleiding")
        )

        assert result.ok
        assert result.data.title == "Jeugdteam"
        assert result.data.default_points is None

    @pytest.mark.asyncio
    async def test_other_coordinator_denied(self, governance_tree):
        result = await template_service.create_template(
            actor_alias="thomas", data=TemplateCreate(title="Jeugdteam", description="Begeleiding")
        )

        assert result.error.category == ErrorCategory.PERMISSION_DENIED

    @pytest.mark.asyncio
    async def test_unknown_parent_template(self, governance_tree):
        result = await template_service.create_template(
            actor_alias="edgar",
            data=TemplateCreate(title="Trainen", description="Training geven", parent_template_id="nope"),
        )

        assert result.error.code == ErrorCode.ERR_TEMPLATE_NOT_FOUND

    @pytest.mark.asyncio
    async def test_list_puts_top_level_templates_first(self, governance_tree):
        await youth_template(5)

        result = await template_service.list_templates()

        assert [t.title for t in result.data] == ["Jeugdteam", "Taak 1"]


class TestApplyTemplate:
    """Test rolling out a template for a team."""

    @pytest.mark.asyncio
    async def test_creates_coaching_task_with_subtasks(self, governance_tree):
        """Root headroom is 1400; the coaching task takes 100 of it."""
        template_id = await youth_template(30, None)
        start = datetime(2026, 5, 2, 9, 0)

        result = await template_service.apply_template(
            actor_alias="edgar", template_id=template_id, data=TemplateApply(team_name="JO11-1", date=start)
        )

        assert result.ok
        assert not result.data.points_zeroed
        coaching = await db_client.get_record(collection="tasks", record_id=result.data.coordinator_task_id)
        assert coaching["parent_id"] == "root"
        assert coaching["title"] == "Coachen JO11-1"
        assert coaching["points"] == 100
        assert coaching["status"] == TaskStatus.TOEGEWEZEN
        assert coaching["end_time"] == datetime(2026, 5, 2, 11, 0).isoformat()
        links = await db_client.list_records(collection="task_coordinators", where={"task_id": coaching["id"]})
        assert [link["user_alias"] for link in links] == ["edgar"]

        subtasks = [await db_client.get_record(collection="tasks", record_id=i) for i in result.data.subtask_ids]
        assert [(s["title"], s["points"], s["team_name"]) for s in subtasks] == [
            ("Taak 1", 30, "JO11-1"),
            ("Taak 2", 10, "JO11-1"),
        ]
        assert all(s["status"] == TaskStatus.BESCHIKBAAR for s in subtasks)

    @pytest.mark.asyncio
    async def test_zeroes_points_when_parent_lacks_headroom(self, seed, governance_tree):
        await seed.task("small", parent_id="root", coordinators=["edgar"], points=50)
        template_id = await youth_template(30)

        result = await template_service.apply_template(
            actor_alias="edgar", template_id=template_id, data=TemplateApply(team_name="JO11-1", parent_task_id="small")
        )

        assert result.data.points_zeroed
        created = [result.data.coordinator_task_id, *result.data.subtask_ids]
        records = [await db_client.get_record(collection="tasks", record_id=i) for i in created]
        assert [r["points"] for r in records] == [0, 0]

    @pytest.mark.asyncio
    async def test_zeroes_points_when_child_defaults_exceed_budget(self, governance_tree):
        template_id = await youth_template(60, 50)

        result = await template_service.apply_template(
            actor_alias="edgar", template_id=template_id, data=TemplateApply(team_name="JO11-1")
        )

        assert result.data.points_zeroed
        coaching = await db_client.get_record(collection="tasks", record_id=result.data.coordinator_task_id)
        assert coaching["points"] == 0

    @pytest.mark.asyncio
    async def test_requires_manage_on_parent(self, governance_tree):
        template_id = await youth_template()

        result = await template_service.apply_template(
            actor_alias="thomas", template_id=template_id, data=TemplateApply(team_name="JO11-1")
        )

        assert result.error.category == ErrorCategory.PERMISSION_DENIED

    @pytest.mark.asyncio
    async def test_unknown_template(self, governance_tree):
        result = await template_service.apply_template(
            actor_alias="edgar", template_id="nope", data=TemplateApply(team_name="JO11-1")
        )

        assert result.error.code == ErrorCode.ERR_TEMPLATE_NOT_FOUND
        assert len(await db_client.list_records(collection="tasks")) == 4
