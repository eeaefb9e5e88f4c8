"""Unit tests for the points ledger."""

import math

import pytest

from taakbeheer.core.errors import ConflictError, ErrorCode
from taakbeheer.services import points_ledger


@pytest.mark.unit
class TestPreviewTransfer:
    """Tests for preview_transfer."""

    def test_transferable_moves_points(self):
        preview = points_ledger.preview_transfer(1000, 200, 300)

        assert preview.transferable is True
        assert preview.source_parent_points_after == 700
        assert preview.target_parent_points_after == 500

    def test_exact_amount_is_transferable(self):
        preview = points_ledger.preview_transfer(300, 0, 300)

        assert preview.transferable is True
        assert preview.source_parent_points_after == 0
        assert preview.target_parent_points_after == 300

    def test_insufficient_source_has_no_effect(self):
        preview = points_ledger.preview_transfer(100, 50, 101)

        assert preview.transferable is False
        assert preview.source_parent_points_after == 100
        assert preview.target_parent_points_after == 50


@pytest.mark.unit
class TestAllocation:
    """Tests for carving subtask budgets out of a parent."""

    def test_allocates_within_headroom(self):
        allocation = points_ledger.allocate_points_from_parent(available_points=500, requested_points=200)

        assert allocation.assigned_points == 200
        assert allocation.available_points_after == 300

    def test_rejects_request_above_headroom(self):
        with pytest.raises(ConflictError) as exc_info:
            points_ledger.allocate_points_from_parent(available_points=100, requested_points=101)

        assert exc_info.value.code == ErrorCode.ERR_INSUFFICIENT_POINTS

    @pytest.mark.parametrize("value", [-5, None, math.nan, math.inf])
    def test_normalize_points_clamps_invalid_values(self, value):
        assert points_ledger.normalize_points(value) == 0

    def test_remaining_own_points(self):
        assert points_ledger.remaining_own_points(own_points=600, issued_to_direct_subtasks=250) == 350


@pytest.mark.unit
class TestCheckPointsPatch:
    """Tests for direct points edits."""

    def test_cannot_drop_below_children(self, make_node, make_snapshot):
        snapshot = make_snapshot(
            make_node("root", points=1000), make_node("a", "root", points=500), make_node("b", "a", points=300)
        )

        with pytest.raises(ConflictError, match="issued to subtasks"):
            points_ledger.check_points_patch(task_id="a", new_points=299, snapshot=snapshot)

    def test_may_grow_into_parent_headroom_including_own_share(self, make_node, make_snapshot):
        snapshot = make_snapshot(
            make_node("root", points=1000), make_node("a", "root", points=500), make_node("s", "root", points=200)
        )

        points_ledger.check_points_patch(task_id="a", new_points=800, snapshot=snapshot)
        with pytest.raises(ConflictError, match="Not enough points"):
            points_ledger.check_points_patch(task_id="a", new_points=801, snapshot=snapshot)

    def test_root_has_no_upper_bound(self, make_node, make_snapshot):
        snapshot = make_snapshot(make_node("root", points=10))

        points_ledger.check_points_patch(task_id="root", new_points=10_000, snapshot=snapshot)


@pytest.mark.unit
class TestValidateMove:
    """Tests for move validation order and the transfer."""

    def test_root_cannot_move(self, make_node, make_snapshot):
        snapshot = make_snapshot(make_node("root", points=10), make_node("a", "root"))

        with pytest.raises(ConflictError, match="root"):
            points_ledger.validate_move(task_id="root", target_parent_id="a", snapshot=snapshot)

    def test_cycle_is_rejected_before_transfer(self, make_node, make_snapshot):
        snapshot = make_snapshot(
            make_node("root", points=0), make_node("a", "root", points=50), make_node("b", "a", points=10)
        )

        with pytest.raises(ConflictError) as exc_info:
            points_ledger.validate_move(task_id="a", target_parent_id="b", snapshot=snapshot)

        assert exc_info.value.code == ErrorCode.ERR_CYCLE_DETECTED

    def test_move_under_itself_is_a_cycle(self, make_node, make_snapshot):
        snapshot = make_snapshot(make_node("root", points=100), make_node("a", "root", points=50))

        with pytest.raises(ConflictError) as exc_info:
            points_ledger.validate_move(task_id="a", target_parent_id="a", snapshot=snapshot)

        assert exc_info.value.code == ErrorCode.ERR_CYCLE_DETECTED

    def test_cross_team_target_rejected(self, make_node, make_snapshot):
        snapshot = make_snapshot(
            make_node("root", points=1000),
            make_node("a", "root", team_name="Bar", points=10),
            make_node("t", "root", team_name="Keuken"),
        )

        with pytest.raises(ConflictError) as exc_info:
            points_ledger.validate_move(task_id="a", target_parent_id="t", snapshot=snapshot)

        assert exc_info.value.code == ErrorCode.ERR_CROSS_TEAM_MOVE

    def test_team_agnostic_target_accepts_any_team(self, make_node, make_snapshot):
        snapshot = make_snapshot(
            make_node("root", points=1000),
            make_node("a", "root", team_name="Bar", points=10),
            make_node("t", "root"),
        )

        preview = points_ledger.validate_move(task_id="a", target_parent_id="t", snapshot=snapshot)

        assert preview.transferable

    def test_besturen_vereniging_scenario(self, make_node, make_snapshot):
        """Source covers 600 of 3000; a target with 0 points still accepts."""
        snapshot = make_snapshot(
            make_node("root", coordinators=["Bestuur"], points=3000),
            make_node("penningmeester", "root", points=600),
            make_node("new-parent", "root", points=0),
        )

        preview = points_ledger.validate_move(task_id="penningmeester", target_parent_id="new-parent", snapshot=snapshot)

        assert preview.source_parent_points_after == 2400
        assert preview.target_parent_points_after == 600

    def test_insufficient_source_points(self, make_node, make_snapshot):
        snapshot = make_snapshot(
            make_node("root", points=1000),
            make_node("s", "root", points=100),
            make_node("m", "s", points=150),
            make_node("t", "root", points=0),
        )

        with pytest.raises(ConflictError) as exc_info:
            points_ledger.validate_move(task_id="m", target_parent_id="t", snapshot=snapshot)

        assert exc_info.value.code == ErrorCode.ERR_INSUFFICIENT_POINTS
