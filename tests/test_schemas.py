"""Tests for upgrader.schemas module.

Covers model definitions, upgrade steps and plans, and the report returned
by a successful start cycle.
"""

import pytest
from datetime import datetime, timedelta, timezone

from upgrader.schemas import (
    CheckpointOutcome,
    CheckpointStatus,
    ModelBounds,
    ModelDef,
    UpgradeMode,
    UpgradePlan,
    UpgradeReport,
    UpgradeStep,
)


def noop():
    pass


def utcnow() -> datetime:
    """Return current UTC time as timezone-aware datetime."""
    return datetime.now(timezone.utc)


# =============================================================================
# ModelDef / ModelBounds TESTS
# =============================================================================


class TestModelDef:
    """Tests for ModelDef and ModelBounds."""

    def test_empty_key_rejected(self):
        with pytest.raises(ValueError, match="non-empty"):
            ModelDef(key="  ")

    def test_to_dict(self):
        model = ModelDef(key="config", local=True, description="Settings")
        assert model.to_dict() == {"key": "config", "local": True, "description": "Settings"}

    def test_bounds_str(self):
        assert str(ModelBounds("index")) == "index"
        assert str(ModelBounds("index", "1.0", "2.0")) == "index from 1.0 to 2.0"


# =============================================================================
# UpgradeStep TESTS
# =============================================================================


class TestUpgradeStep:
    """Tests for UpgradeStep."""

    def test_must_move_forward(self):
        with pytest.raises(ValueError, match="must move forward"):
            UpgradeStep("index", "2.0", "1.0", noop)

    def test_equal_versions_rejected(self):
        """1.0 and 1.0.0 are the same version."""
        with pytest.raises(ValueError, match="must move forward"):
            UpgradeStep("index", "1.0", "1.0.0", noop)

    def test_action_must_be_callable(self):
        with pytest.raises(ValueError, match="not callable"):
            UpgradeStep("index", "1.0", "2.0", "not-a-function")

    def test_detail(self):
        assert UpgradeStep("index", "1.0", "2.0", noop).detail == "index from 1.0 to 2.0"

    def test_apply_runs_action(self):
        calls = []
        UpgradeStep("index", "1.0", "2.0", lambda: calls.append(1)).apply()
        assert calls == [1]

    def test_to_dict_omits_action(self):
        step = UpgradeStep(
            "index", "1.0", "2.0", noop,
            description="Rebuild",
            depends_on=(("config", "1.1"),),
        )
        assert step.to_dict() == {
            "model": "index",
            "from_version": "1.0",
            "to_version": "2.0",
            "description": "Rebuild",
            "depends_on": [{"model": "config", "version": "1.1"}],
        }


# =============================================================================
# UpgradePlan TESTS
# =============================================================================


class TestUpgradePlan:
    """Tests for UpgradePlan."""

    def test_empty_plan_is_falsy(self):
        assert not UpgradePlan()
        assert len(UpgradePlan()) == 0

    def test_models_and_targets(self):
        plan = UpgradePlan(steps=(
            UpgradeStep("config", "1.0", "1.1", noop),
            UpgradeStep("config", "1.1", "1.2", noop),
            UpgradeStep("index", "1.0", "2.0", noop),
        ))
        assert plan
        assert plan.models == ["config", "index"]
        assert plan.target_versions() == {"config": "1.2", "index": "2.0"}
        assert [step.to_version for step in plan] == ["1.1", "1.2", "2.0"]


# =============================================================================
# UpgradeReport TESTS
# =============================================================================


class TestUpgradeReport:
    """Tests for UpgradeReport."""

    def test_changed_and_duration(self):
        started = utcnow()
        report = UpgradeReport(
            mode=UpgradeMode.UPGRADE,
            started_at=started,
            completed_at=started + timedelta(milliseconds=250),
            versions_before={"config": "1.0", "index": "2.0"},
            versions_after={"config": "1.1", "index": "2.0", "cache": "3.0"},
        )
        assert report.changed == {"config": "1.1", "cache": "3.0"}
        assert report.duration_ms == 250

    def test_to_dict(self):
        started = utcnow()
        report = UpgradeReport(
            mode=UpgradeMode.UPGRADE,
            started_at=started,
            completed_at=started,
            steps=(UpgradeStep("index", "1.0", "2.0", noop),),
            checkpoints=(
                CheckpointOutcome("index", "1.0", CheckpointStatus.COMMITTED),
                CheckpointOutcome("cache", "1.0", CheckpointStatus.END_FAILED, "disk full"),
            ),
        )
        data = report.to_dict()
        assert data["mode"] == "upgrade"
        assert data["started_at"] == started.isoformat()
        assert data["steps"][0]["model"] == "index"
        assert data["checkpoints"] == [
            {"model": "index", "from_version": "1.0", "status": "committed"},
            {"model": "cache", "from_version": "1.0", "status": "end_failed", "error": "disk full"},
        ]
