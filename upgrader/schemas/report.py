"""
Report schemas - orchestration state and the outcome of one start cycle.

UpgradeState tracks where the service is in its state machine.
UpgradePhase tracks the sub-phase while the transactional path runs.
CheckpointOutcome records what happened to one checkpoint.
UpgradeReport is returned by a successful start.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Optional

from .step import UpgradeStep


class UpgradeState(str, Enum):
    """State of the upgrade service."""
    IDLE = "idle"
    LOADED = "loaded"
    PLANNED = "planned"
    INVENTORY_DONE = "inventory_done"
    UPGRADING = "upgrading"
    PERSISTED = "persisted"
    FAILED = "failed"
    STOPPED = "stopped"


class UpgradePhase(str, Enum):
    """Sub-phase of the transactional upgrade path."""
    BEGINNING = "beginning"
    APPLYING = "applying"
    COMMITTING = "committing"
    ENDING = "ending"
    ROLLING_BACK = "rolling_back"


class UpgradeMode(str, Enum):
    """Which branch a start cycle took."""
    NOOP = "noop"
    INVENTORY = "inventory"
    UPGRADE = "upgrade"


class CheckpointStatus(str, Enum):
    """Final status of a checkpoint after a run."""
    COMMITTED = "committed"
    ENDED = "ended"
    END_FAILED = "end_failed"


@dataclass(frozen=True)
class CheckpointOutcome:
    """
    The outcome of one checkpoint in a successful upgrade.

    Attributes:
        model: Model the checkpoint covers
        from_version: Version passed to begin
        status: committed, ended, or end_failed
        error: Error message if cleanup failed
    """
    model: str
    from_version: str
    status: CheckpointStatus
    error: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "model": self.model,
            "from_version": self.from_version,
            "status": self.status.value,
        }
        if self.error is not None:
            result["error"] = self.error
        return result


@dataclass(frozen=True)
class UpgradeReport:
    """
    Record of a successful start cycle.

    Attributes:
        mode: noop, inventory, or upgrade
        started_at: When the start cycle began
        completed_at: When the version map was persisted (or the noop ended)
        versions_before: Version map as loaded from the store
        versions_after: Version map as saved to the store
        steps: Steps applied (upgrade) or recorded (inventory)
        skipped: Steps left out of an inventory because their model is
            cluster-shared and the cluster already holds state
        checkpoints: Per-checkpoint outcomes (upgrade only)
    """
    mode: UpgradeMode
    started_at: datetime
    completed_at: datetime
    versions_before: dict[str, str] = field(default_factory=dict)
    versions_after: dict[str, str] = field(default_factory=dict)
    steps: tuple[UpgradeStep, ...] = ()
    skipped: tuple[UpgradeStep, ...] = ()
    checkpoints: tuple[CheckpointOutcome, ...] = ()

    @property
    def changed(self) -> dict[str, str]:
        """Models whose version differs after the run, with the new version."""
        return {
            model: version
            for model, version in self.versions_after.items()
            if self.versions_before.get(model) != version
        }

    @property
    def duration_ms(self) -> int:
        delta = self.completed_at - self.started_at
        return int(delta.total_seconds() * 1000)

    def to_dict(self) -> dict[str, Any]:
        """Serialize to dictionary for JSON output."""
        return {
            "mode": self.mode.value,
            "started_at": self.started_at.isoformat(),
            "completed_at": self.completed_at.isoformat(),
            "duration_ms": self.duration_ms,
            "versions_before": dict(self.versions_before),
            "versions_after": dict(self.versions_after),
            "steps": [step.to_dict() for step in self.steps],
            "skipped": [step.to_dict() for step in self.skipped],
            "checkpoints": [outcome.to_dict() for outcome in self.checkpoints],
        }
