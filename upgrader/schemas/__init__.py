"""
upgrader.schemas - Value types for the upgrade orchestrator.

ModelDef -> UpgradeStep -> UpgradePlan -> UpgradeReport

Lifecycle:
1. ModelDef: A registered, independently versioned subsystem
2. UpgradeStep: A registered migration from one model version to the next
3. UpgradePlan: Ordered steps selected from the registry for stored versions
4. UpgradeReport: What a successful start cycle did
"""

from .model import ModelDef, ModelBounds
from .step import UpgradeStep, UpgradePlan
from .report import (
    UpgradeState,
    UpgradePhase,
    UpgradeMode,
    CheckpointStatus,
    CheckpointOutcome,
    UpgradeReport,
)

__all__ = [
    # Models
    "ModelDef",
    "ModelBounds",
    # Steps
    "UpgradeStep",
    "UpgradePlan",
    # Reports
    "UpgradeState",
    "UpgradePhase",
    "UpgradeMode",
    "CheckpointStatus",
    "CheckpointOutcome",
    "UpgradeReport",
]
