"""
upgrader - Versioned model upgrade orchestrator

On every process start, compares the stored version of each tracked model
with the versions this build requires, plans the upgrade steps in between,
and applies them inside per-model checkpoints with global rollback.
"""

__version__ = "0.1.0"


__all__ = [
    "UpgradeRegistry",
    "UpgradeService",
    "UpgradeStep",
    "Checkpoint",
    "DirectoryCheckpoint",
    "ModelVersionStore",
    "FileModelVersionStore",
    "InMemoryModelVersionStore",
    "CompositeModelVersionStore",
    "StaticTopology",
    "detect_topology",
]

from .checkpoint import Checkpoint, DirectoryCheckpoint
from .registry import UpgradeRegistry
from .schemas import UpgradeStep
from .service import UpgradeService
from .store import (
    ModelVersionStore,
    FileModelVersionStore,
    InMemoryModelVersionStore,
    CompositeModelVersionStore,
)
from .topology import StaticTopology, detect_topology
