"""
Checkpoints - recoverable brackets around all upgrade steps of one model.

A checkpoint is created per model in the plan and goes through:
    begin(from_version) -> commit() -> end()
or, if anything fatal happens anywhere in the run:
    begin(from_version) -> rollback()

Only begin/commit failures are fatal. rollback/end failures are logged by
the service and do not stop it from handling the remaining checkpoints.
"""

import logging
import shutil
import uuid
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)


class Checkpoint(ABC):
    """
    Abstract base class for checkpoints.

    The declaring model is an explicit attribute set at construction, so
    the registry can describe a checkpoint without inspecting its type.
    """

    def __init__(self, model: str):
        self.model = model

    @abstractmethod
    def begin(self, from_version: str) -> None:
        """
        Prepare to upgrade the model from its current version.

        Args:
            from_version: The model's version before the run started
        """
        pass

    @abstractmethod
    def commit(self) -> None:
        """Make the upgrade of this model permanent."""
        pass

    @abstractmethod
    def rollback(self) -> None:
        """Restore the model to its state at begin."""
        pass

    @abstractmethod
    def end(self) -> None:
        """Release anything held since begin, after a successful commit."""
        pass

    def __repr__(self) -> str:
        return f"{type(self).__name__}(model={self.model!r})"


class NoOpCheckpoint(Checkpoint):
    """
    Checkpoint for models that registered none.

    Nothing is snapshotted, so a rollback cannot undo the model's steps; the
    version map is still left unchanged in the store.
    """

    def __init__(self, model: str):
        super().__init__(model)
        self.from_version: Optional[str] = None

    def begin(self, from_version: str) -> None:
        self.from_version = from_version

    def commit(self) -> None:
        pass

    def rollback(self) -> None:
        pass

    def end(self) -> None:
        pass


class DirectoryCheckpoint(Checkpoint):
    """
    Checkpoint that snapshots a data directory.

    begin() copies the directory to a sibling backup directory, rollback()
    restores the directory from that backup, and end() removes the backup.
    A directory that does not exist at begin is removed again on rollback.

    Example:
        registry.register_checkpoint(
            "search-index",
            lambda: DirectoryCheckpoint("search-index", data_dir / "index"),
        )
    """

    def __init__(self, model: str, path: Path | str, backup_root: Path | str | None = None):
        super().__init__(model)
        self.path = Path(path)
        self._backup_root = Path(backup_root) if backup_root else self.path.parent
        self._backup: Optional[Path] = None
        self._existed = False

    @property
    def backup_path(self) -> Optional[Path]:
        return self._backup

    def begin(self, from_version: str) -> None:
        self._existed = self.path.exists()
        self._backup = self._backup_root / (
            f".{self.path.name}.{from_version}.{uuid.uuid4().hex[:8]}.bak"
        )
        if self._existed:
            logger.debug(f"Backing up {self.path} to {self._backup}")
            shutil.copytree(self.path, self._backup, symlinks=True)

    def commit(self) -> None:
        if self._backup is None:
            raise RuntimeError(f"Checkpoint for '{self.model}' was never begun")

    def rollback(self) -> None:
        if self._backup is None:
            return

        if self.path.exists():
            shutil.rmtree(self.path)
        if self._existed:
            logger.debug(f"Restoring {self.path} from {self._backup}")
            shutil.copytree(self._backup, self.path, symlinks=True)
            shutil.rmtree(self._backup)
        self._backup = None

    def end(self) -> None:
        if self._backup is not None and self._backup.exists():
            shutil.rmtree(self._backup)
        self._backup = None
