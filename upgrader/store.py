"""
ModelVersionStore - Persist the model version map across restarts.

The store owns the backing storage for the mapping of model key to
version string. The upgrade service owns the in-memory map during a run
and calls save exactly once, after the run.

Storage backends:
- In-memory (for testing and embedding)
- File-based (JSON document, written atomically)
- Composite (node-local models in one store, cluster-shared in another)
"""

import json
import logging
import os
import tempfile
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Iterable, Optional

from upgrader.errors import StoreError

logger = logging.getLogger(__name__)


class ModelVersionStore(ABC):
    """
    Abstract base class for model version storage.

    Implementations must provide:
    - start()/stop() lifecycle
    - load(): the stored mapping (empty when nothing is stored yet)
    - save(mapping): replace the stored mapping

    Both load and save raise StoreError on failure.
    """

    def start(self) -> None:
        """Acquire any resources needed by load/save."""
        pass

    def stop(self) -> None:
        """Release resources acquired by start."""
        pass

    @abstractmethod
    def load(self) -> dict[str, str]:
        """
        Load the stored model versions.

        Returns:
            Mapping of model key to version string

        Raises:
            StoreError: If backing storage is corrupt or unreadable
        """
        pass

    @abstractmethod
    def save(self, versions: dict[str, str]) -> None:
        """
        Persist the model versions.

        Args:
            versions: Mapping of model key to version string

        Raises:
            StoreError: If the write fails
        """
        pass


def _validate_versions(data: object, source: str) -> dict[str, str]:
    """Check that loaded data is a str -> str mapping."""
    if not isinstance(data, dict):
        raise StoreError(f"Model versions in {source} must be a mapping, got {type(data).__name__}")
    for key, value in data.items():
        if not isinstance(key, str) or not isinstance(value, str):
            raise StoreError(f"Invalid model version entry in {source}: {key!r}: {value!r}")
        if not value.strip():
            raise StoreError(f"Empty version for model {key!r} in {source}")
    return dict(data)


class InMemoryModelVersionStore(ModelVersionStore):
    """
    In-memory implementation of ModelVersionStore for testing.

    Counts load/save calls so callers can assert the store contract.
    """

    def __init__(self, versions: Optional[dict[str, str]] = None):
        self._versions: dict[str, str] = dict(versions or {})
        self.started = False
        self.load_count = 0
        self.save_count = 0

    def start(self) -> None:
        self.started = True

    def stop(self) -> None:
        self.started = False

    def load(self) -> dict[str, str]:
        self.load_count += 1
        return dict(self._versions)

    def save(self, versions: dict[str, str]) -> None:
        self.save_count += 1
        self._versions = _validate_versions(dict(versions), "in-memory store")

    @property
    def versions(self) -> dict[str, str]:
        """Copy of the currently stored mapping."""
        return dict(self._versions)


class FileModelVersionStore(ModelVersionStore):
    """
    File-based implementation of ModelVersionStore.

    Stores the mapping as a JSON document:
        {
          "models": {
            "config": "1.2",
            "search-index": "2.0"
          }
        }

    A missing file loads as an empty mapping. Writes go to a temporary file
    in the same directory which then replaces the target, so a crash during
    save never leaves a half-written document behind.
    """

    def __init__(self, path: Path | str):
        self._path = Path(path)
        self._existed_at_start: Optional[bool] = None

    @property
    def path(self) -> Path:
        return self._path

    @property
    def existed_at_start(self) -> bool:
        """Whether the backing file existed when the store was started."""
        if self._existed_at_start is None:
            return self._path.exists()
        return self._existed_at_start

    def start(self) -> None:
        self._existed_at_start = self._path.exists()
        logger.debug(f"Model version store: {self._path} (exists={self._existed_at_start})")

    def stop(self) -> None:
        self._existed_at_start = None

    def load(self) -> dict[str, str]:
        if not self._path.exists():
            return {}

        try:
            with open(self._path, encoding="utf-8") as f:
                data = json.load(f)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise StoreError(f"Corrupt model version file {self._path}: {e}") from e
        except OSError as e:
            raise StoreError(f"Cannot read model version file {self._path}: {e}") from e

        if not isinstance(data, dict) or "models" not in data:
            raise StoreError(f"Model version file {self._path} has no 'models' mapping")
        return _validate_versions(data["models"], str(self._path))

    def save(self, versions: dict[str, str]) -> None:
        document = {"models": dict(sorted(versions.items()))}
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                prefix=f".{self._path.name}.", suffix=".tmp", dir=self._path.parent
            )
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    json.dump(document, f, indent=2)
                    f.write("\n")
                os.replace(tmp_name, self._path)
            except BaseException:
                Path(tmp_name).unlink(missing_ok=True)
                raise
        except OSError as e:
            raise StoreError(f"Cannot write model version file {self._path}: {e}") from e


class CompositeModelVersionStore(ModelVersionStore):
    """
    Splits model versions between a node-local and a cluster-shared store.

    Local models (data private to this node) are kept in ``local``; every
    other model is kept in ``cluster``. load() returns the union, with the
    local store winning on conflicting keys.
    """

    def __init__(
        self,
        local: ModelVersionStore,
        cluster: ModelVersionStore,
        local_models: Iterable[str],
    ):
        self._local = local
        self._cluster = cluster
        self._local_models = frozenset(local_models)

    @property
    def local(self) -> ModelVersionStore:
        return self._local

    @property
    def cluster(self) -> ModelVersionStore:
        return self._cluster

    def start(self) -> None:
        self._cluster.start()
        self._local.start()

    def stop(self) -> None:
        try:
            self._local.stop()
        finally:
            self._cluster.stop()

    def load(self) -> dict[str, str]:
        versions = self._cluster.load()
        versions.update(self._local.load())
        return versions

    def save(self, versions: dict[str, str]) -> None:
        local = {k: v for k, v in versions.items() if k in self._local_models}
        cluster = {k: v for k, v in versions.items() if k not in self._local_models}
        self._cluster.save(cluster)
        self._local.save(local)
