import logging
import os

import pytest

from upgrader.checkpoint import Checkpoint
from upgrader.config import ENV_OVERRIDES, UpgraderConfig
from upgrader.registry import UpgradeRegistry
from upgrader.store import InMemoryModelVersionStore


class RecordingCheckpoint(Checkpoint):
    """Checkpoint that records its calls into a shared event list."""

    def __init__(self, model, events, fail_on=()):
        super().__init__(model)
        self.events = events
        self.fail_on = set(fail_on)

    def _record(self, call, *args):
        self.events.append((call, self.model) + args)
        if call in self.fail_on:
            raise RuntimeError(f"{call} failed for {self.model}")

    def begin(self, from_version):
        self._record("begin", from_version)

    def commit(self):
        self._record("commit")

    def rollback(self):
        self._record("rollback")

    def end(self):
        self._record("end")


@pytest.fixture
def events():
    """Shared list recording checkpoint calls and step actions in order."""
    return []


@pytest.fixture
def make_checkpoint(events):
    """Factory for checkpoint factories: make_checkpoint("m", fail_on={"commit"})."""
    def factory(model, fail_on=()):
        return lambda: RecordingCheckpoint(model, events, fail_on)
    return factory


@pytest.fixture
def make_action(events):
    """Factory for step actions that record themselves, optionally failing."""
    def factory(label, fail=False):
        def action():
            events.append(("apply", label))
            if fail:
                raise RuntimeError(f"step {label} failed")
        return action
    return factory


@pytest.fixture
def registry():
    return UpgradeRegistry()


@pytest.fixture
def memory_store():
    return InMemoryModelVersionStore()


@pytest.fixture
def test_config(tmp_path):
    return UpgraderConfig(
        data_dir=str(tmp_path / "data"),
        log_level="ERROR",
        log_format="pretty",
    )


@pytest.fixture(autouse=True)
def clean_upgrader_env(monkeypatch):
    """Hide UPGRADER_* overrides; drop any a dotenv file set during the test."""
    for name in ENV_OVERRIDES:
        monkeypatch.delenv(name, raising=False)
    yield
    for name in ENV_OVERRIDES:
        os.environ.pop(name, None)


@pytest.fixture(autouse=True)
def reset_upgrader_logger():
    """setup_logging() attaches handlers; drop them between tests."""
    yield
    logger = logging.getLogger("upgrader")
    logger.handlers = []
    logger.setLevel(logging.NOTSET)
