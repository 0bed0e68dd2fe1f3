"""
UpgradeService - Bring stored models up to the versions this build needs.

The service implements, on every start:
1. Start the ModelVersionStore and load the version map
2. Ask the UpgradeRegistry for a plan (empty plan: nothing else happens)
3. Fresh node: take an inventory (record target versions, run nothing)
   Existing node: run the transactional upgrade
4. Save the version map back to the store, once

Transactional upgrade, with one checkpoint per model in the plan:
    Begin -> Apply -> Commit -> End
Any failure while beginning, applying or committing rolls back every
checkpoint begun so far, then re-raises. Rollback and end are best effort:
a failing checkpoint is logged and the remaining ones are still handled.

State machine:
    IDLE -> LOADED -> PLANNED -> {INVENTORY_DONE | UPGRADING} -> PERSISTED
with FAILED on any fatal error, and STOPPED after stop().
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional

from upgrader.checkpoint import Checkpoint
from upgrader.errors import (
    ApplyError,
    BeginError,
    CleanupError,
    CommitError,
    EndError,
    RollbackError,
)
from upgrader.registry import UpgradeRegistry
from upgrader.schemas import (
    CheckpointOutcome,
    CheckpointStatus,
    UpgradeMode,
    UpgradePhase,
    UpgradePlan,
    UpgradeReport,
    UpgradeState,
    UpgradeStep,
)
from upgrader.store import ModelVersionStore
from upgrader.topology import NodeTopology
from upgrader.versions import DEFAULT_VERSION

logger = logging.getLogger(__name__)

BANNER = (
    "\n- - - - - - - - - - - - - - - - - - - - - - - - -\n"
    "%s"
    "\n- - - - - - - - - - - - - - - - - - - - - - - - -"
)


def _utcnow() -> datetime:
    """Return current UTC time as timezone-aware datetime."""
    return datetime.now(timezone.utc)


@dataclass
class UpgradeRun:
    """
    Mutable context of one start cycle.

    ``versions`` is the single working copy of the version map; phases
    advance it in place. ``original`` is the map as loaded, which is what
    checkpoints begin from.
    """
    plan: UpgradePlan
    original: dict[str, str]
    versions: dict[str, str]
    started_at: datetime
    checkpoints: list[Checkpoint] = field(default_factory=list)
    begun: list[Checkpoint] = field(default_factory=list)
    applied: list[UpgradeStep] = field(default_factory=list)
    skipped: list[UpgradeStep] = field(default_factory=list)
    outcomes: dict[str, CheckpointOutcome] = field(default_factory=dict)

    def begin_version(self, model: str) -> str:
        return self.original.get(model, DEFAULT_VERSION)


class UpgradeService:
    """
    Upgrade orchestrator run once per process start.

    Usage:
        registry = UpgradeRegistry()
        registry.load_entry_points()

        store = FileModelVersionStore(data_dir / "model-versions.json")
        service = UpgradeService(registry, store, detect_topology(store))
        try:
            report = service.start()
        finally:
            service.stop()

    start() either returns an UpgradeReport (every model advanced, or
    nothing to do) or raises. There is no partial success.
    """

    def __init__(
        self,
        registry: UpgradeRegistry,
        store: ModelVersionStore,
        topology: NodeTopology,
    ):
        self._registry = registry
        self._store = store
        self._topology = topology
        self._state = UpgradeState.IDLE
        self._phase: Optional[UpgradePhase] = None

    @property
    def state(self) -> UpgradeState:
        return self._state

    @property
    def phase(self) -> Optional[UpgradePhase]:
        """Sub-phase of the last transactional upgrade, if one ran."""
        return self._phase

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> UpgradeReport:
        """
        Run one upgrade cycle.

        Returns:
            UpgradeReport describing what happened

        Raises:
            StoreError: If versions cannot be loaded or saved
            PlanningError: If no valid plan exists for the stored versions
            BeginError, ApplyError, CommitError: After rollback completed
        """
        started_at = _utcnow()
        try:
            self._store.start()
            versions = self._store.load()
            self._state = UpgradeState.LOADED

            plan = self._registry.plan(versions)
            self._state = UpgradeState.PLANNED

            run = UpgradeRun(
                plan=plan,
                original=dict(versions),
                versions=dict(versions),
                started_at=started_at,
            )
            if not plan:
                logger.debug("All models are up to date")
                return self._report(run, UpgradeMode.NOOP)

            if self._topology.is_fresh_node():
                self._do_inventory(run)
                self._state = UpgradeState.INVENTORY_DONE
                mode = UpgradeMode.INVENTORY
            else:
                self._state = UpgradeState.UPGRADING
                self._do_upgrade(run)
                mode = UpgradeMode.UPGRADE

            self._store.save(run.versions)
            self._state = UpgradeState.PERSISTED
            return self._report(run, mode)
        except BaseException:
            self._state = UpgradeState.FAILED
            raise

    def stop(self) -> None:
        """Stop the store, whatever the outcome of start()."""
        self._store.stop()
        self._state = UpgradeState.STOPPED

    def pending(self) -> UpgradePlan:
        """
        Load stored versions and compute the plan without applying it.

        The store is started and stopped around the load.
        """
        self._store.start()
        try:
            return self._registry.plan(self._store.load())
        finally:
            self._store.stop()

    # ------------------------------------------------------------------
    # Inventory
    # ------------------------------------------------------------------

    def _do_inventory(self, run: UpgradeRun) -> None:
        """Record every planned step as already applied on a first-time install."""
        admit = None
        if self._topology.is_clustered() and not self._topology.is_fresh_cluster():
            # New node joining an existing cluster; the cluster inventory is already taken
            admit = self._registry.get_local_models()
            logger.info(f"Joining existing cluster, taking local inventory only: {sorted(admit)}")

        for step in run.plan:
            if admit is not None and step.model not in admit:
                run.skipped.append(step)
                continue
            run.versions[step.model] = step.to_version
            run.applied.append(step)

        logger.info(f"Inventory recorded {len(run.applied)} upgrades")

    # ------------------------------------------------------------------
    # Upgrade
    # ------------------------------------------------------------------

    def _do_upgrade(self, run: UpgradeRun) -> None:
        """Apply the plan inside checkpoints, rolling everything back on failure."""
        run.checkpoints = self._registry.prepare(run.plan)

        try:
            logger.info(BANNER, "Begin upgrade")
            self._phase = UpgradePhase.BEGINNING
            for checkpoint in run.checkpoints:
                self._begin(run, checkpoint)

            logger.info(BANNER, "Apply upgrade")
            self._phase = UpgradePhase.APPLYING
            for step in run.plan:
                self._apply(run, step)

            logger.info(BANNER, "Commit upgrade")
            self._phase = UpgradePhase.COMMITTING
            for checkpoint in run.begun:
                self._commit(run, checkpoint)
        except BaseException:
            # Interrupts from actions or checkpoints roll back too
            logger.warning(BANNER, "Rollback upgrade")
            self._phase = UpgradePhase.ROLLING_BACK
            for checkpoint in run.begun:
                self._rollback(checkpoint)
            logger.warning(BANNER, "Upgrade failed")
            raise

        self._phase = UpgradePhase.ENDING
        for checkpoint in run.begun:
            self._end(run, checkpoint)
        logger.info(BANNER, "Upgrade complete")

    def _begin(self, run: UpgradeRun, checkpoint: Checkpoint) -> None:
        model = self._registry.describe(checkpoint).model
        from_version = run.begin_version(model)
        try:
            logger.info(f"Checkpoint {model}")
            checkpoint.begin(from_version)
        except Exception as e:
            logger.warning(f"Problem checkpointing {model}", exc_info=True)
            raise BeginError(model, str(e), cause=e) from e
        run.begun.append(checkpoint)

    def _apply(self, run: UpgradeRun, step: UpgradeStep) -> None:
        detail = str(self._registry.describe(step))
        try:
            logger.info(f"Upgrade {detail}")
            step.apply()
        except Exception as e:
            logger.warning(f"Problem upgrading {detail}", exc_info=True)
            raise ApplyError(step, str(e), cause=e) from e

        # Keep track of which upgrades were applied so far
        run.versions[step.model] = step.to_version
        run.applied.append(step)

    def _commit(self, run: UpgradeRun, checkpoint: Checkpoint) -> None:
        model = self._registry.describe(checkpoint).model
        try:
            logger.info(f"Commit {model}")
            checkpoint.commit()
        except Exception as e:
            logger.warning(f"Problem committing {model}", exc_info=True)
            raise CommitError(model, str(e), cause=e) from e
        run.outcomes[model] = CheckpointOutcome(
            model=model,
            from_version=run.begin_version(model),
            status=CheckpointStatus.COMMITTED,
        )

    def _rollback(self, checkpoint: Checkpoint) -> None:
        model = self._registry.describe(checkpoint).model
        try:
            logger.info(f"Rolling back {model}")
            checkpoint.rollback()
        except Exception as e:
            self._log_cleanup_error(RollbackError(model, e))

    def _end(self, run: UpgradeRun, checkpoint: Checkpoint) -> None:
        model = self._registry.describe(checkpoint).model
        status, error = CheckpointStatus.ENDED, None
        try:
            logger.info(f"Cleaning up {model}")
            checkpoint.end()
        except Exception as e:
            self._log_cleanup_error(EndError(model, e))
            status, error = CheckpointStatus.END_FAILED, str(e)
        run.outcomes[model] = CheckpointOutcome(
            model=model,
            from_version=run.begin_version(model),
            status=status,
            error=error,
        )

    @staticmethod
    def _log_cleanup_error(error: CleanupError) -> None:
        # Continue with the remaining checkpoints
        logger.warning(str(error), exc_info=error.cause)

    # ------------------------------------------------------------------
    # Reporting
    # ------------------------------------------------------------------

    def _report(self, run: UpgradeRun, mode: UpgradeMode) -> UpgradeReport:
        return UpgradeReport(
            mode=mode,
            started_at=run.started_at,
            completed_at=_utcnow(),
            versions_before=run.original,
            versions_after=dict(run.versions),
            steps=tuple(run.applied),
            skipped=tuple(run.skipped),
            checkpoints=tuple(run.outcomes[cp.model] for cp in run.begun if cp.model in run.outcomes),
        )
