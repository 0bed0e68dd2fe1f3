"""
UpgradeRegistry - Hold known upgrade steps and compute upgrade plans.

The registry provides:
- Explicit registration of models, steps and checkpoint factories
- Plugin registration via entry points or importable modules
- Plan computation from stored model versions
- Checkpoint preparation for a plan (one per model)
- Metadata lookups for steps and checkpoints

Steps of one model must form a chain: at most one step per
(model, from_version). Walking the chain from a stored version is then
deterministic, and a stored version that neither has a step nor is the
latest known version is a broken chain, reported as a PlanningError.
"""

import importlib
import logging
from importlib.metadata import entry_points
from typing import Any, Callable, Iterable, Optional

from upgrader.checkpoint import Checkpoint, NoOpCheckpoint
from upgrader.errors import PlanningError, RegistrationError
from upgrader.schemas import ModelBounds, ModelDef, UpgradePlan, UpgradeStep
from upgrader.versions import DEFAULT_VERSION, compare_versions, max_version, version_key

logger = logging.getLogger(__name__)

DEFAULT_ENTRY_POINT_GROUP = "upgrader.steps"

CheckpointFactory = Callable[[], Checkpoint]


class UpgradeRegistry:
    """
    Registry of models, upgrade steps and checkpoints.

    Models keep their declaration order, which is the default cross-model
    order of a plan. A model referenced by a step before it was declared is
    declared implicitly as cluster-shared; a later explicit register_model
    call may still refine it.

    Usage:
        registry = UpgradeRegistry()
        registry.register_model("config", local=True)

        @registry.step("config", "1.0", "1.1", description="Split settings")
        def split_settings():
            ...

        registry.register_checkpoint(
            "config", lambda: DirectoryCheckpoint("config", config_dir)
        )

        plan = registry.plan({"config": "1.0"})
    """

    def __init__(self) -> None:
        self._models: dict[str, ModelDef] = {}
        self._implicit: set[str] = set()
        # Keyed by (model, version_key(from_version)) so "1" and "1.0" match
        self._steps: dict[tuple[str, tuple], UpgradeStep] = {}
        self._checkpoints: dict[str, CheckpointFactory] = {}

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    def register_model(self, key: str, local: bool = False, description: str = "") -> ModelDef:
        """
        Declare a model.

        Raises:
            RegistrationError: If the model was already declared explicitly
        """
        if key in self._models and key not in self._implicit:
            raise RegistrationError(f"Model already registered: {key}")
        try:
            model = ModelDef(key=key, local=local, description=description)
        except ValueError as e:
            raise RegistrationError(str(e)) from e

        self._models[key] = model
        self._implicit.discard(key)
        return model

    def register_step(
        self,
        model: str,
        from_version: str,
        to_version: str,
        action: Callable[[], Any],
        description: str = "",
        depends_on: Iterable[tuple[str, str]] = (),
    ) -> UpgradeStep:
        """
        Register an upgrade step.

        Args:
            model: Model key the step migrates
            from_version: Version the step upgrades from
            to_version: Version the step upgrades to
            action: Zero-argument callable performing the migration
            description: Human-readable summary
            depends_on: (model, version) pairs to reach before this step

        Returns:
            The registered UpgradeStep

        Raises:
            RegistrationError: If a step from this version is already
                registered for the model, or the step is invalid
        """
        try:
            chain_key = (model, version_key(from_version))
        except ValueError as e:
            raise RegistrationError(f"Invalid from_version for '{model}': {e}") from e
        if chain_key in self._steps:
            existing = self._steps[chain_key]
            raise RegistrationError(
                f"Duplicate step for '{model}' from {from_version}: "
                f"already registered to {existing.to_version}"
            )

        try:
            step = UpgradeStep(
                model=model,
                from_version=from_version,
                to_version=to_version,
                action=action,
                description=description,
                depends_on=tuple((m, v) for m, v in depends_on),
            )
            implicit = None if model in self._models else ModelDef(key=model)
        except ValueError as e:
            raise RegistrationError(str(e)) from e

        if implicit is not None:
            self._models[model] = implicit
            self._implicit.add(model)

        self._steps[chain_key] = step
        return step

    def step(
        self,
        model: str,
        from_version: str,
        to_version: str,
        description: str = "",
        depends_on: Iterable[tuple[str, str]] = (),
    ) -> Callable[[Callable[[], Any]], Callable[[], Any]]:
        """Decorator form of register_step; returns the function unchanged."""
        def decorator(func: Callable[[], Any]) -> Callable[[], Any]:
            self.register_step(
                model,
                from_version,
                to_version,
                func,
                description=description or (func.__doc__ or "").strip().split("\n")[0],
                depends_on=depends_on,
            )
            return func
        return decorator

    def register_checkpoint(self, model: str, factory: CheckpointFactory) -> None:
        """
        Register the checkpoint factory for a model.

        The factory is called once per run in prepare() and must return a
        Checkpoint whose ``model`` is the given key.

        Raises:
            RegistrationError: If the model already has a checkpoint factory
        """
        if model in self._checkpoints:
            raise RegistrationError(f"Checkpoint already registered for model: {model}")
        self._checkpoints[model] = factory

    def load_entry_points(self, group: str = DEFAULT_ENTRY_POINT_GROUP) -> list[str]:
        """
        Register steps from installed plugins.

        Every entry point in ``group`` must resolve to a callable taking
        the registry. Entry points are loaded in name order so declaration
        order does not depend on installation order.

        Returns:
            Names of the loaded entry points
        """
        loaded = []
        eps = entry_points()
        for ep in sorted(eps.select(group=group), key=lambda e: e.name):
            try:
                register = ep.load()
            except Exception as e:
                raise RegistrationError(f"Cannot load upgrade plugin '{ep.name}' ({ep.value}): {e}") from e
            logger.debug(f"Registering upgrades from plugin: {ep.name} ({ep.value})")
            register(self)
            loaded.append(ep.name)
        return loaded

    def load_modules(self, module_names: Iterable[str]) -> None:
        """
        Register steps from importable modules.

        Each module must expose ``register(registry)``.
        """
        for name in module_names:
            try:
                module = importlib.import_module(name)
            except ImportError as e:
                raise RegistrationError(f"Cannot import upgrade module '{name}': {e}") from e
            register = getattr(module, "register", None)
            if not callable(register):
                raise RegistrationError(f"Upgrade module '{name}' has no register(registry) function")
            logger.debug(f"Registering upgrades from module: {name}")
            register(self)

    # ------------------------------------------------------------------
    # Inspection
    # ------------------------------------------------------------------

    def models(self) -> list[ModelDef]:
        """Registered models in declaration order."""
        return list(self._models.values())

    def get_model(self, key: str) -> Optional[ModelDef]:
        return self._models.get(key)

    def steps(self, model: Optional[str] = None) -> list[UpgradeStep]:
        """Registered steps ordered by model declaration, then version."""
        keys = [model] if model is not None else list(self._models)
        result = []
        for key in keys:
            result.extend(self._chain_steps(key))
        return result

    def latest_version(self, model: str) -> str:
        """Highest version any step reaches for the model (default 1.0)."""
        return max_version(s.to_version for s in self._chain_steps(model))

    def latest_versions(self) -> dict[str, str]:
        return {key: self.latest_version(key) for key in self._models}

    def get_local_models(self) -> set[str]:
        """Keys of models whose data is node-local rather than cluster-shared."""
        return {key for key, model in self._models.items() if model.local}

    def describe(self, item: UpgradeStep | Checkpoint) -> ModelBounds:
        """
        Return the declaring model and version bounds of a step or checkpoint.

        Raises:
            TypeError: If item is neither an UpgradeStep nor a Checkpoint
        """
        if isinstance(item, UpgradeStep):
            return ModelBounds(item.model, item.from_version, item.to_version)
        if isinstance(item, Checkpoint):
            return ModelBounds(item.model)
        raise TypeError(f"Cannot describe {type(item).__name__}")

    def _chain_steps(self, model: str) -> list[UpgradeStep]:
        steps = [s for (m, _), s in self._steps.items() if m == model]
        return sorted(steps, key=lambda s: version_key(s.from_version))

    # ------------------------------------------------------------------
    # Planning
    # ------------------------------------------------------------------

    def plan(self, current_versions: dict[str, str]) -> UpgradePlan:
        """
        Compute the upgrade plan for the given stored versions.

        For every known model, starting from its current version (default
        1.0 when absent), walks the chain of registered steps until no step
        exists for the reached version.

        Args:
            current_versions: Mapping of model key to stored version

        Returns:
            The ordered UpgradePlan (empty when everything is up to date)

        Raises:
            PlanningError: On a broken chain, an empty stored version, one newer than
                the latest known one, or unsatisfiable step dependencies
        """
        chains: dict[str, list[UpgradeStep]] = {}
        for key in self._models:
            current = current_versions.get(key, DEFAULT_VERSION)
            latest = self.latest_version(key)

            try:
                version_key(current)
            except ValueError as e:
                raise PlanningError(
                    f"Model '{key}' has an invalid stored version {current!r}: {e}",
                    model=key,
                ) from e

            if compare_versions(current, latest) > 0:
                raise PlanningError(
                    f"Model '{key}' is at version {current} but the latest known "
                    f"version is {latest}; downgrades are not supported",
                    model=key,
                )

            chain = []
            version = current
            while (key, version_key(version)) in self._steps:
                step = self._steps[(key, version_key(version))]
                chain.append(step)
                version = step.to_version

            if compare_versions(version, latest) != 0:
                raise PlanningError(
                    f"Cannot upgrade model '{key}' from version {current}: "
                    f"no step from {version} and the latest known version is {latest}",
                    model=key,
                )
            if chain:
                chains[key] = chain

        unknown = sorted(set(current_versions) - set(self._models))
        if unknown:
            logger.debug(f"Stored versions for unregistered models left untouched: {unknown}")

        return UpgradePlan(steps=tuple(self._order(chains, current_versions)))

    def _order(
        self,
        chains: dict[str, list[UpgradeStep]],
        current_versions: dict[str, str],
    ) -> list[UpgradeStep]:
        """
        Order planned steps.

        Only the head of each model's chain can run next. Among the heads
        whose dependencies are already placed, the model declared first
        wins, which keeps each model's steps together unless a dependency
        forces another model's step in between.
        """
        requires: dict[UpgradeStep, list[UpgradeStep]] = {}
        for chain in chains.values():
            for step in chain:
                requires[step] = [
                    self._dependency_step(step, dep_model, dep_version, chains, current_versions)
                    for dep_model, dep_version in step.depends_on
                ]
                requires[step] = [s for s in requires[step] if s is not None]

        pending = {key: list(chain) for key, chain in chains.items()}
        placed: set[UpgradeStep] = set()
        ordered: list[UpgradeStep] = []
        while pending:
            ready = None
            for key in self._models:
                chain = pending.get(key)
                if chain and all(dep in placed for dep in requires[chain[0]]):
                    ready = key
                    break
            if ready is None:
                blocked = ", ".join(pending[key][0].detail for key in pending)
                raise PlanningError(f"Cyclic upgrade step dependencies between: {blocked}")

            step = pending[ready].pop(0)
            if not pending[ready]:
                del pending[ready]
            placed.add(step)
            ordered.append(step)
        return ordered

    def _dependency_step(
        self,
        step: UpgradeStep,
        dep_model: str,
        dep_version: str,
        chains: dict[str, list[UpgradeStep]],
        current_versions: dict[str, str],
    ) -> Optional[UpgradeStep]:
        """Planned step that brings dep_model to dep_version, None if already there."""
        if dep_model not in self._models:
            raise PlanningError(
                f"Step {step.detail} depends on unknown model '{dep_model}'",
                model=step.model,
            )
        current = current_versions.get(dep_model, DEFAULT_VERSION)
        if compare_versions(current, dep_version) >= 0:
            return None
        for candidate in chains.get(dep_model, []):
            if compare_versions(candidate.to_version, dep_version) >= 0:
                return candidate
        raise PlanningError(
            f"Step {step.detail} depends on '{dep_model}' {dep_version}, "
            f"which no registered step reaches",
            model=step.model,
        )

    def prepare(self, plan: UpgradePlan) -> list[Checkpoint]:
        """
        Create one checkpoint per distinct model in the plan.

        Checkpoints keep the order in which their model first appears in
        the plan. Models without a registered factory get a NoOpCheckpoint.
        """
        checkpoints = []
        for model in plan.models:
            factory = self._checkpoints.get(model)
            if factory is None:
                logger.debug(f"No checkpoint registered for {model}, using no-op")
                checkpoints.append(NoOpCheckpoint(model))
                continue

            checkpoint = factory()
            if checkpoint.model != model:
                raise RegistrationError(
                    f"Checkpoint factory for '{model}' returned a checkpoint for '{checkpoint.model}'"
                )
            checkpoints.append(checkpoint)
        return checkpoints
