"""
Upgrade step schemas - registered migrations and the plan built from them.

An UpgradeStep bridges one version of a model to the next. Steps for one
model form a chain: no two steps share the same (model, from_version), so
walking the chain from any stored version is deterministic.

An UpgradePlan is the ordered selection of steps that brings every model
from its stored version to its latest known version.
"""

from dataclasses import dataclass, field
from typing import Any, Callable, Iterator

from upgrader.versions import compare_versions


@dataclass(frozen=True)
class UpgradeStep:
    """
    An immutable registered upgrade step.

    Attributes:
        model: Key of the model this step migrates
        from_version: Version the model must be at for the step to apply
        to_version: Version the model is at after the step succeeds
        action: Zero-argument callable performing the migration. Any
            exception it raises is a failure.
        description: Human-readable summary for logs and listings
        depends_on: (model, version) pairs that must be reached before
            this step runs
    """
    model: str
    from_version: str
    to_version: str
    action: Callable[[], Any] = field(compare=False, repr=False)
    description: str = ""
    depends_on: tuple[tuple[str, str], ...] = ()

    def __post_init__(self):
        if compare_versions(self.from_version, self.to_version) >= 0:
            raise ValueError(
                f"Step for '{self.model}' must move forward: "
                f"{self.from_version} -> {self.to_version}"
            )
        if not callable(self.action):
            raise ValueError(f"Step action for '{self.model}' is not callable")

    @property
    def detail(self) -> str:
        return f"{self.model} from {self.from_version} to {self.to_version}"

    def apply(self) -> None:
        """Run the step's action."""
        self.action()

    def to_dict(self) -> dict[str, Any]:
        """Serialize to dictionary for JSON output (the action is omitted)."""
        result: dict[str, Any] = {
            "model": self.model,
            "from_version": self.from_version,
            "to_version": self.to_version,
        }
        if self.description:
            result["description"] = self.description
        if self.depends_on:
            result["depends_on"] = [
                {"model": model, "version": version}
                for model, version in self.depends_on
            ]
        return result


@dataclass(frozen=True)
class UpgradePlan:
    """
    Ordered sequence of upgrade steps.

    Steps of one model appear in increasing version order. Without
    dependency metadata all steps of a model are contiguous and models
    follow registry declaration order.
    """
    steps: tuple[UpgradeStep, ...] = ()

    def __iter__(self) -> Iterator[UpgradeStep]:
        return iter(self.steps)

    def __len__(self) -> int:
        return len(self.steps)

    def __bool__(self) -> bool:
        return bool(self.steps)

    @property
    def models(self) -> list[str]:
        """Distinct models in first-occurrence order."""
        seen: dict[str, None] = {}
        for step in self.steps:
            seen.setdefault(step.model, None)
        return list(seen)

    def target_versions(self) -> dict[str, str]:
        """Final version each planned model reaches."""
        targets: dict[str, str] = {}
        for step in self.steps:
            targets[step.model] = step.to_version
        return targets

    def to_dict(self) -> dict[str, Any]:
        """Serialize to dictionary for JSON output."""
        return {
            "models": self.models,
            "steps": [step.to_dict() for step in self.steps],
        }
