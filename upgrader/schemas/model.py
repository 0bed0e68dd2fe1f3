"""
Model schemas - versioned subsystems and their version bounds.

A ModelDef names a logical subsystem whose stored data shape is versioned
independently (a storage schema, an index format, ...). ModelBounds is the
metadata answer the registry gives about a step or checkpoint.
"""

from dataclasses import dataclass
from typing import Any, Optional


@dataclass(frozen=True)
class ModelDef:
    """
    A registered model.

    Attributes:
        key: Stable identifier, unique within a registry
        local: True if the model's data is private to one node rather than
            shared across a cluster
        description: Human-readable description for listings
    """
    key: str
    local: bool = False
    description: str = ""

    def __post_init__(self):
        if not self.key or not self.key.strip():
            raise ValueError("Model key must be a non-empty string")

    def to_dict(self) -> dict[str, Any]:
        """Serialize to dictionary for JSON output."""
        return {
            "key": self.key,
            "local": self.local,
            "description": self.description,
        }


@dataclass(frozen=True)
class ModelBounds:
    """Declaring model and version range of a step or checkpoint."""
    model: str
    from_version: Optional[str] = None
    to_version: Optional[str] = None

    def __str__(self) -> str:
        if self.from_version is None:
            return self.model
        return f"{self.model} from {self.from_version} to {self.to_version}"
