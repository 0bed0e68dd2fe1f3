"""
Error classes for upgrader.

The taxonomy follows when an error can happen and what it does to a run:
- RegistrationError: Invalid step/model/checkpoint registration
- PlanningError: Broken version chain, fatal before any checkpoint work
- StoreError: Model version store could not be read or written, fatal
- UpgradeFailure (BeginError, ApplyError, CommitError): Fatal, trigger
  global rollback and are re-raised to the caller afterwards
- CleanupError (RollbackError, EndError): Non-fatal, logged per checkpoint
  and never raised out of the service

Error handling contract:
- UpgradeReport is success-only
- Errors are exceptions, not values
"""

from typing import Optional, TYPE_CHECKING

if TYPE_CHECKING:
    from upgrader.schemas import UpgradeStep


class UpgraderError(Exception):
    """Base exception for upgrader."""
    pass


class ConfigError(UpgraderError):
    """Configuration validation error."""
    pass


class RegistrationError(UpgraderError):
    """Raised when a model, step or checkpoint cannot be registered."""
    pass


class PlanningError(UpgraderError):
    """
    Raised when an upgrade plan cannot be computed.

    Examples:
    - A model's stored version has no step and is not the latest version
    - A model's stored version is newer than anything this build knows
    - A step depends on a model version that will never be reached
    - Step dependencies form a cycle
    """

    def __init__(self, message: str, model: Optional[str] = None):
        self.model = model
        super().__init__(message)


class StoreError(UpgraderError):
    """Raised when the model version store cannot load or save."""
    pass


class UpgradeFailure(UpgraderError):
    """
    Fatal failure during the transactional upgrade path.

    Raised after best-effort rollback of every begun checkpoint has
    completed. The triggering exception is available as ``cause`` and
    as ``__cause__``.
    """

    phase = "upgrade"

    def __init__(self, model: str, message: str, cause: Optional[BaseException] = None):
        self.model = model
        self.cause = cause
        super().__init__(f"{self.phase.capitalize()} of '{model}' failed: {message}")


class BeginError(UpgradeFailure):
    """A checkpoint could not begin."""
    phase = "begin"


class ApplyError(UpgradeFailure):
    """An upgrade step action failed."""
    phase = "apply"

    def __init__(
        self,
        step: "UpgradeStep",
        message: str,
        cause: Optional[BaseException] = None,
    ):
        self.step = step
        super().__init__(step.model, message, cause)


class CommitError(UpgradeFailure):
    """A checkpoint could not commit."""
    phase = "commit"


class CleanupError(UpgraderError):
    """
    Non-fatal failure while rolling back or cleaning up a checkpoint.

    These are created for logging only. One broken checkpoint must not
    block rollback or cleanup of the others.
    """

    phase = "cleanup"

    def __init__(self, model: str, cause: BaseException):
        self.model = model
        self.cause = cause
        super().__init__(f"Problem during {self.phase} of '{model}': {cause}")


class RollbackError(CleanupError):
    """A checkpoint could not be rolled back."""
    phase = "rollback"


class EndError(CleanupError):
    """A checkpoint could not be cleaned up after commit."""
    phase = "end"
