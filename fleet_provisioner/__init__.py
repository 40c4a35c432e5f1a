"""Provision a load-balanced auto scaling fleet from a single EC2 instance."""

from .config import RunConfig, parse_duration
from .errors import (
    CardinalityError,
    NameValidationError,
    ProvisioningError,
    StageError,
    StageTimeoutError,
    TerminalStateError,
    TransientCallError,
)
from .names import DerivedNames, derive_names, validate_name, validate_names
from .pipeline import ProvisioningPipeline
from .poller import PollStatus, StagePoller
from .resources import ProvisionedResourceSet, ProvisioningResult
from .rollback import RollbackManager, RollbackReport

__version__ = "1.0.0"

__all__ = [
    "CardinalityError",
    "DerivedNames",
    "NameValidationError",
    "PollStatus",
    "ProvisionedResourceSet",
    "ProvisioningError",
    "ProvisioningPipeline",
    "ProvisioningResult",
    "RollbackManager",
    "RollbackReport",
    "RunConfig",
    "StageError",
    "StagePoller",
    "StageTimeoutError",
    "TerminalStateError",
    "TransientCallError",
    "derive_names",
    "parse_duration",
    "validate_name",
    "validate_names",
]
