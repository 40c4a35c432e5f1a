"""Exceptions raised while provisioning a fleet."""

from typing import Optional


class ProvisioningError(Exception):
    """Base class for every fleet provisioning failure."""


class NameValidationError(ProvisioningError):
    """A derived resource name violates the AWS naming constraints."""

    def __init__(self, role: str, name: str, reason: str) -> None:
        super().__init__(f"{role} name will be {name!r}, {reason}")
        self.role = role
        self.name = name
        self.reason = reason


class TransientCallError(ProvisioningError):
    """An AWS call failed for reasons unrelated to the resource state."""

    def __init__(self, operation: str, cause: Exception) -> None:
        super().__init__(f"{operation} failed: {cause}")
        self.operation = operation
        self.cause = cause

    @property
    def error_code(self) -> Optional[str]:
        """AWS error code of the wrapped ClientError, if there is one"""
        response = getattr(self.cause, "response", None)
        if not response:
            return None
        return response.get("Error", {}).get("Code")


class TerminalStateError(ProvisioningError):
    """A resource reached a state it will never recover from."""

    def __init__(self, resource: str, state: object) -> None:
        super().__init__(f"{resource} ended up in invalid state {state!r}")
        self.resource = resource
        self.state = state


class StageTimeoutError(ProvisioningError, TimeoutError):
    """A resource stayed pending until the deadline."""

    def __init__(self, resource: str, timeout: float) -> None:
        super().__init__(f"{resource} has not become ready within {timeout:g}s")
        self.resource = resource
        self.timeout = timeout


class CardinalityError(ProvisioningError):
    """A describe call returned other than exactly one match."""

    def __init__(self, kind: str, key: str, count: int) -> None:
        super().__init__(f"received wrong number {count} != 1 of {kind} for {key}")
        self.kind = kind
        self.key = key
        self.count = count


class StageError(ProvisioningError):
    """A pipeline stage failed; wraps the underlying cause."""

    def __init__(self, stage: str, resource: Optional[str], cause: Exception) -> None:
        target = f" ({resource})" if resource else ""
        super().__init__(f"stage {stage!r}{target} failed: {cause}")
        self.stage = stage
        self.resource = resource
        self.cause = cause
        self.rollback_report = None
