"""Error taxonomy for the AML oracle registry.

Every failure inside a registry operation raises a RegistryError subclass.
Each carries a stable ``code`` string so callers (the service facade, the
CLI, client applications) can branch on it without parsing messages.

All errors are terminal for the current operation: the service restores
the pre-call snapshot and emits no audit event.
"""

from __future__ import annotations

from typing import Any


class RegistryError(ValueError):
    """Base class for all registry failures."""

    code = "REGISTRY_ERROR"

    def __init__(self, message: str, **details: Any) -> None:
        super().__init__(message)
        self.message = message
        self.details = details

    def as_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {"code": self.code, "message": self.message}
        if self.details:
            d["details"] = dict(self.details)
        return d


class Unauthorized(RegistryError):
    """Caller lacks the role the operation requires."""
    code = "UNAUTHORIZED"


class InvalidClient(RegistryError):
    """The null identity was passed where a real identity is required."""
    code = "INVALID_CLIENT"


class InvalidScore(RegistryError):
    """Compliance score outside [0, 99]."""
    code = "INVALID_SCORE"


class InvalidAmount(RegistryError):
    """Zero or negative amount, or a negative fee."""
    code = "INVALID_AMOUNT"


class InsufficientBalance(RegistryError):
    """Escrow or external balance is smaller than the requested amount."""
    code = "INSUFFICIENT_BALANCE"


class FeeTooHigh(RegistryError):
    """Required fee exceeds the caller's stated ceiling."""
    code = "FEE_TOO_HIGH"


class NotFound(RegistryError):
    """No status record (or role member) for the requested key."""
    code = "NOT_FOUND"


class NothingToRecover(RegistryError):
    """Recoverable stray balance is zero."""
    code = "NOTHING_TO_RECOVER"


class InvalidAssessment(RegistryError):
    """Assessment identifier is not a byte string of at most 32 bytes."""
    code = "INVALID_ASSESSMENT"


class UnsupportedOperation(RegistryError):
    """Operation is not available in this deployment variant."""
    code = "UNSUPPORTED_OPERATION"
