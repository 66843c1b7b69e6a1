"""
Error taxonomy for the vault engine.

Every failure carries an upper-snake ``reason`` code so callers can react
to the cause without parsing messages. A raised error always means the
operation was rolled back in full.
"""

from typing import Optional


class VaultError(Exception):
    """Base class for all vault errors."""

    def __init__(self, reason: str, message: Optional[str] = None):
        self.reason = reason
        self.message = message or reason
        super().__init__(f"{reason}: {self.message}")


class ValidationError(VaultError):
    """Malformed input: amounts, durations, addresses, array lengths."""
    pass


class StateError(VaultError):
    """The operation is not valid in the current lock or epoch state."""
    pass


class AuthorizationError(VaultError):
    """The caller does not hold the role the operation requires."""
    pass


class ResourceError(VaultError):
    """Insufficient balance or allowance for a transfer."""
    pass


class ReentrancyError(VaultError):
    """A guarded operation was entered while another one was in progress."""

    def __init__(self, message: Optional[str] = None):
        super().__init__("REENTRANT_CALL", message or "nested call into a guarded operation")
