"""
Twin Error Taxonomy
===================

Bounded Context: Failure Types shared by reconciliation and command paths

Hierarchy:
    TwinError
    ├── ValidationError      (value outside configured bounds)
    ├── ParseError           (payload could not be decoded)
    ├── UnknownCommandError  (no handler for component/command)
    ├── CommandFailedError   (handler raised; original cause attached)
    ├── TransportError       (connection / publish failure)
    └── CommandTimeoutError  (no reply before the caller's deadline)

Propagation:
    - Reconciler: ValidationError/ParseError are recovered locally and turned
      into a REJECTED outcome, never raised to the transport.
    - Inbound commands: mapped to a status code by the control plane.
    - Outbound commands: raised to the caller.
"""

from typing import Optional


class TwinError(Exception):
    """Base class for every error raised by the twin engine"""
    pass


class ValidationError(TwinError, ValueError):
    """Raised when a proposed property value violates its bounds"""
    pass


class ParseError(TwinError, ValueError):
    """Raised when a payload cannot be decoded into its typed form"""
    pass


class UnknownCommandError(TwinError):
    """Raised when dispatching a (component, command) with no handler"""

    def __init__(self, component: str, command_name: str, available=()):
        self.component = component
        self.command_name = command_name
        message = f"Command '{component}/{command_name}' not available"
        if available:
            message += f". Available commands: {', '.join(sorted(available))}"
        super().__init__(message)


class CommandFailedError(TwinError):
    """Raised when a registered handler fails; the cause is chained"""

    def __init__(self, component: str, command_name: str, cause: Exception):
        self.component = component
        self.command_name = command_name
        self.cause = cause
        super().__init__(
            f"Command '{component}/{command_name}' failed: "
            f"{type(cause).__name__}: {cause}"
        )


class TransportError(TwinError):
    """Raised when the transport cannot deliver a request"""
    pass


class CommandTimeoutError(TwinError, TimeoutError):
    """Raised when an outbound command gets no reply before its deadline"""

    def __init__(self, component: str, command_name: str, timeout: Optional[float]):
        self.component = component
        self.command_name = command_name
        self.timeout = timeout
        super().__init__(
            f"Command '{component}/{command_name}' timed out after {timeout}s"
        )


# Status codes reported to the transport for inbound command failures
STATUS_OK = 200
STATUS_BAD_REQUEST = 400
STATUS_NOT_FOUND = 404
STATUS_INTERNAL_ERROR = 500


def status_for_error(error: Exception) -> int:
    """Map an inbound-command exception to the status code sent back."""
    if isinstance(error, ParseError):
        return STATUS_BAD_REQUEST
    if isinstance(error, UnknownCommandError):
        return STATUS_NOT_FOUND
    return STATUS_INTERNAL_ERROR
