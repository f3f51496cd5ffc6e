"""Exception hierarchy shared by the transport, retry policy and service layers."""

from enum import StrEnum


class ErrorKind(StrEnum):
    """Classification of a failed RPC call."""

    OVERLOAD = "overload"
    TRANSIENT = "transient"
    PERMANENT = "permanent"


class GatewayError(Exception):
    """Base exception for all ton-jetton-gateway errors."""


class ConfigurationError(GatewayError):
    """Raised when settings are missing or invalid."""


class RPCError(GatewayError):
    """
    Failed call against the remote RPC endpoint.

    Parameters
    ----------
    message : str
        Human-readable description
    status_code : int | None
        HTTP or JSON-RPC status code, if the remote returned one

    Attributes
    ----------
    kind : ErrorKind
        Structured classification used by the retry policy

    """

    kind: ErrorKind = ErrorKind.PERMANENT

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        self.message = message
        self.status_code = status_code
        super().__init__(message)


class OverloadError(RPCError):
    """Remote signalled too many requests (HTTP 429 or equivalent)."""

    kind = ErrorKind.OVERLOAD


class TransientRPCError(RPCError):
    """Network failure, timeout or 5xx response."""

    kind = ErrorKind.TRANSIENT


class PermanentRPCError(RPCError):
    """Malformed request, unparseable response or failed get-method."""

    kind = ErrorKind.PERMANENT


class RetryExhaustedError(RPCError):
    """
    Raised when every attempt of a retried call has failed.

    Parameters
    ----------
    operation : str
        Name of the retried operation
    attempts : int
        Number of attempts made
    last_error : BaseException
        Error raised by the final attempt

    """

    def __init__(self, operation: str, attempts: int, last_error: BaseException) -> None:
        self.operation = operation
        self.attempts = attempts
        self.last_error = last_error
        # Stays PERMANENT: an outer retry loop must not report the inner loop's overloads again
        message = f"{operation} failed after {attempts} attempt(s): {last_error}"
        super().__init__(message, status_code=getattr(last_error, "status_code", None))


def classify_error(error: BaseException) -> ErrorKind:
    """
    Map an exception to an ErrorKind.

    Anything that is not an RPCError is treated as permanent.

    """
    if isinstance(error, RPCError):
        return error.kind
    return ErrorKind.PERMANENT
