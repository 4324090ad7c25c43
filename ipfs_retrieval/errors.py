"""Errors raised by a retrieval attempt.

None of them is fatal to a RetrievalSession: each ends the current attempt and
is surfaced to the user as a notification.
"""


class RetrievalError(Exception):
    """Base class for retrieval failures."""

    default_message = "Retrieval failed"

    def __init__(self, message: str = ""):
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(RetrievalError):
    """Raised when the identifier is missing; the gateway is never contacted."""

    default_message = "You need to enter IPFS hash."


class GatewayError(RetrievalError):
    """Raised when the gateway could not resolve an identifier."""

    default_message = "Gateway request failed"

    def __init__(self, message: str = "", status_code: int | None = None):
        self.status_code = status_code
        super().__init__(message)


class ExportError(RetrievalError):
    """Raised when a payload could not be saved as a local file."""

    default_message = "Export failed"
