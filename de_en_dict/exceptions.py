"""Exception hierarchy for the dictionary service."""

from typing import Optional


class DictionaryError(Exception):
    """Base class for all dictionary service errors."""


class LineDecodeError(DictionaryError):
    """A single dictionary line is malformed.

    Recoverable: callers skip the line and carry on with the rest of the batch.
    """

    def __init__(self, line: str, reason: str) -> None:
        super().__init__(f"{reason}: {line!r}")
        self.line = line
        self.reason = reason


class DictionaryLoadError(DictionaryError):
    """A load attempt failed (network, decompression, or an empty/corrupt file)."""


class MessageDecodeError(DictionaryError):
    """A protocol message had an unknown tag or an invalid payload."""


class ControllerError(DictionaryError):
    """Base class for errors raised by the controller to its callers."""

    status_code: int = 503


class ControllerNotReadyError(ControllerError):
    """The dictionary is not loaded yet, or the controller is in its error state."""

    def __init__(self, state: str, detail: Optional[str] = None) -> None:
        message = f"Dictionary is not ready (state: {state})"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)
        self.state = state
        self.detail = detail


class SearchInProgressError(ControllerError):
    """A request was issued while another one is still outstanding."""

    status_code = 409


class SearchTermRejectedError(ControllerError):
    """The search term was rejected before reaching the worker."""

    status_code = 400


class RequestTimeoutError(ControllerError):
    """The worker did not answer a request in time."""

    status_code = 503
