"""PULSE — Domain Exceptions."""


class RecordFetchError(Exception):
    """Raised when the call record store cannot return records."""

    def __init__(self, message: str, backend: str = "", status_code: int = 0):
        self.backend = backend
        self.status_code = status_code
        super().__init__(message)


class RecordFetchTimeout(RecordFetchError):
    """Raised when bucketed fetches do not finish within the allowed time."""


class InvalidFilterError(ValueError):
    """Raised when a metrics query cannot be built from the given parameters."""


class CallNotFoundError(LookupError):
    """Raised when a call id does not exist in the workspace store."""

    def __init__(self, call_id: str):
        self.call_id = call_id
        super().__init__(f"Call {call_id} not found")
