"""Exception types shared across the service."""


class HealthMateError(Exception):
    """Base class for errors surfaced to API callers."""

    status_code = 500


class ConfigurationError(HealthMateError):
    """Raised when a required credential or setting is missing."""

    pass


class CompletionServiceError(HealthMateError):
    """Raised when the completion service fails or is unreachable."""

    def __init__(self, message: str, status: int | None = None, body: str | None = None):
        super().__init__(message)
        self.status = status
        self.body = body


class PersistenceError(HealthMateError):
    """Raised when a database write fails."""

    pass


class NotFoundError(HealthMateError):
    """Raised when a requested record does not exist."""

    status_code = 404


class OperationInProgressError(HealthMateError):
    """Raised when a user starts an operation while another is in flight."""

    status_code = 409

    def __init__(self, user_id: str, running: str):
        super().__init__(f"Another operation is already in progress: {running}")
        self.user_id = user_id
        self.running = running
