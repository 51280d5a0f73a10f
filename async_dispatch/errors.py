"""Exception types for the async dispatch library."""

from typing import Optional


class AsyncDispatchError(Exception):
    """Base exception for all async dispatch errors."""

    pass


class UnknownJobTypeError(AsyncDispatchError):
    """Raised when a job is created for a name with no registered definition."""

    def __init__(self, name: str, message: str = None):
        self.name = name
        if message is None:
            message = f"Unknown job type: {name}"
        super().__init__(message)


class DuplicateJobTypeError(AsyncDispatchError):
    """Raised by strict registration when the name is already taken."""

    def __init__(self, name: str, message: str = None):
        self.name = name
        if message is None:
            message = f"Job type {name} is already registered"
        super().__init__(message)


class JobNotFoundError(AsyncDispatchError):
    """Raised when a job is not found."""

    def __init__(self, job_id: str, message: str = None):
        self.job_id = job_id
        if message is None:
            message = f"Job {job_id} not found"
        super().__init__(message)


class HandlerError(AsyncDispatchError):
    """Raised by job handlers for recoverable failures."""

    pass


class DeliveryError(AsyncDispatchError):
    """A single webhook delivery failed (non-2xx, network error or timeout)."""

    def __init__(
        self, subscriber_id: str, message: str, status_code: Optional[int] = None
    ):
        self.subscriber_id = subscriber_id
        self.status_code = status_code
        super().__init__(message)


class SignatureInvalidError(AsyncDispatchError):
    """Raised on the receiving side when a webhook signature does not verify."""

    pass
