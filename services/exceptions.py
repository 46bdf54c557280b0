"""Error taxonomy shared by the conversation services."""


class ServiceError(Exception):
    """Base class for user-visible service errors."""
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(ServiceError):
    """Missing or malformed input, raised before anything is persisted."""
    status_code = 400


class UnauthorizedError(ServiceError):
    """The supplied user id does not own the thread."""
    status_code = 403


class NotFoundError(ServiceError):
    """Referenced thread or message does not exist."""
    status_code = 404
