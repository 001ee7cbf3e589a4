"""Client input errors raised while handling HTTP requests."""

from .base import PhpStanHubError


class RequestError(PhpStanHubError):
    """Raised when a request body is malformed or misses a required field.

    Carries the HTTP status the router answers with.
    """

    def __init__(self, message: str, status_code: int = 400):
        super().__init__(message)
        self.status_code = status_code
