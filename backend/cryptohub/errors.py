"""Error taxonomy shared by the REST routes and the realtime chat endpoint.

Every error carries the HTTP status it maps to. Validation and authorization
failures are reported to the originating caller only; storage and upstream
failures carry a generic message while the detail goes to the server log.
"""

from __future__ import annotations


class CryptoHubError(Exception):
    """Base class for all expected application failures."""

    status_code: int = 500
    default_message: str = "Internal server error"

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(CryptoHubError):
    status_code = 400
    default_message = "Invalid request"


class AuthenticationError(CryptoHubError):
    status_code = 401
    default_message = "User not authenticated"


class ForbiddenError(CryptoHubError):
    status_code = 403
    default_message = "Forbidden"


AuthorizationError = ForbiddenError


class NotFoundError(CryptoHubError):
    status_code = 404
    default_message = "Not found"


class StorageError(CryptoHubError):
    status_code = 500
    default_message = "Storage failure"


class UpstreamError(CryptoHubError):
    status_code = 502
    default_message = "Upstream service failure"


class UpstreamTimeoutError(UpstreamError, TimeoutError):
    status_code = 504
    default_message = "Upstream service timed out"
