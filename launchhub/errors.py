"""Typed errors raised by RPC procedures.

Each error carries a stable ``code`` (mirroring the RPC wire codes the
client understands) and the HTTP status the transport maps it to.
"""

from typing import ClassVar


class LaunchHubError(Exception):
    """Base class for errors surfaced verbatim to RPC clients."""

    code: ClassVar[str] = "INTERNAL_SERVER_ERROR"
    http_status: ClassVar[int] = 500

    def __init__(self, message: str | None = None):
        self.message = message or self.code.replace("_", " ").capitalize()
        super().__init__(self.message)

    def to_dict(self) -> dict[str, str]:
        return {"code": self.code, "message": self.message}


class BadRequestError(LaunchHubError):
    """Input failed validation or violates a business rule."""

    code = "BAD_REQUEST"
    http_status = 400


class UnauthorizedError(LaunchHubError):
    """Caller has no identity but the procedure requires one."""

    code = "UNAUTHORIZED"
    http_status = 401


class ForbiddenError(LaunchHubError):
    """Caller is known but does not own the resource."""

    code = "FORBIDDEN"
    http_status = 403


class NotFoundError(LaunchHubError):
    code = "NOT_FOUND"
    http_status = 404


class MethodNotSupportedError(LaunchHubError):
    """Query called over POST or mutation called over GET."""

    code = "METHOD_NOT_SUPPORTED"
    http_status = 405


class ConflictError(LaunchHubError):
    """Concurrent write lost a uniqueness race."""

    code = "CONFLICT"
    http_status = 409


__all__ = [
    "LaunchHubError",
    "BadRequestError",
    "UnauthorizedError",
    "ForbiddenError",
    "NotFoundError",
    "MethodNotSupportedError",
    "ConflictError",
]
