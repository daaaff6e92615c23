"""Type definitions for LaunchHub HTTP payloads.

TypedDicts describing the JSON bodies the server emits outside the RPC
result envelope, giving IDE autocomplete and type checking on the
response-building code.

Example:
    >>> from launchhub.types import CronSummary
    >>> summary: CronSummary = {
    ...     "success": True,
    ...     "message": "Updated 2 products",
    ...     "timestamp": "2024-01-01T00:00:00Z",
    ...     "updatedCount": 2,
    ... }
"""

from typing import Any, NotRequired, TypedDict

# =============================================================================
# Cron Endpoint
# =============================================================================


class CronSummary(TypedDict):
    """Successful ``/api/cron`` response.

    Attributes:
        success: Always True
        message: Human-readable summary, "Updated N products"
        timestamp: Sweep instant (ISO8601, Z suffix)
        updatedCount: Products flipped to launched by this run
    """

    success: bool
    message: str
    timestamp: str
    updatedCount: int


class CronFailure(TypedDict):
    success: bool
    error: str


# =============================================================================
# RPC Envelope
# =============================================================================


class RpcErrorBody(TypedDict):
    """Error detail inside the RPC error envelope.

    Attributes:
        code: Stable error code (NOT_FOUND, UNAUTHORIZED, ...)
        message: Human-readable message
        path: Procedure path the call was addressed to
    """

    code: str
    message: str
    path: str


class RpcErrorResponse(TypedDict):
    error: RpcErrorBody


class RpcResult(TypedDict):
    data: Any


class RpcSuccessResponse(TypedDict):
    result: RpcResult


# =============================================================================
# Health
# =============================================================================


class HealthStatus(TypedDict):
    status: str
    version: str
    environment: str
    database: NotRequired[str]
