"""Typed RPC layer.

Procedures are registered on a ``Router`` as queries (reads) or mutations
(writes), either public or private (requiring a caller identity), each with
an optional Pydantic input model. ``call()`` resolves a dotted path such as
``product.toggleVote``, enforces auth, validates the input, and runs the
handler inside a tracing span with metrics.

Example:
    >>> router = Router()
    >>> @router.query("hello", input=UsernameInput)
    ... def hello(ctx: Context, data: UsernameInput) -> str:
    ...     return f"hi {data.username}"
    >>> call(router, "hello", ctx, {"username": "ada"})
    'hi ada'
"""

import time
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ValidationError
from sqlmodel import Session

from launchhub.errors import (
    BadRequestError,
    LaunchHubError,
    MethodNotSupportedError,
    NotFoundError,
    UnauthorizedError,
)
from launchhub.logging import logger
from launchhub.metrics import errors_total, rpc_call_duration_seconds, rpc_calls_total
from launchhub.models import IdentityClaims, User
from launchhub.telemetry import (
    add_span_attributes,
    get_tracer,
    record_exception_in_span,
    sync_logging_context_to_span,
)
from launchhub.utils import utc_now

tracer = get_tracer(__name__)


class ProcedureType(StrEnum):
    QUERY = "query"
    MUTATION = "mutation"


@dataclass
class Context:
    """Per-call state handed to every procedure.

    Attributes:
        session: Database session for this request
        user_id: Caller's identity-provider id (None when anonymous)
        identity: Full claims forwarded by the identity provider, if any
        clock: Source of "now", replaceable in tests
    """

    session: Session
    user_id: str | None = None
    identity: IdentityClaims | None = None
    clock: Callable[[], datetime] = field(default=utc_now)

    def now(self) -> datetime:
        return self.clock()

    def require_user_id(self) -> str:
        if not self.user_id:
            raise UnauthorizedError()
        return self.user_id

    def current_user(self) -> User:
        """Load the caller's user row.

        Raises:
            UnauthorizedError: If anonymous or the account was never synced
        """
        user = self.session.get(User, self.require_user_id())
        if user is None:
            raise UnauthorizedError("Account not found, complete sign-in first")
        return user


@dataclass(frozen=True)
class Procedure:
    path: str
    type: ProcedureType
    handler: Callable[..., Any]
    input_model: type[BaseModel] | None = None
    private: bool = False


class Router:
    """Registry of procedures addressed by dotted paths."""

    def __init__(self) -> None:
        self.procedures: dict[str, Procedure] = {}

    def _register(
        self,
        name: str,
        type_: ProcedureType,
        input_model: type[BaseModel] | None,
        private: bool,
    ) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
        def decorator(handler: Callable[..., Any]) -> Callable[..., Any]:
            if name in self.procedures:
                raise ValueError(f"Procedure already registered: {name}")
            self.procedures[name] = Procedure(name, type_, handler, input_model, private)
            return handler

        return decorator

    def query(self, name: str, input: type[BaseModel] | None = None, private: bool = False):
        """Register a read-only procedure."""
        return self._register(name, ProcedureType.QUERY, input, private)

    def mutation(self, name: str, input: type[BaseModel] | None = None, private: bool = False):
        """Register a state-changing procedure."""
        return self._register(name, ProcedureType.MUTATION, input, private)

    def merge(self, prefix: str, other: "Router") -> "Router":
        """Mount ``other``'s procedures under ``prefix.``."""
        for name, proc in other.procedures.items():
            path = f"{prefix}.{name}"
            if path in self.procedures:
                raise ValueError(f"Procedure already registered: {path}")
            self.procedures[path] = Procedure(
                path, proc.type, proc.handler, proc.input_model, proc.private
            )
        return self

    def get(self, path: str) -> Procedure | None:
        return self.procedures.get(path)

    def __contains__(self, path: str) -> bool:
        return path in self.procedures

    def __len__(self) -> int:
        return len(self.procedures)


def format_validation_error(error: ValidationError) -> str:
    """Flatten Pydantic errors into ``field: message`` pairs."""
    parts = []
    for item in error.errors():
        location = ".".join(str(part) for part in item["loc"]) or "input"
        parts.append(f"{location}: {item['msg']}")
    return "; ".join(parts)


def parse_input(proc: Procedure, raw_input: Any) -> BaseModel | None:
    """Validate raw JSON input against the procedure's model.

    Raises:
        BadRequestError: If validation fails
    """
    if proc.input_model is None:
        return None
    try:
        return proc.input_model.model_validate(raw_input if raw_input is not None else {})
    except ValidationError as e:
        raise BadRequestError(format_validation_error(e)) from e


def call(
    router: Router,
    path: str,
    ctx: Context,
    raw_input: Any = None,
    method: ProcedureType | None = None,
) -> Any:
    """Dispatch one procedure call.

    Args:
        router: Router holding the procedure
        path: Dotted procedure path, e.g. ``product.getTodaysWinners``
        ctx: Call context
        raw_input: Decoded JSON input (None when the procedure takes none)
        method: Transport kind, checked against the procedure type when given

    Returns:
        Whatever the handler returns (Pydantic models, lists, dicts)

    Raises:
        NotFoundError: Unknown path
        MethodNotSupportedError: Query/mutation called with the wrong method
        UnauthorizedError: Private procedure without identity
        BadRequestError: Invalid input
        LaunchHubError: Any typed error raised by the handler
    """
    proc = router.get(path)
    if proc is None:
        raise NotFoundError(f"No procedure found on path \"{path}\"")
    if method is not None and method != proc.type:
        raise MethodNotSupportedError(f"Unsupported {method} method for {proc.type} \"{path}\"")

    start = time.perf_counter()
    status = "OK"
    with tracer.start_as_current_span(f"rpc {path}") as span:
        sync_logging_context_to_span(span)
        add_span_attributes(span, {"rpc.path": path, "rpc.type": proc.type.value})
        try:
            if proc.private:
                ctx.require_user_id()
            data = parse_input(proc, raw_input)
            result = proc.handler(ctx, data) if proc.input_model else proc.handler(ctx)
            logger.debug(f"{proc.type} {path} ok")
            return result
        except LaunchHubError as e:
            status = e.code
            logger.info(f"{proc.type} {path} -> {e.code}: {e.message}")
            raise
        except Exception as e:
            status = "INTERNAL_SERVER_ERROR"
            record_exception_in_span(span, e)
            errors_total.labels(error_type=type(e).__name__, component="rpc").inc()
            raise
        finally:
            rpc_calls_total.labels(path=path, type=proc.type.value, status=status).inc()
            rpc_call_duration_seconds.labels(path=path, type=proc.type.value).observe(
                time.perf_counter() - start
            )


__all__ = [
    "Context",
    "Procedure",
    "ProcedureType",
    "Router",
    "call",
    "parse_input",
    "format_validation_error",
]
