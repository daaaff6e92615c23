"""Tests for the RPC router and dispatcher."""

import pytest
from pydantic import ValidationError

from launchhub.errors import (
    BadRequestError,
    ForbiddenError,
    MethodNotSupportedError,
    NotFoundError,
    UnauthorizedError,
)
from launchhub.metrics import sample_value
from launchhub.models import IdInput, UsernameInput
from launchhub.routers import app_router
from launchhub.rpc import Context, ProcedureType, Router, call, format_validation_error


@pytest.fixture
def router():
    router = Router()

    @router.query("hello", input=UsernameInput)
    def hello(ctx: Context, data: UsernameInput) -> str:
        return f"hi {data.username}"

    @router.query("whoami", private=True)
    def whoami(ctx: Context) -> str:
        return ctx.require_user_id()

    @router.mutation("forbidden")
    def forbidden(ctx: Context) -> None:
        raise ForbiddenError("nope")

    @router.query("boom")
    def boom(ctx: Context) -> None:
        raise RuntimeError("kaboom")

    return router


class TestRouter:
    def test_registration(self, router):
        assert "hello" in router
        assert len(router) == 4
        assert router.get("hello").type == ProcedureType.QUERY
        assert router.get("forbidden").type == ProcedureType.MUTATION
        assert router.get("whoami").private

    def test_duplicate_name_rejected(self, router):
        with pytest.raises(ValueError, match="already registered"):

            @router.query("hello")
            def again(ctx):
                return None

    def test_merge_prefixes_paths(self, router):
        app = Router().merge("greet", router)

        assert "greet.hello" in app
        assert app.get("greet.hello").path == "greet.hello"

    def test_merge_conflict(self, router):
        app = Router().merge("greet", router)
        with pytest.raises(ValueError):
            app.merge("greet", router)


class TestCall:
    def test_calls_handler_with_validated_input(self, router, ctx_for):
        assert call(router, "hello", ctx_for(None), {"username": "ada"}) == "hi ada"

    def test_unknown_path(self, router, ctx_for):
        with pytest.raises(NotFoundError, match="nope.nothing"):
            call(router, "nope.nothing", ctx_for(None))

    def test_private_requires_identity(self, router, ctx_for, maker):
        with pytest.raises(UnauthorizedError):
            call(router, "whoami", ctx_for(None))
        assert call(router, "whoami", ctx_for(maker)) == maker.id

    def test_invalid_input(self, router, ctx_for):
        with pytest.raises(BadRequestError, match="username"):
            call(router, "hello", ctx_for(None), {})

    def test_method_mismatch(self, router, ctx_for):
        with pytest.raises(MethodNotSupportedError):
            call(router, "hello", ctx_for(None), {"username": "ada"}, method=ProcedureType.MUTATION)
        with pytest.raises(MethodNotSupportedError):
            call(router, "forbidden", ctx_for(None), method=ProcedureType.QUERY)

    def test_typed_errors_propagate_and_are_counted(self, router, ctx_for):
        labels = {"path": "forbidden", "type": "mutation", "status": "FORBIDDEN"}
        before = sample_value("rpc_calls_total", labels)

        with pytest.raises(ForbiddenError):
            call(router, "forbidden", ctx_for(None))

        assert sample_value("rpc_calls_total", labels) == before + 1

    def test_unexpected_errors_counted(self, router, ctx_for):
        labels = {"error_type": "RuntimeError", "component": "rpc"}
        before = sample_value("errors_total", labels)

        with pytest.raises(RuntimeError):
            call(router, "boom", ctx_for(None))

        assert sample_value("errors_total", labels) == before + 1

    def test_success_counted(self, router, ctx_for):
        labels = {"path": "hello", "type": "query", "status": "OK"}
        before = sample_value("rpc_calls_total", labels)

        call(router, "hello", ctx_for(None), {"username": "ada"})

        assert sample_value("rpc_calls_total", labels) == before + 1


class TestContext:
    def test_current_user_requires_synced_account(self, session):
        ctx = Context(session=session, user_id="kp_unknown")
        with pytest.raises(UnauthorizedError, match="complete sign-in"):
            ctx.current_user()

    def test_current_user(self, ctx_for, maker):
        assert ctx_for(maker).current_user().id == maker.id

    def test_clock(self, ctx_for, clock):
        assert ctx_for(None).now() == clock.now


def test_format_validation_error():
    with pytest.raises(ValidationError) as exc_info:
        IdInput.model_validate({})
    assert format_validation_error(exc_info.value) == "id: Field required"


def test_app_router_mounts_every_namespace():
    namespaces = {path.split(".")[0] for path in app_router.procedures}
    assert namespaces == {
        "auth",
        "product",
        "comment",
        "category",
        "collection",
        "notification",
        "user",
        "search",
        "trending",
    }
    assert "product.toggleVote" in app_router
    assert app_router.get("product.toggleVote").type == ProcedureType.MUTATION
    assert app_router.get("product.getTodaysWinners").type == ProcedureType.QUERY
