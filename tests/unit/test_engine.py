"""
Unit tests for safeaction.engine - Action Execution Engine.

Tests the pipeline stages and the failure classification table: every
invocation yields exactly one of data / serverError / validationErrors and
the engine never raises.
"""

import logging
from unittest.mock import AsyncMock, MagicMock

import pytest
from pydantic import BaseModel, Field

from safeaction.builder import create_safe_action_client
from safeaction.engine import (
    DEFECT_MIDDLEWARE_CONTRACT,
    DEFECT_OUTPUT_VALIDATION,
    DEFECT_UNEXPECTED,
    ActionConfig,
    defect_kind,
    map_failure,
)
from safeaction.errors import (
    GENERIC_SERVER_ERROR,
    MIDDLEWARE_DROPPED_RESULT,
    ActionError,
    ActionValidationError,
    MiddlewareContractError,
    OutputValidationError,
    return_validation_errors,
)
from safeaction.hooks import HOOK_ACTION_DEFECT, HOOK_ACTION_END, HOOK_ACTION_START, HookRegistry


class Greet(BaseModel):
    name: str = Field(min_length=1)


class Doubled(BaseModel):
    doubled: int = Field(le=100)


def translate(error: Exception) -> str:
    return str(error)


# ============================================================================
# Test: map_failure classification
# ============================================================================


class TestMapFailure:
    def test_action_validation_error(self):
        result = map_failure(ActionValidationError({"email": ["taken"]}), translate)
        assert result.validation_errors == {"email": ["taken"]}

    def test_action_error_bypasses_translator(self):
        translator = AsyncMock()
        result = map_failure(ActionError("Not enough credits"), translator)
        assert result.server_error == "Not enough credits"
        translator.assert_not_called()

    def test_middleware_contract_error(self):
        result = map_failure(MiddlewareContractError(), translate)
        assert result.server_error == "Middleware did not call next()"

    def test_output_validation_error(self):
        result = map_failure(OutputValidationError({"doubled": ["too big"]}), None)
        assert result.server_error == 'Output validation failed: {"doubled": ["too big"]}'

    def test_unexpected_uses_translator(self):
        result = map_failure(ConnectionError("Database connection refused"), translate)
        assert result.server_error == "Database connection refused"

    def test_unexpected_without_translator_is_generic(self):
        result = map_failure(ConnectionError("Database connection refused"))
        assert result.server_error == GENERIC_SERVER_ERROR

    def test_translator_failure_falls_back_to_generic(self, caplog: pytest.LogCaptureFixture):
        def broken(error: Exception) -> str:
            raise RuntimeError("translator bug")

        with caplog.at_level(logging.ERROR):
            result = map_failure(ValueError("x"), broken)

        assert result.server_error == GENERIC_SERVER_ERROR
        assert any("translator" in r.message.lower() for r in caplog.records)

    def test_malformed_validation_errors_fall_back_to_generic(self):
        error = ActionValidationError({"age": ["ok"]})
        error.validation_errors = {"age": [123]}

        result = map_failure(error, translate)

        assert result.server_error == GENERIC_SERVER_ERROR

    def test_translator_may_return_structured_error(self):
        result = map_failure(KeyError("id"), lambda e: {"code": "E_KEY"})
        assert result.server_error == {"code": "E_KEY"}


def test_defect_kinds():
    assert defect_kind(ActionError("x")) is None
    assert defect_kind(ActionValidationError({})) is None
    assert defect_kind(MiddlewareContractError()) == DEFECT_MIDDLEWARE_CONTRACT
    assert defect_kind(OutputValidationError({})) == DEFECT_OUTPUT_VALIDATION
    assert defect_kind(RuntimeError()) == DEFECT_UNEXPECTED


def test_config_label_prefers_metadata():
    config = ActionConfig(handler=translate, metadata={"actionName": "greet"})
    assert config.label == "greet"
    assert ActionConfig(handler=translate).label == "translate"


# ============================================================================
# Test: Pipeline
# ============================================================================


class TestPipeline:
    @pytest.mark.asyncio
    async def test_success(self):
        action = create_safe_action_client().schema(Greet).action(
            lambda args: {"greeting": f"Hello, {args.parsed_input.name}!"}
        )
        result = await action.execute({"name": "World"})
        assert result.to_payload() == {"data": {"greeting": "Hello, World!"}}

    @pytest.mark.asyncio
    async def test_no_schema_passes_raw_input_through(self):
        action = create_safe_action_client().action(lambda args: {"echo": args.parsed_input})
        result = await action.execute({"anything": [1, 2]})
        assert result.data == {"echo": {"anything": [1, 2]}}

    @pytest.mark.asyncio
    async def test_invalid_input_skips_middleware_and_handler(self):
        middleware = AsyncMock()
        handler = AsyncMock()
        action = create_safe_action_client().use(middleware).schema(Greet).action(handler)

        result = await action.execute({"name": ""})

        assert result.is_validation_error
        assert list(result.validation_errors) == ["name"]
        middleware.assert_not_called()
        handler.assert_not_called()

    @pytest.mark.asyncio
    async def test_absent_input_fails_validation(self):
        action = create_safe_action_client().schema(Greet).action(lambda args: None)
        result = await action.execute(None)
        assert result.validation_errors == {"_root": ["Input should be a valid dictionary or instance of Greet"]}

    @pytest.mark.asyncio
    async def test_handler_receives_ctx_and_event(self):
        seen = {}

        async def provide(args):
            return await args.next(ctx={"user": "ada"})

        async def handler(args):
            seen["ctx"] = args.ctx
            seen["event"] = args.event
            return None

        action = create_safe_action_client().use(provide).action(handler)
        request = object()
        await action.execute({}, request)

        assert seen == {"ctx": {"user": "ada"}, "event": request}

    @pytest.mark.asyncio
    async def test_first_middleware_receives_empty_ctx(self):
        seen = []

        async def observe(args):
            seen.append(args.ctx)
            return await args.next()

        await create_safe_action_client().use(observe).action(lambda args: None).execute()
        assert seen == [{}]

    @pytest.mark.asyncio
    async def test_sync_handler_supported(self):
        action = create_safe_action_client().action(lambda args: 42)
        assert (await action.execute()).data == 42

    @pytest.mark.asyncio
    async def test_output_schema_accepts(self):
        action = (
            create_safe_action_client()
            .output_schema(Doubled)
            .action(lambda args: {"doubled": args.parsed_input["value"] * 2})
        )
        result = await action.execute({"value": 5})
        assert result.data == Doubled(doubled=10)
        assert result.to_payload() == {"data": {"doubled": 10}}

    @pytest.mark.asyncio
    async def test_output_schema_rejection_is_server_error(self):
        action = (
            create_safe_action_client(handle_server_error=translate)
            .output_schema(Doubled)
            .action(lambda args: {"doubled": args.parsed_input["value"] * 2})
        )
        result = await action.execute({"value": 999})

        assert result.is_server_error
        assert result.server_error.startswith("Output validation failed: ")
        assert '"doubled"' in result.server_error

    @pytest.mark.asyncio
    async def test_action_error(self):
        async def handler(args):
            raise ActionError("Not enough credits")

        result = await create_safe_action_client(handle_server_error=translate).action(handler).execute()
        assert result.to_payload() == {"serverError": "Not enough credits"}

    @pytest.mark.asyncio
    async def test_action_validation_error_from_middleware(self):
        async def guard(args):
            raise ActionValidationError({"email": ["This email is already taken"]})

        action = create_safe_action_client().use(guard).action(lambda args: None)
        result = await action.execute({})
        assert result.to_payload() == {"validationErrors": {"email": ["This email is already taken"]}}

    @pytest.mark.asyncio
    async def test_unexpected_error_translated(self):
        async def handler(args):
            raise ConnectionError("Database connection refused")

        action = create_safe_action_client(handle_server_error=translate).action(handler)
        assert (await action.execute()).server_error == "Database connection refused"

    @pytest.mark.asyncio
    async def test_unexpected_error_generic_without_translator(self):
        async def handler(args):
            raise ConnectionError("Database connection refused")

        action = create_safe_action_client().action(handler)
        assert (await action.execute()).server_error == GENERIC_SERVER_ERROR

    @pytest.mark.asyncio
    async def test_middleware_contract_violation(self):
        handler = AsyncMock()

        async def forgets_next(args):
            return None

        action = create_safe_action_client(handle_server_error=translate).use(forgets_next).action(handler)
        result = await action.execute({})

        assert result.server_error == "Middleware did not call next()"
        handler.assert_not_called()

    @pytest.mark.asyncio
    async def test_malformed_explicit_validation_errors_never_raise(self):
        async def handler(args):
            return_validation_errors({"age": [123]})

        translated = await create_safe_action_client(handle_server_error=translate).action(handler).execute({})
        generic = await create_safe_action_client().action(handler).execute({})

        assert translated.is_server_error
        assert "lists of strings" in translated.server_error
        assert generic.server_error == GENERIC_SERVER_ERROR

    @pytest.mark.asyncio
    async def test_swallowed_inner_failure_is_contract_violation(self):
        translator = MagicMock(side_effect=str)

        async def swallow(args):
            try:
                await args.next()
            except Exception:
                pass

        async def handler(args):
            raise RuntimeError("Database connection refused")

        action = create_safe_action_client(handle_server_error=translator).use(swallow).action(handler)
        result = await action.execute({})

        assert result.server_error == MIDDLEWARE_DROPPED_RESULT
        translator.assert_not_called()

    @pytest.mark.asyncio
    async def test_defect_is_logged(self, caplog: pytest.LogCaptureFixture):
        async def handler(args):
            raise RuntimeError("kaboom")

        action = create_safe_action_client().metadata({"actionName": "explode"}).action(handler)
        with caplog.at_level(logging.ERROR, logger="safeaction.engine"):
            await action.execute()

        assert any("explode" in r.message and "kaboom" in r.message for r in caplog.records)


# ============================================================================
# Test: Hooks
# ============================================================================


class TestHooks:
    @pytest.mark.asyncio
    async def test_start_and_end_emitted(self):
        hooks = HookRegistry()
        on_start = AsyncMock()
        on_end = AsyncMock()
        hooks.register(HOOK_ACTION_START, on_start)
        hooks.register(HOOK_ACTION_END, on_end)

        action = create_safe_action_client(hooks=hooks).action(lambda args: "ok")
        result = await action.execute({"x": 1})

        on_start.assert_awaited_once_with(action=action, client_input={"x": 1})
        on_end.assert_awaited_once()
        kwargs = on_end.await_args.kwargs
        assert kwargs["action"] is action
        assert kwargs["result"] == result
        assert kwargs["duration_ms"] >= 0

    @pytest.mark.asyncio
    async def test_defect_emitted_for_unexpected_error(self):
        hooks = HookRegistry()
        on_defect = AsyncMock()
        hooks.register(HOOK_ACTION_DEFECT, on_defect)
        error = RuntimeError("boom")

        async def handler(args):
            raise error

        action = create_safe_action_client(hooks=hooks).action(handler)
        await action.execute()

        on_defect.assert_awaited_once_with(action=action, error=error, kind=DEFECT_UNEXPECTED)

    @pytest.mark.asyncio
    async def test_no_defect_for_action_error(self):
        hooks = HookRegistry()
        on_defect = AsyncMock()
        hooks.register(HOOK_ACTION_DEFECT, on_defect)

        async def handler(args):
            raise ActionError("Not enough credits")

        await create_safe_action_client(hooks=hooks).action(handler).execute()
        on_defect.assert_not_called()

    @pytest.mark.asyncio
    async def test_failing_hook_does_not_change_result(self):
        hooks = HookRegistry()

        async def broken(**kwargs):
            raise RuntimeError("observer bug")

        hooks.register(HOOK_ACTION_END, broken)
        result = await create_safe_action_client(hooks=hooks).action(lambda args: 1).execute()
        assert result.data == 1
