"""Behavior tests for public API invocation instrumentation."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

import pytest

from packages.stash_shared.errors import RecordNotFound
from packages.stash_shared.logging import (
    CompletionContext,
    InvocationContext,
    get_logger,
    public_api_instrumented,
)

_LOGGER = get_logger("tests.public_api")


@dataclass
class _RecordingConcern:
    invocations: list[InvocationContext] = field(default_factory=list)
    completions: list[CompletionContext] = field(default_factory=list)

    def on_invocation(self, context: InvocationContext) -> None:
        self.invocations.append(context)

    def on_completion(self, context: CompletionContext) -> None:
        self.completions.append(context)


class _ExplodingConcern:
    def on_invocation(self, context: InvocationContext) -> None:
        raise RuntimeError("concern broke")

    def on_completion(self, context: CompletionContext) -> None:
        raise RuntimeError("concern broke")


def test_sync_method_reports_invocation_and_success() -> None:
    """Completions should carry the id fields named by the decorator."""
    concern = _RecordingConcern()

    class _Service:
        @public_api_instrumented(
            component_id="service_demo", id_fields=("user_id",), concerns=(concern,)
        )
        def lookup(self, *, user_id: str) -> str:
            return user_id.upper()

    assert _Service().lookup(user_id="u-1") == "U-1"

    assert concern.invocations[0].api_name == "lookup"
    assert concern.invocations[0].references == {"user_id": "u-1"}
    completion = concern.completions[0]
    assert completion.success is True
    assert completion.errors == []
    assert completion.duration_ms >= 0


@pytest.mark.asyncio
async def test_async_method_failure_reports_error_code_and_reraises() -> None:
    """Stash errors should be reported by code and still propagate."""
    concern = _RecordingConcern()

    class _Service:
        @public_api_instrumented(component_id="service_demo", concerns=(concern,))
        async def export(self, *, user_id: str) -> str:
            raise RecordNotFound(message="missing", user_id=user_id)

    with pytest.raises(RecordNotFound):
        await _Service().export(user_id="u-1")

    completion = concern.completions[0]
    assert completion.success is False
    assert completion.error_codes == [RecordNotFound.code]
    assert completion.errors == ["RecordNotFound: missing"]


def test_failing_concern_never_breaks_the_call(caplog: pytest.LogCaptureFixture) -> None:
    """Instrumentation failures are isolated from the instrumented method."""

    class _Service:
        @public_api_instrumented(
            component_id="service_demo",
            concerns=(_ExplodingConcern(),),
            logger=_LOGGER,
        )
        def ping(self) -> str:
            return "pong"

    with caplog.at_level(logging.DEBUG, logger="tests.public_api"):
        assert _Service().ping() == "pong"

    assert any(record.levelno == logging.WARNING for record in caplog.records)


def test_logger_concern_logs_completion(caplog: pytest.LogCaptureFixture) -> None:
    class _Service:
        @public_api_instrumented(component_id="service_demo", logger=_LOGGER)
        def ping(self) -> str:
            return "pong"

    with caplog.at_level(logging.INFO, logger="tests.public_api"):
        _Service().ping()

    assert [record.getMessage() for record in caplog.records] == ["Public API completion"]


def test_decorator_requires_a_concern() -> None:
    with pytest.raises(ValueError):
        public_api_instrumented(component_id="service_demo")
