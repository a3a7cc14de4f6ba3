from __future__ import annotations

from unittest.mock import MagicMock

import pytest

from forge.errors import LoadError
from pipelines.context import PipelineContext, RunOptions
from pipelines.termination import (
    Disposition,
    RunMode,
    Settlement,
    decide_disposition,
    settle,
    terminate,
)


@pytest.mark.parametrize("mode", list(RunMode))
def test_failure_always_exits_with_failure(mode):
    assert decide_disposition(mode, succeeded=False, serving=True) is Disposition.EXIT_FAILURE


@pytest.mark.parametrize("mode", [RunMode.GENERATION, RunMode.SDK_GENERATION, RunMode.SELF_CHECK])
def test_headless_modes_follow_quit_flag(mode):
    assert decide_disposition(mode, succeeded=True) is Disposition.EXIT_SUCCESS
    assert (
        decide_disposition(mode, succeeded=True, options=RunOptions(quit=False))
        is Disposition.STAY_RESIDENT
    )


def test_interactive_mode_stays_resident_only_while_serving():
    assert (
        decide_disposition(RunMode.INTERACTIVE, succeeded=True, serving=True)
        is Disposition.STAY_RESIDENT
    )
    assert (
        decide_disposition(RunMode.INTERACTIVE, succeeded=True, serving=False)
        is Disposition.EXIT_SUCCESS
    )


@pytest.mark.asyncio
async def test_settle_captures_failure():
    async def invocation():
        raise LoadError("bad manifest")

    settlement = await settle(RunMode.GENERATION, invocation)

    assert settlement.disposition is Disposition.EXIT_FAILURE
    assert settlement.exit_code == 1
    assert isinstance(settlement.error, LoadError)
    assert settlement.context is None


@pytest.mark.asyncio
async def test_settle_success_without_quit_stays_resident():
    context = PipelineContext()

    async def invocation():
        return context

    settlement = await settle(RunMode.SELF_CHECK, invocation, RunOptions(quit=False))

    assert settlement.succeeded
    assert settlement.context is context
    assert settlement.disposition is Disposition.STAY_RESIDENT


def test_terminate_closes_database_and_exits(monkeypatch):
    closed = []
    monkeypatch.setattr("pipelines.termination.close_database", closed.append)
    handle = MagicMock()
    exit_fn = MagicMock()
    settlement = Settlement(
        mode=RunMode.GENERATION,
        disposition=Disposition.EXIT_SUCCESS,
        context=PipelineContext().extend(db=handle),
    )

    terminate(settlement, exit_fn=exit_fn)

    assert closed == [handle]
    exit_fn.assert_called_once_with(0)


def test_terminate_failure_exits_non_zero():
    exit_fn = MagicMock()
    settlement = Settlement(
        mode=RunMode.SELF_CHECK, disposition=Disposition.EXIT_FAILURE, error=LoadError("x")
    )

    terminate(settlement, exit_fn=exit_fn)

    exit_fn.assert_called_once_with(1)


def test_terminate_resident_without_server_keeps_process(monkeypatch):
    closed = []
    monkeypatch.setattr("pipelines.termination.close_database", closed.append)
    exit_fn = MagicMock()
    settlement = Settlement(
        mode=RunMode.GENERATION,
        disposition=Disposition.STAY_RESIDENT,
        context=PipelineContext().extend(db=MagicMock()),
    )

    terminate(settlement, exit_fn=exit_fn)

    exit_fn.assert_not_called()
    assert closed == []


def test_terminate_resident_waits_for_server(monkeypatch):
    monkeypatch.setattr("pipelines.termination.close_database", lambda handle: None)
    server = MagicMock()
    exit_fn = MagicMock()
    settlement = Settlement(
        mode=RunMode.INTERACTIVE,
        disposition=Disposition.STAY_RESIDENT,
        context=PipelineContext().extend(db=MagicMock(), server=server),
    )

    terminate(settlement, exit_fn=exit_fn)

    server.wait.assert_called_once_with()
    exit_fn.assert_called_once_with(0)
