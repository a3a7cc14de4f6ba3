"""What happens to the process once a run has settled."""

from __future__ import annotations

import sys
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from enum import Enum

from loguru import logger

from forge.db import close_database

from .context import PipelineContext, RunOptions


class RunMode(str, Enum):
    INTERACTIVE = "interactive"
    GENERATION = "generation"
    SDK_GENERATION = "sdk-generation"
    SELF_CHECK = "self-check"


class Disposition(str, Enum):
    EXIT_SUCCESS = "exit-success"
    EXIT_FAILURE = "exit-failure"
    STAY_RESIDENT = "stay-resident"


def decide_disposition(
    mode: RunMode,
    *,
    succeeded: bool,
    options: RunOptions | None = None,
    serving: bool = False,
) -> Disposition:
    if not succeeded:
        return Disposition.EXIT_FAILURE
    if mode is RunMode.INTERACTIVE:
        return Disposition.STAY_RESIDENT if serving else Disposition.EXIT_SUCCESS
    options = options or RunOptions()
    return Disposition.EXIT_SUCCESS if options.quit else Disposition.STAY_RESIDENT


@dataclass(slots=True, frozen=True)
class Settlement:
    mode: RunMode
    disposition: Disposition
    context: PipelineContext | None = None
    error: BaseException | None = None

    @property
    def succeeded(self) -> bool:
        return self.error is None

    @property
    def exit_code(self) -> int:
        return 1 if self.disposition is Disposition.EXIT_FAILURE else 0


async def settle(
    mode: RunMode,
    invocation: Callable[[], Awaitable[PipelineContext]],
    options: RunOptions | None = None,
) -> Settlement:
    """Await ``invocation`` and decide the disposition of its outcome.

    The failure has already been recorded by the pipeline; it is kept on the
    settlement for the caller rather than raised again.
    """

    try:
        context = await invocation()
    except Exception as exc:
        return Settlement(mode=mode, disposition=Disposition.EXIT_FAILURE, error=exc)

    disposition = decide_disposition(
        mode, succeeded=True, options=options, serving=context.server is not None
    )
    return Settlement(mode=mode, disposition=disposition, context=context)


def terminate(settlement: Settlement, exit_fn: Callable[[int], object] = sys.exit) -> None:
    context = settlement.context
    if settlement.disposition is Disposition.STAY_RESIDENT:
        if context is None or context.server is None:
            logger.info("{} run finished; keeping the process resident", settlement.mode.value)
            return
        logger.info("Serving until interrupted")
        try:
            context.server.wait()
        except KeyboardInterrupt:
            context.server.stop()

    if context is not None and context.db is not None:
        close_database(context.db)
    exit_fn(settlement.exit_code)


__all__ = [
    "Disposition",
    "RunMode",
    "Settlement",
    "decide_disposition",
    "settle",
    "terminate",
]
