from __future__ import annotations

from collections.abc import Callable, Sequence

from loguru import logger

from forge.core.diagnostics import log_error
from forge.errors import ContextError

from .context import PipelineContext
from .stages import Stage

ProgressCallback = Callable[[Stage, PipelineContext], None]


class StagePipeline:
    """Run stages one after another, stopping at the first failure.

    Every failure is reported through the diagnostic sink once, here, and then
    re-raised unchanged to the caller.
    """

    def __init__(
        self,
        mode: str,
        stages: Sequence[Stage],
        *,
        progress: ProgressCallback | None = None,
    ) -> None:
        self.mode = mode
        self.stages = tuple(stages)
        self._progress = progress

    async def run(self, context: PipelineContext | None = None) -> PipelineContext:
        context = context or PipelineContext()
        try:
            for index, stage in enumerate(self.stages, start=1):
                missing = [name for name in stage.requires if not context.is_set(name)]
                if missing:
                    raise ContextError(
                        f"Stage {stage.name} requires {', '.join(missing)} "
                        f"which no earlier stage of {self.mode} provided"
                    )
                logger.debug("[{}] stage {}/{}: {}", self.mode, index, len(self.stages), stage.name)
                context = await stage.run(context)
                if self._progress is not None:
                    self._progress(stage, context)
        except Exception as exc:
            log_error(exc)
            raise
        return context


__all__ = ["ProgressCallback", "StagePipeline"]
