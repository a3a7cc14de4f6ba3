"""Process-wide diagnostic sink.

Every run mode reports failures through :func:`log_error` so that an error is
recorded exactly once, at the point where the orchestrator gives up on an
invocation. Sinks are configured by :func:`init_diagnostics`; the first call in
a process wins and later calls are ignored.
"""

from __future__ import annotations

import sys
from pathlib import Path

from loguru import logger

_initialized = False


def init_diagnostics(
    *,
    stdout: bool = False,
    level: str = "INFO",
    log_file: Path | None = None,
) -> bool:
    """Configure loguru sinks for this process.

    ``stdout`` routes console diagnostics to standard output instead of
    standard error, which headless modes use so that tooling capturing a single
    stream sees both progress and errors. Returns ``False`` when the sink was
    already initialized.
    """

    global _initialized
    if _initialized:
        return False

    logger.remove()
    logger.add(sys.stdout if stdout else sys.stderr, level=level)
    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        logger.add(log_file, level="DEBUG", rotation="10 MB", retention=3)
    _initialized = True
    return True


def log_error(error: BaseException | str) -> None:
    if isinstance(error, BaseException):
        logger.opt(exception=error).error("{}: {}", type(error).__name__, error)
    else:
        logger.error("{}", error)


def log_warning(message: str) -> None:
    logger.warning("{}", message)


__all__ = [
    "init_diagnostics",
    "log_error",
    "log_warning",
]
