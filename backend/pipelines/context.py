from __future__ import annotations

from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import TYPE_CHECKING, Any

from forge.db import DatabaseHandle
from forge.errors import ContextError

if TYPE_CHECKING:
    from forge.server import HttpServer


@dataclass(slots=True, frozen=True)
class PipelineContext:
    """State accumulated by the stages of one invocation.

    Stages never mutate a context; they return a new one through
    :meth:`extend`, which refuses to overwrite a field that is already set.
    """

    db: DatabaseHandle | None = None
    zcl_package_id: int | None = None
    template_package_id: int | None = None
    session_id: int | None = None
    output_dir: Path | None = None
    generated_files: tuple[Path, ...] | None = None
    server: HttpServer | None = None

    def extend(self, **values: Any) -> PipelineContext:
        known = {item.name for item in fields(self)}
        for name, value in values.items():
            if name not in known:
                raise ContextError(f"Unknown context field {name!r}")
            if getattr(self, name) is not None:
                raise ContextError(f"Context field {name!r} is already set")
            if value is None:
                raise ContextError(f"Context field {name!r} cannot be set to None")
        return replace(self, **values)

    def is_set(self, name: str) -> bool:
        return getattr(self, name, None) is not None

    @property
    def package_ids(self) -> tuple[int, ...]:
        """Identifiers of the packages loaded so far, in load order."""

        return tuple(
            package_id
            for package_id in (self.zcl_package_id, self.template_package_id)
            if package_id is not None
        )


@dataclass(slots=True, frozen=True)
class RunOptions:
    quit: bool = True
    clean_db: bool = True
    log: bool = True

    def __post_init__(self) -> None:
        for item in fields(self):
            value = getattr(self, item.name)
            if not isinstance(value, bool):
                raise ValueError(f"RunOptions.{item.name} must be a bool, got {value!r}")


__all__ = ["PipelineContext", "RunOptions"]
