"""Pipeline stages.

Each stage performs exactly one step of a run and returns the context it was
given, extended with whatever the step produced. Blocking work (filesystem,
SQLite) is pushed to a worker thread so the event loop only ever waits on one
stage at a time.
"""

from __future__ import annotations

import asyncio
import webbrowser
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, ClassVar, Protocol, runtime_checkable

from loguru import logger

from forge.db import apply_schema, ensure_fresh, open_database, resolve_main_database, session_scope
from forge.server import init_http_server
from forge.services import session_service
from loaders.template_loader import load_templates
from loaders.zcl_loader import load_zcl

from .context import PipelineContext
from .generation import generate_and_write_files
from .sdk_generation import run_sdk_generation


@runtime_checkable
class Stage(Protocol):
    name: ClassVar[str]
    requires: ClassVar[tuple[str, ...]]
    progress_message: ClassVar[str | None]

    async def run(self, context: PipelineContext) -> PipelineContext: ...


# ----------------------------------------------------------------------
# Database


@dataclass(slots=True)
class EnsureFreshDatabase:
    name: ClassVar[str] = "ensure-fresh-database"
    requires: ClassVar[tuple[str, ...]] = ()
    progress_message: ClassVar[str | None] = "database file prepared"

    path: Path
    discard: bool

    async def run(self, context: PipelineContext) -> PipelineContext:
        await asyncio.to_thread(ensure_fresh, self.path, self.discard)
        return context


@dataclass(slots=True)
class OpenDatabase:
    name: ClassVar[str] = "open-database"
    requires: ClassVar[tuple[str, ...]] = ()
    progress_message: ClassVar[str | None] = "database initialized"

    path: Path
    resolve_main: bool = False

    async def run(self, context: PipelineContext) -> PipelineContext:
        handle = await asyncio.to_thread(open_database, self.path)
        if self.resolve_main:
            resolve_main_database(handle)
        return context.extend(db=handle)


@dataclass(slots=True)
class LoadSchema:
    name: ClassVar[str] = "load-schema"
    requires: ClassVar[tuple[str, ...]] = ("db",)
    progress_message: ClassVar[str | None] = "schema initialized"

    version: int

    async def run(self, context: PipelineContext) -> PipelineContext:
        await asyncio.to_thread(apply_schema, context.db, self.version)
        return context


# ----------------------------------------------------------------------
# Packages


@dataclass(slots=True)
class LoadMetadata:
    name: ClassVar[str] = "load-metadata"
    requires: ClassVar[tuple[str, ...]] = ("db",)
    progress_message: ClassVar[str | None] = "zcl data loaded"

    path: Path

    async def run(self, context: PipelineContext) -> PipelineContext:
        loaded = await asyncio.to_thread(load_zcl, context.db, self.path)
        return context.extend(zcl_package_id=loaded.package_id)


@dataclass(slots=True)
class LoadTemplates:
    name: ClassVar[str] = "load-templates"
    requires: ClassVar[tuple[str, ...]] = ("db",)
    progress_message: ClassVar[str | None] = "gen templates loaded"

    path: Path

    async def run(self, context: PipelineContext) -> PipelineContext:
        loaded = await asyncio.to_thread(load_templates, context.db, self.path)
        return context.extend(template_package_id=loaded.package_id)


# ----------------------------------------------------------------------
# Sessions


def _in_session(context: PipelineContext, fn: Callable, *args, **kwargs):
    with session_scope(context.db) as session:
        return fn(session, *args, **kwargs)


@dataclass(slots=True)
class CreateSession:
    name: ClassVar[str] = "create-session"
    requires: ClassVar[tuple[str, ...]] = ("db",)
    progress_message: ClassVar[str | None] = "session created"

    async def run(self, context: PipelineContext) -> PipelineContext:
        session_id = await asyncio.to_thread(
            _in_session, context, session_service.create_blank_session
        )
        return context.extend(session_id=session_id)


@dataclass(slots=True)
class ImportSessionState:
    name: ClassVar[str] = "import-session-state"
    requires: ClassVar[tuple[str, ...]] = ("db", "session_id")
    progress_message: ClassVar[str | None] = "session state imported"

    path: Path

    async def run(self, context: PipelineContext) -> PipelineContext:
        await asyncio.to_thread(
            _in_session, context, session_service.import_session_state, context.session_id, self.path
        )
        return context


@dataclass(slots=True)
class InitializeSessionPackages:
    """Bind the packages loaded by this run to its session."""

    name: ClassVar[str] = "initialize-session-packages"
    requires: ClassVar[tuple[str, ...]] = ("db", "session_id", "zcl_package_id")
    progress_message: ClassVar[str | None] = "session packages initialized"

    async def run(self, context: PipelineContext) -> PipelineContext:
        await asyncio.to_thread(
            _in_session,
            context,
            session_service.initialize_session_packages,
            context.session_id,
            zcl=context.zcl_package_id,
            template=context.template_package_id,
        )
        return context


# ----------------------------------------------------------------------
# Output


@dataclass(slots=True)
class Generate:
    name: ClassVar[str] = "generate"
    requires: ClassVar[tuple[str, ...]] = ("db", "session_id", "template_package_id")
    progress_message: ClassVar[str | None] = "files generated"

    output_dir: Path
    log: bool = True

    async def run(self, context: PipelineContext) -> PipelineContext:
        written = await asyncio.to_thread(
            generate_and_write_files,
            context.db,
            context.session_id,
            context.template_package_id,
            self.output_dir,
            log=self.log,
        )
        return context.extend(output_dir=Path(self.output_dir), generated_files=tuple(written))


@dataclass(slots=True)
class SdkGeneration:
    name: ClassVar[str] = "sdk-generation"
    requires: ClassVar[tuple[str, ...]] = ("db", "zcl_package_id")
    progress_message: ClassVar[str | None] = "sdk regenerated"

    output_dir: Path

    async def run(self, context: PipelineContext) -> PipelineContext:
        written = await asyncio.to_thread(run_sdk_generation, context.db, self.output_dir)
        return context.extend(output_dir=Path(self.output_dir), generated_files=(written,))


# ----------------------------------------------------------------------
# Interactive


@dataclass(slots=True)
class StartHttpServer:
    name: ClassVar[str] = "start-http-server"
    requires: ClassVar[tuple[str, ...]] = ("db",)
    progress_message: ClassVar[str | None] = "http server started"

    port: int

    async def run(self, context: PipelineContext) -> PipelineContext:
        server = await init_http_server(context.db, self.port)
        return context.extend(server=server)


@dataclass(slots=True)
class PresentInterface:
    """Open the UI in a browser, or print where it can be reached."""

    name: ClassVar[str] = "present-interface"
    requires: ClassVar[tuple[str, ...]] = ("db",)
    progress_message: ClassVar[str | None] = None

    ui_enabled: bool
    show_url: bool
    ui_mode: str | None = None
    launcher: Callable[[str], object] = field(default=webbrowser.open)
    echo: Callable[[str], None] = field(default=print)

    async def run(self, context: PipelineContext) -> PipelineContext:
        if context.server is None:
            if self.ui_enabled:
                logger.warning("UI requested but no server is running; nothing to show")
            return context

        url = f"http://localhost:{context.server.port}/index.html"
        if self.ui_mode:
            url = f"{url}?uiMode={self.ui_mode}"
        if self.ui_enabled:
            logger.info("Opening {}", url)
            await asyncio.to_thread(self.launcher, url)
        elif self.show_url:
            self.echo(f"url: {url}")
        return context


__all__ = [
    "CreateSession",
    "EnsureFreshDatabase",
    "Generate",
    "ImportSessionState",
    "InitializeSessionPackages",
    "LoadMetadata",
    "LoadSchema",
    "LoadTemplates",
    "OpenDatabase",
    "PresentInterface",
    "SdkGeneration",
    "Stage",
    "StartHttpServer",
]
