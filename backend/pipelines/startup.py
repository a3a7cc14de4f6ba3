"""Entry points for the four run modes and the command line interface."""

from __future__ import annotations

import argparse
import asyncio
import sys
import webbrowser
from collections.abc import Awaitable, Callable
from pathlib import Path

from loguru import logger

from forge.core.config import BUILTIN_GEN_TEMPLATES, BUILTIN_ZCL_PROPERTIES, Settings, get_settings
from forge.core.diagnostics import init_diagnostics, log_error
from forge.db import backup_and_clear
from forge.errors import FilesystemError

from .context import PipelineContext, RunOptions
from .orchestrator import ProgressCallback, StagePipeline
from .stages import (
    CreateSession,
    EnsureFreshDatabase,
    Generate,
    ImportSessionState,
    InitializeSessionPackages,
    LoadMetadata,
    LoadSchema,
    LoadTemplates,
    OpenDatabase,
    PresentInterface,
    SdkGeneration,
    Stage,
    StartHttpServer,
)
from .termination import RunMode, Settlement, settle, terminate

GENERATE_SUFFIX = "generate"
SDK_REGEN_SUFFIX = "sdk-regen"
SELF_CHECK_SUFFIX = "self-check"


def _progress_printer(echo: Callable[[str], None]) -> ProgressCallback:
    def _report(stage: Stage, _context: PipelineContext) -> None:
        if stage.progress_message:
            echo(f"    👉 {stage.progress_message}")

    return _report


async def start_normal(
    ui_enabled: bool,
    show_url: bool,
    ui_mode: str | None = None,
    *,
    settings: Settings | None = None,
    launcher: Callable[[str], object] | None = None,
    echo: Callable[[str], None] = print,
) -> PipelineContext:
    """Interactive mode: load the primary database and serve it."""

    settings = settings or get_settings()
    stages: list[Stage] = [
        OpenDatabase(settings.sqlite_file(), resolve_main=True),
        LoadSchema(settings.schema_version),
        LoadMetadata(settings.zcl_properties_file),
        LoadTemplates(settings.gen_template_file),
    ]
    if not settings.no_server:
        stages.append(StartHttpServer(settings.http_port))
    stages.append(
        PresentInterface(
            ui_enabled=ui_enabled,
            show_url=show_url,
            ui_mode=ui_mode,
            launcher=launcher or webbrowser.open,
            echo=echo,
        )
    )
    return await StagePipeline(RunMode.INTERACTIVE.value, stages).run()


async def start_self_check(
    options: RunOptions | None = None,
    *,
    settings: Settings | None = None,
    echo: Callable[[str], None] = print,
) -> PipelineContext:
    """Load the built-in metadata and templates into a throwaway database."""

    options = options or RunOptions()
    settings = settings or get_settings()
    if options.log:
        echo("🤖 Starting self-check")
    db_file = settings.sqlite_file(SELF_CHECK_SUFFIX)
    pipeline = StagePipeline(
        RunMode.SELF_CHECK.value,
        [
            EnsureFreshDatabase(db_file, discard=True),
            OpenDatabase(db_file),
            LoadSchema(settings.schema_version),
            LoadMetadata(BUILTIN_ZCL_PROPERTIES),
            LoadTemplates(BUILTIN_GEN_TEMPLATES),
        ],
        progress=_progress_printer(echo) if options.log else None,
    )
    context = await pipeline.run()
    if options.log:
        echo("😎 Self-check done!")
    return context


async def start_generation(
    output_dir: Path,
    template_path: Path,
    metadata_path: Path,
    state_path: Path | None = None,
    options: RunOptions | None = None,
    *,
    settings: Settings | None = None,
    echo: Callable[[str], None] = print,
) -> PipelineContext:
    """Headless generation into ``output_dir`` from a fresh session."""

    options = options or RunOptions()
    settings = settings or get_settings()
    db_file = settings.sqlite_file(GENERATE_SUFFIX)
    stages: list[Stage] = [
        EnsureFreshDatabase(db_file, discard=options.clean_db),
        OpenDatabase(db_file),
        LoadSchema(settings.schema_version),
        LoadMetadata(Path(metadata_path)),
        LoadTemplates(Path(template_path)),
        CreateSession(),
    ]
    if state_path is not None:
        stages.append(ImportSessionState(Path(state_path)))
    stages += [
        InitializeSessionPackages(),
        Generate(Path(output_dir), log=options.log),
    ]
    if options.log:
        echo(f"🤖 Generating into {output_dir}")
    return await StagePipeline(
        RunMode.GENERATION.value,
        stages,
        progress=_progress_printer(echo) if options.log else None,
    ).run()


async def start_sdk_generation(
    output_dir: Path,
    metadata_path: Path | None = None,
    options: RunOptions | None = None,
    *,
    settings: Settings | None = None,
) -> PipelineContext:
    """Deprecated: regenerate the legacy SDK dump without sessions or templates."""

    options = options or RunOptions()
    settings = settings or get_settings()
    db_file = settings.sqlite_file(SDK_REGEN_SUFFIX)
    return await StagePipeline(
        RunMode.SDK_GENERATION.value,
        [
            EnsureFreshDatabase(db_file, discard=options.clean_db),
            OpenDatabase(db_file),
            LoadSchema(settings.schema_version),
            LoadMetadata(Path(metadata_path) if metadata_path else settings.zcl_properties_file),
            SdkGeneration(Path(output_dir)),
        ],
    ).run()


def clear_database_file(settings: Settings | None = None) -> Path | None:
    """Move the primary database aside; the next interactive start begins empty."""

    settings = settings or get_settings()
    return backup_and_clear(settings.sqlite_file())


# ----------------------------------------------------------------------
# Command line


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    settings = get_settings()
    parser = argparse.ArgumentParser(
        prog="clusterforge", description="Load cluster metadata and generate artifacts"
    )
    commands = parser.add_subparsers(dest="command", required=True)

    serve = commands.add_parser("serve", help="Load the primary database and serve the UI")
    serve.add_argument("--ui", action="store_true", help="Open the UI in a browser once serving")
    serve.add_argument(
        "--no-url",
        dest="show_url",
        action="store_false",
        help="Do not print the landing page URL",
    )
    serve.add_argument("--ui-mode", default=None, help="UI mode passed to the landing page")
    serve.add_argument(
        "--port", type=int, default=settings.http_port, help="HTTP port (0 picks a free port)"
    )
    serve.add_argument(
        "--no-server", action="store_true", default=settings.no_server, help="Load data without serving it"
    )

    check = commands.add_parser("self-check", help="Verify the built-in metadata and templates load")
    check.add_argument("--quiet", action="store_true", help="Suppress progress lines")

    generate = commands.add_parser("generate", help="Generate files without a UI")
    generate.add_argument("--output", "-o", type=Path, required=True, help="Output directory")
    generate.add_argument(
        "--zcl", type=Path, default=settings.zcl_properties_file, help="Domain metadata manifest"
    )
    generate.add_argument(
        "--templates", type=Path, default=settings.gen_template_file, help="Template package manifest"
    )
    generate.add_argument("--state", type=Path, default=None, help="Saved session state to import")
    generate.add_argument(
        "--keep-db", action="store_true", help="Reuse the previous generation database"
    )
    generate.add_argument("--no-quit", action="store_true", help="Stay resident after generating")
    generate.add_argument("--quiet", action="store_true", help="Suppress progress lines")

    sdk = commands.add_parser("sdk-regen", help="(deprecated) Regenerate the legacy SDK dump")
    sdk.add_argument("--output", "-o", type=Path, required=True, help="Output directory")
    sdk.add_argument("--zcl", type=Path, default=None, help="Domain metadata manifest")
    sdk.add_argument("--keep-db", action="store_true", help="Reuse the previous regeneration database")

    commands.add_parser("clear-db", help="Back up and clear the primary database file")
    return parser.parse_args(argv)


def _run(
    mode: RunMode,
    invocation: Callable[[], Awaitable[PipelineContext]],
    options: RunOptions | None = None,
    exit_fn: Callable[[int], object] = sys.exit,
) -> Settlement:
    settlement = asyncio.run(settle(mode, invocation, options))
    terminate(settlement, exit_fn=exit_fn)
    return settlement


def main(argv: list[str] | None = None, exit_fn: Callable[[int], object] = sys.exit) -> None:
    args = _parse_args(argv)
    settings = get_settings()
    init_diagnostics(
        stdout=args.command != "serve",
        level=settings.log_level,
        log_file=settings.log_file if settings.log_to_file else None,
    )

    if args.command == "clear-db":
        try:
            backup = clear_database_file(settings)
        except FilesystemError as exc:
            log_error(exc)
            exit_fn(1)
            return
        if backup is None:
            logger.info("No database file at {}; nothing to clear", settings.sqlite_file())
        exit_fn(0)
        return

    if args.command == "serve":
        settings = settings.model_copy(update={"http_port": args.port, "no_server": args.no_server})
        _run(
            RunMode.INTERACTIVE,
            lambda: start_normal(args.ui, args.show_url, args.ui_mode, settings=settings),
            exit_fn=exit_fn,
        )
    elif args.command == "self-check":
        options = RunOptions(log=not args.quiet)
        _run(
            RunMode.SELF_CHECK,
            lambda: start_self_check(options, settings=settings),
            options,
            exit_fn=exit_fn,
        )
    elif args.command == "generate":
        options = RunOptions(quit=not args.no_quit, clean_db=not args.keep_db, log=not args.quiet)
        _run(
            RunMode.GENERATION,
            lambda: start_generation(
                args.output, args.templates, args.zcl, args.state, options, settings=settings
            ),
            options,
            exit_fn=exit_fn,
        )
    elif args.command == "sdk-regen":
        options = RunOptions(clean_db=not args.keep_db)
        _run(
            RunMode.SDK_GENERATION,
            lambda: start_sdk_generation(args.output, args.zcl, options, settings=settings),
            options,
            exit_fn=exit_fn,
        )


if __name__ == "__main__":
    main()
