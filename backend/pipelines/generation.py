"""Render the templates of a template package for one session."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any

from jinja2 import Environment, FileSystemLoader, StrictUndefined, TemplateError
from loguru import logger
from sqlalchemy.exc import SQLAlchemyError

from forge.db import DatabaseHandle, session_scope
from forge.errors import GenerationError
from forge.models import PackageType
from forge.repositories import ClusterRepository, PackageRepository, SessionRepository
from forge.services.session_service import get_session_zcl_package_ids


@dataclass(slots=True, frozen=True)
class RenderedFile:
    path: Path
    content: str


def hex4(value: int) -> str:
    return f"0x{int(value):04X}"


def _build_environment(template_root: Path) -> Environment:
    env = Environment(
        loader=FileSystemLoader(str(template_root)),
        undefined=StrictUndefined,
        trim_blocks=True,
        lstrip_blocks=True,
        keep_trailing_newline=True,
    )
    env.filters["hex4"] = hex4
    return env


def _resolve_output(output_dir: Path, relative: str) -> Path:
    target = (output_dir / relative).resolve()
    if not target.is_relative_to(output_dir):
        raise GenerationError(f"Template output {relative!r} escapes {output_dir}")
    return target


def render_package(
    db: DatabaseHandle, session_id: int, package_id: int, output_dir: Path
) -> list[RenderedFile]:
    """Render every template of ``package_id`` without touching the filesystem."""

    output_dir = Path(output_dir).expanduser().resolve()
    try:
        with session_scope(db) as session:
            packages = PackageRepository(session)
            package = packages.get_package(package_id)
            if package is None or package.type != PackageType.GEN_TEMPLATES_JSON.value:
                raise GenerationError(f"Package {package_id} is not a loaded template package")
            if SessionRepository(session).get_session(session_id) is None:
                raise GenerationError(f"Session {session_id} does not exist")

            zcl_ids = get_session_zcl_package_ids(session, session_id)
            clusters = ClusterRepository(session).clusters_for_packages(zcl_ids)
            context: dict[str, Any] = {
                "clusters": clusters,
                "package": package,
                "session": {
                    "id": session_id,
                    "key_values": SessionRepository(session).get_key_values(session_id),
                },
            }

            env = _build_environment(Path(package.path).parent)
            rendered: list[RenderedFile] = []
            for template in packages.get_templates(package_id):
                target = _resolve_output(output_dir, template.output)
                try:
                    content = env.get_template(template.path).render(**context)
                except (TemplateError, UnicodeDecodeError) as exc:
                    raise GenerationError(
                        f"Template {template.name} ({template.path}) failed to render: {exc}"
                    ) from exc
                rendered.append(RenderedFile(path=target, content=content))
    except SQLAlchemyError as exc:
        raise GenerationError(f"Unable to read generation data: {exc}") from exc
    return rendered


def write_files(files: list[RenderedFile]) -> list[Path]:
    written: list[Path] = []
    for item in files:
        try:
            item.path.parent.mkdir(parents=True, exist_ok=True)
            item.path.write_text(item.content, encoding="utf-8")
        except OSError as exc:
            raise GenerationError(f"Unable to write {item.path}: {exc}") from exc
        written.append(item.path)
    return written


def generate_and_write_files(
    db: DatabaseHandle,
    session_id: int,
    package_id: int,
    output_dir: Path,
    *,
    log: bool = True,
) -> list[Path]:
    """Render the template package for a session and write the results.

    All templates are rendered before the first file is written, so a template
    error leaves ``output_dir`` untouched.
    """

    rendered = render_package(db, session_id, package_id, output_dir)
    written = write_files(rendered)
    if log:
        for path in written:
            logger.info("    ✍  {}", path)
    logger.info(
        "Generated {} files for session {} from package {}", len(written), session_id, package_id
    )
    return written


__all__ = ["RenderedFile", "generate_and_write_files", "hex4", "render_package", "write_files"]
