from __future__ import annotations

import json
import re
import zlib
from collections.abc import Iterable
from pathlib import Path
from typing import Any

import yaml

from forge.domain import (
    AttributeDefinition,
    ClusterDefinition,
    CommandDefinition,
    MetadataManifest,
    TemplateDefinition,
    TemplateManifest,
)
from forge.errors import LoadError

_DEFINE_PATTERN = re.compile(r"[^A-Za-z0-9]+")


def to_define(name: str, suffix: str | None = None) -> str:
    """Derive a C-style define from a display name (``On/Off`` -> ``ON_OFF``)."""

    define = _DEFINE_PATTERN.sub("_", name).strip("_").upper()
    if suffix and not define.endswith(suffix):
        define = f"{define}_{suffix}"
    return define


def file_crc(paths: Iterable[Path]) -> int:
    crc = 0
    for path in paths:
        try:
            crc = zlib.crc32(Path(path).read_bytes(), crc)
        except OSError as exc:
            raise LoadError(f"Unable to read {path}: {exc}") from exc
    return crc


def _read_document(path: Path) -> Any:
    try:
        raw = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise LoadError(f"Unable to read {path}: {exc}") from exc
    except UnicodeDecodeError as exc:
        raise LoadError(f"{path} is not valid UTF-8: {exc}") from exc
    try:
        if path.suffix.lower() == ".json":
            return json.loads(raw)
        return yaml.safe_load(raw)
    except (json.JSONDecodeError, yaml.YAMLError) as exc:
        raise LoadError(f"Malformed document {path}: {exc}") from exc


def _parse_code(value: Any, *, field: str, source: Path) -> int:
    if isinstance(value, bool):
        raise LoadError(f"{source}: {field} must be an integer, got {value!r}")
    if isinstance(value, int):
        code = value
    elif isinstance(value, str):
        try:
            code = int(value.strip(), 0)
        except ValueError as exc:
            raise LoadError(f"{source}: {field} is not a valid code: {value!r}") from exc
    else:
        raise LoadError(f"{source}: {field} must be an integer, got {value!r}")
    if code < 0:
        raise LoadError(f"{source}: {field} must not be negative")
    return code


def _optional_code(value: Any, *, field: str, source: Path) -> int | None:
    if value is None:
        return None
    return _parse_code(value, field=field, source=source)


def _require_name(entry: dict[str, Any], *, kind: str, source: Path) -> str:
    name = entry.get("name")
    if not isinstance(name, str) or not name.strip():
        raise LoadError(f"{source}: every {kind} needs a non-empty name")
    return name.strip()


def _parse_attribute(entry: Any, source: Path) -> AttributeDefinition:
    if not isinstance(entry, dict):
        raise LoadError(f"{source}: attribute entries must be mappings")
    name = _require_name(entry, kind="attribute", source=source)
    attribute_type = entry.get("type")
    if not isinstance(attribute_type, str) or not attribute_type:
        raise LoadError(f"{source}: attribute {name!r} needs a type")
    side = str(entry.get("side", "server"))
    if side not in {"client", "server"}:
        raise LoadError(f"{source}: attribute {name!r} has invalid side {side!r}")
    default = entry.get("default")
    return AttributeDefinition(
        code=_parse_code(entry.get("code"), field=f"attribute {name!r} code", source=source),
        name=name,
        define=str(entry.get("define") or to_define(name)),
        type=attribute_type,
        side=side,
        manufacturer_code=_optional_code(
            entry.get("manufacturerCode"), field="manufacturerCode", source=source
        ),
        default_value=None if default is None else str(default),
        is_optional=bool(entry.get("optional", False)),
    )


def _parse_command(entry: Any, source: Path) -> CommandDefinition:
    if not isinstance(entry, dict):
        raise LoadError(f"{source}: command entries must be mappings")
    name = _require_name(entry, kind="command", source=source)
    command_source = str(entry.get("source", "client"))
    if command_source not in {"client", "server"}:
        raise LoadError(f"{source}: command {name!r} has invalid source {command_source!r}")
    return CommandDefinition(
        code=_parse_code(entry.get("code"), field=f"command {name!r} code", source=source),
        name=name,
        define=str(entry.get("define") or to_define(name)),
        source=command_source,
        description=entry.get("description"),
        manufacturer_code=_optional_code(
            entry.get("manufacturerCode"), field="manufacturerCode", source=source
        ),
        is_optional=bool(entry.get("optional", False)),
    )


def parse_cluster_document(path: Path) -> list[ClusterDefinition]:
    path = Path(path)
    document = _read_document(path)
    if not isinstance(document, dict) or not isinstance(document.get("clusters"), list):
        raise LoadError(f"{path}: expected a mapping with a 'clusters' list")

    clusters: list[ClusterDefinition] = []
    for entry in document["clusters"]:
        if not isinstance(entry, dict):
            raise LoadError(f"{path}: cluster entries must be mappings")
        name = _require_name(entry, kind="cluster", source=path)
        clusters.append(
            ClusterDefinition(
                code=_parse_code(entry.get("code"), field=f"cluster {name!r} code", source=path),
                name=name,
                define=str(entry.get("define") or to_define(name, "CLUSTER")),
                manufacturer_code=_optional_code(
                    entry.get("manufacturerCode"), field="manufacturerCode", source=path
                ),
                description=entry.get("description"),
                domain=entry.get("domain"),
                attributes=[_parse_attribute(item, path) for item in entry.get("attributes") or []],
                commands=[_parse_command(item, path) for item in entry.get("commands") or []],
            )
        )
    return clusters


def parse_metadata_manifest(path: Path) -> MetadataManifest:
    path = Path(path).expanduser().resolve()
    document = _read_document(path)
    if not isinstance(document, dict):
        raise LoadError(f"{path}: metadata manifest must be a mapping")
    files = document.get("files")
    if not isinstance(files, list) or not files:
        raise LoadError(f"{path}: metadata manifest needs a non-empty 'files' list")

    resolved: list[Path] = []
    for item in files:
        if not isinstance(item, str) or not item:
            raise LoadError(f"{path}: manifest file entries must be strings")
        candidate = (path.parent / item).resolve()
        if not candidate.is_file():
            raise LoadError(f"{path}: referenced file {candidate} does not exist")
        resolved.append(candidate)

    version = document.get("version")
    return MetadataManifest(
        path=path,
        version=None if version is None else str(version),
        description=document.get("description"),
        files=resolved,
    )


def parse_template_manifest(path: Path) -> TemplateManifest:
    path = Path(path).expanduser().resolve()
    document = _read_document(path)
    if not isinstance(document, dict):
        raise LoadError(f"{path}: template manifest must be a mapping")
    entries = document.get("templates")
    if not isinstance(entries, list) or not entries:
        raise LoadError(f"{path}: template manifest needs a non-empty 'templates' list")

    templates: list[TemplateDefinition] = []
    outputs: set[str] = set()
    for entry in entries:
        if not isinstance(entry, dict):
            raise LoadError(f"{path}: template entries must be mappings")
        template_path = entry.get("path")
        output = entry.get("output")
        if not isinstance(template_path, str) or not isinstance(output, str):
            raise LoadError(f"{path}: every template needs 'path' and 'output' strings")
        if not (path.parent / template_path).is_file():
            raise LoadError(f"{path}: template file {template_path} does not exist")
        if output in outputs:
            raise LoadError(f"{path}: duplicate template output {output}")
        outputs.add(output)
        templates.append(
            TemplateDefinition(
                name=str(entry.get("name") or template_path),
                path=template_path,
                output=output,
            )
        )

    version = document.get("version")
    return TemplateManifest(
        path=path,
        name=str(document.get("name") or path.stem),
        version=None if version is None else str(version),
        templates=templates,
    )


__all__ = [
    "file_crc",
    "parse_cluster_document",
    "parse_metadata_manifest",
    "parse_template_manifest",
    "to_define",
]
