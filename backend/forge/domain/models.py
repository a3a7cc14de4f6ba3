"""Typed definitions parsed from metadata and template manifests before persistence."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path


@dataclass(slots=True)
class AttributeDefinition:
    code: int
    name: str
    define: str
    type: str
    side: str = "server"
    manufacturer_code: int | None = None
    default_value: str | None = None
    is_optional: bool = False


@dataclass(slots=True)
class CommandDefinition:
    code: int
    name: str
    define: str
    source: str = "client"
    description: str | None = None
    manufacturer_code: int | None = None
    is_optional: bool = False


@dataclass(slots=True)
class ClusterDefinition:
    """A cluster with its attributes and commands, as declared in a document."""

    code: int
    name: str
    define: str
    manufacturer_code: int | None = None
    description: str | None = None
    domain: str | None = None
    attributes: list[AttributeDefinition] = field(default_factory=list)
    commands: list[CommandDefinition] = field(default_factory=list)


@dataclass(slots=True)
class MetadataManifest:
    """Top-level domain metadata file pointing at cluster documents."""

    path: Path
    version: str | None
    description: str | None
    files: list[Path] = field(default_factory=list)


@dataclass(slots=True)
class TemplateDefinition:
    name: str
    path: str
    output: str


@dataclass(slots=True)
class TemplateManifest:
    path: Path
    name: str
    version: str | None
    templates: list[TemplateDefinition] = field(default_factory=list)

    @property
    def root(self) -> Path:
        return self.path.parent
