"""Load generation template packages into a database."""

from __future__ import annotations

from pathlib import Path

from loguru import logger
from sqlalchemy.exc import SQLAlchemyError

from forge.db import DatabaseHandle, session_scope
from forge.errors import LoadError
from forge.models import PackageType
from forge.repositories import PackageRepository

from .metadata import file_crc, parse_template_manifest
from .zcl_loader import LoadContext


def load_templates(db: DatabaseHandle, path: Path) -> LoadContext:
    manifest = parse_template_manifest(Path(path))
    crc = file_crc(
        [manifest.path, *(manifest.root / template.path for template in manifest.templates)]
    )
    try:
        with session_scope(db) as session:
            packages = PackageRepository(session)
            existing = packages.find_package(
                path=str(manifest.path),
                package_type=PackageType.GEN_TEMPLATES_JSON.value,
                crc=crc,
            )
            if existing is not None:
                logger.debug("Template package {} already loaded as {}", manifest.path, existing.id)
                return LoadContext(db=db, package_id=existing.id)

            package = packages.insert_package(
                path=str(manifest.path),
                package_type=PackageType.GEN_TEMPLATES_JSON.value,
                crc=crc,
                version=manifest.version,
                description=manifest.name,
            )
            packages.insert_templates(package.id, manifest.templates)
            package_id = package.id
    except SQLAlchemyError as exc:
        raise LoadError(f"Unable to store templates from {path}: {exc}") from exc

    logger.info(
        "Loaded template package {} from {} ({} templates)",
        package_id,
        manifest.path,
        len(manifest.templates),
    )
    return LoadContext(db=db, package_id=package_id)


__all__ = ["load_templates"]
