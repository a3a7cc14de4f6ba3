"""Load domain metadata (clusters, attributes, commands) into a database."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from loguru import logger
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from forge.db import DatabaseHandle, session_scope
from forge.errors import ForgeError, LoadError
from forge.models import PackageType
from forge.repositories import ClusterRepository, PackageRepository, SessionRepository

from .metadata import file_crc, parse_cluster_document, parse_metadata_manifest


@dataclass(slots=True, frozen=True)
class LoadContext:
    db: DatabaseHandle
    package_id: int


@dataclass(slots=True, frozen=True)
class IndividualLoadResult:
    succeeded: bool
    package_id: int | None = None
    error: str | None = None


def _load_zcl_into(session: Session, path: Path) -> int:
    manifest = parse_metadata_manifest(path)
    crc = file_crc([manifest.path, *manifest.files])
    packages = PackageRepository(session)

    existing = packages.find_package(
        path=str(manifest.path),
        package_type=PackageType.ZCL_PROPERTIES.value,
        crc=crc,
    )
    if existing is not None:
        logger.debug("Metadata package {} already loaded as {}", manifest.path, existing.id)
        return existing.id

    package = packages.insert_package(
        path=str(manifest.path),
        package_type=PackageType.ZCL_PROPERTIES.value,
        crc=crc,
        version=manifest.version,
        description=manifest.description,
    )
    clusters = ClusterRepository(session)
    total = 0
    for document in manifest.files:
        total += len(clusters.insert_clusters(package.id, parse_cluster_document(document)))
    logger.info(
        "Loaded metadata package {} from {} ({} clusters)", package.id, manifest.path, total
    )
    return package.id


def load_zcl(db: DatabaseHandle, path: Path) -> LoadContext:
    """Load the metadata manifest at ``path`` and return its package id.

    Loading an unchanged manifest again returns the id assigned the first time.
    """

    try:
        with session_scope(db) as session:
            package_id = _load_zcl_into(session, Path(path))
    except SQLAlchemyError as exc:
        raise LoadError(f"Unable to store metadata from {path}: {exc}") from exc
    return LoadContext(db=db, package_id=package_id)


def load_individual_file(
    db: DatabaseHandle, path: Path, session_id: int | None = None
) -> IndividualLoadResult:
    """Load a single custom cluster document as its own package.

    Failures are reported in the result rather than raised. The package is not
    bound to ``session_id``; callers bind it explicitly.
    """

    path = Path(path).expanduser().resolve()
    try:
        with session_scope(db) as session:
            if session_id is not None and SessionRepository(session).get_session(session_id) is None:
                raise LoadError(f"Session {session_id} does not exist")
            crc = file_crc([path])
            packages = PackageRepository(session)
            existing = packages.find_package(
                path=str(path), package_type=PackageType.ZCL_FILE.value, crc=crc
            )
            if existing is not None:
                return IndividualLoadResult(succeeded=True, package_id=existing.id)

            definitions = parse_cluster_document(path)
            package = packages.insert_package(
                path=str(path),
                package_type=PackageType.ZCL_FILE.value,
                crc=crc,
                version=None,
                description=f"Custom cluster file {path.name}",
            )
            ClusterRepository(session).insert_clusters(package.id, definitions)
            package_id = package.id
    except (ForgeError, SQLAlchemyError) as exc:
        logger.warning("Failed to load custom file {}: {}", path, exc)
        return IndividualLoadResult(succeeded=False, error=str(exc))

    logger.info("Loaded custom cluster file {} as package {}", path, package_id)
    return IndividualLoadResult(succeeded=True, package_id=package_id)


__all__ = ["IndividualLoadResult", "LoadContext", "load_individual_file", "load_zcl"]
