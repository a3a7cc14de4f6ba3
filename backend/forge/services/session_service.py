"""Session creation and package binding.

A session only ever sees the packages bound to it through ``session_packages``.
Headless generation binds exactly the packages it just loaded; interactive
sessions fall back to the newest loaded packages.
"""

from __future__ import annotations

import json
from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path

from loguru import logger
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from forge.errors import LoadError, SessionError
from forge.models import ZCL_PACKAGE_TYPES, PackageType, SessionPackage
from forge.repositories import PackageRepository, SessionRepository

PackageRef = int | str | Path


@dataclass(slots=True, frozen=True)
class SessionRef:
    user_id: int
    session_id: int


def create_blank_session(session: Session) -> int:
    try:
        record = SessionRepository(session).create_session()
    except SQLAlchemyError as exc:
        raise SessionError(f"Unable to create session: {exc}") from exc
    logger.debug("Created blank session {}", record.id)
    return record.id


def ensure_user_and_session(session: Session, user_key: str, session_key: str) -> SessionRef:
    """Resolve the session for ``session_key``, creating user and session on demand."""

    repo = SessionRepository(session)
    try:
        user = repo.ensure_user(user_key)
        record = repo.get_session_by_key(session_key)
        if record is None:
            record = repo.create_session(session_key=session_key, user_id=user.id)
        elif record.user_ref is None:
            record.user_ref = user.id
    except SQLAlchemyError as exc:
        raise SessionError(f"Unable to resolve session {session_key}: {exc}") from exc
    return SessionRef(user_id=user.id, session_id=record.id)


def _require_session(session: Session, session_id: int | None) -> int:
    if session_id is None:
        raise SessionError("A session identifier is required before binding packages")
    if SessionRepository(session).get_session(session_id) is None:
        raise SessionError(f"Session {session_id} does not exist")
    return session_id


def _resolve_package_id(
    repo: PackageRepository, ref: PackageRef, package_types: Sequence[str]
) -> int:
    if isinstance(ref, int):
        package = repo.get_package(ref)
        if package is None or package.type not in package_types:
            raise SessionError(
                f"Package {ref} is not a loaded {' or '.join(package_types)} package"
            )
        return package.id

    path = str(Path(ref).expanduser().resolve())
    package = repo.latest_package_by_path(path, package_types)
    if package is None:
        raise SessionError(f"No package loaded from {path}")
    return package.id


def _latest_per_path(repo: PackageRepository, package_types: Sequence[str]) -> list[int]:
    newest: dict[str, int] = {}
    for package in repo.list_packages(package_types):
        newest[package.path] = package.id
    return sorted(newest.values())


def initialize_session_packages(
    session: Session,
    session_id: int,
    *,
    zcl: PackageRef | None = None,
    template: PackageRef | None = None,
) -> int:
    """Bind the default package set to a session and return the session id.

    ``zcl`` and ``template`` accept a package id or the path the package was
    loaded from. Without an explicit metadata package the most recently loaded
    ``zcl-properties`` package is used; without an explicit template package
    the most recent version of each loaded template manifest is bound. Older
    versions of an edited manifest stay in the database but are never bound
    by default.
    """

    _require_session(session, session_id)
    repo = PackageRepository(session)

    try:
        if zcl is not None:
            zcl_id = _resolve_package_id(repo, zcl, (PackageType.ZCL_PROPERTIES.value,))
        else:
            candidates = repo.list_packages((PackageType.ZCL_PROPERTIES.value,))
            if not candidates:
                raise SessionError("No domain metadata package has been loaded")
            zcl_id = candidates[-1].id
            if len(candidates) > 1:
                logger.warning(
                    "Multiple metadata packages loaded; binding newest package {} to session {}",
                    zcl_id,
                    session_id,
                )
        repo.insert_session_package(session_id, zcl_id, required=True)

        if template is not None:
            template_ids = [
                _resolve_package_id(repo, template, (PackageType.GEN_TEMPLATES_JSON.value,))
            ]
        else:
            template_ids = _latest_per_path(repo, (PackageType.GEN_TEMPLATES_JSON.value,))
        for template_id in template_ids:
            repo.insert_session_package(session_id, template_id, required=False)
    except SQLAlchemyError as exc:
        raise SessionError(f"Unable to bind packages to session {session_id}: {exc}") from exc

    logger.debug(
        "Session {} bound to metadata package {} and template packages {}",
        session_id,
        zcl_id,
        template_ids,
    )
    return session_id


def insert_session_package(
    session: Session, session_id: int, package_id: int, required: bool = False
) -> SessionPackage:
    _require_session(session, session_id)
    repo = PackageRepository(session)
    if repo.get_package(package_id) is None:
        raise SessionError(f"Package {package_id} does not exist")
    try:
        return repo.insert_session_package(session_id, package_id, required)
    except SQLAlchemyError as exc:
        raise SessionError(
            f"Unable to bind package {package_id} to session {session_id}: {exc}"
        ) from exc


def get_session_packages(session: Session, session_id: int) -> Sequence[SessionPackage]:
    return PackageRepository(session).get_session_packages(session_id)


def get_session_zcl_package_ids(session: Session, session_id: int) -> list[int]:
    return PackageRepository(session).get_session_package_ids(session_id, ZCL_PACKAGE_TYPES)


def import_session_state(session: Session, session_id: int, state_path: Path) -> int:
    """Copy the key/value pairs of a saved state file into the session."""

    _require_session(session, session_id)
    state_path = Path(state_path)
    try:
        payload = json.loads(state_path.read_text(encoding="utf-8"))
    except OSError as exc:
        raise LoadError(f"Unable to read state file {state_path}: {exc}") from exc
    except UnicodeDecodeError as exc:
        raise LoadError(f"State file {state_path} is not valid UTF-8: {exc}") from exc
    except json.JSONDecodeError as exc:
        raise LoadError(f"State file {state_path} is not valid JSON: {exc}") from exc

    if not isinstance(payload, dict):
        raise LoadError(f"State file {state_path} must contain a JSON object")
    pairs = payload.get("keyValuePairs", [])
    if not isinstance(pairs, list):
        raise LoadError(f"keyValuePairs in {state_path} must be a list")

    values: dict[str, str | None] = {}
    for entry in pairs:
        if not isinstance(entry, dict) or not entry.get("key"):
            raise LoadError(f"Invalid key/value entry in {state_path}: {entry!r}")
        value = entry.get("value")
        values[str(entry["key"])] = None if value is None else str(value)

    try:
        count = SessionRepository(session).upsert_key_values(session_id, values)
    except SQLAlchemyError as exc:
        raise SessionError(f"Unable to store state for session {session_id}: {exc}") from exc
    logger.debug("Imported {} state entries from {} into session {}", count, state_path, session_id)
    return count


__all__ = [
    "SessionRef",
    "create_blank_session",
    "ensure_user_and_session",
    "get_session_packages",
    "get_session_zcl_package_ids",
    "import_session_state",
    "initialize_session_packages",
    "insert_session_package",
]
