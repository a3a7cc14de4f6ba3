"""Package and session-binding persistence helpers."""

from __future__ import annotations

from collections.abc import Iterable, Sequence

from sqlalchemy import select
from sqlalchemy.orm import Session

from forge.domain import TemplateDefinition
from forge.models import GenTemplate, Package, SessionPackage


class PackageRepository:
    """Encapsulate package lookups, inserts and session bindings."""

    def __init__(self, session: Session) -> None:
        self._session = session

    # ------------------------------------------------------------------
    # Packages

    def get_package(self, package_id: int) -> Package | None:
        return self._session.get(Package, package_id)

    def find_package(self, *, path: str, package_type: str, crc: int) -> Package | None:
        query = select(Package).where(
            Package.path == path,
            Package.type == package_type,
            Package.crc == crc,
        )
        return self._session.execute(query).scalar_one_or_none()

    def latest_package_by_path(
        self, path: str, package_types: Iterable[str]
    ) -> Package | None:
        query = (
            select(Package)
            .where(Package.path == path, Package.type.in_(tuple(package_types)))
            .order_by(Package.id.desc())
            .limit(1)
        )
        return self._session.execute(query).scalar_one_or_none()

    def list_packages(self, package_types: Iterable[str] | None = None) -> Sequence[Package]:
        query = select(Package).order_by(Package.id)
        if package_types is not None:
            query = query.where(Package.type.in_(tuple(package_types)))
        return self._session.execute(query).scalars().all()

    def insert_package(
        self,
        *,
        path: str,
        package_type: str,
        crc: int,
        version: str | None,
        description: str | None,
    ) -> Package:
        package = Package(
            path=path,
            type=package_type,
            crc=crc,
            version=version,
            description=description,
        )
        self._session.add(package)
        self._session.flush()
        return package

    # ------------------------------------------------------------------
    # Templates

    def insert_templates(
        self, package_id: int, templates: Iterable[TemplateDefinition]
    ) -> list[GenTemplate]:
        records = [
            GenTemplate(
                package_ref=package_id,
                name=template.name,
                path=template.path,
                output=template.output,
            )
            for template in templates
        ]
        self._session.add_all(records)
        self._session.flush()
        return records

    def get_templates(self, package_id: int) -> Sequence[GenTemplate]:
        query = (
            select(GenTemplate)
            .where(GenTemplate.package_ref == package_id)
            .order_by(GenTemplate.id)
        )
        return self._session.execute(query).scalars().all()

    # ------------------------------------------------------------------
    # Session bindings

    def insert_session_package(
        self, session_id: int, package_id: int, required: bool = False
    ) -> SessionPackage:
        existing = self._session.execute(
            select(SessionPackage).where(
                SessionPackage.session_ref == session_id,
                SessionPackage.package_ref == package_id,
            )
        ).scalar_one_or_none()
        if existing is not None:
            existing.enabled = True
            existing.required = existing.required or required
            return existing

        binding = SessionPackage(
            session_ref=session_id,
            package_ref=package_id,
            required=required,
            enabled=True,
        )
        self._session.add(binding)
        self._session.flush()
        return binding

    def get_session_packages(self, session_id: int) -> Sequence[SessionPackage]:
        query = (
            select(SessionPackage)
            .where(
                SessionPackage.session_ref == session_id,
                SessionPackage.enabled.is_(True),
            )
            .order_by(SessionPackage.id)
        )
        return self._session.execute(query).scalars().all()

    def get_session_package_ids(
        self, session_id: int, package_types: Iterable[str] | None = None
    ) -> list[int]:
        query = (
            select(SessionPackage.package_ref)
            .join(Package, Package.id == SessionPackage.package_ref)
            .where(
                SessionPackage.session_ref == session_id,
                SessionPackage.enabled.is_(True),
            )
            .order_by(SessionPackage.id)
        )
        if package_types is not None:
            query = query.where(Package.type.in_(tuple(package_types)))
        return list(self._session.execute(query).scalars().all())


__all__ = ["PackageRepository"]
