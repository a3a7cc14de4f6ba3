"""Cluster, attribute and command persistence helpers."""

from __future__ import annotations

from collections.abc import Iterable, Sequence

from sqlalchemy import func, select
from sqlalchemy.orm import Session, selectinload

from forge.domain import ClusterDefinition
from forge.models import Attribute, Cluster, Command


class ClusterRepository:
    """Store parsed cluster definitions and query them by package."""

    def __init__(self, session: Session) -> None:
        self._session = session

    def insert_clusters(
        self, package_id: int, definitions: Iterable[ClusterDefinition]
    ) -> list[Cluster]:
        clusters: list[Cluster] = []
        for definition in definitions:
            cluster = Cluster(
                package_ref=package_id,
                code=definition.code,
                manufacturer_code=definition.manufacturer_code,
                name=definition.name,
                define=definition.define,
                description=definition.description,
                domain=definition.domain,
            )
            # Attributes and commands inherit the cluster's manufacturer code
            # unless they declare their own.
            cluster.attributes = [
                Attribute(
                    package_ref=package_id,
                    code=attribute.code,
                    manufacturer_code=(
                        attribute.manufacturer_code
                        if attribute.manufacturer_code is not None
                        else definition.manufacturer_code
                    ),
                    name=attribute.name,
                    define=attribute.define,
                    type=attribute.type,
                    side=attribute.side,
                    default_value=attribute.default_value,
                    is_optional=attribute.is_optional,
                )
                for attribute in definition.attributes
            ]
            cluster.commands = [
                Command(
                    package_ref=package_id,
                    code=command.code,
                    manufacturer_code=(
                        command.manufacturer_code
                        if command.manufacturer_code is not None
                        else definition.manufacturer_code
                    ),
                    name=command.name,
                    define=command.define,
                    description=command.description,
                    source=command.source,
                    is_optional=command.is_optional,
                )
                for command in definition.commands
            ]
            clusters.append(cluster)
        self._session.add_all(clusters)
        self._session.flush()
        return clusters

    def clusters_for_packages(
        self,
        package_ids: Sequence[int],
        *,
        manufacturer_code: int | None = None,
    ) -> Sequence[Cluster]:
        if not package_ids:
            return []
        query = (
            select(Cluster)
            .where(Cluster.package_ref.in_(tuple(package_ids)))
            .options(selectinload(Cluster.attributes), selectinload(Cluster.commands))
            .order_by(Cluster.code, Cluster.manufacturer_code, Cluster.id)
        )
        if manufacturer_code is not None:
            query = query.where(Cluster.manufacturer_code == manufacturer_code)
        return self._session.execute(query).scalars().all()

    def all_clusters(self) -> Sequence[Cluster]:
        query = (
            select(Cluster)
            .options(selectinload(Cluster.attributes), selectinload(Cluster.commands))
            .order_by(Cluster.code, Cluster.manufacturer_code, Cluster.id)
        )
        return self._session.execute(query).scalars().all()

    def count_by_manufacturer_code(self, manufacturer_code: int) -> dict[str, int]:
        """Return cluster/attribute/command counts for one manufacturer code."""

        counts: dict[str, int] = {}
        for label, model in (
            ("clusters", Cluster),
            ("attributes", Attribute),
            ("commands", Command),
        ):
            query = select(func.count(model.id)).where(
                model.manufacturer_code == manufacturer_code
            )
            counts[label] = int(self._session.execute(query).scalar_one())
        return counts


__all__ = ["ClusterRepository"]
