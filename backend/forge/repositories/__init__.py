"""Repository abstractions for database interactions."""

from .cluster_repository import ClusterRepository
from .package_repository import PackageRepository
from .session_repository import SessionRepository

__all__ = [
    "ClusterRepository",
    "PackageRepository",
    "SessionRepository",
]
