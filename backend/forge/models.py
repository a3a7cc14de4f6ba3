from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum

from sqlalchemy import (
    Boolean,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .db import Base


class PackageType(str, Enum):
    ZCL_PROPERTIES = "zcl-properties"
    ZCL_FILE = "zcl-file"
    GEN_TEMPLATES_JSON = "gen-templates-json"


ZCL_PACKAGE_TYPES = (PackageType.ZCL_PROPERTIES.value, PackageType.ZCL_FILE.value)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SchemaInfo(Base):
    __tablename__ = "schema_info"

    key: Mapped[str] = mapped_column(String, primary_key=True)
    value: Mapped[str] = mapped_column(String, nullable=False)


class Package(Base):
    __tablename__ = "packages"
    __table_args__ = (UniqueConstraint("path", "type", "crc", name="uq_packages_path_type_crc"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    path: Mapped[str] = mapped_column(String, nullable=False)
    type: Mapped[str] = mapped_column(String, nullable=False)
    crc: Mapped[int] = mapped_column(Integer, nullable=False)
    version: Mapped[str | None] = mapped_column(String, nullable=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    loaded_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)

    clusters: Mapped[list["Cluster"]] = relationship(
        "Cluster", back_populates="package", cascade="all, delete-orphan"
    )
    templates: Mapped[list["GenTemplate"]] = relationship(
        "GenTemplate", back_populates="package", cascade="all, delete-orphan"
    )


class Cluster(Base):
    __tablename__ = "clusters"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    package_ref: Mapped[int] = mapped_column(Integer, ForeignKey("packages.id"), nullable=False, index=True)
    code: Mapped[int] = mapped_column(Integer, nullable=False)
    manufacturer_code: Mapped[int | None] = mapped_column(Integer, nullable=True, index=True)
    name: Mapped[str] = mapped_column(String, nullable=False)
    define: Mapped[str] = mapped_column(String, nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    domain: Mapped[str | None] = mapped_column(String, nullable=True)

    package: Mapped[Package] = relationship("Package", back_populates="clusters")
    attributes: Mapped[list["Attribute"]] = relationship(
        "Attribute", back_populates="cluster", cascade="all, delete-orphan", order_by="Attribute.code"
    )
    commands: Mapped[list["Command"]] = relationship(
        "Command", back_populates="cluster", cascade="all, delete-orphan", order_by="Command.code"
    )


class Attribute(Base):
    __tablename__ = "attributes"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    cluster_ref: Mapped[int] = mapped_column(Integer, ForeignKey("clusters.id"), nullable=False, index=True)
    package_ref: Mapped[int] = mapped_column(Integer, ForeignKey("packages.id"), nullable=False, index=True)
    code: Mapped[int] = mapped_column(Integer, nullable=False)
    manufacturer_code: Mapped[int | None] = mapped_column(Integer, nullable=True, index=True)
    name: Mapped[str] = mapped_column(String, nullable=False)
    define: Mapped[str] = mapped_column(String, nullable=False)
    type: Mapped[str] = mapped_column(String, nullable=False)
    side: Mapped[str] = mapped_column(String, nullable=False, default="server")
    default_value: Mapped[str | None] = mapped_column(String, nullable=True)
    is_optional: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    cluster: Mapped[Cluster] = relationship("Cluster", back_populates="attributes")


class Command(Base):
    __tablename__ = "commands"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    cluster_ref: Mapped[int] = mapped_column(Integer, ForeignKey("clusters.id"), nullable=False, index=True)
    package_ref: Mapped[int] = mapped_column(Integer, ForeignKey("packages.id"), nullable=False, index=True)
    code: Mapped[int] = mapped_column(Integer, nullable=False)
    manufacturer_code: Mapped[int | None] = mapped_column(Integer, nullable=True, index=True)
    name: Mapped[str] = mapped_column(String, nullable=False)
    define: Mapped[str] = mapped_column(String, nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    source: Mapped[str] = mapped_column(String, nullable=False, default="client")
    is_optional: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    cluster: Mapped[Cluster] = relationship("Cluster", back_populates="commands")


class GenTemplate(Base):
    __tablename__ = "gen_templates"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    package_ref: Mapped[int] = mapped_column(Integer, ForeignKey("packages.id"), nullable=False, index=True)
    name: Mapped[str] = mapped_column(String, nullable=False)
    path: Mapped[str] = mapped_column(String, nullable=False)
    output: Mapped[str] = mapped_column(String, nullable=False)

    package: Mapped[Package] = relationship("Package", back_populates="templates")


class User(Base):
    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_key: Mapped[str] = mapped_column(String, nullable=False, unique=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)

    sessions: Mapped[list["SessionRecord"]] = relationship("SessionRecord", back_populates="user")


class SessionRecord(Base):
    __tablename__ = "sessions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    session_key: Mapped[str] = mapped_column(String, nullable=False, unique=True)
    user_ref: Mapped[int | None] = mapped_column(Integer, ForeignKey("users.id"), nullable=True)
    dirty: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)

    user: Mapped[User | None] = relationship("User", back_populates="sessions")
    packages: Mapped[list["SessionPackage"]] = relationship(
        "SessionPackage", back_populates="session", cascade="all, delete-orphan"
    )
    key_values: Mapped[list["SessionKeyValue"]] = relationship(
        "SessionKeyValue", back_populates="session", cascade="all, delete-orphan"
    )


class SessionPackage(Base):
    __tablename__ = "session_packages"
    __table_args__ = (UniqueConstraint("session_ref", "package_ref", name="uq_session_package"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    session_ref: Mapped[int] = mapped_column(Integer, ForeignKey("sessions.id"), nullable=False, index=True)
    package_ref: Mapped[int] = mapped_column(Integer, ForeignKey("packages.id"), nullable=False)
    required: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    session: Mapped[SessionRecord] = relationship("SessionRecord", back_populates="packages")
    package: Mapped[Package] = relationship("Package")


class SessionKeyValue(Base):
    __tablename__ = "session_key_values"
    __table_args__ = (UniqueConstraint("session_ref", "key", name="uq_session_key"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    session_ref: Mapped[int] = mapped_column(Integer, ForeignKey("sessions.id"), nullable=False, index=True)
    key: Mapped[str] = mapped_column(String, nullable=False)
    value: Mapped[str | None] = mapped_column(Text, nullable=True)

    session: Mapped[SessionRecord] = relationship("SessionRecord", back_populates="key_values")
