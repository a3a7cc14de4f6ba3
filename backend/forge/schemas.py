from datetime import datetime

from pydantic import BaseModel, Field


class Package(BaseModel):
    id: int
    path: str
    type: str
    version: str | None = None
    description: str | None = None
    loaded_at: datetime

    model_config = {"from_attributes": True}


class PackageList(BaseModel):
    total: int
    items: list[Package]


class Attribute(BaseModel):
    code: int
    name: str
    define: str
    type: str
    side: str
    manufacturer_code: int | None = None
    default_value: str | None = None
    is_optional: bool

    model_config = {"from_attributes": True}


class Command(BaseModel):
    code: int
    name: str
    define: str
    source: str
    manufacturer_code: int | None = None
    description: str | None = None
    is_optional: bool

    model_config = {"from_attributes": True}


class Cluster(BaseModel):
    id: int
    package_ref: int
    code: int
    manufacturer_code: int | None = None
    name: str
    define: str
    domain: str | None = None
    description: str | None = None
    attributes: list[Attribute] = Field(default_factory=list)
    commands: list[Command] = Field(default_factory=list)

    model_config = {"from_attributes": True}


class ClusterList(BaseModel):
    total: int
    items: list[Cluster]


class SessionCreate(BaseModel):
    user_key: str | None = Field(default=None, min_length=1)
    session_key: str | None = Field(default=None, min_length=1)


class SessionPackage(BaseModel):
    package_id: int
    type: str
    path: str
    required: bool
    enabled: bool


class Session(BaseModel):
    session_id: int
    user_id: int | None = None
    packages: list[SessionPackage] = Field(default_factory=list)
