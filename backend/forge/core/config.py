from functools import lru_cache
from pathlib import Path
from typing import Any

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

RESOURCES_DIR = Path(__file__).resolve().parents[1] / "resources"
BUILTIN_ZCL_PROPERTIES = RESOURCES_DIR / "zcl" / "zcl.yaml"
BUILTIN_GEN_TEMPLATES = RESOURCES_DIR / "templates" / "gen-templates.json"

_LOG_LEVELS = {"TRACE", "DEBUG", "INFO", "SUCCESS", "WARNING", "ERROR", "CRITICAL"}


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    debug: bool = Field(False, description="Enable FastAPI debug mode and SQL echo")
    environment: str = Field(
        default="development",
        description="Runtime environment (development|test|production)",
    )
    app_dir: Path = Field(
        default_factory=lambda: Path.home() / ".clusterforge",
        description="Directory holding database files and logs",
    )
    database_name: str = Field(
        default="forge",
        description="Base name of the SQLite database files inside app_dir",
        min_length=1,
    )
    schema_version: int = Field(
        default=1,
        description="Schema version recorded in every database this build opens",
        ge=1,
    )
    zcl_properties_file: Path = Field(
        default=BUILTIN_ZCL_PROPERTIES,
        description="Domain metadata manifest loaded by interactive mode",
    )
    gen_template_file: Path = Field(
        default=BUILTIN_GEN_TEMPLATES,
        description="Template package manifest loaded by interactive mode",
    )
    http_port: int = Field(
        default=9070,
        description="Port of the serving interface (0 picks a free port)",
        ge=0,
        le=65535,
    )
    no_server: bool = Field(
        default=False,
        description="Run interactive mode without the serving interface",
    )
    log_level: str = Field(default="INFO", description="Minimum level for console logs")
    log_to_file: bool = Field(
        default=True,
        description="Also write diagnostics to a rotating log file under app_dir",
    )

    @field_validator("app_dir", "zcl_properties_file", "gen_template_file", mode="after")
    @classmethod
    def _expand_user(cls, value: Path) -> Path:
        return value.expanduser()

    @field_validator("database_name")
    @classmethod
    def _validate_database_name(cls, value: str) -> str:
        if any(sep in value for sep in ("/", "\\")):
            raise ValueError("database_name must be a bare file name without separators")
        return value

    @field_validator("log_level", mode="before")
    @classmethod
    def _normalize_log_level(cls, value: Any) -> str:
        level = str(value).strip().upper()
        if level not in _LOG_LEVELS:
            raise ValueError(
                "log_level must be one of " + ", ".join(sorted(_LOG_LEVELS))
            )
        return level

    def sqlite_file(self, suffix: str | None = None) -> Path:
        """Return the database path, optionally namespaced for a run mode."""

        name = f"{self.database_name}-{suffix}" if suffix else self.database_name
        return self.app_dir / f"{name}.sqlite"

    @property
    def log_file(self) -> Path:
        return self.app_dir / f"{self.database_name}.log"


@lru_cache
def get_settings() -> Settings:
    return Settings()


settings = get_settings()
