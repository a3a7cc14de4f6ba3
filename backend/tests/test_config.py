from __future__ import annotations

from pathlib import Path

import pytest
from pydantic import ValidationError

from forge.core.config import Settings


def test_sqlite_file_is_namespaced_per_mode(tmp_path):
    settings = Settings(app_dir=tmp_path, database_name="forge")

    assert settings.sqlite_file() == tmp_path / "forge.sqlite"
    assert settings.sqlite_file("self-check") == tmp_path / "forge-self-check.sqlite"
    assert settings.log_file == tmp_path / "forge.log"


def test_app_dir_expands_user():
    settings = Settings(app_dir=Path("~/forge-data"))

    assert "~" not in str(settings.app_dir)


def test_database_name_rejects_separators(tmp_path):
    with pytest.raises(ValidationError):
        Settings(app_dir=tmp_path, database_name="nested/forge")


def test_log_level_is_normalized(tmp_path):
    assert Settings(app_dir=tmp_path, log_level="debug").log_level == "DEBUG"
    with pytest.raises(ValidationError):
        Settings(app_dir=tmp_path, log_level="chatty")
