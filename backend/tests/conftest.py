from __future__ import annotations

import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

import pytest

from forge.core.config import BUILTIN_GEN_TEMPLATES, BUILTIN_ZCL_PROPERTIES, Settings
from forge.db import apply_schema, close_database, open_database, reset_main_database

DATA_DIR = Path(__file__).parent / "data"


@pytest.fixture
def data_dir() -> Path:
    return DATA_DIR


@pytest.fixture
def test_settings(tmp_path, monkeypatch) -> Settings:
    settings = Settings(
        environment="test",
        app_dir=tmp_path / "app",
        database_name="forge-test",
        http_port=0,
        log_to_file=False,
        zcl_properties_file=BUILTIN_ZCL_PROPERTIES,
        gen_template_file=BUILTIN_GEN_TEMPLATES,
    )
    monkeypatch.setattr("forge.core.config.get_settings", lambda: settings)
    monkeypatch.setattr("forge.core.config.settings", settings)
    monkeypatch.setattr("pipelines.startup.get_settings", lambda: settings)
    return settings


@pytest.fixture
def db(tmp_path):
    handle = open_database(tmp_path / "unit.sqlite")
    apply_schema(handle, 1)
    yield handle
    close_database(handle)


@pytest.fixture(autouse=True)
def _reset_main_database():
    yield
    reset_main_database()
