from __future__ import annotations

from forge.db import close_database, open_database, session_scope
from forge.repositories import ClusterRepository, SessionRepository
from forge.services.session_service import get_session_packages
from scripts.load_custom_cluster import main


def test_script_loads_and_binds_custom_cluster(test_settings, data_dir, monkeypatch):
    monkeypatch.setattr("scripts.load_custom_cluster.get_settings", lambda: test_settings)

    assert main([str(data_dir / "custom-cluster.yaml"), "--session-key", "SESSION"]) == 0

    handle = open_database(test_settings.sqlite_file())
    try:
        with session_scope(handle) as session:
            record = SessionRepository(session).get_session_by_key("SESSION")
            assert record is not None
            assert len(get_session_packages(session, record.id)) == 1
            counts = ClusterRepository(session).count_by_manufacturer_code(0xBEAD)
            assert counts == {"clusters": 1, "attributes": 2, "commands": 1}
    finally:
        close_database(handle)


def test_script_reports_failure(test_settings, tmp_path, monkeypatch):
    monkeypatch.setattr("scripts.load_custom_cluster.get_settings", lambda: test_settings)
    broken = tmp_path / "broken.yaml"
    broken.write_text("not: [a, cluster, document]\n", encoding="utf-8")

    assert main([str(broken)]) == 1
