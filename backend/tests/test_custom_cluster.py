from __future__ import annotations

from forge.core.config import BUILTIN_ZCL_PROPERTIES
from forge.db import session_scope
from forge.repositories import ClusterRepository
from forge.services.session_service import (
    ensure_user_and_session,
    get_session_packages,
    initialize_session_packages,
    insert_session_package,
)
from loaders.zcl_loader import load_individual_file, load_zcl

MANUFACTURER_CODE = 0xBEAD


def _counts(db) -> dict[str, int]:
    with session_scope(db) as session:
        return ClusterRepository(session).count_by_manufacturer_code(MANUFACTURER_CODE)


def test_custom_package_adds_only_its_own_rows(db, data_dir):
    builtin = load_zcl(db, BUILTIN_ZCL_PROPERTIES)
    with session_scope(db) as session:
        session_id = ensure_user_and_session(session, "USER", "SESSION").session_id
        initialize_session_packages(session, session_id)

    assert _counts(db) == {"clusters": 0, "attributes": 0, "commands": 0}

    result = load_individual_file(db, data_dir / "custom-cluster.yaml", session_id)
    assert result.succeeded
    assert result.package_id is not None
    with session_scope(db) as session:
        insert_session_package(session, session_id, result.package_id, required=False)

    assert _counts(db) == {"clusters": 1, "attributes": 2, "commands": 1}
    with session_scope(db) as session:
        bound = [binding.package_ref for binding in get_session_packages(session, session_id)]
    assert len(bound) == 2
    assert set(bound) == {builtin.package_id, result.package_id}


def test_loading_custom_file_twice_reuses_package(db, data_dir):
    first = load_individual_file(db, data_dir / "custom-cluster.yaml")
    second = load_individual_file(db, data_dir / "custom-cluster.yaml")

    assert first.package_id == second.package_id
    assert _counts(db)["clusters"] == 1


def test_failed_custom_load_is_reported_not_raised(db, tmp_path):
    broken = tmp_path / "broken.yaml"
    broken.write_text("clusters: [ {name: 'no code'} ]\n", encoding="utf-8")

    result = load_individual_file(db, broken)

    assert result.succeeded is False
    assert result.package_id is None
    assert "code" in result.error


def test_custom_load_rejects_unknown_session(db, data_dir):
    result = load_individual_file(db, data_dir / "custom-cluster.yaml", session_id=999)

    assert result.succeeded is False
    assert _counts(db)["clusters"] == 0


def test_custom_file_with_invalid_utf8_is_reported(db, tmp_path):
    latin = tmp_path / "latin.yaml"
    latin.write_bytes(b"clusters:\n  - name: \xff\xfe\n    code: 0xFC01\n")

    result = load_individual_file(db, latin)

    assert result.succeeded is False
    assert "UTF-8" in result.error
    assert _counts(db)["clusters"] == 0
