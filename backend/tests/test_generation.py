from __future__ import annotations

import pytest

from forge.core.config import BUILTIN_GEN_TEMPLATES, BUILTIN_ZCL_PROPERTIES
from forge.db import session_scope
from forge.errors import GenerationError
from forge.repositories import PackageRepository
from forge.services.session_service import create_blank_session, initialize_session_packages
from loaders.template_loader import load_templates
from loaders.zcl_loader import load_zcl
from pipelines.generation import generate_and_write_files, hex4, render_package


def _prepare(db, templates_path=BUILTIN_GEN_TEMPLATES):
    zcl = load_zcl(db, BUILTIN_ZCL_PROPERTIES)
    templates = load_templates(db, templates_path)
    with session_scope(db) as session:
        session_id = create_blank_session(session)
        initialize_session_packages(
            session, session_id, zcl=zcl.package_id, template=templates.package_id
        )
    return session_id, templates.package_id


def test_hex4():
    assert hex4(6) == "0x0006"
    assert hex4(0xBEAD) == "0xBEAD"


def test_generate_writes_every_template(db, tmp_path):
    session_id, package_id = _prepare(db)
    output_dir = tmp_path / "out"

    written = generate_and_write_files(db, session_id, package_id, output_dir, log=False)

    assert sorted(path.relative_to(output_dir.resolve()).as_posix() for path in written) == [
        "attribute-id.h",
        "cluster-id.h",
        "command-id.h",
        "docs/cluster-summary.md",
    ]
    cluster_ids = (output_dir / "cluster-id.h").read_text(encoding="utf-8")
    assert "#define ON_OFF_CLUSTER_ID 0x0006" in cluster_ids
    assert "#define LEVEL_CONTROL_CLUSTER_ID 0x0008" in cluster_ids


def test_render_failure_writes_nothing(db, tmp_path, data_dir):
    session_id, package_id = _prepare(db, data_dir / "broken-templates" / "gen-templates.json")
    output_dir = tmp_path / "out"

    with pytest.raises(GenerationError, match="broken.jinja"):
        generate_and_write_files(db, session_id, package_id, output_dir)

    assert not output_dir.exists()


def test_output_may_not_escape_output_dir(db, tmp_path):
    session_id, package_id = _prepare(db)
    with session_scope(db) as session:
        (template, *_rest) = PackageRepository(session).get_templates(package_id)
        template.output = "../escaped.h"

    with pytest.raises(GenerationError, match="escapes"):
        render_package(db, session_id, package_id, tmp_path / "out")


def test_generation_requires_template_package(db, tmp_path):
    zcl = load_zcl(db, BUILTIN_ZCL_PROPERTIES)
    with session_scope(db) as session:
        session_id = create_blank_session(session)

    with pytest.raises(GenerationError, match="not a loaded template package"):
        generate_and_write_files(db, session_id, zcl.package_id, tmp_path / "out")
