from __future__ import annotations

import json

import pytest

from forge.core.config import BUILTIN_GEN_TEMPLATES, BUILTIN_ZCL_PROPERTIES
from forge.db import session_scope
from forge.errors import LoadError
from forge.models import PackageType
from forge.repositories import ClusterRepository, PackageRepository
from loaders.metadata import (
    file_crc,
    parse_cluster_document,
    parse_metadata_manifest,
    parse_template_manifest,
    to_define,
)
from loaders.template_loader import load_templates
from loaders.zcl_loader import load_zcl


@pytest.mark.parametrize(
    ("name", "suffix", "expected"),
    [
        ("On/Off", "CLUSTER", "ON_OFF_CLUSTER"),
        ("Level Control", None, "LEVEL_CONTROL"),
        ("ZCL version", None, "ZCL_VERSION"),
        ("Basic Cluster", "CLUSTER", "BASIC_CLUSTER"),
    ],
)
def test_to_define(name, suffix, expected):
    assert to_define(name, suffix) == expected


def test_parse_cluster_document_reads_codes_and_inherits_defaults(data_dir):
    (cluster,) = parse_cluster_document(data_dir / "custom-cluster.yaml")

    assert cluster.code == 0xFC00
    assert cluster.manufacturer_code == 0xBEAD
    assert cluster.define == "SAMPLE_CUSTOM_CLUSTER"
    assert [attribute.code for attribute in cluster.attributes] == [0, 1]
    assert cluster.attributes[1].is_optional is True
    assert cluster.commands[0].source == "client"


def test_parse_cluster_document_rejects_bad_side(tmp_path):
    path = tmp_path / "bad.yaml"
    path.write_text(
        "clusters:\n"
        "  - code: 1\n"
        "    name: Bad\n"
        "    attributes:\n"
        "      - {code: 0, name: a, type: int8u, side: both}\n",
        encoding="utf-8",
    )

    with pytest.raises(LoadError, match="side"):
        parse_cluster_document(path)


def test_parse_cluster_document_rejects_malformed_yaml(tmp_path):
    path = tmp_path / "bad.yaml"
    path.write_text("clusters: [unterminated\n", encoding="utf-8")

    with pytest.raises(LoadError):
        parse_cluster_document(path)


def test_metadata_manifest_requires_existing_files(tmp_path):
    manifest = tmp_path / "zcl.yaml"
    manifest.write_text("files:\n  - missing.yaml\n", encoding="utf-8")

    with pytest.raises(LoadError, match="does not exist"):
        parse_metadata_manifest(manifest)


def test_builtin_manifest_lists_documents():
    manifest = parse_metadata_manifest(BUILTIN_ZCL_PROPERTIES)

    assert [path.name for path in manifest.files] == ["general.yaml", "lighting.yaml"]
    assert manifest.version == "1.0"


@pytest.mark.parametrize(
    ("document", "clusters"),
    [
        ("general.yaml", ["Basic", "Identify", "On/Off"]),
        ("lighting.yaml", ["Level Control", "Color Control"]),
    ],
)
def test_builtin_documents_parse(document, clusters):
    parsed = parse_cluster_document(BUILTIN_ZCL_PROPERTIES.parent / document)

    assert [cluster.name for cluster in parsed] == clusters
    for cluster in parsed:
        assert cluster.commands
        assert all(isinstance(command.name, str) for command in cluster.commands)


def test_builtin_on_off_command_names_stay_strings():
    parsed = parse_cluster_document(BUILTIN_ZCL_PROPERTIES.parent / "general.yaml")
    on_off = next(cluster for cluster in parsed if cluster.code == 0x0006)

    assert [command.name for command in on_off.commands] == ["Off", "On", "Toggle"]
    assert [command.define for command in on_off.commands] == ["OFF", "ON", "TOGGLE"]


def test_unquoted_boolean_name_is_rejected(tmp_path):
    document = tmp_path / "switch.yaml"
    document.write_text(
        "clusters:\n  - code: 0x0006\n    name: Switch\n    commands:\n"
        "      - code: 0x00\n        name: Off\n",
        encoding="utf-8",
    )

    with pytest.raises(LoadError, match="non-empty name"):
        parse_cluster_document(document)


def test_invalid_utf8_document_raises_load_error(tmp_path):
    document = tmp_path / "latin.yaml"
    document.write_bytes(b"clusters:\n  - name: \xff\xfe\n")

    with pytest.raises(LoadError, match="UTF-8"):
        parse_cluster_document(document)


def test_template_manifest_rejects_duplicate_outputs(tmp_path):
    (tmp_path / "a.jinja").write_text("a", encoding="utf-8")
    manifest = tmp_path / "gen-templates.json"
    manifest.write_text(
        json.dumps(
            {
                "templates": [
                    {"path": "a.jinja", "output": "out.txt"},
                    {"path": "a.jinja", "output": "out.txt"},
                ]
            }
        ),
        encoding="utf-8",
    )

    with pytest.raises(LoadError, match="duplicate"):
        parse_template_manifest(manifest)


def test_file_crc_changes_with_content(tmp_path):
    path = tmp_path / "doc.yaml"
    path.write_text("one", encoding="utf-8")
    before = file_crc([path])
    path.write_text("two", encoding="utf-8")

    assert file_crc([path]) != before


def test_load_zcl_is_idempotent(db):
    first = load_zcl(db, BUILTIN_ZCL_PROPERTIES)
    second = load_zcl(db, BUILTIN_ZCL_PROPERTIES)

    assert first.package_id == second.package_id
    with session_scope(db) as session:
        packages = PackageRepository(session).list_packages((PackageType.ZCL_PROPERTIES.value,))
        clusters = ClusterRepository(session).clusters_for_packages([first.package_id])
        assert len(packages) == 1
        assert {cluster.name for cluster in clusters} >= {"Basic", "On/Off", "Level Control"}


def test_load_templates_stores_every_template(db):
    loaded = load_templates(db, BUILTIN_GEN_TEMPLATES)

    with session_scope(db) as session:
        templates = PackageRepository(session).get_templates(loaded.package_id)
        outputs = [template.output for template in templates]
    assert outputs == ["cluster-id.h", "attribute-id.h", "command-id.h", "docs/cluster-summary.md"]


def test_load_zcl_missing_manifest_raises(db, tmp_path):
    with pytest.raises(LoadError):
        load_zcl(db, tmp_path / "nope.yaml")
