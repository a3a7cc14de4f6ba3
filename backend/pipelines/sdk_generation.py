"""Legacy SDK regeneration.

Dumps every loaded cluster as JSON. No session or template package is
involved; the command is kept for existing build scripts only.
"""

from __future__ import annotations

import json
from pathlib import Path

from loguru import logger
from sqlalchemy.exc import SQLAlchemyError

from forge.db import DatabaseHandle, session_scope
from forge.errors import GenerationError
from forge.repositories import ClusterRepository

SDK_OUTPUT_NAME = "sdk-clusters.json"


def run_sdk_generation(db: DatabaseHandle, generation_dir: Path) -> Path:
    logger.warning("SDK regeneration is deprecated; use the generate command instead")
    generation_dir = Path(generation_dir).expanduser().resolve()
    try:
        with session_scope(db) as session:
            clusters = [
                {
                    "code": cluster.code,
                    "manufacturerCode": cluster.manufacturer_code,
                    "name": cluster.name,
                    "define": cluster.define,
                    "attributes": [
                        {"code": attribute.code, "name": attribute.name, "type": attribute.type}
                        for attribute in cluster.attributes
                    ],
                    "commands": [
                        {"code": command.code, "name": command.name, "source": command.source}
                        for command in cluster.commands
                    ],
                }
                for cluster in ClusterRepository(session).all_clusters()
            ]
    except SQLAlchemyError as exc:
        raise GenerationError(f"Unable to read clusters for SDK regeneration: {exc}") from exc

    target = generation_dir / SDK_OUTPUT_NAME
    try:
        generation_dir.mkdir(parents=True, exist_ok=True)
        target.write_text(json.dumps({"clusters": clusters}, indent=2) + "\n", encoding="utf-8")
    except OSError as exc:
        raise GenerationError(f"Unable to write {target}: {exc}") from exc
    logger.info("Wrote {} clusters to {}", len(clusters), target)
    return target


__all__ = ["SDK_OUTPUT_NAME", "run_sdk_generation"]
