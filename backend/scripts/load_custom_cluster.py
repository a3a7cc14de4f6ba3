import argparse
from pathlib import Path

from loguru import logger

from forge.core.config import get_settings
from forge.db import apply_schema, close_database, open_database, session_scope
from forge.services.session_service import ensure_user_and_session, insert_session_package
from loaders.zcl_loader import load_individual_file


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Load a custom cluster document into the primary database"
    )
    parser.add_argument("path", type=Path, help="Cluster document (YAML or JSON)")
    parser.add_argument(
        "--session-key",
        default=None,
        help="Also bind the package to this session (created on demand)",
    )
    parser.add_argument("--user-key", default="cli", help="Owner of a newly created session")
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    settings = get_settings()
    handle = open_database(settings.sqlite_file())
    try:
        apply_schema(handle, settings.schema_version)
        session_id = None
        if args.session_key:
            with session_scope(handle) as session:
                session_id = ensure_user_and_session(
                    session, args.user_key, args.session_key
                ).session_id

        result = load_individual_file(handle, args.path, session_id)
        if not result.succeeded:
            logger.error("Could not load {}: {}", args.path, result.error)
            return 1

        if session_id is not None:
            with session_scope(handle) as session:
                insert_session_package(session, session_id, result.package_id)
            logger.info("Bound package {} to session {}", result.package_id, args.session_key)
    finally:
        close_database(handle)

    logger.info("Loaded {} as package {}", args.path, result.package_id)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
