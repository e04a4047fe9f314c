"""Validate every connection listed in the database metadata file."""
from __future__ import annotations

import argparse
import sys
from pathlib import Path

from sqlalchemy.exc import SQLAlchemyError

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from askdata.assistant.errors import QueryExecutionError  # noqa: E402  (import after sys.path manipulation)
from askdata.core.config import get_settings  # noqa: E402
from askdata.core.logger import get_logger, init_logging, log_context  # noqa: E402
from askdata.db.metadata import DatabaseMetadata  # noqa: E402

logger = get_logger("askdata.check_connections")


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument(
        "--metadata",
        type=Path,
        default=None,
        help="Path to the metadata JSON (defaults to ASKDATA_METADATA_PATH)",
    )
    args = parser.parse_args(argv)

    metadata_path = args.metadata or get_settings().metadata_path
    registry = DatabaseMetadata(metadata_path)
    log_context.bind(job="check_connections")

    failures = 0
    for db in registry.list_databases():
        try:
            registry.test_connection(db)
        except (QueryExecutionError, SQLAlchemyError) as exc:
            failures += 1
            logger.error("✗ %s (%s): %s", db.get("name"), db.get("type"), exc)
        else:
            logger.info("✓ %s (%s)", db.get("name"), db.get("type"))

    return 1 if failures else 0


if __name__ == "__main__":
    init_logging(app_name="check-connections", log_dir=None)
    try:
        sys.exit(main())
    except Exception:
        logger.exception("Connection check failed")
        sys.exit(1)
