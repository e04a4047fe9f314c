"""Connection metadata registry and SQL execution."""
from __future__ import annotations

import json
import math
from datetime import date, datetime, time
from decimal import Decimal
from pathlib import Path
from typing import Any, Dict, List, Optional

from sqlalchemy.exc import SQLAlchemyError

from askdata.assistant.errors import DatabaseNotFound, QueryExecutionError
from askdata.core.logger import get_logger, log_context, timeit

from .engine import UnsupportedDatabaseType, create_engine_for, probe_query

LOGGER = get_logger(__name__)

SLOW_QUERY_SECONDS = 5.0


def _json_safe(value: Any) -> Any:
    if isinstance(value, Decimal):
        if not value.is_finite():
            return None
        as_float = float(value)
        # Keep the digits when a float cannot hold the value exactly.
        return as_float if Decimal(repr(as_float)) == value else str(value)
    if isinstance(value, float) and not math.isfinite(value):
        return None
    if isinstance(value, (datetime, date, time)):
        return value.isoformat()
    if isinstance(value, (bytes, bytearray, memoryview)):
        return bytes(value).hex()
    return value


class DatabaseMetadata:
    """Reads connection descriptors from a JSON file and runs queries against them.

    The file is re-read on every call so edits are picked up without a restart.
    """

    def __init__(self, metadata_path: Path | str) -> None:
        self.metadata_path = Path(metadata_path)

    def load_metadata(self) -> Dict[str, Any]:
        try:
            metadata = json.loads(self.metadata_path.read_text(encoding="utf-8"))
        except (OSError, ValueError):
            LOGGER.exception("Error loading metadata from %s", self.metadata_path)
            raise
        databases = metadata.get("databases")
        if not isinstance(databases, list):
            raise ValueError(f"{self.metadata_path} must contain a 'databases' list")
        LOGGER.debug("Loaded metadata for %d databases", len(databases))
        return metadata

    def list_databases(self) -> List[Dict[str, Any]]:
        return list(self.load_metadata()["databases"])

    def find_database(self, database_id: Optional[str]) -> Optional[Dict[str, Any]]:
        return next(
            (db for db in self.list_databases() if database_id is not None and db.get("id") == database_id),
            None,
        )

    def get_database(self, database_id: str) -> Dict[str, Any]:
        database = self.find_database(database_id)
        if database is None:
            raise DatabaseNotFound(f"Database {database_id} not found")
        return database

    @staticmethod
    def _engine(descriptor: Dict[str, Any]):
        try:
            return create_engine_for(descriptor)
        except UnsupportedDatabaseType as exc:
            raise QueryExecutionError(str(exc)) from exc
        except ImportError as exc:
            raise QueryExecutionError(
                f"Driver for {descriptor.get('type')} is not installed: {exc}"
            ) from exc

    def test_connection(self, descriptor: Dict[str, Any]) -> bool:
        engine = self._engine(descriptor)
        try:
            with engine.connect() as conn:
                conn.exec_driver_sql(probe_query(descriptor))
        finally:
            engine.dispose()
        return True

    def refresh_metadata(self) -> Dict[str, Any]:
        """Reload metadata and probe every connection; failures are logged, not raised."""
        metadata = self.load_metadata()
        for db in metadata["databases"]:
            try:
                self.test_connection(db)
                LOGGER.info("Connection validated: %s", db.get("name"))
            except (QueryExecutionError, SQLAlchemyError) as exc:
                LOGGER.error("Connection failed: %s (%s)", db.get("name"), exc)
        return metadata

    def execute_query(self, database_id: str, query: str) -> List[Dict[str, Any]]:
        """Run ``query`` and return rows as dicts in column order."""
        descriptor = self.get_database(database_id)
        engine = self._engine(descriptor)

        with log_context.scope(database=database_id):
            try:
                with timeit(
                    "Query execution", logger=LOGGER, unit="rows", slow_after=SLOW_QUERY_SECONDS
                ) as timer:
                    with engine.connect() as conn:
                        result = conn.exec_driver_sql(query)
                        rows = []
                        if result.returns_rows:
                            columns = list(result.keys())
                            rows = [
                                {column: _json_safe(value) for column, value in zip(columns, row)}
                                for row in result.fetchall()
                            ]
                    timer.add(len(rows))
            except SQLAlchemyError as exc:
                LOGGER.error("SQL execution failed: %s", exc)
                raise QueryExecutionError(f"Database query failed: {exc}") from exc
            finally:
                engine.dispose()

        return rows
