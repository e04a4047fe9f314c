"""Shared fixtures: stub chat provider and a SQLite-backed metadata file."""
from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any, Dict, List

import pytest
from sqlalchemy import create_engine

os.environ.setdefault("LOG_DIR", "")

from askdata.assistant.llm_providers import LLMProvider  # noqa: E402
from askdata.core.logger import shutdown_logging  # noqa: E402
from askdata.db.metadata import DatabaseMetadata  # noqa: E402


class StubProvider(LLMProvider):
    """Replays canned replies; an Exception in the script is raised instead."""

    name = "stub"

    def __init__(self, replies: List[Any], available: bool = True) -> None:
        self.replies = list(replies)
        self.calls: List[Dict[str, Any]] = []
        self._available = available

    @property
    def available(self) -> bool:
        return self._available

    async def chat(self, messages, *, temperature, max_tokens):
        self.calls.append(
            {"messages": messages, "temperature": temperature, "max_tokens": max_tokens}
        )
        reply = self.replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        return {
            "choices": [{"message": {"role": "assistant", "content": reply}}],
            "usage": {"total_tokens": 42},
        }


@pytest.fixture()
def stub_provider():
    return StubProvider


@pytest.fixture(autouse=True)
def _reset_logging():
    yield
    shutdown_logging()


@pytest.fixture()
def sqlite_metadata(tmp_path: Path) -> DatabaseMetadata:
    db_path = tmp_path / "analytics.db"
    engine = create_engine(f"sqlite:///{db_path}")
    with engine.begin() as conn:
        conn.exec_driver_sql("CREATE TABLE segments (segment TEXT, revenue NUMERIC)")
        conn.exec_driver_sql(
            "INSERT INTO segments VALUES "
            "('Enterprise', 5200.5), ('SMB', 3100), ('Consumer', 2250.25),"
            " ('Public Sector', 900), ('Education', 450)"
        )
        conn.exec_driver_sql("CREATE TABLE daily_signups (day TEXT, signups INTEGER)")
        for day in range(1, 31):
            conn.exec_driver_sql(
                f"INSERT INTO daily_signups VALUES ('2024-06-{day:02d}', {day * 3})"
            )
    engine.dispose()

    metadata_path = tmp_path / "database-metadata.json"
    metadata_path.write_text(
        json.dumps(
            {
                "databases": [
                    {
                        "id": "analytics",
                        "name": "Analytics (SQLite)",
                        "type": "sqlite",
                        "database": str(db_path),
                        "tables": [
                            {"name": "segments", "columns": ["segment", "revenue"]},
                            {"name": "daily_signups", "columns": ["day", "signups"]},
                        ],
                    },
                    {
                        "id": "legacy",
                        "name": "Legacy warehouse",
                        "type": "snowflake",
                        "tables": [],
                    },
                ]
            }
        ),
        encoding="utf-8",
    )
    return DatabaseMetadata(metadata_path)
