"""Database engine factories."""
from __future__ import annotations

from typing import Any, Mapping

from sqlalchemy import create_engine
from sqlalchemy.engine import URL, Engine

from askdata.core.config import get_settings
from askdata.core.logger import get_logger

LOGGER = get_logger(__name__)

# Connection descriptor ``type`` -> SQLAlchemy dialect+driver.
DIALECTS = {
    "oracle": "oracle+oracledb",
    "postgres": "postgresql+psycopg2",
    "postgresql": "postgresql+psycopg2",
    "mysql": "mysql+pymysql",
    "sqlite": "sqlite",
}

# Connectivity probe per descriptor ``type``.
PROBE_QUERIES = {
    "oracle": "SELECT 1 FROM DUAL",
}


class UnsupportedDatabaseType(ValueError):
    """Raised when a connection descriptor names a type without a dialect."""


def build_url(descriptor: Mapping[str, Any]) -> URL | str:
    """Return the SQLAlchemy URL for a connection descriptor."""

    if descriptor.get("url"):
        return str(descriptor["url"])

    db_type = str(descriptor.get("type") or "").lower()
    drivername = DIALECTS.get(db_type)
    if drivername is None:
        raise UnsupportedDatabaseType(f"Unsupported database type: {descriptor.get('type')}")

    if db_type == "sqlite":
        return URL.create(drivername, database=descriptor.get("database"))

    if db_type == "oracle":
        return URL.create(
            drivername,
            username=descriptor.get("username"),
            password=descriptor.get("password"),
            host=descriptor.get("host"),
            port=descriptor.get("port"),
            query={"service_name": str(descriptor.get("database") or "")},
        )

    return URL.create(
        drivername,
        username=descriptor.get("username"),
        password=descriptor.get("password"),
        host=descriptor.get("host"),
        port=descriptor.get("port"),
        database=descriptor.get("database"),
    )


def probe_query(descriptor: Mapping[str, Any]) -> str:
    return PROBE_QUERIES.get(str(descriptor.get("type") or "").lower(), "SELECT 1")


def create_engine_for(descriptor: Mapping[str, Any], **kwargs) -> Engine:
    """Create a synchronous SQLAlchemy engine for one connection descriptor."""

    settings = get_settings()
    url = build_url(descriptor)

    options = dict(kwargs)
    options.setdefault("echo", settings.sqlalchemy_echo)

    masked_url = url.render_as_string(hide_password=True) if isinstance(url, URL) else "<explicit url>"
    LOGGER.debug("Creating SQLAlchemy engine for %s (%s)", descriptor.get("id"), masked_url)
    return create_engine(url, **options)
