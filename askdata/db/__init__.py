"""Database helpers: connection metadata and SQLAlchemy engines."""

from .engine import build_url, create_engine_for
from .metadata import DatabaseMetadata

__all__ = ["DatabaseMetadata", "build_url", "create_engine_for"]
