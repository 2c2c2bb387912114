"""Relational source stores."""

from storemigrate.sources.base import Row, SourceStore, validate_identifier
from storemigrate.sources.sql import SQLAlchemySourceStore

__all__ = [
    "Row",
    "SourceStore",
    "SQLAlchemySourceStore",
    "validate_identifier",
]
