"""
Source store protocol.

The source is the legacy relational database. The engine only reads from
it: every operation here is a query, never a mutation.
"""

from __future__ import annotations

import re
from collections.abc import Mapping
from typing import Any, Protocol, runtime_checkable

Row = dict[str, Any]

_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


def validate_identifier(name: str) -> str:
    """
    Check that a table or column name is a plain SQL identifier.

    Identifiers cannot be bound as parameters, so they are validated before
    being interpolated into query text.

    Args:
        name: Table or column name

    Returns:
        The name, unchanged

    Raises:
        ValueError: If the name contains anything but letters, digits and
            underscores, or starts with a digit
    """
    if not isinstance(name, str) or not _IDENTIFIER.match(name):
        raise ValueError(f"Invalid SQL identifier: {name!r}")
    return name


@runtime_checkable
class SourceStore(Protocol):
    """
    Protocol for read access to the relational source.

    Implementations raise StoreConnectionError when the connection is lost;
    other database errors propagate unchanged.
    """

    @property
    def dialect(self) -> str:
        """Name of the SQL dialect (e.g., 'mysql', 'sqlite')."""
        ...

    async def fetch_all(self, sql: str, params: Mapping[str, Any] | None = None) -> list[Row]:
        """
        Run a query and return all rows as dictionaries.

        Args:
            sql: Query text with ``:name`` placeholders
            params: Bound parameter values

        Returns:
            List of rows keyed by column name
        """
        ...

    async def fetch_one(self, sql: str, params: Mapping[str, Any] | None = None) -> Row | None:
        """Run a query and return the first row, or None."""
        ...

    async def fetch_value(self, sql: str, params: Mapping[str, Any] | None = None) -> Any:
        """Run a query and return the first column of the first row, or None."""
        ...

    async def table_exists(self, table: str) -> bool:
        """Check whether a table exists."""
        ...

    async def columns(self, table: str) -> set[str]:
        """Return the column names of a table (empty when it does not exist)."""
        ...

    async def ping(self) -> None:
        """
        Verify the store is reachable.

        Raises:
            StoreConnectionError: If it is not
        """
        ...

    async def close(self) -> None:
        """Release pooled connections."""
        ...


__all__ = [
    "Row",
    "SourceStore",
    "validate_identifier",
]
