"""
Standard span and metric attributes for storemigrate.

Attribute names are shared by every component so spans and metric points
can be correlated. Database attributes follow the OpenTelemetry semantic
conventions.

Example:
    >>> from storemigrate.observability.attributes import (
    ...     ATTR_COLLECTION,
    ...     ATTR_BATCH_SIZE,
    ... )
    >>>
    >>> with tracer.span(
    ...     "storemigrate.batch_writer.write_batch",
    ...     {ATTR_COLLECTION: "customers", ATTR_BATCH_SIZE: 100},
    ... ):
    ...     pass
"""

# =============================================================================
# Phase Attributes
# =============================================================================

ATTR_PHASE = "storemigrate.phase"
"""Registered phase key (e.g., 'phase4')."""

ATTR_STATUS_NAME = "storemigrate.status.name"
"""Status record name of a phase (e.g., 'phase4_user_management')."""

ATTR_ENTITY = "storemigrate.entity"
"""Entity being migrated (e.g., 'customers')."""

# =============================================================================
# Batch Attributes
# =============================================================================

ATTR_BATCH_SIZE = "storemigrate.batch.size"
"""Number of rows or documents in a batch (integer)."""

ATTR_BATCH_OFFSET = "storemigrate.batch.offset"
"""Offset of the batch in the source table (integer)."""

ATTR_ROWS_SUCCEEDED = "storemigrate.rows.succeeded"
"""Rows written successfully (integer)."""

ATTR_ROWS_FAILED = "storemigrate.rows.failed"
"""Rows that failed to transform or write (integer)."""

# =============================================================================
# Store Attributes
# =============================================================================

ATTR_SOURCE_TABLE = "storemigrate.source.table"
"""Source table name (string)."""

ATTR_COLLECTION = "storemigrate.target.collection"
"""Target collection name (string)."""

ATTR_SEQUENCE_ENTITY = "storemigrate.sequence.entity"
"""Counter entity name (string)."""

ATTR_CHECK_NAME = "storemigrate.verification.check"
"""Verification check name (string)."""

# =============================================================================
# Database Attributes (OpenTelemetry semantic conventions)
# =============================================================================

ATTR_DB_SYSTEM = "db.system"
"""Database system identifier (e.g., 'mysql', 'mongodb')."""

ATTR_DB_NAME = "db.name"
"""Database name (string)."""

ATTR_DB_OPERATION = "db.operation"
"""Database operation name (e.g., 'SELECT', 'insert_many')."""

ATTR_ERROR_TYPE = "error.type"
"""Exception class name when an operation fails."""


__all__ = [
    "ATTR_PHASE",
    "ATTR_STATUS_NAME",
    "ATTR_ENTITY",
    "ATTR_BATCH_SIZE",
    "ATTR_BATCH_OFFSET",
    "ATTR_ROWS_SUCCEEDED",
    "ATTR_ROWS_FAILED",
    "ATTR_SOURCE_TABLE",
    "ATTR_COLLECTION",
    "ATTR_SEQUENCE_ENTITY",
    "ATTR_CHECK_NAME",
    "ATTR_DB_SYSTEM",
    "ATTR_DB_NAME",
    "ATTR_DB_OPERATION",
    "ATTR_ERROR_TYPE",
]
