"""
Observability utilities for storemigrate.

Tracing is composition based: components accept a ``Tracer`` and default to
one built by ``create_tracer``. Attribute constants live in
``storemigrate.observability.attributes``.
"""

from storemigrate.observability.attributes import (
    ATTR_BATCH_OFFSET,
    ATTR_BATCH_SIZE,
    ATTR_CHECK_NAME,
    ATTR_COLLECTION,
    ATTR_DB_NAME,
    ATTR_DB_OPERATION,
    ATTR_DB_SYSTEM,
    ATTR_ENTITY,
    ATTR_ERROR_TYPE,
    ATTR_PHASE,
    ATTR_ROWS_FAILED,
    ATTR_ROWS_SUCCEEDED,
    ATTR_SEQUENCE_ENTITY,
    ATTR_SOURCE_TABLE,
    ATTR_STATUS_NAME,
)
from storemigrate.observability.tracer import (
    MockTracer,
    NullTracer,
    OpenTelemetryTracer,
    Tracer,
    create_tracer,
)

__all__ = [
    "Tracer",
    "NullTracer",
    "OpenTelemetryTracer",
    "MockTracer",
    "create_tracer",
    "ATTR_BATCH_OFFSET",
    "ATTR_BATCH_SIZE",
    "ATTR_CHECK_NAME",
    "ATTR_COLLECTION",
    "ATTR_DB_NAME",
    "ATTR_DB_OPERATION",
    "ATTR_DB_SYSTEM",
    "ATTR_ENTITY",
    "ATTR_ERROR_TYPE",
    "ATTR_PHASE",
    "ATTR_ROWS_FAILED",
    "ATTR_ROWS_SUCCEEDED",
    "ATTR_SEQUENCE_ENTITY",
    "ATTR_SOURCE_TABLE",
    "ATTR_STATUS_NAME",
]
