"""
storemigrate - Phased migration of an OpenCart MySQL database into MongoDB.

This library provides:
- Batched, primary-key ordered extraction from the relational source
- Transformers that denormalize rows into embedded-document aggregates
- Unordered batch writes that tolerate partial failure
- Atomic id counters bootstrapped from the target maxima
- Count-parity verification gating every phase
- Persisted phase status records and a read-only status overview
"""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("storemigrate")
except PackageNotFoundError:
    # Package not installed (running from source without install)
    __version__ = "0.0.0.dev0"

from storemigrate.batch_writer import BatchWriter
from storemigrate.config import EngineConfig, MigrationSettings
from storemigrate.exceptions import (
    ConfigurationError,
    ErrorSeverity,
    InvalidStateTransitionError,
    MigrationError,
    SequenceAllocationError,
    StoreConnectionError,
    TargetWriteError,
    TransformError,
    UnknownPhaseError,
    VerificationError,
)
from storemigrate.extractor import Batch, Extractor
from storemigrate.metrics import MetricSnapshot, MigrationMetrics
from storemigrate.models import (
    BatchWriteResult,
    EntityResult,
    MigrationState,
    MigrationStatus,
    PhaseResult,
    PhaseStats,
    VerificationResult,
)
from storemigrate.orchestrator import PhaseOrchestrator
from storemigrate.phases import (
    DEFAULT_PHASES,
    PhaseDefinition,
    PhaseRegistry,
    default_registry,
    get_phase,
)
from storemigrate.readiness import ReadinessReport, run_checks
from storemigrate.sequences import (
    AtomicCounterStrategy,
    DegradedCacheStrategy,
    SequenceAllocator,
    SequenceEntity,
)
from storemigrate.sources import SQLAlchemySourceStore, SourceStore
from storemigrate.status import StatusOverview, StatusQuery, StatusStore
from storemigrate.targets import DocumentStore, InMemoryDocumentStore, MongoDocumentStore
from storemigrate.transformers import Transformer
from storemigrate.verification import CountCheck, VerificationGate

__all__ = [
    "__version__",
    # Engine
    "PhaseOrchestrator",
    "Extractor",
    "Batch",
    "Transformer",
    "BatchWriter",
    "SequenceAllocator",
    "SequenceEntity",
    "AtomicCounterStrategy",
    "DegradedCacheStrategy",
    "VerificationGate",
    "CountCheck",
    "StatusStore",
    "StatusQuery",
    "StatusOverview",
    # Phases
    "DEFAULT_PHASES",
    "PhaseDefinition",
    "PhaseRegistry",
    "default_registry",
    "get_phase",
    # Stores
    "SourceStore",
    "SQLAlchemySourceStore",
    "DocumentStore",
    "InMemoryDocumentStore",
    "MongoDocumentStore",
    # Config
    "EngineConfig",
    "MigrationSettings",
    # Models
    "BatchWriteResult",
    "EntityResult",
    "MigrationState",
    "MigrationStatus",
    "PhaseResult",
    "PhaseStats",
    "VerificationResult",
    # Metrics
    "MetricSnapshot",
    "MigrationMetrics",
    # Readiness
    "ReadinessReport",
    "run_checks",
    # Exceptions
    "ConfigurationError",
    "ErrorSeverity",
    "InvalidStateTransitionError",
    "MigrationError",
    "SequenceAllocationError",
    "StoreConnectionError",
    "TargetWriteError",
    "TransformError",
    "UnknownPhaseError",
    "VerificationError",
]
