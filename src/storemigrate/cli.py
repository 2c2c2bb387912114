"""
Command line entry point.

Usage:
    storemigrate check            # readiness checks, no writes
    storemigrate phase4           # run one phase
    storemigrate all              # run every phase in order
    storemigrate status           # print the status report
    storemigrate phase4 --reset   # drop the phase collections and status record, then run

Exit codes:
    0: Success
    1: A phase failed or a readiness check failed
    2: Invalid invocation or configuration (no store was contacted)
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from collections.abc import Sequence

from pymongo.errors import ConfigurationError as MongoConfigurationError
from sqlalchemy.exc import ArgumentError

from storemigrate import __version__
from storemigrate.config import EngineConfig, MigrationSettings
from storemigrate.exceptions import ConfigurationError, MigrationError
from storemigrate.models import PhaseResult
from storemigrate.orchestrator import PhaseOrchestrator
from storemigrate.phases import ALL, PhaseRegistry, default_registry
from storemigrate.readiness import run_checks
from storemigrate.sources.sql import SQLAlchemySourceStore
from storemigrate.status import StatusQuery, format_report
from storemigrate.targets.mongo import MongoDocumentStore

logger = logging.getLogger("storemigrate")

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_USAGE = 2

CHECK = "check"
STATUS = "status"

LOG_FORMAT = "%(asctime)s %(levelname)-8s %(name)s: %(message)s"


def build_parser(registry: PhaseRegistry | None = None) -> argparse.ArgumentParser:
    registry = registry or default_registry()
    parser = argparse.ArgumentParser(
        prog="storemigrate",
        description="Migrate an OpenCart MySQL database into MongoDB, one phase at a time.",
    )
    parser.add_argument(
        "phase",
        choices=[CHECK, *registry.keys, ALL, STATUS],
        help="Phase to run, 'all' for every phase, 'check' or 'status'",
    )
    parser.add_argument(
        "--batch-size",
        type=int,
        default=None,
        help="Rows per batch (overrides MIGRATION_BATCH_SIZE)",
    )
    parser.add_argument(
        "--no-skip-existing",
        action="store_true",
        help="Run phases even when their collections already hold documents",
    )
    parser.add_argument(
        "--reset",
        action="store_true",
        help="Drop the collections and status record of the selected phase(s) before running",
    )
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        default=None,
        help="Log level (overrides MIGRATION_LOG_LEVEL)",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser


def engine_config(settings: MigrationSettings, args: argparse.Namespace) -> EngineConfig:
    return settings.engine_config(
        batch_size=args.batch_size, skip_existing=not args.no_skip_existing
    )


def open_stores(settings: MigrationSettings) -> tuple[SQLAlchemySourceStore, MongoDocumentStore]:
    """
    Create both stores without connecting.

    Raises:
        ConfigurationError: If a connection string is malformed
    """
    try:
        source = SQLAlchemySourceStore.from_url(
            settings.source_url, enable_tracing=settings.enable_tracing
        )
    except ArgumentError as e:
        raise ConfigurationError(f"Invalid SOURCE_DATABASE_URL: {e}") from e
    try:
        target = MongoDocumentStore.from_uri(
            settings.target_uri,
            settings.target_database,
            enable_tracing=settings.enable_tracing,
        )
    except MongoConfigurationError as e:
        raise ConfigurationError(f"Invalid TARGET_MONGO_URI: {e}") from e
    return source, target


def print_summary(results: Sequence[PhaseResult]) -> None:
    for result in results:
        if result.skipped:
            print(f"{result.phase:<8} skipped   {result.skip_reason}")
            continue
        state = "completed" if result.success else "FAILED"
        print(
            f"{result.phase:<8} {state:<9} processed={result.stats.processed} "
            f"succeeded={result.stats.succeeded} failed={result.stats.failed} "
            f"skipped={result.stats.skipped} ({result.duration_seconds:.1f}s)"
        )
        if result.error:
            print(f"         error: {result.error}")


async def run(
    args: argparse.Namespace,
    settings: MigrationSettings,
    source: SQLAlchemySourceStore,
    target: MongoDocumentStore,
    registry: PhaseRegistry,
) -> int:
    """Execute the selected command against open stores."""
    if args.phase == CHECK:
        report = await run_checks(source, target, registry)
        for failure in report.failures:
            print(f"FAILED {failure.name}: {failure.message}")
        print("Readiness checks passed" if report.ok else "Readiness checks failed")
        return EXIT_OK if report.ok else EXIT_FAILURE

    if args.phase == STATUS:
        overview = await StatusQuery(target).overview(
            registry.status_names, registry.collections()
        )
        print(format_report(overview))
        return EXIT_OK

    phases = registry.resolve(args.phase)
    orchestrator = PhaseOrchestrator(
        source,
        target,
        engine_config(settings, args),
        registry=registry,
        enable_tracing=settings.enable_tracing,
    )
    if args.reset:
        for phase in phases:
            await orchestrator.reset_phase(phase.key)

    try:
        await orchestrator.initialize()
        ok = await orchestrator.run_all([phase.key for phase in phases])
    finally:
        print_summary(orchestrator.results)
    return EXIT_OK if ok else EXIT_FAILURE


async def _main(args: argparse.Namespace, settings: MigrationSettings, registry: PhaseRegistry) -> int:
    source, target = open_stores(settings)
    try:
        return await run(args, settings, source, target, registry)
    except MigrationError as e:
        logger.log(e.severity.log_level, "%s", e)
        return EXIT_FAILURE
    finally:
        await source.close()
        await target.close()


def main(argv: Sequence[str] | None = None) -> int:
    """Main entry point."""
    registry = default_registry()
    args = build_parser(registry).parse_args(argv)

    try:
        settings = MigrationSettings.from_env()
        if args.batch_size is not None and args.batch_size < 1:
            raise ConfigurationError(f"--batch-size must be positive, got {args.batch_size}")
    except ConfigurationError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return EXIT_USAGE

    logging.basicConfig(level=args.log_level or settings.log_level, format=LOG_FORMAT)

    try:
        return asyncio.run(_main(args, settings, registry))
    except ConfigurationError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return EXIT_USAGE


if __name__ == "__main__":
    sys.exit(main())
