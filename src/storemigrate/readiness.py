"""
Readiness checks run by ``storemigrate check``.

The checks never write to either store. They confirm that:

- every table and column a transformer reads exists in the source,
- the target store answers a ping,
- every aggregate model builds a JSON schema and declares its id field.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field

from storemigrate.exceptions import StoreConnectionError
from storemigrate.phases import PhaseDefinition
from storemigrate.sources.base import SourceStore
from storemigrate.targets.base import DocumentStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CheckOutcome:
    """Result of one readiness check."""

    name: str
    ok: bool
    message: str = ""


@dataclass
class ReadinessReport:
    outcomes: list[CheckOutcome] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return all(outcome.ok for outcome in self.outcomes)

    @property
    def failures(self) -> list[CheckOutcome]:
        return [outcome for outcome in self.outcomes if not outcome.ok]

    def add(self, name: str, ok: bool, message: str = "") -> None:
        self.outcomes.append(CheckOutcome(name, ok, message))
        if ok:
            logger.info("[ok] %s", name)
        else:
            logger.error("[failed] %s: %s", name, message)


async def check_source_schema(
    source: SourceStore, phases: Iterable[PhaseDefinition], report: ReadinessReport
) -> None:
    """Check that every required table and column exists."""
    required: dict[str, set[str]] = {}
    for phase in phases:
        for transformer_cls in phase.transformers:
            transformer = transformer_cls()
            for table in transformer.required_tables:
                required.setdefault(table, set())
            for table, columns in transformer.required_columns().items():
                required.setdefault(table, set()).update(columns)

    for table in sorted(required):
        if not await source.table_exists(table):
            report.add(f"source table {table}", False, "table not found")
            continue
        missing = sorted(required[table] - await source.columns(table))
        if missing:
            report.add(f"source table {table}", False, f"missing columns: {', '.join(missing)}")
        else:
            report.add(f"source table {table}", True)


async def check_target(target: DocumentStore, report: ReadinessReport) -> None:
    try:
        await target.ping()
    except StoreConnectionError as e:
        report.add("target store", False, str(e))
    else:
        report.add("target store", True)


def check_models(phases: Iterable[PhaseDefinition], report: ReadinessReport) -> None:
    """Check that every aggregate model is usable."""
    for phase in phases:
        for transformer_cls in phase.transformers:
            model = transformer_cls.aggregate_model
            name = f"model {model.__name__}"
            try:
                model.model_json_schema()
            except Exception as e:
                report.add(name, False, f"schema generation failed: {e}")
                continue
            if model.id_field not in model.model_fields:
                report.add(name, False, f"id field '{model.id_field}' is not a model field")
            else:
                report.add(name, True)


async def run_checks(
    source: SourceStore,
    target: DocumentStore,
    phases: Iterable[PhaseDefinition],
) -> ReadinessReport:
    """
    Run every readiness check.

    A source connection failure is reported as a failed check rather
    than raised.

    Returns:
        ReadinessReport
    """
    phases = list(phases)
    report = ReadinessReport()
    try:
        await source.ping()
    except StoreConnectionError as e:
        report.add("source store", False, str(e))
    else:
        report.add("source store", True)
        await check_source_schema(source, phases, report)
    await check_target(target, report)
    check_models(phases, report)
    return report


__all__ = [
    "CheckOutcome",
    "ReadinessReport",
    "check_models",
    "check_source_schema",
    "check_target",
    "run_checks",
]
