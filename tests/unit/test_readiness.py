"""
Unit tests for the readiness checks.
"""

from typing import ClassVar
from unittest.mock import AsyncMock, MagicMock

import pytest

from storemigrate.documents import Aggregate
from storemigrate.exceptions import StoreConnectionError
from storemigrate.phases import DEFAULT_PHASES, PHASE4, PhaseDefinition
from storemigrate.readiness import ReadinessReport, check_models, run_checks
from storemigrate.targets.memory import InMemoryDocumentStore
from storemigrate.transformers import CountryTransformer


class Misnamed(Aggregate):
    id_field: ClassVar[str] = "misnamed_id"

    value: int = 0


class MisnamedTransformer(CountryTransformer):
    aggregate_model = Misnamed


def _source(tables: set[str] | None = None, columns: set[str] | None = None) -> MagicMock:
    source = MagicMock()
    source.ping = AsyncMock()
    source.table_exists = AsyncMock(side_effect=lambda table: tables is None or table in tables)
    source.columns = AsyncMock(return_value=columns or set())
    return source


class TestRunChecks:
    """Tests for run_checks."""

    @pytest.mark.asyncio
    async def test_complete_schema_passes(self, source, target: InMemoryDocumentStore) -> None:
        """The full OpenCart schema satisfies every phase."""
        report = await run_checks(source, target, DEFAULT_PHASES)

        assert report.ok, report.failures
        names = [outcome.name for outcome in report.outcomes]
        assert names[0] == "source store"
        assert "source table oc_order_option" in names
        assert "target store" in names
        assert "model Order" in names

    @pytest.mark.asyncio
    async def test_missing_tables_and_columns(self, target: InMemoryDocumentStore) -> None:
        """Missing tables and columns are reported per table."""
        source = _source(tables={"oc_user", "oc_customer"}, columns={"customer_id"})

        report = await run_checks(source, target, [PHASE4])

        failures = {outcome.name: outcome.message for outcome in report.failures}
        assert failures == {
            "source table oc_address": "table not found",
            "source table oc_user": "missing columns: user_id",
        }

    @pytest.mark.asyncio
    async def test_unreachable_source_is_reported(self, target: InMemoryDocumentStore) -> None:
        """A failed source ping is a failed check, and schema checks are skipped."""
        source = _source()
        source.ping = AsyncMock(side_effect=StoreConnectionError("source", "refused"))

        report = await run_checks(source, target, [PHASE4])

        assert not report.ok
        assert report.failures[0].name == "source store"
        assert "refused" in report.failures[0].message
        source.table_exists.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_unreachable_target_is_reported(self, source) -> None:
        target = MagicMock()
        target.ping = AsyncMock(side_effect=StoreConnectionError("target", "no servers"))

        report = await run_checks(source, target, [PHASE4])

        assert [outcome.name for outcome in report.failures] == ["target store"]


class TestCheckModels:
    """Tests for check_models."""

    def test_default_models_are_valid(self) -> None:
        report = ReadinessReport()

        check_models(DEFAULT_PHASES, report)

        assert report.ok
        assert len(report.outcomes) == sum(len(phase.transformers) for phase in DEFAULT_PHASES)

    def test_id_field_must_exist(self) -> None:
        """An aggregate whose id field is not a model field fails."""
        phase = PhaseDefinition("broken", "broken", "Broken", (MisnamedTransformer,))
        report = ReadinessReport()

        check_models([phase], report)

        assert report.failures[0].message == "id field 'misnamed_id' is not a model field"
