"""
Unit tests for the command line entry point.
"""

import logging
from unittest.mock import AsyncMock, MagicMock

import pytest

from storemigrate import cli
from storemigrate.cli import EXIT_FAILURE, EXIT_OK, EXIT_USAGE, build_parser, engine_config, main, run
from storemigrate.config import MigrationSettings
from storemigrate.exceptions import StoreConnectionError, VerificationError
from storemigrate.models import MigrationState, PhaseStats
from storemigrate.phases import PHASE4, PhaseDefinition, PhaseRegistry, default_registry
from storemigrate.status import StatusStore
from storemigrate.targets.memory import InMemoryDocumentStore
from storemigrate.transformers import CustomerTransformer
from tests.fixtures import customer_rows

BASE_ENV = {
    "SOURCE_DATABASE_URL": "sqlite+aiosqlite:///unused.db",
    "TARGET_MONGO_URI": "mongodb://localhost:27017",
}


class BrokenCustomerTransformer(CustomerTransformer):
    async def transform(self, row, source):
        raise ValueError("corrupt row")


class FlakyCustomerTransformer(CustomerTransformer):
    async def transform(self, row, source):
        if row["customer_id"] == 12:
            raise ValueError("corrupt row")
        return await super().transform(row, source)


@pytest.fixture
def settings() -> MigrationSettings:
    return MigrationSettings.from_env(BASE_ENV)


@pytest.fixture
def env(monkeypatch: pytest.MonkeyPatch) -> None:
    for key, value in BASE_ENV.items():
        monkeypatch.setenv(key, value)
    monkeypatch.delenv("MIGRATION_BATCH_SIZE", raising=False)


def _mock_source() -> MagicMock:
    source = MagicMock()
    source.ping = AsyncMock()
    source.close = AsyncMock()
    return source


class TestParser:
    """Tests for argument parsing."""

    def test_phase_choices(self) -> None:
        """Phase keys, 'all', 'check' and 'status' are accepted."""
        parser = build_parser(default_registry())

        for phase in ["check", "phase1", "phase7", "all", "status"]:
            assert parser.parse_args([phase]).phase == phase

    def test_invalid_phase_exits_with_usage_error(self, capsys: pytest.CaptureFixture) -> None:
        """An unknown phase is rejected by argparse with exit code 2."""
        with pytest.raises(SystemExit) as exc_info:
            main(["phase9"])

        assert exc_info.value.code == EXIT_USAGE
        assert "invalid choice" in capsys.readouterr().err

    def test_version(self, capsys: pytest.CaptureFixture) -> None:
        with pytest.raises(SystemExit) as exc_info:
            main(["--version"])

        assert exc_info.value.code == 0
        assert capsys.readouterr().out.startswith("storemigrate ")

    def test_engine_config_overrides(self, settings: MigrationSettings) -> None:
        """Command line flags override the environment."""
        args = build_parser().parse_args(["phase4", "--batch-size", "7", "--no-skip-existing"])

        config = engine_config(settings, args)

        assert config.batch_size == 7
        assert config.skip_existing is False

    def test_engine_config_defaults(self, settings: MigrationSettings) -> None:
        config = engine_config(settings, build_parser().parse_args(["phase4"]))

        assert config.batch_size == 100
        assert config.skip_existing is True


class TestMainConfiguration:
    """Tests for configuration failures, which never contact a store."""

    def test_missing_environment(
        self, monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture
    ) -> None:
        """Missing connection strings exit with code 2."""
        monkeypatch.delenv("SOURCE_DATABASE_URL", raising=False)
        monkeypatch.delenv("TARGET_MONGO_URI", raising=False)
        monkeypatch.setattr(cli, "open_stores", MagicMock(side_effect=AssertionError("contacted")))

        assert main(["phase1"]) == EXIT_USAGE
        assert "SOURCE_DATABASE_URL" in capsys.readouterr().err

    def test_non_positive_batch_size(self, env, capsys: pytest.CaptureFixture) -> None:
        assert main(["phase1", "--batch-size", "0"]) == EXIT_USAGE
        assert "--batch-size must be positive" in capsys.readouterr().err

    def test_malformed_source_url(
        self, env, monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture
    ) -> None:
        """A URL SQLAlchemy cannot parse is a configuration error."""
        monkeypatch.setenv("SOURCE_DATABASE_URL", "not a database url")

        assert main(["status"]) == EXIT_USAGE
        assert "Invalid SOURCE_DATABASE_URL" in capsys.readouterr().err


class TestMainCommands:
    """Tests for main() with the stores replaced."""

    def test_status(
        self, env, monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture
    ) -> None:
        """status prints the report for every registered phase."""
        target = InMemoryDocumentStore(enable_tracing=False)
        monkeypatch.setattr(cli, "open_stores", lambda settings: (_mock_source(), target))

        assert main(["status"]) == EXIT_OK

        out = capsys.readouterr().out
        assert "phase1_core_independent" in out
        assert "phase7_orders" in out
        assert "Progress: 0% (0/5 completed" in out

    def test_check_fails_when_source_unreachable(
        self, env, monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture
    ) -> None:
        source = _mock_source()
        source.ping = AsyncMock(side_effect=StoreConnectionError("source", "refused"))
        target = InMemoryDocumentStore(enable_tracing=False)
        monkeypatch.setattr(cli, "open_stores", lambda settings: (source, target))

        assert main(["check"]) == EXIT_FAILURE

        out = capsys.readouterr().out
        assert "FAILED source store" in out
        assert "Readiness checks failed" in out
        source.close.assert_awaited_once()

    def test_connection_failure_exits_with_failure(
        self, env, monkeypatch: pytest.MonkeyPatch, caplog: pytest.LogCaptureFixture
    ) -> None:
        """A store that cannot be reached fails the run and is logged as critical."""
        source = _mock_source()
        source.ping = AsyncMock(side_effect=StoreConnectionError("source", "refused"))
        target = InMemoryDocumentStore(enable_tracing=False)
        monkeypatch.setattr(cli, "open_stores", lambda settings: (source, target))

        with caplog.at_level(logging.CRITICAL, logger="storemigrate"):
            assert main(["phase1"]) == EXIT_FAILURE

        assert any("refused" in record.getMessage() for record in caplog.records)


class TestRun:
    """Tests for run() against the SQLite source and in-memory target."""

    @pytest.mark.asyncio
    async def test_run_phase(
        self, source, seed, target: InMemoryDocumentStore, settings, capsys: pytest.CaptureFixture
    ) -> None:
        """A phase run exits 0 and prints its summary."""
        await seed("oc_country", [{"country_id": 222, "name": "United Kingdom"}])
        args = build_parser().parse_args(["phase1"])

        code = await run(args, settings, source, target, default_registry())

        assert code == EXIT_OK
        assert await target.count_documents("countries") == 1
        assert "phase1   completed processed=1 succeeded=1" in capsys.readouterr().out

    @pytest.mark.asyncio
    async def test_reset_allows_rerun(
        self, source, seed, target: InMemoryDocumentStore, settings
    ) -> None:
        """--reset clears a failed record before running."""
        await seed("oc_country", [{"country_id": 222, "name": "United Kingdom"}])
        status = StatusStore(target, enable_tracing=False)
        await status.mark_running("phase1_core_independent")
        await status.mark_failed("phase1_core_independent", "boom", PhaseStats(), 0.1)
        args = build_parser().parse_args(["phase1", "--reset"])

        code = await run(args, settings, source, target, default_registry())

        assert code == EXIT_OK
        assert await status.state_of("phase1_core_independent") == MigrationState.COMPLETED

    @pytest.mark.asyncio
    async def test_reset_reloads_partly_written_phase(
        self, source, seed, target: InMemoryDocumentStore, settings, capsys: pytest.CaptureFixture
    ) -> None:
        """After a failed run, --reset drops the partial collection and reloads every row."""
        await seed("oc_customer", customer_rows(7, 12, 19))
        flaky = PhaseRegistry(
            [
                PhaseDefinition(
                    "phase4", PHASE4.status_name, PHASE4.title, (FlakyCustomerTransformer,)
                )
            ]
        )
        with pytest.raises(VerificationError):
            await run(build_parser(flaky).parse_args(["phase4"]), settings, source, target, flaky)
        assert await target.count_documents("customers") == 2
        capsys.readouterr()

        args = build_parser().parse_args(["phase4", "--reset"])
        code = await run(args, settings, source, target, default_registry())

        assert code == EXIT_OK
        assert await target.count_documents("customers") == 3
        assert "phase4   completed processed=3 succeeded=3" in capsys.readouterr().out
        status = StatusStore(target, enable_tracing=False)
        assert await status.state_of(PHASE4.status_name) == MigrationState.COMPLETED

    @pytest.mark.asyncio
    async def test_failed_phase_exits_with_failure(
        self,
        source,
        seed,
        target: InMemoryDocumentStore,
        settings,
        monkeypatch: pytest.MonkeyPatch,
        capsys: pytest.CaptureFixture,
    ) -> None:
        """A phase failing verification is summarized and exits 1."""
        await seed("oc_customer", customer_rows(7))
        registry = PhaseRegistry(
            [PhaseDefinition("customers", "customers_only", "Customers", (BrokenCustomerTransformer,))]
        )
        monkeypatch.setattr(cli, "open_stores", lambda settings: (source, target))
        args = build_parser(registry).parse_args(["customers"])

        code = await cli._main(args, settings, registry)

        assert code == EXIT_FAILURE
        out = capsys.readouterr().out
        assert "customers FAILED" in out
        assert "Customer count mismatch! source: 1, target: 0" in out
