"""
Unit tests for the run models and the status state machine.
"""

from datetime import UTC, datetime

import pytest

from storemigrate.models import (
    VALID_TRANSITIONS,
    EntityResult,
    MigrationState,
    MigrationStatus,
    PhaseStats,
    VerificationResult,
)


class TestMigrationState:
    """Tests for the MigrationState transition table."""

    @pytest.mark.parametrize(
        ("current", "target"),
        [
            (MigrationState.PENDING, MigrationState.RUNNING),
            (MigrationState.RUNNING, MigrationState.COMPLETED),
            (MigrationState.RUNNING, MigrationState.FAILED),
        ],
    )
    def test_legal_transitions(self, current: MigrationState, target: MigrationState) -> None:
        """The three lifecycle edges are allowed."""
        assert current.can_transition_to(target)

    @pytest.mark.parametrize(
        ("current", "target"),
        [
            (MigrationState.PENDING, MigrationState.COMPLETED),
            (MigrationState.RUNNING, MigrationState.RUNNING),
            (MigrationState.RUNNING, MigrationState.PENDING),
            (MigrationState.COMPLETED, MigrationState.RUNNING),
            (MigrationState.FAILED, MigrationState.RUNNING),
            (MigrationState.FAILED, MigrationState.PENDING),
        ],
    )
    def test_illegal_transitions(self, current: MigrationState, target: MigrationState) -> None:
        """Everything else is rejected, including restarting a stale run."""
        assert not current.can_transition_to(target)

    def test_terminal_states(self) -> None:
        """COMPLETED and FAILED are terminal and have no outgoing edges."""
        for state in MigrationState:
            assert state.is_terminal == (not VALID_TRANSITIONS[state])


class TestPhaseStats:
    """Tests for PhaseStats."""

    def test_add(self) -> None:
        """add accumulates every counter."""
        total = PhaseStats(processed=5, succeeded=4, failed=1)
        total.add(PhaseStats(processed=3, succeeded=2, skipped=1))

        assert total.to_dict() == {"processed": 8, "succeeded": 6, "failed": 1, "skipped": 1}

    def test_success_rate(self) -> None:
        """success_rate is a rounded percentage of processed rows."""
        assert PhaseStats(processed=3, succeeded=2).success_rate == 66.67
        assert PhaseStats().success_rate == 100.0


class TestMigrationStatus:
    """Tests for MigrationStatus documents."""

    def test_document_round_trip(self) -> None:
        """A status record survives to_document/from_document."""
        now = datetime(2024, 1, 5, 10, 0, tzinfo=UTC)
        status = MigrationStatus(
            name="phase4_user_management",
            status=MigrationState.FAILED,
            first_run=now,
            last_run=now,
            duration_seconds=1.5,
            processed=5,
            succeeded=4,
            failed=1,
            error="boom",
            details={"tables_migrated": ["oc_customer"]},
        )

        restored = MigrationStatus.from_document(status.to_document())

        assert restored == status
        assert status.to_document()["status"] == "failed"

    def test_success_rate(self) -> None:
        """success_rate falls back by state when nothing was processed."""
        assert MigrationStatus(name="a", processed=5, succeeded=4).success_rate == 80.0
        assert MigrationStatus(name="a", status=MigrationState.COMPLETED).success_rate == 100.0
        assert MigrationStatus(name="a").success_rate == 0.0


class TestResults:
    """Tests for result dataclasses."""

    def test_verification_result_ok(self) -> None:
        """ok is true only when the counts match."""
        assert VerificationResult("customers", "Customer count", 3, 3).ok
        assert not VerificationResult("customers", "Customer count", 3, 2).ok

    def test_entity_result_to_dict(self) -> None:
        """Entity results flatten their stats."""
        result = EntityResult(
            entity="customers",
            source_table="oc_customer",
            collection="customers",
            stats=PhaseStats(processed=3, succeeded=3),
            batches=2,
        )

        data = result.to_dict()

        assert data["processed"] == 3
        assert data["batches"] == 2
        assert data["failed_ids"] == []
