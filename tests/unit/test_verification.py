"""
Unit tests for count-parity verification.
"""

import pytest

from storemigrate.exceptions import VerificationError
from storemigrate.metrics import MigrationMetrics
from storemigrate.targets.memory import InMemoryDocumentStore
from storemigrate.transformers import CustomerTransformer, OrderTransformer
from storemigrate.verification import CountCheck, VerificationGate, checks_for, child_count_sql
from tests.fixtures import address_row, customer_rows


class ActiveCustomerTransformer(CustomerTransformer):
    where = "status = 1"


class TestCountCheck:
    """Tests for CountCheck construction."""

    def test_needs_exactly_one_source(self) -> None:
        """Either a table or a query must be given, not both."""
        with pytest.raises(ValueError, match="exactly one"):
            CountCheck("customers", "Customer count", "customers")
        with pytest.raises(ValueError, match="exactly one"):
            CountCheck(
                "customers",
                "Customer count",
                "customers",
                source_table="oc_customer",
                source_sql="SELECT COUNT(*) FROM oc_customer",
            )

    def test_validates_table_name(self) -> None:
        with pytest.raises(ValueError, match="Invalid SQL identifier"):
            CountCheck("customers", "Customer count", "customers", source_table="oc customer")


class TestChecksFor:
    """Tests for checks_for and child_count_sql."""

    def test_customer_checks(self) -> None:
        """Customers get a record check and an embedded address check."""
        checks = checks_for(CustomerTransformer())

        assert [check.check for check in checks] == ["Customer count", "Address count"]
        assert checks[0].source_table == "oc_customer"
        assert checks[1].target_array_field == "addresses"
        assert checks[1].source_sql == child_count_sql(
            "oc_address", "customer_id", "oc_customer", "customer_id"
        )

    def test_order_checks(self) -> None:
        """Orders check products, totals and history arrays."""
        names = [check.check for check in checks_for(OrderTransformer())]

        assert names == ["Order count", "Order product count", "Order total count", "Order history count"]

    def test_filter_applies_to_records_and_children(self) -> None:
        """A transformer filter narrows the record count and the parents of child rows."""
        checks = checks_for(ActiveCustomerTransformer())

        assert checks[0].source_where == "status = 1"
        assert "(SELECT customer_id FROM oc_customer WHERE status = 1) p" in checks[1].source_sql

    def test_source_where_needs_a_table(self) -> None:
        with pytest.raises(ValueError, match="source_where"):
            CountCheck(
                "customers",
                "Customer count",
                "customers",
                source_sql="SELECT COUNT(*) FROM oc_customer",
                source_where="status = 1",
            )

    def test_child_count_sql_rejects_bad_identifiers(self) -> None:
        with pytest.raises(ValueError):
            child_count_sql("oc_address", "customer_id;", "oc_customer", "customer_id")


class TestVerificationGate:
    """Tests for VerificationGate."""

    @pytest.mark.asyncio
    async def test_matching_counts_pass(self, source, seed, target: InMemoryDocumentStore) -> None:
        """Equal record and embedded counts verify cleanly."""
        await seed("oc_customer", customer_rows(7, 12, 19))
        await seed("oc_address", [address_row(1, 12), address_row(2, 12)])
        await target.insert_many(
            "customers",
            [
                {"customer_id": 7, "addresses": []},
                {"customer_id": 12, "addresses": [{"address_id": 1}, {"address_id": 2}]},
                {"customer_id": 19, "addresses": []},
            ],
        )
        gate = VerificationGate(source, target, enable_tracing=False)

        results = await gate.verify(checks_for(CustomerTransformer()))

        assert [(r.source_count, r.target_count) for r in results] == [(3, 3), (2, 2)]
        assert all(result.ok for result in results)

    @pytest.mark.asyncio
    async def test_orphaned_children_are_not_expected(
        self, source, seed, target: InMemoryDocumentStore
    ) -> None:
        """Child rows whose parent is missing do not count against the target."""
        await seed("oc_customer", customer_rows(12))
        await seed("oc_address", [address_row(1, 12), address_row(2, 404)])
        await target.insert_many("customers", [{"customer_id": 12, "addresses": [{"address_id": 1}]}])
        gate = VerificationGate(source, target, enable_tracing=False)

        results = await gate.verify(checks_for(CustomerTransformer()))

        assert results[1].source_count == 1

    @pytest.mark.asyncio
    async def test_filtered_entity_counts_only_extracted_rows(
        self, source, seed, target: InMemoryDocumentStore
    ) -> None:
        """Rows outside the filter are neither migrated nor expected."""
        customers = customer_rows(7, 12, 19)
        customers[1]["status"] = 0
        await seed("oc_customer", customers)
        await seed("oc_address", [address_row(1, 7), address_row(2, 12)])
        await target.insert_many(
            "customers",
            [
                {"customer_id": 7, "addresses": [{"address_id": 1}]},
                {"customer_id": 19, "addresses": []},
            ],
        )
        gate = VerificationGate(source, target, enable_tracing=False)

        results = await gate.verify(checks_for(ActiveCustomerTransformer()))

        assert [(r.source_count, r.target_count) for r in results] == [(2, 2), (1, 1)]

    @pytest.mark.asyncio
    async def test_mismatch_raises_with_both_counts(
        self, source, seed, target: InMemoryDocumentStore
    ) -> None:
        """A missing document fails verification naming both counts."""
        await seed("oc_customer", customer_rows(7, 12, 19))
        await target.insert_many("customers", [{"customer_id": 7}, {"customer_id": 19}])
        metrics = MigrationMetrics("phase4", enable_metrics=False)
        gate = VerificationGate(source, target, metrics=metrics, enable_tracing=False)

        with pytest.raises(VerificationError) as exc_info:
            await gate.verify(checks_for(CustomerTransformer()), phase="phase4_user_management")

        error = exc_info.value
        assert error.message == "CRITICAL: Customer count mismatch! source: 3, target: 2"
        assert error.phase == "phase4_user_management"
        assert metrics.get_snapshot().verification_failures == 1

    @pytest.mark.asyncio
    async def test_check_all_runs_every_check(
        self, source, seed, target: InMemoryDocumentStore
    ) -> None:
        """check_all reports every result without raising."""
        await seed("oc_customer", customer_rows(7))
        await seed("oc_address", [address_row(1, 7)])
        gate = VerificationGate(source, target, enable_tracing=False)

        results = await gate.check_all(checks_for(CustomerTransformer()))

        assert [result.ok for result in results] == [False, False]

    @pytest.mark.asyncio
    async def test_source_sql_with_params(self, source, seed, target: InMemoryDocumentStore) -> None:
        """Custom COUNT queries take bound parameters."""
        await seed("oc_customer", customer_rows(7, 12, 19))
        await target.insert_many("vip", [{"customer_id": 12}, {"customer_id": 19}])
        gate = VerificationGate(source, target, enable_tracing=False)

        result = await gate.check(
            CountCheck(
                "customers",
                "VIP count",
                "vip",
                source_sql="SELECT COUNT(*) FROM oc_customer WHERE customer_id > :min",
                source_params={"min": 7},
            )
        )

        assert result.ok
