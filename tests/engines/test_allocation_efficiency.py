"""
Tests for invoice allocation efficiency.

Covers:
- Allocation rate and matching rate
- Fully / partially / un-allocated invoice counts
- Per-WBS-item allocation statistics
"""

from decimal import Decimal
from uuid import uuid4

from portfolio_engines.allocation_efficiency import analyze_allocation_efficiency
from portfolio_modules.wbs.models import Invoice, InvoiceAllocation

ENTITY_ID = uuid4()


def invoice(amount: str) -> Invoice:
    return Invoice(
        id=uuid4(),
        entity_id=ENTITY_ID,
        invoice_number=f"INV-{uuid4().hex[:6]}",
        vendor_name="Acme Supplies",
        amount=Decimal(amount),
    )


def allocate(inv: Invoice, wbs_item_id, amount: str) -> InvoiceAllocation:
    return InvoiceAllocation(
        id=uuid4(), invoice_id=inv.id, wbs_item_id=wbs_item_id, amount=Decimal(amount),
    )


class TestAllocationEfficiency:
    """Tests for analyze_allocation_efficiency."""

    def setup_method(self):
        self.w1 = uuid4()
        self.w2 = uuid4()
        self.inv_a = invoice("1000")
        self.inv_b = invoice("500")
        self.inv_c = invoice("200")
        self.allocations = [
            allocate(self.inv_a, self.w1, "600"),
            allocate(self.inv_a, self.w2, "400"),
            allocate(self.inv_b, self.w1, "100"),
        ]

    def test_totals_and_rates(self):
        result = analyze_allocation_efficiency(
            entity_id=ENTITY_ID,
            invoices=[self.inv_a, self.inv_b, self.inv_c],
            allocations=self.allocations,
        )

        assert result.total_invoices == 3
        assert result.total_invoiced == Decimal("1700")
        assert result.total_allocated == Decimal("1100")
        assert result.allocation_rate == Decimal("64.71")
        assert result.unmatched_amount == Decimal("600")
        assert result.matched_with_costs == 3
        assert round(result.matching_rate, 4) == Decimal("0.6471")

    def test_invoice_status_counts(self):
        result = analyze_allocation_efficiency(
            entity_id=ENTITY_ID,
            invoices=[self.inv_a, self.inv_b, self.inv_c],
            allocations=self.allocations,
        )

        assert result.fully_allocated == 1
        assert result.partially_allocated == 1
        assert result.unallocated == 1

    def test_per_item_stats(self):
        result = analyze_allocation_efficiency(
            entity_id=ENTITY_ID,
            invoices=[self.inv_a, self.inv_b, self.inv_c],
            allocations=self.allocations,
        )

        by_item = {s.wbs_item_id: s for s in result.allocations_by_item}
        assert by_item[self.w1].allocation_count == 2
        assert by_item[self.w1].total_allocated == Decimal("700")
        assert by_item[self.w1].average_allocation == Decimal("350")
        assert by_item[self.w2].allocation_count == 1
        assert by_item[self.w2].average_allocation == Decimal("400")

    def test_no_invoices(self):
        result = analyze_allocation_efficiency(
            entity_id=ENTITY_ID, invoices=[], allocations=[],
        )

        assert result.total_invoices == 0
        assert result.allocation_rate == Decimal("0")
        assert result.matching_rate == Decimal("0")
        assert result.unmatched_amount == Decimal("0")
        assert result.allocations_by_item == ()

    def test_over_allocation_is_fully_allocated(self):
        inv = invoice("100")

        result = analyze_allocation_efficiency(
            entity_id=ENTITY_ID,
            invoices=[inv],
            allocations=[allocate(inv, self.w1, "150")],
        )

        assert result.fully_allocated == 1
        assert result.unmatched_amount == Decimal("0")
        assert result.allocation_rate == Decimal("150.00")
