"""
portfolio_engines.allocation_efficiency -- Invoice allocation coverage.

Responsibility:
    Measure how much of an entity's invoiced amount has been attributed to
    WBS items, how many invoices are fully/partially/un-allocated, and how
    allocations spread across WBS items.

Architecture position:
    Engines -- pure calculation layer, zero I/O.

Invariants enforced:
    - allocation_rate = allocated / invoiced * 100, 0 when nothing is
      invoiced; reported rounded to 2 dp.  matching_rate is the unrounded
      rate / 100.
    - An invoice is fully allocated when its allocations sum to at least its
      amount, partially allocated when they sum to more than 0.  Every other
      invoice is unallocated, so the three counts add up to total_invoices.
    - unmatched_amount = max(0, invoiced - allocated).
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass
from decimal import Decimal
from typing import Protocol, Sequence
from uuid import UUID

from portfolio_engines._numeric import HUNDRED, ZERO, round_ratio, to_decimal
from portfolio_engines.tracer import traced_engine


class InvoiceLine(Protocol):
    id: UUID | str
    amount: Decimal


class InvoiceAllocationLine(Protocol):
    invoice_id: UUID | str
    wbs_item_id: UUID | str
    amount: Decimal


@dataclass(frozen=True)
class ItemAllocationStats:
    wbs_item_id: UUID | str
    allocation_count: int
    total_allocated: Decimal
    average_allocation: Decimal


@dataclass(frozen=True)
class AllocationEfficiency:
    entity_id: UUID | str
    total_invoices: int
    total_invoiced: Decimal
    total_allocated: Decimal
    allocation_rate: Decimal

    fully_allocated: int
    partially_allocated: int
    unallocated: int

    allocations_by_item: tuple[ItemAllocationStats, ...]

    matched_with_costs: int
    unmatched_amount: Decimal
    matching_rate: Decimal


@traced_engine("allocation_efficiency", "1.0", fingerprint_fields=("entity_id",))
def analyze_allocation_efficiency(
    entity_id: UUID | str,
    invoices: Sequence[InvoiceLine],
    allocations: Sequence[InvoiceAllocationLine],
) -> AllocationEfficiency:
    """Allocation coverage of ``invoices`` by ``allocations``."""
    total_invoiced = sum((to_decimal(inv.amount) for inv in invoices), ZERO)
    total_allocated = sum((to_decimal(a.amount) for a in allocations), ZERO)
    rate = total_allocated / total_invoiced * HUNDRED if total_invoiced > ZERO else ZERO

    allocated_per_invoice: dict[UUID | str, Decimal] = defaultdict(lambda: ZERO)
    for a in allocations:
        allocated_per_invoice[a.invoice_id] += to_decimal(a.amount)

    fully = 0
    partially = 0
    for inv in invoices:
        allocated = allocated_per_invoice.get(inv.id, ZERO)
        if allocated >= to_decimal(inv.amount):
            fully += 1
        elif allocated > ZERO:
            partially += 1

    # insertion order keeps the first-seen WBS item first
    per_item: dict[UUID | str, list[Decimal]] = {}
    for a in allocations:
        per_item.setdefault(a.wbs_item_id, []).append(to_decimal(a.amount))

    by_item = tuple(
        ItemAllocationStats(
            wbs_item_id=item_id,
            allocation_count=len(amounts),
            total_allocated=sum(amounts, ZERO),
            average_allocation=sum(amounts, ZERO) / len(amounts),
        )
        for item_id, amounts in per_item.items()
    )

    return AllocationEfficiency(
        entity_id=entity_id,
        total_invoices=len(invoices),
        total_invoiced=total_invoiced,
        total_allocated=total_allocated,
        allocation_rate=round_ratio(rate),
        fully_allocated=fully,
        partially_allocated=partially,
        unallocated=len(invoices) - fully - partially,
        allocations_by_item=by_item,
        matched_with_costs=len(allocations),
        unmatched_amount=max(ZERO, total_invoiced - total_allocated),
        matching_rate=rate / HUNDRED,
    )
