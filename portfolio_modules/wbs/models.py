"""
WBS Domain Models (``portfolio_modules.wbs.models``).

Responsibility
--------------
Frozen dataclass value objects for the nouns of WBS cost tracking: WBS
nodes, direct cost items, invoices, invoice allocations, and the result
records returned by the orchestration services.

Architecture position
---------------------
**Modules layer** -- pure data definitions with ZERO I/O.  Converted to
engine inputs via ``WBSNode.to_aggregation_input()``; persisted through
``portfolio_modules.wbs.orm``.

Invariants enforced
-------------------
* All models are ``frozen=True`` (immutable after construction).
* All monetary and percentage fields use ``Decimal`` -- NEVER ``float``.
* ``WBSNode.parent_id`` is None only for roots (level 0).

Failure modes
-------------
* ``to_aggregation_input()`` raises ``ValueError`` when stored values are
  out of range (negative cost, percent outside 0-100).
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from portfolio_engines.aggregation_types import (
    AggregatedStatus,
    ParentAggregationUpdate,
    WBSItemForAggregation,
    WBSItemStatus,
)


@dataclass(frozen=True)
class WBSNode:
    """A Work Breakdown Structure item with authored and derived fields."""
    id: UUID
    project_id: UUID
    name: str
    code: str | None = None
    parent_id: UUID | None = None
    level: int = 0

    planned_start: date | None = None
    planned_end: date | None = None
    actual_start: date | None = None
    actual_end: date | None = None
    aggregated_start: date | None = None
    aggregated_end: date | None = None

    status: WBSItemStatus = WBSItemStatus.NOT_STARTED
    aggregated_status: AggregatedStatus | None = None
    percent_complete: Decimal = Decimal("0")

    planned_cost: Decimal | None = None
    actual_cost: Decimal | None = None
    aggregated_cost: Decimal = Decimal("0")

    deleted_at: datetime | None = None

    def __post_init__(self) -> None:
        # ORM rows carry enum values as plain strings
        object.__setattr__(self, "status", WBSItemStatus(self.status))
        if self.aggregated_status is not None:
            object.__setattr__(
                self, "aggregated_status", AggregatedStatus(self.aggregated_status)
            )

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None

    def to_aggregation_input(self) -> WBSItemForAggregation:
        """Strict engine input for this node as a child of its parent."""
        return WBSItemForAggregation(
            id=self.id,
            parent_id=self.parent_id,
            planned_start=self.planned_start,
            planned_end=self.planned_end,
            actual_start=self.actual_start,
            actual_end=self.actual_end,
            status=self.status,
            percent_complete=self.percent_complete,
            planned_cost=self.planned_cost,
            actual_cost=self.actual_cost,
            aggregated_cost=self.aggregated_cost,
            aggregated_status=self.aggregated_status,
        )

    def as_leaf(self) -> WBSNode:
        """Copy with aggregated fields cleared; authored fields are kept."""
        return replace(
            self,
            aggregated_start=None,
            aggregated_end=None,
            aggregated_status=None,
            aggregated_cost=Decimal("0"),
        )

    def with_update(self, update: ParentAggregationUpdate) -> WBSNode:
        """Copy of this node with an aggregation update applied."""
        return replace(
            self,
            aggregated_start=update.aggregated_start,
            aggregated_end=update.aggregated_end,
            aggregated_status=update.aggregated_status,
            percent_complete=Decimal(update.percent_complete),
            aggregated_cost=update.aggregated_cost,
        )


@dataclass(frozen=True)
class CostItem:
    """A direct planned/actual cost entry."""
    id: UUID
    planned_amount: Decimal
    recorded_on: date
    actual_amount: Decimal = Decimal("0")
    wbs_item_id: UUID | None = None
    entity_id: UUID | None = None  # owning Project/Program
    category: str = "general"
    description: str | None = None


@dataclass(frozen=True)
class Invoice:
    """A vendor invoice raised against a project or program."""
    id: UUID
    entity_id: UUID
    invoice_number: str
    vendor_name: str
    amount: Decimal


@dataclass(frozen=True)
class InvoiceAllocation:
    """Portion of an invoice attributed to a WBS item."""
    id: UUID
    invoice_id: UUID
    wbs_item_id: UUID
    amount: Decimal
    percentage: Decimal | None = None


@dataclass(frozen=True)
class PropagationResult:
    """Outcome of walking a change up through a node's ancestors."""
    changed_node_id: UUID
    updates: tuple[ParentAggregationUpdate, ...] = ()
    errors: tuple[str, ...] = ()

    @property
    def updated(self) -> int:
        return len(self.updates)


@dataclass(frozen=True)
class HierarchyRebuildResult:
    """Outcome of a full bottom-up rebuild of one project."""
    project_id: UUID
    updated: int = 0
    errors: tuple[str, ...] = ()
