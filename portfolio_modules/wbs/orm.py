"""
SQLAlchemy ORM persistence models for WBS cost tracking.

Responsibility
--------------
Provide database-backed persistence for WBS items, direct cost items,
invoices and invoice allocations.  Aggregated fields on ``WBSItemModel``
are written only by ``WBSAggregationService`` through the record store.

Architecture position
---------------------
**Modules layer** -- ORM models consumed by ``SqlAlchemyWBSStore``.
Inherits from ``TrackedBase`` (kernel db layer).

Invariants enforced
-------------------
* All monetary fields use ``Decimal`` (Numeric(38,9)) -- NEVER float.
* Enum fields stored as String(50) for readability and portability.
* ``WBSItemModel`` supports hierarchy via ``parent_id`` self-reference.
* Soft delete via ``deleted_at``; rows are never physically removed by the
  aggregation path.
"""

from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import Date, DateTime, ForeignKey, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from portfolio_kernel.db.base import TrackedBase, UUIDString

# ---------------------------------------------------------------------------
# WBSItemModel
# ---------------------------------------------------------------------------


class WBSItemModel(TrackedBase):
    """
    A Work Breakdown Structure item.

    Maps to the ``WBSNode`` DTO in ``portfolio_modules.wbs.models``.

    Guarantees:
        - (project_id, code) is unique when code is set.
        - ``level`` is 0 for roots and parent.level + 1 otherwise.
        - ``aggregated_status`` is NULL on leaves.
    """

    __tablename__ = "wbs_items"

    __table_args__ = (
        UniqueConstraint("project_id", "code", name="uq_wbs_item_code"),
        Index("idx_wbs_item_project_level", "project_id", "level"),
        Index("idx_wbs_item_parent", "parent_id"),
    )

    project_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    parent_id: Mapped[UUID | None] = mapped_column(ForeignKey("wbs_items.id"), nullable=True)
    level: Mapped[int] = mapped_column(default=0)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    code: Mapped[str | None] = mapped_column(String(50), nullable=True)

    planned_start: Mapped[date | None] = mapped_column(Date, nullable=True)
    planned_end: Mapped[date | None] = mapped_column(Date, nullable=True)
    actual_start: Mapped[date | None] = mapped_column(Date, nullable=True)
    actual_end: Mapped[date | None] = mapped_column(Date, nullable=True)
    aggregated_start: Mapped[date | None] = mapped_column(Date, nullable=True)
    aggregated_end: Mapped[date | None] = mapped_column(Date, nullable=True)

    status: Mapped[str] = mapped_column(String(50), nullable=False, default="NotStarted")
    aggregated_status: Mapped[str | None] = mapped_column(String(50), nullable=True)
    percent_complete: Mapped[Decimal] = mapped_column(default=Decimal("0"))

    planned_cost: Mapped[Decimal | None] = mapped_column(nullable=True)
    actual_cost: Mapped[Decimal | None] = mapped_column(nullable=True)
    aggregated_cost: Mapped[Decimal] = mapped_column(default=Decimal("0"))

    deleted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    # Relationships
    parent: Mapped["WBSItemModel | None"] = relationship(
        "WBSItemModel",
        remote_side="WBSItemModel.id",
        foreign_keys=[parent_id],
        lazy="selectin",
    )

    def to_dto(self):
        from portfolio_modules.wbs.models import WBSNode

        return WBSNode(
            id=self.id,
            project_id=self.project_id,
            name=self.name,
            code=self.code,
            parent_id=self.parent_id,
            level=self.level,
            planned_start=self.planned_start,
            planned_end=self.planned_end,
            actual_start=self.actual_start,
            actual_end=self.actual_end,
            aggregated_start=self.aggregated_start,
            aggregated_end=self.aggregated_end,
            status=self.status,
            aggregated_status=self.aggregated_status,
            percent_complete=self.percent_complete,
            planned_cost=self.planned_cost,
            actual_cost=self.actual_cost,
            aggregated_cost=self.aggregated_cost,
            deleted_at=self.deleted_at,
        )

    @classmethod
    def from_dto(cls, dto, created_by_id: UUID) -> "WBSItemModel":
        return cls(
            id=dto.id,
            project_id=dto.project_id,
            name=dto.name,
            code=dto.code,
            parent_id=dto.parent_id,
            level=dto.level,
            planned_start=dto.planned_start,
            planned_end=dto.planned_end,
            actual_start=dto.actual_start,
            actual_end=dto.actual_end,
            aggregated_start=dto.aggregated_start,
            aggregated_end=dto.aggregated_end,
            status=dto.status.value,
            aggregated_status=(
                dto.aggregated_status.value if dto.aggregated_status is not None else None
            ),
            percent_complete=dto.percent_complete,
            planned_cost=dto.planned_cost,
            actual_cost=dto.actual_cost,
            aggregated_cost=dto.aggregated_cost,
            deleted_at=dto.deleted_at,
            created_by_id=created_by_id,
        )

    def __repr__(self) -> str:
        return f"<WBSItemModel {self.code or self.id}: {self.name}>"


# ---------------------------------------------------------------------------
# CostItemModel
# ---------------------------------------------------------------------------


class CostItemModel(TrackedBase):
    """
    A direct planned/actual cost entry.

    Maps to the ``CostItem`` DTO.  Attached to a WBS item, to an owning
    project/program entity, or both.
    """

    __tablename__ = "wbs_cost_items"

    __table_args__ = (
        Index("idx_cost_item_wbs", "wbs_item_id"),
        Index("idx_cost_item_entity_date", "entity_id", "recorded_on"),
    )

    wbs_item_id: Mapped[UUID | None] = mapped_column(ForeignKey("wbs_items.id"), nullable=True)
    entity_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    planned_amount: Mapped[Decimal] = mapped_column(default=Decimal("0"))
    actual_amount: Mapped[Decimal] = mapped_column(default=Decimal("0"))
    recorded_on: Mapped[date] = mapped_column(Date, nullable=False)
    category: Mapped[str] = mapped_column(String(50), nullable=False, default="general")
    description: Mapped[str | None] = mapped_column(String(500), nullable=True)

    def to_dto(self):
        from portfolio_modules.wbs.models import CostItem

        return CostItem(
            id=self.id,
            planned_amount=self.planned_amount,
            actual_amount=self.actual_amount,
            recorded_on=self.recorded_on,
            wbs_item_id=self.wbs_item_id,
            entity_id=self.entity_id,
            category=self.category,
            description=self.description,
        )

    @classmethod
    def from_dto(cls, dto, created_by_id: UUID) -> "CostItemModel":
        return cls(
            id=dto.id,
            planned_amount=dto.planned_amount,
            actual_amount=dto.actual_amount,
            recorded_on=dto.recorded_on,
            wbs_item_id=dto.wbs_item_id,
            entity_id=dto.entity_id,
            category=dto.category,
            description=dto.description,
            created_by_id=created_by_id,
        )

    def __repr__(self) -> str:
        return f"<CostItemModel {self.id} planned={self.planned_amount} actual={self.actual_amount}>"


# ---------------------------------------------------------------------------
# InvoiceModel / InvoiceAllocationModel
# ---------------------------------------------------------------------------


class InvoiceModel(TrackedBase):
    """
    A vendor invoice owned by a project or program.

    Maps to the ``Invoice`` DTO.
    """

    __tablename__ = "wbs_invoices"

    __table_args__ = (
        UniqueConstraint("entity_id", "invoice_number", name="uq_wbs_invoice_number"),
        Index("idx_wbs_invoice_entity", "entity_id"),
    )

    entity_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    invoice_number: Mapped[str] = mapped_column(String(100), nullable=False)
    vendor_name: Mapped[str] = mapped_column(String(255), nullable=False)
    amount: Mapped[Decimal] = mapped_column(default=Decimal("0"))

    allocations: Mapped[list["InvoiceAllocationModel"]] = relationship(
        "InvoiceAllocationModel",
        back_populates="invoice",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    def to_dto(self):
        from portfolio_modules.wbs.models import Invoice

        return Invoice(
            id=self.id,
            entity_id=self.entity_id,
            invoice_number=self.invoice_number,
            vendor_name=self.vendor_name,
            amount=self.amount,
        )

    @classmethod
    def from_dto(cls, dto, created_by_id: UUID) -> "InvoiceModel":
        return cls(
            id=dto.id,
            entity_id=dto.entity_id,
            invoice_number=dto.invoice_number,
            vendor_name=dto.vendor_name,
            amount=dto.amount,
            created_by_id=created_by_id,
        )

    def __repr__(self) -> str:
        return f"<InvoiceModel {self.invoice_number} {self.amount}>"


class InvoiceAllocationModel(TrackedBase):
    """
    Portion of an invoice attributed to a WBS item.

    Maps to the ``InvoiceAllocation`` DTO.  Never summed into
    ``WBSItemModel.aggregated_cost``.
    """

    __tablename__ = "wbs_invoice_allocations"

    __table_args__ = (
        Index("idx_wbs_allocation_invoice", "invoice_id"),
        Index("idx_wbs_allocation_item", "wbs_item_id"),
    )

    invoice_id: Mapped[UUID] = mapped_column(ForeignKey("wbs_invoices.id"), nullable=False)
    wbs_item_id: Mapped[UUID] = mapped_column(ForeignKey("wbs_items.id"), nullable=False)
    amount: Mapped[Decimal] = mapped_column(default=Decimal("0"))
    percentage: Mapped[Decimal | None] = mapped_column(nullable=True)

    invoice: Mapped["InvoiceModel"] = relationship(
        "InvoiceModel",
        back_populates="allocations",
        foreign_keys=[invoice_id],
    )

    def to_dto(self):
        from portfolio_modules.wbs.models import InvoiceAllocation

        return InvoiceAllocation(
            id=self.id,
            invoice_id=self.invoice_id,
            wbs_item_id=self.wbs_item_id,
            amount=self.amount,
            percentage=self.percentage,
        )

    @classmethod
    def from_dto(cls, dto, created_by_id: UUID) -> "InvoiceAllocationModel":
        return cls(
            id=dto.id,
            invoice_id=dto.invoice_id,
            wbs_item_id=dto.wbs_item_id,
            amount=dto.amount,
            percentage=dto.percentage,
            created_by_id=created_by_id,
        )

    def __repr__(self) -> str:
        return f"<InvoiceAllocationModel {self.invoice_id} -> {self.wbs_item_id}: {self.amount}>"
