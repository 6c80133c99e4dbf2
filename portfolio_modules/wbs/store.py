"""
WBS Record Store (``portfolio_modules.wbs.store``).

Responsibility
--------------
The persistence collaborator for WBS aggregation and financial
calculations.  ``WBSRecordStore`` is the abstract contract the services
depend on; ``SqlAlchemyWBSStore`` implements it over a caller-owned
SQLAlchemy ``Session``.

Architecture position
---------------------
**Modules layer** -- adapter between the services and the ORM models.
Returns frozen DTOs, never ORM instances.

Invariants enforced
-------------------
* Soft-deleted nodes (``deleted_at`` set) are excluded from every listing.
  ``get_node(..., include_deleted=True)`` is the only way to read one.
* ``list_project_nodes`` is ordered deepest level first.
* Session ownership: the store never creates sessions.  ``commit`` and
  ``rollback`` are exposed so the service can own the transaction
  boundary.

Failure modes
-------------
* Any ``SQLAlchemyError`` raised while reading or writing is re-raised as
  ``DataAccessError`` chained from the original exception.
* ``apply_update`` and ``clear_aggregation`` on a missing or out-of-tenant
  node raise ``WBSNodeNotFoundError``.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from portfolio_engines.aggregation_types import ParentAggregationUpdate
from portfolio_kernel.exceptions import DataAccessError, WBSNodeNotFoundError
from portfolio_modules.wbs.models import CostItem, Invoice, InvoiceAllocation, WBSNode
from portfolio_modules.wbs.orm import (
    CostItemModel,
    InvoiceAllocationModel,
    InvoiceModel,
    WBSItemModel,
)


class WBSRecordStore(ABC):
    """
    Abstract record store consumed by the WBS services.

    Contract:
        Read methods return DTOs for live records only unless stated
        otherwise.  ``apply_update`` stages a write; it becomes durable on
        ``commit``.

    Non-goals:
        - No locking.  Concurrent writers to the same node are last-write-wins.
    """

    @abstractmethod
    def get_node(self, node_id: UUID, include_deleted: bool = False) -> WBSNode | None:
        ...

    @abstractmethod
    def get_children(self, parent_id: UUID) -> list[WBSNode]:
        ...

    @abstractmethod
    def list_project_nodes(self, project_id: UUID) -> list[WBSNode]:
        ...

    @abstractmethod
    def apply_update(
        self, update: ParentAggregationUpdate, actor_id: UUID | None = None,
    ) -> None:
        ...

    @abstractmethod
    def clear_aggregation(self, node_id: UUID, actor_id: UUID | None = None) -> None:
        """Return a former branch to leaf form: aggregated fields cleared."""

    @abstractmethod
    def get_cost_items_for_node(self, node_id: UUID) -> list[CostItem]:
        ...

    @abstractmethod
    def get_cost_items_for_entity(
        self,
        entity_id: UUID,
        start_date: date | None = None,
        end_date: date | None = None,
    ) -> list[CostItem]:
        ...

    @abstractmethod
    def get_allocations_for_node(self, node_id: UUID) -> list[InvoiceAllocation]:
        ...

    @abstractmethod
    def get_invoices_for_entity(self, entity_id: UUID) -> list[Invoice]:
        ...

    @abstractmethod
    def get_allocations_for_entity(self, entity_id: UUID) -> list[InvoiceAllocation]:
        ...

    @abstractmethod
    def commit(self) -> None:
        ...

    @abstractmethod
    def rollback(self) -> None:
        ...


class SqlAlchemyWBSStore(WBSRecordStore):
    """
    ``WBSRecordStore`` over a SQLAlchemy session.

    Guarantees:
        - When ``tenant_id`` is given, every query is scoped to it.
        - Reads never flush or commit.
    """

    def __init__(self, session: Session, tenant_id: str | None = None):
        self.session = session
        self._tenant_id = tenant_id

    @contextmanager
    def _guard(self, operation: str) -> Iterator[None]:
        try:
            yield
        except SQLAlchemyError as exc:
            raise DataAccessError(operation, str(exc)) from exc

    def _scoped(self, query, model):
        if self._tenant_id is not None:
            query = query.where(model.tenant_id == self._tenant_id)
        return query

    def _live_nodes(self):
        query = select(WBSItemModel).where(WBSItemModel.deleted_at.is_(None))
        return self._scoped(query, WBSItemModel)

    # -- WBS nodes ----------------------------------------------------------

    def get_node(self, node_id: UUID, include_deleted: bool = False) -> WBSNode | None:
        query = self._scoped(
            select(WBSItemModel).where(WBSItemModel.id == node_id), WBSItemModel,
        )
        if not include_deleted:
            query = query.where(WBSItemModel.deleted_at.is_(None))
        with self._guard(f"load WBS node {node_id}"):
            row = self.session.execute(query).scalar_one_or_none()
        return row.to_dto() if row is not None else None

    def get_children(self, parent_id: UUID) -> list[WBSNode]:
        query = self._live_nodes().where(WBSItemModel.parent_id == parent_id)
        with self._guard(f"load children of {parent_id}"):
            rows = self.session.execute(query).scalars().all()
        return [row.to_dto() for row in rows]

    def list_project_nodes(self, project_id: UUID) -> list[WBSNode]:
        query = (
            self._live_nodes()
            .where(WBSItemModel.project_id == project_id)
            .order_by(WBSItemModel.level.desc())
        )
        with self._guard(f"list nodes of project {project_id}"):
            rows = self.session.execute(query).scalars().all()
        return [row.to_dto() for row in rows]

    def _row_for_write(self, node_id: UUID) -> WBSItemModel:
        query = self._scoped(
            select(WBSItemModel).where(WBSItemModel.id == node_id), WBSItemModel,
        )
        row = self.session.execute(query).scalar_one_or_none()
        if row is None:
            raise WBSNodeNotFoundError(str(node_id))
        return row

    def apply_update(
        self, update: ParentAggregationUpdate, actor_id: UUID | None = None,
    ) -> None:
        with self._guard(f"write aggregation for {update.id}"):
            row = self._row_for_write(update.id)
            row.aggregated_start = update.aggregated_start
            row.aggregated_end = update.aggregated_end
            row.aggregated_status = update.aggregated_status.value
            row.percent_complete = Decimal(update.percent_complete)
            row.aggregated_cost = update.aggregated_cost
            if actor_id is not None:
                row.updated_by_id = actor_id
            self.session.flush()

    def clear_aggregation(self, node_id: UUID, actor_id: UUID | None = None) -> None:
        with self._guard(f"clear aggregation for {node_id}"):
            row = self._row_for_write(node_id)
            row.aggregated_start = None
            row.aggregated_end = None
            row.aggregated_status = None
            row.aggregated_cost = Decimal("0")
            if actor_id is not None:
                row.updated_by_id = actor_id
            self.session.flush()

    # -- Cost items / invoices ---------------------------------------------

    def get_cost_items_for_node(self, node_id: UUID) -> list[CostItem]:
        query = self._scoped(
            select(CostItemModel).where(CostItemModel.wbs_item_id == node_id),
            CostItemModel,
        )
        with self._guard(f"load cost items of {node_id}"):
            rows = self.session.execute(query).scalars().all()
        return [row.to_dto() for row in rows]

    def get_cost_items_for_entity(
        self,
        entity_id: UUID,
        start_date: date | None = None,
        end_date: date | None = None,
    ) -> list[CostItem]:
        query = self._scoped(
            select(CostItemModel).where(CostItemModel.entity_id == entity_id),
            CostItemModel,
        )
        if start_date is not None:
            query = query.where(CostItemModel.recorded_on >= start_date)
        if end_date is not None:
            query = query.where(CostItemModel.recorded_on <= end_date)
        query = query.order_by(CostItemModel.recorded_on)
        with self._guard(f"load cost items of entity {entity_id}"):
            rows = self.session.execute(query).scalars().all()
        return [row.to_dto() for row in rows]

    def get_allocations_for_node(self, node_id: UUID) -> list[InvoiceAllocation]:
        query = self._scoped(
            select(InvoiceAllocationModel)
            .where(InvoiceAllocationModel.wbs_item_id == node_id),
            InvoiceAllocationModel,
        )
        with self._guard(f"load allocations of {node_id}"):
            rows = self.session.execute(query).scalars().all()
        return [row.to_dto() for row in rows]

    def get_invoices_for_entity(self, entity_id: UUID) -> list[Invoice]:
        query = self._scoped(
            select(InvoiceModel).where(InvoiceModel.entity_id == entity_id),
            InvoiceModel,
        )
        with self._guard(f"load invoices of entity {entity_id}"):
            rows = self.session.execute(query).scalars().all()
        return [row.to_dto() for row in rows]

    def get_allocations_for_entity(self, entity_id: UUID) -> list[InvoiceAllocation]:
        query = self._scoped(
            select(InvoiceAllocationModel)
            .join(InvoiceModel, InvoiceAllocationModel.invoice_id == InvoiceModel.id)
            .where(InvoiceModel.entity_id == entity_id),
            InvoiceAllocationModel,
        )
        with self._guard(f"load allocations of entity {entity_id}"):
            rows = self.session.execute(query).scalars().all()
        return [row.to_dto() for row in rows]

    # -- Transaction boundary ----------------------------------------------

    def commit(self) -> None:
        with self._guard("commit"):
            self.session.commit()

    def rollback(self) -> None:
        self.session.rollback()
