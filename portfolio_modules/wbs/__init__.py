"""
WBS Cost Tracking Module (``portfolio_modules.wbs``).

Responsibility
--------------
Hierarchical aggregation of WBS items (dates, status, progress, cost) and
the financial calculations built on it: cost rollups, EVM budget
forecasts, cost trends, budget health and invoice allocation efficiency.

Architecture position
---------------------
**Modules layer** -- DTOs, ORM models, a record store adapter, and two
services that delegate all arithmetic to ``portfolio_engines``.

Invariants enforced
-------------------
* ``WBSAggregationService`` is the only writer of aggregated fields.
* Soft-deleted items never feed an aggregation.

Failure modes
-------------
* ``DataAccessError`` when the store cannot load records.
* ``HierarchyCycleError`` / ``HierarchyDepthExceededError`` on a corrupt
  parent chain.
"""

from portfolio_modules.wbs.models import (
    CostItem,
    HierarchyRebuildResult,
    Invoice,
    InvoiceAllocation,
    PropagationResult,
    WBSNode,
)
from portfolio_modules.wbs.service import (
    FinancialCalculationsService,
    WBSAggregationService,
)
from portfolio_modules.wbs.store import SqlAlchemyWBSStore, WBSRecordStore

__all__ = [
    "CostItem",
    "FinancialCalculationsService",
    "HierarchyRebuildResult",
    "Invoice",
    "InvoiceAllocation",
    "PropagationResult",
    "SqlAlchemyWBSStore",
    "WBSAggregationService",
    "WBSNode",
    "WBSRecordStore",
]
