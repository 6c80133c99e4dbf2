"""
WBS Module Services (``portfolio_modules.wbs.service``).

Responsibility
--------------
Orchestrates WBS aggregation and financial calculations: loads nodes,
cost items and invoices through a ``WBSRecordStore``, delegates all
computation to ``portfolio_engines``, and persists aggregation updates.

Architecture position
---------------------
**Modules layer** -- thin glue.  ``WBSAggregationService`` is the sole
writer of aggregated WBS fields; ``FinancialCalculationsService`` is
read-only.

Invariants enforced
-------------------
* Each node's aggregation update is committed on its own; a failed write
  rolls back only that node and is reported in ``errors``.
* ``rebuild_hierarchy`` processes nodes deepest level first, and every
  parent is aggregated from children carrying this run's recomputed values.
* Ancestor walks are iterative, detect cycles, and stop at the configured
  maximum depth.
* Soft-deleted nodes never feed an aggregation.
* A node without live children holds no aggregated status; a branch that
  loses its last child is cleared back to leaf form.

Failure modes
-------------
* ``DataAccessError`` -- a node, child listing or project listing could not
  be loaded.  The session is rolled back and the error re-raised.
* ``HierarchyCycleError`` / ``HierarchyDepthExceededError`` -- the parent
  chain is corrupt.  Fatal; rolled back and re-raised.
* Unknown node ids are not errors: propagation returns an empty result and
  ``calculate_item_cost_rollup`` returns None.

Audit relevance
---------------
Structured log events are emitted for every node written, every per-node
failure, and at the start and end of each propagation or rebuild.
"""

from __future__ import annotations

from collections import defaultdict
from datetime import date
from decimal import Decimal
from uuid import UUID

from portfolio_config import get_active_config
from portfolio_config.bridges import build_aggregation_options, build_health_thresholds
from portfolio_config.schema import EngineConfiguration
from portfolio_engines.aggregation_types import (
    AggregationOptions,
    AggregationSummary,
    ParentAggregationUpdate,
    WBSAggregationResult,
)
from portfolio_engines.allocation_efficiency import (
    AllocationEfficiency,
    analyze_allocation_efficiency,
)
from portfolio_engines.budget_health import (
    BudgetHealth,
    HealthThresholds,
    assess_budget_health,
)
from portfolio_engines.cost_rollup import (
    CostByLevel,
    CostRollupResult,
    WBSCostHierarchy,
    calculate_cost_rollup,
    cost_by_level,
    summarize_cost_hierarchy,
)
from portfolio_engines.forecast import (
    BudgetForecast,
    EntityType,
    ForecastMethod,
    calculate_budget_forecast,
)
from portfolio_engines.tree import (
    aggregate_node,
    get_aggregation_result,
    get_aggregation_summary,
)
from portfolio_engines.trend import CostTrend, TrendGranularity, build_cost_trend
from portfolio_kernel.domain.clock import Clock, SystemClock
from portfolio_kernel.exceptions import HierarchyCycleError, HierarchyDepthExceededError
from portfolio_kernel.logging_config import LogContext, get_logger
from portfolio_modules.wbs.models import HierarchyRebuildResult, PropagationResult, WBSNode
from portfolio_modules.wbs.store import WBSRecordStore

logger = get_logger("modules.wbs.service")


class WBSAggregationService:
    """
    Keeps aggregated WBS fields consistent with their children.

    Contract
    --------
    * ``propagate_from_leaf`` recomputes every ancestor of a changed node,
      nearest first.
    * ``apply_node_change`` is the create/update/delete hook: it also
      re-aggregates the changed node itself when it is a live branch.
    * ``rebuild_hierarchy`` recomputes every branch node of a project.

    Guarantees
    ----------
    * Per-node commit; partial failures are collected, not raised.
    * Clock is injectable for deterministic testing.

    Non-goals
    ---------
    * Does NOT lock nodes; concurrent propagations sharing an ancestor are
      last-write-wins.
    * Does NOT author leaf fields (status, dates, costs).
    """

    def __init__(
        self,
        store: WBSRecordStore,
        clock: Clock | None = None,
        options: AggregationOptions | None = None,
        config: EngineConfiguration | None = None,
        actor_id: UUID | None = None,
    ):
        self._store = store
        self._clock = clock or SystemClock()
        self._config = config or get_active_config()
        self._options = options or build_aggregation_options(self._config)
        self._max_depth = self._config.hierarchy.max_depth
        self._actor_id = actor_id

    def _log_scope(self, **fields: str):
        actor = str(self._actor_id) if self._actor_id is not None else None
        return LogContext.bind(actor_id=actor, **fields)

    # =========================================================================
    # Propagation
    # =========================================================================

    def propagate_from_leaf(
        self,
        changed_node_id: UUID,
        options: AggregationOptions | None = None,
    ) -> PropagationResult:
        """Recompute every ancestor of ``changed_node_id``, nearest first."""
        with self._log_scope():
            return self._propagate(changed_node_id, options or self._options)

    def _propagate(
        self, changed_node_id: UUID, opts: AggregationOptions,
    ) -> PropagationResult:
        logger.info("wbs_propagation_started", extra={
            "node_id": str(changed_node_id),
        })
        try:
            start = self._store.get_node(changed_node_id, include_deleted=True)
            if start is None:
                logger.info("wbs_propagation_skipped", extra={
                    "node_id": str(changed_node_id),
                    "reason": "node_not_found",
                })
                return PropagationResult(changed_node_id=changed_node_id)

            updates: list[ParentAggregationUpdate] = []
            errors: list[str] = []
            self._walk_ancestors(start, opts, updates, errors)
        except Exception:
            self._store.rollback()
            raise

        return self._finish_propagation(changed_node_id, updates, errors)

    def apply_node_change(
        self,
        node_id: UUID,
        options: AggregationOptions | None = None,
    ) -> PropagationResult:
        """
        Hook for a created, updated or soft-deleted node.

        A live node with live children is re-aggregated first; then the
        change is propagated to its ancestors.  A deleted node starts the
        walk at its former parent, which no longer counts it.
        """
        with self._log_scope():
            return self._apply_change(node_id, options or self._options)

    def _apply_change(
        self, node_id: UUID, opts: AggregationOptions,
    ) -> PropagationResult:
        try:
            node = self._store.get_node(node_id, include_deleted=True)
            if node is None:
                return PropagationResult(changed_node_id=node_id)

            updates: list[ParentAggregationUpdate] = []
            errors: list[str] = []
            if not node.is_deleted:
                children = self._store.get_children(node.id)
                if children:
                    update = self._write_node(node, children, opts, errors)
                    if update is not None:
                        updates.append(update)
                elif node.aggregated_status is not None:
                    self._clear_node(node, errors)
            self._walk_ancestors(node, opts, updates, errors)
        except Exception:
            self._store.rollback()
            raise

        return self._finish_propagation(node_id, updates, errors)

    def _walk_ancestors(
        self,
        start: WBSNode,
        options: AggregationOptions,
        updates: list[ParentAggregationUpdate],
        errors: list[str],
    ) -> None:
        chain: list[UUID] = [start.id]
        seen = {start.id}
        parent_id = start.parent_id

        while parent_id is not None:
            if parent_id in seen:
                raise HierarchyCycleError(
                    str(parent_id), [str(i) for i in chain + [parent_id]],
                )
            if len(chain) > self._max_depth:
                raise HierarchyDepthExceededError(str(start.id), self._max_depth)
            chain.append(parent_id)
            seen.add(parent_id)

            parent = self._store.get_node(parent_id)
            if parent is None:
                # dangling or soft-deleted ancestor ends the walk
                break

            children = self._store.get_children(parent.id)
            if children:
                update = self._write_node(parent, children, options, errors)
                if update is not None:
                    updates.append(update)
            elif parent.aggregated_status is not None:
                # last child gone: the parent is a leaf again
                self._clear_node(parent, errors)
            parent_id = parent.parent_id

    def _finish_propagation(
        self,
        node_id: UUID,
        updates: list[ParentAggregationUpdate],
        errors: list[str],
    ) -> PropagationResult:
        logger.info("wbs_propagation_completed", extra={
            "node_id": str(node_id),
            "updated": len(updates),
            "error_count": len(errors),
        })
        return PropagationResult(
            changed_node_id=node_id,
            updates=tuple(updates),
            errors=tuple(errors),
        )

    # =========================================================================
    # Rebuild
    # =========================================================================

    def rebuild_hierarchy(
        self,
        project_id: UUID,
        options: AggregationOptions | None = None,
    ) -> HierarchyRebuildResult:
        """Recompute every branch node of a project, deepest level first."""
        with self._log_scope(project_id=str(project_id)):
            return self._rebuild(project_id, options or self._options)

    def _rebuild(
        self, project_id: UUID, opts: AggregationOptions,
    ) -> HierarchyRebuildResult:
        logger.info("hierarchy_rebuild_started", extra={
            "project_id": str(project_id),
        })
        try:
            nodes = self._store.list_project_nodes(project_id)
        except Exception:
            self._store.rollback()
            raise

        children_of: dict[UUID, list[WBSNode]] = defaultdict(list)
        for node in nodes:
            if node.parent_id is not None:
                children_of[node.parent_id].append(node)

        recomputed: dict[UUID, WBSNode] = {}
        errors: list[str] = []
        updated = 0

        for node in sorted(nodes, key=lambda n: n.level, reverse=True):
            children = children_of.get(node.id)
            if not children:
                if node.aggregated_status is not None:
                    if self._clear_node(node, errors):
                        recomputed[node.id] = node.as_leaf()
                continue
            current = [recomputed.get(child.id, child) for child in children]
            update = self._write_node(node, current, opts, errors)
            if update is not None:
                recomputed[node.id] = node.with_update(update)
                updated += 1

        logger.info("hierarchy_rebuild_completed", extra={
            "project_id": str(project_id),
            "node_count": len(nodes),
            "updated": updated,
            "error_count": len(errors),
        })
        return HierarchyRebuildResult(
            project_id=project_id,
            updated=updated,
            errors=tuple(errors),
        )

    def _write_node(
        self,
        node: WBSNode,
        children: list[WBSNode],
        options: AggregationOptions,
        errors: list[str],
    ) -> ParentAggregationUpdate | None:
        try:
            update = aggregate_node(
                parent_id=node.id,
                children=[child.to_aggregation_input() for child in children],
                options=options,
            )
            self._store.apply_update(update, actor_id=self._actor_id)
            self._store.commit()
        except Exception as exc:
            self._store.rollback()
            errors.append(f"Failed to update {node.id}: {exc}")
            logger.warning("wbs_node_update_failed", extra={
                "node_id": str(node.id),
                "error": str(exc),
            })
            return None

        logger.info("wbs_node_aggregated", extra={
            "node_id": str(node.id),
            "child_count": len(children),
            "aggregated_status": update.aggregated_status.value,
            "percent_complete": update.percent_complete,
            "aggregated_cost": str(update.aggregated_cost),
        })
        return update

    def _clear_node(self, node: WBSNode, errors: list[str]) -> bool:
        try:
            self._store.clear_aggregation(node.id, actor_id=self._actor_id)
            self._store.commit()
        except Exception as exc:
            self._store.rollback()
            errors.append(f"Failed to update {node.id}: {exc}")
            logger.warning("wbs_node_update_failed", extra={
                "node_id": str(node.id),
                "error": str(exc),
            })
            return False

        logger.info("wbs_node_reset_to_leaf", extra={"node_id": str(node.id)})
        return True

    # =========================================================================
    # Diagnostics
    # =========================================================================

    def get_node_aggregation(
        self,
        node_id: UUID,
        options: AggregationOptions | None = None,
    ) -> WBSAggregationResult | None:
        """Full aggregation diagnostics for a node, stamped with the clock."""
        node = self._store.get_node(node_id)
        if node is None:
            return None
        children = [c.to_aggregation_input() for c in self._store.get_children(node.id)]
        return get_aggregation_result(
            parent_id=node.id,
            children=children,
            options=options or self._options,
            timestamp=self._clock.now(),
        )

    def get_node_summary(
        self,
        node_id: UUID,
        options: AggregationOptions | None = None,
    ) -> AggregationSummary | None:
        """Logging-oriented summary of a node's aggregation."""
        node = self._store.get_node(node_id)
        if node is None:
            return None
        children = [c.to_aggregation_input() for c in self._store.get_children(node.id)]
        summary = get_aggregation_summary(
            parent_id=node.id, children=children, options=options or self._options,
        )
        logger.info("wbs_aggregation_summary", extra=summary.to_log_dict())
        return summary


class FinancialCalculationsService:
    """
    Read-only cost rollups, forecasts and budget analytics.

    Contract
    --------
    * Every method loads its inputs through the store and returns an
      engine result; nothing is written.

    Guarantees
    ----------
    * Forecast evaluation dates and hierarchy timestamps come from the
      injected clock.
    * Thresholds default to the active engine configuration.

    Non-goals
    ---------
    * Does NOT refresh aggregated fields; callers run
      ``WBSAggregationService`` first when they need fresh rollups.
    """

    def __init__(
        self,
        store: WBSRecordStore,
        clock: Clock | None = None,
        config: EngineConfiguration | None = None,
    ):
        self._store = store
        self._clock = clock or SystemClock()
        self._config = config or get_active_config()

    # =========================================================================
    # Cost rollup
    # =========================================================================

    def calculate_item_cost_rollup(self, wbs_item_id: UUID) -> CostRollupResult | None:
        """Rollup for one live WBS item, or None if it does not exist."""
        node = self._store.get_node(wbs_item_id)
        if node is None:
            return None
        return self._rollup(node)

    def _rollup(self, node: WBSNode) -> CostRollupResult:
        children = self._store.get_children(node.id)
        return calculate_cost_rollup(
            wbs_item_id=node.id,
            level=node.level,
            cost_items=self._store.get_cost_items_for_node(node.id),
            child_aggregated_costs=[c.aggregated_cost for c in children],
            allocations=self._store.get_allocations_for_node(node.id),
            wbs_item_name=node.name,
        )

    def calculate_project_cost_hierarchy(self, project_id: UUID) -> WBSCostHierarchy:
        """Rollups for every live node of a project plus project totals."""
        nodes = sorted(self._store.list_project_nodes(project_id), key=lambda n: n.level)
        hierarchy = summarize_cost_hierarchy(
            project_id=project_id,
            rollups=[self._rollup(node) for node in nodes],
            timestamp=self._clock.now(),
        )
        logger.info("project_cost_hierarchy_calculated", extra={
            "project_id": str(project_id),
            "node_count": len(nodes),
            "total_project_cost": str(hierarchy.total_project_cost),
            "total_project_variance": str(hierarchy.total_project_variance),
        })
        return hierarchy

    def calculate_cost_by_level(self, project_id: UUID) -> list[CostByLevel]:
        """Aggregated cost totals per WBS level."""
        nodes = self._store.list_project_nodes(project_id)
        return cost_by_level([(n.level, n.aggregated_cost) for n in nodes])

    # =========================================================================
    # Forecast
    # =========================================================================

    def calculate_budget_forecast(
        self,
        entity_id: UUID,
        entity_type: EntityType,
        current_progress: Decimal | int,
        forecast_method: ForecastMethod = ForecastMethod.PERCENTAGE_COMPLETE,
    ) -> BudgetForecast:
        """
        EVM forecast for a WBS item, project or program.

        WBS items use their cost rollup totals (zero if the item is
        unknown); projects and programs sum the cost items they own.
        """
        entity_type = EntityType(entity_type)
        planned, actual = self._entity_totals(entity_id, entity_type)

        forecast_cfg = self._config.forecast
        forecast = calculate_budget_forecast(
            entity_id=entity_id,
            entity_type=entity_type,
            planned_cost=planned,
            actual_cost=actual,
            current_progress=current_progress,
            as_of=self._clock.today(),
            forecast_method=forecast_method,
            high_confidence_below=forecast_cfg.high_confidence_below_pct,
            low_confidence_above=forecast_cfg.low_confidence_above_pct,
        )
        logger.info("budget_forecast_calculated", extra={
            "entity_id": str(entity_id),
            "entity_type": entity_type.value,
            "forecast_method": forecast.forecast_method.value,
            "earned_value": str(forecast.earned_value),
            "cost_performance_index": str(forecast.cost_performance_index),
            "forecasted_total_cost": str(forecast.forecasted_total_cost),
            "confidence_level": forecast.confidence_level.value,
        })
        return forecast

    def _entity_totals(
        self, entity_id: UUID, entity_type: EntityType,
    ) -> tuple[Decimal, Decimal]:
        if entity_type == EntityType.WBS_ITEM:
            rollup = self.calculate_item_cost_rollup(entity_id)
            if rollup is None:
                return Decimal("0"), Decimal("0")
            return rollup.total_planned_cost, rollup.total_actual_cost

        items = self._store.get_cost_items_for_entity(entity_id)
        planned = sum((i.planned_amount for i in items), Decimal("0"))
        actual = sum((i.actual_amount for i in items), Decimal("0"))
        return planned, actual

    # =========================================================================
    # Analytics
    # =========================================================================

    def analyze_cost_trend(
        self,
        entity_id: UUID,
        start_date: date,
        end_date: date,
        granularity: TrendGranularity = TrendGranularity.DAILY,
    ) -> CostTrend:
        """Variance trend over an entity's cost items recorded in the range."""
        items = self._store.get_cost_items_for_entity(entity_id, start_date, end_date)
        trend = build_cost_trend(
            entity_id=entity_id,
            period_start=start_date,
            period_end=end_date,
            lines=items,
            granularity=granularity,
            slope_threshold=self._config.trend.slope_threshold,
        )
        logger.info("cost_trend_analyzed", extra={
            "entity_id": str(entity_id),
            "periods": len(trend.periods),
            "trend_direction": trend.trend_direction.value,
            "trend_slope": str(trend.trend_slope),
        })
        return trend

    def check_budget_health(
        self,
        entity_id: UUID,
        thresholds: HealthThresholds | None = None,
    ) -> BudgetHealth:
        """Health classification from an entity's cost item totals."""
        items = self._store.get_cost_items_for_entity(entity_id)
        health = assess_budget_health(
            entity_id=entity_id,
            planned_total=sum((i.planned_amount for i in items), Decimal("0")),
            actual_total=sum((i.actual_amount for i in items), Decimal("0")),
            thresholds=thresholds or build_health_thresholds(self._config),
        )
        if health.warnings:
            logger.warning("budget_health_warning", extra={
                "entity_id": str(entity_id),
                "health_status": health.health_status.value,
                "risk_score": health.risk_score,
                "warnings": list(health.warnings),
            })
        return health

    def analyze_allocation_efficiency(self, entity_id: UUID) -> AllocationEfficiency:
        """Invoice allocation coverage for an entity."""
        return analyze_allocation_efficiency(
            entity_id=entity_id,
            invoices=self._store.get_invoices_for_entity(entity_id),
            allocations=self._store.get_allocations_for_entity(entity_id),
        )
