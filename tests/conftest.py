"""
Pytest fixtures for the portfolio engine test suite.

Provides:
- SQLite in-memory database sessions (StaticPool, one connection)
- Deterministic clock
- WBS node / cost item builders for engine and service tests
- Structured log capture
"""

import json
import logging
from datetime import date, datetime, timezone
from decimal import Decimal
from io import StringIO
from uuid import UUID, uuid4

import pytest

from portfolio_config import get_active_config
from portfolio_engines.aggregation_types import (
    AggregatedStatus,
    WBSItemForAggregation,
    WBSItemStatus,
)
from portfolio_kernel.db.engine import (
    create_tables,
    drop_tables,
    get_session,
    init_engine_from_url,
    reset_engine,
)
from portfolio_kernel.domain.clock import DeterministicClock
from portfolio_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from portfolio_modules.wbs.orm import CostItemModel, WBSItemModel
from portfolio_modules.wbs.store import SqlAlchemyWBSStore

TEST_ACTOR_ID = UUID("00000000-0000-0000-0000-0000000000a1")


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG)
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Clear LogContext between tests to prevent cross-test contamination."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture portfolio_kernel logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs, aggregation_service):
            aggregation_service.rebuild_hierarchy(project_id)
            logs = captured_logs()
            assert any(r["message"] == "hierarchy_rebuild_completed" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("portfolio_kernel")
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)


# =============================================================================
# Database fixtures
# =============================================================================


@pytest.fixture
def session():
    """Fresh in-memory SQLite schema per test."""
    init_engine_from_url("sqlite:///:memory:")
    create_tables()
    sess = get_session()
    yield sess
    sess.close()
    drop_tables()
    reset_engine()


@pytest.fixture
def store(session):
    return SqlAlchemyWBSStore(session)


@pytest.fixture
def clock():
    return DeterministicClock(datetime(2024, 6, 1, 9, 0, 0, tzinfo=timezone.utc))


@pytest.fixture
def engine_config():
    return get_active_config()


@pytest.fixture
def project_id() -> UUID:
    return uuid4()


@pytest.fixture
def add_node(session, project_id):
    """
    Persist a WBS item and return its id.

    Usage::

        root = add_node("Root")
        child = add_node("Child", parent=root, planned_cost=Decimal("500"))
    """
    levels: dict[UUID, int] = {}

    def _add(name: str, parent: UUID | None = None, **fields) -> UUID:
        level = levels[parent] + 1 if parent is not None else 0
        fields.setdefault("status", WBSItemStatus.NOT_STARTED.value)
        if isinstance(fields["status"], WBSItemStatus):
            fields["status"] = fields["status"].value
        row = WBSItemModel(
            id=uuid4(),
            project_id=fields.pop("project_id", project_id),
            parent_id=parent,
            level=level,
            name=name,
            created_by_id=TEST_ACTOR_ID,
            **fields,
        )
        session.add(row)
        session.commit()
        levels[row.id] = level
        return row.id

    return _add


@pytest.fixture
def add_cost_item(session):
    """Persist a direct cost item and return its id."""

    def _add(
        planned: str | Decimal,
        actual: str | Decimal = "0",
        recorded_on: date = date(2024, 1, 1),
        wbs_item_id: UUID | None = None,
        entity_id: UUID | None = None,
    ) -> UUID:
        row = CostItemModel(
            id=uuid4(),
            planned_amount=Decimal(planned),
            actual_amount=Decimal(actual),
            recorded_on=recorded_on,
            wbs_item_id=wbs_item_id,
            entity_id=entity_id,
            created_by_id=TEST_ACTOR_ID,
        )
        session.add(row)
        session.commit()
        return row.id

    return _add


# =============================================================================
# Engine input builders
# =============================================================================


def make_child(
    status: WBSItemStatus = WBSItemStatus.NOT_STARTED,
    percent_complete: int | str = 0,
    planned_cost: str | None = None,
    actual_cost: str | None = None,
    aggregated_cost: str = "0",
    aggregated_status: AggregatedStatus | None = None,
    **dates,
) -> WBSItemForAggregation:
    """Build one engine input child with string-friendly money arguments."""
    return WBSItemForAggregation(
        id=uuid4(),
        status=status,
        percent_complete=Decimal(percent_complete),
        planned_cost=Decimal(planned_cost) if planned_cost is not None else None,
        actual_cost=Decimal(actual_cost) if actual_cost is not None else None,
        aggregated_cost=Decimal(aggregated_cost),
        aggregated_status=aggregated_status,
        **dates,
    )


@pytest.fixture
def child():
    return make_child
