"""
Typed Exception Hierarchy for the Portfolio Kernel.

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

All exceptions inherit from PortfolioKernelError:

    PortfolioKernelError (base)
    |
    +-- WBSError
    |   +-- WBSNodeNotFoundError
    |   +-- HierarchyCycleError
    |   +-- HierarchyDepthExceededError
    |
    +-- DataAccessError
    |
    +-- ConfigurationError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category        | Code                        | When Raised
----------------|-----------------------------|-----------------------------------------
WBS             | WBS_NODE_NOT_FOUND          | Node ID doesn't exist where one is required
                | HIERARCHY_CYCLE             | Parent chain revisits a node
                | HIERARCHY_DEPTH_EXCEEDED    | Parent chain longer than configured cap
----------------|-----------------------------|-----------------------------------------
Data access     | DATA_ACCESS_FAILED          | Record store could not load nodes/children
----------------|-----------------------------|-----------------------------------------
Configuration   | INVALID_CONFIGURATION       | Config file missing keys or out of range

===============================================================================
HANDLING PATTERNS
===============================================================================

Numeric edge cases (division by zero, empty child sets, zero budgets) are
NOT errors -- the engines return 0 or a neutral value.  Per-node failures
during a hierarchy rebuild are collected as strings, not raised.  The
exceptions below are the fatal conditions that abort an orchestration call:

    try:
        service.propagate_from_leaf(node_id)
    except HierarchyCycleError as e:
        alert_data_team(e.node_id, e.chain)
    except DataAccessError as e:
        retry_later(e.operation)

Codes are class attributes so that ``HierarchyCycleError.code`` is usable
without instantiation.  All context is stored as attributes so it survives
structured logging (see ``StructuredFormatter``).
"""


class PortfolioKernelError(Exception):
    """
    Base exception for all portfolio kernel errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "PORTFOLIO_KERNEL_ERROR"


# WBS hierarchy exceptions


class WBSError(PortfolioKernelError):
    """Base exception for WBS hierarchy errors."""

    code: str = "WBS_ERROR"


class WBSNodeNotFoundError(WBSError):
    """WBS node with given ID was not found."""

    code: str = "WBS_NODE_NOT_FOUND"

    def __init__(self, node_id: str):
        self.node_id = node_id
        super().__init__(f"WBS node not found: {node_id}")


class HierarchyCycleError(WBSError):
    """
    The parent chain of a node revisits a node already seen.

    The engine assumes an acyclic tree; a cycle is a fatal configuration
    error in the record store, not something the engine can repair.
    """

    code: str = "HIERARCHY_CYCLE"

    def __init__(self, node_id: str, chain: list[str]):
        self.node_id = node_id
        self.chain = chain
        super().__init__(
            f"Cycle detected in WBS hierarchy at {node_id}: "
            f"{' -> '.join(chain)}"
        )


class HierarchyDepthExceededError(WBSError):
    """Parent chain is deeper than the configured maximum."""

    code: str = "HIERARCHY_DEPTH_EXCEEDED"

    def __init__(self, node_id: str, max_depth: int):
        self.node_id = node_id
        self.max_depth = max_depth
        super().__init__(
            f"WBS hierarchy above {node_id} exceeds max depth {max_depth}"
        )


# Data access exceptions


class DataAccessError(PortfolioKernelError):
    """The record store could not supply the data an operation needs."""

    code: str = "DATA_ACCESS_FAILED"

    def __init__(self, operation: str, reason: str):
        self.operation = operation
        self.reason = reason
        super().__init__(f"Failed to {operation}: {reason}")


# Configuration exceptions


class ConfigurationError(PortfolioKernelError):
    """Engine configuration is missing required values or out of range."""

    code: str = "INVALID_CONFIGURATION"

    def __init__(self, field: str, message: str):
        self.field = field
        super().__init__(f"Invalid configuration for {field}: {message}")
