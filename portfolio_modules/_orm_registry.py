"""
Module ORM Registry (``portfolio_modules._orm_registry``).

Responsibility
--------------
Ensure all module-level SQLAlchemy ORM models are imported so that
``Base.metadata`` contains their table definitions before tables are
created.  ``portfolio_kernel.db.engine.create_tables()`` calls
``import_all_orm_models()`` before ``create_all()``.

Architecture position
---------------------
**Modules layer** -- utility.  MUST NOT be imported at module level by
``portfolio_kernel`` (the kernel imports it lazily inside
``create_tables``).
"""


def import_all_orm_models() -> None:
    """Import every ``portfolio_modules.*.orm`` module.  Idempotent."""
    import portfolio_modules.wbs.orm  # noqa: F401
