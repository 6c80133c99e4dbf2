"""
Portfolio Modules (``portfolio_modules``).

Domain modules that compose the pure engines with persistence.  Each
subpackage follows the same layout: ``models.py`` (frozen DTOs), ``orm.py``
(SQLAlchemy models), and ``service.py`` (orchestration owning the
transaction boundary).
"""
