"""
Module ORM Registry (``payroll_modules._orm_registry``).

Ensures every module-level SQLAlchemy ORM model is imported so that
``Base.metadata`` contains its table before ``create_tables()`` runs.

Imported lazily by ``payroll_kernel.db.engine``; MUST NOT be imported at
module level by the kernel.
"""


def import_all_orm_models() -> None:
    """Import every ``payroll_modules.*.orm`` module.  Idempotent."""
    import payroll_modules.settlement.orm  # noqa: F401
