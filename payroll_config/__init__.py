"""
payroll_config -- single public entrypoint for statutory tables.

Responsibility:
    ``get_statutory_tables(year)`` is the only way runtime code obtains
    INSS/IRRF bracket tables, the IRRF dependent deduction and the FGTS
    deposit rate.  YAML parsing lives in ``loader`` and is never called by
    services directly.

Architecture position:
    Configuration -- sits above ``payroll_kernel`` / ``payroll_engines`` and
    below ``payroll_modules``.

Failure modes:
    - ``BracketTableNotFoundError`` -- no table file for the requested year
      (fatal, never retried).
    - ``ConfigurationError`` -- malformed table file.

Audit relevance:
    Every load emits a ``statutory_tables_loaded`` log entry with the year
    and the SHA-256 checksum of the file, tying each calculated document to
    the exact table version that produced it.
"""

from __future__ import annotations

import threading
from pathlib import Path

from payroll_config.loader import DEFAULT_TABLES_DIR, load_statutory_tables
from payroll_engines.brackets import StatutoryTables
from payroll_kernel.logging_config import get_logger

logger = get_logger("config")

_cache: dict[tuple[Path, int], StatutoryTables] = {}
_cache_lock = threading.Lock()


def get_statutory_tables(year: int, tables_dir: Path | None = None) -> StatutoryTables:
    """The statutory tables in force for ``year`` (cached per directory)."""
    directory = (tables_dir or DEFAULT_TABLES_DIR).resolve()
    key = (directory, year)
    with _cache_lock:
        cached = _cache.get(key)
    if cached is not None:
        return cached

    tables = load_statutory_tables(year, directory)
    with _cache_lock:
        _cache[key] = tables

    logger.info(
        "statutory_tables_loaded",
        extra={
            "year": year,
            "tables_dir": str(directory),
            "checksum": tables.checksum,
            "inss_brackets": len(tables.inss.brackets),
            "irrf_brackets": len(tables.irrf.brackets),
        },
    )
    return tables


def clear_cache() -> None:
    """Forget loaded tables. FOR TESTING ONLY."""
    with _cache_lock:
        _cache.clear()


__all__ = ["StatutoryTables", "clear_cache", "get_statutory_tables"]
