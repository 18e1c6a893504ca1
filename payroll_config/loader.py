"""
Statutory Table Loader (``payroll_config.loader``).

Responsibility
--------------
Loads one YAML file per year from the tables directory and parses it into
the frozen ``StatutoryTables`` / ``BracketTable`` dataclasses the engines
consume.  The public entry point is ``payroll_config.get_statutory_tables``.

Architecture position
---------------------
**Config layer** -- infrastructure.  Depends on ``payroll_engines`` types
and ``payroll_kernel`` exceptions only.

Invariants enforced
-------------------
* Amounts and rates are parsed from strings into ``Decimal``; YAML floats
  are rejected so no binary rounding enters the tables.
* A ``null`` upper bound marks the unbounded last bracket.
* Every structural problem raises ``ConfigurationError`` naming the file.
* ``compute_checksum`` produces a deterministic SHA-256 of the parsed file.

Failure modes
-------------
* No file for the year  -> ``BracketTableNotFoundError``.
* Malformed YAML or missing keys  -> ``ConfigurationError``.
"""

from __future__ import annotations

import hashlib
import json
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any

import yaml

from payroll_engines.brackets import UNBOUNDED, Bracket, BracketTable, StatutoryTables
from payroll_kernel.exceptions import (
    BracketTableNotFoundError,
    ConfigurationError,
    ValidationError,
)

DEFAULT_TABLES_DIR = Path(__file__).parent / "tables"


def available_years(tables_dir: Path) -> tuple[int, ...]:
    """Years that have a ``<year>.yaml`` file in ``tables_dir``."""
    years = []
    for path in tables_dir.glob("*.yaml"):
        if path.stem.isdigit():
            years.append(int(path.stem))
    return tuple(sorted(years))


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        ConfigurationError: if the file is not valid YAML or not a mapping.
    """
    try:
        with open(path) as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as exc:
        raise ConfigurationError(f"{path.name}: invalid YAML: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigurationError(f"{path.name}: top level must be a mapping")
    return data


def parse_decimal(value: Any, where: str) -> Decimal:
    """Parse a quoted decimal string (or int) from YAML."""
    if isinstance(value, bool) or isinstance(value, float):
        raise ConfigurationError(f"{where}: write amounts as quoted strings, got {value!r}")
    try:
        result = Decimal(str(value))
    except InvalidOperation:
        raise ConfigurationError(f"{where}: not a number: {value!r}") from None
    if not result.is_finite():
        raise ConfigurationError(f"{where}: must be finite, got {value!r}")
    return result


def parse_bracket_table(name: str, data: dict[str, Any], where: str) -> BracketTable:
    """Parse a bracket table mapping (``brackets`` plus optional ``ceiling``)."""
    rows = data.get("brackets")
    if not isinstance(rows, list) or not rows:
        raise ConfigurationError(f"{where}: '{name}.brackets' must be a non-empty list")

    brackets = []
    for index, row in enumerate(rows):
        row_where = f"{where}: {name}.brackets[{index}]"
        if not isinstance(row, dict) or "rate" not in row or "upper_bound" not in row:
            raise ConfigurationError(f"{row_where}: needs 'upper_bound' and 'rate'")
        upper = row["upper_bound"]
        brackets.append(
            Bracket(
                upper_bound=UNBOUNDED if upper is None else parse_decimal(upper, row_where),
                rate=parse_decimal(row["rate"], row_where),
                fixed_deduction=parse_decimal(row.get("fixed_deduction", "0"), row_where),
            )
        )

    ceiling = data.get("ceiling")
    try:
        return BracketTable(
            name=name,
            brackets=tuple(brackets),
            ceiling=None if ceiling is None else parse_decimal(ceiling, f"{where}: {name}.ceiling"),
        )
    except ValidationError as exc:
        raise ConfigurationError(f"{where}: {name}: {exc}") from exc


def parse_statutory_tables(data: dict[str, Any], where: str) -> StatutoryTables:
    """Parse a full year file into ``StatutoryTables``."""
    for key in ("year", "inss", "irrf", "fgts"):
        if key not in data:
            raise ConfigurationError(f"{where}: missing required key '{key}'")

    irrf = data["irrf"]
    fgts = data["fgts"]
    if "dependent_deduction" not in irrf:
        raise ConfigurationError(f"{where}: missing 'irrf.dependent_deduction'")
    if "deposit_rate" not in fgts:
        raise ConfigurationError(f"{where}: missing 'fgts.deposit_rate'")

    return StatutoryTables(
        year=int(data["year"]),
        inss=parse_bracket_table("inss", data["inss"], where),
        irrf=parse_bracket_table("irrf", irrf, where),
        irrf_dependent_deduction=parse_decimal(irrf["dependent_deduction"], where),
        fgts_deposit_rate=parse_decimal(fgts["deposit_rate"], where),
        checksum=compute_checksum(data),
    )


def load_statutory_tables(year: int, tables_dir: Path = DEFAULT_TABLES_DIR) -> StatutoryTables:
    """
    Load and parse ``<tables_dir>/<year>.yaml``.

    Raises:
        BracketTableNotFoundError: no file for ``year``.
        ConfigurationError: malformed content, or the file's ``year`` key
            disagrees with its name.
    """
    path = tables_dir / f"{year}.yaml"
    if not path.is_file():
        raise BracketTableNotFoundError(year, available_years(tables_dir))

    tables = parse_statutory_tables(load_yaml_file(path), path.name)
    if tables.year != year:
        raise ConfigurationError(
            f"{path.name}: declares year {tables.year}, expected {year}"
        )
    return tables


def compute_checksum(data: dict[str, Any]) -> str:
    """SHA-256 of the canonical JSON serialization of ``data``."""
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()
