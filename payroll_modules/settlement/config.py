"""
Settlement Configuration Schema.

Defines the structure and defaults for settlement settings.  Statutory
amounts (brackets, rates) are not here: they come from the yearly tables in
``payroll_config``.
"""

from dataclasses import dataclass
from datetime import date
from typing import Self

from payroll_engines.brackets import WithholdingMethod
from payroll_engines.settlement_assembly import TaxMethods, ThirteenthKind
from payroll_kernel.logging_config import get_logger

logger = get_logger("modules.settlement.config")

_METHOD_FIELDS = ("inss_method", "irrf_method", "thirteenth_inss_method")


@dataclass(frozen=True)
class SettlementConfig:
    """
    Configuration schema for the settlement module.

    ``inss_method`` applies to termination settlements and
    ``thirteenth_inss_method`` to 13th-salary documents; both default to
    progressive accumulation.  Deadlines are (month, day) pairs:

        config = SettlementConfig.from_dict({
            "thirteenth_inss_method": "single_lookup",
            "batch_max_workers": 8,
        })
    """

    inss_method: WithholdingMethod = WithholdingMethod.PROGRESSIVE
    irrf_method: WithholdingMethod = WithholdingMethod.SINGLE_LOOKUP
    thirteenth_inss_method: WithholdingMethod = WithholdingMethod.PROGRESSIVE
    apply_dependent_deduction: bool = True

    first_installment_deadline: tuple[int, int] = (11, 30)
    second_installment_deadline: tuple[int, int] = (12, 20)

    vacation_annual_days: int = 30
    batch_max_workers: int = 4

    def __post_init__(self):
        for name in _METHOD_FIELDS:
            object.__setattr__(self, name, WithholdingMethod(getattr(self, name)))

        for name in ("first_installment_deadline", "second_installment_deadline"):
            value = tuple(getattr(self, name))
            if len(value) != 2:
                raise ValueError(f"{name} must be a (month, day) pair")
            # Validates month/day against a leap year so Feb 29 is accepted
            date(2024, value[0], value[1])
            object.__setattr__(self, name, value)

        if self.vacation_annual_days <= 0:
            raise ValueError("vacation_annual_days must be positive")
        if self.batch_max_workers < 1:
            raise ValueError("batch_max_workers must be at least 1")

        logger.info(
            "settlement_config_initialized",
            extra={
                "inss_method": self.inss_method.value,
                "irrf_method": self.irrf_method.value,
                "thirteenth_inss_method": self.thirteenth_inss_method.value,
                "apply_dependent_deduction": self.apply_dependent_deduction,
                "batch_max_workers": self.batch_max_workers,
            },
        )

    @classmethod
    def with_defaults(cls) -> Self:
        """Create config with statutory defaults."""
        logger.info("settlement_config_created_with_defaults")
        return cls()

    @classmethod
    def from_dict(cls, data: dict) -> Self:
        """Create config from dictionary (e.g., loaded from database/file)."""
        logger.info(
            "settlement_config_loading_from_dict",
            extra={"keys": sorted(data.keys())},
        )
        return cls(**data)

    def termination_methods(self) -> TaxMethods:
        return TaxMethods(
            inss=self.inss_method,
            irrf=self.irrf_method,
            apply_dependent_deduction=self.apply_dependent_deduction,
        )

    def thirteenth_methods(self) -> TaxMethods:
        return TaxMethods(
            inss=self.thirteenth_inss_method,
            irrf=self.irrf_method,
            apply_dependent_deduction=self.apply_dependent_deduction,
        )

    def due_date(self, kind: ThirteenthKind | str, year: int) -> date:
        """Statutory due date of a 13th-salary document.

        The first installment is due by the first deadline; everything
        that settles the whole 13th is due by the second.
        """
        if ThirteenthKind(kind) is ThirteenthKind.FIRST_INSTALLMENT:
            month, day = self.first_installment_deadline
        else:
            month, day = self.second_installment_deadline
        return date(year, month, day)
