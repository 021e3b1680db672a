"""
PPM Net Payout Calculator.

PPM incentive payments are taxable income and DFAS withholds from them at
supplemental-wage rates. This engine turns a gross incentive into the
component withholdings and the net amount the member should expect.

Usage:
    from pcs_engines.ppm_withholding import PPMWithholdingCalculator
    from decimal import Decimal

    payout = PPMWithholdingCalculator().calculate(
        gross_cents=120000,
        federal_rate=Decimal("0.15"),
        state_rate=Decimal("0.05"),
    )
    payout.net_cents            # 86820
    payout.effective_rate       # Decimal("0.2765")

Components (all rates are fractions):
    federal   -- IRS supplemental rate (22% default)
    state     -- destination-state rate (0 when unknown)
    FICA      -- 6.2%, base limited by the remaining annual wage base
    Medicare  -- 1.45%, uncapped

Allowed operating expenses (moving costs, fuel, labor, tolls) reduce the
taxable amount, floored at zero. Each component is quantized to cents
(ROUND_HALF_UP); net = gross - sum(components). With no expenses and no
wage-base cap, net = gross x (1 - federal - state - FICA - Medicare).
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from typing import Any

from pcs_engines.tracer import traced_engine
from pcs_kernel.domain.values import require_decimal, to_cents
from pcs_kernel.exceptions import InvalidWithholdingRateError
from pcs_kernel.logging_config import get_logger

logger = get_logger("engines.ppm_withholding")

DEFAULT_FICA_RATE = Decimal("0.062")
DEFAULT_MEDICARE_RATE = Decimal("0.0145")
DEFAULT_FICA_WAGE_BASE_CENTS = 16_860_000  # 2025 Social Security wage base, $168,600
DEFAULT_DISCLAIMER = (
    "This is an ESTIMATE of withholding on a PPM incentive payment. "
    "Actual withholding is determined by DFAS. This is not tax advice."
)


class WithholdingComponentType(str, Enum):
    FEDERAL = "federal"
    STATE = "state"
    FICA = "fica"
    MEDICARE = "medicare"


@dataclass(frozen=True)
class AllowedExpenses:
    """Receipted PPM operating expenses (cents) that reduce the taxable amount."""

    moving_costs_cents: int = 0
    fuel_cents: int = 0
    labor_cents: int = 0
    tolls_cents: int = 0

    def __post_init__(self) -> None:
        for name in ("moving_costs_cents", "fuel_cents", "labor_cents", "tolls_cents"):
            if getattr(self, name) < 0:
                raise ValueError(f"{name} cannot be negative")

    @property
    def total_cents(self) -> int:
        return self.moving_costs_cents + self.fuel_cents + self.labor_cents + self.tolls_cents


@dataclass(frozen=True)
class WithholdingComponent:
    """One withholding line."""

    component: WithholdingComponentType
    rate: Decimal
    taxable_cents: int
    amount_cents: int
    basis: str
    capped: bool = False

    @property
    def rate_percent(self) -> Decimal:
        return self.rate * Decimal("100")

    def to_dict(self) -> dict[str, Any]:
        return {
            "amount": self.amount_cents,
            "rate": str(self.rate),
            "taxable": self.taxable_cents,
            "basis": self.basis,
            "capped": self.capped,
        }


@dataclass(frozen=True)
class PPMNetPayout:
    """Gross-to-net breakdown for a PPM incentive."""

    gross_cents: int
    allowed_expenses_cents: int
    taxable_cents: int
    components: tuple[WithholdingComponent, ...]
    total_withholding_cents: int
    net_cents: int
    effective_rate: Decimal
    disclaimer: str = DEFAULT_DISCLAIMER
    is_estimate: bool = True

    def component(self, kind: WithholdingComponentType) -> WithholdingComponent:
        for c in self.components:
            if c.component is kind:
                return c
        raise KeyError(kind)

    @property
    def federal(self) -> WithholdingComponent:
        return self.component(WithholdingComponentType.FEDERAL)

    @property
    def state(self) -> WithholdingComponent:
        return self.component(WithholdingComponentType.STATE)

    @property
    def fica(self) -> WithholdingComponent:
        return self.component(WithholdingComponentType.FICA)

    @property
    def medicare(self) -> WithholdingComponent:
        return self.component(WithholdingComponentType.MEDICARE)

    def to_dict(self) -> dict[str, Any]:
        return {
            "gross": self.gross_cents,
            "allowedExpenses": self.allowed_expenses_cents,
            "taxable": self.taxable_cents,
            "withholding": {c.component.value: c.to_dict() for c in self.components},
            "totalWithholding": self.total_withholding_cents,
            "net": self.net_cents,
            "effectiveRate": str(self.effective_rate),
            "disclaimer": self.disclaimer,
            "isEstimate": self.is_estimate,
        }


def _check_rate(component: str, rate: Decimal) -> None:
    require_decimal(rate, f"{component}_rate")
    if rate < 0 or rate > 1:
        raise InvalidWithholdingRateError(component, str(rate), "must be between 0 and 1")


class PPMWithholdingCalculator:
    """
    Calculate estimated withholding on a PPM incentive.

    Pure - no I/O. Rates are provided as parameters; defaults for the
    federal and state rates come from the caller's reference data.
    """

    @traced_engine(
        "ppm_withholding",
        "1.0",
        fingerprint_fields=("gross_cents", "federal_rate", "state_rate", "ytd_fica_wages_cents"),
    )
    def calculate(
        self,
        *,
        gross_cents: int,
        federal_rate: Decimal,
        state_rate: Decimal = Decimal("0"),
        fica_rate: Decimal = DEFAULT_FICA_RATE,
        medicare_rate: Decimal = DEFAULT_MEDICARE_RATE,
        allowed_expenses: AllowedExpenses | None = None,
        ytd_fica_wages_cents: int = 0,
        fica_wage_base_cents: int = DEFAULT_FICA_WAGE_BASE_CENTS,
        state_label: str | None = None,
        disclaimer: str = DEFAULT_DISCLAIMER,
    ) -> PPMNetPayout:
        """
        Compute the net payout breakdown.

        Args:
            gross_cents: Gross PPM incentive in cents.
            federal_rate: Federal withholding rate (fraction).
            state_rate: State withholding rate (fraction, default 0).
            fica_rate: Social Security rate.
            medicare_rate: Medicare rate.
            allowed_expenses: Operating expenses reducing the taxable amount.
            ytd_fica_wages_cents: Wages already subject to FICA this year.
            fica_wage_base_cents: Annual Social Security wage base.
            state_label: State name/code for the basis text.

        Returns:
            PPMNetPayout with every component and the effective rate.

        Raises:
            InvalidWithholdingRateError: Rate outside [0, 1] or total over 100%.
            ValueError: Negative gross or wage amounts.
        """
        t0 = time.monotonic()
        if gross_cents < 0:
            raise ValueError(f"gross_cents cannot be negative: {gross_cents}")
        if ytd_fica_wages_cents < 0 or fica_wage_base_cents < 0:
            raise ValueError("FICA wage amounts cannot be negative")

        rates = {
            WithholdingComponentType.FEDERAL: federal_rate,
            WithholdingComponentType.STATE: state_rate,
            WithholdingComponentType.FICA: fica_rate,
            WithholdingComponentType.MEDICARE: medicare_rate,
        }
        for kind, rate in rates.items():
            _check_rate(kind.value, rate)
        combined = sum(rates.values(), Decimal("0"))
        if combined > 1:
            raise InvalidWithholdingRateError("total", str(combined), "components exceed 100%")

        logger.info("ppm_withholding_started", extra={
            "gross_cents": gross_cents,
            "federal_rate": str(federal_rate),
            "state_rate": str(state_rate),
        })

        expenses_cents = allowed_expenses.total_cents if allowed_expenses else 0
        taxable = max(0, gross_cents - expenses_cents)

        remaining_base = max(0, fica_wage_base_cents - ytd_fica_wages_cents)
        fica_taxable = min(taxable, remaining_base)

        def _amount(base_cents: int, rate: Decimal) -> int:
            return to_cents(Decimal(base_cents) * rate / Decimal("100"))

        components = (
            WithholdingComponent(
                component=WithholdingComponentType.FEDERAL,
                rate=federal_rate,
                taxable_cents=taxable,
                amount_cents=_amount(taxable, federal_rate),
                basis="IRS supplemental wage rate",
            ),
            WithholdingComponent(
                component=WithholdingComponentType.STATE,
                rate=state_rate,
                taxable_cents=taxable,
                amount_cents=_amount(taxable, state_rate),
                basis=(
                    f"{state_label} rate - verify with state tax authority"
                    if state_label else "State rate as provided"
                ),
            ),
            WithholdingComponent(
                component=WithholdingComponentType.FICA,
                rate=fica_rate,
                taxable_cents=fica_taxable,
                amount_cents=_amount(fica_taxable, fica_rate),
                basis="Social Security, limited to the remaining annual wage base",
                capped=fica_taxable < taxable,
            ),
            WithholdingComponent(
                component=WithholdingComponentType.MEDICARE,
                rate=medicare_rate,
                taxable_cents=taxable,
                amount_cents=_amount(taxable, medicare_rate),
                basis="Medicare, no wage base limit",
            ),
        )

        total = sum(c.amount_cents for c in components)
        effective = Decimal("0")
        if gross_cents:
            effective = (Decimal(total) / Decimal(gross_cents)).quantize(
                Decimal("0.0001"), rounding=ROUND_HALF_UP
            )

        payout = PPMNetPayout(
            gross_cents=gross_cents,
            allowed_expenses_cents=expenses_cents,
            taxable_cents=taxable,
            components=components,
            total_withholding_cents=total,
            net_cents=gross_cents - total,
            effective_rate=effective,
            disclaimer=disclaimer,
        )

        logger.info("ppm_withholding_completed", extra={
            "gross_cents": gross_cents,
            "total_withholding_cents": total,
            "net_cents": payout.net_cents,
            "effective_rate": str(effective),
            "fica_capped": components[2].capped,
            "duration_ms": round((time.monotonic() - t0) * 1000, 2),
        })
        return payout


def calculate_ppm_net_payout(
    gross_cents: int,
    federal_rate: Decimal,
    state_rate: Decimal = Decimal("0"),
    fica_rate: Decimal = DEFAULT_FICA_RATE,
    medicare_rate: Decimal = DEFAULT_MEDICARE_RATE,
    allowed_expenses: AllowedExpenses | None = None,
    ytd_fica_wages_cents: int = 0,
    fica_wage_base_cents: int = DEFAULT_FICA_WAGE_BASE_CENTS,
) -> PPMNetPayout:
    """Functional form of ``PPMWithholdingCalculator.calculate``."""
    return PPMWithholdingCalculator().calculate(
        gross_cents=gross_cents,
        federal_rate=federal_rate,
        state_rate=state_rate,
        fica_rate=fica_rate,
        medicare_rate=medicare_rate,
        allowed_expenses=allowed_expenses,
        ytd_fica_wages_cents=ytd_fica_wages_cents,
        fica_wage_base_cents=fica_wage_base_cents,
    )
