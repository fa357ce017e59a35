"""
Parameter normalizer
- Raw parameter record as entered at the surface (rates in percent).
- Auto-derivation flags for the dependent fields.
- Canonical record (rates as fractions, every field filled) and the
  rules that build it.
"""

import math
from dataclasses import dataclass, field, fields, asdict
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple, Union

from . import policy
from .errors import ValidationError

# Fields entered in percent at the surface, stored as fractions
RATE_FIELDS = (
    "mortgage_rate",
    "property_appreciation_rate",
    "investment_yield_rate",
    "marginal_tax_rate",
)

MONEY_FIELDS = (
    "down_payment",
    "monthly_rent",
    "annual_maintenance_costs",
    "annual_amortization",
    "imputed_rental_value",
    "total_renovations",
    "additional_purchase_costs",
    "property_tax_deductions",
    "annual_rental_costs",
)

YEAR_FIELDS = ("term_years", "amortization_years")


class ScenarioMode(str, Enum):
    """How the renter builds the portfolio beside the initial capital."""
    # Invest the owner's extra outlay, never withdraw
    EQUAL_CONSUMPTION = "equal_consumption"
    # Save the annual amortization while the owner amortizes
    EQUAL_SAVINGS = "equal_savings"
    # Invest or withdraw the signed outlay difference; renovations are investable
    CASHFLOW_PARITY = "cashflow_parity"


def round_half_up(x: float) -> float:
    """Round to the nearest unit, halves away from zero."""
    return math.copysign(math.floor(abs(x) + 0.5), x)


@dataclass(frozen=True)
class AutoFlags:
    """Which dependent fields are derived instead of taken from the input."""
    down_payment: bool = True
    maintenance: bool = True
    amortization: bool = True
    imputed_rental: bool = True

    @classmethod
    def none(cls) -> "AutoFlags":
        return cls(False, False, False, False)


@dataclass
class RawParams:
    # Property & financing
    purchase_price: Optional[float] = None
    down_payment: Optional[float] = None
    mortgage_rate: float = 2.0                 # %
    amortization_years: int = 15

    # Rent
    monthly_rent: Optional[float] = None
    annual_rental_costs: float = policy.DEFAULT_ANNUAL_RENTAL_COSTS

    # Market
    property_appreciation_rate: float = 1.5    # % per year
    investment_yield_rate: float = 3.5         # % per year
    marginal_tax_rate: float = 28.0            # %

    # Horizon
    term_years: int = 10

    # Owner costs
    annual_maintenance_costs: Optional[float] = None
    annual_amortization: Optional[float] = None
    imputed_rental_value: Optional[float] = None
    total_renovations: float = policy.DEFAULT_TOTAL_RENOVATIONS
    additional_purchase_costs: float = policy.DEFAULT_ADDITIONAL_PURCHASE_COSTS
    property_tax_deductions: float = policy.DEFAULT_PROPERTY_TAX_DEDUCTIONS

    # Tax regime without imputed rental value and deductions
    post_reform: bool = False

    # Renter savings rule
    scenario_mode: str = ScenarioMode.EQUAL_CONSUMPTION.value


@dataclass(frozen=True)
class Params:
    """Canonical parameter record: validated, rates as fractions, all fields set."""
    purchase_price: float
    down_payment: float
    mortgage_rate: float
    monthly_rent: float
    property_appreciation_rate: float
    investment_yield_rate: float
    marginal_tax_rate: float
    term_years: int
    amortization_years: int
    annual_maintenance_costs: float
    annual_amortization: float
    imputed_rental_value: float
    total_renovations: float = policy.DEFAULT_TOTAL_RENOVATIONS
    additional_purchase_costs: float = policy.DEFAULT_ADDITIONAL_PURCHASE_COSTS
    property_tax_deductions: float = policy.DEFAULT_PROPERTY_TAX_DEDUCTIONS
    annual_rental_costs: float = policy.DEFAULT_ANNUAL_RENTAL_COSTS
    post_reform: bool = False
    scenario_mode: ScenarioMode = ScenarioMode.EQUAL_CONSUMPTION
    auto: AutoFlags = field(default_factory=AutoFlags)

    def __post_init__(self):
        # calculate() needs at least one year; records built by hand skip normalize()
        for name in YEAR_FIELDS:
            x = getattr(self, name)
            if not isinstance(x, int) or isinstance(x, bool) or x < 1:
                raise ValidationError.single(name, f"must be a whole number of years >= 1, got {x!r}")

    @property
    def mortgage_amount(self) -> float:
        return self.purchase_price - self.down_payment

    def to_raw(self) -> RawParams:
        """Back to the surface representation (rates in percent)."""
        values = {f.name: getattr(self, f.name) for f in fields(RawParams)}
        for name in RATE_FIELDS:
            values[name] = values[name] * 100.0
        values["scenario_mode"] = self.scenario_mode.value
        return RawParams(**values)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


# =====================
# Auto-derivation rules
# =====================

def derive_down_payment(purchase_price: float) -> float:
    return round_half_up(policy.DOWN_PAYMENT_RATIO * purchase_price)


def derive_amortization(purchase_price: float, amortization_years: int) -> float:
    return round_half_up(policy.FINANCED_RATIO * purchase_price / amortization_years)


def derive_maintenance(purchase_price: float) -> float:
    return round_half_up(policy.MAINTENANCE_RATIO * purchase_price)


def derive_imputed_rental(monthly_rent: float) -> float:
    return round_half_up(12.0 * monthly_rent * policy.IMPUTED_RENTAL_RATIO)


# =====================
# Validation
# =====================

def _is_number(x: Any) -> bool:
    return isinstance(x, (int, float)) and not isinstance(x, bool) and math.isfinite(x)


def _check_years(values: Dict[str, Any], errors: List[Tuple[str, str]]) -> None:
    for name in YEAR_FIELDS:
        x = values[name]
        if not _is_number(x) or float(x) != int(x):
            errors.append((name, f"must be a whole number of years, got {x!r}"))
        elif x < 1:
            errors.append((name, f"must be at least 1, got {x!r}"))
        else:
            values[name] = int(x)


def _check_rates(values: Dict[str, Any], errors: List[Tuple[str, str]]) -> None:
    for name in RATE_FIELDS:
        x = values[name]
        if not _is_number(x):
            errors.append((name, f"must be a finite rate, got {x!r}"))
        elif not -1.0 <= x <= 1.0:
            errors.append((name, f"must lie within -100% and 100%, got {x * 100:g}%"))
    tau = values["marginal_tax_rate"]
    if _is_number(tau) and not 0.0 <= tau < 1.0:
        errors.append(("marginal_tax_rate", f"must lie within 0% and 100% (exclusive), got {tau * 100:g}%"))


def _build(values: Dict[str, Any], auto: AutoFlags) -> Params:
    """Derive the auto fields, validate everything, and freeze the record.

    ``values`` holds every field in canonical units; auto-derived fields may be
    ``None``. Every violated invariant is collected before raising.
    """
    values = dict(values)
    errors: List[Tuple[str, str]] = []

    price = values["purchase_price"]
    if price is None:
        errors.append(("purchase_price", "is required"))
    elif not _is_number(price) or price <= 0:
        errors.append(("purchase_price", f"must be a positive amount, got {price!r}"))
    if values["monthly_rent"] is None:
        errors.append(("monthly_rent", "is required"))

    _check_years(values, errors)
    _check_rates(values, errors)
    try:
        values["scenario_mode"] = ScenarioMode(values["scenario_mode"])
    except ValueError:
        modes = ", ".join(m.value for m in ScenarioMode)
        errors.append(("scenario_mode", f"must be one of {modes}, got {values['scenario_mode']!r}"))

    price_ok = not any(name == "purchase_price" for name, _ in errors)
    years_ok = not any(name == "amortization_years" for name, _ in errors)
    rent = values["monthly_rent"]
    rent_ok = _is_number(rent) and rent >= 0

    # downPayment -> amortization -> maintenance -> imputedRental
    rules = (
        ("down_payment", auto.down_payment, price_ok,
         lambda: derive_down_payment(price)),
        ("annual_amortization", auto.amortization, price_ok and years_ok,
         lambda: derive_amortization(price, values["amortization_years"])),
        ("annual_maintenance_costs", auto.maintenance, price_ok,
         lambda: derive_maintenance(price)),
        ("imputed_rental_value", auto.imputed_rental, rent_ok,
         lambda: derive_imputed_rental(rent)),
    )
    # Auto fields whose source is invalid stay unset; the source is reported instead
    unset = set()
    for name, enabled, source_ok, derive in rules:
        if not enabled:
            continue
        if source_ok:
            values[name] = derive()
        else:
            unset.add(name)

    for name in MONEY_FIELDS:
        x = values[name]
        if name in unset or (name == "monthly_rent" and x is None):
            continue
        if x is None:
            errors.append((name, "is required when its auto derivation is off"))
        elif not _is_number(x) or x < 0:
            errors.append((name, f"must be a non-negative amount, got {x!r}"))

    down = values["down_payment"]
    if price_ok and _is_number(down) and down > price:
        errors.append(("down_payment", f"must not exceed the purchase price ({down:,.0f} > {price:,.0f})"))

    if errors:
        raise ValidationError(errors)

    values["post_reform"] = bool(values["post_reform"])
    return Params(auto=auto, **values)


# =====================
# Entry points
# =====================

def normalize(raw: Union[RawParams, Params, Dict[str, Any]], auto: Optional[AutoFlags] = None) -> Params:
    """Turn surface input into a canonical record.

    ``raw`` may be a :class:`RawParams`, a mapping of its fields, or an
    already canonical :class:`Params`. Percent rates are divided by 100 here and
    nowhere else; a canonical record passes through unchanged in units, so
    ``normalize(p) == p``.
    """
    if isinstance(raw, Params):
        return rederive(raw, auto=auto)
    if isinstance(raw, dict):
        unknown = sorted(set(raw) - {f.name for f in fields(RawParams)})
        if unknown:
            raise ValidationError([(name, "unknown parameter") for name in unknown])
        raw = RawParams(**raw)

    values = asdict(raw)
    for name in RATE_FIELDS:
        x = values[name]
        values[name] = x / 100.0 if _is_number(x) else x
    return _build(values, auto if auto is not None else AutoFlags())


def rederive(params: Params, auto: Optional[AutoFlags] = None, **changes: Any) -> Params:
    """Replace fields of a canonical record and re-apply its auto rules.

    ``changes`` are in canonical units (rates as fractions). ``auto`` replaces
    the record's flags when given.
    """
    flags = auto if auto is not None else params.auto
    values = {f.name: getattr(params, f.name) for f in fields(Params) if f.name != "auto"}
    unknown = sorted(set(changes) - set(values))
    if unknown:
        raise ValidationError([(name, "unknown parameter") for name in unknown])
    values.update(changes)
    return _build(values, flags)


def with_price(params: Params, purchase_price: float) -> Params:
    """Same scenario at another price, auto-derived fields scaled along."""
    return rederive(params, purchase_price=purchase_price)
