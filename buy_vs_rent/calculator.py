"""
Rent vs buy calculator
- Year-by-year ownership and rental cash flows at annual granularity.
- Mortgage with linear amortization, imputed rental value taxation.
- Renter invests the initial capital plus a yearly contribution set by the
  scenario mode.
- Verdict, totals, itemized costs and a year table (pandas).
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List

import pandas as pd

from . import policy
from .params import Params, ScenarioMode


class Decision(str, Enum):
    BUY = "BUY"
    RENT = "RENT"
    TIE = "TIE"


YEAR_COLUMNS = [
    "year", "mortgage_balance", "property_value", "cum_buy_cost", "cum_rent_cost",
    "advantage", "portfolio_end",
    "interest", "amortization", "maintenance", "tax_impact", "owner_outlay",
    "renter_outlay", "contribution", "equity", "ltv_percent", "liquidation_tax",
]


@dataclass(frozen=True)
class ItemizedCosts:
    # Owner, horizon totals
    interest: float
    amortization: float
    maintenance: float
    tax_impact: float
    down_payment: float
    additional_purchase_costs: float
    renovations: float
    terminal_property_value: float
    terminal_mortgage_balance: float
    terminal_equity: float

    # Renter, horizon totals
    rent: float
    rental_costs: float
    initial_capital: float
    contributions: float
    portfolio_end: float
    portfolio_gain: float
    gain_tax: float
    after_tax_gain: float

    # First-year monthly budget
    monthly_interest: float
    monthly_amortization: float
    monthly_maintenance: float
    monthly_owner_total: float
    monthly_rent: float
    monthly_rental_costs: float
    monthly_savings: float
    monthly_renter_total: float


@dataclass(frozen=True)
class ResultBundle:
    decision: Decision
    result_value: float
    total_purchase_cost: float
    total_rental_cost: float
    year_series: pd.DataFrame = field(repr=False, compare=False)
    itemized: ItemizedCosts = field(repr=False)
    params: Params = field(repr=False)

    @property
    def compare_text(self) -> str:
        return compare_text(self.decision, self.result_value, self.params.term_years)

    def year_records(self) -> List[Dict[str, Any]]:
        return self.year_series.to_dict(orient="records")


def decide(result_value: float) -> Decision:
    if abs(result_value) < policy.TIE_THRESHOLD:
        return Decision.TIE
    return Decision.BUY if result_value > 0 else Decision.RENT


def compare_text(decision: Decision, result_value: float, years: int) -> str:
    horizon = f"over {years} year{'s' if years != 1 else ''}"
    amount = f"{policy.CURRENCY} {abs(result_value):,.2f}"
    if decision is Decision.BUY:
        return f"Buying will work out {amount} cheaper than renting {horizon}."
    if decision is Decision.RENT:
        return f"Renting will work out {amount} cheaper than buying {horizon}."
    return f"Buying and renting cost the same {horizon}."


def annual_tax_impact(p: Params, interest: float) -> float:
    """Owner's extra tax for one year; negative is a saving."""
    if p.post_reform:
        return 0.0
    taxable = p.imputed_rental_value - interest - p.annual_maintenance_costs - p.property_tax_deductions
    return p.marginal_tax_rate * taxable


def renter_contribution(p: Params, year: int, owner_outlay: float, renter_outlay: float) -> float:
    """What the renter adds to (or, negative, draws from) the portfolio in ``year``."""
    if p.scenario_mode is ScenarioMode.EQUAL_SAVINGS:
        return p.annual_amortization if year <= p.amortization_years else 0.0
    if p.scenario_mode is ScenarioMode.CASHFLOW_PARITY:
        return owner_outlay - renter_outlay
    return max(0.0, owner_outlay - renter_outlay)


def calculate(p: Params) -> ResultBundle:
    n = p.term_years
    tau = p.marginal_tax_rate

    balance = p.purchase_price - p.down_payment
    renter_outlay = 12.0 * p.monthly_rent + p.annual_rental_costs

    # Down payment is not a cost: the owner holds it as equity, the renter gets it back
    owner_paid = p.additional_purchase_costs + p.total_renovations
    initial_capital = p.down_payment + p.additional_purchase_costs
    if p.scenario_mode is ScenarioMode.CASHFLOW_PARITY:
        initial_capital += p.total_renovations
    portfolio = initial_capital
    basis = initial_capital
    renter_paid = 0.0

    tot_interest = tot_amort = tot_maint = tot_tax = tot_contrib = 0.0
    first_contribution = 0.0

    rows: List[Dict[str, Any]] = []
    for k in range(1, n + 1):
        # ===== BUY =====
        interest = balance * p.mortgage_rate
        principal = min(p.annual_amortization, balance)
        balance -= principal
        maintenance = p.annual_maintenance_costs
        tax_impact = annual_tax_impact(p, interest)
        owner_outlay = interest + principal + maintenance + tax_impact
        owner_paid += owner_outlay

        value = max(0.0, p.purchase_price * (1.0 + p.property_appreciation_rate) ** k)
        equity = value - balance

        # ===== RENT =====
        contribution = renter_contribution(p, k, owner_outlay, renter_outlay)
        portfolio = max(0.0, portfolio * (1.0 + p.investment_yield_rate) + contribution)
        basis += contribution
        renter_paid += renter_outlay

        gain = portfolio - basis
        liquidation_tax = tau * max(0.0, gain)

        cum_buy = owner_paid - equity
        cum_rent = renter_paid - p.down_payment - (gain - liquidation_tax)

        tot_interest += interest
        tot_amort += principal
        tot_maint += maintenance
        tot_tax += tax_impact
        tot_contrib += contribution
        if k == 1:
            first_contribution = contribution

        rows.append({
            "year": k,
            "mortgage_balance": balance,
            "property_value": value,
            "cum_buy_cost": cum_buy,
            "cum_rent_cost": cum_rent,
            "advantage": cum_rent - cum_buy,
            "portfolio_end": portfolio,
            "interest": interest,
            "amortization": principal,
            "maintenance": maintenance,
            "tax_impact": tax_impact,
            "owner_outlay": owner_outlay,
            "renter_outlay": renter_outlay,
            "contribution": contribution,
            "equity": equity,
            "ltv_percent": balance / value * 100.0 if value > 0 else 0.0,
            "liquidation_tax": liquidation_tax,
        })

    last = rows[-1]
    total_purchase_cost = last["cum_buy_cost"]
    total_rental_cost = last["cum_rent_cost"]
    result_value = total_rental_cost - total_purchase_cost

    gain = portfolio - basis
    gain_tax = tau * max(0.0, gain)

    monthly_interest = (p.purchase_price - p.down_payment) * p.mortgage_rate / 12.0
    monthly_amortization = p.annual_amortization / 12.0
    monthly_maintenance = p.annual_maintenance_costs / 12.0
    monthly_rental_costs = p.annual_rental_costs / 12.0
    monthly_savings = first_contribution / 12.0

    itemized = ItemizedCosts(
        interest=tot_interest,
        amortization=tot_amort,
        maintenance=tot_maint,
        tax_impact=tot_tax,
        down_payment=p.down_payment,
        additional_purchase_costs=p.additional_purchase_costs,
        renovations=p.total_renovations,
        terminal_property_value=last["property_value"],
        terminal_mortgage_balance=balance,
        terminal_equity=last["equity"],
        rent=12.0 * p.monthly_rent * n,
        rental_costs=p.annual_rental_costs * n,
        initial_capital=initial_capital,
        contributions=tot_contrib,
        portfolio_end=portfolio,
        portfolio_gain=gain,
        gain_tax=gain_tax,
        after_tax_gain=gain - gain_tax,
        monthly_interest=monthly_interest,
        monthly_amortization=monthly_amortization,
        monthly_maintenance=monthly_maintenance,
        monthly_owner_total=monthly_interest + monthly_amortization + monthly_maintenance,
        monthly_rent=p.monthly_rent,
        monthly_rental_costs=monthly_rental_costs,
        monthly_savings=monthly_savings,
        monthly_renter_total=p.monthly_rent + monthly_rental_costs + monthly_savings,
    )

    return ResultBundle(
        decision=decide(result_value),
        result_value=result_value,
        total_purchase_cost=total_purchase_cost,
        total_rental_cost=total_rental_cost,
        year_series=pd.DataFrame(rows, columns=YEAR_COLUMNS),
        itemized=itemized,
        params=p,
    )
