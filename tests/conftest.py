import pytest

from buy_vs_rent.params import RawParams, normalize


def s1_raw(**overrides) -> RawParams:
    values = dict(
        purchase_price=1_500_000,
        monthly_rent=4000,
        mortgage_rate=2.0,
        property_appreciation_rate=1.8,
        investment_yield_rate=3.5,
        marginal_tax_rate=28.0,
        term_years=10,
        amortization_years=15,
    )
    values.update(overrides)
    return RawParams(**values)


@pytest.fixture
def s1():
    return normalize(s1_raw())


@pytest.fixture
def s3():
    return normalize(RawParams(
        purchase_price=2_000_000,
        monthly_rent=5000,
        mortgage_rate=1.5,
        property_appreciation_rate=2.0,
        investment_yield_rate=3.0,
        marginal_tax_rate=25.0,
        term_years=20,
        amortization_years=15,
    ))


@pytest.fixture
def s4_base():
    # purchase price is a placeholder, the solver replaces it
    return normalize(RawParams(
        purchase_price=1_000_000,
        monthly_rent=4500,
        mortgage_rate=2.0,
        property_appreciation_rate=1.5,
        investment_yield_rate=3.8,
        marginal_tax_rate=27.0,
        term_years=12,
        amortization_years=15,
    ))
