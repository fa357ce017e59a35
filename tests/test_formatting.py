import pytest

from buy_vs_rent.formatting import fm, fmt_pct, format_bid_price


@pytest.mark.parametrize("price, expected", [
    (1_380_000, "1.38M"),
    (786_000, "786k"),
    (500, "500"),
    (15_000_000, "15M"),
    (1_250_000, "1.25M"),
    (2_550_000, "2.55M"),
    (125_000_000, "125M"),
    (1500, "1.5k"),
    (150_000, "150k"),
    (1_000_000, "1M"),
    (12_340_000, "12.3M"),
    (999.6, "1000"),
])
def test_format_bid_price(price, expected):
    assert format_bid_price(price) == expected


@pytest.mark.parametrize("price", [None, 0, -5, float("nan")])
def test_format_bid_price_missing(price):
    assert format_bid_price(price) == "N/A"


def test_fm():
    assert fm(1234567.4) == "CHF 1,234,567"
    assert fm(-2500, currency="$") == "$ -2,500"


@pytest.mark.parametrize("rate, expected", [
    (0.02, "2%"), (0.018, "1.8%"), (0.0125, "1.25%"), (-0.005, "-0.5%"),
])
def test_fmt_pct(rate, expected):
    assert fmt_pct(rate) == expected
