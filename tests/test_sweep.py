import threading

import pandas as pd
import pytest

from buy_vs_rent.calculator import Decision, calculate
from buy_vs_rent.errors import Cancelled, ValidationError
from buy_vs_rent.params import rederive
from buy_vs_rent.solver import SearchStatus
from buy_vs_rent.sweep import (
    ResultCube, SweepAxis, SweepField, SweepMode, evaluate_cell, sweep,
)


def s5_axes():
    return [
        SweepAxis.of("property_appreciation_rate", 0, 2, 1),
        SweepAxis.of("investment_yield_rate", 2, 4, 1),
        SweepAxis.of("mortgage_rate", 1, 3, 1),
    ]


def test_axis_values_inclusive():
    assert SweepAxis.of("mortgage_rate", 1, 3, 1).values() == [1, 2, 3]
    assert SweepAxis.of("mortgage_rate", 1, 2, 0.25).values() == [1, 1.25, 1.5, 1.75, 2]
    assert SweepAxis.of("mortgage_rate", 0.1, 0.3, 0.1).values() == [0.1, 0.2, 0.3]
    assert SweepAxis.of("monthly_rent", 3000, 4000, 400).values() == [3000, 3400, 3800]
    assert SweepAxis.of("term_years", 5, 5, 1).values() == [5]


def test_s5_max_bid_cube(s1):
    calls = []
    cube = sweep(s1, s5_axes(), SweepMode.MAX_BID, on_progress=lambda done, total: calls.append((done, total)))
    assert cube.shape == (3, 3, 3)
    assert cube.total == 27
    assert cube.completed == 27
    assert not cube.cancelled
    assert calls
    assert calls[-1] == (27, 27)
    for coords, cell in cube.cells.items():
        # failed searches (no crossing, iteration cap) are empty cells
        if cell.value is not None:
            assert cell.value > 0
            assert cell.status == SearchStatus.FOUND.value
        else:
            assert cell.status in (SearchStatus.NO_BREAK_EVEN.value, SearchStatus.MAX_ITERATIONS.value)
    assert sum(cube.summary()["statuses"].values()) == 27


def test_progress_at_least_every_100_cells(s1):
    axes = [SweepAxis.of("monthly_rent", 1000, 3490, 10)]
    seen = []
    sweep(s1, axes, SweepMode.DECISION, on_progress=lambda done, total: seen.append(done))
    gaps = [b - a for a, b in zip([0] + seen, seen)]
    assert seen[-1] == 250
    assert max(gaps) <= 100


def test_decision_mode_matches_calculator(s1):
    axes = [SweepAxis.of("mortgage_rate", 1, 3, 1), SweepAxis.of("purchase_price", 1_000_000, 2_000_000, 500_000)]
    cube = sweep(s1, axes, SweepMode.DECISION)
    assert cube.shape == (3, 3)
    expected = calculate(rederive(s1, mortgage_rate=0.02, purchase_price=1_500_000))
    assert cube.value_at(2, 1_500_000) == pytest.approx(expected.result_value)
    assert cube.cells[(2, 1_500_000)].decision is expected.decision


def test_swept_auto_field_overrides_rule(s1):
    axes = [SweepAxis.of("annual_maintenance_costs", 0, 40_000, 20_000)]
    cube = sweep(s1, axes, SweepMode.DECISION)
    # more maintenance makes buying worse
    assert cube.value_at(0) > cube.value_at(20_000) > cube.value_at(40_000)


def test_parallel_matches_sequential(s1):
    axes = [SweepAxis.of("mortgage_rate", 1, 3, 0.5), SweepAxis.of("monthly_rent", 3000, 5000, 1000)]
    seq = sweep(s1, axes, SweepMode.DECISION)
    par = sweep(s1, axes, SweepMode.DECISION, workers=4)
    assert seq.cells == par.cells


def test_cancel_keeps_finished_cells(s1):
    axes = s5_axes()
    full = sweep(s1, axes, SweepMode.MAX_BID)

    cancel = threading.Event()

    def stop_after_five(done, total):
        if done >= 5:
            cancel.set()

    partial = sweep(s1, axes, SweepMode.MAX_BID, on_progress=stop_after_five, cancel=cancel)
    assert partial.cancelled
    assert partial.completed == 5
    for coords, cell in partial.cells.items():
        assert full.cells[coords] == cell
    with pytest.raises(Cancelled) as exc:
        partial.raise_for_status()
    assert exc.value.cube is partial
    assert partial.summary()["missing"] == 22


def test_cancel_before_start(s1):
    cancel = threading.Event()
    cancel.set()
    cube = sweep(s1, s5_axes(), SweepMode.DECISION, cancel=cancel, workers=2)
    assert cube.cancelled
    assert cube.completed == 0


def test_invalid_cell_is_sentinel(s1):
    axes = [SweepAxis.of("down_payment", 1_000_000, 2_000_000, 1_000_000)]
    cube = sweep(s1, axes, SweepMode.DECISION)
    assert cube.value_at(1_000_000) is not None
    bad = cube.cells[(2_000_000,)]
    assert bad.value is None
    assert bad.status == "invalid"


def test_evaluate_cell_sets_units(s1):
    axes = [SweepAxis.of("marginal_tax_rate", 20, 20, 1), SweepAxis.of("term_years", 15, 15, 1)]
    cell = evaluate_cell(s1, axes, (20, 15), SweepMode.DECISION)
    expected = calculate(rederive(s1, marginal_tax_rate=0.2, term_years=15))
    assert cell.value == pytest.approx(expected.result_value)


@pytest.mark.parametrize("axes, mode", [
    ([], SweepMode.DECISION),
    ([SweepAxis.of("mortgage_rate", 1, 2, 1)] * 2, SweepMode.DECISION),
    ([SweepAxis.of("purchase_price", 1e6, 2e6, 1e6)], SweepMode.MAX_BID),
    ([SweepAxis.of("mortgage_rate", 3, 1, 1)], SweepMode.DECISION),
    ([SweepAxis.of("mortgage_rate", 1, 3, 0)], SweepMode.DECISION),
    ([SweepAxis.of(n, 1, 2, 1) for n in ("mortgage_rate", "monthly_rent", "term_years", "marginal_tax_rate")],
     SweepMode.DECISION),
])
def test_invalid_sweep(s1, axes, mode):
    with pytest.raises(ValidationError):
        sweep(s1, axes, mode)


def test_unknown_field():
    with pytest.raises(ValidationError):
        SweepAxis.of("colour", 1, 2, 1)


def test_field_enumeration_is_closed():
    assert SweepField.from_name("imputed_rental_value").auto_flag == "imputed_rental"
    assert len(SweepField) == 16


def _decision_cube(s1) -> ResultCube:
    axes = [
        SweepAxis.of("mortgage_rate", 1, 2, 1),
        SweepAxis.of("monthly_rent", 3000, 4000, 1000),
        SweepAxis.of("term_years", 10, 15, 5),
    ]
    return sweep(s1, axes, SweepMode.DECISION)


def test_to_frame_and_pivot(s1):
    cube = _decision_cube(s1)
    df = cube.to_frame()
    assert isinstance(df, pd.DataFrame)
    assert list(df.columns) == ["axis1", "axis2", "axis3", "value", "decision", "status"]
    assert len(df) == 8
    assert set(df["decision"]) <= {d.value for d in Decision}

    table = cube.pivot(third=15)
    assert table.shape == (2, 2)
    assert table.index.name == "mortgage_rate"
    assert table.columns.name == "monthly_rent"
    assert table.loc[2, 4000] == pytest.approx(cube.value_at(2, 4000, 15))


def test_one_axis_pivot(s1):
    cube = sweep(s1, [SweepAxis.of("mortgage_rate", 1, 3, 1)], SweepMode.DECISION)
    table = cube.pivot()
    assert list(table.index) == [1, 2, 3]
    row = cube.to_frame().iloc[0]
    assert row["axis2"] is None and row["axis3"] is None


def test_summary(s1):
    cube = _decision_cube(s1)
    s = cube.summary()
    values = [c.value for c in cube.cells.values()]
    assert s["min"] == min(values)
    assert s["max"] == max(values)
    assert s["mean"] == pytest.approx(sum(values) / len(values))
    assert s["defined"] == 8
    assert s["undefined"] == 0
    assert s["labels"] == {
        "mortgage_rate": ["1%", "2%"],
        "monthly_rent": ["3k", "4k"],
        "term_years": ["10y", "15y"],
    }


def test_max_bid_sweep_over_fixed_down_payment(s1):
    axes = [SweepAxis.of("down_payment", 200_000, 400_000, 100_000)]
    cube = sweep(s1, axes, SweepMode.MAX_BID)
    assert cube.completed == 3
    for (down,), cell in cube.cells.items():
        assert cell.status != "invalid"
        if cell.value is not None:
            assert cell.value >= down


def test_down_payment_above_search_range_is_invalid_cell(s1):
    axes = [SweepAxis.of("down_payment", 200_000, 400_000, 200_000)]
    cube = sweep(s1, axes, SweepMode.MAX_BID, solver_options=dict(price_range=(100_000, 300_000)))
    assert cube.completed == 2
    assert cube.cells[(400_000,)].status == "invalid"
    assert cube.cells[(200_000,)].status != "invalid"
    assert cube.summary()["statuses"]["invalid"] == 1
