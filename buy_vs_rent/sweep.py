"""
Parameter sweep
- Cartesian grid over one to three parameter axes.
- Each cell holds either the verdict and result value (decision mode) or the
  max bid price (max-bid mode).
- Progress callback, cancellation between cells, optional thread pool.
- The cube flattens to a pandas table and pivots for display.
"""

import itertools
import logging
import math
import threading
from collections import Counter
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

import pandas as pd

from . import policy
from .calculator import Decision, calculate
from .errors import Cancelled, ValidationError
from .formatting import format_bid_price, fmt_pct
from .params import Params, rederive, round_half_up
from .solver import SearchStatus, find_max_bid

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int, int], None]
Coords = Tuple[float, ...]


class Unit(str, Enum):
    CURRENCY = "currency"
    PERCENT = "percent"
    YEARS = "years"


class SweepMode(str, Enum):
    DECISION = "decision"
    MAX_BID = "max_bid"


class SweepField(Enum):
    """Sweepable fields: (record field, surface unit, auto rule to switch off)."""
    PURCHASE_PRICE = ("purchase_price", Unit.CURRENCY, None)
    DOWN_PAYMENT = ("down_payment", Unit.CURRENCY, "down_payment")
    MONTHLY_RENT = ("monthly_rent", Unit.CURRENCY, None)
    MORTGAGE_RATE = ("mortgage_rate", Unit.PERCENT, None)
    PROPERTY_APPRECIATION_RATE = ("property_appreciation_rate", Unit.PERCENT, None)
    INVESTMENT_YIELD_RATE = ("investment_yield_rate", Unit.PERCENT, None)
    MARGINAL_TAX_RATE = ("marginal_tax_rate", Unit.PERCENT, None)
    TERM_YEARS = ("term_years", Unit.YEARS, None)
    AMORTIZATION_YEARS = ("amortization_years", Unit.YEARS, None)
    ANNUAL_MAINTENANCE_COSTS = ("annual_maintenance_costs", Unit.CURRENCY, "maintenance")
    ANNUAL_AMORTIZATION = ("annual_amortization", Unit.CURRENCY, "amortization")
    IMPUTED_RENTAL_VALUE = ("imputed_rental_value", Unit.CURRENCY, "imputed_rental")
    TOTAL_RENOVATIONS = ("total_renovations", Unit.CURRENCY, None)
    ADDITIONAL_PURCHASE_COSTS = ("additional_purchase_costs", Unit.CURRENCY, None)
    PROPERTY_TAX_DEDUCTIONS = ("property_tax_deductions", Unit.CURRENCY, None)
    ANNUAL_RENTAL_COSTS = ("annual_rental_costs", Unit.CURRENCY, None)

    def __init__(self, field_name: str, unit: Unit, auto_flag: Optional[str]):
        self.field_name = field_name
        self.unit = unit
        self.auto_flag = auto_flag

    @classmethod
    def from_name(cls, name: str) -> "SweepField":
        for f in cls:
            if f.field_name == name:
                return f
        raise ValidationError.single("axis", f"{name!r} is not a sweepable field")

    def apply(self, params: Params, value: float) -> Params:
        """Set this field to ``value`` (surface unit) and re-derive the record."""
        if self.unit is Unit.PERCENT:
            value = value / 100.0
        elif self.unit is Unit.YEARS:
            value = int(round_half_up(value))
        auto = params.auto
        if self.auto_flag is not None:
            auto = replace(auto, **{self.auto_flag: False})
        return rederive(params, auto=auto, **{self.field_name: value})

    def label(self, value: float) -> str:
        if self.unit is Unit.PERCENT:
            return fmt_pct(value / 100.0)
        if self.unit is Unit.YEARS:
            return f"{int(round_half_up(value))}y"
        return format_bid_price(value)


@dataclass(frozen=True)
class SweepAxis:
    field: SweepField
    min: float
    max: float
    step: float

    @classmethod
    def of(cls, name: str, min: float, max: float, step: float) -> "SweepAxis":
        return cls(SweepField.from_name(name), min, max, step)

    def validate(self) -> None:
        name = self.field.field_name
        if not all(isinstance(x, (int, float)) and math.isfinite(x) for x in (self.min, self.max, self.step)):
            raise ValidationError.single(name, "axis bounds and step must be finite numbers")
        if self.step <= 0:
            raise ValidationError.single(name, f"step must be positive, got {self.step!r}")
        if self.max < self.min:
            raise ValidationError.single(name, f"max {self.max!r} is below min {self.min!r}")

    def values(self) -> List[float]:
        """min, min + step, ..., up to and including max."""
        count = int(math.floor((self.max - self.min) / self.step + 1e-9)) + 1
        return [round(self.min + i * self.step, 10) for i in range(count)]


@dataclass(frozen=True)
class Cell:
    value: Optional[float]
    decision: Optional[Decision] = None
    status: str = "ok"

    @property
    def defined(self) -> bool:
        return self.value is not None


@dataclass
class ResultCube:
    axes: Tuple[SweepAxis, ...]
    mode: SweepMode
    cells: Dict[Coords, Cell] = field(default_factory=dict)
    cancelled: bool = False

    @property
    def shape(self) -> Tuple[int, ...]:
        return tuple(len(a.values()) for a in self.axes)

    @property
    def total(self) -> int:
        return math.prod(self.shape)

    @property
    def completed(self) -> int:
        return len(self.cells)

    def value_at(self, *coords: float) -> Optional[float]:
        cell = self.cells.get(tuple(coords))
        return cell.value if cell is not None else None

    def raise_for_status(self) -> "ResultCube":
        if self.cancelled:
            raise Cancelled(self)
        return self

    def labels(self) -> Dict[str, List[str]]:
        return {a.field.field_name: [a.field.label(v) for v in a.values()] for a in self.axes}

    def to_frame(self) -> pd.DataFrame:
        """Flat table (axis1, axis2, axis3, value, decision, status), one row per finished cell."""
        rows: List[Dict[str, Any]] = []
        for coords in sorted(self.cells):
            cell = self.cells[coords]
            padded = list(coords) + [None] * (policy.MAX_SWEEP_AXES - len(coords))
            rows.append({
                "axis1": padded[0], "axis2": padded[1], "axis3": padded[2],
                "value": cell.value,
                "decision": cell.decision.value if cell.decision is not None else None,
                "status": cell.status,
            })
        return pd.DataFrame(rows, columns=["axis1", "axis2", "axis3", "value", "decision", "status"])

    def pivot(self, third: Optional[float] = None) -> pd.DataFrame:
        """2-D view: rows = first axis, columns = second axis, at one value of the third."""
        df = self.to_frame()
        if len(self.axes) == 1:
            return df.set_index("axis1")[["value"]]
        if len(self.axes) == 3:
            if third is None:
                third = self.axes[2].values()[0]
            df = df[df["axis3"] == third]
        table = df.pivot(index="axis1", columns="axis2", values="value")
        table.index.name = self.axes[0].field.field_name
        table.columns.name = self.axes[1].field.field_name
        return table

    def summary(self) -> Dict[str, Any]:
        values = [c.value for c in self.cells.values() if c.value is not None]
        return {
            "min": min(values) if values else None,
            "max": max(values) if values else None,
            "mean": sum(values) / len(values) if values else None,
            "defined": len(values),
            "undefined": self.completed - len(values),
            "statuses": dict(Counter(c.status for c in self.cells.values())),
            "missing": self.total - self.completed,
            "total": self.total,
            "cancelled": self.cancelled,
            "labels": self.labels(),
        }


# =====================
# Engine
# =====================

def _check_axes(axes: Sequence[SweepAxis], mode: SweepMode) -> None:
    if not 1 <= len(axes) <= policy.MAX_SWEEP_AXES:
        raise ValidationError.single("axes", f"need 1 to {policy.MAX_SWEEP_AXES} axes, got {len(axes)}")
    names = [a.field.field_name for a in axes]
    if len(set(names)) != len(names):
        raise ValidationError.single("axes", f"duplicate axis in {names}")
    if mode is SweepMode.MAX_BID and SweepField.PURCHASE_PRICE in {a.field for a in axes}:
        raise ValidationError.single("axes", "purchase_price cannot be swept in max-bid mode")
    for a in axes:
        a.validate()


def evaluate_cell(
    base: Params,
    axes: Sequence[SweepAxis],
    coords: Coords,
    mode: SweepMode,
    solver_options: Optional[Dict[str, Any]] = None,
    cancel: Optional[threading.Event] = None,
) -> Optional[Cell]:
    """One grid point. ``None`` when the cell's search was cancelled midway."""
    try:
        p = base
        for axis, value in zip(axes, coords):
            p = axis.field.apply(p, value)
    except ValidationError as e:
        logger.warning("Sweep cell %s skipped: %s", coords, e)
        return Cell(None, status="invalid")

    if mode is SweepMode.DECISION:
        bundle = calculate(p)
        return Cell(bundle.result_value, bundle.decision)

    try:
        res = find_max_bid(p, cancel=cancel, **(solver_options or {}))
    except ValidationError as e:
        logger.warning("Sweep cell %s has no search range: %s", coords, e)
        return Cell(None, status="invalid")
    if res.status is SearchStatus.CANCELLED:
        return None
    price = res.price if res.status is SearchStatus.FOUND else None
    decision = res.bundle.decision if res.bundle is not None else None
    return Cell(price, decision, res.status.value)


def sweep(
    base: Params,
    axes: Sequence[SweepAxis],
    mode: SweepMode = SweepMode.MAX_BID,
    on_progress: Optional[ProgressCallback] = None,
    cancel: Optional[threading.Event] = None,
    workers: Optional[int] = None,
    solver_options: Optional[Dict[str, Any]] = None,
) -> ResultCube:
    """Evaluate every grid point of ``axes`` on top of ``base``.

    ``solver_options`` is passed to :func:`find_max_bid` in max-bid mode.
    With ``workers`` the cells run on a thread pool in chunks; the cube is
    keyed by coordinates either way. A cancelled sweep returns the cells
    finished so far with ``cancelled`` set.
    """
    axes = tuple(axes)
    _check_axes(axes, mode)
    cube = ResultCube(axes=axes, mode=mode)
    grid = list(itertools.product(*(a.values() for a in axes)))
    total = len(grid)
    logger.info("Sweep started: %d cells, mode %s, %d axes", total, mode.value, len(axes))

    def run(coords: Coords) -> Optional[Cell]:
        return evaluate_cell(base, axes, coords, mode, solver_options, cancel)

    def cancelled() -> bool:
        return cancel is not None and cancel.is_set()

    if workers is None or workers <= 1:
        for coords in grid:
            if cancelled():
                cube.cancelled = True
                break
            cell = run(coords)
            if cell is None:
                cube.cancelled = True
                break
            cube.cells[coords] = cell
            logger.debug("Cell %s -> %s", coords, cell.value)
            if on_progress is not None:
                on_progress(cube.completed, total)
    else:
        with ThreadPoolExecutor(max_workers=workers) as pool:
            for start in range(0, total, policy.SWEEP_CHUNK_SIZE):
                if cancelled():
                    cube.cancelled = True
                    break
                chunk = grid[start:start + policy.SWEEP_CHUNK_SIZE]
                for coords, cell in zip(chunk, pool.map(run, chunk)):
                    if cell is None:
                        cube.cancelled = True
                        continue
                    cube.cells[coords] = cell
                if on_progress is not None:
                    on_progress(cube.completed, total)
                if cube.cancelled:
                    break

    if cube.cancelled:
        logger.info("Sweep cancelled: %d of %d cells done", cube.completed, total)
    else:
        logger.info("Sweep finished: %d cells", total)
    return cube
