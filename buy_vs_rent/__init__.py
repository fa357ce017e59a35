"""Swiss rent vs buy decision engine."""

from .calculator import Decision, ItemizedCosts, ResultBundle, calculate
from .errors import BuyVsRentError, Cancelled, NoBreakEven, ValidationError
from .formatting import fm, fmt_pct, format_bid_price
from .params import AutoFlags, Params, RawParams, ScenarioMode, normalize, rederive
from .settings import Settings
from .solver import MaxBidResult, SearchStatus, find_max_bid
from .sweep import ResultCube, SweepAxis, SweepField, SweepMode, sweep

__version__ = "0.1.0"

__all__ = [
    "AutoFlags", "BuyVsRentError", "Cancelled", "Decision", "ItemizedCosts",
    "MaxBidResult", "NoBreakEven", "Params", "RawParams", "ResultBundle",
    "ResultCube", "ScenarioMode", "SearchStatus", "Settings", "SweepAxis",
    "SweepField", "SweepMode", "ValidationError", "calculate", "find_max_bid",
    "fm", "fmt_pct", "format_bid_price", "normalize", "rederive", "sweep",
]
