"""
Max-bid solver
- Bisection on the purchase price for the point where buying and renting
  cost the same over the horizon.
- Every trial price re-derives the auto fields, so down payment, maintenance and
  amortization scale with it.
- Optional fixed mortgage: the loan stays put and the down payment absorbs
  the price.
"""

import logging
import threading
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Optional, Tuple

from . import policy
from .calculator import ResultBundle, calculate
from .errors import NoBreakEven, ValidationError
from .params import Params, rederive, round_half_up

logger = logging.getLogger(__name__)


class SearchStatus(str, Enum):
    FOUND = "FOUND"
    NO_BREAK_EVEN = "NO_BREAK_EVEN"
    MAX_ITERATIONS = "MAX_ITERATIONS"
    CANCELLED = "CANCELLED"


@dataclass(frozen=True)
class MaxBidResult:
    status: SearchStatus
    price: Optional[float]
    bundle: Optional[ResultBundle] = field(repr=False)
    iterations: int
    difference: Optional[float]
    down_payment: Optional[float]
    ltv_percent: Optional[float]
    message: str

    @property
    def found(self) -> bool:
        return self.status is SearchStatus.FOUND

    @property
    def result_value(self) -> Optional[float]:
        return self.bundle.result_value if self.bundle is not None else None

    def raise_for_status(self) -> "MaxBidResult":
        """Raise :class:`NoBreakEven` when the range holds no crossing."""
        if self.status is SearchStatus.NO_BREAK_EVEN:
            raise NoBreakEven(self)
        return self


def _evaluate(base: Params, price: float, mortgage_amount: Optional[float]) -> ResultBundle:
    if mortgage_amount is None:
        return calculate(rederive(base, purchase_price=price))
    auto = replace(base.auto, down_payment=False)
    p = rederive(base, auto=auto, purchase_price=price, down_payment=price - mortgage_amount)
    return calculate(p)


def _result(status: SearchStatus, bundle: Optional[ResultBundle], iterations: int, message: str) -> MaxBidResult:
    if bundle is None:
        return MaxBidResult(status, None, None, iterations, None, None, None, message)
    p = bundle.params
    return MaxBidResult(
        status=status,
        price=p.purchase_price,
        bundle=bundle,
        iterations=iterations,
        difference=abs(bundle.result_value),
        down_payment=p.down_payment,
        ltv_percent=p.mortgage_amount / p.purchase_price * 100.0,
        message=message,
    )


def find_max_bid(
    base: Params,
    price_range: Tuple[float, float] = (policy.SOLVER_MIN_PRICE, policy.SOLVER_MAX_PRICE),
    tolerance: float = policy.SOLVER_TOLERANCE,
    max_iterations: int = policy.SOLVER_MAX_ITERATIONS,
    mortgage_amount: Optional[float] = None,
    cancel: Optional[threading.Event] = None,
) -> MaxBidResult:
    """Highest purchase price at which buying is still no worse than renting.

    ``base`` is a canonical record; its purchase price is ignored. Returns the
    price with the smallest ``|result_value|`` seen, tagged with a
    :class:`SearchStatus`.
    """
    lo, hi = price_range
    if mortgage_amount is not None:
        if mortgage_amount < 0:
            raise ValidationError.single("mortgage_amount", f"must be non-negative, got {mortgage_amount!r}")
        lo = max(lo, mortgage_amount)
    elif not base.auto.down_payment:
        # A fixed down payment cannot exceed any trial price
        lo = max(lo, base.down_payment)
    if not 0 < lo < hi:
        raise ValidationError.single("price_range", f"needs 0 < low < high, got ({lo!r}, {hi!r})")
    if tolerance < policy.SOLVER_MIN_TOLERANCE:
        raise ValidationError.single("tolerance", f"must be at least {policy.SOLVER_MIN_TOLERANCE:g}, got {tolerance!r}")
    if max_iterations < 1:
        raise ValidationError.single("max_iterations", f"must be at least 1, got {max_iterations!r}")

    low = _evaluate(base, lo, mortgage_amount)
    high = _evaluate(base, hi, mortgage_amount)
    logger.debug("Price %.0f -> %.2f", lo, low.result_value)
    logger.debug("Price %.0f -> %.2f", hi, high.result_value)

    if low.result_value < 0 and high.result_value < 0:
        msg = (f"Renting beats buying across {lo:,.0f} - {hi:,.0f}; "
               f"no break-even in range.")
        logger.info("Max bid: %s", msg)
        return _result(SearchStatus.NO_BREAK_EVEN, high, 0, msg)
    if low.result_value > 0 and high.result_value > 0:
        msg = (f"Buying beats renting across {lo:,.0f} - {hi:,.0f}; "
               f"the break-even lies above the range.")
        logger.info("Max bid: %s", msg)
        return _result(SearchStatus.NO_BREAK_EVEN, high, 0, msg)

    best = min((low, high), key=lambda b: abs(b.result_value))
    iterations = 0
    while abs(best.result_value) > tolerance and hi - lo > 1 and iterations < max_iterations:
        if cancel is not None and cancel.is_set():
            logger.info("Max bid search cancelled after %d iterations", iterations)
            return _result(SearchStatus.CANCELLED, best, iterations, "Search cancelled.")
        iterations += 1
        mid = round_half_up((lo + hi) / 2.0)
        if not lo < mid < hi:
            break
        bundle = _evaluate(base, mid, mortgage_amount)
        logger.debug("Price %.0f -> %.2f", mid, bundle.result_value)
        if abs(bundle.result_value) < abs(best.result_value):
            best = bundle
        # Higher price weakens the buy case
        if bundle.result_value > 0:
            lo = mid
        else:
            hi = mid

    price = best.params.purchase_price
    if abs(best.result_value) <= tolerance:
        status = SearchStatus.FOUND
        msg = f"Max bid {price:,.0f} (off by {abs(best.result_value):,.2f})."
    else:
        status = SearchStatus.MAX_ITERATIONS
        msg = (f"Closest price {price:,.0f} is off by {abs(best.result_value):,.2f}, "
               f"above the tolerance of {tolerance:,.0f}.")
    logger.info("Max bid: %s after %d iterations, %s", status.value, iterations, msg)
    return _result(status, best, iterations, msg)
