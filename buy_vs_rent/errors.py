from typing import List, Tuple


class BuyVsRentError(Exception):
    """Base class for all engine errors."""


class ValidationError(BuyVsRentError, ValueError):
    """One or more input invariants are violated.

    ``errors`` lists every violation as ``(field, message)``.
    """

    def __init__(self, errors: List[Tuple[str, str]]):
        self.errors = list(errors)
        detail = "; ".join(f"{field}: {message}" for field, message in self.errors)
        super().__init__(f"Invalid parameters: {detail}")

    @classmethod
    def single(cls, field: str, message: str) -> "ValidationError":
        return cls([(field, message)])


class NoBreakEven(BuyVsRentError):
    """The max-bid search found no sign change inside the price range."""

    def __init__(self, result):
        self.result = result
        super().__init__(result.message)


class Cancelled(BuyVsRentError):
    """A sweep was cancelled; ``cube`` holds the cells finished so far."""

    def __init__(self, cube):
        self.cube = cube
        super().__init__(
            f"Sweep cancelled after {cube.completed} of {cube.total} cells."
        )
