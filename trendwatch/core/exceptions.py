"""
Error taxonomy for indicator computation.

Missing history and invalid bars are not errors: the loader counts discarded
bars and the orchestrator reports skipped symbols as a status.
"""

from datetime import date
from typing import Optional


class TrendwatchError(Exception):
    """Base class for application errors."""


class StoreUnavailable(TrendwatchError):
    """Read or write against the time-series store failed."""

    def __init__(self, message: str, symbol: Optional[str] = None):
        super().__init__(message)
        self.symbol = symbol


class ComputationError(TrendwatchError):
    """Unexpected arithmetic or logic fault while deriving indicators."""

    def __init__(
        self,
        message: str,
        symbol: Optional[str] = None,
        bar_date: Optional[date] = None,
        window: Optional[int] = None,
    ):
        super().__init__(message)
        self.symbol = symbol
        self.bar_date = bar_date
        self.window = window

    def __str__(self) -> str:
        context = ", ".join(
            f"{key}={value}"
            for key, value in (
                ("symbol", self.symbol),
                ("date", self.bar_date),
                ("window", self.window),
            )
            if value is not None
        )
        base = super().__str__()
        return f"{base} ({context})" if context else base
