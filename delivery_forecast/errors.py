from __future__ import annotations


class ForecastingError(Exception):
    """Base class for precondition violations raised by the forecasting core."""


class InvalidDateRangeError(ForecastingError, ValueError):
    """The requested sample window is empty or reversed."""


class SimulationError(ForecastingError):
    """The simulation cannot terminate for the inputs it was given."""
