"""Exceptions raised by the forecasting core and its services."""


class ForecastError(Exception):
    """Base class for all forecasting errors."""


class InsufficientDataError(ForecastError):
    """Not enough usable history to produce any prediction."""

    def __init__(self, race_count: int, activity_count: int):
        self.race_count = race_count
        self.activity_count = activity_count
        super().__init__(
            f"Only {race_count} usable races and {activity_count} usable activities found. "
            "Log at least two races (parkruns and time trials count) or two training "
            "runs to get predictions."
        )


class NumericInstabilityError(ForecastError):
    """A modelling stage produced NaN or an infinite value."""

    def __init__(self, stage: str, value: float):
        self.stage = stage
        self.value = value
        super().__init__(f"Non-finite value {value!r} in stage '{stage}'")


class DataFetchError(ForecastError):
    """The storage collaborator failed to return history."""


class ConfigurationError(ForecastError):
    """Invalid parameters or settings."""
