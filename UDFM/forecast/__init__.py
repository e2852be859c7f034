from .forecast import (
    forecast_factors,
    forecast_idiosyncratic,
    forecast_dfm,
)

__all__ = [
    "forecast_factors",
    "forecast_idiosyncratic",
    "forecast_dfm",
]
