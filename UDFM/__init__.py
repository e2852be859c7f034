__version__ = "0.1.0"

from .DFM import (
    DFMConfig,
    DFMModel,
    fit_dfm,
    estimate_var,
    impulse_response,
    select_factor_number,
    amengual_watson,
    bai_ng_criterion,
)
from .forecast import (
    forecast_factors,
    forecast_idiosyncratic,
    forecast_dfm,
)

__all__ = [
    "DFMConfig",
    "DFMModel",
    "fit_dfm",
    "estimate_var",
    "impulse_response",
    "select_factor_number",
    "amengual_watson",
    "bai_ng_criterion",
    "forecast_factors",
    "forecast_idiosyncratic",
    "forecast_dfm",
]
