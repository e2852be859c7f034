from .exceptions import (
    DFMError,
    DimensionError,
    SpecificationError,
    EstimationError,
    CholeskyError,
    ConvergenceWarning,
)
from .linalg import (
    MissingStrategy,
    ols,
    ols_missing,
    ols_missing_balanced,
    ols_missing_unbalanced,
    lagmat,
    compute_r2,
)
from .utils import standardize
from .dynamics import VARModel, estimate_var, companion_form
from .estimation import FactorEstimateStats, estimate_factor, estimate_factor_loadings
from .model import DFMConfig, DFMModel, fit_dfm
from .irf import ALL_SHOCKS, impulse_response, series_impulse_response
from .selection import (
    AmengualWatsonStats,
    FactorNumberEstimateStats,
    amengual_watson,
    bai_ng_criterion,
    select_factor_number,
    print_selection_summary,
)

__all__ = [
    "DFMError",
    "DimensionError",
    "SpecificationError",
    "EstimationError",
    "CholeskyError",
    "ConvergenceWarning",
    "MissingStrategy",
    "ols",
    "ols_missing",
    "ols_missing_balanced",
    "ols_missing_unbalanced",
    "lagmat",
    "compute_r2",
    "standardize",
    "VARModel",
    "estimate_var",
    "companion_form",
    "FactorEstimateStats",
    "estimate_factor",
    "estimate_factor_loadings",
    "DFMConfig",
    "DFMModel",
    "fit_dfm",
    "ALL_SHOCKS",
    "impulse_response",
    "series_impulse_response",
    "AmengualWatsonStats",
    "FactorNumberEstimateStats",
    "amengual_watson",
    "bai_ng_criterion",
    "select_factor_number",
    "print_selection_summary",
]
