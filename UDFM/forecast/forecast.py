from __future__ import annotations

import numpy as np

from ..DFM.dynamics import VARModel
from ..DFM.model import DFMModel


# ---------------------------------------------------------------------------
def forecast_factors(var: VARModel, steps: int) -> np.ndarray:
    """Iterate the VAR forward from the end of its estimation window.

    Returns an array of shape ``(steps, ns)`` with the forecasts for
    periods ``lastperiod + 1, ..., lastperiod + steps``.
    """

    if steps <= 0:
        raise ValueError("steps must be positive")
    ns, p = var.ns, var.nlag
    end = var.lastperiod
    if end < p:
        raise ValueError("Not enough history for forecasting")
    hist = var.y[end - p : end][::-1]
    if not np.isfinite(hist).all():
        raise ValueError("Last VAR lags contain missing values")
    z = hist.reshape(-1)
    c = np.zeros(ns * p)
    c[:ns] = var.constant
    fcst = np.empty((steps, ns))
    for h in range(steps):
        z = c + var.M @ z
        fcst[h] = var.Q @ z
    return fcst


# ---------------------------------------------------------------------------
def forecast_idiosyncratic(model: DFMModel, steps: int) -> np.ndarray:
    """AR forecasts of the idiosyncratic terms, ``(steps, ns)``.

    Series without AR coefficients, or whose last residuals are missing,
    get a zero forecast.
    """

    if steps <= 0:
        raise ValueError("steps must be positive")
    p = model.config.n_uarlag
    end = model.config.lastperiod
    fcst = np.zeros((steps, model.ns))
    for i in range(model.ns):
        coef = model.uar_coef[i]
        if not np.isfinite(coef).all() or end < p:
            continue
        hist = model.idio[end - p : end, i][::-1]
        if not np.isfinite(hist).all():
            continue
        lags = list(hist)
        for h in range(steps):
            nxt = float(np.dot(coef, lags[:p]))
            fcst[h, i] = nxt
            lags.insert(0, nxt)
    return fcst


# ---------------------------------------------------------------------------
def forecast_dfm(model: DFMModel, steps: int, include_idiosyncratic: bool = True) -> np.ndarray:
    """Forecast every series ``steps`` periods after ``lastperiod``.

    The forecast is the common component implied by the VAR factor
    forecast plus, optionally, the AR forecast of the idiosyncratic term.
    """

    if model.var is None:
        raise RuntimeError("Model has no VAR yet, call estimate_var() first")
    fac = forecast_factors(model.var, steps)
    fcst = model.lambda_constant + fac @ model.lambda_.T
    if include_idiosyncratic:
        fcst = fcst + forecast_idiosyncratic(model, steps)
    return fcst
