"""Alternating least squares estimation of factors and loadings.

:func:`estimate_factor` fills ``model.factor`` inside the estimation
window.  :func:`estimate_factor_loadings` fills ``model.lambda_``,
``model.lambda_constant``, ``model.loading_r2``, ``model.idio``,
``model.uar_coef`` and ``model.uar_ser``.  Neither touches any other
field of the model.
"""

from __future__ import annotations

from dataclasses import dataclass, field
import logging
import warnings
from typing import TYPE_CHECKING

import numpy as np

from .exceptions import ConvergenceWarning, EstimationError
from .linalg import compute_r2, lagmat, ols_missing_balanced, ols_missing_unbalanced
from . import utils

if TYPE_CHECKING:  # pragma: no cover
    from .model import DFMModel

logger = logging.getLogger(__name__)

R2_PERFECT_FIT = 0.9999


@dataclass
class FactorEstimateStats:
    """Bookkeeping of one run of :func:`estimate_factor`.

    Attributes
    ----------
    nt : int
        Number of periods in the estimation window.
    ns : int
        Number of included series.
    nobs : int
        Number of non-missing observations of the standardized panel.
    tss : float
        Total sum of squares of the standardized panel.
    ssr : float
        Sum of squared residuals at the last iteration.
    r2 : ndarray, shape (ns,)
        R² of each included series on the factors; ``NaN`` when the series
        has too few observations or R² was not requested.
    n_iter : int
        Number of iterations performed.
    converged : bool
        ``False`` when the iteration cap stopped the loop.
    ssr_trace : list of float
        SSR after every iteration.
    loadings : ndarray, shape (ns, nfac_t)
        Loadings of the standardized included series.
    included : ndarray of int
        Column indices of the included series in the full panel.
    stdev : ndarray, shape (ns,)
        Standardization scale of the included series.
    """

    nt: int
    ns: int
    nobs: int
    tss: float
    ssr: float
    r2: np.ndarray
    n_iter: int = 0
    converged: bool = False
    ssr_trace: list[float] = field(default_factory=list)
    loadings: np.ndarray | None = None
    included: np.ndarray | None = None
    stdev: np.ndarray | None = None


# ---------------------------------------------------------------------------
def _update_loadings(x: np.ndarray, fac: np.ndarray, nt_min: int) -> np.ndarray:
    ns = x.shape[1]
    lam = np.full((ns, fac.shape[1]), np.nan)
    for i in range(ns):
        b, _, kept = ols_missing_balanced(x[:, i], fac)
        if kept.sum() >= nt_min:
            lam[i] = b
    return lam


def _update_factors(
    x: np.ndarray, lam: np.ndarray, fac_o: np.ndarray
) -> tuple[np.ndarray, np.ndarray]:
    """Cross-section regressions of each period on the loadings.

    The contribution of the observed factors is removed first; only the
    unobserved factors are re-estimated.
    """

    nfo = fac_o.shape[1]
    target = x.T
    if nfo > 0:
        target = target - lam[:, :nfo] @ fac_o.T
    lam_u = lam[:, nfo:]
    if lam_u.shape[1] == 0:
        return np.empty((x.shape[0], 0)), target
    b, e, _ = ols_missing_unbalanced(target, lam_u)
    return b.T, e


def _series_r2(x: np.ndarray, fac: np.ndarray, nt_min: int) -> np.ndarray:
    ns = x.shape[1]
    r2 = np.full(ns, np.nan)
    for i in range(ns):
        _, e, kept = ols_missing_balanced(x[:, i], fac)
        if kept.sum() >= nt_min:
            r2[i] = compute_r2(x[kept, i], e)[0]
    return r2


# ---------------------------------------------------------------------------
def estimate_factor(model: "DFMModel", with_r2: bool = True) -> FactorEstimateStats:
    """Estimate the static factors of ``model`` by alternating least squares.

    The included series are standardized over the estimation window.
    Factors are initialised with the principal components of the series
    observed in every period, then loadings (series by series) and factors
    (period by period) are updated in turn until the change in SSR falls
    below ``tol * T * ns`` or ``max_iter`` iterations were run.

    Convergence is not verified beyond the iteration cap: when the cap is
    hit a :class:`ConvergenceWarning` is emitted and the last iterate is
    kept.

    Writes ``model.factor`` rows ``initperiod..lastperiod`` (unobserved
    factor columns only).
    """

    cfg = model.config
    window = slice(cfg.initperiod - 1, cfg.lastperiod)
    included = np.flatnonzero(model.inclcode == 1)
    x, stdev = utils.standardize(model.data[window][:, included])
    nt, ns = x.shape
    nobs = int(np.isfinite(x).sum())
    tss = float(np.nansum(x**2))
    nfo, nfu = cfg.nfac_o, cfg.nfac_u

    fac_o = model.factor[window, :nfo].copy()
    if nfu > 0:
        bal = utils.balanced_columns(x)
        if bal.size < nfu:
            raise EstimationError(
                f"{bal.size} fully observed series in the estimation window, "
                f"at least nfac_u={nfu} are needed for initialisation"
            )
        fac_u = utils.principal_component_factors(x[:, bal], nfu)
    else:
        fac_u = np.empty((nt, 0))
    fac = np.hstack([fac_o, fac_u])

    threshold = cfg.tol * nt * ns
    ssr = 0.0
    trace: list[float] = []
    converged = False
    lam = np.full((ns, nfo + nfu), np.nan)
    for it in range(1, cfg.max_iter + 1):
        ssr_old = ssr
        lam = _update_loadings(x, fac, cfg.nt_min_factor_estimation)
        fac_u, e = _update_factors(x, lam, fac_o)
        fac = np.hstack([fac_o, fac_u])
        ssr = float(np.nansum(e**2))
        trace.append(ssr)
        diff = abs(ssr - ssr_old)
        logger.debug("iteration %d: ssr=%.6g diff=%.3g", it, ssr, diff)
        if diff < threshold:
            converged = True
            break
    if not converged:
        warnings.warn(
            f"Factor estimation stopped after max_iter={cfg.max_iter} iterations "
            f"without convergence (last |dSSR|={diff:.3e}, threshold={threshold:.3e}).",
            ConvergenceWarning,
        )

    r2 = _series_r2(x, fac, cfg.nt_min_factor_estimation) if with_r2 else np.full(ns, np.nan)
    model.factor[window, nfo:] = fac_u

    return FactorEstimateStats(
        nt=nt,
        ns=ns,
        nobs=nobs,
        tss=tss,
        ssr=ssr,
        r2=r2,
        n_iter=len(trace),
        converged=converged,
        ssr_trace=trace,
        loadings=lam,
        included=included,
        stdev=stdev,
    )


# ---------------------------------------------------------------------------
def estimate_factor_loadings(model: "DFMModel") -> None:
    """Regress every series on the factors and fit idiosyncratic AR models.

    Each of the ``ns`` series (included or not) is regressed on the
    factors and a constant over the rows of the estimation window where
    both are observed.  Series with fewer than
    ``nt_min_factorloading_estimation`` usable rows keep whatever values
    they held before (initially ``NaN``).

    An R² of at least 0.9999 marks a series reproduced by the factors; its
    AR coefficients and standard error are set to zero.  Otherwise an
    AR(``n_uarlag``) without constant is fitted to the residual.
    """

    cfg = model.config
    window = slice(cfg.initperiod - 1, cfg.lastperiod)
    y = model.data[window]
    nt = y.shape[0]
    nfac = cfg.nfac_t
    X = np.hstack([model.factor[window], np.ones((nt, 1))])
    lags = range(1, cfg.n_uarlag + 1)

    skipped = 0
    for i in range(model.ns):
        b, e, kept = ols_missing_balanced(y[:, i], X)
        if kept.sum() < cfg.nt_min_factorloading_estimation:
            skipped += 1
            continue
        model.lambda_[i] = b[:nfac]
        model.lambda_constant[i] = b[nfac]
        r2 = compute_r2(y[kept, i], e)[0]
        model.loading_r2[i] = r2

        u = np.full(nt, np.nan)
        u[kept] = e
        model.idio[window, i] = u
        if r2 >= R2_PERFECT_FIT:
            model.uar_coef[i] = 0.0
            model.uar_ser[i] = 0.0
            continue
        b_u, e_u, kept_u = ols_missing_balanced(u, lagmat(u, lags))
        n_used = int(kept_u.sum())
        if n_used <= cfg.n_uarlag:
            skipped += 1
            continue
        model.uar_coef[i] = b_u
        model.uar_ser[i] = np.sqrt(np.sum(e_u**2) / (n_used - cfg.n_uarlag))
    if skipped:
        logger.debug("%d of %d series left unchanged (insufficient sample)", skipped, model.ns)
