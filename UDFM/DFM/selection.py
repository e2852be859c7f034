"""Selection of the number of static and dynamic factors.

The number of static factors is chosen with the Bai and Ng (2002)
information criterion, the number of dynamic factors with the procedure of
Amengual and Watson (2007): the static factors are estimated, the panel is
regressed on lags of them, and the Bai-Ng criterion is applied to the
residual panel.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
import logging

import numpy as np
from joblib import Parallel, delayed

from .estimation import FactorEstimateStats, estimate_factor
from .exceptions import SpecificationError
from .linalg import lagmat, ols_missing_balanced
from .model import DFMConfig, DFMModel

logger = logging.getLogger(__name__)


@dataclass
class AmengualWatsonStats:
    """Results of :func:`amengual_watson` for one static factor model.

    Attributes
    ----------
    nper : int
        Number of factor lags partialled out.
    bn : ndarray, shape (nfac_t,)
        Bai-Ng criterion for ``1..nfac_t`` dynamic factors.
    ssr : ndarray, shape (nfac_t,)
        SSR of the residual factor model for each dynamic factor count.
    r2 : ndarray, shape (nfac_t, ns)
        Per-series R² of the residual factor model (included series).
    resid : ndarray, shape (T, ns)
        Residual panel of the lagged-factor regressions.
    """

    nper: int
    bn: np.ndarray
    ssr: np.ndarray
    r2: np.ndarray
    resid: np.ndarray

    @property
    def best(self) -> int:
        """Dynamic factor count minimising the Bai-Ng criterion."""
        return int(np.nanargmin(self.bn)) + 1


@dataclass
class FactorNumberEstimateStats:
    """Results of :func:`select_factor_number`.

    Row ``k`` of every array belongs to the candidate with ``k + 1``
    unobserved factors.  The Amengual-Watson grids are ``NaN`` where the
    dynamic factor count exceeds the static one.

    Attributes
    ----------
    nfac_o : int
        Observed factors included in every candidate.
    bn : ndarray, shape (max_nfac,)
        Bai-Ng criterion of the static factor models.
    ssr_static : ndarray, shape (max_nfac,)
    r2_static : ndarray, shape (max_nfac, ns)
    aw_bn, aw_ssr : ndarray, shape (max_nfac, max_nfac + nfac_o)
    aw_r2 : ndarray, shape (max_nfac, max_nfac + nfac_o, ns)
    tss, nobs, nt : ndarray, shape (max_nfac,)
        Panel totals of each candidate run.
    """

    nfac_o: int
    bn: np.ndarray
    ssr_static: np.ndarray
    r2_static: np.ndarray
    aw_bn: np.ndarray
    aw_ssr: np.ndarray
    aw_r2: np.ndarray
    tss: np.ndarray
    nobs: np.ndarray
    nt: np.ndarray

    @property
    def max_nfac(self) -> int:
        return self.bn.size

    @property
    def best_nfac(self) -> int:
        """Number of unobserved factors minimising the Bai-Ng criterion."""
        return int(np.nanargmin(self.bn)) + 1

    def best_dynamic_nfac(self, nfac: int | None = None) -> int:
        """Dynamic factor count selected for ``nfac`` unobserved factors.

        Defaults to the static count chosen by :attr:`best_nfac`.
        """
        if nfac is None:
            nfac = self.best_nfac
        if not 1 <= nfac <= self.max_nfac:
            raise ValueError(f"nfac must be between 1 and {self.max_nfac}")
        row = self.aw_bn[nfac - 1, : nfac + self.nfac_o]
        return int(np.nanargmin(row)) + 1


# ---------------------------------------------------------------------------
def bai_ng_criterion(ssr: float, nobs: int, nt: int, nfac: int) -> float:
    """Bai-Ng information criterion for an unbalanced panel.

    ``log(ssr / nobs) + nfac * g`` with
    ``g = log(min(nbar, nt)) * (nbar + nt) / nobs`` and ``nbar = nobs / nt``
    the average number of series observed per period.

    A zero ``ssr`` (exact fit) gives ``-inf``.

    Raises
    ------
    ValueError
        If ``nobs`` or ``nt`` is not positive, or ``ssr`` is negative.
    """

    if nobs <= 0 or nt <= 0:
        raise ValueError("nobs and nt must be positive")
    if ssr < 0:
        raise ValueError("ssr must be non-negative")
    nbar = nobs / nt
    g = np.log(min(nbar, nt)) * (nbar + nt) / nobs
    with np.errstate(divide="ignore"):
        fit = np.log(ssr / nobs)
    return float(fit + nfac * g)


# ---------------------------------------------------------------------------
def amengual_watson(model: DFMModel, nper: int) -> AmengualWatsonStats:
    """Estimate the number of dynamic factors of a fitted static model.

    Every included series is regressed on a constant and lags
    ``1..nper`` of the estimated factors over
    ``[initperiod + nper, lastperiod]``.  Residuals are kept for series
    whose regression has at least ``nt_min_factor_estimation`` degrees of
    freedom.  Static factor models with ``1..nfac_t`` factors are then
    fitted to the residual panel.

    Parameters
    ----------
    model : DFMModel
        Model whose factors were estimated.
    nper : int
        Number of factor lags.
    """

    cfg = model.config
    if nper <= 0:
        raise ValueError("nper must be positive")
    init = cfg.initperiod + nper
    if init >= cfg.lastperiod:
        raise SpecificationError(
            f"nper={nper} leaves no estimation window before lastperiod={cfg.lastperiod}"
        )

    window = slice(init - 1, cfg.lastperiod)
    X = np.hstack([np.ones((model.T, 1)), lagmat(model.factor, range(1, nper + 1))])[window]
    y = model.data[window]
    resid = np.full(model.data.shape, np.nan)
    for i in np.flatnonzero(model.inclcode == 1):
        _, e, kept = ols_missing_balanced(y[:, i], X)
        if kept.sum() - X.shape[1] >= cfg.nt_min_factor_estimation:
            col = np.full(y.shape[0], np.nan)
            col[kept] = e
            resid[window, i] = col

    nfac_t = cfg.nfac_t
    bn = np.full(nfac_t, np.nan)
    ssr = np.full(nfac_t, np.nan)
    r2 = None
    for q in range(1, nfac_t + 1):
        aw_cfg = replace(cfg, initperiod=init, nfac_o=0, nfac_u=q)
        aw_model = DFMModel(resid, model.inclcode, aw_cfg)
        stats = estimate_factor(aw_model)
        if r2 is None:
            r2 = np.full((nfac_t, stats.ns), np.nan)
        bn[q - 1] = bai_ng_criterion(stats.ssr, stats.nobs, stats.nt, q)
        ssr[q - 1] = stats.ssr
        r2[q - 1] = stats.r2
    return AmengualWatsonStats(nper=nper, bn=bn, ssr=ssr, r2=r2, resid=resid)


# ---------------------------------------------------------------------------
def _scan_candidate(
    data: np.ndarray,
    inclcode: np.ndarray,
    config: DFMConfig,
    nper: int,
    observed_factor: np.ndarray | None,
) -> tuple[FactorEstimateStats, float, AmengualWatsonStats]:
    model = DFMModel(data, inclcode, config, observed_factor=observed_factor)
    stats = estimate_factor(model)
    bn = bai_ng_criterion(stats.ssr, stats.nobs, stats.nt, config.nfac_t)
    aw = amengual_watson(model, nper)
    return stats, bn, aw


def select_factor_number(
    data: np.ndarray,
    inclcode: np.ndarray,
    config: DFMConfig,
    max_nfac: int,
    nper: int = 1,
    observed_factor: np.ndarray | None = None,
    mask: np.ndarray | None = None,
    n_jobs: int | None = None,
    verbose: bool = False,
) -> FactorNumberEstimateStats:
    """Scan ``1..max_nfac`` unobserved factors.

    A fresh :class:`DFMModel` is estimated for every candidate with
    ``nfac_u`` set to the candidate count (``config.nfac_o`` is kept).
    For each candidate the Bai-Ng criterion, SSR and per-series R² of the
    static model and the Amengual-Watson grids are recorded.

    Parameters
    ----------
    data, inclcode, observed_factor, mask
        As for :class:`DFMModel`.
    config : DFMConfig
        Settings shared by all candidates; its ``nfac_u`` is ignored.
    max_nfac : int
        Largest number of unobserved factors considered.
    nper : int, default 1
        Lags used in the Amengual-Watson regressions.
    n_jobs : int, optional
        Run candidates in parallel with joblib when not ``None`` or ``1``.
    verbose : bool, default False
        Print a line per candidate.
    """

    if max_nfac < 1:
        raise ValueError("max_nfac must be at least 1")
    if mask is not None:
        data = np.where(np.asarray(mask, dtype=bool), data, np.nan)
    configs = [replace(config, nfac_u=nfac) for nfac in range(1, max_nfac + 1)]

    if n_jobs is not None and n_jobs != 1:
        results = Parallel(n_jobs=n_jobs)(
            delayed(_scan_candidate)(data, inclcode, cfg, nper, observed_factor)
            for cfg in configs
        )
    else:
        results = []
        for cfg in configs:
            results.append(_scan_candidate(data, inclcode, cfg, nper, observed_factor))
            if verbose:
                print(f"[{cfg.nfac_u}/{max_nfac}] nfac_t={cfg.nfac_t} bn={results[-1][1]:.4f}")

    nfo = config.nfac_o
    ns = results[0][0].ns
    ndyn = max_nfac + nfo
    bn = np.full(max_nfac, np.nan)
    ssr_static = np.full(max_nfac, np.nan)
    r2_static = np.full((max_nfac, ns), np.nan)
    aw_bn = np.full((max_nfac, ndyn), np.nan)
    aw_ssr = np.full((max_nfac, ndyn), np.nan)
    aw_r2 = np.full((max_nfac, ndyn, ns), np.nan)
    tss = np.full(max_nfac, np.nan)
    nobs = np.zeros(max_nfac, dtype=int)
    nt = np.zeros(max_nfac, dtype=int)
    for k, (stats, bn_k, aw) in enumerate(results):
        nq = aw.bn.size
        bn[k] = bn_k
        ssr_static[k] = stats.ssr
        r2_static[k] = stats.r2
        aw_bn[k, :nq] = aw.bn
        aw_ssr[k, :nq] = aw.ssr
        aw_r2[k, :nq] = aw.r2
        tss[k] = stats.tss
        nobs[k] = stats.nobs
        nt[k] = stats.nt
    logger.debug("Bai-Ng criteria: %s", bn)

    return FactorNumberEstimateStats(
        nfac_o=nfo,
        bn=bn,
        ssr_static=ssr_static,
        r2_static=r2_static,
        aw_bn=aw_bn,
        aw_ssr=aw_ssr,
        aw_r2=aw_r2,
        tss=tss,
        nobs=nobs,
        nt=nt,
    )


def print_selection_summary(stats: FactorNumberEstimateStats) -> None:
    """Print the Bai-Ng and Amengual-Watson results as a table."""

    best = stats.best_nfac
    print("\nFactor Number Selection (Bai-Ng / Amengual-Watson)")
    print("=" * 60)
    print(f"{'nfac':>5} {'BN':>12} {'SSR':>14} {'mean R2':>10} {'dyn':>5}")
    print("-" * 60)
    for k in range(stats.max_nfac):
        nfac = k + 1
        r2 = stats.r2_static[k]
        mean_r2 = float(np.nanmean(r2)) if np.isfinite(r2).any() else np.nan
        marker = " *" if nfac == best else ""
        print(
            f"{nfac:>5} {stats.bn[k]:>12.4f} {stats.ssr_static[k]:>14.4f} "
            f"{mean_r2:>10.4f} {stats.best_dynamic_nfac(nfac):>5}{marker}"
        )
    print("-" * 60)
    print(f"Selected: nfac={best}, dynamic factors={stats.best_dynamic_nfac()}")
