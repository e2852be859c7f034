"""Model representation for the dynamic factor model."""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np

from .dynamics import VARModel, estimate_var
from .estimation import FactorEstimateStats, estimate_factor, estimate_factor_loadings
from .exceptions import DimensionError, SpecificationError
from .irf import series_impulse_response
from . import utils


@dataclass
class DFMConfig:
    """Estimation settings of a :class:`DFMModel`.

    Parameters
    ----------
    initperiod, lastperiod : int
        Estimation window, 1-indexed and inclusive.
    nfac_o : int, default 0
        Number of observed factors supplied by the caller.
    nfac_u : int, default 1
        Number of unobserved factors to estimate.
    tol : float, default 1e-8
        Convergence tolerance; iteration stops once the change in SSR is
        below ``tol * T * ns``.
    nt_min_factor_estimation : int, default 20
        Minimum usable periods for a series to get a loading in the
        factor iteration.
    nt_min_factorloading_estimation : int, default 20
        Minimum usable periods for the loading / AR regressions.
    n_uarlag : int, default 4
        AR order of the idiosyncratic terms.
    n_factorlag : int, default 4
        VAR order of the factors.
    max_iter : int, default 100000
        Iteration cap of the factor estimation.
    """

    initperiod: int
    lastperiod: int
    nfac_o: int = 0
    nfac_u: int = 1
    tol: float = 1e-8
    nt_min_factor_estimation: int = 20
    nt_min_factorloading_estimation: int = 20
    n_uarlag: int = 4
    n_factorlag: int = 4
    max_iter: int = 100_000

    def __post_init__(self) -> None:
        if self.initperiod < 1:
            raise SpecificationError("initperiod must be >= 1")
        if self.initperiod >= self.lastperiod:
            raise SpecificationError("initperiod must be smaller than lastperiod")
        if self.nfac_o < 0 or self.nfac_u < 0:
            raise SpecificationError("nfac_o and nfac_u must be non-negative")
        if self.nfac_t < 1:
            raise SpecificationError("at least one factor is required")
        if self.n_uarlag <= 0:
            raise SpecificationError("n_uarlag must be positive")
        if self.n_factorlag <= 0:
            raise SpecificationError("n_factorlag must be positive")
        if self.tol <= 0:
            raise SpecificationError("tol must be positive")
        if self.max_iter < 1:
            raise SpecificationError("max_iter must be at least 1")
        if self.nt_min_factor_estimation < 1 or self.nt_min_factorloading_estimation < 1:
            raise SpecificationError("minimum sample thresholds must be positive")

    @property
    def nfac_t(self) -> int:
        return self.nfac_o + self.nfac_u

    @property
    def nt(self) -> int:
        """Length of the estimation window."""
        return self.lastperiod - self.initperiod + 1


class DFMModel:
    """Dynamic factor model on an unbalanced panel.

    Parameters
    ----------
    data : array_like, shape (T, ns)
        Panel of series; ``NaN`` marks a missing observation.
    inclcode : array_like, shape (ns,)
        ``1`` for the series used to estimate the factors, ``0`` otherwise.
    config : DFMConfig
        Estimation settings.
    observed_factor : array_like, shape (T, nfac_o), optional
        Observed factors, required when ``config.nfac_o > 0``.  They are
        held fixed while the unobserved factors are estimated.
    mask : array_like of bool, optional
        ``True`` for observed entries; combined with the ``NaN`` entries of
        ``data``.

    Attributes
    ----------
    factor : ndarray, shape (T, nfac_t)
        Observed factors followed by the estimated ones; ``NaN`` outside
        the estimation window for the estimated columns.
    lambda_ : ndarray, shape (ns, nfac_t)
        Factor loadings of every series.
    lambda_constant : ndarray, shape (ns,)
        Intercepts of the loading regressions.
    loading_r2 : ndarray, shape (ns,)
        R² of the loading regressions.
    idio : ndarray, shape (T, ns)
        Idiosyncratic residuals of the loading regressions.
    uar_coef : ndarray, shape (ns, n_uarlag)
        AR coefficients of the idiosyncratic terms.
    uar_ser : ndarray, shape (ns,)
        Standard errors of the idiosyncratic AR regressions.
    var : VARModel or None
        Factor VAR once :meth:`estimate_var` has run.
    """

    def __init__(
        self,
        data: np.ndarray,
        inclcode: np.ndarray,
        config: DFMConfig,
        observed_factor: np.ndarray | None = None,
        mask: np.ndarray | None = None,
    ) -> None:
        data = utils.apply_mask(data, mask)
        if data.ndim != 2:
            raise DimensionError("data must be a 2D array (T, ns)")
        inclcode = np.asarray(inclcode).ravel()
        T, ns = data.shape
        if inclcode.size != ns:
            raise DimensionError(
                f"inclcode has length {inclcode.size}, data has {ns} series"
            )
        if not np.isin(inclcode, (0, 1)).all():
            raise SpecificationError("inclcode must contain only 0 and 1")
        inclcode = inclcode.astype(int)
        if config.lastperiod > T:
            raise SpecificationError(
                f"lastperiod={config.lastperiod} exceeds the number of periods T={T}"
            )

        factor = np.full((T, config.nfac_t), np.nan)
        if config.nfac_o > 0:
            if observed_factor is None:
                raise SpecificationError("observed_factor is required when nfac_o > 0")
            observed_factor = np.asarray(observed_factor, dtype=float)
            if observed_factor.ndim == 1:
                observed_factor = observed_factor[:, None]
            if observed_factor.shape != (T, config.nfac_o):
                raise DimensionError(
                    f"observed_factor must have shape {(T, config.nfac_o)}, "
                    f"got {observed_factor.shape}"
                )
            factor[:, : config.nfac_o] = observed_factor
        elif observed_factor is not None:
            raise SpecificationError("observed_factor given but nfac_o == 0")

        self.data = data
        self.inclcode = inclcode
        self.config = config
        self.factor = factor
        self.lambda_ = np.full((ns, config.nfac_t), np.nan)
        self.lambda_constant = np.full(ns, np.nan)
        self.loading_r2 = np.full(ns, np.nan)
        self.idio = np.full((T, ns), np.nan)
        self.uar_coef = np.full((ns, config.n_uarlag), np.nan)
        self.uar_ser = np.full(ns, np.nan)
        self.var: VARModel | None = None

    # ------------------------------------------------------------------
    @property
    def T(self) -> int:
        return self.data.shape[0]

    @property
    def ns(self) -> int:
        return self.data.shape[1]

    # ------------------------------------------------------------------
    def estimate_factor(self, with_r2: bool = True) -> FactorEstimateStats:
        """Estimate the static factors; writes :attr:`factor`."""
        return estimate_factor(self, with_r2=with_r2)

    # ------------------------------------------------------------------
    def estimate_factor_loadings(self) -> None:
        """Estimate loadings and idiosyncratic AR terms of every series."""
        estimate_factor_loadings(self)

    # ------------------------------------------------------------------
    def estimate_var(self, with_constant: bool = True) -> VARModel:
        """Fit a VAR(``n_factorlag``) to the factors; writes :attr:`var`.

        The VAR works on a copy of :attr:`factor`, later changes to the
        factors do not alter the fitted VAR.
        """
        cfg = self.config
        self.var = estimate_var(
            self.factor.copy(),
            cfg.n_factorlag,
            with_constant=with_constant,
            initperiod=cfg.initperiod,
            lastperiod=cfg.lastperiod,
        )
        return self.var

    # ------------------------------------------------------------------
    def fit(self, with_r2: bool = True, with_constant: bool = True) -> FactorEstimateStats:
        """Run factor, loading and VAR estimation in sequence."""
        stats = self.estimate_factor(with_r2=with_r2)
        self.estimate_factor_loadings()
        self.estimate_var(with_constant=with_constant)
        return stats

    # ------------------------------------------------------------------
    def common_component(self) -> np.ndarray:
        """Return ``lambda_constant + factor @ lambda_.T`` of shape (T, ns)."""
        return self.lambda_constant + self.factor @ self.lambda_.T

    # ------------------------------------------------------------------
    def impulse_response(self, horizon: int, shock="all", series: bool = False) -> np.ndarray:
        """Impulse responses to the VAR innovations.

        Responses are those of the factors unless ``series`` is ``True``,
        in which case they are mapped to the observed series through
        :attr:`lambda_`.
        """
        if self.var is None:
            raise RuntimeError("Model has no VAR yet, call estimate_var() first")
        if series:
            return series_impulse_response(self.lambda_, self.var, horizon, shock)
        return self.var.impulse_response(horizon, shock)


def fit_dfm(
    data: np.ndarray,
    inclcode: np.ndarray,
    config: DFMConfig,
    observed_factor: np.ndarray | None = None,
    mask: np.ndarray | None = None,
    *,
    with_constant: bool = True,
) -> tuple[DFMModel, FactorEstimateStats]:
    """Build a :class:`DFMModel` and run the full estimation pipeline."""

    model = DFMModel(data, inclcode, config, observed_factor=observed_factor, mask=mask)
    stats = model.fit(with_constant=with_constant)
    return model, stats
