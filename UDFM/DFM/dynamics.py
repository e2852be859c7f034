"""VAR dynamics of the latent factors and their companion state-space form."""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np
from scipy import linalg

from .exceptions import CholeskyError, DimensionError
from .linalg import lagmat, ols_missing_balanced


@dataclass
class VARModel:
    """VAR(p) written as ``y_t = Q z_t``, ``z_t = M z_{t-1} + G u_t``.

    ``z_t`` stacks ``y_t`` and its ``p - 1`` lags and ``u_t`` has identity
    covariance.

    Attributes
    ----------
    y : ndarray, shape (T, ns)
        Series the VAR was estimated on.
    nlag : int
        Lag order ``p``.
    with_constant : bool
        Whether an intercept was included.
    initperiod, lastperiod : int
        Estimation window, 1-indexed and inclusive.
    betahat : ndarray, shape (K, ns)
        OLS coefficients; the first row is the constant when
        ``with_constant`` is ``True``, followed by lag 1, ..., lag ``p``.
    resid : ndarray, shape (T, ns)
        Residuals at their time index, ``NaN`` where a period was unused.
    seps : ndarray, shape (ns, ns)
        Residual covariance ``e'e / (T_used - K)``.
    M, Q, G : ndarray
        Companion transition, selection and shock-loading matrices.
    nobs : int
        Number of periods used in the regression.
    """

    y: np.ndarray
    nlag: int
    with_constant: bool
    initperiod: int
    lastperiod: int
    betahat: np.ndarray
    resid: np.ndarray
    seps: np.ndarray
    M: np.ndarray
    Q: np.ndarray
    G: np.ndarray
    nobs: int

    @property
    def ns(self) -> int:
        return self.y.shape[1]

    @property
    def constant(self) -> np.ndarray:
        """Intercept vector (zeros when the VAR has no constant)."""
        if self.with_constant:
            return self.betahat[0]
        return np.zeros(self.ns)

    @property
    def coefficients(self) -> list[np.ndarray]:
        """Lag matrices ``[A_1, ..., A_p]`` with ``y_t = sum A_l y_{t-l}``."""
        ns = self.ns
        off = int(self.with_constant)
        return [
            self.betahat[off + l * ns : off + (l + 1) * ns].T for l in range(self.nlag)
        ]

    def is_stable(self) -> bool:
        """Return ``True`` if all companion eigenvalues lie in the unit circle."""
        return bool(np.max(np.abs(np.linalg.eigvals(self.M))) < 1.0)

    def impulse_response(self, horizon: int, shock="all") -> np.ndarray:
        """Shortcut for :func:`UDFM.DFM.irf.impulse_response`."""
        from .irf import impulse_response

        return impulse_response(self, horizon, shock)


# ---------------------------------------------------------------------------
def companion_form(
    betahat: np.ndarray,
    seps: np.ndarray,
    ns: int,
    nlag: int,
    with_constant: bool = True,
) -> tuple[np.ndarray, np.ndarray, np.ndarray]:
    """Return the companion matrices ``(M, Q, G)`` of a VAR.

    ``M`` holds the transposed lag coefficients in its first ``ns`` rows
    and an identity shift below.  ``Q`` selects the first ``ns`` states.
    The top block of ``G`` is the lower Cholesky factor of ``seps``.

    Raises
    ------
    CholeskyError
        If ``seps`` is not positive definite.
    """

    d = ns * nlag
    off = int(with_constant)
    M = np.zeros((d, d))
    M[:ns, :] = betahat[off : off + d].T
    if nlag > 1:
        M[ns:, :-ns] = np.eye(ns * (nlag - 1))
    Q = np.zeros((ns, d))
    Q[:, :ns] = np.eye(ns)
    try:
        chol = linalg.cholesky(seps, lower=False)
    except linalg.LinAlgError as exc:
        raise CholeskyError("seps") from exc
    G = np.zeros((d, ns))
    G[:ns, :] = chol.T
    return M, Q, G


# ---------------------------------------------------------------------------
def estimate_var(
    y: np.ndarray,
    nlag: int,
    with_constant: bool = True,
    initperiod: int = 1,
    lastperiod: int | None = None,
) -> VARModel:
    """Estimate a VAR(``nlag``) by OLS and build its state-space form.

    Lags are taken from the full series so that observations before
    ``initperiod`` may serve as initial conditions; any period where the
    dependent variable or a lag is missing is dropped.

    Parameters
    ----------
    y : array_like, shape (T, ns)
        Series to model (here the estimated factors).
    nlag : int
        VAR lag order, must be positive.
    with_constant : bool, default True
        Include an intercept.
    initperiod, lastperiod : int
        Estimation window, 1-indexed and inclusive.  ``lastperiod``
        defaults to ``T``.
    """

    y = np.array(y, dtype=float)
    if y.ndim == 1:
        y = y[:, None]
    if y.ndim != 2:
        raise DimensionError("y must be a 1D or 2D array")
    T, ns = y.shape
    if nlag <= 0:
        raise ValueError("nlag must be positive")
    if lastperiod is None:
        lastperiod = T
    if not 1 <= initperiod < lastperiod <= T:
        raise ValueError("window must satisfy 1 <= initperiod < lastperiod <= T")

    X = lagmat(y, range(1, nlag + 1))
    if with_constant:
        X = np.hstack([np.ones((T, 1)), X])
    window = slice(initperiod - 1, lastperiod)
    b, e, kept = ols_missing_balanced(y[window], X[window])
    nobs = int(kept.sum())
    K = X.shape[1]
    if nobs <= K:
        raise ValueError(
            f"not enough observations for a VAR({nlag}): {nobs} usable periods, {K} regressors"
        )
    seps = e.T @ e / (nobs - K)
    resid = np.full((T, ns), np.nan)
    resid[np.flatnonzero(kept) + initperiod - 1] = e
    M, Q, G = companion_form(b, seps, ns, nlag, with_constant)
    return VARModel(
        y=y,
        nlag=nlag,
        with_constant=with_constant,
        initperiod=initperiod,
        lastperiod=lastperiod,
        betahat=b,
        resid=resid,
        seps=seps,
        M=M,
        Q=Q,
        G=G,
        nobs=nobs,
    )
