"""Least squares with missing data and lag-matrix construction.

Missing observations are ``NaN``.  Routines that drop rows return the
boolean mask of the rows they kept (``True`` = used in the regression)
so callers never have to infer the sample from the numeric values.
"""

from __future__ import annotations

from enum import Enum
from typing import Iterable

import numpy as np

from .exceptions import DimensionError


class MissingStrategy(str, Enum):
    """How missing values in a regression are handled."""

    BALANCED = "balanced"  # one joint row mask for all columns of ``y``
    UNBALANCED = "unbalanced"  # separate row mask per column of ``y``


def _as_2d(a: np.ndarray) -> np.ndarray:
    a = np.asarray(a, dtype=float)
    if a.ndim == 1:
        return a[:, None]
    if a.ndim != 2:
        raise DimensionError(f"expected a 1D or 2D array, got ndim={a.ndim}")
    return a


def _check_rows(y: np.ndarray, X: np.ndarray) -> None:
    if y.shape[0] != X.shape[0]:
        raise DimensionError(
            f"y and X must have the same number of rows, got {y.shape[0]} and {X.shape[0]}"
        )


# ---------------------------------------------------------------------------
def ols(y: np.ndarray, X: np.ndarray) -> tuple[np.ndarray, np.ndarray]:
    """Ordinary least squares of ``y`` on ``X``.

    Parameters
    ----------
    y : array_like, shape (T,) or (T, N)
        Dependent variable(s).
    X : array_like, shape (T, K)
        Regressors, assumed to have full column rank.

    Returns
    -------
    b : ndarray, shape (K,) or (K, N)
        Coefficients, one column per column of ``y``.
    e : ndarray
        Residual ``y - X b`` with the shape of ``y``.
    """

    y = np.asarray(y, dtype=float)
    X = _as_2d(X)
    _check_rows(y, X)
    b = np.linalg.lstsq(X, y, rcond=None)[0]
    e = y - X @ b
    return b, e


# ---------------------------------------------------------------------------
def ols_missing_balanced(
    y: np.ndarray, X: np.ndarray
) -> tuple[np.ndarray, np.ndarray, np.ndarray]:
    """OLS on the rows where neither ``y`` nor ``X`` has a missing value.

    Returns
    -------
    b : ndarray
        Coefficients; all ``NaN`` when no row survives.
    e : ndarray
        Residuals of the kept rows only.
    kept : ndarray of bool, shape (T,)
        Rows used in the regression.
    """

    y = np.asarray(y, dtype=float)
    X = _as_2d(X)
    _check_rows(y, X)
    kept = np.isfinite(X).all(axis=1)
    if y.ndim == 1:
        kept &= np.isfinite(y)
    else:
        kept &= np.isfinite(y).all(axis=1)
    if not kept.any():
        b_shape = (X.shape[1],) if y.ndim == 1 else (X.shape[1], y.shape[1])
        return np.full(b_shape, np.nan), y[kept], kept
    b, e = ols(y[kept], X[kept])
    return b, e, kept


# ---------------------------------------------------------------------------
def ols_missing_unbalanced(
    y: np.ndarray, X: np.ndarray
) -> tuple[np.ndarray, np.ndarray, np.ndarray]:
    """Column-by-column OLS of ``y`` on a shared ``X``.

    Each column of ``y`` has its own missingness pattern.  Residuals are
    returned at their original row positions with ``NaN`` in the rows a
    column did not use.

    Returns
    -------
    b : ndarray, shape (K, N)
    e : ndarray, shape (T, N)
    kept : ndarray of bool, shape (T, N)
    """

    y = _as_2d(y)
    X = _as_2d(X)
    _check_rows(y, X)
    T, N = y.shape
    K = X.shape[1]
    b = np.full((K, N), np.nan)
    e = np.full((T, N), np.nan)
    kept = np.zeros((T, N), dtype=bool)
    for j in range(N):
        b_j, e_j, kept_j = ols_missing_balanced(y[:, j], X)
        b[:, j] = b_j
        e[kept_j, j] = e_j
        kept[:, j] = kept_j
    return b, e, kept


# ---------------------------------------------------------------------------
def ols_missing(
    y: np.ndarray,
    X: np.ndarray,
    strategy: MissingStrategy | str = MissingStrategy.BALANCED,
) -> tuple[np.ndarray, np.ndarray, np.ndarray]:
    """Dispatch to the balanced or unbalanced missing-data regression."""

    strategy = MissingStrategy(strategy)
    if strategy is MissingStrategy.BALANCED:
        return ols_missing_balanced(y, X)
    return ols_missing_unbalanced(y, X)


# ---------------------------------------------------------------------------
def lagmat(X: np.ndarray, lags: Iterable[int]) -> np.ndarray:
    """Stack lagged copies of ``X`` side by side.

    Block ``i`` of the result equals ``X`` shifted down by ``lags[i]``
    rows; the first ``lags[i]`` rows of the block are ``NaN``.  A lag of
    ``T`` or more yields an all-``NaN`` block.

    Examples
    --------
    >>> lagmat(np.arange(1.0, 4.0), [0, 1])
    array([[ 1., nan],
           [ 2.,  1.],
           [ 3.,  2.]])
    """

    X = _as_2d(X)
    lags = [int(l) for l in lags]
    if any(l < 0 for l in lags):
        raise ValueError("lags must be non-negative")
    T, K = X.shape
    out = np.full((T, K * len(lags)), np.nan)
    for i, lag in enumerate(lags):
        if lag >= T:
            continue
        out[lag:, i * K : (i + 1) * K] = X[: T - lag]
    return out


# ---------------------------------------------------------------------------
def compute_r2(y: np.ndarray, e: np.ndarray) -> tuple[float, float, float]:
    """Return ``(r2, ssr, tss)`` for residual ``e`` of a regression of ``y``.

    ``tss`` is taken around the (column) mean of ``y``.  When ``tss`` is
    zero the R² is undefined and ``NaN`` is returned.
    """

    y = np.asarray(y, dtype=float)
    e = np.asarray(e, dtype=float)
    ssr = float(np.sum(e**2))
    tss = float(np.sum((y - y.mean(axis=0)) ** 2))
    if tss == 0.0:
        return np.nan, ssr, tss
    return 1.0 - ssr / tss, ssr, tss
