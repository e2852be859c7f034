"""Utility functions for the dynamic factor model."""

from __future__ import annotations

import numpy as np
from numpy.linalg import svd


def apply_mask(data: np.ndarray, mask: np.ndarray | None = None) -> np.ndarray:
    """Return ``data`` as float with unobserved entries set to ``NaN``.

    Parameters
    ----------
    data : array_like, shape (T, ns)
        Observed panel; ``NaN`` marks a missing cell.
    mask : array_like of bool or None
        ``True`` means the entry is observed.  If ``None`` only the
        ``NaN`` entries of ``data`` are treated as missing.
    """

    data = np.array(data, dtype=float)
    if mask is not None:
        mask = np.asarray(mask, dtype=bool)
        if mask.shape != data.shape:
            raise ValueError("mask must have the same shape as data")
        data[~mask] = np.nan
    return data


def standardize(data: np.ndarray) -> tuple[np.ndarray, np.ndarray]:
    """Standardize each column using its non-missing entries.

    The sample standard deviation is multiplied by ``sqrt((n-1)/n)``
    where ``n`` is the number of observed entries of the column.  A column
    without observations, or whose observed values are all equal, comes
    back as all ``NaN`` with a ``NaN`` standard deviation.

    Returns
    -------
    z : ndarray
        Standardized data, ``NaN`` where ``data`` is missing.
    stdev : ndarray
        Corrected standard deviation of each column.
    """

    data = np.asarray(data, dtype=float)
    observed = np.isfinite(data)
    n = observed.sum(axis=0)
    with np.errstate(invalid="ignore", divide="ignore"):
        mean = np.where(observed, data, 0.0).sum(axis=0) / n
        dev = np.where(observed, data - mean, 0.0)
        stdev = np.sqrt((dev**2).sum(axis=0) / (n - 1)) * np.sqrt((n - 1) / n)
        # constant columns: spread of the observed values is exactly zero
        hi = np.where(observed, data, -np.inf).max(axis=0)
        lo = np.where(observed, data, np.inf).min(axis=0)
        flat = hi == lo
        stdev = np.where(flat, np.nan, stdev)
        z = (data - mean) / stdev
    return z, stdev


def balanced_columns(x: np.ndarray) -> np.ndarray:
    """Return the indices of the columns of ``x`` without missing values."""

    return np.flatnonzero(np.isfinite(x).all(axis=0))


def principal_component_factors(xbal: np.ndarray, nfac: int) -> np.ndarray:
    """Principal component scores of a balanced panel.

    The first ``nfac`` right singular vectors of ``xbal`` serve as
    loadings and the factors are ``xbal`` projected on them.
    """

    _, _, Vt = svd(xbal, full_matrices=False)
    return xbal @ Vt[:nfac].T
