"""Exceptions and warnings raised by the DFM routines."""

from __future__ import annotations

import numpy as np


class DFMError(Exception):
    """Base class for all errors raised by :mod:`UDFM`."""


class DimensionError(DFMError, ValueError):
    """Array shapes are incompatible (e.g. different row counts)."""


class SpecificationError(DFMError, ValueError):
    """Model configuration violates an invariant."""


class EstimationError(DFMError):
    """Estimation cannot proceed with the data at hand."""


class CholeskyError(DFMError, np.linalg.LinAlgError):
    """A covariance matrix is not positive definite.

    Parameters
    ----------
    matrix_name : str
        Name of the matrix whose Cholesky factorisation failed.
    """

    def __init__(self, matrix_name: str, message: str | None = None) -> None:
        self.matrix_name = matrix_name
        if message is None:
            message = f"Cholesky factorisation of '{matrix_name}' failed: matrix is not positive definite"
        super().__init__(message)


class ConvergenceWarning(UserWarning):
    """Iteration cap reached before the convergence criterion was met."""
