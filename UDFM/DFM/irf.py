"""Impulse responses from the companion state-space form of a VAR."""

from __future__ import annotations

from typing import Sequence, Union

import numpy as np

from .dynamics import VARModel

ALL_SHOCKS = "all"

ShockSpec = Union[int, Sequence[int], str]


def _response_path(M: np.ndarray, Q: np.ndarray, impulse: np.ndarray, horizon: int) -> np.ndarray:
    out = np.empty((Q.shape[0], horizon))
    state = impulse
    for h in range(horizon):
        out[:, h] = Q @ state
        state = M @ state
    return out


def impulse_response(var: VARModel, horizon: int, shock: ShockSpec = ALL_SHOCKS) -> np.ndarray:
    """Propagate unit structural shocks through ``z_t = M z_{t-1} + G u_t``.

    The impulse of shock ``j`` is column ``j`` of ``G``; the response at
    step ``h`` (``h = 0`` is the impact period) is ``Q M^h G[:, j]``.

    Parameters
    ----------
    var : VARModel
        Fitted VAR.
    horizon : int
        Number of periods, including the impact period.
    shock : int, sequence of int or ``"all"``
        A single shock index gives an array ``(ns, horizon)``; a sequence
        of indices or ``"all"`` gives ``(ns, horizon, nshock)``.
    """

    if horizon <= 0:
        raise ValueError("horizon must be positive")
    M, Q, G = var.M, var.Q, var.G
    nshock = G.shape[1]

    if isinstance(shock, str):
        if shock != ALL_SHOCKS:
            raise ValueError(f"Unknown shock selector: {shock!r}")
        shocks = list(range(nshock))
    elif np.ndim(shock) == 0:
        idx = int(shock)
        if not 0 <= idx < nshock:
            raise IndexError(f"shock index {idx} out of range for {nshock} shocks")
        return _response_path(M, Q, G[:, idx], horizon)
    else:
        shocks = [int(s) for s in shock]

    for idx in shocks:
        if not 0 <= idx < nshock:
            raise IndexError(f"shock index {idx} out of range for {nshock} shocks")
    out = np.empty((Q.shape[0], horizon, len(shocks)))
    for k, idx in enumerate(shocks):
        out[:, :, k] = _response_path(M, Q, G[:, idx], horizon)
    return out


def series_impulse_response(
    loadings: np.ndarray, var: VARModel, horizon: int, shock: ShockSpec = ALL_SHOCKS
) -> np.ndarray:
    """Responses of the observed series, ``loadings @`` factor responses."""

    irf = impulse_response(var, horizon, shock)
    return np.einsum("if,fh...->ih...", loadings, irf)
