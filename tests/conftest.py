"""Shared pytest fixtures for UDFM tests.

This module provides common fixtures used across all test modules,
including synthetic panel generators and model factories.
"""

import numpy as np
import pytest

# ---------------------------------------------------------------------------
# Data generation fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def rng():
    """Provide a seeded random number generator for reproducibility."""
    return np.random.default_rng(42)


def generate_dfm_data(
    T: int,
    ns: int,
    nfac: int,
    rng: np.random.Generator,
    noise_scale: float = 0.1,
    ar_coef: float = 0.5,
) -> dict:
    """Generate a synthetic panel ``Y = F L' + noise``.

    Parameters
    ----------
    T : int
        Number of time periods.
    ns : int
        Number of series.
    nfac : int
        Number of factors.
    rng : np.random.Generator
        Random number generator.
    noise_scale : float, default 0.1
        Scale of idiosyncratic noise.
    ar_coef : float, default 0.5
        AR(1) coefficient of every factor.

    Returns
    -------
    dict
        Dictionary with keys: Y, F, L.
    """
    L = rng.normal(size=(ns, nfac))
    F = np.zeros((T, nfac))
    F[0] = rng.normal(size=nfac)
    for t in range(1, T):
        F[t] = ar_coef * F[t - 1] + rng.normal(size=nfac)
    Y = F @ L.T + noise_scale * rng.normal(size=(T, ns))
    return {"Y": Y, "F": F, "L": L}


@pytest.fixture
def dfm_data(rng):
    """100 x 10 panel driven by two factors."""
    return generate_dfm_data(T=100, ns=10, nfac=2, rng=rng)


@pytest.fixture
def ragged_data(dfm_data):
    """Panel with a ragged edge and scattered missing observations."""
    Y = dfm_data["Y"].copy()
    Y[:15, 7] = np.nan  # late starter
    Y[-5:, 8] = np.nan  # publication lag
    Y[[10, 40, 41, 80], 9] = np.nan
    return {**dfm_data, "Y": Y}


# ---------------------------------------------------------------------------
# Model fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def dfm_config():
    """Two-factor configuration over the full 100-period sample."""
    from UDFM.DFM import DFMConfig

    return DFMConfig(
        initperiod=1,
        lastperiod=100,
        nfac_u=2,
        tol=1e-8,
        nt_min_factor_estimation=20,
        nt_min_factorloading_estimation=20,
        n_uarlag=2,
        n_factorlag=1,
        max_iter=1000,
    )


@pytest.fixture
def fitted_model(dfm_data, dfm_config):
    """DFMModel with factors, loadings and VAR estimated."""
    from UDFM.DFM import DFMModel

    model = DFMModel(dfm_data["Y"], np.ones(10), dfm_config)
    model.fit()
    return model
