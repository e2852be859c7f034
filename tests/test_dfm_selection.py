"""Tests for UDFM.DFM.selection module.

Tests cover the Bai-Ng criterion, the Amengual-Watson dynamic factor
test and the scan over the number of factors.
"""

import warnings

import numpy as np
import pytest

from UDFM.DFM import (
    AmengualWatsonStats,
    DFMConfig,
    DFMModel,
    FactorNumberEstimateStats,
    SpecificationError,
    amengual_watson,
    bai_ng_criterion,
    print_selection_summary,
    select_factor_number,
)


def _config(T, nfac_u=1, **kwargs):
    settings = dict(
        initperiod=1,
        lastperiod=T,
        nfac_u=nfac_u,
        tol=1e-5,
        n_uarlag=1,
        n_factorlag=1,
        max_iter=2000,
    )
    settings.update(kwargs)
    return DFMConfig(**settings)


@pytest.fixture(scope="module")
def two_factor_panel():
    """100 x 30 panel with two strong factors."""
    from conftest import generate_dfm_data

    return generate_dfm_data(T=100, ns=30, nfac=2, rng=np.random.default_rng(7))


@pytest.fixture(scope="module")
def selection(two_factor_panel):
    Y = two_factor_panel["Y"]
    return select_factor_number(Y, np.ones(30), _config(100), max_nfac=3)


# ---------------------------------------------------------------------------
# Bai-Ng criterion tests
# ---------------------------------------------------------------------------


class TestBaiNgCriterion:
    """Tests for the information criterion."""

    def test_formula(self):
        nbar = 1000 / 100
        g = np.log(10) * (nbar + 100) / 1000
        expected = np.log(50.0 / 1000) + 2 * g
        assert np.isclose(bai_ng_criterion(50.0, 1000, 100, 2), expected)

    def test_min_uses_time_dimension(self):
        # nbar = 50 > nt = 20
        g = np.log(20) * (50 + 20) / 1000
        assert np.isclose(bai_ng_criterion(10.0, 1000, 20, 1), np.log(0.01) + g)

    def test_penalty_increases_with_factors(self):
        assert bai_ng_criterion(10.0, 500, 50, 3) > bai_ng_criterion(10.0, 500, 50, 2)

    def test_exact_fit_is_minus_infinity(self):
        with warnings.catch_warnings():
            warnings.simplefilter("error")
            bn = bai_ng_criterion(0.0, 1000, 100, 3)
        assert bn == -np.inf

    def test_negative_ssr(self):
        with pytest.raises(ValueError, match="ssr must be non-negative"):
            bai_ng_criterion(-1.0, 1000, 100, 1)

    @pytest.mark.parametrize("nobs, nt", [(0, 10), (100, 0), (-5, 10)])
    def test_invalid_counts(self, nobs, nt):
        with pytest.raises(ValueError, match="must be positive"):
            bai_ng_criterion(1.0, nobs, nt, 1)


# ---------------------------------------------------------------------------
# Amengual-Watson tests
# ---------------------------------------------------------------------------


class TestAmengualWatson:
    """Tests for the dynamic factor count."""

    def test_pure_noise_selects_one(self, rng):
        Y = rng.normal(size=(100, 30))
        model = DFMModel(Y, np.ones(30), _config(100, nfac_u=2, tol=1e-4, max_iter=500))
        model.estimate_factor()
        aw = amengual_watson(model, nper=1)
        assert isinstance(aw, AmengualWatsonStats)
        assert aw.bn.shape == (2,)
        assert aw.best == 1

    def test_residual_panel(self, dfm_data, dfm_config):
        inclcode = np.ones(10)
        inclcode[3] = 0
        model = DFMModel(dfm_data["Y"], inclcode, dfm_config)
        model.estimate_factor()
        aw = amengual_watson(model, nper=2)
        assert aw.nper == 2
        assert aw.resid.shape == (100, 10)
        assert np.isnan(aw.resid[:2]).all()
        assert np.isnan(aw.resid[:, 3]).all()
        assert np.isfinite(aw.resid[2:, [0, 1, 2, 4]]).all()
        assert aw.r2.shape == (2, 9)

    def test_residuals_orthogonal_to_lagged_factors(self, dfm_data, dfm_config):
        model = DFMModel(dfm_data["Y"], np.ones(10), dfm_config)
        model.estimate_factor()
        aw = amengual_watson(model, nper=1)
        X = np.column_stack([np.ones(99), model.factor[:-1]])
        np.testing.assert_allclose(X.T @ aw.resid[1:], 0.0, atol=1e-8)

    def test_short_series_dropped(self, ragged_data, dfm_config):
        Y = ragged_data["Y"].copy()
        Y[:85, 5] = np.nan
        model = DFMModel(Y, np.ones(10), dfm_config)
        # the short series is skipped by the static estimation too
        model.estimate_factor()
        aw = amengual_watson(model, nper=1)
        assert np.isnan(aw.resid[:, 5]).all()

    def test_invalid_nper(self, dfm_data, dfm_config):
        model = DFMModel(dfm_data["Y"], np.ones(10), dfm_config)
        model.estimate_factor()
        with pytest.raises(ValueError, match="nper must be positive"):
            amengual_watson(model, nper=0)
        with pytest.raises(SpecificationError, match="no estimation window"):
            amengual_watson(model, nper=99)


# ---------------------------------------------------------------------------
# Factor number scan tests
# ---------------------------------------------------------------------------


class TestSelectFactorNumber:
    """Tests for the scan over candidate factor counts."""

    def test_result_shapes(self, selection):
        assert isinstance(selection, FactorNumberEstimateStats)
        assert selection.max_nfac == 3
        assert selection.bn.shape == (3,)
        assert selection.ssr_static.shape == (3,)
        assert selection.r2_static.shape == (3, 30)
        assert selection.aw_bn.shape == (3, 3)
        assert selection.aw_r2.shape == (3, 3, 30)

    def test_dynamic_grid_nan_above_static_count(self, selection):
        for k in range(3):
            assert np.isfinite(selection.aw_bn[k, : k + 1]).all()
            assert np.isnan(selection.aw_bn[k, k + 1 :]).all()

    def test_ssr_decreases(self, selection):
        assert np.all(np.diff(selection.ssr_static) < 0)

    def test_panel_totals_per_candidate(self, selection):
        assert np.all(selection.nobs == 3000)
        assert np.all(selection.nt == 100)
        np.testing.assert_allclose(selection.tss, selection.tss[0])

    def test_recovers_two_factors(self, selection):
        assert selection.best_nfac == 2
        assert 1 <= selection.best_dynamic_nfac() <= 2

    def test_best_dynamic_nfac_bounds(self, selection):
        with pytest.raises(ValueError, match="nfac must be between"):
            selection.best_dynamic_nfac(4)

    def test_verbose_output(self, dfm_data, capsys):
        select_factor_number(dfm_data["Y"], np.ones(10), _config(100), max_nfac=2, verbose=True)
        out = capsys.readouterr().out
        assert "[1/2]" in out
        assert "[2/2]" in out

    def test_observed_factor(self, two_factor_panel):
        F = two_factor_panel["F"]
        cfg = _config(100, nfac_o=1)
        stats = select_factor_number(
            two_factor_panel["Y"], np.ones(30), cfg, max_nfac=2, observed_factor=F[:, :1]
        )
        assert stats.nfac_o == 1
        assert stats.aw_bn.shape == (2, 3)
        assert np.isfinite(stats.aw_bn[0, :2]).all()
        assert stats.best_nfac == 1

    def test_mask_applied(self, dfm_data):
        mask = np.ones((100, 10), dtype=bool)
        mask[:10, 0] = False
        stats = select_factor_number(dfm_data["Y"], np.ones(10), _config(100), 1, mask=mask)
        assert stats.nobs[0] == 990

    def test_parallel_matches_serial(self, dfm_data):
        Y = dfm_data["Y"]
        serial = select_factor_number(Y, np.ones(10), _config(100), max_nfac=2)
        parallel = select_factor_number(Y, np.ones(10), _config(100), max_nfac=2, n_jobs=2)
        np.testing.assert_allclose(parallel.bn, serial.bn)
        np.testing.assert_allclose(parallel.aw_bn, serial.aw_bn, equal_nan=True)

    def test_invalid_max_nfac(self, dfm_data):
        with pytest.raises(ValueError, match="max_nfac"):
            select_factor_number(dfm_data["Y"], np.ones(10), _config(100), max_nfac=0)


class TestSelectionSummary:
    """Tests for print_selection_summary."""

    def test_summary_table(self, capsys):
        stats = FactorNumberEstimateStats(
            nfac_o=0,
            bn=np.array([-1.0, -2.0, -1.5]),
            ssr_static=np.array([30.0, 10.0, 9.0]),
            r2_static=np.full((3, 4), 0.5),
            aw_bn=np.array(
                [[-1.0, np.nan, np.nan], [-1.2, -1.1, np.nan], [-1.0, -1.3, -1.2]]
            ),
            aw_ssr=np.full((3, 3), np.nan),
            aw_r2=np.full((3, 3, 4), np.nan),
            tss=np.full(3, 40.0),
            nobs=np.full(3, 400),
            nt=np.full(3, 100),
        )
        assert stats.best_nfac == 2
        assert stats.best_dynamic_nfac() == 1
        assert stats.best_dynamic_nfac(3) == 2
        print_selection_summary(stats)
        out = capsys.readouterr().out
        assert "Bai-Ng" in out
        assert "Selected: nfac=2, dynamic factors=1" in out
