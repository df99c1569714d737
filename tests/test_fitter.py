"""Tests for the truncated-normal distribution fitter."""

import logging
import math

import numpy as np
import pytest

from src.errors import InvalidInputError
from src.projections.config import BOUND_REPAIR_GAP, MIN_SIGMA
from src.projections.fitter import (
    QuantileObservation,
    _GaussNewtonSolver,
    fit_from_fantasy_quantiles,
    fit_truncated_normal,
    position_bounds,
)
from src.projections.truncated_normal import TruncatedNormalParams

_LEVELS = (0.1, 0.5, 0.9)


def _quantiles_of(params, levels=_LEVELS):
    return [(p, params.quantile(p)) for p in levels]


# ── Round trip ───────────────────────────────────────────────────────


class TestRoundTrip:
    @pytest.mark.parametrize("gradient", ["analytic", "finite_difference"])
    @pytest.mark.parametrize(
        "mu, sigma, a, b",
        [
            (15.0, 5.0, 0.0, 40.0),
            (20.0, 8.0, 0.0, 60.0),
            (4.0, 6.0, 0.0, 30.0),
            (8.0, 5.0, -10.0, 45.0),
        ],
    )
    def test_recovers_parameters(self, gradient, mu, sigma, a, b):
        truth = TruncatedNormalParams(mu, sigma, a, b)
        result = fit_truncated_normal(_quantiles_of(truth), a, b, gradient=gradient)

        assert result.converged
        assert result.method == "gauss_newton"
        assert result.params.mu == pytest.approx(mu, abs=1e-3)
        assert result.params.sigma == pytest.approx(sigma, abs=1e-3)
        for p, value in _quantiles_of(truth):
            assert result.params.quantile(p) == pytest.approx(value, abs=1e-4)

    def test_accepts_observation_objects(self):
        truth = TruncatedNormalParams(15.0, 5.0, 0.0, 40.0)
        observations = [QuantileObservation(p, v) for p, v in _quantiles_of(truth)]
        result = fit_truncated_normal(observations, 0.0, 40.0)
        assert result.params.mu == pytest.approx(15.0, abs=1e-3)

    def test_two_quantiles_are_enough(self):
        truth = TruncatedNormalParams(12.0, 4.0, 0.0, 40.0)
        result = fit_truncated_normal(_quantiles_of(truth, (0.25, 0.75)), 0.0, 40.0)
        assert result.converged
        assert result.params.sigma == pytest.approx(4.0, abs=1e-3)

    def test_moments_come_from_fitted_distribution(self):
        truth = TruncatedNormalParams(15.0, 5.0, 0.0, 40.0)
        result = fit_truncated_normal(_quantiles_of(truth), 0.0, 40.0)
        assert result.mean == pytest.approx(truth.mean(), abs=1e-3)
        assert result.variance == pytest.approx(truth.variance(), abs=1e-2)


# ── Known scenario ───────────────────────────────────────────────────


class TestFantasyScenario:
    def test_symmetric_quantiles_on_zero_forty(self):
        """p10=8.59, p50=15, p90=21.41 on [0, 40] is roughly N(15, 5)."""
        result = fit_truncated_normal(
            [(0.1, 8.59), (0.5, 15.0), (0.9, 21.41)], 0.0, 40.0
        )
        assert result.converged
        assert result.params.mu == pytest.approx(15.0, abs=0.1)
        assert result.params.sigma == pytest.approx(5.0, abs=0.1)
        assert result.residual_norm < 0.05
        assert result.mean == pytest.approx(15.0, abs=0.1)

    def test_fit_from_fantasy_quantiles_uses_position_bounds(self):
        result = fit_from_fantasy_quantiles(8.59, 15.0, 21.41, "WR")
        lower, upper = position_bounds("WR", 8.59, 21.41)
        assert result.params.a == lower
        assert result.params.b == upper
        assert result.params.quantile(0.5) == pytest.approx(15.0, abs=0.05)

    def test_explicit_bounds_override(self):
        result = fit_from_fantasy_quantiles(8.59, 15.0, 21.41, "WR", lower=0.0, upper=40.0)
        assert (result.params.a, result.params.b) == (0.0, 40.0)


class TestPositionBounds:
    def test_qb_bounds(self):
        lower, upper = position_bounds("QB", 12.0, 30.0)
        assert lower == -5.0
        assert upper == pytest.approx(45.0)

    def test_lower_stays_below_floor(self):
        lower, _ = position_bounds("DST", -12.0, 10.0)
        assert lower < -12.0

    def test_upper_padding_for_small_ceiling(self):
        _, upper = position_bounds("K", 2.0, 3.0)
        assert upper == pytest.approx(13.0)

    def test_unknown_position_uses_default(self):
        lower, upper = position_bounds("LS", 1.0, 5.0)
        assert lower == -2.0
        assert upper == pytest.approx(15.0)


# ── Bound fitting ────────────────────────────────────────────────────


class TestFitBounds:
    def test_refines_bounds_and_matches_quantiles(self):
        truth = TruncatedNormalParams(10.0, 6.0, 0.0, 30.0)
        quantiles = _quantiles_of(truth, (0.05, 0.25, 0.5, 0.75, 0.95))
        result = fit_truncated_normal(quantiles, -0.5, 31.0, fit_bounds=True)

        assert result.params.a < result.params.b
        for p, value in quantiles:
            assert result.params.quantile(p) == pytest.approx(value, abs=0.05)

    def test_requires_finite_bounds(self):
        with pytest.raises(InvalidInputError, match="finite"):
            fit_truncated_normal([(0.1, 1.0), (0.9, 5.0)], 0.0, math.inf, fit_bounds=True)


class TestStepRepair:
    @staticmethod
    def _make_solver(fit_bounds=True):
        return _GaussNewtonSolver(
            np.array(_LEVELS), np.array([5.0, 10.0, 15.0]), 0.0, 20.0, "analytic", fit_bounds
        )

    def test_crossed_bounds_recentered(self):
        theta = self._make_solver()._repair(np.array([5.0, 1.0, 10.0, 9.0]))
        assert theta[2] < theta[3]
        assert 0.5 * (theta[2] + theta[3]) == pytest.approx(9.5)
        assert theta[3] - theta[2] >= BOUND_REPAIR_GAP

    def test_ordered_bounds_untouched(self):
        step = np.array([5.0, 1.0, 0.0, 20.0])
        assert np.array_equal(self._make_solver()._repair(step), step)

    @pytest.mark.parametrize("sigma", [0.0, -1.0, MIN_SIGMA])
    def test_sigma_at_or_below_minimum_rejected(self, sigma):
        assert self._make_solver()._repair(np.array([5.0, sigma, 0.0, 20.0])) is None
        assert self._make_solver(fit_bounds=False)._repair(np.array([5.0, sigma])) is None


# ── Fallback ─────────────────────────────────────────────────────────


class TestMomentsFallback:
    def test_iteration_budget_exhausted(self, caplog):
        truth = TruncatedNormalParams(2.0, 6.0, 0.0, 40.0)
        with caplog.at_level(logging.WARNING, logger="src.projections.fitter"):
            result = fit_truncated_normal(
                _quantiles_of(truth), 0.0, 40.0, max_iterations=1, tolerance=1e-15
            )

        assert not result.converged
        assert result.method == "moments"
        assert math.isfinite(result.params.mu)
        assert result.params.sigma > 0
        assert math.isfinite(result.mean) and math.isfinite(result.variance)
        assert "did not converge" in caplog.text

    def test_fallback_keeps_bounds(self):
        truth = TruncatedNormalParams(2.0, 6.0, 0.0, 40.0)
        result = fit_truncated_normal(
            _quantiles_of(truth), 0.0, 40.0, max_iterations=1, tolerance=1e-15
        )
        assert (result.params.a, result.params.b) == (0.0, 40.0)


# ── Invalid input ────────────────────────────────────────────────────


class TestInvalidInput:
    def test_single_quantile(self):
        with pytest.raises(InvalidInputError, match="at least 2"):
            fit_truncated_normal([(0.5, 10.0)], 0.0, 40.0)

    @pytest.mark.parametrize("p", [0.0, 1.0, -0.2, 1.5])
    def test_percentile_outside_open_interval(self, p):
        with pytest.raises(InvalidInputError, match="Percentiles"):
            fit_truncated_normal([(p, 1.0), (0.5, 10.0)], 0.0, 40.0)

    def test_duplicate_percentiles(self):
        with pytest.raises(InvalidInputError, match="Duplicate"):
            fit_truncated_normal([(0.5, 1.0), (0.5, 10.0)], 0.0, 40.0)

    def test_crossed_bounds(self):
        with pytest.raises(InvalidInputError, match="Lower bound"):
            fit_truncated_normal([(0.1, 1.0), (0.9, 10.0)], 40.0, 0.0)

    def test_unknown_gradient(self):
        with pytest.raises(InvalidInputError, match="gradient"):
            fit_truncated_normal([(0.1, 1.0), (0.9, 10.0)], 0.0, 40.0, gradient="newton")

    def test_bad_initial_sigma(self):
        with pytest.raises(InvalidInputError, match="Initial sigma"):
            fit_truncated_normal([(0.1, 1.0), (0.9, 10.0)], 0.0, 40.0, initial=(5.0, 0.0))

    def test_unordered_fantasy_quantiles(self):
        with pytest.raises(InvalidInputError, match="floor <= median <= ceiling"):
            fit_from_fantasy_quantiles(15.0, 10.0, 20.0, "RB")
