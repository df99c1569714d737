"""Tests for the truncated normal distribution."""

import math

import numpy as np
import pytest
from scipy import stats

from src.errors import InvalidInputError
from src.projections.truncated_normal import TruncatedNormalParams, truncation_mass


def _scipy_equivalent(params):
    return stats.truncnorm(
        params.alpha, params.beta, loc=params.mu, scale=params.sigma
    )


# ── Construction ─────────────────────────────────────────────────────


class TestConstruction:
    def test_valid_params(self):
        params = TruncatedNormalParams(15.0, 5.0, 0.0, 40.0)
        assert params.alpha == pytest.approx(-3.0)
        assert params.beta == pytest.approx(5.0)

    def test_unbounded_defaults(self):
        params = TruncatedNormalParams(0.0, 1.0)
        assert params.a == -math.inf
        assert params.b == math.inf
        assert params.mass == pytest.approx(1.0)

    @pytest.mark.parametrize("sigma", [0.0, -1.0, math.nan, math.inf])
    def test_rejects_bad_sigma(self, sigma):
        with pytest.raises(InvalidInputError, match="sigma"):
            TruncatedNormalParams(0.0, sigma, -1.0, 1.0)

    def test_rejects_crossed_bounds(self):
        with pytest.raises(InvalidInputError, match="Lower bound"):
            TruncatedNormalParams(0.0, 1.0, 2.0, 2.0)

    def test_is_immutable(self):
        params = TruncatedNormalParams(0.0, 1.0)
        with pytest.raises(AttributeError):
            params.mu = 3.0


# ── Moments ──────────────────────────────────────────────────────────


class TestMoments:
    @pytest.mark.parametrize(
        "mu, sigma, a, b",
        [
            (15.0, 5.0, 0.0, 40.0),
            (2.0, 6.0, 0.0, 40.0),
            (0.0, 1.0, -1.0, 1.0),
            (10.0, 3.0, -math.inf, 11.0),
            (-4.0, 2.0, 0.0, math.inf),
        ],
    )
    def test_match_scipy(self, mu, sigma, a, b):
        params = TruncatedNormalParams(mu, sigma, a, b)
        ref = _scipy_equivalent(params)
        assert params.mean() == pytest.approx(ref.mean(), rel=1e-9, abs=1e-9)
        assert params.variance() == pytest.approx(ref.var(), rel=1e-7, abs=1e-9)

    def test_untruncated_moments(self):
        params = TruncatedNormalParams(3.0, 2.0)
        assert params.mean() == pytest.approx(3.0)
        assert params.variance() == pytest.approx(4.0)
        assert params.std() == pytest.approx(2.0)

    def test_mean_within_bounds(self):
        params = TruncatedNormalParams(-20.0, 3.0, 0.0, 10.0)
        assert 0.0 <= params.mean() <= 10.0


# ── Degenerate window ────────────────────────────────────────────────


class TestDegenerateWindow:
    def test_far_tail_window_collapses_to_midpoint(self):
        params = TruncatedNormalParams(0.0, 1.0, 50.0, 52.0)
        assert params.is_degenerate
        assert params.mean() == pytest.approx(51.0)
        assert params.variance() == 0.0
        assert params.quantile(0.3) == pytest.approx(51.0)

    def test_degenerate_quantile_array(self):
        params = TruncatedNormalParams(0.0, 1.0, 40.0, 42.0)
        out = params.quantile(np.array([0.1, 0.5, 0.9]))
        assert np.allclose(out, 41.0)

    def test_truncation_mass_upper_tail_accurate(self):
        # Phi(beta) - Phi(alpha) would cancel to 0 here in the lower form
        mass = truncation_mass(8.0, 9.0)
        assert mass > 0
        assert mass == pytest.approx(stats.norm.sf(8.0) - stats.norm.sf(9.0), rel=1e-6)


# ── Quantile / CDF ───────────────────────────────────────────────────


class TestQuantile:
    def test_inverts_cdf(self):
        params = TruncatedNormalParams(15.0, 5.0, 0.0, 40.0)
        for p in [0.01, 0.1, 0.5, 0.9, 0.99]:
            assert params.cdf(params.quantile(p)) == pytest.approx(p, abs=1e-10)

    def test_matches_scipy_ppf(self):
        params = TruncatedNormalParams(2.0, 6.0, 0.0, 40.0)
        ref = _scipy_equivalent(params)
        p = np.array([0.05, 0.25, 0.5, 0.75, 0.95])
        assert np.allclose(params.quantile(p), ref.ppf(p), atol=1e-8)

    def test_upper_tail_window(self):
        params = TruncatedNormalParams(0.0, 1.0, 4.0, 6.0)
        ref = _scipy_equivalent(params)
        assert params.quantile(0.5) == pytest.approx(ref.ppf(0.5), abs=1e-8)

    def test_endpoints_are_bounds(self):
        params = TruncatedNormalParams(15.0, 5.0, 0.0, 40.0)
        assert params.quantile(0.0) == pytest.approx(0.0)
        assert params.quantile(1.0) == pytest.approx(40.0)

    def test_vectorized_shape(self):
        params = TruncatedNormalParams(15.0, 5.0, 0.0, 40.0)
        out = params.quantile(np.linspace(0.01, 0.99, 7))
        assert out.shape == (7,)
        assert np.all(np.diff(out) > 0)

    def test_ppf_alias(self):
        params = TruncatedNormalParams(15.0, 5.0, 0.0, 40.0)
        assert params.ppf(0.3) == params.quantile(0.3)

    @pytest.mark.parametrize("p", [-0.1, 1.1, math.nan])
    def test_rejects_out_of_range(self, p):
        params = TruncatedNormalParams(15.0, 5.0, 0.0, 40.0)
        with pytest.raises(InvalidInputError):
            params.quantile(p)

    def test_cdf_outside_support(self):
        params = TruncatedNormalParams(15.0, 5.0, 0.0, 40.0)
        assert params.cdf(-1.0) == 0.0
        assert params.cdf(41.0) == 1.0

    def test_pdf_zero_outside_support(self):
        params = TruncatedNormalParams(15.0, 5.0, 0.0, 40.0)
        assert params.pdf(-1.0) == 0.0
        assert params.pdf(15.0) > 0


# ── Sampling ─────────────────────────────────────────────────────────


class TestSample:
    def test_samples_within_bounds(self):
        params = TruncatedNormalParams(2.0, 6.0, 0.0, 10.0)
        draws = params.sample(np.random.default_rng(1), 5000)
        assert draws.min() >= 0.0
        assert draws.max() <= 10.0

    def test_sample_mean_matches(self):
        params = TruncatedNormalParams(2.0, 6.0, 0.0, 40.0)
        draws = params.sample(np.random.default_rng(7), 40000)
        se = params.std() / math.sqrt(len(draws))
        assert abs(draws.mean() - params.mean()) < 5 * se

    def test_same_seed_same_draws(self):
        params = TruncatedNormalParams(15.0, 5.0, 0.0, 40.0)
        a = params.sample(np.random.default_rng(3), 10)
        b = params.sample(np.random.default_rng(3), 10)
        assert np.array_equal(a, b)
