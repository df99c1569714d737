"""Truncated-normal parameter recovery from sparse quantile observations.

Given two or more ``(percentile, value)`` pairs and support bounds
``[a, b]``, solve for ``(mu, sigma)`` so that the truncated-normal quantile
function reproduces every observed value. The solver is Gauss-Newton with
Levenberg-Marquardt damping and an Armijo backtracking line search. When it
fails to converge the fit degrades to a method-of-moments estimate instead
of raising.
"""

import logging
import math
from dataclasses import dataclass
from typing import Iterable, Optional, Sequence, Tuple, Union

import numpy as np
from scipy import special

from src.errors import InvalidInputError
from src.projections.config import (
    ARMIJO_CONSTANT,
    BOUND_REPAIR_GAP,
    CEILING_PERCENTILE,
    DEFAULT_SUPPORT,
    FINITE_DIFFERENCE_STEP,
    FIT_MAX_BACKTRACKS,
    FIT_MAX_ITERATIONS,
    FIT_TOLERANCE,
    FLOOR_PERCENTILE,
    LM_INITIAL_DAMPING,
    MEDIAN_PERCENTILE,
    MIN_SIGMA,
    POSITION_SUPPORT,
)
from src.projections.truncated_normal import TruncatedNormalParams, normal_pdf

logger = logging.getLogger(__name__)

GRADIENT_METHODS = ("analytic", "finite_difference")

# Smallest density used when dividing by phi(w) in the Jacobian
_MIN_DENSITY = 1e-12


@dataclass(frozen=True)
class QuantileObservation:
    """A single observed quantile, e.g. ``QuantileObservation(0.9, 21.4)``."""

    percentile: float
    value: float


QuantileLike = Union[QuantileObservation, Tuple[float, float]]


@dataclass(frozen=True)
class FitResult:
    """Outcome of a truncated-normal fit.

    ``method`` is ``"gauss_newton"`` for a solver result and ``"moments"``
    when the fit fell back to the method-of-moments estimate.
    """

    params: TruncatedNormalParams
    converged: bool
    iterations: int
    residual_norm: float
    method: str
    message: str = ""

    @property
    def mean(self) -> float:
        return self.params.mean()

    @property
    def variance(self) -> float:
        return self.params.variance()


# ------------------------------------------------------------------
# Public API
# ------------------------------------------------------------------


def fit_truncated_normal(
    quantiles: Iterable[QuantileLike],
    lower: float,
    upper: float,
    *,
    max_iterations: int = FIT_MAX_ITERATIONS,
    tolerance: float = FIT_TOLERANCE,
    gradient: str = "analytic",
    fit_bounds: bool = False,
    initial: Optional[Tuple[float, float]] = None,
) -> FitResult:
    """Fit ``(mu, sigma)`` of a truncated normal on ``[lower, upper]``.

    Args:
        quantiles: Two or more ``(percentile, value)`` pairs with
            percentiles strictly inside ``(0, 1)``.
        lower: Lower support bound ``a``.
        upper: Upper support bound ``b``.
        max_iterations: Iteration budget for the solver.
        tolerance: Convergence threshold on the residual norm and on its
            change between iterations.
        gradient: ``"analytic"`` (chain rule through the normal CDF and
            quantile) or ``"finite_difference"``.
        fit_bounds: Also refine ``a`` and ``b`` starting from the given
            bounds. Requires finite bounds.
        initial: Optional ``(mu, sigma)`` starting point.

    Returns:
        A :class:`FitResult`. Never raises for numerical trouble; a failed
        solve is reported with ``converged=False`` and ``method="moments"``.

    Raises:
        InvalidInputError: Fewer than two quantiles, a percentile outside
            ``(0, 1)``, non-finite values, ``lower >= upper`` or an unknown
            gradient method.
    """
    percentiles, values = _normalize_quantiles(quantiles)
    _validate_bounds(lower, upper)
    if gradient not in GRADIENT_METHODS:
        raise InvalidInputError(
            f"Invalid gradient method: {gradient!r}. Must be one of {GRADIENT_METHODS}."
        )
    if fit_bounds and not (math.isfinite(lower) and math.isfinite(upper)):
        raise InvalidInputError("fit_bounds requires finite lower and upper bounds")

    if initial is None:
        mu0, sigma0 = _moments_estimate(percentiles, values)
    else:
        mu0, sigma0 = float(initial[0]), float(initial[1])
        if not sigma0 > 0:
            raise InvalidInputError(f"Initial sigma must be positive, got {sigma0!r}")

    theta = np.array([mu0, sigma0] + ([lower, upper] if fit_bounds else []), dtype=float)
    solver = _GaussNewtonSolver(percentiles, values, lower, upper, gradient, fit_bounds)
    result = solver.solve(theta, max_iterations, tolerance)

    if result is not None:
        logger.debug(
            "TN fit converged in %d iterations (mu=%.3f, sigma=%.3f, residual=%.2e)",
            result.iterations, result.params.mu, result.params.sigma, result.residual_norm,
        )
        return result

    fallback = _moments_fallback(percentiles, values, lower, upper, solver.iterations)
    logger.warning(
        "TN fit did not converge after %d iterations; using method-of-moments "
        "estimate (mu=%.3f, sigma=%.3f)",
        solver.iterations, fallback.params.mu, fallback.params.sigma,
    )
    return fallback


def position_bounds(position: str, floor: float, ceiling: float) -> Tuple[float, float]:
    """Support bounds implied by a position and its floor/ceiling.

    The lower bound is the position's absolute point floor (kept strictly
    below the observed floor); the upper bound is a multiple of the ceiling
    with a minimum padding above it.
    """
    support = POSITION_SUPPORT.get(position, DEFAULT_SUPPORT)
    lower = min(support["lower"], floor - 1.0)
    upper = max(ceiling * support["upper_multiplier"], ceiling + support["upper_padding"])
    return lower, upper


def fit_from_fantasy_quantiles(
    floor: float,
    median: float,
    ceiling: float,
    position: str,
    lower: Optional[float] = None,
    upper: Optional[float] = None,
    **fit_kwargs,
) -> FitResult:
    """Fit a truncated normal to a floor (p10) / median (p50) / ceiling (p90) triple.

    Bounds default to :func:`position_bounds`.

    Raises:
        InvalidInputError: If ``floor <= median <= ceiling`` does not hold.
    """
    if not floor <= median <= ceiling:
        raise InvalidInputError(
            f"Expected floor <= median <= ceiling, got "
            f"{floor!r} / {median!r} / {ceiling!r} ({position})"
        )
    default_lower, default_upper = position_bounds(position, floor, ceiling)
    lower = default_lower if lower is None else lower
    upper = default_upper if upper is None else upper

    return fit_truncated_normal(
        [
            (FLOOR_PERCENTILE, floor),
            (MEDIAN_PERCENTILE, median),
            (CEILING_PERCENTILE, ceiling),
        ],
        lower,
        upper,
        **fit_kwargs,
    )


# ------------------------------------------------------------------
# Solver
# ------------------------------------------------------------------


class _GaussNewtonSolver:
    """Damped Gauss-Newton on the quantile residuals.

    The parameter vector is ``[mu, sigma]``, or ``[mu, sigma, a, b]`` when
    the bounds are refined as well.
    """

    def __init__(
        self,
        percentiles: np.ndarray,
        values: np.ndarray,
        lower: float,
        upper: float,
        gradient: str,
        fit_bounds: bool,
    ):
        self.p = percentiles
        self.v = values
        self.lower = lower
        self.upper = upper
        self.gradient = gradient
        self.fit_bounds = fit_bounds
        self.iterations = 0

    def solve(
        self, theta: np.ndarray, max_iterations: int, tolerance: float
    ) -> Optional[FitResult]:
        """Run the iteration; ``None`` means the caller should fall back."""
        residuals = self._residuals(theta)
        if residuals is None:
            return None
        cost = 0.5 * float(residuals @ residuals)
        damping = LM_INITIAL_DAMPING

        for iteration in range(1, max_iterations + 1):
            self.iterations = iteration
            norm = math.sqrt(2.0 * cost)
            if norm < tolerance:
                return self._result(theta, norm, iteration, "residual below tolerance")

            jac = self._jacobian(theta, residuals)
            grad = jac.T @ residuals
            normal_matrix = jac.T @ jac
            scaling = np.diag(np.maximum(np.diag(normal_matrix), _MIN_DENSITY))
            try:
                delta = np.linalg.solve(normal_matrix + damping * scaling, -grad)
            except np.linalg.LinAlgError:
                logger.debug("Singular normal equations at iteration %d", iteration)
                return None

            slope = float(grad @ delta)
            if not slope < 0:
                # Not a descent direction; use steepest descent for this step
                delta = -grad
                slope = -float(grad @ grad)

            step = 1.0
            accepted = None
            for _ in range(FIT_MAX_BACKTRACKS):
                candidate = self._repair(theta + step * delta)
                if candidate is not None:
                    trial = self._residuals(candidate)
                    if trial is not None:
                        trial_cost = 0.5 * float(trial @ trial)
                        if trial_cost <= cost + ARMIJO_CONSTANT * step * slope:
                            accepted = (candidate, trial, trial_cost)
                            break
                step *= 0.5

            if accepted is None:
                # No sufficient decrease: a least-squares optimum if the
                # gradient has vanished, otherwise a failed solve.
                if float(np.linalg.norm(grad)) <= math.sqrt(tolerance) * max(1.0, norm):
                    return self._result(theta, norm, iteration, "stationary point")
                return None

            theta, residuals, new_cost = accepted
            new_norm = math.sqrt(2.0 * new_cost)
            change = abs(norm - new_norm)
            cost = new_cost

            if step == 1.0:
                damping = max(damping * 0.5, 1e-12)
            else:
                damping = min(damping * 4.0, 1e6)

            if new_norm < tolerance or change < tolerance:
                return self._result(theta, new_norm, iteration, "residual change below tolerance")

        return None

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _params(self, theta: np.ndarray) -> Optional[TruncatedNormalParams]:
        if self.fit_bounds:
            a, b = theta[2], theta[3]
        else:
            a, b = self.lower, self.upper
        try:
            return TruncatedNormalParams(float(theta[0]), float(theta[1]), float(a), float(b))
        except InvalidInputError:
            return None

    def _residuals(self, theta: np.ndarray) -> Optional[np.ndarray]:
        params = self._params(theta)
        if params is None:
            return None
        residuals = np.asarray(params.quantile(self.p), dtype=float) - self.v
        if not np.all(np.isfinite(residuals)):
            return None
        return residuals

    def _repair(self, theta: np.ndarray) -> Optional[np.ndarray]:
        """Reject ``sigma <= 0``; re-center crossed bounds."""
        if not theta[1] > MIN_SIGMA:
            return None
        if self.fit_bounds and theta[2] >= theta[3]:
            theta = theta.copy()
            mid = 0.5 * (theta[2] + theta[3])
            gap = 0.5 * abs(theta[3] - theta[2]) + BOUND_REPAIR_GAP
            theta[2], theta[3] = mid - gap, mid + gap
        return theta

    def _jacobian(self, theta: np.ndarray, residuals: np.ndarray) -> np.ndarray:
        if self.gradient == "finite_difference":
            return self._finite_difference_jacobian(theta, residuals)
        return self._analytic_jacobian(theta)

    def _analytic_jacobian(self, theta: np.ndarray) -> np.ndarray:
        """Chain rule through ``q = mu + sigma * Phi^-1(Phi(alpha) + p * Z)``."""
        params = self._params(theta)
        p = self.p
        alpha, beta = params.alpha, params.beta
        phi_a = float(normal_pdf(alpha)) if math.isfinite(alpha) else 0.0
        phi_b = float(normal_pdf(beta)) if math.isfinite(beta) else 0.0
        a_phi_a = alpha * phi_a if math.isfinite(alpha) else 0.0
        b_phi_b = beta * phi_b if math.isfinite(beta) else 0.0

        w = (np.asarray(params.quantile(p), dtype=float) - params.mu) / params.sigma
        phi_w = np.maximum(normal_pdf(w), _MIN_DENSITY)

        d_mu = 1.0 - ((1.0 - p) * phi_a + p * phi_b) / phi_w
        d_sigma = w - ((1.0 - p) * a_phi_a + p * b_phi_b) / phi_w
        columns = [d_mu, d_sigma]
        if self.fit_bounds:
            columns.append((1.0 - p) * phi_a / phi_w)
            columns.append(p * phi_b / phi_w)
        return np.column_stack(columns)

    def _finite_difference_jacobian(
        self, theta: np.ndarray, residuals: np.ndarray
    ) -> np.ndarray:
        jac = np.zeros((len(residuals), len(theta)))
        for j in range(len(theta)):
            h = FINITE_DIFFERENCE_STEP * max(1.0, abs(theta[j]))
            shifted = theta.copy()
            shifted[j] += h
            trial = self._residuals(shifted)
            if trial is None:
                # Step left the valid region; difference backwards instead
                shifted[j] = theta[j] - h
                trial = self._residuals(shifted)
                if trial is None:
                    continue
                jac[:, j] = (residuals - trial) / h
            else:
                jac[:, j] = (trial - residuals) / h
        return jac

    def _result(
        self, theta: np.ndarray, norm: float, iteration: int, message: str
    ) -> FitResult:
        return FitResult(
            params=self._params(theta),
            converged=True,
            iterations=iteration,
            residual_norm=norm,
            method="gauss_newton",
            message=message,
        )


# ------------------------------------------------------------------
# Input handling and fallback
# ------------------------------------------------------------------


def _normalize_quantiles(quantiles: Iterable[QuantileLike]) -> Tuple[np.ndarray, np.ndarray]:
    pairs = []
    for q in quantiles:
        if isinstance(q, QuantileObservation):
            pairs.append((float(q.percentile), float(q.value)))
        else:
            p, value = q
            pairs.append((float(p), float(value)))

    if len(pairs) < 2:
        raise InvalidInputError(f"Need at least 2 quantiles to fit, got {len(pairs)}")

    pairs.sort()
    percentiles = np.array([p for p, _ in pairs])
    values = np.array([v for _, v in pairs])

    if np.any((percentiles <= 0.0) | (percentiles >= 1.0)):
        raise InvalidInputError(
            f"Percentiles must lie strictly inside (0, 1), got {percentiles.tolist()}"
        )
    if len(np.unique(percentiles)) != len(percentiles):
        raise InvalidInputError(f"Duplicate percentiles: {percentiles.tolist()}")
    if not np.all(np.isfinite(values)):
        raise InvalidInputError(f"Quantile values must be finite, got {values.tolist()}")
    return percentiles, values


def _validate_bounds(lower: float, upper: float) -> None:
    if math.isnan(lower) or math.isnan(upper) or not lower < upper:
        raise InvalidInputError(
            f"Lower bound must be less than upper bound (a={lower!r}, b={upper!r})"
        )


def _moments_estimate(percentiles: Sequence[float], values: Sequence[float]) -> Tuple[float, float]:
    """Untruncated normal matched to the observed quantiles.

    ``sigma`` comes from the spread of the outermost quantiles and ``mu``
    is the least-squares location given that ``sigma``.
    """
    z = special.ndtri(np.asarray(percentiles))
    values = np.asarray(values)
    spread = z[-1] - z[0]
    sigma = (values[-1] - values[0]) / spread if spread > 0 else 0.0
    sigma = max(float(sigma), 1e-2)
    mu = float(np.mean(values - sigma * z))
    return mu, sigma


def _moments_fallback(
    percentiles: np.ndarray,
    values: np.ndarray,
    lower: float,
    upper: float,
    iterations: int,
) -> FitResult:
    mu, sigma = _moments_estimate(percentiles, values)
    params = TruncatedNormalParams(mu, sigma, lower, upper)
    residuals = np.asarray(params.quantile(percentiles), dtype=float) - values
    return FitResult(
        params=params,
        converged=False,
        iterations=iterations,
        residual_norm=float(np.linalg.norm(residuals)),
        method="moments",
        message="solver did not converge; method-of-moments estimate",
    )
