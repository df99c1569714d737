"""Truncated normal distribution with closed-form moments.

Parameters ``(mu, sigma, a, b)`` describe a normal ``N(mu, sigma**2)``
restricted to ``[a, b]`` and renormalized by the truncation mass
``Z = Phi(beta) - Phi(alpha)``. Mean and variance are computed from the
parameters on every call and are never stored, so they cannot drift apart.
"""

import math
from dataclasses import dataclass

import numpy as np
from scipy import special

from src.errors import InvalidInputError
from src.projections.config import MIN_TRUNCATION_MASS

_SQRT_2PI = math.sqrt(2.0 * math.pi)


# ------------------------------------------------------------------
# Standard normal helpers
# ------------------------------------------------------------------


def normal_pdf(x):
    """Standard normal density (scalar or array)."""
    x = np.asarray(x, dtype=float)
    return np.exp(-0.5 * x * x) / _SQRT_2PI


def normal_cdf(x):
    """Standard normal CDF via scipy's erfc-based ``ndtr``."""
    return special.ndtr(x)


def normal_ppf(u):
    """Standard normal quantile via scipy's ``ndtri``."""
    return special.ndtri(u)


def _x_pdf(x: float) -> float:
    """``x * phi(x)``, taken as 0 at infinite ``x``."""
    if not math.isfinite(x):
        return 0.0
    return x * math.exp(-0.5 * x * x) / _SQRT_2PI


def _pdf(x: float) -> float:
    if not math.isfinite(x):
        return 0.0
    return math.exp(-0.5 * x * x) / _SQRT_2PI


def truncation_mass(alpha: float, beta: float) -> float:
    """``Phi(beta) - Phi(alpha)``, evaluated in the tail it is accurate in."""
    if alpha > 0:
        return float(special.ndtr(-alpha) - special.ndtr(-beta))
    return float(special.ndtr(beta) - special.ndtr(alpha))


# ------------------------------------------------------------------
# Distribution
# ------------------------------------------------------------------


@dataclass(frozen=True)
class TruncatedNormalParams:
    """Truncated normal parameters.

    Attributes:
        mu: Location of the parent normal.
        sigma: Scale of the parent normal (``> 0``).
        a: Lower support bound (may be ``-inf``).
        b: Upper support bound (may be ``inf``; ``a < b``).
    """

    mu: float
    sigma: float
    a: float = -math.inf
    b: float = math.inf

    def __post_init__(self):
        if not math.isfinite(self.mu):
            raise InvalidInputError(f"mu must be finite, got {self.mu!r}")
        if not math.isfinite(self.sigma) or not self.sigma > 0:
            raise InvalidInputError(f"sigma must be positive, got {self.sigma!r}")
        if math.isnan(self.a) or math.isnan(self.b) or not self.a < self.b:
            raise InvalidInputError(
                f"Lower bound must be less than upper bound (a={self.a!r}, b={self.b!r})"
            )

    @property
    def alpha(self) -> float:
        return (self.a - self.mu) / self.sigma

    @property
    def beta(self) -> float:
        return (self.b - self.mu) / self.sigma

    @property
    def mass(self) -> float:
        """Truncation mass ``Z``."""
        return truncation_mass(self.alpha, self.beta)

    @property
    def is_degenerate(self) -> bool:
        return self.mass < MIN_TRUNCATION_MASS

    def _point_mass(self) -> float:
        """Where the distribution collapses when the window holds no mass."""
        if math.isfinite(self.a) and math.isfinite(self.b):
            return 0.5 * (self.a + self.b)
        return self.a if math.isfinite(self.a) else self.b

    # ------------------------------------------------------------------
    # Moments
    # ------------------------------------------------------------------

    def mean(self) -> float:
        if self.is_degenerate:
            return self._point_mass()
        alpha, beta, z = self.alpha, self.beta, self.mass
        return self.mu + self.sigma * (_pdf(alpha) - _pdf(beta)) / z

    def variance(self) -> float:
        if self.is_degenerate:
            return 0.0
        alpha, beta, z = self.alpha, self.beta, self.mass
        lam = (_pdf(alpha) - _pdf(beta)) / z
        delta = (_x_pdf(alpha) - _x_pdf(beta)) / z
        return max(0.0, self.sigma * self.sigma * (1.0 + delta - lam * lam))

    def std(self) -> float:
        return math.sqrt(self.variance())

    # ------------------------------------------------------------------
    # Distribution functions
    # ------------------------------------------------------------------

    def pdf(self, x):
        x = np.asarray(x, dtype=float)
        if self.is_degenerate:
            return np.zeros_like(x)
        dens = normal_pdf((x - self.mu) / self.sigma) / (self.sigma * self.mass)
        out = np.where((x >= self.a) & (x <= self.b), dens, 0.0)
        return float(out) if out.ndim == 0 else out

    def cdf(self, x):
        x = np.asarray(x, dtype=float)
        if self.is_degenerate:
            out = np.where(x < self._point_mass(), 0.0, 1.0)
        else:
            raw = (normal_cdf((x - self.mu) / self.sigma) - normal_cdf(self.alpha)) / self.mass
            out = np.clip(raw, 0.0, 1.0)
            out = np.where(x <= self.a, 0.0, np.where(x >= self.b, 1.0, out))
        return float(out) if out.ndim == 0 else out

    def quantile(self, p):
        """Inverse CDF for a probability or an array of probabilities.

        Raises:
            InvalidInputError: If any ``p`` lies outside ``[0, 1]``.
        """
        p_arr = np.asarray(p, dtype=float)
        if np.any(np.isnan(p_arr)) or np.any((p_arr < 0.0) | (p_arr > 1.0)):
            raise InvalidInputError(f"Quantile levels must lie in [0, 1], got {p!r}")

        if self.is_degenerate:
            out = np.full_like(p_arr, self._point_mass())
        else:
            alpha, beta = self.alpha, self.beta
            if alpha > 0:
                # Window sits in the upper tail: invert the survival function
                sa, sb = special.ndtr(-alpha), special.ndtr(-beta)
                out = self.mu - self.sigma * special.ndtri(sa - p_arr * (sa - sb))
            else:
                fa, fb = special.ndtr(alpha), special.ndtr(beta)
                out = self.mu + self.sigma * special.ndtri(fa + p_arr * (fb - fa))
            out = np.clip(out, self.a, self.b)

        return float(out) if out.ndim == 0 else out

    ppf = quantile

    def sample(self, rng: np.random.Generator, size=None):
        """Inverse-transform sampling with an explicit generator."""
        return self.quantile(rng.random(size))
