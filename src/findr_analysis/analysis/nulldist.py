"""Null distributions of Findr log-likelihood ratios.

Under the null hypothesis of every test, ``1 - exp(-2 llr)`` follows a Beta
distribution whose shape parameters depend only on the number of samples and
the number of genotype groups. The LBeta distribution describes ``llr``
itself.
"""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np
from scipy import special, stats

TESTS = ("corr", "link", "med", "relev", "pleio")

# Test number used in the literature for each test name
TEST_NUMBERS = {"corr": 0, "link": 2, "med": 3, "relev": 4, "pleio": 5}

_X_TINY = np.finfo(float).tiny
_X_MAX = 1.0 - np.finfo(float).eps


def llr_to_x(llr: np.ndarray | float) -> np.ndarray:
    """Map an LLR to the coefficient of determination ``1 - exp(-2 llr)``."""
    return -np.expm1(-2.0 * np.asarray(llr, dtype=float))


@dataclass(frozen=True)
class LBeta:
    """
    Distribution of ``-log(1 - X) / 2`` for ``X ~ Beta(alpha, beta)``.

    Attributes:
        alpha: First Beta shape parameter.
        beta: Second Beta shape parameter.
    """

    alpha: float
    beta: float

    def __post_init__(self) -> None:
        if not (self.alpha > 0 and self.beta > 0):
            raise ValueError(
                f"LBeta parameters must be positive, got alpha={self.alpha}, beta={self.beta}"
            )

    @property
    def xdist(self):
        """Beta distribution of ``1 - exp(-2 llr)``."""
        return stats.beta(self.alpha, self.beta)

    def pdf(self, llr: np.ndarray | float) -> np.ndarray:
        llr = np.asarray(llr, dtype=float)
        density = self.xdist.pdf(llr_to_x(llr)) * 2.0 * np.exp(-2.0 * llr)
        return np.where(llr >= 0, density, 0.0)

    def logpdf(self, llr: np.ndarray | float) -> np.ndarray:
        llr = np.asarray(llr, dtype=float)
        x = np.clip(llr_to_x(llr), _X_TINY, _X_MAX)
        logdensity = self.xdist.logpdf(x) + np.log(2.0) - 2.0 * llr
        return np.where(llr >= 0, logdensity, -np.inf)

    def cdf(self, llr: np.ndarray | float) -> np.ndarray:
        return self.xdist.cdf(llr_to_x(np.maximum(llr, 0.0)))

    def sf(self, llr: np.ndarray | float) -> np.ndarray:
        return self.xdist.sf(llr_to_x(np.maximum(llr, 0.0)))

    def mean(self) -> float:
        """Mean of the LLR."""
        return 0.5 * float(special.digamma(self.alpha + self.beta) - special.digamma(self.beta))

    def var(self) -> float:
        """Variance of the LLR."""
        return 0.25 * float(
            special.polygamma(1, self.beta) - special.polygamma(1, self.alpha + self.beta)
        )

    def xmoments(self) -> tuple[float, float]:
        """First two raw moments of ``1 - exp(-2 llr)``."""
        a, b = self.alpha, self.beta
        m1 = a / (a + b)
        m2 = m1 * (a + 1) / (a + b + 1)
        return m1, m2

    def rvs(self, size: int | tuple[int, ...] = 1, random_state=None) -> np.ndarray:
        x = self.xdist.rvs(size=size, random_state=random_state)
        return -0.5 * np.log1p(-x)

    @classmethod
    def from_moments(cls, mean: float, var: float) -> LBeta:
        """
        Fit by matching the mean and variance of ``1 - exp(-2 llr)``.

        Raises:
            ValueError: If no Beta distribution has these moments.
        """
        if not 0 < mean < 1:
            raise ValueError(f"Mean must be in (0, 1), got {mean}")
        if not 0 < var < mean * (1 - mean):
            raise ValueError(f"Variance must be in (0, {mean * (1 - mean)}), got {var}")
        common = mean * (1 - mean) / var - 1
        return cls(mean * common, (1 - mean) * common)


def null_params(ns: int, ng: int = 1, test: str = "corr") -> tuple[float, float]:
    """
    Beta shape parameters of the null distribution.

    Args:
        ns: Number of samples.
        ng: Number of genotype groups of the eQTL (ignored for "corr").
        test: One of "corr", "link", "med", "relev", "pleio".

    Returns:
        Tuple (alpha, beta).
    """
    if test == "corr":
        a, b = 1, ns - 2
    elif test == "link":
        a, b = ng - 1, ns - ng
    elif test == "med":
        a, b = ng - 1, ns - ng - 1
    elif test == "relev":
        a, b = ng, ns - ng - 1
    elif test == "pleio":
        a, b = 1, ns - ng - 1
    else:
        raise ValueError(f"Unknown test: {test}. Expected one of {TESTS}")

    if a <= 0 or b <= 0:
        raise ValueError(
            f"Test {test} is undefined for {ns} samples and {ng} genotype groups"
        )
    return a / 2, b / 2


def nulldist(ns: int, ng: int = 1, test: str = "corr") -> LBeta:
    """
    Null distribution of the per-sample LLR of a test.

    Args:
        ns: Number of samples.
        ng: Number of genotype groups.
        test: Test name.

    Returns:
        LBeta distribution.
    """
    return LBeta(*null_params(ns, ng, test))


def nullpval(llr: np.ndarray | float, ns: int, ng: int = 1, test: str = "corr") -> np.ndarray:
    """
    P-values of LLRs under the null distribution of a test.

    Args:
        llr: Per-sample LLRs.
        ns: Number of samples.
        ng: Number of genotype groups.
        test: Test name.

    Returns:
        P-values in [0, 1].
    """
    return nulldist(ns, ng, test).sf(llr)
