"""Posterior probabilities from null/real mixtures of LLRs.

The LLRs of one source against all targets are modelled as a mixture of the
known null distribution (weight pi0) and an unknown real distribution. The
posterior probability of a real effect is estimated either parametrically
(method of moments, real component LBeta) or nonparametrically (kernel
density estimate of the whole mixture).
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

import numpy as np
from scipy.optimize import isotonic_regression
from scipy.special import expit
from statsmodels.nonparametric.kde import KDEUnivariate

from findr_analysis.analysis.nulldist import LBeta, llr_to_x, nulldist
from findr_analysis.utils.config import POSTERIOR_METHODS, PosteriorConfig
from findr_analysis.utils.logging import get_logger

logger = get_logger(__name__)


def estimate_pi0(
    pvalues: np.ndarray,
    lambdas: Sequence[float] | None = None,
) -> float:
    """
    Estimate the proportion of true nulls (Storey).

    Args:
        pvalues: Null p-values.
        lambdas: Tuning values. Defaults to 0.05, 0.10, ..., 0.90.

    Returns:
        Median of the per-lambda estimates, capped at 1.
    """
    p = np.asarray(pvalues, dtype=float).ravel()
    p = p[np.isfinite(p)]
    if p.size == 0:
        return 1.0

    if lambdas is None:
        lambdas = np.arange(0.05, 0.95, 0.05)

    pi0_est = [np.mean(p > lam) / (1 - lam) for lam in lambdas]
    return float(min(np.median(pi0_est), 1.0))


def make_monotone(llr: np.ndarray, pp: np.ndarray, increasing: bool = True) -> np.ndarray:
    """Closest posterior vector (least squares) that is monotone in the LLR."""
    if pp.size < 2:
        return pp
    order = np.argsort(llr, kind="stable")
    fitted = isotonic_regression(pp[order], increasing=increasing).x
    out = np.empty_like(pp)
    out[order] = fitted
    return np.clip(out, 0.0, 1.0)


@dataclass
class MixtureDistribution:
    """Mixture ``pi0 * null + (1 - pi0) * real`` of LLR distributions."""

    pi0: float
    null: LBeta
    real: LBeta | None = None

    @property
    def has_real(self) -> bool:
        return self.real is not None and self.pi0 < 1

    def pdf(self, llr: np.ndarray) -> np.ndarray:
        density = self.pi0 * self.null.pdf(llr)
        if self.has_real:
            density = density + (1 - self.pi0) * self.real.pdf(llr)
        return density

    def posterior(self, llr: np.ndarray) -> np.ndarray:
        """Posterior probability that each LLR comes from the real component."""
        llr = np.asarray(llr, dtype=float)
        if not self.has_real:
            return np.zeros_like(llr)
        with np.errstate(divide="ignore"):
            log_real = np.log1p(-self.pi0) + self.real.logpdf(llr)
            log_null = np.log(self.pi0) + self.null.logpdf(llr)
        with np.errstate(invalid="ignore"):
            pp = expit(log_real - log_null)
        return np.nan_to_num(pp, nan=0.0)


def fit_kde(
    llr: np.ndarray,
    points: np.ndarray | None = None,
    bandwidth: str | float = "silverman",
    gridsize: int | None = None,
) -> np.ndarray:
    """
    Gaussian kernel density estimate of non-negative LLRs.

    The sample is reflected at zero so that the estimate does not lose mass
    below the boundary.

    Args:
        llr: LLR sample.
        points: Where to evaluate the density. Defaults to the sample.
        bandwidth: Bandwidth rule ("silverman", "scott", "normal_reference")
            or value.
        gridsize: Number of FFT grid points.

    Returns:
        Density at ``points``.

    Raises:
        ValueError: If the sample is empty or has no spread.
    """
    llr = np.asarray(llr, dtype=float).ravel()
    if llr.size == 0:
        raise ValueError("Cannot estimate a density from an empty sample")

    sample = np.concatenate([llr, -llr])
    if np.ptp(sample) == 0:
        raise ValueError("Cannot estimate a density from a sample without spread")

    kde = KDEUnivariate(sample)
    kde.fit(kernel="gau", bw=bandwidth, fft=True, gridsize=gridsize)

    if points is None:
        points = llr
    points = np.asarray(points, dtype=float)

    # FFT round-off can leave tiny negative values
    grid_density = np.maximum(kde.density, 0.0)
    density = 2.0 * np.interp(np.abs(points), kde.support, grid_density, left=0.0, right=0.0)
    return np.where(points >= 0, density, 0.0)


def fit_mixdist_mom(
    llr: np.ndarray,
    ns: int,
    ng: int = 1,
    test: str = "corr",
    pi0: float | None = None,
    lambdas: Sequence[float] | None = None,
) -> tuple[np.ndarray, MixtureDistribution]:
    """
    Posterior probabilities from a mixture fitted by the method of moments.

    pi0 is estimated from the null p-values. The real component is the LBeta
    distribution whose first two moments of ``1 - exp(-2 llr)`` match the
    sample moments after removing the null's share.

    Args:
        llr: Per-sample LLRs of one source against all targets.
        ns: Number of samples.
        ng: Number of genotype groups.
        test: Test name.
        pi0: Proportion of nulls. Estimated if None.
        lambdas: Storey tuning values for the pi0 estimate.

    Returns:
        Tuple of (posterior probabilities, fitted mixture). For test "med" the
        probabilities are those of the null (conditional independence).
    """
    llr = np.asarray(llr, dtype=float).ravel()
    dnull = nulldist(ns, ng, test)
    if llr.size == 0:
        return np.zeros(0), MixtureDistribution(1.0, dnull)

    if pi0 is None:
        pi0 = estimate_pi0(dnull.sf(llr), lambdas)

    mixture = _fit_real_component(llr, dnull, pi0)
    pp = make_monotone(llr, mixture.posterior(llr))

    if test == "med":
        pp = 1.0 - pp
    return pp, mixture


def _fit_real_component(llr: np.ndarray, dnull: LBeta, pi0: float) -> MixtureDistribution:
    if pi0 >= 1:
        return MixtureDistribution(1.0, dnull)

    x = llr_to_x(llr)
    null_m1, null_m2 = dnull.xmoments()
    m1 = (x.mean() - pi0 * null_m1) / (1 - pi0)
    m2 = (np.mean(x**2) - pi0 * null_m2) / (1 - pi0)

    if m1 <= null_m1:
        logger.debug("Real component does not exceed the null; no real effects")
        return MixtureDistribution(1.0, dnull)

    try:
        real = LBeta.from_moments(m1, m2 - m1**2)
    except ValueError as e:
        logger.warning(f"Moment fit of the real component failed ({e}); no real effects")
        return MixtureDistribution(1.0, dnull)

    return MixtureDistribution(pi0, dnull, real)


def fit_mixdist_kde(
    llr: np.ndarray,
    ns: int,
    ng: int = 1,
    test: str = "corr",
    pi0: float | None = None,
    lambdas: Sequence[float] | None = None,
    bandwidth: str | float = "silverman",
    gridsize: int | None = None,
) -> tuple[np.ndarray, float]:
    """
    Posterior probabilities from a kernel density estimate of the mixture.

    ``pp = 1 - pi0 * f0(llr) / f(llr)`` with f0 the null density and f the
    KDE of all LLRs, clipped to [0, 1] and made monotone in the LLR.

    Args:
        llr: Per-sample LLRs of one source against all targets.
        ns: Number of samples.
        ng: Number of genotype groups.
        test: Test name.
        pi0: Proportion of nulls. Estimated if None.
        lambdas: Storey tuning values for the pi0 estimate.
        bandwidth: KDE bandwidth.
        gridsize: KDE grid size.

    Returns:
        Tuple of (posterior probabilities, pi0). For test "med" the
        probabilities are those of the null (conditional independence).
    """
    llr = np.asarray(llr, dtype=float).ravel()
    dnull = nulldist(ns, ng, test)
    if llr.size == 0:
        return np.zeros(0), 1.0

    if np.ptp(llr) == 0:
        # Constant source: no density to estimate, nothing beyond the null
        logger.debug("LLRs without spread; no real effects")
        pp = np.zeros_like(llr)
        return (1.0 - pp if test == "med" else pp), 1.0

    if pi0 is None:
        pi0 = estimate_pi0(dnull.sf(llr), lambdas)

    f = fit_kde(llr, bandwidth=bandwidth, gridsize=gridsize)
    f0 = dnull.pdf(llr)
    with np.errstate(divide="ignore", invalid="ignore"):
        pp = 1.0 - pi0 * f0 / f
    pp = np.clip(np.nan_to_num(pp, nan=0.0, posinf=0.0, neginf=0.0), 0.0, 1.0)
    pp = make_monotone(llr, pp)

    if test == "med":
        pp = 1.0 - pp
    return pp, pi0


def posterior_probs(
    llr: np.ndarray,
    ns: int,
    ng: int = 1,
    test: str = "corr",
    method: str = "moments",
    config: PosteriorConfig | None = None,
) -> np.ndarray:
    """
    Posterior probabilities of one source's LLRs with the chosen method.

    Args:
        llr: Per-sample LLRs.
        ns: Number of samples.
        ng: Number of genotype groups.
        test: Test name.
        method: "moments" or "kde".
        config: KDE and pi0 settings.

    Returns:
        Posterior probabilities.
    """
    config = config or PosteriorConfig()

    if method == "moments":
        pp, _ = fit_mixdist_mom(llr, ns, ng, test, lambdas=config.pi0_lambdas)
    elif method == "kde":
        pp, _ = fit_mixdist_kde(
            llr,
            ns,
            ng,
            test,
            lambdas=config.pi0_lambdas,
            bandwidth=config.kde_bandwidth,
            gridsize=config.kde_gridsize,
        )
    else:
        raise ValueError(f"Unknown method: {method}. Expected one of {POSTERIOR_METHODS}")
    return pp
