"""Log-likelihood ratios of the Findr tests.

All LLRs are per sample (the total LLR divided by the number of samples) and
assume supernormalized expression columns with zero mean and unit variance.
For a target gene B, source gene A and categorical eQTL E of A:

- corr  (test 0): B correlated with A
- link  (test 2): B ~ E against B independent
- med   (test 3): B ~ A + E against B ~ A
- relev (test 4): B ~ A + E against B independent
- pleio (test 5): B ~ A + E against B ~ E

Every alternative model is a linear model with genotype-specific intercepts,
so ``llr = -log(sigma2_alt / sigma2_null) / 2``.
"""

from __future__ import annotations

import numpy as np

_EPS = np.finfo(float).eps


def _as_matrix(Y: np.ndarray) -> np.ndarray:
    Y = np.asarray(Y, dtype=float)
    if Y.ndim == 1:
        Y = Y[:, np.newaxis]
    if Y.ndim != 2:
        raise ValueError(f"Expected a samples x genes matrix, got {Y.ndim} dimensions")
    return Y


def _llr(ratio: np.ndarray) -> np.ndarray:
    """LLR from a variance ratio, floored so that LLRs are finite and >= 0."""
    ratio = np.clip(ratio, _EPS, 1.0)
    return -0.5 * np.log(ratio)


def group_means(Y: np.ndarray, genotype: np.ndarray, n_groups: int | None = None) -> tuple[np.ndarray, np.ndarray]:
    """
    Genotype group means of every column.

    Args:
        Y: Samples x genes matrix.
        genotype: Group codes 0..nv-1 per sample.
        n_groups: Number of groups. Inferred from the codes if None.

    Returns:
        Tuple of (means, weights): nv x genes group means and the fraction of
        samples in each group.
    """
    Y = _as_matrix(Y)
    genotype = np.asarray(genotype).astype(np.intp).ravel()
    if genotype.shape[0] != Y.shape[0]:
        raise ValueError(
            f"Genotype has {genotype.shape[0]} samples, expression has {Y.shape[0]}"
        )
    if n_groups is None:
        n_groups = int(genotype.max()) + 1

    counts = np.bincount(genotype, minlength=n_groups).astype(float)
    indicator = np.zeros((n_groups, Y.shape[0]))
    indicator[genotype, np.arange(Y.shape[0])] = 1.0
    sums = indicator @ Y

    with np.errstate(invalid="ignore", divide="ignore"):
        means = np.where(counts[:, np.newaxis] > 0, sums / counts[:, np.newaxis], 0.0)
    weights = counts / Y.shape[0]
    return means, weights


def real_llr_col(
    Y: np.ndarray,
    ycol: np.ndarray | None = None,
    genotype: np.ndarray | None = None,
) -> np.ndarray | tuple[np.ndarray, np.ndarray, np.ndarray, np.ndarray]:
    """
    LLRs of one source against every column of Y.

    With only ``ycol``, returns the correlation LLR of every column of Y with
    ``ycol``. With only ``genotype``, returns the linkage LLR (test 2) of every
    column with the genotype. With both, ``ycol`` is the expression of gene A
    and ``genotype`` its eQTL, and the LLRs of tests 2, 3, 4 and 5 are
    returned as a tuple.

    Args:
        Y: Supernormalized samples x genes matrix.
        ycol: Supernormalized expression of the source gene.
        genotype: Group codes 0..nv-1 of the source eQTL.

    Returns:
        LLR vector, or tuple (llr2, llr3, llr4, llr5).
    """
    Y = _as_matrix(Y)
    ns = Y.shape[0]

    if ycol is None and genotype is None:
        raise ValueError("Either a source column or a genotype is required")

    if ycol is not None:
        ycol = np.asarray(ycol, dtype=float).ravel()
        if ycol.shape[0] != ns:
            raise ValueError(f"Source column has {ycol.shape[0]} samples, expected {ns}")
        rho = (ycol @ Y) / ns
        if genotype is None:
            return _llr(1.0 - rho**2)

    means, weights = group_means(Y, genotype)
    sigma2_b_e = 1.0 - weights @ means**2
    llr2 = _llr(sigma2_b_e)
    if ycol is None:
        return llr2

    a_means, _ = group_means(ycol, genotype, n_groups=means.shape[0])
    a_means = a_means[:, 0]
    sigma2_a_e = max(1.0 - weights @ a_means**2, _EPS)

    # Within-genotype covariance of A with every B
    cov_within = rho - (weights * a_means) @ means
    sigma2_b_ae = np.maximum(sigma2_b_e - cov_within**2 / sigma2_a_e, _EPS)
    sigma2_b_a = np.maximum(1.0 - rho**2, _EPS)

    llr3 = _llr(sigma2_b_ae / sigma2_b_a)
    llr4 = _llr(sigma2_b_ae)
    llr5 = _llr(sigma2_b_ae / np.maximum(sigma2_b_e, _EPS))
    return llr2, llr3, llr4, llr5
