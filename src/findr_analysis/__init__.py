"""
Findr Analysis Pipeline.

Fast inference of gene coexpression, variant-gene association and causal
gene regulation from expression and genotype data, with posterior
probabilities of real effects and Bayesian FDR control.
"""

from findr_analysis._version import __version__
from findr_analysis.analysis import (
    dagfindr,
    findr,
    findr_matrix,
    fit_kde,
    fit_mixdist_kde,
    fit_mixdist_mom,
    nulldist,
    nullpval,
    real_llr_col,
)
from findr_analysis.preprocessing import supernormalize

__all__ = [
    "__version__",
    "dagfindr",
    "findr",
    "findr_matrix",
    "fit_kde",
    "fit_mixdist_kde",
    "fit_mixdist_mom",
    "nulldist",
    "nullpval",
    "real_llr_col",
    "supernormalize",
]
