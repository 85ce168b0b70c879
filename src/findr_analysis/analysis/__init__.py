"""Analysis modules for Findr inference."""

from findr_analysis.analysis.dag import dag_to_graph, dagfindr
from findr_analysis.analysis.findr import combine_probs, findr, findr_matrix, global_fdr
from findr_analysis.analysis.llr import real_llr_col
from findr_analysis.analysis.mixdist import (
    MixtureDistribution,
    fit_kde,
    fit_mixdist_kde,
    fit_mixdist_mom,
)
from findr_analysis.analysis.nulldist import LBeta, nulldist, nullpval
from findr_analysis.analysis.results import FindrResults
from findr_analysis.analysis.runner import FindrRunner

__all__ = [
    "FindrResults",
    "FindrRunner",
    "LBeta",
    "MixtureDistribution",
    "combine_probs",
    "dag_to_graph",
    "dagfindr",
    "findr",
    "findr_matrix",
    "fit_kde",
    "fit_mixdist_kde",
    "fit_mixdist_mom",
    "global_fdr",
    "nulldist",
    "nullpval",
    "real_llr_col",
]
