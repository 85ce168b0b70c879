"""Preprocessing modules for expression and genotype data."""

from findr_analysis.preprocessing.genotypes import GenotypePreprocessor, encode_genotypes
from findr_analysis.preprocessing.phenotypes import ExpressionPreprocessor, supernormalize

__all__ = [
    "ExpressionPreprocessor",
    "GenotypePreprocessor",
    "encode_genotypes",
    "supernormalize",
]
