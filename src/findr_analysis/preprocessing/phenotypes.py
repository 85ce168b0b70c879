"""Expression (phenotype) preprocessing for Findr analyses.

This module handles:
- Supernormalization of expression data
- Filtering of genes without variation
- Writing normalized tables for later runs
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import TypeVar

import numpy as np
import pandas as pd
from scipy import stats

from findr_analysis.utils.io import ensure_directory, read_expression_table, write_table
from findr_analysis.utils.logging import get_logger
from findr_analysis.utils.validators import validate_expression_matrix

logger = get_logger(__name__)

ArrayOrFrame = TypeVar("ArrayOrFrame", np.ndarray, pd.DataFrame, pd.Series)


def supernormalize(X: ArrayOrFrame, c: float = 0.5) -> ArrayOrFrame:
    """
    Convert each column to standard normally distributed values.

    Values are replaced by their ranks (ties get the average rank), ranks are
    mapped to normal quantiles ``ppf((rank - c) / (n - 2c + 1))``, and the
    result is centred and scaled to zero mean and unit (population) variance.
    After this, ``Y.T @ y / n`` is the Pearson correlation between columns.

    Args:
        X: Samples x genes array or DataFrame, or a single vector.
        c: Rank offset in [0, 0.5]. 0.5 gives Hazen plotting positions,
            3/8 gives Blom's transformation.

    Returns:
        Supernormalized data of the same shape and type.

    Raises:
        ValueError: If the data has missing values or fewer than two samples.
    """
    if isinstance(X, pd.DataFrame):
        values = supernormalize(X.to_numpy(dtype=float), c)
        return pd.DataFrame(values, index=X.index, columns=X.columns)
    if isinstance(X, pd.Series):
        values = supernormalize(X.to_numpy(dtype=float), c)
        return pd.Series(values, index=X.index, name=X.name)

    X = np.asarray(X, dtype=float)
    if X.ndim == 1:
        return supernormalize(X[:, np.newaxis], c)[:, 0]
    if X.ndim != 2:
        raise ValueError(f"Expected a vector or a matrix, got {X.ndim} dimensions")
    if not 0 <= c <= 0.5:
        raise ValueError(f"Rank offset must be between 0 and 0.5, got {c}")

    n = X.shape[0]
    if n < 2:
        raise ValueError("At least two samples are needed to supernormalize")
    if np.isnan(X).any():
        raise ValueError("Cannot supernormalize data with missing values")

    ranks = stats.rankdata(X, axis=0)
    Z = stats.norm.ppf((ranks - c) / (n - 2 * c + 1))
    Z = Z - Z.mean(axis=0)

    constant = np.ptp(X, axis=0) == 0
    sd = Z.std(axis=0)
    sd[constant] = 1.0
    Z = Z / sd
    Z[:, constant] = 0.0

    if constant.any():
        logger.warning(f"{int(constant.sum())} constant columns set to zero")

    return Z


@dataclass
class ExpressionQCStats:
    """Statistics from expression preprocessing."""

    total_genes: int
    total_samples: int
    genes_after_variance_filter: int
    final_genes: int
    final_samples: int


class ExpressionPreprocessor:
    """Preprocessor for expression tables (samples x genes)."""

    def __init__(
        self,
        min_variance: float = 0.0,
        rank_offset: float = 0.5,
        output_dir: str | Path = "results/expression",
    ) -> None:
        """
        Initialize expression preprocessor.

        Args:
            min_variance: Genes with variance at or below this are removed.
            rank_offset: Rank offset used by supernormalization.
            output_dir: Output directory for processed files.
        """
        self.min_variance = min_variance
        self.rank_offset = rank_offset
        self.output_dir = ensure_directory(output_dir)
        self._qc_stats: ExpressionQCStats | None = None

    @property
    def qc_stats(self) -> ExpressionQCStats | None:
        """Get QC statistics from last run."""
        return self._qc_stats

    def load_expression_data(
        self,
        file_path: str | Path,
        sample_column: str | None = None,
        transpose: bool = False,
    ) -> pd.DataFrame:
        """
        Load expression data from file.

        Args:
            file_path: Path to expression file.
            sample_column: Column holding sample IDs.
            transpose: Whether the file is genes x samples.

        Returns:
            Expression table (samples x genes).
        """
        df = read_expression_table(file_path, sample_column=sample_column, transpose=transpose)

        validation = validate_expression_matrix(df)
        if not validation["valid"]:
            logger.warning(f"Expression data issues: {validation['issues']}")

        return df

    def filter_low_variance(
        self,
        expression: pd.DataFrame,
        min_variance: float | None = None,
    ) -> pd.DataFrame:
        """
        Remove genes whose variance does not exceed a threshold.

        Args:
            expression: Expression table (samples x genes).
            min_variance: Minimum variance threshold.

        Returns:
            Filtered expression table.
        """
        if min_variance is None:
            min_variance = self.min_variance

        variances = expression.var(axis=0)
        mask = variances > min_variance

        filtered = expression.loc[:, mask]

        logger.info(
            f"Variance filter: {expression.shape[1]} -> {filtered.shape[1]} genes "
            f"(min var: {min_variance})"
        )

        return filtered

    def normalize(self, expression: pd.DataFrame) -> pd.DataFrame:
        """
        Supernormalize expression data.

        Args:
            expression: Expression table (samples x genes).

        Returns:
            Supernormalized expression table.
        """
        normalized = supernormalize(expression, self.rank_offset)
        logger.info(f"Supernormalized {normalized.shape[1]} genes")
        return normalized

    def preprocess(
        self,
        expression_file: str | Path,
        sample_column: str | None = None,
        transpose: bool = False,
        output_path: str | Path | None = None,
    ) -> Path:
        """
        Run the expression preprocessing steps.

        Args:
            expression_file: Path to expression data file.
            sample_column: Column holding sample IDs.
            transpose: Whether the file is genes x samples.
            output_path: Output file path.

        Returns:
            Path to the normalized expression file.
        """
        logger.info("Starting expression preprocessing")

        expression = self.load_expression_data(
            expression_file,
            sample_column=sample_column,
            transpose=transpose,
        )
        initial_genes = expression.shape[1]
        initial_samples = expression.shape[0]

        expression = self.filter_low_variance(expression)
        genes_after_var = expression.shape[1]

        expression = self.normalize(expression)

        self._qc_stats = ExpressionQCStats(
            total_genes=initial_genes,
            total_samples=initial_samples,
            genes_after_variance_filter=genes_after_var,
            final_genes=expression.shape[1],
            final_samples=expression.shape[0],
        )

        if output_path is None:
            output_path = self.output_dir / "expression_supernormalized.tsv"

        # Keep sample IDs only when the table had them
        has_ids = not pd.api.types.is_numeric_dtype(expression.index)
        if has_ids:
            expression.index.name = expression.index.name or "sample"
        output_path = write_table(expression, output_path, index=has_ids)

        logger.info(f"Expression preprocessing complete: {output_path}")
        return output_path
