"""Results handling for Findr analyses.

This module provides:
- Loading of Findr result tables
- Bayesian q-values and multiple testing correction
- Result filtering (significant pairs, top targets per source)
- Text reports
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Literal

import numpy as np
import pandas as pd
from statsmodels.stats.multitest import multipletests

from findr_analysis.analysis.findr import PROBABILITY_COLUMNS, global_fdr
from findr_analysis.analysis.mixdist import estimate_pi0
from findr_analysis.utils.io import ensure_directory, read_table, write_table
from findr_analysis.utils.logging import get_logger
from findr_analysis.utils.validators import validate_file_exists

logger = get_logger(__name__)

QVALUE_COLUMNS = ("qvalue", "padj")


@dataclass
class FindrSummary:
    """Summary statistics for Findr results."""

    total_pairs: int
    significant_pairs: int
    sources_tested: int
    targets_tested: int
    sources_with_targets: int
    fdr_threshold: float


class FindrResults:
    """Handler for Findr result tables."""

    def __init__(
        self,
        results_file: str | Path | None = None,
        fdr_threshold: float = 0.05,
        output_dir: str | Path = "results/summary",
    ) -> None:
        """
        Initialize results handler.

        Args:
            results_file: Path to results file.
            fdr_threshold: FDR threshold for significance.
            output_dir: Output directory for processed results.
        """
        self.fdr_threshold = fdr_threshold
        self.output_dir = ensure_directory(output_dir)
        self._results: pd.DataFrame | None = None
        self._summary: FindrSummary | None = None

        if results_file:
            self.load(results_file)

    @property
    def results(self) -> pd.DataFrame | None:
        """Get loaded results."""
        return self._results

    @property
    def summary(self) -> FindrSummary | None:
        """Get results summary."""
        return self._summary

    def load(
        self,
        results_file: str | Path,
        file_format: Literal["auto", "arrow", "parquet", "tsv", "csv"] = "auto",
    ) -> pd.DataFrame:
        """
        Load Findr results from file.

        Args:
            results_file: Path to results file.
            file_format: File format.

        Returns:
            Results DataFrame.
        """
        results_file = Path(results_file)
        validate_file_exists(results_file, "Results file")

        df = read_table(results_file, file_format)
        for col in ("Source", "Target"):
            if col not in df.columns:
                raise ValueError(f"Results file lacks a '{col}' column: {results_file}")

        logger.info(f"Loaded {len(df)} results from {results_file}")
        return self.set_results(df)

    def set_results(self, results: pd.DataFrame) -> pd.DataFrame:
        """Use an in-memory result table."""
        self._results = results.copy()
        if "Probability" in self._results.columns and "qvalue" not in self._results.columns:
            self.compute_qvalues()
        self._calculate_summary()
        return self._results

    def _significance_column(self) -> str | None:
        for col in QVALUE_COLUMNS:
            if col in self._results.columns:
                return col
        return None

    def _calculate_summary(self) -> None:
        """Calculate summary statistics."""
        if self._results is None:
            return

        df = self._results
        sig_col = self._significance_column()

        n_significant = 0
        n_sources_with_targets = 0
        if sig_col:
            sig_mask = df[sig_col] <= self.fdr_threshold
            n_significant = int(sig_mask.sum())
            n_sources_with_targets = int(df.loc[sig_mask, "Source"].nunique())

        self._summary = FindrSummary(
            total_pairs=len(df),
            significant_pairs=n_significant,
            sources_tested=int(df["Source"].nunique()),
            targets_tested=int(df["Target"].nunique()),
            sources_with_targets=n_sources_with_targets,
            fdr_threshold=self.fdr_threshold,
        )

    def compute_qvalues(self, prob_column: str = "Probability") -> pd.DataFrame:
        """
        Recompute Bayesian q-values from posterior probabilities.

        Args:
            prob_column: Column with posterior probabilities.

        Returns:
            Results with a "qvalue" column, ordered by decreasing probability.
        """
        if self._results is None:
            raise ValueError("No results loaded")
        if prob_column not in self._results.columns:
            raise ValueError(f"Column '{prob_column}' not found in results")

        self._results = global_fdr(
            self._results.drop(columns="qvalue", errors="ignore"), prob_column=prob_column
        )
        self._calculate_summary()
        return self._results

    def apply_fdr_correction(
        self,
        method: Literal["bh", "bonferroni", "storey"] = "bh",
        pval_column: str = "pvalue",
    ) -> pd.DataFrame:
        """
        Apply multiple testing correction to a p-value column.

        Args:
            method: Correction method.
            pval_column: Column containing p-values.

        Returns:
            Results with added "padj" column.
        """
        if self._results is None:
            raise ValueError("No results loaded")
        if pval_column not in self._results.columns:
            raise ValueError(f"Column '{pval_column}' not found in results")

        pvals = self._results[pval_column].to_numpy(dtype=float)

        if method == "bh":
            _, qvals, _, _ = multipletests(pvals, method="fdr_bh")
        elif method == "bonferroni":
            qvals = np.minimum(pvals * len(pvals), 1.0)
        elif method == "storey":
            qvals = self._storey_qvalue(pvals)
        else:
            raise ValueError(f"Unknown correction method: {method}")

        self._results["padj"] = qvals

        n_sig = int((qvals <= self.fdr_threshold).sum())
        logger.info(
            f"Applied {method} correction: {n_sig} significant at FDR {self.fdr_threshold}"
        )

        self._calculate_summary()
        return self._results

    def _storey_qvalue(self, pvals: np.ndarray) -> np.ndarray:
        """Calculate Storey q-values."""
        n = len(pvals)
        if n == 0:
            return np.zeros(0)
        pi0 = estimate_pi0(pvals)

        sorted_idx = np.argsort(pvals)
        sorted_pvals = pvals[sorted_idx]

        # Step-up from the largest p-value
        qvals = pi0 * n * sorted_pvals / np.arange(1, n + 1)
        qvals = np.minimum.accumulate(qvals[::-1])[::-1]

        qvals_original = np.empty(n)
        qvals_original[sorted_idx] = np.minimum(qvals, 1.0)
        return qvals_original

    def get_significant(
        self,
        threshold: float | None = None,
    ) -> pd.DataFrame:
        """
        Get significant pairs.

        Args:
            threshold: FDR threshold. Uses default if None.

        Returns:
            Significant pairs.
        """
        if self._results is None:
            raise ValueError("No results loaded")

        if threshold is None:
            threshold = self.fdr_threshold

        sig_col = self._significance_column()
        if sig_col is None:
            logger.warning("No q-value column found, returning empty DataFrame")
            return self._results.iloc[0:0].copy()
        return self._results[self._results[sig_col] <= threshold].copy()

    def get_top_targets(
        self,
        n: int = 10,
        significant_only: bool = True,
    ) -> pd.DataFrame:
        """
        Get the most probable targets of every source.

        Args:
            n: Number of targets per source.
            significant_only: Only consider significant pairs.

        Returns:
            Top targets, ordered by source then decreasing probability.
        """
        df = self.get_significant() if significant_only else self._results
        if df is None:
            raise ValueError("No results loaded")

        prob_col = "Probability" if "Probability" in df.columns else PROBABILITY_COLUMNS[0]
        ranked = df.sort_values(["Source", prob_col], ascending=[True, False], kind="stable")
        return ranked.groupby("Source", sort=False).head(n).reset_index(drop=True)

    def save(
        self,
        output_path: str | Path | None = None,
        file_format: Literal["arrow", "parquet", "tsv", "csv"] = "tsv",
        significant_only: bool = False,
    ) -> Path:
        """
        Save results to file.

        Args:
            output_path: Output file path.
            file_format: Output format.
            significant_only: Only save significant results.

        Returns:
            Path to saved file.
        """
        if self._results is None:
            raise ValueError("No results loaded")

        if output_path is None:
            output_path = self.output_dir / f"findr_results.{file_format}"

        df = self.get_significant() if significant_only else self._results
        return write_table(df, output_path, file_format=file_format)

    def generate_report(
        self,
        output_path: str | Path | None = None,
        n_top: int = 10,
    ) -> Path:
        """
        Generate summary report of Findr results.

        Args:
            output_path: Output file path.
            n_top: Number of sources with most targets to list.

        Returns:
            Path to report file.
        """
        if self._summary is None:
            raise ValueError("No results loaded")

        if output_path is None:
            output_path = self.output_dir / "findr_report.txt"

        output_path = Path(output_path)
        output_path.parent.mkdir(parents=True, exist_ok=True)

        with open(output_path, "w") as f:
            f.write("=" * 60 + "\n")
            f.write("Findr Analysis Report\n")
            f.write("=" * 60 + "\n\n")

            f.write("Summary Statistics\n")
            f.write("-" * 40 + "\n")
            f.write(f"Total pairs: {self._summary.total_pairs:,}\n")
            f.write(f"Significant pairs: {self._summary.significant_pairs:,}\n")
            f.write(f"Sources tested: {self._summary.sources_tested:,}\n")
            f.write(f"Targets tested: {self._summary.targets_tested:,}\n")
            f.write(f"Sources with targets: {self._summary.sources_with_targets:,}\n")
            f.write(f"FDR threshold: {self._summary.fdr_threshold}\n")

            significant = self.get_significant()
            if len(significant) > 0:
                counts = significant["Source"].value_counts().head(n_top)
                f.write("\nSources with most targets\n")
                f.write("-" * 40 + "\n")
                for source, count in counts.items():
                    f.write(f"{source}: {count:,}\n")

        logger.info(f"Generated report: {output_path}")
        return output_path
