"""File-to-file runner for Findr analyses.

This module runs the three Findr analyses on tables read from disk:
- Coexpression (gene-gene correlation)
- Association (variant-gene linkage)
- Causal inference (eQTL-anchored gene-gene regulation)
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Sequence

import pandas as pd

from findr_analysis.analysis.dag import dagfindr
from findr_analysis.analysis.findr import findr
from findr_analysis.preprocessing.genotypes import genotypes_to_numeric
from findr_analysis.preprocessing.phenotypes import supernormalize
from findr_analysis.utils.config import Config
from findr_analysis.utils.io import (
    ensure_directory,
    read_eqtl_table,
    read_expression_table,
    read_genotype_table,
    read_table,
    write_table,
)
from findr_analysis.utils.logging import StepTimer, get_logger, log_summary, timed_step
from findr_analysis.utils.validators import (
    ValidationError,
    validate_eqtl_pairs,
    validate_expression_matrix,
    validate_file_exists,
    validate_genotype_matrix,
    validate_sample_consistency,
)

logger = get_logger(__name__)

FORMAT_SUFFIXES = {"tsv": ".tsv", "csv": ".csv", "parquet": ".parquet", "arrow": ".arrow"}


@dataclass
class FindrRunStats:
    """Statistics from a Findr run."""

    mode: str
    n_samples: int
    n_sources: int
    n_targets: int
    n_pairs_reported: int
    runtime_seconds: float


class FindrRunner:
    """Runner for Findr analyses on expression and genotype files."""

    def __init__(
        self,
        config: Config | None = None,
        output_dir: str | Path | None = None,
    ) -> None:
        """
        Initialize Findr runner.

        Args:
            config: Analysis configuration.
            output_dir: Output directory for results. Defaults to the
                configured output directory.
        """
        self.config = config or Config()
        self.output_dir = ensure_directory(output_dir or self.config.pipeline.output_dir)
        self._run_stats: FindrRunStats | None = None

    @property
    def run_stats(self) -> FindrRunStats | None:
        """Get statistics from last run."""
        return self._run_stats

    def load_expression(self, expression_file: str | Path) -> pd.DataFrame:
        """
        Load and check an expression table.

        Args:
            expression_file: Path to expression table (samples x genes).

        Returns:
            Expression table ready for analysis.

        Raises:
            ValidationError: If the table has missing values or too few
                samples or genes.
        """
        validate_file_exists(expression_file, "Expression file")
        expression = read_expression_table(expression_file)

        validation = validate_expression_matrix(expression)
        if not validation["valid"]:
            raise ValidationError(f"Invalid expression data: {validation['issues']}")

        return expression

    def load_genotypes(self, genotype_file: str | Path) -> pd.DataFrame:
        """
        Load and check a genotype table.

        Args:
            genotype_file: Path to genotype table (samples x variants).

        Returns:
            Numeric genotype table.
        """
        validate_file_exists(genotype_file, "Genotype file")
        genotypes = read_genotype_table(genotype_file)

        validation = validate_genotype_matrix(genotypes)
        if validation["monomorphic"]:
            logger.warning(
                f"{len(validation['monomorphic'])} monomorphic variants will get probability 0"
            )
        genotypes = genotypes_to_numeric(genotypes)
        if genotypes.isna().any().any():
            raise ValidationError("Genotype data contains missing values")
        return genotypes

    def load_pairs(
        self,
        eqtl_file: str | Path,
        genotypes: pd.DataFrame,
        expression: pd.DataFrame,
    ) -> pd.DataFrame:
        """
        Load and check an eQTL table.

        Args:
            eqtl_file: Path to eQTL table (variant, gene).
            genotypes: Genotype table the variants refer to.
            expression: Expression table the genes refer to.

        Returns:
            eQTL table.
        """
        validate_file_exists(eqtl_file, "eQTL file")
        pairs = read_eqtl_table(eqtl_file)

        validation = validate_eqtl_pairs(
            pairs, list(genotypes.columns.astype(str)), list(expression.columns.astype(str))
        )
        if validation["n_usable"] == 0:
            raise ValidationError(f"No usable eQTL pairs: {validation['issues']}")
        return pairs

    def _run(
        self,
        mode: str,
        expression: pd.DataFrame,
        genotypes: pd.DataFrame | None,
        pairs: pd.DataFrame | None,
        sources: Sequence[str] | None,
        output_prefix: str,
        timer: StepTimer,
    ) -> Path:
        inference = self.config.inference
        posterior = self.config.posterior

        if genotypes is not None and not expression.index.equals(genotypes.index):
            overlap = validate_sample_consistency(list(genotypes.index), list(expression.index))
            common = [s for s in expression.index if s in overlap["common"]]
            expression = expression.loc[common]
            genotypes = genotypes.loc[common]

        normalization = self.config.normalization
        if normalization.enabled:
            expression = supernormalize(expression, c=normalization.rank_offset)

        results = findr(
            expression,
            genotypes,
            pairs,
            colnames=sources,
            FDR=inference.fdr,
            combination=inference.combination,
            method=posterior.method,
            sorted=inference.sorted,
            normalize=False,
            config=posterior,
        )

        output_format = self.config.pipeline.output_format
        output_file = self.output_dir / f"{output_prefix}{FORMAT_SUFFIXES[output_format]}"
        write_table(results, output_file, file_format=output_format)

        n_sources = results["Source"].nunique() if len(results) else 0
        self._run_stats = FindrRunStats(
            mode=mode,
            n_samples=expression.shape[0],
            n_sources=int(n_sources),
            n_targets=expression.shape[1],
            n_pairs_reported=len(results),
            runtime_seconds=timer.elapsed,
        )

        log_summary(
            f"{mode.capitalize()} Results",
            {
                "Samples": self._run_stats.n_samples,
                "Sources": self._run_stats.n_sources,
                "Targets": self._run_stats.n_targets,
                "Pairs reported": self._run_stats.n_pairs_reported,
                "Runtime (s)": f"{self._run_stats.runtime_seconds:.1f}",
                "Output": str(output_file),
            },
            logger,
        )
        return output_file

    def run_coexpression(
        self,
        expression_file: str | Path,
        sources: Sequence[str] | None = None,
        output_prefix: str = "coexpression",
    ) -> Path:
        """
        Run coexpression analysis.

        Args:
            expression_file: Path to expression table.
            sources: Source genes. All genes if None.
            output_prefix: Prefix for output files.

        Returns:
            Path to results file.
        """
        with timed_step("Coexpression Analysis", logger) as timer:
            expression = self.load_expression(expression_file)
            return self._run("coexpression", expression, None, None, sources, output_prefix, timer)

    def run_association(
        self,
        expression_file: str | Path,
        genotype_file: str | Path,
        sources: Sequence[str] | None = None,
        output_prefix: str = "association",
    ) -> Path:
        """
        Run variant-gene association analysis.

        Args:
            expression_file: Path to expression table.
            genotype_file: Path to genotype table.
            sources: Variants to test. All variants if None.
            output_prefix: Prefix for output files.

        Returns:
            Path to results file.
        """
        with timed_step("Association Analysis", logger) as timer:
            expression = self.load_expression(expression_file)
            genotypes = self.load_genotypes(genotype_file)
            return self._run(
                "association", expression, genotypes, None, sources, output_prefix, timer
            )

    def run_causal(
        self,
        expression_file: str | Path,
        genotype_file: str | Path,
        eqtl_file: str | Path,
        sources: Sequence[str] | None = None,
        output_prefix: str = "causal",
        dag: bool = False,
    ) -> Path:
        """
        Run causal inference anchored on cis-eQTLs.

        Args:
            expression_file: Path to expression table.
            genotype_file: Path to genotype table.
            eqtl_file: Path to eQTL table (variant, gene).
            sources: Source genes A. All genes with an eQTL if None.
            output_prefix: Prefix for output files.
            dag: Also mark the edges of a DAG (column "inDAG").

        Returns:
            Path to results file.
        """
        with timed_step("Causal Inference", logger) as timer:
            expression = self.load_expression(expression_file)
            genotypes = self.load_genotypes(genotype_file)
            pairs = self.load_pairs(eqtl_file, genotypes, expression)
            output_file = self._run(
                "causal", expression, genotypes, pairs, sources, output_prefix, timer
            )

        if dag:
            if self.config.inference.combination == "none":
                logger.warning("A DAG needs a combined probability; skipping")
            else:
                self.run_dag(output_file, output_file)
        return output_file

    def run_dag(
        self,
        results_file: str | Path,
        output_file: str | Path | None = None,
    ) -> Path:
        """
        Mark the edges of a DAG in a causal result table.

        Args:
            results_file: Path to causal results.
            output_file: Output path. Defaults to "<results>_dag" next to the
                results file.

        Returns:
            Path to the annotated results.
        """
        with timed_step("DAG Reconstruction", logger):
            results_file = Path(results_file)
            validate_file_exists(results_file, "Results file")
            results = read_table(results_file)

            dag = dagfindr(results, method=self.config.inference.dag_method)

            if output_file is None:
                output_file = results_file.with_name(
                    f"{results_file.stem}_dag{results_file.suffix}"
                )
            return write_table(dag, output_file)
