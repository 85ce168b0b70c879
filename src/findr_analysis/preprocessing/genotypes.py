"""Genotype preprocessing for Findr analyses.

Findr treats genotypes as categories: every distinct value of a variant
defines one group of samples. This module handles:
- Conversion of VCF-style genotype strings to allele counts
- Encoding of each variant to group codes 0..nv-1
- Removal of variants with missing or monomorphic genotypes
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

import numpy as np
import pandas as pd

from findr_analysis.utils.io import ensure_directory, read_genotype_table, write_table
from findr_analysis.utils.logging import get_logger
from findr_analysis.utils.validators import validate_genotype_matrix

logger = get_logger(__name__)


def parse_genotype(gt: object) -> float:
    """
    Convert a genotype call to an allele count.

    Numbers are returned unchanged; strings such as ``0/1`` or ``1|1`` are
    converted to the number of alternative alleles. Missing calls give NaN.
    """
    if isinstance(gt, (int, float, np.integer, np.floating)):
        return float(gt)
    if gt is None or pd.isna(gt):
        return np.nan

    gt = str(gt).strip()
    if gt in ("./.", ".|.", ".", ""):
        return np.nan
    parts = gt.replace("|", "/").split("/")
    try:
        return float(sum(int(a) for a in parts))
    except ValueError:
        return np.nan


def genotypes_to_numeric(genotypes: pd.DataFrame) -> pd.DataFrame:
    """Convert genotype strings to numeric allele counts."""
    numeric = genotypes.copy()
    for col in numeric.columns:
        if not pd.api.types.is_numeric_dtype(numeric[col]):
            numeric[col] = numeric[col].map(parse_genotype)
    return numeric.astype(float)


def encode_genotypes(genotypes: np.ndarray | pd.DataFrame) -> tuple[np.ndarray, np.ndarray]:
    """
    Encode each genotype column as group codes.

    Args:
        genotypes: Samples x variants genotype values.

    Returns:
        Tuple of (codes, n_groups): integer codes 0..nv-1 with the same shape
        as the input, and the number of groups nv of every variant.

    Raises:
        ValueError: If genotypes are missing.
    """
    if isinstance(genotypes, pd.DataFrame):
        values = genotypes_to_numeric(genotypes).to_numpy(dtype=float)
    else:
        values = np.asarray(genotypes, dtype=float)

    if values.ndim == 1:
        values = values[:, np.newaxis]
    if np.isnan(values).any():
        raise ValueError("Genotypes contain missing values")

    codes = np.empty(values.shape, dtype=np.intp)
    n_groups = np.empty(values.shape[1], dtype=np.intp)
    for j in range(values.shape[1]):
        uniq, inverse = np.unique(values[:, j], return_inverse=True)
        codes[:, j] = inverse.ravel()
        n_groups[j] = len(uniq)

    return codes, n_groups


@dataclass
class GenotypeQCStats:
    """Statistics from genotype preprocessing."""

    total_variants: int
    total_samples: int
    variants_after_missing: int
    variants_after_monomorphic: int
    final_variants: int


class GenotypePreprocessor:
    """Preprocessor for genotype tables (samples x variants)."""

    def __init__(
        self,
        min_group_size: int = 1,
        output_dir: str | Path = "results/genotypes",
    ) -> None:
        """
        Initialize genotype preprocessor.

        Args:
            min_group_size: Minimum number of samples in the second largest
                genotype group for a variant to be kept.
            output_dir: Output directory for processed files.
        """
        self.min_group_size = min_group_size
        self.output_dir = ensure_directory(output_dir)
        self._qc_stats: GenotypeQCStats | None = None

    @property
    def qc_stats(self) -> GenotypeQCStats | None:
        """Get QC statistics from last run."""
        return self._qc_stats

    def drop_missing(self, genotypes: pd.DataFrame) -> pd.DataFrame:
        """Remove variants with missing genotype calls."""
        keep = genotypes.notna().all(axis=0)
        filtered = genotypes.loc[:, keep]
        logger.info(f"Missing filter: {genotypes.shape[1]} -> {filtered.shape[1]} variants")
        return filtered

    def filter_monomorphic(
        self,
        genotypes: pd.DataFrame,
        min_group_size: int | None = None,
    ) -> pd.DataFrame:
        """
        Remove variants with fewer than two sufficiently large groups.

        Args:
            genotypes: Numeric genotype table.
            min_group_size: Minimum size of the second largest group.

        Returns:
            Filtered genotype table.
        """
        if min_group_size is None:
            min_group_size = self.min_group_size

        def second_group_size(col: pd.Series) -> int:
            counts = col.value_counts()
            return int(counts.iloc[1]) if len(counts) > 1 else 0

        sizes = genotypes.apply(second_group_size, axis=0)
        keep = sizes >= max(min_group_size, 1)
        filtered = genotypes.loc[:, keep]

        logger.info(
            f"Monomorphic filter: {genotypes.shape[1]} -> {filtered.shape[1]} variants "
            f"(min group size: {min_group_size})"
        )
        return filtered

    def encode(self, genotypes: pd.DataFrame) -> pd.DataFrame:
        """Encode every variant as group codes 0..nv-1."""
        codes, _ = encode_genotypes(genotypes)
        return pd.DataFrame(codes, index=genotypes.index, columns=genotypes.columns)

    def preprocess(
        self,
        genotype_file: str | Path,
        sample_column: str | None = None,
        output_path: str | Path | None = None,
    ) -> Path:
        """
        Run the genotype preprocessing steps.

        Args:
            genotype_file: Path to genotype table.
            sample_column: Column holding sample IDs.
            output_path: Output file path.

        Returns:
            Path to the encoded genotype file.
        """
        logger.info("Starting genotype preprocessing")

        genotypes = read_genotype_table(genotype_file, sample_column=sample_column)
        validation = validate_genotype_matrix(genotypes)
        if not validation["valid"]:
            logger.warning(f"Genotype data issues: {validation['issues']}")

        initial_variants = genotypes.shape[1]
        genotypes = genotypes_to_numeric(genotypes)

        genotypes = self.drop_missing(genotypes)
        after_missing = genotypes.shape[1]

        genotypes = self.filter_monomorphic(genotypes)
        after_monomorphic = genotypes.shape[1]

        encoded = self.encode(genotypes)

        self._qc_stats = GenotypeQCStats(
            total_variants=initial_variants,
            total_samples=genotypes.shape[0],
            variants_after_missing=after_missing,
            variants_after_monomorphic=after_monomorphic,
            final_variants=encoded.shape[1],
        )

        if output_path is None:
            output_path = self.output_dir / "genotypes_encoded.tsv"

        has_ids = not pd.api.types.is_numeric_dtype(encoded.index)
        if has_ids:
            encoded.index.name = encoded.index.name or "sample"
        output_path = write_table(encoded, output_path, index=has_ids)

        logger.info(f"Genotype preprocessing complete: {output_path}")
        return output_path
