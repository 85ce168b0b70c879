"""Data validation utilities for Findr analyses."""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING

import numpy as np

from findr_analysis.utils.logging import get_logger

if TYPE_CHECKING:
    import pandas as pd

logger = get_logger(__name__)


class ValidationError(Exception):
    """Raised when data validation fails."""

    pass


def validate_file_exists(
    file_path: str | Path,
    description: str = "file",
    raise_error: bool = True,
) -> bool:
    """
    Validate that a file exists.

    Args:
        file_path: Path to the file.
        description: Description of the file for error messages.
        raise_error: If True, raise an error on failure.

    Returns:
        True if file exists.

    Raises:
        FileNotFoundError: If file does not exist and raise_error is True.
    """
    path = Path(file_path)
    if not path.exists():
        msg = f"{description} not found: {file_path}"
        if raise_error:
            raise FileNotFoundError(msg)
        logger.warning(msg)
        return False
    return True


def validate_expression_matrix(
    expression_data: pd.DataFrame,
    min_genes: int = 2,
    min_samples: int = 4,
    check_values: bool = True,
) -> dict[str, bool | int | list[str]]:
    """
    Validate an expression table (samples x genes).

    Args:
        expression_data: Expression table with samples in rows.
        min_genes: Minimum number of genes required.
        min_samples: Minimum number of samples required.
        check_values: Whether to validate expression values.

    Returns:
        Dictionary with validation results.
    """
    results: dict[str, bool | int | list[str]] = {
        "valid": True,
        "n_samples": expression_data.shape[0],
        "n_genes": expression_data.shape[1],
        "has_missing_values": False,
        "constant_genes": [],
        "issues": [],
    }

    issues: list[str] = []

    if expression_data.shape[1] < min_genes:
        issues.append(f"Insufficient genes: {expression_data.shape[1]} < {min_genes}")

    if expression_data.shape[0] < min_samples:
        issues.append(f"Insufficient samples: {expression_data.shape[0]} < {min_samples}")

    if not expression_data.columns.is_unique:
        issues.append("Gene names not unique")

    if check_values:
        numeric_data = expression_data.select_dtypes(include=[np.number])
        non_numeric = [c for c in expression_data.columns if c not in numeric_data.columns]
        if non_numeric:
            issues.append(f"Non-numeric gene columns: {non_numeric[:5]}")

        missing_count = int(expression_data.isna().sum().sum())
        if missing_count > 0:
            results["has_missing_values"] = True
            missing_pct = (missing_count / expression_data.size) * 100
            issues.append(f"Contains {missing_count} missing values ({missing_pct:.2f}%)")

        if np.isinf(numeric_data.to_numpy(dtype=float)).any():
            issues.append("Contains infinite values")

        # Constant genes are allowed but carry no signal
        constant = [str(c) for c in numeric_data.columns if numeric_data[c].nunique() <= 1]
        results["constant_genes"] = constant
        if constant:
            logger.warning(f"{len(constant)} constant genes will have zero correlation")

    results["issues"] = issues
    results["valid"] = len(issues) == 0

    if not results["valid"]:
        logger.warning(f"Expression table validation issues: {issues}")

    return results


def validate_genotype_matrix(
    genotypes: pd.DataFrame,
    min_samples: int = 4,
    max_groups: int = 10,
) -> dict[str, bool | int | list[str]]:
    """
    Validate a genotype table (samples x variants).

    Args:
        genotypes: Genotype table with samples in rows.
        min_samples: Minimum number of samples required.
        max_groups: Maximum number of distinct genotype values per variant.

    Returns:
        Dictionary with validation results.
    """
    results: dict[str, bool | int | list[str]] = {
        "valid": True,
        "n_samples": genotypes.shape[0],
        "n_variants": genotypes.shape[1],
        "monomorphic": [],
        "issues": [],
    }

    issues: list[str] = []

    if genotypes.shape[0] < min_samples:
        issues.append(f"Insufficient samples: {genotypes.shape[0]} < {min_samples}")

    if not genotypes.columns.is_unique:
        issues.append("Variant names not unique")

    missing_count = int(genotypes.isna().sum().sum())
    if missing_count > 0:
        issues.append(f"Contains {missing_count} missing genotypes")

    n_groups = genotypes.nunique(axis=0)
    monomorphic = [str(v) for v in n_groups.index[n_groups < 2]]
    results["monomorphic"] = monomorphic
    if monomorphic:
        logger.warning(f"{len(monomorphic)} monomorphic variants will not be tested")

    too_many = n_groups.index[n_groups > max_groups]
    if len(too_many) > 0:
        issues.append(
            f"{len(too_many)} variants have more than {max_groups} genotype values "
            "(continuous dosages are not categorical genotypes)"
        )

    results["issues"] = issues
    results["valid"] = len(issues) == 0

    if not results["valid"]:
        logger.warning(f"Genotype table validation issues: {issues}")

    return results


def validate_eqtl_pairs(
    pairs: pd.DataFrame,
    variant_names: list[str],
    gene_names: list[str],
    variant_column: str | int = 0,
    gene_column: str | int = 1,
) -> dict[str, bool | int | list[str]]:
    """
    Validate an eQTL table against the genotype and expression tables.

    Args:
        pairs: eQTL table with a variant column and a gene column.
        variant_names: Variants present in the genotype table.
        gene_names: Genes present in the expression table.
        variant_column: Variant column name or position.
        gene_column: Gene column name or position.

    Returns:
        Dictionary with validation results.

    Raises:
        ValidationError: If the table lacks the required columns.
    """
    if pairs.shape[1] < 2:
        raise ValidationError("eQTL table needs a variant column and a gene column")

    variants = _column(pairs, variant_column).astype(str)
    genes = _column(pairs, gene_column).astype(str)

    known_variants = set(map(str, variant_names))
    known_genes = set(map(str, gene_names))

    missing_variants = sorted(set(variants) - known_variants)
    missing_genes = sorted(set(genes) - known_genes)
    n_usable = int((variants.isin(known_variants) & genes.isin(known_genes)).sum())

    issues: list[str] = []
    if missing_variants:
        issues.append(f"{len(missing_variants)} eQTL variants not in genotype table")
    if missing_genes:
        issues.append(f"{len(missing_genes)} eQTL genes not in expression table")
    if genes.duplicated().any():
        issues.append(f"{int(genes.duplicated().sum())} genes have more than one eQTL")

    results: dict[str, bool | int | list[str]] = {
        "valid": len(issues) == 0,
        "n_pairs": len(pairs),
        "n_usable": n_usable,
        "missing_variants": missing_variants,
        "missing_genes": missing_genes,
        "issues": issues,
    }

    if issues:
        logger.warning(f"eQTL table validation issues: {issues}")

    return results


def _column(df: pd.DataFrame, column: str | int) -> pd.Series:
    """Select a column by name or position."""
    if isinstance(column, int):
        return df.iloc[:, column]
    return df[column]


def validate_sample_consistency(
    genotype_samples: list[str],
    expression_samples: list[str],
) -> dict[str, set[str]]:
    """
    Validate sample consistency between genotype and expression tables.

    Args:
        genotype_samples: Sample IDs from genotype data.
        expression_samples: Sample IDs from expression data.

    Returns:
        Dictionary with sample overlap information.

    Raises:
        ValidationError: If no common samples exist.
    """
    geno_set = set(genotype_samples)
    expr_set = set(expression_samples)

    common = geno_set & expr_set
    geno_only = geno_set - expr_set
    expr_only = expr_set - geno_set

    if len(common) == 0:
        raise ValidationError(
            "No common samples found between genotype and expression data. "
            f"Genotype samples: {len(geno_set)}, Expression samples: {len(expr_set)}"
        )

    logger.info(
        f"Sample overlap: {len(common)} common, "
        f"{len(geno_only)} genotype-only, {len(expr_only)} expression-only"
    )

    return {
        "common": common,
        "genotype_only": geno_only,
        "expression_only": expr_only,
    }
