"""Tests for data validation utilities."""

from pathlib import Path

import numpy as np
import pandas as pd
import pytest

from findr_analysis.utils.validators import (
    ValidationError,
    validate_eqtl_pairs,
    validate_expression_matrix,
    validate_file_exists,
    validate_genotype_matrix,
    validate_sample_consistency,
)


class TestValidateFileExists:
    """Tests for validate_file_exists function."""

    def test_existing_file(self, temp_dir: Path) -> None:
        """Test validation of existing file."""
        test_file = temp_dir / "test.txt"
        test_file.write_text("test")

        assert validate_file_exists(test_file) is True

    def test_nonexistent_file_raises(self) -> None:
        """Test that nonexistent file raises error."""
        with pytest.raises(FileNotFoundError):
            validate_file_exists("/nonexistent/file.txt")

    def test_nonexistent_file_no_raise(self) -> None:
        """Test that nonexistent file returns False when raise_error=False."""
        result = validate_file_exists(
            "/nonexistent/file.txt",
            raise_error=False,
        )
        assert result is False


class TestValidateExpressionMatrix:
    """Tests for validate_expression_matrix function."""

    def test_valid_expression(self, sample_expression_data: pd.DataFrame) -> None:
        """Test validation of valid expression data."""
        result = validate_expression_matrix(sample_expression_data)
        assert result["valid"] is True
        assert result["n_samples"] == 200
        assert result["n_genes"] == 300

    def test_insufficient_genes(self) -> None:
        """Test validation catches insufficient genes."""
        df = pd.DataFrame(np.random.normal(size=(10, 1)), columns=["A"])
        result = validate_expression_matrix(df)
        assert result["valid"] is False

    def test_insufficient_samples(self) -> None:
        """Test validation catches insufficient samples."""
        df = pd.DataFrame(np.random.normal(size=(3, 5)))
        result = validate_expression_matrix(df)
        assert result["valid"] is False

    def test_missing_values_detected(self) -> None:
        """Test validation catches missing values."""
        df = pd.DataFrame(np.random.normal(size=(10, 5)))
        df.iloc[0, 0] = np.nan

        result = validate_expression_matrix(df)
        assert result["valid"] is False
        assert result["has_missing_values"] is True

    def test_constant_genes_reported(self) -> None:
        """Test constant genes are reported but allowed."""
        df = pd.DataFrame({
            "A": np.random.normal(size=10),
            "B": np.ones(10),
        })

        result = validate_expression_matrix(df)
        assert result["valid"] is True
        assert result["constant_genes"] == ["B"]


class TestValidateGenotypeMatrix:
    """Tests for validate_genotype_matrix function."""

    def test_valid_genotypes(self, sample_genotype_data: pd.DataFrame) -> None:
        """Test validation of valid genotype data."""
        result = validate_genotype_matrix(sample_genotype_data)
        assert result["valid"] is True
        assert result["n_variants"] == 10
        assert result["monomorphic"] == []

    def test_monomorphic_reported(self) -> None:
        """Test monomorphic variants are reported."""
        df = pd.DataFrame({"rs1": [0, 1, 2, 1, 0], "rs2": [1, 1, 1, 1, 1]})
        result = validate_genotype_matrix(df)
        assert result["monomorphic"] == ["rs2"]

    def test_dosages_flagged(self) -> None:
        """Test continuous dosages are not accepted as genotypes."""
        df = pd.DataFrame({"rs1": np.linspace(0, 2, 50)})
        result = validate_genotype_matrix(df)
        assert result["valid"] is False

    def test_missing_genotypes_flagged(self) -> None:
        """Test missing genotypes are flagged."""
        df = pd.DataFrame({"rs1": [0, 1, np.nan, 2, 1]})
        result = validate_genotype_matrix(df)
        assert result["valid"] is False


class TestValidateEqtlPairs:
    """Tests for validate_eqtl_pairs function."""

    def test_all_known(self, sample_eqtl_pairs: pd.DataFrame) -> None:
        """Test pairs with known names."""
        result = validate_eqtl_pairs(
            sample_eqtl_pairs, ["rs0", "rs1"], ["GENE_000", "GENE_061"]
        )
        assert result["valid"] is True
        assert result["n_usable"] == 2

    def test_unknown_names(self, sample_eqtl_pairs: pd.DataFrame) -> None:
        """Test unknown variants and genes are reported."""
        result = validate_eqtl_pairs(sample_eqtl_pairs, ["rs0"], ["GENE_000"])
        assert result["valid"] is False
        assert result["n_usable"] == 1
        assert result["missing_variants"] == ["rs1"]
        assert result["missing_genes"] == ["GENE_061"]

    def test_named_columns(self) -> None:
        """Test columns selected by name."""
        pairs = pd.DataFrame({"gene": ["G1"], "snp": ["rs9"]})
        result = validate_eqtl_pairs(
            pairs, ["rs9"], ["G1"], variant_column="snp", gene_column="gene"
        )
        assert result["n_usable"] == 1

    def test_single_column_raises(self) -> None:
        """Test a table with one column is rejected."""
        with pytest.raises(ValidationError):
            validate_eqtl_pairs(pd.DataFrame({"variant": ["rs1"]}), ["rs1"], ["G1"])


class TestValidateSampleConsistency:
    """Tests for validate_sample_consistency function."""

    def test_matching_samples(self) -> None:
        """Test validation with matching samples."""
        samples = ["S1", "S2", "S3"]
        result = validate_sample_consistency(samples, samples)
        assert len(result["common"]) == 3

    def test_partial_overlap(self) -> None:
        """Test validation with partial sample overlap."""
        geno_samples = ["S1", "S2", "S3", "S4"]
        expr_samples = ["S2", "S3", "S4", "S5"]

        result = validate_sample_consistency(geno_samples, expr_samples)
        assert len(result["common"]) == 3
        assert "S1" in result["genotype_only"]
        assert "S5" in result["expression_only"]

    def test_no_overlap_raises(self) -> None:
        """Test validation raises when no common samples."""
        geno_samples = ["S1", "S2"]
        expr_samples = ["S3", "S4"]

        with pytest.raises(ValidationError):
            validate_sample_consistency(geno_samples, expr_samples)
