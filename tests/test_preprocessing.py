"""Tests for preprocessing modules."""

from pathlib import Path

import numpy as np
import pandas as pd
import pytest
from scipy import stats

from findr_analysis.preprocessing.genotypes import (
    GenotypePreprocessor,
    encode_genotypes,
    genotypes_to_numeric,
    parse_genotype,
)
from findr_analysis.preprocessing.phenotypes import ExpressionPreprocessor, supernormalize


class TestSupernormalize:
    """Tests for supernormalize."""

    def test_zero_mean_unit_variance(self) -> None:
        """Test every column has mean 0 and population variance 1."""
        np.random.seed(0)
        X = np.random.exponential(size=(50, 4))

        Z = supernormalize(X)

        assert Z.shape == X.shape
        np.testing.assert_allclose(Z.mean(axis=0), 0.0, atol=1e-12)
        np.testing.assert_allclose(Z.var(axis=0), 1.0, atol=1e-12)

    def test_preserves_order(self) -> None:
        """Test the transformation is monotone within each column."""
        np.random.seed(1)
        x = np.random.normal(size=30)

        z = supernormalize(x)

        assert z.ndim == 1
        np.testing.assert_array_equal(np.argsort(z), np.argsort(x))

    def test_matches_normal_quantiles(self) -> None:
        """Test values are standardized normal quantiles of the ranks."""
        x = np.array([3.0, 1.0, 2.0, 5.0, 4.0])
        expected = stats.norm.ppf((np.array([3, 1, 2, 5, 4]) - 0.5) / 5)
        expected = (expected - expected.mean()) / expected.std()

        np.testing.assert_allclose(supernormalize(x), expected)

    def test_ties_share_value(self) -> None:
        """Test tied values get the same normalized value."""
        z = supernormalize(np.array([1.0, 2.0, 2.0, 3.0, 4.0, 5.0]))
        assert z[1] == z[2]

    def test_constant_column_is_zero(self) -> None:
        """Test constant columns become zeros."""
        X = np.column_stack([np.arange(10.0), np.full(10, 3.0)])

        Z = supernormalize(X)

        np.testing.assert_array_equal(Z[:, 1], 0.0)
        assert np.isclose(Z[:, 0].var(), 1.0)

    def test_dataframe_keeps_labels(self) -> None:
        """Test DataFrame index and columns are kept."""
        df = pd.DataFrame(
            np.random.normal(size=(8, 3)),
            index=[f"S{i}" for i in range(8)],
            columns=["A", "B", "C"],
        )

        result = supernormalize(df)

        assert isinstance(result, pd.DataFrame)
        assert list(result.columns) == ["A", "B", "C"]
        assert list(result.index) == list(df.index)

    def test_invariant_to_monotone_transform(self) -> None:
        """Test only ranks matter."""
        np.random.seed(2)
        x = np.random.uniform(1, 10, size=40)
        np.testing.assert_allclose(supernormalize(x), supernormalize(np.log(x)))

    def test_missing_values_raise(self) -> None:
        """Test missing values are rejected."""
        with pytest.raises(ValueError, match="missing"):
            supernormalize(np.array([1.0, np.nan, 3.0]))

    def test_invalid_offset_raises(self) -> None:
        """Test rank offsets outside [0, 0.5] are rejected."""
        with pytest.raises(ValueError, match="Rank offset"):
            supernormalize(np.arange(5.0), c=0.8)


class TestGenotypeEncoding:
    """Tests for genotype parsing and encoding."""

    def test_parse_genotype(self) -> None:
        """Test genotype string to allele count conversion."""
        assert parse_genotype("0/0") == 0
        assert parse_genotype("0|1") == 1
        assert parse_genotype("1/1") == 2
        assert parse_genotype(2) == 2
        assert np.isnan(parse_genotype("./."))
        assert np.isnan(parse_genotype(None))

    def test_genotypes_to_numeric(self) -> None:
        """Test conversion of a genotype table."""
        geno_df = pd.DataFrame({
            "rs1": ["0/0", "0/1", "1/1", "./."],
            "rs2": [0, 1, 2, 1],
        })

        numeric = genotypes_to_numeric(geno_df)

        assert numeric.loc[2, "rs1"] == 2
        assert pd.isna(numeric.loc[3, "rs1"])
        assert numeric["rs2"].tolist() == [0, 1, 2, 1]

    def test_encode_genotypes(self) -> None:
        """Test encoding into consecutive group codes."""
        G = np.array([[0, 5], [2, 5], [2, 7], [0, 5]])

        codes, n_groups = encode_genotypes(G)

        assert codes[:, 0].tolist() == [0, 1, 1, 0]
        assert codes[:, 1].tolist() == [0, 0, 1, 0]
        assert n_groups.tolist() == [2, 2]

    def test_encode_monomorphic(self) -> None:
        """Test monomorphic variants have one group."""
        _, n_groups = encode_genotypes(np.ones((6, 1)))
        assert n_groups.tolist() == [1]

    def test_encode_missing_raises(self) -> None:
        """Test missing genotypes are rejected."""
        with pytest.raises(ValueError, match="missing"):
            encode_genotypes(np.array([[0.0], [np.nan]]))


class TestGenotypePreprocessor:
    """Tests for GenotypePreprocessor."""

    def test_initialization(self, temp_dir: Path) -> None:
        """Test preprocessor initialization."""
        preprocessor = GenotypePreprocessor(output_dir=temp_dir)
        assert preprocessor.output_dir == temp_dir
        assert preprocessor.qc_stats is None

    def test_filter_monomorphic(self, temp_dir: Path) -> None:
        """Test variants without a second group are removed."""
        preprocessor = GenotypePreprocessor(min_group_size=2, output_dir=temp_dir)
        geno_df = pd.DataFrame({
            "poly": [0, 1, 2, 1, 0, 2],
            "mono": [1, 1, 1, 1, 1, 1],
            "rare": [0, 0, 0, 0, 0, 1],
        })

        filtered = preprocessor.filter_monomorphic(geno_df)

        assert list(filtered.columns) == ["poly"]

    def test_preprocess(self, temp_dir: Path, sample_genotype_file: Path) -> None:
        """Test full genotype preprocessing."""
        preprocessor = GenotypePreprocessor(output_dir=temp_dir / "out")

        output_path = preprocessor.preprocess(sample_genotype_file)

        assert output_path.exists()
        encoded = pd.read_csv(output_path, sep="\t", index_col=0)
        assert encoded.shape == (200, 10)
        assert set(np.unique(encoded.to_numpy())) == {0, 1, 2}
        assert preprocessor.qc_stats.final_variants == 10


class TestExpressionPreprocessor:
    """Tests for ExpressionPreprocessor."""

    def test_filter_low_variance(self, temp_dir: Path) -> None:
        """Test constant genes are removed."""
        preprocessor = ExpressionPreprocessor(output_dir=temp_dir)
        expr_df = pd.DataFrame({
            "A": [1.0, 2.0, 3.0, 4.0],
            "B": [2.0, 2.0, 2.0, 2.0],
        })

        filtered = preprocessor.filter_low_variance(expr_df)

        assert list(filtered.columns) == ["A"]

    def test_preprocess(self, temp_dir: Path, sample_expression_file: Path) -> None:
        """Test full expression preprocessing."""
        preprocessor = ExpressionPreprocessor(output_dir=temp_dir / "out")

        output_path = preprocessor.preprocess(sample_expression_file)

        assert output_path.exists()
        normalized = pd.read_csv(output_path, sep="\t", index_col=0)
        assert normalized.shape == (200, 300)
        assert normalized.index[0] == "SAMPLE_000"
        np.testing.assert_allclose(normalized.mean(axis=0), 0.0, atol=1e-8)
        assert preprocessor.qc_stats.final_genes == 300

    def test_preprocess_transposed(self, temp_dir: Path, sample_expression_data: pd.DataFrame) -> None:
        """Test genes x samples input."""
        path = temp_dir / "expression_T.tsv"
        sample_expression_data.T.rename_axis("gene").to_csv(path, sep="\t")
        preprocessor = ExpressionPreprocessor(output_dir=temp_dir / "out")

        output_path = preprocessor.preprocess(path, transpose=True)

        normalized = pd.read_csv(output_path, sep="\t", index_col=0)
        assert normalized.shape == (200, 300)
