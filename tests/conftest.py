"""Pytest configuration and fixtures for Findr analysis tests."""

from __future__ import annotations

import tempfile
from pathlib import Path
from typing import Generator

import numpy as np
import pandas as pd
import pytest

N_SAMPLES = 200
N_GENES = 300
N_VARIANTS = 10
N_TARGETS = 60  # GENE_001 ... GENE_060 are regulated by GENE_000


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for test outputs."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def sample_genotype_data() -> pd.DataFrame:
    """Create sample genotypes (samples x variants) coded 0/1/2."""
    np.random.seed(42)
    samples = [f"SAMPLE_{i:03d}" for i in range(N_SAMPLES)]
    variants = [f"rs{i}" for i in range(N_VARIANTS)]

    data = np.random.choice([0, 1, 2], size=(N_SAMPLES, N_VARIANTS), p=[0.25, 0.5, 0.25])
    return pd.DataFrame(data, index=samples, columns=variants)


@pytest.fixture
def sample_expression_data(sample_genotype_data: pd.DataFrame) -> pd.DataFrame:
    """
    Create sample expression data (samples x genes) with a known network.

    rs0 is the cis-eQTL of GENE_000, which regulates GENE_001 to GENE_060.
    rs1 is the cis-eQTL of GENE_061, which has no targets. All other genes
    are noise.
    """
    np.random.seed(7)
    genes = [f"GENE_{i:03d}" for i in range(N_GENES)]

    data = np.random.normal(size=(N_SAMPLES, N_GENES))

    g0 = sample_genotype_data["rs0"].to_numpy(dtype=float)
    a = g0 + np.random.normal(scale=0.5, size=N_SAMPLES)
    a = (a - a.mean()) / a.std()
    data[:, 0] = a

    data[:, 1:N_TARGETS + 1] = 0.7 * a[:, np.newaxis] + np.sqrt(0.51) * data[:, 1:N_TARGETS + 1]

    g1 = sample_genotype_data["rs1"].to_numpy(dtype=float)
    data[:, N_TARGETS + 1] = g1 + np.random.normal(scale=0.5, size=N_SAMPLES)

    # Shift and scale like log expression
    data = 5.0 + 2.0 * data
    return pd.DataFrame(data, index=sample_genotype_data.index, columns=genes)


@pytest.fixture
def sample_eqtl_pairs() -> pd.DataFrame:
    """Create the cis-eQTL table (variant, gene)."""
    return pd.DataFrame({
        "variant": ["rs0", "rs1"],
        "gene": ["GENE_000", f"GENE_{N_TARGETS + 1:03d}"],
    })


@pytest.fixture
def true_targets() -> list[str]:
    """Genes regulated by GENE_000."""
    return [f"GENE_{i:03d}" for i in range(1, N_TARGETS + 1)]


@pytest.fixture
def sample_expression_file(
    temp_dir: Path,
    sample_expression_data: pd.DataFrame,
) -> Path:
    """Create a sample expression file for testing."""
    expr_path = temp_dir / "expression.tsv"
    sample_expression_data.rename_axis("sample").to_csv(expr_path, sep="\t")
    return expr_path


@pytest.fixture
def sample_genotype_file(
    temp_dir: Path,
    sample_genotype_data: pd.DataFrame,
) -> Path:
    """Create a sample genotype file for testing."""
    geno_path = temp_dir / "genotypes.tsv"
    sample_genotype_data.rename_axis("sample").to_csv(geno_path, sep="\t")
    return geno_path


@pytest.fixture
def sample_eqtl_file(temp_dir: Path, sample_eqtl_pairs: pd.DataFrame) -> Path:
    """Create a sample eQTL file for testing."""
    eqtl_path = temp_dir / "eqtl.tsv"
    sample_eqtl_pairs.to_csv(eqtl_path, sep="\t", index=False)
    return eqtl_path


@pytest.fixture
def sample_results_data() -> pd.DataFrame:
    """Create a sample Findr result table."""
    np.random.seed(42)
    sources = [f"GENE_{i:03d}" for i in range(5)]
    targets = [f"GENE_{i:03d}" for i in range(100)]

    rows = [(s, t) for s in sources for t in targets if s != t]
    df = pd.DataFrame(rows, columns=["Source", "Target"])

    # About a tenth of the pairs are real
    real = np.random.uniform(size=len(df)) < 0.1
    df["Probability"] = np.where(
        real,
        np.random.uniform(0.9, 1.0, len(df)),
        np.random.uniform(0.0, 0.2, len(df)),
    )
    df["pvalue"] = np.where(
        real,
        np.random.uniform(0, 1e-4, len(df)),
        np.random.uniform(0, 1, len(df)),
    )
    return df


@pytest.fixture
def sample_results_file(temp_dir: Path, sample_results_data: pd.DataFrame) -> Path:
    """Create a sample results file for testing."""
    results_path = temp_dir / "results.tsv"
    sample_results_data.to_csv(results_path, sep="\t", index=False)
    return results_path
