"""Tests for configuration management."""

from pathlib import Path

import pytest

from findr_analysis.utils.config import (
    Config,
    InferenceConfig,
    PosteriorConfig,
    load_config,
)


class TestPosteriorConfig:
    """Tests for PosteriorConfig."""

    def test_default_values(self) -> None:
        """Test default configuration values."""
        config = PosteriorConfig()
        assert config.method == "moments"
        assert config.kde_bandwidth == "silverman"
        assert config.kde_gridsize is None
        assert config.pi0_lambdas[0] == 0.05
        assert config.pi0_lambdas[-1] == 0.9
        assert len(config.pi0_lambdas) == 18

    def test_custom_values(self) -> None:
        """Test custom configuration values."""
        config = PosteriorConfig(method="kde", kde_bandwidth=0.01)
        assert config.method == "kde"
        assert config.kde_bandwidth == 0.01


class TestInferenceConfig:
    """Tests for InferenceConfig."""

    def test_default_values(self) -> None:
        """Test default configuration values."""
        config = InferenceConfig()
        assert config.fdr == 1.0
        assert config.combination == "IV"
        assert config.sorted is True
        assert config.dag_method == "greedy"


class TestConfig:
    """Tests for Config class."""

    def test_default_config(self) -> None:
        """Test creating default configuration."""
        config = Config()
        assert config.pipeline is not None
        assert isinstance(config.posterior, PosteriorConfig)
        assert isinstance(config.inference, InferenceConfig)
        assert config.normalization.enabled is True

    def test_load_yaml_config(self, temp_dir: Path) -> None:
        """Test loading configuration from YAML file."""
        config_content = """
output_dir: custom_results
output_format: arrow
posterior:
    method: kde
    kde_gridsize: 1024
inference:
    fdr: 0.1
    combination: mediation
"""
        config_path = temp_dir / "config.yaml"
        config_path.write_text(config_content)

        config = Config(config_path)
        assert config.pipeline.output_dir == "custom_results"
        assert config.pipeline.output_format == "arrow"
        assert config.posterior.method == "kde"
        assert config.posterior.kde_gridsize == 1024
        assert config.inference.fdr == 0.1
        assert config.inference.combination == "mediation"

    def test_unknown_keys_ignored(self, temp_dir: Path) -> None:
        """Test unknown keys do not change the configuration."""
        config_path = temp_dir / "config.yaml"
        config_path.write_text("unknown_key: 1\ninference:\n    not_an_option: 2\n")

        config = Config(config_path)
        assert not hasattr(config.pipeline, "unknown_key")
        assert not hasattr(config.inference, "not_an_option")

    def test_load_nonexistent_file(self) -> None:
        """Test loading from nonexistent file raises error."""
        with pytest.raises(FileNotFoundError):
            Config("/nonexistent/path/config.yaml")

    def test_load_empty_file(self, temp_dir: Path) -> None:
        """Test loading an empty file raises error."""
        config_path = temp_dir / "empty.yaml"
        config_path.write_text("")
        with pytest.raises(ValueError, match="Empty"):
            Config(config_path)

    def test_save_config(self, temp_dir: Path) -> None:
        """Test saving configuration to file."""
        config = Config()
        config.pipeline.output_dir = "test_output"
        config.posterior.method = "kde"
        config.inference.fdr = 0.2

        save_path = temp_dir / "saved_config.yaml"
        config.save(save_path)

        assert save_path.exists()

        # Load and verify
        loaded_config = Config(save_path)
        assert loaded_config.pipeline.output_dir == "test_output"
        assert loaded_config.posterior.method == "kde"
        assert loaded_config.inference.fdr == 0.2

    def test_validate_valid_config(self) -> None:
        """Test validation of valid configuration."""
        config = Config()
        errors = config.validate()
        assert len(errors) == 0

    def test_validate_invalid_values(self) -> None:
        """Test validation catches invalid values."""
        config = Config()
        config.posterior.method = "em"
        config.inference.combination = "bayes"
        config.inference.fdr = 0.0
        config.normalization.rank_offset = 0.7
        config.pipeline.output_format = "xlsx"

        errors = config.validate()
        assert len(errors) == 5

    def test_validate_missing_input(self) -> None:
        """Test validation reports missing input files."""
        config = Config()
        config.pipeline.expression_file = "/nonexistent/expression.tsv"

        errors = config.validate()
        assert any("expression_file" in e for e in errors)

    def test_from_env(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test configuration from environment variables."""
        monkeypatch.setenv("FINDR_OUTPUT_DIR", "env_results")
        monkeypatch.setenv("FINDR_METHOD", "kde")
        monkeypatch.setenv("FINDR_FDR", "0.05")
        monkeypatch.setenv("FINDR_VERBOSE", "false")

        config = Config.from_env()
        assert config.pipeline.output_dir == "env_results"
        assert config.posterior.method == "kde"
        assert config.inference.fdr == 0.05
        assert config.pipeline.verbose is False


class TestLoadConfig:
    """Tests for load_config function."""

    def test_load_default(self) -> None:
        """Test loading default configuration."""
        config = load_config()
        assert isinstance(config, Config)
        assert config.pipeline is not None

    def test_load_from_file(self, temp_dir: Path) -> None:
        """Test loading configuration from file."""
        config_path = temp_dir / "config.yaml"
        config_path.write_text("inference:\n    dag_method: heuristic\n")

        config = load_config(config_path)
        assert config.inference.dag_method == "heuristic"
