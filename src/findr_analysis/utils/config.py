"""Configuration management for the Findr analysis package."""

from __future__ import annotations

import os
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any

import yaml

POSTERIOR_METHODS = ("moments", "kde")
COMBINATIONS = ("none", "IV", "mediation", "orig")
DAG_METHODS = ("greedy", "heuristic")
OUTPUT_FORMATS = ("tsv", "csv", "parquet", "arrow")


def default_pi0_lambdas() -> list[float]:
    """Storey lambda grid 0.05, 0.10, ..., 0.90."""
    return [round(0.05 * i, 2) for i in range(1, 19)]


@dataclass
class NormalizationConfig:
    """Supernormalization of expression data."""

    enabled: bool = True
    rank_offset: float = 0.5


@dataclass
class PosteriorConfig:
    """Fitting of null/real mixtures to obtain posterior probabilities."""

    method: str = "moments"
    kde_bandwidth: str | float = "silverman"
    kde_gridsize: int | None = None
    pi0_lambdas: list[float] = field(default_factory=default_pi0_lambdas)


@dataclass
class InferenceConfig:
    """Options of the findr entry point."""

    fdr: float = 1.0
    combination: str = "IV"
    sorted: bool = True
    dag_method: str = "greedy"


@dataclass
class PipelineConfig:
    """Main configuration."""

    # Input paths
    expression_file: str | None = None
    genotype_file: str | None = None
    eqtl_file: str | None = None

    # Output
    output_dir: str = "results"
    log_dir: str = "logs"
    output_format: str = "tsv"

    # Sub-configurations
    normalization: NormalizationConfig = field(default_factory=NormalizationConfig)
    posterior: PosteriorConfig = field(default_factory=PosteriorConfig)
    inference: InferenceConfig = field(default_factory=InferenceConfig)

    verbose: bool = True


class Config:
    """Configuration manager for Findr analyses."""

    SECTIONS = ("normalization", "posterior", "inference")

    def __init__(self, config_path: str | Path | None = None) -> None:
        """
        Initialize configuration.

        Args:
            config_path: Path to YAML configuration file.
                        If None, uses default configuration.
        """
        self._config = PipelineConfig()
        if config_path is not None:
            self.load(config_path)

    @property
    def pipeline(self) -> PipelineConfig:
        """Get the main configuration."""
        return self._config

    @property
    def normalization(self) -> NormalizationConfig:
        """Get normalization configuration."""
        return self._config.normalization

    @property
    def posterior(self) -> PosteriorConfig:
        """Get posterior fitting configuration."""
        return self._config.posterior

    @property
    def inference(self) -> InferenceConfig:
        """Get inference configuration."""
        return self._config.inference

    def load(self, config_path: str | Path) -> None:
        """
        Load configuration from a YAML file.

        Args:
            config_path: Path to the configuration file.

        Raises:
            FileNotFoundError: If the configuration file does not exist.
            ValueError: If the configuration file is invalid.
        """
        config_path = Path(config_path)
        if not config_path.exists():
            raise FileNotFoundError(f"Configuration file not found: {config_path}")

        with open(config_path, encoding="utf-8") as f:
            data = yaml.safe_load(f)

        if data is None:
            raise ValueError(f"Empty configuration file: {config_path}")
        if not isinstance(data, dict):
            raise ValueError(f"Configuration must be a mapping: {config_path}")

        self._update_config(data)

    def _update_config(self, data: dict[str, Any]) -> None:
        """Update configuration from dictionary."""
        for key, value in data.items():
            if key in self.SECTIONS and isinstance(value, dict):
                section = getattr(self._config, key)
                for sub_key, sub_value in value.items():
                    if hasattr(section, sub_key):
                        setattr(section, sub_key, sub_value)
            elif key not in self.SECTIONS and hasattr(self._config, key):
                setattr(self._config, key, value)

    def save(self, config_path: str | Path) -> None:
        """
        Save current configuration to a YAML file.

        Args:
            config_path: Path to save the configuration.
        """
        config_path = Path(config_path)
        config_path.parent.mkdir(parents=True, exist_ok=True)

        with open(config_path, "w", encoding="utf-8") as f:
            yaml.dump(self._to_dict(), f, default_flow_style=False, sort_keys=False)

    def _to_dict(self) -> dict[str, Any]:
        """Convert configuration to dictionary."""
        return asdict(self._config)

    def validate(self) -> list[str]:
        """
        Validate the configuration.

        Returns:
            List of validation error messages. Empty if valid.
        """
        errors = []

        for name in ("expression_file", "genotype_file", "eqtl_file"):
            path = getattr(self._config, name)
            if path and not Path(path).exists():
                errors.append(f"{name} not found: {path}")

        if self._config.output_format not in OUTPUT_FORMATS:
            errors.append(f"output_format must be one of {OUTPUT_FORMATS}")

        if not 0 <= self.normalization.rank_offset <= 0.5:
            errors.append("rank_offset must be between 0 and 0.5")

        if self.posterior.method not in POSTERIOR_METHODS:
            errors.append(f"posterior method must be one of {POSTERIOR_METHODS}")

        if not self.posterior.pi0_lambdas or not all(
            0 <= lam < 1 for lam in self.posterior.pi0_lambdas
        ):
            errors.append("pi0_lambdas must be a non-empty list of values in [0, 1)")

        if self.inference.combination not in COMBINATIONS:
            errors.append(f"combination must be one of {COMBINATIONS}")

        if not 0 < self.inference.fdr <= 1:
            errors.append("fdr must be between 0 and 1")

        if self.inference.dag_method not in DAG_METHODS:
            errors.append(f"dag_method must be one of {DAG_METHODS}")

        return errors

    @classmethod
    def from_env(cls) -> Config:
        """
        Create configuration from environment variables.

        Environment variables should be prefixed with FINDR_.

        Returns:
            Config instance with values from environment.
        """
        config = cls()

        env_mappings = {
            "FINDR_EXPRESSION_FILE": ("expression_file", str),
            "FINDR_GENOTYPE_FILE": ("genotype_file", str),
            "FINDR_EQTL_FILE": ("eqtl_file", str),
            "FINDR_OUTPUT_DIR": ("output_dir", str),
            "FINDR_VERBOSE": ("verbose", lambda x: x.lower() == "true"),
            "FINDR_METHOD": ("posterior.method", str),
            "FINDR_FDR": ("inference.fdr", float),
            "FINDR_COMBINATION": ("inference.combination", str),
        }

        for env_var, (attr_path, converter) in env_mappings.items():
            value = os.environ.get(env_var)
            if value is not None:
                parts = attr_path.split(".")
                if len(parts) == 1:
                    setattr(config._config, parts[0], converter(value))
                else:
                    sub_config = getattr(config._config, parts[0])
                    setattr(sub_config, parts[1], converter(value))

        return config


def load_config(config_path: str | Path | None = None) -> Config:
    """
    Load configuration from file or create default.

    Args:
        config_path: Optional path to configuration file.

    Returns:
        Loaded or default configuration.
    """
    return Config(config_path)
