"""Utility modules for Findr analyses."""

from findr_analysis.utils.config import Config, load_config
from findr_analysis.utils.logging import setup_logging, get_logger
from findr_analysis.utils.validators import (
    ValidationError,
    validate_file_exists,
    validate_expression_matrix,
    validate_genotype_matrix,
    validate_eqtl_pairs,
)
from findr_analysis.utils.io import (
    read_table,
    write_table,
    read_expression_table,
    read_genotype_table,
    read_eqtl_table,
)

__all__ = [
    "Config",
    "load_config",
    "setup_logging",
    "get_logger",
    "ValidationError",
    "validate_file_exists",
    "validate_expression_matrix",
    "validate_genotype_matrix",
    "validate_eqtl_pairs",
    "read_table",
    "write_table",
    "read_expression_table",
    "read_genotype_table",
    "read_eqtl_table",
]
