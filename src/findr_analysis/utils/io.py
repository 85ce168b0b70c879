"""I/O utilities for Findr analyses.

Tables are read from Arrow IPC / Feather, Parquet, or delimited text files.
Expression and genotype tables are samples x features, with an optional
non-numeric first column holding sample IDs.
"""

from __future__ import annotations

import gzip
import re
from pathlib import Path
from typing import Literal

import pandas as pd
import pyarrow as pa
import pyarrow.feather as feather

from findr_analysis.utils.logging import get_logger
from findr_analysis.utils.validators import validate_file_exists

logger = get_logger(__name__)

ARROW_SUFFIXES = (".arrow", ".feather", ".ipc")

TableFormat = Literal["auto", "arrow", "parquet", "tsv", "csv"]

GENOTYPE_CALL = re.compile(r"^(\d+|\.)([/|](\d+|\.))*$")


def detect_format(file_path: str | Path) -> str:
    """
    Detect table format from the file name.

    Args:
        file_path: Path to the table.

    Returns:
        One of "arrow", "parquet", "tsv", "csv".
    """
    name = str(file_path).lower()
    if name.endswith(".gz"):
        name = name[:-3]

    if name.endswith(ARROW_SUFFIXES):
        return "arrow"
    if name.endswith(".parquet"):
        return "parquet"
    if name.endswith(".csv"):
        return "csv"
    return "tsv"


def read_arrow(file_path: str | Path) -> pd.DataFrame:
    """
    Read an Arrow IPC file (Feather v2) or an Arrow IPC stream.

    Args:
        file_path: Path to the Arrow file.

    Returns:
        Table as DataFrame.
    """
    try:
        table = feather.read_table(str(file_path))
    except pa.ArrowInvalid:
        # Not the file format; try the streaming format
        with pa.memory_map(str(file_path), "r") as source:
            table = pa.ipc.open_stream(source).read_all()
    return table.to_pandas()


def read_table(
    file_path: str | Path,
    file_format: TableFormat = "auto",
) -> pd.DataFrame:
    """
    Read a table from file.

    Args:
        file_path: Path to the table.
        file_format: File format. Detected from the suffix if "auto".

    Returns:
        Table as DataFrame.
    """
    file_path = Path(file_path)
    validate_file_exists(file_path, "Table file")

    if file_format == "auto":
        file_format = detect_format(file_path)

    if file_format == "arrow":
        df = read_arrow(file_path)
    elif file_format == "parquet":
        df = pd.read_parquet(file_path)
    elif file_format == "csv":
        df = pd.read_csv(file_path)
    else:
        df = pd.read_csv(file_path, sep="\t")

    logger.debug(f"Read {file_format} table {file_path}: {df.shape[0]} rows x {df.shape[1]} columns")
    return df


def _set_sample_index(df: pd.DataFrame, sample_column: str | None) -> pd.DataFrame:
    """Move the sample ID column to the index."""
    if sample_column is not None:
        if sample_column not in df.columns:
            raise ValueError(f"Sample column not found: {sample_column}")
        return df.set_index(sample_column)

    first = df.columns[0]
    if not pd.api.types.is_numeric_dtype(df[first]):
        return df.set_index(first)
    return df


def read_expression_table(
    file_path: str | Path,
    sample_column: str | None = None,
    transpose: bool = False,
    file_format: TableFormat = "auto",
) -> pd.DataFrame:
    """
    Read an expression table.

    Args:
        file_path: Path to expression file.
        sample_column: Column holding sample IDs. If None, a non-numeric
            first column is used when present.
        transpose: Whether the file is genes x samples.
        file_format: File format.

    Returns:
        Expression table (samples x genes).
    """
    df = read_table(file_path, file_format)

    if transpose:
        df = _set_sample_index(df, sample_column).T
        df.columns = df.columns.astype(str)
    else:
        df = _set_sample_index(df, sample_column)

    df = df.astype(float)
    logger.info(f"Read expression table: {df.shape[0]} samples x {df.shape[1]} genes")
    return df


def read_genotype_table(
    file_path: str | Path,
    sample_column: str | None = None,
    file_format: TableFormat = "auto",
) -> pd.DataFrame:
    """
    Read a genotype table.

    Args:
        file_path: Path to genotype file.
        sample_column: Column holding sample IDs. If None, the first column
            is used when it is not a genotype column (see below).
        file_format: File format.

    Returns:
        Genotype table (samples x variants).
    """
    df = read_table(file_path, file_format)

    if sample_column is not None:
        df = df.set_index(sample_column)
    elif _looks_like_sample_ids(df.iloc[:, 0]):
        df = df.set_index(df.columns[0])

    logger.info(f"Read genotype table: {df.shape[0]} samples x {df.shape[1]} variants")
    return df


def _looks_like_sample_ids(column: pd.Series) -> bool:
    """Sample IDs are unique per row and are not genotype calls."""
    if pd.api.types.is_numeric_dtype(column):
        return False
    if column.nunique() != len(column):
        return False
    values = column.dropna().astype(str).str.strip()
    return not values.str.match(GENOTYPE_CALL).all()


def read_eqtl_table(
    file_path: str | Path,
    file_format: TableFormat = "auto",
) -> pd.DataFrame:
    """
    Read a cis-eQTL/gene mapping table.

    Args:
        file_path: Path to eQTL file.
        file_format: File format.

    Returns:
        eQTL table with variant and gene columns.
    """
    df = read_table(file_path, file_format)
    if df.shape[1] < 2:
        raise ValueError(f"eQTL table needs at least two columns: {file_path}")

    logger.info(f"Read eQTL table with {len(df)} pairs")
    return df


def write_table(
    df: pd.DataFrame,
    output_path: str | Path,
    file_format: TableFormat = "auto",
    index: bool = False,
) -> Path:
    """
    Write a table to file.

    Args:
        df: Table to write.
        output_path: Output file path.
        file_format: File format. Detected from the suffix if "auto".
        index: Whether to write the index as a column.

    Returns:
        Path to written file.
    """
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)

    if file_format == "auto":
        file_format = detect_format(output_path)

    if file_format == "arrow":
        out = df.reset_index() if index else df.reset_index(drop=True)
        out.to_feather(output_path)
    elif file_format == "parquet":
        df.to_parquet(output_path, index=index)
    elif file_format == "csv":
        df.to_csv(output_path, index=index)
    else:
        df.to_csv(output_path, sep="\t", index=index)

    logger.info(f"Wrote {len(df)} rows to {output_path}")
    return output_path


def read_lines(file_path: str | Path) -> list[str]:
    """
    Read non-empty lines from a (possibly gzipped) text file.

    Args:
        file_path: Path to the file.

    Returns:
        Stripped non-empty lines.
    """
    file_path = Path(file_path)
    validate_file_exists(file_path, "List file")

    opener = gzip.open if str(file_path).endswith(".gz") else open
    with opener(file_path, "rt", encoding="utf-8") as f:
        return [line.strip() for line in f if line.strip()]


def ensure_directory(path: str | Path) -> Path:
    """
    Ensure directory exists, creating if necessary.

    Args:
        path: Directory path.

    Returns:
        Path object.
    """
    path = Path(path)
    path.mkdir(parents=True, exist_ok=True)
    return path
