"""
Tabular input normalization shared by the analysis data builders.

Callers may hand over polars or pandas DataFrames, numpy arrays or plain
mappings; builders work on polars DataFrames and numpy arrays only.
"""

from collections.abc import Mapping
from typing import Any

import numpy as np
import pandas as pd
import polars as pl
import polars.selectors as cs

from psych_interpreter.core.errors import InputValidationError

VARIABLE_COLUMN = "variable"
DESCRIPTION_COLUMN = "description"


def ensure_polars_df(df: Any, index_name: str = VARIABLE_COLUMN) -> pl.DataFrame:
    """
    Convert pandas DataFrame to polars if needed.

    A pandas frame without a ``variable`` column has its index (row labels)
    promoted to that column.
    """
    if isinstance(df, pl.DataFrame):
        return df
    if isinstance(df, pd.DataFrame):
        if index_name not in df.columns and not isinstance(df.index, pd.RangeIndex):
            df = df.rename_axis(index_name).reset_index()
            df[index_name] = df[index_name].astype(str)
        return pl.from_pandas(df)
    raise InputValidationError(f"Expected a polars or pandas DataFrame, got {type(df).__name__}")


def is_frame(value: Any) -> bool:
    return isinstance(value, pl.DataFrame | pd.DataFrame)


def normalize_variable_info(variable_info: Any) -> dict[str, str]:
    """
    Normalize variable descriptions to an ordered ``{variable: description}`` dict.

    Accepts a DataFrame with ``variable`` and ``description`` columns, or a mapping.

    Raises:
        InputValidationError: If required columns are missing or variables repeat
    """
    if variable_info is None:
        return {}

    if isinstance(variable_info, Mapping):
        return {str(k): "" if v is None else str(v) for k, v in variable_info.items()}

    frame = ensure_polars_df(variable_info)
    missing = [c for c in (VARIABLE_COLUMN, DESCRIPTION_COLUMN) if c not in frame.columns]
    if missing:
        raise InputValidationError(
            f"variable_info must contain 'variable' and 'description' columns; missing: {', '.join(missing)}"
        )

    variables = [str(v) for v in frame.get_column(VARIABLE_COLUMN).to_list()]
    duplicates = sorted({v for v in variables if variables.count(v) > 1})
    if duplicates:
        raise InputValidationError(f"variable_info lists variables more than once: {', '.join(duplicates)}")

    descriptions = frame.get_column(DESCRIPTION_COLUMN).to_list()
    return {var: "" if desc is None else str(desc) for var, desc in zip(variables, descriptions, strict=True)}


def cross_reference(
    table_variables: list[str], described_variables: list[str], table_label: str
) -> None:
    """
    Check that a data table and variable_info describe the same variables.

    Raises:
        InputValidationError: Naming every variable missing on either side
    """
    described = set(described_variables)
    in_table = set(table_variables)
    problems = []

    not_described = [v for v in table_variables if v not in described]
    if not_described:
        problems.append(f"Variables in {table_label} not found in variable_info: {', '.join(not_described)}")

    not_in_table = [v for v in described_variables if v not in in_table]
    if not_in_table:
        problems.append(f"Variables in variable_info not found in {table_label}: {', '.join(not_in_table)}")

    if problems:
        raise InputValidationError("; ".join(problems))


def as_float_matrix(value: Any, label: str) -> np.ndarray:
    """Convert a frame/array/nested list to a 2-D float array, or fail naming ``label``."""
    if isinstance(value, pl.DataFrame):
        value = value.select(cs.numeric()).to_numpy()
    elif isinstance(value, pd.DataFrame):
        value = value.select_dtypes("number").to_numpy()
    try:
        matrix = np.asarray(value, dtype=float)
    except (TypeError, ValueError) as e:
        raise InputValidationError(f"{label} must be numeric: {e}") from e
    if matrix.ndim != 2:
        raise InputValidationError(f"{label} must be a 2-D matrix, got {matrix.ndim} dimension(s)")
    return matrix


def read_only(array: np.ndarray) -> np.ndarray:
    """Copy of ``array`` with the writeable flag cleared."""
    frozen = np.array(array, copy=True)
    frozen.flags.writeable = False
    return frozen
