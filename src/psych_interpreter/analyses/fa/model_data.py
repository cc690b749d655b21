"""
Factor analysis data builder.

Turns a loadings table (plus optional factor correlations) into an immutable
FAAnalysisData record, applying the significance cutoff and the emergency rule
per factor.
"""

from collections.abc import Mapping
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any

import numpy as np
import polars as pl
import structlog

from psych_interpreter.core.analysis_data import AnalysisData
from psych_interpreter.core.analysis_kind import AnalysisKind
from psych_interpreter.core.errors import InputValidationError
from psych_interpreter.core.frames import (
    VARIABLE_COLUMN,
    ensure_polars_df,
    as_float_matrix,
    cross_reference,
    is_frame,
    normalize_variable_info,
    read_only,
)
from psych_interpreter.core.options import AnalysisArgs

logger = structlog.get_logger()

__all__ = ["FAArgs", "LoadingEntry", "FactorSummary", "FAAnalysisData", "build_fa_analysis_data", "select_loadings"]

_KNOWN_LIST_KEYS = ("loadings", "factor_cor_mat", "Phi")


@dataclass(frozen=True)
class FAArgs(AnalysisArgs):
    """Factor analysis builder arguments (validated on construction)."""

    cutoff: float = 0.3
    n_emergency: int = 2
    hide_low_loadings: bool = False
    sort_loadings: bool = True


@dataclass(frozen=True)
class LoadingEntry:
    """One variable selected to characterize a factor."""

    variable: str
    description: str
    loading: float


@dataclass(frozen=True)
class FactorSummary:
    """
    Loadings that characterize one factor.

    Attributes:
        factor: Factor identifier (loadings column name)
        variables: Selected loadings, significant ones or emergency picks
        used_emergency_rule: True if no loading reached the cutoff and top-N were used
        is_undefined: True if no loading reached the cutoff and n_emergency is 0
        variance_explained: Sum of squared loadings divided by number of variables
    """

    factor: str
    variables: tuple[LoadingEntry, ...]
    used_emergency_rule: bool
    is_undefined: bool
    variance_explained: float

    @property
    def n_selected(self) -> int:
        return len(self.variables)


@dataclass(frozen=True, eq=False, kw_only=True)
class FAAnalysisData(AnalysisData):
    """
    Normalized factor analysis input.

    ``loadings`` has a ``variable`` column followed by one float column per
    factor, in the caller's row and column order.
    """

    loadings: pl.DataFrame
    factor_summaries: MappingProxyType
    factor_correlations: np.ndarray | None
    cutoff: float
    n_emergency: int
    hide_low_loadings: bool
    sort_loadings: bool

    @property
    def factor_names(self) -> tuple[str, ...]:
        return self.component_names

    @property
    def variance_explained(self) -> dict[str, float]:
        return {f: self.factor_summaries[f].variance_explained for f in self.component_names}

    @property
    def total_variance_explained(self) -> float:
        return float(sum(self.variance_explained.values()))

    @property
    def undefined_factors(self) -> list[str]:
        return [f for f in self.component_names if self.factor_summaries[f].is_undefined]

    @property
    def emergency_factors(self) -> list[str]:
        return [f for f in self.component_names if self.factor_summaries[f].used_emergency_rule]

    def loading_matrix(self) -> np.ndarray:
        """Variables x factors array of loadings."""
        return self.loadings.select(list(self.component_names)).to_numpy()


def select_loadings(
    loadings: np.ndarray, cutoff: float, n_emergency: int, sort_by_magnitude: bool = True
) -> tuple[list[int], bool, bool]:
    """
    Pick the row indices that characterize one factor.

    Rows with |loading| >= cutoff are selected. If none qualify, the emergency
    rule selects the ``n_emergency`` largest |loading| rows, ties kept in row
    order; with ``n_emergency == 0`` nothing is selected and the factor is
    undefined.

    Args:
        loadings: One factor's loadings, in row order
        cutoff: Significance threshold on |loading|
        n_emergency: Top-N fallback count
        sort_by_magnitude: Order significant rows by |loading| descending (stable)

    Returns:
        (row indices, used_emergency_rule, is_undefined)
    """
    magnitudes = np.abs(loadings)
    significant = [int(i) for i in np.flatnonzero(magnitudes >= cutoff)]

    if significant:
        if sort_by_magnitude:
            significant = sorted(significant, key=lambda i: -magnitudes[i])
        return significant, False, False

    if n_emergency == 0:
        return [], False, True

    ranked = np.argsort(-magnitudes, kind="stable")
    return [int(i) for i in ranked[: min(n_emergency, len(ranked))]], True, False


def _split_fit_results(fit_results: Any) -> tuple[Any, Any]:
    """Return (loadings, factor correlations) from the accepted input shapes."""
    if isinstance(fit_results, Mapping):
        if "loadings" not in fit_results:
            raise InputValidationError(
                "fit_results mapping must contain 'loadings'; "
                f"found keys: {', '.join(map(str, fit_results)) or '(none)'}"
            )
        unknown = [k for k in fit_results if k not in _KNOWN_LIST_KEYS]
        if unknown:
            logger.warning("fa_fit_results_unknown_keys", keys=unknown, recognized=list(_KNOWN_LIST_KEYS))
        correlations = fit_results.get("factor_cor_mat")
        if correlations is None:
            correlations = fit_results.get("Phi")
        return fit_results["loadings"], correlations

    return fit_results, None


def _loadings_frame(raw_loadings: Any, variable_info: dict[str, str]) -> pl.DataFrame:
    if is_frame(raw_loadings):
        frame = ensure_polars_df(raw_loadings)
        if VARIABLE_COLUMN not in frame.columns:
            string_cols = [c for c, dtype in frame.schema.items() if dtype == pl.Utf8]
            if len(string_cols) != 1:
                raise InputValidationError(
                    "Loadings table needs a 'variable' column (or pandas row labels) identifying each variable"
                )
            frame = frame.rename({string_cols[0]: VARIABLE_COLUMN})
        factor_cols = [c for c in frame.columns if c != VARIABLE_COLUMN]
    else:
        matrix = as_float_matrix(raw_loadings, "loadings")
        if matrix.shape[0] != len(variable_info):
            raise InputValidationError(
                f"Loadings matrix has {matrix.shape[0]} rows but variable_info describes "
                f"{len(variable_info)} variables; pass a DataFrame with a 'variable' column instead"
            )
        factor_cols = [f"Factor{i}" for i in range(1, matrix.shape[1] + 1)]
        frame = pl.DataFrame({VARIABLE_COLUMN: list(variable_info), **dict(zip(factor_cols, matrix.T))})

    if not factor_cols:
        raise InputValidationError("Loadings must contain at least one factor column")
    if frame.height == 0:
        raise InputValidationError("Loadings must contain at least one variable (row)")

    non_numeric = [c for c in factor_cols if not frame.schema[c].is_numeric()]
    if non_numeric:
        raise InputValidationError(f"Loadings columns must be numeric; non-numeric: {', '.join(non_numeric)}")

    frame = frame.select(
        pl.col(VARIABLE_COLUMN).cast(pl.Utf8),
        *[pl.col(c).cast(pl.Float64) for c in factor_cols],
    )

    variables = frame.get_column(VARIABLE_COLUMN).to_list()
    duplicates = sorted({v for v in variables if variables.count(v) > 1})
    if duplicates:
        raise InputValidationError(f"Loadings list variables more than once: {', '.join(duplicates)}")

    values = frame.select(factor_cols).to_numpy()
    with_missing = [v for v, missing in zip(variables, np.isnan(values).any(axis=1), strict=True) if missing]
    if with_missing:
        raise InputValidationError(f"Loadings contain missing values for: {', '.join(with_missing)}")

    return frame


def _correlation_matrix(raw: Any, factor_names: tuple[str, ...]) -> np.ndarray | None:
    if raw is None:
        return None
    matrix = as_float_matrix(raw, "factor_cor_mat")
    n = len(factor_names)
    if matrix.shape != (n, n):
        raise InputValidationError(
            f"factor_cor_mat must be {n}x{n} to match the loadings' factors, got {matrix.shape[0]}x{matrix.shape[1]}"
        )
    return read_only(matrix)


def build_fa_analysis_data(fit_results: Any, variable_info: Any = None, **analysis_args: Any) -> FAAnalysisData:
    """
    Build FAAnalysisData from loadings and variable descriptions.

    Args:
        fit_results: Loadings as a polars/pandas DataFrame (``variable`` column or
            pandas row labels plus one numeric column per factor), a numpy array
            (rows in variable_info order), or a mapping with ``loadings`` and
            optional ``factor_cor_mat``/``Phi``
        variable_info: DataFrame with ``variable``/``description`` columns, or a mapping
        **analysis_args: cutoff, n_emergency, hide_low_loadings, sort_loadings

    Returns:
        Immutable FAAnalysisData

    Raises:
        ConfigurationError: If an argument is unknown or out of bounds (checked first)
        InputValidationError: If inputs are malformed or variables do not cross-reference
    """
    args = FAArgs.from_mapping(analysis_args)

    if variable_info is None:
        raise InputValidationError("variable_info is required for factor analysis")
    descriptions = normalize_variable_info(variable_info)

    raw_loadings, raw_correlations = _split_fit_results(fit_results)
    frame = _loadings_frame(raw_loadings, descriptions)
    variables = frame.get_column(VARIABLE_COLUMN).to_list()
    cross_reference(variables, list(descriptions), "loadings")

    factor_names = tuple(c for c in frame.columns if c != VARIABLE_COLUMN)
    correlations = _correlation_matrix(raw_correlations, factor_names)

    summaries = {}
    n_vars = len(variables)
    for factor in factor_names:
        column = frame.get_column(factor).to_numpy()
        rows, used_emergency, undefined = select_loadings(column, args.cutoff, args.n_emergency, args.sort_loadings)
        summaries[factor] = FactorSummary(
            factor=factor,
            variables=tuple(
                LoadingEntry(variables[i], descriptions[variables[i]], float(column[i])) for i in rows
            ),
            used_emergency_rule=used_emergency,
            is_undefined=undefined,
            variance_explained=float(np.sum(column**2) / n_vars),
        )

    emergency = [f for f, s in summaries.items() if s.used_emergency_rule]
    undefined = [f for f, s in summaries.items() if s.is_undefined]
    if emergency or undefined:
        logger.info("fa_emergency_rule_applied", emergency_factors=emergency, undefined_factors=undefined)

    return FAAnalysisData(
        kind=AnalysisKind.FA,
        component_names=factor_names,
        variable_names=tuple(variables),
        variable_descriptions=descriptions,
        loadings=frame,
        factor_summaries=MappingProxyType(summaries),
        factor_correlations=correlations,
        cutoff=args.cutoff,
        n_emergency=args.n_emergency,
        hide_low_loadings=args.hide_low_loadings,
        sort_loadings=args.sort_loadings,
    )
