"""
Factor analysis diagnostics: cross-loadings and variables without loadings.

Computed from FAAnalysisData alone, so they are available even when the
language model reply is unusable.
"""

from dataclasses import dataclass, field
from typing import Any

import numpy as np

from psych_interpreter.analyses.fa.model_data import FAAnalysisData
from psych_interpreter.core.analysis_data import FitSummary
from psych_interpreter.core.analysis_kind import AnalysisKind
from psych_interpreter.core.report_format import format_loading

__all__ = ["CrossLoading", "UncoveredVariable", "FAFitSummary", "find_cross_loadings", "find_no_loadings", "build_fa_fit_summary"]


@dataclass(frozen=True)
class CrossLoading:
    """A variable reaching the cutoff on more than one factor."""

    variable: str
    description: str
    loadings: tuple[tuple[str, float], ...]  # (factor, loading) in factor order

    def format(self) -> str:
        return ", ".join(f"{factor} ({format_loading(value)})" for factor, value in self.loadings)


@dataclass(frozen=True)
class UncoveredVariable:
    """A variable reaching the cutoff on no factor."""

    variable: str
    description: str
    highest_factor: str
    highest_loading: float


@dataclass(frozen=True, kw_only=True)
class FAFitSummary(FitSummary):
    kind: AnalysisKind = AnalysisKind.FA
    cross_loadings: tuple[CrossLoading, ...] = ()
    no_loadings: tuple[UncoveredVariable, ...] = ()
    emergency_factors: tuple[str, ...] = ()
    undefined_factors: tuple[str, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        result["cross_loadings"] = [
            {"variable": c.variable, "description": c.description, "loadings": dict(c.loadings)}
            for c in self.cross_loadings
        ]
        result["no_loadings"] = [
            {
                "variable": u.variable,
                "description": u.description,
                "highest_factor": u.highest_factor,
                "highest_loading": u.highest_loading,
            }
            for u in self.no_loadings
        ]
        result["emergency_factors"] = list(self.emergency_factors)
        result["undefined_factors"] = list(self.undefined_factors)
        return result


def find_cross_loadings(data: FAAnalysisData) -> list[CrossLoading]:
    """Variables with |loading| >= cutoff on two or more factors, in table order."""
    matrix = data.loading_matrix()
    factors = data.component_names
    found = []
    for row, variable in enumerate(data.variable_names):
        hits = [(factors[col], float(matrix[row, col])) for col in range(len(factors)) if abs(matrix[row, col]) >= data.cutoff]
        if len(hits) > 1:
            found.append(CrossLoading(variable, data.describe(variable), tuple(hits)))
    return found


def find_no_loadings(data: FAAnalysisData) -> list[UncoveredVariable]:
    """Variables with no |loading| >= cutoff, with their strongest loading, in table order."""
    matrix = data.loading_matrix()
    factors = data.component_names
    found = []
    for row, variable in enumerate(data.variable_names):
        magnitudes = np.abs(matrix[row])
        if np.all(magnitudes < data.cutoff):
            # argmax returns the first maximum, so ties go to the earlier factor
            best = int(np.argmax(magnitudes))
            found.append(UncoveredVariable(variable, data.describe(variable), factors[best], float(matrix[row, best])))
    return found


def build_fa_fit_summary(analysis_data: FAAnalysisData) -> FAFitSummary:
    cross = find_cross_loadings(analysis_data)
    uncovered = find_no_loadings(analysis_data)

    warnings = []
    if cross:
        warnings.append(
            f"{len(cross)} variable(s) load on more than one factor: {', '.join(c.variable for c in cross)}"
        )
    if uncovered:
        warnings.append(
            f"{len(uncovered)} variable(s) reach the cutoff on no factor: {', '.join(u.variable for u in uncovered)}"
        )
    if analysis_data.undefined_factors:
        warnings.append(f"Undefined factor(s) with no significant loadings: {', '.join(analysis_data.undefined_factors)}")

    notes = []
    if analysis_data.emergency_factors:
        notes.append(
            f"Emergency rule applied to {', '.join(analysis_data.emergency_factors)}: "
            f"top {analysis_data.n_emergency} loadings used; interpretations are tentative"
        )

    return FAFitSummary(
        warnings=tuple(warnings),
        notes=tuple(notes),
        statistics={
            "n_factors": analysis_data.n_components,
            "n_variables": analysis_data.n_variables,
            "cutoff": analysis_data.cutoff,
            "total_variance_explained": analysis_data.total_variance_explained,
        },
        cross_loadings=tuple(cross),
        no_loadings=tuple(uncovered),
        emergency_factors=tuple(analysis_data.emergency_factors),
        undefined_factors=tuple(analysis_data.undefined_factors),
    )
