"""
Gaussian mixture diagnostics: cluster sizes, uncertainty, separation and
distinguishing variables.

Computed from GMAnalysisData alone, so they are available even when the
language model reply is unusable.
"""

from dataclasses import dataclass, field
from itertools import combinations
from typing import Any

import numpy as np

from psych_interpreter.analyses.gm.model_data import GMAnalysisData
from psych_interpreter.core.analysis_data import FitSummary
from psych_interpreter.core.analysis_kind import AnalysisKind
from psych_interpreter.core.report_format import format_percent

__all__ = [
    "SeparationPair",
    "DistinguishingVariable",
    "GMFitSummary",
    "compute_separation",
    "find_distinguishing_variables",
    "build_gm_fit_summary",
]

IMBALANCE_RATIO_LIMIT = 5.0
UNCERTAIN_SHARE_LIMIT = 0.3
MIN_SEPARATION = 2.0
_CONDITION_LIMIT = 1e12


@dataclass(frozen=True)
class SeparationPair:
    cluster_a: str
    cluster_b: str
    distance: float


@dataclass(frozen=True)
class DistinguishingVariable:
    """A variable on which a cluster departs from the others."""

    variable: str
    description: str
    mean: float
    score: float
    direction: str  # "higher" | "lower"


@dataclass(frozen=True, kw_only=True)
class GMFitSummary(FitSummary):
    kind: AnalysisKind = AnalysisKind.GM
    separations: tuple[SeparationPair, ...] = ()
    distance_metric: str = "mahalanobis"
    distinguishing_variables: dict[str, tuple[DistinguishingVariable, ...]] = field(default_factory=dict)
    cluster_uncertainty: dict[str, float | None] = field(default_factory=dict)

    @property
    def overlapping_pairs(self) -> list[SeparationPair]:
        return [pair for pair in self.separations if pair.distance < MIN_SEPARATION]

    @property
    def min_separation(self) -> float | None:
        return min((pair.distance for pair in self.separations), default=None)

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        result["distance_metric"] = self.distance_metric
        result["separations"] = [
            {"clusters": [p.cluster_a, p.cluster_b], "distance": p.distance} for p in self.separations
        ]
        result["distinguishing_variables"] = {
            cluster: [
                {"variable": v.variable, "mean": v.mean, "score": v.score, "direction": v.direction} for v in variables
            ]
            for cluster, variables in self.distinguishing_variables.items()
        }
        result["cluster_uncertainty"] = dict(self.cluster_uncertainty)
        return result


def compute_separation(data: GMAnalysisData) -> tuple[list[SeparationPair], str]:
    """
    Pairwise distances between cluster means.

    Uses the Mahalanobis distance under the average of the two clusters'
    covariances; falls back to Euclidean distance for every pair when any
    averaged covariance is singular or ill-conditioned.

    Returns:
        (pairs in (i, j) order with i < j, metric name)
    """
    names = data.component_names
    pairs = list(combinations(range(data.n_components), 2))
    if not pairs:
        return [], "mahalanobis"

    distances = []
    for i, j in pairs:
        pooled = (data.covariances[i] + data.covariances[j]) / 2.0
        diff = data.means[:, i] - data.means[:, j]
        if np.linalg.cond(pooled) > _CONDITION_LIMIT:
            break
        try:
            solved = np.linalg.solve(pooled, diff)
        except np.linalg.LinAlgError:
            break
        distances.append(float(np.sqrt(max(float(diff @ solved), 0.0))))
    else:
        return [SeparationPair(names[i], names[j], d) for (i, j), d in zip(pairs, distances, strict=True)], "mahalanobis"

    euclidean = [float(np.linalg.norm(data.means[:, i] - data.means[:, j])) for i, j in pairs]
    return [SeparationPair(names[i], names[j], d) for (i, j), d in zip(pairs, euclidean, strict=True)], "euclidean"


def find_distinguishing_variables(data: GMAnalysisData, top_n: int | None = None) -> dict[str, tuple[DistinguishingVariable, ...]]:
    """
    Rank variables per cluster by |mean - overall mean| + |mean - mean of other clusters|.

    Ties keep variable order. With a single cluster every score is 0.
    """
    top_n = top_n or data.top_n_distinguishing
    overall = data.means.mean(axis=1)
    result = {}
    for k, cluster in enumerate(data.component_names):
        own = data.means[:, k]
        if data.n_components > 1:
            others = np.delete(data.means, k, axis=1).mean(axis=1)
        else:
            others = own
        scores = np.abs(own - overall) + np.abs(own - others)
        order = np.argsort(-scores, kind="stable")[:top_n]
        result[cluster] = tuple(
            DistinguishingVariable(
                variable=data.variable_names[i],
                description=data.describe(data.variable_names[i]),
                mean=float(own[i]),
                score=float(scores[i]),
                direction="higher" if own[i] >= others[i] else "lower",
            )
            for i in order
        )
    return result


def _covariance_notes(covariance_type: str) -> list[str]:
    if covariance_type == "VVV":
        return [
            "Covariance model VVV lets clusters differ in volume, shape and orientation; "
            "check that the sample size supports this many parameters"
        ]
    if covariance_type == "EII":
        return ["Covariance model EII assumes uncorrelated variables with equal variance in every cluster"]
    return []


def build_gm_fit_summary(analysis_data: GMAnalysisData) -> GMFitSummary:
    data = analysis_data
    names = data.component_names
    warnings: list[str] = []
    notes: list[str] = []

    statistics: dict[str, Any] = {
        "n_clusters": data.n_components,
        "n_variables": data.n_variables,
        "n_observations": data.n_observations,
        "covariance_type": data.covariance_type,
        **data.statistics,
    }

    sizes = data.cluster_sizes()
    if sizes is not None:
        for cluster, size in zip(names, sizes, strict=True):
            if size < data.min_cluster_size:
                warnings.append(f"{cluster} is small (n = {size} < {data.min_cluster_size})")

    smallest = float(data.proportions.min())
    if data.n_components > 1 and smallest > 0:
        ratio = float(data.proportions.max()) / smallest
        if ratio > IMBALANCE_RATIO_LIMIT:
            warnings.append(f"Cluster sizes are unbalanced (largest/smallest = {ratio:.1f})")
    elif data.n_components > 1:
        warnings.append("At least one cluster has a mixing proportion of 0")

    cluster_uncertainty = dict(zip(names, data.average_uncertainty(), strict=True))
    if data.uncertainty is not None and data.uncertainty.size:
        mean_uncertainty = float(data.uncertainty.mean())
        statistics["mean_uncertainty"] = mean_uncertainty
        if mean_uncertainty > data.separation_threshold:
            warnings.append(
                f"Average classification uncertainty is high ({mean_uncertainty:.3f} > {data.separation_threshold})"
            )
        uncertain_share = float((data.uncertainty > data.separation_threshold).mean())
        if uncertain_share > UNCERTAIN_SHARE_LIMIT:
            warnings.append(f"{format_percent(uncertain_share)} of observations have uncertain cluster membership")
        for cluster, value in cluster_uncertainty.items():
            if value is not None and value > data.separation_threshold:
                notes.append(f"{cluster} has high average membership uncertainty ({value:.3f})")

    separations, metric = compute_separation(data)
    if metric == "euclidean":
        notes.append("Covariance matrices are singular; separation uses Euclidean distance")
    if separations:
        statistics["min_separation"] = min(p.distance for p in separations)
    overlapping = [p for p in separations if p.distance < MIN_SEPARATION]
    if overlapping:
        pairs = ", ".join(f"{p.cluster_a}/{p.cluster_b} ({p.distance:.2f})" for p in overlapping)
        warnings.append(f"Clusters overlap (distance < {MIN_SEPARATION:g}): {pairs}")

    notes.extend(_covariance_notes(data.covariance_type))

    if not warnings and not notes:
        notes.append("Clustering appears well-defined with good separation")

    return GMFitSummary(
        warnings=tuple(warnings),
        notes=tuple(notes),
        statistics=statistics,
        separations=tuple(separations),
        distance_metric=metric,
        distinguishing_variables=find_distinguishing_variables(data),
        cluster_uncertainty=cluster_uncertainty,
    )
