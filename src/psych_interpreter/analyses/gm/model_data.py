"""
Gaussian mixture data builder.

Normalizes cluster means, covariances, mixing proportions and optional
membership information into an immutable GMAnalysisData record.
"""

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

import numpy as np
import structlog

from psych_interpreter.core.analysis_data import AnalysisData
from psych_interpreter.core.analysis_kind import AnalysisKind
from psych_interpreter.core.errors import InputValidationError
from psych_interpreter.core.frames import (
    VARIABLE_COLUMN,
    as_float_matrix,
    cross_reference,
    ensure_polars_df,
    is_frame,
    normalize_variable_info,
    read_only,
)
from psych_interpreter.core.options import AnalysisArgs

logger = structlog.get_logger()

__all__ = [
    "GMArgs",
    "GMAnalysisData",
    "VALID_COVARIANCE_TYPES",
    "build_gm_analysis_data",
    "normalize_covariances",
    "resolve_covariance_type",
]

# mclust-style model names; the letters describe Volume, Shape, Orientation
VALID_COVARIANCE_TYPES = (
    "EII", "VII", "EEI", "VEI", "EVI", "VVI", "EEE", "VEE", "EVE", "VVE", "EEV", "VEV", "EVV", "VVV",
)

# scikit-learn covariance_type -> closest mclust model name
_SKLEARN_COVARIANCE_TYPES = {"full": "VVV", "tied": "EEE", "diag": "VVI", "spherical": "VII"}
_SPHERICAL_TYPES = ("EII", "VII")
_DIAGONAL_TYPES = ("EEI", "VEI", "EVI", "VVI")

_KNOWN_KEYS = (
    "means",
    "covariances",
    "proportions",
    "memberships",
    "classification",
    "classification_base",
    "uncertainty",
    "covariance_type",
    "variable_names",
    "cluster_names",
    "n_observations",
    "loglik",
    "bic",
    "icl",
    "aic",
    "converged",
    "n_iter",
)
_STATISTIC_KEYS = ("loglik", "bic", "icl", "aic", "converged", "n_iter")
_PROPORTION_TOLERANCE = 0.01


@dataclass(frozen=True)
class GMArgs(AnalysisArgs):
    """Gaussian mixture builder arguments (validated on construction)."""

    min_cluster_size: int = 5
    separation_threshold: float = 0.3
    profile_variables: list[str] | None = None
    weight_by_uncertainty: bool = False
    top_n_distinguishing: int = 5


@dataclass(frozen=True, eq=False, kw_only=True)
class GMAnalysisData(AnalysisData):
    """
    Normalized Gaussian mixture input.

    Attributes:
        means: variables x clusters
        covariances: clusters x variables x variables
        proportions: mixing weights, one per cluster
        memberships: observations x clusters posterior probabilities (optional)
        classification: most likely cluster index per observation (optional)
        uncertainty: 1 - max membership per observation (optional)
        covariance_type: mclust-style model name
        n_observations: number of observations, if known
        statistics: loglik / bic / icl / aic / converged / n_iter when supplied
    """

    means: np.ndarray
    covariances: np.ndarray
    proportions: np.ndarray
    memberships: np.ndarray | None = None
    classification: np.ndarray | None = None
    uncertainty: np.ndarray | None = None
    covariance_type: str = "VVV"
    n_observations: int | None = None
    statistics: dict[str, Any] = field(default_factory=dict)
    min_cluster_size: int = 5
    separation_threshold: float = 0.3
    profile_variables: tuple[str, ...] | None = None
    weight_by_uncertainty: bool = False
    top_n_distinguishing: int = 5

    @property
    def cluster_names(self) -> tuple[str, ...]:
        return self.component_names

    @property
    def shown_variables(self) -> tuple[str, ...]:
        """Variables included in cluster profiles."""
        return self.profile_variables or self.variable_names

    def cluster_sizes(self) -> list[int] | None:
        """Expected observation count per cluster (proportion x n), or None if n is unknown."""
        if self.n_observations is None:
            return None
        return [int(round(p * self.n_observations)) for p in self.proportions]

    def average_uncertainty(self) -> list[float | None]:
        """Mean uncertainty of the observations assigned to each cluster (None when unavailable)."""
        if self.uncertainty is None or self.classification is None:
            return [None] * self.n_components
        result: list[float | None] = []
        for k in range(self.n_components):
            assigned = self.uncertainty[self.classification == k]
            result.append(float(assigned.mean()) if assigned.size else None)
        return result


def resolve_covariance_type(covariance_type: str | None) -> str:
    """Accept mclust names (case-insensitive) or scikit-learn names; default "VVV"."""
    if covariance_type is None:
        return "VVV"
    value = str(covariance_type).strip()
    if value.lower() in _SKLEARN_COVARIANCE_TYPES:
        return _SKLEARN_COVARIANCE_TYPES[value.lower()]
    if value.upper() in VALID_COVARIANCE_TYPES:
        return value.upper()
    raise InputValidationError(
        f"Invalid covariance_type {covariance_type!r}. Valid types: {', '.join(VALID_COVARIANCE_TYPES)} "
        f"(or {', '.join(_SKLEARN_COVARIANCE_TYPES)})"
    )


def _symmetric_slices(cov: np.ndarray) -> bool:
    return bool(np.allclose(cov, np.swapaxes(cov, 1, 2)))


def _full_layout(cov: np.ndarray, k: int, d: int) -> np.ndarray | None:
    """Per-cluster matrices from (k, d, d) or mclust's (d, d, k); None if neither fits."""
    if k == d and cov.shape == (k, d, d):
        # Both layouts share this shape: the cluster axis is the one whose slices are symmetric
        moved = np.moveaxis(cov, 2, 0)
        if not _symmetric_slices(cov) and _symmetric_slices(moved):
            return moved
        return cov
    if cov.shape == (k, d, d):
        return cov
    if cov.shape == (d, d, k):
        return np.moveaxis(cov, 2, 0)
    return None


def _infer_layout(cov: np.ndarray, k: int, d: int) -> np.ndarray | None:
    if cov.ndim == 2 and cov.shape == (d, d):
        return np.stack([cov for _ in range(k)])
    if cov.ndim == 2 and cov.shape == (k, d):
        return np.stack([np.diag(row) for row in cov])
    if cov.ndim == 1 and cov.shape == (k,):
        return np.stack([np.eye(d) * v for v in cov])
    return None


def normalize_covariances(
    covariances: Any, n_clusters: int, n_variables: int, covariance_type: str | None = None
) -> np.ndarray:
    """
    Normalize covariances to shape (clusters, variables, variables).

    Full per-cluster matrices are accepted for every covariance type, as
    (k, d, d) or (d, d, k) as produced by mclust. Compact layouts depend on
    ``covariance_type``:

    - spherical (EII, VII): (k,) variances or one shared scalar
    - diagonal (EEI, VEI, EVI, VVI): (k, d) variances, (d,) shared variances
      or a shared (d, d) matrix
    - all other types: a shared (d, d) matrix

    Without a covariance type the layout is inferred from the shape, which is
    ambiguous when k == d. None yields identity matrices.

    Raises:
        InputValidationError: If the shape does not fit the covariance type
    """
    k, d = n_clusters, n_variables
    if covariances is None:
        return np.stack([np.eye(d) for _ in range(k)])

    cov = np.asarray(covariances, dtype=float)
    result = None
    if cov.ndim == 3:
        result = _full_layout(cov, k, d)
    elif covariance_type is None:
        result = _infer_layout(cov, k, d)
    elif covariance_type in _SPHERICAL_TYPES:
        if cov.ndim == 0:
            result = np.stack([np.eye(d) * float(cov) for _ in range(k)])
        elif cov.shape == (k,):
            result = np.stack([np.eye(d) * v for v in cov])
    elif covariance_type in _DIAGONAL_TYPES:
        if cov.shape == (k, d):
            result = np.stack([np.diag(row) for row in cov])
        elif cov.shape == (d,):
            result = np.stack([np.diag(cov) for _ in range(k)])
        elif cov.shape == (d, d):
            result = np.stack([cov for _ in range(k)])
    elif cov.shape == (d, d):
        result = np.stack([cov for _ in range(k)])

    if result is None:
        expected = f"({k}, {d}, {d}) or ({d}, {d}, {k})"
        if covariance_type is None:
            expected += f", ({d}, {d}), ({k}, {d}) or ({k},)"
        elif covariance_type in _SPHERICAL_TYPES:
            expected += f", ({k},) or a scalar"
        elif covariance_type in _DIAGONAL_TYPES:
            expected += f", ({k}, {d}), ({d},) or ({d}, {d})"
        else:
            expected += f" or ({d}, {d})"
        label = f" for covariance_type {covariance_type}" if covariance_type else ""
        raise InputValidationError(f"covariances have shape {cov.shape}{label}; expected {expected}")
    return result


def _means_matrix(raw_means: Any) -> tuple[np.ndarray, list[str] | None]:
    """Return (variables x clusters matrix, variable names from the table if present)."""
    if is_frame(raw_means):
        frame = ensure_polars_df(raw_means)
        names = None
        if VARIABLE_COLUMN in frame.columns:
            names = [str(v) for v in frame.get_column(VARIABLE_COLUMN).to_list()]
            frame = frame.drop(VARIABLE_COLUMN)
        non_numeric = [c for c, dtype in frame.schema.items() if not dtype.is_numeric()]
        if non_numeric:
            raise InputValidationError(f"means columns must be numeric; non-numeric: {', '.join(non_numeric)}")
        return frame.to_numpy().astype(float), names
    matrix = as_float_matrix(raw_means, "means")
    return matrix, None


def _optional_vector(value: Any, label: str, length: int) -> np.ndarray | None:
    if value is None:
        return None
    vector = np.asarray(value, dtype=float).reshape(-1)
    if vector.shape[0] != length:
        raise InputValidationError(f"{label} must have {length} entries, got {vector.shape[0]}")
    return vector


def _classification_base(
    labels: np.ndarray, k: int, declared: Any, memberships: np.ndarray | None
) -> int:
    """
    Decide whether classification labels count clusters from 0 or from 1.

    An explicit ``classification_base`` wins. Otherwise a 0 label means 0-based
    and a label equal to k means 1-based. Labels that fit both (e.g. {1, 2}
    with k = 3) are matched against the memberships' most likely cluster when
    memberships are given, and read as 0-based otherwise.
    """
    if declared is not None:
        if declared not in (0, 1) or isinstance(declared, bool):
            raise InputValidationError(f"classification_base must be 0 or 1, got {declared!r}")
        return int(declared)
    if labels.size == 0 or labels.min() == 0:
        return 0
    if labels.max() == k:
        return 1

    if memberships is not None and memberships.shape[0] == labels.shape[0]:
        best = memberships.argmax(axis=1)
        return 1 if np.mean(labels - 1 == best) > np.mean(labels == best) else 0

    logger.warning("gm_classification_base_ambiguous", n_clusters=k, labels=sorted(set(labels.tolist())))
    return 0


def build_gm_analysis_data(fit_results: Any, variable_info: Any = None, **analysis_args: Any) -> GMAnalysisData:
    """
    Build GMAnalysisData from a mapping of mixture-model components.

    Args:
        fit_results: Mapping with required ``means`` (variables x clusters, as a
            DataFrame with a ``variable`` column or a matrix) and optional
            covariances, proportions, memberships, classification (with optional
            classification_base 0 or 1), uncertainty,
            covariance_type, variable_names, cluster_names, n_observations,
            loglik, bic, icl, aic, converged, n_iter
        variable_info: Optional variable descriptions; when given it must cover
            exactly the model's variables
        **analysis_args: min_cluster_size, separation_threshold, profile_variables,
            weight_by_uncertainty, top_n_distinguishing

    Returns:
        Immutable GMAnalysisData

    Raises:
        ConfigurationError: If an argument is unknown or out of bounds (checked first)
        InputValidationError: If inputs are malformed or inconsistent
    """
    args = GMArgs.from_mapping(analysis_args)

    if not isinstance(fit_results, Mapping):
        raise InputValidationError(
            f"Gaussian mixture fit_results must be a mapping with 'means', got {type(fit_results).__name__}"
        )
    if fit_results.get("means") is None:
        raise InputValidationError("Gaussian mixture fit_results must contain 'means'")
    unknown = [k for k in fit_results if k not in _KNOWN_KEYS]
    if unknown:
        logger.warning("gm_fit_results_unknown_keys", keys=unknown)

    means, table_names = _means_matrix(fit_results["means"])
    d, k = means.shape
    if d == 0 or k == 0:
        raise InputValidationError("means must contain at least one variable and one cluster")
    if np.isnan(means).any():
        raise InputValidationError("means contain missing values")

    variable_names = fit_results.get("variable_names")
    if variable_names is None:
        variable_names = table_names if table_names is not None else [f"V{i}" for i in range(1, d + 1)]
    variable_names = [str(v) for v in variable_names]
    if len(variable_names) != d:
        raise InputValidationError(f"variable_names has {len(variable_names)} entries but means has {d} rows")

    cluster_names = fit_results.get("cluster_names")
    if cluster_names is None:
        cluster_names = [f"Cluster_{i}" for i in range(1, k + 1)]
    cluster_names = [str(c) for c in cluster_names]
    if len(cluster_names) != k:
        raise InputValidationError(f"cluster_names has {len(cluster_names)} entries but means has {k} columns")

    descriptions = normalize_variable_info(variable_info)
    if descriptions:
        cross_reference(variable_names, list(descriptions), "means")

    if args.profile_variables is not None:
        unknown_profile = [v for v in args.profile_variables if v not in variable_names]
        if unknown_profile:
            raise InputValidationError(f"profile_variables not found in the model: {', '.join(unknown_profile)}")

    declared_type = fit_results.get("covariance_type")
    covariance_type = resolve_covariance_type(declared_type)
    covariances = normalize_covariances(
        fit_results.get("covariances"), k, d, covariance_type if declared_type is not None else None
    )

    proportions = _optional_vector(fit_results.get("proportions"), "proportions", k)
    if proportions is None:
        proportions = np.full(k, 1.0 / k)
    if np.any(proportions < 0):
        raise InputValidationError("proportions must be non-negative")
    if abs(proportions.sum() - 1.0) > _PROPORTION_TOLERANCE:
        logger.warning("gm_proportions_not_normalized", total=float(proportions.sum()))

    memberships = fit_results.get("memberships")
    classification = fit_results.get("classification")
    uncertainty = fit_results.get("uncertainty")
    n_observations = fit_results.get("n_observations")

    if memberships is not None:
        memberships = as_float_matrix(memberships, "memberships")
        if memberships.shape[1] != k:
            raise InputValidationError(f"memberships must have {k} columns, got {memberships.shape[1]}")
        n_observations = n_observations or memberships.shape[0]

    if classification is not None:
        classification = np.asarray(classification).reshape(-1).astype(int)
        base = _classification_base(classification, k, fit_results.get("classification_base"), memberships)
        classification = classification - base
        if classification.min() < 0 or classification.max() >= k:
            raise InputValidationError(f"classification labels must index {k} clusters")
        n_observations = n_observations or classification.shape[0]

    if memberships is not None:
        if classification is None:
            classification = memberships.argmax(axis=1)
        if uncertainty is None:
            uncertainty = 1.0 - memberships.max(axis=1)

    if uncertainty is not None:
        uncertainty = np.asarray(uncertainty, dtype=float).reshape(-1)
        if classification is not None and uncertainty.shape[0] != classification.shape[0]:
            raise InputValidationError("uncertainty and classification must have the same length")

    if n_observations is not None:
        n_observations = int(n_observations)
        if n_observations < 1:
            raise InputValidationError(f"n_observations must be positive, got {n_observations}")

    statistics = {key: fit_results[key] for key in _STATISTIC_KEYS if fit_results.get(key) is not None}

    return GMAnalysisData(
        kind=AnalysisKind.GM,
        component_names=tuple(cluster_names),
        variable_names=tuple(variable_names),
        variable_descriptions=descriptions,
        means=read_only(means),
        covariances=read_only(covariances),
        proportions=read_only(proportions),
        memberships=read_only(memberships) if memberships is not None else None,
        classification=read_only(classification) if classification is not None else None,
        uncertainty=read_only(uncertainty) if uncertainty is not None else None,
        covariance_type=covariance_type,
        n_observations=n_observations,
        statistics=statistics,
        min_cluster_size=args.min_cluster_size,
        separation_threshold=args.separation_threshold,
        profile_variables=tuple(args.profile_variables) if args.profile_variables else None,
        weight_by_uncertainty=args.weight_by_uncertainty,
        top_n_distinguishing=args.top_n_distinguishing,
    )
