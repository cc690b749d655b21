"""
Extraction of fit results from fitted model objects.

Recognizes models by class name, so scikit-learn and factor_analyzer are never
imported here: a model object that reaches this module was created by the
caller, who already has the library installed.

Supported classes:
- sklearn.decomposition.FactorAnalysis (fa)
- sklearn.decomposition.PCA (fa, loadings scaled by component SD)
- factor_analyzer.FactorAnalyzer (fa)
- sklearn.mixture.GaussianMixture / BayesianGaussianMixture (gm)
"""

from collections.abc import Callable
from typing import Any

import numpy as np
import polars as pl
import structlog

from psych_interpreter.core.analysis_kind import AnalysisKind, coerce_kind
from psych_interpreter.core.errors import UnsupportedModelError
from psych_interpreter.core.frames import VARIABLE_COLUMN, as_float_matrix, is_frame

logger = structlog.get_logger()

__all__ = ["extract_fit_results", "is_fitted_model", "SUPPORTED_MODELS"]


def _variable_names(model: Any, n_variables: int, variable_names: list[str] | None) -> list[str]:
    if variable_names is not None:
        names = [str(v) for v in variable_names]
    elif getattr(model, "feature_names_in_", None) is not None:
        names = [str(v) for v in model.feature_names_in_]
    else:
        names = [f"V{i}" for i in range(1, n_variables + 1)]
    if len(names) != n_variables:
        raise UnsupportedModelError(
            f"{type(model).__name__} has {n_variables} variables but {len(names)} variable names were given"
        )
    return names


def _loadings_table(matrix: np.ndarray, names: list[str]) -> pl.DataFrame:
    columns = {VARIABLE_COLUMN: names}
    for j in range(matrix.shape[1]):
        columns[f"Factor{j + 1}"] = matrix[:, j].tolist()
    return pl.DataFrame(columns)


def _require(model: Any, *attributes: str) -> None:
    missing = [a for a in attributes if getattr(model, a, None) is None]
    if missing:
        raise UnsupportedModelError(
            f"{type(model).__name__} is not fitted (missing {', '.join(missing)}); call fit() first"
        )


def _from_sklearn_fa(model: Any, variable_names: list[str] | None = None, **_: Any) -> dict[str, Any]:
    _require(model, "components_")
    loadings = np.asarray(model.components_, dtype=float).T
    names = _variable_names(model, loadings.shape[0], variable_names)
    return {"loadings": _loadings_table(loadings, names)}


def _from_sklearn_pca(model: Any, variable_names: list[str] | None = None, **_: Any) -> dict[str, Any]:
    _require(model, "components_", "explained_variance_")
    loadings = np.asarray(model.components_, dtype=float).T * np.sqrt(np.asarray(model.explained_variance_))
    names = _variable_names(model, loadings.shape[0], variable_names)
    return {"loadings": _loadings_table(loadings, names)}


def _from_factor_analyzer(model: Any, variable_names: list[str] | None = None, **_: Any) -> dict[str, Any]:
    _require(model, "loadings_")
    loadings = np.asarray(model.loadings_, dtype=float)
    names = _variable_names(model, loadings.shape[0], variable_names)
    result: dict[str, Any] = {"loadings": _loadings_table(loadings, names)}
    phi = getattr(model, "phi_", None)
    if phi is not None:
        result["factor_cor_mat"] = np.asarray(phi, dtype=float)
    return result


def _from_gaussian_mixture(
    model: Any, variable_names: list[str] | None = None, data: Any = None, **_: Any
) -> dict[str, Any]:
    _require(model, "means_", "weights_")
    means = np.asarray(model.means_, dtype=float).T
    names = _variable_names(model, means.shape[0], variable_names)

    result: dict[str, Any] = {
        "means": means,
        "variable_names": names,
        "proportions": np.asarray(model.weights_, dtype=float),
        "covariance_type": getattr(model, "covariance_type", "full"),
    }
    if getattr(model, "covariances_", None) is not None:
        result["covariances"] = np.asarray(model.covariances_, dtype=float)
    if getattr(model, "converged_", None) is not None:
        result["converged"] = bool(model.converged_)
    if getattr(model, "n_iter_", None) is not None:
        result["n_iter"] = int(model.n_iter_)

    if data is not None:
        matrix = data.to_numpy() if is_frame(data) else as_float_matrix(data, "data")
        matrix = np.asarray(matrix, dtype=float)
        result["memberships"] = model.predict_proba(matrix)
        result["n_observations"] = matrix.shape[0]
        result["loglik"] = float(model.score(matrix)) * matrix.shape[0]
        if hasattr(model, "bic"):
            result["bic"] = float(model.bic(matrix))
        if hasattr(model, "aic"):
            result["aic"] = float(model.aic(matrix))
    elif getattr(model, "lower_bound_", None) is not None:
        logger.debug("gm_extraction_without_data", lower_bound=float(model.lower_bound_))
    return result


SUPPORTED_MODELS: dict[str, tuple[AnalysisKind, Callable[..., dict[str, Any]]]] = {
    "FactorAnalysis": (AnalysisKind.FA, _from_sklearn_fa),
    "PCA": (AnalysisKind.FA, _from_sklearn_pca),
    "FactorAnalyzer": (AnalysisKind.FA, _from_factor_analyzer),
    "GaussianMixture": (AnalysisKind.GM, _from_gaussian_mixture),
    "BayesianGaussianMixture": (AnalysisKind.GM, _from_gaussian_mixture),
}


def is_fitted_model(value: Any) -> bool:
    """True if ``value`` is an instance of a supported model class."""
    return type(value).__name__ in SUPPORTED_MODELS


def extract_fit_results(
    model: Any,
    kind: AnalysisKind | str | None = None,
    variable_names: list[str] | None = None,
    data: Any = None,
) -> tuple[AnalysisKind, dict[str, Any]]:
    """
    Extract fit results from a fitted model object.

    Args:
        model: Fitted model instance
        kind: Expected analysis kind; None accepts the model's own kind
        variable_names: Names for the model's variables (default: the model's
            ``feature_names_in_`` or V1..Vd)
        data: Observations the mixture model was fitted on; enables
            memberships, log-likelihood, BIC and AIC

    Returns:
        (kind, fit_results mapping accepted by that kind's build_data)

    Raises:
        UnsupportedModelError: If the class is not recognized, the model is not
            fitted, or it does not belong to ``kind``
    """
    class_name = type(model).__name__
    if class_name not in SUPPORTED_MODELS:
        supported = ", ".join(f"{name} ({k.value})" for name, (k, _) in SUPPORTED_MODELS.items())
        raise UnsupportedModelError(f"Cannot extract fit results from {class_name}. Supported models: {supported}")

    model_kind, extractor = SUPPORTED_MODELS[class_name]
    if kind is not None:
        requested = coerce_kind(kind)
        if requested != model_kind:
            raise UnsupportedModelError(
                f"{class_name} is a {model_kind.display_name} model, not compatible with analysis_type "
                f"'{requested.value if requested is not None else kind}'"
            )

    fit_results = extractor(model, variable_names=variable_names, data=data)
    logger.debug("fit_results_extracted", model=class_name, analysis_type=model_kind.value)
    return model_kind, fit_results
