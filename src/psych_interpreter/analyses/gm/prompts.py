"""
Prompt construction for Gaussian mixture interpretation.
"""

import json

import numpy as np

from psych_interpreter.analyses.gm.model_data import GMAnalysisData
from psych_interpreter.core.report_format import format_percent, word_target

__all__ = ["build_gm_system_prompt", "build_gm_main_prompt", "describe_cluster_size", "COVARIANCE_DESCRIPTIONS"]

COVARIANCE_DESCRIPTIONS = {
    "EII": "spherical, equal volume",
    "VII": "spherical, varying volume",
    "EEI": "diagonal, equal volume and shape",
    "VEI": "diagonal, varying volume, equal shape",
    "EVI": "diagonal, equal volume, varying shape",
    "VVI": "diagonal, varying volume and shape",
    "EEE": "ellipsoidal, equal volume, shape and orientation",
    "VEE": "ellipsoidal, varying volume, equal shape and orientation",
    "EVE": "ellipsoidal, equal volume and orientation, varying shape",
    "VVE": "ellipsoidal, varying volume and shape, equal orientation",
    "EEV": "ellipsoidal, equal volume and shape, varying orientation",
    "VEV": "ellipsoidal, varying volume and orientation, equal shape",
    "EVV": "ellipsoidal, equal volume, varying shape and orientation",
    "VVV": "ellipsoidal, varying volume, shape and orientation",
}


def describe_cluster_size(proportion: float) -> str:
    """'large' above 40%, 'moderate-sized' above 20%, otherwise 'small'."""
    if proportion > 0.4:
        return "large"
    if proportion > 0.2:
        return "moderate-sized"
    return "small"


def _level_hint(value: float, overall: float, spread: float) -> str:
    if spread <= 0:
        return ""
    z = (value - overall) / spread
    if z >= 1.0:
        return " (high)"
    if z >= 0.5:
        return " (moderately high)"
    if z <= -1.0:
        return " (low)"
    if z <= -0.5:
        return " (moderately low)"
    return ""


def build_gm_system_prompt(word_limit: int = 150) -> str:
    """System prompt establishing the clustering-expert role."""
    low, high = word_target(word_limit)
    return "\n".join(
        [
            "# ROLE",
            "You are an expert in cluster analysis and Gaussian mixture modeling. You describe latent "
            "subgroups (profiles) from their mean patterns on the observed variables.",
            "",
            "# TASK",
            "For every cluster you receive, provide (1) a concise, descriptive name of 2-4 words and "
            f"(2) an interpretation of {low}-{high} words describing what characterizes its members "
            "compared with the other clusters.",
            "",
            "# GUIDELINES",
            "- Focus on the variables on which a cluster differs most from the others.",
            "- Take cluster size into account; small clusters may represent distinctive minorities.",
            "- Mention overlap or uncertainty where the information provided suggests it.",
            "- Do not invent variables or characteristics that are not in the data.",
        ]
    )


def build_gm_main_prompt(
    analysis_data: GMAnalysisData,
    word_limit: int = 150,
    additional_info: str | None = None,
    interpretation_guidelines: str | None = None,
) -> str:
    """
    Build the user prompt for a Gaussian mixture interpretation.

    Sections, in order: model overview, guidelines, additional context,
    variable descriptions, cluster profiles, output format contract.
    """
    data = analysis_data
    low, high = word_target(word_limit)
    lines: list[str] = []

    overview = f"# MODEL OVERVIEW\nA Gaussian mixture model with {data.n_components} clusters on {data.n_variables} variables"
    if data.n_observations is not None:
        overview += f" fitted to {data.n_observations} observations"
    lines.append(overview + ".")
    description = COVARIANCE_DESCRIPTIONS.get(data.covariance_type, "")
    lines.append(f"Covariance structure: {data.covariance_type} ({description}).")
    lines.append("")

    if interpretation_guidelines:
        lines.extend(["# INTERPRETATION GUIDELINES", interpretation_guidelines.strip(), ""])

    if additional_info:
        lines.extend(["# ADDITIONAL CONTEXT", additional_info.strip(), ""])

    shown = data.shown_variables
    lines.append("# VARIABLE DESCRIPTIONS")
    for variable in shown:
        lines.append(f"- {variable}: {data.describe(variable)}")
    lines.append("")

    rows = [data.variable_names.index(v) for v in shown]
    overall = data.means[rows].mean(axis=1)
    spread = data.means[rows].std(axis=1)
    uncertainty = data.average_uncertainty()
    sizes = data.cluster_sizes()

    lines.append("# CLUSTER PROFILES")
    lines.append("Hints in parentheses compare each mean with the average across clusters.")
    for k, cluster in enumerate(data.component_names):
        proportion = float(data.proportions[k])
        header = f"## {cluster}: {format_percent(proportion)} of observations"
        if sizes is not None:
            header += f" (n = {sizes[k]})"
        lines.append(header)
        if data.weight_by_uncertainty and uncertainty[k] is not None:
            lines.append(f"Average membership uncertainty: {uncertainty[k]:.3f}")
        for idx, row in enumerate(rows):
            value = float(data.means[row, k])
            lines.append(f"- {shown[idx]}: {value:.3f}{_level_hint(value, overall[idx], spread[idx])}")
        lines.append("")

    if np.allclose(data.means[rows].mean(axis=1), 0.0, atol=0.25):
        lines.append("Means appear to be standardized: 0 is the sample average, values are in SD units.")
        lines.append("")

    example = {
        cluster: {"name": "<2-4 word name>", "interpretation": f"<{low}-{high} word interpretation>"}
        for cluster in data.component_names
    }
    lines.extend(
        [
            "# OUTPUT FORMAT",
            "Respond with a single JSON object in exactly this structure:",
            json.dumps(example, indent=2),
            "",
            "CRITICAL REQUIREMENTS:",
            f"- Include ALL {data.n_components} clusters using these exact keys: {', '.join(data.component_names)}",
            "- Each cluster object has exactly two string fields: \"name\" and \"interpretation\"",
            "- Return valid JSON only, with no text before or after the object",
            "- Names must be 2-4 words",
            f"- Interpretations should be {low}-{high} words (80%-100% of {word_limit})",
            '- If a cluster cannot be characterized from the data, use "name": "undefined" and "interpretation": "NA"',
        ]
    )
    return "\n".join(lines)
