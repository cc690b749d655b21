"""
Prompt construction for factor analysis interpretation.

Both builders are pure functions: identical inputs produce byte-identical
prompts.
"""

import json

from psych_interpreter.analyses.fa.model_data import FAAnalysisData
from psych_interpreter.core.report_format import format_loading, format_percent, word_target

__all__ = ["build_fa_system_prompt", "build_fa_main_prompt"]


def build_fa_system_prompt(word_limit: int = 150) -> str:
    """System prompt establishing the psychometrician role and key definitions."""
    low, high = word_target(word_limit)
    return "\n".join(
        [
            "# ROLE",
            "You are an expert psychometrician specializing in exploratory and confirmatory factor "
            "analysis. You name and interpret latent factors from their loading patterns.",
            "",
            "# TASK",
            "For every factor you receive, provide (1) a concise, descriptive name of 2-4 words and "
            f"(2) an interpretation of {low}-{high} words explaining what the factor represents, "
            "grounded in the variables that load on it.",
            "",
            "# KEY DEFINITIONS",
            "- Loading: the correlation between an observed variable and a factor (-1 to 1).",
            "- Significant loading: a loading whose absolute value reaches the stated cutoff.",
            "- Convergent validity: variables that load strongly on the same factor measure a common construct.",
            "- Discriminant validity: a factor is distinct when its variables load weakly on other factors.",
            "- Factor correlation: association between two factors in oblique solutions.",
            "- Variance explained: share of total variance in the variables accounted for by a factor.",
            "- Emergency rule: when no loading reaches the cutoff, the strongest loadings are used instead "
            "and the resulting interpretation is tentative.",
        ]
    )


def _guidelines(word_limit: int, interpretation_guidelines: str | None) -> list[str]:
    if interpretation_guidelines:
        return ["# INTERPRETATION GUIDELINES", interpretation_guidelines.strip(), ""]
    low, high = word_target(word_limit)
    return [
        "# INTERPRETATION GUIDELINES",
        "- Base each name on the common theme of the variables with the strongest loadings.",
        "- Account for the direction of loadings: negative loadings indicate the reverse of the variable.",
        "- Mention how the factor relates to correlated factors where correlations are provided.",
        "- Flag interpretations that rely on the emergency rule as tentative.",
        f"- Aim for {low}-{high} words per interpretation (80%-100% of {word_limit}).",
        "",
    ]


def _loadings_section(data: FAAnalysisData) -> list[str]:
    lines = [
        "# FACTOR LOADINGS",
        f"Significance cutoff: |loading| >= {format_loading(data.cutoff)}",
    ]
    if data.n_emergency > 0:
        lines.append(
            f"Emergency rule: factors without significant loadings show their top {data.n_emergency} "
            "loadings instead."
        )
    else:
        lines.append("Emergency rule disabled: factors without significant loadings are undefined.")
    lines.append("")

    matrix = data.loading_matrix()
    for col_idx, factor in enumerate(data.component_names):
        summary = data.factor_summaries[factor]
        if data.hide_low_loadings:
            entries = [f"{e.variable}={format_loading(e.loading)}" for e in summary.variables]
        else:
            entries = [
                f"{variable}={format_loading(matrix[row_idx, col_idx])}"
                for row_idx, variable in enumerate(data.variable_names)
            ]
        marker = ""
        if summary.used_emergency_rule:
            marker = " [no significant loadings; emergency rule applied]"
        elif summary.is_undefined:
            marker = " [no significant loadings; undefined]"
        lines.append(f"{factor}{marker}: {' '.join(entries) if entries else '(none)'}")

    lines.append("")
    variance = ", ".join(f"{f}={format_percent(v)}" for f, v in data.variance_explained.items())
    lines.append(f"**Variance Explained**: {variance}")
    lines.append("")
    return lines


def _correlations_section(data: FAAnalysisData) -> list[str]:
    if data.factor_correlations is None or data.n_components < 2:
        return []
    lines = ["# FACTOR CORRELATIONS"]
    names = data.component_names
    for i, factor in enumerate(names):
        others = [
            f"{other}={format_loading(data.factor_correlations[i, j], digits=2)}"
            for j, other in enumerate(names)
            if j != i
        ]
        lines.append(f"{factor} with: {', '.join(others)}")
    lines.append("")
    return lines


def _output_format_section(data: FAAnalysisData, word_limit: int) -> list[str]:
    low, high = word_target(word_limit)
    example = {
        factor: {"name": "<2-4 word name>", "interpretation": f"<{low}-{high} word interpretation>"}
        for factor in data.component_names
    }
    lines = [
        "# OUTPUT FORMAT",
        "Respond with a single JSON object in exactly this structure:",
        json.dumps(example, indent=2),
        "",
        "CRITICAL REQUIREMENTS:",
        f"- Include ALL {data.n_components} factors using these exact keys: {', '.join(data.component_names)}",
        "- Each factor object has exactly two string fields: \"name\" and \"interpretation\"",
        "- Return valid JSON only, with no text before or after the object",
        "- Names must be 2-4 words",
        f"- Interpretations should be {low}-{high} words",
    ]
    undefined = data.undefined_factors
    if data.n_emergency == 0:
        lines.append(
            '- For factors without significant loadings use "name": "undefined" and "interpretation": "NA"'
        )
        if undefined:
            lines.append(f"- Undefined factors: {', '.join(undefined)}")
    elif data.emergency_factors:
        lines.append(
            f"- Factors interpreted via the emergency rule ({', '.join(data.emergency_factors)}) "
            "must say that the interpretation is tentative"
        )
    return lines


def build_fa_main_prompt(
    analysis_data: FAAnalysisData,
    word_limit: int = 150,
    additional_info: str | None = None,
    interpretation_guidelines: str | None = None,
) -> str:
    """
    Build the user prompt for a factor analysis interpretation.

    Sections, in order: guidelines, additional context, variable descriptions,
    loadings (with cutoff and variance explained), factor correlations, output
    format contract.
    """
    lines: list[str] = []
    lines.extend(_guidelines(word_limit, interpretation_guidelines))

    if additional_info:
        lines.extend(["# ADDITIONAL CONTEXT", additional_info.strip(), ""])

    lines.append("# VARIABLE DESCRIPTIONS")
    for variable in analysis_data.variable_names:
        lines.append(f"- {variable}: {analysis_data.describe(variable)}")
    lines.append("")

    lines.extend(_loadings_section(analysis_data))
    lines.extend(_correlations_section(analysis_data))
    lines.extend(_output_format_section(analysis_data, word_limit))
    return "\n".join(lines)
