"""
Gaussian mixture report rendering (cli or markdown).
"""

from psych_interpreter.analyses.gm.diagnostics import GMFitSummary
from psych_interpreter.analyses.gm.model_data import GMAnalysisData
from psych_interpreter.core.interpretation import InterpretationResult
from psych_interpreter.core.options import OutputOptions
from psych_interpreter.core.report_format import PLACEHOLDER_NOTICE, bullet, format_percent, heading, wrap

__all__ = ["build_gm_report"]

_STATISTIC_LABELS = {
    "n_observations": "Observations",
    "covariance_type": "Covariance model",
    "loglik": "Log-likelihood",
    "bic": "BIC",
    "icl": "ICL",
    "aic": "AIC",
    "mean_uncertainty": "Mean uncertainty",
    "min_separation": "Minimum separation",
}


def _format_statistic(value: object) -> str:
    if isinstance(value, float):
        return f"{value:.3f}"
    return str(value)


def build_gm_report(result: InterpretationResult, output_options: OutputOptions) -> str:
    """
    Render a Gaussian mixture interpretation.

    Sections: heading, placeholder notice (tier 4 only), cluster names with
    sizes, interpretations with key distinguishing variables, diagnostics and
    fit statistics, token usage and elapsed time.
    """
    data: GMAnalysisData = result.analysis_data
    fit: GMFitSummary = result.fit_summary
    fmt = output_options.output_format
    width = output_options.max_line_length
    level = output_options.heading_level
    sub = min(level + 1, 6)
    sizes = data.cluster_sizes()
    blocks: list[str] = []

    if not output_options.suppress_heading:
        blocks.append(heading("Gaussian Mixture Model Interpretation", fmt, level, use_color=fmt == "cli"))

    if result.is_placeholder:
        blocks.append(wrap(PLACEHOLDER_NOTICE, fmt, width))

    lines = [heading("Cluster Names", fmt, sub)]
    for k, cluster in enumerate(data.component_names):
        size = f", n = {sizes[k]}" if sizes is not None else ""
        lines.append(
            bullet(
                f"{cluster}: {result.suggested_names[cluster]} ({format_percent(float(data.proportions[k]))}{size})",
                fmt,
                width,
            )
        )
    blocks.append("\n".join(lines))

    lines = [heading("Cluster Interpretations", fmt, sub)]
    for cluster in data.component_names:
        title = f"{cluster}: {result.suggested_names[cluster]}"
        lines.append(f"{'#' * min(sub + 1, 6)} {title}" if fmt == "markdown" else title)
        lines.append(wrap(result.component_summaries[cluster], fmt, width))
        distinguishing = fit.distinguishing_variables.get(cluster, ())
        if distinguishing and data.n_components > 1:
            lines.append("Key distinguishing variables:")
            for item in distinguishing:
                lines.append(bullet(f"{item.variable} ({item.direction}, mean {item.mean:.3f}): {item.description}", fmt, width))
        lines.append("")
    blocks.append("\n".join(lines).rstrip())

    lines = [heading("Diagnostics", fmt, sub)]
    for message in (*fit.warnings, *fit.notes):
        lines.append(bullet(message, fmt, width))
    for key, label in _STATISTIC_LABELS.items():
        value = fit.statistics.get(key)
        if value is not None:
            lines.append(bullet(f"{label}: {_format_statistic(value)}", fmt, width))
    blocks.append("\n".join(lines))

    blocks.append(
        f"Tokens: {result.tokens.describe()} | Elapsed: {result.elapsed_seconds:.2f}s | "
        f"Parsed via {result.parsing_tier.label}"
    )
    return "\n\n".join(blocks) + "\n"
