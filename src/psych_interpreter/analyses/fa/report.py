"""
Factor analysis report rendering (cli or markdown).
"""

from psych_interpreter.analyses.fa.diagnostics import FAFitSummary
from psych_interpreter.analyses.fa.model_data import FAAnalysisData
from psych_interpreter.core.interpretation import InterpretationResult
from psych_interpreter.core.options import OutputOptions
from psych_interpreter.core.report_format import (
    PLACEHOLDER_NOTICE,
    bullet,
    format_loading,
    format_percent,
    heading,
    wrap,
)

__all__ = ["build_fa_report"]

EMERGENCY_SUFFIX = " (n.s.)"
_NO_SUFFIX_NAMES = {"na", "n/a", "undefined"}


def _display_name(name: str, emergency: bool) -> str:
    """Mark names of emergency-rule factors as not significant."""
    if emergency and name.strip().lower() not in _NO_SUFFIX_NAMES:
        return name + EMERGENCY_SUFFIX
    return name


def build_fa_report(result: InterpretationResult, output_options: OutputOptions) -> str:
    """
    Render a factor analysis interpretation.

    Sections: heading, placeholder notice (tier 4 only), suggested names with
    variance explained, factor correlations, per-factor interpretations with
    their selected loadings, diagnostics, token usage and elapsed time.
    """
    data: FAAnalysisData = result.analysis_data
    fit: FAFitSummary = result.fit_summary
    fmt = output_options.output_format
    width = output_options.max_line_length
    level = output_options.heading_level
    sub = min(level + 1, 6)
    blocks: list[str] = []

    if not output_options.suppress_heading:
        blocks.append(heading("Factor Analysis Interpretation", fmt, level, use_color=fmt == "cli"))

    if result.is_placeholder:
        blocks.append(wrap(PLACEHOLDER_NOTICE, fmt, width))

    lines = [heading("Suggested Factor Names", fmt, sub)]
    for factor in data.component_names:
        summary = data.factor_summaries[factor]
        name = _display_name(result.suggested_names[factor], summary.used_emergency_rule)
        lines.append(bullet(f"{factor}: {name} ({format_percent(summary.variance_explained)} variance)", fmt, width))
    lines.append(f"Total variance explained: {format_percent(data.total_variance_explained)}")
    blocks.append("\n".join(lines))

    if data.factor_correlations is not None and data.n_components > 1:
        lines = [heading("Factor Correlations", fmt, sub)]
        names = data.component_names
        for i, factor in enumerate(names):
            others = ", ".join(
                f"{other} {format_loading(data.factor_correlations[i, j], digits=2)}"
                for j, other in enumerate(names)
                if j != i
            )
            lines.append(bullet(f"{factor} with {others}", fmt, width))
        blocks.append("\n".join(lines))

    lines = [heading("Factor Interpretations", fmt, sub)]
    for factor in data.component_names:
        summary = data.factor_summaries[factor]
        name = _display_name(result.suggested_names[factor], summary.used_emergency_rule)
        title = f"{factor}: {name}"
        lines.append(f"{'#' * min(sub + 1, 6)} {title}" if fmt == "markdown" else title)
        lines.append(wrap(result.component_summaries[factor], fmt, width))
        if summary.variables:
            label = "Top loadings (emergency rule)" if summary.used_emergency_rule else "Significant loadings"
            lines.append(f"{label}:")
            for entry in summary.variables:
                lines.append(bullet(f"{entry.variable} ({format_loading(entry.loading)}): {entry.description}", fmt, width))
        elif summary.is_undefined:
            lines.append("No loadings reach the cutoff; factor is undefined.")
        lines.append("")
    blocks.append("\n".join(lines).rstrip())

    if fit.warnings or fit.notes or fit.cross_loadings or fit.no_loadings:
        lines = [heading("Diagnostics", fmt, sub)]
        for message in (*fit.warnings, *fit.notes):
            lines.append(bullet(message, fmt, width))
        if fit.cross_loadings:
            lines.append("Cross-loadings:")
            for cross in fit.cross_loadings:
                lines.append(bullet(f"{cross.variable} ({cross.description}): {cross.format()}", fmt, width))
        if fit.no_loadings:
            lines.append(f"Variables without loadings >= {format_loading(data.cutoff)}:")
            for item in fit.no_loadings:
                lines.append(
                    bullet(
                        f"{item.variable} ({item.description}): highest {item.highest_factor} "
                        f"({format_loading(item.highest_loading)})",
                        fmt,
                        width,
                    )
                )
        blocks.append("\n".join(lines))

    blocks.append(
        f"Tokens: {result.tokens.describe()} | Elapsed: {result.elapsed_seconds:.2f}s | "
        f"Parsed via {result.parsing_tier.label}"
    )
    return "\n\n".join(blocks) + "\n"
