"""
Tests for factor analysis report rendering.
"""

from datetime import datetime

import numpy as np
import pytest

from psych_interpreter.analyses.fa.diagnostics import build_fa_fit_summary
from psych_interpreter.analyses.fa.model_data import build_fa_analysis_data
from psych_interpreter.analyses.fa.report import build_fa_report
from psych_interpreter.core.analysis_kind import AnalysisKind
from psych_interpreter.core.interpretation import InterpretationResult, LLMInfo, TokenUsage
from psych_interpreter.core.options import LLMOptions, OutputOptions
from psych_interpreter.core.response_parser import ParsedComponentResult, ParsingTier, parse_llm_response


def _render(data, parsed, **output):
    options = OutputOptions(**output)
    result = InterpretationResult(
        kind=AnalysisKind.FA,
        analysis_data=data,
        parsed=parsed,
        fit_summary=build_fa_fit_summary(data),
        tokens=TokenUsage(input_tokens=100, output_tokens=None),
        elapsed_seconds=1.5,
        timestamp=datetime(2024, 1, 1),
        llm_info=LLMInfo(provider="fake", model="fake-model", system_prompt="s", main_prompt="m"),
        raw_response="",
        llm_options=LLMOptions(),
        output_options=options,
    )
    return build_fa_report(result, options)


@pytest.fixture
def parsed(fa_data, valid_fa_reply):
    return parse_llm_response(valid_fa_reply, "fa", fa_data)


class TestFAReport:
    def test_markdown_sections(self, fa_data, parsed):
        # Act
        report = _render(fa_data, parsed, output_format="markdown")

        # Assert
        assert report.startswith("# Factor Analysis Interpretation\n")
        assert "## Suggested Factor Names" in report
        assert "- Factor1: Anxious Arousal (21.7% variance)" in report
        assert "### Factor1: Anxious Arousal" in report
        assert "## Diagnostics" in report
        assert "- anx3 (I feel tense in social situations): Factor1 (.580), Factor2 (.350)" in report

    def test_emergency_factor_marked_not_significant(self, fa_data, parsed):
        # Act
        report = _render(fa_data, parsed, output_format="markdown")

        # Assert
        assert "### Factor3: Residual Distress (n.s.)" in report
        assert "Top loadings (emergency rule):" in report
        assert "(n.s.)" not in report.split("### Factor3")[0].split("## Factor Interpretations")[1]

    def test_no_suffix_for_undefined_names(self, fa_data):
        # Arrange
        parsed = ParsedComponentResult(
            component_summaries={"Factor1": "a", "Factor2": "b", "Factor3": "NA"},
            suggested_names={"Factor1": "A", "Factor2": "B", "Factor3": "undefined"},
            parsing_tier=ParsingTier.CLEANED_JSON,
        )

        # Act
        report = _render(fa_data, parsed, output_format="markdown")

        # Assert
        assert "### Factor3: undefined\n" in report

    def test_undefined_factor_message(self, fa_loadings, fa_variable_info, valid_fa_reply):
        # Arrange
        data = build_fa_analysis_data(fa_loadings, fa_variable_info, n_emergency=0)
        parsed = parse_llm_response(valid_fa_reply, "fa", data)

        # Act
        report = _render(data, parsed)

        # Assert
        assert "No loadings reach the cutoff; factor is undefined." in report
        assert "Factor3: undefined" in report

    def test_placeholder_notice_only_for_default_tier(self, fa_data, parsed):
        # Arrange
        placeholder = parse_llm_response("no idea", "fa", fa_data)

        # Act
        with_notice = _render(fa_data, placeholder, output_format="markdown")
        without_notice = _render(fa_data, parsed, output_format="markdown")

        # Assert
        assert "generic placeholders" in with_notice
        assert "generic placeholders" not in without_notice

    def test_heading_level_and_suppression(self, fa_data, parsed):
        # Act
        nested = _render(fa_data, parsed, output_format="markdown", heading_level=3)
        suppressed = _render(fa_data, parsed, output_format="markdown", suppress_heading=True)

        # Assert
        assert nested.startswith("### Factor Analysis Interpretation")
        assert "#### Suggested Factor Names" in nested
        assert "Factor Analysis Interpretation" not in suppressed

    def test_cli_lines_respect_max_line_length(self, fa_data, parsed):
        # Act
        report = _render(fa_data, parsed, output_format="cli", max_line_length=40)

        # Assert
        body = [line for line in report.splitlines() if not line.startswith("Tokens:") and "\033" not in line]
        assert all(len(line) <= 40 for line in body if not line.startswith("Factor"))

    def test_footer_reports_unknown_tokens(self, fa_data, parsed):
        # Act
        report = _render(fa_data, parsed)

        # Assert
        assert "Tokens: input 100, output unknown | Elapsed: 1.50s | Parsed via cleaned JSON" in report

    def test_factor_correlations(self, fa_loadings, fa_variable_info, valid_fa_reply):
        # Arrange
        phi = np.array([[1.0, 0.3, 0.1], [0.3, 1.0, 0.2], [0.1, 0.2, 1.0]])
        data = build_fa_analysis_data({"loadings": fa_loadings, "Phi": phi}, fa_variable_info)
        parsed = parse_llm_response(valid_fa_reply, "fa", data)

        # Act
        report = _render(data, parsed, output_format="markdown")

        # Assert
        assert "## Factor Correlations" in report
        assert "- Factor1 with Factor2 .30, Factor3 .10" in report
