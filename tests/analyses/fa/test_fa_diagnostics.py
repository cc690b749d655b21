"""
Tests for factor analysis diagnostics.
"""

import polars as pl
import pytest

from psych_interpreter.analyses.fa.diagnostics import build_fa_fit_summary, find_cross_loadings, find_no_loadings
from psych_interpreter.analyses.fa.model_data import build_fa_analysis_data


@pytest.fixture
def uncovered_data():
    loadings = pl.DataFrame(
        {
            "variable": ["a", "b", "c"],
            "Factor1": [0.70, 0.20, 0.10],
            "Factor2": [0.05, -0.20, 0.65],
        }
    )
    return build_fa_analysis_data(loadings, {"a": "Item A", "b": "Item B", "c": "Item C"})


class TestCrossLoadings:
    def test_detects_variable_above_cutoff_on_two_factors(self, fa_data):
        # Act
        cross = find_cross_loadings(fa_data)

        # Assert
        assert len(cross) == 1
        assert cross[0].variable == "anx3"
        assert cross[0].loadings == (("Factor1", 0.58), ("Factor2", 0.35))
        assert cross[0].format() == "Factor1 (.580), Factor2 (.350)"

    def test_higher_cutoff_removes_cross_loading(self, fa_loadings, fa_variable_info):
        # Arrange
        data = build_fa_analysis_data(fa_loadings, fa_variable_info, cutoff=0.4)

        # Act / Assert
        assert find_cross_loadings(data) == []


class TestNoLoadings:
    def test_reports_strongest_loading_with_tie_to_earlier_factor(self, uncovered_data):
        # Act
        uncovered = find_no_loadings(uncovered_data)

        # Assert
        assert [u.variable for u in uncovered] == ["b"]
        assert uncovered[0].highest_factor == "Factor1"
        assert uncovered[0].highest_loading == pytest.approx(0.20)
        assert uncovered[0].description == "Item B"

    def test_none_when_every_variable_loads(self, fa_data):
        # Act / Assert
        assert find_no_loadings(fa_data) == []


class TestFAFitSummary:
    def test_warnings_and_emergency_note(self, fa_data):
        # Act
        summary = build_fa_fit_summary(fa_data)

        # Assert
        assert summary.warnings == ("1 variable(s) load on more than one factor: anx3",)
        assert summary.notes == (
            "Emergency rule applied to Factor3: top 2 loadings used; interpretations are tentative",
        )
        assert summary.emergency_factors == ("Factor3",)
        assert summary.statistics["n_factors"] == 3
        assert summary.statistics["total_variance_explained"] == pytest.approx(fa_data.total_variance_explained)

    def test_undefined_factor_warning(self, fa_loadings, fa_variable_info):
        # Arrange
        data = build_fa_analysis_data(fa_loadings, fa_variable_info, n_emergency=0)

        # Act
        summary = build_fa_fit_summary(data)

        # Assert
        assert "Undefined factor(s) with no significant loadings: Factor3" in summary.warnings
        assert summary.notes == ()

    def test_uncovered_variable_warning(self, uncovered_data):
        # Act
        summary = build_fa_fit_summary(uncovered_data)

        # Assert
        assert "1 variable(s) reach the cutoff on no factor: b" in summary.warnings

    def test_to_dict(self, fa_data):
        # Act
        payload = build_fa_fit_summary(fa_data).to_dict()

        # Assert
        assert payload["kind"] == "fa"
        assert payload["cross_loadings"][0]["loadings"] == {"Factor1": 0.58, "Factor2": 0.35}
        assert payload["emergency_factors"] == ["Factor3"]
