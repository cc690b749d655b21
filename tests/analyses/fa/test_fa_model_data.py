"""
Tests for FAAnalysisData construction: input shapes, cutoff selection, the
emergency rule and cross-referencing with variable_info.
"""

import numpy as np
import pandas as pd
import polars as pl
import pytest

from psych_interpreter.analyses.fa.model_data import build_fa_analysis_data, select_loadings
from psych_interpreter.core.errors import ConfigurationError, InputValidationError


class TestSelectLoadings:
    def test_significant_rows_sorted_by_magnitude(self):
        # Act
        rows, emergency, undefined = select_loadings(np.array([0.35, -0.80, 0.10, 0.50]), cutoff=0.3, n_emergency=2)

        # Assert
        assert rows == [1, 3, 0]
        assert not emergency
        assert not undefined

    def test_unsorted_keeps_row_order(self):
        # Act
        rows, _, _ = select_loadings(np.array([0.35, -0.80, 0.10, 0.50]), 0.3, 2, sort_by_magnitude=False)

        # Assert
        assert rows == [0, 1, 3]

    def test_cutoff_is_inclusive(self):
        # Act
        rows, emergency, _ = select_loadings(np.array([0.3, 0.29]), cutoff=0.3, n_emergency=2)

        # Assert
        assert rows == [0]
        assert not emergency

    def test_emergency_rule_picks_top_n_with_ties_in_row_order(self):
        # Act
        rows, emergency, undefined = select_loadings(np.array([0.10, -0.20, 0.20, 0.05]), cutoff=0.3, n_emergency=2)

        # Assert
        assert rows == [1, 2]
        assert emergency
        assert not undefined

    def test_emergency_rule_capped_at_number_of_variables(self):
        # Act
        rows, emergency, _ = select_loadings(np.array([0.1, 0.2]), cutoff=0.3, n_emergency=5)

        # Assert
        assert rows == [1, 0]
        assert emergency

    def test_zero_emergency_marks_factor_undefined(self):
        # Act
        rows, emergency, undefined = select_loadings(np.array([0.1, 0.2]), cutoff=0.3, n_emergency=0)

        # Assert
        assert rows == []
        assert not emergency
        assert undefined


class TestBuildFAAnalysisData:
    def test_factor_summaries(self, fa_data):
        # Assert
        assert fa_data.factor_names == ("Factor1", "Factor2", "Factor3")
        assert [e.variable for e in fa_data.factor_summaries["Factor1"].variables] == ["anx1", "anx2", "anx3"]
        assert [e.variable for e in fa_data.factor_summaries["Factor2"].variables] == ["dep1", "dep2", "dep3", "anx3"]
        assert fa_data.emergency_factors == ["Factor3"]
        assert [e.variable for e in fa_data.factor_summaries["Factor3"].variables] == ["dep1", "anx1"]
        assert fa_data.undefined_factors == []

    def test_variance_explained_is_mean_squared_loading(self, fa_data, fa_loadings):
        # Arrange
        expected = float((fa_loadings.get_column("Factor1").to_numpy() ** 2).sum() / 6)

        # Assert
        assert fa_data.variance_explained["Factor1"] == pytest.approx(expected)
        assert fa_data.total_variance_explained == pytest.approx(sum(fa_data.variance_explained.values()))

    def test_descriptions_attached_to_entries(self, fa_data):
        # Assert
        entry = fa_data.factor_summaries["Factor1"].variables[0]
        assert entry.description == "I often feel nervous"
        assert entry.loading == pytest.approx(0.72)

    def test_undefined_factor_when_emergency_disabled(self, fa_loadings, fa_variable_info):
        # Act
        data = build_fa_analysis_data(fa_loadings, fa_variable_info, n_emergency=0)

        # Assert
        assert data.undefined_factors == ["Factor3"]
        assert data.factor_summaries["Factor3"].variables == ()

    def test_pandas_row_labels_become_variables(self, fa_loadings, fa_variable_info):
        # Arrange
        frame = fa_loadings.to_pandas().set_index("variable")

        # Act
        data = build_fa_analysis_data(frame, fa_variable_info)

        # Assert
        assert data.variable_names == tuple(fa_variable_info)
        assert data.factor_names == ("Factor1", "Factor2", "Factor3")

    def test_numpy_loadings_follow_variable_info_order(self, fa_loadings, fa_variable_info):
        # Arrange
        matrix = fa_loadings.select(["Factor1", "Factor2", "Factor3"]).to_numpy()

        # Act
        data = build_fa_analysis_data(matrix, fa_variable_info)

        # Assert
        assert data.variable_names == tuple(fa_variable_info)
        assert data.factor_names == ("Factor1", "Factor2", "Factor3")

    def test_numpy_loadings_row_count_mismatch(self, fa_variable_info):
        # Act / Assert
        with pytest.raises(InputValidationError, match="4 rows but variable_info describes 6"):
            build_fa_analysis_data(np.zeros((4, 2)), fa_variable_info)

    def test_variable_info_as_dataframe(self, fa_loadings, fa_variable_info):
        # Arrange
        info = pd.DataFrame({"variable": list(fa_variable_info), "description": list(fa_variable_info.values())})

        # Act
        data = build_fa_analysis_data(fa_loadings, info)

        # Assert
        assert data.describe("dep2") == "I have lost interest in hobbies"

    def test_mapping_with_phi(self, fa_loadings, fa_variable_info):
        # Arrange
        phi = np.array([[1.0, 0.3, 0.1], [0.3, 1.0, 0.2], [0.1, 0.2, 1.0]])

        # Act
        data = build_fa_analysis_data({"loadings": fa_loadings, "Phi": phi}, fa_variable_info)

        # Assert
        assert data.factor_correlations[0, 1] == pytest.approx(0.3)
        assert not data.factor_correlations.flags.writeable

    def test_correlation_shape_mismatch(self, fa_loadings, fa_variable_info):
        # Act / Assert
        with pytest.raises(InputValidationError, match="factor_cor_mat must be 3x3"):
            build_fa_analysis_data({"loadings": fa_loadings, "factor_cor_mat": np.eye(2)}, fa_variable_info)

    def test_mapping_without_loadings(self, fa_variable_info):
        # Act / Assert
        with pytest.raises(InputValidationError, match="must contain 'loadings'"):
            build_fa_analysis_data({"Phi": np.eye(2)}, fa_variable_info)

    def test_missing_values_name_the_variable(self, fa_loadings, fa_variable_info):
        # Arrange
        loadings = fa_loadings.with_columns(
            pl.when(pl.col("variable") == "anx2").then(None).otherwise(pl.col("Factor2")).alias("Factor2")
        )

        # Act / Assert
        with pytest.raises(InputValidationError, match="missing values for: anx2"):
            build_fa_analysis_data(loadings, fa_variable_info)

    def test_cross_reference_reports_both_sides(self, fa_loadings, fa_variable_info):
        # Arrange
        info = {k: v for k, v in fa_variable_info.items() if k != "dep1"}
        info["extra_item"] = "Not in the model"

        # Act / Assert
        with pytest.raises(InputValidationError) as exc_info:
            build_fa_analysis_data(fa_loadings, info)

        message = str(exc_info.value)
        assert "not found in variable_info: dep1" in message
        assert "not found in loadings: extra_item" in message

    def test_variable_info_required(self, fa_loadings):
        # Act / Assert
        with pytest.raises(InputValidationError, match="variable_info is required"):
            build_fa_analysis_data(fa_loadings, None)

    def test_invalid_argument_checked_before_data(self):
        # Act / Assert
        with pytest.raises(ConfigurationError, match="cutoff"):
            build_fa_analysis_data("not a table", {}, cutoff=-0.1)

    def test_result_is_read_only(self, fa_data):
        # Act / Assert
        with pytest.raises(AttributeError):
            fa_data.cutoff = 0.5
        with pytest.raises(TypeError):
            fa_data.factor_summaries["Factor1"] = None
