"""
Tests for Gaussian mixture diagnostics.
"""

import numpy as np
import pytest

from psych_interpreter.analyses.gm.diagnostics import (
    build_gm_fit_summary,
    compute_separation,
    find_distinguishing_variables,
)
from psych_interpreter.analyses.gm.model_data import build_gm_analysis_data


class TestSeparation:
    def test_mahalanobis_under_pooled_covariance(self, gm_data):
        # Act
        pairs, metric = compute_separation(gm_data)

        # Assert
        assert metric == "mahalanobis"
        assert len(pairs) == 1
        assert (pairs[0].cluster_a, pairs[0].cluster_b) == ("Cluster_1", "Cluster_2")
        assert pairs[0].distance == pytest.approx(np.sqrt(10.28 / 0.55))

    def test_singular_covariance_falls_back_to_euclidean(self, gm_fit_results):
        # Arrange
        fit_results = dict(gm_fit_results, covariances=np.stack([np.ones((3, 3)), np.ones((3, 3))]))
        data = build_gm_analysis_data(fit_results)

        # Act
        pairs, metric = compute_separation(data)

        # Assert
        assert metric == "euclidean"
        assert pairs[0].distance == pytest.approx(np.sqrt(10.28))

    def test_single_cluster_has_no_pairs(self):
        # Arrange
        data = build_gm_analysis_data({"means": np.array([[0.0], [1.0]])})

        # Act / Assert
        assert compute_separation(data) == ([], "mahalanobis")


class TestDistinguishingVariables:
    def test_ranked_by_departure_from_other_clusters(self, gm_data):
        # Act
        result = find_distinguishing_variables(gm_data)

        # Assert
        first = result["Cluster_1"]
        assert [v.variable for v in first] == ["neuroticism", "openness", "conscientiousness"]
        assert first[0].direction == "lower"
        assert first[1].direction == "higher"
        assert first[0].score == pytest.approx(3.3)
        assert result["Cluster_2"][0].direction == "higher"

    def test_top_n_limits_list(self, gm_data):
        # Act / Assert
        assert len(find_distinguishing_variables(gm_data, top_n=1)["Cluster_2"]) == 1


class TestGMFitSummary:
    def test_well_separated_solution(self, gm_data):
        # Act
        summary = build_gm_fit_summary(gm_data)

        # Assert
        assert summary.warnings == ()
        assert summary.notes[0].startswith("Covariance model VVV")
        assert summary.statistics["bic"] == -1234.5
        assert summary.statistics["mean_uncertainty"] == pytest.approx(0.079)
        assert summary.overlapping_pairs == []
        assert summary.cluster_uncertainty["Cluster_2"] == pytest.approx(0.0925)

    def test_small_cluster_warning(self, gm_fit_results, gm_variable_info):
        # Arrange
        data = build_gm_analysis_data(gm_fit_results, gm_variable_info, min_cluster_size=5)

        # Act
        summary = build_gm_fit_summary(data)

        # Assert
        assert "Cluster_2 is small (n = 4 < 5)" in summary.warnings

    def test_overlap_and_imbalance_warnings(self):
        # Arrange
        data = build_gm_analysis_data(
            {
                "means": np.array([[0.0, 0.5], [0.0, 0.5]]),
                "covariances": np.stack([np.eye(2), np.eye(2)]),
                "proportions": [0.9, 0.1],
                "covariance_type": "EII",
            }
        )

        # Act
        summary = build_gm_fit_summary(data)

        # Assert
        assert any(w.startswith("Cluster sizes are unbalanced (largest/smallest = 9.0)") for w in summary.warnings)
        assert any(w.startswith("Clusters overlap (distance < 2)") for w in summary.warnings)
        assert "Covariance model EII assumes uncorrelated variables with equal variance in every cluster" in summary.notes

    def test_high_uncertainty_warnings(self):
        # Arrange
        memberships = np.array([[0.55, 0.45], [0.5, 0.5], [0.4, 0.6], [0.45, 0.55]])
        data = build_gm_analysis_data(
            {"means": np.array([[0.0, 3.0]]), "memberships": memberships, "covariance_type": "VII"},
            separation_threshold=0.3,
        )

        # Act
        summary = build_gm_fit_summary(data)

        # Assert
        assert any(w.startswith("Average classification uncertainty is high") for w in summary.warnings)
        assert "100.0% of observations have uncertain cluster membership" in summary.warnings

    def test_well_defined_note_when_nothing_to_report(self):
        # Arrange
        data = build_gm_analysis_data(
            {"means": np.array([[0.0, 5.0]]), "covariances": np.array([1.0, 1.0]), "covariance_type": "VII"}
        )

        # Act
        summary = build_gm_fit_summary(data)

        # Assert
        assert summary.notes == ("Clustering appears well-defined with good separation",)

    def test_to_dict(self, gm_data):
        # Act
        payload = build_gm_fit_summary(gm_data).to_dict()

        # Assert
        assert payload["kind"] == "gm"
        assert payload["distance_metric"] == "mahalanobis"
        assert payload["separations"][0]["clusters"] == ["Cluster_1", "Cluster_2"]
        assert payload["distinguishing_variables"]["Cluster_1"][0]["variable"] == "neuroticism"
