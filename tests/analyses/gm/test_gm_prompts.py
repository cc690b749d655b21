"""
Tests for Gaussian mixture prompt construction.
"""

import numpy as np
import pytest

from psych_interpreter.analyses.gm.model_data import build_gm_analysis_data
from psych_interpreter.analyses.gm.prompts import build_gm_main_prompt, build_gm_system_prompt, describe_cluster_size


@pytest.mark.parametrize(
    "proportion, expected",
    [(0.41, "large"), (0.40, "moderate-sized"), (0.21, "moderate-sized"), (0.20, "small"), (0.0, "small")],
)
def test_describe_cluster_size(proportion, expected):
    # Act / Assert
    assert describe_cluster_size(proportion) == expected


def test_system_prompt_word_band():
    # Act
    prompt = build_gm_system_prompt(200)

    # Assert
    assert prompt.startswith("# ROLE")
    assert "160-200 words" in prompt


class TestMainPrompt:
    def test_overview_and_profiles(self, gm_data):
        # Act
        prompt = build_gm_main_prompt(gm_data, 150)

        # Assert
        assert "A Gaussian mixture model with 2 clusters on 3 variables fitted to 10 observations." in prompt
        assert "Covariance structure: VVV (ellipsoidal, varying volume, shape and orientation)." in prompt
        assert "## Cluster_1: 60.0% of observations (n = 6)" in prompt
        assert "- openness: 0.800" in prompt
        assert "- neuroticism: Neuroticism" in prompt
        assert "Means appear to be standardized" in prompt

    def test_sections_in_order(self, gm_data):
        # Act
        prompt = build_gm_main_prompt(
            gm_data, 150, additional_info="Student sample.", interpretation_guidelines="Use Big Five terms."
        )

        # Assert
        order = [
            "# MODEL OVERVIEW",
            "# INTERPRETATION GUIDELINES",
            "# ADDITIONAL CONTEXT",
            "# VARIABLE DESCRIPTIONS",
            "# CLUSTER PROFILES",
            "# OUTPUT FORMAT",
        ]
        positions = [prompt.index(section) for section in order]
        assert positions == sorted(positions)

    def test_output_contract(self, gm_data):
        # Act
        prompt = build_gm_main_prompt(gm_data, 150)

        # Assert
        assert "Include ALL 2 clusters using these exact keys: Cluster_1, Cluster_2" in prompt
        assert '"Cluster_2": {' in prompt

    def test_profile_variables_subset(self, gm_fit_results, gm_variable_info):
        # Arrange
        data = build_gm_analysis_data(gm_fit_results, gm_variable_info, profile_variables=["openness", "neuroticism"])

        # Act
        prompt = build_gm_main_prompt(data, 150)

        # Assert
        assert "conscientiousness" not in prompt.lower()
        assert "- neuroticism: -0.900" in prompt

    def test_uncertainty_shown_when_weighted(self, gm_fit_results, gm_variable_info):
        # Arrange
        data = build_gm_analysis_data(gm_fit_results, gm_variable_info, weight_by_uncertainty=True)

        # Act
        prompt = build_gm_main_prompt(data, 150)

        # Assert
        assert "Average membership uncertainty: 0.070" in prompt

    def test_sizes_omitted_without_observations(self):
        # Arrange
        data = build_gm_analysis_data({"means": np.array([[2.0, 5.0], [3.0, 7.0]]), "proportions": [0.7, 0.3]})

        # Act
        prompt = build_gm_main_prompt(data, 150)

        # Assert
        assert "## Cluster_1: 70.0% of observations\n" in prompt
        assert "fitted to" not in prompt
        assert "standardized" not in prompt
