"""
Tests for Gaussian mixture reply handling.
"""

import json

from psych_interpreter.analyses.gm.parsing import default_gm_result, extract_gm_by_pattern, validate_gm_response
from psych_interpreter.core.response_parser import ParsingTier, parse_llm_response


class TestValidateGMResponse:
    def test_case_and_spelling_insensitive_keys(self, gm_data):
        # Arrange
        payload = {
            "cluster 1": {"name": "Stable Explorers", "interpretation": "Open and calm."},
            "CLUSTER_2": {"name": "Anxious Traditionalists", "interpretation": "Tense and reserved."},
        }

        # Act
        texts = validate_gm_response(payload, gm_data)

        # Assert
        assert texts.suggested_names == {"Cluster_1": "Stable Explorers", "Cluster_2": "Anxious Traditionalists"}

    def test_rejects_blank_name(self, gm_data, valid_gm_reply):
        # Arrange
        payload = json.loads(valid_gm_reply)
        payload["Cluster_1"]["name"] = "   "

        # Act / Assert
        assert validate_gm_response(payload, gm_data) is None


class TestExtractGMByPattern:
    def test_quoted_summaries_from_broken_json(self, gm_data):
        # Arrange
        raw = '{"Cluster_1": "Open, organized and calm people", "Cluster_2": "Tense and reserved people"'

        # Act
        texts = extract_gm_by_pattern(raw, gm_data)

        # Assert
        assert texts.component_summaries == {
            "Cluster_1": "Open, organized and calm people",
            "Cluster_2": "Tense and reserved people",
        }
        assert texts.suggested_names == {"Cluster_1": "Cluster 1", "Cluster_2": "Cluster 2"}

    def test_bold_markers(self, gm_data):
        # Arrange
        raw = (
            "**Cluster 1**: Stable Explorers - Members are curious, organized and emotionally stable.\n"
            "**Cluster 2**: Anxious Traditionalists - Members are cautious and prone to worry."
        )

        # Act
        texts = extract_gm_by_pattern(raw, gm_data)

        # Assert
        assert texts.suggested_names["Cluster_1"] == "Stable Explorers"
        assert texts.component_summaries["Cluster_2"] == "Members are cautious and prone to worry."

    def test_half_of_clusters_is_enough(self, gm_data):
        # Arrange
        raw = "Cluster 1: Stable Explorers - Members are curious and emotionally stable."

        # Act
        texts = extract_gm_by_pattern(raw, gm_data)

        # Assert
        assert texts.suggested_names["Cluster_1"] == "Stable Explorers"
        assert texts.suggested_names["Cluster_2"] == "Cluster 2"
        assert texts.component_summaries["Cluster_2"].startswith("Cluster 2 interpretation unavailable")

    def test_short_summaries_are_ignored(self, gm_data):
        # Act / Assert
        assert extract_gm_by_pattern("Cluster 1: Calm.\nCluster 2: Tense.", gm_data) is None

    def test_nothing_recognizable(self, gm_data):
        # Act / Assert
        assert extract_gm_by_pattern("The model fit is poor.", gm_data) is None


class TestDefaultGMResult:
    def test_placeholders_describe_cluster_size(self, gm_data):
        # Act
        texts = default_gm_result(gm_data)

        # Assert
        assert texts.suggested_names == {"Cluster_1": "Cluster 1", "Cluster_2": "Cluster 2"}
        assert texts.component_summaries["Cluster_1"] == (
            "Cluster 1 interpretation unavailable: a large cluster (60.0% of observations)"
        )
        assert texts.component_summaries["Cluster_2"] == (
            "Cluster 2 interpretation unavailable: a moderate-sized cluster (40.0% of observations)"
        )


class TestGMTiers:
    def test_valid_reply_is_tier_one(self, gm_data, valid_gm_reply):
        # Act
        parsed = parse_llm_response(valid_gm_reply, "gm", gm_data)

        # Assert
        assert parsed.parsing_tier is ParsingTier.CLEANED_JSON

    def test_placeholder_tier(self, gm_data):
        # Act
        parsed = parse_llm_response("???", "gm", gm_data)

        # Assert
        assert parsed.parsing_tier is ParsingTier.DEFAULT
        assert parsed.suggested_names["Cluster_2"] == "Cluster 2"
