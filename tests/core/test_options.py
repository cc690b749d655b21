"""
Tests for typed per-call options.
"""

from dataclasses import FrozenInstanceError

import pytest

from psych_interpreter.analyses.fa.model_data import FAArgs
from psych_interpreter.analyses.gm.model_data import GMArgs
from psych_interpreter.core.errors import ConfigurationError
from psych_interpreter.core.options import LLMOptions, OutputOptions


class TestLLMOptions:
    def test_defaults(self):
        # Act
        options = LLMOptions()

        # Assert
        assert options.word_limit == 150
        assert options.echo == "none"
        assert options.system_prompt is None

    def test_from_mapping_explicit_values_win_over_defaults(self):
        # Arrange
        defaults = {"word_limit": 200, "echo": "output", "llm_model": "ignored"}

        # Act
        options = LLMOptions.from_mapping({"word_limit": 80, "echo": None}, defaults=defaults)

        # Assert
        assert options.word_limit == 80
        assert options.echo == "output"

    def test_from_mapping_unknown_option_raises(self):
        # Act / Assert
        with pytest.raises(ConfigurationError, match="Unknown LLMOptions option 'temperature'"):
            LLMOptions.from_mapping({"temperature": 0.1})

    def test_invalid_value_raises_on_construction(self):
        # Act / Assert
        with pytest.raises(ConfigurationError, match="word_limit"):
            LLMOptions(word_limit=10)

    def test_options_are_frozen(self):
        # Arrange
        options = LLMOptions()

        # Act / Assert
        with pytest.raises(FrozenInstanceError):
            options.word_limit = 100


class TestOutputOptions:
    def test_invalid_format_raises(self):
        # Act / Assert
        with pytest.raises(ConfigurationError, match="output_format"):
            OutputOptions(output_format="html")

    def test_from_mapping_uses_config_defaults(self):
        # Act
        options = OutputOptions.from_mapping({"heading_level": 2}, defaults={"max_line_length": 100})

        # Assert
        assert options.heading_level == 2
        assert options.max_line_length == 100
        assert options.output_format == "cli"


class TestAnalysisArgs:
    def test_fa_args_validate_and_convert(self):
        # Act
        args = FAArgs.from_mapping({"cutoff": 0.4, "n_emergency": 0})

        # Assert
        assert args.to_dict() == {"cutoff": 0.4, "n_emergency": 0, "hide_low_loadings": False, "sort_loadings": True}

    def test_fa_args_reject_gm_argument(self):
        # Act / Assert
        with pytest.raises(ConfigurationError, match="Unknown FAArgs option 'min_cluster_size'"):
            FAArgs.from_mapping({"min_cluster_size": 3})

    def test_gm_args_validate_profile_variables(self):
        # Act / Assert
        assert GMArgs(profile_variables=("a", "b")).profile_variables == ["a", "b"]
        with pytest.raises(ConfigurationError, match="profile_variables"):
            GMArgs(profile_variables="a")
