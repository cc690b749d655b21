"""
Tests for the parameter registry and option validation.
"""

import pytest

from psych_interpreter.core.errors import ConfigurationError
from psych_interpreter.core.parameters import (
    PARAMETER_REGISTRY,
    get_default,
    get_parameters_by_group,
    normalize_verbosity,
    validate_parameter,
)


class TestValidateParameter:
    """Values are checked against their registered constraint."""

    @pytest.mark.parametrize(
        "name, value",
        [("word_limit", 20), ("word_limit", 500), ("cutoff", 0), ("cutoff", 1.0), ("heading_level", 6)],
    )
    def test_boundary_values_accepted(self, name, value):
        # Act / Assert
        assert validate_parameter(name, value) == value

    @pytest.mark.parametrize(
        "name, value, fragment",
        [
            ("word_limit", 19, "'word_limit' must be an integer between 20 and 500, got 19"),
            ("word_limit", 501, "between 20 and 500"),
            ("cutoff", 1.5, "'cutoff' must be a number between 0 and 1"),
            ("n_emergency", -1, "'n_emergency' must be an integer >= 0"),
            ("heading_level", 7, "between 1 and 6"),
            ("max_line_length", 39, "between 40 and 300"),
            ("output_format", "html", 'one of "cli", "markdown"'),
            ("echo", "loud", 'one of "none", "output", "all"'),
            ("verbosity", 3, "between 0 and 2"),
        ],
    )
    def test_out_of_range_values_name_field_and_constraint(self, name, value, fragment):
        # Act / Assert
        with pytest.raises(ConfigurationError, match=fragment):
            validate_parameter(name, value)

    def test_bool_rejected_for_numeric_parameter(self):
        # Act / Assert
        with pytest.raises(ConfigurationError, match="word_limit"):
            validate_parameter("word_limit", True)

    def test_integral_float_accepted_for_int_parameter(self):
        # Act
        value = validate_parameter("word_limit", 150.0)

        # Assert
        assert value == 150
        assert isinstance(value, int)

    def test_non_integral_float_rejected_for_int_parameter(self):
        # Act / Assert
        with pytest.raises(ConfigurationError):
            validate_parameter("n_emergency", 1.5)

    def test_nullable_parameter_accepts_none(self):
        # Act / Assert
        assert validate_parameter("additional_info", None) is None
        assert validate_parameter("profile_variables", None) is None

    def test_str_list_requires_strings(self):
        # Act / Assert
        assert validate_parameter("profile_variables", ["a", "b"]) == ["a", "b"]
        with pytest.raises(ConfigurationError, match="a list of strings"):
            validate_parameter("profile_variables", ["a", 1])
        with pytest.raises(ConfigurationError):
            validate_parameter("profile_variables", "a")

    def test_bool_parameter_rejects_strings(self):
        # Act / Assert
        with pytest.raises(ConfigurationError, match="suppress_heading"):
            validate_parameter("suppress_heading", "yes")


class TestNormalizeVerbosity:
    """Legacy boolean silent flag maps onto integer verbosity."""

    @pytest.mark.parametrize(
        "verbosity, silent, expected",
        [
            (None, None, 0),
            (None, True, 2),
            (None, False, 0),
            (1, None, 1),
            (2, False, 2),
            (True, None, 2),
            (None, 1, 1),
        ],
    )
    def test_normalize(self, verbosity, silent, expected):
        # Act / Assert
        assert normalize_verbosity(verbosity, silent) == expected

    def test_invalid_level_raises(self):
        # Act / Assert
        with pytest.raises(ConfigurationError, match="verbosity"):
            normalize_verbosity(5)


class TestRegistryLookup:
    def test_groups_partition_analysis_arguments(self):
        # Act
        fa = get_parameters_by_group("fa")
        gm = get_parameters_by_group("gm")

        # Assert
        assert set(fa) == {"cutoff", "n_emergency", "hide_low_loadings", "sort_loadings"}
        assert "min_cluster_size" in gm
        assert not set(fa) & set(gm)

    def test_defaults_are_valid(self):
        # Act / Assert
        for name in PARAMETER_REGISTRY:
            assert validate_parameter(name, get_default(name)) == get_default(name)
