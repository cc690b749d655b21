"""Configuration loader for psych_interpreter defaults.

Loads run defaults from YAML with:
- Environment variable overrides (env var → YAML → defaults)
- Type coercion (string to float, bool, int)
- Bounds validation through the parameter registry
- Graceful degradation (missing file uses defaults)
"""

import logging
import os
from dataclasses import asdict, dataclass
from functools import lru_cache
from pathlib import Path
from typing import Any

import yaml  # type: ignore

from psych_interpreter.core.parameters import PARAMETER_REGISTRY, validate_parameter

logger = logging.getLogger(__name__)

CONFIG_PATH_ENV_VAR = "PSYCH_INTERPRETER_CONFIG"


def get_project_root() -> Path:
    """
    Get project root directory.

    Uses pattern: config_loader.py → core/ → psych_interpreter/ → src/ → project_root

    Returns:
        Path to project root directory

    Raises:
        ValueError: If config/ directory is not found at the detected project root
    """
    project_root = Path(__file__).parent.parent.parent.parent

    config_dir = project_root / "config"
    if not config_dir.is_dir():
        raise ValueError(
            f"Project root detection failed: config/ directory not found at {config_dir}. "
            f"Detected project root: {project_root}."
        )

    return project_root


def _coerce_type(value: Any, target_type: type) -> Any:
    """
    Coerce value to target type.

    Handles:
    - String "0.4" → float 0.4
    - String "true"/"false" → bool True/False (case-insensitive)
    - String "120" → int 120

    Raises:
        ValueError: If coercion fails
    """
    if value is None:
        return None

    if isinstance(value, target_type) and not (target_type is int and isinstance(value, bool)):
        return value

    if target_type is bool:
        if isinstance(value, str):
            return value.lower() in ("true", "1", "yes", "on")
        return bool(value)

    if target_type is float:
        return float(value)

    if target_type is int:
        if isinstance(value, str):
            return int(float(value))  # Handle "150.0" → 150
        return int(value)

    if target_type is str:
        return str(value)

    return value


def _get_env_var(key: str, default: Any = None) -> str | None:
    return os.getenv(key, default)


def _apply_env_overrides(
    config: dict[str, Any], defaults: dict[str, Any], env_mapping: dict[str, str]
) -> dict[str, Any]:
    """
    Apply environment variable overrides to config.

    Args:
        config: Configuration dictionary (YAML merged into defaults)
        defaults: Default values, used to pick the coercion target type
        env_mapping: Mapping of env var names to config keys

    Returns:
        Config with env var overrides applied
    """
    result = config.copy()

    for env_key, config_key in env_mapping.items():
        env_value = _get_env_var(env_key)
        if env_value is None:
            continue
        default = defaults.get(config_key)
        # Nullable string options default to None
        target_type = type(default) if default is not None else str
        try:
            result[config_key] = _coerce_type(env_value, target_type)
        except (ValueError, TypeError) as e:
            raise ValueError(
                f"Failed to coerce env var {env_key}={env_value} to {target_type.__name__}: {e}"
            ) from e

    return result


@dataclass
class InterpretConfigDefaults:
    """Default values for interpretation runs."""

    # LLM interaction
    word_limit: int = 150
    echo: str = "none"
    llm_provider: str = "ollama"
    llm_model: str = "llama3.1:8b"
    ollama_base_url: str = "http://localhost:11434"
    ollama_timeout_seconds: float = 120.0
    # Output
    output_format: str = "cli"
    heading_level: int = 1
    suppress_heading: bool = False
    max_line_length: int = 80
    verbosity: int = 0
    # Factor analysis
    cutoff: float = 0.3
    n_emergency: int = 2
    hide_low_loadings: bool = False
    sort_loadings: bool = True
    # Gaussian mixture
    min_cluster_size: int = 5
    separation_threshold: float = 0.3
    weight_by_uncertainty: bool = False
    top_n_distinguishing: int = 5

    def to_dict(self) -> dict[str, Any]:
        """Convert dataclass to dictionary."""
        return asdict(self)


_ENV_MAPPING = {
    "PSYCH_INTERPRETER_WORD_LIMIT": "word_limit",
    "PSYCH_INTERPRETER_ECHO": "echo",
    "PSYCH_INTERPRETER_LLM_PROVIDER": "llm_provider",
    "PSYCH_INTERPRETER_LLM_MODEL": "llm_model",
    "OLLAMA_BASE_URL": "ollama_base_url",
    "OLLAMA_TIMEOUT_SECONDS": "ollama_timeout_seconds",
    "PSYCH_INTERPRETER_OUTPUT_FORMAT": "output_format",
    "PSYCH_INTERPRETER_HEADING_LEVEL": "heading_level",
    "PSYCH_INTERPRETER_MAX_LINE_LENGTH": "max_line_length",
    "PSYCH_INTERPRETER_VERBOSITY": "verbosity",
    "PSYCH_INTERPRETER_CUTOFF": "cutoff",
    "PSYCH_INTERPRETER_N_EMERGENCY": "n_emergency",
}


def _default_config_path() -> Path | None:
    env_path = _get_env_var(CONFIG_PATH_ENV_VAR)
    if env_path:
        return Path(env_path)
    try:
        return get_project_root() / "config" / "interpret.yaml"
    except ValueError:
        # Installed as a package without the repo's config/ directory
        return None


def load_interpret_config(config_path: Path | None = None) -> dict[str, Any]:
    """
    Load interpretation defaults from YAML with env var overrides.

    Precedence: Environment variable → YAML value → Default value

    Args:
        config_path: Optional path to config file. If None, uses
            $PSYCH_INTERPRETER_CONFIG or <project_root>/config/interpret.yaml.

    Returns:
        dict keyed like InterpretConfigDefaults fields

    Raises:
        ValueError: If YAML is invalid, a value cannot be coerced, or a value
            violates its registered bounds
    """
    defaults = InterpretConfigDefaults().to_dict()
    config = defaults.copy()

    if config_path is None:
        config_path = _default_config_path()
    else:
        config_path = Path(config_path)

    if config_path is not None and config_path.exists():
        try:
            with open(config_path) as f:
                yaml_data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ValueError(f"Invalid YAML in {config_path}: {e}") from e

        if not isinstance(yaml_data, dict):
            raise ValueError(f"Invalid config in {config_path}: expected a mapping, got {type(yaml_data).__name__}")

        for key, value in yaml_data.items():
            if key not in defaults:
                logger.warning(f"Ignoring unknown config key {key!r} in {config_path}")
                continue
            target_type = type(defaults[key])
            try:
                config[key] = _coerce_type(value, target_type)
            except (ValueError, TypeError) as e:
                raise ValueError(
                    f"Type coercion failed for config {key}={value}: expected {target_type.__name__}. Error: {e}"
                ) from e
    else:
        logger.debug(f"Config file not found at {config_path}, using defaults")

    config = _apply_env_overrides(config, defaults, _ENV_MAPPING)

    for key, value in config.items():
        if key in PARAMETER_REGISTRY:
            config[key] = validate_parameter(key, value)

    return config


@lru_cache(maxsize=1)
def get_interpret_config() -> dict[str, Any]:
    """Cached process-wide defaults (call ``get_interpret_config.cache_clear()`` in tests)."""
    return load_interpret_config()
