"""
Configuration loading utilities.

Supports environment variable interpolation and inheritance from a
base.yaml placed next to the main file.
"""

import os
import re
from pathlib import Path
from typing import Any

import yaml

from tabml.config.settings import (
    Algorithm,
    EngineConfig,
    LoggingConfig,
    PredictionConfig,
    TrainingConfig,
    parse_hyperparameters,
)


def _interpolate_env_vars(value: str) -> str:
    """
    Interpolate environment variables in string values.

    Supports ${VAR} and ${VAR:default} syntax.
    """
    pattern = r"\$\{([^}:]+)(?::([^}]*))?\}"

    def replacer(match: re.Match[str]) -> str:
        var_name = match.group(1)
        default = match.group(2)
        return os.environ.get(var_name, default if default is not None else "")

    return re.sub(pattern, replacer, value)


def _process_config_values(obj: Any) -> Any:
    """Recursively interpolate env vars in every string of a config tree."""
    if isinstance(obj, str):
        return _interpolate_env_vars(obj)
    if isinstance(obj, dict):
        return {k: _process_config_values(v) for k, v in obj.items()}
    if isinstance(obj, list):
        return [_process_config_values(item) for item in obj]
    return obj


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Deep merge two dictionaries, with override taking precedence."""
    result = base.copy()
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def load_yaml(path: Path) -> dict[str, Any]:
    """Load a YAML file and process environment variables."""
    with path.open(encoding="utf-8") as f:
        data = yaml.safe_load(f)
    return _process_config_values(data) if data else {}


def load_config(
    config_path: Path | None = None,
    base_path: Path | None = None,
) -> EngineConfig:
    """
    Load engine configuration from YAML file(s).

    Every section is optional; missing values fall back to defaults.
    Example file:

        training:
          test_size: 0.2
          random_state: ${TABML_SEED:1337}
        prediction:
          neighbors: 5
        hyperparameters:
          kmeans: {k: 4}

    Args:
        config_path: Path to the main configuration file (None = defaults).
        base_path: Optional base configuration for inheritance.

    Returns:
        Fully validated EngineConfig instance.
    """
    if config_path is None:
        return EngineConfig()

    if base_path is not None:
        base_data = load_yaml(base_path)
    else:
        potential_base = config_path.parent / "base.yaml"
        base_data = (
            load_yaml(potential_base)
            if potential_base.exists() and potential_base != config_path
            else {}
        )

    merged = _deep_merge(base_data, load_yaml(config_path))

    # Values interpolated from env vars arrive as strings; pydantic coerces them
    training = TrainingConfig(**merged.get("training", {}))
    prediction = PredictionConfig(**merged.get("prediction", {}))
    logging_cfg = LoggingConfig(**merged.get("logging", {}))

    hyperparameters: dict[Algorithm, dict[str, Any]] = {}
    for name, values in (merged.get("hyperparameters") or {}).items():
        # Validate eagerly so a typo fails at load time
        params = parse_hyperparameters(name, values or {})
        hyperparameters[Algorithm(name)] = params.model_dump(exclude={"algorithm"})

    return EngineConfig(
        training=training,
        prediction=prediction,
        logging=logging_cfg,
        hyperparameters=hyperparameters,
    )
