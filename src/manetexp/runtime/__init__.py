"""Experiment configuration."""

from manetexp.runtime.config import (
    AreaConfig,
    ConfigError,
    ExperimentConfig,
    OutputConfig,
    config_from_dict,
    load_effective_config,
    load_experiment_config,
    validate_config,
)

__all__ = [
    "AreaConfig",
    "ConfigError",
    "ExperimentConfig",
    "OutputConfig",
    "config_from_dict",
    "load_effective_config",
    "load_experiment_config",
    "validate_config",
]
