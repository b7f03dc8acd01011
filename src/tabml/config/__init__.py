"""
Configuration management with typed Pydantic models.

Provides engine settings, per-algorithm hyperparameter models and
YAML configuration loading.
"""

from tabml.config.loader import load_config
from tabml.config.settings import (
    ALGORITHM_TASKS,
    Algorithm,
    DecisionTreeParams,
    EngineConfig,
    HyperParameters,
    KMeansParams,
    LinearRegressionParams,
    LoggingConfig,
    LogisticRegressionParams,
    PredictionConfig,
    PredictionStrategy,
    TaskKind,
    TrainingConfig,
    parse_hyperparameters,
)

__all__ = [
    "ALGORITHM_TASKS",
    "Algorithm",
    "DecisionTreeParams",
    "EngineConfig",
    "HyperParameters",
    "KMeansParams",
    "LinearRegressionParams",
    "LoggingConfig",
    "LogisticRegressionParams",
    "PredictionConfig",
    "PredictionStrategy",
    "TaskKind",
    "TrainingConfig",
    "load_config",
    "parse_hyperparameters",
]
