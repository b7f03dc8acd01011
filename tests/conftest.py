"""Pytest configuration and shared fixtures."""

from pathlib import Path

import numpy as np
import pandas as pd
import pytest

from tabml.config import EngineConfig
from tabml.modeling.dataset import Dataset
from tabml.modeling.registry import ModelRegistry
from tabml.modeling.session import MLSession
from tabml.modeling.training import ModelTrainer


@pytest.fixture
def project_root() -> Path:
    """Return the project root directory."""
    return Path(__file__).parent.parent


@pytest.fixture
def linear_frame() -> pd.DataFrame:
    """y = 2x + 1 on x = 1..10."""
    x = np.arange(1, 11, dtype=float)
    return pd.DataFrame({"x": x, "y": 2 * x + 1})


@pytest.fixture
def blobs() -> np.ndarray:
    """Two well separated 2D clusters of 20 points each."""
    rng = np.random.default_rng(0)
    a = rng.normal(loc=(0.0, 0.0), scale=0.3, size=(20, 2))
    b = rng.normal(loc=(10.0, 10.0), scale=0.3, size=(20, 2))
    return np.vstack([a, b])


@pytest.fixture
def separable_frame() -> pd.DataFrame:
    """
    Linearly separable binary classification data.

    Rows alternate between the classes so a sequential split keeps both
    in the train and test parts.
    """
    rng = np.random.default_rng(42)
    rows = []
    for i in range(100):
        label = i % 2
        center = 2.0 if label else -2.0
        x1, x2 = rng.normal(loc=center, scale=0.5, size=2)
        rows.append({"x1": x1, "x2": x2, "label": label})
    return pd.DataFrame(rows)


@pytest.fixture
def fruit_frame() -> pd.DataFrame:
    """String-labelled classification data with a few dirty rows."""
    return pd.DataFrame(
        {
            "weight": [150, 160, 155, 300, 310, 305, 152, 298, "", 158, 302, 157],
            "size": [7.0, 7.5, 7.2, 12.0, 12.5, 12.2, 7.1, 11.9, 7.3, None, 12.1, 7.4],
            "fruit": [
                "apple", "apple", "apple", "melon", "melon", "melon",
                "apple", "melon", "apple", "apple", "melon", "apple",
            ],
        }
    )


@pytest.fixture
def engine_config() -> EngineConfig:
    """Default configuration with a fixed seed."""
    return EngineConfig()


@pytest.fixture
def registry() -> ModelRegistry:
    """Empty model registry."""
    return ModelRegistry()


@pytest.fixture
def trainer(engine_config: EngineConfig, registry: ModelRegistry) -> ModelTrainer:
    """Trainer writing into the registry fixture."""
    return ModelTrainer(engine_config, registry)


@pytest.fixture
def linear_dataset(linear_frame: pd.DataFrame) -> Dataset:
    """Dataset wrapping linear_frame."""
    return Dataset(linear_frame)


@pytest.fixture
def session(engine_config: EngineConfig) -> MLSession:
    """Fresh session."""
    return MLSession(engine_config)
