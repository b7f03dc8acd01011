"""
Session owning the dataset, registry, trainer and prediction engine.
"""

from pathlib import Path
from typing import Any, Mapping, Sequence

import pandas as pd

from tabml.config.settings import Algorithm, EngineConfig, TaskKind
from tabml.estimators import CancellationToken
from tabml.evaluation.comparison import ModelComparison, compare_models
from tabml.evaluation.insights import (
    ColumnImportance,
    ModelRecommendation,
    dataset_feature_importance,
    recommend_models,
)
from tabml.modeling.artifact import ModelArtifact, PredictionResult
from tabml.modeling.dataset import ColumnType, Dataset
from tabml.modeling.inference import PredictionEngine
from tabml.modeling.persistence import load_model_package, save_model_package
from tabml.modeling.registry import ModelRegistry
from tabml.modeling.training import ModelTrainer, TrainingRequest
from tabml.utils.logging import get_logger

log = get_logger(__name__)


class MLSession:
    """
    One working session over a single dataset.

    Loading a new dataset keeps trained models; reset() drops both.

    Example:
        >>> session = MLSession()
        >>> session.load_dataset(df)
        >>> model = session.train("regression", "linear_regression", ["x"], "y")
        >>> session.predict(model.id, {"x": 3.0}).prediction
    """

    def __init__(self, config: EngineConfig | None = None) -> None:
        self.config = config or EngineConfig()
        self.registry = ModelRegistry()
        self.trainer = ModelTrainer(self.config, self.registry)
        self.engine = PredictionEngine(self.registry, config=self.config.prediction)

    @property
    def dataset(self) -> Dataset:
        """Current dataset (empty until one is loaded)."""
        return self.engine.dataset

    def load_dataset(
        self,
        data: Dataset | pd.DataFrame | Path | Sequence[Mapping[str, Any]],
        column_types: Mapping[str, ColumnType | str] | None = None,
    ) -> Dataset:
        """Replace the current dataset from a Dataset, DataFrame, CSV path or rows."""
        if isinstance(data, Dataset):
            dataset = data
        elif isinstance(data, pd.DataFrame):
            dataset = Dataset(data, column_types)
        elif isinstance(data, (str, Path)):
            dataset = Dataset.from_csv(Path(data))
        else:
            dataset = Dataset.from_records(data, column_types)

        self.engine.dataset = dataset
        log.info("Dataset loaded", n_rows=len(dataset), columns=dataset.columns)
        return dataset

    def train(
        self,
        task: TaskKind | str,
        algorithm: Algorithm | str,
        features: Sequence[str],
        target: str | None = None,
        hyperparameters: Mapping[str, Any] | None = None,
        name: str | None = None,
        cancel_token: CancellationToken | None = None,
    ) -> ModelArtifact:
        """Train and register a model on the current dataset."""
        request = TrainingRequest(
            task=task,
            algorithm=algorithm,
            features=tuple(features),
            target=target,
            hyperparameters=dict(hyperparameters) if hyperparameters is not None else None,
            name=name,
        )
        return self.trainer.train(self.dataset, request, cancel_token)

    def compare(
        self,
        task: TaskKind | str,
        algorithms: Sequence[Algorithm | str],
        features: Sequence[str],
        target: str | None = None,
    ) -> ModelComparison:
        """Compare algorithms on the current dataset; see compare_models()."""
        return compare_models(self.trainer, self.dataset, task, algorithms, features, target)

    def feature_insights(self) -> list[ColumnImportance]:
        """Variance-based importance of the current dataset's numeric columns."""
        return dataset_feature_importance(self.dataset)

    def recommend_models(self, limit: int = 3) -> list[ModelRecommendation]:
        """Suggested models for the current dataset; see recommend_models()."""
        return recommend_models(self.dataset, limit)

    def predict(self, model_id: str, inputs: Mapping[str, Any]) -> PredictionResult:
        """Predict with a registered model."""
        return self.engine.predict(model_id, inputs)

    def export_model(self, model_id: str, output_path: Path) -> Path:
        """Write a registered model to a package file."""
        return save_model_package(self.registry.get(model_id), output_path, self.dataset)

    def import_model(self, path: Path) -> ModelArtifact:
        """Register the model stored in a package file."""
        artifact, _ = load_model_package(path)
        return self.registry.register(artifact)

    def reset(self) -> None:
        """Drop the dataset and every trained model."""
        self.engine.dataset = Dataset.empty()
        self.registry.clear()
        log.info("Session reset")
