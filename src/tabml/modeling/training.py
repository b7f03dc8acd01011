"""
Model training functionality.

Turns a dataset and a training request into a registered ModelArtifact:
prepare numeric rows, split sequentially, fit, evaluate on the hold-out
rows and record feature importances.
"""

import time
from dataclasses import dataclass, replace
from typing import Any

import numpy as np

from tabml.config.settings import (
    ALGORITHM_TASKS,
    Algorithm,
    EngineConfig,
    TaskKind,
    parse_hyperparameters,
)
from tabml.errors import InvalidInput, UnsupportedTask
from tabml.estimators import (
    CancellationToken,
    DecisionTree,
    EstimatorBase,
    KMeans,
    LinearRegression,
    LogisticRegression,
    create_estimator,
)
from tabml.evaluation.metrics import compute_classification_metrics, compute_regression_metrics
from tabml.modeling.artifact import FeatureImportance, ModelArtifact, ParamsModel, Performance
from tabml.modeling.dataset import Dataset, prepare_training_data, sequential_split
from tabml.modeling.registry import ModelRegistry
from tabml.utils.logging import get_logger, log_context

log = get_logger(__name__)


@dataclass(frozen=True)
class TrainingRequest:
    """
    What to train.

    Attributes:
        task: Learning task.
        algorithm: Training algorithm.
        features: Ordered feature columns.
        target: Target column (optional for clustering).
        hyperparameters: Parameter model or raw mapping; missing values
            fall back to the configured defaults.
        name: Display name (default "<ALGORITHM> Model").
    """

    task: TaskKind
    algorithm: Algorithm
    features: tuple[str, ...]
    target: str | None = None
    hyperparameters: ParamsModel | dict[str, Any] | None = None
    name: str | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "task", TaskKind(self.task))
        object.__setattr__(self, "algorithm", Algorithm(self.algorithm))
        object.__setattr__(self, "features", tuple(self.features))


def default_model_name(algorithm: Algorithm) -> str:
    """Display name used when a request does not give one."""
    return f"{algorithm.value.replace('_', ' ').upper()} Model"


def check_compatibility(task: TaskKind, algorithm: Algorithm, n_features: int) -> None:
    """
    Raise if the algorithm cannot be trained for this task and feature count.

    Raises:
        UnsupportedTask: If the algorithm does not support the task.
        InvalidInput: If linear regression gets other than one feature.
    """
    if task not in ALGORITHM_TASKS[algorithm]:
        supported = ", ".join(t.value for t in ALGORITHM_TASKS[algorithm])
        raise UnsupportedTask(
            f"{algorithm.value} does not support {task.value} (supports: {supported})"
        )
    if algorithm == Algorithm.LINEAR_REGRESSION and n_features != 1:
        raise InvalidInput(
            f"Linear regression requires exactly one feature, got {n_features}"
        )


def fit_estimator(
    estimator: EstimatorBase,
    X: np.ndarray,
    y: np.ndarray | None,
    cancel_token: CancellationToken | None = None,
) -> EstimatorBase:
    """Call fit() with the arguments each estimator takes."""
    if isinstance(estimator, KMeans):
        return estimator.fit(X, cancel_token=cancel_token)
    if y is None:
        raise InvalidInput(f"{estimator.algorithm} needs a target column")
    if isinstance(estimator, LogisticRegression):
        return estimator.fit(X, y, cancel_token=cancel_token)
    return estimator.fit(X, y)


def cluster_utilisation(assignments: np.ndarray, k: int) -> float:
    """Share of the k clusters that received at least one row."""
    if k <= 0:
        return 0.0
    return len(np.unique(assignments)) / k


def evaluate_estimator(
    estimator: EstimatorBase,
    task: TaskKind,
    X: np.ndarray,
    y: np.ndarray | None,
) -> Performance:
    """Evaluate a fitted estimator on (X, y)."""
    predictions = estimator.predict(X) if len(X) else np.zeros(0)

    if task == TaskKind.CLUSTERING:
        k = estimator.k if isinstance(estimator, KMeans) else 0
        return Performance(accuracy=cluster_utilisation(predictions, k))

    y_true = [] if y is None else y.tolist()
    if task == TaskKind.CLASSIFICATION:
        metrics = compute_classification_metrics(y_true, predictions.tolist())
        return Performance(
            accuracy=metrics.accuracy,
            precision=metrics.precision,
            recall=metrics.recall,
            f1_score=metrics.f1_score,
            confusion_matrix=metrics.confusion_matrix,
        )

    metrics = compute_regression_metrics(y_true, predictions.tolist())
    return Performance(rmse=metrics.rmse, mae=metrics.mae, r2_score=metrics.r2)


def feature_importances(estimator: EstimatorBase, features: list[str]) -> list[FeatureImportance]:
    """
    Relative feature importances, summing to 1 where defined.

    Trees report their impurity decrease; linear models the normalised
    absolute weights. K-means reports none.
    """
    if isinstance(estimator, DecisionTree):
        raw = estimator.feature_importances_
    elif isinstance(estimator, LogisticRegression):
        raw = np.abs(estimator.weights_[1:])
    elif isinstance(estimator, LinearRegression):
        raw = np.ones(1)
    else:
        return []

    total = float(np.sum(raw))
    if total > 0:
        raw = raw / total
    return [FeatureImportance(feature=f, importance=float(v)) for f, v in zip(features, raw)]


class ModelTrainer:
    """
    Trainer for tabular models.

    Handles preparation, fitting, evaluation and registration.
    """

    def __init__(
        self,
        config: EngineConfig | None = None,
        registry: ModelRegistry | None = None,
    ) -> None:
        """
        Initialize trainer.

        Args:
            config: Engine configuration (defaults when None).
            registry: Registry trained models are added to.
        """
        self.config = config or EngineConfig()
        self.registry = registry if registry is not None else ModelRegistry()

    def resolve_hyperparameters(self, request: TrainingRequest) -> ParamsModel:
        """Merge the request's hyperparameters over the configured defaults."""
        if request.hyperparameters is None:
            return self.config.default_params(request.algorithm)
        if isinstance(request.hyperparameters, dict):
            defaults = self.config.hyperparameters.get(request.algorithm, {})
            return parse_hyperparameters(
                request.algorithm, {**defaults, **request.hyperparameters}
            )
        if request.hyperparameters.algorithm != request.algorithm.value:
            raise InvalidInput(
                f"Hyperparameters for {request.hyperparameters.algorithm} "
                f"given to {request.algorithm.value}"
            )
        return request.hyperparameters

    def train(
        self,
        dataset: Dataset,
        request: TrainingRequest,
        cancel_token: CancellationToken | None = None,
        *,
        register: bool = True,
    ) -> ModelArtifact:
        """
        Train one model.

        Args:
            dataset: Training data.
            request: What to train.
            cancel_token: Optional token for iterative fits.
            register: Whether to add the artifact to the registry.

        Returns:
            The trained ModelArtifact.

        Raises:
            UnsupportedTask: If the algorithm does not support the task.
            InvalidInput: On bad columns, targets or hyperparameters.
            InsufficientData: If too few valid rows remain.
            DegenerateInput: If the fit is unsolvable for the data.
            TrainingCancelled: If the token was cancelled.
        """
        check_compatibility(request.task, request.algorithm, len(request.features))
        params = self.resolve_hyperparameters(request)
        model_id = self.registry.new_id()

        with log_context(model_id=model_id, algorithm=request.algorithm.value):
            training_start = time.perf_counter()
            log.info(
                "Starting training",
                task=request.task.value,
                n_rows=len(dataset),
                features=list(request.features),
                target=request.target,
            )

            features = list(request.features)
            prepared = prepare_training_data(dataset, features, request.target, request.task)
            estimator = create_estimator(
                params, task=request.task, random_state=self.config.training.random_state
            )

            if request.task == TaskKind.CLUSTERING:
                # Clustering is unsupervised; fit and evaluate on every row
                fit_estimator(estimator, prepared.X, None, cancel_token)
                performance = evaluate_estimator(estimator, request.task, prepared.X, None)
                n_train, n_test = prepared.n_samples, 0
            else:
                train_part, test_part = sequential_split(
                    prepared.n_samples, self.config.training.test_size
                )
                fit_estimator(
                    estimator, prepared.X[train_part], prepared.y[train_part], cancel_token
                )
                performance = evaluate_estimator(
                    estimator, request.task, prepared.X[test_part], prepared.y[test_part]
                )
                n_train = len(prepared.X[train_part])
                n_test = len(prepared.X[test_part])

            performance = replace(
                performance, feature_importance=feature_importances(estimator, features)
            )

            artifact = ModelArtifact(
                id=model_id,
                name=request.name or default_model_name(request.algorithm),
                task=request.task,
                algorithm=request.algorithm,
                features=tuple(features),
                target=request.target,
                hyperparameters=params,
                parameters=estimator.get_params().params,
                performance=performance,
                class_labels=prepared.class_labels,
                dataset_fingerprint=dataset.fingerprint,
            )

            log.info(
                "Training complete",
                n_train=n_train,
                n_test=n_test,
                n_dropped=prepared.n_dropped,
                training_time_s=round(time.perf_counter() - training_start, 4),
                **{k: v for k, v in performance.to_dict().items() if isinstance(v, float)},
            )

        if register:
            self.registry.register(artifact)
        return artifact
