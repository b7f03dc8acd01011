"""
Trained model artifacts and prediction results.

A ModelArtifact is the immutable record a trainer hands to the registry:
identity, task, features, validated hyperparameters, the JSON-ready fitted
parameters and the evaluation on the hold-out rows.
"""

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime
from types import MappingProxyType
from typing import Any

from tabml.config.settings import (
    Algorithm,
    DecisionTreeParams,
    KMeansParams,
    LinearRegressionParams,
    LogisticRegressionParams,
    TaskKind,
    parse_hyperparameters,
)
from tabml.errors import InvalidInput

ParamsModel = LinearRegressionParams | LogisticRegressionParams | KMeansParams | DecisionTreeParams


def freeze(value: Any) -> Any:
    """Read-only copy of a JSON-like tree (mappings become proxies, lists tuples)."""
    if isinstance(value, Mapping):
        return MappingProxyType({k: freeze(v) for k, v in value.items()})
    if isinstance(value, (list, tuple)):
        return tuple(freeze(v) for v in value)
    return value


def thaw(value: Any) -> Any:
    """Plain dict/list copy of a tree built by freeze()."""
    if isinstance(value, Mapping):
        return {k: thaw(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [thaw(v) for v in value]
    return value


@dataclass(frozen=True)
class FeatureImportance:
    """Relative importance of one feature."""

    feature: str
    importance: float

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {"feature": self.feature, "importance": self.importance}


@dataclass(frozen=True)
class Performance:
    """
    Hold-out evaluation of a model.

    Fields are populated per task: classification fills accuracy,
    precision, recall, f1_score and confusion_matrix; regression fills
    rmse, mae and r2_score; clustering fills accuracy with the share of
    clusters that received at least one row.
    """

    accuracy: float | None = None
    precision: float | None = None
    recall: float | None = None
    f1_score: float | None = None
    rmse: float | None = None
    mae: float | None = None
    r2_score: float | None = None
    confusion_matrix: tuple[tuple[int, ...], ...] | None = None
    feature_importance: tuple[FeatureImportance, ...] = ()

    def __post_init__(self) -> None:
        if self.confusion_matrix is not None:
            object.__setattr__(
                self, "confusion_matrix", tuple(tuple(row) for row in self.confusion_matrix)
            )
        object.__setattr__(self, "feature_importance", tuple(self.feature_importance))

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary, omitting unset metrics."""
        data: dict[str, Any] = {}
        for name in ("accuracy", "precision", "recall", "f1_score", "rmse", "mae", "r2_score"):
            value = getattr(self, name)
            if value is not None:
                data[name] = value
        if self.confusion_matrix is not None:
            data["confusion_matrix"] = thaw(self.confusion_matrix)
        if self.feature_importance:
            data["feature_importance"] = [fi.to_dict() for fi in self.feature_importance]
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Performance":
        """Restore from to_dict() output."""
        return cls(
            accuracy=data.get("accuracy"),
            precision=data.get("precision"),
            recall=data.get("recall"),
            f1_score=data.get("f1_score"),
            rmse=data.get("rmse"),
            mae=data.get("mae"),
            r2_score=data.get("r2_score"),
            confusion_matrix=data.get("confusion_matrix"),
            feature_importance=[
                FeatureImportance(feature=fi["feature"], importance=float(fi["importance"]))
                for fi in data.get("feature_importance", [])
            ],
        )


def _parameter_width(algorithm: Algorithm, parameters: Mapping[str, Any]) -> int | None:
    """Number of features the fitted parameters expect (None if unknown)."""
    if algorithm == Algorithm.LINEAR_REGRESSION:
        return 1
    if algorithm == Algorithm.LOGISTIC_REGRESSION and "weights" in parameters:
        return len(parameters["weights"]) - 1
    if algorithm == Algorithm.KMEANS and parameters.get("centroids"):
        return len(parameters["centroids"][0])
    if algorithm == Algorithm.DECISION_TREE and "n_features" in parameters:
        return int(parameters["n_features"])
    return None


@dataclass(frozen=True)
class ModelArtifact:
    """
    A trained model.

    Attributes:
        id: Unique identifier within the registry.
        name: Display name.
        task: Learning task.
        algorithm: Training algorithm.
        features: Ordered feature columns.
        target: Target column (None for clustering without a target).
        hyperparameters: Validated hyperparameters.
        parameters: Fitted parameters as exported by the estimator.
        performance: Hold-out evaluation.
        trained_at: When training finished.
        class_labels: Original target values of encoded classes.
        dataset_fingerprint: Hash of the dataset the model was trained on.
    """

    id: str
    name: str
    task: TaskKind
    algorithm: Algorithm
    features: tuple[str, ...]
    target: str | None
    hyperparameters: ParamsModel
    parameters: Mapping[str, Any]
    performance: Performance | None = None
    trained_at: datetime = field(default_factory=datetime.now)
    class_labels: tuple[Any, ...] | None = None
    dataset_fingerprint: str | None = None

    def __post_init__(self) -> None:
        # Accept raw strings and lists from callers
        object.__setattr__(self, "task", TaskKind(self.task))
        object.__setattr__(self, "algorithm", Algorithm(self.algorithm))
        object.__setattr__(self, "features", tuple(self.features))
        if self.class_labels is not None:
            object.__setattr__(self, "class_labels", tuple(self.class_labels))
        # Detached read-only copy; the caller's dict stays theirs
        object.__setattr__(self, "parameters", freeze(self.parameters))
        self._check_feature_width()

    def _check_feature_width(self) -> None:
        if not self.features:
            raise InvalidInput("A model needs at least one feature")
        if self.algorithm == Algorithm.DECISION_TREE:
            for node in self.parameters.get("nodes", []):
                if node.get("kind") == "split" and node["feature"] >= len(self.features):
                    raise InvalidInput(
                        f"Tree splits on feature {node['feature']} but the model has "
                        f"{len(self.features)} features"
                    )
        width = _parameter_width(self.algorithm, self.parameters)
        if width is not None and width != len(self.features):
            raise InvalidInput(
                f"{self.algorithm.value} parameters expect {width} features, "
                f"got {len(self.features)}"
            )

    @property
    def is_available(self) -> bool:
        """True when the model has been evaluated."""
        return self.performance is not None

    def decode_label(self, value: Any) -> Any:
        """Map an encoded class index back to its original value."""
        if self.class_labels is None:
            return value
        index = int(value)
        if 0 <= index < len(self.class_labels):
            return self.class_labels[index]
        return value

    def to_dict(self) -> dict[str, Any]:
        """JSON-serialisable mapping."""
        return {
            "id": self.id,
            "name": self.name,
            "task": self.task.value,
            "algorithm": self.algorithm.value,
            "features": list(self.features),
            "target": self.target,
            "hyperparameters": self.hyperparameters.model_dump(),
            "parameters": thaw(self.parameters),
            "performance": self.performance.to_dict() if self.performance else None,
            "trained_at": self.trained_at.isoformat(),
            "class_labels": list(self.class_labels) if self.class_labels is not None else None,
            "dataset_fingerprint": self.dataset_fingerprint,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ModelArtifact":
        """
        Restore an artifact from to_dict() output.

        Raises:
            InvalidInput: If a required key is missing or a value is invalid.
        """
        try:
            algorithm = Algorithm(data["algorithm"])
            hyperparameters = dict(data.get("hyperparameters") or {})
            hyperparameters.pop("algorithm", None)
            performance = data.get("performance")
            return cls(
                id=str(data["id"]),
                name=str(data["name"]),
                task=TaskKind(data["task"]),
                algorithm=algorithm,
                features=tuple(data["features"]),
                target=data.get("target"),
                hyperparameters=parse_hyperparameters(algorithm, hyperparameters),
                parameters=dict(data["parameters"]),
                performance=Performance.from_dict(performance) if performance else None,
                trained_at=datetime.fromisoformat(data["trained_at"]),
                class_labels=data.get("class_labels"),
                dataset_fingerprint=data.get("dataset_fingerprint"),
            )
        except KeyError as e:
            raise InvalidInput(f"Model record is missing key: {e}") from e
        except InvalidInput:
            raise
        except ValueError as e:
            raise InvalidInput(f"Invalid model record: {e}") from e


@dataclass(frozen=True)
class PredictionResult:
    """
    Answer to a prediction request.

    Attributes:
        inputs: Feature values as supplied.
        prediction: Predicted number or label.
        confidence: Confidence in [0, 1], if the strategy provides one.
    """

    inputs: dict[str, Any]
    prediction: Any
    confidence: float | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "inputs": self.inputs,
            "prediction": self.prediction,
            "confidence": self.confidence,
        }
