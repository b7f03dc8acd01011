"""
Typed configuration models using Pydantic.

Hyperparameters are a tagged union discriminated on the algorithm name,
so every parameter set is validated when it is constructed rather than
when a trainer first reads it.
"""

from enum import Enum
from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError, field_validator

from tabml.errors import InvalidInput


class TaskKind(str, Enum):
    """Learning task a model solves."""

    CLASSIFICATION = "classification"
    REGRESSION = "regression"
    CLUSTERING = "clustering"


class Algorithm(str, Enum):
    """Supported training algorithms."""

    LINEAR_REGRESSION = "linear_regression"
    LOGISTIC_REGRESSION = "logistic_regression"
    KMEANS = "kmeans"
    DECISION_TREE = "decision_tree"


# Tasks each algorithm can be trained for
ALGORITHM_TASKS: dict[Algorithm, tuple[TaskKind, ...]] = {
    Algorithm.LINEAR_REGRESSION: (TaskKind.REGRESSION,),
    Algorithm.LOGISTIC_REGRESSION: (TaskKind.CLASSIFICATION,),
    Algorithm.KMEANS: (TaskKind.CLUSTERING,),
    Algorithm.DECISION_TREE: (TaskKind.CLASSIFICATION, TaskKind.REGRESSION),
}


class PredictionStrategy(str, Enum):
    """How the prediction engine answers a request."""

    NEAREST_NEIGHBORS = "nearest_neighbors"  # fresh KNN pass over the dataset
    MODEL = "model"  # fitted parameters stored on the artifact


class LinearRegressionParams(BaseModel):
    """Simple linear regression has no tunable hyperparameters."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    algorithm: Literal["linear_regression"] = "linear_regression"


class LogisticRegressionParams(BaseModel):
    """Gradient descent settings for binary logistic regression."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    algorithm: Literal["logistic_regression"] = "logistic_regression"
    learning_rate: float = Field(default=0.01, gt=0.0, le=10.0)
    iterations: int = Field(default=1000, ge=1, le=1_000_000)


class KMeansParams(BaseModel):
    """Cluster count and iteration budget for k-means."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    algorithm: Literal["kmeans"] = "kmeans"
    k: int = Field(default=3, ge=1)
    max_iterations: int = Field(default=100, ge=1, le=100_000)


class DecisionTreeParams(BaseModel):
    """Depth limit for the decision tree."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    algorithm: Literal["decision_tree"] = "decision_tree"
    max_depth: int = Field(default=5, ge=1, le=64)


HyperParameters = Annotated[
    LinearRegressionParams | LogisticRegressionParams | KMeansParams | DecisionTreeParams,
    Field(discriminator="algorithm"),
]

_HYPERPARAMETERS_ADAPTER: TypeAdapter[Any] = TypeAdapter(HyperParameters)


def parse_hyperparameters(
    algorithm: Algorithm | str,
    values: dict[str, Any] | None = None,
) -> LinearRegressionParams | LogisticRegressionParams | KMeansParams | DecisionTreeParams:
    """
    Build the validated parameter set for an algorithm.

    Args:
        algorithm: Algorithm the parameters belong to.
        values: Raw parameter mapping (e.g. from YAML or the CLI).

    Returns:
        Parameter model matching the algorithm.

    Raises:
        InvalidInput: If the algorithm is unknown or a value is invalid.
    """
    try:
        algorithm = Algorithm(algorithm)
    except ValueError:
        valid = [a.value for a in Algorithm]
        raise InvalidInput(f"Unknown algorithm: {algorithm!r}. Valid: {valid}") from None

    payload = {**(values or {}), "algorithm": algorithm.value}
    try:
        return _HYPERPARAMETERS_ADAPTER.validate_python(payload)
    except ValidationError as e:
        raise InvalidInput(f"Invalid hyperparameters for {algorithm.value}: {e}") from e


class TrainingConfig(BaseModel):
    """Model training configuration."""

    model_config = ConfigDict(frozen=True)

    test_size: float = Field(default=0.2, ge=0.05, le=0.5)
    cv_folds: int = Field(default=5, ge=2, le=20)
    random_state: int | None = Field(default=1337)


class PredictionConfig(BaseModel):
    """Nearest-neighbour inference configuration."""

    model_config = ConfigDict(frozen=True)

    neighbors: int = Field(default=5, ge=1)
    distance_offset: float = Field(
        default=0.001, gt=0.0, description="Added to distances before inverting"
    )
    cluster_confidence: float = Field(default=0.8, ge=0.0, le=1.0)
    strategy: PredictionStrategy = Field(default=PredictionStrategy.NEAREST_NEIGHBORS)


class LoggingConfig(BaseModel):
    """Logging configuration."""

    model_config = ConfigDict(frozen=True)

    level: str = Field(default="INFO")
    json_output: bool = Field(default=False)

    @field_validator("level")
    @classmethod
    def validate_level(cls, v: str) -> str:
        """Ensure the level is a standard logging level name."""
        level = v.upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            msg = f"Unknown log level: {v!r}"
            raise ValueError(msg)
        return level


class EngineConfig(BaseModel):
    """Complete engine configuration."""

    model_config = ConfigDict(frozen=True)

    training: TrainingConfig = Field(default_factory=TrainingConfig)
    prediction: PredictionConfig = Field(default_factory=PredictionConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    hyperparameters: dict[Algorithm, dict[str, Any]] = Field(
        default_factory=dict, description="Default hyperparameter overrides per algorithm"
    )

    def default_params(
        self, algorithm: Algorithm | str
    ) -> LinearRegressionParams | LogisticRegressionParams | KMeansParams | DecisionTreeParams:
        """Configured default hyperparameters for an algorithm."""
        algorithm = Algorithm(algorithm)
        return parse_hyperparameters(algorithm, self.hyperparameters.get(algorithm, {}))
