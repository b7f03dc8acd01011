"""
Inference for registered models.

The default strategy answers every request with a fresh nearest-neighbour
pass over the live dataset, restricted to the model's feature columns.
The alternate strategy rebuilds the fitted estimator from the parameters
stored on the artifact and predicts with it.

Clustering requests under the default strategy echo the target of the
closest row (0 when the model has no target); the cluster index itself
comes from the stored centroids under the model strategy.
"""

from collections import Counter
from typing import Any, Iterable, Mapping

import numpy as np

from tabml.config.settings import PredictionConfig, PredictionStrategy, TaskKind
from tabml.errors import InsufficientData, InvalidInput, MissingInputs
from tabml.estimators import LogisticRegression, estimator_from_params
from tabml.modeling.artifact import ModelArtifact, PredictionResult
from tabml.modeling.dataset import Dataset, is_missing
from tabml.modeling.registry import ModelRegistry
from tabml.utils.logging import get_logger
from tabml.utils.numeric import distances_to, to_number

log = get_logger(__name__)

UNKNOWN_LABEL = "unknown"


def parse_inputs(model: ModelArtifact, inputs: Mapping[str, Any]) -> np.ndarray:
    """
    Feature vector for a request, in the model's feature order.

    Raises:
        MissingInputs: If any declared feature has no value.
        InvalidInput: If a value does not parse as a number.
    """
    missing = [f for f in model.features if is_missing(inputs.get(f))]
    if missing:
        raise MissingInputs(missing)

    values = []
    for feature in model.features:
        number = to_number(inputs[feature])
        if number is None:
            raise InvalidInput(f"Invalid numeric value for {feature}: {inputs[feature]!r}")
        values.append(number)
    return np.asarray(values, dtype=float)


def _majority_vote(labels: list[Any]) -> tuple[Any, int]:
    """Most frequent label and its count; ties go to the first seen."""
    label, votes = Counter(labels).most_common(1)[0]
    return label, votes


class PredictionEngine:
    """
    Answers prediction requests for registered models.

    Attributes:
        registry: Where models are looked up.
        dataset: Live dataset scanned by the nearest-neighbour strategy.
        config: Prediction settings.
    """

    def __init__(
        self,
        registry: ModelRegistry,
        dataset: Dataset | None = None,
        config: PredictionConfig | None = None,
    ) -> None:
        self.registry = registry
        self.dataset = dataset if dataset is not None else Dataset.empty()
        self.config = config or PredictionConfig()

    def predict(
        self,
        model_id: str,
        inputs: Mapping[str, Any],
        strategy: PredictionStrategy | str | None = None,
    ) -> PredictionResult:
        """
        Predict for one input mapping.

        Args:
            model_id: Registered model id.
            inputs: Feature name to raw value; extra keys are ignored.
            strategy: Overrides the configured strategy.

        Returns:
            PredictionResult with the prediction and its confidence.

        Raises:
            ModelNotFound: If the id is not registered.
            MissingInputs: If declared features lack a value.
            InvalidInput: If a value is not numeric or the strategy is unknown.
            InsufficientData: If the dataset is empty (nearest neighbours).
        """
        model = self.registry.get(model_id)
        x = parse_inputs(model, inputs)
        try:
            strategy = PredictionStrategy(strategy or self.config.strategy)
        except ValueError:
            raise InvalidInput(f"Unknown prediction strategy: {strategy!r}") from None

        log.debug("Prediction request", model_id=model_id, strategy=strategy.value)

        if strategy == PredictionStrategy.MODEL:
            prediction, confidence = self._predict_with_model(model, x)
        else:
            prediction, confidence = self._predict_with_neighbors(model, x)

        return PredictionResult(
            inputs={f: inputs[f] for f in model.features},
            prediction=prediction,
            confidence=confidence,
        )

    def predict_many(
        self,
        model_id: str,
        rows: Iterable[Mapping[str, Any]],
        strategy: PredictionStrategy | str | None = None,
    ) -> list[PredictionResult]:
        """Predict for every input mapping; the first failure propagates."""
        results = [self.predict(model_id, row, strategy) for row in rows]
        log.info("Batch prediction complete", model_id=model_id, n_predictions=len(results))
        return results

    def _predict_with_neighbors(
        self, model: ModelArtifact, x: np.ndarray
    ) -> tuple[Any, float | None]:
        dataset = self.dataset
        if dataset.is_empty:
            raise InsufficientData("No training data available")

        if model.dataset_fingerprint and model.dataset_fingerprint != dataset.fingerprint:
            log.warning(
                "Dataset changed since training",
                model_id=model.id,
                trained_on=model.dataset_fingerprint,
                current=dataset.fingerprint,
            )

        points = dataset.numeric_matrix(list(model.features))
        distances = distances_to(points, x)
        k = min(self.config.neighbors, len(distances))
        # Stable sort keeps row order among equal distances
        nearest = np.argsort(distances, kind="stable")[:k]

        targets = self._target_values(model.target, nearest)

        if model.task == TaskKind.CLASSIFICATION:
            labels = [UNKNOWN_LABEL if is_missing(v) else v for v in targets]
            label, votes = _majority_vote(labels)
            return label, votes / len(labels)

        if model.task == TaskKind.REGRESSION:
            values = np.asarray([to_number(v) or 0.0 for v in targets], dtype=float)
            weights = 1.0 / (distances[nearest] + self.config.distance_offset)
            prediction = float(np.sum(weights * values) / np.sum(weights))
            variance = float(np.mean((values - prediction) ** 2))
            confidence = max(0.0, 1.0 - variance / (abs(prediction) + 1.0))
            return round(prediction, 4), confidence

        first = targets[0]
        return (0 if is_missing(first) else first), self.config.cluster_confidence

    def _target_values(self, target: str | None, rows: np.ndarray) -> list[Any]:
        frame = self.dataset.frame
        if not target or target not in frame.columns:
            return [None] * len(rows)
        return frame[target].iloc[rows].tolist()

    def _predict_with_model(
        self, model: ModelArtifact, x: np.ndarray
    ) -> tuple[Any, float | None]:
        estimator = estimator_from_params(model.algorithm, model.parameters)
        raw = estimator.predict(x.reshape(1, -1))[0].item()

        if model.task == TaskKind.CLUSTERING:
            return int(raw), None

        if model.task == TaskKind.REGRESSION:
            return float(raw), None

        confidence: float | None = None
        if isinstance(estimator, LogisticRegression):
            p_positive = float(estimator.predict_proba(x.reshape(1, -1))[0])
            confidence = p_positive if p_positive > 0.5 else 1.0 - p_positive
        return model.decode_label(raw), confidence
