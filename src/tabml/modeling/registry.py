"""
In-memory model registry.

Mutations are serialised by a lock; reads work on a snapshot of the
current mapping, so a listing never observes a half-applied change.
"""

import threading
import uuid

import pandas as pd

from tabml.errors import InvalidInput, ModelNotFound
from tabml.modeling.artifact import ModelArtifact
from tabml.schemas.output import ModelSummarySchema
from tabml.utils.logging import get_logger

log = get_logger(__name__)


class ModelRegistry:
    """Trained models keyed by id, in insertion order."""

    def __init__(self) -> None:
        self._models: dict[str, ModelArtifact] = {}
        self._lock = threading.Lock()

    def _snapshot(self) -> dict[str, ModelArtifact]:
        with self._lock:
            return dict(self._models)

    def __len__(self) -> int:
        return len(self._snapshot())

    def __contains__(self, model_id: object) -> bool:
        return model_id in self._snapshot()

    def new_id(self) -> str:
        """Fresh identifier not used by any registered model."""
        while True:
            candidate = uuid.uuid4().hex[:12]
            if candidate not in self:
                return candidate

    def register(self, artifact: ModelArtifact) -> ModelArtifact:
        """
        Add a trained model.

        Raises:
            InvalidInput: If a model with the same id is already registered.
        """
        with self._lock:
            if artifact.id in self._models:
                raise InvalidInput(f"Model id already registered: {artifact.id}")
            self._models[artifact.id] = artifact
            total = len(self._models)
        log.info(
            "Registered model",
            model_id=artifact.id,
            algorithm=artifact.algorithm.value,
            n_models=total,
        )
        return artifact

    def get(self, model_id: str) -> ModelArtifact:
        """
        Look up a model.

        Raises:
            ModelNotFound: If no model has this id.
        """
        try:
            return self._snapshot()[model_id]
        except KeyError:
            raise ModelNotFound(f"Model not found: {model_id}") from None

    def remove(self, model_id: str) -> ModelArtifact:
        """
        Delete a model and return it.

        Raises:
            ModelNotFound: If no model has this id.
        """
        with self._lock:
            if model_id not in self._models:
                raise ModelNotFound(f"Model not found: {model_id}")
            artifact = self._models.pop(model_id)
        log.info("Removed model", model_id=model_id)
        return artifact

    def clear(self) -> None:
        """Delete every model."""
        with self._lock:
            n_removed = len(self._models)
            self._models.clear()
        log.info("Cleared model registry", n_removed=n_removed)

    def list_models(self) -> tuple[ModelArtifact, ...]:
        """All models in insertion order."""
        return tuple(self._snapshot().values())

    def list_available(self) -> tuple[ModelArtifact, ...]:
        """Models that carry an evaluation."""
        return tuple(m for m in self._snapshot().values() if m.is_available)

    def summary(self) -> pd.DataFrame:
        """One validated row per model with its headline metrics."""
        rows = []
        for model in self.list_models():
            perf = model.performance
            rows.append(
                {
                    "id": model.id,
                    "name": model.name,
                    "task": model.task.value,
                    "algorithm": model.algorithm.value,
                    "n_features": len(model.features),
                    "target": model.target,
                    "accuracy": perf.accuracy if perf else None,
                    "f1_score": perf.f1_score if perf else None,
                    "rmse": perf.rmse if perf else None,
                    "r2_score": perf.r2_score if perf else None,
                    "trained_at": model.trained_at,
                }
            )

        columns = [
            "id", "name", "task", "algorithm", "n_features", "target",
            "accuracy", "f1_score", "rmse", "r2_score", "trained_at",
        ]
        frame = pd.DataFrame(rows, columns=columns)
        for col in ("accuracy", "f1_score", "rmse", "r2_score"):
            frame[col] = frame[col].astype(float)
        return ModelSummarySchema.validate(frame)
