"""
Side-by-side comparison of algorithms on one dataset.

Each algorithm is cross-validated on contiguous folds, then trained once
through the regular trainer. Rankings order the trained models by their
hold-out score (accuracy for classification and clustering, R² for
regression) and annotate them with strengths and weaknesses.
"""

import math
from dataclasses import dataclass, field
from typing import Any, Sequence

import numpy as np
import pandas as pd

from tabml.config.settings import Algorithm, TaskKind
from tabml.errors import InvalidInput, TabMLError
from tabml.estimators import create_estimator
from tabml.evaluation.metrics import accuracy, r2_score
from tabml.modeling.artifact import ModelArtifact
from tabml.modeling.dataset import Dataset, prepare_training_data
from tabml.modeling.training import (
    ModelTrainer,
    TrainingRequest,
    check_compatibility,
    cluster_utilisation,
    fit_estimator,
)
from tabml.schemas.output import ComparisonRankingSchema
from tabml.utils.logging import get_logger

log = get_logger(__name__)

# Fixed traits reported for every model of an algorithm
ALGORITHM_TRAITS: dict[Algorithm, tuple[list[str], list[str]]] = {
    Algorithm.LINEAR_REGRESSION: (["Simple and interpretable"], []),
    Algorithm.LOGISTIC_REGRESSION: (["Probabilistic output", "Good for binary classification"], []),
    Algorithm.DECISION_TREE: (
        ["Highly interpretable", "Handles non-linear relationships"],
        ["Prone to overfitting"],
    ),
    Algorithm.KMEANS: (
        ["Fast clustering", "Works well with spherical clusters"],
        ["Requires predefined number of clusters"],
    ),
}


@dataclass(frozen=True)
class CrossValidationResult:
    """Per-fold scores of one algorithm."""

    scores: list[float]

    @property
    def mean(self) -> float:
        return float(np.mean(self.scores)) if self.scores else float("nan")

    @property
    def std(self) -> float:
        return float(np.std(self.scores)) if self.scores else float("nan")

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {"mean": self.mean, "std": self.std, "scores": self.scores}


@dataclass(frozen=True)
class ModelRanking:
    """Position of one trained model in a comparison."""

    rank: int
    model_id: str
    algorithm: Algorithm
    score: float
    strengths: list[str] = field(default_factory=list)
    weaknesses: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class ComparisonSummary:
    """Aggregate figures over the ranked models."""

    total_models: int
    best_performance: float
    average_performance: float
    performance_variance: float

    def to_dict(self) -> dict[str, float]:
        """Convert to dictionary."""
        return {
            "total_models": self.total_models,
            "best_performance": self.best_performance,
            "average_performance": self.average_performance,
            "performance_variance": self.performance_variance,
        }


@dataclass(frozen=True)
class ModelComparison:
    """
    Result of compare_models().

    Attributes:
        task: Task all models were trained for.
        models: Trained artifacts, in the order the algorithms were given.
        rankings: Models ordered by descending score.
        cross_validation: CV result per algorithm that produced scores.
        summary: Aggregate figures.
    """

    task: TaskKind
    models: list[ModelArtifact]
    rankings: list[ModelRanking]
    cross_validation: dict[Algorithm, CrossValidationResult]
    summary: ComparisonSummary

    @property
    def best_model_id(self) -> str | None:
        """Id of the top-ranked model."""
        return self.rankings[0].model_id if self.rankings else None

    def rankings_frame(self) -> pd.DataFrame:
        """Rankings as a validated table."""
        rows = []
        for ranking in self.rankings:
            cv = self.cross_validation.get(ranking.algorithm)
            rows.append(
                {
                    "rank": ranking.rank,
                    "model_id": ranking.model_id,
                    "algorithm": ranking.algorithm.value,
                    "score": ranking.score,
                    "cv_mean": cv.mean if cv else float("nan"),
                    "cv_std": cv.std if cv else float("nan"),
                    "strengths": "; ".join(ranking.strengths),
                    "weaknesses": "; ".join(ranking.weaknesses),
                }
            )
        columns = [
            "rank", "model_id", "algorithm", "score",
            "cv_mean", "cv_std", "strengths", "weaknesses",
        ]
        return ComparisonRankingSchema.validate(pd.DataFrame(rows, columns=columns))


def contiguous_folds(n_samples: int, n_folds: int) -> list[tuple[np.ndarray, np.ndarray]]:
    """
    (train, test) index pairs over contiguous blocks.

    Every fold holds floor(n / n_folds) rows; the last one also takes the
    remainder. Folds with an empty train or test part are skipped.
    """
    fold_size = n_samples // n_folds
    indices = np.arange(n_samples)
    folds = []
    for i in range(n_folds):
        start = i * fold_size
        stop = n_samples if i == n_folds - 1 else (i + 1) * fold_size
        test = indices[start:stop]
        train = np.concatenate([indices[:start], indices[stop:]])
        if len(test) and len(train):
            folds.append((train, test))
    return folds


def cross_validate(
    trainer: ModelTrainer,
    dataset: Dataset,
    request: TrainingRequest,
    n_folds: int,
) -> CrossValidationResult:
    """
    Score an algorithm on contiguous folds.

    A fold whose fit fails scores 0.
    """
    prepared = prepare_training_data(dataset, list(request.features), request.target, request.task)
    params = trainer.resolve_hyperparameters(request)
    scores: list[float] = []

    for i, (train, test) in enumerate(contiguous_folds(prepared.n_samples, n_folds)):
        estimator = create_estimator(
            params, task=request.task, random_state=trainer.config.training.random_state
        )
        try:
            if request.task == TaskKind.CLUSTERING:
                fit_estimator(estimator, prepared.X[train], None)
                scores.append(
                    cluster_utilisation(estimator.predict(prepared.X[test]), params.k)
                )
                continue

            fit_estimator(estimator, prepared.X[train], prepared.y[train])
            predictions = estimator.predict(prepared.X[test]).tolist()
            y_test = prepared.y[test].tolist()
            if request.task == TaskKind.CLASSIFICATION:
                scores.append(accuracy(y_test, predictions))
            else:
                scores.append(r2_score(y_test, predictions))
        except TabMLError as e:
            log.warning(
                "Cross-validation fold failed",
                algorithm=request.algorithm.value,
                fold=i + 1,
                error=str(e),
            )
            scores.append(0.0)

    return CrossValidationResult(scores=scores)


def _score(task: TaskKind, model: ModelArtifact) -> float:
    perf = model.performance
    if perf is None:
        return 0.0
    value = perf.r2_score if task == TaskKind.REGRESSION else perf.accuracy
    return 0.0 if value is None or not math.isfinite(value) else float(value)


def _traits(task: TaskKind, model: ModelArtifact, score: float) -> tuple[list[str], list[str]]:
    """Strengths and weaknesses from the metrics and the algorithm."""
    perf = model.performance
    strengths: list[str] = []
    weaknesses: list[str] = []

    if task == TaskKind.CLASSIFICATION:
        if score > 0.8:
            strengths.append("High accuracy")
        if score < 0.6:
            weaknesses.append("Low accuracy")
        if perf and (perf.f1_score or 0) > 0.8:
            strengths.append("Good F1 score")
        if perf and (perf.precision or 0) > 0.8:
            strengths.append("High precision")
        if perf and (perf.recall or 0) > 0.8:
            strengths.append("High recall")
    elif task == TaskKind.REGRESSION:
        if score > 0.8:
            strengths.append("High R² score")
        if score < 0.5:
            weaknesses.append("Low R² score")
        if perf and perf.rmse is not None and perf.rmse < 1:
            strengths.append("Low RMSE")
        if perf and perf.mae is not None and perf.mae < 0.5:
            strengths.append("Low MAE")
    elif score > 0.8:
        strengths.append("Good cluster utilization")

    fixed_strengths, fixed_weaknesses = ALGORITHM_TRAITS[model.algorithm]
    return strengths + fixed_strengths, weaknesses + fixed_weaknesses


def compare_models(
    trainer: ModelTrainer,
    dataset: Dataset,
    task: TaskKind | str,
    algorithms: Sequence[Algorithm | str],
    features: Sequence[str],
    target: str | None = None,
    *,
    cv_folds: int | None = None,
) -> ModelComparison:
    """
    Cross-validate, train and rank several algorithms.

    Algorithms that do not support the task, or linear regression with more
    than one feature, are skipped. Algorithms whose final training fails
    are logged and left out of the rankings.

    Args:
        trainer: Trainer used for the final fits (models are registered).
        dataset: Training data.
        task: Task every model is trained for.
        algorithms: At least two algorithms.
        features: Ordered feature columns.
        target: Target column.
        cv_folds: Number of folds (default from the training config).

    Returns:
        ModelComparison.

    Raises:
        InvalidInput: If fewer than two algorithms are given.
    """
    task = TaskKind(task)
    algorithms = list(dict.fromkeys(Algorithm(a) for a in algorithms))
    if len(algorithms) < 2:
        raise InvalidInput("Please select at least two algorithms to compare")
    n_folds = cv_folds or trainer.config.training.cv_folds

    log.info(
        "Starting model comparison",
        task=task.value,
        algorithms=[a.value for a in algorithms],
        n_folds=n_folds,
    )

    models: list[ModelArtifact] = []
    cross_validation: dict[Algorithm, CrossValidationResult] = {}

    for algorithm in algorithms:
        try:
            check_compatibility(task, algorithm, len(features))
        except TabMLError as e:
            log.info("Skipping algorithm", algorithm=algorithm.value, reason=str(e))
            continue

        request = TrainingRequest(
            task=task, algorithm=algorithm, features=tuple(features), target=target
        )
        try:
            cv = cross_validate(trainer, dataset, request, n_folds)
            cross_validation[algorithm] = cv
            log.info(
                "Cross-validation complete",
                algorithm=algorithm.value,
                mean=cv.mean,
                std=cv.std,
            )
            models.append(trainer.train(dataset, request))
        except TabMLError as e:
            log.warning("Failed to train algorithm", algorithm=algorithm.value, error=str(e))

    scored = [(model, _score(task, model)) for model in models]
    # sorted() is stable, so equal scores keep the algorithm order
    scored.sort(key=lambda item: item[1], reverse=True)

    rankings = []
    for rank, (model, score) in enumerate(scored, start=1):
        strengths, weaknesses = _traits(task, model, score)
        rankings.append(
            ModelRanking(
                rank=rank,
                model_id=model.id,
                algorithm=model.algorithm,
                score=score,
                strengths=strengths,
                weaknesses=weaknesses,
            )
        )

    scores = np.asarray([r.score for r in rankings], dtype=float)
    summary = ComparisonSummary(
        total_models=len(models),
        best_performance=float(scores.max()) if len(scores) else 0.0,
        average_performance=float(scores.mean()) if len(scores) else 0.0,
        performance_variance=float(scores.var()) if len(scores) else 0.0,
    )

    log.info(
        "Model comparison complete",
        n_models=len(models),
        best_model=rankings[0].model_id if rankings else None,
    )
    return ModelComparison(
        task=task,
        models=models,
        rankings=rankings,
        cross_validation=cross_validation,
        summary=summary,
    )
