"""
Dataset-level hints shown before any model is trained.

Column importance ranks numeric columns by their spread relative to the
widest one. Model recommendations suggest task/algorithm/feature
combinations from column types, cardinality and dataset size; they are
heuristics with a fixed confidence score, not fitted results.
"""

from dataclasses import asdict, dataclass
from typing import Any

import numpy as np

from tabml.config.settings import Algorithm, TaskKind
from tabml.modeling.dataset import Dataset
from tabml.utils.logging import get_logger
from tabml.utils.numeric import to_number

log = get_logger(__name__)

HIGH_IMPORTANCE = 70
MEDIUM_IMPORTANCE = 40

# Distinct values a column may have to be offered as a classification target
MIN_CLASSES, MAX_CLASSES = 2, 10
MAX_RECOMMENDATIONS = 3


@dataclass(frozen=True)
class ColumnImportance:
    """Variance-based importance of one numeric column (0-100)."""

    feature: str
    importance: int
    level: str

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class ModelRecommendation:
    """A suggested model to train on the current dataset."""

    task: TaskKind
    algorithm: Algorithm
    target: str | None
    features: tuple[str, ...]
    confidence: int
    reason: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "task": self.task.value,
            "algorithm": self.algorithm.value,
            "target": self.target,
            "features": list(self.features),
            "confidence": self.confidence,
            "reason": self.reason,
        }


def importance_level(importance: float) -> str:
    """'high' above 70, 'medium' above 40, else 'low'."""
    if importance > HIGH_IMPORTANCE:
        return "high"
    if importance > MEDIUM_IMPORTANCE:
        return "medium"
    return "low"


def _column_values(dataset: Dataset, column: str) -> np.ndarray:
    # Blank and non-numeric cells count as zero
    return np.asarray(
        [to_number(v) or 0.0 for v in dataset.frame[column].tolist()], dtype=float
    )


def dataset_feature_importance(dataset: Dataset) -> list[ColumnImportance]:
    """
    Rank numeric columns by population variance, scaled to the widest column.

    Args:
        dataset: Dataset to inspect.

    Returns:
        One entry per numeric column, most important first. Empty when the
        dataset has no rows or no numeric columns.
    """
    columns = dataset.numeric_columns
    if dataset.is_empty or not columns:
        return []

    variances = {c: float(np.var(_column_values(dataset, c))) for c in columns}
    widest = max(variances.values())

    ranked = []
    for column, variance in variances.items():
        score = variance / widest * 100 if widest > 0 else 0.0
        ranked.append(
            ColumnImportance(
                feature=column, importance=int(round(score)), level=importance_level(score)
            )
        )
    # sorted() is stable; ties keep column order
    return sorted(ranked, key=lambda r: r.importance, reverse=True)


def _classification_recommendations(
    dataset: Dataset, numeric: list[str]
) -> list[ModelRecommendation]:
    n_rows = len(dataset)
    recommendations = []
    for column in dataset.categorical_columns:
        n_classes = int(dataset.frame[column].nunique(dropna=False))
        if not MIN_CLASSES <= n_classes <= MAX_CLASSES:
            continue
        if n_rows > 1000 and len(numeric) > 5:
            algorithm, confidence = Algorithm.DECISION_TREE, 80
        else:
            algorithm, confidence = Algorithm.LOGISTIC_REGRESSION, 70
        size_note = (
            "Large dataset supports complex models."
            if n_rows > 500
            else "Small dataset favors simpler models."
        )
        recommendations.append(
            ModelRecommendation(
                task=TaskKind.CLASSIFICATION,
                algorithm=algorithm,
                target=column,
                features=tuple(numeric[:5]),
                confidence=confidence,
                reason=(
                    f"{column} has {n_classes} unique values, making it suitable "
                    f"for classification. {size_note}"
                ),
            )
        )
    return recommendations


def _regression_recommendations(
    dataset: Dataset, numeric: list[str]
) -> list[ModelRecommendation]:
    recommendations = []
    for target in numeric[:3]:
        remaining = [c for c in numeric if c != target]
        if len(remaining) == 1:
            algorithm, confidence = Algorithm.LINEAR_REGRESSION, 75
            note = "Single feature regression is well-suited for linear models."
        else:
            # Linear regression here is single-feature only
            algorithm = Algorithm.DECISION_TREE
            confidence = 80 if len(dataset) > 500 else 65
            note = "Multiple features may benefit from tree-based models."
        recommendations.append(
            ModelRecommendation(
                task=TaskKind.REGRESSION,
                algorithm=algorithm,
                target=target,
                features=tuple(remaining[:4]),
                confidence=confidence,
                reason=f"Predict {target} using {len(remaining)} numeric features. {note}",
            )
        )
    return recommendations


def _clustering_recommendation(
    dataset: Dataset, numeric: list[str]
) -> ModelRecommendation:
    n_rows = len(dataset)
    confidence = 75 if len(numeric) >= 3 and n_rows > 100 else 60
    note = (
        "Dataset size supports meaningful cluster discovery."
        if n_rows > 200
        else "Consider collecting more data for robust clustering."
    )
    return ModelRecommendation(
        task=TaskKind.CLUSTERING,
        algorithm=Algorithm.KMEANS,
        target=None,
        features=tuple(numeric[:5]),
        confidence=confidence,
        reason=f"{len(numeric)} numeric features available for clustering analysis. {note}",
    )


def recommend_models(
    dataset: Dataset, limit: int = MAX_RECOMMENDATIONS
) -> list[ModelRecommendation]:
    """
    Suggest models worth training on a dataset.

    Categorical columns with 2-10 distinct values are offered as
    classification targets, each of the first three numeric columns as a
    regression target, and k-means over the numeric columns when there
    are at least two. Candidates are ordered by confidence; ties keep
    that order.

    Args:
        dataset: Dataset to inspect.
        limit: Maximum number of recommendations returned.

    Returns:
        At most ``limit`` recommendations, most confident first.
    """
    numeric = dataset.numeric_columns
    if dataset.is_empty or not numeric:
        return []

    candidates = _classification_recommendations(dataset, numeric)
    if len(numeric) >= 2:
        candidates += _regression_recommendations(dataset, numeric)
        candidates.append(_clustering_recommendation(dataset, numeric))

    ranked = sorted(candidates, key=lambda r: r.confidence, reverse=True)[:limit]
    log.info(
        "Model recommendations",
        n_candidates=len(candidates),
        recommended=[f"{r.task.value}:{r.algorithm.value}" for r in ranked],
    )
    return ranked
