"""
Evaluation metrics for classification and regression models.

Every metric is a total function: mismatched or empty inputs yield 0.0
(or an empty matrix) instead of raising, so partially filled dashboards
keep rendering.
"""

from dataclasses import dataclass, field
from typing import Any, Sequence

import numpy as np

from tabml.utils.logging import get_logger

log = get_logger(__name__)


def _paired(y_true: Sequence[Any], y_pred: Sequence[Any]) -> bool:
    """True when both inputs are non-empty and of equal length."""
    return len(y_true) == len(y_pred) and len(y_true) > 0


def _label_sort_key(label: Any) -> tuple[int, Any]:
    # Numbers sort numerically before everything else, which sorts as text
    if isinstance(label, (int, float, np.integer, np.floating)) and not isinstance(label, bool):
        return (0, float(label))
    return (1, str(label))


def _as_label(value: Any) -> Any:
    """Unwrap numpy scalars so labels compare and hash like Python values."""
    return value.item() if isinstance(value, np.generic) else value


def accuracy(y_true: Sequence[Any], y_pred: Sequence[Any]) -> float:
    """Fraction of exact matches."""
    if not _paired(y_true, y_pred):
        return 0.0
    correct = sum(1 for t, p in zip(y_true, y_pred) if _as_label(t) == _as_label(p))
    return correct / len(y_true)


def rmse(y_true: Sequence[float], y_pred: Sequence[float]) -> float:
    """Root mean squared error."""
    if not _paired(y_true, y_pred):
        return 0.0
    diff = np.asarray(y_true, dtype=float) - np.asarray(y_pred, dtype=float)
    return float(np.sqrt(np.mean(diff * diff)))


def mae(y_true: Sequence[float], y_pred: Sequence[float]) -> float:
    """Mean absolute error."""
    if not _paired(y_true, y_pred):
        return 0.0
    diff = np.asarray(y_true, dtype=float) - np.asarray(y_pred, dtype=float)
    return float(np.mean(np.abs(diff)))


def r2_score(y_true: Sequence[float], y_pred: Sequence[float]) -> float:
    """
    Coefficient of determination, 1 − SS_res / SS_tot.

    Returns NaN or ±inf when y_true is constant (SS_tot = 0); callers
    must guard with math.isfinite before displaying it.
    """
    if not _paired(y_true, y_pred):
        return 0.0
    y_true = np.asarray(y_true, dtype=float)
    y_pred = np.asarray(y_pred, dtype=float)
    ss_res = float(np.sum((y_true - y_pred) ** 2))
    ss_tot = float(np.sum((y_true - y_true.mean()) ** 2))
    with np.errstate(divide="ignore", invalid="ignore"):
        return float(1.0 - np.float64(ss_res) / np.float64(ss_tot))


def confusion_labels(y_true: Sequence[Any], y_pred: Sequence[Any]) -> list[Any]:
    """Sorted union of the distinct true and predicted labels."""
    labels = {_as_label(v) for v in y_true} | {_as_label(v) for v in y_pred}
    return sorted(labels, key=_label_sort_key)


def confusion_matrix(y_true: Sequence[Any], y_pred: Sequence[Any]) -> list[list[int]]:
    """
    Confusion matrix indexed [actual][predicted].

    Rows and columns follow confusion_labels(). Returns [] when the
    inputs are mismatched.
    """
    if len(y_true) != len(y_pred):
        return []
    labels = confusion_labels(y_true, y_pred)
    index = {label: i for i, label in enumerate(labels)}
    matrix = [[0] * len(labels) for _ in labels]
    for actual, predicted in zip(y_true, y_pred):
        matrix[index[_as_label(actual)]][index[_as_label(predicted)]] += 1
    return matrix


@dataclass(frozen=True)
class PrecisionRecallF1:
    """Precision, recall and F1 (binary or macro-averaged)."""

    precision: float
    recall: float
    f1_score: float

    def to_dict(self) -> dict[str, float]:
        """Convert to dictionary."""
        return {
            "precision": self.precision,
            "recall": self.recall,
            "f1_score": self.f1_score,
        }


def _f1(precision: float, recall: float) -> float:
    if precision + recall <= 0:
        return 0.0
    return 2 * precision * recall / (precision + recall)


def precision_recall_f1(y_true: Sequence[Any], y_pred: Sequence[Any]) -> PrecisionRecallF1:
    """
    Precision, recall and F1.

    A 2×2 confusion matrix is scored as binary with the second label as
    the positive class (TP=[1][1], FP=[0][1], FN=[1][0]). Any other shape
    is macro-averaged over the labels whose precision and recall
    denominators are both non-zero; F1 is taken from the macro averages.
    """
    matrix = confusion_matrix(y_true, y_pred)
    if not matrix:
        return PrecisionRecallF1(precision=0.0, recall=0.0, f1_score=0.0)

    cm = np.asarray(matrix, dtype=float)

    if cm.shape == (2, 2):
        tp, fp, fn = cm[1, 1], cm[0, 1], cm[1, 0]
        precision = float(tp / (tp + fp)) if tp + fp > 0 else 0.0
        recall = float(tp / (tp + fn)) if tp + fn > 0 else 0.0
        return PrecisionRecallF1(precision, recall, _f1(precision, recall))

    precisions: list[float] = []
    recalls: list[float] = []
    for i in range(cm.shape[0]):
        tp = cm[i, i]
        fp = cm[:, i].sum() - tp
        fn = cm[i, :].sum() - tp
        if tp + fp > 0 and tp + fn > 0:
            precisions.append(float(tp / (tp + fp)))
            recalls.append(float(tp / (tp + fn)))

    precision = float(np.mean(precisions)) if precisions else 0.0
    recall = float(np.mean(recalls)) if recalls else 0.0
    return PrecisionRecallF1(precision, recall, _f1(precision, recall))


@dataclass(frozen=True)
class ClassificationMetrics:
    """
    Standard classification metrics.

    Attributes:
        accuracy: Fraction of exact matches.
        precision: Binary or macro-averaged precision.
        recall: Binary or macro-averaged recall.
        f1_score: F1 from precision and recall.
        confusion_matrix: Counts indexed [actual][predicted].
        labels: Label order of the confusion matrix.
        n_samples: Number of samples.
    """

    accuracy: float
    precision: float
    recall: float
    f1_score: float
    confusion_matrix: list[list[int]] = field(default_factory=list)
    labels: list[Any] = field(default_factory=list)
    n_samples: int = 0

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "accuracy": self.accuracy,
            "precision": self.precision,
            "recall": self.recall,
            "f1_score": self.f1_score,
            "confusion_matrix": self.confusion_matrix,
            "labels": self.labels,
            "n_samples": self.n_samples,
        }

    def __str__(self) -> str:
        """String representation."""
        return (
            f"Accuracy={self.accuracy:.2%}, Precision={self.precision:.2%}, "
            f"Recall={self.recall:.2%}, F1={self.f1_score:.2%}"
        )


@dataclass(frozen=True)
class RegressionMetrics:
    """
    Standard regression metrics.

    Attributes:
        r2: R² (coefficient of determination); NaN when undefined.
        rmse: Root Mean Squared Error
        mae: Mean Absolute Error
        n_samples: Number of samples
    """

    r2: float
    rmse: float
    mae: float
    n_samples: int

    def to_dict(self) -> dict[str, float]:
        """Convert to dictionary."""
        return {
            "r2": self.r2,
            "rmse": self.rmse,
            "mae": self.mae,
            "n_samples": self.n_samples,
        }

    def __str__(self) -> str:
        """String representation."""
        return f"R²={self.r2:.4f}, RMSE={self.rmse:.4f}, MAE={self.mae:.4f}"


def compute_classification_metrics(
    y_true: Sequence[Any],
    y_pred: Sequence[Any],
) -> ClassificationMetrics:
    """
    Compute classification metrics.

    Args:
        y_true: True labels.
        y_pred: Predicted labels.

    Returns:
        ClassificationMetrics object.
    """
    if not _paired(y_true, y_pred):
        log.warning(
            "Empty or mismatched arrays provided for metrics",
            n_true=len(y_true),
            n_pred=len(y_pred),
        )
        return ClassificationMetrics(accuracy=0.0, precision=0.0, recall=0.0, f1_score=0.0)

    scores = precision_recall_f1(y_true, y_pred)
    metrics = ClassificationMetrics(
        accuracy=accuracy(y_true, y_pred),
        precision=scores.precision,
        recall=scores.recall,
        f1_score=scores.f1_score,
        confusion_matrix=confusion_matrix(y_true, y_pred),
        labels=confusion_labels(y_true, y_pred),
        n_samples=len(y_true),
    )

    log.debug("Computed classification metrics", **scores.to_dict(), accuracy=metrics.accuracy)
    return metrics


def compute_regression_metrics(
    y_true: Sequence[float],
    y_pred: Sequence[float],
) -> RegressionMetrics:
    """
    Compute regression metrics.

    Args:
        y_true: True values.
        y_pred: Predicted values.

    Returns:
        RegressionMetrics object.
    """
    if not _paired(y_true, y_pred):
        log.warning(
            "Empty or mismatched arrays provided for metrics",
            n_true=len(y_true),
            n_pred=len(y_pred),
        )
        return RegressionMetrics(r2=0.0, rmse=0.0, mae=0.0, n_samples=0)

    metrics = RegressionMetrics(
        r2=r2_score(y_true, y_pred),
        rmse=rmse(y_true, y_pred),
        mae=mae(y_true, y_pred),
        n_samples=len(y_true),
    )

    log.debug("Computed regression metrics", **metrics.to_dict())
    return metrics
