"""
Evaluation metrics and model comparison.

Metrics live in tabml.evaluation.metrics; tabml.evaluation.comparison
builds on the trainer and is imported from its module path.
"""

from tabml.evaluation.metrics import (
    ClassificationMetrics,
    PrecisionRecallF1,
    RegressionMetrics,
    accuracy,
    compute_classification_metrics,
    compute_regression_metrics,
    confusion_labels,
    confusion_matrix,
    mae,
    precision_recall_f1,
    r2_score,
    rmse,
)

__all__ = [
    "ClassificationMetrics",
    "PrecisionRecallF1",
    "RegressionMetrics",
    "accuracy",
    "compute_classification_metrics",
    "compute_regression_metrics",
    "confusion_labels",
    "confusion_matrix",
    "mae",
    "precision_recall_f1",
    "r2_score",
    "rmse",
]
