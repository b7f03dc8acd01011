"""
From-scratch estimators built on NumPy.

Available estimators:
    - LinearRegression: single-feature closed-form least squares
    - LogisticRegression: binary classification by gradient descent
    - KMeans: k-means++ initialised Lloyd clustering
    - DecisionTree: Gini (or variance) split binary tree

Example usage:
    >>> from tabml.estimators import create_estimator
    >>> from tabml.config import KMeansParams
    >>> model = create_estimator(KMeansParams(k=2), random_state=7)
    >>> model.fit([[0.0, 0.0], [0.1, 0.0], [5.0, 5.0], [5.1, 5.0]])
    >>> model.predict([[0.05, 0.0]])
"""

from typing import Any, Mapping

from tabml.config.settings import (
    Algorithm,
    DecisionTreeParams,
    KMeansParams,
    LinearRegressionParams,
    LogisticRegressionParams,
    TaskKind,
)
from tabml.errors import InvalidInput
from tabml.estimators.base import (
    CancellationToken,
    EstimatorBase,
    FittedParams,
    RandomState,
)
from tabml.estimators.kmeans import KMeans
from tabml.estimators.linear import LinearRegression
from tabml.estimators.logistic import LogisticRegression
from tabml.estimators.tree import DecisionTree

__all__ = [
    "ESTIMATOR_CLASSES",
    "CancellationToken",
    "DecisionTree",
    "EstimatorBase",
    "FittedParams",
    "KMeans",
    "LinearRegression",
    "LogisticRegression",
    "create_estimator",
    "estimator_from_params",
]

ESTIMATOR_CLASSES: dict[Algorithm, type[EstimatorBase]] = {
    Algorithm.LINEAR_REGRESSION: LinearRegression,
    Algorithm.LOGISTIC_REGRESSION: LogisticRegression,
    Algorithm.KMEANS: KMeans,
    Algorithm.DECISION_TREE: DecisionTree,
}


def create_estimator(
    params: LinearRegressionParams | LogisticRegressionParams | KMeansParams | DecisionTreeParams,
    task: TaskKind | str = TaskKind.CLASSIFICATION,
    random_state: RandomState = None,
) -> EstimatorBase:
    """Factory function to create an unfitted estimator from its parameters.

    Args:
        params: Validated hyperparameters; the type selects the algorithm.
        task: Task kind, used to pick the decision tree criterion.
        random_state: Seed or generator for estimators with random init.

    Returns:
        Instantiated estimator.

    Raises:
        InvalidInput: If params is not a known parameter model.
    """
    if isinstance(params, LinearRegressionParams):
        return LinearRegression()

    if isinstance(params, LogisticRegressionParams):
        return LogisticRegression(
            learning_rate=params.learning_rate,
            iterations=params.iterations,
            random_state=random_state,
        )

    if isinstance(params, KMeansParams):
        return KMeans(
            k=params.k,
            max_iterations=params.max_iterations,
            random_state=random_state,
        )

    if isinstance(params, DecisionTreeParams):
        tree_task = "regression" if TaskKind(task) == TaskKind.REGRESSION else "classification"
        return DecisionTree(max_depth=params.max_depth, task=tree_task)

    raise InvalidInput(f"Unknown hyperparameter type: {type(params).__name__}")


def estimator_from_params(algorithm: Algorithm | str, params: Mapping[str, Any]) -> EstimatorBase:
    """Rebuild a fitted estimator from parameters exported by get_params()."""
    try:
        estimator_class = ESTIMATOR_CLASSES[Algorithm(algorithm)]
    except ValueError:
        raise InvalidInput(f"Unknown algorithm: {algorithm!r}") from None
    try:
        return estimator_class.from_params(params)
    except (KeyError, TypeError, ValueError) as e:
        raise InvalidInput(f"Malformed parameters for {algorithm}: {e}") from e
