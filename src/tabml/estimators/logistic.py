"""
Binary logistic regression trained by batch gradient descent.

Model:
    p(y=1 | x) = sigmoid(w0 + w·x)

Each iteration takes one gradient step on the mean binary cross-entropy
plus an L2 penalty on the feature weights (the bias is not penalised).
Training stops once the cost changes by less than COST_TOLERANCE between
iterations, or after the configured number of iterations.
"""

from typing import Any

import numpy as np

from tabml.errors import InsufficientData, InvalidInput, UnsupportedTask
from tabml.estimators.base import (
    CancellationToken,
    EstimatorBase,
    RandomState,
    as_float_matrix,
    as_float_vector,
    make_rng,
)
from tabml.utils.logging import get_logger
from tabml.utils.numeric import finite_mask

log = get_logger(__name__)

L2_REGULARIZATION = 0.01
COST_TOLERANCE = 1e-6
# Sigmoid argument clamp; exp(250) is still finite in float64
LOGIT_CLAMP = 250.0
PROBA_EPSILON = 1e-15
INIT_SCALE = 0.01


def sigmoid(z: np.ndarray) -> np.ndarray:
    """Logistic function with the argument clamped to avoid overflow."""
    z = np.clip(z, -LOGIT_CLAMP, LOGIT_CLAMP)
    return 1.0 / (1.0 + np.exp(-z))


def binary_cross_entropy(proba: np.ndarray, y: np.ndarray) -> float:
    """Mean binary cross-entropy with probabilities clamped away from 0 and 1."""
    p = np.clip(proba, PROBA_EPSILON, 1.0 - PROBA_EPSILON)
    return float(-np.mean(y * np.log(p) + (1.0 - y) * np.log(1.0 - p)))


class LogisticRegression(EstimatorBase):
    """Binary logistic regression.

    Attributes:
        learning_rate: Gradient descent step size.
        iterations: Maximum number of gradient steps.
        weights_: Bias followed by one weight per feature.
        classes_: Original label values; classes_[1] is the positive class.
        n_iter_: Gradient steps actually taken.
        cost_: Final training cost.
    """

    algorithm = "logistic_regression"

    def __init__(
        self,
        learning_rate: float = 0.01,
        iterations: int = 1000,
        random_state: RandomState = None,
    ) -> None:
        super().__init__()
        if learning_rate <= 0:
            raise InvalidInput(f"learning_rate must be positive, got {learning_rate}")
        if iterations < 1:
            raise InvalidInput(f"iterations must be at least 1, got {iterations}")
        self.learning_rate = learning_rate
        self.iterations = iterations
        self.random_state = random_state
        self.weights_: np.ndarray | None = None
        self.classes_: list[float] = []
        self.n_iter_: int = 0
        self.cost_: float | None = None

    @property
    def n_features(self) -> int:
        return 0 if self.weights_ is None else len(self.weights_) - 1

    def fit(
        self,
        X: Any,
        y: Any,
        cancel_token: CancellationToken | None = None,
    ) -> "LogisticRegression":
        """Fit weights by gradient descent.

        Args:
            X: Feature matrix, one row per sample.
            y: Binary labels (any two numeric values).
            cancel_token: Optional token checked once per iteration.

        Returns:
            self (for method chaining)

        Raises:
            InvalidInput: If row counts differ or the input is empty.
            InsufficientData: If fewer than 2 finite rows remain.
            UnsupportedTask: If y holds more than two distinct labels.
            TrainingCancelled: If the token was cancelled.
        """
        X = as_float_matrix(X)
        y = as_float_vector(y)

        if X.shape[0] != len(y) or X.shape[0] == 0:
            raise InvalidInput("Invalid input data: X and y must have the same length")

        mask = finite_mask(X, y)
        X, y = X[mask], y[mask]
        if len(y) < 2:
            raise InsufficientData("Insufficient valid data: need at least 2 valid data points")

        classes = sorted(set(y.tolist()))
        if len(classes) > 2:
            raise UnsupportedTask(
                f"Logistic regression supports only binary classification, "
                f"got {len(classes)} distinct labels"
            )
        # Larger label is the positive class
        y_bin = (y == classes[-1]).astype(float) if len(classes) == 2 else np.zeros_like(y)

        m, n = X.shape
        rng = make_rng(self.random_state)
        weights = (rng.random(n + 1) - 0.5) * INIT_SCALE
        Xb = np.hstack([np.ones((m, 1)), X])

        prev_cost: float | None = None
        cost = float("nan")
        n_iter = 0
        for _ in range(self.iterations):
            if cancel_token is not None:
                cancel_token.raise_if_cancelled()

            proba = sigmoid(Xb @ weights)
            grad = Xb.T @ (proba - y_bin) / m
            grad[1:] += L2_REGULARIZATION * weights[1:]
            weights = weights - self.learning_rate * grad
            n_iter += 1

            cost = binary_cross_entropy(sigmoid(Xb @ weights), y_bin)
            if prev_cost is not None and abs(prev_cost - cost) < COST_TOLERANCE:
                log.debug("Logistic regression converged", n_iter=n_iter, cost=cost)
                break
            prev_cost = cost

        self.weights_ = weights
        self.classes_ = classes
        self.n_iter_ = n_iter
        self.cost_ = cost
        self._n_samples = m
        self._is_fitted = True

        log.debug(
            "Fitted logistic regression",
            n_samples=m,
            n_features=n,
            n_iter=n_iter,
            cost=cost,
        )
        return self

    def predict_proba(self, X: Any) -> np.ndarray:
        """Probability of the positive class for every row.

        Raises:
            NotTrained: If the model has not been fitted.
        """
        self._check_is_fitted()
        X = as_float_matrix(X)
        self._check_n_features(X)
        if X.shape[0] == 0:
            return np.zeros(0)
        return sigmoid(self.weights_[0] + X @ self.weights_[1:])

    def predict(self, X: Any) -> np.ndarray:
        """Hard labels (threshold 0.5) in the original label values.

        Raises:
            NotTrained: If the model has not been fitted.
        """
        positive = self.predict_proba(X) > 0.5
        negative_label = self.classes_[0]
        positive_label = self.classes_[-1]
        return np.where(positive, positive_label, negative_label)

    def _export_params(self) -> dict[str, Any]:
        return {
            "weights": [float(w) for w in self.weights_],
            "classes": list(self.classes_),
            "learning_rate": self.learning_rate,
            "iterations": self.iterations,
            "n_iter": self.n_iter_,
        }

    @classmethod
    def from_params(cls, params: dict[str, Any]) -> "LogisticRegression":
        model = cls(
            learning_rate=float(params.get("learning_rate", 0.01)),
            iterations=int(params.get("iterations", 1000)),
        )
        model.weights_ = np.asarray(params["weights"], dtype=float)
        model.classes_ = [float(c) for c in params["classes"]]
        model.n_iter_ = int(params.get("n_iter", 0))
        model._is_fitted = True
        return model
