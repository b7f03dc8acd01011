"""
Base classes for the from-scratch estimators.

All estimators follow a fit/predict pattern similar to scikit-learn:
1. fit() - Learn parameters from training rows
2. predict() - Apply the fitted parameters to new rows

Fitted parameters can be exported with get_params() and restored with
from_params(), which is how model artifacts stay JSON-serialisable.
"""

import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from typing import Any

import numpy as np

from tabml.errors import InvalidInput, NotTrained, TrainingCancelled

RandomState = int | np.random.Generator | None


@dataclass
class FittedParams:
    """Fitted parameters for persistence.

    Attributes:
        algorithm: Algorithm identifier.
        params: JSON-ready mapping of fitted values.
        n_samples: Number of valid rows used for fitting.
        fitted_at: ISO timestamp when the estimator was fitted.
    """

    algorithm: str
    params: dict[str, Any]
    n_samples: int
    fitted_at: str


class CancellationToken:
    """Cooperative cancellation flag for iterative fits.

    Another thread calls cancel(); the fitting loop calls
    raise_if_cancelled() once per iteration.
    """

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        """Request cancellation."""
        self._event.set()

    @property
    def cancelled(self) -> bool:
        """Whether cancellation was requested."""
        return self._event.is_set()

    def raise_if_cancelled(self) -> None:
        """Raise TrainingCancelled if cancellation was requested."""
        if self._event.is_set():
            raise TrainingCancelled("Training was cancelled")


def make_rng(random_state: RandomState) -> np.random.Generator:
    """Turn a seed, generator or None into a numpy Generator."""
    if isinstance(random_state, np.random.Generator):
        return random_state
    return np.random.default_rng(random_state)


def as_float_matrix(X: Any, name: str = "X") -> np.ndarray:
    """Coerce rows to a 2D float array, raising InvalidInput on bad shapes."""
    try:
        arr = np.asarray(X, dtype=float)
    except (TypeError, ValueError) as e:
        raise InvalidInput(f"{name} must be a rectangular numeric matrix: {e}") from e
    if arr.ndim == 1 and arr.size == 0:
        return arr.reshape(0, 0)
    if arr.ndim != 2:
        raise InvalidInput(f"{name} must be 2-dimensional, got shape {arr.shape}")
    return arr


def as_float_vector(y: Any, name: str = "y") -> np.ndarray:
    """Coerce values to a 1D float array, raising InvalidInput on bad shapes."""
    try:
        arr = np.asarray(y, dtype=float)
    except (TypeError, ValueError) as e:
        raise InvalidInput(f"{name} must be numeric: {e}") from e
    if arr.ndim != 1:
        raise InvalidInput(f"{name} must be 1-dimensional, got shape {arr.shape}")
    return arr


class EstimatorBase(ABC):
    """Abstract base class for estimators."""

    algorithm: str = ""

    def __init__(self) -> None:
        self._is_fitted = False
        self._n_samples = 0

    @abstractmethod
    def fit(self, X: Any, *args: Any, **kwargs: Any) -> "EstimatorBase":
        """Fit the estimator and return self."""
        ...

    @abstractmethod
    def predict(self, X: Any) -> np.ndarray:
        """Predict for new rows.

        Raises:
            NotTrained: If the estimator has not been fitted.
        """
        ...

    @abstractmethod
    def _export_params(self) -> dict[str, Any]:
        """Fitted values as a JSON-ready mapping."""
        ...

    @classmethod
    @abstractmethod
    def from_params(cls, params: dict[str, Any]) -> "EstimatorBase":
        """Rebuild a fitted estimator from exported parameters."""
        ...

    @property
    def is_fitted(self) -> bool:
        """Whether the estimator has been fitted."""
        return self._is_fitted

    @property
    def n_features(self) -> int:
        """Number of input features the fitted parameters expect."""
        return 0

    def get_params(self) -> FittedParams:
        """Get fitted parameters for persistence.

        Raises:
            NotTrained: If the estimator has not been fitted.
        """
        self._check_is_fitted()
        return FittedParams(
            algorithm=self.algorithm,
            params=self._export_params(),
            n_samples=self._n_samples,
            fitted_at=datetime.now().isoformat(),
        )

    def _check_is_fitted(self) -> None:
        """Raise NotTrained if not fitted."""
        if not self._is_fitted:
            raise NotTrained(
                f"{self.__class__.__name__}: model must be trained first. "
                "Call fit() before predict() or get_params()."
            )

    def _check_n_features(self, X: np.ndarray) -> None:
        """Raise InvalidInput if X has the wrong number of columns."""
        if X.shape[0] and X.shape[1] != self.n_features:
            raise InvalidInput(
                f"Expected {self.n_features} features, got {X.shape[1]}"
            )
