"""
Simple (single-feature) linear regression, closed form.

Ordinary least squares from running sums:

    slope     = (n·Σxy − Σx·Σy) / (n·Σx² − (Σx)²)
    intercept = (Σy − slope·Σx) / n
"""

from typing import Any

import numpy as np

from tabml.errors import DegenerateInput, InsufficientData, InvalidInput
from tabml.estimators.base import EstimatorBase, as_float_vector
from tabml.utils.logging import get_logger
from tabml.utils.numeric import finite_mask

log = get_logger(__name__)

# Below this the OLS denominator is treated as zero (constant feature)
DENOMINATOR_EPSILON = 1e-10


class LinearRegression(EstimatorBase):
    """Least-squares fit of y = slope·x + intercept.

    Attributes:
        slope_: Fitted slope.
        intercept_: Fitted intercept.
    """

    algorithm = "linear_regression"

    def __init__(self) -> None:
        super().__init__()
        self.slope_: float | None = None
        self.intercept_: float | None = None

    @property
    def n_features(self) -> int:
        return 1

    def fit(self, X: Any, y: Any) -> "LinearRegression":
        """Fit slope and intercept.

        Args:
            X: Feature values, one per sample.
            y: Target values.

        Returns:
            self (for method chaining)

        Raises:
            InvalidInput: If lengths differ or fewer than 2 samples are given.
            InsufficientData: If fewer than 2 finite pairs remain.
            DegenerateInput: If the feature has no variance.
        """
        x = _as_feature_vector(X)
        y = as_float_vector(y)

        if len(x) != len(y) or len(x) < 2:
            raise InvalidInput(
                "Invalid input data: X and y must have the same length and at least 2 samples"
            )

        mask = finite_mask(x, y)
        x, y = x[mask], y[mask]
        if len(x) < 2:
            raise InsufficientData("Insufficient valid data: need at least 2 valid data points")

        n = len(x)
        sum_x = float(np.sum(x))
        sum_y = float(np.sum(y))
        sum_xy = float(np.dot(x, y))
        sum_xx = float(np.dot(x, x))

        denominator = n * sum_xx - sum_x * sum_x
        if abs(denominator) < DENOMINATOR_EPSILON:
            raise DegenerateInput("Cannot fit model: features have no variance")

        self.slope_ = (n * sum_xy - sum_x * sum_y) / denominator
        self.intercept_ = (sum_y - self.slope_ * sum_x) / n
        self._n_samples = n
        self._is_fitted = True

        log.debug(
            "Fitted linear regression",
            n_samples=n,
            n_dropped=int((~mask).sum()),
            slope=self.slope_,
            intercept=self.intercept_,
        )
        return self

    def predict(self, X: Any) -> np.ndarray:
        """Return slope·x + intercept for every value.

        Raises:
            NotTrained: If the model has not been fitted.
        """
        self._check_is_fitted()
        x = _as_feature_vector(X)
        return self.slope_ * x + self.intercept_

    @property
    def coefficients(self) -> tuple[float, float]:
        """Fitted (slope, intercept)."""
        self._check_is_fitted()
        return self.slope_, self.intercept_

    def _export_params(self) -> dict[str, Any]:
        return {"slope": self.slope_, "intercept": self.intercept_}

    @classmethod
    def from_params(cls, params: dict[str, Any]) -> "LinearRegression":
        model = cls()
        model.slope_ = float(params["slope"])
        model.intercept_ = float(params["intercept"])
        model._is_fitted = True
        return model


def _as_feature_vector(X: Any) -> np.ndarray:
    """Accept a flat vector or a single-column matrix."""
    try:
        arr = np.asarray(X, dtype=float)
    except (TypeError, ValueError) as e:
        raise InvalidInput(f"X must be numeric: {e}") from e
    if arr.ndim == 2 and arr.shape[1] == 1:
        arr = arr[:, 0]
    if arr.ndim != 1:
        raise InvalidInput(
            f"Simple linear regression takes exactly one feature, got shape {arr.shape}"
        )
    return arr
