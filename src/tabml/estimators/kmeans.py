"""
K-means clustering with k-means++ initialisation.

Lloyd iterations alternate between assigning every point to its nearest
centroid and moving every centroid to the mean of its points. A centroid
whose cluster empties keeps its previous position.
"""

from typing import Any

import numpy as np

from tabml.errors import InsufficientData, InvalidInput
from tabml.estimators.base import (
    CancellationToken,
    EstimatorBase,
    RandomState,
    as_float_matrix,
    make_rng,
)
from tabml.utils.logging import get_logger
from tabml.utils.numeric import finite_mask, pairwise_distances

log = get_logger(__name__)

CONVERGENCE_TOLERANCE = 1e-6


def kmeans_plus_plus(X: np.ndarray, k: int, rng: np.random.Generator) -> np.ndarray:
    """
    Choose k initial centroids from the rows of X.

    The first centroid is a uniformly random row. Each further centroid is
    drawn with probability proportional to the squared distance from a row
    to its nearest already-chosen centroid.

    Args:
        X: Data matrix (n_samples, n_features), all finite.
        k: Number of centroids, 1 <= k <= n_samples.
        rng: Random source.

    Returns:
        Array of shape (k, n_features).
    """
    n = X.shape[0]
    centroids = [X[rng.integers(n)].copy()]

    for _ in range(1, k):
        nearest = pairwise_distances(X, np.asarray(centroids)).min(axis=1)
        weights = nearest * nearest
        cumulative = np.cumsum(weights)
        threshold = rng.random() * cumulative[-1]
        # First row whose cumulative weight reaches the draw
        idx = int(np.searchsorted(cumulative, threshold, side="left"))
        centroids.append(X[min(idx, n - 1)].copy())

    return np.asarray(centroids)


class KMeans(EstimatorBase):
    """K-means clustering.

    Attributes:
        k: Number of clusters.
        max_iterations: Upper bound on Lloyd iterations.
        centroids_: Fitted centroids, shape (k, n_features).
        n_iter_: Iterations run.
        inertia_: Sum of squared distances to the assigned centroid.
    """

    algorithm = "kmeans"

    def __init__(
        self,
        k: int,
        max_iterations: int = 100,
        random_state: RandomState = None,
    ) -> None:
        super().__init__()
        if k < 1:
            raise InvalidInput(f"k must be at least 1, got {k}")
        if max_iterations < 1:
            raise InvalidInput(f"max_iterations must be at least 1, got {max_iterations}")
        self.k = k
        self.max_iterations = max_iterations
        self.random_state = random_state
        self.centroids_: np.ndarray | None = None
        self.n_iter_: int = 0
        self.inertia_: float | None = None

    @property
    def n_features(self) -> int:
        return 0 if self.centroids_ is None else self.centroids_.shape[1]

    def fit(
        self,
        X: Any,
        cancel_token: CancellationToken | None = None,
    ) -> "KMeans":
        """Fit centroids.

        Args:
            X: Data matrix, one row per sample.
            cancel_token: Optional token checked once per iteration.

        Returns:
            self (for method chaining)

        Raises:
            InvalidInput: If X is empty or k exceeds the number of rows.
            InsufficientData: If fewer than k finite rows remain.
            TrainingCancelled: If the token was cancelled.
        """
        X = as_float_matrix(X)
        if X.shape[0] == 0 or self.k > X.shape[0]:
            raise InvalidInput(
                f"Invalid input data or k value: {X.shape[0]} rows for k={self.k}"
            )

        X = X[finite_mask(X)]
        if X.shape[0] < self.k:
            raise InsufficientData(
                f"Insufficient valid data points. Need at least {self.k} points "
                f"for {self.k} clusters, got {X.shape[0]}"
            )

        rng = make_rng(self.random_state)
        centroids = kmeans_plus_plus(X, self.k, rng)

        n_iter = 0
        for _ in range(self.max_iterations):
            if cancel_token is not None:
                cancel_token.raise_if_cancelled()

            previous = centroids
            # argmin picks the lowest index on ties
            labels = pairwise_distances(X, previous).argmin(axis=1)

            centroids = previous.copy()
            for c in range(self.k):
                members = X[labels == c]
                if len(members):
                    centroids[c] = members.mean(axis=0)

            n_iter += 1
            shift = np.sqrt(((centroids - previous) ** 2).sum(axis=1))
            if np.all(shift < CONVERGENCE_TOLERANCE):
                log.debug("K-means converged", n_iter=n_iter)
                break

        distances = pairwise_distances(X, centroids)
        self.centroids_ = centroids
        self.n_iter_ = n_iter
        self.inertia_ = float((distances.min(axis=1) ** 2).sum())
        self._n_samples = X.shape[0]
        self._is_fitted = True

        log.debug(
            "Fitted k-means",
            k=self.k,
            n_samples=X.shape[0],
            n_iter=n_iter,
            inertia=self.inertia_,
        )
        return self

    def predict(self, X: Any) -> np.ndarray:
        """Index of the nearest centroid for every row.

        Raises:
            NotTrained: If the model has not been fitted.
        """
        self._check_is_fitted()
        X = as_float_matrix(X)
        if X.shape[0] == 0:
            return np.zeros(0, dtype=int)
        self._check_n_features(X)
        return pairwise_distances(X, self.centroids_).argmin(axis=1)

    @property
    def centroids(self) -> np.ndarray:
        """Fitted centroids."""
        self._check_is_fitted()
        return self.centroids_.copy()

    def _export_params(self) -> dict[str, Any]:
        return {
            "k": self.k,
            "centroids": self.centroids_.tolist(),
            "n_iter": self.n_iter_,
            "inertia": self.inertia_,
        }

    @classmethod
    def from_params(cls, params: dict[str, Any]) -> "KMeans":
        centroids = np.asarray(params["centroids"], dtype=float)
        model = cls(k=len(centroids))
        model.centroids_ = centroids
        model.n_iter_ = int(params.get("n_iter", 0))
        model.inertia_ = params.get("inertia")
        model._is_fitted = True
        return model
