"""
Decision tree with binary splits on numeric features.

Split criterion:
    classification: Gini impurity  1 − Σ p_i²
    regression:     variance of the targets

For every feature the candidate thresholds are the midpoints between
consecutive sorted unique values; rows with value <= threshold go left.
The split minimising the sample-weighted impurity of the two partitions
wins (first found on ties).

Nodes live in a flat arena addressed by index, so prediction is a loop
rather than a recursive walk.
"""

from collections import Counter
from dataclasses import dataclass
from typing import Any, Literal

import numpy as np

from tabml.errors import InsufficientData, InvalidInput
from tabml.estimators.base import EstimatorBase, as_float_matrix, as_float_vector
from tabml.utils.logging import get_logger
from tabml.utils.numeric import finite_mask

log = get_logger(__name__)

TreeTask = Literal["classification", "regression"]


@dataclass(frozen=True)
class Leaf:
    """Terminal node holding a prediction."""

    prediction: float
    n_samples: int
    impurity: float


@dataclass(frozen=True)
class Split:
    """Internal node; left/right are arena indices."""

    feature: int
    threshold: float
    left: int
    right: int
    n_samples: int
    impurity: float


Node = Leaf | Split


def gini_impurity(y: np.ndarray) -> float:
    """Gini impurity of a label array (0.0 for an empty array)."""
    if len(y) == 0:
        return 0.0
    _, counts = np.unique(y, return_counts=True)
    p = counts / len(y)
    return float(1.0 - np.sum(p * p))


def variance_impurity(y: np.ndarray) -> float:
    """Variance of a target array (0.0 for an empty array)."""
    if len(y) == 0:
        return 0.0
    return float(np.var(y))


def majority_label(y: np.ndarray) -> float:
    """Most frequent label; ties go to the label seen first."""
    # Counter keeps insertion order and most_common() sorts stably
    return Counter(y.tolist()).most_common(1)[0][0]


class DecisionTree(EstimatorBase):
    """CART-style decision tree.

    Attributes:
        max_depth: Depth at which nodes are forced to become leaves.
        task: "classification" (Gini, majority leaf) or "regression"
            (variance, mean leaf).
        nodes_: Node arena; index 0 is the root.
        n_features_: Number of features seen during fit.
        feature_importances_: Normalised impurity decrease per feature.
    """

    algorithm = "decision_tree"

    def __init__(self, max_depth: int = 5, task: TreeTask = "classification") -> None:
        super().__init__()
        if max_depth < 0:
            raise InvalidInput(f"max_depth must be non-negative, got {max_depth}")
        if task not in ("classification", "regression"):
            raise InvalidInput(f"Unknown tree task: {task!r}")
        self.max_depth = max_depth
        self.task = task
        self.nodes_: list[Node] = []
        self.n_features_: int = 0
        self.feature_importances_: np.ndarray | None = None

    @property
    def n_features(self) -> int:
        return self.n_features_

    def _impurity(self, y: np.ndarray) -> float:
        if self.task == "classification":
            return gini_impurity(y)
        return variance_impurity(y)

    def _leaf_value(self, y: np.ndarray) -> float:
        if self.task == "classification":
            return majority_label(y)
        return float(np.mean(y))

    def _find_best_split(
        self, X: np.ndarray, y: np.ndarray
    ) -> tuple[int, float, float] | None:
        """Best (feature, threshold, weighted impurity), or None if no split exists."""
        n_samples, n_features = X.shape
        best: tuple[int, float, float] | None = None

        for feature in range(n_features):
            values = X[:, feature]
            unique_values = np.unique(values)
            if len(unique_values) < 2:
                continue
            thresholds = (unique_values[:-1] + unique_values[1:]) / 2

            for threshold in thresholds:
                left_mask = values <= threshold
                n_left = int(left_mask.sum())
                n_right = n_samples - n_left
                if n_left == 0 or n_right == 0:
                    continue

                weighted = (
                    n_left * self._impurity(y[left_mask])
                    + n_right * self._impurity(y[~left_mask])
                ) / n_samples

                if best is None or weighted < best[2]:
                    best = (feature, float(threshold), weighted)

        return best

    def _build(self, X: np.ndarray, y: np.ndarray, depth: int) -> int:
        """Grow the subtree for (X, y) and return its arena index."""
        impurity = self._impurity(y)
        n_samples = len(y)

        is_pure = len(np.unique(y)) <= 1
        if depth >= self.max_depth or is_pure or n_samples < 2:
            return self._add_leaf(y, impurity)

        split = self._find_best_split(X, y)
        if split is None:
            return self._add_leaf(y, impurity)

        feature, threshold, _ = split
        left_mask = X[:, feature] <= threshold

        # Reserve the slot so the parent precedes its children in the arena
        index = len(self.nodes_)
        self.nodes_.append(Leaf(prediction=0.0, n_samples=0, impurity=0.0))
        left = self._build(X[left_mask], y[left_mask], depth + 1)
        right = self._build(X[~left_mask], y[~left_mask], depth + 1)
        self.nodes_[index] = Split(
            feature=feature,
            threshold=threshold,
            left=left,
            right=right,
            n_samples=n_samples,
            impurity=impurity,
        )
        return index

    def _add_leaf(self, y: np.ndarray, impurity: float) -> int:
        self.nodes_.append(
            Leaf(prediction=self._leaf_value(y), n_samples=len(y), impurity=impurity)
        )
        return len(self.nodes_) - 1

    def fit(self, X: Any, y: Any) -> "DecisionTree":
        """Grow the tree.

        Args:
            X: Feature matrix, one row per sample.
            y: Class labels (classification) or targets (regression).

        Returns:
            self (for method chaining)

        Raises:
            InvalidInput: If row counts differ or the input is empty.
            InsufficientData: If no finite rows remain.
        """
        X = as_float_matrix(X)
        y = as_float_vector(y)
        if X.shape[0] != len(y) or X.shape[0] == 0:
            raise InvalidInput("Invalid input data: X and y must be non-empty and the same length")

        mask = finite_mask(X, y)
        X, y = X[mask], y[mask]
        if len(y) == 0:
            raise InsufficientData("Insufficient valid data: no finite rows remain")

        self.nodes_ = []
        self.n_features_ = X.shape[1]
        self._build(X, y, depth=0)
        self.feature_importances_ = self._compute_feature_importances()
        self._n_samples = len(y)
        self._is_fitted = True

        log.debug(
            "Fitted decision tree",
            task=self.task,
            n_samples=len(y),
            depth=self.depth,
            n_leaves=self.n_leaves,
        )
        return self

    def _compute_feature_importances(self) -> np.ndarray:
        """Impurity decrease per feature, weighted by node size and normalised."""
        importances = np.zeros(self.n_features_)
        for node in self.nodes_:
            if isinstance(node, Split):
                left = self.nodes_[node.left]
                right = self.nodes_[node.right]
                decrease = (
                    node.n_samples * node.impurity
                    - left.n_samples * left.impurity
                    - right.n_samples * right.impurity
                )
                importances[node.feature] += decrease
        total = importances.sum()
        if total > 0:
            importances /= total
        return importances

    def _predict_row(self, x: np.ndarray) -> float:
        node = self.nodes_[0]
        while isinstance(node, Split):
            node = self.nodes_[node.left if x[node.feature] <= node.threshold else node.right]
        return node.prediction

    def predict(self, X: Any) -> np.ndarray:
        """Walk the tree for every row.

        Raises:
            NotTrained: If the tree has not been fitted.
        """
        self._check_is_fitted()
        X = as_float_matrix(X)
        if X.shape[0] == 0:
            return np.zeros(0)
        self._check_n_features(X)
        return np.array([self._predict_row(x) for x in X])

    @property
    def depth(self) -> int:
        """Depth of the deepest leaf (0 for a single-leaf tree)."""
        if not self.nodes_:
            return 0
        deepest = 0
        stack = [(0, 0)]
        while stack:
            index, level = stack.pop()
            node = self.nodes_[index]
            if isinstance(node, Split):
                stack.append((node.left, level + 1))
                stack.append((node.right, level + 1))
            else:
                deepest = max(deepest, level)
        return deepest

    @property
    def n_leaves(self) -> int:
        """Number of leaves."""
        return sum(1 for node in self.nodes_ if isinstance(node, Leaf))

    def to_dict(self) -> dict[str, Any]:
        """Nested {feature, threshold, left, right} / {prediction} record."""
        self._check_is_fitted()

        def _node_to_dict(index: int) -> dict[str, Any]:
            node = self.nodes_[index]
            if isinstance(node, Leaf):
                return {"prediction": node.prediction}
            return {
                "feature": node.feature,
                "threshold": node.threshold,
                "left": _node_to_dict(node.left),
                "right": _node_to_dict(node.right),
            }

        return _node_to_dict(0)

    def _export_params(self) -> dict[str, Any]:
        nodes: list[dict[str, Any]] = []
        for node in self.nodes_:
            if isinstance(node, Leaf):
                nodes.append(
                    {
                        "kind": "leaf",
                        "prediction": node.prediction,
                        "n_samples": node.n_samples,
                        "impurity": node.impurity,
                    }
                )
            else:
                nodes.append(
                    {
                        "kind": "split",
                        "feature": node.feature,
                        "threshold": node.threshold,
                        "left": node.left,
                        "right": node.right,
                        "n_samples": node.n_samples,
                        "impurity": node.impurity,
                    }
                )
        return {
            "task": self.task,
            "max_depth": self.max_depth,
            "n_features": self.n_features_,
            "nodes": nodes,
        }

    @classmethod
    def from_params(cls, params: dict[str, Any]) -> "DecisionTree":
        model = cls(max_depth=int(params["max_depth"]), task=params["task"])
        for raw in params["nodes"]:
            if raw["kind"] == "leaf":
                model.nodes_.append(
                    Leaf(
                        prediction=float(raw["prediction"]),
                        n_samples=int(raw["n_samples"]),
                        impurity=float(raw["impurity"]),
                    )
                )
            else:
                model.nodes_.append(
                    Split(
                        feature=int(raw["feature"]),
                        threshold=float(raw["threshold"]),
                        left=int(raw["left"]),
                        right=int(raw["right"]),
                        n_samples=int(raw["n_samples"]),
                        impurity=float(raw["impurity"]),
                    )
                )
        model.n_features_ = int(params["n_features"])
        model.feature_importances_ = model._compute_feature_importances()
        model._is_fitted = True
        return model
