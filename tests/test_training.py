"""Tests for data preparation and model training."""

import numpy as np
import pandas as pd
import pytest

from tabml.config import Algorithm, DecisionTreeParams, KMeansParams, TaskKind
from tabml.errors import InsufficientData, InvalidInput, UnsupportedTask
from tabml.modeling.dataset import (
    Dataset,
    encode_class_labels,
    is_missing,
    prepare_training_data,
    sequential_split,
)
from tabml.modeling.registry import ModelRegistry
from tabml.modeling.training import (
    ModelTrainer,
    TrainingRequest,
    check_compatibility,
    cluster_utilisation,
    default_model_name,
)


class TestDataPreparation:
    """Tests for turning a dataset into training matrices."""

    def test_is_missing(self) -> None:
        """None, NaN and blank strings count as missing."""
        assert is_missing(None)
        assert is_missing(float("nan"))
        assert is_missing("  ")
        assert not is_missing(0)
        assert not is_missing("a")

    def test_dirty_rows_dropped(self, fruit_frame: pd.DataFrame) -> None:
        """Rows with blank or missing features are dropped."""
        prepared = prepare_training_data(
            Dataset(fruit_frame), ["weight", "size"], "fruit", TaskKind.CLASSIFICATION
        )
        assert prepared.n_samples == 10
        assert prepared.n_dropped == 2
        assert 8 not in prepared.row_index
        assert 9 not in prepared.row_index

    def test_string_labels_encoded(self, fruit_frame: pd.DataFrame) -> None:
        """String labels map to first-appearance indices."""
        prepared = prepare_training_data(
            Dataset(fruit_frame), ["weight", "size"], "fruit", TaskKind.CLASSIFICATION
        )
        assert prepared.class_labels == ["apple", "melon"]
        assert set(prepared.y.tolist()) == {0.0, 1.0}

    def test_numeric_labels_kept(self) -> None:
        """Numeric labels are used as-is."""
        y, labels = encode_class_labels([1, 0, 1])
        assert labels is None
        assert y.tolist() == [1.0, 0.0, 1.0]

    def test_single_class(self) -> None:
        """A single distinct label cannot be classified."""
        with pytest.raises(InvalidInput, match="at least 2 unique values"):
            encode_class_labels(["a", "a"])

    def test_unknown_column(self, linear_dataset: Dataset) -> None:
        """Columns the dataset lacks are rejected."""
        with pytest.raises(InvalidInput, match="Unknown columns: z"):
            prepare_training_data(linear_dataset, ["z"], "y", TaskKind.REGRESSION)

    def test_target_required(self, linear_dataset: Dataset) -> None:
        """Supervised tasks need a target."""
        with pytest.raises(InvalidInput, match="target column is required"):
            prepare_training_data(linear_dataset, ["x"], None, TaskKind.REGRESSION)

    def test_empty_dataset(self) -> None:
        """An empty dataset has nothing to train on."""
        dataset = Dataset(pd.DataFrame({"x": [], "y": []}))
        with pytest.raises(InsufficientData):
            prepare_training_data(dataset, ["x"], "y", TaskKind.REGRESSION)

    def test_all_rows_dirty(self) -> None:
        """No clean rows raises InsufficientData."""
        dataset = Dataset(pd.DataFrame({"x": ["a", None], "y": [1, 2]}))
        with pytest.raises(InsufficientData, match="No valid data rows"):
            prepare_training_data(dataset, ["x"], "y", TaskKind.REGRESSION)

    def test_non_numeric_regression_target(self) -> None:
        """Regression targets must be numbers."""
        dataset = Dataset(pd.DataFrame({"x": [1, 2, 3], "y": [1, "big", 3]}))
        with pytest.raises(InvalidInput, match="Non-numeric value found in target column"):
            prepare_training_data(dataset, ["x"], "y", TaskKind.REGRESSION)

    def test_column_types(self, fruit_frame: pd.DataFrame) -> None:
        """Column types are inferred per column."""
        dataset = Dataset(fruit_frame, column_types={"weight": "number"})
        assert dataset.numeric_columns == ["weight", "size"]
        assert dataset.categorical_columns == ["fruit"]
        assert dataset.shape == (12, 3)

    def test_numeric_matrix_fills_gaps(self, fruit_frame: pd.DataFrame) -> None:
        """Blank cells and unknown columns become 0."""
        matrix = Dataset(fruit_frame).numeric_matrix(["weight", "missing"])
        assert matrix.shape == (12, 2)
        assert matrix[8].tolist() == [0.0, 0.0]

    def test_sequential_split(self) -> None:
        """The leading 80% trains, the rest tests."""
        train, test = sequential_split(10, 0.2)
        assert (train.start, train.stop) == (0, 8)
        assert (test.start, test.stop) == (8, 10)

    def test_sequential_split_keeps_one_train_row(self) -> None:
        """At least one row is always used for training."""
        train, test = sequential_split(1, 0.2)
        assert (train.stop, test.start, test.stop) == (1, 1, 1)


class TestCompatibility:
    """Tests for algorithm/task checks."""

    def test_unsupported_task(self) -> None:
        """K-means cannot do regression."""
        with pytest.raises(UnsupportedTask):
            check_compatibility(TaskKind.REGRESSION, Algorithm.KMEANS, 2)

    def test_linear_needs_one_feature(self) -> None:
        """Linear regression takes exactly one feature."""
        with pytest.raises(InvalidInput, match="exactly one feature"):
            check_compatibility(TaskKind.REGRESSION, Algorithm.LINEAR_REGRESSION, 2)

    def test_default_name(self) -> None:
        """Names default to the upper-cased algorithm."""
        assert default_model_name(Algorithm.LINEAR_REGRESSION) == "LINEAR REGRESSION Model"

    def test_cluster_utilisation(self) -> None:
        """Share of clusters that received rows."""
        assert cluster_utilisation(np.array([0, 0, 2]), 4) == pytest.approx(0.5)
        assert cluster_utilisation(np.array([]), 0) == 0.0


class TestModelTrainer:
    """Tests for ModelTrainer."""

    def test_linear_regression(self, trainer: ModelTrainer, linear_dataset: Dataset) -> None:
        """Training recovers y = 2x + 1 and registers the model."""
        artifact = trainer.train(
            linear_dataset,
            TrainingRequest(task="regression", algorithm="linear_regression", features=("x",), target="y"),
        )

        assert artifact.parameters["slope"] == pytest.approx(2.0)
        assert artifact.parameters["intercept"] == pytest.approx(1.0)
        assert artifact.name == "LINEAR REGRESSION Model"
        assert artifact.performance.r2_score == pytest.approx(1.0)
        assert artifact.performance.rmse == pytest.approx(0.0, abs=1e-9)
        assert artifact.dataset_fingerprint == linear_dataset.fingerprint
        assert trainer.registry.get(artifact.id) is artifact

    def test_no_register(self, trainer: ModelTrainer, linear_dataset: Dataset) -> None:
        """register=False leaves the registry untouched."""
        trainer.train(
            linear_dataset,
            TrainingRequest(task="regression", algorithm="linear_regression", features=("x",), target="y"),
            register=False,
        )
        assert len(trainer.registry) == 0

    def test_classification_with_string_labels(
        self, trainer: ModelTrainer, fruit_frame: pd.DataFrame
    ) -> None:
        """Class labels are kept on the artifact."""
        artifact = trainer.train(
            Dataset(fruit_frame),
            TrainingRequest(
                task="classification",
                algorithm="decision_tree",
                features=("weight", "size"),
                target="fruit",
                name="fruit tree",
            ),
        )

        assert artifact.name == "fruit tree"
        assert artifact.class_labels == ("apple", "melon")
        assert artifact.performance.accuracy == pytest.approx(1.0)
        assert len(artifact.performance.confusion_matrix) == 2
        importances = artifact.performance.feature_importance
        assert [fi.feature for fi in importances] == ["weight", "size"]
        assert sum(fi.importance for fi in importances) == pytest.approx(1.0)

    def test_logistic_regression(
        self, trainer: ModelTrainer, separable_frame: pd.DataFrame
    ) -> None:
        """Separable data is classified well."""
        artifact = trainer.train(
            Dataset(separable_frame),
            TrainingRequest(
                task="classification",
                algorithm="logistic_regression",
                features=("x1", "x2"),
                target="label",
                hyperparameters={"learning_rate": 0.1},
            ),
        )

        assert artifact.hyperparameters.learning_rate == 0.1
        assert artifact.hyperparameters.iterations == 1000
        assert artifact.performance.accuracy > 0.9

    def test_kmeans_clustering(self, trainer: ModelTrainer, blobs: np.ndarray) -> None:
        """Clustering fits on every row and reports utilisation."""
        dataset = Dataset(pd.DataFrame(blobs, columns=["a", "b"]))
        artifact = trainer.train(
            dataset,
            TrainingRequest(
                task="clustering",
                algorithm="kmeans",
                features=("a", "b"),
                hyperparameters=KMeansParams(k=2),
            ),
        )

        assert artifact.target is None
        assert len(artifact.parameters["centroids"]) == 2
        assert artifact.performance.accuracy == pytest.approx(1.0)
        assert artifact.performance.feature_importance == ()

    def test_regression_tree(self, trainer: ModelTrainer) -> None:
        """Decision trees also handle regression."""
        frame = pd.DataFrame({"x": list(range(20)), "y": [0.0] * 10 + [5.0] * 10})
        artifact = trainer.train(
            Dataset(frame.iloc[::-1]),
            TrainingRequest(
                task="regression",
                algorithm="decision_tree",
                features=("x",),
                target="y",
                hyperparameters=DecisionTreeParams(max_depth=2),
            ),
        )
        assert artifact.performance.rmse == pytest.approx(0.0)

    def test_mismatched_hyperparameters(
        self, trainer: ModelTrainer, linear_dataset: Dataset
    ) -> None:
        """Parameters of another algorithm are rejected."""
        with pytest.raises(InvalidInput):
            trainer.train(
                linear_dataset,
                TrainingRequest(
                    task="regression",
                    algorithm="decision_tree",
                    features=("x",),
                    target="y",
                    hyperparameters=KMeansParams(),
                ),
            )

    def test_unsupported_task(self, trainer: ModelTrainer, linear_dataset: Dataset) -> None:
        """Nothing is registered when the task is unsupported."""
        with pytest.raises(UnsupportedTask):
            trainer.train(
                linear_dataset,
                TrainingRequest(task="classification", algorithm="linear_regression", features=("x",), target="y"),
            )
        assert len(trainer.registry) == 0

    def test_default_registry(self, linear_dataset: Dataset) -> None:
        """A trainer without a registry creates its own."""
        trainer = ModelTrainer()
        assert isinstance(trainer.registry, ModelRegistry)
