"""Tests for the prediction engine."""

import numpy as np
import pandas as pd
import pytest

from tabml.config import PredictionConfig
from tabml.errors import InsufficientData, InvalidInput, MissingInputs, ModelNotFound
from tabml.modeling.dataset import Dataset
from tabml.modeling.inference import PredictionEngine
from tabml.modeling.session import MLSession


@pytest.fixture
def fruit_session(session: MLSession, fruit_frame: pd.DataFrame) -> tuple[MLSession, str]:
    """Session with a fruit classifier trained."""
    session.load_dataset(fruit_frame)
    model = session.train("classification", "decision_tree", ["weight", "size"], "fruit")
    return session, model.id


@pytest.fixture
def linear_session(session: MLSession, linear_frame: pd.DataFrame) -> tuple[MLSession, str]:
    """Session with y = 2x + 1 trained."""
    session.load_dataset(linear_frame)
    model = session.train("regression", "linear_regression", ["x"], "y")
    return session, model.id


class TestInputValidation:
    """Tests for request parsing."""

    def test_missing_inputs(self, fruit_session: tuple[MLSession, str]) -> None:
        """Every missing feature is reported."""
        session, model_id = fruit_session
        with pytest.raises(MissingInputs) as exc_info:
            session.predict(model_id, {"size": ""})
        assert exc_info.value.missing == ["weight", "size"]
        assert str(exc_info.value) == "Please provide values for: weight, size"

    def test_non_numeric_input(self, fruit_session: tuple[MLSession, str]) -> None:
        """Values must parse as numbers."""
        session, model_id = fruit_session
        with pytest.raises(InvalidInput, match="Invalid numeric value for weight"):
            session.predict(model_id, {"weight": "heavy", "size": 7})

    def test_unknown_model(self, session: MLSession) -> None:
        """Unknown ids raise ModelNotFound."""
        with pytest.raises(ModelNotFound):
            session.predict("missing", {"x": 1})

    def test_extra_inputs_ignored(self, linear_session: tuple[MLSession, str]) -> None:
        """Only the model's features are echoed back."""
        session, model_id = linear_session
        result = session.predict(model_id, {"x": "3", "unused": 1})
        assert result.inputs == {"x": "3"}


class TestNearestNeighbors:
    """Tests for the default nearest-neighbour strategy."""

    def test_classification_vote(self, fruit_session: tuple[MLSession, str]) -> None:
        """The majority label of the nearest rows wins."""
        session, model_id = fruit_session
        result = session.predict(model_id, {"weight": 151, "size": 7.1})
        assert result.prediction == "apple"
        assert result.confidence == pytest.approx(1.0)

    def test_regression_weighted_mean(self, linear_session: tuple[MLSession, str]) -> None:
        """Inverse-distance weights centre the prediction on the exact match."""
        session, model_id = linear_session
        result = session.predict(model_id, {"x": 3})
        assert result.prediction == pytest.approx(7.0)
        assert 0.0 <= result.confidence <= 1.0

    def test_neighbors_clamped_to_dataset(self, session: MLSession) -> None:
        """Fewer rows than neighbours uses every row."""
        frame = pd.DataFrame({"x": [1.0, 2.0, 3.0], "y": [10.0, 20.0, 30.0]})
        session.load_dataset(frame)
        model = session.train("regression", "linear_regression", ["x"], "y")

        result = session.predict(model.id, {"x": 2})

        assert result.prediction == pytest.approx(20.0)

    def test_empty_dataset(self, linear_session: tuple[MLSession, str]) -> None:
        """Without data there is nothing to compare against."""
        session, model_id = linear_session
        session.load_dataset(Dataset.empty())
        with pytest.raises(InsufficientData, match="No training data available"):
            session.predict(model_id, {"x": 1})

    def test_clustering_without_target(self, session: MLSession, blobs: np.ndarray) -> None:
        """Clusters without a target answer 0, not a centroid index."""
        session.load_dataset(pd.DataFrame(blobs, columns=["a", "b"]))
        model = session.train("clustering", "kmeans", ["a", "b"], hyperparameters={"k": 2})

        for point in ({"a": 9.8, "b": 10.1}, {"a": 0.1, "b": -0.2}):
            result = session.predict(model.id, point)
            assert result.prediction == 0
            assert result.confidence == pytest.approx(0.8)

    def test_clustering_echoes_nearest_target(
        self, session: MLSession, blobs: np.ndarray
    ) -> None:
        """A clustering model with a target returns the closest row's value verbatim."""
        frame = pd.DataFrame(blobs, columns=["a", "b"])
        frame["group"] = ["low"] * 20 + ["high"] * 20
        frame.loc[5, ["a", "b"]] = [3.0, 3.0]
        frame.loc[5, "group"] = "odd"
        session.load_dataset(frame)
        model = session.train("clustering", "kmeans", ["a", "b"], "group", {"k": 2})

        assert session.predict(model.id, {"a": 9.9, "b": 10.0}).prediction == "high"
        assert session.predict(model.id, {"a": -0.1, "b": 0.1}).prediction == "low"
        result = session.predict(model.id, {"a": 3.1, "b": 2.9})
        assert result.prediction == "odd"
        assert result.confidence == pytest.approx(0.8)

    def test_clustering_missing_target_value(self, session: MLSession) -> None:
        """A blank target on the closest row answers 0."""
        frame = pd.DataFrame({"a": [0.0, 5.0, 10.0], "group": ["x", None, "z"]})
        session.load_dataset(frame)
        model = session.train("clustering", "kmeans", ["a"], "group", {"k": 2})

        assert session.predict(model.id, {"a": 5.1}).prediction == 0

    def test_regression_confidence_zero_on_noisy_neighbors(self, session: MLSession) -> None:
        """Spread-out neighbour targets clamp the confidence to zero."""
        frame = pd.DataFrame({"x": [0.0, 1.0, 2.0, 3.0, 4.0, 5.0], "y": [0.0, 10.0] * 3})
        session.load_dataset(frame)
        model = session.train("regression", "linear_regression", ["x"], "y")

        result = session.predict(model.id, {"x": 2.5})

        # neighbours x=2,3,1,4,0 at distances .5,.5,1.5,1.5,2.5
        distances = np.array([0.5, 0.5, 1.5, 1.5, 2.5])
        values = np.array([0.0, 10.0, 10.0, 0.0, 0.0])
        weights = 1.0 / (distances + 0.001)
        expected = float(np.sum(weights * values) / np.sum(weights))
        assert result.prediction == pytest.approx(round(expected, 4))
        assert result.confidence == 0.0

    def test_regression_confidence_formula(self, session: MLSession) -> None:
        """Confidence is 1 - variance / (|prediction| + 1) over the neighbour targets."""
        frame = pd.DataFrame({"x": [0.0, 1.0, 2.0, 3.0], "y": [1.0, 2.0, 3.0, 5.0]})
        session.load_dataset(frame)
        model = session.train("regression", "linear_regression", ["x"], "y")

        result = session.predict(model.id, {"x": 1})

        distances = np.array([0.0, 1.0, 1.0, 2.0])
        values = np.array([2.0, 1.0, 3.0, 5.0])
        weights = 1.0 / (distances + 0.001)
        expected = float(np.sum(weights * values) / np.sum(weights))
        variance = float(np.mean((values - expected) ** 2))
        assert result.prediction == pytest.approx(round(expected, 4))
        assert result.confidence == pytest.approx(max(0.0, 1.0 - variance / (abs(expected) + 1.0)))
        assert 0.0 < result.confidence < 1.0

    def test_fingerprint_hashed_once(
        self, linear_session: tuple[MLSession, str], monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """Repeated requests reuse the dataset hash instead of rehashing the frame."""
        session, model_id = linear_session
        calls = []

        def counting_hash(frame: pd.DataFrame) -> str:
            calls.append(len(frame))
            return "fixed"

        monkeypatch.setattr("tabml.modeling.dataset.hash_dataframe", counting_hash)
        session.load_dataset(session.dataset.frame.copy())

        for x in range(5):
            session.predict(model_id, {"x": x})

        assert len(calls) == 1

    def test_vote_tie_goes_to_first_seen(self) -> None:
        """Equal vote counts pick the label of the closer-ranked row."""
        session = MLSession()
        session.engine.config = PredictionConfig(neighbors=2)
        frame = pd.DataFrame({"x": [0.0, 2.0, 10.0, 11.0, 12.0], "label": ["b", "a", "a", "b", "b"]})
        session.load_dataset(frame)
        model = session.train("classification", "decision_tree", ["x"], "label")

        result = session.predict(model.id, {"x": 1})

        assert result.prediction == "b"
        assert result.confidence == pytest.approx(0.5)

    def test_configured_neighbors(self, linear_frame: pd.DataFrame) -> None:
        """neighbors=1 returns the closest row's target."""
        session = MLSession()
        session.engine.config = PredictionConfig(neighbors=1)
        session.load_dataset(linear_frame)
        model = session.train("regression", "linear_regression", ["x"], "y")

        assert session.predict(model.id, {"x": 4.2}).prediction == pytest.approx(9.0)


class TestModelStrategy:
    """Tests for predictions from the stored parameters."""

    def test_linear_model(self, linear_session: tuple[MLSession, str]) -> None:
        """The fitted line extrapolates beyond the data."""
        session, model_id = linear_session
        result = session.engine.predict(model_id, {"x": 20}, strategy="model")
        assert result.prediction == pytest.approx(41.0)
        assert result.confidence is None

    def test_tree_decodes_labels(self, fruit_session: tuple[MLSession, str]) -> None:
        """Tree predictions are mapped back to the original labels."""
        session, model_id = fruit_session
        result = session.engine.predict(model_id, {"weight": 305, "size": 12}, strategy="model")
        assert result.prediction == "melon"

    def test_logistic_confidence(self, session: MLSession, separable_frame: pd.DataFrame) -> None:
        """Logistic predictions carry the winning class probability."""
        session.load_dataset(separable_frame)
        model = session.train("classification", "logistic_regression", ["x1", "x2"], "label")

        result = session.engine.predict(model.id, {"x1": 2.5, "x2": 2.0}, strategy="model")

        assert result.prediction == 1
        assert 0.5 < result.confidence <= 1.0

    def test_model_strategy_without_dataset(self, linear_session: tuple[MLSession, str]) -> None:
        """Stored parameters do not need the dataset."""
        session, model_id = linear_session
        session.load_dataset(Dataset.empty())
        result = session.engine.predict(model_id, {"x": 0}, strategy="model")
        assert result.prediction == pytest.approx(1.0)

    def test_clustering_nearest_centroid(self, session: MLSession, blobs: np.ndarray) -> None:
        """The model strategy answers with the index of the nearest centroid."""
        session.load_dataset(pd.DataFrame(blobs, columns=["a", "b"]))
        model = session.train("clustering", "kmeans", ["a", "b"], hyperparameters={"k": 2})
        centroids = np.asarray(model.parameters["centroids"])
        expected = int(np.linalg.norm(centroids - [10.0, 10.0], axis=1).argmin())

        result = session.engine.predict(model.id, {"a": 9.8, "b": 10.1}, strategy="model")

        assert result.prediction == expected
        assert result.confidence is None

    def test_exported_parameters_do_not_leak(
        self, linear_session: tuple[MLSession, str]
    ) -> None:
        """Editing a serialised copy of a model leaves later predictions unchanged."""
        session, model_id = linear_session
        before = session.engine.predict(model_id, {"x": 20}, strategy="model")

        exported = session.registry.get(model_id).to_dict()
        exported["parameters"]["slope"] = 100.0
        exported["parameters"]["intercept"] = -5.0

        after = session.engine.predict(model_id, {"x": 20}, strategy="model")
        assert after.prediction == pytest.approx(before.prediction)
        assert after.prediction == pytest.approx(41.0)

    def test_unknown_strategy(self, linear_session: tuple[MLSession, str]) -> None:
        """An unrecognised strategy name is rejected as bad input."""
        session, model_id = linear_session
        with pytest.raises(InvalidInput, match="Unknown prediction strategy: 'fastest'"):
            session.engine.predict(model_id, {"x": 1}, strategy="fastest")


class TestBatchPrediction:
    """Tests for predict_many()."""

    def test_predict_many(self, linear_session: tuple[MLSession, str]) -> None:
        """One result per input row, in order."""
        session, model_id = linear_session
        engine: PredictionEngine = session.engine
        results = engine.predict_many(model_id, [{"x": 20}, {"x": 0}], strategy="model")
        assert [r.prediction for r in results] == pytest.approx([41.0, 1.0])
