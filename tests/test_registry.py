"""Tests for the model registry."""

import pandas as pd
import pytest

from tabml.config import DecisionTreeParams, KMeansParams, LinearRegressionParams
from tabml.errors import InvalidInput, ModelNotFound
from tabml.modeling.artifact import ModelArtifact, Performance
from tabml.modeling.registry import ModelRegistry


def make_artifact(model_id: str, performance: Performance | None = None) -> ModelArtifact:
    return ModelArtifact(
        id=model_id,
        name=f"Model {model_id}",
        task="regression",
        algorithm="linear_regression",
        features=("x",),
        target="y",
        hyperparameters=LinearRegressionParams(),
        parameters={"slope": 2.0, "intercept": 1.0},
        performance=performance,
    )


class TestModelRegistry:
    """Tests for ModelRegistry."""

    def test_register_and_get(self, registry: ModelRegistry) -> None:
        """A registered model can be looked up by id."""
        artifact = make_artifact("a1")
        registry.register(artifact)

        assert registry.get("a1") is artifact
        assert "a1" in registry
        assert len(registry) == 1

    def test_duplicate_id(self, registry: ModelRegistry) -> None:
        """Registering the same id twice fails."""
        registry.register(make_artifact("a1"))
        with pytest.raises(InvalidInput, match="already registered"):
            registry.register(make_artifact("a1"))

    def test_unknown_id(self, registry: ModelRegistry) -> None:
        """Lookups of unknown ids raise ModelNotFound."""
        with pytest.raises(ModelNotFound, match="Model not found: nope"):
            registry.get("nope")
        with pytest.raises(ModelNotFound):
            registry.remove("nope")

    def test_model_not_found_is_key_error(self, registry: ModelRegistry) -> None:
        """ModelNotFound can be caught as KeyError."""
        with pytest.raises(KeyError):
            registry.get("nope")

    def test_remove(self, registry: ModelRegistry) -> None:
        """Removed models are no longer listed."""
        registry.register(make_artifact("a1"))
        registry.register(make_artifact("a2"))

        removed = registry.remove("a1")

        assert removed.id == "a1"
        assert [m.id for m in registry.list_models()] == ["a2"]

    def test_insertion_order(self, registry: ModelRegistry) -> None:
        """Listings keep registration order."""
        for model_id in ("c", "a", "b"):
            registry.register(make_artifact(model_id))
        assert [m.id for m in registry.list_models()] == ["c", "a", "b"]

    def test_list_available(self, registry: ModelRegistry) -> None:
        """Only evaluated models are available."""
        registry.register(make_artifact("a1"))
        registry.register(make_artifact("a2", Performance(r2_score=0.9, rmse=0.1, mae=0.1)))

        assert [m.id for m in registry.list_available()] == ["a2"]

    def test_clear(self, registry: ModelRegistry) -> None:
        """clear() drops every model."""
        registry.register(make_artifact("a1"))
        registry.clear()
        assert len(registry) == 0

    def test_new_id_is_unused(self, registry: ModelRegistry) -> None:
        """Generated ids are unique and not registered yet."""
        ids = {registry.new_id() for _ in range(50)}
        assert len(ids) == 50
        assert all(i not in registry for i in ids)


class TestRegistrySummary:
    """Tests for the summary table."""

    def test_summary_rows(self, registry: ModelRegistry) -> None:
        """Each model gives one row with its headline metrics."""
        registry.register(make_artifact("a1", Performance(r2_score=0.75, rmse=0.5, mae=0.4)))
        registry.register(
            ModelArtifact(
                id="k1",
                name="clusters",
                task="clustering",
                algorithm="kmeans",
                features=("x1", "x2"),
                target=None,
                hyperparameters=KMeansParams(k=2),
                parameters={"centroids": [[0.0, 0.0], [1.0, 1.0]]},
                performance=Performance(accuracy=1.0),
            )
        )

        summary = registry.summary()

        assert list(summary["id"]) == ["a1", "k1"]
        assert summary.loc[0, "r2_score"] == pytest.approx(0.75)
        assert pd.isna(summary.loc[0, "accuracy"])
        assert summary.loc[1, "accuracy"] == pytest.approx(1.0)
        assert summary.loc[1, "n_features"] == 2

    def test_empty_summary(self, registry: ModelRegistry) -> None:
        """An empty registry gives an empty table."""
        assert registry.summary().empty


class TestModelArtifact:
    """Tests for the artifact invariants."""

    def test_centroid_width_must_match_features(self) -> None:
        """K-means centroids must have one coordinate per feature."""
        with pytest.raises(InvalidInput, match="expect 2 features"):
            ModelArtifact(
                id="k1",
                name="clusters",
                task="clustering",
                algorithm="kmeans",
                features=("x",),
                target=None,
                hyperparameters=KMeansParams(k=1),
                parameters={"centroids": [[0.0, 0.0]]},
            )

    def test_tree_split_feature_in_range(self) -> None:
        """Tree splits may only reference declared features."""
        nodes = [
            {"kind": "split", "feature": 3, "threshold": 0.5, "left": 1, "right": 2,
             "n_samples": 2, "impurity": 0.5},
            {"kind": "leaf", "prediction": 0.0, "n_samples": 1, "impurity": 0.0},
            {"kind": "leaf", "prediction": 1.0, "n_samples": 1, "impurity": 0.0},
        ]
        with pytest.raises(InvalidInput, match="splits on feature 3"):
            ModelArtifact(
                id="t1",
                name="tree",
                task="classification",
                algorithm="decision_tree",
                features=("a", "b"),
                target="y",
                hyperparameters=DecisionTreeParams(),
                parameters={"task": "classification", "max_depth": 5, "nodes": nodes},
            )

    def test_needs_a_feature(self) -> None:
        """Models without features are rejected."""
        with pytest.raises(InvalidInput, match="at least one feature"):
            ModelArtifact(
                id="k1",
                name="clusters",
                task="clustering",
                algorithm="kmeans",
                features=(),
                target=None,
                hyperparameters=KMeansParams(),
                parameters={},
            )

    def test_dict_round_trip(self) -> None:
        """from_dict() restores to_dict() output."""
        artifact = make_artifact("a1", Performance(r2_score=0.5, rmse=1.0, mae=0.8))
        restored = ModelArtifact.from_dict(artifact.to_dict())
        assert restored == artifact

    def test_decode_label(self) -> None:
        """Encoded indices map back to the stored labels."""
        artifact = ModelArtifact(
            id="t1",
            name="tree",
            task="classification",
            algorithm="decision_tree",
            features=("a",),
            target="y",
            hyperparameters=DecisionTreeParams(),
            parameters={"nodes": []},
            class_labels=["no", "yes"],
        )
        assert artifact.decode_label(1.0) == "yes"
        assert artifact.decode_label(7) == 7

    def test_parameters_are_read_only(self) -> None:
        """Stored parameters cannot be changed in place."""
        artifact = make_artifact("a1")
        with pytest.raises(TypeError):
            artifact.parameters["slope"] = 100.0

    def test_constructor_copies_parameters(self) -> None:
        """Later edits to the caller's dict do not reach the artifact."""
        params = {"centroids": [[0.0, 0.0], [1.0, 1.0]]}
        artifact = ModelArtifact(
            id="k1",
            name="clusters",
            task="clustering",
            algorithm="kmeans",
            features=("x1", "x2"),
            target=None,
            hyperparameters=KMeansParams(k=2),
            parameters=params,
        )
        params["centroids"][0][0] = 99.0
        assert artifact.parameters["centroids"][0] == (0.0, 0.0)

    def test_to_dict_returns_copies(self) -> None:
        """Editing to_dict() output leaves the artifact untouched."""
        artifact = make_artifact(
            "a1", Performance(accuracy=0.5, confusion_matrix=[[1, 1], [0, 2]])
        )
        data = artifact.to_dict()
        data["parameters"]["slope"] = 100.0
        data["performance"]["confusion_matrix"][0][0] = 7

        assert artifact.parameters["slope"] == 2.0
        assert artifact.performance.confusion_matrix == ((1, 1), (0, 2))
        assert artifact.to_dict()["parameters"] == {"slope": 2.0, "intercept": 1.0}
