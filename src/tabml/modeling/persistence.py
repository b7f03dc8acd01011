"""
Model package persistence (export/save/load).

A model package is a single JSON document holding the artifact, metadata
about the dataset it was exported alongside, and an implementation block
naming the estimator class that restores it.
"""

import json
import math
from datetime import datetime
from pathlib import Path
from typing import Any

from tabml import __version__
from tabml.errors import InvalidInput
from tabml.estimators import ESTIMATOR_CLASSES
from tabml.modeling.artifact import ModelArtifact
from tabml.modeling.dataset import Dataset
from tabml.utils.logging import get_logger

log = get_logger(__name__)

PACKAGE_FORMAT_VERSION = "1.0.0"
PACKAGE_SUFFIX = ".model.json"


def _json_safe(obj: Any) -> Any:
    """Replace non-finite floats with None so the package is strict JSON."""
    if isinstance(obj, float) and not math.isfinite(obj):
        return None
    if isinstance(obj, dict):
        return {k: _json_safe(v) for k, v in obj.items()}
    if isinstance(obj, (list, tuple)):
        return [_json_safe(v) for v in obj]
    return obj


def export_model_package(artifact: ModelArtifact, dataset: Dataset | None = None) -> dict[str, Any]:
    """
    Build the package document for a model.

    Args:
        artifact: Model to export.
        dataset: Dataset the metadata block describes (optional).

    Returns:
        JSON-serialisable package mapping.
    """
    dataset = dataset if dataset is not None else Dataset.empty()
    estimator_class = ESTIMATOR_CLASSES[artifact.algorithm]
    n_rows, n_columns = dataset.shape

    return _json_safe(
        {
            "model": artifact.to_dict(),
            "metadata": {
                "exported_at": datetime.now().isoformat(),
                "data_columns": dataset.columns,
                "column_types": {c: t.value for c, t in dataset.column_types.items()},
                "data_shape": {"rows": n_rows, "columns": n_columns},
                "version": PACKAGE_FORMAT_VERSION,
                "library_version": __version__,
            },
            "implementation": {
                "algorithm": artifact.algorithm.value,
                "estimator": f"{estimator_class.__module__}.{estimator_class.__name__}",
                "features": list(artifact.features),
                "target": artifact.target,
                "hyperparameters": artifact.hyperparameters.model_dump(),
            },
        }
    )


def save_model_package(
    artifact: ModelArtifact,
    output_path: Path,
    dataset: Dataset | None = None,
) -> Path:
    """Write a model package to disk.

    Args:
        artifact: Model to export.
        output_path: Target file, or a base path without extension
            (PACKAGE_SUFFIX is appended).
        dataset: Dataset the metadata block describes.

    Returns:
        Path of the written file.
    """
    output_path = Path(output_path)
    if output_path.suffix != ".json":
        output_path = output_path.with_name(output_path.name + PACKAGE_SUFFIX)

    output_path.parent.mkdir(parents=True, exist_ok=True)

    package = export_model_package(artifact, dataset)
    with open(output_path, "w", encoding="utf-8") as f:
        json.dump(package, f, indent=2)
    log.info("Saved model package", path=str(output_path), model_id=artifact.id)

    return output_path


def load_model_package(path: Path) -> tuple[ModelArtifact, dict[str, Any]]:
    """Load a model package from disk.

    Args:
        path: Package file.

    Returns:
        Tuple of (artifact, metadata_dict).

    Raises:
        FileNotFoundError: If the file doesn't exist.
        InvalidInput: If the file is not a valid model package.
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Model package not found: {path}")

    with open(path, encoding="utf-8") as f:
        try:
            package = json.load(f)
        except json.JSONDecodeError as e:
            raise InvalidInput(f"Model package is not valid JSON: {e}") from e

    if not isinstance(package, dict) or "model" not in package:
        raise InvalidInput(f"Not a model package: {path}")

    metadata = package.get("metadata") or {}
    version = metadata.get("version")
    if version and version.split(".")[0] != PACKAGE_FORMAT_VERSION.split(".")[0]:
        raise InvalidInput(f"Unsupported model package version: {version}")

    artifact = ModelArtifact.from_dict(package["model"])
    log.info("Loaded model package", path=str(path), model_id=artifact.id)

    return artifact, metadata
