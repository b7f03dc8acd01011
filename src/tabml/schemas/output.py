"""
Pandera schemas for tables the engine produces.
"""

from typing import Optional

import pandera as pa
from pandera.typing import Series

TASK_KINDS = ["classification", "regression", "clustering"]
ALGORITHMS = ["linear_regression", "logistic_regression", "kmeans", "decision_tree"]


class ModelSummarySchema(pa.DataFrameModel):
    """
    Schema for the registry summary table.

    One row per registered model; metric columns are empty when the
    model's task does not report them.
    """

    id: Series[str] = pa.Field(unique=True, description="Model identifier")
    name: Series[str] = pa.Field(description="Display name")
    task: Series[str] = pa.Field(isin=TASK_KINDS)
    algorithm: Series[str] = pa.Field(isin=ALGORITHMS)
    n_features: Series[int] = pa.Field(ge=1)
    accuracy: Optional[Series[float]] = pa.Field(ge=0, le=1, nullable=True)
    f1_score: Optional[Series[float]] = pa.Field(ge=0, le=1, nullable=True)
    rmse: Optional[Series[float]] = pa.Field(ge=0, nullable=True)
    r2_score: Optional[Series[float]] = pa.Field(nullable=True)
    trained_at: Series[pa.DateTime] = pa.Field(description="Training timestamp")

    class Config:
        """Schema configuration."""

        name = "ModelSummarySchema"
        strict = False  # Allow extra columns
        coerce = True


class ComparisonRankingSchema(pa.DataFrameModel):
    """
    Schema for a model comparison ranking.

    Ranks start at 1 and follow descending score.
    """

    rank: Series[int] = pa.Field(ge=1, unique=True)
    model_id: Series[str] = pa.Field(unique=True)
    algorithm: Series[str] = pa.Field(isin=ALGORITHMS)
    score: Series[float] = pa.Field(nullable=True)
    cv_mean: Optional[Series[float]] = pa.Field(nullable=True)
    cv_std: Optional[Series[float]] = pa.Field(ge=0, nullable=True)
    strengths: Series[str] = pa.Field(description="Semicolon-separated strengths")
    weaknesses: Series[str] = pa.Field(description="Semicolon-separated weaknesses")

    class Config:
        """Schema configuration."""

        name = "ComparisonRankingSchema"
        strict = False
        coerce = True
