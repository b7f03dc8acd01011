"""
Schema definitions using Pandera for data validation.

Tables handed to callers (registry summaries, comparison rankings) are
validated against these contracts before they leave the library.
"""

from tabml.schemas.output import ComparisonRankingSchema, ModelSummarySchema

__all__ = [
    "ComparisonRankingSchema",
    "ModelSummarySchema",
]
