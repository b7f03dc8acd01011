"""
tabml: In-process machine learning for tabular datasets.

This package provides from-scratch trainers (linear and logistic
regression, k-means, decision trees), evaluation metrics, a model
registry and a nearest-neighbour prediction engine.
"""

from importlib.metadata import version

__version__ = version("tabml")

__all__ = ["__version__"]
