"""
Modeling layer for training and inference.

Provides the dataset wrapper, model training, the model registry, the
prediction engine and model package persistence.
"""
