"""
Deterministic fingerprints for datasets.

A model artifact records the fingerprint of the dataset it was trained on
so the prediction engine can notice when the live dataset has changed.
"""

import hashlib

import pandas as pd


def hash_dataframe(
    df: pd.DataFrame,
    columns: list[str] | None = None,
) -> str:
    """
    Compute a deterministic content hash of a DataFrame.

    Args:
        df: DataFrame to hash.
        columns: Optional subset of columns to include.

    Returns:
        12-character hex digest.
    """
    if columns:
        df = df[columns]

    hasher = hashlib.md5()
    hasher.update(f"{df.shape}".encode())
    hasher.update(",".join(str(c) for c in df.columns).encode())
    if len(df.columns) > 0:
        hasher.update(pd.util.hash_pandas_object(df, index=False).to_numpy().tobytes())
    return hasher.hexdigest()[:12]
