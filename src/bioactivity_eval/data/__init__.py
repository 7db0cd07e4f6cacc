"""
Data containers for fingerprint feature matrices and sensitivity labels.
"""

from .feature_matrix import FeatureMatrix, Label, label_counts

__all__ = [
    "FeatureMatrix",
    "Label",
    "label_counts",
]
