"""
Model interpretation for fitted sensitivity scorers.

Components:
- feature_importance: Native importance extraction and top-N ranking
"""

from . import feature_importance

__all__ = [
    "feature_importance",
]
