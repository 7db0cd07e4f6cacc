"""
Feature Importance Extraction

Retrieves and ranks a fitted scorer's native feature-importance scores
(impurity-based importances for tree ensembles, coefficient magnitudes for
linear models). Methods without a native notion (k-NN, kernel SVM, MLP)
raise NoImportanceAvailableError, which callers treat as a soft failure.

References:
    - Breiman (2001) "Random Forests" Machine Learning 45(1):5-32
    - Friedman (2001) "Greedy Function Approximation: A Gradient Boosting
      Machine" Ann. Statist. 29(5):1189-1232
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Tuple

import numpy as np
import pandas as pd
from loguru import logger

from ..exceptions import NoImportanceAvailableError
from ..models.scorers import FittedScorer


@dataclass
class FeatureImportance:
    """Native feature importances of one fitted scorer."""

    method: str
    config_id: str
    feature_names: List[str]
    importance_values: List[float]

    def get_top_features(self, n: int = 10) -> List[Tuple[str, float]]:
        """Top N features by descending score; ties keep column order."""
        if n < 1:
            raise ValueError(f"n must be positive, got {n}")
        sorted_idx = np.argsort(-np.asarray(self.importance_values), kind="stable")
        return [(self.feature_names[i], self.importance_values[i]) for i in sorted_idx[:n]]

    def to_frame(self) -> pd.DataFrame:
        return pd.DataFrame({
            "feature": self.feature_names,
            "importance": self.importance_values,
        }).sort_values("importance", ascending=False, kind="stable").reset_index(drop=True)


def extract_importances(fitted_scorer: FittedScorer) -> FeatureImportance:
    """
    Wrap a fitted scorer's native importances.

    Raises:
        NoImportanceAvailableError: if the scorer reports none
    """
    pairs = fitted_scorer.importances()
    if not pairs:
        raise NoImportanceAvailableError(
            f"{fitted_scorer.method} [{fitted_scorer.config_id}] has no native feature importances"
        )

    names, values = zip(*pairs)
    return FeatureImportance(
        method=fitted_scorer.method,
        config_id=fitted_scorer.config_id,
        feature_names=list(names),
        importance_values=[float(v) for v in values],
    )


def top_importances(fitted_scorer: FittedScorer, n: int = 10) -> List[Tuple[str, float]]:
    """
    Top-N (feature, score) pairs of a fitted scorer, descending by score.

    Args:
        fitted_scorer: Scorer returned by ScorerAdapter.fit()
        n: Number of features to keep

    Returns:
        At most n (feature, score) pairs

    Raises:
        NoImportanceAvailableError: if the scorer reports none

    Example:
        >>> gbm = create_scorer("gradient_boosting")
        >>> fitted = gbm.fit(matrix.training_subset(), gbm.param_grid[0], random_state=42)
        >>> for name, score in top_importances(fitted, n=5):
        ...     print(f"{name}: {score:.3f}")
    """
    top = extract_importances(fitted_scorer).get_top_features(n)
    logger.debug(f"Top {len(top)} features for {fitted_scorer.method}: {[f for f, _ in top]}")
    return top
