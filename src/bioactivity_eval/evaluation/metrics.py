"""
Ranking-based performance metrics for binary sensitivity classifiers.

AUC is computed in closed form from rank sums (Hand & Till 2001, Eq. 3)
instead of integrating an explicit ROC curve:

    AUC = (S0 - n_p (n_p + 1) / 2) / (n_p * n_n)

where S0 is the sum of the fractional ranks of the Sensitive predictions.
This is the Mann-Whitney U statistic normalised to [0, 1], i.e. the
probability that a random Sensitive sample scores above a random Resistant
one (ties count one half).

Literature:
-----------
- Hand & Till (2001) "A Simple Generalisation of the Area Under the ROC Curve
  for Multiple Class Classification Problems" Machine Learning 45:171-186
- Hanley & McNeil (1982) "The meaning and use of the area under a receiver
  operating characteristic (ROC) curve" Radiology 143(1):29-36
"""

from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

import numpy as np
from scipy import stats
from loguru import logger

from ..data.feature_matrix import Label
from ..exceptions import DegenerateLabelSetError


def _positive_mask(labels: Iterable[Any]) -> np.ndarray:
    mask = []
    for label in labels:
        if isinstance(label, Label):
            mask.append(label is Label.SENSITIVE)
        elif isinstance(label, str):
            mask.append(Label(label) is Label.SENSITIVE)
        elif label in (0, 1):
            mask.append(bool(label))
        else:
            raise ValueError(f"Label must be Sensitive/Resistant or 1/0, got {label!r}")
    return np.array(mask, dtype=bool)


def fractional_ranks(scores: Sequence[float]) -> np.ndarray:
    """
    1-based ranks of scores in ascending order; tied scores share the mean
    rank of their group.

    Example:
    --------
    >>> fractional_ranks([0.1, 0.5, 0.5, 0.9])
    array([1. , 2.5, 2.5, 4. ])
    """
    return stats.rankdata(np.asarray(scores, dtype=float), method="average")


def rank_auc(scores: Sequence[float], labels: Sequence[Any]) -> float:
    """
    Area under the ROC curve from rank statistics.

    Parameters:
    -----------
    scores : Sequence[float]
        Predicted probability (or any score) of Sensitive
    labels : Sequence[Any]
        True labels: Label, "Sensitive"/"Resistant", or 1/0

    Returns:
    --------
    auc : float
        1.0 for perfect separation, 0.0 for perfect anti-separation,
        0.5 when all scores are tied

    Raises:
    -------
    DegenerateLabelSetError
        If only one class is present
    ValueError
        If scores and labels differ in length

    Example:
    --------
    >>> rank_auc([0.9, 0.8, 0.2, 0.1], ["Sensitive", "Sensitive", "Resistant", "Resistant"])
    1.0

    Notes:
    ------
    Depends only on the rank order of the scores, so it is invariant to any
    strictly increasing transform of them.
    """
    if len(scores) != len(labels):
        raise ValueError("scores and labels must have the same length")

    positive = _positive_mask(labels)
    n_p = int(positive.sum())
    n_n = int(len(positive) - n_p)

    if n_p == 0 or n_n == 0:
        raise DegenerateLabelSetError(
            f"AUC undefined with {n_p} Sensitive and {n_n} Resistant samples"
        )

    ranks = fractional_ranks(scores)
    s0 = ranks[positive].sum()
    return float((s0 - n_p * (n_p + 1) / 2.0) / (n_p * n_n))


def auc_from_records(records: Sequence[Any]) -> float:
    """AUC over pooled prediction records (anything with .probability and .label)."""
    return rank_auc(
        [r.probability for r in records],
        [r.label for r in records],
    )


def auc_by_method(predictions: Mapping[str, Sequence[Any]]) -> Dict[str, Optional[float]]:
    """
    Pooled AUC per method.

    A method whose predictions contain a single class is reported as None
    (undefined); the remaining methods are still scored.
    """
    aucs: Dict[str, Optional[float]] = {}
    for method, records in predictions.items():
        try:
            aucs[method] = auc_from_records(records)
        except DegenerateLabelSetError as e:
            logger.warning(f"{method}: {e}")
            aucs[method] = None
    return aucs


def roc_ordering(records: Sequence[Any]) -> List[Tuple[Any, float]]:
    """
    Records sorted by descending score, each paired with its fractional rank.

    This is the ordering a ROC curve is traced along; ties keep input order.
    """
    ranks = fractional_ranks([r.probability for r in records])
    order = np.argsort(-ranks, kind="stable")
    return [(records[i], float(ranks[i])) for i in order]
