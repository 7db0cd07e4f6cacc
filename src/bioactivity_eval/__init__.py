"""
bioactivity-eval: Feature Association and Classifier Evaluation for Sensitivity Prediction

A toolkit for:
- Binary fingerprint feature matrices with Sensitive/Resistant/missing labels
- Univariate exact-test feature association with Benjamini-Hochberg FDR
- K-fold cross-validation of heterogeneous classifiers over parameter grids
- Rank-sum (Mann-Whitney) AUC without explicit ROC curves
- Native feature importances from fitted models
"""

__version__ = "0.1.0"

from bioactivity_eval.data.feature_matrix import FeatureMatrix, Label
from bioactivity_eval.evaluation.cross_validation import (
    CrossValidationHarness,
    CrossValidationResult,
    PredictionRecord,
    assign_folds,
)
from bioactivity_eval.evaluation.metrics import auc_by_method, rank_auc
from bioactivity_eval.evaluation.significance_testing import (
    AssociationResult,
    compute_associations,
)
from bioactivity_eval.evaluation.workflow import EvaluationReport, run_evaluation
from bioactivity_eval.models.scorers import (
    FittedScorer,
    ScorerAdapter,
    SklearnScorer,
    create_scorer,
    register_scorer,
)
from bioactivity_eval.qsar.feature_importance import top_importances

__all__ = [
    "__version__",
    "FeatureMatrix",
    "Label",
    "CrossValidationHarness",
    "CrossValidationResult",
    "PredictionRecord",
    "assign_folds",
    "auc_by_method",
    "rank_auc",
    "AssociationResult",
    "compute_associations",
    "EvaluationReport",
    "run_evaluation",
    "FittedScorer",
    "ScorerAdapter",
    "SklearnScorer",
    "create_scorer",
    "register_scorer",
    "top_importances",
]
