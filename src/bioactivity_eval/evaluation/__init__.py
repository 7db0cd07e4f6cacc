"""
bioactivity-eval Evaluation Module

Statistical and cross-validated evaluation of fingerprint features and
sensitivity classifiers.

Modules:
--------
- significance_testing: Fisher exact tests per feature, Benjamini-Hochberg FDR
- cross_validation: Seeded fold assignment and the multi-method CV harness
- metrics: Rank-sum AUC and ROC ordering
- workflow: End-to-end evaluation producing an EvaluationReport

Literature:
-----------
- Benjamini & Hochberg (1995) "Controlling the False Discovery Rate" J R Stat Soc B
- Hand & Till (2001) "A Simple Generalisation of the Area Under the ROC Curve
  for Multiple Class Classification Problems" Machine Learning 45:171-186

Example:
--------
>>> from bioactivity_eval.evaluation import significance_testing, cross_validation, metrics
>>>
>>> training = matrix.training_subset()
>>> results = significance_testing.compute_associations(training)
>>>
>>> harness = cross_validation.CrossValidationHarness(methods, n_folds=5, seed=42)
>>> cv = harness.run(training)
>>> metrics.auc_by_method(cv.predictions)
"""

from . import significance_testing
from . import cross_validation
from . import metrics
from . import workflow

__all__ = [
    "significance_testing",
    "cross_validation",
    "metrics",
    "workflow",
]
