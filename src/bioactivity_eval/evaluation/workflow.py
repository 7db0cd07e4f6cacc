"""
End-to-end sensitivity evaluation.

Chains the pipeline stages on one FeatureMatrix:

    1. univariate exact-test associations with BH FDR
    2. K-fold cross-validation of every configured method
    3. pooled rank AUC per method
    4. grid-averaged predictions for the unlabeled test subset
    5. native feature importances from one final model

Structural errors (InvalidMatrixError, EmptyTrainingSetError) propagate.
Per-method problems are recorded in the report and the run continues.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

import numpy as np
import pandas as pd
from loguru import logger

from ..data.feature_matrix import FeatureMatrix, label_counts
from ..exceptions import EmptyTrainingSetError, FitFailure, NoImportanceAvailableError
from ..models.scorers import ScorerAdapter, create_scorer, quiet_convergence
from ..qsar.feature_importance import top_importances
from ..utils.config_loader import EvaluationConfig
from .cross_validation import CrossValidationHarness, CrossValidationResult
from .metrics import auc_by_method
from .significance_testing import (
    AssociationResult,
    associations_to_frame,
    compute_associations,
    significant_features,
)


@dataclass
class EvaluationReport:
    """Everything a report generator needs from one run."""
    associations: List[AssociationResult]
    significant: List[str]
    cv_result: CrossValidationResult
    aucs: Dict[str, Optional[float]]
    test_predictions: pd.DataFrame
    importances: Optional[List[Tuple[str, float]]] = None
    importance_method: Optional[str] = None
    notes: List[str] = field(default_factory=list)

    def method_summary(self) -> pd.DataFrame:
        """Per method: (fold, configuration) fits succeeded/failed and AUC (or 'undefined')."""
        summary = self.cv_result.summary()
        summary["auc"] = [
            self.aucs[m] if self.aucs.get(m) is not None else "undefined"
            for m in summary["method"]
        ]
        return summary

    def associations_frame(self) -> pd.DataFrame:
        return associations_to_frame(self.associations)

    def to_dict(self) -> Dict[str, Any]:
        """JSON-serializable summary."""
        return {
            "n_features": len(self.associations),
            "significant_features": self.significant,
            "methods": self.method_summary().to_dict(orient="records"),
            "importance_method": self.importance_method,
            "top_importances": [
                {"feature": f, "importance": s} for f, s in (self.importances or [])
            ],
            "notes": self.notes,
        }


def build_methods(config: EvaluationConfig) -> List[ScorerAdapter]:
    """Instantiate the configured methods with any grid overrides."""
    return [create_scorer(name, config.param_grids.get(name)) for name in config.methods]


def predict_test_subset(
    matrix: FeatureMatrix,
    methods: List[ScorerAdapter],
    seed: int,
) -> pd.DataFrame:
    """
    Fit every configuration of every method on all labeled samples and
    average P(Sensitive) over the grid for each unlabeled sample.

    Methods with no successful configuration are left out of the table.
    """
    training = matrix.training_subset()
    test = matrix.test_subset()
    table = pd.DataFrame({"sample_id": list(test.sample_ids)})
    if len(test) == 0:
        return table

    for scorer in methods:
        probas = []
        for params in scorer.param_grid:
            try:
                probas.append(scorer.fit(training, params, random_state=seed).predict_probabilities(test))
            except FitFailure as e:
                logger.warning(f"Final fit skipped: {e}")
        if probas:
            table[scorer.name] = np.mean(probas, axis=0)
        else:
            logger.error(f"{scorer.name}: no configuration could be fit on the full training set")
    return table


def run_evaluation(
    matrix: FeatureMatrix,
    config: Optional[EvaluationConfig] = None,
) -> EvaluationReport:
    """
    Run the whole evaluation on a (partially labeled) feature matrix.

    Args:
        matrix: All samples; unlabeled ones form the test subset
        config: Run configuration (defaults to EvaluationConfig())

    Returns:
        EvaluationReport

    Raises:
        EmptyTrainingSetError: if no sample is labeled
    """
    config = config or EvaluationConfig()
    training = matrix.training_subset()
    if len(training) == 0:
        raise EmptyTrainingSetError("Matrix has no labeled samples")

    n_sens, n_res = label_counts(training.labels)
    logger.info(
        f"Training set: {len(training)} samples ({n_sens} Sensitive, {n_res} Resistant); "
        f"test set: {len(matrix) - len(training)} samples; {matrix.n_features} features"
    )
    notes: List[str] = []

    associations = compute_associations(
        training, n_jobs=config.n_jobs, fdr_threshold=config.fdr_threshold
    )
    significant = significant_features(associations, config.fdr_threshold)

    methods = build_methods(config)
    harness = CrossValidationHarness(
        methods,
        n_folds=config.cv_folds,
        seed=config.seed,
        stratified=config.stratified,
        n_jobs=config.n_jobs,
    )
    cv_result = harness.run(training)
    notes.extend(cv_result.failures.values())

    aucs = auc_by_method(cv_result.predictions)
    for method in cv_result.failures:
        aucs[method] = None
    for method, auc in aucs.items():
        if auc is None:
            logger.info(f"{method}: AUC undefined")
        else:
            logger.info(f"{method}: AUC = {auc:.4f}")

    with quiet_convergence():
        test_predictions = predict_test_subset(matrix, methods, config.seed)

        importances = None
        if config.importance_method is not None:
            importances = _final_importances(training, config, notes)

    return EvaluationReport(
        associations=associations,
        significant=significant,
        cv_result=cv_result,
        aucs=aucs,
        test_predictions=test_predictions,
        importances=importances,
        importance_method=config.importance_method,
        notes=notes,
    )


def _final_importances(
    training: FeatureMatrix,
    config: EvaluationConfig,
    notes: List[str],
) -> Optional[List[Tuple[str, float]]]:
    scorer = create_scorer(
        config.importance_method, config.param_grids.get(config.importance_method)
    )
    params = config.importance_params if config.importance_params is not None else scorer.param_grid[0]
    try:
        fitted = scorer.fit(training, params, random_state=config.seed)
        return top_importances(fitted, config.top_n_importances)
    except (FitFailure, NoImportanceAvailableError) as e:
        logger.warning(f"Importance step skipped: {e}")
        notes.append(f"importance step skipped: {e}")
        return None
