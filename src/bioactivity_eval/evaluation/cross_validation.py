"""
K-fold cross-validation harness for comparing sensitivity scorers.

Every registered scorer is trained on each fold's training split across its
whole parameter grid, the held-out fold is scored, and the per-configuration
probabilities are averaged into one prediction per (sample, method).

Key Features:
-------------
- Deterministic fold assignment from an explicit seed (stratified by default)
- Independent (fold, method, configuration) tasks dispatched with joblib
- Skip-and-continue on FitFailure; skipped configurations are counted
- Aggregation only after every task has returned, in a fixed order

Literature:
-----------
- Kohavi (1995) "A Study of Cross-Validation and Bootstrap for Accuracy
  Estimation and Model Selection" IJCAI
- Varma & Simon (2006) "Bias in error estimation when using cross-validation
  for model selection" BMC Bioinformatics 7:91

WARNING: Held-out labels are never visible to a fit. Averaging across the
grid (rather than picking the best configuration per fold) avoids the
optimistic bias of selecting hyperparameters on the evaluation folds.
"""

from collections import defaultdict
from dataclasses import dataclass, field, asdict
from typing import Any, Dict, List, Optional, Sequence, Tuple
import warnings

import numpy as np
import pandas as pd
from joblib import Parallel, delayed
from loguru import logger
from sklearn.model_selection import KFold, StratifiedKFold

from ..data.feature_matrix import FeatureMatrix, Label
from ..exceptions import EmptyTrainingSetError, FitFailure, NoSuccessfulFitError
from ..models.scorers import ScorerAdapter, ParamConfig, config_id, quiet_convergence


@dataclass(frozen=True)
class PredictionRecord:
    """Predicted P(Sensitive) for one held-out sample."""
    sample_id: Any
    method: str
    fold: int
    probability: float
    label: Label
    config_id: Optional[str] = None  # None for records averaged across the grid
    n_configs: int = 1


@dataclass
class CrossValidationResult:
    """Output of CrossValidationHarness.run()."""
    predictions: Dict[str, List[PredictionRecord]]
    raw_predictions: Dict[str, List[PredictionRecord]]
    fit_counts: Dict[str, Tuple[int, int]]
    failures: Dict[str, str]
    fold_assignment: Dict[Any, int]
    n_folds: int
    seed: int

    def succeeded_methods(self) -> List[str]:
        return list(self.predictions)

    def to_frame(self, raw: bool = False) -> pd.DataFrame:
        """All records as one table (aggregated by default)."""
        source = self.raw_predictions if raw else self.predictions
        rows = []
        for records in source.values():
            for r in records:
                row = asdict(r)
                row["label"] = r.label.value
                rows.append(row)
        columns = list(PredictionRecord.__dataclass_fields__)
        return pd.DataFrame(rows, columns=columns)

    def summary(self) -> pd.DataFrame:
        """Per-method (fold, configuration) fit counts and failure status."""
        rows = []
        for method, (ok, failed) in self.fit_counts.items():
            rows.append({
                "method": method,
                "fits_succeeded": ok,
                "fits_failed": failed,
                "n_predictions": len(self.predictions.get(method, [])),
                "error": self.failures.get(method),
            })
        return pd.DataFrame(rows)


def assign_folds(
    training_subset: FeatureMatrix,
    n_folds: int = 5,
    seed: int = 42,
    stratified: bool = True,
) -> Dict[Any, int]:
    """
    Deterministically assign every labeled sample to one of K folds.

    Parameters:
    -----------
    training_subset : FeatureMatrix
        Labeled samples
    n_folds : int
        Number of folds K (>= 2)
    seed : int
        Seed for the shuffling; the same seed and input order always give
        the same assignment
    stratified : bool
        Preserve the Sensitive/Resistant ratio across folds (default: True)

    Returns:
    --------
    folds : Dict[Any, int]
        sample_id -> fold index in [0, K); fold sizes differ by at most one

    Example:
    --------
    >>> folds = assign_folds(matrix.training_subset(), n_folds=5, seed=7)
    >>> np.bincount(list(folds.values()))
    array([4, 4, 4, 4, 4])
    """
    n = len(training_subset)
    if n == 0:
        raise EmptyTrainingSetError("Cannot assign folds on an empty training set")
    if n_folds < 2:
        raise ValueError(f"n_folds must be at least 2, got {n_folds}")
    if n_folds > n:
        raise ValueError(f"n_folds={n_folds} exceeds the {n} labeled samples")

    y = training_subset.label_vector()
    fold_of = np.empty(n, dtype=int)

    if stratified and np.bincount(y, minlength=2).max() >= n_folds:
        splitter = StratifiedKFold(n_splits=n_folds, shuffle=True, random_state=seed)
        with warnings.catch_warnings():
            # minority class smaller than K is expected for small panels
            warnings.simplefilter("ignore", category=UserWarning)
            splits = list(splitter.split(np.zeros(n), y))
    else:
        if stratified:
            logger.warning("Too few samples per class to stratify; using simple random folds")
        splitter = KFold(n_splits=n_folds, shuffle=True, random_state=seed)
        splits = list(splitter.split(np.zeros(n)))

    for fold, (_, test_idx) in enumerate(splits):
        fold_of[test_idx] = fold

    return {sid: int(f) for sid, f in zip(training_subset.sample_ids, fold_of)}


def _fit_and_predict(
    scorer: ScorerAdapter,
    params: ParamConfig,
    train: FeatureMatrix,
    held_out: FeatureMatrix,
    fold: int,
    seed: int,
) -> Tuple[str, str, int, Optional[np.ndarray], Optional[str]]:
    """One task: fit one configuration on one fold, score the held-out samples."""
    cid = config_id(params)
    try:
        fitted = scorer.fit(train, params, random_state=seed)
        proba = fitted.predict_probabilities(held_out)
    except FitFailure as e:
        return scorer.name, cid, fold, None, e.reason
    return scorer.name, cid, fold, proba, None


class CrossValidationHarness:
    """
    Train and score several scorers under one K-fold protocol.

    Args:
        methods: Scorers to evaluate (names must be unique)
        n_folds: Number of folds K
        seed: Seed for fold assignment and every estimator's random_state
        stratified: Stratify folds by label
        n_jobs: joblib workers for the fit tasks (1 = sequential)
        backend: joblib backend (None = joblib default). ConvergenceWarning is
            silenced for in-process fits (sequential or threading); loky
            worker processes report their own

    Example:
        >>> from bioactivity_eval.models.scorers import create_scorer
        >>> harness = CrossValidationHarness(
        ...     [create_scorer("knn"), create_scorer("elastic_net")],
        ...     n_folds=5, seed=42,
        ... )
        >>> result = harness.run(matrix.training_subset())
        >>> result.summary()
    """

    def __init__(
        self,
        methods: Sequence[ScorerAdapter],
        n_folds: int = 5,
        seed: int = 42,
        stratified: bool = True,
        n_jobs: Optional[int] = 1,
        backend: Optional[str] = None,
    ):
        names = [m.name for m in methods]
        if len(set(names)) != len(names):
            raise ValueError(f"Method names must be unique, got {names}")
        if not methods:
            raise ValueError("At least one method is required")

        self.methods = list(methods)
        self.n_folds = n_folds
        self.seed = seed
        self.stratified = stratified
        self.n_jobs = n_jobs
        self.backend = backend

    def run(self, training_subset: FeatureMatrix) -> CrossValidationResult:
        """
        Run cross-validation on the labeled samples.

        Returns:
            CrossValidationResult with one aggregated PredictionRecord per
            labeled sample for every method that fit at least once per fold

        Raises:
            EmptyTrainingSetError: if there are no labeled samples
        """
        folds = assign_folds(training_subset, self.n_folds, self.seed, self.stratified)
        fold_of = np.array([folds[sid] for sid in training_subset.sample_ids])

        splits = []
        for f in range(self.n_folds):
            held_idx = np.flatnonzero(fold_of == f)
            train_idx = np.flatnonzero(fold_of != f)
            splits.append((f, training_subset.take(train_idx), training_subset.take(held_idx)))

        tasks = [
            (scorer, params, train, held_out, f)
            for f, train, held_out in splits
            for scorer in self.methods
            for params in scorer.param_grid
        ]
        logger.info(
            f"Cross-validating {len(self.methods)} methods: {len(tasks)} fits over "
            f"{self.n_folds} folds ({len(training_subset)} samples, seed={self.seed})"
        )

        with quiet_convergence():
            outputs = Parallel(n_jobs=self.n_jobs, backend=self.backend)(
                delayed(_fit_and_predict)(scorer, params, train, held_out, f, self.seed)
                for scorer, params, train, held_out, f in tasks
            )

        return self._aggregate(training_subset, splits, outputs, folds)

    def _aggregate(
        self,
        training_subset: FeatureMatrix,
        splits: List[Tuple[int, FeatureMatrix, FeatureMatrix]],
        outputs: List[Tuple[str, str, int, Optional[np.ndarray], Optional[str]]],
        folds: Dict[Any, int],
    ) -> CrossValidationResult:
        held_out_of = {f: held for f, _, held in splits}
        label_of = dict(zip(training_subset.sample_ids, training_subset.labels))

        raw: Dict[str, List[PredictionRecord]] = defaultdict(list)
        sums: Dict[str, Dict[Any, float]] = defaultdict(lambda: defaultdict(float))
        counts: Dict[str, Dict[Any, int]] = defaultdict(lambda: defaultdict(int))
        n_ok: Dict[str, int] = defaultdict(int)
        n_failed: Dict[str, int] = defaultdict(int)

        for method, cid, fold, proba, error in outputs:
            if proba is None:
                n_failed[method] += 1
                logger.warning(f"Skipping {method} [{cid}] on fold {fold}: {error}")
                continue
            n_ok[method] += 1
            for sid, p in zip(held_out_of[fold].sample_ids, proba):
                raw[method].append(PredictionRecord(
                    sample_id=sid, method=method, fold=fold, probability=float(p),
                    label=label_of[sid], config_id=cid,
                ))
                sums[method][sid] += float(p)
                counts[method][sid] += 1

        predictions: Dict[str, List[PredictionRecord]] = {}
        failures: Dict[str, str] = {}
        fit_counts: Dict[str, Tuple[int, int]] = {}

        for scorer in self.methods:
            method = scorer.name
            fit_counts[method] = (n_ok[method], n_failed[method])
            try:
                predictions[method] = self._average(method, training_subset, folds,
                                                    sums[method], counts[method])
            except NoSuccessfulFitError as e:
                logger.error(str(e))
                failures[method] = str(e)
                continue
            logger.info(
                f"{method}: {n_ok[method]} fits succeeded, {n_failed[method]} skipped"
            )

        return CrossValidationResult(
            predictions=predictions,
            raw_predictions=dict(raw),
            fit_counts=fit_counts,
            failures=failures,
            fold_assignment=folds,
            n_folds=self.n_folds,
            seed=self.seed,
        )

    @staticmethod
    def _average(
        method: str,
        training_subset: FeatureMatrix,
        folds: Dict[Any, int],
        sums: Dict[Any, float],
        counts: Dict[Any, int],
    ) -> List[PredictionRecord]:
        missing = [sid for sid in training_subset.sample_ids if counts.get(sid, 0) == 0]
        if missing:
            failed_folds = sorted({folds[sid] for sid in missing})
            raise NoSuccessfulFitError(
                f"{method}: no configuration fit successfully on folds {failed_folds} "
                f"({len(missing)} samples without a prediction)"
            )

        return [
            PredictionRecord(
                sample_id=sid,
                method=method,
                fold=folds[sid],
                probability=sums[sid] / counts[sid],
                label=label,
                config_id=None,
                n_configs=counts[sid],
            )
            for sid, label in zip(training_subset.sample_ids, training_subset.labels)
        ]
