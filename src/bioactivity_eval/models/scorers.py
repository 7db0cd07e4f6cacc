"""
Pluggable binary scorers for sensitivity prediction.

Every classifier used by the cross-validation harness is wrapped in a
ScorerAdapter: it declares a finite parameter grid and fits one
configuration at a time on a labeled FeatureMatrix, returning a
FittedScorer that yields P(Sensitive) for held-out samples.

Built-in methods (scikit-learn):
- knn: k-nearest neighbours
- gradient_boosting: gradient-boosted decision trees
- elastic_net: elastic-net penalised logistic regression
- svm: support vector machine with Platt-scaled probabilities
- neural_net: multi-layer perceptron

Any other classifier can be registered at runtime with register_scorer().
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterator, List, Mapping, Optional, Sequence, Tuple, Union
import warnings

import numpy as np
from loguru import logger
from sklearn.base import ClassifierMixin
from sklearn.ensemble import GradientBoostingClassifier
from sklearn.exceptions import ConvergenceWarning
from sklearn.linear_model import LogisticRegression
from sklearn.model_selection import ParameterGrid
from sklearn.neighbors import KNeighborsClassifier
from sklearn.neural_network import MLPClassifier
from sklearn.svm import SVC

from ..data.feature_matrix import FeatureMatrix
from ..exceptions import FitFailure, InvalidMatrixError

ParamConfig = Dict[str, Any]
GridSpec = Union[Mapping[str, Sequence[Any]], Sequence[Mapping[str, Sequence[Any]]]]
EstimatorFactory = Callable[[ParamConfig, Optional[int]], ClassifierMixin]


def config_id(params: Mapping[str, Any]) -> str:
    """Stable identifier for a parameter configuration, e.g. 'C=1.0,l1_ratio=0.5'."""
    if not params:
        return "default"
    return ",".join(f"{k}={params[k]}" for k in sorted(params))


def expand_grid(grid: Optional[GridSpec]) -> List[ParamConfig]:
    """Expand a dict of value lists (or a list of such dicts) into configurations."""
    if grid is None:
        return [{}]
    return [dict(p) for p in ParameterGrid(grid)]


@contextmanager
def quiet_convergence() -> Iterator[None]:
    """
    Silence scikit-learn ConvergenceWarning for a batch of fits.

    Warning filters are process-global: enter this once from the thread that
    dispatches the fits, never from inside concurrent fits. Fits running in
    separate worker processes (joblib loky) keep the default filters.
    """
    with warnings.catch_warnings():
        warnings.simplefilter("ignore", category=ConvergenceWarning)
        yield


class FittedScorer(ABC):
    """A scorer fit on one training set with one parameter configuration."""

    def __init__(self, method: str, params: ParamConfig, feature_names: Sequence[str]):
        self.method = method
        self.params = dict(params)
        self.feature_names = tuple(feature_names)

    @property
    def config_id(self) -> str:
        return config_id(self.params)

    def _check_features(self, matrix: FeatureMatrix) -> None:
        if matrix.feature_names != self.feature_names:
            raise InvalidMatrixError(
                f"{self.method} was fit on {len(self.feature_names)} features; "
                f"got a matrix with a different feature schema"
            )

    @abstractmethod
    def predict_probabilities(self, matrix: FeatureMatrix) -> np.ndarray:
        """P(Sensitive) in [0, 1] for every sample of ``matrix``."""

    def predict_probability(self, sample_values: Sequence[int]) -> float:
        """P(Sensitive) for a single feature vector."""
        single = FeatureMatrix(
            sample_ids=["_query"],
            feature_names=self.feature_names,
            values=[list(sample_values)],
            labels=[None],
        )
        return float(self.predict_probabilities(single)[0])

    def importances(self) -> Optional[List[Tuple[str, float]]]:
        """Native (feature, relative score) pairs, or None when unsupported."""
        return None


class ScorerAdapter(ABC):
    """
    Capability interface for a trainable binary classifier.

    Args:
        name: Method name used as the key in all results
        param_grid: Dict of value lists, list of such dicts, or None for a
            single default configuration
    """

    def __init__(self, name: str, param_grid: Optional[GridSpec] = None):
        self.name = name
        self.param_grid = expand_grid(param_grid)
        if not self.param_grid:
            raise ValueError(f"{name}: parameter grid is empty")

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r}, n_configs={len(self.param_grid)})"

    @abstractmethod
    def fit(
        self,
        training_samples: FeatureMatrix,
        params: ParamConfig,
        random_state: Optional[int] = None,
    ) -> FittedScorer:
        """
        Fit one configuration.

        Raises:
            FitFailure: if the data is degenerate for this method or the
                underlying estimator fails
        """


class SklearnFittedScorer(FittedScorer):
    """FittedScorer backed by a fitted scikit-learn classifier."""

    def __init__(
        self,
        method: str,
        params: ParamConfig,
        feature_names: Sequence[str],
        estimator: ClassifierMixin,
    ):
        super().__init__(method, params, feature_names)
        self.estimator = estimator
        self._positive_column = list(estimator.classes_).index(1)

    def predict_probabilities(self, matrix: FeatureMatrix) -> np.ndarray:
        self._check_features(matrix)
        if len(matrix) == 0:
            return np.empty(0)
        try:
            proba = self.estimator.predict_proba(matrix.values)
        except ValueError as e:
            raise FitFailure(self.method, self.config_id, f"prediction failed: {e}") from e
        return np.clip(proba[:, self._positive_column], 0.0, 1.0)

    def importances(self) -> Optional[List[Tuple[str, float]]]:
        raw = getattr(self.estimator, "feature_importances_", None)
        if raw is None:
            coef = getattr(self.estimator, "coef_", None)
            if coef is None:
                return None
            raw = np.abs(np.asarray(coef, dtype=float)).ravel()

        raw = np.asarray(raw, dtype=float)
        total = raw.sum()
        if total > 0:
            raw = raw / total
        return [(name, float(score)) for name, score in zip(self.feature_names, raw)]


class SklearnScorer(ScorerAdapter):
    """
    ScorerAdapter around a scikit-learn classifier factory.

    Args:
        name: Method name
        factory: Callable (params, random_state) -> unfitted classifier
        param_grid: Parameter grid (see ScorerAdapter)

    Example:
        >>> from sklearn.naive_bayes import BernoulliNB
        >>> nb = SklearnScorer("naive_bayes", lambda p, rs: BernoulliNB(**p),
        ...                    {"alpha": [0.5, 1.0]})
        >>> fitted = nb.fit(matrix.training_subset(), nb.param_grid[0])
    """

    def __init__(
        self,
        name: str,
        factory: EstimatorFactory,
        param_grid: Optional[GridSpec] = None,
    ):
        super().__init__(name, param_grid)
        self.factory = factory

    def fit(
        self,
        training_samples: FeatureMatrix,
        params: ParamConfig,
        random_state: Optional[int] = None,
    ) -> SklearnFittedScorer:
        cid = config_id(params)
        y = training_samples.label_vector()
        if len(np.unique(y)) < 2:
            raise FitFailure(self.name, cid, "training data contains a single class")

        try:
            estimator = self.factory(dict(params), random_state)
            estimator.fit(training_samples.values, y)
        except Exception as e:
            raise FitFailure(self.name, cid, str(e)) from e

        logger.debug(f"Fitted {self.name} [{cid}] on {len(training_samples)} samples")
        return SklearnFittedScorer(self.name, params, training_samples.feature_names, estimator)


# ============================================================================
# Built-in methods
# ============================================================================

def _knn(params: ParamConfig, random_state: Optional[int]) -> ClassifierMixin:
    return KNeighborsClassifier(**params)


def _gradient_boosting(params: ParamConfig, random_state: Optional[int]) -> ClassifierMixin:
    return GradientBoostingClassifier(**{"random_state": random_state, **params})


def _elastic_net(params: ParamConfig, random_state: Optional[int]) -> ClassifierMixin:
    defaults = {
        "penalty": "elasticnet",
        "solver": "saga",
        "max_iter": 5000,
        "random_state": random_state,
    }
    return LogisticRegression(**{**defaults, **params})


def _svm(params: ParamConfig, random_state: Optional[int]) -> ClassifierMixin:
    return SVC(**{"probability": True, "random_state": random_state, **params})


def _neural_net(params: ParamConfig, random_state: Optional[int]) -> ClassifierMixin:
    defaults = {"max_iter": 1000, "random_state": random_state}
    params = dict(params)
    if "hidden_layer_sizes" in params:
        # YAML gives lists; sklearn expects a tuple
        params["hidden_layer_sizes"] = tuple(np.atleast_1d(params["hidden_layer_sizes"]))
    return MLPClassifier(**{**defaults, **params})


@dataclass
class ScorerSpec:
    """Registry entry: estimator factory plus its default parameter grid."""
    factory: EstimatorFactory
    default_grid: Dict[str, List[Any]] = field(default_factory=dict)
    description: str = ""


SCORER_REGISTRY: Dict[str, ScorerSpec] = {
    "knn": ScorerSpec(
        _knn,
        {"n_neighbors": [3, 5, 7], "weights": ["uniform", "distance"]},
        "k-nearest neighbours",
    ),
    "gradient_boosting": ScorerSpec(
        _gradient_boosting,
        {"n_estimators": [100], "max_depth": [2, 3], "learning_rate": [0.1]},
        "gradient-boosted decision trees",
    ),
    "elastic_net": ScorerSpec(
        _elastic_net,
        {"C": [0.1, 1.0], "l1_ratio": [0.2, 0.5, 0.8]},
        "elastic-net logistic regression",
    ),
    "svm": ScorerSpec(
        _svm,
        {"C": [0.1, 1.0, 10.0], "kernel": ["rbf"]},
        "support vector machine (Platt-scaled)",
    ),
    "neural_net": ScorerSpec(
        _neural_net,
        {"hidden_layer_sizes": [(16,), (32,)], "alpha": [1e-4, 1e-2]},
        "multi-layer perceptron",
    ),
}


def register_scorer(
    name: str,
    factory: EstimatorFactory,
    default_grid: Optional[Dict[str, List[Any]]] = None,
    description: str = "",
) -> None:
    """Add (or replace) a method in the registry."""
    if name in SCORER_REGISTRY:
        logger.warning(f"Replacing registered scorer '{name}'")
    SCORER_REGISTRY[name] = ScorerSpec(factory, default_grid or {}, description)


def available_scorers() -> List[str]:
    return sorted(SCORER_REGISTRY)


def create_scorer(name: str, param_grid: Optional[GridSpec] = None) -> SklearnScorer:
    """
    Instantiate a registered method.

    Args:
        name: Registry key (see available_scorers())
        param_grid: Overrides the default grid when given

    Returns:
        SklearnScorer
    """
    if name not in SCORER_REGISTRY:
        raise ValueError(f"Unknown scorer: {name}. Available: {available_scorers()}")
    spec = SCORER_REGISTRY[name]
    grid = spec.default_grid if param_grid is None else param_grid
    return SklearnScorer(name, spec.factory, grid)
