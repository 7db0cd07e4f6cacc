"""
Scorer adapters wrapping binary classifiers behind a common
fit / predict-probability / importances contract.
"""

from .scorers import (
    FittedScorer,
    ScorerAdapter,
    ScorerSpec,
    SklearnFittedScorer,
    SklearnScorer,
    SCORER_REGISTRY,
    available_scorers,
    config_id,
    create_scorer,
    expand_grid,
    quiet_convergence,
    register_scorer,
)

__all__ = [
    'FittedScorer',
    'ScorerAdapter',
    'ScorerSpec',
    'SklearnFittedScorer',
    'SklearnScorer',
    'SCORER_REGISTRY',
    'available_scorers',
    'config_id',
    'create_scorer',
    'expand_grid',
    'quiet_convergence',
    'register_scorer',
]
