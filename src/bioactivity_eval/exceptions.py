"""
Error taxonomy for the evaluation pipeline.

Structural errors (InvalidMatrixError, EmptyTrainingSetError) abort a run.
FitFailure is recoverable: the cross-validation harness skips the failing
parameter configuration. NoSuccessfulFitError and DegenerateLabelSetError are
fatal only for the affected method, and NoImportanceAvailableError only
skips the importance step.
"""


class BioactivityEvalError(Exception):
    """Base class for all pipeline errors."""


class InvalidMatrixError(BioactivityEvalError, ValueError):
    """Feature matrix violates its declared schema."""


class EmptyTrainingSetError(BioactivityEvalError, ValueError):
    """No labeled samples are available."""


class FitFailure(BioactivityEvalError, RuntimeError):
    """A scorer could not be fit (or used) with one parameter configuration."""

    def __init__(self, method: str, config_id: str, reason: str):
        self.method = method
        self.config_id = config_id
        self.reason = reason
        super().__init__(f"{method} [{config_id}] failed: {reason}")


class NoSuccessfulFitError(BioactivityEvalError, RuntimeError):
    """Every configuration failed for at least one sample of a method."""


class DegenerateLabelSetError(BioactivityEvalError, ValueError):
    """AUC is undefined because one of the classes is absent."""


class NoImportanceAvailableError(BioactivityEvalError, LookupError):
    """Scorer has no native feature-importance notion."""
