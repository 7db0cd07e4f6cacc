"""
Configuration file loading and validation utilities.
"""

from typing import Any, Dict, List, Optional
from pathlib import Path
import yaml
from dataclasses import dataclass, field, asdict, fields
import logging

from ..models.scorers import available_scorers

logger = logging.getLogger(__name__)


def load_config(config_path: Path) -> Dict[str, Any]:
    """
    Load YAML configuration file.

    Args:
        config_path: Path to YAML config file

    Returns:
        Configuration dictionary
    """
    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    with open(config_path, 'r') as f:
        config = yaml.safe_load(f) or {}

    logger.info(f"Loaded configuration from {config_path}")
    return config


def save_config(config: Dict[str, Any], output_path: Path) -> None:
    """
    Save configuration to YAML file.

    Args:
        config: Configuration dictionary
        output_path: Path to save config
    """
    output_path.parent.mkdir(parents=True, exist_ok=True)

    with open(output_path, 'w') as f:
        yaml.safe_dump(config, f, default_flow_style=False, sort_keys=False)

    logger.info(f"Saved configuration to {output_path}")


@dataclass
class EvaluationConfig:
    """Configuration for a sensitivity evaluation run."""

    # Cross-validation
    cv_folds: int = 5
    seed: int = 42
    stratified: bool = True
    n_jobs: int = 1

    # Methods (registry names) and per-method grid overrides
    methods: List[str] = field(
        default_factory=lambda: ["knn", "gradient_boosting", "elastic_net", "svm", "neural_net"]
    )
    param_grids: Dict[str, Dict[str, list]] = field(default_factory=dict)

    # Univariate association
    fdr_threshold: float = 0.05

    # Final model interrogation
    importance_method: Optional[str] = "gradient_boosting"
    importance_params: Optional[Dict[str, Any]] = None  # None = first grid configuration
    top_n_importances: int = 20

    def __post_init__(self):
        """Validate configuration"""
        if self.cv_folds < 2:
            raise ValueError(f"cv_folds must be at least 2, got {self.cv_folds}")
        if not 0.0 < self.fdr_threshold <= 1.0:
            raise ValueError(f"fdr_threshold must be in (0, 1], got {self.fdr_threshold}")
        if not self.methods:
            raise ValueError("At least one method is required")
        if self.top_n_importances < 1:
            raise ValueError("top_n_importances must be positive")

        registered = set(available_scorers())
        unregistered = [m for m in self.methods if m not in registered]
        if self.importance_method is not None and self.importance_method not in registered:
            unregistered.append(self.importance_method)
        if unregistered:
            raise ValueError(
                f"Unknown methods: {unregistered}. Available: {sorted(registered)}"
            )

        in_use = set(self.methods) | {self.importance_method}
        unknown = set(self.param_grids) - in_use
        if unknown:
            raise ValueError(f"param_grids given for methods not in use: {sorted(unknown)}")

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return asdict(self)

    @classmethod
    def from_dict(cls, config_dict: Dict[str, Any]) -> "EvaluationConfig":
        """Create from dictionary."""
        known = {f.name for f in fields(cls)}
        unknown = set(config_dict) - known
        if unknown:
            raise ValueError(f"Unknown configuration keys: {sorted(unknown)}")
        return cls(**config_dict)

    @classmethod
    def from_yaml(cls, yaml_path: Path) -> "EvaluationConfig":
        """Load from YAML file."""
        config_dict = load_config(yaml_path)
        return cls.from_dict(config_dict)


def merge_configs(
    default_config: Dict[str, Any],
    user_config: Dict[str, Any]
) -> Dict[str, Any]:
    """
    Merge user config with default config.

    Args:
        default_config: Default configuration
        user_config: User-provided configuration

    Returns:
        Merged configuration (user overrides defaults)
    """
    merged = default_config.copy()

    for key, value in user_config.items():
        if key in merged and isinstance(merged[key], dict) and isinstance(value, dict):
            # Recursively merge nested dictionaries
            merged[key] = merge_configs(merged[key], value)
        else:
            merged[key] = value

    return merged
