"""
Configuration and logging utilities.
"""

from .config_loader import EvaluationConfig, load_config, save_config, merge_configs
from .logging_utils import setup_logger, log_experiment_start, log_experiment_end

__all__ = [
    'EvaluationConfig',
    'load_config',
    'save_config',
    'merge_configs',
    'setup_logger',
    'log_experiment_start',
    'log_experiment_end',
]
