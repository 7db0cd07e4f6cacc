"""
Command-line applications for bioactivity-eval.
"""

__all__ = [
    "evaluate_sensitivity",
]
