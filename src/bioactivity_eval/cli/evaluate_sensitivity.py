#!/usr/bin/env python
"""
Evaluate fingerprint features and classifiers against a sensitivity label.

Runs univariate exact-test association with FDR control, K-fold
cross-validation of several classifiers with pooled rank AUC, grid-averaged
predictions for unlabeled samples, and native feature importances.

Example usage:
    # All fp_* columns as features, default methods
    bioeval-evaluate --data panel.csv \
                     --id-column cell_line \
                     --label-column response \
                     --feature-prefix fp_ \
                     --output-dir results/

    # Custom configuration and a subset of methods
    bioeval-evaluate --data panel.csv --config eval.yaml \
                     --methods knn,elastic_net --cv-folds 10 --seed 7
"""

import argparse
import json
import sys
from pathlib import Path
from typing import List

import pandas as pd
from loguru import logger

from bioactivity_eval.data.feature_matrix import FeatureMatrix
from bioactivity_eval.evaluation.workflow import run_evaluation
from bioactivity_eval.exceptions import EmptyTrainingSetError, InvalidMatrixError
from bioactivity_eval.models.scorers import available_scorers
from bioactivity_eval.utils.config_loader import EvaluationConfig, load_config, merge_configs
from bioactivity_eval.utils.logging_utils import (
    log_experiment_end,
    log_experiment_start,
    setup_logger,
)


def parse_args(argv: List[str] = None) -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        description="Evaluate binary fingerprint features and classifiers for sensitivity prediction",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=f"""
Available methods: {', '.join(available_scorers())}

Examples:
  %(prog)s --data panel.csv --id-column id --label-column response \\
           --feature-prefix fp_ --output-dir results/
        """
    )

    parser.add_argument(
        "--data",
        type=Path,
        required=True,
        help="Input CSV with one id column, one label column and binary feature columns",
    )
    parser.add_argument(
        "--id-column",
        type=str,
        required=True,
        help="Column holding unique sample identifiers",
    )
    parser.add_argument(
        "--label-column",
        type=str,
        required=True,
        help="Column holding the label (empty = unlabeled test sample)",
    )
    features = parser.add_mutually_exclusive_group(required=True)
    features.add_argument(
        "--feature-prefix",
        type=str,
        help="Use every column starting with this prefix as a feature",
    )
    features.add_argument(
        "--features",
        type=str,
        help="Feature columns (comma-separated)",
    )
    parser.add_argument(
        "--sensitive-value",
        type=str,
        default="Sensitive",
        help="Label value meaning Sensitive (default: Sensitive)",
    )
    parser.add_argument(
        "--resistant-value",
        type=str,
        default="Resistant",
        help="Label value meaning Resistant (default: Resistant)",
    )
    parser.add_argument(
        "--config",
        type=Path,
        help="YAML configuration (see EvaluationConfig)",
    )
    parser.add_argument(
        "--methods",
        type=str,
        help="Methods to cross-validate (comma-separated); overrides the config",
    )
    parser.add_argument(
        "--cv-folds",
        type=int,
        help="Cross-validation folds; overrides the config",
    )
    parser.add_argument(
        "--seed",
        type=int,
        help="Random seed; overrides the config",
    )
    parser.add_argument(
        "--n-jobs",
        type=int,
        help="Parallel workers; overrides the config",
    )
    parser.add_argument(
        "--output-dir",
        type=Path,
        default=Path("results"),
        help="Output directory (default: results)",
    )
    parser.add_argument(
        "--log-level",
        type=str,
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (default: INFO)",
    )

    return parser.parse_args(argv)


def build_config(args: argparse.Namespace) -> EvaluationConfig:
    """Combine defaults, the YAML file and command-line overrides."""
    config = EvaluationConfig().to_dict()
    if args.config is not None:
        config = merge_configs(config, load_config(args.config))

    overrides = {
        "methods": [m.strip() for m in args.methods.split(",")] if args.methods else None,
        "cv_folds": args.cv_folds,
        "seed": args.seed,
        "n_jobs": args.n_jobs,
    }
    config.update({k: v for k, v in overrides.items() if v is not None})
    # grids for methods dropped on the command line no longer apply
    in_use = set(config["methods"]) | {config["importance_method"]}
    config["param_grids"] = {
        k: v for k, v in config["param_grids"].items() if k in in_use
    }
    return EvaluationConfig.from_dict(config)


def load_matrix(args: argparse.Namespace) -> FeatureMatrix:
    """Read the CSV and build a FeatureMatrix from the declared schema."""
    df = pd.read_csv(args.data, dtype={args.label_column: str})

    if args.features:
        feature_columns = [c.strip() for c in args.features.split(",")]
    else:
        feature_columns = [c for c in df.columns if c.startswith(args.feature_prefix)]
        if not feature_columns:
            raise InvalidMatrixError(f"No columns start with '{args.feature_prefix}'")

    return FeatureMatrix.from_dataframe(
        df,
        id_column=args.id_column,
        label_column=args.label_column,
        feature_columns=feature_columns,
        sensitive_value=args.sensitive_value,
        resistant_value=args.resistant_value,
    )


def main(argv: List[str] = None) -> None:
    """Entry point for CLI."""
    args = parse_args(argv)
    setup_logger(log_level=args.log_level)

    if not args.data.exists():
        logger.error(f"Data file not found: {args.data}")
        sys.exit(1)

    try:
        config = build_config(args)
    except (ValueError, FileNotFoundError) as e:
        logger.error(f"Invalid configuration: {e}")
        sys.exit(1)

    log_experiment_start(args.data.stem, config.to_dict())

    try:
        matrix = load_matrix(args)
    except InvalidMatrixError as e:
        logger.error(f"Invalid input data: {e}")
        sys.exit(1)

    n_labeled = len(matrix.training_subset())
    if 0 < n_labeled < config.cv_folds:
        logger.error(f"cv_folds={config.cv_folds} exceeds the {n_labeled} labeled samples")
        sys.exit(1)

    try:
        report = run_evaluation(matrix, config)
    except (InvalidMatrixError, EmptyTrainingSetError) as e:
        logger.error(f"Evaluation aborted: {e}")
        sys.exit(1)

    args.output_dir.mkdir(parents=True, exist_ok=True)

    report.associations_frame().to_csv(args.output_dir / "associations.csv", index=False)
    report.cv_result.to_frame().to_csv(args.output_dir / "cv_predictions.csv", index=False)
    report.test_predictions.to_csv(args.output_dir / "test_predictions.csv", index=False)
    if report.importances is not None:
        pd.DataFrame(report.importances, columns=["feature", "importance"]).to_csv(
            args.output_dir / "importances.csv", index=False
        )

    summary_file = args.output_dir / "summary.json"
    with open(summary_file, "w") as f:
        json.dump({"config": config.to_dict(), **report.to_dict()}, f, indent=2, default=str)

    logger.info("\n" + "=" * 70)
    logger.info("CROSS-VALIDATION SUMMARY")
    logger.info("=" * 70)
    logger.info(f"{'Method':<20} {'Fits OK':<10} {'Fits failed':<12} {'AUC':<10}")
    logger.info("-" * 70)
    for row in report.method_summary().itertuples(index=False):
        auc = row.auc if isinstance(row.auc, str) else f"{row.auc:.4f}"
        logger.info(f"{row.method:<20} {row.fits_succeeded:<10} {row.fits_failed:<12} {auc:<10}")

    log_experiment_end(args.data.stem, {
        "significant_features": len(report.significant),
        "methods_scored": sum(a is not None for a in report.aucs.values()),
        "output_dir": args.output_dir,
    })
    logger.success(f"Evaluation complete! Results in {args.output_dir}")


if __name__ == "__main__":
    main()
