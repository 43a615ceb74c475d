"""
Ensemble Engine command line entry point.

Trains an ensemble preset on a CSV file, evaluates it on a chronological
holdout and optionally replays the holdout through online learning.

Usage:
    python -m ensemble_engine.main --data prices.csv --target next_return
    python -m ensemble_engine.main --data prices.csv --target next_return \
        --preset stacking_advanced --online --config config
"""

import argparse
import logging
import sys
from typing import List, Optional

import pandas as pd
from dotenv import load_dotenv

from ensemble_engine.config import load_online_config
from ensemble_engine.dataset import TrainingDataset
from ensemble_engine.errors import EnsembleEngineError
from ensemble_engine.learners.factory import LearnerFactory
from ensemble_engine.online_learning.controller import OnlineAdaptationController

# Load environment variables
load_dotenv()

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    """Command line arguments."""
    parser = argparse.ArgumentParser(description="Ensemble Engine - train and evaluate an ensemble")
    parser.add_argument("--data", type=str, required=True,
                        help="CSV file with feature columns and a target column")
    parser.add_argument("--target", type=str, required=True,
                        help="Name of the target column")
    parser.add_argument("--preset", type=str, default="bagging_basic",
                        help="Ensemble preset from model_params.yaml")
    parser.add_argument("--config", type=str, default=None,
                        help="Configuration directory or model_params.yaml path")
    parser.add_argument("--holdout", type=float, default=0.2,
                        help="Fraction of trailing rows used for evaluation")
    parser.add_argument("--online", action="store_true",
                        help="Replay the holdout rows through online learning")
    parser.add_argument("--log-level", type=str, default="INFO",
                        help="Logging level")
    return parser


def split_holdout(dataset: TrainingDataset, fraction: float):
    """Chronological train/holdout split (at least one row on each side)."""
    n = len(dataset)
    n_holdout = min(n - 1, max(1, int(n * fraction)))
    cut = n - n_holdout
    train = TrainingDataset(dataset.X[:cut], dataset.y[:cut], dataset.feature_names)
    holdout = TrainingDataset(dataset.X[cut:], dataset.y[cut:], dataset.feature_names)
    return train, holdout


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    args = build_parser().parse_args(argv)

    # Configure logging
    logging.basicConfig(
        level=getattr(logging, args.log_level.upper(), logging.INFO),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[logging.StreamHandler()],
    )

    try:
        df = pd.read_csv(args.data)
        dataset = TrainingDataset.from_dataframe(df, args.target)
        if len(dataset) < 2:
            logger.error(f"Need at least 2 rows, got {len(dataset)}")
            return 1
        train, holdout = split_holdout(dataset, args.holdout)

        factory = LearnerFactory(config_path=args.config)
        ensemble = factory.create_default_ensemble(args.preset)
        ensemble.train(train)
        metrics = ensemble.evaluate_model(holdout)
    except (OSError, ValueError, EnsembleEngineError) as e:
        logger.error(f"Training failed: {e}")
        return 1

    print("=" * 40)
    print(f"ENSEMBLE: {args.preset}")
    print("=" * 40)
    info = ensemble.get_model_info()
    print(f"Strategy: {info['strategy']}")
    print(f"Learners trained: {info['n_trained']}/{info['n_learners']}")
    print(f"Training samples: {len(train)}, holdout: {len(holdout)}")
    print(f"\nMSE: {metrics['mse']:.6f}")
    print(f"MAE: {metrics['mae']:.6f}")
    print(f"R2:  {metrics['r2']:.4f}")

    importance = ensemble.get_named_feature_importance()
    if importance:
        print("\nTop features:")
        for name, value in list(importance.items())[:5]:
            print(f"  {name}: {value:.4f}")

    if args.online:
        if not ensemble.supports_online_updates:
            logger.warning(f"{info['strategy']} ensembles do not support online learning")
            return 0

        controller = OnlineAdaptationController(ensemble)
        online_config = load_online_config(
            args.config,
            buffer_size=max(len(holdout), 1),
            min_samples_for_update=max(1, min(10, len(holdout))),
            update_interval=0,
        )
        controller.enable(online_config)
        for row, target in zip(holdout.X, holdout.y):
            controller.add_sample(row, target)

        stats = controller.get_online_learning_stats()
        print("\n" + "=" * 40)
        print("ONLINE LEARNING")
        print("=" * 40)
        print(f"Updates: {stats['update_count']}")
        print(f"Drift events: {stats['drift_events']}")
        print(f"Learning rate: {stats['current_learning_rate']:.4f}")
        history = ", ".join(f"{s:.2f}" for s in stats["performance_history"])
        print(f"Scores: [{history}]")

    return 0


if __name__ == "__main__":
    sys.exit(main())
