"""Train and evaluate recommenders offline on a MovieLens directory.

Usage examples
--------------
All ranking models on a temporal 80/20 split:
    python -m movierec.run_evaluation --dataset ./ml-1m

Seeded random split, two models, K=20:
    python -m movierec.run_evaluation --split random --seed 7 --models popularity,item-item-cf --k 20

Leave-one-out with a progress bar:
    python -m movierec.run_evaluation --split loo --progress
"""

from __future__ import annotations

import argparse
import logging
import time
from pathlib import Path

from movierec.config import Settings
from movierec.data.loader import load_dataset
from movierec.data.splitter import SPLITTERS
from movierec.eval.eval import evaluate, format_metrics
from movierec.models import (
    GraphBasedModel,
    ItemItemCFModel,
    MatrixFactorizationModel,
    PopularityModel,
    RecommenderModel,
)

logger = logging.getLogger(__name__)

RANKING_MODELS = ["popularity", "matrix-factorization", "item-item-cf", "graph-based"]


def parse_args(settings: Settings) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Train and evaluate recommendation models offline.",
    )

    parser.add_argument(
        "--dataset",
        type=Path,
        default=settings.dataset_path,
        help="MovieLens directory with ratings.dat and movies.dat.",
    )
    parser.add_argument(
        "--split",
        type=str,
        default="temporal",
        choices=sorted(SPLITTERS),
        help="Split policy: per-user temporal, seeded random, or leave-one-out.",
    )
    parser.add_argument(
        "--test-ratio",
        type=float,
        default=0.2,
        help="Held-out share for temporal and random splits.",
    )
    parser.add_argument(
        "--seed",
        type=int,
        default=42,
        help="Seed for the random split, ALS initialization and graph walks.",
    )
    parser.add_argument(
        "--models",
        type=str,
        default=",".join(RANKING_MODELS),
        help="Comma-separated model names to train and evaluate.",
    )
    parser.add_argument(
        "--k",
        type=int,
        default=10,
        help="Top-k cutoff.",
    )
    parser.add_argument(
        "--n-jobs",
        type=int,
        default=settings.train_jobs,
        help="Worker threads for ALS row solves and CF similarity chunks.",
    )
    parser.add_argument(
        "--mf-factors",
        type=int,
        default=30,
        help="Latent factors for matrix factorization.",
    )
    parser.add_argument(
        "--mf-iterations",
        type=int,
        default=5,
        help="ALS iterations.",
    )
    parser.add_argument(
        "--mf-regularization",
        type=float,
        default=0.1,
        help="ALS L2 regularization (must be positive).",
    )
    parser.add_argument(
        "--cf-neighbors",
        type=int,
        default=30,
        help="Neighbors kept per item for item-item CF.",
    )
    parser.add_argument(
        "--graph-walks",
        type=int,
        default=50,
        help="Random walks per user for the graph model.",
    )
    parser.add_argument(
        "--graph-walk-length",
        type=int,
        default=8,
        help="Steps per random walk.",
    )
    parser.add_argument(
        "--graph-restart",
        type=float,
        default=0.15,
        help="Restart probability of the random walk.",
    )
    parser.add_argument(
        "--progress",
        action="store_true",
        help="Show a progress bar while evaluating.",
    )

    return parser.parse_args()


def build_model(name: str, args: argparse.Namespace, settings: Settings) -> RecommenderModel:
    if name == "popularity":
        return PopularityModel()
    if name == "matrix-factorization":
        return MatrixFactorizationModel(
            n_factors=args.mf_factors,
            n_iterations=min(args.mf_iterations, settings.max_iterations),
            regularization=args.mf_regularization,
            random_state=args.seed,
            n_jobs=args.n_jobs,
        )
    if name == "item-item-cf":
        return ItemItemCFModel(k_neighbors=args.cf_neighbors, n_jobs=args.n_jobs)
    if name == "graph-based":
        return GraphBasedModel(
            restart_prob=args.graph_restart,
            n_walks=min(args.graph_walks, settings.max_walks),
            walk_length=args.graph_walk_length,
            random_state=args.seed,
        )
    raise ValueError(f"Unknown model: {name}")


def split_ratings(ratings, args: argparse.Namespace):
    splitter = SPLITTERS[args.split]
    kwargs = {}
    if args.split != "loo":
        kwargs["test_ratio"] = args.test_ratio
    if args.split == "random":
        kwargs["seed"] = args.seed
    return splitter(ratings, **kwargs)


def main() -> None:
    settings = Settings.from_env()
    args = parse_args(settings)
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    dataset = load_dataset(args.dataset)

    logger.info("Splitting data with %s policy...", args.split)
    split = split_ratings(dataset.interactions, args)
    logger.info("Training: %d interactions, testing: %d interactions", len(split.train), len(split.test))

    model_names = [name.strip() for name in args.models.split(",") if name.strip()]
    models = [build_model(name, args, settings) for name in model_names]

    for model in models:
        logger.info("Fitting %s on train split...", model.name)
        start_time = time.time()
        model.fit(split.train)
        logger.info("%s trained in %.2fs", model.name, time.time() - start_time)

        logger.info("Evaluating %s...", model.name)
        metrics = evaluate(
            model=model,
            train_ratings=split.train,
            test_ratings=split.test,
            k=args.k,
            catalog_size=len(dataset.movies),
            show_progress=args.progress,
        )
        logger.info("=== %s ===\n%s", model.name, format_metrics(metrics))


if __name__ == "__main__":
    main()
