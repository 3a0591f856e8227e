"""Run the recommendation HTTP service.

Usage:
    python -m movierec.main
    python -m movierec.main --port 8000 --dataset ./ml-1m
"""

from __future__ import annotations

import argparse
import dataclasses
import functools
import logging
from pathlib import Path

import uvicorn

from movierec.config import Settings
from movierec.serving.api import create_app
from movierec.serving.bootstrap import bootstrap
from movierec.serving.registry import RecommenderRegistry

logger = logging.getLogger(__name__)


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Serve movie recommendations over HTTP.")
    parser.add_argument("--host", type=str, default=None, help="Bind address (default: HOST or 127.0.0.1).")
    parser.add_argument("--port", type=int, default=None, help="Port (default: PORT or 3000).")
    parser.add_argument(
        "--dataset",
        type=Path,
        default=None,
        help="MovieLens directory with ratings.dat and movies.dat (default: MOVIELENS_DATASET_PATH).",
    )
    parser.add_argument(
        "--models-dir",
        type=Path,
        default=None,
        help="Directory for model snapshots (default: MODELS_DIR).",
    )
    return parser.parse_args()


def main() -> None:
    args = parse_args()
    settings = Settings.from_env()

    overrides = {
        "host": args.host,
        "port": args.port,
        "dataset_path": args.dataset,
        "models_dir": args.models_dir,
    }
    settings = dataclasses.replace(settings, **{k: v for k, v in overrides.items() if v is not None})

    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    registry = RecommenderRegistry()
    app = create_app(registry, settings, bootstrap=functools.partial(bootstrap, settings=settings))

    logger.info("Recommendation API on http://%s:%d", settings.host, settings.port)
    uvicorn.run(app, host=settings.host, port=settings.port, log_level=settings.log_level.lower())


if __name__ == "__main__":
    main()
