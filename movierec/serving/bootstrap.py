from __future__ import annotations

import logging
import time
from typing import List

from movierec.config import Settings
from movierec.data.loader import dataset_exists, load_dataset
from movierec.data.splitter import temporal_split
from movierec.errors import DatasetUnavailable, SnapshotError
from movierec.models import (
    GraphBasedModel,
    ItemItemCFModel,
    MatrixFactorizationModel,
    PopularityModel,
    RecommenderModel,
)
from movierec.persistence import SnapshotStore
from movierec.serving.registry import RecommenderRegistry

logger = logging.getLogger(__name__)

SERVING_TEST_RATIO = 0.2


def build_serving_models(settings: Settings) -> List[RecommenderModel]:
    """Fresh, unfitted instances of the served models, in registration order."""
    return [
        PopularityModel(),
        MatrixFactorizationModel(
            n_factors=30,
            n_iterations=min(5, settings.max_iterations),
            regularization=0.1,
            n_jobs=settings.train_jobs,
        ),
        ItemItemCFModel(k_neighbors=30, n_jobs=settings.train_jobs),
        GraphBasedModel(restart_prob=0.15, n_walks=min(50, settings.max_walks), walk_length=8),
    ]


def restore_or_train(model: RecommenderModel, train, store: SnapshotStore) -> RecommenderModel:
    """Load ``model``'s snapshot when a valid one exists, otherwise fit and save it."""
    if store.exists(model.name):
        try:
            return store.load(model.name)
        except SnapshotError:
            logger.exception("Discarding unusable %s snapshot, retraining", model.name)

    logger.info("Training %s...", model.name)
    start_time = time.time()
    model.fit(train)
    logger.info("%s trained in %.2fs", model.name, time.time() - start_time)

    try:
        store.save(model)
    except OSError:
        logger.exception("Could not save %s snapshot to %s", model.name, store.directory)
    return model


def bootstrap(registry: RecommenderRegistry, settings: Settings) -> None:
    """Load the dataset, prepare every served model and attach both to ``registry``."""
    if not dataset_exists(settings.dataset_path):
        raise DatasetUnavailable(
            f"Dataset not found at {settings.dataset_path}; expected ratings.dat and movies.dat"
        )

    dataset = load_dataset(settings.dataset_path)
    split = temporal_split(dataset.interactions, test_ratio=SERVING_TEST_RATIO)
    logger.info("Split: %d train / %d test interactions", len(split.train), len(split.test))

    store = SnapshotStore(settings.models_dir)
    for model in build_serving_models(settings):
        registry.register_model(restore_or_train(model, split.train, store))

    registry.attach_dataset(dataset, split.train)
    logger.info("Service ready with models: %s", ", ".join(registry.model_names()))
