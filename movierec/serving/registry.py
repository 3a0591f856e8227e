from __future__ import annotations

import dataclasses
import logging
import threading
from dataclasses import dataclass
from typing import Dict, List, Tuple

import numpy as np
import pandas as pd

from movierec.data.loader import Dataset, Interaction, Movie, empty_ratings
from movierec.errors import DatasetUnavailable, InvalidInput, ItemNotFound, ModelNotFound
from movierec.eval.eval import EvaluationMetrics, evaluate
from movierec.models.base import RecommenderModel
from movierec.serving.repository import InteractionRepository

logger = logging.getLogger(__name__)

MIN_RATING = 1.0
MAX_RATING = 5.0


@dataclass(frozen=True, kw_only=True)
class EnrichedRecommendation:
    item_id: int
    score: float
    explanation: str | None = None
    title: str | None = None
    genres: Tuple[str, ...] | None = None


class RecommenderRegistry:
    """Owns the trained models, the live interactions and the exclusion index.

    Models are registered once and then only read. Rating ingestion, exclusion
    index rebuilds and evaluation runs are serialized on one write lock.
    """

    def __init__(self, random_state: int | None = None) -> None:
        self._models: Dict[str, RecommenderModel] = {}
        self._dataset: Dataset | None = None
        self._repository: InteractionRepository | None = None
        self._exclusions: Dict[int, set[int]] = {}
        self._write_lock = threading.RLock()
        self._rng = np.random.default_rng(random_state)

    def register_model(self, model: RecommenderModel, name: str | None = None) -> None:
        name = name or model.name
        self._models[name] = model
        logger.info("Registered model: %s", name)

    def model_names(self) -> List[str]:
        return list(self._models)

    def get_model(self, model_name: str) -> RecommenderModel:
        try:
            return self._models[model_name]
        except KeyError:
            raise ModelNotFound(model_name) from None

    @property
    def is_ready(self) -> bool:
        return self._dataset is not None

    def attach_dataset(self, dataset: Dataset, train_ratings: pd.DataFrame) -> None:
        """Install the dataset and rebuild the per-user training exclusion sets.

        The interactions move into the repository, which is the only live copy
        from then on; the stored dataset keeps movies and users only.
        """
        with self._write_lock:
            exclusions = RecommenderModel.build_seen_items(train_ratings)
            self._repository = InteractionRepository(dataset.interactions)
            self._exclusions = exclusions
            self._dataset = dataclasses.replace(
                dataset,
                interactions=empty_ratings(),
                users=set(dataset.users),
            )
        logger.info(
            "Dataset attached: %d interactions, %d users with training items",
            len(dataset.interactions),
            len(exclusions),
        )

    def _require_dataset(self) -> Dataset:
        if self._dataset is None:
            raise DatasetUnavailable()
        return self._dataset

    def recommend(self, user_id: int, model_name: str, n: int = 10) -> List[EnrichedRecommendation]:
        """Top-``n`` recommendations of one model, enriched with movie metadata.

        Raises
        ------
        ModelNotFound
            If no model is registered under ``model_name``.
        DatasetUnavailable
            If no dataset has been attached yet.
        """
        model = self.get_model(model_name)
        dataset = self._require_dataset()

        user_id = int(user_id)
        exclude = self._exclusions.get(user_id, set())
        live_ratings = self._repository.ratings_for(user_id)

        try:
            recs = model.recommend_top_n(user_id, n, exclude, live_ratings=live_ratings)
        except Exception:
            logger.exception("Model %s failed to recommend for user %d", model_name, user_id)
            return []

        enriched = []
        for rec in recs:
            movie = dataset.movies.get(rec.item_id)
            enriched.append(EnrichedRecommendation(
                item_id=rec.item_id,
                score=rec.score,
                explanation=rec.explanation,
                title=movie.title if movie else None,
                genres=movie.genres if movie else None,
            ))
        return enriched

    def ingest_rating(self, user_id: int, item_id: int, rating: float) -> Tuple[str, Interaction]:
        """Record a live rating; models are not retrained and exclusions are untouched."""
        rating = float(rating)
        if not MIN_RATING <= rating <= MAX_RATING:
            raise InvalidInput("Rating must be between 1 and 5")
        self._require_dataset()

        with self._write_lock:
            action, interaction = self._repository.add_or_update(user_id, item_id, rating)
            self._dataset.users.add(int(user_id))
        logger.info("Rating %s: user %d, movie %d, rating %.1f", action, user_id, item_id, rating)
        return action, interaction

    def interactions(self) -> pd.DataFrame:
        """Copy of all current interactions, including ingested ratings."""
        self._require_dataset()
        return self._repository.snapshot()

    def get_rating(self, user_id: int, item_id: int) -> Interaction | None:
        self._require_dataset()
        return self._repository.get(user_id, item_id)

    def get_movie(self, item_id: int) -> Movie:
        movie = self._require_dataset().movies.get(int(item_id))
        if movie is None:
            raise ItemNotFound(item_id)
        return movie

    def search_movies(self, query: str, limit: int = 20) -> List[Movie]:
        """Case-insensitive title substring search, in catalog order."""
        dataset = self._require_dataset()
        needle = query.lower()
        results = []
        if limit <= 0:
            return results
        for movie in dataset.movies.values():
            if needle in movie.title.lower():
                results.append(movie)
                if len(results) >= limit:
                    break
        return results

    def random_users(self, count: int = 10) -> List[int]:
        """Draw ``min(count, number of users)`` user ids with replacement."""
        dataset = self._require_dataset()
        with self._write_lock:
            users = sorted(dataset.users)
        draws = min(max(count, 0), len(users))
        if draws == 0:
            return []
        picks = self._rng.integers(0, len(users), size=draws)
        return [users[i] for i in picks.tolist()]

    def next_user_id(self) -> int:
        dataset = self._require_dataset()
        with self._write_lock:
            return max(dataset.users) + 1 if dataset.users else 1

    def evaluate(self, model_name: str, test_ratings: pd.DataFrame, k: int = 10) -> EvaluationMetrics:
        model = self.get_model(model_name)
        dataset = self._require_dataset()
        with self._write_lock:
            train = self._exclusion_frame()
            return evaluate(
                model,
                train,
                test_ratings,
                k=k,
                catalog_size=len(dataset.movies) or None,
            )

    def _exclusion_frame(self) -> pd.DataFrame:
        pairs = [(uid, mid) for uid, items in self._exclusions.items() for mid in items]
        return pd.DataFrame(pairs, columns=["UserID", "MovieID"])
