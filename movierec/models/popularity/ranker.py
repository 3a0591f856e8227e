from __future__ import annotations

from typing import Dict, Iterable, List, Mapping

import numpy as np
import pandas as pd

from movierec.models.base import Recommendation, RecommenderModel, as_item_set
from movierec.models.snapshots import PopularitySnapshot


class PopularityModel(RecommenderModel):
    """Rank items by ``interaction_count * mean_weight``.

    The ranking is global: ``predict`` ignores the user and
    ``recommend_top_n`` only filters the pre-sorted list.
    """

    name = "popularity"
    explanation = "Popular item"

    def __init__(self) -> None:
        self._item_ids: np.ndarray = np.array([], dtype=np.int64)
        self._scores: np.ndarray = np.array([], dtype=np.float64)
        self._score_by_item: Dict[int, float] = {}

    def fit(self, ratings: pd.DataFrame) -> "PopularityModel":
        """Fit item popularity statistics from training interactions.

        Parameters
        ----------
        ratings : pd.DataFrame
            Observed interactions (UserID, MovieID, Rating, Timestamp).

        Returns
        -------
        PopularityModel
            Fitted ranker with global item scores sorted in descending order.
        """
        ratings = self.deduplicate(ratings)
        if ratings.empty:
            self._set_ranking(np.array([], dtype=np.int64), np.array([], dtype=np.float64))
            return self

        grouped = ratings.groupby("MovieID", sort=False)["Rating"]
        count = grouped.count().astype(float)
        mean = grouped.mean().astype(float)
        score = count * mean

        ranking = pd.DataFrame({
            "MovieID": score.index.astype(int),
            "score": score.values.astype(float),
        }).sort_values(by=["score", "MovieID"], ascending=[False, True])

        self._set_ranking(
            ranking["MovieID"].to_numpy(dtype=np.int64),
            ranking["score"].to_numpy(dtype=np.float64),
        )
        return self

    def _set_ranking(self, item_ids: np.ndarray, scores: np.ndarray) -> None:
        self._item_ids = item_ids
        self._scores = scores
        self._score_by_item = dict(zip(item_ids.tolist(), scores.tolist()))

    def predict(self, user_id: int, item_id: int) -> float:
        del user_id
        return self._score_by_item.get(int(item_id), 0.0)

    def recommend_top_n(
        self,
        user_id: int,
        n: int,
        exclude_items: Iterable[int] | None = None,
        live_ratings: Mapping[int, float] | None = None,
    ) -> List[Recommendation]:
        del user_id, live_ratings
        exclude = as_item_set(exclude_items)

        recs: List[Recommendation] = []
        if n <= 0:
            return recs
        for item_id, score in zip(self._item_ids.tolist(), self._scores.tolist()):
            if item_id in exclude:
                continue
            recs.append(Recommendation(item_id=item_id, score=score, explanation=self.explanation))
            if len(recs) >= n:
                break
        return recs

    def to_snapshot(self) -> PopularitySnapshot:
        return PopularitySnapshot(item_ids=self._item_ids.tolist(), scores=self._scores.tolist())

    @classmethod
    def from_snapshot(cls, snapshot: PopularitySnapshot) -> "PopularityModel":
        model = cls()
        model._set_ranking(
            np.asarray(snapshot.item_ids, dtype=np.int64),
            np.asarray(snapshot.scores, dtype=np.float64),
        )
        return model
