from __future__ import annotations

from typing import Dict, Iterable, List, Mapping

import pandas as pd

from movierec.models.base import Recommendation, RecommenderModel


class AverageBaseline(RecommenderModel):
    """Base class for rating-prediction baselines that cannot rank items."""

    def recommend_top_n(
        self,
        user_id: int,
        n: int,
        exclude_items: Iterable[int] | None = None,
        live_ratings: Mapping[int, float] | None = None,
    ) -> List[Recommendation]:
        # every item gets the same estimate, so there is nothing to rank
        return []


class GlobalAverageModel(AverageBaseline):
    """Predicts the mean training weight for every pair."""

    name = "global-average"

    def __init__(self) -> None:
        self.global_mean: float = 0.0

    def fit(self, ratings: pd.DataFrame) -> "GlobalAverageModel":
        ratings = self.deduplicate(ratings)
        self.global_mean = float(ratings["Rating"].mean()) if not ratings.empty else 0.0
        return self

    def predict(self, user_id: int, item_id: int) -> float:
        return self.global_mean


class UserAverageModel(AverageBaseline):
    """Predicts the user's mean training weight, falling back to the global mean."""

    name = "user-average"

    def __init__(self) -> None:
        self.global_mean: float = 0.0
        self.user_means: Dict[int, float] = {}

    def fit(self, ratings: pd.DataFrame) -> "UserAverageModel":
        ratings = self.deduplicate(ratings)
        if ratings.empty:
            self.global_mean = 0.0
            self.user_means = {}
            return self

        self.global_mean = float(ratings["Rating"].mean())
        means = ratings.groupby("UserID")["Rating"].mean()
        self.user_means = {int(u): float(m) for u, m in means.items()}
        return self

    def predict(self, user_id: int, item_id: int) -> float:
        return self.user_means.get(int(user_id), self.global_mean)
