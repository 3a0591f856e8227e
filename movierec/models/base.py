from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Dict, Iterable, List, Mapping

import numpy as np
import pandas as pd


@dataclass(frozen=True, kw_only=True)
class Recommendation:
    item_id: int
    score: float
    explanation: str | None = None


class RecommenderModel(ABC):
    """Common contract for every scoring model.

    Equal scores are always ordered by ascending item id so that
    ``recommend_top_n`` is reproducible.
    """

    name: str = ""

    @abstractmethod
    def fit(self, ratings: pd.DataFrame) -> "RecommenderModel":
        """Build all internal state from scratch.

        Parameters
        ----------
        ratings : pd.DataFrame
            Training interactions (UserID, MovieID, Rating, Timestamp).
            When a (UserID, MovieID) pair repeats, the last row wins.

        Returns
        -------
        RecommenderModel
            The fitted model. Calling ``fit`` again replaces all prior state.
        """
        ...

    @abstractmethod
    def predict(self, user_id: int, item_id: int) -> float:
        """Point estimate for one (user, item) pair; 0.0 when either id is unknown."""
        ...

    @abstractmethod
    def recommend_top_n(
        self,
        user_id: int,
        n: int,
        exclude_items: Iterable[int] | None = None,
        live_ratings: Mapping[int, float] | None = None,
    ) -> List[Recommendation]:
        """Produce up to ``n`` recommendations for one user.

        Parameters
        ----------
        user_id : int
            User to recommend for.
        n : int
            Maximum list length.
        exclude_items : Iterable[int] | None
            Item ids that must not appear in the output.
        live_ratings : Mapping[int, float] | None
            item_id -> weight for users absent from the trained state.
            Ignored by models without a cold-start path.

        Returns
        -------
        list[Recommendation]
            Sorted by score descending, ties by ascending item id.
        """
        ...

    def recommend_batch(
        self,
        user_ids: Iterable[int],
        n: int,
        exclude_by_user: Mapping[int, set[int]] | None = None,
    ) -> Dict[int, List[Recommendation]]:
        exclude_by_user = exclude_by_user or {}
        return {
            int(uid): self.recommend_top_n(int(uid), n, exclude_by_user.get(int(uid), set()))
            for uid in user_ids
        }

    @staticmethod
    def deduplicate(ratings: pd.DataFrame) -> pd.DataFrame:
        """Keep the last row for every (UserID, MovieID) pair."""
        return ratings.drop_duplicates(subset=["UserID", "MovieID"], keep="last")

    @staticmethod
    def build_seen_items(
        ratings: pd.DataFrame,
        user_col: str = "UserID",
        item_col: str = "MovieID",
    ) -> Dict[int, set[int]]:
        """Build map of seen items per user from interactions."""
        return {
            int(uid): set(group[item_col].astype(int).tolist())
            for uid, group in ratings.groupby(user_col)
        }

    @staticmethod
    def top_k_from_scores(
        item_ids: np.ndarray,
        scores: np.ndarray,
        k: int,
        seen: set[int] | None = None,
        explanation: str | None = None,
    ) -> List[Recommendation]:
        """Return top-k unseen items by score (descending, ties by ascending id)."""
        if item_ids.size == 0 or k <= 0:
            return []

        work_scores = scores.astype(np.float64, copy=True)
        if seen:
            seen_arr = np.fromiter(seen, dtype=item_ids.dtype, count=len(seen))
            work_scores[np.isin(item_ids, seen_arr)] = -np.inf

        valid = np.flatnonzero(np.isfinite(work_scores))
        if valid.size == 0:
            return []

        order = valid[np.lexsort((item_ids[valid], -work_scores[valid]))][:k]
        return [
            Recommendation(item_id=int(item_ids[i]), score=float(scores[i]), explanation=explanation)
            for i in order
        ]


def as_item_set(items: Iterable[int] | None) -> set[int]:
    if items is None:
        return set()
    if isinstance(items, set):
        return items
    return {int(i) for i in items}
