from __future__ import annotations

import logging
from typing import Dict, Iterable, List, Mapping, Tuple

import numpy as np
import pandas as pd
from joblib import Parallel, delayed
from scipy import sparse

from movierec.errors import InvalidInput
from movierec.models.base import Recommendation, RecommenderModel, as_item_set
from movierec.models.snapshots import ItemItemCFSnapshot

logger = logging.getLogger(__name__)


def normalize_columns(R: sparse.csr_matrix) -> sparse.csc_matrix:
    """Scale every item column to unit L2 norm (all-zero columns are left as is)."""
    col_sq = np.asarray(R.power(2).sum(axis=0)).ravel()  # fast column norms sqrt(sum of squares)
    norms = np.sqrt(col_sq)
    norms[norms == 0] = 1.0
    return (R @ sparse.diags(1.0 / norms)).tocsc()


def _top_k_block(
    R_norm: sparse.csc_matrix,
    cols: np.ndarray,
    item_ids: np.ndarray,
    k_neighbors: int,
    min_similarity: float,
) -> List[Tuple[np.ndarray, np.ndarray]]:
    # only items sharing a co-rating user get a structural non-zero here
    S = (R_norm[:, cols].T @ R_norm).tocsr()

    neighbors = []
    for j, i in enumerate(cols):
        start, end = S.indptr[j], S.indptr[j + 1]
        nb = S.indices[start:end]
        sims = S.data[start:end]

        keep = (nb != i) & (sims > min_similarity)
        nb, sims = nb[keep], sims[keep]

        order = np.lexsort((item_ids[nb], -sims))[:k_neighbors]
        neighbors.append((nb[order], sims[order]))
    return neighbors


class ItemItemCFModel(RecommenderModel):
    """Item-Item Collaborative Filtering with cosine similarity.

    Similarities below ``min_similarity`` are dropped and only the
    ``k_neighbors`` most similar items are kept per item. The neighbor lists
    are computed in item chunks on a joblib worker pool.

    Parameters
    ----------
    k_neighbors : int
        Number of most similar items kept per item.
    min_similarity : float
        Similarities less than or equal to this are discarded.
    n_jobs : int
        Worker pool size for the similarity chunks.
    chunk_size : int
        Items per worker task.
    """

    name = "item-item-cf"
    explanation = "Similar to items you liked"

    def __init__(
        self,
        k_neighbors: int = 50,
        min_similarity: float = 0.01,
        n_jobs: int = 1,
        chunk_size: int = 256,
    ):
        if k_neighbors <= 0:
            raise InvalidInput(f"k_neighbors must be positive, got {k_neighbors}")
        self.k_neighbors = int(k_neighbors)
        self.min_similarity = float(min_similarity)
        self.n_jobs = int(n_jobs)
        self.chunk_size = max(1, int(chunk_size))

        self.user_to_idx: Dict[int, int] = {}
        self.item_to_idx: Dict[int, int] = {}
        self._item_ids: np.ndarray = np.array([], dtype=np.int64)

        self.R: sparse.csr_matrix | None = None  # user -> {item: weight}
        self._R_norm: sparse.csc_matrix | None = None  # item -> {user: weight}, unit columns
        self.neighbors: sparse.csr_matrix | None = None  # item -> {similar item: similarity}

    def fit(self, ratings: pd.DataFrame) -> "ItemItemCFModel":
        """Fit model by computing top-k item-item similarities."""
        ratings = self.deduplicate(ratings)

        users_list = ratings["UserID"].drop_duplicates().astype(int).to_numpy()
        items_list = ratings["MovieID"].drop_duplicates().astype(int).to_numpy()

        self.user_to_idx = {int(u): i for i, u in enumerate(users_list)}
        self.item_to_idx = {int(m): i for i, m in enumerate(items_list)}
        self._item_ids = items_list.astype(np.int64)

        row = ratings["UserID"].map(self.user_to_idx).to_numpy(dtype=np.int64)
        col = ratings["MovieID"].map(self.item_to_idx).to_numpy(dtype=np.int64)
        data = ratings["Rating"].to_numpy(dtype=np.float64)

        self.R = sparse.csr_matrix(
            (data, (row, col)),
            shape=(len(users_list), len(items_list)),
            dtype=np.float64,
        )
        self.R.sort_indices()
        self._R_norm = normalize_columns(self.R)

        logger.info("Computing item-item similarities for %d items...", len(items_list))
        self.neighbors = self._compute_neighbors()
        logger.info(
            "Item-item CF trained: %d items, %d neighbor links",
            len(items_list),
            self.neighbors.nnz,
        )
        return self

    def _compute_neighbors(self) -> sparse.csr_matrix:
        n_items = len(self._item_ids)
        chunks = [
            np.arange(start, min(start + self.chunk_size, n_items))
            for start in range(0, n_items, self.chunk_size)
        ]
        blocks = Parallel(n_jobs=self.n_jobs, prefer="threads")(
            delayed(_top_k_block)(
                self._R_norm, cols, self._item_ids, self.k_neighbors, self.min_similarity
            )
            for cols in chunks
        )

        lists = [pair for block in blocks for pair in block]
        lengths = np.array([len(nb) for nb, _ in lists], dtype=np.int64)
        indptr = np.concatenate([[0], np.cumsum(lengths)]).astype(np.int64)
        if lists and indptr[-1] > 0:
            indices = np.concatenate([nb for nb, _ in lists]).astype(np.int64)
            values = np.concatenate([sims for _, sims in lists]).astype(np.float64)
        else:
            indices = np.array([], dtype=np.int64)
            values = np.array([], dtype=np.float64)

        return sparse.csr_matrix((values, indices, indptr), shape=(n_items, n_items))

    def item_similarity(self, item_a: int, item_b: int) -> float:
        """Cosine similarity of two items over all their ratings (not truncated to top-k)."""
        a = self.item_to_idx.get(int(item_a))
        b = self.item_to_idx.get(int(item_b))
        if a is None or b is None or self._R_norm is None:
            return 0.0
        return float(self._R_norm[:, a].multiply(self._R_norm[:, b]).sum())

    def _user_ratings(self, u_idx: int) -> Tuple[np.ndarray, np.ndarray]:
        start, end = self.R.indptr[u_idx], self.R.indptr[u_idx + 1]
        return self.R.indices[start:end], self.R.data[start:end]

    def predict(self, user_id: int, item_id: int) -> float:
        u_idx = self.user_to_idx.get(int(user_id))
        i_idx = self.item_to_idx.get(int(item_id))
        if u_idx is None or i_idx is None or self.neighbors is None:
            return 0.0

        rated = dict(zip(*(arr.tolist() for arr in self._user_ratings(u_idx))))
        start, end = self.neighbors.indptr[i_idx], self.neighbors.indptr[i_idx + 1]

        numerator = 0.0
        denominator = 0.0
        for nb, sim in zip(self.neighbors.indices[start:end].tolist(), self.neighbors.data[start:end].tolist()):
            rating = rated.get(nb)
            if rating is not None:
                numerator += sim * rating
                denominator += sim
        return numerator / denominator if denominator > 0 else 0.0

    def recommend_top_n(
        self,
        user_id: int,
        n: int,
        exclude_items: Iterable[int] | None = None,
        live_ratings: Mapping[int, float] | None = None,
    ) -> List[Recommendation]:
        del live_ratings
        u_idx = self.user_to_idx.get(int(user_id))
        if n <= 0 or u_idx is None or self.neighbors is None:
            return []

        rated_idx, _ = self._user_ratings(u_idx)
        seen = set(as_item_set(exclude_items))
        seen.update(self._item_ids[rated_idx].tolist())

        # Σ over rated items of rating * similarity, restricted to their top-k lists
        scores = (self.R[u_idx] @ self.neighbors).tocsr()
        if scores.nnz == 0:
            return []

        return self.top_k_from_scores(
            item_ids=self._item_ids[scores.indices],
            scores=scores.data,
            k=n,
            seen=seen,
            explanation=self.explanation,
        )

    def to_snapshot(self) -> ItemItemCFSnapshot:
        if self.R is None or self.neighbors is None:
            raise InvalidInput("cannot snapshot an unfitted model")
        coo = self.R.tocoo()
        user_ids = sorted(self.user_to_idx, key=self.user_to_idx.get)
        return ItemItemCFSnapshot(
            k_neighbors=self.k_neighbors,
            min_similarity=self.min_similarity,
            user_ids=user_ids,
            item_ids=self._item_ids.tolist(),
            rating_rows=coo.row.tolist(),
            rating_cols=coo.col.tolist(),
            rating_values=coo.data.tolist(),
            neighbor_indptr=self.neighbors.indptr.tolist(),
            neighbor_indices=self.neighbors.indices.tolist(),
            neighbor_values=self.neighbors.data.tolist(),
        )

    @classmethod
    def from_snapshot(cls, snapshot: ItemItemCFSnapshot) -> "ItemItemCFModel":
        model = cls(k_neighbors=snapshot.k_neighbors, min_similarity=snapshot.min_similarity)
        n_users, n_items = len(snapshot.user_ids), len(snapshot.item_ids)

        model.user_to_idx = {int(u): i for i, u in enumerate(snapshot.user_ids)}
        model.item_to_idx = {int(m): i for i, m in enumerate(snapshot.item_ids)}
        model._item_ids = np.asarray(snapshot.item_ids, dtype=np.int64)

        model.R = sparse.csr_matrix(
            (
                np.asarray(snapshot.rating_values, dtype=np.float64),
                (
                    np.asarray(snapshot.rating_rows, dtype=np.int64),
                    np.asarray(snapshot.rating_cols, dtype=np.int64),
                ),
            ),
            shape=(n_users, n_items),
        )
        model.R.sort_indices()
        model._R_norm = normalize_columns(model.R)
        model.neighbors = sparse.csr_matrix(
            (
                np.asarray(snapshot.neighbor_values, dtype=np.float64),
                np.asarray(snapshot.neighbor_indices, dtype=np.int64),
                np.asarray(snapshot.neighbor_indptr, dtype=np.int64),
            ),
            shape=(n_items, n_items),
        )
        return model
