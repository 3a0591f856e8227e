"""Typed, versioned snapshot schemas, one per snapshotable model variant.

Every schema carries a ``model`` tag (the registry name of the variant) and a
``version``. ``movierec.persistence`` combines them into a discriminated
union and rejects unknown tags or versions.
"""

from __future__ import annotations

from typing import List, Literal, Tuple

from pydantic import BaseModel, ConfigDict

SNAPSHOT_VERSION = 1


class _Snapshot(BaseModel):
    model_config = ConfigDict(extra="forbid")

    version: Literal[1] = SNAPSHOT_VERSION


class PopularitySnapshot(_Snapshot):
    model: Literal["popularity"] = "popularity"
    item_ids: List[int]
    scores: List[float]


class MatrixFactorizationSnapshot(_Snapshot):
    model: Literal["matrix-factorization"] = "matrix-factorization"
    n_factors: int
    n_iterations: int
    regularization: float
    random_state: int
    user_ids: List[int]
    item_ids: List[int]
    user_factors: List[List[float]]
    item_factors: List[List[float]]
    # (user_id, item_id) pairs seen during training
    train_pairs: List[Tuple[int, int]]
    loss_history: List[float] = []


class ItemItemCFSnapshot(_Snapshot):
    model: Literal["item-item-cf"] = "item-item-cf"
    k_neighbors: int
    min_similarity: float
    user_ids: List[int]
    item_ids: List[int]
    # user-item ratings as COO triplets over dense indices
    rating_rows: List[int]
    rating_cols: List[int]
    rating_values: List[float]
    # top-k neighbor lists as CSR arrays over dense item indices
    neighbor_indptr: List[int]
    neighbor_indices: List[int]
    neighbor_values: List[float]


class GraphBasedSnapshot(_Snapshot):
    model: Literal["graph-based"] = "graph-based"
    restart_prob: float
    n_walks: int
    walk_length: int
    random_state: int
    user_ids: List[int]
    item_ids: List[int]
    # (user_id, item_id, weight) edges before normalization
    edges: List[Tuple[int, int, float]]
