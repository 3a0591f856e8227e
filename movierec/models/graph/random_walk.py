from __future__ import annotations

import logging
import threading
from typing import Dict, Iterable, List, Mapping, Tuple

import numpy as np
import pandas as pd
from scipy import sparse

from movierec.errors import InvalidInput
from movierec.models.base import Recommendation, RecommenderModel, as_item_set
from movierec.models.snapshots import GraphBasedSnapshot

logger = logging.getLogger(__name__)

# (neighbor node indices, cumulative transition probabilities)
ColdNode = Tuple[np.ndarray, np.ndarray]


class GraphBasedModel(RecommenderModel):
    """Random walk with restart on the user-item bipartite graph.

    Nodes are users (``u_<id>``) followed by items (``i_<id>``) in one dense
    index space. Edges carry the interaction weight in both directions and
    every node's outgoing weights are normalized to sum to 1. The adjacency
    is a CSR matrix plus a per-row cumulative table used for sampling.

    Scores are Monte-Carlo estimates of the personalized PageRank of each
    node: ``visits / total visits`` over ``n_walks`` walks of ``walk_length``
    steps from the user's node. Each call draws from
    ``default_rng([random_state, user_id])``, so results are reproducible per
    user and concurrent calls share no generator state.

    Parameters
    ----------
    restart_prob : float
        Probability of jumping back to the start node at each step.
    n_walks : int
        Number of walks per query.
    walk_length : int
        Steps per walk.
    random_state : int
        Base seed for the walks.
    """

    name = "graph-based"
    explanation = "Graph proximity"

    def __init__(
        self,
        restart_prob: float = 0.15,
        n_walks: int = 100,
        walk_length: int = 10,
        random_state: int = 42,
    ) -> None:
        if not 0.0 <= restart_prob <= 1.0:
            raise InvalidInput(f"restart_prob must be in [0, 1], got {restart_prob}")
        if n_walks <= 0 or walk_length <= 0:
            raise InvalidInput("n_walks and walk_length must be positive")

        self.restart_prob = float(restart_prob)
        self.n_walks = int(n_walks)
        self.walk_length = int(walk_length)
        self.random_state = int(random_state)

        self.user_to_node: Dict[int, int] = {}
        self.item_to_node: Dict[int, int] = {}
        self._item_ids: np.ndarray = np.array([], dtype=np.int64)
        self._n_users = 0
        self._adjacency: sparse.csr_matrix = sparse.csr_matrix((0, 0), dtype=np.float64)
        self._cum: np.ndarray = np.array([], dtype=np.float64)
        self._edges: pd.DataFrame | None = None

        self._cold_start_lock = threading.Lock()
        self._cold_nodes: Dict[int, ColdNode] = {}

    @property
    def n_nodes(self) -> int:
        return self._adjacency.shape[0]

    def fit(self, ratings: pd.DataFrame) -> "GraphBasedModel":
        """Build the normalized bipartite graph from training interactions.

        Parameters
        ----------
        ratings : pd.DataFrame
            Observed interactions (UserID, MovieID, Rating, Timestamp).
            Non-positive weights carry no transition mass and are dropped.

        Returns
        -------
        GraphBasedModel
            Fitted model with adjacency and sampling tables.
        """
        edges = self.deduplicate(ratings)
        edges = edges[edges["Rating"] > 0][["UserID", "MovieID", "Rating"]].reset_index(drop=True)
        self._build_graph(
            edges["UserID"].to_numpy(dtype=np.int64),
            edges["MovieID"].to_numpy(dtype=np.int64),
            edges["Rating"].to_numpy(dtype=np.float64),
        )
        logger.info("Graph built: %d users, %d items", self._n_users, len(self._item_ids))
        return self

    def _build_graph(self, users: np.ndarray, items: np.ndarray, weights: np.ndarray) -> None:
        users_list = pd.unique(users)
        items_list = pd.unique(items)
        n_users, n_items = len(users_list), len(items_list)

        self._n_users = n_users
        self.user_to_node = {int(u): i for i, u in enumerate(users_list)}
        self.item_to_node = {int(m): n_users + i for i, m in enumerate(items_list)}
        self._item_ids = np.asarray(items_list, dtype=np.int64)
        self._edges = pd.DataFrame({"UserID": users, "MovieID": items, "Rating": weights})
        with self._cold_start_lock:
            self._cold_nodes = {}

        n_nodes = n_users + n_items
        if n_nodes == 0:
            self._adjacency = sparse.csr_matrix((0, 0), dtype=np.float64)
            self._cum = np.array([], dtype=np.float64)
            return

        u_nodes = np.array([self.user_to_node[int(u)] for u in users], dtype=np.int64)
        i_nodes = np.array([self.item_to_node[int(m)] for m in items], dtype=np.int64)

        adjacency = sparse.csr_matrix(
            (
                np.concatenate([weights, weights]),
                (np.concatenate([u_nodes, i_nodes]), np.concatenate([i_nodes, u_nodes])),
            ),
            shape=(n_nodes, n_nodes),
            dtype=np.float64,
        )
        adjacency.sort_indices()

        row_sum = np.asarray(adjacency.sum(axis=1)).ravel()
        inv = np.zeros_like(row_sum)
        nonzero = row_sum > 0
        inv[nonzero] = 1.0 / row_sum[nonzero]
        self._adjacency = (sparse.diags(inv) @ adjacency).tocsr()
        self._adjacency.sort_indices()
        self._cum = self._cumulative_table(self._adjacency)

    @staticmethod
    def _cumulative_table(adjacency: sparse.csr_matrix) -> np.ndarray:
        """Per-row cumulative probabilities, offset by the row index.

        Row ``r`` occupies the interval ``(r, r + 1]`` so one ``searchsorted``
        over the whole table samples a neighbor for any set of rows.
        """
        indptr = adjacency.indptr
        degrees = np.diff(indptr)
        if adjacency.nnz == 0:
            return np.array([], dtype=np.float64)

        csum = np.cumsum(adjacency.data)
        before_row = np.concatenate([[0.0], csum])[indptr[:-1]]
        within = csum - np.repeat(before_row, degrees)
        within[indptr[1:][degrees > 0] - 1] = 1.0
        return np.repeat(np.arange(adjacency.shape[0], dtype=np.float64), degrees) + within

    def _rng(self, user_id: int) -> np.random.Generator:
        return np.random.default_rng([self.random_state, int(user_id) % (2 ** 32)])

    def _walk(
        self,
        start: int,
        rng: np.random.Generator,
        cold: ColdNode | None = None,
    ) -> np.ndarray:
        """Run all walks from ``start`` in lockstep and return visit counts.

        Index ``n_nodes`` stands for a synthetic cold-start node; it has only
        outgoing edges, so walkers are there only at the start or after a
        restart.
        """
        n_nodes = self.n_nodes
        indptr, indices = self._adjacency.indptr, self._adjacency.indices
        degrees = np.diff(indptr)

        visits = np.zeros(n_nodes + 1, dtype=np.int64)
        pos = np.full(self.n_walks, start, dtype=np.int64)

        for _ in range(self.walk_length):
            visits += np.bincount(pos, minlength=n_nodes + 1)

            restart = rng.random(self.n_walks) < self.restart_prob
            u = rng.random(self.n_walks)
            nxt = np.full(self.n_walks, start, dtype=np.int64)

            on_graph = ~restart & (pos < n_nodes)
            if on_graph.any():
                p = pos[on_graph]
                movable = degrees[p] > 0
                target = np.searchsorted(self._cum, p + u[on_graph], side="right")
                target = np.clip(target, indptr[p], np.maximum(indptr[p + 1] - 1, indptr[p]))
                target = np.minimum(target, max(len(indices) - 1, 0))
                moved = indices[target] if len(indices) else np.zeros_like(p)
                nxt[on_graph] = np.where(movable, moved, start)

            on_cold = ~restart & (pos == n_nodes)
            if cold is not None and on_cold.any():
                neighbors, cum = cold
                idx = np.searchsorted(cum, u[on_cold], side="right")
                nxt[on_cold] = neighbors[np.minimum(idx, len(neighbors) - 1)]

            pos = nxt

        return visits

    def _induce_cold_node(self, user_id: int, live_ratings: Mapping[int, float]) -> ColdNode | None:
        """Attach a synthetic node for an unseen user; it persists for later calls."""
        existing = self._cold_nodes.get(user_id)
        if existing is not None:
            return existing

        with self._cold_start_lock:
            existing = self._cold_nodes.get(user_id)
            if existing is not None:
                return existing

            pairs = sorted(
                (self.item_to_node[int(i)], float(w))
                for i, w in live_ratings.items()
                if int(i) in self.item_to_node and float(w) > 0
            )
            if not pairs:
                return None

            neighbors = np.array([node for node, _ in pairs], dtype=np.int64)
            weights = np.array([w for _, w in pairs], dtype=np.float64)
            cum = np.cumsum(weights / weights.sum())
            cum[-1] = 1.0

            node = (neighbors, cum)
            self._cold_nodes[user_id] = node
            logger.debug("Inserted cold-start node for user %d with %d edges", user_id, len(pairs))
            return node

    def _item_scores(self, visits: np.ndarray) -> np.ndarray:
        total = visits.sum()
        item_visits = visits[self._n_users:self.n_nodes].astype(np.float64)
        return item_visits / total if total > 0 else item_visits

    def predict(self, user_id: int, item_id: int) -> float:
        start = self.user_to_node.get(int(user_id))
        item_node = self.item_to_node.get(int(item_id))
        if start is None or item_node is None:
            return 0.0
        scores = self._item_scores(self._walk(start, self._rng(user_id)))
        return float(scores[item_node - self._n_users])

    def recommend_top_n(
        self,
        user_id: int,
        n: int,
        exclude_items: Iterable[int] | None = None,
        live_ratings: Mapping[int, float] | None = None,
    ) -> List[Recommendation]:
        if n <= 0 or self.n_nodes == 0:
            return []

        user_id = int(user_id)
        seen = set(as_item_set(exclude_items))
        cold: ColdNode | None = None

        start = self.user_to_node.get(user_id)
        if start is not None:
            row = self._adjacency.indices[self._adjacency.indptr[start]:self._adjacency.indptr[start + 1]]
            seen.update(self._item_ids[row - self._n_users].tolist())
        elif live_ratings:
            cold = self._induce_cold_node(user_id, live_ratings)
            if cold is None:
                return []
            start = self.n_nodes
            seen.update(int(i) for i in live_ratings)
        else:
            return []

        scores = self._item_scores(self._walk(start, self._rng(user_id), cold))
        visited = np.flatnonzero(scores > 0)
        return self.top_k_from_scores(
            item_ids=self._item_ids[visited],
            scores=scores[visited],
            k=n,
            seen=seen,
            explanation=self.explanation,
        )

    def to_snapshot(self) -> GraphBasedSnapshot:
        if self._edges is None:
            raise InvalidInput("cannot snapshot an unfitted model")
        user_ids = sorted(self.user_to_node, key=self.user_to_node.get)
        return GraphBasedSnapshot(
            restart_prob=self.restart_prob,
            n_walks=self.n_walks,
            walk_length=self.walk_length,
            random_state=self.random_state,
            user_ids=user_ids,
            item_ids=self._item_ids.tolist(),
            edges=list(zip(
                self._edges["UserID"].astype(int).tolist(),
                self._edges["MovieID"].astype(int).tolist(),
                self._edges["Rating"].astype(float).tolist(),
            )),
        )

    @classmethod
    def from_snapshot(cls, snapshot: GraphBasedSnapshot) -> "GraphBasedModel":
        model = cls(
            restart_prob=snapshot.restart_prob,
            n_walks=snapshot.n_walks,
            walk_length=snapshot.walk_length,
            random_state=snapshot.random_state,
        )
        edges = snapshot.edges
        model._build_graph(
            np.array([e[0] for e in edges], dtype=np.int64),
            np.array([e[1] for e in edges], dtype=np.int64),
            np.array([e[2] for e in edges], dtype=np.float64),
        )
        return model
